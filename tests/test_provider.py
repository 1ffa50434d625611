from __future__ import annotations

import pytest

from mdxc import MdxResolutionError, compile_and_evaluate


@pytest.fixture
def render_provided(html_host):
    """Render ``source`` inside a tree of ``MDXProvider`` props, outermost first."""

    def render(source: str, *providers: dict, policy: str = "error") -> str:
        provider = html_host.provider(policy=policy)
        module = compile_and_evaluate(source, html_host.primitives(provider))
        tree = html_host.jsx(module.default, {})
        for props in reversed(providers):
            tree = html_host.jsx(provider.MDXProvider, {**props, "children": tree})
        return html_host.render(tree)

    return render


def test_provider_overrides_markdown_elements(render_provided) -> None:
    assert render_provided("# hi", {"components": {"h1": "h2"}}) == "<h2>hi</h2>"


def test_no_provider_uses_defaults(render_provided) -> None:
    assert render_provided("# hi") == "<h1>hi</h1>"


def test_nested_empty_provider_inherits(render_provided) -> None:
    out = render_provided("# hi", {"components": {"h1": "h2"}}, {})
    assert out == "<h2>hi</h2>"


def test_nested_provider_with_empty_components_inherits(render_provided) -> None:
    out = render_provided("# hi", {"components": {"h1": "h2"}}, {"components": {}})
    assert out == "<h2>hi</h2>"


def test_inner_provider_wins(render_provided) -> None:
    out = render_provided(
        "# a\n\n*b*",
        {"components": {"h1": "h2", "em": "i"}},
        {"components": {"h1": "h3"}},
    )
    assert out == "<h3>a</h3>\n<p><i>b</i></p>"


def test_callable_components_see_the_parent_map(render_provided) -> None:
    seen: list[dict] = []

    def pick(parent: dict) -> dict:
        seen.append(dict(parent))
        return {"em": parent["h1"]}

    out = render_provided("*b*", {"components": {"h1": "h2"}}, {"components": pick})
    assert out == "<p><h2>b</h2></p>"
    assert seen == [{"h1": "h2"}]


def test_disable_parent_context(render_provided) -> None:
    out = render_provided(
        "# a\n\n*b*",
        {"components": {"h1": "h2"}},
        {"components": {"em": "i"}, "disable_parent_context": True},
    )
    assert out == "<h1>a</h1>\n<p><i>b</i></p>"


def test_provider_without_children_renders_nothing(html_host) -> None:
    provider = html_host.provider()
    tree = html_host.jsx(provider.MDXProvider, {"components": {"h1": "h2"}})
    assert html_host.render(tree) == ""
    empty = html_host.jsx(provider.MDXProvider, {"children": [None, []]})
    assert html_host.render(empty) == ""


def test_props_components_override_the_provider(html_host) -> None:
    provider = html_host.provider()
    module = compile_and_evaluate("# hi", html_host.primitives(provider))
    tree = html_host.jsx(
        provider.MDXProvider,
        {
            "components": {"h1": "h2"},
            "children": html_host.jsx(module.default, {"components": {"h1": "h4"}}),
        },
    )
    assert html_host.render(tree) == "<h4>hi</h4>"


def test_provided_custom_component(render_provided) -> None:
    def Note(props):  # noqa: N802
        return f"[{props['kind']}]"

    out = render_provided('<Note kind="tip" />', {"components": {"Note": Note}})
    assert out == "[tip]"


def test_missing_component_policy(render_provided) -> None:
    with pytest.raises(MdxResolutionError):
        render_provided("<Missing />")
    assert render_provided("<Missing />", policy="passthrough") == "<Missing></Missing>"


def test_use_mdx_components_outside_a_provider(html_host) -> None:
    provider = html_host.provider()
    reg = provider.use_mdx_components()
    assert reg.depth == 0
    assert provider.use_mdx_components({"h1": "h2"}).resolve("h1") == "h2"
    assert provider.use_mdx_components().resolve("h1") == "h1"


def test_use_mdx_components_accepts_a_callable(html_host) -> None:
    provider = html_host.provider()
    outer = provider.use_mdx_components({"h1": "h2"})
    assert outer.resolve("h1") == "h2"

    seen: list[dict] = []

    def merge(current: dict) -> dict:
        seen.append(current)
        return {"p": "div"}

    reg = provider.use_mdx_components(merge)
    assert seen == [{}]
    assert reg.resolve("p") == "div"
    assert reg.depth == 1

from __future__ import annotations

import contextvars
from concurrent.futures import ThreadPoolExecutor

from mdxc import compile, evaluate


def test_documents_render_concurrently_with_independent_providers(html_host) -> None:
    doc = compile("# title\n\n*body*", provider_import_source="#")
    provider = html_host.provider()
    module = evaluate(doc, html_host.primitives(provider))

    def render(i: int) -> str:
        tree = html_host.jsx(
            provider.MDXProvider,
            {
                "components": {"h1": f"h{1 + i % 6}"},
                "children": html_host.jsx(module.default, {}),
            },
        )
        return contextvars.copy_context().run(html_host.render, tree)

    with ThreadPoolExecutor(max_workers=8) as pool:
        results = list(pool.map(render, range(48)))

    for i, out in enumerate(results):
        tag = f"h{1 + i % 6}"
        assert out == f"<{tag}>title</{tag}>\n<p><em>body</em></p>"


def test_compiled_code_is_reusable_across_threads(html_host) -> None:
    doc = compile("export N = 3\n\n{N * 2}")

    def run(_: int) -> str:
        module = evaluate(doc, html_host.primitives())
        return html_host.render(html_host.jsx(module.default, {}))

    with ThreadPoolExecutor(max_workers=4) as pool:
        assert set(pool.map(run, range(16))) == {"6"}

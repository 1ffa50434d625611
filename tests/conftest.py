"""Two minimal host runtimes used across the test-suite.

``HtmlHost`` renders element trees to an HTML string, ``TreeHost`` to nested
tuples. Both supply the runtime primitives (``jsx``, ``Fragment``...) and a
``contextvars``-backed scope capability for ``create_provider``.
"""

from __future__ import annotations

import contextvars
import html
import itertools
from dataclasses import dataclass, field
from typing import Any

import pytest

from mdxc import RuntimePrimitives, compile_and_evaluate, create_provider
from mdxc.components import ComponentRegistry
from mdxc.provider import Provider

VOID_TAGS = frozenset({"br", "hr", "img"})

_PROVIDE = object()
_ids = itertools.count()


@dataclass
class Node:
    type: Any
    props: dict[str, Any]
    source: dict[str, Any] | None = field(default=None)


class _Host:
    def __init__(self) -> None:
        self.Fragment = object()
        self._var: contextvars.ContextVar[ComponentRegistry | None] = contextvars.ContextVar(
            f"mdxc-test-scope-{next(_ids)}", default=None
        )
        self.dev_sources: list[dict[str, Any]] = []

    def jsx(self, type_: Any, props: dict[str, Any]) -> Node:
        return Node(type_, dict(props))

    def jsx_dev(self, type_: Any, props: dict[str, Any], source: dict[str, Any]) -> Node:
        self.dev_sources.append(source)
        return Node(type_, dict(props), source)

    # ProviderScope
    def current(self) -> ComponentRegistry | None:
        return self._var.get()

    def provide(self, registry: ComponentRegistry, children: object) -> Node:
        return Node(_PROVIDE, {"registry": registry, "children": children})

    def primitives(self, provider: Provider | None = None) -> RuntimePrimitives:
        return RuntimePrimitives(
            jsx=self.jsx,
            Fragment=self.Fragment,
            use_mdx_components=provider.use_mdx_components if provider else None,
            jsx_dev=self.jsx_dev,
        )

    def provider(self, **kwargs: Any) -> Provider:
        return create_provider(self, **kwargs)

    def _scoped(self, node: Node, render: Any) -> Any:
        token = self._var.set(node.props["registry"])
        try:
            return render(node.props.get("children"))
        finally:
            self._var.reset(token)


class HtmlHost(_Host):
    def render(self, node: object) -> str:
        if node is None or isinstance(node, bool):
            return ""
        if isinstance(node, str):
            return html.escape(node, quote=False)
        if isinstance(node, (int, float)):
            return str(node)
        if isinstance(node, (list, tuple)):
            return "".join(self.render(child) for child in node)
        if not isinstance(node, Node):
            raise TypeError(f"cannot render {node!r}")

        type_, props = node.type, node.props
        if type_ is _PROVIDE:
            return self._scoped(node, self.render)
        if type_ is self.Fragment:
            return self.render(props.get("children"))
        if isinstance(type_, str):
            attrs = ""
            for key, value in props.items():
                if key == "children" or value is None or value is False:
                    continue
                name = "class" if key == "className" else key
                if value is True:
                    attrs += f" {name}"
                else:
                    attrs += f' {name}="{html.escape(str(value))}"'
            if type_ in VOID_TAGS:
                return f"<{type_}{attrs} />"
            return f"<{type_}{attrs}>{self.render(props.get('children'))}</{type_}>"
        if callable(type_):
            return self.render(type_(props))
        raise TypeError(f"cannot render element type {type_!r}")


class TreeHost(_Host):
    """Renders to ``(tag, attrs, children)`` tuples; text stays ``str``."""

    def render(self, node: object) -> tuple[object, ...]:
        if node is None or isinstance(node, bool):
            return ()
        if isinstance(node, (str, int, float)):
            return (str(node),)
        if isinstance(node, (list, tuple)):
            out: list[object] = []
            for child in node:
                out.extend(self.render(child))
            return tuple(out)
        if not isinstance(node, Node):
            raise TypeError(f"cannot render {node!r}")

        type_, props = node.type, node.props
        if type_ is _PROVIDE:
            return self._scoped(node, self.render)
        if type_ is self.Fragment:
            return self.render(props.get("children"))
        if isinstance(type_, str):
            attrs = tuple(sorted((k, v) for k, v in props.items() if k != "children"))
            return ((type_, attrs, self.render(props.get("children"))),)
        if callable(type_):
            return self.render(type_(props))
        raise TypeError(f"cannot render element type {type_!r}")


@pytest.fixture
def html_host() -> HtmlHost:
    return HtmlHost()


@pytest.fixture
def tree_host() -> TreeHost:
    return TreeHost()


@pytest.fixture
def render_html(html_host: HtmlHost):
    """Compile, evaluate and render a document with the HTML host."""

    def render(source: str, components: dict[str, Any] | None = None, **options: Any) -> str:
        module = compile_and_evaluate(source, html_host.primitives(), **options)
        props = {"components": components} if components else {}
        return html_host.render(html_host.jsx(module.default, props))

    return render

"""Provider boundary component and registry accessor.

The core never owns ambient state. A host framework hands over its own
scoped-context capability (a ``ProviderScope``) and gets back the pair that
compiled documents and authors use:

- ``use_mdx_components()``: the registry active for the current render;
- ``MDXProvider``: a component that extends that registry for its subtree.

Example::

    provider = create_provider(host_scope)
    page = jsx(provider.MDXProvider, {"components": {"h1": "h2"}, "children": jsx(Content, {})})
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from typing import Any, Protocol

from mdxc.components import ComponentRegistry, MissingComponentPolicy

logger = logging.getLogger("mdxc.provider")

Components = Mapping[str, object] | Callable[[dict[str, object]], Mapping[str, object]] | None


class ProviderScope(Protocol):
    """Scoped context supplied by the host rendering framework."""

    def current(self) -> ComponentRegistry | None:
        """Registry made active by the nearest enclosing ``provide`` node."""

    def provide(self, registry: ComponentRegistry, children: object) -> object:
        """Return a node that renders ``children`` with ``registry`` active."""


@dataclass(frozen=True, slots=True)
class Provider:
    use_mdx_components: Callable[..., ComponentRegistry]
    MDXProvider: Callable[[Mapping[str, Any]], object]
    scope: ProviderScope
    policy: MissingComponentPolicy


def _has_children(children: object) -> bool:
    if children is None:
        return False
    if isinstance(children, (list, tuple)):
        return any(_has_children(c) for c in children)
    return True


def create_provider(
    scope: ProviderScope, *, policy: MissingComponentPolicy = "error"
) -> Provider:
    """Bind the provider pair to a host scope capability."""

    root = ComponentRegistry.root(policy)

    def use_mdx_components(
        components: Components = None,
    ) -> ComponentRegistry:
        registry = scope.current() or root
        if callable(components):
            components = components(registry.effective())
        if components:
            registry = registry.extend(components)
        return registry

    def MDXProvider(props: Mapping[str, Any]) -> object:  # noqa: N802
        children = props.get("children")
        if not _has_children(children):
            return None

        base = root if props.get("disable_parent_context") else use_mdx_components()
        components = props.get("components")
        if callable(components):
            components = components(base.effective())
        registry = base.extend(components)
        logger.debug("provider scope depth=%d names=%s", registry.depth, sorted(registry.entries))
        return scope.provide(registry, children)

    return Provider(
        use_mdx_components=use_mdx_components,
        MDXProvider=MDXProvider,
        scope=scope,
        policy=policy,
    )

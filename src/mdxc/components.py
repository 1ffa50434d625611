"""Component Provider Registry.

A ``ComponentRegistry`` is an immutable scope: a parent link, the explicit
entries added at this depth and the policy for names nobody provides. Every
compiled document asks a registry to resolve the tags it emits, so overriding
``h1`` (or a custom ``Note``) never requires recompiling.

Lookups walk outward from the innermost scope; the first explicit entry wins.
Names without an entry fall back to the built-in default: intrinsic names
(``h1``, ``em``, ``my-widget``) resolve to themselves. Capitalized names have
no built-in default, so the registry's policy decides:

- ``"error"`` (default): raise ``MdxResolutionError``;
- ``"passthrough"``: render the name as an inert element.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from types import MappingProxyType
from typing import Literal

from mdxc.errors import MdxResolutionError
from mdxc.ir import is_intrinsic

MissingComponentPolicy = Literal["error", "passthrough"]

_POLICIES: tuple[str, ...] = ("error", "passthrough")
_EMPTY: Mapping[str, object] = MappingProxyType({})


def _missing_message(name: str) -> str:
    return (
        f"Expected component `{name}` to be defined: you likely forgot to import, "
        "pass, or provide it."
    )


class ComponentRegistry:
    """Immutable name → implementation scope chain."""

    __slots__ = ("_parent", "_entries", "_policy", "_depth")

    def __init__(
        self,
        entries: Mapping[str, object] | None = None,
        *,
        parent: ComponentRegistry | None = None,
        policy: MissingComponentPolicy | None = None,
    ) -> None:
        if policy is None:
            policy = parent.policy if parent is not None else "error"
        if policy not in _POLICIES:
            raise ValueError(f"unknown missing-component policy: {policy!r}")
        self._parent = parent
        self._entries = _freeze(entries)
        self._policy: MissingComponentPolicy = policy
        self._depth = 0 if parent is None else parent._depth + 1

    @classmethod
    def root(cls, policy: MissingComponentPolicy = "error") -> ComponentRegistry:
        return cls(policy=policy)

    @property
    def parent(self) -> ComponentRegistry | None:
        return self._parent

    @property
    def policy(self) -> MissingComponentPolicy:
        return self._policy

    @property
    def depth(self) -> int:
        return self._depth

    @property
    def entries(self) -> Mapping[str, object]:
        """Explicit entries added at this depth only."""

        return self._entries

    def extend(self, delta: Mapping[str, object] | None = None) -> ComponentRegistry:
        """Return a child scope; ``self`` is never modified."""

        return ComponentRegistry(delta, parent=self)

    def get(self, name: str, default: object = None) -> object:
        """Nearest explicit entry for ``name`` (no built-in fallback)."""

        scope: ComponentRegistry | None = self
        while scope is not None:
            value = scope._entries.get(name)
            if value is not None:
                return value
            scope = scope._parent
        return default

    def __contains__(self, name: object) -> bool:
        return isinstance(name, str) and self.get(name) is not None

    def resolve(self, name: str) -> object:
        found = self.get(name)
        if found is not None:
            return found

        head, dot, rest = name.partition(".")
        if dot:
            return self._resolve_member(name, head, rest)
        if is_intrinsic(name):
            return name
        return self._missing(name)

    def resolve_all(self, names: Iterable[str]) -> dict[str, object]:
        return {name: self.resolve(name) for name in names}

    def effective(self) -> dict[str, object]:
        """Merged explicit entries, innermost scope winning."""

        chain: list[ComponentRegistry] = []
        scope: ComponentRegistry | None = self
        while scope is not None:
            chain.append(scope)
            scope = scope._parent
        merged: dict[str, object] = {}
        for scope in reversed(chain):
            merged.update(scope._entries)
        return merged

    def __repr__(self) -> str:
        keys = sorted(self.effective())
        return f"ComponentRegistry(depth={self._depth}, policy={self._policy!r}, names={keys!r})"

    def _resolve_member(self, name: str, head: str, rest: str) -> object:
        value = self.get(head)
        if value is None:
            return self._missing(name)
        for part in rest.split("."):
            if isinstance(value, Mapping):
                value = value.get(part)
            else:
                value = getattr(value, part, None)
            if value is None:
                return self._missing(name)
        return value

    def _missing(self, name: str) -> object:
        if self._policy == "passthrough":
            return name
        raise MdxResolutionError(_missing_message(name))


def extend(
    base: ComponentRegistry | None, delta: Mapping[str, object] | None
) -> ComponentRegistry:
    """Overlay ``delta`` on ``base`` (a fresh root when ``base`` is None)."""

    if base is None:
        base = ComponentRegistry.root()
    return base.extend(delta)


def _freeze(entries: Mapping[str, object] | None) -> Mapping[str, object]:
    if not entries:
        return _EMPTY
    if not isinstance(entries, Mapping):
        raise TypeError(f"components must be a mapping (got {type(entries)!r})")
    out: dict[str, object] = {}
    for key, value in entries.items():
        if not isinstance(key, str):
            raise TypeError(f"component names must be strings (got {key!r})")
        if value is None:
            continue
        out[key] = value
    return MappingProxyType(out)

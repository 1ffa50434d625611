"""Node types shared by the scanner, the Markdown tree builder and codegen.

A compiled document is described by three kinds of nodes:

- ``Text``: literal markup text;
- ``Expression``: embedded Python evaluated at render time;
- ``Element``: an element creation. ``origin="markdown"`` elements come from
  Markdown syntax and are always resolved through the component registry;
  ``origin="jsx"`` elements were written as tags by the author.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Literal, Union


@dataclass(slots=True)
class Code:
    """Python source with tags embedded in it, kept as ordered parts."""

    parts: list[Union[str, "Element"]]
    position: tuple[int, int]

    def is_plain(self) -> bool:
        return all(isinstance(p, str) for p in self.parts)


@dataclass(slots=True)
class Attribute:
    name: str
    value: str | int | bool | Code


@dataclass(slots=True)
class Spread:
    code: Code


@dataclass(slots=True)
class Text:
    value: str


@dataclass(slots=True)
class Expression:
    code: Code


@dataclass(slots=True)
class Element:
    # ``None`` is a fragment (``<>...</>``).
    name: str | None
    attributes: list[Attribute | Spread] = field(default_factory=list)
    children: list["Node"] = field(default_factory=list)
    origin: Literal["markdown", "jsx"] = "jsx"
    position: tuple[int, int] | None = None


Node = Union[Text, Expression, Element]


@dataclass(slots=True)
class TagOpen:
    """An opening tag in Markdown content whose children are Markdown."""

    element: Element
    source: str


@dataclass(slots=True)
class TagClose:
    name: str | None
    position: tuple[int, int]
    source: str


def display_name(name: str | None) -> str:
    return name or ""


def is_intrinsic(name: str) -> bool:
    """Lowercase (``h1``, ``abbr``) and dashed (``my-el``) names are tags."""

    if "." in name:
        return False
    return name[:1].islower() or "-" in name or ":" in name

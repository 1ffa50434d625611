"""Second compile pass: Markdown tokens → IR nodes.

``markdown-it-py`` parses the placeholder text produced by the scanner; this
module walks its syntax tree, maps Markdown constructs to intrinsic element
names (``h1``, ``p``, ``em``...), splices the embedded expressions and tags
back in and pairs opening/closing tags that wrap Markdown content.
"""

from __future__ import annotations

import functools
import re
from collections.abc import Sequence
from dataclasses import dataclass
from typing import Union

from markdown_it import MarkdownIt
from markdown_it.tree import SyntaxTreeNode

from mdxc.ir import (
    Attribute,
    Element,
    Node,
    TagClose,
    TagOpen,
    Text,
    display_name,
)
from mdxc.scanner import PLACEHOLDER, ScanResult
from mdxc.source import SourceText

_ALIGN = re.compile(r"text-align:\s*(\w+)")

_INLINE_TAGS = {"em": "em", "strong": "strong", "s": "del"}
_CONTAINER_TAGS = {
    "blockquote": "blockquote",
    "bullet_list": "ul",
    "ordered_list": "ol",
    "table": "table",
    "thead": "thead",
    "tbody": "tbody",
    "tr": "tr",
}


@functools.lru_cache(maxsize=2)
def markdown_parser(gfm: bool = False) -> MarkdownIt:
    """Return a CommonMark parser with raw HTML, autolinks and indented code off."""

    md = MarkdownIt("commonmark", {"html": False})
    md.disable(["code", "html_block", "html_inline", "autolink"])
    if gfm:
        md.enable(["table", "strikethrough"])
    return md


@dataclass(slots=True)
class _Inline:
    """Inline content of a tight list item's hidden paragraph."""

    children: list[Node]


Item = Union[Node, TagOpen, TagClose, _Inline]


class TreeBuilder:
    def __init__(self, source: SourceText, scan: ScanResult, *, gfm: bool = False) -> None:
        self.source = source
        self.scan = scan
        self.gfm = gfm

    def build(self) -> list[Node]:
        tokens = markdown_parser(self.gfm).parse(self.scan.text)
        root = SyntaxTreeNode(tokens)
        items: list[Item] = []
        for child in root.children:
            items.extend(self._block(child))
        nodes = self._fold(items, "document")
        return _join_blocks(nodes, wrap=False)

    # -- blocks ---------------------------------------------------------

    def _block(self, node: SyntaxTreeNode) -> list[Item]:
        kind = node.type
        line = self._line(node)

        if kind == "paragraph":
            items = self._inline_of(node, line)
            if node.hidden:
                return [_Inline(self._fold(items, "paragraph"))]
            if _only_embedded(items):
                return [i for i in items if not isinstance(i, Text)]
            return [self._element("p", self._fold(items, "paragraph"), line)]

        if kind == "heading":
            children = self._fold(self._inline_of(node, line), "heading")
            return [self._element(node.tag, children, line)]

        if kind == "list_item":
            return [self._list_item(node, line)]

        if kind in ("th", "td"):
            children = self._fold(self._inline_of(node, line), kind)
            attributes: list[Attribute] = []
            style = node.attrs.get("style")
            m = _ALIGN.search(str(style)) if style else None
            if m:
                attributes.append(Attribute("align", m.group(1)))
            return [self._element(kind, children, line, attributes)]

        if kind in _CONTAINER_TAGS:
            attributes = []
            if kind == "ordered_list":
                start = node.attrs.get("start")
                if start is not None and int(start) != 1:
                    attributes.append(Attribute("start", int(start)))
            children = self._blocks(node.children, kind)
            return [self._element(_CONTAINER_TAGS[kind], children, line, attributes)]

        if kind == "fence":
            info = node.info.strip().split(maxsplit=1)
            code_attrs: list[Attribute] = []
            if info:
                code_attrs.append(Attribute("className", f"language-{info[0]}"))
            code = self._element("code", [Text(node.content)], line, code_attrs)
            return [self._element("pre", [code], line)]

        if kind == "hr":
            return [self._element("hr", [], line)]

        # Anything else (only reachable with extra plugins): keep its text.
        if node.children:
            return self._blocks_flat(node.children)
        return [Text(self.scan.restore(node.content))] if node.content else []

    def _blocks(self, children: Sequence[SyntaxTreeNode], container: str) -> list[Node]:
        items: list[Item] = []
        for child in children:
            items.extend(self._block(child))
        return _join_blocks(self._fold(items, container), wrap=True)

    def _blocks_flat(self, children: Sequence[SyntaxTreeNode]) -> list[Item]:
        items: list[Item] = []
        for child in children:
            items.extend(self._block(child))
        return items

    def _list_item(self, node: SyntaxTreeNode, line: int) -> Element:
        items: list[Item] = []
        for child in node.children:
            items.extend(self._block(child))
        if len(items) == 1 and isinstance(items[0], _Inline):
            return self._element("li", items[0].children, line)
        children = _join_blocks(self._fold(items, "listItem"), wrap=True)
        return self._element("li", children, line)

    # -- inline ---------------------------------------------------------

    def _inline_of(self, node: SyntaxTreeNode, line: int) -> list[Item]:
        items: list[Item] = []
        for child in node.children:
            if child.type == "inline":
                for grandchild in child.children:
                    items.extend(self._inline(grandchild, line))
            else:
                items.extend(self._inline(child, line))
        return items

    def _inline(self, node: SyntaxTreeNode, line: int) -> list[Item]:
        kind = node.type

        if kind in ("text", "text_special"):
            return self._split_placeholders(node.content)
        if kind == "softbreak":
            return [Text("\n")]
        if kind == "hardbreak":
            return [self._element("br", [], line), Text("\n")]
        if kind == "code_inline":
            return [self._element("code", [Text(node.content)], line)]
        if kind in _INLINE_TAGS:
            children = self._fold(self._inline_children(node, line), _INLINE_TAGS[kind])
            return [self._element(_INLINE_TAGS[kind], children, line)]
        if kind == "link":
            attributes = [Attribute("href", self.scan.restore(str(node.attrs.get("href", ""))))]
            title = node.attrs.get("title")
            if title:
                attributes.append(Attribute("title", self.scan.restore(str(title))))
            children = self._fold(self._inline_children(node, line), "link")
            return [self._element("a", children, line, attributes)]
        if kind == "image":
            attributes = [
                Attribute("src", self.scan.restore(str(node.attrs.get("src", "")))),
                Attribute("alt", self.scan.restore(node.content)),
            ]
            title = node.attrs.get("title")
            if title:
                attributes.append(Attribute("title", self.scan.restore(str(title))))
            return [self._element("img", [], line, attributes)]

        if node.children:
            return self._inline_children(node, line)
        return [Text(self.scan.restore(node.content))] if node.content else []

    def _inline_children(self, node: SyntaxTreeNode, line: int) -> list[Item]:
        items: list[Item] = []
        for child in node.children:
            items.extend(self._inline(child, line))
        return items

    def _split_placeholders(self, value: str) -> list[Item]:
        items: list[Item] = []
        pos = 0
        for m in PLACEHOLDER.finditer(value):
            if m.start() > pos:
                items.append(Text(value[pos : m.start()]))
            items.append(self.scan.embeds[int(m.group(1))])
            pos = m.end()
        if pos < len(value):
            items.append(Text(value[pos:]))
        return items

    # -- tag pairing ----------------------------------------------------

    def _fold(self, items: Sequence[Item], container: str) -> list[Node]:
        """Pair ``TagOpen``/``TagClose`` markers into elements."""

        stack: list[tuple[TagOpen, list[Item]]] = []
        current: list[Item] = []
        for item in items:
            if isinstance(item, TagOpen):
                stack.append((item, current))
                current = []
            elif isinstance(item, TagClose):
                if not stack:
                    raise self.source.error(
                        f"Unexpected closing tag `</{display_name(item.name)}>`, "
                        "expected an open tag first",
                        position=item.position,
                    )
                opened, parent = stack.pop()
                if opened.element.name != item.name:
                    raise self.source.error(
                        f"Unexpected closing tag `</{display_name(item.name)}>`, expected "
                        f"corresponding closing tag for `<{display_name(opened.element.name)}>` "
                        f"({_describe(opened.element.position)})",
                        position=item.position,
                    )
                element = Element(
                    name=opened.element.name,
                    attributes=opened.element.attributes,
                    children=_flatten(current),
                    origin="jsx",
                    position=opened.element.position,
                )
                parent.append(element)
                current = parent
            else:
                current.append(item)

        if stack:
            opened = stack[-1][0]
            raise self.source.error(
                f"Expected a closing tag for `<{display_name(opened.element.name)}>` "
                f"({_describe(opened.element.position)}) before the end of `{container}`",
                position=opened.element.position,
            )
        return _flatten(current)

    # -- helpers --------------------------------------------------------

    def _line(self, node: SyntaxTreeNode) -> int:
        if node.map:
            return self.scan.source_line(node.map[0])
        return 1

    @staticmethod
    def _element(
        name: str,
        children: list[Node],
        line: int,
        attributes: Sequence[Attribute] = (),
    ) -> Element:
        return Element(
            name=name,
            attributes=list(attributes),
            children=children,
            origin="markdown",
            position=(line, 1),
        )


def _describe(position: tuple[int, int] | None) -> str:
    if position is None:
        return "?:?"
    return f"{position[0]}:{position[1]}"


def _only_embedded(items: Sequence[Item]) -> bool:
    """True when a paragraph holds nothing but tags/expressions and whitespace."""

    saw_embedded = False
    for item in items:
        if isinstance(item, Text):
            if item.value.strip():
                return False
            continue
        if isinstance(item, Element) and item.origin == "markdown":
            return False
        saw_embedded = True
    return saw_embedded


def _flatten(items: Sequence[Item]) -> list[Node]:
    out: list[Node] = []
    for item in items:
        if isinstance(item, _Inline):
            out.extend(item.children)
        else:
            out.append(item)  # type: ignore[arg-type]
    return out


def _join_blocks(nodes: list[Node], *, wrap: bool) -> list[Node]:
    """Separate block siblings with newlines (and pad containers)."""

    if not nodes:
        return []
    out: list[Node] = [Text("\n")] if wrap else []
    for idx, node in enumerate(nodes):
        if idx:
            out.append(Text("\n"))
        out.append(node)
    if wrap:
        out.append(Text("\n"))
    return out

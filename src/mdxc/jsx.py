"""Reading embedded Python code and the tags written inside it.

``CodeReader`` walks Python source just enough to find where an expression
ends (matching braces while skipping strings and comments) and to pick out
tags such as ``<b>!</b>`` wherever an operand may start. Tags are parsed into
``Element`` nodes; everything else is kept as raw text for codegen.
"""

from __future__ import annotations

import html
import re
from dataclasses import dataclass

from mdxc.ir import Attribute, Code, Element, Expression, Spread, Text, display_name
from mdxc.source import SourceText

UNCLOSED_EXPRESSION = (
    "Unexpected end of file in expression, expected a corresponding closing brace for `{`"
)

_NAME_START = re.compile(r"[A-Za-z_$]")
_NAME = re.compile(r"[A-Za-z_$][\w$-]*(?:[.:][A-Za-z_$][\w$-]*)*")
_ATTR_NAME = re.compile(r"[A-Za-z_$][\w$-]*(?::[A-Za-z_$][\w$-]*)?")
_WORD = re.compile(r"[^\W\d]\w*")
_NUMBER = re.compile(r"\d[\w.]*")

# A tag may start an operand after these tokens; after anything else ``<`` is
# the less-than operator.
_TAG_AFTER_CHARS = frozenset("([{,=:;!~+-*/%&|^@")
_TAG_AFTER_KEYWORDS = frozenset(
    {"return", "yield", "else", "and", "or", "not", "in", "is", "if", "await", "lambda", "assert"}
)


@dataclass(slots=True)
class Tag:
    name: str | None
    attributes: list[Attribute | Spread]
    closing: bool
    self_closing: bool
    start: int
    end: int


def jsx_text(raw: str) -> str:
    """Collapse tag text children the way JSX does (per-line trim, join with a space)."""

    lines = raw.split("\n")
    kept: list[str] = []
    last = len(lines) - 1
    for idx, line in enumerate(lines):
        if idx > 0:
            line = line.lstrip(" \t")
        if idx < last:
            line = line.rstrip(" \t")
        if line:
            kept.append(line)
    return html.unescape(" ".join(kept))


class CodeReader:
    def __init__(self, source: SourceText) -> None:
        self.source = source
        self.text = source.text

    def starts_tag(self, i: int) -> bool:
        text = self.text
        if i + 1 >= len(text) or text[i] != "<":
            return False
        nxt = text[i + 1]
        return nxt in "/>" or _NAME_START.match(nxt) is not None

    def read_code(
        self, start: int, *, limit: int | None = None, braced: bool = True
    ) -> tuple[Code, int]:
        """Read Python code from ``start``.

        With ``braced`` the code ends at the ``}`` matching an already-consumed
        ``{`` and the returned index is just past it. Otherwise the code runs up
        to ``limit``.
        """

        text = self.text
        end = len(text) if limit is None else limit
        code = Code(parts=[], position=self.source.position(start))
        seg = start
        depth = 0
        prev = ""
        i = start
        while i < end:
            c = text[i]
            if c in "\"'":
                i = self._skip_string(i, end)
                prev = "'"
                continue
            if c == "#":
                nl = text.find("\n", i, end)
                i = end if nl == -1 else nl
                continue
            if c == "<" and self._tag_allowed(prev) and self.starts_tag(i):
                if i > seg:
                    code.parts.append(text[seg:i])
                element, i = self.read_element(i, end)
                code.parts.append(element)
                seg = i
                prev = ")"
                continue
            if c in "([{":
                depth += 1
                prev = c
            elif c in ")]}":
                if c == "}" and braced and depth == 0:
                    if i > seg:
                        code.parts.append(text[seg:i])
                    return code, i + 1
                depth -= 1
                prev = c
            elif c.isdigit():
                m = _NUMBER.match(text, i)
                assert m is not None
                prev = "0"
                i = m.end()
                continue
            elif c.isidentifier():
                m = _WORD.match(text, i)
                assert m is not None
                prev = m.group()
                i = m.end()
                continue
            elif not c.isspace():
                prev = c
            i += 1

        if braced:
            raise self.source.error(UNCLOSED_EXPRESSION, end)
        if end > seg:
            code.parts.append(text[seg:end])
        return code, end

    def read_element(self, start: int, limit: int | None = None) -> tuple[Element, int]:
        """Read a complete element (tag, children, closing tag) inside code."""

        end = len(self.text) if limit is None else limit
        tag = self.read_tag(start, end)
        if tag.closing:
            raise self.source.error(
                f"Unexpected closing tag `</{display_name(tag.name)}>`, expected an open tag first",
                tag.start,
            )
        element = Element(
            name=tag.name,
            attributes=tag.attributes,
            origin="jsx",
            position=self.source.position(tag.start),
        )
        if tag.self_closing:
            return element, tag.end

        text = self.text
        j = tag.end
        while True:
            if j >= end:
                raise self.source.error(
                    "Unexpected end of file in element, expected a corresponding closing tag "
                    f"for `<{display_name(tag.name)}>` ({self.source.describe(tag.start)})",
                    end,
                )
            c = text[j]
            if c == "<" and self.starts_tag(j):
                if self._is_closing(j):
                    close = self.read_tag(j, end)
                    if close.name != tag.name:
                        raise self.source.error(
                            f"Unexpected closing tag `</{display_name(close.name)}>`, expected "
                            f"corresponding closing tag for `<{display_name(tag.name)}>` "
                            f"({self.source.describe(tag.start)})",
                            close.start,
                        )
                    return element, close.end
                child, j = self.read_element(j, end)
                element.children.append(child)
                continue
            if c == "{":
                code, j = self.read_code(j + 1, limit=end)
                element.children.append(Expression(code))
                continue
            k = j + 1
            while k < end and text[k] not in "<{":
                k += 1
            value = jsx_text(text[j:k])
            if value:
                element.children.append(Text(value))
            j = k

    def read_tag(self, start: int, limit: int | None = None) -> Tag:
        """Read a single opening, closing or self-closing tag at ``start``."""

        text = self.text
        end = len(text) if limit is None else limit
        j = self._skip_ws(start + 1, end)
        closing = False
        if j < end and text[j] == "/":
            closing = True
            j = self._skip_ws(j + 1, end)

        if j < end and text[j] == ">":
            return Tag(None, [], closing, False, start, j + 1)

        m = _NAME.match(text, j, end)
        if m is None:
            raise self.source.error(
                f"Unexpected {self._describe_char(j, end)} before name, expected a character "
                "that can start a name, such as a letter, `$`, or `_`",
                j,
            )
        name = m.group()
        j = m.end()
        attributes: list[Attribute | Spread] = []

        while True:
            j = self._skip_ws(j, end)
            if j >= end:
                raise self.source.error(
                    f"Unexpected end of file in tag, expected a closing `>` for `<{name}` "
                    f"({self.source.describe(start)})",
                    end,
                )
            c = text[j]
            if c == ">":
                return Tag(name, attributes, closing, False, start, j + 1)
            if c == "/":
                k = self._skip_ws(j + 1, end)
                if k < end and text[k] == ">" and not closing:
                    return Tag(name, attributes, False, True, start, k + 1)
                raise self.source.error(
                    f"Unexpected {self._describe_char(k, end)} after self-closing slash, "
                    "expected `>` to end the tag",
                    k,
                )
            if closing:
                raise self.source.error(
                    f"Unexpected {self._describe_char(j, end)} in closing tag, expected the end "
                    "of the tag",
                    j,
                )
            if c == "{":
                k = self._skip_ws(j + 1, end)
                if not text.startswith("...", k):
                    raise self.source.error(
                        "Unexpected expression in tag, expected a spread `{...value}`", j
                    )
                code, j = self.read_code(k + 3, limit=end)
                attributes.append(Spread(code))
                continue

            am = _ATTR_NAME.match(text, j, end)
            if am is None:
                raise self.source.error(
                    f"Unexpected {self._describe_char(j, end)} in tag, expected an attribute "
                    "name or the end of the tag",
                    j,
                )
            attr_name = am.group()
            j = self._skip_ws(am.end(), end)
            if j >= end or text[j] != "=":
                attributes.append(Attribute(attr_name, True))
                continue

            j = self._skip_ws(j + 1, end)
            if j < end and text[j] in "\"'":
                quote = text[j]
                close = text.find(quote, j + 1, end)
                if close == -1:
                    raise self.source.error(
                        f"Unexpected end of file in attribute value, expected a closing `{quote}`",
                        end,
                    )
                attributes.append(Attribute(attr_name, html.unescape(text[j + 1 : close])))
                j = close + 1
            elif j < end and text[j] == "{":
                code, j = self.read_code(j + 1, limit=end)
                attributes.append(Attribute(attr_name, code))
            else:
                raise self.source.error(
                    f"Unexpected {self._describe_char(j, end)} before attribute value, expected "
                    "a quoted value or an expression",
                    j,
                )

    def _is_closing(self, i: int) -> bool:
        j = self._skip_ws(i + 1, len(self.text))
        return j < len(self.text) and self.text[j] == "/"

    def _skip_ws(self, i: int, end: int) -> int:
        while i < end and self.text[i].isspace():
            i += 1
        return i

    def _skip_string(self, i: int, end: int) -> int:
        text = self.text
        quote = text[i]
        triple = text.startswith(quote * 3, i)
        j = i + 3 if triple else i + 1
        while j < end:
            ch = text[j]
            if ch == "\\":
                j += 2
                continue
            if triple:
                if text.startswith(quote * 3, j):
                    return j + 3
            elif ch == quote:
                return j + 1
            elif ch == "\n":
                # Unterminated single-line string: Python reports it later.
                return j
            j += 1
        return end

    def _describe_char(self, i: int, end: int) -> str:
        if i >= end:
            return "end of file"
        ch = self.text[i]
        return f"character `{ch}` (U+{ord(ch):04X})"

    @staticmethod
    def _tag_allowed(prev: str) -> bool:
        return prev == "" or prev in _TAG_AFTER_CHARS or prev in _TAG_AFTER_KEYWORDS

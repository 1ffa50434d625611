"""First compile pass: pull embedded code out of the Markdown.

Expressions, tags and code blocks are replaced by placeholders (or blank
lines) so the remaining text is plain Markdown for ``markdown-it-py``. Code
spans and fenced code are copied untouched, so braces and angle brackets in
them stay literal.
"""

from __future__ import annotations

import re
import string
from dataclasses import dataclass, field
from typing import Union

from mdxc.ir import Code, Element, Expression, TagClose, TagOpen
from mdxc.jsx import CodeReader, Tag
from mdxc.source import SourceText

PLACEHOLDER = re.compile("\ue000(\\d+)\ue001")

_ESM_START = re.compile(r"(?:import|from|export)[ \t]")
_FENCE_OPEN = re.compile(r"(?P<prefix>(?:[ \t]*>)*[ \t]*)(?P<fence>`{3,}|~{3,})(?P<info>.*)")
_BLANK_LINE = re.compile(r"\n[ \t]*\n")
_PUNCTUATION = frozenset(string.punctuation)

Embed = Union[Expression, Element, TagOpen, TagClose]


def placeholder(index: int) -> str:
    return f"\ue000{index}\ue001"


@dataclass(slots=True)
class CodeBlock:
    """An ``import``/``export`` block at the top level of the document."""

    code: Code
    start: int
    end: int


@dataclass(slots=True)
class ScanResult:
    text: str
    embeds: list[Embed] = field(default_factory=list)
    sources: list[str] = field(default_factory=list)
    code_blocks: list[CodeBlock] = field(default_factory=list)
    # line_map[n] is the source line where line n (0-based) of ``text`` starts.
    line_map: list[int] = field(default_factory=lambda: [1])

    def restore(self, value: str) -> str:
        """Put the original source back in place of placeholders."""

        return PLACEHOLDER.sub(lambda m: self.sources[int(m.group(1))], value)

    def source_line(self, markdown_line: int) -> int:
        if 0 <= markdown_line < len(self.line_map):
            return self.line_map[markdown_line]
        return self.line_map[-1]


class Scanner:
    def __init__(self, source: SourceText) -> None:
        self.source = source
        self.text = source.text
        self.reader = CodeReader(source)
        self._out: list[str] = []
        self._result = ScanResult(text="")

    def scan(self) -> ScanResult:
        text = self.text
        n = len(text)
        i = 0
        at_line_start = True
        prev_blank = True

        while i < n:
            if at_line_start:
                line_end = text.find("\n", i)
                if line_end == -1:
                    line_end = n
                line = text[i:line_end]
                blank = not line.strip()

                if prev_blank and _ESM_START.match(line):
                    end = self._code_block_end(i)
                    code, _ = self.reader.read_code(i, limit=end, braced=False)
                    self._result.code_blocks.append(CodeBlock(code=code, start=i, end=end))
                    self._emit_newlines(i, end)
                    i = end
                    prev_blank = False
                    continue

                fence = _FENCE_OPEN.fullmatch(line)
                if fence and not (fence["fence"][0] == "`" and "`" in fence["info"]):
                    end = self._fence_end(line_end, fence["fence"])
                    self._emit(i, end)
                    i = end
                    prev_blank = False
                    continue

                if text.startswith("<", i):
                    flow = self._flow_tags(i)
                    if flow is not None:
                        tags, end = flow
                        if not prev_blank:
                            self._blank_line(i)
                        for tag in tags:
                            self._embed_tag(tag)
                        self._blank_line(i)
                        i = end
                        prev_blank = False
                        at_line_start = False
                        continue

                prev_blank = blank
                at_line_start = False

            c = text[i]
            if c == "\n":
                self._emit(i, i + 1)
                i += 1
                at_line_start = True
            elif c == "\\" and i + 1 < n and text[i + 1] in _PUNCTUATION:
                self._emit(i, i + 2)
                i += 2
            elif c == "`":
                i = self._code_span(i)
            elif c == "{":
                code, end = self.reader.read_code(i + 1)
                self._embed(Expression(code), i, end)
                i = end
            elif c == "<" and self.reader.starts_tag(i):
                i = self._tag(i)
            else:
                self._emit(i, i + 1)
                i += 1

        self._result.text = "".join(self._out)
        return self._result

    def _tag(self, start: int) -> int:
        tag = self.reader.read_tag(start)
        self._embed_tag(tag)
        return tag.end

    def _flow_tags(self, start: int) -> tuple[list[Tag], int] | None:
        """Tags filling a whole line are blocks: they get a paragraph of their own."""

        text = self.text
        tags: list[Tag] = []
        j = start
        while self.reader.starts_tag(j):
            tag = self.reader.read_tag(j)
            tags.append(tag)
            k = tag.end
            while k < len(text) and text[k] in " \t":
                k += 1
            if k >= len(text) or text[k] == "\n":
                return tags, k
            j = k
        return None

    def _embed_tag(self, tag: Tag) -> None:
        position = self.source.position(tag.start)
        raw = self.text[tag.start : tag.end]
        embed: Embed
        if tag.closing:
            embed = TagClose(name=tag.name, position=position, source=raw)
        else:
            element = Element(
                name=tag.name,
                attributes=tag.attributes,
                origin="jsx",
                position=position,
            )
            embed = element if tag.self_closing else TagOpen(element=element, source=raw)
        self._embed(embed, tag.start, tag.end)

    def _code_span(self, start: int) -> int:
        text = self.text
        run = start
        while run < len(text) and text[run] == "`":
            run += 1
        width = run - start
        closer = re.compile(rf"(?<!`)`{{{width}}}(?!`)")
        m = closer.search(text, run)
        if m is None or _BLANK_LINE.search(text, run, m.start()):
            self._emit(start, run)
            return run
        self._emit(start, m.end())
        return m.end()

    def _code_block_end(self, start: int) -> int:
        """A code block runs until a blank line followed by an unindented line."""

        text = self.text
        pos = start
        while True:
            nl = text.find("\n", pos)
            if nl == -1:
                return len(text)
            nxt = nl + 1
            nxt_end = text.find("\n", nxt)
            if nxt_end == -1:
                nxt_end = len(text)
            if not text[nxt:nxt_end].strip():
                after = nxt_end + 1
                # Skip further blank lines to see what follows.
                while after < len(text):
                    line_end = text.find("\n", after)
                    if line_end == -1:
                        line_end = len(text)
                    if text[after:line_end].strip():
                        break
                    after = line_end + 1
                if after >= len(text) or not text[after].isspace():
                    return nxt
            pos = nxt

    def _fence_end(self, open_line_end: int, fence: str) -> int:
        text = self.text
        closer = re.compile(rf"(?:[ \t]*>)*[ \t]*{re.escape(fence[0])}{{{len(fence)},}}[ \t]*")
        pos = open_line_end + 1
        while pos < len(text):
            line_end = text.find("\n", pos)
            if line_end == -1:
                line_end = len(text)
            if closer.fullmatch(text, pos, line_end):
                return min(line_end + 1, len(text))
            pos = line_end + 1
        return len(text)

    def _embed(self, embed: Embed, start: int, end: int) -> None:
        self._result.embeds.append(embed)
        self._result.sources.append(self.text[start:end])
        self._out.append(placeholder(len(self._result.embeds) - 1))

    def _emit(self, start: int, end: int) -> None:
        chunk = self.text[start:end]
        self._out.append(chunk)
        pos = chunk.find("\n")
        while pos != -1:
            self._result.line_map.append(self.source.line_of(start + pos + 1))
            pos = chunk.find("\n", pos + 1)

    def _blank_line(self, offset: int) -> None:
        self._out.append("\n")
        self._result.line_map.append(self.source.line_of(offset))

    def _emit_newlines(self, start: int, end: int) -> None:
        pos = self.text.find("\n", start, end)
        while pos != -1:
            self._out.append("\n")
            self._result.line_map.append(self.source.line_of(pos + 1))
            pos = self.text.find("\n", pos + 1, end)

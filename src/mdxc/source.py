"""Source text with offset → line/column mapping."""

from __future__ import annotations

import bisect

from mdxc.errors import MdxSyntaxError


class SourceText:
    """A document plus the bookkeeping needed to report 1-based positions."""

    def __init__(self, text: str, *, file_name: str | None = None) -> None:
        self.text = text.replace("\r\n", "\n").replace("\r", "\n")
        self.file_name = file_name
        self._line_starts = [0]
        for i, ch in enumerate(self.text):
            if ch == "\n":
                self._line_starts.append(i + 1)

    def __len__(self) -> int:
        return len(self.text)

    def position(self, offset: int) -> tuple[int, int]:
        offset = min(max(0, offset), len(self.text))
        idx = bisect.bisect_right(self._line_starts, offset) - 1
        return idx + 1, offset - self._line_starts[idx] + 1

    def line_of(self, offset: int) -> int:
        return self.position(offset)[0]

    def error(
        self,
        reason: str,
        offset: int | None = None,
        *,
        position: tuple[int, int] | None = None,
    ) -> MdxSyntaxError:
        if position is None:
            position = self.position(len(self.text) if offset is None else offset)
        line, column = position
        return MdxSyntaxError(reason, line=line, column=column, file_name=self.file_name)

    def describe(self, offset: int) -> str:
        line, column = self.position(offset)
        return f"{line}:{column}"

"""mdxc exception hierarchy.

Keep this module small and dependency-free: it is imported broadly across the
project and by tests.
"""


class MdxError(Exception):
    """Base exception for all mdxc errors."""


class MdxConfigError(MdxError):
    """Raised for invalid user configuration or compile options."""


class MdxSyntaxError(MdxError):
    """Raised when a document cannot be compiled.

    Carries a 1-based ``line``/``column`` and the bare ``reason`` so callers
    (the CLI, a bundler integration) can re-surface it verbatim.
    """

    def __init__(
        self,
        reason: str,
        *,
        line: int,
        column: int,
        file_name: str | None = None,
    ) -> None:
        self.reason = reason
        self.line = line
        self.column = column
        self.file_name = file_name
        super().__init__(self._format())

    def _format(self) -> str:
        loc = f"{self.line}:{self.column}"
        if self.file_name:
            loc = f"{self.file_name}:{loc}"
        return f"{loc}: {self.reason}"

    def with_file_name(self, file_name: str | None) -> "MdxSyntaxError":
        return MdxSyntaxError(
            self.reason, line=self.line, column=self.column, file_name=file_name
        )


class MdxEvaluationError(MdxError):
    """Raised when compiled code cannot be turned into a live component."""


class MdxResolutionError(MdxError):
    """Raised at render time when a component name cannot be resolved."""

"""Error formatting and actionable hints for mdxc CLI output.

Hints are keyed on the error class and, for config errors, on the message.
"""

from __future__ import annotations

from mdxc.errors import (
    MdxConfigError,
    MdxEvaluationError,
    MdxResolutionError,
    MdxSyntaxError,
)


def format_build_failures(failed: dict[str, list[str]]) -> str:
    """Format build failures into a human-readable stderr summary."""
    if not failed:
        return ""
    lines: list[str] = []
    for key in sorted(failed):
        for err in failed[key]:
            lines.append(f"error: {err}")
    lines.append(f"Build failed for {len(failed)} document(s).")
    return "\n".join(lines) + "\n"


def format_hint(exc: BaseException) -> str | None:
    """Return an actionable hint for a known error, or None."""
    msg = str(exc)

    if isinstance(exc, MdxConfigError):
        if "mdxc.toml" in msg and "find" in msg.lower():
            return "create an mdxc.toml with `version = 1` in your project root"
        if "jsx_import_source" in msg:
            return "set [compile] jsx_import_source in mdxc.toml or pass --jsx-import-source"
        return None

    if isinstance(exc, MdxSyntaxError):
        if "closing brace" in exc.reason:
            return "escape a literal brace as `\\{`"
        if exc.reason.startswith("Unexpected `") and "in code" in exc.reason:
            return "prefix definitions in code blocks with `export`"
        return None

    if isinstance(exc, MdxResolutionError):
        return "pass the component via `components=` or an MDXProvider"

    if isinstance(exc, MdxEvaluationError) and "Missing runtime primitive" in msg:
        return "compile without a provider, or supply `use_mdx_components` in the primitives"

    return None


def format_error_with_hint(exc: BaseException) -> str:
    """Format error message + optional hint for stderr output."""
    msg = (str(exc) or repr(exc)).strip()
    result = f"error: {msg}"
    hint = format_hint(exc)
    if hint:
        result += f"\nhint: {hint}"
    return result

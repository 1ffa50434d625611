"""Self-describing header carried by compiled documents and generated modules.

The header is a run of ``# mdxc:key=value`` comment lines after a fixed
marker line, so it survives being stored as plain text (or written to disk
as a module) and stays inert when the code is executed.
"""

from __future__ import annotations

import json
from collections.abc import Sequence

HEADER_MARKER = "# This file was generated by mdxc. DO NOT EDIT."
_PREFIX = "# mdxc:"


def format_header(
    *,
    tool_version: str,
    output_format: str,
    primitives: Sequence[str],
    exports: Sequence[str],
    source_file: str | None = None,
    source_digest: str | None = None,
) -> str:
    lines = [
        HEADER_MARKER,
        f"{_PREFIX}tool_version={tool_version}",
        f"{_PREFIX}output_format={output_format}",
        f"{_PREFIX}primitives={json.dumps(list(primitives), ensure_ascii=True)}",
        f"{_PREFIX}exports={json.dumps(list(exports), ensure_ascii=True)}",
    ]
    if source_file is not None:
        lines.append(f"{_PREFIX}source_file={source_file}")
    if source_digest is not None:
        if not source_digest.startswith("sha256:"):
            source_digest = f"sha256:{source_digest}"
        lines.append(f"{_PREFIX}source_digest={source_digest}")
    return "\n".join(lines) + "\n"


def split_header(text: str) -> tuple[dict[str, str] | None, str]:
    """Return ``(fields, body)``; ``fields`` is None when there is no header."""

    lines = text.splitlines(keepends=True)
    if not lines or lines[0].rstrip("\r\n") != HEADER_MARKER:
        return None, text

    fields: dict[str, str] = {}
    idx = 1
    while idx < len(lines):
        line = lines[idx].rstrip("\r\n")
        if not line.startswith(_PREFIX):
            break
        key, sep, value = line[len(_PREFIX) :].partition("=")
        if sep:
            fields[key] = value
        idx += 1
    return fields, "".join(lines[idx:])


def parse_header(text: str) -> dict[str, str] | None:
    return split_header(text)[0]


def header_list(fields: dict[str, str], key: str) -> list[str]:
    raw = fields.get(key)
    if not raw:
        return []
    value = json.loads(raw)
    if not isinstance(value, list) or any(not isinstance(v, str) for v in value):
        raise ValueError(f"header field {key!r} must be a JSON list of strings")
    return value


def extract_source_digest(text: str) -> str | None:
    fields = parse_header(text)
    if not fields:
        return None
    return fields.get("source_digest")

"""Stable digests for incremental rebuild decisions."""

from __future__ import annotations

import dataclasses
import hashlib
import json

from mdxc.compiler import CompileOptions


def _jsonable(value: object) -> object:
    if value is None or isinstance(value, (str, int, float, bool)):
        return value
    if isinstance(value, dict):
        return {str(k): _jsonable(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_jsonable(v) for v in value]
    return str(value)


def normalize_source(text: str) -> str:
    text = text.replace("\r\n", "\n").replace("\r", "\n")
    return text.rstrip("\n") + "\n"


def source_digest(text: str, options: CompileOptions, *, tool_version: str = "0") -> str:
    """sha256 over the normalized document, the compile options and the tool version."""

    opts = _jsonable(dataclasses.asdict(options))
    stable = json.dumps(
        {"options": opts, "tool_version": tool_version},
        sort_keys=True,
        separators=(",", ":"),
        ensure_ascii=True,
    )
    payload = (normalize_source(text) + "\n" + stable).encode("utf-8")
    return hashlib.sha256(payload).hexdigest()

"""Pure helpers for mapping document files to generated modules and file paths."""

from __future__ import annotations

import keyword
import re
from pathlib import Path

SOURCE_SUFFIX = ".mdx"

_NON_IDENT = re.compile(r"\W")


def to_identifier(part: str) -> str:
    """Turn a file or directory name into a valid module name component."""

    ident = _NON_IDENT.sub("_", part) or "_"
    if ident[0].isdigit() or keyword.iskeyword(ident):
        ident = f"_{ident}"
    return ident


def source_to_generated_relpath(relpath: Path, generated_dir: str = "__generated__") -> Path:
    """`docs/intro.mdx` → `__generated__/docs/intro.py` (relative to a source root)."""

    parts = [to_identifier(p) for p in relpath.parent.parts]
    stem = relpath.name
    if stem.endswith(SOURCE_SUFFIX):
        stem = stem[: -len(SOURCE_SUFFIX)]
    return Path(generated_dir, *parts, f"{to_identifier(stem)}.py")


def generated_relpath_to_module(relpath: Path) -> str:
    parts = list(relpath.parts)
    if parts and parts[-1].endswith(".py"):
        parts[-1] = parts[-1][: -len(".py")]
    if parts and parts[-1] == "__init__":
        parts.pop()
    return ".".join(parts)

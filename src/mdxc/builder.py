from __future__ import annotations

import asyncio
import dataclasses
import logging
import os
import tempfile
from collections.abc import Sequence
from dataclasses import dataclass
from pathlib import Path

from mdxc import compiler, paths
from mdxc.digest import source_digest
from mdxc.errors import MdxConfigError, MdxSyntaxError
from mdxc.header import extract_source_digest, format_header, split_header

logger = logging.getLogger("mdxc.builder")


def _normalize_digest(digest: str | None) -> str | None:
    if not digest:
        return None
    if digest.startswith("sha256:"):
        return digest.split(":", 1)[1]
    return digest


@dataclass(frozen=True, slots=True)
class SourceFile:
    """A document under a source root and where its module is generated."""

    path: Path
    root: Path
    key: str
    generated_relpath: Path

    @property
    def out_path(self) -> Path:
        return self.root / self.generated_relpath

    @property
    def module(self) -> str:
        return paths.generated_relpath_to_module(self.generated_relpath)


@dataclass(frozen=True, slots=True)
class BuildReport:
    generated: set[str]
    skipped: set[str]
    failed: dict[str, list[str]]


def discover_sources(
    *, project_root: Path, source_roots: Sequence[str], generated_dir: str
) -> list[SourceFile]:
    """Find `*.mdx` files; a file reachable from several roots belongs to the first."""

    seen: set[Path] = set()
    out: list[SourceFile] = []
    for sr in source_roots:
        root = (project_root / sr).resolve()
        if not root.is_dir():
            continue
        for path in sorted(root.rglob(f"*{paths.SOURCE_SUFFIX}")):
            rel = path.relative_to(root)
            if generated_dir in rel.parts or any(p.startswith(".") for p in rel.parts):
                continue
            resolved = path.resolve()
            if resolved in seen:
                continue
            seen.add(resolved)
            try:
                key = resolved.relative_to(project_root.resolve()).as_posix()
            except ValueError:
                key = resolved.as_posix()
            out.append(
                SourceFile(
                    path=resolved,
                    root=root,
                    key=key,
                    generated_relpath=paths.source_to_generated_relpath(rel, generated_dir),
                )
            )
    return out


def build_options(
    *,
    jsx_import_source: str | None,
    provider_import_source: str | None = None,
    development: bool = False,
    gfm: bool = False,
) -> compiler.CompileOptions:
    if not jsx_import_source:
        raise MdxConfigError(
            "compile.jsx_import_source is required to build importable modules."
        )
    return compiler.CompileOptions(
        output_format="program",
        jsx_import_source=jsx_import_source,
        provider_import_source=provider_import_source,
        development=development,
        gfm=gfm,
    )


def _ensure_init_files(root: Path, relpath: Path) -> None:
    # Ensure all parent package dirs contain __init__.py so imports work.
    dir_parts = list(relpath.parts)[:-1]
    for i in range(1, len(dir_parts) + 1):
        d = root / Path(*dir_parts[:i])
        d.mkdir(parents=True, exist_ok=True)
        init = d / "__init__.py"
        if not init.exists():
            init.write_text("", encoding="utf-8")


def write_generated_module(*, root: Path, relpath: Path, content: str) -> Path:
    """Atomically write a generated module file below `root`."""

    out_path = (root / relpath).resolve()
    resolved_root = root.resolve()
    if resolved_root not in out_path.parents:
        raise ValueError("Refusing to write outside the source root.")

    out_path.parent.mkdir(parents=True, exist_ok=True)
    _ensure_init_files(root, relpath)

    # Write atomically: temp file in the same directory then os.replace.
    fd, tmp = tempfile.mkstemp(
        dir=str(out_path.parent),
        prefix=".mdxc-tmp-",
        suffix=".py",
        text=True,
    )
    try:
        with os.fdopen(fd, "w", encoding="utf-8", newline="\n") as f:
            f.write(content.rstrip() + "\n")
            f.flush()
            os.fsync(f.fileno())
        os.replace(tmp, out_path)
    finally:
        try:
            os.unlink(tmp)
        except FileNotFoundError:
            pass
    return out_path


def remove_generated_module(
    path: Path, *, project_root: Path, source_roots: Sequence[str], generated_dir: str
) -> Path | None:
    """Delete the module generated for a (deleted) document, if there is one."""

    path = path.resolve()
    for sr in source_roots:
        root = (project_root / sr).resolve()
        if root not in path.parents:
            continue
        rel = path.relative_to(root)
        out = root / paths.source_to_generated_relpath(rel, generated_dir)
        if out.exists():
            out.unlink()
            logger.debug("removed %s", out)
            return out
    return None


def _options_for(sf: SourceFile, options: compiler.CompileOptions) -> compiler.CompileOptions:
    return dataclasses.replace(options, file_name=sf.key)


def detect_stale_sources(
    sources: Sequence[SourceFile],
    options: compiler.CompileOptions,
    *,
    force: bool = False,
) -> set[str]:
    if force:
        return {sf.key for sf in sources}

    version = compiler.tool_version()
    stale: set[str] = set()
    for sf in sources:
        if not sf.out_path.exists():
            stale.add(sf.key)
            continue
        try:
            existing = sf.out_path.read_text(encoding="utf-8")
            text = sf.path.read_text(encoding="utf-8")
        except OSError:
            stale.add(sf.key)
            continue

        on_disk = _normalize_digest(extract_source_digest(existing))
        computed = source_digest(text, _options_for(sf, options), tool_version=version)
        if on_disk is None or on_disk != computed:
            stale.add(sf.key)
    return stale


def build_one(sf: SourceFile, options: compiler.CompileOptions) -> Path:
    """Compile one document and write its module; raises on compile errors."""

    text = sf.path.read_text(encoding="utf-8")
    opts = _options_for(sf, options)
    doc = compiler.compile(text, opts)
    version = compiler.tool_version()
    header = format_header(
        tool_version=version,
        output_format=doc.output_format,
        primitives=doc.primitives,
        exports=doc.exports,
        source_file=sf.key,
        source_digest=source_digest(text, opts, tool_version=version),
    )
    _, body = split_header(doc.code)
    return write_generated_module(root=sf.root, relpath=sf.generated_relpath, content=header + body)


async def run_build(
    *,
    sources: Sequence[SourceFile],
    stale: set[str],
    options: compiler.CompileOptions,
    jobs: int = 4,
) -> BuildReport:
    jobs = max(1, int(jobs))
    todo = [sf for sf in sources if sf.key in stale]
    skipped = {sf.key for sf in sources} - stale

    generated: set[str] = set()
    failed: dict[str, list[str]] = {}
    in_flight: dict[asyncio.Task[Path], SourceFile] = {}
    pending = list(reversed(todo))

    while pending or in_flight:
        while pending and len(in_flight) < jobs:
            sf = pending.pop()
            t = asyncio.create_task(asyncio.to_thread(build_one, sf, options))
            in_flight[t] = sf

        done, _ = await asyncio.wait(in_flight.keys(), return_when=asyncio.FIRST_COMPLETED)
        for t in done:
            sf = in_flight.pop(t)
            try:
                out = t.result()
            except MdxSyntaxError as e:
                failed[sf.key] = [str(e)]
                continue
            except (OSError, UnicodeDecodeError, ValueError) as e:
                failed[sf.key] = [f"{type(e).__name__}: {e}"]
                continue
            generated.add(sf.key)
            logger.debug("generated %s -> %s", sf.key, out)

    logger.info(
        "build finished: %d generated, %d skipped, %d failed",
        len(generated),
        len(skipped),
        len(failed),
    )
    return BuildReport(generated=generated, skipped=skipped, failed=failed)

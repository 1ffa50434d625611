"""Watch mode: recompile documents as they change.

Each batch of file events is narrowed to ``.mdx`` files under the source
roots. Changed documents are recompiled (the rest keep their generated
modules) and deleted documents have their generated module removed.
"""

from __future__ import annotations

import time
from collections.abc import AsyncIterator, Awaitable, Callable, Iterable
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from mdxc import builder
from mdxc.compiler import CompileOptions
from mdxc.paths import SOURCE_SUFFIX

# ``watchfiles.Change.deleted``; compared by value so importing this module
# does not require the optional dependency.
_DELETED = 3


@dataclass(frozen=True, slots=True)
class WatchEvent:
    """A batch of relevant document changes."""

    changed: frozenset[Path]
    deleted: frozenset[Path] = frozenset()
    timestamp: float = field(default_factory=time.monotonic)

    @property
    def paths(self) -> frozenset[Path]:
        return self.changed | self.deleted


@dataclass(frozen=True, slots=True)
class WatchCycleResult:
    report: builder.BuildReport
    removed: tuple[Path, ...]
    duration_s: float

    @property
    def ok(self) -> bool:
        return not self.report.failed


def check_watchfiles_available() -> None:
    """Raise ImportError with a helpful message if watchfiles is not installed."""
    import importlib

    try:
        importlib.import_module("watchfiles")
    except ImportError:
        raise ImportError(
            "watchfiles is required for watch mode. Install it with: pip install mdxc[watch]"
        ) from None


def is_source_file(path: Path, *, source_roots: Iterable[Path], generated_dir: str) -> bool:
    if path.suffix != SOURCE_SUFFIX or generated_dir in path.parts:
        return False
    return any(path.is_relative_to(r) for r in source_roots)


def event_from_changes(
    raw_changes: Iterable[tuple[Any, str]],
    *,
    source_roots: list[Path],
    generated_dir: str = "__generated__",
) -> WatchEvent | None:
    """Split a raw ``(change, path)`` batch; None when no document is involved."""

    changed: set[Path] = set()
    deleted: set[Path] = set()
    for change, raw_path in raw_changes:
        path = Path(raw_path)
        if not is_source_file(path, source_roots=source_roots, generated_dir=generated_dir):
            continue
        if int(change) == _DELETED:
            deleted.add(path)
            changed.discard(path)
        else:
            changed.add(path)
            deleted.discard(path)
    if not changed and not deleted:
        return None
    return WatchEvent(changed=frozenset(changed), deleted=frozenset(deleted))


async def run_watch_loop(
    *,
    changes_iter: AsyncIterator[set[tuple[Any, str]]],
    run_cycle: Callable[[WatchEvent], Awaitable[WatchCycleResult]],
    on_event: Callable[[str], None],
    on_cycle_result: Callable[[WatchCycleResult], None],
    on_error: Callable[[BaseException], None],
    source_roots: list[Path],
    generated_dir: str = "__generated__",
) -> None:
    """Consume ``changes_iter`` and run one rebuild cycle per relevant batch."""
    async for raw_changes in changes_iter:
        event = event_from_changes(
            raw_changes, source_roots=source_roots, generated_dir=generated_dir
        )
        if event is None:
            continue

        names = ", ".join(str(p) for p in sorted(event.paths))
        on_event(f"[watch] change detected: {names}")

        try:
            result = await run_cycle(event)
        except Exception as exc:
            on_error(exc)
            continue

        report = result.report
        on_event(
            f"[watch] {len(report.generated)} compiled, {len(result.removed)} removed, "
            f"{len(report.failed)} failed ({result.duration_s:.1f}s)"
        )
        on_cycle_result(result)


def make_cycle_runner(
    *,
    project_root: Path,
    source_roots: list[str],
    generated_dir: str,
    options: CompileOptions,
    jobs: int,
) -> Callable[[WatchEvent], Awaitable[WatchCycleResult]]:
    """Rebuild only the documents named by an event."""

    async def runner(event: WatchEvent) -> WatchCycleResult:
        t0 = time.monotonic()
        removed: list[Path] = []
        for path in sorted(event.deleted):
            out = builder.remove_generated_module(
                path,
                project_root=project_root,
                source_roots=source_roots,
                generated_dir=generated_dir,
            )
            if out is not None:
                removed.append(out)

        sources = builder.discover_sources(
            project_root=project_root, source_roots=source_roots, generated_dir=generated_dir
        )
        changed = {p.resolve() for p in event.changed}
        stale = {sf.key for sf in sources if sf.path in changed}
        wanted = [sf for sf in sources if sf.key in stale]
        report = await builder.run_build(sources=wanted, stale=stale, options=options, jobs=jobs)
        return WatchCycleResult(
            report=report, removed=tuple(removed), duration_s=time.monotonic() - t0
        )

    return runner


def make_watchfiles_iter(
    watch_paths: list[Path],
) -> AsyncIterator[set[tuple[Any, str]]]:
    """Create an async iterator using watchfiles.awatch()."""
    import watchfiles

    return watchfiles.awatch(*watch_paths, debounce=200)

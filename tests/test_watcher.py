"""Tests for mdxc.watcher module."""

from __future__ import annotations

import asyncio
import sys
import types
from collections.abc import AsyncIterator
from pathlib import Path
from typing import Any

import pytest

from mdxc.builder import BuildReport, build_options, discover_sources, run_build
from mdxc.watcher import (
    WatchCycleResult,
    WatchEvent,
    check_watchfiles_available,
    event_from_changes,
    make_cycle_runner,
    run_watch_loop,
)

ADDED, MODIFIED, DELETED = 1, 2, 3

# ---------------------------------------------------------------------------
# Optional dependency check
# ---------------------------------------------------------------------------


def test_check_watchfiles_available_raises_when_missing(monkeypatch) -> None:
    """Should raise ImportError with a helpful install message."""
    monkeypatch.setitem(sys.modules, "watchfiles", None)

    with pytest.raises(ImportError, match="pip install mdxc\\[watch\\]"):
        check_watchfiles_available()


def test_check_watchfiles_available_succeeds_when_installed(monkeypatch) -> None:
    fake = types.ModuleType("watchfiles")
    monkeypatch.setitem(sys.modules, "watchfiles", fake)

    check_watchfiles_available()  # no exception


# ---------------------------------------------------------------------------
# Event filtering
# ---------------------------------------------------------------------------


def test_event_keeps_mdx_under_roots() -> None:
    event = event_from_changes(
        {
            (MODIFIED, "/project/docs/a.mdx"),
            (ADDED, "/project/docs/a.md"),
            (ADDED, "/other/b.mdx"),
            (MODIFIED, "/project/docs/__generated__/a.mdx"),
            (ADDED, "/project/blog/post.mdx"),
        },
        source_roots=[Path("/project/docs"), Path("/project/blog")],
    )
    assert event is not None
    assert event.changed == {Path("/project/docs/a.mdx"), Path("/project/blog/post.mdx")}
    assert event.deleted == frozenset()


def test_event_respects_custom_generated_dir() -> None:
    event = event_from_changes(
        {(ADDED, "/project/docs/__gen__/page.mdx")},
        source_roots=[Path("/project/docs")],
        generated_dir="__gen__",
    )
    assert event is None


def test_event_separates_deletions() -> None:
    event = event_from_changes(
        {(DELETED, "/docs/old.mdx"), (ADDED, "/docs/new.mdx")},
        source_roots=[Path("/docs")],
    )
    assert event is not None
    assert event.changed == {Path("/docs/new.mdx")}
    assert event.deleted == {Path("/docs/old.mdx")}
    assert event.paths == {Path("/docs/new.mdx"), Path("/docs/old.mdx")}


def test_event_is_none_without_documents() -> None:
    assert event_from_changes({(ADDED, "/docs/x.py")}, source_roots=[Path("/docs")]) is None


# ---------------------------------------------------------------------------
# Watch loop orchestration
# ---------------------------------------------------------------------------


async def _fake_changes(
    batches: list[set[tuple[Any, str]]],
) -> AsyncIterator[set[tuple[Any, str]]]:
    for batch in batches:
        yield batch


def _result(event: WatchEvent, failed: dict[str, list[str]] | None = None) -> WatchCycleResult:
    report = BuildReport(
        generated={p.name for p in event.changed}, skipped=set(), failed=failed or {}
    )
    return WatchCycleResult(report=report, removed=(), duration_s=0.5)


def _run(batches: list[set[tuple[Any, str]]], run_cycle, **callbacks: Any) -> None:
    async def run() -> None:
        await run_watch_loop(
            changes_iter=_fake_changes(batches),
            run_cycle=run_cycle,
            on_event=callbacks.get("on_event", lambda msg: None),
            on_cycle_result=callbacks.get("on_cycle_result", lambda r: None),
            on_error=callbacks.get("on_error", lambda e: None),
            source_roots=[Path("/docs")],
        )

    asyncio.run(run())


def test_watch_loop_runs_a_cycle_per_relevant_batch() -> None:
    cycles: list[WatchEvent] = []

    async def fake_run_cycle(event: WatchEvent) -> WatchCycleResult:
        cycles.append(event)
        return _result(event)

    _run(
        [
            {(ADDED, "/docs/guide/page.mdx")},
            {(ADDED, "/other/readme.md")},
            {(MODIFIED, "/docs/__generated__/page.py")},
        ],
        fake_run_cycle,
    )
    assert len(cycles) == 1
    assert cycles[0].changed == {Path("/docs/guide/page.mdx")}


def test_watch_loop_emits_progress_messages() -> None:
    messages: list[str] = []

    async def fake_run_cycle(event: WatchEvent) -> WatchCycleResult:
        return _result(event)

    _run([{(ADDED, "/docs/page.mdx")}], fake_run_cycle, on_event=messages.append)
    assert messages == [
        "[watch] change detected: /docs/page.mdx",
        "[watch] 1 compiled, 0 removed, 0 failed (0.5s)",
    ]


def test_watch_loop_continues_after_build_failure() -> None:
    results: list[WatchCycleResult] = []

    async def failing(event: WatchEvent) -> WatchCycleResult:
        return _result(event, failed={"docs/a.mdx": ["docs/a.mdx:1:1: boom"]})

    _run(
        [{(ADDED, "/docs/a.mdx")}, {(ADDED, "/docs/b.mdx")}],
        failing,
        on_cycle_result=results.append,
    )
    assert [r.ok for r in results] == [False, False]


def test_watch_loop_handles_exception_in_run_cycle() -> None:
    errors: list[BaseException] = []
    call_count = 0

    async def exploding_run_cycle(event: WatchEvent) -> WatchCycleResult:
        nonlocal call_count
        call_count += 1
        if call_count == 1:
            raise RuntimeError("boom")
        return _result(event)

    _run(
        [{(ADDED, "/docs/a.mdx")}, {(ADDED, "/docs/b.mdx")}],
        exploding_run_cycle,
        on_error=errors.append,
    )
    assert [str(e) for e in errors] == ["boom"]
    assert call_count == 2


# ---------------------------------------------------------------------------
# Cycle runner
# ---------------------------------------------------------------------------


def _write(path: Path, text: str) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(text, encoding="utf-8")


def test_cycle_runner_rebuilds_changed_and_removes_deleted(tmp_path: Path) -> None:
    docs = tmp_path / "docs"
    _write(docs / "a.mdx", "# a\n")
    _write(docs / "b.mdx", "# b\n")
    _write(docs / "gone.mdx", "# gone\n")
    options = build_options(jsx_import_source="site.runtime")
    sources = discover_sources(
        project_root=tmp_path, source_roots=["docs"], generated_dir="__generated__"
    )
    asyncio.run(run_build(sources=sources, stale={sf.key for sf in sources}, options=options))

    gen = docs / "__generated__"
    b_before = (gen / "b.py").read_text(encoding="utf-8")
    (docs / "gone.mdx").unlink()
    _write(docs / "a.mdx", "# a, edited\n")

    runner = make_cycle_runner(
        project_root=tmp_path,
        source_roots=["docs"],
        generated_dir="__generated__",
        options=options,
        jobs=2,
    )
    event = WatchEvent(
        changed=frozenset({docs / "a.mdx"}), deleted=frozenset({docs / "gone.mdx"})
    )
    result = asyncio.run(runner(event))

    assert result.ok
    assert result.report.generated == {"docs/a.mdx"}
    assert result.removed == ((gen / "gone.py").resolve(),)
    assert not (gen / "gone.py").exists()
    assert "a, edited" in (gen / "a.py").read_text(encoding="utf-8")
    assert (gen / "b.py").read_text(encoding="utf-8") == b_before


def test_cycle_runner_reports_compile_errors(tmp_path: Path) -> None:
    docs = tmp_path / "docs"
    _write(docs / "bad.mdx", "<Note>\n")
    runner = make_cycle_runner(
        project_root=tmp_path,
        source_roots=["docs"],
        generated_dir="__generated__",
        options=build_options(jsx_import_source="site.runtime"),
        jobs=1,
    )
    result = asyncio.run(runner(WatchEvent(changed=frozenset({docs / "bad.mdx"}))))

    assert not result.ok
    assert list(result.report.failed) == ["docs/bad.mdx"]
    assert result.removed == ()

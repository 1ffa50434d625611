from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from pathlib import Path
from typing import TYPE_CHECKING

from mdxc import __version__
from mdxc.diagnostics import format_build_failures, format_error_with_hint
from mdxc.errors import MdxConfigError, MdxSyntaxError

if TYPE_CHECKING:  # pragma: no cover
    from mdxc.config import MdxcConfig


EXIT_OK = 0
EXIT_CONFIG = 2
EXIT_COMPILE_ERROR = 3

logger = logging.getLogger("mdxc.cli")


def _add_project_flags(p: argparse.ArgumentParser) -> None:
    p.add_argument(
        "--root",
        type=str,
        default=None,
        help="Project root (defaults to searching upward from cwd for mdxc.toml).",
    )
    p.add_argument(
        "--config",
        type=str,
        default=None,
        help="Path to mdxc.toml (defaults to <root>/mdxc.toml).",
    )
    p.add_argument("--jobs", type=int, default=None, help="Concurrency override.")


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="mdxc")
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument(
        "-v", "--verbose", action="store_true", help="Log debug output to stderr."
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    compile_p = subparsers.add_parser("compile", help="Compile one document.")
    compile_p.add_argument("file", type=str, help="Document to compile.")
    compile_p.add_argument(
        "-o", "--output", type=str, default=None, help="Write here instead of stdout."
    )
    compile_p.add_argument(
        "--output-format",
        choices=["function-body", "program"],
        default="function-body",
    )
    compile_p.add_argument("--jsx-import-source", type=str, default=None)
    compile_p.add_argument("--provider-import-source", type=str, default=None)
    compile_p.add_argument("--development", action="store_true")
    compile_p.add_argument("--gfm", action="store_true", help="Enable tables and strikethrough.")

    build_p = subparsers.add_parser("build", help="Compile every document of the project.")
    _add_project_flags(build_p)
    build_p.add_argument("--force", action="store_true", help="Force regeneration.")

    watch_p = subparsers.add_parser("watch", help="Rebuild when documents change.")
    _add_project_flags(watch_p)
    watch_p.set_defaults(force=False)

    return parser


def parse_args(argv: list[str]) -> argparse.Namespace:
    return _build_parser().parse_args(argv)


def _eprint(msg: str) -> None:
    print(msg, file=sys.stderr)


def _print_error(e: BaseException) -> None:
    _eprint(format_error_with_hint(e))


def _load_config(args: argparse.Namespace) -> tuple[Path, MdxcConfig]:
    from mdxc.config import find_project_root, load_config

    config_path = Path(args.config).resolve() if args.config else None
    if args.root:
        root = Path(args.root).resolve()
    elif config_path is not None:
        root = config_path.parent
    else:
        root = find_project_root(Path.cwd())
    return root, load_config(root=root, config_path=config_path)


def cmd_compile(args: argparse.Namespace) -> int:
    from mdxc.compiler import compile as compile_document

    try:
        text = Path(args.file).read_text(encoding="utf-8")
    except OSError as e:
        _print_error(e)
        return EXIT_CONFIG

    try:
        doc = compile_document(
            text,
            output_format=args.output_format,
            jsx_import_source=args.jsx_import_source,
            provider_import_source=args.provider_import_source,
            development=bool(args.development),
            gfm=bool(args.gfm),
            file_name=args.file,
        )
    except MdxConfigError as e:
        _print_error(e)
        return EXIT_CONFIG
    except MdxSyntaxError as e:
        _print_error(e)
        return EXIT_COMPILE_ERROR

    if args.output:
        out = Path(args.output)
        out.parent.mkdir(parents=True, exist_ok=True)
        out.write_text(doc.code, encoding="utf-8")
    else:
        sys.stdout.write(doc.code)
    return EXIT_OK


def cmd_build(args: argparse.Namespace) -> int:
    try:
        root, cfg = _load_config(args)

        from mdxc import builder

        options = builder.build_options(
            jsx_import_source=cfg.compile.jsx_import_source,
            provider_import_source=cfg.compile.provider_import_source,
            development=cfg.compile.development,
            gfm=cfg.compile.gfm,
        )
        sources = builder.discover_sources(
            project_root=root,
            source_roots=cfg.paths.source_roots,
            generated_dir=cfg.paths.generated_dir,
        )
        logger.debug("discovered %d document(s)", len(sources))
        if not sources:
            return EXIT_OK

        stale = builder.detect_stale_sources(sources, options, force=bool(args.force))
        jobs = int(args.jobs) if args.jobs is not None else int(cfg.build.jobs)
        report = asyncio.run(
            builder.run_build(sources=sources, stale=stale, options=options, jobs=jobs)
        )
        if report.failed:
            _eprint(format_build_failures(report.failed).rstrip())
            return EXIT_COMPILE_ERROR
        return EXIT_OK
    except MdxConfigError as e:
        _print_error(e)
        return EXIT_CONFIG


def cmd_watch(args: argparse.Namespace) -> int:
    from mdxc import builder, watcher

    try:
        watcher.check_watchfiles_available()
        root, cfg = _load_config(args)
        options = builder.build_options(
            jsx_import_source=cfg.compile.jsx_import_source,
            provider_import_source=cfg.compile.provider_import_source,
            development=cfg.compile.development,
            gfm=cfg.compile.gfm,
        )
    except (ImportError, MdxConfigError) as e:
        _print_error(e)
        return EXIT_CONFIG

    source_roots = [(root / sr).resolve() for sr in cfg.paths.source_roots]
    watch_paths = [p for p in source_roots if p.exists()]
    if not watch_paths:
        _eprint("error: none of the configured source roots exist")
        return EXIT_CONFIG

    # Full (incremental) build first; later cycles only touch what changed.
    rc = cmd_build(args)
    if rc == EXIT_CONFIG:
        return rc

    def on_cycle_result(result: watcher.WatchCycleResult) -> None:
        if not result.ok:
            _eprint(format_build_failures(result.report.failed).rstrip())

    run_cycle = watcher.make_cycle_runner(
        project_root=root,
        source_roots=cfg.paths.source_roots,
        generated_dir=cfg.paths.generated_dir,
        options=options,
        jobs=int(args.jobs) if args.jobs is not None else int(cfg.build.jobs),
    )
    try:
        asyncio.run(
            watcher.run_watch_loop(
                changes_iter=watcher.make_watchfiles_iter(watch_paths),
                run_cycle=run_cycle,
                on_event=_eprint,
                on_cycle_result=on_cycle_result,
                on_error=_print_error,
                source_roots=source_roots,
                generated_dir=cfg.paths.generated_dir,
            )
        )
    except KeyboardInterrupt:
        pass
    return EXIT_OK


def main(argv: list[str] | None = None) -> int:
    try:
        args = parse_args(list(sys.argv[1:] if argv is None else argv))
    except SystemExit as e:
        # argparse uses SystemExit for --help/--version and parse errors.
        code = e.code
        return int(code) if isinstance(code, int) else EXIT_CONFIG

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )

    if args.command == "compile":
        return cmd_compile(args)
    if args.command == "build":
        return cmd_build(args)
    if args.command == "watch":
        return cmd_watch(args)

    return EXIT_CONFIG


if __name__ == "__main__":
    raise SystemExit(main(sys.argv[1:]))

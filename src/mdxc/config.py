"""Reading `mdxc.toml`: the `[paths]`, `[compile]` and `[build]` tables.

Unknown keys are ignored; known keys are type checked and a few values
(source roots, module paths, job count) are validated.
"""

from __future__ import annotations

import keyword
import tomllib
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from mdxc.errors import MdxConfigError

CONFIG_FILE = "mdxc.toml"


@dataclass(frozen=True)
class PathsConfig:
    source_roots: list[str]
    generated_dir: str


@dataclass(frozen=True)
class CompileConfig:
    jsx_import_source: str | None
    provider_import_source: str | None
    development: bool
    gfm: bool


@dataclass(frozen=True)
class BuildConfig:
    jobs: int


@dataclass(frozen=True)
class MdxcConfig:
    version: int
    paths: PathsConfig
    compile: CompileConfig
    build: BuildConfig


def find_project_root(start: Path) -> Path:
    """Walk upward from `start` (file or directory) looking for `mdxc.toml`."""

    cur = start
    try:
        if cur.is_file():
            cur = cur.parent
    except OSError:
        cur = cur.parent

    cur = cur.resolve()
    while True:
        if (cur / CONFIG_FILE).is_file():
            return cur
        if cur.parent == cur:
            break
        cur = cur.parent

    raise MdxConfigError("Could not find mdxc.toml by walking upward from start path.")


def _as_table(value: Any, *, name: str) -> dict[str, Any]:
    if value is None:
        return {}
    if not isinstance(value, dict):
        raise MdxConfigError(f"Expected [{name}] to be a table.")
    return value


def _as_str_list(value: Any, *, name: str) -> list[str]:
    if not isinstance(value, list) or any(not isinstance(x, str) for x in value):
        raise MdxConfigError(f"Expected {name} to be a list of strings.")
    return list(value)


def _as_bool(value: Any, *, name: str) -> bool:
    if not isinstance(value, bool):
        raise MdxConfigError(f"Expected {name} to be a boolean.")
    return value


def _as_int(value: Any, *, name: str) -> int:
    if not isinstance(value, int) or isinstance(value, bool):
        raise MdxConfigError(f"Expected {name} to be an integer.")
    return value


def _as_str(value: Any, *, name: str) -> str:
    if not isinstance(value, str):
        raise MdxConfigError(f"Expected {name} to be a string.")
    return value


def _read(tbl: dict[str, Any], key: str, default: Any, check: Any, *, section: str) -> Any:
    if key not in tbl:
        return default
    return check(tbl[key], name=f"{section}.{key}")


def _is_module_path(value: str) -> bool:
    return bool(value) and all(
        part.isidentifier() and not keyword.iskeyword(part) for part in value.split(".")
    )


def _parse_toml(config_path: Path) -> dict[str, Any]:
    try:
        raw = config_path.read_bytes()
    except FileNotFoundError as e:
        raise MdxConfigError(f"Missing mdxc.toml at: {config_path}") from e
    except OSError as e:
        raise MdxConfigError(f"Failed reading config file: {config_path}") from e

    try:
        return tomllib.loads(raw.decode("utf-8"))
    except UnicodeDecodeError as e:
        raise MdxConfigError(f"Config is not valid UTF-8: {config_path}") from e
    except tomllib.TOMLDecodeError as e:
        raise MdxConfigError(f"Invalid TOML in {config_path}: {e}") from e


def _validate(cfg: MdxcConfig, root: Path) -> None:
    if not any((root / sr).exists() for sr in cfg.paths.source_roots):
        raise MdxConfigError(
            "Invalid config: none of paths.source_roots exist on disk relative to the project root."
        )

    gen = cfg.paths.generated_dir
    if not gen.isidentifier() or keyword.iskeyword(gen):
        raise MdxConfigError(
            "Invalid config: paths.generated_dir must be a valid Python identifier."
        )

    for name, value in (
        ("compile.jsx_import_source", cfg.compile.jsx_import_source),
        ("compile.provider_import_source", cfg.compile.provider_import_source),
    ):
        if value is not None and not _is_module_path(value):
            raise MdxConfigError(f"Invalid config: {name} must be a dotted module path.")

    if cfg.build.jobs < 1:
        raise MdxConfigError("Invalid config: build.jobs must be >= 1.")


def load_config(*, root: Path | None = None, config_path: Path | None = None) -> MdxcConfig:
    """Load and validate `mdxc.toml`.

    With neither argument the project root is found by walking upward from
    the current working directory; with only `config_path` the root is the
    file's directory.
    """

    if config_path is None:
        if root is None:
            root = find_project_root(Path.cwd())
        config_path = root / CONFIG_FILE
    elif root is None:
        root = config_path.parent

    data = _parse_toml(config_path)

    if "version" not in data:
        raise MdxConfigError("Missing required `version = 1` in mdxc.toml.")
    version = _as_int(data["version"], name="version")
    if version != 1:
        raise MdxConfigError(f"Unsupported config version: {version} (expected 1).")

    p = _as_table(data.get("paths"), name="paths")
    c = _as_table(data.get("compile"), name="compile")
    b = _as_table(data.get("build"), name="build")

    cfg = MdxcConfig(
        version=version,
        paths=PathsConfig(
            source_roots=_read(p, "source_roots", ["src", "."], _as_str_list, section="paths"),
            generated_dir=_read(p, "generated_dir", "__generated__", _as_str, section="paths"),
        ),
        compile=CompileConfig(
            jsx_import_source=_read(
                c, "jsx_import_source", None, _as_str, section="compile"
            ),
            provider_import_source=_read(
                c, "provider_import_source", None, _as_str, section="compile"
            ),
            development=_read(c, "development", False, _as_bool, section="compile"),
            gfm=_read(c, "gfm", False, _as_bool, section="compile"),
        ),
        build=BuildConfig(jobs=_read(b, "jobs", 8, _as_int, section="build")),
    )
    _validate(cfg, root)
    return cfg

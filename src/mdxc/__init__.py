"""Compile Markdown documents with embedded Python expressions and tags into
renderer-agnostic component functions.
"""

from __future__ import annotations

from importlib.metadata import PackageNotFoundError, version

from mdxc.compiler import CompiledDocument, CompileOptions, compile
from mdxc.components import ComponentRegistry, extend
from mdxc.errors import (
    MdxConfigError,
    MdxError,
    MdxEvaluationError,
    MdxResolutionError,
    MdxSyntaxError,
)
from mdxc.evaluate import MDXModule, RuntimePrimitives, compile_and_evaluate, evaluate
from mdxc.provider import Provider, ProviderScope, create_provider


def _package_version() -> str:
    try:
        return version("mdxc")
    except PackageNotFoundError:
        # Running from a source checkout, or otherwise not installed.
        return "0.0.0"


__version__ = _package_version()

__all__ = [
    "ComponentRegistry",
    "CompileOptions",
    "CompiledDocument",
    "MDXModule",
    "MdxConfigError",
    "MdxError",
    "MdxEvaluationError",
    "MdxResolutionError",
    "MdxSyntaxError",
    "Provider",
    "ProviderScope",
    "RuntimePrimitives",
    "__version__",
    "compile",
    "compile_and_evaluate",
    "create_provider",
    "evaluate",
    "extend",
]

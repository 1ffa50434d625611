"""Turn function-body output into a live component module.

The compiled body never reaches for globals: everything it needs arrives in
the ``_arguments`` mapping, so one compiled document works with any host
that supplies ``jsx``/``Fragment`` (and ``use_mdx_components`` when compiled
with a provider).
"""

from __future__ import annotations

import ast
import builtins
import logging
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from typing import Any

from mdxc import compiler
from mdxc.components import ComponentRegistry
from mdxc.errors import MdxEvaluationError

logger = logging.getLogger("mdxc.evaluate")

_WRAPPER_SOURCE = "def _mdx_module(_arguments):\n    pass\n"


@dataclass(frozen=True, slots=True)
class RuntimePrimitives:
    jsx: Callable[..., Any]
    Fragment: Any
    use_mdx_components: Callable[..., ComponentRegistry] | None = None
    jsx_dev: Callable[..., Any] | None = None

    def as_mapping(self) -> dict[str, Any]:
        out: dict[str, Any] = {"jsx": self.jsx, "Fragment": self.Fragment}
        if self.use_mdx_components is not None:
            out["use_mdx_components"] = self.use_mdx_components
        if self.jsx_dev is not None:
            out["jsx_dev"] = self.jsx_dev
        return out


@dataclass(frozen=True, slots=True)
class MDXModule:
    default: Callable[..., Any]
    exports: dict[str, Any] = field(default_factory=dict)

    def __getitem__(self, name: str) -> Any:
        if name == "default":
            return self.default
        return self.exports[name]


def _bundle(primitives: RuntimePrimitives | Mapping[str, Any]) -> dict[str, Any]:
    if isinstance(primitives, RuntimePrimitives):
        bundle = primitives.as_mapping()
    elif isinstance(primitives, Mapping):
        bundle = {k: v for k, v in primitives.items() if v is not None}
    else:
        raise MdxEvaluationError(
            f"Expected RuntimePrimitives or a mapping of primitives (got {type(primitives)!r})."
        )
    bundle.setdefault("ComponentRegistry", ComponentRegistry)
    return bundle


def evaluate(
    ir: compiler.CompiledDocument | str,
    primitives: RuntimePrimitives | Mapping[str, Any],
) -> MDXModule:
    """Run compiled function-body code against a primitives bundle."""

    if isinstance(ir, compiler.CompiledDocument):
        doc = ir
    else:
        doc = compiler.CompiledDocument.from_code(ir)
    if doc.output_format != "function-body":
        raise MdxEvaluationError(
            f"Cannot evaluate output_format={doc.output_format!r}: "
            "compile with output_format='function-body'."
        )

    bundle = _bundle(primitives)
    missing = [name for name in doc.primitives if name not in bundle]
    if missing:
        raise MdxEvaluationError(f"Missing runtime primitive(s): {', '.join(missing)}")

    try:
        body = ast.parse(doc.code, filename="<mdx>")
    except SyntaxError as e:
        raise MdxEvaluationError(f"Compiled code is not valid Python: {e}") from e

    wrapper = ast.parse(_WRAPPER_SOURCE)
    func = wrapper.body[0]
    assert isinstance(func, ast.FunctionDef)
    func.body = body.body or [ast.Pass()]
    ast.fix_missing_locations(wrapper)

    namespace: dict[str, Any] = {"__builtins__": builtins, "__name__": "mdxc.evaluated"}
    try:
        code = builtins.compile(wrapper, "<mdx>", "exec")
    except SyntaxError as e:
        raise MdxEvaluationError(f"Compiled code is not valid Python: {e}") from e
    exec(code, namespace)  # noqa: S102

    try:
        result = namespace["_mdx_module"](bundle)
    except Exception as e:
        raise MdxEvaluationError(f"Evaluating compiled code failed: {e!r}") from e

    if not isinstance(result, dict) or not callable(result.get("default")):
        raise MdxEvaluationError("Compiled code did not return a component as `default`.")

    exports = {k: v for k, v in result.items() if k != "default"}
    logger.debug("evaluated module exports=%s", sorted(exports))
    return MDXModule(default=result["default"], exports=exports)


def compile_and_evaluate(
    source: str,
    primitives: RuntimePrimitives | Mapping[str, Any],
    **options: Any,
) -> MDXModule:
    """Compile ``source`` as a function body and evaluate it in one step."""

    bundle = _bundle(primitives)
    options["output_format"] = "function-body"
    if "use_mdx_components" in bundle:
        options.setdefault("provider_import_source", "#")
    return evaluate(compiler.compile(source, **options), bundle)

"""Document → executable Python source.

``compile`` runs the passes in order: the scanner pulls embedded code out of
the Markdown, the tree builder turns the Markdown into IR nodes, the code
generator emits element calls and the result is assembled into one of the
two output shapes:

- ``"function-body"``: the body of a function whose only parameter is the
  ``_arguments`` primitives mapping, ending in ``return {...}`` (see
  ``mdxc.evaluate``);
- ``"program"``: an importable module that imports the primitives.
"""

from __future__ import annotations

import ast
import dataclasses
import importlib.metadata
import io
import logging
import tokenize
from collections.abc import Sequence
from dataclasses import dataclass
from typing import Any, Literal

from mdxc import codegen
from mdxc.errors import MdxConfigError, MdxEvaluationError
from mdxc.header import format_header, header_list, split_header
from mdxc.markdown import TreeBuilder
from mdxc.scanner import CodeBlock, Scanner
from mdxc.source import SourceText

logger = logging.getLogger("mdxc.compiler")

OutputFormat = Literal["function-body", "program"]
OUTPUT_FORMATS: tuple[str, ...] = ("function-body", "program")

_EXPORT = "export "
_EXPORT_DEFAULT = "export default "
LAYOUT_NAME = "MDXLayout"


def tool_version() -> str:
    try:
        return importlib.metadata.version("mdxc")
    except importlib.metadata.PackageNotFoundError:
        return "0"


@dataclass(frozen=True, slots=True)
class CompileOptions:
    output_format: OutputFormat = "function-body"
    # Function-body: any non-empty value turns the provider lookup on.
    # Program: the module ``use_mdx_components`` is imported from.
    provider_import_source: str | None = None
    jsx_import_source: str | None = None
    development: bool = False
    gfm: bool = False
    file_name: str | None = None

    def validate(self) -> None:
        if self.output_format not in OUTPUT_FORMATS:
            raise MdxConfigError(
                f"Unknown output_format {self.output_format!r} "
                f"(expected one of: {', '.join(OUTPUT_FORMATS)})."
            )
        if self.output_format == "program" and not self.jsx_import_source:
            raise MdxConfigError("output_format='program' requires jsx_import_source.")

    def primitives(self) -> tuple[str, ...]:
        names = ["Fragment", "jsx_dev" if self.development else "jsx"]
        if self.provider_import_source:
            names.append("use_mdx_components")
        return tuple(names)


@dataclass(frozen=True, slots=True)
class CompiledDocument:
    """Compiled code plus the facts its header declares."""

    code: str
    output_format: str
    primitives: tuple[str, ...]
    exports: tuple[str, ...]

    def __str__(self) -> str:
        return self.code

    @classmethod
    def from_code(cls, code: str) -> CompiledDocument:
        fields, _ = split_header(code)
        if fields is None or "output_format" not in fields:
            raise MdxEvaluationError("Compiled code is missing the mdxc header.")
        try:
            primitives = header_list(fields, "primitives")
            exports = header_list(fields, "exports")
        except ValueError as e:
            raise MdxEvaluationError(f"Malformed mdxc header: {e}") from e
        return cls(
            code=code,
            output_format=fields["output_format"],
            primitives=tuple(primitives),
            exports=tuple(exports),
        )


@dataclass(slots=True)
class _ModuleCode:
    code: str
    exports: list[str]
    bound: set[str]
    has_layout: bool


def compile(  # noqa: A001
    source: str, options: CompileOptions | None = None, **overrides: Any
) -> CompiledDocument:
    """Compile a document; raises ``MdxSyntaxError`` on invalid input."""

    opts = options or CompileOptions()
    if overrides:
        try:
            opts = dataclasses.replace(opts, **overrides)
        except TypeError as e:
            raise MdxConfigError(f"Unknown compile option: {e}") from e
    opts.validate()

    text = SourceText(source, file_name=opts.file_name)
    scan = Scanner(text).scan()
    nodes = TreeBuilder(text, scan, gfm=opts.gfm).build()

    gen = codegen.CodeGenerator(text, development=opts.development, file_name=opts.file_name)
    module = _module_code(text, scan.code_blocks, gen)
    gen.local_names = module.bound
    content = gen.children(nodes)

    parts = codegen.ModuleParts(
        esm=module.code,
        content=content,
        references=list(gen.references),
        exports=module.exports,
        has_layout=module.has_layout,
    )
    if opts.output_format == "program":
        assert opts.jsx_import_source is not None
        body = codegen.program(
            parts,
            gen,
            jsx_import_source=opts.jsx_import_source,
            provider_import_source=opts.provider_import_source,
        )
    else:
        body = codegen.function_body(parts, gen, provider=bool(opts.provider_import_source))

    primitives = opts.primitives()
    header = format_header(
        tool_version=tool_version(),
        output_format=opts.output_format,
        primitives=primitives,
        exports=module.exports,
    )
    logger.debug(
        "compiled %s: format=%s references=%s exports=%s",
        opts.file_name or "<string>",
        opts.output_format,
        parts.references,
        module.exports,
    )
    return CompiledDocument(
        code=header + body,
        output_format=opts.output_format,
        primitives=primitives,
        exports=tuple(module.exports),
    )


def _module_code(
    source: SourceText, blocks: Sequence[CodeBlock], gen: codegen.CodeGenerator
) -> _ModuleCode:
    chunks: list[str] = []
    exports: list[str] = []
    bound: set[str] = set()
    layout: tuple[int, int] | None = None

    for block in blocks:
        code = gen.inline(block.code, content=False)
        lines = code.split("\n")
        exported: set[int] = set()
        defaults: set[int] = set()
        for lineno in _export_lines(code):
            idx = lineno - 1
            line = lines[idx]
            if line.startswith(_EXPORT_DEFAULT):
                lines[idx] = f"{LAYOUT_NAME} = {line[len(_EXPORT_DEFAULT):]}"
                defaults.add(idx + 1)
            elif line.startswith(_EXPORT):
                lines[idx] = line[len(_EXPORT) :]
                exported.add(idx + 1)
        code = "\n".join(lines)

        try:
            tree = ast.parse(code)
        except SyntaxError as exc:
            raise codegen.python_syntax_error(
                source, exc, block.code.position, plain=block.code.is_plain()
            ) from exc

        first_line = block.code.position[0]
        for stmt in tree.body:
            position = (first_line + stmt.lineno - 1, stmt.col_offset + 1)
            if stmt.lineno in defaults:
                if layout is not None:
                    raise source.error(
                        "Cannot specify multiple layouts "
                        f"(previous: {layout[0]}:{layout[1]})",
                        position=position,
                    )
                layout = position
                continue

            names = _bound_names(source, stmt, position)
            if stmt.lineno in exported:
                if not names:
                    raise source.error(
                        "Unexpected `export` of a statement that binds no name",
                        position=position,
                    )
                exports.extend(n for n in names if n not in exports)
            elif not isinstance(stmt, (ast.Import, ast.ImportFrom)):
                raise source.error(
                    f"Unexpected `{type(stmt).__name__}` in code: only import and export "
                    "statements are supported",
                    position=position,
                )
            bound.update(names)
        chunks.append(code.rstrip("\n"))

    return _ModuleCode(
        code="\n\n".join(chunks),
        exports=exports,
        bound=bound,
        has_layout=layout is not None,
    )


def _export_lines(code: str) -> list[int]:
    """Line numbers of top-level statements that start with `export`.

    Lines inside strings or brackets are continuations, not statements.
    """

    found: list[int] = []
    at_start = True
    try:
        for tok in tokenize.generate_tokens(io.StringIO(code).readline):
            if tok.type in (tokenize.NL, tokenize.COMMENT, tokenize.INDENT, tokenize.DEDENT):
                continue
            if tok.type == tokenize.NEWLINE:
                at_start = True
                continue
            if at_start and tok.type == tokenize.NAME and tok.string == "export":
                if tok.start[1] == 0:
                    found.append(tok.start[0])
            at_start = False
    except (tokenize.TokenError, SyntaxError):
        # Left for ast.parse to report with a position.
        pass
    return found


def _bound_names(source: SourceText, stmt: ast.stmt, position: tuple[int, int]) -> list[str]:
    if isinstance(stmt, (ast.FunctionDef, ast.AsyncFunctionDef, ast.ClassDef)):
        return [stmt.name]
    if isinstance(stmt, ast.Assign):
        names: list[str] = []
        for target in stmt.targets:
            names.extend(_target_names(target))
        return names
    if isinstance(stmt, (ast.AnnAssign, ast.AugAssign)):
        return _target_names(stmt.target)
    if isinstance(stmt, ast.Import):
        return [alias.asname or alias.name.split(".", 1)[0] for alias in stmt.names]
    if isinstance(stmt, ast.ImportFrom):
        out: list[str] = []
        for alias in stmt.names:
            if alias.name == "*":
                raise source.error(
                    "Unexpected `import *` in code: import the names you use explicitly",
                    position=position,
                )
            out.append(alias.asname or alias.name)
        return out
    return []


def _target_names(target: ast.expr) -> list[str]:
    if isinstance(target, ast.Name):
        return [target.id]
    if isinstance(target, (ast.Tuple, ast.List)):
        out: list[str] = []
        for elt in target.elts:
            out.extend(_target_names(elt))
        return out
    if isinstance(target, ast.Starred):
        return _target_names(target.value)
    return []

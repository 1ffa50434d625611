"""Emit Python source for a document tree.

Every element becomes a call to the host's ``jsx`` primitive (``jsx_dev`` in
development mode). Elements from Markdown and capitalized tags that are not
bound in the document are looked up in ``_c``, the mapping the compiled
function resolves from the component registry when it renders.
"""

from __future__ import annotations

import ast
from collections.abc import Sequence
from dataclasses import dataclass, field

from mdxc.errors import MdxSyntaxError
from mdxc.ir import Code, Element, Expression, Node, Spread, Text, is_intrinsic
from mdxc.source import SourceText

COMPONENT_REGISTRY_MODULE = "mdxc.components"


def python_syntax_error(
    source: SourceText,
    exc: SyntaxError,
    position: tuple[int, int],
    *,
    col_shift: int = 0,
    plain: bool = True,
) -> MdxSyntaxError:
    """Map a ``SyntaxError`` in a snippet back onto the document."""

    line, column = position
    if plain:
        lineno = exc.lineno or 1
        offset = exc.offset or 1
        if lineno == 1:
            column += max(offset - 1 - col_shift, 0)
        else:
            line += lineno - 1
            column = offset
    reason = f"Could not parse expression with Python: {exc.msg}"
    return source.error(reason, position=(line, column))


def is_empty_code(code: Code) -> bool:
    if not code.is_plain():
        return False
    text = "".join(code.parts)  # type: ignore[arg-type]
    return all(not ln.strip() or ln.strip().startswith("#") for ln in text.splitlines())


def _wrap(text: str) -> str:
    # A trailing comment would swallow the closing paren.
    return f"({text}\n)" if "#" in text else f"({text})"


class CodeGenerator:
    def __init__(
        self,
        source: SourceText,
        *,
        development: bool = False,
        file_name: str | None = None,
    ) -> None:
        self.source = source
        self.development = development
        self.file_name = file_name
        self.local_names: set[str] = set()
        # Names looked up in the registry, in first-use order.
        self.references: list[str] = []

    def children(self, nodes: Sequence[Node], *, content: bool = True) -> str | None:
        items: list[str] = []
        pending: list[str] = []

        def flush() -> None:
            merged = "".join(pending)
            pending.clear()
            if merged:
                items.append(repr(merged))

        for node in nodes:
            if isinstance(node, Text):
                pending.append(node.value)
                continue
            if isinstance(node, Expression):
                if is_empty_code(node.code):
                    continue
                flush()
                items.append(self.expression(node.code, content=content))
                continue
            flush()
            items.append(self.element(node, content=content))
        flush()

        if not items:
            return None
        if len(items) == 1:
            return items[0]
        return "[" + ", ".join(items) + "]"

    def element(self, el: Element, *, content: bool = True) -> str:
        type_ = self._type(el, content=content)
        props = self._props(el, content=content)
        return self.call(type_, props, el.position)

    def call(self, type_: str, props: str, position: tuple[int, int] | None = None) -> str:
        if not self.development:
            return f"_jsx({type_}, {props})"
        line, column = position or (1, 1)
        info = (
            f'{{"file_name": {self.file_name!r}, "line_number": {line}, '
            f'"column_number": {column}}}'
        )
        return f"_jsx_dev({type_}, {props}, {info})"

    def expression(self, code: Code, *, content: bool = True) -> str:
        text = self.inline(code, content=content)
        try:
            tree = ast.parse(f"({text}\n)", mode="eval")
        except SyntaxError as exc:
            raise python_syntax_error(
                self.source, exc, code.position, col_shift=1, plain=code.is_plain()
            ) from exc
        # The expression runs inside a plain function; these would change its kind.
        for node in ast.walk(tree):
            if isinstance(node, (ast.Yield, ast.YieldFrom, ast.Await)):
                raise self.source.error(
                    f"Unexpected `{type(node).__name__}` in expression",
                    position=code.position,
                )
        return _wrap(text)

    def inline(self, code: Code, *, content: bool = True) -> str:
        """Code text with embedded tags replaced by element calls."""

        return "".join(
            part if isinstance(part, str) else self.element(part, content=content)
            for part in code.parts
        )

    def _type(self, el: Element, *, content: bool) -> str:
        name = el.name
        if name is None:
            return "_Fragment"
        if el.origin == "markdown":
            return self._reference(name)
        if is_intrinsic(name):
            return repr(name)
        if not content or name.split(".", 1)[0] in self.local_names:
            return name
        return self._reference(name)

    def _reference(self, name: str) -> str:
        if name not in self.references:
            self.references.append(name)
        return f"_c[{name!r}]"

    def _props(self, el: Element, *, content: bool) -> str:
        entries: list[str] = []
        for attr in el.attributes:
            if isinstance(attr, Spread):
                if is_empty_code(attr.code):
                    raise self.source.error(
                        "Unexpected empty spread expression, expected a value to spread",
                        position=attr.code.position,
                    )
                entries.append(f"**{self.expression(attr.code, content=content)}")
            elif isinstance(attr.value, Code):
                if is_empty_code(attr.value):
                    raise self.source.error(
                        f"Unexpected empty expression in attribute `{attr.name}`, "
                        "expected a value",
                        position=attr.value.position,
                    )
                entries.append(f"{attr.name!r}: {self.expression(attr.value, content=content)}")
            else:
                entries.append(f"{attr.name!r}: {attr.value!r}")

        kids = self.children(el.children, content=content)
        if kids is not None:
            entries.append(f'"children": {kids}')
        return "{" + ", ".join(entries) + "}"


@dataclass(slots=True)
class ModuleParts:
    """Everything the output shapes are assembled from."""

    esm: str
    content: str | None
    references: list[str] = field(default_factory=list)
    exports: list[str] = field(default_factory=list)
    has_layout: bool = False


def _registry_expr(provider: bool) -> str:
    return "_use_mdx_components()" if provider else "_ComponentRegistry.root()"


def _definitions(parts: ModuleParts, gen: CodeGenerator, *, provider: bool) -> list[str]:
    registry = _registry_expr(provider)
    children = "{}" if parts.content is None else f'{{"children": {parts.content}}}'

    lines = ["def _create_mdx_content(props):"]
    if parts.references:
        names = "".join(f"{name!r}, " for name in parts.references)
        lines.append(f'    _components = {registry}.extend(props.get("components"))')
        lines.append(f"    _c = _components.resolve_all(({names.rstrip()}))")
    lines.append(f"    return {gen.call('_Fragment', children)}")
    lines.append("")
    lines.append("")

    lines.append("def MDXContent(props=None):")
    lines.append("    props = dict(props or {})")
    if parts.has_layout:
        lines.append("    _wrapper = MDXLayout")
    else:
        lines.append(f'    _wrapper = {registry}.extend(props.get("components")).get("wrapper")')
    inner = gen.call("_create_mdx_content", "props")
    wrapped = gen.call("_wrapper", '{**props, "children": ' + inner + "}")
    lines.append("    if _wrapper is not None:")
    lines.append(f"        return {wrapped}")
    lines.append("    return _create_mdx_content(props)")
    return lines


def function_body(parts: ModuleParts, gen: CodeGenerator, *, provider: bool) -> str:
    """Body of a function taking the ``_arguments`` primitives mapping."""

    jsx_name = "jsx_dev" if gen.development else "jsx"
    lines = [
        '_Fragment = _arguments["Fragment"]',
        f'_{jsx_name} = _arguments["{jsx_name}"]',
    ]
    if provider:
        lines.append('_use_mdx_components = _arguments["use_mdx_components"]')
    else:
        lines.append('_ComponentRegistry = _arguments["ComponentRegistry"]')
    lines.append("")
    if parts.esm:
        lines.append(parts.esm.rstrip("\n"))
        lines.append("")
    lines.extend(_definitions(parts, gen, provider=provider))
    lines.append("")
    exported = "".join(f", {name!r}: {name}" for name in parts.exports)
    lines.append(f'return {{"default": MDXContent{exported}}}')
    return "\n".join(lines) + "\n"


def program(
    parts: ModuleParts,
    gen: CodeGenerator,
    *,
    jsx_import_source: str,
    provider_import_source: str | None,
) -> str:
    """An importable module exposing ``MDXContent`` (also as ``default``)."""

    jsx_name = "jsx_dev" if gen.development else "jsx"
    lines: list[str] = []
    if provider_import_source is None:
        lines.append(
            f"from {COMPONENT_REGISTRY_MODULE} import ComponentRegistry as _ComponentRegistry"
        )
    lines.append(
        f"from {jsx_import_source} import Fragment as _Fragment, {jsx_name} as _{jsx_name}"
    )
    if provider_import_source is not None:
        lines.append(
            f"from {provider_import_source} import use_mdx_components as _use_mdx_components"
        )
    lines.append("")
    if parts.esm:
        lines.append(parts.esm.rstrip("\n"))
        lines.append("")
    lines.append("")
    lines.extend(_definitions(parts, gen, provider=provider_import_source is not None))
    lines.append("")
    lines.append("")
    lines.append("default = MDXContent")
    names = ", ".join(repr(n) for n in ["MDXContent", "default", *parts.exports])
    lines.append(f"__all__ = [{names}]")
    return "\n".join(lines) + "\n"

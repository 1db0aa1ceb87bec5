"""Bijection emitter — arm-lists to Python conversion functions.

Shapes render identically as `case` patterns and as expressions: literals,
captures, dotted value patterns, and class patterns with positional or keyword
sub-shapes are all spelled the same way on both sides of a Python `match`.
"""

from __future__ import annotations

import builtins
import logging
from dataclasses import dataclass

from .ast import (
    Alternation,
    ArmList,
    Binding,
    Declaration,
    Literal,
    Normalized,
    Shape,
    Struct,
    TypeRef,
    Variant,
    flatten,
)
from .parse import ParseError, Parser, eof_after, split_top_level

logger = logging.getLogger(__name__)


@dataclass
class EmitOptions:
    """Knobs for generated source; pragmas and CLI flags both land here."""

    attach: bool = True
    forward_name: str | None = None
    backward_name: str | None = None


@dataclass
class FunctionDef:
    """One generated conversion function, plus the statement attaching it."""

    name: str
    source_type: TypeRef
    target_type: TypeRef
    source: str
    attach: str | None = None


@dataclass
class Conversions:
    """Both directions of one declaration."""

    forward: FunctionDef
    backward: FunctionDef

    def to_source(self) -> str:
        parts: list[str] = []
        for fn in (self.forward, self.backward):
            parts.append(fn.source)
            if fn.attach is not None:
                parts.append(fn.attach + "\n")
        return "\n\n".join(parts)


# ============================================================
# SHAPES
# ============================================================


def render_shape(shape: Shape) -> str:
    if isinstance(shape, Literal):
        return shape.text
    if isinstance(shape, Binding):
        return shape.name
    if isinstance(shape, Variant):
        if shape.args is None:
            return shape.name
        return shape.name + "(" + ", ".join(render_shape(a) for a in shape.args) + ")"
    if isinstance(shape, Struct):
        fields = ", ".join(f.name + "=" + render_shape(f.shape) for f in shape.fields)
        return shape.name + "(" + fields + ")"
    if isinstance(shape, Alternation):
        return " | ".join(render_shape(o) for o in shape.options)
    raise TypeError("unhandled shape type")


def render_dsl_shape(shape: Shape) -> str:
    """Shape in declaration syntax: structs keep their braces and shorthand."""
    if isinstance(shape, Struct):
        parts: list[str] = []
        for f in shape.fields:
            if isinstance(f.shape, Binding) and f.shape.name == f.name:
                parts.append(f.name)
            else:
                parts.append(f.name + ": " + render_dsl_shape(f.shape))
        if not parts:
            return shape.name + " {}"
        return shape.name + " { " + ", ".join(parts) + " }"
    if isinstance(shape, Variant) and shape.args is not None:
        args = ", ".join(render_dsl_shape(a) for a in shape.args)
        return shape.name + "(" + args + ")"
    if isinstance(shape, Alternation):
        return " | ".join(render_dsl_shape(o) for o in shape.options)
    return render_shape(shape)


# ============================================================
# NAMES
# ============================================================


def snake_name(t: TypeRef) -> str:
    """HttpStatus -> http_status; list[int] -> list_int."""
    if t.subscript is None:
        word = t.path[-1]
    else:
        word = t.text
    out: list[str] = []
    prev = ""
    for i, c in enumerate(word):
        if c.isalnum():
            if c.isupper():
                nxt = word[i + 1] if i + 1 < len(word) else ""
                if i > 0 and (prev.islower() or prev.isdigit() or nxt.islower()):
                    if out and out[-1] != "_":
                        out.append("_")
                out.append(c.lower())
            else:
                out.append(c)
        elif out and out[-1] != "_":
            out.append("_")
        prev = c
    name = "".join(out).strip("_")
    if name == "" or name[0].isdigit():
        name = "t_" + name
    return name


def function_name(source: TypeRef, target: TypeRef) -> str:
    return snake_name(source) + "_to_" + snake_name(target)


def attach_name(source: TypeRef) -> str:
    return "from_" + snake_name(source)


def is_attachable(t: TypeRef) -> bool:
    """Builtin and subscripted types reject new attributes."""
    if t.subscript is not None:
        return False
    if len(t.path) == 1 and isinstance(getattr(builtins, t.path[0], None), type):
        return False
    return True


def conversion_names(
    side_a_type: TypeRef, side_b_type: TypeRef, options: EmitOptions | None = None
) -> tuple[str, str, str, str]:
    """(forward, backward) function names, then their attribute names."""
    if options is None:
        options = EmitOptions()
    forward_name = options.forward_name or function_name(side_a_type, side_b_type)
    backward_name = options.backward_name or function_name(side_b_type, side_a_type)
    forward_attr = attach_name(side_a_type)
    backward_attr = attach_name(side_b_type)
    if forward_name == backward_name:
        backward_name = backward_name + "_back"
    # A, A: both functions land on the same class
    if side_a_type.text == side_b_type.text:
        backward_attr = backward_attr + "_back"
    return forward_name, backward_name, forward_attr, backward_attr


# ============================================================
# FUNCTIONS
# ============================================================


class _Emitter:
    _INDENT: str = "    "

    def __init__(self) -> None:
        self._lines: list[str] = []
        self._indent_level: int = 0

    def _emit_line(self, line: str) -> None:
        self._lines.append(self._INDENT * self._indent_level + line)

    def emit_function(
        self, arms: ArmList, name: str, attr: str | None
    ) -> FunctionDef:
        if not arms.closed:
            raise ValueError("arm-list must be closed before emitting")
        self._lines = []
        self._indent_level = 0
        src = arms.source_type.text
        dst = arms.target_type.text
        self._emit_line("def " + name + "(value: " + src + ") -> " + dst + ":")
        self._indent_level += 1
        if len(arms) > 0:
            self._emit_line("match value:")
            self._indent_level += 1
            for arm in arms:
                self._emit_line("case " + render_shape(arm.pattern) + ":")
                self._indent_level += 1
                self._emit_line("return " + render_shape(arm.value))
                self._indent_level -= 1
            self._indent_level -= 1
        self._emit_line(
            "raise ValueError("
            + repr("no bijection arm matches " + src + " value: ")
            + " + repr(value))"
        )
        self._indent_level -= 1
        attach_stmt: str | None = None
        if attr is not None and is_attachable(arms.target_type):
            attach_stmt = dst + "." + attr + " = staticmethod(" + name + ")"
        logger.debug("emitted %s with %d arm(s)", name, len(arms))
        return FunctionDef(
            name,
            arms.source_type,
            arms.target_type,
            "\n".join(self._lines) + "\n",
            attach_stmt,
        )


def emit_functions(
    forward: ArmList,
    backward: ArmList,
    side_a_type: TypeRef,
    side_b_type: TypeRef,
    options: EmitOptions | None = None,
) -> Conversions:
    """Emit `A -> B` over forward arms and `B -> A` over backward arms."""
    if options is None:
        options = EmitOptions()
    if forward.source_type.text != side_a_type.text or (
        backward.source_type.text != side_b_type.text
    ):
        raise ValueError("arm-lists do not match the declared side types")
    forward_name, backward_name, forward_attr, backward_attr = conversion_names(
        side_a_type, side_b_type, options
    )
    if not options.attach:
        forward_attr = backward_attr = None
    emitter = _Emitter()
    return Conversions(
        emitter.emit_function(forward, forward_name, forward_attr),
        emitter.emit_function(backward, backward_name, backward_attr),
    )


def emit_python(normalized: Normalized, options: EmitOptions | None = None) -> str:
    """Render both conversion functions of a normalized declaration as source."""
    decl = normalized.declaration
    conversions = emit_functions(
        normalized.forward,
        normalized.backward,
        decl.side_a_type,
        decl.side_b_type,
        options,
    )
    return conversions.to_source()


# ============================================================
# DECLARATION FORMATTER
# ============================================================


def leading_comments(source: str) -> list[str]:
    """Comment lines before the first line of code, blank lines dropped."""
    comments: list[str] = []
    for line in source.split("\n"):
        stripped = line.strip()
        if stripped == "":
            continue
        if not stripped.startswith("#"):
            break
        comments.append(stripped)
    return comments


def to_source(decl: Declaration) -> str:
    """Render a declaration back into canonical declaration syntax.

    Clause trees that do not parse as `shape => shape` are copied verbatim so
    the formatter can run before normalization. Leading comments, pragmas
    included, are kept above the declaration.
    """
    lines = leading_comments(decl.source)
    lines.append(decl.side_a_type.text + ", " + decl.side_b_type.text + ", {")
    for segment in split_top_level(decl.clauses, ","):
        if len(segment) == 0:
            continue
        tokens = flatten(segment)
        try:
            left, right = Parser(tokens + [eof_after(tokens)]).parse_clause()
        except ParseError:
            start = tokens[0].offset
            lines.append("    " + decl.source[start : tokens[-1].end] + ",")
            continue
        lines.append(
            "    " + render_dsl_shape(left) + " => " + render_dsl_shape(right) + ","
        )
    lines.append("}")
    return "\n".join(lines) + "\n"

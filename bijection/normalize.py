"""Clause normalizer — one authored clause list in, two aligned arm-lists out.

Each clause `left => right` is read once and yields a forward arm
(match left, build right) and a backward arm (match right, build left).
Both arm-lists grow in the same step, so arm i of either list always
comes from clause i. The first bad clause aborts the whole declaration.
"""

from __future__ import annotations

import logging

from .ast import (
    Alternation,
    Arm,
    ArmList,
    Binding,
    Clause,
    Declaration,
    Normalized,
    Pos,
    Shape,
    Span,
    Tree,
    bindings,
    find_alternation,
    flatten,
    is_op,
    trees_span,
    trees_text,
)
from .diagnose import (
    DG_DUPLICATE_BINDING,
    DG_INVALID_CLAUSE,
    DG_OR_PATTERN,
    DG_UNBOUND_NAME,
    DG_WILDCARD,
    DeclarationError,
    Diagnostic,
)
from .emit import render_shape
from .parse import ParseError, Parser, eof_after

logger = logging.getLogger(__name__)


def normalize(decl: Declaration) -> Normalized:
    """Build forward and backward arm-lists from a declaration's clause trees."""
    forward = ArmList(decl.side_a_type, decl.side_b_type)
    backward = ArmList(decl.side_b_type, decl.side_a_type)
    remaining: list[Tree] = decl.clauses
    index = 0
    while len(remaining) > 0:
        segment, rest = _take_clause(remaining)
        if len(segment) == 0:
            raise _invalid_clause(decl, remaining, "empty clause")
        clause = _read_clause(decl, index, segment, remaining)
        forward.append(Arm(clause.left, clause.right, index))
        backward.append(Arm(clause.right, clause.left, index))
        logger.debug(
            "clause %d: %s => %s",
            index,
            render_shape(clause.left),
            render_shape(clause.right),
        )
        remaining = rest
        index += 1
    forward.close()
    backward.close()
    logger.debug(
        "normalized %s <-> %s: %d clause(s)",
        decl.side_a_type.text,
        decl.side_b_type.text,
        index,
    )
    return Normalized(decl, forward, backward)


def _take_clause(trees: list[Tree]) -> tuple[list[Tree], list[Tree]]:
    """Split off one clause: everything up to the first top-level comma."""
    i = 0
    while i < len(trees):
        if is_op(trees[i], ","):
            return trees[:i], trees[i + 1 :]
        i += 1
    return trees, []


def _read_clause(
    decl: Declaration, index: int, segment: list[Tree], remaining: list[Tree]
) -> Clause:
    tokens = flatten(segment)
    parser = Parser(tokens + [eof_after(tokens)])
    try:
        left, right = parser.parse_clause()
    except ParseError as e:
        raise _invalid_clause(decl, remaining, str(e)) from e
    clause = Clause(index, left, right, trees_span(segment))
    text = trees_text(decl.source, segment)
    _check_side(clause, left, "left", text)
    _check_side(clause, right, "right", text)
    _check_bindings(clause, text)
    return clause


def _invalid_clause(
    decl: Declaration, remaining: list[Tree], reason: str
) -> DeclarationError:
    """Report the rest of the clause list, with the native parser's complaint."""
    fragment = trees_text(decl.source, remaining)
    tokens = flatten(remaining)
    cause = reason
    try:
        Parser(tokens + [eof_after(tokens)]).parse_native_arms()
    except ParseError as e:
        cause = str(e)
    return DeclarationError(
        Diagnostic(
            DG_INVALID_CLAUSE,
            "invalid bijection pattern: `" + fragment + "`",
            fragment,
            trees_span(remaining),
            cause,
        )
    )


def _clause_error(
    kind: str, message: str, clause: Clause, text: str, at: Pos
) -> DeclarationError:
    return DeclarationError(
        Diagnostic(kind, message, text, Span(at, clause.span.end))
    )


def _check_side(clause: Clause, shape: Shape, side: str, text: str) -> None:
    if isinstance(shape, Alternation):
        raise _clause_error(
            DG_OR_PATTERN,
            "or-pattern `"
            + render_shape(shape)
            + "` on the "
            + side
            + " side of a bijection clause is not a valid expression",
            clause,
            text,
            shape.pos,
        )
    nested = find_alternation(shape)
    if nested is not None:
        raise _clause_error(
            DG_OR_PATTERN,
            "nested or-pattern `"
            + render_shape(nested)
            + "` is not allowed in a bijection clause",
            clause,
            text,
            nested.pos,
        )
    for b in bindings(shape):
        if b.is_wildcard:
            raise _clause_error(
                DG_WILDCARD,
                "wildcard `_` cannot be used in a bijection clause:"
                " it is not a valid expression",
                clause,
                text,
                b.pos,
            )


def _check_bindings(clause: Clause, text: str) -> None:
    left = _bound_names(clause, clause.left, text)
    right = _bound_names(clause, clause.right, text)
    for name, b in left.items():
        if name not in right:
            raise _clause_error(
                DG_UNBOUND_NAME,
                "name '" + name + "' is bound on the left but not used on the right",
                clause,
                text,
                b.pos,
            )
    for name, b in right.items():
        if name not in left:
            raise _clause_error(
                DG_UNBOUND_NAME,
                "name '" + name + "' is bound on the right but not used on the left",
                clause,
                text,
                b.pos,
            )


def _bound_names(clause: Clause, shape: Shape, text: str) -> dict[str, Binding]:
    names: dict[str, Binding] = {}
    for b in bindings(shape):
        if b.name in names:
            raise _clause_error(
                DG_DUPLICATE_BINDING,
                "name '" + b.name + "' is bound more than once in `"
                + render_shape(shape)
                + "`",
                clause,
                text,
                b.pos,
            )
        names[b.name] = b
    return names

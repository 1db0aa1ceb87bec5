"""Diagnostic grammar — targeted errors for malformed declarations.

The well-formed grammar is `TypeA, TypeB, { clauses }`. When the input does not
match it, RULES are tried in order and the first predicate that accepts the
token trees names the diagnostic. The shapes overlap, so order matters: the
more complete a malformed declaration is, the earlier its rule comes.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass

from .ast import Pos, Span, Tree, is_group, is_op, trees_span, trees_text
from .parse import scan_type


# Diagnostic kinds
DG_TOKENIZE = "tokenize"
DG_UNBALANCED = "unbalanced"
DG_MISSING_BLOCK = "missing-block"
DG_UNSEPARATED_BLOCK = "unseparated-block"
DG_BLOCK_EXPECTED = "block-expected"
DG_MISSING_SECOND_TYPE = "missing-second-type"
DG_MISSING_TYPES = "missing-types"
DG_MALFORMED = "malformed-declaration"
DG_INVALID_CLAUSE = "invalid-clause"
DG_OR_PATTERN = "or-pattern"
DG_WILDCARD = "wildcard"
DG_UNBOUND_NAME = "unbound-name"
DG_DUPLICATE_BINDING = "duplicate-binding"

EXPECTED_FORM = "expected: TypeA, TypeB, { clauses }"


@dataclass
class Diagnostic:
    """One targeted failure: which rule matched, what to say, and where."""

    kind: str
    message: str
    fragment: str
    span: Span
    cause: str | None = None

    def render(self) -> str:
        out = (
            "error:"
            + str(self.span.start.line)
            + ":"
            + str(self.span.start.col)
            + ": "
            + self.message
        )
        if self.fragment != "" and self.fragment not in self.message:
            out += "\n  found: " + self.fragment
        if self.cause is not None:
            out += "\n  note: " + self.cause
        return out


class DeclarationError(Exception):
    """A declaration could not be compiled; carries exactly one Diagnostic."""

    def __init__(self, diagnostic: Diagnostic):
        self.diagnostic: Diagnostic = diagnostic
        self.msg: str = diagnostic.message
        self.line: int = diagnostic.span.start.line
        self.col: int = diagnostic.span.start.col
        super().__init__(
            self.msg + " at line " + str(self.line) + " col " + str(self.col)
        )

    @property
    def kind(self) -> str:
        return self.diagnostic.kind


def point_span(line: int, col: int) -> Span:
    return Span(Pos(line, col), Pos(line, col + 1))


# ============================================================
# RULE PREDICATES
# ============================================================
#
# Each predicate receives the top-level trees and returns the trees to quote
# (possibly empty) when the rule applies, or None when it does not.

Match = list[Tree] | None


def _after_two_types(trees: list[Tree]) -> int | None:
    """Index just past `T , T`, or None."""
    first = scan_type(trees, 0)
    if first is None:
        return None
    i = first[1]
    if i >= len(trees) or not is_op(trees[i], ","):
        return None
    second = scan_type(trees, i + 1)
    if second is None:
        return None
    return second[1]


def _missing_block(trees: list[Tree]) -> Match:
    i = _after_two_types(trees)
    if i is None:
        return None
    if i == len(trees):
        return trees
    if i + 1 == len(trees) and is_op(trees[i], ","):
        return trees
    return None


def _unseparated_block(trees: list[Tree]) -> Match:
    i = _after_two_types(trees)
    if i is None or i + 1 != len(trees) or not is_group(trees[i], "{"):
        return None
    return [trees[i]]


def _block_expected_after_comma(trees: list[Tree]) -> Match:
    i = _after_two_types(trees)
    if i is None or i >= len(trees) or not is_op(trees[i], ","):
        return None
    rest = trees[i + 1 :]
    if len(rest) == 0 or (len(rest) == 1 and is_group(rest[0], "{")):
        return None
    return rest


def _block_expected(trees: list[Tree]) -> Match:
    i = _after_two_types(trees)
    if i is None or i >= len(trees) or is_op(trees[i], ","):
        return None
    return trees[i:]


def _missing_second_type(trees: list[Tree]) -> Match:
    first = scan_type(trees, 0)
    if first is None:
        return None
    i = first[1]
    if i == len(trees):
        return trees
    if not is_op(trees[i], ","):
        return None
    if scan_type(trees, i + 1) is not None:
        return None
    return trees


def _single_type_unseparated_block(trees: list[Tree]) -> Match:
    first = scan_type(trees, 0)
    if first is None:
        return None
    i = first[1]
    if i >= len(trees) or not is_group(trees[i], "{"):
        return None
    return trees[: i + 1]


def _missing_types(trees: list[Tree]) -> Match:
    if len(trees) > 0 and is_group(trees[0], "{"):
        return [trees[0]]
    return None


def _anything(trees: list[Tree]) -> Match:
    return trees


@dataclass
class Rule:
    """(predicate, message template) pair; `{fragment}` is the quoted text."""

    kind: str
    predicate: Callable[[list[Tree]], Match]
    template: str


RULES: list[Rule] = [
    Rule(
        DG_MISSING_BLOCK,
        _missing_block,
        "missing bijection declaration block after types",
    ),
    Rule(
        DG_UNSEPARATED_BLOCK,
        _unseparated_block,
        "declaration block must be separated with a comma",
    ),
    Rule(
        DG_BLOCK_EXPECTED,
        _block_expected_after_comma,
        "bijection declaration block expected, found `{fragment}`",
    ),
    Rule(
        DG_BLOCK_EXPECTED,
        _block_expected,
        "bijection declaration block expected, found `{fragment}`",
    ),
    Rule(DG_MISSING_SECOND_TYPE, _missing_second_type, "missing second type"),
    Rule(
        DG_UNSEPARATED_BLOCK,
        _single_type_unseparated_block,
        "missing second type and declaration block must be separated with a comma,"
        " found `{fragment}`",
    ),
    Rule(
        DG_MISSING_TYPES,
        _missing_types,
        "missing types before declaration block",
    ),
    Rule(DG_MALFORMED, _anything, EXPECTED_FORM),
]


def diagnose(trees: list[Tree], source: str) -> Diagnostic:
    """Pick the first rule that matches malformed top-level trees."""
    for rule in RULES:
        quoted = rule.predicate(trees)
        if quoted is None:
            continue
        if len(quoted) == 0:
            quoted = trees
        if len(quoted) == 0:
            return Diagnostic(rule.kind, rule.template, "", point_span(1, 1))
        fragment = trees_text(source, quoted)
        message = rule.template.replace("{fragment}", fragment)
        return Diagnostic(rule.kind, message, fragment, trees_span(quoted))
    raise AssertionError("fallback rule did not match")

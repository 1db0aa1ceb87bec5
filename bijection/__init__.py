"""Bijection declarations — compile paired clauses into two inverse conversions."""

from __future__ import annotations

from collections.abc import Mapping

from .ast import Declaration, Normalized
from .diagnose import (
    DG_TOKENIZE,
    DG_UNBALANCED,
    DeclarationError as DeclarationError,
    Diagnostic as Diagnostic,
    diagnose,
    point_span,
)
from .emit import (
    EmitOptions as EmitOptions,
    emit_python,
    leading_comments,
    to_source,
)
from .normalize import normalize
from .parse import ParseError, group, parse_declaration
from .runtime import (
    Bijection as Bijection,
    ResolutionError as ResolutionError,
    UnmatchedValueError as UnmatchedValueError,
)
from .tokens import TokenizeError, tokenize


def extract_pragmas(source: str, options: EmitOptions | None = None) -> EmitOptions:
    """Scan leading comment lines for `# pragma ...` directives."""
    if options is None:
        options = EmitOptions()
    for comment in leading_comments(source):
        words = comment[1:].split()
        if len(words) < 2 or words[0] != "pragma":
            continue
        if words[1] == "no-attach" and len(words) == 2:
            options.attach = False
        elif words[1] == "forward-name" and len(words) == 3:
            options.forward_name = words[2]
        elif words[1] == "backward-name" and len(words) == 3:
            options.backward_name = words[2]
    return options


def parse(source: str) -> Declaration:
    """Parse declaration source. Raises DeclarationError on any malformed input."""
    try:
        tokens = tokenize(source)
    except TokenizeError as e:
        raise DeclarationError(
            Diagnostic(DG_TOKENIZE, e.msg, "", point_span(e.line, e.col))
        ) from e
    try:
        trees = group(tokens)
    except ParseError as e:
        raise DeclarationError(
            Diagnostic(DG_UNBALANCED, e.msg, "", point_span(e.line, e.col))
        ) from e
    decl = parse_declaration(trees, source)
    if decl is None:
        raise DeclarationError(diagnose(trees, source))
    return decl


def compile_declaration(source: str) -> Normalized:
    """Parse and normalize: the forward and backward arm-lists of a declaration."""
    return normalize(parse(source))


def generate(source: str, options: EmitOptions | None = None) -> str:
    """Compile declaration source to Python source for both conversions."""
    if options is None:
        options = extract_pragmas(source)
    return emit_python(compile_declaration(source), options)


def format_declaration(source: str) -> str:
    """Canonical rendering of a declaration."""
    return to_source(parse(source))


def bijection(
    source: str, namespace: Mapping[str, object], attach: bool = True
) -> Bijection:
    """Build in-process converters, resolving names against namespace."""
    result = Bijection(compile_declaration(source), namespace)
    if attach:
        result.attach()
    return result

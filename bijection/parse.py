"""Bijection parser — token trees, types, and shapes by recursive descent."""

from __future__ import annotations

import keyword

from .ast import (
    Alternation,
    Binding,
    Declaration,
    FieldShape,
    Group,
    Leaf,
    Literal,
    Pos,
    Shape,
    Struct,
    Tree,
    TypeRef,
    Variant,
    first_token,
    is_group,
    is_op,
)
from .tokens import TK_EOF, TK_FLOAT, TK_IDENT, TK_INT, TK_OP, TK_STRING, Token

OPENERS: dict[str, str] = {"(": ")", "[": "]", "{": "}"}
CLOSERS: set[str] = {")", "]", "}"}

LITERAL_KEYWORDS: dict[str, object] = {"True": True, "False": False, "None": None}


class ParseError(Exception):
    """Parse error with location info."""

    def __init__(self, msg: str, line: int, col: int):
        self.msg: str = msg
        self.line: int = line
        self.col: int = col
        super().__init__(msg + " at line " + str(line) + " col " + str(col))


# ============================================================
# TOKEN TREES
# ============================================================


def group(tokens: list[Token]) -> list[Tree]:
    """Fold a flat token list into trees; every bracket pair becomes one Group."""
    stack: list[tuple[Token, list[Tree]]] = []
    top: list[Tree] = []
    current = top
    for tok in tokens:
        if tok.type == TK_EOF:
            break
        if tok.type == TK_OP and tok.value in OPENERS:
            stack.append((tok, current))
            current = []
            continue
        if tok.type == TK_OP and tok.value in CLOSERS:
            if not stack:
                raise ParseError("unmatched '" + tok.value + "'", tok.line, tok.col)
            open_tok, parent = stack.pop()
            if OPENERS[open_tok.value] != tok.value:
                raise ParseError(
                    "mismatched '"
                    + tok.value
                    + "', expected '"
                    + OPENERS[open_tok.value]
                    + "'",
                    tok.line,
                    tok.col,
                )
            parent.append(Group(open_tok, current, tok))
            current = parent
            continue
        current.append(Leaf(tok))
    if stack:
        open_tok = stack[-1][0]
        raise ParseError(
            "unclosed '" + open_tok.value + "'", open_tok.line, open_tok.col
        )
    return top


def split_top_level(trees: list[Tree], separator: str) -> list[list[Tree]]:
    """Split trees at top-level separator operators. Always returns 1+ segments."""
    segments: list[list[Tree]] = [[]]
    for tree in trees:
        if is_op(tree, separator):
            segments.append([])
        else:
            segments[-1].append(tree)
    return segments


def scan_type(trees: list[Tree], i: int, source: str = "") -> tuple[TypeRef, int] | None:
    """Match a type reference starting at trees[i]. Returns (type, next index)."""
    if i >= len(trees) or not _is_name_leaf(trees[i]):
        return None
    head = first_token(trees[i])
    path = [head.value]
    i += 1
    while (
        i + 1 < len(trees) and is_op(trees[i], ".") and _is_name_leaf(trees[i + 1])
    ):
        path.append(first_token(trees[i + 1]).value)
        i += 2
    if i < len(trees) and is_op(trees[i], "."):
        # Dangling dot: not a type
        return None
    subscript: str | None = None
    if i < len(trees) and is_group(trees[i], "["):
        grp = trees[i]
        assert isinstance(grp, Group)
        subscript = source[grp.open.end : grp.close.offset].strip()
        i += 1
    return TypeRef(Pos(head.line, head.col), path, subscript), i


def _is_name_leaf(tree: Tree) -> bool:
    return (
        isinstance(tree, Leaf)
        and tree.token.type == TK_IDENT
        and not keyword.iskeyword(tree.token.value)
    )


def parse_declaration(trees: list[Tree], source: str) -> Declaration | None:
    """Recognize exactly `TypeA, TypeB, { clauses }`. None if the shape differs."""
    first = scan_type(trees, 0, source)
    if first is None:
        return None
    side_a, i = first
    if i >= len(trees) or not is_op(trees[i], ","):
        return None
    second = scan_type(trees, i + 1, source)
    if second is None:
        return None
    side_b, i = second
    if i + 2 != len(trees) or not is_op(trees[i], ","):
        return None
    block = trees[i + 1]
    if not isinstance(block, Group) or block.delimiter != "{":
        return None
    return Declaration(side_a, side_b, block.children, source)


# ============================================================
# SHAPES
# ============================================================


def eof_after(tokens: list[Token]) -> Token:
    """A synthetic EOF positioned just past the last token."""
    last = tokens[-1]
    return Token(TK_EOF, "", last.end_line, last.end_col, last.end, last.end)


class Parser:
    """Recursive descent parser for shapes over a flat token list."""

    def __init__(self, tokens: list[Token]):
        if not tokens or tokens[-1].type != TK_EOF:
            raise ValueError("token list must end with EOF")
        self.tokens: list[Token] = tokens
        self.pos: int = 0

    # ── Helpers ──────────────────────────────────────────────

    def current(self) -> Token:
        return self.tokens[self.pos]

    def peek(self, offset: int) -> Token:
        idx = self.pos + offset
        if idx >= len(self.tokens):
            return self.tokens[len(self.tokens) - 1]
        return self.tokens[idx]

    def advance(self) -> Token:
        tok = self.tokens[self.pos]
        if tok.type != TK_EOF:
            self.pos += 1
        return tok

    def at(self, value: str) -> bool:
        tok = self.current()
        return tok.type == TK_OP and tok.value == value

    def at_type(self, type_: str) -> bool:
        return self.current().type == type_

    def at_eof(self) -> bool:
        return self.current().type == TK_EOF

    def expect(self, value: str) -> Token:
        if not self.at(value):
            raise self.error("expected '" + value + "', got " + self._describe())
        return self.advance()

    def expect_name(self, what: str) -> Token:
        tok = self.current()
        if tok.type != TK_IDENT:
            raise self.error("expected " + what + ", got " + self._describe())
        if keyword.iskeyword(tok.value):
            raise self.error("cannot use reserved name '" + tok.value + "'")
        return self.advance()

    def expect_eof(self) -> None:
        if not self.at_eof():
            raise self.error("unexpected " + self._describe())

    def error(self, msg: str) -> ParseError:
        tok = self.current()
        return ParseError(msg, tok.line, tok.col)

    def _describe(self) -> str:
        tok = self.current()
        if tok.type == TK_EOF:
            return "end of input"
        return "'" + tok.value + "'"

    def _pos(self) -> Pos:
        tok = self.current()
        return Pos(tok.line, tok.col)

    # ── Clauses ──────────────────────────────────────────────

    def parse_clause(self) -> tuple[Shape, Shape]:
        """shape => shape, consuming the whole token list."""
        left = self.parse_shape()
        if self.at("="):
            raise self.error("expected '=>', got '='")
        self.expect("=>")
        right = self.parse_shape()
        self.expect_eof()
        return left, right

    def parse_native_arms(self) -> list[tuple[Shape, Shape]]:
        """pattern => expression arms separated by commas, as a plain match takes them."""
        arms: list[tuple[Shape, Shape]] = []
        while not self.at_eof():
            pattern = self.parse_shape()
            self.expect("=>")
            value = self.parse_shape()
            arms.append((pattern, value))
            if self.at_eof():
                break
            self.expect(",")
        return arms

    # ── Shapes ───────────────────────────────────────────────

    def parse_shape(self) -> Shape:
        pos = self._pos()
        first = self.parse_primary()
        if not self.at("|"):
            return first
        options = [first]
        while self.at("|"):
            self.advance()
            options.append(self.parse_primary())
        return Alternation(pos, options)

    def parse_primary(self) -> Shape:
        tok = self.current()
        pos = self._pos()
        if tok.type == TK_INT:
            self.advance()
            return Literal(pos, int(tok.value), tok.value)
        if tok.type == TK_FLOAT:
            self.advance()
            return Literal(pos, float(tok.value), tok.value)
        if tok.type == TK_STRING:
            self.advance()
            return Literal(pos, tok.value, repr(tok.value))
        if tok.type in LITERAL_KEYWORDS:
            self.advance()
            return Literal(pos, LITERAL_KEYWORDS[tok.type], tok.value)
        if self.at("-"):
            self.advance()
            num = self.current()
            if num.type == TK_INT:
                self.advance()
                return Literal(pos, -int(num.value), "-" + num.value)
            if num.type == TK_FLOAT:
                self.advance()
                return Literal(pos, -float(num.value), "-" + num.value)
            raise self.error("expected number after '-', got " + self._describe())
        if tok.type == TK_IDENT:
            return self.parse_path_shape()
        raise self.error("expected shape, got " + self._describe())

    def parse_path_shape(self) -> Shape:
        pos = self._pos()
        path = [self.expect_name("name").value]
        while self.at("."):
            self.advance()
            path.append(self.expect_name("name after '.'").value)
        if self.at("::"):
            raise self.error("use '.' to separate path components, not '::'")
        if self.at("("):
            return Variant(pos, path, self.parse_args())
        if self.at("{"):
            return Struct(pos, path, self.parse_fields())
        if len(path) == 1:
            return Binding(pos, path[0])
        return Variant(pos, path, None)

    def parse_args(self) -> list[Shape]:
        self.expect("(")
        args: list[Shape] = []
        while not self.at(")"):
            args.append(self.parse_shape())
            if self.at(")"):
                break
            self.expect(",")
        self.expect(")")
        return args

    def parse_fields(self) -> list[FieldShape]:
        self.expect("{")
        fields: list[FieldShape] = []
        seen: set[str] = set()
        while not self.at("}"):
            pos = self._pos()
            name_tok = self.expect_name("field name")
            if name_tok.value in seen:
                raise ParseError(
                    "duplicate field '" + name_tok.value + "'", pos.line, pos.col
                )
            seen.add(name_tok.value)
            if self.at(":"):
                self.advance()
                shape = self.parse_shape()
            else:
                shape = Binding(pos, name_tok.value)
            fields.append(FieldShape(pos, name_tok.value, shape))
            if self.at("}"):
                break
            self.expect(",")
        self.expect("}")
        return fields


def parse_shape(tokens: list[Token]) -> Shape:
    """Parse a complete token list (without EOF) as exactly one shape."""
    parser = Parser(tokens + [eof_after(tokens)])
    shape = parser.parse_shape()
    parser.expect_eof()
    return shape

"""Bijection tokenizer — lexes declaration source into a flat token list."""

from __future__ import annotations


# Token type constants
TK_INT = "INT"
TK_FLOAT = "FLOAT"
TK_STRING = "STRING"
TK_IDENT = "IDENT"
TK_OP = "OP"
TK_EOF = "EOF"

# Literal keywords; each lexes with its own word as the token type
KEYWORDS: set[str] = {
    "True",
    "False",
    "None",
}

# Multi-character operators, sorted by length descending for greedy matching
MULTI_OPS: list[str] = [
    "=>",
    "->",
    "==",
    "!=",
    "<=",
    ">=",
    "::",
]

SINGLE_OPS: set[str] = {
    "+",
    "-",
    "*",
    "/",
    "%",
    "&",
    "|",
    "^",
    "~",
    "!",
    "<",
    ">",
    "=",
    "(",
    ")",
    "[",
    "]",
    "{",
    "}",
    ",",
    ":",
    ";",
    ".",
    "?",
    "@",
}

ESCAPE_MAP: dict[str, str] = {
    "n": "\n",
    "r": "\r",
    "t": "\t",
    "\\": "\\",
    '"': '"',
    "'": "'",
    "0": "\0",
}


class TokenizeError(Exception):
    """Error during tokenization."""

    def __init__(self, msg: str, line: int, col: int):
        self.msg: str = msg
        self.line: int = line
        self.col: int = col
        super().__init__(msg + " at line " + str(line) + " col " + str(col))


class Token:
    """A token with type, value, position, and source offsets."""

    def __init__(
        self, type_: str, value: str, line: int, col: int, offset: int, end: int
    ):
        self.type: str = type_
        self.value: str = value
        self.line: int = line
        self.col: int = col
        self.offset: int = offset
        self.end: int = end
        self.end_line: int = line
        self.end_col: int = col + (end - offset)

    def __repr__(self) -> str:
        return (
            "Token("
            + self.type
            + ", "
            + repr(self.value)
            + ", "
            + str(self.line)
            + ", "
            + str(self.col)
            + ")"
        )


def _is_digit(c: str) -> bool:
    return c >= "0" and c <= "9"


def _is_hex(c: str) -> bool:
    return (c >= "0" and c <= "9") or (c >= "a" and c <= "f") or (c >= "A" and c <= "F")


def _is_alpha(c: str) -> bool:
    return (c >= "a" and c <= "z") or (c >= "A" and c <= "Z") or c == "_"


def _is_alnum(c: str) -> bool:
    return _is_alpha(c) or _is_digit(c)


def _hex_val(c: str) -> int:
    if c >= "0" and c <= "9":
        return ord(c) - ord("0")
    if c >= "a" and c <= "f":
        return ord(c) - ord("a") + 10
    return ord(c) - ord("A") + 10


def _process_escape(src: str, pos: int, line: int, col: int) -> tuple[str, int]:
    """Process escape after backslash. Returns (resolved_char, new_pos)."""
    if pos >= len(src):
        raise TokenizeError("unexpected end of string in escape", line, col)
    c = src[pos]
    if c in ESCAPE_MAP:
        return ESCAPE_MAP[c], pos + 1
    if c == "x":
        if pos + 2 >= len(src):
            raise TokenizeError("incomplete \\x escape", line, col)
        h1 = src[pos + 1]
        h2 = src[pos + 2]
        if not _is_hex(h1) or not _is_hex(h2):
            raise TokenizeError("invalid hex escape", line, col)
        val = _hex_val(h1) * 16 + _hex_val(h2)
        return chr(val), pos + 3
    raise TokenizeError("invalid escape: \\" + c, line, col)


def tokenize(source: str) -> list[Token]:
    """Tokenize declaration source into a flat list ending with TK_EOF."""
    tokens: list[Token] = []
    pos = 0
    line = 1
    col = 1
    length = len(source)

    while pos < length:
        c = source[pos]

        # Newlines
        if c == "\n":
            pos += 1
            line += 1
            col = 1
            continue

        # Whitespace
        if c == " " or c == "\t" or c == "\r":
            pos += 1
            col += 1
            continue

        # Line comment: #
        if c == "#":
            while pos < length and source[pos] != "\n":
                pos += 1
            continue

        start_pos = pos
        start_line = line
        start_col = col

        # Number: int or float (sign is a separate operator token)
        if _is_digit(c):
            while pos < length and (_is_digit(source[pos]) or source[pos] == "_"):
                pos += 1
                col += 1
            is_float = False
            if pos < length and source[pos] == ".":
                if pos + 1 < length and _is_digit(source[pos + 1]):
                    is_float = True
                    pos += 1
                    col += 1
                    while pos < length and _is_digit(source[pos]):
                        pos += 1
                        col += 1
            if pos < length and (source[pos] == "e" or source[pos] == "E"):
                is_float = True
                pos += 1
                col += 1
                if pos < length and (source[pos] == "+" or source[pos] == "-"):
                    pos += 1
                    col += 1
                if pos >= length or not _is_digit(source[pos]):
                    raise TokenizeError("invalid float exponent", start_line, start_col)
                while pos < length and _is_digit(source[pos]):
                    pos += 1
                    col += 1
            raw = source[start_pos:pos]
            if raw.endswith("_"):
                raise TokenizeError("invalid number literal", start_line, start_col)
            if is_float:
                tokens.append(
                    Token(TK_FLOAT, raw, start_line, start_col, start_pos, pos)
                )
            else:
                tokens.append(Token(TK_INT, raw, start_line, start_col, start_pos, pos))
            continue

        # String literal: "..." or '...'
        if c == '"' or c == "'":
            quote = c
            pos += 1
            col += 1
            chars: list[str] = []
            while pos < length and source[pos] != quote:
                if source[pos] == "\n":
                    raise TokenizeError(
                        "unterminated string literal", start_line, start_col
                    )
                if source[pos] == "\\":
                    pos += 1
                    col += 1
                    ch, pos = _process_escape(source, pos, start_line, col)
                    chars.append(ch)
                else:
                    chars.append(source[pos])
                    pos += 1
                col += 1
            if pos >= length:
                raise TokenizeError(
                    "unterminated string literal", start_line, start_col
                )
            pos += 1  # skip closing quote
            col += 1
            tokens.append(
                Token(TK_STRING, "".join(chars), start_line, start_col, start_pos, pos)
            )
            continue

        # Identifier or keyword
        if _is_alpha(c):
            while pos < length and _is_alnum(source[pos]):
                pos += 1
                col += 1
            word = source[start_pos:pos]
            if word in KEYWORDS:
                tokens.append(Token(word, word, start_line, start_col, start_pos, pos))
            else:
                tokens.append(
                    Token(TK_IDENT, word, start_line, start_col, start_pos, pos)
                )
            continue

        # Multi-character operators
        matched = False
        for op in MULTI_OPS:
            op_len = len(op)
            if pos + op_len <= length and source[pos : pos + op_len] == op:
                tokens.append(
                    Token(TK_OP, op, start_line, start_col, start_pos, pos + op_len)
                )
                pos += op_len
                col += op_len
                matched = True
                break
        if matched:
            continue

        # Single-character operators
        if c in SINGLE_OPS:
            tokens.append(Token(TK_OP, c, start_line, start_col, start_pos, pos + 1))
            pos += 1
            col += 1
            continue

        raise TokenizeError("unexpected character: " + repr(c), line, col)

    tokens.append(Token(TK_EOF, "", line, col, length, length))
    return tokens

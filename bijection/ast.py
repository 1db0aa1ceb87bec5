"""Bijection AST — token trees, shapes, declarations, and arms."""

from __future__ import annotations

from dataclasses import dataclass, field

from .tokens import Token


# ============================================================
# POSITION
# ============================================================


@dataclass
class Pos:
    """Source position, 1-indexed."""

    line: int
    col: int


@dataclass
class Span:
    """Start and end positions of a source fragment; end is exclusive."""

    start: Pos
    end: Pos


# ============================================================
# TOKEN TREES
# ============================================================


@dataclass
class Leaf:
    """A single token outside any bracket pair."""

    token: Token


@dataclass
class Group:
    """A bracketed group: open token, child trees, close token."""

    open: Token
    children: list[Tree]
    close: Token

    @property
    def delimiter(self) -> str:
        return self.open.value


Tree = Leaf | Group


def first_token(tree: Tree) -> Token:
    if isinstance(tree, Leaf):
        return tree.token
    return tree.open


def last_token(tree: Tree) -> Token:
    if isinstance(tree, Leaf):
        return tree.token
    return tree.close


def flatten(trees: list[Tree]) -> list[Token]:
    """Expand trees back into the flat token sequence they cover."""
    out: list[Token] = []
    for tree in trees:
        if isinstance(tree, Leaf):
            out.append(tree.token)
        else:
            out.append(tree.open)
            out.extend(flatten(tree.children))
            out.append(tree.close)
    return out


def trees_span(trees: list[Tree]) -> Span:
    start = first_token(trees[0])
    end = last_token(trees[-1])
    return Span(Pos(start.line, start.col), Pos(end.end_line, end.end_col))


def trees_text(source: str, trees: list[Tree]) -> str:
    """Source text covered by a non-empty run of trees, verbatim."""
    return source[first_token(trees[0]).offset : last_token(trees[-1]).end]


def is_op(tree: Tree, value: str) -> bool:
    return (
        isinstance(tree, Leaf) and tree.token.type == "OP" and tree.token.value == value
    )


def is_group(tree: Tree, delimiter: str) -> bool:
    return isinstance(tree, Group) and tree.delimiter == delimiter


# ============================================================
# TYPES
# ============================================================


@dataclass
class TypeRef:
    """A side type: dotted name with an optional [...] subscript."""

    pos: Pos
    path: list[str]
    subscript: str | None = None

    @property
    def name(self) -> str:
        return ".".join(self.path)

    @property
    def text(self) -> str:
        if self.subscript is None:
            return self.name
        return self.name + "[" + self.subscript + "]"


# ============================================================
# SHAPES
# ============================================================


@dataclass
class Shape:
    """Base for all shapes. Every shape is both a pattern and an expression."""

    pos: Pos


@dataclass
class Literal(Shape):
    """1, -2.5, "s", True, False, None. text is the canonical Python spelling."""

    value: object
    text: str


@dataclass
class Binding(Shape):
    """Bare name; captures as a pattern, reads the capture as an expression."""

    name: str

    @property
    def is_wildcard(self) -> bool:
        return self.name == "_"


@dataclass
class Variant(Shape):
    """Color.Red (args None) or Shape.Circle(r) / Point(x, y)."""

    path: list[str]
    args: list[Shape] | None = None

    @property
    def name(self) -> str:
        return ".".join(self.path)


@dataclass
class FieldShape:
    """name: shape inside a struct shape."""

    pos: Pos
    name: str
    shape: Shape


@dataclass
class Struct(Shape):
    """Point { x: a, y } — keyword fields."""

    path: list[str]
    fields: list[FieldShape]

    @property
    def name(self) -> str:
        return ".".join(self.path)


@dataclass
class Alternation(Shape):
    """A | B — a valid pattern, never a valid constructor."""

    options: list[Shape]


def children(shape: Shape) -> list[Shape]:
    if isinstance(shape, Variant):
        return list(shape.args) if shape.args is not None else []
    if isinstance(shape, Struct):
        return [f.shape for f in shape.fields]
    if isinstance(shape, Alternation):
        return list(shape.options)
    return []


def bindings(shape: Shape) -> list[Binding]:
    """All binding nodes of a shape, in source order, duplicates included."""
    if isinstance(shape, Binding):
        return [shape]
    out: list[Binding] = []
    for child in children(shape):
        out.extend(bindings(child))
    return out


def find_alternation(shape: Shape) -> Alternation | None:
    if isinstance(shape, Alternation):
        return shape
    for child in children(shape):
        found = find_alternation(child)
        if found is not None:
            return found
    return None


# ============================================================
# DECLARATION
# ============================================================


@dataclass
class Declaration:
    """Two side types and the raw clause trees found inside the block."""

    side_a_type: TypeRef
    side_b_type: TypeRef
    clauses: list[Tree]
    source: str = ""


@dataclass
class Clause:
    """left => right, as authored."""

    index: int
    left: Shape
    right: Shape
    span: Span


# ============================================================
# ARMS
# ============================================================


@dataclass
class Arm:
    """One dispatch entry: match `pattern`, produce `value`."""

    pattern: Shape
    value: Shape
    clause: int


class ArmListClosedError(Exception):
    """Raised when an arm is appended to a closed arm-list."""


@dataclass
class ArmList:
    """Ordered arms for one direction; built incrementally, then closed."""

    source_type: TypeRef
    target_type: TypeRef
    arms: list[Arm] = field(default_factory=list)
    closed: bool = False

    def append(self, arm: Arm) -> None:
        if self.closed:
            raise ArmListClosedError(
                "arm-list " + self.source_type.text + " -> " + self.target_type.text
                + " is closed"
            )
        self.arms.append(arm)

    def close(self) -> None:
        self.closed = True

    def __len__(self) -> int:
        return len(self.arms)

    def __iter__(self):
        return iter(self.arms)

    def __getitem__(self, i: int) -> Arm:
        return self.arms[i]


@dataclass
class Normalized:
    """The pair of arm-lists produced from one declaration."""

    declaration: Declaration
    forward: ArmList
    backward: ArmList

"""Emitter tests: generated Python is checked by compiling and running it."""

import pytest

from conftest import make_namespace

from bijection import (
    EmitOptions,
    compile_declaration,
    extract_pragmas,
    format_declaration,
    generate,
    parse,
)
from bijection.ast import ArmList, Pos, TypeRef
from bijection.emit import emit_functions, snake_name, to_source


def run_generated(source: str, options: EmitOptions | None = None) -> dict[str, object]:
    """Generate code for source and execute it in a fresh namespace."""
    code = generate(source, options)
    ns = make_namespace()
    exec(compile(code, "<generated>", "exec"), ns)
    return ns


FOO_BAR = "Foo, Bar, { Foo.A => Bar.X, Foo.B => Bar.Y }"


def test_two_variant_source():
    code = generate(FOO_BAR)
    assert code == (
        "def foo_to_bar(value: Foo) -> Bar:\n"
        "    match value:\n"
        "        case Foo.A:\n"
        "            return Bar.X\n"
        "        case Foo.B:\n"
        "            return Bar.Y\n"
        "    raise ValueError('no bijection arm matches Foo value: ' + repr(value))\n"
        "\n"
        "\n"
        "Bar.from_foo = staticmethod(foo_to_bar)\n"
        "\n"
        "\n"
        "def bar_to_foo(value: Bar) -> Foo:\n"
        "    match value:\n"
        "        case Bar.X:\n"
        "            return Foo.A\n"
        "        case Bar.Y:\n"
        "            return Foo.B\n"
        "    raise ValueError('no bijection arm matches Bar value: ' + repr(value))\n"
        "\n"
        "\n"
        "Foo.from_bar = staticmethod(bar_to_foo)\n"
    )


def test_two_variant_round_trip():
    ns = run_generated(FOO_BAR)
    foo, bar = ns["Foo"], ns["Bar"]
    assert ns["foo_to_bar"](foo.A) is bar.X
    assert ns["foo_to_bar"](foo.B) is bar.Y
    assert ns["bar_to_foo"](bar.X) is foo.A
    assert ns["bar_to_foo"](ns["foo_to_bar"](foo.A)) is foo.A


def test_attached_to_types():
    ns = run_generated(FOO_BAR)
    foo, bar = ns["Foo"], ns["Bar"]
    assert bar.from_foo(foo.B) is bar.Y
    assert foo.from_bar(bar.Y) is foo.B


def test_flipped_point_is_its_own_inverse():
    ns = run_generated(
        "Point, PointFlipped, { Point { x, y } => PointFlipped { y: x, x: y } }"
    )
    point = ns["Point"](x=5, y=10)
    flipped = ns["point_to_point_flipped"](point)
    assert (flipped.x, flipped.y) == (10, 5)
    assert ns["point_flipped_to_point"](flipped) == point


def test_class_patterns_with_positional_fields():
    ns = run_generated(
        "object, object, {"
        " Figure.Circle(r) => Round(r),"
        " Figure.Square(s) => Boxy { s },"
        " }",
        EmitOptions(attach=False),
    )
    circle = ns["Figure"].Circle(2.0)
    assert ns["object_to_object"](circle) == ns["Round"](2.0)
    assert ns["object_to_object_back"](ns["Boxy"](s=3.0)) == ns["Figure"].Square(3.0)


def test_literal_clauses():
    ns = run_generated(
        "int, str, { 1 => 'one', 2 => \"two\", -3 => 'minus three' }",
        EmitOptions(attach=False),
    )
    assert ns["int_to_str"](2) == "two"
    assert ns["int_to_str"](-3) == "minus three"
    assert ns["str_to_int"]("one") == 1


def test_first_matching_arm_wins():
    ns = run_generated(
        "Point, PointFlipped, {"
        " Point { x: 0, y } => PointFlipped { x: 100, y },"
        " Point { x, y } => PointFlipped { x, y },"
        " }"
    )
    result = ns["point_to_point_flipped"](ns["Point"](0, 7))
    assert (result.x, result.y) == (100, 7)


def test_unmatched_value_raises():
    ns = run_generated("Foo, Bar, { Foo.A => Bar.X }")
    with pytest.raises(ValueError) as exc:
        ns["foo_to_bar"](ns["Foo"].B)
    assert "no bijection arm matches Foo value" in str(exc.value)


def test_empty_declaration_compiles():
    code = generate("Void, Never, {}")
    assert "match" not in code
    ns = make_namespace()
    exec(compile(code, "<generated>", "exec"), ns)
    with pytest.raises(ValueError):
        ns["void_to_never"](None)


def test_capture_before_later_arms_is_left_to_the_compiler():
    code = generate("int, str, { n => n, 1 => 'one' }")
    assert "case n:" in code
    with pytest.raises(SyntaxError):
        compile(code, "<generated>", "exec")


def test_no_attach_option():
    code = generate(FOO_BAR, EmitOptions(attach=False))
    assert "staticmethod" not in code


def test_function_name_overrides():
    code = generate(FOO_BAR, EmitOptions(forward_name="to_bar", backward_name="to_foo"))
    assert "def to_bar(value: Foo) -> Bar:" in code
    assert "Bar.from_foo = staticmethod(to_bar)" in code
    assert "def to_foo(value: Bar) -> Foo:" in code


def test_subscripted_types_are_not_attached():
    code = generate("list[int], Foo, { None => Foo.A }")
    assert "def list_int_to_foo(value: list[int]) -> Foo:" in code
    assert "Foo.from_list_int = staticmethod(list_int_to_foo)" in code
    assert "def foo_to_list_int(value: Foo) -> list[int]:" in code
    assert "list[int].from_foo" not in code


def test_same_type_attaches_under_distinct_names():
    code = generate("Foo, Foo, { Foo.A => Foo.B, Foo.B => Foo.A }")
    assert "def foo_to_foo(value: Foo) -> Foo:" in code
    assert "def foo_to_foo_back(value: Foo) -> Foo:" in code
    assert "Foo.from_foo = staticmethod(foo_to_foo)" in code
    assert "Foo.from_foo_back = staticmethod(foo_to_foo_back)" in code
    ns = make_namespace()
    exec(compile(code, "<generated>", "exec"), ns)
    foo = ns["Foo"]
    assert foo.from_foo is ns["foo_to_foo"]
    assert foo.from_foo_back is ns["foo_to_foo_back"]


def test_builtin_types_are_not_attached():
    code = generate("int, Foo, { 1 => Foo.A, 2 => Foo.B }")
    assert "Foo.from_int = staticmethod(int_to_foo)" in code
    assert "int.from_foo" not in code
    ns = make_namespace()
    exec(compile(code, "<generated>", "exec"), ns)
    assert ns["Foo"].from_int(2) is ns["Foo"].B
    assert ns["foo_to_int"](ns["Foo"].A) == 1


def test_pragmas():
    source = "# pragma no-attach\n# pragma forward-name enc\nFoo, Bar, {}\n"
    options = extract_pragmas(source)
    assert options.attach is False
    assert options.forward_name == "enc"
    assert options.backward_name is None
    code = generate(source)
    assert "def enc(value: Foo) -> Bar:" in code
    assert "staticmethod" not in code


def test_pragmas_stop_at_first_code_line():
    options = extract_pragmas("Foo, Bar, {}\n# pragma no-attach\n")
    assert options.attach is True


@pytest.mark.parametrize(
    "path,subscript,expected",
    [
        (["Foo"], None, "foo"),
        (["HttpStatus"], None, "http_status"),
        (["HTTPStatus"], None, "http_status"),
        (["pkg", "PointFlipped"], None, "point_flipped"),
        (["Vec2"], None, "vec2"),
        (["list"], "int", "list_int"),
        (["dict"], "str, int", "dict_str_int"),
    ],
)
def test_snake_name(path: list[str], subscript: str | None, expected: str):
    assert snake_name(TypeRef(Pos(1, 1), path, subscript)) == expected


def test_emit_requires_closed_arm_lists():
    decl = parse("Foo, Bar, {}")
    forward = ArmList(decl.side_a_type, decl.side_b_type)
    backward = ArmList(decl.side_b_type, decl.side_a_type)
    with pytest.raises(ValueError):
        emit_functions(forward, backward, decl.side_a_type, decl.side_b_type)


def test_emit_functions_returns_both_definitions():
    result = compile_declaration(FOO_BAR)
    decl = result.declaration
    conversions = emit_functions(
        result.forward, result.backward, decl.side_a_type, decl.side_b_type
    )
    assert conversions.forward.name == "foo_to_bar"
    assert conversions.backward.name == "bar_to_foo"
    assert conversions.forward.attach == "Bar.from_foo = staticmethod(foo_to_bar)"


def test_formatter_canonical_output():
    source = "Point,PointFlipped,{Point{x,y}=>PointFlipped{y:x,x:y},Foo.A=>Bar(1,'a')}"
    assert to_source(parse(source)) == (
        "Point, PointFlipped, {\n"
        "    Point { x, y } => PointFlipped { y: x, x: y },\n"
        "    Foo.A => Bar(1, 'a'),\n"
        "}\n"
    )


def test_formatter_keeps_leading_comments():
    source = (
        "# pragma no-attach\n"
        "\n"
        "  # pragma forward-name enc\n"
        "Foo,Bar,{Foo.A=>Bar.X} # trailing\n"
    )
    formatted = format_declaration(source)
    assert formatted == (
        "# pragma no-attach\n"
        "# pragma forward-name enc\n"
        "Foo, Bar, {\n"
        "    Foo.A => Bar.X,\n"
        "}\n"
    )
    assert extract_pragmas(formatted) == extract_pragmas(source)

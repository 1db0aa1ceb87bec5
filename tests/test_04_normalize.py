"""Clause normalizer tests: arity, alignment, order."""

import logging

import pytest

from bijection import DeclarationError, compile_declaration, parse
from bijection.ast import Arm, ArmList, ArmListClosedError, Literal, Pos
from bijection.emit import render_shape
from bijection.normalize import normalize


def arms(arm_list) -> list[tuple[str, str, int]]:
    return [(render_shape(a.pattern), render_shape(a.value), a.clause) for a in arm_list]


def test_two_variants():
    result = compile_declaration("Foo, Bar, { Foo.A => Bar.X, Foo.B => Bar.Y }")
    assert arms(result.forward) == [("Foo.A", "Bar.X", 0), ("Foo.B", "Bar.Y", 1)]
    assert arms(result.backward) == [("Bar.X", "Foo.A", 0), ("Bar.Y", "Foo.B", 1)]


def test_arm_lists_carry_direction_types():
    result = compile_declaration("Foo, Bar, { Foo.A => Bar.X }")
    assert result.forward.source_type.text == "Foo"
    assert result.forward.target_type.text == "Bar"
    assert result.backward.source_type.text == "Bar"
    assert result.backward.target_type.text == "Foo"


@pytest.mark.parametrize("count", [0, 1, 2, 7])
def test_arity_preserved(count: int):
    clauses = ", ".join(f"Foo.A{i} => Bar.X{i}" for i in range(count))
    result = compile_declaration("Foo, Bar, { " + clauses + " }")
    assert len(result.forward) == len(result.backward) == count
    for i in range(count):
        assert result.forward[i].clause == result.backward[i].clause == i
        assert result.forward[i].pattern is result.backward[i].value
        assert result.forward[i].value is result.backward[i].pattern


def test_empty_declaration_closes_both_lists():
    result = compile_declaration("Void, Never, {}")
    assert len(result.forward) == 0
    assert len(result.backward) == 0
    assert result.forward.closed and result.backward.closed


def test_trailing_comma_adds_no_clause():
    with_comma = compile_declaration("Foo, Bar, { Foo.A => Bar.X, Foo.B => Bar.Y, }")
    without = compile_declaration("Foo, Bar, { Foo.A => Bar.X, Foo.B => Bar.Y }")
    assert arms(with_comma.forward) == arms(without.forward)


def test_commas_inside_shapes_do_not_split_clauses():
    result = compile_declaration(
        "Point, Pair, { Point { x, y } => Pair(x, y), Point(0, 0) => Pair.ORIGIN }"
    )
    assert len(result.forward) == 2
    assert arms(result.backward)[0] == ("Pair(x, y)", "Point(x=x, y=y)", 0)


def test_authored_order_is_kept():
    result = compile_declaration(
        "Num, Word, { 1 => 'one', n => Word.Other(n), 2 => 'two' }"
    )
    assert [a[0] for a in arms(result.forward)] == ["1", "n", "2"]
    assert [a[0] for a in arms(result.backward)] == ["'one'", "Word.Other(n)", "'two'"]


def test_self_symmetric_clause():
    result = compile_declaration(
        "Point, PointFlipped, { Point { x, y } => PointFlipped { y: x, x: y } }"
    )
    assert arms(result.forward) == [("Point(x=x, y=y)", "PointFlipped(y=x, x=y)", 0)]
    assert arms(result.backward) == [("PointFlipped(y=x, x=y)", "Point(x=x, y=y)", 0)]


def test_normalize_fresh_lists_each_call():
    decl = parse("Foo, Bar, { Foo.A => Bar.X }")
    first = normalize(decl)
    second = normalize(decl)
    assert first.forward is not second.forward
    assert arms(first.forward) == arms(second.forward)


def test_failure_yields_no_partial_result():
    decl = parse("Foo, Bar, { Foo.A => Bar.X, Foo.B = Bar.Y, Foo.C => Bar.Z }")
    with pytest.raises(DeclarationError) as exc:
        normalize(decl)
    assert "Foo.B = Bar.Y, Foo.C => Bar.Z" in exc.value.diagnostic.fragment


def test_closed_arm_list_rejects_append():
    decl = parse("Foo, Bar, {}")
    arm_list = ArmList(decl.side_a_type, decl.side_b_type)
    lit = Literal(Pos(1, 1), 1, "1")
    arm_list.append(Arm(lit, lit, 0))
    arm_list.close()
    with pytest.raises(ArmListClosedError):
        arm_list.append(Arm(lit, lit, 1))


def test_trace_logging(caplog):
    with caplog.at_level(logging.DEBUG, logger="bijection.normalize"):
        compile_declaration("Foo, Bar, { Foo.A => Bar.X }")
    messages = [r.getMessage() for r in caplog.records]
    assert "clause 0: Foo.A => Bar.X" in messages
    assert "normalized Foo <-> Bar: 1 clause(s)" in messages

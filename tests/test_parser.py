from __future__ import annotations

import random

import pytest

from lexer import DIGITS, LETTERS, URMParseError
from parser import Copy, Increment, JumpIfEqual, SourceLocation, Zero, parse_line, parse_lines

LOC = SourceLocation(file="<string>", line=0, column=0, statement="")


def test_parse_each_opcode():
    assert parse_line(0, "a: Z(0)") == Zero(LOC, "a", 0)
    assert parse_line(0, "b: S(12)") == Increment(LOC, "b", 12)
    assert parse_line(0, "c: T(1, 22)") == Copy(LOC, "c", 1, 22)
    assert parse_line(0, "loop: I(0, 1, end.2)") == JumpIfEqual(LOC, "loop", 0, 1, "end.2")


def test_spaces_are_skipped():
    op = parse_line(0, "  l bl :  T ( 1 , 2 2 )")
    assert op == Copy(LOC, "lbl", 1, 22)


def test_trailing_text_after_close_is_ignored():
    assert parse_line(0, "a: S(3) junk: here") == Increment(LOC, "a", 3)


def test_label_may_contain_digits_and_dots():
    op = parse_line(0, "1.step.2: Z(4)")
    assert op.label == "1.step.2"


def test_jump_target_may_be_numeric_looking():
    op = parse_line(0, "a: I(0, 1, 123)")
    assert isinstance(op, JumpIfEqual)
    assert op.target_label == "123"


def test_register_indices_are_unbounded():
    op = parse_line(0, "a: Z(123456789012345678901234567890)")
    assert op.register == 123456789012345678901234567890


def test_location_records_line_and_text():
    op = parse_lines(["a: Z(0)", "b: S(1)"], filename="prog.urm")[1]
    assert op.location.line == 1
    assert op.location.file == "prog.urm"
    assert op.location.statement == "b: S(1)"


def test_unknown_opcode_reports_its_column():
    with pytest.raises(URMParseError) as exc:
        parse_line(0, "x: Q(0)")
    assert exc.value.line == 0
    assert exc.value.column == 3
    assert str(exc.value) == "Line 1:4 -> Parser went into invalid state"


def test_caret_diagnostic():
    with pytest.raises(URMParseError) as exc:
        parse_line(0, "x: Q(0)")
    assert exc.value.caret() == "x: Q(0)\n   ^\n   here"


@pytest.mark.parametrize(
    "text, column",
    [
        ("", 0),
        (": Z(0)", 0),
        ("a_b: Z(0)", 1),
        ("a[: Z(0)", 1),
        ("a`: Z(0)", 1),
        ("a:\tZ(0)", 2),
        ("a: Z[0]", 4),
        ("a: Z()", 5),
        ("a: Z(0, 1)", 6),
        ("a: T(,1)", 5),
        ("a: T(0)", 6),
        ("a: T(0, x)", 8),
        ("a: T(0,, 1)", 7),
        ("a: I(0, 1, )", 11),
        ("a: I(0, 1, b, c)", 12),
        ("a: I(0, 1, b_c)", 12),
        ("a: T(0, 1", 8),
        ("a: Z", 3),
        ("a", 0),
    ],
)
def test_invalid_lines(text, column):
    with pytest.raises(URMParseError) as exc:
        parse_line(4, text)
    assert exc.value.line == 4
    assert exc.value.column == column
    assert exc.value.text == text


def test_parse_lines_reports_failing_line():
    with pytest.raises(URMParseError) as exc:
        parse_lines(["a: Z(0)", "b: S(0)", "c: X(0)"])
    assert exc.value.line == 2


def test_to_source_is_canonical():
    assert parse_line(0, "  a :S( 4 )").to_source() == "a: S(4)"
    assert str(parse_line(0, "j:I(1,2,k)")) == "j: I(1, 2, k)"


@pytest.mark.parametrize(
    "text",
    [
        "a: Z(0)",
        "  b1 : S ( 17 )  trailing",
        "copy.x: T(3,4)",
        "j: I( 0 ,1 , copy.x )",
    ],
)
def test_round_trip(text):
    op = parse_line(0, text)
    assert parse_line(0, op.to_source()) == op


def test_registers_and_arguments():
    op = parse_line(0, "j: I(5, 6, k)")
    assert op.arguments == (5, 6, "k")
    assert op.registers == (5, 6)
    assert parse_line(0, "c: T(1, 2)").registers == (1, 2)


def _random_label(rng: random.Random) -> str:
    return "".join(rng.choice(LETTERS + DIGITS + ".") for _ in range(rng.randint(1, 8)))


def _random_index(rng: random.Random) -> int:
    return rng.choice([0, rng.randint(0, 99), rng.randint(0, 10 ** 30)])


@pytest.mark.parametrize("seed", range(5))
def test_round_trip_generated(seed):
    rng = random.Random(seed)
    for op_class in (Zero, Increment, Copy, JumpIfEqual):
        for _ in range(40):
            label = _random_label(rng)
            if op_class is JumpIfEqual:
                op = JumpIfEqual(LOC, label, _random_index(rng), _random_index(rng), _random_label(rng))
            elif op_class is Copy:
                op = Copy(LOC, label, _random_index(rng), _random_index(rng))
            else:
                op = op_class(LOC, label, _random_index(rng))
            text = op.to_source()
            assert parse_line(0, text) == op
            assert parse_line(0, text).to_source() == text

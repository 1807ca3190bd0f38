from __future__ import annotations

import pytest

from assembler import URMAssemblyError, URMDuplicateLabelError, URMUndefinedLabelError, assemble
from parser import parse_lines


def test_label_table_maps_labels_to_positions():
    program = assemble(parse_lines(["start: Z(0)", "mid: S(0)", "end: I(0, 0, start)"]))
    assert dict(program.labels) == {"start": 0, "mid": 1, "end": 2}
    assert program.target("end") == 2
    assert len(program) == 3
    assert [op.label for op in program.operations] == ["start", "mid", "end"]


def test_duplicate_label_is_rejected():
    with pytest.raises(URMDuplicateLabelError) as exc:
        assemble(parse_lines(["a: Z(0)", "b: S(0)", "a: S(1)"]))
    assert exc.value.line == 2
    assert exc.value.label == "a"
    assert str(exc.value) == "Line 3: Label 'a' redefinition"


def test_undefined_label_is_rejected():
    with pytest.raises(URMUndefinedLabelError) as exc:
        assemble(parse_lines(["a: Z(0)", "b: I(0, 1, nowhere)"]))
    assert exc.value.line == 1
    assert exc.value.label == "nowhere"
    assert str(exc.value) == "Line 2: Label 'nowhere' not defined"


def test_forward_references_resolve():
    program = assemble(parse_lines(["a: I(0, 0, z)", "z: Z(0)"]))
    assert program.target("z") == 1


def test_duplicates_are_checked_before_jump_targets():
    with pytest.raises(URMDuplicateLabelError):
        assemble(parse_lines(["a: I(0, 0, missing)", "a: Z(0)"]))


def test_assembly_errors_share_a_base():
    with pytest.raises(URMAssemblyError):
        assemble(parse_lines(["a: I(0, 0, b)"]))


def test_register_count_covers_every_operand():
    program = assemble(parse_lines(["a: Z(3)", "b: T(1, 7)", "c: I(2, 5, a)"]))
    assert program.register_count == 8
    assert sorted(set(program.referenced_registers())) == [1, 2, 3, 5, 7]


def test_empty_program():
    program = assemble([])
    assert len(program) == 0
    assert program.register_count == 0


def test_label_table_is_read_only():
    program = assemble(parse_lines(["a: Z(0)"]))
    with pytest.raises(TypeError):
        program.labels["b"] = 1  # type: ignore[index]

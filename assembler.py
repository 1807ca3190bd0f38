from __future__ import annotations
from dataclasses import dataclass
from types import MappingProxyType
from typing import Dict, Iterable, Mapping, Sequence, Tuple

from lexer import URMError
from parser import JumpIfEqual, Operation


class URMAssemblyError(URMError):
    """Raised when the label table cannot be built."""

    def __init__(self, message: str, *, line: int, label: str) -> None:
        super().__init__(f"Line {line + 1}: {message}")
        self.message = message
        self.line = line
        self.label = label


class URMDuplicateLabelError(URMAssemblyError):
    def __init__(self, *, line: int, label: str) -> None:
        super().__init__(f"Label '{label}' redefinition", line=line, label=label)


class URMUndefinedLabelError(URMAssemblyError):
    def __init__(self, *, line: int, label: str) -> None:
        super().__init__(f"Label '{label}' not defined", line=line, label=label)


@dataclass(frozen=True)
class Program:
    operations: Tuple[Operation, ...]
    labels: Mapping[str, int]
    register_count: int

    def __len__(self) -> int:
        return len(self.operations)

    def __getitem__(self, index: int) -> Operation:
        return self.operations[index]

    def target(self, label: str) -> int:
        return self.labels[label]

    def referenced_registers(self) -> Iterable[int]:
        for operation in self.operations:
            yield from operation.registers


def build_label_table(operations: Sequence[Operation]) -> Dict[str, int]:
    labels: Dict[str, int] = {}
    for index, operation in enumerate(operations):
        if operation.label in labels:
            raise URMDuplicateLabelError(line=index, label=operation.label)
        labels[operation.label] = index
    return labels


def check_jump_targets(operations: Sequence[Operation], labels: Mapping[str, int]) -> None:
    for index, operation in enumerate(operations):
        if isinstance(operation, JumpIfEqual) and operation.target_label not in labels:
            raise URMUndefinedLabelError(line=index, label=operation.target_label)


def assemble(operations: Sequence[Operation]) -> Program:
    """Resolve labels and size the register file for a parsed program.

    Labels are checked for duplicates in program order first, then every
    jump target is looked up. ``register_count`` covers every register index
    named by any instruction, whether or not execution ever reaches it.
    """
    labels = build_label_table(operations)
    check_jump_targets(operations, labels)
    highest = max((reg for op in operations for reg in op.registers), default=-1)
    return Program(operations=tuple(operations), labels=MappingProxyType(labels), register_count=highest + 1)

from __future__ import annotations
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Tuple, Type, Union

from lexer import URMParseError, is_digit, is_label_char, parse_natural


@dataclass(frozen=True)
class SourceLocation:
    file: str
    line: int
    column: int
    statement: str


@dataclass(frozen=True)
class Operation:
    location: SourceLocation = field(compare=False, repr=False)
    label: str

    OPCODE = ""
    ARITY = 0

    @property
    def arguments(self) -> Tuple[Union[int, str], ...]:
        raise NotImplementedError

    @property
    def registers(self) -> Tuple[int, ...]:
        return tuple(arg for arg in self.arguments if isinstance(arg, int))

    def to_source(self) -> str:
        args = ", ".join(str(arg) for arg in self.arguments)
        return f"{self.label}: {self.OPCODE}({args})"

    def __str__(self) -> str:
        return self.to_source()


@dataclass(frozen=True)
class Zero(Operation):
    register: int

    OPCODE = "Z"
    ARITY = 1

    @property
    def arguments(self) -> Tuple[Union[int, str], ...]:
        return (self.register,)


@dataclass(frozen=True)
class Increment(Operation):
    register: int

    OPCODE = "S"
    ARITY = 1

    @property
    def arguments(self) -> Tuple[Union[int, str], ...]:
        return (self.register,)


@dataclass(frozen=True)
class Copy(Operation):
    source: int
    target: int

    OPCODE = "T"
    ARITY = 2

    @property
    def arguments(self) -> Tuple[Union[int, str], ...]:
        return (self.source, self.target)


@dataclass(frozen=True)
class JumpIfEqual(Operation):
    left: int
    right: int
    target_label: str

    OPCODE = "I"
    ARITY = 3

    @property
    def arguments(self) -> Tuple[Union[int, str], ...]:
        return (self.left, self.right, self.target_label)


OPCODES: Dict[str, Type[Operation]] = {
    "Z": Zero,
    "S": Increment,
    "T": Copy,
    "I": JumpIfEqual,
}

STATE_LABEL = "LABEL"
STATE_FUNCTION = "FUNCTION"
STATE_OPEN_ARGUMENTS = "OPEN_ARGUMENTS"
STATE_ARGUMENT = "ARGUMENT"
STATE_END = "END"
STATE_INVALID = "INVALID"

# Only the first two argument slots hold register indices; the third is a label.
NUMERIC_SLOTS = 2


class LineParser:
    """Line-at-a-time state machine for ``label: F(args)`` instructions.

    Each character moves the machine between the states above. A line is
    accepted only once the closing parenthesis of a complete argument list
    has been read; anything after it is ignored.
    """

    def __init__(self, filename: str = "<string>") -> None:
        self.filename = filename

    def parse_lines(self, lines: Iterable[str]) -> List[Operation]:
        return [self.parse_line(index, text) for index, text in enumerate(lines)]

    def parse_line(self, index: int, text: str) -> Operation:
        state = STATE_LABEL
        label: List[str] = []
        op_class: Type[Operation] = Operation
        arity = 0
        slots: List[List[str]] = []
        current = 0

        for column, ch in enumerate(text):
            if state == STATE_LABEL:
                if ch == ":":
                    state = STATE_FUNCTION if label else STATE_INVALID
                elif ch == " ":
                    continue
                elif is_label_char(ch):
                    label.append(ch)
                else:
                    state = STATE_INVALID
            elif state == STATE_FUNCTION:
                if ch == " ":
                    continue
                if ch in OPCODES:
                    op_class = OPCODES[ch]
                    arity = op_class.ARITY
                    slots = [[] for _ in range(arity)]
                    state = STATE_OPEN_ARGUMENTS
                else:
                    state = STATE_INVALID
            elif state == STATE_OPEN_ARGUMENTS:
                if ch == " ":
                    continue
                state = STATE_ARGUMENT if ch == "(" else STATE_INVALID
            elif state == STATE_ARGUMENT:
                if ch == " ":
                    continue
                slot = slots[current]
                if current < NUMERIC_SLOTS:
                    if is_digit(ch):
                        slot.append(ch)
                    elif ch == ",":
                        if slot and current + 1 < arity:
                            current += 1
                        else:
                            state = STATE_INVALID
                    elif ch == ")":
                        state = STATE_END if (slot and current == arity - 1) else STATE_INVALID
                    else:
                        state = STATE_INVALID
                else:
                    if is_label_char(ch):
                        slot.append(ch)
                    elif ch == ")":
                        state = STATE_END if slot else STATE_INVALID
                    else:
                        state = STATE_INVALID

            if state == STATE_INVALID:
                raise self._invalid(index, column, text)
            if state == STATE_END:
                break

        if state != STATE_END:
            raise self._invalid(index, max(len(text) - 1, 0), text)

        location = SourceLocation(file=self.filename, line=index, column=0, statement=text)
        return self._build(op_class, location, "".join(label), ["".join(slot) for slot in slots])

    def _build(self, op_class: Type[Operation], location: SourceLocation, label: str, args: List[str]) -> Operation:
        numbers = [
            parse_natural(arg, what="register index", line=location.line)
            for arg in args[:NUMERIC_SLOTS]
        ]
        if op_class is JumpIfEqual:
            return JumpIfEqual(location, label, numbers[0], numbers[1], args[2])
        return op_class(location, label, *numbers)  # type: ignore[call-arg]

    def _invalid(self, index: int, column: int, text: str) -> URMParseError:
        return URMParseError("Parser went into invalid state", line=index, column=column, text=text)


def parse_line(index: int, text: str, filename: str = "<string>") -> Operation:
    return LineParser(filename).parse_line(index, text)


def parse_lines(lines: Iterable[str], filename: str = "<string>") -> List[Operation]:
    return LineParser(filename).parse_lines(lines)

from __future__ import annotations
import json
import os
from collections import deque
from dataclasses import dataclass
from typing import Any, Callable, Deque, Dict, Iterable, List, Optional, Sequence, Union

from lexer import SELECT_ALL, URMError, URMMalformedNumberError, parse_natural, split_source
from extensions import StepEvent, StepHooks
from parser import Copy, Increment, JumpIfEqual, LineParser, Operation, SourceLocation, Zero
from assembler import Program, assemble


class URMRuntimeError(URMError):
    """Raised for runtime faults."""

    def __init__(
        self,
        message: str,
        *,
        location: Optional[SourceLocation] = None,
        rewrite_rule: Optional[str] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.location = location
        self.rewrite_rule = rewrite_rule
        self.step_index: Optional[int] = None


class URMStepLimitError(URMRuntimeError):
    """Raised when a run exceeds the caller's instruction ceiling."""


class RegisterStore:
    """Growable bank of non-negative integer cells, all zero until written."""

    def __init__(self, cells: Optional[Iterable[int]] = None) -> None:
        self.cells: List[int] = []
        for value in cells or ():
            if value < 0:
                raise URMMalformedNumberError(str(value), what="register value")
            self.cells.append(value)

    @classmethod
    def from_values(cls, values: Iterable[Union[int, str]]) -> "RegisterStore":
        cells: List[int] = []
        for value in values:
            if isinstance(value, int):
                cells.append(value)
            else:
                cells.append(parse_natural(value, what="initial register value"))
        return cls(cells)

    def __len__(self) -> int:
        return len(self.cells)

    def ensure(self, index: int) -> None:
        missing = index + 1 - len(self.cells)
        if missing > 0:
            try:
                self.cells.extend([0] * missing)
            except (OverflowError, MemoryError):
                raise URMRuntimeError(f"Register {index} cannot be allocated", rewrite_rule="REGISTER") from None

    def read(self, index: int) -> int:
        try:
            return self.cells[index]
        except IndexError:
            raise URMRuntimeError(f"Register {index} accessed before allocation", rewrite_rule="REGISTER") from None

    def write(self, index: int, value: int) -> None:
        if value < 0:
            raise URMRuntimeError(f"Register {index} cannot hold negative value {value}", rewrite_rule="REGISTER")
        try:
            self.cells[index] = value
        except IndexError:
            raise URMRuntimeError(f"Register {index} accessed before allocation", rewrite_rule="REGISTER") from None

    def snapshot(self) -> List[int]:
        return list(self.cells)


@dataclass(frozen=True)
class OutputSelector:
    register: Optional[int] = None

    @classmethod
    def parse(cls, token: str) -> "OutputSelector":
        if token.strip() == SELECT_ALL:
            return cls(None)
        return cls(parse_natural(token, what="output selector"))

    @property
    def selects_all(self) -> bool:
        return self.register is None

    def select(self, registers: RegisterStore) -> Union[List[int], int]:
        if self.register is None:
            return registers.snapshot()
        registers.ensure(self.register)
        return registers.read(self.register)

    def render(self, registers: RegisterStore) -> str:
        selected = self.select(registers)
        if isinstance(selected, list):
            return "[" + ", ".join(str(value) for value in selected) + "]"
        return str(selected)


@dataclass
class StateEntry:
    step_index: int
    state_id: str
    source_location: Optional[SourceLocation]
    statement: Optional[str]
    register_snapshot: Optional[List[int]]
    rewrite_record: Optional[Dict[str, Any]]


class StateLogger:
    """Keeps the most recent execution steps.

    ``history`` bounds how many entries are retained so that long or
    non-terminating runs do not grow memory without limit; ``None`` keeps
    everything.
    """

    def __init__(self, verbose: bool, history: Optional[int] = None) -> None:
        self.verbose = verbose
        self.entries: Deque[StateEntry] = deque(maxlen=history)
        self.next_state_index = 0
        self.last_state_id = "seed"
        self.last_entry: Optional[StateEntry] = None

    def record(
        self,
        *,
        location: Optional[SourceLocation],
        statement: Optional[str],
        rewrite_record: Optional[Dict[str, Any]] = None,
        register_snapshot: Optional[List[int]] = None,
    ) -> StateEntry:
        rewrite = {} if rewrite_record is None else rewrite_record
        if "from_state_id" not in rewrite:
            rewrite["from_state_id"] = self.last_state_id
        step_index = self.next_state_index
        state_id = f"s_{step_index:06d}"
        rewrite["to_state_id"] = state_id
        entry = StateEntry(
            step_index=step_index,
            state_id=state_id,
            source_location=location,
            statement=statement,
            register_snapshot=register_snapshot,
            rewrite_record=rewrite,
        )
        self.entries.append(entry)
        self.last_entry = entry
        self.last_state_id = state_id
        self.next_state_index += 1
        return entry

    def format_entry(self, entry: StateEntry) -> str:
        rewrite = entry.rewrite_record or {}
        text = f"{entry.state_id} {rewrite.get('rule', '?')}"
        if "pointer" in rewrite:
            text += f" {rewrite['pointer']} -> {rewrite['next']}"
        if entry.statement:
            text += f"  {entry.statement}"
        if entry.register_snapshot is not None:
            text += f"  {entry.register_snapshot}"
        return text

    def dump(self) -> List[str]:
        return [self.format_entry(entry) for entry in self.entries]


class Interpreter:
    def __init__(
        self,
        *,
        source: str,
        filename: str,
        verbose: bool = False,
        hooks: Optional[StepHooks] = None,
        max_steps: Optional[int] = None,
        history: Optional[int] = 10000,
        output_sink: Optional[Callable[[str], None]] = None,
    ) -> None:
        if max_steps is not None and max_steps < 0:
            raise ValueError("max_steps must be non-negative")
        self.source = source
        self.filename = filename if filename == "<string>" else os.path.abspath(filename)
        self.verbose = verbose
        self.hooks = hooks or StepHooks()
        self.max_steps = max_steps
        self.output_sink = output_sink or (lambda text: print(text))
        self.logger = StateLogger(verbose=verbose, history=history)
        self.logger.record(location=None, statement="<seed>", rewrite_record={"rule": "SEED"})
        self.selector: Optional[OutputSelector] = None
        self.program: Optional[Program] = None
        self.registers: Optional[RegisterStore] = None
        self.steps = 0

    def parse(self) -> List[Operation]:
        selector_line, lines = split_source(self.source)
        self.selector = OutputSelector.parse(selector_line)
        return LineParser(self.filename).parse_lines(lines)

    def assemble(self) -> Program:
        self.program = assemble(self.parse())
        return self.program

    def run(self, initial_values: Sequence[Union[int, str]] = ()) -> RegisterStore:
        program = self.assemble()
        registers = RegisterStore.from_values(initial_values)
        self.execute(program, registers)
        return registers

    def run_and_output(self, initial_values: Sequence[Union[int, str]] = ()) -> str:
        registers = self.run(initial_values)
        text = self.selector.render(registers)  # type: ignore[union-attr]
        self.output_sink(text)
        return text

    def execute(self, program: Program, registers: RegisterStore) -> int:
        """Run ``program`` to completion against ``registers``.

        Every register named anywhere in the program is allocated before the
        first instruction runs. Returns the number of executed instructions.
        """
        self.program = program
        self.registers = registers
        try:
            self._allocate(program, registers)
            self._call_hook(self.hooks.start, program, registers)
            self._execute(program, registers)
        except URMRuntimeError as error:
            if error.step_index is None and self.logger.last_entry is not None:
                error.step_index = self.logger.last_entry.step_index
            self._call_hook(self.hooks.error, error)
            raise
        except Exception as exc:
            # Convert unexpected Python-level exceptions into URMRuntimeError
            # so the CLI can format them as tracebacks.
            last = self.logger.last_entry
            wrapped = URMRuntimeError(
                f"Internal interpreter error: {exc}",
                location=last.source_location if last else None,
                rewrite_rule="internal",
            )
            if last is not None:
                wrapped.step_index = last.step_index
            self._call_hook(self.hooks.error, wrapped)
            raise wrapped from exc
        self._call_hook(self.hooks.halt, registers, self.steps)
        return self.steps

    def _allocate(self, program: Program, registers: RegisterStore) -> None:
        for operation in program.operations:
            for index in operation.registers:
                try:
                    registers.ensure(index)
                except URMRuntimeError as error:
                    error.location = operation.location
                    raise

    def _execute(self, program: Program, registers: RegisterStore) -> None:
        pointer = 0
        end = len(program)
        max_steps = self.max_steps
        watch = self.hooks.watches_steps
        read = registers.read
        write = registers.write

        while pointer < end:
            operation = program[pointer]
            if max_steps is not None and self.steps >= max_steps:
                raise URMStepLimitError(
                    f"Step limit of {max_steps} reached",
                    location=operation.location,
                    rewrite_rule="LIMIT",
                )
            try:
                if isinstance(operation, Zero):
                    write(operation.register, 0)
                    next_pointer = pointer + 1
                elif isinstance(operation, Increment):
                    write(operation.register, read(operation.register) + 1)
                    next_pointer = pointer + 1
                elif isinstance(operation, Copy):
                    write(operation.target, read(operation.source))
                    next_pointer = pointer + 1
                elif isinstance(operation, JumpIfEqual):
                    if read(operation.left) == read(operation.right):
                        next_pointer = program.target(operation.target_label)
                    else:
                        next_pointer = pointer + 1
                else:
                    raise URMRuntimeError(f"Unknown operation {operation!r}", rewrite_rule="internal")
            except URMRuntimeError as error:
                if error.location is None:
                    error.location = operation.location
                raise
            self.steps += 1
            entry = self._log_step(operation, pointer, next_pointer)
            if watch:
                event = StepEvent(entry.step_index, pointer, next_pointer, operation, registers)
                self._call_hook(self.hooks.step, event)
            pointer = next_pointer

    def _call_hook(self, hook: Callable[..., None], *args: Any) -> None:
        try:
            hook(*args)
        except URMRuntimeError:
            raise
        except Exception as exc:
            last = self.logger.last_entry
            raise URMRuntimeError(
                f"Hook '{hook.__name__}' failed: {exc}",
                location=last.source_location if last else None,
                rewrite_rule="HOOK",
            ) from exc

    def _log_step(self, operation: Operation, pointer: int, next_pointer: int) -> StateEntry:
        snapshot = self.registers.snapshot() if (self.verbose and self.registers is not None) else None
        location = operation.location
        return self.logger.record(
            location=location,
            statement=location.statement,
            register_snapshot=snapshot,
            rewrite_record={"rule": operation.OPCODE, "pointer": pointer, "next": next_pointer},
        )


class TracebackFormatter:
    def __init__(self, interpreter: Interpreter) -> None:
        self.interpreter = interpreter

    def _location(self, error: URMRuntimeError) -> Optional[SourceLocation]:
        if error.location is not None:
            return error.location
        entry = self.interpreter.logger.last_entry
        return entry.source_location if entry else None

    def format_text(self, error: URMRuntimeError, verbose: bool) -> str:
        lines = ["Traceback (most recent call last):"]
        location = self._location(error)
        if location:
            lines.append(f"  File \"{location.file}\", instruction {location.line + 1}, in <program>")
            if location.statement:
                lines.append(f"    {location.statement}")
        else:
            lines.append("  <unknown location> in <program>")
        entry = self.interpreter.logger.last_entry
        if entry:
            lines.append(f"    State log index: {entry.step_index}  State id: {entry.state_id}")
            if verbose and self.interpreter.registers is not None:
                lines.append(f"    Registers: {self.interpreter.registers.snapshot()}")
        rule = error.rewrite_rule or "runtime"
        lines.append(f"{error.__class__.__name__}: {error.message} (rewrite: {rule})")
        return "\n".join(lines)

    def to_json(self, error: URMRuntimeError) -> str:
        frame: Dict[str, Any] = {"frame_index": 0, "name": "<program>"}
        location = self._location(error)
        if location:
            frame["source_location"] = {
                "file": location.file,
                "line": location.line,
                "statement": location.statement,
            }
        entry = self.interpreter.logger.last_entry
        if entry:
            frame["state_id"] = entry.state_id
            frame["step_index"] = entry.step_index
            if entry.register_snapshot is not None:
                frame["register_snapshot"] = entry.register_snapshot
            if entry.rewrite_record is not None:
                frame["rewrite_record"] = entry.rewrite_record
        data = {
            "error": {
                "type": error.__class__.__name__,
                "message": error.message,
                "failing_step_index": error.step_index,
            },
            "traceback": [frame],
        }
        return json.dumps(data, indent=2)

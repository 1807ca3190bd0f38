from __future__ import annotations

import importlib.util
import os
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Callable, Dict, List, Optional, Sequence, Tuple

from lexer import URMError
from parser import OPCODES, Operation

if TYPE_CHECKING:
    from assembler import Program
    from interpreter import RegisterStore


class URMExtensionError(URMError):
    pass


@dataclass(frozen=True)
class StepEvent:
    """One executed instruction, seen after its effect on the registers."""

    step_index: int
    pointer: int
    next_pointer: int
    operation: Operation
    registers: "RegisterStore"

    @property
    def jumped(self) -> bool:
        return self.next_pointer != self.pointer + 1


StepHandler = Callable[[StepEvent], None]


class StepHooks:
    """Callbacks attached to a run.

    Step handlers are registered per opcode letter (``Z``, ``S``, ``T``,
    ``I``) and receive a :class:`StepEvent`. Periodic handlers fire on every
    ``n``-th step. ``start``, ``halt`` and ``error`` handlers bracket the run.
    """

    def __init__(self) -> None:
        self._by_opcode: Dict[str, List[StepHandler]] = {letter: [] for letter in OPCODES}
        self._periodic: List[Tuple[int, StepHandler]] = []
        self._start: List[Callable[["Program", "RegisterStore"], None]] = []
        self._halt: List[Callable[["RegisterStore", int], None]] = []
        self._error: List[Callable[[Exception], None]] = []

    @property
    def watches_steps(self) -> bool:
        return bool(self._periodic) or any(self._by_opcode.values())

    def on_step(self, handler: Optional[StepHandler] = None, *, opcodes: str = "ZSTI"):
        unknown = [letter for letter in opcodes if letter not in OPCODES]
        if unknown or not opcodes:
            raise URMExtensionError(f"Unknown opcode letters '{opcodes}'")

        def deco(fn: StepHandler) -> StepHandler:
            for letter in set(opcodes):
                self._by_opcode[letter].append(fn)
            return fn

        return deco if handler is None else deco(handler)

    def every(self, steps: int, handler: Optional[StepHandler] = None):
        if steps <= 0:
            raise URMExtensionError("Step period must be >= 1")

        def deco(fn: StepHandler) -> StepHandler:
            self._periodic.append((steps, fn))
            return fn

        return deco if handler is None else deco(handler)

    def on_start(self, handler: Callable[["Program", "RegisterStore"], None]):
        self._start.append(handler)
        return handler

    def on_halt(self, handler: Callable[["RegisterStore", int], None]):
        self._halt.append(handler)
        return handler

    def on_error(self, handler: Callable[[Exception], None]):
        self._error.append(handler)
        return handler

    def start(self, program: "Program", registers: "RegisterStore") -> None:
        for handler in self._start:
            handler(program, registers)

    def step(self, event: StepEvent) -> None:
        for handler in self._by_opcode[event.operation.OPCODE]:
            handler(event)
        for period, handler in self._periodic:
            if event.step_index % period == 0:
                handler(event)

    def halt(self, registers: "RegisterStore", steps: int) -> None:
        for handler in self._halt:
            handler(registers, steps)

    def error(self, error: Exception) -> None:
        for handler in self._error:
            handler(error)


def _import_hook_file(path: str, position: int) -> Any:
    if not os.path.isfile(path):
        raise URMExtensionError(f"Hook module not found: {path}")
    stem = os.path.splitext(os.path.basename(path))[0]
    safe = "".join(ch if ch.isalnum() else "_" for ch in stem)
    spec = importlib.util.spec_from_file_location(f"urm_hooks_{position}_{safe}", path)
    if spec is None or spec.loader is None:
        raise URMExtensionError(f"Cannot import hook module: {path}")
    module = importlib.util.module_from_spec(spec)
    spec.loader.exec_module(module)  # type: ignore[union-attr]
    return module


def load_hooks(paths: Sequence[str], hooks: Optional[StepHooks] = None) -> StepHooks:
    """Import each hook file and let its ``register(hooks)`` attach handlers."""
    hooks = hooks or StepHooks()
    for position, path in enumerate(os.path.abspath(p) for p in paths):
        module = _import_hook_file(path, position)
        register = getattr(module, "register", None)
        if not callable(register):
            raise URMExtensionError(f"Hook module {path} must define register(hooks)")
        register(hooks)
    return hooks

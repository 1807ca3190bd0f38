from __future__ import annotations

import sys
from pathlib import Path
from typing import List, Sequence, Tuple, Union

import pytest


def pytest_configure() -> None:
    project_root = Path(__file__).resolve().parents[1]
    sys.path.insert(0, str(project_root))


@pytest.fixture()
def run_program():
    from interpreter import Interpreter, RegisterStore

    def _run(source: str, values: Sequence[Union[int, str]] = (), **kwargs) -> Tuple[Interpreter, RegisterStore, List[str]]:
        printed: List[str] = []
        interpreter = Interpreter(source=source, filename="<string>", output_sink=printed.append, **kwargs)
        interpreter.run_and_output(values)
        assert interpreter.registers is not None
        return interpreter, interpreter.registers, printed

    return _run

from __future__ import annotations
from typing import List, Optional, Tuple


class URMError(Exception):
    """Base class for interpreter errors."""


class URMParseError(URMError):
    """Raised when a line cannot be parsed."""

    def __init__(self, message: str, *, line: int, column: int, text: str) -> None:
        super().__init__(f"Line {line + 1}:{column + 1} -> {message}")
        self.message = message
        self.line = line
        self.column = column
        self.text = text

    def caret(self) -> str:
        pad = " " * self.column
        return f"{self.text}\n{pad}^\n{pad}here"


class URMMalformedNumberError(URMError):
    """Raised when a numeric token is not a base-10 non-negative integer."""

    def __init__(self, token: str, *, what: str = "number", line: Optional[int] = None) -> None:
        prefix = f"Line {line + 1}: " if line is not None else ""
        super().__init__(f"{prefix}Malformed {what} '{token}'")
        self.token = token
        self.line = line


DIGITS = "0123456789"
LETTERS = "abcdefghijklmnopqrstuvwxyzABCDEFGHIJKLMNOPQRSTUVWXYZ"
SELECT_ALL = "_"


def is_digit(ch: str) -> bool:
    return ch != "" and ch in DIGITS


def is_letter(ch: str) -> bool:
    return ch != "" and ch in LETTERS


def is_label_char(ch: str) -> bool:
    return is_letter(ch) or is_digit(ch) or ch == "."


def parse_natural(token: str, *, what: str = "number", line: Optional[int] = None) -> int:
    text = token.strip()
    if text == "" or not all(is_digit(ch) for ch in text):
        raise URMMalformedNumberError(token, what=what, line=line)
    return int(text)


def split_source(text: str) -> Tuple[str, List[str]]:
    """Split program text into the output selector line and instruction lines."""
    lines = text.splitlines()
    if not lines:
        raise URMParseError("Program is empty; expected an output selector line", line=0, column=0, text="")
    return lines[0], lines[1:]

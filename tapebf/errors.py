from __future__ import annotations

from typing import Optional


class ExecutionError(RuntimeError):
    """Base class for conditions that stop a Brainfuck program."""

    kind = "execution_error"


class MismatchedBraces(ExecutionError):
    """Raised before execution when ``[`` and ``]`` do not pair up."""

    kind = "mismatched_braces"

    def __init__(self, message: str, position: Optional[int] = None) -> None:
        super().__init__(message)
        self.position = position


class Segfault(ExecutionError):
    """Raised when ``<`` would move the pointer left of cell 0."""

    kind = "segfault"

    def __init__(self, message: str = "Pointer moved before start of tape.", pc: Optional[int] = None) -> None:
        super().__init__(message)
        self.pc = pc


class InputExhausted(ExecutionError):
    """Raised when ``,`` finds no byte left on the input stream."""

    kind = "input_exhausted"

    def __init__(self, message: str = "Input stream exhausted.", pc: Optional[int] = None) -> None:
        super().__init__(message)
        self.pc = pc


class StepLimitExceeded(ExecutionError):
    """Raised when Brainfuck execution exceeds the configured step budget."""

    kind = "step_limit"


__all__ = [
    "ExecutionError",
    "InputExhausted",
    "MismatchedBraces",
    "Segfault",
    "StepLimitExceeded",
]

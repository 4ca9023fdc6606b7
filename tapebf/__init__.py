from .bf_interpreter import BrainfuckInterpreter, BrainfuckState, ExecutionSnapshot, run
from .brackets import BracketTable, build_bracket_table
from .errors import (
    ExecutionError,
    InputExhausted,
    MismatchedBraces,
    Segfault,
    StepLimitExceeded,
)
from .tape import Tape
from .visualizer import DebugSession

__all__ = [
    "BracketTable",
    "BrainfuckInterpreter",
    "BrainfuckState",
    "DebugSession",
    "ExecutionError",
    "ExecutionSnapshot",
    "InputExhausted",
    "MismatchedBraces",
    "Segfault",
    "StepLimitExceeded",
    "Tape",
    "build_bracket_table",
    "run",
]

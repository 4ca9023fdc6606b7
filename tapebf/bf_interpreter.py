from __future__ import annotations

import io
import logging
import sys
from dataclasses import dataclass, field
from typing import BinaryIO, Iterable, Iterator, List, Optional, Tuple

from .brackets import BracketTable, build_bracket_table
from .errors import InputExhausted, Segfault, StepLimitExceeded
from .tape import Tape

logger = logging.getLogger(__name__)


@dataclass
class BrainfuckState:
    """Tape plus data pointer for a single program run."""

    tape: Tape = field(default_factory=Tape)
    pointer: int = 0

    def current(self) -> int:
        return self.tape.read(self.pointer)

    def set_current(self, value: int) -> None:
        self.tape.write(self.pointer, value)

    def increment_current(self) -> None:
        self.set_current((self.current() + 1) % 256)

    def decrement_current(self) -> None:
        self.set_current((self.current() - 1) % 256)

    def move_right(self) -> None:
        self.pointer += 1

    def move_left(self) -> None:
        if self.pointer == 0:
            raise Segfault()
        self.pointer -= 1


@dataclass
class ExecutionSnapshot:
    step: int
    pc: int
    command: Optional[str]
    pointer: int
    tape_start: int
    tape: List[int]
    output: str
    code_length: int


@dataclass
class BrainfuckInterpreter:
    """Dispatch loop over a program's instructions.

    With ``output_stream`` set, every ``.`` writes one byte to it and flushes;
    nothing is kept in memory. Without it, bytes accumulate in ``output`` and
    :meth:`run` returns them as Latin-1 text. Input comes from ``input_data``
    when given, else from ``input_stream``; with neither, the first ``,``
    raises :class:`InputExhausted`.

    :meth:`run` executes without building snapshots. :meth:`step` yields an
    :class:`ExecutionSnapshot` per instruction and is meant for debuggers.
    """

    input_stream: Optional[BinaryIO] = None
    output_stream: Optional[BinaryIO] = None

    state: BrainfuckState = field(init=False, repr=False)
    output: bytearray = field(init=False, repr=False)

    def __post_init__(self) -> None:
        self.reset()

    def reset(self, state: Optional[BrainfuckState] = None) -> None:
        self.state = state if state is not None else BrainfuckState()
        self.output = bytearray()

    def output_text(self) -> str:
        return self.output.decode("latin-1")

    def run(
        self,
        code: str,
        input_data: Optional[Iterable[int]] = None,
        max_steps: Optional[int] = None,
        state: Optional[BrainfuckState] = None,
    ) -> str:
        steps = 0
        for _, _, steps in self._dispatch(code, input_data, max_steps, state):
            pass
        logger.debug("Program finished after %d step(s)", steps)
        return self.output_text()

    def step(
        self,
        code: str,
        input_data: Optional[Iterable[int]] = None,
        max_steps: Optional[int] = None,
        tape_window: int = 10,
        state: Optional[BrainfuckState] = None,
    ) -> Iterator[ExecutionSnapshot]:
        steps = 0
        for command, pc, steps in self._dispatch(code, input_data, max_steps, state):
            yield self._snapshot(pc, command, steps, len(code), tape_window)
        yield self._snapshot(len(code), None, steps, len(code), tape_window)

    def _dispatch(
        self,
        code: str,
        input_data: Optional[Iterable[int]],
        max_steps: Optional[int],
        state: Optional[BrainfuckState],
    ) -> Iterator[Tuple[str, int, int]]:
        """Execute ``code`` and yield ``(command, next_pc, steps)`` after each instruction."""
        self.reset(state)
        brackets = build_bracket_table(code)
        source = self._input_source(input_data)
        code_length = len(code)
        logger.debug("Running %d instructions with %d loop(s)", code_length, len(brackets))

        pc = 0
        steps = 0
        while pc < code_length:
            if max_steps is not None and steps >= max_steps:
                logger.debug("Step budget of %d exhausted at pc=%d", max_steps, pc)
                raise StepLimitExceeded("Brainfuck program exceeded allowed step count")
            command = code[pc]
            pc = self._execute_instruction(command, pc, brackets, source)
            steps += 1
            yield command, pc, steps

    def _input_source(self, input_data: Optional[Iterable[int]]) -> Optional[BinaryIO]:
        if input_data is not None:
            return io.BytesIO(bytes(input_data))
        return self.input_stream

    def _execute_instruction(
        self,
        command: str,
        pc: int,
        brackets: BracketTable,
        source: Optional[BinaryIO],
    ) -> int:
        new_pc = pc + 1
        state = self.state
        if command == ">":
            state.move_right()
        elif command == "<":
            try:
                state.move_left()
            except Segfault as exc:
                exc.pc = pc
                logger.debug("Segfault at pc=%d", pc)
                raise
        elif command == "+":
            state.increment_current()
        elif command == "-":
            state.decrement_current()
        elif command == ".":
            self._write_output(state.current())
        elif command == ",":
            state.set_current(self._read_input(source, pc))
        elif command == "[":
            if state.current() == 0:
                new_pc = brackets.match_open(pc) + 1
        elif command == "]":
            # Back to the '[' so the loop condition is tested again.
            new_pc = brackets.match_close(pc)
        return new_pc

    def _read_input(self, source: Optional[BinaryIO], pc: int) -> int:
        if source is None:
            raise InputExhausted("No input stream available.", pc=pc)
        try:
            data = source.read(1)
        except OSError as exc:
            raise InputExhausted(f"Failed to read input: {exc}", pc=pc) from exc
        if not data:
            raise InputExhausted(pc=pc)
        return data[0]

    def _write_output(self, value: int) -> None:
        if self.output_stream is None:
            self.output.append(value)
            return
        self.output_stream.write(bytes((value,)))
        self.output_stream.flush()

    def snapshot(self, code_length: int, tape_window: int = 10) -> ExecutionSnapshot:
        return self._snapshot(0, None, 0, code_length, tape_window)

    def _snapshot(
        self,
        pc: int,
        command: Optional[str],
        step: int,
        code_length: int,
        tape_window: int,
    ) -> ExecutionSnapshot:
        pointer = self.state.pointer
        start = max(0, pointer - tape_window)
        return ExecutionSnapshot(
            step=step,
            pc=pc,
            command=command,
            pointer=pointer,
            tape_start=start,
            tape=self.state.tape.window(start, pointer + tape_window + 1),
            output=self.output_text(),
            code_length=code_length,
        )


def run(
    program: str,
    state: BrainfuckState,
    *,
    input_stream: Optional[BinaryIO] = None,
    output_stream: Optional[BinaryIO] = None,
    max_steps: Optional[int] = None,
) -> None:
    """Execute ``program`` against ``state``, using stdin/stdout by default.

    Raises an :class:`~tapebf.errors.ExecutionError` subclass on failure; the
    state keeps whatever the program did up to that point. ``OSError`` from
    writing output propagates unchanged.
    """
    interpreter = BrainfuckInterpreter(
        input_stream=input_stream if input_stream is not None else sys.stdin.buffer,
        output_stream=output_stream if output_stream is not None else sys.stdout.buffer,
    )
    interpreter.run(program, max_steps=max_steps, state=state)


__all__ = [
    "BrainfuckInterpreter",
    "BrainfuckState",
    "ExecutionSnapshot",
    "run",
]

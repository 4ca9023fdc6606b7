from __future__ import annotations

import argparse
import cmd
import sys
from collections import deque
from dataclasses import dataclass, field
from pathlib import Path
from typing import Deque, List, Optional, Set

from .bf_interpreter import BrainfuckInterpreter, ExecutionSnapshot
from .brackets import build_bracket_table
from .errors import ExecutionError, MismatchedBraces


@dataclass
class DebugSession:
    """Instruction-by-instruction execution of one program.

    Construction fails with :class:`MismatchedBraces` for a malformed
    program. An :class:`ExecutionError` raised while advancing ends the
    session; it is stored in ``error`` and re-raised. ``history`` keeps the
    latest ``history_limit`` snapshots, the newest last.
    """

    code: str
    input_data: bytes = b""
    tape_window: int = 10
    max_steps: Optional[int] = None
    history_limit: int = 200
    breakpoints: Set[int] = field(default_factory=set)

    def __post_init__(self) -> None:
        self.brackets = build_bracket_table(self.code)
        self.restart()

    def restart(self) -> None:
        interpreter = BrainfuckInterpreter()
        self._snapshots = interpreter.step(
            self.code,
            input_data=self.input_data,
            max_steps=self.max_steps,
            tape_window=self.tape_window,
        )
        self.history: Deque[ExecutionSnapshot] = deque(maxlen=self.history_limit)
        self.history.append(interpreter.snapshot(len(self.code), self.tape_window))
        self.error: Optional[ExecutionError] = None
        self.finished = False
        self.stopped_at: Optional[int] = None

    @property
    def current(self) -> ExecutionSnapshot:
        return self.history[-1]

    def advance(self, count: Optional[int] = 1, *, honor_breakpoints: bool = True) -> List[ExecutionSnapshot]:
        """Execute up to ``count`` instructions, all of them when ``None``.

        Stops early at the end of the program or, when ``honor_breakpoints``
        is set, on reaching a breakpoint (recorded in ``stopped_at``).
        """
        taken: List[ExecutionSnapshot] = []
        self.stopped_at = None
        while not self.finished and (count is None or len(taken) < count):
            try:
                snapshot = next(self._snapshots)
            except ExecutionError as exc:
                self.error = exc
                self.finished = True
                raise
            self.history.append(snapshot)
            taken.append(snapshot)
            if snapshot.command is None:
                self.finished = True
            elif honor_breakpoints and snapshot.pc in self.breakpoints:
                self.stopped_at = snapshot.pc
                break
        return taken

    def set_breakpoint(self, pc: int) -> None:
        if not 0 <= pc <= len(self.code):
            raise ValueError(f"pc {pc} is outside the program (0..{len(self.code)})")
        self.breakpoints.add(pc)

    def break_on_loops(self) -> List[int]:
        """Set a breakpoint on every ``[`` and return their offsets."""
        opens = sorted(open_pc for open_pc, _ in self.brackets.pairs)
        self.breakpoints.update(opens)
        return opens

    def clear_breakpoint(self, pc: Optional[int] = None) -> bool:
        if pc is None:
            self.breakpoints.clear()
            return True
        if pc not in self.breakpoints:
            return False
        self.breakpoints.discard(pc)
        return True


def render_tape(snapshot: ExecutionSnapshot) -> str:
    cells = []
    for offset, value in enumerate(snapshot.tape, start=snapshot.tape_start):
        text = f"{offset}:{value:03}"
        cells.append(f">{text}<" if offset == snapshot.pointer else f" {text} ")
    return "".join(cells)


def render_code(code: str, pc: int, radius: int = 16) -> List[str]:
    """Excerpt of ``code`` around ``pc`` with a caret line under it."""
    start = max(0, pc - radius)
    excerpt = code[start : pc + radius + 1].replace("\n", " ")
    if pc >= len(code):
        excerpt += "$"
    return [excerpt, " " * (pc - start) + "^"]


def describe(snapshot: ExecutionSnapshot, code: str) -> str:
    command = "-" if snapshot.command is None else repr(snapshot.command)
    lines = [
        f"#{snapshot.step}  pc {snapshot.pc}/{snapshot.code_length}  last {command}  ptr {snapshot.pointer}",
        f"tape {render_tape(snapshot)}",
    ]
    if snapshot.output:
        lines.append(f"out  {snapshot.output!r}")
    lines.extend("code " + line for line in render_code(code, snapshot.pc))
    return "\n".join(lines)


def _count(arg: str, default: Optional[int]) -> Optional[int]:
    arg = arg.strip()
    if not arg:
        return default
    value = int(arg)
    if value < 1:
        raise ValueError(f"expected a positive count, got {value}")
    return value


class DebuggerShell(cmd.Cmd):
    intro = "tapebf debugger, 'help' lists commands"
    prompt = "(tapebf) "

    def __init__(self, session: DebugSession, stdin=None, stdout=None) -> None:
        super().__init__(stdin=stdin, stdout=stdout)
        if stdin is not None:
            self.use_rawinput = False
        self.session = session

    def _say(self, text: str) -> None:
        self.stdout.write(text + "\n")

    def _show(self, snapshot: ExecutionSnapshot) -> None:
        self._say(describe(snapshot, self.session.code))

    def _advance(self, count: Optional[int], honor_breakpoints: bool = True) -> None:
        session = self.session
        if session.finished:
            self._say(f"Program stopped: {session.error}" if session.error else "Program has finished.")
            return
        try:
            session.advance(count, honor_breakpoints=honor_breakpoints)
        except ExecutionError as exc:
            self._show(session.current)
            self._say(f"Execution stopped ({exc.kind}): {exc}")
            return
        self._show(session.current)
        if session.stopped_at is not None:
            self._say(f"Breakpoint at pc {session.stopped_at}.")

    def onecmd(self, line: str) -> bool:
        try:
            return super().onecmd(line)
        except ValueError as exc:
            self._say(f"Invalid argument: {exc}")
            return False

    def emptyline(self) -> bool:
        return False

    def default(self, line: str) -> None:
        self._say(f"Unknown command {line.split()[0]!r}, see 'help'.")

    def do_next(self, arg: str) -> None:
        """next [N]: execute N instructions (default 1), ignoring breakpoints."""
        self._advance(_count(arg, 1), honor_breakpoints=False)

    do_n = do_next

    def do_run(self, arg: str) -> None:
        """run [N]: run until a breakpoint, the end, or N instructions."""
        self._advance(_count(arg, None))

    do_r = do_run

    def do_state(self, arg: str) -> None:
        """state: show the current snapshot."""
        self._show(self.session.current)

    def do_history(self, arg: str) -> None:
        """history [N]: show the last N snapshots (default 10)."""
        for snapshot in list(self.session.history)[-_count(arg, 10):]:
            self._say("-" * 40)
            self._show(snapshot)

    def do_break(self, arg: str) -> None:
        """break PC | break loops: stop at PC, or at every '['."""
        if arg.strip() == "loops":
            opens = self.session.break_on_loops()
            self._say(f"Breakpoints on {len(opens)} loop(s).")
            return
        if not arg.strip():
            self._say("Usage: break PC | break loops")
            return
        pc = int(arg)
        self.session.set_breakpoint(pc)
        self._say(f"Breakpoint set at pc {pc}.")

    def do_breaks(self, arg: str) -> None:
        """breaks: list breakpoints."""
        points = sorted(self.session.breakpoints)
        self._say("Breakpoints: " + ", ".join(map(str, points)) if points else "No breakpoints.")

    def do_clear(self, arg: str) -> None:
        """clear [PC]: remove one breakpoint, or all of them."""
        pc = int(arg) if arg.strip() else None
        if self.session.clear_breakpoint(pc):
            self._say("Cleared." if pc is None else f"Removed breakpoint at pc {pc}.")
        else:
            self._say(f"No breakpoint at pc {pc}.")

    def do_restart(self, arg: str) -> None:
        """restart: run the program again from the start."""
        self.session.restart()
        self._show(self.session.current)

    def do_quit(self, arg: str) -> bool:
        """quit: leave the debugger."""
        return True

    do_exit = do_quit

    def do_EOF(self, arg: str) -> bool:
        self._say("")
        return True


def main(argv: Optional[List[str]] = None) -> int:
    parser = argparse.ArgumentParser(description="Step through a Brainfuck program")
    parser.add_argument("source", help="Path to a Brainfuck source file")
    parser.add_argument("--input", default="", help="Latin-1 text supplied to ','")
    parser.add_argument("--max-steps", type=int, default=5_000_000, help="Step limit (default: 5,000,000)")
    parser.add_argument("--tape-window", type=int, default=10, help="Cells shown on each side of the pointer")
    parser.add_argument("--history-limit", type=int, default=200, help="Snapshots kept in history")
    args = parser.parse_args(argv)

    try:
        input_data = args.input.encode("latin-1")
    except UnicodeEncodeError:
        parser.error("--input must only contain Latin-1 characters")

    try:
        code = Path(args.source).read_text(encoding="utf-8").strip()
    except OSError as exc:
        print(f"Cannot open source file: {exc}", file=sys.stderr)
        return 1

    try:
        session = DebugSession(
            code,
            input_data=input_data,
            tape_window=args.tape_window,
            max_steps=args.max_steps,
            history_limit=args.history_limit,
        )
    except MismatchedBraces as exc:
        print(f"Invalid program: {exc}", file=sys.stderr)
        return 1

    shell = DebuggerShell(session)
    shell.intro = DebuggerShell.intro + "\n" + describe(session.current, code)
    shell.cmdloop()
    return 0


if __name__ == "__main__":
    raise SystemExit(main())

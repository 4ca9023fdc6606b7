import io
import unittest
from unittest import mock

from tapebf import (
    BrainfuckInterpreter,
    BrainfuckState,
    ExecutionError,
    InputExhausted,
    MismatchedBraces,
    Segfault,
    StepLimitExceeded,
    run,
)

HELLO_WORLD = (
    "++++++++[>++++[>++>+++>+++>+<<<<-]>+>+>->>+[<]<-]"
    ">>.>---.+++++++..+++.>>.<-.<.+++.------.--------.>>+.>++."
)

# Prints 10**5 zero bytes through five nested ten-count loops.
LARGE_OUTPUT = "++++++++++[>++++++++++[>++++++++++[>++++++++++[>++++++++++[>.<-]<-]<-]<-]<-]"


class FlushCountingStream(io.BytesIO):
    def __init__(self) -> None:
        super().__init__()
        self.flushes = 0

    def flush(self) -> None:
        self.flushes += 1
        super().flush()


class BrokenStream(io.RawIOBase):
    def readable(self) -> bool:
        return True

    def read(self, size: int = -1) -> bytes:
        raise OSError("device unplugged")


def run_program(program: str, data: bytes = b"", state: BrainfuckState = None):
    state = state if state is not None else BrainfuckState()
    output = io.BytesIO()
    run(program, state, input_stream=io.BytesIO(data), output_stream=output)
    return state, output.getvalue()


class BrainfuckStateTests(unittest.TestCase):
    def test_increment(self) -> None:
        state = BrainfuckState()
        state.increment_current()
        self.assertEqual(state.current(), 1)
        state.increment_current()
        self.assertEqual(state.current(), 2)

    def test_decrement(self) -> None:
        state = BrainfuckState()
        state.set_current(200)
        state.decrement_current()
        self.assertEqual(state.current(), 199)
        state.decrement_current()
        self.assertEqual(state.current(), 198)

    def test_increment_wraps_to_zero(self) -> None:
        state = BrainfuckState()
        state.set_current(255)
        state.increment_current()
        self.assertEqual(state.current(), 0)

    def test_decrement_wraps_to_255(self) -> None:
        state = BrainfuckState()
        state.decrement_current()
        self.assertEqual(state.current(), 255)

    def test_current_reads_unwritten_cells_as_zero(self) -> None:
        state = BrainfuckState()
        state.pointer = 13
        self.assertEqual(state.current(), 0)
        state.set_current(40)
        self.assertEqual(state.current(), 40)
        self.assertEqual(state.tape.read(13), 40)

    def test_move_right(self) -> None:
        state = BrainfuckState()
        state.move_right()
        self.assertEqual(state.pointer, 1)
        state.move_right()
        self.assertEqual(state.pointer, 2)

    def test_move_left_from_positive_pointer(self) -> None:
        state = BrainfuckState(pointer=200)
        state.move_left()
        self.assertEqual(state.pointer, 199)
        state.move_left()
        self.assertEqual(state.pointer, 198)

    def test_move_left_at_zero_segfaults(self) -> None:
        state = BrainfuckState()
        with self.assertRaises(Segfault):
            state.move_left()
        self.assertEqual(state.pointer, 0)


class RunTests(unittest.TestCase):
    def test_empty_program(self) -> None:
        state, output = run_program("")
        self.assertEqual(output, b"")
        self.assertEqual(len(state.tape), 0)

    def test_empty_loops_do_not_touch_tape(self) -> None:
        for program in ("[]", "[[[]]]", "[][][]", "[<]"):
            with self.subTest(program=program):
                state, _ = run_program(program)
                self.assertEqual(len(state.tape), 0)
                self.assertEqual(state.pointer, 0)

    def test_transfer_loop(self) -> None:
        state, _ = run_program("++[>+<-]")
        self.assertEqual(state.tape.read(0), 0)
        self.assertEqual(state.tape.read(1), 2)

    def test_loop_with_wrapped_counter(self) -> None:
        state, _ = run_program("-[->+<]")
        self.assertEqual(state.tape.read(0), 0)
        self.assertEqual(state.tape.read(1), 255)

    def test_state_carries_over_between_runs(self) -> None:
        state, _ = run_program("[+]")
        run_program("+[+>+<]", state=state)
        self.assertEqual(state.tape.read(0), 0)
        self.assertEqual(state.tape.read(1), 255)

    def test_comments_are_ignored(self) -> None:
        state, _ = run_program("add two: ++ then move > done")
        self.assertEqual(state.tape.read(0), 2)
        self.assertEqual(state.pointer, 1)

    def test_hello_world(self) -> None:
        _, output = run_program(HELLO_WORLD)
        self.assertEqual(output, b"Hello World!\n")

    def test_segfault(self) -> None:
        state = BrainfuckState()
        with self.assertRaises(Segfault) as ctx:
            run("<", state, input_stream=io.BytesIO(), output_stream=io.BytesIO())
        self.assertEqual(ctx.exception.pc, 0)
        self.assertEqual(state.pointer, 0)
        self.assertIsInstance(ctx.exception, ExecutionError)

    def test_segfault_keeps_prior_effects(self) -> None:
        state = BrainfuckState()
        output = io.BytesIO()
        with self.assertRaises(Segfault) as ctx:
            run("+++.>+<<+", state, input_stream=io.BytesIO(), output_stream=output)
        self.assertEqual(ctx.exception.pc, 7)
        self.assertEqual(output.getvalue(), b"\x03")
        self.assertEqual(state.pointer, 0)
        self.assertEqual(state.tape.read(0), 3)
        self.assertEqual(state.tape.read(1), 1)

    def test_mismatched_braces_run_nothing(self) -> None:
        for program in ("+.[]]", "+.[[]", "]"):
            with self.subTest(program=program):
                state = BrainfuckState()
                output = io.BytesIO()
                with self.assertRaises(MismatchedBraces):
                    run(program, state, input_stream=io.BytesIO(), output_stream=output)
                self.assertEqual(output.getvalue(), b"")
                self.assertEqual(len(state.tape), 0)

    def test_input_is_stored_in_current_cell(self) -> None:
        state, output = run_program(",>,.<.", b"AB")
        self.assertEqual(state.tape.read(0), 65)
        self.assertEqual(state.tape.read(1), 66)
        self.assertEqual(output, b"BA")

    def test_input_exhausted(self) -> None:
        state = BrainfuckState()
        with self.assertRaises(InputExhausted) as ctx:
            run(",>+,", state, input_stream=io.BytesIO(b"A"), output_stream=io.BytesIO())
        self.assertEqual(ctx.exception.pc, 3)
        self.assertEqual(ctx.exception.kind, "input_exhausted")
        self.assertEqual(state.tape.read(0), 65)
        self.assertEqual(state.tape.read(1), 1)

    def test_unreadable_input_is_reported_as_exhausted(self) -> None:
        state = BrainfuckState()
        state.set_current(9)
        with self.assertRaises(InputExhausted) as ctx:
            run(",", state, input_stream=BrokenStream(), output_stream=io.BytesIO())
        self.assertIsInstance(ctx.exception.__cause__, OSError)
        self.assertEqual(state.current(), 9)

    def test_output_is_flushed_per_byte(self) -> None:
        output = FlushCountingStream()
        run("+.+.+.", BrainfuckState(), input_stream=io.BytesIO(), output_stream=output)
        self.assertEqual(output.getvalue(), b"\x01\x02\x03")
        self.assertEqual(output.flushes, 3)

    def test_high_bytes_are_written_raw(self) -> None:
        _, output = run_program("-.")
        self.assertEqual(output, b"\xff")

    def test_step_limit(self) -> None:
        with self.assertRaises(StepLimitExceeded):
            run("+[]", BrainfuckState(), input_stream=io.BytesIO(), output_stream=io.BytesIO(), max_steps=50)

    def test_run_builds_no_snapshots(self) -> None:
        with mock.patch.object(BrainfuckInterpreter, "_snapshot", side_effect=AssertionError("snapshot built")):
            state, output = run_program("++[>+<-]>.")
        self.assertEqual(output, b"\x02")
        self.assertEqual(state.tape.read(1), 2)

    def test_large_output_streams_through(self) -> None:
        _, output = run_program(LARGE_OUTPUT)
        self.assertEqual(len(output), 10**5)
        self.assertEqual(output.count(0), 10**5)


class BrainfuckInterpreterTests(unittest.TestCase):
    def test_simple_output(self) -> None:
        interpreter = BrainfuckInterpreter()
        program = "+" * 65 + "."
        output = interpreter.run(program, max_steps=1000)
        self.assertEqual(output, "A")

    def test_output_buffer_uses_latin1(self) -> None:
        interpreter = BrainfuckInterpreter()
        self.assertEqual(interpreter.run("-."), "\xff")
        self.assertEqual(interpreter.output, bytearray(b"\xff"))

    def test_streamed_output_is_not_kept(self) -> None:
        stream = io.BytesIO()
        interpreter = BrainfuckInterpreter(output_stream=stream)
        self.assertEqual(interpreter.run(LARGE_OUTPUT), "")
        self.assertEqual(len(stream.getvalue()), 10**5)
        self.assertEqual(interpreter.output, bytearray())

    def test_input_data(self) -> None:
        interpreter = BrainfuckInterpreter()
        self.assertEqual(interpreter.run(",+.", input_data=[64]), "A")

    def test_input_stream(self) -> None:
        interpreter = BrainfuckInterpreter(input_stream=io.BytesIO(b"z"))
        self.assertEqual(interpreter.run(",."), "z")

    def test_no_input_source_raises(self) -> None:
        interpreter = BrainfuckInterpreter()
        with self.assertRaises(InputExhausted):
            interpreter.run(",")

    def test_run_uses_supplied_state(self) -> None:
        interpreter = BrainfuckInterpreter()
        state = BrainfuckState()
        interpreter.run("++[>+<-]", state=state)
        self.assertIs(interpreter.state, state)
        self.assertEqual(state.tape.read(1), 2)

    def test_step_limit_exceeded(self) -> None:
        interpreter = BrainfuckInterpreter()
        with self.assertRaises(StepLimitExceeded):
            interpreter.run("+[]", max_steps=10)

    def test_step_sequence_produces_snapshots(self) -> None:
        interpreter = BrainfuckInterpreter()
        program = "+++."
        states = list(interpreter.step(program, tape_window=2))
        commands = [state.command for state in states[:-1]]
        self.assertEqual(commands, ["+", "+", "+", "."])
        self.assertIsNone(states[-1].command)
        self.assertEqual(states[-1].output, "\x03")
        self.assertEqual(states[-1].pc, len(program))
        self.assertEqual(states[-1].tape, [3, 0, 0])

    def test_loop_snapshots_follow_jumps(self) -> None:
        interpreter = BrainfuckInterpreter()
        pcs = [state.pc for state in interpreter.step("+[-]")]
        # '+' -> 1, '[' -> 2, '-' -> 3, ']' -> 1, '[' -> 4, final -> 4
        self.assertEqual(pcs, [1, 2, 3, 1, 4, 4])

    def test_snapshot_window_around_pointer(self) -> None:
        interpreter = BrainfuckInterpreter()
        states = list(interpreter.step(">>>>+", tape_window=1))
        final = states[-1]
        self.assertEqual(final.pointer, 4)
        self.assertEqual(final.tape_start, 3)
        self.assertEqual(final.tape, [0, 1, 0])


if __name__ == "__main__":
    unittest.main()

from __future__ import annotations

import argparse
import io
import logging
import sys
from pathlib import Path
from typing import BinaryIO, Optional

from .bf_interpreter import BrainfuckState, run
from .errors import ExecutionError

logger = logging.getLogger(__name__)


def _read_source(path: str) -> str:
    source_path = Path(path)
    if not source_path.exists():
        raise FileNotFoundError(f"Source file not found: {path}")
    return source_path.read_text(encoding="utf-8")


def _input_stream(data: Optional[str]) -> BinaryIO:
    if data is None:
        return sys.stdin.buffer
    return io.BytesIO(data.encode("latin-1"))


def main(argv: Optional[list[str]] = None) -> int:
    parser = argparse.ArgumentParser(description="Run Brainfuck programs")
    parser.add_argument("programs", nargs="+", metavar="program", help="Path to a Brainfuck source file")
    parser.add_argument(
        "--input",
        default=None,
        help="Input string supplied to the programs instead of stdin",
    )
    parser.add_argument(
        "--max-steps",
        type=int,
        default=None,
        help="Abort a program after this many instructions (default: unlimited)",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )

    try:
        input_stream = _input_stream(args.input)
    except UnicodeEncodeError:
        parser.error("--input must only contain Latin-1 characters")
    output_stream = sys.stdout.buffer
    for path in args.programs:
        try:
            program = _read_source(path).strip()
        except (FileNotFoundError, UnicodeDecodeError) as exc:
            print(str(exc), file=sys.stderr)
            return 1

        logger.debug("Running %s", path)
        try:
            run(
                program,
                BrainfuckState(),
                input_stream=input_stream,
                output_stream=output_stream,
                max_steps=args.max_steps,
            )
            output_stream.write(b"\n")
            output_stream.flush()
        except ExecutionError as exc:
            print(f"Error running {path}: {exc}", file=sys.stderr)
            return 1
        except OSError as exc:
            print(f"Cannot write output of {path}: {exc}", file=sys.stderr)
            return 1

    return 0


if __name__ == "__main__":
    raise SystemExit(main())

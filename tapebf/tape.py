from __future__ import annotations

from typing import List


class Tape:
    """Byte cells that read as zero until written and grow on write.

    Growth is to the right only; moving left of cell 0 is the interpreter's
    concern and never reaches the tape.
    """

    default_value = 0

    def __init__(self) -> None:
        self._cells: List[int] = []

    def __len__(self) -> int:
        return len(self._cells)

    def __repr__(self) -> str:
        return f"Tape({self._cells!r})"

    def read(self, index: int) -> int:
        if index < 0:
            raise IndexError(f"Negative tape index: {index}")
        if index >= len(self._cells):
            return self.default_value
        return self._cells[index]

    def write(self, index: int, value: int) -> None:
        if index < 0:
            raise IndexError(f"Negative tape index: {index}")
        if not 0 <= value <= 255:
            raise ValueError(f"Cell value out of byte range: {value}")
        if index >= len(self._cells):
            self._cells.extend([self.default_value] * (index + 1 - len(self._cells)))
        self._cells[index] = value

    def window(self, start: int, stop: int) -> List[int]:
        return [self.read(index) for index in range(max(0, start), stop)]


__all__ = ["Tape"]

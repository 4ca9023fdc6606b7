from __future__ import annotations

from typing import Dict, List, Sequence, Tuple

from .errors import MismatchedBraces


class BracketTable:
    """Matched ``[``/``]`` offsets, addressable from either end."""

    def __init__(self, pairs: Sequence[Tuple[int, int]]) -> None:
        self._pairs: Tuple[Tuple[int, int], ...] = tuple(pairs)
        self._close_for: Dict[int, int] = {open_pc: close_pc for open_pc, close_pc in self._pairs}
        self._open_for: Dict[int, int] = {close_pc: open_pc for open_pc, close_pc in self._pairs}

    def __len__(self) -> int:
        return len(self._pairs)

    @property
    def pairs(self) -> List[Tuple[int, int]]:
        return list(self._pairs)

    def match_open(self, open_pc: int) -> int:
        try:
            return self._close_for[open_pc]
        except KeyError as exc:
            raise KeyError(f"No '[' recorded at position {open_pc}") from exc

    def match_close(self, close_pc: int) -> int:
        try:
            return self._open_for[close_pc]
        except KeyError as exc:
            raise KeyError(f"No ']' recorded at position {close_pc}") from exc


def build_bracket_table(code: Sequence[str]) -> BracketTable:
    pairs: List[Tuple[int, int]] = []
    stack: List[int] = []
    for index, char in enumerate(code):
        if char == "[":
            stack.append(index)
        elif char == "]":
            if not stack:
                raise MismatchedBraces(f"Unmatched ']' at position {index}", position=index)
            pairs.append((stack.pop(), index))
    if stack:
        position = stack.pop()
        raise MismatchedBraces(f"Unmatched '[' at position {position}", position=position)
    return BracketTable(pairs)


__all__ = ["BracketTable", "build_bracket_table"]

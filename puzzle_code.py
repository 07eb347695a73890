# puzzle_code.py: compact givens encoding used in share links
from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, List, Optional

from config import CFG

BASE36 = "0123456789abcdefghijklmnopqrstuvwxyz"


class PuzzleCodeError(ValueError):
    """Raised when a puzzle string cannot be decoded."""


@dataclass(frozen=True)
class Given:
    size: int
    x: int
    y: int


def _b36_to_int(ch: str) -> int:
    return BASE36.find(str(ch).lower())


def _is_size_char(ch: str, max_size: int) -> bool:
    return "1" <= ch <= "9" and int(ch) <= max_size


def parse_puzzle_string(s: Optional[str], max_size: Optional[int] = None) -> List[Given]:
    """
    Decode ``s`` into givens. Each given is three characters: a size digit
    (1..max_size) followed by base-36 x and y.
    """
    out: List[Given] = []
    if not s:
        return out
    limit = int(max_size if max_size is not None else CFG.MAX_TILE_SIZE)
    text = s.strip()
    if len(text) % 3 != 0:
        raise PuzzleCodeError("length must be multiple of 3")
    for i in range(0, len(text), 3):
        sz, xch, ych = text[i], text[i + 1], text[i + 2]
        if not _is_size_char(sz, limit):
            raise PuzzleCodeError(f"bad size '{sz}' at {i}")
        x, y = _b36_to_int(xch), _b36_to_int(ych)
        if x < 0 or y < 0:
            raise PuzzleCodeError(f"bad coord at {i + 1}")
        out.append(Given(int(sz), x, y))
    return out


def to_puzzle_string(items: Iterable) -> str:
    """Encode objects exposing ``size``, ``x`` and ``y``; off-range coords are skipped."""
    parts: List[str] = []
    for it in items:
        if not (0 <= it.x < len(BASE36) and 0 <= it.y < len(BASE36)):
            continue
        parts.append(f"{int(it.size)}{BASE36[it.x]}{BASE36[it.y]}")
    return "".join(parts)


__all__ = ["BASE36", "Given", "PuzzleCodeError", "parse_puzzle_string", "to_puzzle_string"]

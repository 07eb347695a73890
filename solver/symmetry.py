# solver/symmetry.py: the eight square symmetries and orientation choice
from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Iterator, Optional, Tuple

from models import Board


@dataclass(frozen=True)
class Transform:
    """Mirror across the vertical axis (optional), then ``rotation`` clockwise quarter turns."""

    n: int
    rotation: int = 0
    mirror: bool = False
    key: Optional[float] = None

    def map(self, x: int, y: int) -> Tuple[int, int]:
        n = self.n
        if self.mirror:
            x = n - 1 - x
        for _ in range(self.rotation):
            x, y = n - 1 - y, x
        return x, y

    def inv(self, x: int, y: int) -> Tuple[int, int]:
        n = self.n
        for _ in range(self.rotation):
            x, y = y, n - 1 - x
        if self.mirror:
            x = n - 1 - x
        return x, y

    @property
    def is_identity(self) -> bool:
        return self.rotation == 0 and not self.mirror

    def describe(self) -> str:
        return f"rot={self.rotation * 90}deg mirror={'yes' if self.mirror else 'no'}"


def make_transform(n: int, rot: int = 0, mirror: bool = False) -> Transform:
    return Transform(int(n), int(rot) % 4, bool(mirror))


def all_transforms(n: int) -> Iterator[Transform]:
    # Order matters: it is the tie-break for choose_best_transform.
    for rot in range(4):
        for mirror in (False, True):
            yield make_transform(n, rot, mirror)


def canonical_key(board: Board, tf: Transform) -> int:
    n = board.size
    total = 0
    for y, row in enumerate(board.cells):
        for x, tile_id in enumerate(row):
            if not tile_id:
                continue
            tx, ty = tf.map(x, y)
            total += tx + ty * n
    return total


def choose_best_transform(board: Board) -> Transform:
    """Pick the symmetry that pushes filled cells toward the top-left in raster order.

    The first transform with the strictly smallest key wins, so the result is
    deterministic for a given occupancy. An empty board yields the identity.
    """
    best: Optional[Transform] = None
    best_key = math.inf
    for tf in all_transforms(board.size):
        key = canonical_key(board, tf)
        if key < best_key:
            best_key = key
            best = tf
    if best is None:
        best = make_transform(board.size)
    return Transform(best.n, best.rotation, best.mirror, key=best_key)


def _min_corner(fn, x: int, y: int, s: int) -> Tuple[int, int]:
    corners = (fn(x, y), fn(x + s - 1, y), fn(x, y + s - 1), fn(x + s - 1, y + s - 1))
    return min(c[0] for c in corners), min(c[1] for c in corners)


def map_rect_top_left(tf: Transform, x: int, y: int, s: int) -> Tuple[int, int]:
    return _min_corner(tf.map, x, y, s)


def inv_rect_top_left(tf: Transform, x: int, y: int, s: int) -> Tuple[int, int]:
    return _min_corner(tf.inv, x, y, s)


__all__ = [
    "Transform",
    "make_transform",
    "all_transforms",
    "canonical_key",
    "choose_best_transform",
    "map_rect_top_left",
    "inv_rect_top_left",
]

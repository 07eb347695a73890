from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import Dict, Iterable, List, Optional, Tuple

from config import CFG


@dataclass
class Tile:
    id: int
    size: int
    x: int = 0
    y: int = 0
    placed: bool = False
    fixed: bool = False

    def covers(self, x: int, y: int) -> bool:
        return (
            self.placed
            and self.x <= x < self.x + self.size
            and self.y <= y < self.y + self.size
        )


@dataclass(frozen=True)
class Placement:
    tile_id: int
    x: int
    y: int
    size: int

    def as_dict(self) -> Dict[str, int]:
        return {"tileId": self.tile_id, "x": self.x, "y": self.y, "size": self.size}


class Board:
    """Square occupancy grid; 0 marks an empty cell, otherwise the tile id."""

    def __init__(self, size: int):
        self.size = int(size)
        self.cells: List[List[int]] = [[0] * self.size for _ in range(self.size)]
        self.filled = 0

    def clear(self) -> None:
        for row in self.cells:
            for i in range(self.size):
                row[i] = 0
        self.filled = 0

    def in_bounds(self, x: int, y: int, s: int) -> bool:
        return x >= 0 and y >= 0 and x + s <= self.size and y + s <= self.size

    def overlap(self, x: int, y: int, s: int) -> bool:
        for j in range(s):
            row = self.cells[y + j]
            for i in range(s):
                if row[x + i]:
                    return True
        return False

    # place/remove trust the caller: can_place() must already have passed.
    def place(self, tile: Tile, x: int, y: int) -> None:
        s = tile.size
        for j in range(s):
            row = self.cells[y + j]
            for i in range(s):
                row[x + i] = tile.id
        self.filled += s * s

    def remove(self, tile: Tile) -> None:
        s = tile.size
        for j in range(s):
            row = self.cells[tile.y + j]
            for i in range(s):
                row[tile.x + i] = 0
        self.filled -= s * s

    def is_complete(self) -> bool:
        return self.filled == self.size * self.size

    def copy(self) -> "Board":
        out = Board(self.size)
        out.cells = [list(row) for row in self.cells]
        out.filled = self.filled
        return out

    def snapshot(self) -> Tuple[Tuple[int, ...], ...]:
        return tuple(tuple(row) for row in self.cells)


def can_place(board: Board, tile: Tile, x: int, y: int) -> bool:
    return board.in_bounds(x, y, tile.size) and not board.overlap(x, y, tile.size)


@dataclass
class Inventory:
    tiles: List[Tile] = field(default_factory=list)

    def __iter__(self):
        return iter(self.tiles)

    def __len__(self) -> int:
        return len(self.tiles)

    @property
    def sizes(self) -> List[int]:
        return sorted({t.size for t in self.tiles})

    def find(self, tile_id: int) -> Optional[Tile]:
        for t in self.tiles:
            if t.id == tile_id:
                return t
        return None

    def by_size(self, size: int) -> List[Tile]:
        return [t for t in self.tiles if t.size == size]

    def remaining(self, size: int) -> int:
        return sum(1 for t in self.tiles if t.size == size and not t.placed)

    def next_free(self, size: int) -> Optional[Tile]:
        for t in self.tiles:
            if t.size == size and not t.placed:
                return t
        return None

    def placed_tiles(self) -> List[Tile]:
        return [t for t in self.tiles if t.placed]

    def fixed_tiles(self) -> List[Tile]:
        return [t for t in self.tiles if t.fixed and t.placed]

    def free_pools(self) -> Dict[int, List[Tile]]:
        pools: Dict[int, List[Tile]] = {s: [] for s in self.sizes}
        for t in self.tiles:
            if not t.placed:
                pools[t.size].append(t)
        return pools

    def free_counts(self) -> Dict[int, int]:
        return {s: len(pool) for s, pool in self.free_pools().items()}

    def copy(self) -> "Inventory":
        return Inventory([replace(t) for t in self.tiles])


def create_inventory(max_size: Optional[int] = None) -> Inventory:
    """Build the triangular inventory: ``s`` tiles of edge ``s`` for 1..max_size.

    Ids run from 1 in size order. The total area is ``(k(k+1)/2)**2`` which
    matches a board of edge ``k(k+1)/2`` (36 for the 8-tile set).
    """
    k = int(max_size if max_size is not None else CFG.MAX_TILE_SIZE)
    tiles: List[Tile] = []
    next_id = 1
    for size in range(1, k + 1):
        for _ in range(size):
            tiles.append(Tile(next_id, size))
            next_id += 1
    return Inventory(tiles)


def inventory_from_sizes(sizes: Iterable[int]) -> Inventory:
    """Inventory with one tile per entry of ``sizes``; ids assigned in order."""
    return Inventory([Tile(i + 1, int(s)) for i, s in enumerate(sizes)])


def board_edge_for(max_size: int) -> int:
    return max_size * (max_size + 1) // 2

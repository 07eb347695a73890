"""Reversible placement log shared by manual moves and solver runs."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import List, Optional, Union

from models import Board, Inventory, Tile


@dataclass(frozen=True)
class Step:
    tile_id: int
    from_x: int
    from_y: int
    from_placed: bool
    to_x: int
    to_y: int
    to_placed: bool


@dataclass(frozen=True)
class BatchStep:
    steps: List[Step] = field(default_factory=list)

    def __len__(self) -> int:
        return len(self.steps)


Entry = Union[Step, BatchStep]


def _move(board: Board, tile: Tile, x: int, y: int, placed: bool) -> None:
    if tile.placed:
        board.remove(tile)
    tile.x = x
    tile.y = y
    tile.placed = placed
    if placed:
        board.place(tile, x, y)


def _revert(board: Board, inventory: Inventory, step: Step) -> None:
    tile = inventory.find(step.tile_id)
    if tile is None:
        raise KeyError(f"unknown tile id {step.tile_id}")
    _move(board, tile, step.from_x, step.from_y, step.from_placed)


def _replay(board: Board, inventory: Inventory, step: Step) -> None:
    tile = inventory.find(step.tile_id)
    if tile is None:
        raise KeyError(f"unknown tile id {step.tile_id}")
    _move(board, tile, step.to_x, step.to_y, step.to_placed)


class History:
    def __init__(self) -> None:
        self.undo_stack: List[Entry] = []
        self.redo_stack: List[Entry] = []

    def push(self, entry: Entry) -> None:
        self.undo_stack.append(entry)
        self.redo_stack.clear()

    def clear(self) -> None:
        self.undo_stack.clear()
        self.redo_stack.clear()

    @property
    def can_undo(self) -> bool:
        return bool(self.undo_stack)

    @property
    def can_redo(self) -> bool:
        return bool(self.redo_stack)

    def undo(self, board: Board, inventory: Inventory) -> Optional[Entry]:
        if not self.undo_stack:
            return None
        entry = self.undo_stack.pop()
        if isinstance(entry, BatchStep):
            for step in reversed(entry.steps):
                _revert(board, inventory, step)
        else:
            _revert(board, inventory, entry)
        self.redo_stack.append(entry)
        return entry

    def redo(self, board: Board, inventory: Inventory) -> Optional[Entry]:
        if not self.redo_stack:
            return None
        entry = self.redo_stack.pop()
        if isinstance(entry, BatchStep):
            for step in entry.steps:
                _replay(board, inventory, step)
        else:
            _replay(board, inventory, entry)
        self.undo_stack.append(entry)
        return entry


__all__ = ["Step", "BatchStep", "History"]

"""One puzzle session: board, inventory, givens, history and solver runs."""

from __future__ import annotations

import logging
import random
import threading
from collections import Counter
from typing import Any, Dict, List, Optional, Sequence, Union

from config import CFG
from history import BatchStep, History, Step
from models import Board, Inventory, Tile, board_edge_for, can_place, create_inventory
from puzzle_code import Given, PuzzleCodeError, parse_puzzle_string, to_puzzle_string
from solver.counter import CountResult
from solver.orchestrator import AutoFillResult, auto_fill, check_solutions
from solver.search import CancelToken, ProgressCallback

log = logging.getLogger(__name__)


class InfeasibleGivensError(ValueError):
    """Givens that overlap, leave the board, or need more tiles than exist."""


class SolverBusyError(RuntimeError):
    """A search was requested while another one is still running."""


class TileLockedError(ValueError):
    """The tile is a given and cannot be moved."""


class PuzzleSession:
    def __init__(
        self,
        board_size: Optional[int] = None,
        max_tile_size: Optional[int] = None,
        inventory: Optional[Inventory] = None,
        rng: Optional[random.Random] = None,
    ) -> None:
        self.max_tile_size = int(max_tile_size if max_tile_size is not None else CFG.MAX_TILE_SIZE)
        if board_size is None:
            board_size = CFG.BOARD_SIZE if CFG.BOARD_SIZE is not None else board_edge_for(self.max_tile_size)
        self.board = Board(board_size)
        self.inventory = inventory if inventory is not None else create_inventory(self.max_tile_size)
        self.history = History()
        self.rng = rng
        self.creator_mode = False
        self.solver_preview: Optional[List] = None
        self._lock = threading.Lock()
        self._token: Optional[CancelToken] = None
        self._solving = False

    # ---------- state ----------

    @property
    def solving(self) -> bool:
        return self._solving

    def _tile(self, tile_id: int) -> Tile:
        tile = self.inventory.find(int(tile_id))
        if tile is None:
            raise KeyError(f"unknown tile id {tile_id}")
        return tile

    def _ensure_idle(self) -> None:
        if self._solving:
            raise SolverBusyError("a solver run is already in progress")

    def tile_at(self, x: int, y: int) -> Optional[Tile]:
        for t in self.inventory:
            if t.covers(x, y):
                return t
        return None

    def status(self) -> Dict[str, Any]:
        total = self.board.size * self.board.size
        return {
            "size": self.board.size,
            "filled": self.board.filled,
            "total": total,
            "complete": self.board.filled >= total,
            "solving": self._solving,
            "creator_mode": self.creator_mode,
            "can_undo": self.history.can_undo,
            "can_redo": self.history.can_redo,
            "remaining": {str(s): self.inventory.remaining(s) for s in self.inventory.sizes},
            "tiles": [
                {"id": t.id, "size": t.size, "x": t.x, "y": t.y, "fixed": t.fixed}
                for t in self.inventory.placed_tiles()
            ],
        }

    # ---------- givens ----------

    def apply_givens(self, code_or_items: Union[str, Sequence[Given], None]) -> int:
        """Place and lock givens; all or nothing. Returns how many were applied."""
        self._ensure_idle()
        if code_or_items is None or isinstance(code_or_items, str):
            items = parse_puzzle_string(code_or_items, self.max_tile_size)
        elif isinstance(code_or_items, (list, tuple)) and all(isinstance(it, Given) for it in code_or_items):
            items = list(code_or_items)
        else:
            raise PuzzleCodeError("givens must be a puzzle string or a list of Given")

        need = Counter(it.size for it in items)
        for size, cnt in sorted(need.items()):
            avail = self.inventory.remaining(size)
            if cnt > avail:
                raise InfeasibleGivensError(f"need {cnt} of size {size}")

        applied: List[Tile] = []
        for it in items:
            if not self.board.in_bounds(it.x, it.y, it.size) or self.board.overlap(it.x, it.y, it.size):
                for tile in reversed(applied):
                    self.board.remove(tile)
                    tile.fixed = False
                    tile.placed = False
                raise InfeasibleGivensError(
                    f"overlap: size {it.size} at ({it.x},{it.y}) does not fit"
                )
            tile = self.inventory.next_free(it.size)
            tile.x, tile.y, tile.placed, tile.fixed = it.x, it.y, True, True
            self.board.place(tile, it.x, it.y)
            applied.append(tile)
        # Older steps may target cells the givens now occupy.
        self.history.clear()
        log.info("applied %d givens", len(applied))
        return len(applied)

    def givens_code(self) -> str:
        return to_puzzle_string(self.inventory.fixed_tiles())

    def share_code(self) -> str:
        return to_puzzle_string(self.inventory.placed_tiles())

    def unfix_givens(self) -> int:
        changed = 0
        for t in self.inventory:
            if t.fixed:
                t.fixed = False
                changed += 1
        return changed

    # ---------- resets ----------

    def reset(self) -> None:
        """Drop every non-given placement and the history; givens stay."""
        self._ensure_idle()
        self.board.clear()
        for t in self.inventory:
            if t.fixed and t.placed:
                continue
            t.x, t.y, t.placed = 0, 0, False
        for t in self.inventory.fixed_tiles():
            self.board.place(t, t.x, t.y)
        self.history.clear()

    def hard_reset(self) -> None:
        self._ensure_idle()
        self.board.clear()
        for t in self.inventory:
            t.x, t.y, t.placed, t.fixed = 0, 0, False, False
        self.history.clear()
        self.creator_mode = False

    def clear_placed(self) -> Optional[BatchStep]:
        """Return all non-given tiles to the inventory as one undoable step."""
        self._ensure_idle()
        steps: List[Step] = []
        for t in self.inventory:
            if t.placed and not t.fixed:
                self.board.remove(t)
                steps.append(Step(t.id, t.x, t.y, True, 0, 0, False))
                t.placed = False
        if not steps:
            return None
        batch = BatchStep(steps)
        self.history.push(batch)
        return batch

    # ---------- manual moves ----------

    def move(self, tile_id: int, x: int, y: int) -> bool:
        """Place or relocate a tile; an invalid target leaves everything unchanged."""
        self._ensure_idle()
        tile = self._tile(tile_id)
        if tile.fixed:
            raise TileLockedError(f"tile {tile.id} is a given")
        orig = (tile.x, tile.y, tile.placed)
        if tile.placed:
            self.board.remove(tile)
            tile.placed = False
        if not can_place(self.board, tile, x, y):
            if orig[2]:
                tile.placed = True
                self.board.place(tile, tile.x, tile.y)
            return False
        tile.x, tile.y, tile.placed = x, y, True
        self.board.place(tile, x, y)
        self.history.push(Step(tile.id, orig[0], orig[1], orig[2], x, y, True))
        return True

    def take_back(self, tile_id: int) -> bool:
        self._ensure_idle()
        tile = self._tile(tile_id)
        if tile.fixed:
            raise TileLockedError(f"tile {tile.id} is a given")
        if not tile.placed:
            return False
        self.board.remove(tile)
        tile.placed = False
        self.history.push(Step(tile.id, tile.x, tile.y, True, 0, 0, False))
        return True

    def auto_place_random_fit(self, size: int, rng: Optional[random.Random] = None) -> Optional[Tile]:
        """Drop the next free tile of ``size`` on a random position where it fits."""
        self._ensure_idle()
        tile = self.inventory.next_free(size)
        if tile is None:
            return None
        n = self.board.size
        positions = [
            (x, y)
            for y in range(0, n - size + 1)
            for x in range(0, n - size + 1)
            if not self.board.overlap(x, y, size)
        ]
        if not positions:
            return None
        x, y = (rng or self.rng or random).choice(positions)
        tile.x, tile.y, tile.placed = x, y, True
        self.board.place(tile, x, y)
        self.history.push(Step(tile.id, 0, 0, False, x, y, True))
        return tile

    def undo(self) -> bool:
        self._ensure_idle()
        return self.history.undo(self.board, self.inventory) is not None

    def redo(self) -> bool:
        self._ensure_idle()
        return self.history.redo(self.board, self.inventory) is not None

    # ---------- solver runs ----------

    def reserve(self) -> CancelToken:
        """Mark the session busy now, for a run that another thread will start.

        Pass the returned token to ``auto_fill``/``check``. Call ``release``
        if that run is never started.
        """
        with self._lock:
            if self._solving:
                raise SolverBusyError("a solver run is already in progress")
            self._solving = True
            self._token = CancelToken()
            return self._token

    def release(self) -> None:
        with self._lock:
            self._solving = False
            self._token = None
            self.solver_preview = None

    def _claim(self, token: Optional[CancelToken]) -> CancelToken:
        if token is None:
            return self.reserve()
        with self._lock:
            if token is not self._token:
                raise ValueError("token does not belong to the reserved run")
        return token

    def cancel(self) -> bool:
        """Request cancellation of the running or reserved search; harmless when idle."""
        with self._lock:
            token = self._token
        if token is None:
            return False
        token.cancel()
        return True

    def auto_fill(
        self,
        on_progress: Optional[ProgressCallback] = None,
        *,
        engine: Optional[str] = None,
        token: Optional[CancelToken] = None,
        track_progress: bool = False,
        progress_interval_ms: Optional[int] = None,
    ) -> AutoFillResult:
        token = self._claim(token)

        def _preview(stats, preview):
            self.solver_preview = preview
            if on_progress is not None:
                on_progress(stats, preview)

        try:
            out = auto_fill(
                self.board,
                self.inventory,
                engine=engine,
                on_progress=_preview,
                token=token,
                rng=self.rng,
                progress_interval_ms=progress_interval_ms,
                track_progress=track_progress,
            )
        finally:
            self.release()
        if out.step is not None:
            self.history.push(out.step)
        return out

    def check(
        self,
        limit: Optional[int] = None,
        *,
        engine: Optional[str] = None,
        token: Optional[CancelToken] = None,
        track_progress: bool = False,
        progress_interval_ms: Optional[int] = None,
    ) -> CountResult:
        token = self._claim(token)
        try:
            return check_solutions(
                self.board,
                self.inventory,
                limit,
                engine=engine,
                token=token,
                progress_interval_ms=progress_interval_ms,
                track_progress=track_progress,
            )
        finally:
            self.release()


__all__ = [
    "InfeasibleGivensError",
    "PuzzleSession",
    "SolverBusyError",
    "TileLockedError",
]

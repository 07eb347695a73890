# solver/search.py: exact-completion backtracking with cooperative yields
from __future__ import annotations

import logging
import random
import sys
import threading
import time
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional, Sequence, Tuple

from config import CFG
from models import Board, Inventory, Placement, Tile

log = logging.getLogger(__name__)

NO_SOLUTION = "no-solution"
CANCELLED = "cancelled"
TIMEBOX = "timebox"

PreviewItem = Tuple[int, int, int]  # (x, y, size)
ProgressCallback = Callable[["SolverStats", List[PreviewItem]], None]


class CancelToken:
    """Cooperative cancellation flag; ``cancel`` may be called from any thread, any number of times."""

    def __init__(self) -> None:
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    __call__ = cancel

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()


@dataclass
class SolverStats:
    nodes_visited: int = 0
    max_depth: int = 0

    def as_dict(self) -> Dict[str, int]:
        return {"nodesVisited": self.nodes_visited, "maxDepth": self.max_depth}


@dataclass
class SolveResult:
    ok: bool
    placements: List[Placement]
    reason: Optional[str] = None
    stats: Optional[SolverStats] = None

    @property
    def cancelled(self) -> bool:
        return self.reason == CANCELLED

    def as_dict(self) -> Dict[str, object]:
        if self.ok:
            return {"ok": True, "placements": [p.as_dict() for p in self.placements]}
        return {"ok": False, "reason": self.reason}


def default_yield_tick() -> None:
    # Gives other threads (the host, a cancel request) a chance to run.
    time.sleep(0)


def build_size_orders(
    sizes: Sequence[int],
    depth_count: int,
    rng: random.Random,
) -> Tuple[List[int], List[List[int]]]:
    """Shuffle ``sizes`` once, then derive one independent permutation per depth."""
    base = list(sizes)
    rng.shuffle(base)
    orders: List[List[int]] = []
    for _ in range(max(1, depth_count)):
        order = list(base)
        rng.shuffle(order)
        orders.append(order)
    return base, orders


def make_rng(seed: Optional[int] = None) -> random.Random:
    if seed is None:
        seed = CFG.SOLVER_SEED
    if seed is None:
        return random.Random()
    return random.Random(int(seed))


class CompletionSearch:
    """
    Fill every empty cell of ``board`` with free tiles from ``inventory``.

    The search works on private copies of the occupancy grid and of the
    per-size pools; neither argument is mutated. Scanning always anchors the
    next tile on the first empty cell in raster order, so every row above the
    anchor row is already full and the next scan can resume from that row.
    """

    def __init__(
        self,
        board: Board,
        inventory: Inventory,
        *,
        rng: Optional[random.Random] = None,
        on_progress: Optional[ProgressCallback] = None,
        token: Optional[CancelToken] = None,
        progress_interval_ms: Optional[int] = None,
        yield_tick: Callable[[], None] = default_yield_tick,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.size = board.size
        self.cells: List[List[int]] = [list(row) for row in board.cells]
        self.pools: Dict[int, List[Tile]] = {
            s: list(pool) for s, pool in inventory.free_pools().items()
        }
        self.rng = rng if rng is not None else make_rng()
        self.on_progress = on_progress
        self.token = token if token is not None else CancelToken()
        interval = CFG.PROGRESS_INTERVAL_MS if progress_interval_ms is None else progress_interval_ms
        self.interval_s = max(0, int(interval)) / 1000.0
        self.yield_tick = yield_tick
        self.clock = clock

        free_total = sum(len(pool) for pool in self.pools.values())
        sizes = [s for s, pool in self.pools.items() if pool]
        self.base_order, self.size_orders = build_size_orders(sizes, free_total, self.rng)

        self.placements: List[Placement] = []
        self.stats = SolverStats()
        self._last_tick = 0.0

    # -- grid helpers ----------------------------------------------------

    def find_next_empty(self, starting_row: int) -> Optional[Tuple[int, int]]:
        for y in range(starting_row, self.size):
            row = self.cells[y]
            for x in range(self.size):
                if row[x] == 0:
                    return x, y
        return None

    def _fits(self, x: int, y: int, s: int) -> bool:
        if x + s > self.size or y + s > self.size:
            return False
        for j in range(s):
            row = self.cells[y + j]
            for i in range(x, x + s):
                if row[i] != 0:
                    return False
        return True

    def _fill(self, x: int, y: int, s: int, value: int) -> None:
        for j in range(s):
            row = self.cells[y + j]
            for i in range(x, x + s):
                row[i] = value

    # -- progress --------------------------------------------------------

    def _preview(self) -> List[PreviewItem]:
        return [(p.x, p.y, p.size) for p in self.placements]

    def _report(self) -> None:
        if self.on_progress is not None:
            self.on_progress(self.stats, self._preview())
        self.yield_tick()

    def _maybe_report(self) -> None:
        now = self.clock()
        if now - self._last_tick >= self.interval_s:
            self._last_tick = now
            self._report()

    # -- search ----------------------------------------------------------

    def _backtrack(self, depth: int, starting_row: int) -> bool:
        if self.token.cancelled:
            return False
        spot = self.find_next_empty(starting_row)
        if spot is None:
            return True
        x, y = spot
        if depth > self.stats.max_depth:
            self.stats.max_depth = depth
        order = self.size_orders[depth] if depth < len(self.size_orders) else self.base_order
        for s in order:
            if self.token.cancelled:
                return False
            pool = self.pools.get(s)
            if not pool:
                continue
            if not self._fits(x, y, s):
                continue
            tile = pool.pop()
            self._fill(x, y, s, tile.id)
            self.placements.append(Placement(tile.id, x, y, s))
            self.stats.nodes_visited += 1
            self._maybe_report()
            if self._backtrack(depth + 1, y):
                return True
            self.placements.pop()
            self._fill(x, y, s, 0)
            pool.append(tile)
            if self.token.cancelled:
                return False
        return False

    def run(self) -> SolveResult:
        free_total = sum(len(pool) for pool in self.pools.values())
        # One frame per placed tile plus the final empty-cell lookup.
        needed = free_total + 100
        if sys.getrecursionlimit() < needed:
            sys.setrecursionlimit(needed)

        log.debug(
            "completion search start: size=%d free_tiles=%d base_order=%s",
            self.size, free_total, self.base_order,
        )
        self._report()
        self._last_tick = self.clock()

        solved = self._backtrack(0, 0)

        if not solved and self.token.cancelled:
            log.debug("completion search cancelled after %d nodes", self.stats.nodes_visited)
            return SolveResult(False, [], CANCELLED, self.stats)
        if not solved:
            log.debug("completion search exhausted after %d nodes", self.stats.nodes_visited)
            return SolveResult(False, [], NO_SOLUTION, self.stats)
        log.debug(
            "completion search solved: placements=%d nodes=%d depth=%d",
            len(self.placements), self.stats.nodes_visited, self.stats.max_depth,
        )
        return SolveResult(True, list(self.placements), None, self.stats)


def solve_remaining(board: Board, inventory: Inventory, **kwargs) -> SolveResult:
    return CompletionSearch(board, inventory, **kwargs).run()


__all__ = [
    "CANCELLED",
    "NO_SOLUTION",
    "TIMEBOX",
    "CancelToken",
    "CompletionSearch",
    "SolveResult",
    "SolverStats",
    "build_size_orders",
    "make_rng",
    "solve_remaining",
]

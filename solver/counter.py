# solver/counter.py: bounded solution counting (none / unique / multiple)
from __future__ import annotations

import logging
import sys
import time
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional

from config import CFG
from models import Board, Inventory
from solver.search import CancelToken, SolverStats, default_yield_tick

log = logging.getLogger(__name__)

CountProgressCallback = Callable[[SolverStats], None]


@dataclass
class CountResult:
    count: int
    nodes_visited: int
    limit: int
    cancelled: bool = False

    @property
    def verdict(self) -> str:
        if self.count == 0:
            return "none"
        if self.count == 1:
            return "unique"
        return "multiple"

    @property
    def label(self):
        """``0``, ``1`` or ``">1"`` once the limit (above one) was reached."""
        if self.count >= self.limit and self.limit > 1:
            return ">1"
        return self.count

    def as_dict(self) -> Dict[str, object]:
        return {
            "count": self.label,
            "exact": self.count,
            "nodesVisited": self.nodes_visited,
            "verdict": self.verdict,
            "cancelled": self.cancelled,
        }


class SolutionCounter:
    """Counts completions up to ``limit`` using per-size tile counts only.

    Tiles of equal size are interchangeable here, so two completions differ
    only by geometry. Larger sizes are tried first.
    """

    def __init__(
        self,
        board: Board,
        counts: Dict[int, int],
        *,
        limit: Optional[int] = None,
        on_progress: Optional[CountProgressCallback] = None,
        token: Optional[CancelToken] = None,
        progress_interval_ms: Optional[int] = None,
        yield_tick: Callable[[], None] = default_yield_tick,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.size = board.size
        self.cells: List[List[int]] = [list(row) for row in board.cells]
        self.counts: Dict[int, int] = {int(s): int(c) for s, c in counts.items() if int(c) > 0}
        self.sizes_desc = sorted(self.counts, reverse=True)
        self.limit = max(1, int(CFG.SOLUTION_LIMIT if limit is None else limit))
        self.on_progress = on_progress
        self.token = token if token is not None else CancelToken()
        interval = CFG.PROGRESS_INTERVAL_MS if progress_interval_ms is None else progress_interval_ms
        self.interval_s = max(0, int(interval)) / 1000.0
        self.yield_tick = yield_tick
        self.clock = clock

        self.solutions = 0
        self.stats = SolverStats()
        self._last_tick = 0.0

    def _find_next_empty(self, starting_row: int):
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

    def _maybe_report(self) -> None:
        now = self.clock()
        if now - self._last_tick < self.interval_s:
            return
        self._last_tick = now
        if self.on_progress is not None:
            self.on_progress(self.stats)
        self.yield_tick()

    def _backtrack(self, depth: int, starting_row: int) -> bool:
        """Return True when the search should stop (limit reached or cancelled)."""
        if self.solutions >= self.limit:
            return True
        if self.token.cancelled:
            return True
        spot = self._find_next_empty(starting_row)
        if spot is None:
            self.solutions += 1
            return self.solutions >= self.limit
        x, y = spot
        if depth > self.stats.max_depth:
            self.stats.max_depth = depth
        for s in self.sizes_desc:
            if self.token.cancelled:
                return True
            if self.counts[s] == 0:
                continue
            if not self._fits(x, y, s):
                continue
            self.counts[s] -= 1
            self._fill(x, y, s, -s)  # placeholder, never a real tile id
            self.stats.nodes_visited += 1
            self._maybe_report()
            stop = self._backtrack(depth + 1, y)
            self._fill(x, y, s, 0)
            self.counts[s] += 1
            if stop:
                return True
        return False

    def run(self) -> CountResult:
        needed = sum(self.counts.values()) + 100
        if sys.getrecursionlimit() < needed:
            sys.setrecursionlimit(needed)
        self._last_tick = self.clock()
        self._backtrack(0, 0)
        cancelled = self.token.cancelled and self.solutions < self.limit
        log.debug(
            "solution count: %d (limit %d) nodes=%d cancelled=%s",
            self.solutions, self.limit, self.stats.nodes_visited, cancelled,
        )
        return CountResult(self.solutions, self.stats.nodes_visited, self.limit, cancelled)


def count_solutions(board: Board, inventory: Inventory, limit: Optional[int] = None, **kwargs) -> CountResult:
    return SolutionCounter(board, inventory.free_counts(), limit=limit, **kwargs).run()


__all__ = ["CountResult", "SolutionCounter", "count_solutions"]

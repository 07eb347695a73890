# Orchestrator: canonical orientation -> working copy -> search -> map back
from __future__ import annotations

import logging
import random
import time
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional, Tuple

from config import CFG
from history import BatchStep, Step
from models import Board, Inventory, Placement
from progress import set_done, set_stats, start_run
from solver.counter import CountProgressCallback, CountResult, count_solutions
from solver.search import (
    CANCELLED,
    TIMEBOX,
    CancelToken,
    CompletionSearch,
    ProgressCallback,
    SolveResult,
    SolverStats,
    default_yield_tick,
)
from solver.symmetry import (
    Transform,
    choose_best_transform,
    inv_rect_top_left,
    map_rect_top_left,
)

log = logging.getLogger(__name__)

ENGINES = ("backtrack", "cp_sat")

_CHECK_MESSAGES = {
    "none": "Check: no solution.",
    "unique": "Check: unique solution.",
    "multiple": "Check: multiple solutions.",
}


@dataclass
class AutoFillResult:
    result: SolveResult
    transform: Transform
    step: Optional[BatchStep] = None
    placements: List[Placement] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return self.result.ok

    @property
    def reason(self) -> Optional[str]:
        return self.result.reason

    def as_dict(self) -> Dict[str, object]:
        """``{ok, placements}`` in real coordinates, or ``{ok, reason}``; stats always included."""
        if self.ok:
            out: Dict[str, object] = {"ok": True, "placements": [p.as_dict() for p in self.placements]}
        else:
            out = {"ok": False, "reason": self.result.reason}
        out.update((self.result.stats or SolverStats()).as_dict())
        out["transform"] = {"rotation": self.transform.rotation, "mirror": self.transform.mirror}
        return out


# ---------- working copy ----------

def build_transformed_state(board: Board, inventory: Inventory, tf: Transform) -> Tuple[Board, Inventory]:
    """Isomorphic copy of ``board``/``inventory`` seen through ``tf``."""
    n = board.size
    work_board = Board(n)
    filled = 0
    for y, row in enumerate(board.cells):
        for x, tile_id in enumerate(row):
            if not tile_id:
                continue
            tx, ty = tf.map(x, y)
            work_board.cells[ty][tx] = tile_id
            filled += 1
    work_board.filled = filled

    work_inv = inventory.copy()
    for tile in work_inv:
        if tile.placed:
            tile.x, tile.y = map_rect_top_left(tf, tile.x, tile.y, tile.size)
    return work_board, work_inv


def apply_placements(work_board: Board, work_inv: Inventory, placements: List[Placement]) -> None:
    for pl in placements:
        tile = work_inv.find(pl.tile_id)
        if tile is None or tile.placed:
            continue
        tile.x, tile.y, tile.placed = pl.x, pl.y, True
        work_board.place(tile, pl.x, pl.y)


def apply_solution_from_work(
    board: Board,
    inventory: Inventory,
    work_inv: Inventory,
    tf: Transform,
) -> Optional[BatchStep]:
    """Copy tiles placed in ``work_inv`` (but free in ``inventory``) back onto the real board."""
    steps: List[Step] = []
    for wt in work_inv:
        if not wt.placed:
            continue
        tile = inventory.find(wt.id)
        if tile is None or tile.placed:
            continue
        x, y = inv_rect_top_left(tf, wt.x, wt.y, wt.size)
        tile.x, tile.y, tile.placed = x, y, True
        board.place(tile, x, y)
        steps.append(Step(tile.id, 0, 0, False, x, y, True))
    return BatchStep(steps) if steps else None


# ---------- public entrypoints ----------

def _engine_name(engine: Optional[str], default: str, what: str) -> str:
    name = (engine or default or "backtrack").lower()
    if name not in ENGINES:
        raise ValueError(f"unknown {what} engine {name!r} (expected one of {', '.join(ENGINES)})")
    return name


def auto_fill(
    board: Board,
    inventory: Inventory,
    *,
    engine: Optional[str] = None,
    on_progress: Optional[ProgressCallback] = None,
    token: Optional[CancelToken] = None,
    rng: Optional[random.Random] = None,
    transform: Optional[Transform] = None,
    progress_interval_ms: Optional[int] = None,
    yield_tick: Callable[[], None] = default_yield_tick,
    track_progress: bool = False,
) -> AutoFillResult:
    """
    Complete ``board`` with the free tiles of ``inventory``.

    The real board/inventory are only touched after a successful search; on
    failure or cancellation they are exactly as they were passed in. The
    preview handed to ``on_progress`` is already in real board coordinates.
    The ``cp_sat`` engine reports no preview and cannot be cancelled; it
    stops at ``CP_SAT_MAX_SECONDS`` with reason ``"timebox"``.
    """
    engine = _engine_name(engine, CFG.AUTOFILL_ENGINE, "auto-fill")
    t0 = time.time()
    tf = transform if transform is not None else choose_best_transform(board)
    log.info(
        "auto-fill start: engine=%s %s key=%s filled=%d/%d",
        engine, tf.describe(), tf.key, board.filled, board.size ** 2,
    )
    if track_progress:
        start_run("autofill", transform=tf.describe())

    work_board, work_inv = build_transformed_state(board, inventory, tf)

    if engine == "cp_sat":
        from solver.cp_sat import complete_with_cp_sat  # ortools is only loaded on demand

        result = complete_with_cp_sat(work_board, work_inv)
    else:
        def _tick(stats: SolverStats, preview):
            mapped = [(*inv_rect_top_left(tf, x, y, s), s) for x, y, s in preview]
            if track_progress:
                set_stats(stats.nodes_visited, stats.max_depth, mapped)
            if on_progress is not None:
                on_progress(stats, mapped)

        result = CompletionSearch(
            work_board,
            work_inv,
            rng=rng,
            on_progress=_tick,
            token=token,
            progress_interval_ms=progress_interval_ms,
            yield_tick=yield_tick,
        ).run()

    step: Optional[BatchStep] = None
    placements: List[Placement] = []
    if result.ok:
        apply_placements(work_board, work_inv, result.placements)
        step = apply_solution_from_work(board, inventory, work_inv, tf)
        for s in (step.steps if step else []):
            placements.append(Placement(s.tile_id, s.to_x, s.to_y, inventory.find(s.tile_id).size))

    stats = result.stats or SolverStats()
    log.info(
        "auto-fill finished: ok=%s reason=%s nodes=%d depth=%d placed=%d in %.2fs",
        result.ok, result.reason, stats.nodes_visited, stats.max_depth,
        len(placements), time.time() - t0,
    )
    if track_progress:
        set_stats(stats.nodes_visited, stats.max_depth, [])
        if result.ok:
            set_done(True, message="Auto-Fill completed.")
        elif result.reason == CANCELLED:
            set_done(False, status="Cancelled", message="Auto-Fill cancelled.")
        elif result.reason == TIMEBOX:
            set_done(False, status="Timed out", message="Auto-Fill timed out.")
        else:
            set_done(False, status="No solution", message="No solution found.")
    return AutoFillResult(result, tf, step, placements)


def check_solutions(
    board: Board,
    inventory: Inventory,
    limit: Optional[int] = None,
    *,
    engine: Optional[str] = None,
    on_progress: Optional[CountProgressCallback] = None,
    token: Optional[CancelToken] = None,
    progress_interval_ms: Optional[int] = None,
    yield_tick: Callable[[], None] = default_yield_tick,
    track_progress: bool = False,
) -> CountResult:
    """Classify the current position as having no, one or several completions."""
    engine = _engine_name(engine, CFG.CHECK_ENGINE, "check")
    lim = limit if limit is not None else CFG.SOLUTION_LIMIT
    if track_progress:
        start_run("check", transform=engine)

    if engine == "cp_sat":
        from solver.cp_sat import count_with_cp_sat  # ortools is only loaded on demand

        res = count_with_cp_sat(board, inventory, lim)
    else:
        def _tick(stats: SolverStats):
            if track_progress:
                set_stats(stats.nodes_visited, stats.max_depth)
            if on_progress is not None:
                on_progress(stats)

        res = count_solutions(
            board,
            inventory,
            lim,
            on_progress=_tick,
            token=token,
            progress_interval_ms=progress_interval_ms,
            yield_tick=yield_tick,
        )

    log.info(
        "check finished: engine=%s count=%s nodes=%d cancelled=%s",
        engine, res.label, res.nodes_visited, res.cancelled,
    )
    if track_progress:
        set_stats(res.nodes_visited, 0)
        if res.cancelled:
            set_done(False, status="Cancelled", message="Check cancelled.")
        else:
            set_done(res.count > 0, status="Checked", message=_CHECK_MESSAGES[res.verdict])
    return res


__all__ = [
    "AutoFillResult",
    "ENGINES",
    "apply_placements",
    "apply_solution_from_work",
    "auto_fill",
    "build_transformed_state",
    "check_solutions",
]

# solver/cp_sat.py: exact-cover completion via OR-Tools CP-SAT
from __future__ import annotations

import logging
from collections import defaultdict
from typing import Dict, List, Optional, Tuple

from ortools.sat.python import cp_model as _cp

from config import CFG
from models import Board, Inventory, Placement, Tile
from solver.counter import CountResult
from solver.search import NO_SOLUTION, TIMEBOX, SolveResult, SolverStats

log = logging.getLogger(__name__)


Option = Tuple[int, int, int]  # (size, x, y)


class _CoverModel:
    """One boolean per (size, anchor) that fits in empty cells; each empty cell covered exactly once."""

    def __init__(self, board: Board, inventory: Inventory):
        self.pools: Dict[int, List[Tile]] = {
            s: pool for s, pool in inventory.free_pools().items() if pool
        }
        self.sizes = sorted(self.pools)
        n = board.size
        self.empty = [(x, y) for y in range(n) for x in range(n) if board.cells[y][x] == 0]
        self.model = _cp.CpModel()
        self.options: List[Option] = []
        self.vars: List[_cp.IntVar] = []
        self.uncoverable: Optional[Tuple[int, int]] = None

        m = self.model
        by_size: Dict[int, List[_cp.IntVar]] = defaultdict(list)
        cell_to_vars: Dict[Tuple[int, int], List[_cp.IntVar]] = defaultdict(list)
        for s in self.sizes:
            for y in range(0, n - s + 1):
                for x in range(0, n - s + 1):
                    if board.overlap(x, y, s):
                        continue
                    v = m.NewBoolVar(f"p_{s}_{x}_{y}")
                    self.options.append((s, x, y))
                    self.vars.append(v)
                    by_size[s].append(v)
                    for dy in range(s):
                        for dx in range(s):
                            cell_to_vars[(x + dx, y + dy)].append(v)

        for s, vs in by_size.items():
            m.Add(sum(vs) <= len(self.pools[s]))

        for cell in self.empty:
            vars_here = cell_to_vars.get(cell)
            if not vars_here:
                self.uncoverable = cell
                break
            m.AddExactlyOne(vars_here)

    def make_solver(self, max_seconds: Optional[float]) -> _cp.CpSolver:
        solver = _cp.CpSolver()
        seconds = CFG.CP_SAT_MAX_SECONDS if max_seconds is None else max_seconds
        solver.parameters.max_time_in_seconds = float(seconds)
        solver.parameters.max_memory_in_mb = int(CFG.CP_SAT_MAX_MEMORY_MB)
        solver.parameters.num_search_workers = int(CFG.CP_SAT_WORKERS)
        solver.parameters.log_search_progress = False
        if CFG.SOLVER_SEED is not None:
            solver.parameters.random_seed = int(CFG.SOLVER_SEED)
        return solver

    def chosen(self, solver: _cp.CpSolver) -> List[int]:
        return [k for k, v in enumerate(self.vars) if solver.BooleanValue(v)]

    def to_placements(self, chosen: List[int]) -> List[Placement]:
        remaining = {s: list(pool) for s, pool in self.pools.items()}
        placed: List[Placement] = []
        for k in chosen:
            s, x, y = self.options[k]
            tile = remaining[s].pop()
            placed.append(Placement(tile.id, x, y, s))
        placed.sort(key=lambda pl: (pl.y, pl.x))
        return placed


def complete_with_cp_sat(
    board: Board,
    inventory: Inventory,
    max_seconds: Optional[float] = None,
) -> SolveResult:
    """
    Cover every empty cell of ``board`` with free tiles, each used at most once.

    ``reason`` is ``"no-solution"`` when CP-SAT proves infeasibility and
    ``"timebox"`` when it stops before deciding.
    """
    cm = _CoverModel(board, inventory)
    if not cm.empty:
        return SolveResult(True, [], None, SolverStats())
    if cm.uncoverable is not None:
        log.debug("cp-sat: cell %s cannot be covered by any free tile", cm.uncoverable)
        return SolveResult(False, [], NO_SOLUTION, SolverStats())

    solver = cm.make_solver(max_seconds)
    res = solver.Solve(cm.model)
    stats = SolverStats(nodes_visited=int(solver.NumBranches()))

    if res in (_cp.OPTIMAL, _cp.FEASIBLE):
        placed = cm.to_placements(cm.chosen(solver))
        stats.max_depth = len(placed)
        return SolveResult(True, placed, None, stats)
    if res == _cp.INFEASIBLE:
        return SolveResult(False, [], NO_SOLUTION, stats)
    if res == _cp.MODEL_INVALID:
        raise RuntimeError("CP-SAT model invalid (configuration error)")
    return SolveResult(False, [], TIMEBOX, stats)


def count_with_cp_sat(
    board: Board,
    inventory: Inventory,
    limit: Optional[int] = None,
    max_seconds: Optional[float] = None,
) -> CountResult:
    """Count geometrically distinct completions up to ``limit`` by excluding each one found.

    A timebox before the count is settled is reported as ``cancelled``.
    """
    lim = max(1, int(CFG.SOLUTION_LIMIT if limit is None else limit))
    cm = _CoverModel(board, inventory)
    if not cm.empty:
        return CountResult(1, 0, lim)
    if cm.uncoverable is not None:
        return CountResult(0, 0, lim)

    count = 0
    branches = 0
    while count < lim:
        solver = cm.make_solver(max_seconds)
        res = solver.Solve(cm.model)
        branches += int(solver.NumBranches())
        if res in (_cp.OPTIMAL, _cp.FEASIBLE):
            count += 1
            picked = cm.chosen(solver)
            cm.model.Add(sum(cm.vars[k] for k in picked) <= len(picked) - 1)
            continue
        if res == _cp.INFEASIBLE:
            break
        if res == _cp.MODEL_INVALID:
            raise RuntimeError("CP-SAT model invalid (configuration error)")
        return CountResult(count, branches, lim, cancelled=True)
    return CountResult(count, branches, lim)


__all__ = ["TIMEBOX", "complete_with_cp_sat", "count_with_cp_sat"]

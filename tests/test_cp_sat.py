import pytest

pytest.importorskip("ortools")

from models import Board, inventory_from_sizes  # noqa: E402
from progress import snapshot  # noqa: E402
from session import PuzzleSession  # noqa: E402
from solver.cp_sat import complete_with_cp_sat, count_with_cp_sat  # noqa: E402
from solver.orchestrator import auto_fill, check_solutions  # noqa: E402
from solver.search import NO_SOLUTION, TIMEBOX, SolveResult, SolverStats  # noqa: E402


def test_completion_covers_every_empty_cell():
    board = Board(5)
    inv = inventory_from_sizes([3, 2, 2, 2, 1, 1, 1, 1])

    res = complete_with_cp_sat(board, inv, max_seconds=10)

    assert res.ok
    covered = set()
    for p in res.placements:
        for j in range(p.size):
            for i in range(p.size):
                assert (p.x + i, p.y + j) not in covered
                covered.add((p.x + i, p.y + j))
    assert len(covered) == 25
    assert len({p.tile_id for p in res.placements}) == len(res.placements)


def test_completion_respects_givens():
    board = Board(2)
    inv = inventory_from_sizes([1, 1, 1, 1])
    given = inv.find(1)
    given.placed, given.fixed = True, True
    board.place(given, 0, 0)

    res = complete_with_cp_sat(board, inv, max_seconds=10)

    assert res.ok
    assert sorted((p.x, p.y) for p in res.placements) == [(0, 1), (1, 0), (1, 1)]
    assert all(p.tile_id != 1 for p in res.placements)


def test_completion_reports_infeasible():
    res = complete_with_cp_sat(Board(3), inventory_from_sizes([2, 2, 1, 1, 1, 1]), max_seconds=10)
    assert not res.ok
    assert res.reason == NO_SOLUTION


def test_full_board_needs_no_model():
    board = Board(2)
    inv = inventory_from_sizes([2])
    inv.find(1).placed = True
    board.place(inv.find(1), 0, 0)
    assert complete_with_cp_sat(board, inv).placements == []
    assert count_with_cp_sat(board, inv).count == 1


def test_counts_match_backtracking():
    inv = inventory_from_sizes([2, 1, 1, 1, 1, 1])
    assert count_with_cp_sat(Board(3), inv, limit=10, max_seconds=10).count == 4
    assert count_with_cp_sat(Board(3), inv, limit=2, max_seconds=10).label == ">1"
    assert count_with_cp_sat(Board(2), inventory_from_sizes([1]), max_seconds=10).verdict == "none"


def test_check_can_use_cp_sat_engine():
    res = check_solutions(Board(4), inventory_from_sizes([2, 2, 2, 2]), 5, engine="cp_sat")
    assert res.count == 1
    assert res.verdict == "unique"


def test_auto_fill_with_cp_sat_maps_back_through_transform():
    board = Board(4)
    inv = inventory_from_sizes([2, 2, 2, 2])
    given = inv.find(1)
    given.x, given.y, given.placed, given.fixed = 2, 2, True, True
    board.place(given, 2, 2)

    out = auto_fill(board, inv, engine="cp_sat")

    assert out.ok
    assert not out.transform.is_identity
    assert board.is_complete()
    assert sorted((p.x, p.y) for p in out.placements) == [(0, 0), (0, 2), (2, 0)]
    assert len(out.step) == 3


def test_cp_sat_timebox_is_reported_and_leaves_board_alone(monkeypatch):
    import solver.cp_sat as cp_sat_module

    monkeypatch.setattr(
        cp_sat_module,
        "complete_with_cp_sat",
        lambda board, inventory, max_seconds=None: SolveResult(False, [], TIMEBOX, SolverStats()),
    )
    board = Board(3)
    inv = inventory_from_sizes([2, 1, 1, 1, 1, 1])

    out = auto_fill(board, inv, engine="cp_sat", track_progress=True)

    assert out.reason == TIMEBOX
    assert out.step is None
    assert board.filled == 0
    snap = snapshot()
    assert snap["status"] == "Timed out"
    assert snap["message"] == "Auto-Fill timed out."


def test_session_auto_fill_can_use_cp_sat():
    s = PuzzleSession(board_size=4, inventory=inventory_from_sizes([2, 2, 2, 2]))
    s.apply_givens("222")
    out = s.auto_fill(engine="cp_sat")
    assert out.ok
    assert s.status()["complete"]
    assert s.undo()
    assert s.board.filled == 4

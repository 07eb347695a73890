import random

import pytest

from history import History
from models import Board, inventory_from_sizes
from progress import snapshot
from solver.orchestrator import (
    apply_solution_from_work,
    auto_fill,
    build_transformed_state,
    check_solutions,
)
from solver.search import CANCELLED, NO_SOLUTION, CancelToken
from solver.symmetry import make_transform


def _no_yield():
    pass


def _with_given(board_size, sizes, given_id, x, y):
    board = Board(board_size)
    inv = inventory_from_sizes(sizes)
    tile = inv.find(given_id)
    tile.x, tile.y, tile.placed, tile.fixed = x, y, True, True
    board.place(tile, x, y)
    return board, inv


def test_transformed_state_is_an_independent_mapped_copy():
    board, inv = _with_given(4, [1, 1], 1, 3, 3)
    tf = make_transform(4, 1, True)

    work_board, work_inv = build_transformed_state(board, inv, tf)

    assert work_board.cells[0][0] == 1
    assert work_board.filled == 1
    assert (work_inv.find(1).x, work_inv.find(1).y) == (0, 0)
    assert board.cells[3][3] == 1
    assert (inv.find(1).x, inv.find(1).y) == (3, 3)


def test_solution_is_mapped_back_to_real_coordinates():
    board, inv = _with_given(4, [2, 2, 2, 2], 1, 2, 2)

    out = auto_fill(board, inv, rng=random.Random(1), yield_tick=_no_yield)

    assert out.ok
    assert not out.transform.is_identity
    assert board.is_complete()
    assert sorted((p.x, p.y) for p in out.placements) == [(0, 0), (0, 2), (2, 0)]
    assert (inv.find(1).x, inv.find(1).y) == (2, 2)
    assert len(out.step) == 3
    body = out.as_dict()
    assert body["ok"] is True
    assert len(body["placements"]) == 3
    assert "nodesVisited" in body and "transform" in body


def test_completed_board_cells_match_tile_positions():
    board = Board(5)
    inv = inventory_from_sizes([3, 2, 2, 2, 1, 1, 1, 1])
    out = auto_fill(board, inv, rng=random.Random(7), yield_tick=_no_yield)

    assert out.ok
    for t in inv:
        if not t.placed:
            continue
        for j in range(t.size):
            for i in range(t.size):
                assert board.cells[t.y + j][t.x + i] == t.id
    assert all(all(row) for row in board.cells)
    assert board.filled == 25


def test_auto_fill_step_undoes_as_one_unit():
    board, inv = _with_given(4, [2, 2, 2, 2], 1, 0, 0)
    hist = History()

    out = auto_fill(board, inv, rng=random.Random(4), yield_tick=_no_yield)
    hist.push(out.step)
    hist.undo(board, inv)

    assert board.filled == 4
    assert [t.id for t in inv.placed_tiles()] == [1]


def test_cancelled_run_leaves_state_untouched():
    board, inv = _with_given(5, [3, 2, 2, 2, 1, 1, 1, 1], 5, 4, 4)
    before_cells = board.snapshot()
    before_tiles = [(t.x, t.y, t.placed, t.fixed) for t in inv]
    token = CancelToken()
    token.cancel()

    out = auto_fill(board, inv, token=token, yield_tick=_no_yield)

    assert not out.ok
    assert out.reason == CANCELLED
    assert out.step is None
    assert board.snapshot() == before_cells
    assert [(t.x, t.y, t.placed, t.fixed) for t in inv] == before_tiles


def test_no_solution_leaves_state_untouched():
    board, inv = _with_given(3, [1, 1], 1, 1, 1)
    out = auto_fill(board, inv, yield_tick=_no_yield)
    assert out.reason == NO_SOLUTION
    assert board.filled == 1
    assert out.as_dict()["reason"] == "no-solution"


def test_preview_is_reported_in_real_coordinates():
    board, inv = _with_given(4, [2, 2, 2, 2], 1, 2, 2)
    previews = []

    out = auto_fill(
        board,
        inv,
        rng=random.Random(0),
        on_progress=lambda stats, preview: previews.append(list(preview)),
        progress_interval_ms=0,
        yield_tick=_no_yield,
    )

    assert out.ok
    assert previews[0] == []
    for preview in previews:
        for x, y, s in preview:
            assert s == 2
            assert (x, y) in {(0, 0), (2, 0), (0, 2)}


def test_apply_solution_skips_tiles_already_placed():
    board, inv = _with_given(2, [1, 1, 1, 1], 1, 0, 0)
    tf = make_transform(2)
    work_board, work_inv = build_transformed_state(board, inv, tf)
    assert apply_solution_from_work(board, inv, work_inv, tf) is None


def test_tracked_runs_update_progress():
    board, inv = _with_given(4, [2, 2, 2, 2], 1, 2, 2)
    auto_fill(board, inv, rng=random.Random(2), yield_tick=_no_yield, track_progress=True)
    snap = snapshot()
    assert snap["mode"] == "autofill"
    assert snap["status"] == "Solved"
    assert snap["ok"] is True
    assert snap["done"] is True

    board, inv = _with_given(3, [1, 1], 1, 1, 1)
    auto_fill(board, inv, yield_tick=_no_yield, track_progress=True)
    assert snapshot()["status"] == "No solution"

    check_solutions(Board(2), inventory_from_sizes([1, 1, 1, 1]), yield_tick=_no_yield, track_progress=True)
    snap = snapshot()
    assert snap["mode"] == "check"
    assert snap["status"] == "Checked"
    assert snap["message"] == "Check: unique solution."


def test_check_counts_with_backtracking_engine():
    res = check_solutions(Board(3), inventory_from_sizes([2, 1, 1, 1, 1, 1]), 10, yield_tick=_no_yield)
    assert res.count == 4


def test_unknown_engine_is_rejected():
    with pytest.raises(ValueError, match="unknown check engine"):
        check_solutions(Board(2), inventory_from_sizes([2]), engine="magic")


def test_unknown_auto_fill_engine_is_rejected_before_touching_state():
    board, inv = _with_given(2, [1, 1, 1, 1], 1, 0, 0)
    with pytest.raises(ValueError, match="unknown auto-fill engine"):
        auto_fill(board, inv, engine="magic", yield_tick=_no_yield)
    assert board.filled == 1

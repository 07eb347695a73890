from models import Board, Tile, board_edge_for, can_place, create_inventory, inventory_from_sizes


def _count_cells(board):
    return sum(1 for row in board.cells for v in row if v)


def test_place_and_remove_track_filled_count():
    board = Board(4)
    tile = Tile(7, 2)
    board.place(tile, 1, 1)
    tile.x, tile.y, tile.placed = 1, 1, True

    assert board.filled == 4
    assert _count_cells(board) == 4
    assert board.cells[1][1] == board.cells[2][2] == 7
    assert board.cells[0][0] == 0

    board.remove(tile)
    assert board.filled == 0
    assert _count_cells(board) == 0


def test_in_bounds_and_overlap():
    board = Board(3)
    assert board.in_bounds(0, 0, 3)
    assert not board.in_bounds(1, 0, 3)
    assert not board.in_bounds(-1, 0, 1)

    board.place(Tile(1, 1), 2, 2)
    assert board.overlap(1, 1, 2)
    assert not board.overlap(0, 0, 2)


def test_can_place_combines_bounds_and_overlap():
    board = Board(3)
    big = Tile(1, 2)
    assert can_place(board, big, 1, 1)
    assert not can_place(board, big, 2, 2)
    board.place(Tile(2, 1), 1, 1)
    assert not can_place(board, big, 0, 0)
    assert can_place(board, Tile(3, 1), 0, 0)


def test_clear_and_copy_are_independent():
    board = Board(2)
    board.place(Tile(1, 1), 0, 0)
    dup = board.copy()
    board.clear()

    assert board.filled == 0
    assert dup.filled == 1
    assert dup.snapshot() == ((1, 0), (0, 0))


def test_triangular_inventory_area_matches_board():
    inv = create_inventory(8)
    assert len(inv) == 36
    assert [len(inv.by_size(s)) for s in range(1, 9)] == list(range(1, 9))
    assert sum(t.size ** 2 for t in inv) == board_edge_for(8) ** 2 == 36 * 36
    assert [t.id for t in inv] == list(range(1, 37))


def test_free_pools_skip_placed_tiles():
    inv = inventory_from_sizes([2, 1, 1])
    inv.find(2).placed = True

    assert inv.free_counts() == {1: 1, 2: 1}
    assert [t.id for t in inv.free_pools()[1]] == [3]
    assert inv.next_free(1).id == 3
    assert inv.remaining(1) == 1

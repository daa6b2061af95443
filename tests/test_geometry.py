import random

import pytest

from broadside.geometry import (
    Orientation,
    ShipPlacement,
    covers,
    fits,
    in_bounds,
    occupied_cells,
    random_fleet,
)


def test_horizontal_ship_grows_along_x():
    assert occupied_cells(2, 3, 3, Orientation.HORIZONTAL) == [(2, 3), (3, 3), (4, 3)]


def test_vertical_ship_grows_along_y():
    assert occupied_cells(2, 3, 3, Orientation.VERTICAL) == [(2, 3), (2, 4), (2, 5)]


def test_placement_cells_match_occupied_cells():
    p = ShipPlacement("a", 1, 1, 4, Orientation.VERTICAL)
    assert p.cells() == occupied_cells(1, 1, 4, Orientation.VERTICAL)


def test_bounds_on_nine_by_nine():
    assert in_bounds((0, 0), 9)
    assert in_bounds((8, 8), 9)
    assert not in_bounds((9, 0), 9)
    assert not in_bounds((0, -1), 9)


def test_ship_extending_past_edge_does_not_fit():
    assert fits(occupied_cells(4, 0, 5, Orientation.HORIZONTAL), 9)
    assert not fits(occupied_cells(5, 0, 5, Orientation.HORIZONTAL), 9)


def test_covers_agrees_with_cells():
    cells = set(occupied_cells(3, 2, 4, Orientation.VERTICAL))
    for x in range(9):
        for y in range(9):
            assert covers(3, 2, 4, Orientation.VERTICAL, (x, y)) == ((x, y) in cells)


def test_random_fleet_is_legal():
    manifest = {5: 1, 4: 1, 3: 2, 2: 1}
    for seed in range(20):
        placements = random_fleet(manifest, 9, random.Random(seed))
        cells = [c for p in placements for c in p.cells()]
        assert sorted(p.length for p in placements) == [2, 3, 3, 4, 5]
        assert len(cells) == len(set(cells)) == 17
        assert fits(cells, 9)


def test_random_fleet_gives_up_when_ships_cannot_fit():
    with pytest.raises(ValueError, match="length 5"):
        random_fleet({5: 1}, 4, random.Random(0))


def test_random_fleet_gives_up_on_a_crowded_board():
    # Nine 2-cell ships need 18 cells; a 4x4 board has 16
    with pytest.raises(ValueError):
        random_fleet({2: 9}, 4, random.Random(0), max_tries=50)

"""Tests for grid <-> world coordinate mapping."""

import pytest

from gridpath.core.mapper import CoordinateMapper
from gridpath.core.types import GridConfig


@pytest.mark.parametrize("config", [GridConfig(20, 20), GridConfig(7, 5, 0.5), GridConfig(3, 9, 2.5)])
def test_round_trip_every_cell(config):
    mapper = CoordinateMapper(config)
    for y in range(config.height):
        for x in range(config.width):
            wx, _, wz = mapper.grid_to_world((x, y))
            assert mapper.world_to_grid(wx, wz) == (x, y)


def test_grid_is_centered_on_origin():
    mapper = CoordinateMapper(GridConfig(20, 20))
    assert mapper.grid_to_world((0, 0)) == (-9.5, 0.0, -9.5)
    assert mapper.grid_to_world((19, 19), 2.0) == (9.5, 2.0, 9.5)

    odd = CoordinateMapper(GridConfig(5, 5))
    assert odd.grid_to_world((2, 2)) == (0.0, 0.0, 0.0)


def test_world_to_grid_rounds_to_nearest_cell():
    mapper = CoordinateMapper(GridConfig(20, 20))
    assert mapper.world_to_grid(-9.3, -8.8) == (0, 1)
    # on the shared edge of cells 0 and 1
    assert mapper.world_to_grid(-9.0, -9.5) == (1, 0)


def test_world_to_grid_clamps_to_grid():
    mapper = CoordinateMapper(GridConfig(6, 4))
    assert mapper.world_to_grid(100.0, -100.0) == (5, 0)
    assert mapper.world_to_grid(-100.0, 100.0) == (0, 3)


def test_contains():
    mapper = CoordinateMapper(GridConfig(6, 4))
    assert mapper.contains((5, 3))
    assert not mapper.contains((6, 3))
    assert not mapper.contains((-1, 0))

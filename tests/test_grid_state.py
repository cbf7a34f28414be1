"""Tests for the grid state machine."""

import logging
import random

import pytest

from gridpath.core.footprint import BoxShape, DiscShape, PlacedObject
from gridpath.core.grid_state import GridState
from gridpath.core.types import GridConfig, TileStatus


def make_state(width=10, height=10, **kwargs):
    kwargs.setdefault("random_start", False)
    return GridState(GridConfig(width, height), **kwargs)


def routed(width=10, height=10, start=(0, 0), end=(9, 9)):
    state = make_state(width, height)
    assert state.set_start(*start)
    assert state.set_end(*end)
    return state


def assert_consistent(state):
    """Tile statuses agree with start, end, obstacles and path."""
    statuses = state.get_all_tile_status()
    start, end = state.get_start_cell(), state.get_end_cell()
    obstacles = set(state.get_obstacles())
    if start is not None:
        assert statuses[start] is TileStatus.START
    if end is not None:
        assert statuses[end] is TileStatus.END
    assert start not in obstacles and end not in obstacles
    for c in obstacles:
        assert statuses[c] is TileStatus.OBSTACLE
    inner = set(state.get_path()[1:-1])
    assert {c for c, s in statuses.items() if s is TileStatus.PATH} == inner
    path = state.get_path()
    if path:
        assert path[0] == start and path[-1] == end
        assert not set(path) & obstacles


# -------------------- lifecycle --------------------

def test_random_start_at_construction():
    state = GridState(GridConfig(5, 5), rng=random.Random(3))
    assert state.is_initialized()
    start = state.get_start_cell()
    assert state.config.in_bounds(start)
    assert state.get_tile_status(*start) is TileStatus.START
    assert state.get_end_cell() is None
    assert state.get_path() == []


def test_seeded_random_start_is_reproducible():
    a = GridState(GridConfig(30, 30), rng=random.Random(42))
    b = GridState(GridConfig(30, 30), rng=random.Random(42))
    assert a.get_start_cell() == b.get_start_cell()


def test_uninitialized_state():
    state = make_state()
    assert not state.is_initialized()
    assert state.get_start_cell() is None
    assert state.get_all_tile_status() == {}
    assert state.get_tile_status(3, 3) is TileStatus.DEFAULT


def test_random_start_avoids_obstacles_and_end():
    state = make_state(3, 1)
    state.add_obstacle(0, 0)
    state.set_end(2, 0)
    assert state.initialize_random_start()
    assert state.get_start_cell() == (1, 0)


def test_random_start_with_no_free_cell():
    state = make_state(1, 1)
    state.set_end(0, 0)
    assert not state.initialize_random_start()
    assert not state.is_initialized()


# -------------------- start / end --------------------

def test_start_and_end_produce_a_path():
    state = routed()
    path = state.get_path()
    assert path == [(i, i) for i in range(10)]
    assert state.get_path_cost() == pytest.approx(9 * 2 ** 0.5)
    assert state.get_tile_status(0, 0) is TileStatus.START
    assert state.get_tile_status(9, 9) is TileStatus.END
    assert state.get_tile_status(4, 4) is TileStatus.PATH
    assert_consistent(state)


def test_start_only_has_no_path():
    state = make_state()
    state.set_start(2, 2)
    assert state.get_path() == []
    assert state.get_end_cell() is None


def test_moving_start_reroutes_and_clears_old_start():
    state = routed(end=(9, 0))
    assert state.set_start(0, 9)
    assert state.get_tile_status(0, 0) is TileStatus.DEFAULT
    assert state.get_path()[0] == (0, 9)
    assert_consistent(state)


def test_start_and_end_cannot_coincide():
    state = routed()
    assert not state.set_end(0, 0)
    assert not state.set_start(9, 9)
    assert state.get_start_cell() == (0, 0)
    assert state.get_end_cell() == (9, 9)


def test_endpoints_cannot_land_on_obstacles():
    state = make_state()
    state.add_obstacle(4, 4)
    assert not state.set_start(4, 4)
    assert not state.set_end(4, 4)
    assert state.get_tile_status(4, 4) is TileStatus.OBSTACLE


@pytest.mark.parametrize("cell", [(-1, 0), (0, -1), (10, 0), (0, 10)])
def test_out_of_bounds_mutations_are_ignored(cell):
    state = routed()
    before = state.snapshot()
    assert not state.set_start(*cell)
    assert not state.set_end(*cell)
    assert not state.add_obstacle(*cell)
    assert not state.remove_obstacle(*cell)
    assert not state.toggle_obstacle(*cell)
    assert state.snapshot() == before


@pytest.mark.parametrize("cell", [(1.5, 2), (2, 0.5), (2.0, 2), (True, 1), ("1", 1)])
def test_non_integer_cells_are_ignored(cell):
    state = routed()
    before = state.snapshot()
    assert not state.set_start(*cell)
    assert not state.set_end(*cell)
    assert not state.add_obstacle(*cell)
    assert not state.toggle_obstacle(*cell)
    assert state.snapshot() == before
    assert state.get_start_cell() == (0, 0)
    assert state.get_obstacles() == []


# -------------------- obstacles --------------------

def test_obstacles_never_cover_start_or_end():
    state = routed()
    assert not state.add_obstacle(0, 0)
    assert not state.add_obstacle(9, 9)
    assert not state.toggle_obstacle(0, 0)
    assert state.get_obstacles() == []


def test_obstacle_on_path_reroutes():
    state = routed(5, 5, (0, 0), (4, 4))
    assert (2, 2) in state.get_path()
    assert state.add_obstacle(2, 2)
    path = state.get_path()
    assert path and (2, 2) not in path
    assert state.get_tile_status(2, 2) is TileStatus.OBSTACLE
    assert_consistent(state)


def test_adding_existing_obstacle_is_a_no_op():
    state = make_state()
    assert state.add_obstacle(1, 1)
    assert not state.add_obstacle(1, 1)
    assert state.get_obstacles() == [(1, 1)]


def test_unreachable_end_is_distinguishable_from_missing_end():
    state = routed(5, 5, (0, 2), (4, 2))
    for y in range(5):
        state.add_obstacle(2, y)
    assert state.get_path() == []
    assert state.get_end_cell() == (4, 2)
    assert not [c for c, s in state.get_all_tile_status().items() if s is TileStatus.PATH]


def test_removing_blocking_obstacle_restores_connectivity():
    state = routed(3, 1, (0, 0), (2, 0))
    state.add_obstacle(1, 0)
    assert state.get_path() == []
    assert state.remove_obstacle(1, 0)
    assert state.get_path() == [(0, 0), (1, 0), (2, 0)]
    assert state.get_tile_status(1, 0) is TileStatus.PATH


def test_toggle_obstacle():
    state = make_state()
    assert state.toggle_obstacle(3, 4)
    assert state.get_tile_status(3, 4) is TileStatus.OBSTACLE
    assert state.toggle_obstacle(3, 4)
    assert state.get_tile_status(3, 4) is TileStatus.DEFAULT
    assert not state.remove_obstacle(3, 4)


# -------------------- clearing --------------------

def test_clear_path_drops_end_and_path_only():
    state = routed()
    state.add_obstacle(5, 2)
    state.clear_path()
    assert state.get_path() == []
    assert state.get_end_cell() is None
    assert state.get_start_cell() == (0, 0)
    assert state.get_obstacles() == [(5, 2)]
    assert state.get_tile_status(9, 9) is TileStatus.DEFAULT
    assert_consistent(state)


def test_clear_all_keeps_only_start():
    state = routed()
    state.add_obstacle(5, 2)
    state.add_obstacle(2, 5)
    state.clear_all()
    assert state.get_end_cell() is None
    assert state.get_obstacles() == []
    assert state.get_path() == []
    assert state.get_tile_status(0, 0) is TileStatus.START
    assert state.get_all_tile_status() == {(0, 0): TileStatus.START}


def test_recompute_path_is_idempotent():
    state = routed()
    path = state.get_path()
    state.recompute_path()
    assert state.get_path() == path
    assert_consistent(state)


# -------------------- accessors --------------------

def test_accessors_return_copies():
    state = routed()
    state.add_obstacle(5, 2)

    state.get_path().append((42, 42))
    state.get_all_tile_status()[(1, 1)] = TileStatus.OBSTACLE
    state.get_obstacles().clear()

    assert (42, 42) not in state.get_path()
    assert state.get_tile_status(1, 1) is TileStatus.PATH
    assert state.get_obstacles() == [(5, 2)]


def test_snapshot_is_read_only():
    snap = routed().snapshot()
    with pytest.raises(TypeError):
        snap.tile_status[(0, 0)] = TileStatus.END
    assert snap.status_at((0, 0)) is TileStatus.START
    assert snap.status_at((9, 0)) is TileStatus.DEFAULT
    assert isinstance(snap.path, tuple)


def test_coordinate_helpers():
    state = make_state(20, 20)
    assert state.grid_to_world_position(0, 0, 1.5) == (-9.5, 1.5, -9.5)
    assert state.world_to_grid_position(-9.5, -9.5) == (0, 0)


# -------------------- custom objects --------------------

def test_custom_object_adds_and_removes_obstacles_as_a_unit():
    state = routed()
    handle = object()
    assert state.add_custom_object(handle, [(3, 3), (3, 4), (3, 3)])
    assert state.get_footprint(handle) == [(3, 3), (3, 4)]
    assert state.get_obstacles() == [(3, 3), (3, 4)]
    assert (3, 3) not in state.get_path()
    assert state.get_custom_objects() == [handle]

    assert state.remove_custom_object(handle)
    assert state.get_obstacles() == []
    assert state.get_custom_objects() == []
    assert (3, 3) in state.get_path()
    assert not state.remove_custom_object(handle)


def test_custom_object_without_obstacles():
    state = make_state()
    handle = object()
    state.add_custom_object(handle, [(1, 1)], mark_as_obstacle=False)
    assert state.get_obstacles() == []
    state.add_obstacle(1, 1)
    state.remove_custom_object(handle, clear_obstacles=False)
    assert state.get_obstacles() == [(1, 1)]


def test_custom_object_footprint_skips_start_and_end():
    state = routed()
    state.add_custom_object("crate", [(0, 0), (1, 0), (9, 9)])
    assert state.get_obstacles() == [(1, 0)]
    assert_consistent(state)


def test_unhashable_handles_are_supported():
    state = make_state()
    handle = {"mesh": "box"}
    state.add_custom_object(handle, [(2, 2)])
    assert state.get_custom_objects() == [handle]
    assert state.remove_custom_object(handle)


def test_reregistering_replaces_footprint():
    state = make_state()
    handle = object()
    state.add_custom_object(handle, [(1, 1)])
    state.add_custom_object(handle, [(5, 5)])
    assert state.get_obstacles() == [(5, 5)]
    assert state.get_footprint(handle) == [(5, 5)]


def test_reregistering_without_obstacles_drops_old_obstacles():
    state = make_state()
    handle = object()
    state.add_custom_object(handle, [(1, 1), (1, 2)])
    state.add_custom_object(handle, [(5, 5)], mark_as_obstacle=False)
    assert state.get_obstacles() == []
    assert state.get_footprint(handle) == [(5, 5)]
    assert state.get_tile_status(1, 1) is TileStatus.DEFAULT


def test_add_custom_component_derives_footprint():
    state = make_state(20, 20)
    crate = PlacedObject(state.grid_to_world_position(5, 5, 0.5), BoxShape(0.8))
    pillar = PlacedObject((3.0, 1.0, 0.0), DiscShape(1.0))
    assert state.calculate_object_grid_positions(crate) == [(5, 5)]

    state.add_custom_component(crate)
    state.add_custom_component(pillar)
    assert state.get_obstacles() == [(5, 5), (12, 9), (12, 11), (14, 9), (14, 11)]

    state.remove_custom_component(pillar)
    assert state.get_obstacles() == [(5, 5)]

    state.add_custom_component(pillar, as_obstacle=False)
    assert state.get_obstacles() == [(5, 5)]
    assert len(state.get_custom_objects()) == 2


def test_clear_all_keeps_object_registry():
    state = routed()
    handle = object()
    state.add_custom_object(handle, [(4, 6)])
    state.clear_all()
    assert state.get_obstacles() == []
    assert state.get_custom_objects() == [handle]


# -------------------- listeners --------------------

def test_listener_receives_one_snapshot_per_change():
    state = make_state()
    seen = []
    unsubscribe = state.subscribe(seen.append)

    state.set_start(0, 0)
    state.set_end(9, 9)
    assert len(seen) == 2
    assert seen[-1].path == tuple(state.get_path())

    state.set_end(0, 0)  # rejected
    state.add_obstacle(9, 9)  # rejected
    assert len(seen) == 2

    state.add_custom_object(object(), [(3, 3), (4, 4), (5, 5)])
    assert len(seen) == 3
    assert seen[-1].obstacles == frozenset({(3, 3), (4, 4), (5, 5)})
    assert (4, 4) not in seen[-1].path

    unsubscribe()
    state.clear_all()
    assert len(seen) == 3


def test_batch_recomputes_once():
    state = routed()
    seen = []
    state.subscribe(seen.append)
    with state.batch():
        for y in range(9):
            state.add_obstacle(5, y)
        assert len(seen) == 0
    assert len(seen) == 1
    assert (5, 9) in state.get_path()


def test_failing_listener_does_not_break_state(caplog):
    state = make_state()
    seen = []

    def broken(snap):
        raise RuntimeError("renderer gone")

    state.subscribe(broken)
    state.subscribe(seen.append)
    with caplog.at_level(logging.ERROR, logger="gridpath.core.grid_state"):
        assert state.set_start(1, 1)
    assert state.get_start_cell() == (1, 1)
    assert len(seen) == 1
    assert "renderer gone" in caplog.text


# -------------------- reconfiguration --------------------

def test_reconfigure_resets_everything():
    state = routed()
    state.add_obstacle(5, 2)
    state.add_custom_object(object(), [(6, 6)])
    state.reconfigure(GridConfig(4, 3))
    assert state.config == GridConfig(4, 3)
    assert state.get_obstacles() == []
    assert state.get_custom_objects() == []
    assert state.get_end_cell() is None
    assert state.config.in_bounds(state.get_start_cell())
    assert not state.set_end(9, 9)


def test_reconfigure_without_random_start():
    state = routed()
    state.reconfigure(GridConfig(4, 3), random_start=False)
    assert not state.is_initialized()

# gridpath/core/grid_state.py
#!/usr/bin/env python3
"""
Grid state: start/end cells, obstacles, placed objects and the current path.

Every mutator runs to completion before returning, including the path
recompute it triggers, and reports whether it changed anything. Rejected
placements (off the grid, start on end, endpoints on obstacles) are no-ops.

Renderers either poll the get_* accessors or subscribe() to receive a
GridSnapshot after every call that changed state.
"""

from contextlib import contextmanager
from dataclasses import dataclass
from types import MappingProxyType
from typing import Any, Callable, Dict, FrozenSet, Iterable, Iterator, List, Mapping, Optional, Tuple
import logging
import random

from gridpath.core.astar import find_path, path_cost
from gridpath.core.footprint import footprint
from gridpath.core.mapper import CoordinateMapper
from gridpath.core.types import Cell, GridConfig, TileStatus

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class GridSnapshot:
    """Read-only view of a GridState at one point in time."""

    config: GridConfig
    tile_status: Mapping[Cell, TileStatus]
    path: Tuple[Cell, ...]
    start: Optional[Cell]
    end: Optional[Cell]
    obstacles: FrozenSet[Cell]
    path_cost: float = 0.0

    def status_at(self, c: Cell) -> TileStatus:
        return self.tile_status.get(c, TileStatus.DEFAULT)


Listener = Callable[[GridSnapshot], None]


class GridState:
    def __init__(self, config: GridConfig, *, rng: Optional[random.Random] = None, random_start: bool = True):
        self._rng = rng if rng is not None else random.Random()
        self._listeners: List[Listener] = []
        self._batch_depth = 0
        self._reset(config)
        if random_start:
            self.initialize_random_start()

    def _reset(self, config: GridConfig) -> None:
        self._config = config
        self._mapper = CoordinateMapper(config)
        self._status: Dict[Cell, TileStatus] = {}
        self._start: Optional[Cell] = None
        self._end: Optional[Cell] = None
        self._obstacles: set = set()
        self._objects: Dict[int, Tuple[Any, Tuple[Cell, ...]]] = {}  # id(handle) -> (handle, footprint)
        self._path: List[Cell] = []
        self._path_cost = 0.0
        self._recompute_pending = False
        self._changed = False

    # -------------------- batching & notification --------------------

    @contextmanager
    def batch(self) -> Iterator["GridState"]:
        """Group mutations: recompute and notify once, when the outermost batch exits."""
        self._batch_depth += 1
        try:
            yield self
        finally:
            self._batch_depth -= 1
            if self._batch_depth == 0:
                self._flush()

    def _flush(self) -> None:
        if self._recompute_pending:
            self._recompute()
        if self._changed:
            self._changed = False
            self._notify()

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register a listener; returns a callable that unregisters it."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _notify(self) -> None:
        if not self._listeners:
            return
        snap = self.snapshot()
        for listener in list(self._listeners):
            try:
                listener(snap)
            except Exception:
                log.exception("grid listener %r failed", listener)

    # -------------------- start / end --------------------

    def set_start(self, x: int, y: int) -> bool:
        c = (x, y)
        if not self._mapper.contains(c):
            log.debug("start %s rejected: out of bounds", c)
            return False
        if c == self._end or c in self._obstacles:
            log.debug("start %s rejected: cell is taken", c)
            return False
        if c == self._start:
            return False
        with self.batch():
            if self._start is not None:
                self._status.pop(self._start, None)
            self._start = c
            self._status[c] = TileStatus.START
            self._changed = True
            if self._end is not None:
                self._recompute_pending = True
        return True

    def set_end(self, x: int, y: int) -> bool:
        c = (x, y)
        if not self._mapper.contains(c):
            log.debug("end %s rejected: out of bounds", c)
            return False
        if c == self._start or c in self._obstacles:
            log.debug("end %s rejected: cell is taken", c)
            return False
        if c == self._end:
            return False
        with self.batch():
            if self._end is not None:
                self._status.pop(self._end, None)
            self._end = c
            self._status[c] = TileStatus.END
            self._changed = True
            if self._start is not None:
                self._recompute_pending = True
        return True

    def initialize_random_start(self) -> bool:
        """Move Start to a uniformly random free cell (not an obstacle, not End)."""
        free = [
            (x, y)
            for y in range(self._config.height)
            for x in range(self._config.width)
            if (x, y) not in self._obstacles and (x, y) != self._end
        ]
        if not free:
            log.warning("no free cell left for a random start")
            return False
        c = self._rng.choice(free)
        if c == self._start:
            return True
        return self.set_start(*c)

    # -------------------- obstacles --------------------

    def add_obstacle(self, x: int, y: int) -> bool:
        c = (x, y)
        if not self._mapper.contains(c):
            log.debug("obstacle %s rejected: out of bounds", c)
            return False
        if c in self._obstacles or c == self._start or c == self._end:
            return False
        with self.batch():
            self._obstacles.add(c)
            self._status[c] = TileStatus.OBSTACLE
            self._changed = True
            if self._start is not None and self._end is not None:
                self._recompute_pending = True
        return True

    def remove_obstacle(self, x: int, y: int) -> bool:
        c = (x, y)
        if c not in self._obstacles:
            return False
        with self.batch():
            self._obstacles.discard(c)
            self._status.pop(c, None)
            self._changed = True
            self._recompute_pending = True
        return True

    def toggle_obstacle(self, x: int, y: int) -> bool:
        if (x, y) in self._obstacles:
            return self.remove_obstacle(x, y)
        return self.add_obstacle(x, y)

    # -------------------- path --------------------

    def recompute_path(self) -> None:
        with self.batch():
            self._recompute_pending = True
            self._changed = True

    def _recompute(self) -> None:
        self._recompute_pending = False
        for c in [c for c, s in self._status.items() if s is TileStatus.PATH]:
            del self._status[c]

        if self._start is None or self._end is None:
            self._path = []
            self._path_cost = 0.0
            return

        self._path = find_path(self._start, self._end, self._config.width, self._config.height, self._obstacles)
        self._path_cost = path_cost(self._path)
        self._status[self._start] = TileStatus.START
        self._status[self._end] = TileStatus.END
        for c in self._path:
            if c != self._start and c != self._end:
                self._status[c] = TileStatus.PATH
        if self._path:
            log.debug("path %s -> %s: %d cells, cost %.3f", self._start, self._end, len(self._path), self._path_cost)
        else:
            log.debug("path %s -> %s: unreachable", self._start, self._end)

    def clear_path(self) -> None:
        """Drop the path and the End cell."""
        with self.batch():
            for c in [c for c, s in self._status.items() if s is TileStatus.PATH]:
                del self._status[c]
            if self._end is not None:
                self._status.pop(self._end, None)
                self._end = None
            self._path = []
            self._path_cost = 0.0
            self._recompute_pending = False
            self._changed = True

    def clear_all(self) -> None:
        """Drop obstacles, End and path; only Start survives.

        Placed objects stay registered but their obstacle cells are gone.
        """
        with self.batch():
            self._obstacles.clear()
            self._end = None
            self._path = []
            self._path_cost = 0.0
            self._status = {}
            if self._start is not None:
                self._status[self._start] = TileStatus.START
            self._recompute_pending = False
            self._changed = True

    # -------------------- custom objects --------------------

    def add_custom_object(self, handle: Any, footprint_cells: Iterable[Cell], mark_as_obstacle: bool = True) -> bool:
        cells = tuple(dict.fromkeys((int(x), int(y)) for x, y in footprint_cells))
        with self.batch():
            if id(handle) in self._objects:
                self.remove_custom_object(handle, clear_obstacles=True)
            self._objects[id(handle)] = (handle, cells)
            self._changed = True
            if mark_as_obstacle:
                for x, y in cells:
                    self.add_obstacle(x, y)
        log.debug("object %r registered on %s", handle, cells)
        return True

    def remove_custom_object(self, handle: Any, clear_obstacles: bool = True) -> bool:
        entry = self._objects.get(id(handle))
        if entry is None or entry[0] is not handle:
            return False
        with self.batch():
            del self._objects[id(handle)]
            self._changed = True
            if clear_obstacles:
                for x, y in entry[1]:
                    self.remove_obstacle(x, y)
        log.debug("object %r removed", handle)
        return True

    def calculate_object_grid_positions(self, obj: Any) -> List[Cell]:
        return footprint(obj.position, getattr(obj, "shape", None), self._mapper)

    def add_custom_component(self, obj: Any, as_obstacle: bool = True) -> bool:
        """Register a placed object (anything with .position and .shape)."""
        return self.add_custom_object(obj, self.calculate_object_grid_positions(obj), as_obstacle)

    def remove_custom_component(self, obj: Any, clear: bool = True) -> bool:
        return self.remove_custom_object(obj, clear)

    # -------------------- configuration --------------------

    def reconfigure(self, config: GridConfig, random_start: bool = True) -> None:
        """Switch to a new grid geometry. All state is dropped and Start re-rolled."""
        log.info("reconfiguring grid to %dx%d (cell %.3f)", config.width, config.height, config.cell_size)
        self._reset(config)
        with self.batch():
            self._changed = True
            if random_start:
                self.initialize_random_start()

    @property
    def config(self) -> GridConfig:
        return self._config

    @property
    def mapper(self) -> CoordinateMapper:
        return self._mapper

    # -------------------- queries --------------------

    def is_initialized(self) -> bool:
        return self._start is not None

    def get_tile_status(self, x: int, y: int) -> TileStatus:
        return self._status.get((x, y), TileStatus.DEFAULT)

    def get_all_tile_status(self) -> Dict[Cell, TileStatus]:
        return dict(self._status)

    def get_path(self) -> List[Cell]:
        return list(self._path)

    def get_path_cost(self) -> float:
        return self._path_cost

    def get_start_cell(self) -> Optional[Cell]:
        return self._start

    def get_end_cell(self) -> Optional[Cell]:
        return self._end

    def get_obstacles(self) -> List[Cell]:
        return sorted(self._obstacles)

    def get_custom_objects(self) -> List[Any]:
        return [handle for handle, _ in self._objects.values()]

    def get_footprint(self, handle: Any) -> List[Cell]:
        entry = self._objects.get(id(handle))
        if entry is None or entry[0] is not handle:
            return []
        return list(entry[1])

    def snapshot(self) -> GridSnapshot:
        return GridSnapshot(
            config=self._config,
            tile_status=MappingProxyType(dict(self._status)),
            path=tuple(self._path),
            start=self._start,
            end=self._end,
            obstacles=frozenset(self._obstacles),
            path_cost=self._path_cost,
        )

    def grid_to_world_position(self, x: int, y: int, height: float = 0.0) -> Tuple[float, float, float]:
        return self._mapper.grid_to_world((x, y), height)

    def world_to_grid_position(self, x: float, z: float) -> Cell:
        return self._mapper.world_to_grid(x, z)

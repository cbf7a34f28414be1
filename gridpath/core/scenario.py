# gridpath/core/scenario.py
#!/usr/bin/env python3
"""
Scenario files: a grid geometry plus optional start, end, obstacles and
placed objects, stored as JSON under maps/.
"""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Union
import json
import logging
import math
import random

from gridpath.core.errors import GridError, ScenarioError
from gridpath.core.footprint import BoxShape, DiscShape, PlacedObject
from gridpath.core.grid_state import GridState
from gridpath.core.types import Cell, GridConfig

log = logging.getLogger(__name__)

MAP_DIR = Path(__file__).resolve().parents[1] / "maps"


@dataclass
class Scenario:
    config: GridConfig
    start: Optional[Cell] = None
    end: Optional[Cell] = None
    obstacles: List[Cell] = field(default_factory=list)
    objects: List[PlacedObject] = field(default_factory=list)
    name: str = "custom"

    def build_state(self, rng: Optional[random.Random] = None) -> GridState:
        state = GridState(self.config, rng=rng, random_start=False)
        self.apply(state)
        return state

    def apply(self, state: GridState) -> None:
        """Populate `state` (already configured for this geometry) in one batch.

        Without an explicit start, a random free cell is picked once the
        obstacles and objects are in place.
        """
        with state.batch():
            if self.start is not None:
                state.set_start(*self.start)
            for x, y in self.obstacles:
                state.add_obstacle(x, y)
            for obj in self.objects:
                state.add_custom_component(obj)
            if self.end is not None and not state.set_end(*self.end):
                log.warning("scenario %s: end %s is blocked, leaving it unset", self.name, self.end)
            if self.start is None:
                state.initialize_random_start()


def _cell(data: Dict[str, Any], key: str, config: GridConfig) -> Optional[Cell]:
    raw = data.get(key)
    if raw is None:
        return None
    try:
        c = (int(raw[0]), int(raw[1]))
    except (TypeError, ValueError, IndexError):
        raise ScenarioError(f"{key} must be an [x, y] pair, got {raw!r}") from None
    if not config.in_bounds(c):
        raise ScenarioError(f"{key} out of bounds")
    return c


def _object(raw: Dict[str, Any]) -> PlacedObject:
    if not isinstance(raw, dict):
        raise ScenarioError(f"object must be a JSON object, got {raw!r}")
    kind = str(raw.get("kind", "point")).lower()
    pos = raw.get("position")
    if not isinstance(pos, (list, tuple)) or len(pos) != 3:
        raise ScenarioError(f"object position must be [x, y, z], got {pos!r}")
    try:
        position = (float(pos[0]), float(pos[1]), float(pos[2]))
        if kind == "box":
            shape: Any = BoxShape(float(raw.get("size", 1.0)))
        elif kind in ("cylinder", "sphere", "disc"):
            shape = DiscShape(float(raw.get("radius", 0.5)))
        else:
            shape = None  # anything else occupies the cell under its center
    except (TypeError, ValueError) as ex:
        raise ScenarioError(f"bad {kind} object: {ex}") from ex
    if not all(math.isfinite(v) for v in position):
        raise ScenarioError(f"object position must be finite, got {pos!r}")
    extent = getattr(shape, "size", getattr(shape, "radius", None))
    if extent is not None and not (math.isfinite(extent) and extent > 0):
        raise ScenarioError(f"bad {kind} object: size must be positive and finite, got {extent!r}")
    return PlacedObject(position, shape, name=str(raw.get("name", kind)))


def parse_scenario(data: Dict[str, Any], name: str = "custom") -> Scenario:
    try:
        if "extent" in data:
            config = GridConfig.from_extent(data["extent"], data["divisions"])
        else:
            config = GridConfig(int(data["width"]), int(data["height"]), float(data.get("cell_size", 1.0)))
    except KeyError as ex:
        raise ScenarioError(f"missing key {ex}") from ex
    except (GridError, TypeError, ValueError) as ex:
        raise ScenarioError(f"bad grid geometry: {ex}") from ex

    start = _cell(data, "start", config)
    end = _cell(data, "end", config)
    if start is not None and start == end:
        raise ScenarioError("start and end coincide")

    obstacles: List[Cell] = []
    for raw in data.get("obstacles", []):
        try:
            c = (int(raw[0]), int(raw[1]))
        except (TypeError, ValueError, IndexError):
            raise ScenarioError(f"obstacle must be an [x, y] pair, got {raw!r}") from None
        if not config.in_bounds(c):
            raise ScenarioError(f"obstacle {c} out of bounds")
        obstacles.append(c)

    objects = [_object(raw) for raw in data.get("objects", [])]
    return Scenario(config, start, end, obstacles, objects, name=name)


def load_scenario(path: Union[str, Path]) -> Scenario:
    path = Path(path)
    try:
        with open(path, "r") as f:
            data = json.load(f)
    except (OSError, json.JSONDecodeError) as ex:
        raise ScenarioError(f"cannot read {path}: {ex}") from ex
    if not isinstance(data, dict):
        raise ScenarioError(f"{path}: top level must be an object")
    scenario = parse_scenario(data, name=path.stem)
    log.info("loaded scenario %s (%dx%d)", scenario.name, scenario.config.width, scenario.config.height)
    return scenario


def scenario_files(map_dir: Path = MAP_DIR) -> Dict[str, Path]:
    """Scenario key (file stem) -> path, sorted by key."""
    return {p.stem: p for p in sorted(map_dir.glob("*.json"))}

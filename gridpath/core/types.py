# gridpath/core/types.py
#!/usr/bin/env python3
from dataclasses import dataclass, field
from enum import Enum
from typing import List, Tuple, Optional, Dict, Any, Sequence, Union
import math

from gridpath.core.errors import InvalidConfigurationError

Cell = Tuple[int, int]  # (col, row)


class TileStatus(str, Enum):
    DEFAULT = "default"
    START = "start"
    END = "end"
    PATH = "path"
    OBSTACLE = "obstacle"


def _is_index(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def _positive_int(name: str, value: Any) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise InvalidConfigurationError(f"{name} must be an integer, got {value!r}")
    if value <= 0:
        raise InvalidConfigurationError(f"{name} must be positive, got {value}")
    return value


@dataclass(frozen=True)
class GridConfig:
    """Grid geometry: `width` x `height` cells of `cell_size` world units each.

    The grid is centered on the world origin, so it spans
    [-extent_x/2, extent_x/2] on x and [-extent_z/2, extent_z/2] on z.
    """

    width: int
    height: int
    cell_size: float = 1.0

    def __post_init__(self):
        _positive_int("width", self.width)
        _positive_int("height", self.height)
        try:
            cs = float(self.cell_size)
        except (TypeError, ValueError):
            raise InvalidConfigurationError(f"cell_size must be a number, got {self.cell_size!r}") from None
        if not math.isfinite(cs) or cs <= 0:
            raise InvalidConfigurationError(f"cell_size must be positive and finite, got {self.cell_size!r}")
        object.__setattr__(self, "cell_size", cs)

    @classmethod
    def from_extent(cls, extent: Union[float, Sequence[float]], divisions: Union[int, Sequence[int]]) -> "GridConfig":
        """Build a config from total world extent and division count per axis.

        Both `extent` and `divisions` may be a scalar (square grid) or an
        (x, z) pair. Cells are square, so both axes must yield the same
        cell size.
        """
        ex, ez = (extent, extent) if isinstance(extent, (int, float)) else tuple(extent)
        dx, dz = (divisions, divisions) if isinstance(divisions, int) else tuple(divisions)
        _positive_int("divisions", dx)
        _positive_int("divisions", dz)
        if ex <= 0 or ez <= 0:
            raise InvalidConfigurationError(f"extent must be positive, got {extent!r}")
        cs_x, cs_z = ex / dx, ez / dz
        if not math.isclose(cs_x, cs_z, rel_tol=1e-9):
            raise InvalidConfigurationError(
                f"extent {extent!r} and divisions {divisions!r} disagree on cell size ({cs_x} vs {cs_z})"
            )
        return cls(dx, dz, cs_x)

    @property
    def extent_x(self) -> float:
        return self.width * self.cell_size

    @property
    def extent_z(self) -> float:
        return self.height * self.cell_size

    @property
    def cell_count(self) -> int:
        return self.width * self.height

    def in_bounds(self, c: Cell) -> bool:
        x, y = c
        if not (_is_index(x) and _is_index(y)):
            return False
        return 0 <= x < self.width and 0 <= y < self.height


@dataclass
class StepResult:
    status: str                   # "idle" | "running" | "done" | "no_path"
    opened: List[Cell] = field(default_factory=list)
    closed: List[Cell] = field(default_factory=list)
    current: Optional[Cell] = None
    path: Optional[List[Cell]] = None
    metrics: Dict[str, Any] = field(default_factory=dict)

# gridpath/core/footprint.py
#!/usr/bin/env python3
"""
Footprints of placed objects on the grid.

A footprint is found by sampling the four corners of the object's square
bounds on the XZ plane and mapping each corner to its nearest cell. This
is deliberately coarse: an object wider than one cell can cover cells that
no corner lands in, and those are left out.
"""

from dataclasses import dataclass
from typing import Any, List, Tuple

from gridpath.core.mapper import CoordinateMapper
from gridpath.core.types import Cell

Vec3 = Tuple[float, float, float]  # world (x, y, z), y is up


@dataclass(frozen=True)
class BoxShape:
    size: float = 1.0  # edge length on the ground plane

    @property
    def half_extent(self) -> float:
        return self.size / 2


@dataclass(frozen=True)
class DiscShape:
    """Cylinders and spheres: anything with a round ground section."""

    radius: float = 0.5

    @property
    def half_extent(self) -> float:
        return self.radius


@dataclass(eq=False)
class PlacedObject:
    """A placed object handle: world position plus ground shape.

    Compared by identity, like the render-layer objects it stands in for.
    """

    position: Vec3
    shape: Any = None
    name: str = ""


def footprint(position: Vec3, shape: Any, mapper: CoordinateMapper) -> List[Cell]:
    """Cells occupied by an object of `shape` centered at world `position`."""
    x, _, z = position
    if not isinstance(shape, (BoxShape, DiscShape)):
        return [mapper.world_to_grid(x, z)]

    h = shape.half_extent
    corners = [
        (x - h, z - h),
        (x - h, z + h),
        (x + h, z - h),
        (x + h, z + h),
    ]
    cells: List[Cell] = []
    for cx, cz in corners:
        c = mapper.world_to_grid(cx, cz)
        if c not in cells:
            cells.append(c)
    return cells

# gridpath/core/mapper.py
#!/usr/bin/env python3
"""
Grid <-> world coordinate mapping.

The grid lies on the world XZ plane, centered on the origin. Cell (cx, cy)
maps to the center of its square; cy runs along world z.
"""

from typing import Tuple
import math

from gridpath.core.types import Cell, GridConfig


class CoordinateMapper:
    def __init__(self, config: GridConfig):
        self.config = config
        # world coordinate of the center of cell 0 on each axis
        self._origin_x = -config.extent_x / 2 + config.cell_size / 2
        self._origin_z = -config.extent_z / 2 + config.cell_size / 2

    def contains(self, c: Cell) -> bool:
        return self.config.in_bounds(c)

    def grid_to_world(self, c: Cell, height: float = 0.0) -> Tuple[float, float, float]:
        cx, cy = c
        cs = self.config.cell_size
        return (self._origin_x + cx * cs, height, self._origin_z + cy * cs)

    def world_to_grid(self, x: float, z: float) -> Cell:
        """Nearest cell to world point (x, z), clamped onto the grid.

        Halfway points round up, so a point on the shared edge of two cells
        belongs to the cell with the larger index.
        """
        cs = self.config.cell_size
        gx = math.floor((x - self._origin_x) / cs + 0.5)
        gz = math.floor((z - self._origin_z) / cs + 0.5)
        gx = max(0, min(self.config.width - 1, gx))
        gz = max(0, min(self.config.height - 1, gz))
        return (gx, gz)

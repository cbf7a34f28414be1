# gridpath/core/errors.py
"""Exceptions raised by the grid core.

Out-of-bounds cells and unreachable targets are not errors: mutators reject
them by returning False and an unreachable End simply yields an empty path.
"""


class GridError(Exception):
    """Base class for gridpath errors."""


class InvalidConfigurationError(GridError, ValueError):
    """Grid geometry that would produce a degenerate grid."""


class ScenarioError(GridError):
    """A scenario file that cannot be loaded."""

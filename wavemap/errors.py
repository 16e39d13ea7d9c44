"""Exception hierarchy for map generation.

Everything raised on purpose by this package derives from WaveMapError so a
host can catch generation failures with a single clause.
"""

from __future__ import annotations


class WaveMapError(Exception):
    """Base class for all wavemap errors."""

    pass


class ConfigurationError(WaveMapError, ValueError):
    """Raised for invalid grid dimensions or catalog definitions."""

    pass


class ContradictionError(WaveMapError):
    """Raised when a cell is left with no candidate states.

    This occurs when propagation removes every possibility for a cell, or a
    collapse is attempted on a cell that has none left. No valid map exists
    from the current grid state.
    """

    def __init__(self, x: int, y: int, message: str | None = None) -> None:
        self.x = x
        self.y = y
        super().__init__(message or f"No candidate states left at ({x}, {y})")


class CollapseError(WaveMapError):
    """Raised when a weighted collapse has no positive weight to draw from."""

    pass


class PropagationError(ContradictionError):
    """Raised when a propagation exceeds its exploration bound.

    ``x`` and ``y`` name the collapsed cell the propagation started from. The
    grid is left with that cell installed but its neighbours unnarrowed, so
    it is handled like any other contradiction: generation halts and the
    grid must be reset.
    """

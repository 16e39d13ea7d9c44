from __future__ import annotations

from typing import Literal, TypeAlias

# =============================================================================
# SPATIAL TYPES
# =============================================================================

GridCoord: TypeAlias = int  # Always integer cell position, 0-based

GridPos: TypeAlias = tuple[GridCoord, GridCoord]  # Example: (5, 3) = column 5, row 3

# Orthogonal grid steps
UnitStep: TypeAlias = Literal[-1, 0, 1]
Direction: TypeAlias = tuple[UnitStep, UnitStep]  # Example: (-1, 0) = one cell toward -x

# =============================================================================
# RANDOMNESS
# =============================================================================

# Master seed for the rng provider. None means non-deterministic.
RandomSeed: TypeAlias = int | float | str | bytes | bytearray | None

"""Wave function collapse over a grid of terrain cells.

- Filter: immutable allowed-state set with union/intersect algebra
- Cell / CollapsedCell: open and finalized grid positions
- Grid: the cell matrix with bounds-safe access
- PropagationEngine: narrows open cells after each collapse
- CollapseEngine: picks, collapses and propagates one cell per step
"""

from .cell import Cell, CellView, CollapsedCell
from .collapse import CollapseEngine, EngineState, StepStats
from .filter import Filter
from .grid import DIRECTION_OFFSETS, Grid
from .propagation import PropagationEngine

__all__ = [
    "DIRECTION_OFFSETS",
    "Cell",
    "CellView",
    "CollapseEngine",
    "CollapsedCell",
    "EngineState",
    "Filter",
    "Grid",
    "PropagationEngine",
    "StepStats",
]

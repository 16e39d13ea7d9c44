"""Procedural terrain maps by wave function collapse."""

from .catalog import (
    CATALOGS,
    CompatibilityRule,
    StateCatalog,
    Terrain,
    create_coastal_catalog,
    create_island_catalog,
    get_catalog,
)
from .errors import (
    CollapseError,
    ConfigurationError,
    ContradictionError,
    PropagationError,
    WaveMapError,
)
from .generation import (
    Cell,
    CellView,
    CollapsedCell,
    CollapseEngine,
    EngineState,
    Filter,
    Grid,
    PropagationEngine,
)

__all__ = [
    "CATALOGS",
    "Cell",
    "CellView",
    "CollapseEngine",
    "CollapseError",
    "CollapsedCell",
    "CompatibilityRule",
    "ConfigurationError",
    "ContradictionError",
    "EngineState",
    "Filter",
    "Grid",
    "PropagationEngine",
    "PropagationError",
    "StateCatalog",
    "Terrain",
    "WaveMapError",
    "create_coastal_catalog",
    "create_island_catalog",
    "get_catalog",
]

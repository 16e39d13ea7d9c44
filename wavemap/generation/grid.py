from __future__ import annotations

import logging
from collections.abc import Iterator
from numbers import Integral
from typing import TypeAlias

from wavemap import config
from wavemap.catalog import StateCatalog, Terrain, get_catalog
from wavemap.errors import ConfigurationError
from wavemap.generation.cell import Cell, CellView, CollapsedCell
from wavemap.types import Direction

logger = logging.getLogger(__name__)

# Neighbour order used everywhere: +x, -x, +y, -y
DIRECTION_OFFSETS: tuple[Direction, ...] = ((1, 0), (-1, 0), (0, 1), (0, -1))

GridValue: TypeAlias = Cell | CollapsedCell


def _validate_dimension(name: str, value: object, *, require_positive: bool) -> int:
    if isinstance(value, bool) or not isinstance(value, Integral):
        raise ConfigurationError(f"Grid {name} must be an integer, got {value!r}")
    if require_positive and value <= 0:
        raise ConfigurationError(f"Grid {name} must be a positive integer, got {value}")
    return int(value)


class Grid:
    """A width x height matrix of cells addressed by 0-based (x, y).

    Every position holds either a Cell (still open) or a CollapsedCell. The
    grid owns its cells; engines work on it by reference. Changing the size
    is destructive: all progress is discarded and every position starts over
    with the catalog's full candidate set.

    Out-of-range reads return None rather than raising, so propagation and
    neighbour lookups can walk off the edges without bounds checks of their
    own.
    """

    def __init__(
        self,
        width: int = config.DEFAULT_GRID_WIDTH,
        height: int = config.DEFAULT_GRID_HEIGHT,
        catalog: StateCatalog | None = None,
    ) -> None:
        self.catalog = catalog if catalog is not None else get_catalog(
            config.DEFAULT_CATALOG
        )
        self._width = 0
        self._height = 0
        # Bumped on every reset so engines can tell their progress was discarded
        self.generation = 0
        # Column-major storage: self._columns[x][y]
        self._columns: list[list[GridValue]] = []
        self.resize(width, height)

    # -------------------------------------------------------------------------
    # Dimensions
    # -------------------------------------------------------------------------

    @property
    def width(self) -> int:
        return self._width

    @width.setter
    def width(self, value: int) -> None:
        self.resize(value, self._height)

    @property
    def height(self) -> int:
        return self._height

    @height.setter
    def height(self, value: int) -> None:
        self.resize(self._width, value)

    def resize(self, width: int, height: int) -> None:
        """Validate both dimensions, then reinitialize every position.

        Raises:
            ConfigurationError: If width is not a positive integer, or height
                is not an integer (or not positive, when
                ``config.REQUIRE_POSITIVE_HEIGHT`` is set). Nothing changes
                when validation fails.
        """
        new_width = _validate_dimension("width", width, require_positive=True)
        new_height = _validate_dimension(
            "height", height, require_positive=config.REQUIRE_POSITIVE_HEIGHT
        )
        self._width = new_width
        self._height = new_height
        self.reset()
        logger.info(f"Grid resized to {new_width}x{new_height}")

    def reset(self) -> None:
        """Discard all progress at the current size."""
        self.generation += 1
        self._columns = [
            [Cell(x, y, self.catalog) for y in range(self._height)]
            for x in range(self._width)
        ]

    # -------------------------------------------------------------------------
    # Access
    # -------------------------------------------------------------------------

    def in_bounds(self, x: int, y: int) -> bool:
        return 0 <= x < self._width and 0 <= y < self._height

    def get(self, x: int, y: int) -> GridValue | None:
        """Return the value at (x, y), or None when out of range."""
        if not self.in_bounds(x, y):
            return None
        return self._columns[x][y]

    def set(self, x: int, y: int, value: GridValue) -> None:
        """Replace the value at (x, y)."""
        if not self.in_bounds(x, y):
            raise IndexError(
                f"({x}, {y}) is outside the {self._width}x{self._height} grid"
            )
        if not isinstance(value, Cell | CollapsedCell):
            raise TypeError(f"Expected Cell or CollapsedCell, got {value!r}")
        self._columns[x][y] = value

    def get_neighbours(
        self, x: int, y: int
    ) -> tuple[GridValue | None, GridValue | None, GridValue | None, GridValue | None]:
        """The four orthogonal neighbours in +x, -x, +y, -y order."""
        return (
            self.get(x + 1, y),
            self.get(x - 1, y),
            self.get(x, y + 1),
            self.get(x, y - 1),
        )

    # -------------------------------------------------------------------------
    # Iteration
    # -------------------------------------------------------------------------

    def cells(self) -> Iterator[GridValue]:
        """Every position's value, column by column."""
        for column in self._columns:
            yield from column

    def uncollapsed(self) -> Iterator[Cell]:
        for value in self.cells():
            if isinstance(value, Cell):
                yield value

    def has_uncollapsed(self) -> bool:
        return any(True for _ in self.uncollapsed())

    def is_complete(self) -> bool:
        return not self.has_uncollapsed()

    def total_entropy(self) -> int:
        """Sum of candidate counts over uncollapsed cells."""
        return sum(cell.entropy for cell in self.uncollapsed())

    def views(self) -> Iterator[CellView]:
        """Read-only snapshots of every position, for renderers."""
        for value in self.cells():
            yield CellView.of(value)

    def to_states(self) -> list[list[Terrain | None]]:
        """Finalized states as a list of columns; None where still open."""
        return [
            [value.state if isinstance(value, CollapsedCell) else None for value in col]
            for col in self._columns
        ]

    def __repr__(self) -> str:
        return f"Grid({self._width}x{self._height}, {self.catalog!r})"

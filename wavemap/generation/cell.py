"""Grid cells before and after collapse.

A Cell still holds a set of candidate states; its entropy is how many are
left. Collapsing draws one of them and produces a CollapsedCell, which the
grid installs in the Cell's place.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from typing import TYPE_CHECKING, NamedTuple

from wavemap.catalog import StateCatalog, Terrain
from wavemap.errors import CollapseError, ContradictionError
from wavemap.util import rng

if TYPE_CHECKING:
    from wavemap.generation.filter import Filter
    from wavemap.types import GridPos
    from wavemap.util.rng import RNG

_collapse_rng = rng.get("map.wfc.collapse")


class Cell:
    """An uncollapsed grid position and the states it may still take."""

    __slots__ = ("catalog", "states", "x", "y")

    def __init__(self, x: int, y: int, catalog: StateCatalog) -> None:
        self.x = x
        self.y = y
        self.catalog = catalog
        self.states: set[Terrain] = set(catalog.states)

    @property
    def pos(self) -> GridPos:
        return (self.x, self.y)

    @property
    def entropy(self) -> int:
        return len(self.states)

    def restrict(self, allowed: Filter) -> bool:
        """Narrow the candidates to those ``allowed`` permits.

        Returns True if any candidate was removed.
        """
        narrowed = allowed.apply(self.states)
        if len(narrowed) == len(self.states):
            return False
        self.states = narrowed
        return True

    def collapse(
        self,
        bias_weights: Mapping[Terrain, int] | None = None,
        rng: RNG | None = None,
    ) -> CollapsedCell:
        """Draw one candidate and return it as a CollapsedCell.

        Each candidate's weight is ``1 + bias_weights.get(state, 0)``. The draw
        picks an integer in ``[0, total)`` and walks the candidates in catalog
        order, subtracting weights until the remainder goes negative. With no
        bias this is a uniform choice among the candidates.

        Args:
            bias_weights: Extra weight per state, usually summed from the
                compatibility rules of already collapsed neighbours.
            rng: Random source. Defaults to the ``map.wfc.collapse`` stream.

        Raises:
            ContradictionError: If the cell has no candidates left.
            CollapseError: If the weighted total is not positive.
        """
        if not self.states:
            raise ContradictionError(self.x, self.y)

        bias = bias_weights or {}
        source = rng if rng is not None else _collapse_rng

        # Candidates whose weight drops to zero or below can never be drawn
        weighted = [
            (state, weight)
            for state in self.catalog.states
            if state in self.states and (weight := 1 + bias.get(state, 0)) > 0
        ]
        total = sum(weight for _, weight in weighted)
        if total <= 0:
            raise CollapseError(
                f"Cell ({self.x}, {self.y}) has no positive weight to draw from "
                f"(total={total})"
            )

        remainder = source.randrange(total)
        for state, weight in weighted:
            remainder -= weight
            if remainder < 0:
                return CollapsedCell(self.x, self.y, state)

        # Unreachable while total is the sum of the weights walked above
        raise CollapseError(f"Weighted draw overran at ({self.x}, {self.y})")

    def __repr__(self) -> str:
        names = ", ".join(s.name for s in self.catalog.states if s in self.states)
        return f"Cell({self.x}, {self.y}, {{{names}}})"


@dataclass(frozen=True, slots=True)
class CollapsedCell:
    """A grid position fixed to one state."""

    x: int
    y: int
    state: Terrain

    @property
    def pos(self) -> GridPos:
        return (self.x, self.y)

    @property
    def entropy(self) -> int:
        return 1

    @property
    def states(self) -> frozenset[Terrain]:
        return frozenset((self.state,))


class CellView(NamedTuple):
    """Read-only snapshot of one grid position for display.

    ``state`` is set only once the position has collapsed. For open cells,
    ``states`` lists the remaining candidates and ``entropy`` their count.
    """

    x: int
    y: int
    entropy: int
    states: frozenset[Terrain]
    state: Terrain | None = None

    @property
    def collapsed(self) -> bool:
        return self.state is not None

    @classmethod
    def of(cls, cell: Cell | CollapsedCell) -> CellView:
        if isinstance(cell, CollapsedCell):
            return cls(cell.x, cell.y, 1, cell.states, cell.state)
        return cls(cell.x, cell.y, cell.entropy, frozenset(cell.states))

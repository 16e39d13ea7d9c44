"""Constraint propagation after a cell collapses.

When a cell is fixed to state S, its neighbours may only keep states that S
allows next to it. Those neighbours in turn restrict their own neighbours to
whatever any of their remaining candidates allows, and so on outward.

Propagation runs in two phases:

1. Explore. Starting from the collapsed cell, walk outward in all four
   directions carrying an inbound Filter. At each open cell, record the
   narrowed candidate set as evidence for that position, OR together the
   compatibility sets of the narrowed candidates, and carry that outward.
   Nothing in the grid is modified yet.
2. Finalize. For each position that received evidence, AND together every
   filter recorded for it and apply the result to the live cell.

Several paths may reach the same cell by different routes; each deposits its
own evidence and the intersection in phase 2 makes the outcome independent
of the order paths were explored in. A path never revisits a cell it has
already passed through. The visited set is a per-branch snapshot, so
different branches may still cross the same cell.

A branch stops when the inbound filter allows every state (nothing to
constrain), when it reaches the grid edge or a collapsed cell, or when the
cell's candidates already equal the inbound filter (a fixed point).
"""

from __future__ import annotations

import logging
from collections import defaultdict
from typing import TYPE_CHECKING, TypeAlias

from wavemap import config
from wavemap.errors import ContradictionError, PropagationError
from wavemap.generation.cell import Cell
from wavemap.generation.filter import Filter
from wavemap.generation.grid import DIRECTION_OFFSETS

if TYPE_CHECKING:
    from wavemap.generation.cell import CollapsedCell
    from wavemap.generation.grid import Grid
    from wavemap.types import GridPos

logger = logging.getLogger(__name__)

# One pending exploration: target position, inbound filter, and the positions
# already visited on the branch that produced it.
_Frame: TypeAlias = "tuple[int, int, Filter, frozenset[GridPos]]"


class PropagationEngine:
    """Narrows open cells so they stay consistent with collapsed ones."""

    def __init__(self, grid: Grid, max_frames: int | None = None) -> None:
        self.grid = grid
        self.max_frames = (
            max_frames if max_frames is not None else config.PROPAGATION_MAX_FRAMES
        )
        self.last_frame_count = 0

    def propagate(self, collapsed: CollapsedCell) -> set[GridPos]:
        """Propagate the consequences of ``collapsed`` through the grid.

        Returns:
            Positions whose candidate sets shrank.

        Raises:
            ContradictionError: If a cell is left with no candidates. Every
                narrowed cell is committed before this is raised.
            PropagationError: If exploration exceeds ``max_frames``.
        """
        seed = Filter(self.grid.catalog.rule(collapsed.state).states)
        evidence = self._explore(collapsed.x, collapsed.y, seed)
        return self._finalize(evidence)

    def _explore(
        self, origin_x: int, origin_y: int, seed: Filter
    ) -> dict[GridPos, list[Filter]]:
        """Walk outward from the origin and collect evidence per position."""
        catalog = self.grid.catalog
        catalog_size = catalog.size
        evidence: dict[GridPos, list[Filter]] = defaultdict(list)

        stack: list[_Frame] = [
            (origin_x + dx, origin_y + dy, seed, frozenset())
            for dx, dy in DIRECTION_OFFSETS
        ]

        frames = 0
        while stack:
            frames += 1
            if frames > self.max_frames:
                raise PropagationError(
                    origin_x,
                    origin_y,
                    f"Propagation from ({origin_x}, {origin_y}) exceeded "
                    f"{self.max_frames} frames"
                )

            x, y, inbound, visited = stack.pop()

            if inbound.is_full(catalog_size):
                continue

            cell = self.grid.get(x, y)
            if not isinstance(cell, Cell):
                continue

            pos = (x, y)
            if pos in visited:
                continue

            if Filter(cell.states).equals(inbound):
                continue

            branch_visited = visited | {pos}

            narrowed = inbound.apply(cell.states)
            evidence[pos].append(Filter(narrowed))

            outbound = Filter.union(catalog.rule(state).states for state in narrowed)

            for dx, dy in DIRECTION_OFFSETS:
                stack.append((x + dx, y + dy, outbound, branch_visited))

        self.last_frame_count = frames
        return evidence

    def _finalize(self, evidence: dict[GridPos, list[Filter]]) -> set[GridPos]:
        """Intersect the evidence per position and commit it to the grid."""
        narrowed: set[GridPos] = set()
        emptied: list[GridPos] = []

        for (x, y), filters in evidence.items():
            cell = self.grid.get(x, y)
            if not isinstance(cell, Cell):
                continue

            combined = Filter.intersect(filters)
            if cell.restrict(combined):
                narrowed.add((x, y))
            if not cell.states:
                emptied.append((x, y))

        logger.debug(
            f"Propagation touched {len(evidence)} cells, narrowed {len(narrowed)} "
            f"in {self.last_frame_count} frames"
        )

        if emptied:
            x, y = min(emptied)
            logger.warning(
                f"Contradiction: {len(emptied)} cell(s) left without candidates, "
                f"first at ({x}, {y})"
            )
            raise ContradictionError(x, y)

        return narrowed

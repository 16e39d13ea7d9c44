"""Stepwise driver for wave function collapse over a Grid.

Each step:
1. Find the open cells with the fewest remaining candidates.
2. Pick one of them at random (never by scan order).
3. Sum the compatibility weights of its already collapsed neighbours into a
   bias, and collapse it with a weighted draw.
4. Propagate the new state outward so the rest of the grid stays consistent.

The engine is synchronous and single-threaded. ``run()`` pauses between
steps so a host can redraw; the host is responsible for serializing any
resize or reset against a run in progress.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable, Iterator
from enum import Enum, auto
from typing import TYPE_CHECKING

from wavemap import config
from wavemap.errors import ContradictionError, WaveMapError
from wavemap.generation.cell import Cell, CollapsedCell
from wavemap.generation.propagation import PropagationEngine
from wavemap.util import rng
from wavemap.util.metrics import MostRecentNVar

if TYPE_CHECKING:
    from wavemap.catalog import Terrain
    from wavemap.generation.grid import Grid
    from wavemap.util.rng import RNG

logger = logging.getLogger(__name__)

_wfc_rng = rng.get("map.wfc")


class EngineState(Enum):
    """Lifecycle of a CollapseEngine."""

    IDLE = auto()  # Ready for another step
    STEPPING = auto()  # Inside step()
    TERMINAL = auto()  # Every position is collapsed
    CONTRADICTED = auto()  # A cell ran out of candidates; reset() required


class StepStats:
    """Rolling timing and propagation figures for recent steps."""

    def __init__(self, num_samples: int = config.STATS_SAMPLE_SIZE) -> None:
        self.step_ms = MostRecentNVar(num_samples)
        self.narrowed_cells = MostRecentNVar(num_samples)
        self.steps = 0
        self.contradictions = 0

    def record_step(self, elapsed_ms: float, narrowed: int) -> None:
        self.steps += 1
        self.step_ms.record(elapsed_ms)
        self.narrowed_cells.record(narrowed)

    def summary(self) -> str:
        return (
            f"steps={self.steps} contradictions={self.contradictions} "
            f"step_ms[mean={self.step_ms.mean:.2f} "
            f"{self.step_ms.get_percentiles_string()}] "
            f"narrowed[mean={self.narrowed_cells.mean:.1f}]"
        )


class CollapseEngine:
    """Drives a Grid from all-open to fully collapsed, one cell per step."""

    def __init__(self, grid: Grid, rng: RNG | None = None) -> None:
        """Initialize the engine.

        Args:
            grid: The grid to generate into. The engine holds it by reference
                and assumes no other writer while it runs.
            rng: Random source for tie-breaks and collapse draws. Defaults to
                the ``map.wfc`` stream.
        """
        self.grid = grid
        self.rng: RNG = rng if rng is not None else _wfc_rng
        self.propagation = PropagationEngine(grid)
        self.stats = StepStats()
        self._state = EngineState.IDLE
        self._contradiction: ContradictionError | None = None
        self._grid_generation = grid.generation
        self._refresh_state()

    @property
    def state(self) -> EngineState:
        self._sync_with_grid()
        return self._state

    @property
    def contradiction(self) -> ContradictionError | None:
        """The failure that stopped generation, if any."""
        return self._contradiction

    def _refresh_state(self) -> None:
        if self._contradiction is not None:
            self._state = EngineState.CONTRADICTED
        elif self.grid.has_uncollapsed():
            self._state = EngineState.IDLE
        else:
            self._state = EngineState.TERMINAL

    def _sync_with_grid(self) -> None:
        """Drop a stale failure if the grid was reset or resized directly."""
        if self.grid.generation == self._grid_generation:
            return
        self._grid_generation = self.grid.generation
        self._contradiction = None
        self._refresh_state()

    # -------------------------------------------------------------------------
    # Stepping
    # -------------------------------------------------------------------------

    def can_step(self) -> bool:
        """True while at least one position is still an open Cell."""
        return self.grid.has_uncollapsed()

    def step(self) -> CollapsedCell | None:
        """Collapse one minimum-entropy cell and propagate the result.

        Returns:
            The new CollapsedCell, or None when nothing is left to collapse.

        Raises:
            ContradictionError: If propagation empties a cell, or if the engine
                already hit a contradiction and neither it nor its grid has
                been reset since. A PropagationError counts as a
                contradiction.
        """
        self._sync_with_grid()
        if self._contradiction is not None:
            raise self._contradiction
        if not self.can_step():
            self._state = EngineState.TERMINAL
            return None

        self._state = EngineState.STEPPING
        start = time.perf_counter()
        try:
            cell = self._pick_lowest_entropy()
            bias = self._gather_bias(cell)
            collapsed = cell.collapse(bias, self.rng)
            self.grid.set(collapsed.x, collapsed.y, collapsed)
            narrowed = self.propagation.propagate(collapsed)
        except ContradictionError as exc:
            self._contradiction = exc
            self.stats.contradictions += 1
            self._state = EngineState.CONTRADICTED
            logger.warning(f"Generation halted: {exc}")
            raise
        except WaveMapError:
            self._refresh_state()
            raise

        elapsed_ms = (time.perf_counter() - start) * 1000.0
        self.stats.record_step(elapsed_ms, len(narrowed))
        logger.debug(
            f"Collapsed ({collapsed.x}, {collapsed.y}) from entropy {cell.entropy} "
            f"to {collapsed.state.name}; narrowed {len(narrowed)} cells "
            f"in {elapsed_ms:.2f}ms"
        )

        self._refresh_state()
        return collapsed

    def _pick_lowest_entropy(self) -> Cell:
        """Choose uniformly among the open cells tied at minimum entropy."""
        lowest: list[Cell] = []
        min_entropy = 0
        for cell in self.grid.uncollapsed():
            entropy = cell.entropy
            if not lowest or entropy < min_entropy:
                lowest = [cell]
                min_entropy = entropy
            elif entropy == min_entropy:
                lowest.append(cell)
        return self.rng.choice(lowest)

    def _gather_bias(self, cell: Cell) -> dict[Terrain, int]:
        """Sum the rule weights of every collapsed orthogonal neighbour."""
        catalog = self.grid.catalog
        bias: dict[Terrain, int] = {}
        for neighbour in self.grid.get_neighbours(cell.x, cell.y):
            if not isinstance(neighbour, CollapsedCell):
                continue
            for state, weight in catalog.rule(neighbour.state).weights.items():
                bias[state] = bias.get(state, 0) + weight
        return bias

    # -------------------------------------------------------------------------
    # Running
    # -------------------------------------------------------------------------

    def steps(self) -> Iterator[CollapsedCell]:
        """Step until the grid is complete, yielding each collapsed cell.

        The host regains control at every yield and may stop iterating at any
        point to cancel the run.
        """
        while self.can_step():
            collapsed = self.step()
            if collapsed is None:
                return
            yield collapsed

    def run(
        self,
        pause_ms: float = config.RUN_PAUSE_MS,
        on_step: Callable[[CollapsedCell], None] | None = None,
    ) -> int:
        """Step to completion, pausing between steps.

        Args:
            pause_ms: Delay after each step, for render pacing only.
            on_step: Called with each new CollapsedCell before the pause.

        Returns:
            Number of steps taken.
        """
        count = 0
        for collapsed in self.steps():
            count += 1
            if on_step is not None:
                on_step(collapsed)
            if pause_ms > 0 and self.can_step():
                time.sleep(pause_ms / 1000.0)

        logger.info(f"Run finished after {count} steps ({self.stats.summary()})")
        return count

    def reset(self) -> None:
        """Discard all progress; the grid starts over at its current size."""
        self.grid.reset()
        self._grid_generation = self.grid.generation
        self._contradiction = None
        self._refresh_state()

    def generate(
        self,
        pause_ms: float = config.RUN_PAUSE_MS,
        on_step: Callable[[CollapsedCell], None] | None = None,
    ) -> int:
        """Start a fresh run if the last one ended, otherwise continue it."""
        if self.state in (EngineState.TERMINAL, EngineState.CONTRADICTED):
            self.reset()
        return self.run(pause_ms, on_step)

    def solve(
        self, max_attempts: int = config.MAX_SOLVE_ATTEMPTS
    ) -> list[list[Terrain]]:
        """Generate a complete map without pausing, retrying on contradiction.

        Returns:
            The finalized states as a list of columns (``result[x][y]``).

        Raises:
            ContradictionError: The last failure, if every attempt contradicts.
        """
        if max_attempts < 1:
            raise ValueError(f"max_attempts must be at least 1, got {max_attempts}")

        for attempt in range(1, max_attempts + 1):
            if self.state is not EngineState.IDLE:
                self.reset()
            try:
                self.run(pause_ms=0)
            except ContradictionError:
                logger.warning(f"Attempt {attempt}/{max_attempts} contradicted")
                continue
            return self.grid.to_states()  # type: ignore[return-value]

        assert self._contradiction is not None
        raise self._contradiction

"""Tests for the stepwise collapse driver.

Most property tests use a three-state gradient catalog where BEACH is legal
next to everything. Every filter then contains BEACH, so no cell can ever be
emptied and runs are free of contradictions regardless of seed.
"""

from __future__ import annotations

import itertools
import random

import pytest

from wavemap.catalog import (
    CompatibilityRule,
    StateCatalog,
    Terrain,
    create_coastal_catalog,
    create_island_catalog,
)
from wavemap.errors import ContradictionError, PropagationError
from wavemap.generation import collapse as collapse_module
from wavemap.generation.cell import Cell, CollapsedCell
from wavemap.generation.collapse import CollapseEngine, EngineState
from wavemap.generation.grid import DIRECTION_OFFSETS, Grid
from wavemap.generation.propagation import PropagationEngine

W, B, G, T = Terrain.WATER, Terrain.BEACH, Terrain.GRASS, Terrain.TREES


def create_gradient_catalog() -> StateCatalog:
    """WATER <-> BEACH <-> GRASS, with WATER and GRASS never adjacent."""
    return StateCatalog(
        [
            CompatibilityRule.of(W, W, B),
            CompatibilityRule.of(B, W, B, G),
            CompatibilityRule.of(G, B, G),
        ]
    )


def assert_adjacency_valid(grid: Grid) -> None:
    states = grid.to_states()
    for x in range(grid.width):
        for y in range(grid.height):
            state = states[x][y]
            assert state is not None
            allowed = grid.catalog.rule(state).states
            for dx, dy in DIRECTION_OFFSETS:
                nx, ny = x + dx, y + dy
                if grid.in_bounds(nx, ny):
                    assert states[nx][ny] in allowed, (
                        f"Invalid adjacency at ({x},{y}) -> ({nx},{ny}): "
                        f"{state.name} disallows {states[nx][ny]}"
                    )


class TestSingleCell:
    def test_one_step_finishes_a_1x1_grid(self) -> None:
        grid = Grid(1, 1, create_coastal_catalog())
        engine = CollapseEngine(grid, random.Random(0))
        assert engine.can_step()

        collapsed = engine.step()

        assert isinstance(collapsed, CollapsedCell)
        assert collapsed.state in grid.catalog
        assert grid.get(0, 0) is collapsed
        assert not engine.can_step()
        assert engine.state is EngineState.TERMINAL

    def test_step_on_finished_grid_is_a_no_op(self) -> None:
        grid = Grid(1, 1, create_coastal_catalog())
        engine = CollapseEngine(grid, random.Random(0))
        engine.step()
        before = grid.get(0, 0)

        assert engine.step() is None
        assert grid.get(0, 0) is before

    def test_every_state_can_be_drawn(self) -> None:
        seen = set()
        for seed in range(60):
            grid = Grid(1, 1, create_coastal_catalog())
            collapsed = CollapseEngine(grid, random.Random(seed)).step()
            assert collapsed is not None
            seen.add(collapsed.state)
        assert seen == set(create_coastal_catalog().states)


class TestStepProperties:
    def test_entropy_drops_every_step(self) -> None:
        grid = Grid(6, 6, create_gradient_catalog())
        engine = CollapseEngine(grid, random.Random(3))

        while engine.can_step():
            before = grid.total_entropy()
            engine.step()
            after = grid.total_entropy()
            assert after <= before - 1

        assert grid.total_entropy() == 0

    def test_can_step_iff_open_cells_remain(self) -> None:
        grid = Grid(5, 4, create_gradient_catalog())
        engine = CollapseEngine(grid, random.Random(11))

        for _ in range(grid.width * grid.height + 1):
            has_open = any(isinstance(value, Cell) for value in grid.cells())
            assert engine.can_step() == has_open
            engine.step()

        assert not engine.can_step()

    def test_picks_a_lowest_entropy_cell(self) -> None:
        grid = Grid(3, 3, create_coastal_catalog())
        pinned = grid.get(2, 1)
        assert isinstance(pinned, Cell)
        pinned.states = {G, T}
        engine = CollapseEngine(grid, random.Random(8))

        collapsed = engine.step()

        assert collapsed is not None
        assert collapsed.pos == (2, 1)
        assert collapsed.state in {G, T}

    def test_ties_are_broken_randomly(self) -> None:
        first_positions = set()
        for seed in range(20):
            grid = Grid(4, 4, create_coastal_catalog())
            collapsed = CollapseEngine(grid, random.Random(seed)).step()
            assert collapsed is not None
            first_positions.add(collapsed.pos)
        assert len(first_positions) > 1

    def test_bias_sums_collapsed_neighbour_weights(self) -> None:
        grid = Grid(3, 3, create_island_catalog())
        grid.set(0, 1, CollapsedCell(0, 1, Terrain.DEEP))
        grid.set(2, 1, CollapsedCell(2, 1, Terrain.WATER))
        grid.set(1, 0, CollapsedCell(1, 0, Terrain.WATER))
        centre = grid.get(1, 1)
        assert isinstance(centre, Cell)

        bias = CollapseEngine(grid)._gather_bias(centre)

        # DEEP: {DEEP: 3, WATER: 1}; WATER: {DEEP: 1, WATER: 2, BEACH: 1} twice
        assert bias == {Terrain.DEEP: 5, Terrain.WATER: 5, Terrain.BEACH: 2}

    def test_no_bias_without_collapsed_neighbours(self) -> None:
        grid = Grid(3, 3, create_coastal_catalog())
        centre = grid.get(1, 1)
        assert isinstance(centre, Cell)
        assert CollapseEngine(grid)._gather_bias(centre) == {}


class TestRunning:
    def test_run_collapses_everything(self) -> None:
        grid = Grid(7, 5, create_gradient_catalog())
        engine = CollapseEngine(grid, random.Random(21))
        seen: list[CollapsedCell] = []

        count = engine.run(pause_ms=0, on_step=seen.append)

        assert count == 35
        assert len({c.pos for c in seen}) == 35
        assert grid.is_complete()
        assert engine.state is EngineState.TERMINAL
        assert_adjacency_valid(grid)

    def test_run_pauses_between_steps_only(
        self, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        sleeps: list[float] = []
        monkeypatch.setattr(collapse_module.time, "sleep", sleeps.append)
        grid = Grid(2, 2, create_gradient_catalog())

        CollapseEngine(grid, random.Random(1)).run(pause_ms=25)

        assert sleeps == [0.025] * 3

    def test_steps_can_be_abandoned(self) -> None:
        grid = Grid(4, 4, create_gradient_catalog())
        engine = CollapseEngine(grid, random.Random(4))

        taken = list(itertools.islice(engine.steps(), 3))

        assert len(taken) == 3
        collapsed = [v for v in grid.cells() if isinstance(v, CollapsedCell)]
        assert len(collapsed) == 3
        assert engine.state is EngineState.IDLE
        assert engine.can_step()

    def test_generate_restarts_a_finished_map(self) -> None:
        grid = Grid(3, 3, create_gradient_catalog())
        engine = CollapseEngine(grid, random.Random(5))
        engine.run(pause_ms=0)

        assert engine.generate(pause_ms=0) == 9
        assert grid.is_complete()

    def test_generate_continues_a_partial_map(self) -> None:
        grid = Grid(3, 3, create_gradient_catalog())
        engine = CollapseEngine(grid, random.Random(5))
        engine.step()
        engine.step()

        assert engine.generate(pause_ms=0) == 7

    def test_reset_discards_progress(self) -> None:
        grid = Grid(3, 3, create_gradient_catalog())
        engine = CollapseEngine(grid, random.Random(6))
        engine.run(pause_ms=0)

        engine.reset()

        assert engine.state is EngineState.IDLE
        assert all(isinstance(v, Cell) for v in grid.cells())
        assert grid.total_entropy() == 9 * 3

    def test_same_seed_same_map(self) -> None:
        results = []
        for _ in range(2):
            grid = Grid(8, 8, create_gradient_catalog())
            results.append(CollapseEngine(grid, random.Random(424242)).solve())
        assert results[0] == results[1]

    def test_stats_track_steps(self) -> None:
        grid = Grid(4, 3, create_gradient_catalog())
        engine = CollapseEngine(grid, random.Random(2))
        engine.run(pause_ms=0)

        assert engine.stats.steps == 12
        assert engine.stats.step_ms.sample_count == 12
        assert engine.stats.narrowed_cells.sample_count == 12
        assert "steps=12" in engine.stats.summary()


class TestSolve:
    def test_coastal_solution_respects_adjacency(self) -> None:
        grid = Grid(8, 8, create_coastal_catalog())
        result = CollapseEngine(grid, random.Random(123)).solve(max_attempts=25)

        assert len(result) == 8
        assert all(len(column) == 8 for column in result)
        assert_adjacency_valid(grid)

    def test_island_solution_respects_adjacency(self) -> None:
        grid = Grid(6, 6, create_island_catalog())
        CollapseEngine(grid, random.Random(77)).solve(max_attempts=25)
        assert_adjacency_valid(grid)

    def test_solve_starts_over_on_a_finished_grid(self) -> None:
        grid = Grid(3, 3, create_gradient_catalog())
        engine = CollapseEngine(grid, random.Random(9))
        engine.solve()
        engine.solve()
        assert engine.stats.steps == 18

    def test_rejects_zero_attempts(self) -> None:
        engine = CollapseEngine(Grid(2, 2, create_gradient_catalog()))
        with pytest.raises(ValueError):
            engine.solve(max_attempts=0)


class TestContradictionHandling:
    def _contradicting_grid(self) -> Grid:
        """Pinned WATER and TREES two cells apart cannot both stand."""
        grid = Grid(3, 1, create_coastal_catalog())
        left, right = grid.get(0, 0), grid.get(2, 0)
        assert isinstance(left, Cell) and isinstance(right, Cell)
        left.states = {W}
        right.states = {T}
        return grid

    def test_contradiction_halts_the_engine(self) -> None:
        grid = self._contradicting_grid()
        engine = CollapseEngine(grid, random.Random(0))

        with pytest.raises(ContradictionError) as exc_info:
            engine.step()

        assert (exc_info.value.x, exc_info.value.y) in {(0, 0), (2, 0)}
        assert engine.state is EngineState.CONTRADICTED
        assert engine.contradiction is exc_info.value
        assert engine.stats.contradictions == 1
        assert engine.can_step()

        with pytest.raises(ContradictionError):
            engine.step()

    def test_run_stops_on_contradiction(self) -> None:
        engine = CollapseEngine(self._contradicting_grid(), random.Random(0))
        with pytest.raises(ContradictionError):
            engine.run(pause_ms=0)

    def test_empty_cell_is_reported_before_drawing(self) -> None:
        grid = Grid(2, 2, create_coastal_catalog())
        empty = grid.get(1, 1)
        assert isinstance(empty, Cell)
        empty.states = set()
        engine = CollapseEngine(grid, random.Random(0))

        with pytest.raises(ContradictionError) as exc_info:
            engine.step()

        assert (exc_info.value.x, exc_info.value.y) == (1, 1)

    def test_reset_clears_contradiction(self) -> None:
        grid = self._contradicting_grid()
        engine = CollapseEngine(grid, random.Random(0))
        with pytest.raises(ContradictionError):
            engine.step()

        engine.reset()

        assert engine.state is EngineState.IDLE
        assert engine.contradiction is None
        assert engine.step() is not None

    def test_generate_recovers_from_contradiction(self) -> None:
        engine = CollapseEngine(self._contradicting_grid(), random.Random(0))
        with pytest.raises(ContradictionError):
            engine.step()

        assert engine.generate(pause_ms=0) == 3
        assert engine.grid.is_complete()

    def test_solve_retries_after_contradiction(self) -> None:
        grid = self._contradicting_grid()
        engine = CollapseEngine(grid, random.Random(0))

        result = engine.solve(max_attempts=2)

        assert engine.stats.contradictions == 1
        assert all(state is not None for column in result for state in column)
        assert_adjacency_valid(grid)

    def test_solve_gives_up_after_max_attempts(
        self, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        def always_contradict(self: PropagationEngine, collapsed: CollapsedCell):
            raise ContradictionError(collapsed.x, collapsed.y)

        monkeypatch.setattr(PropagationEngine, "propagate", always_contradict)
        engine = CollapseEngine(Grid(2, 2, create_gradient_catalog()))

        with pytest.raises(ContradictionError):
            engine.solve(max_attempts=3)

        assert engine.stats.contradictions == 3
        assert engine.state is EngineState.CONTRADICTED


class TestGridChangedUnderneath:
    """The grid may be reset or resized directly instead of through the engine."""

    def _contradicted_engine(self) -> CollapseEngine:
        grid = Grid(3, 1, create_coastal_catalog())
        left, right = grid.get(0, 0), grid.get(2, 0)
        assert isinstance(left, Cell) and isinstance(right, Cell)
        left.states = {W}
        right.states = {T}
        engine = CollapseEngine(grid, random.Random(0))
        with pytest.raises(ContradictionError):
            engine.step()
        return engine

    def test_resize_clears_contradiction(self) -> None:
        engine = self._contradicted_engine()

        engine.grid.resize(4, 4)

        assert engine.state is EngineState.IDLE
        assert engine.contradiction is None
        assert engine.step() is not None

    def test_grid_reset_clears_contradiction(self) -> None:
        engine = self._contradicted_engine()

        engine.grid.reset()

        assert engine.step() is not None
        assert engine.state is EngineState.IDLE

    def test_resizing_a_finished_map_reopens_it(self) -> None:
        grid = Grid(2, 2, create_gradient_catalog())
        engine = CollapseEngine(grid, random.Random(12))
        engine.run(pause_ms=0)
        assert engine.state is EngineState.TERMINAL

        grid.width = 3

        assert engine.state is EngineState.IDLE
        assert engine.generate(pause_ms=0) == 6
        assert grid.is_complete()


class TestPropagationOverrun:
    """Running out of propagation frames halts generation like a contradiction."""

    def _isolated_catalog(self) -> StateCatalog:
        return StateCatalog([CompatibilityRule.of(W, W), CompatibilityRule.of(B, B)])

    def test_overrun_halts_the_engine(self) -> None:
        grid = Grid(2, 1, self._isolated_catalog())
        engine = CollapseEngine(grid, random.Random(0))
        engine.propagation = PropagationEngine(grid, max_frames=1)

        with pytest.raises(PropagationError) as exc_info:
            engine.step()

        assert engine.state is EngineState.CONTRADICTED
        assert engine.contradiction is exc_info.value
        assert engine.stats.contradictions == 1
        # The half-propagated grid must not be stepped any further
        with pytest.raises(PropagationError):
            engine.step()
        assert sum(isinstance(v, CollapsedCell) for v in grid.cells()) == 1

    @pytest.mark.parametrize("seed", range(10))
    def test_no_illegal_map_after_overrun(self, seed: int) -> None:
        grid = Grid(2, 1, self._isolated_catalog())
        engine = CollapseEngine(grid, random.Random(seed))
        engine.propagation = PropagationEngine(grid, max_frames=1)
        with pytest.raises(PropagationError):
            engine.step()

        engine.propagation.max_frames = 100
        engine.generate(pause_ms=0)

        assert_adjacency_valid(grid)

    def test_solve_retries_after_overrun(
        self, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        original = PropagationEngine.propagate
        calls: list[CollapsedCell] = []

        def overrun_once(self: PropagationEngine, collapsed: CollapsedCell):
            calls.append(collapsed)
            if len(calls) == 1:
                raise PropagationError(collapsed.x, collapsed.y, "frames exceeded")
            return original(self, collapsed)

        monkeypatch.setattr(PropagationEngine, "propagate", overrun_once)
        grid = Grid(3, 3, create_gradient_catalog())
        engine = CollapseEngine(grid, random.Random(31))

        engine.solve(max_attempts=2)

        assert engine.stats.contradictions == 1
        assert grid.is_complete()
        assert_adjacency_valid(grid)

    def test_solve_gives_up_when_every_attempt_overruns(self) -> None:
        grid = Grid(2, 1, self._isolated_catalog())
        engine = CollapseEngine(grid, random.Random(4))
        engine.propagation = PropagationEngine(grid, max_frames=1)

        with pytest.raises(PropagationError):
            engine.solve(max_attempts=3)

        assert engine.stats.contradictions == 3

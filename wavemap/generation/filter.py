"""Immutable allowed-state sets used to prune cell candidates.

A Filter answers one question for a cell: which states are still allowed
here? Propagation builds them by OR-ing the compatibility sets of every
state a cell might still take (union), and merges the evidence that several
propagation paths left for the same cell by AND-ing it (intersect).
"""

from __future__ import annotations

from collections.abc import Iterable, Iterator, Set

from wavemap.catalog import Terrain


class Filter:
    """An unordered, immutable set of allowed states.

    Supports ``len()``, ``in``, iteration and ``==`` (size plus membership),
    so it can be used anywhere a read-only set is expected.
    """

    __slots__ = ("_states",)

    def __init__(self, states: Iterable[Terrain] = ()) -> None:
        self._states: frozenset[Terrain] = frozenset(states)

    @classmethod
    def union(cls, state_sets: Iterable[Iterable[Terrain]]) -> Filter:
        """Filter allowing every state that appears in any of the inputs."""
        result: set[Terrain] = set()
        for states in state_sets:
            result.update(states)
        return cls(result)

    @classmethod
    def intersect(cls, filters: Iterable[Iterable[Terrain]]) -> Filter:
        """Filter allowing only the states present in every input.

        Seeded from the first input and narrowed by each one after it. An
        empty input list yields an empty Filter.
        """
        result: set[Terrain] | None = None
        for states in filters:
            if result is None:
                result = set(states)
            else:
                result.intersection_update(states)
        return cls(result or ())

    @property
    def states(self) -> frozenset[Terrain]:
        return self._states

    @property
    def size(self) -> int:
        return len(self._states)

    def includes(self, state: Terrain) -> bool:
        return state in self._states

    def equals(self, other: Iterable[Terrain]) -> bool:
        """Same size and every member of ``other`` is allowed here."""
        other_states = other.states if isinstance(other, Filter) else set(other)
        if len(other_states) != len(self._states):
            return False
        return all(state in self._states for state in other_states)

    def is_full(self, catalog_size: int) -> bool:
        """True when the filter allows every state, so it constrains nothing."""
        return len(self._states) == catalog_size

    def apply(self, candidates: Iterable[Terrain]) -> set[Terrain]:
        """Return a new set holding the candidates this filter allows."""
        return {state for state in candidates if state in self._states}

    def __len__(self) -> int:
        return len(self._states)

    def __contains__(self, state: object) -> bool:
        return state in self._states

    def __iter__(self) -> Iterator[Terrain]:
        return iter(self._states)

    def __eq__(self, other: object) -> bool:
        if isinstance(other, Filter):
            return self._states == other._states
        if isinstance(other, Set):
            return self.equals(other)
        return NotImplemented

    def __hash__(self) -> int:
        return hash(self._states)

    def __repr__(self) -> str:
        names = ", ".join(sorted(state.name for state in self._states))
        return f"Filter({{{names}}})"

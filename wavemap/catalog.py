"""Terrain states and the adjacency rules between them.

A StateCatalog is the closed set of states a grid can hold, in a fixed
enumeration order, together with one CompatibilityRule per state. The rule
for a state lists which states may sit in an orthogonally adjacent cell, and
with what weight a collapsed cell of that state pulls an adjacent collapse
toward each of them.

Catalogs are built once and never mutated. Two are provided:
- coastal: water, beach, grass and trees, every weight 1
- island: a seven-step chain from deep ocean up to snow, with weights that
  favour neighbours of the same kind so terrain forms larger patches
"""

from __future__ import annotations

from collections.abc import Callable, Iterable, Iterator, Mapping
from dataclasses import dataclass, field
from enum import IntEnum, auto
from numbers import Integral

from wavemap.errors import ConfigurationError


class Terrain(IntEnum):
    """Every terrain state known to the generator."""

    DEEP = 0
    WATER = auto()
    BEACH = auto()
    GRASS = auto()
    TREES = auto()
    MOUNTAIN = auto()
    SNOW = auto()


@dataclass(frozen=True)
class CompatibilityRule:
    """Legal neighbours of one state, with collapse-bias weights.

    Attributes:
        state: The state this rule belongs to.
        neighbours: Ordered (neighbour_state, weight) pairs. Weights are
            non-negative integers; 1 is the neutral default.
    """

    state: Terrain
    neighbours: tuple[tuple[Terrain, int], ...]
    weights: Mapping[Terrain, int] = field(init=False, repr=False, compare=False)
    states: frozenset[Terrain] = field(init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        weights: dict[Terrain, int] = {}
        for neighbour, weight in self.neighbours:
            if isinstance(weight, bool) or not isinstance(weight, Integral):
                raise ConfigurationError(
                    f"Weight for {self.state.name}->{neighbour.name} must be an "
                    f"integer, got {weight!r}"
                )
            if weight < 0:
                raise ConfigurationError(
                    f"Weight for {self.state.name}->{neighbour.name} must be >= 0, "
                    f"got {weight}"
                )
            weights[neighbour] = weights.get(neighbour, 0) + int(weight)

        object.__setattr__(self, "weights", weights)
        object.__setattr__(self, "states", frozenset(weights))

    @classmethod
    def of(
        cls, state: Terrain, *neighbours: Terrain | tuple[Terrain, int]
    ) -> CompatibilityRule:
        """Build a rule from bare states (weight 1) or (state, weight) pairs."""
        pairs = tuple(n if isinstance(n, tuple) else (n, 1) for n in neighbours)
        return cls(state, pairs)


class StateCatalog:
    """The closed, ordered set of states and their compatibility rules."""

    def __init__(
        self, rules: Mapping[Terrain, CompatibilityRule] | Iterable[CompatibilityRule]
    ) -> None:
        if isinstance(rules, Mapping):
            items = list(rules.items())
        else:
            items = [(rule.state, rule) for rule in rules]

        if not items:
            raise ConfigurationError("A state catalog needs at least one state")

        self._rules: dict[Terrain, CompatibilityRule] = {}
        for state, rule in items:
            if rule.state != state:
                raise ConfigurationError(
                    f"Rule for {rule.state.name} registered under {state.name}"
                )
            if state in self._rules:
                raise ConfigurationError(f"Duplicate rule for {state.name}")
            self._rules[state] = rule

        self._states: tuple[Terrain, ...] = tuple(self._rules)
        self._index = {state: i for i, state in enumerate(self._states)}
        self._by_name = {state.name.lower(): state for state in self._states}

        for state, rule in self._rules.items():
            if not rule.states:
                raise ConfigurationError(f"{state.name} has no legal neighbours")
            unknown = rule.states - self._index.keys()
            if unknown:
                names = ", ".join(sorted(s.name for s in unknown))
                raise ConfigurationError(
                    f"Rule for {state.name} references states outside the "
                    f"catalog: {names}"
                )

    @property
    def states(self) -> tuple[Terrain, ...]:
        """All states in enumeration order."""
        return self._states

    @property
    def size(self) -> int:
        return len(self._states)

    def __len__(self) -> int:
        return len(self._states)

    def __iter__(self) -> Iterator[Terrain]:
        return iter(self._states)

    def __contains__(self, state: object) -> bool:
        return state in self._index

    def __repr__(self) -> str:
        names = ", ".join(self.name(s) for s in self._states)
        return f"StateCatalog({names})"

    def rule(self, state: Terrain) -> CompatibilityRule:
        try:
            return self._rules[state]
        except KeyError:
            raise KeyError(f"{state!r} is not in this catalog") from None

    def index(self, state: Terrain) -> int:
        """Position of a state in enumeration order."""
        return self._index[state]

    def state_at(self, index: int) -> Terrain:
        return self._states[index]

    def name(self, state: Terrain) -> str:
        return state.name.lower()

    def by_name(self, name: str) -> Terrain:
        try:
            return self._by_name[name.lower()]
        except KeyError:
            raise KeyError(f"No state named {name!r} in this catalog") from None

    def is_symmetric(self) -> bool:
        """True when every A->B adjacency has a matching B->A adjacency."""
        return all(
            state in self._rules[neighbour].states
            for state, rule in self._rules.items()
            for neighbour in rule.states
        )


# =============================================================================
# Built-in catalogs
# =============================================================================


def create_coastal_catalog() -> StateCatalog:
    """Four states in a strip: water, beach, grass, trees.

    Water only meets water or beach, and trees only meet grass or trees, so
    the map grades from sea through sand and meadow into woodland.
    """
    return StateCatalog(
        [
            CompatibilityRule.of(Terrain.WATER, Terrain.WATER, Terrain.BEACH),
            CompatibilityRule.of(
                Terrain.BEACH, Terrain.WATER, Terrain.BEACH, Terrain.GRASS
            ),
            CompatibilityRule.of(
                Terrain.GRASS, Terrain.BEACH, Terrain.GRASS, Terrain.TREES
            ),
            CompatibilityRule.of(Terrain.TREES, Terrain.GRASS, Terrain.TREES),
        ]
    )


def create_island_catalog() -> StateCatalog:
    """Seven states from deep ocean to snowy peaks.

    Each state may touch itself and the states one step up or down the
    chain. Self-adjacency carries a higher weight, and a few transitions
    are preferred (beach into grass, grass into trees) so coastlines and
    forests read as coherent zones.
    """
    return StateCatalog(
        [
            CompatibilityRule.of(Terrain.DEEP, (Terrain.DEEP, 3), Terrain.WATER),
            CompatibilityRule.of(
                Terrain.WATER, Terrain.DEEP, (Terrain.WATER, 2), Terrain.BEACH
            ),
            CompatibilityRule.of(
                Terrain.BEACH, Terrain.WATER, (Terrain.BEACH, 2), (Terrain.GRASS, 2)
            ),
            CompatibilityRule.of(
                Terrain.GRASS, Terrain.BEACH, (Terrain.GRASS, 3), (Terrain.TREES, 2)
            ),
            CompatibilityRule.of(
                Terrain.TREES, Terrain.GRASS, (Terrain.TREES, 3), Terrain.MOUNTAIN
            ),
            CompatibilityRule.of(
                Terrain.MOUNTAIN, Terrain.TREES, (Terrain.MOUNTAIN, 2), Terrain.SNOW
            ),
            CompatibilityRule.of(Terrain.SNOW, Terrain.MOUNTAIN, (Terrain.SNOW, 2)),
        ]
    )


CATALOGS: dict[str, Callable[[], StateCatalog]] = {
    "coastal": create_coastal_catalog,
    "island": create_island_catalog,
}


def get_catalog(name: str) -> StateCatalog:
    """Build the named built-in catalog."""
    try:
        factory = CATALOGS[name]
    except KeyError:
        known = ", ".join(sorted(CATALOGS))
        raise ConfigurationError(
            f"Unknown catalog {name!r} (expected one of: {known})"
        ) from None
    return factory()

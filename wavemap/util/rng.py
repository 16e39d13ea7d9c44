"""Deterministic random number generation with isolated streams.

Each part of generation (tie-breaking between cells, the weighted collapse
draw) gets its own random stream derived from one master seed. This keeps a
map reproducible from its seed, and keeps a change in how one part consumes
randomness from shifting the sequence seen by another.

Usage:
    from wavemap.util import rng
    rng.init(config.RANDOM_SEED)

    # Cache the stream at module level; it follows later rng.reset() calls
    _rng = rng.get("map.wfc.collapse")

Domain naming convention (hierarchical):
    - "map.wfc" for picking the next cell
    - "map.wfc.collapse" for the weighted draw
"""

from __future__ import annotations

import zlib
from collections.abc import Sequence
from random import Random
from typing import TYPE_CHECKING, TypeAlias, TypeVar

if TYPE_CHECKING:
    from wavemap.types import RandomSeed

T = TypeVar("T")


class RNGStream:
    """Proxy that delegates to the provider's current Random for a domain.

    Callers can hold on to a stream across rng.reset(); each call looks up
    the underlying Random afresh.
    """

    def __init__(self, provider: RNGProvider, domain: str) -> None:
        self._provider = provider
        self._domain = domain

    @property
    def domain(self) -> str:
        return self._domain

    def _rng(self) -> Random:
        return self._provider._get_raw(self._domain)

    def random(self) -> float:
        """Return random float in [0.0, 1.0)."""
        return self._rng().random()

    def randint(self, a: int, b: int) -> int:
        """Return random integer N such that a <= N <= b."""
        return self._rng().randint(a, b)

    def randrange(self, start: int, stop: int | None = None, step: int = 1) -> int:
        """Return randomly selected element from range(start, stop, step)."""
        return self._rng().randrange(start, stop, step)

    def choice(self, seq: Sequence[T]) -> T:
        """Return random element from non-empty sequence."""
        return self._rng().choice(seq)

    def shuffle(self, x: list) -> None:
        """Shuffle list x in place."""
        self._rng().shuffle(x)

    def getrandbits(self, k: int) -> int:
        """Return an integer with k random bits."""
        return self._rng().getrandbits(k)


# Functions that draw randomness accept either a plain Random (tests pass
# seeded instances) or a provider stream.
RNG: TypeAlias = Random | RNGStream


class RNGProvider:
    """Provides isolated RNG streams keyed by domain name."""

    def __init__(self, master_seed: RandomSeed = None) -> None:
        self._master_seed = master_seed
        self._streams: dict[str, Random] = {}
        self._proxies: dict[str, RNGStream] = {}

    @property
    def master_seed(self) -> RandomSeed:
        return self._master_seed

    def get(self, domain: str) -> RNGStream:
        """Get a cacheable stream for the named domain."""
        if domain not in self._proxies:
            self._proxies[domain] = RNGStream(self, domain)
        return self._proxies[domain]

    def _get_raw(self, domain: str) -> Random:
        if domain not in self._streams:
            if self._master_seed is None:
                self._streams[domain] = Random()
            else:
                # crc32 rather than hash(): str hashing is salted per process
                derived_seed = zlib.crc32(f"{self._master_seed}:{domain}".encode())
                self._streams[domain] = Random(derived_seed)
        return self._streams[domain]

    def reset(self, master_seed: RandomSeed = None) -> None:
        """Reseed every stream. Existing RNGStream proxies stay valid."""
        self._master_seed = master_seed
        self._streams.clear()


# =============================================================================
# Module-level API
# =============================================================================

_provider: RNGProvider | None = None


def init(master_seed: RandomSeed = None) -> None:
    """Initialize the global provider, or reseed it if it already exists."""
    global _provider
    if _provider is not None:
        _provider.reset(master_seed)
    else:
        _provider = RNGProvider(master_seed)


def get(domain: str) -> RNGStream:
    """Get a stream for the named domain, auto-initializing unseeded if needed.

    Call init() at startup for reproducible maps.
    """
    global _provider
    if _provider is None:
        _provider = RNGProvider(None)
    return _provider.get(domain)


def reset(master_seed: RandomSeed = None) -> None:
    """Reseed all streams of the global provider."""
    if _provider is None:
        raise RuntimeError("RNG not initialized - call rng.init() first")
    _provider.reset(master_seed)

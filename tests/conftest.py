from __future__ import annotations

import logging
from collections.abc import Iterator

import pytest

from wavemap.util import rng


@pytest.fixture(autouse=True)
def seeded_rng() -> Iterator[None]:
    """Reseed the global rng streams so default-stream tests are repeatable."""
    rng.init(1234)
    yield
    rng.init(1234)


@pytest.fixture(autouse=True)
def restore_package_logger() -> Iterator[None]:
    """Undo handler changes the CLI makes to the ``wavemap`` logger."""
    package_logger = logging.getLogger("wavemap")
    handlers = list(package_logger.handlers)
    level = package_logger.level
    propagate = package_logger.propagate
    yield
    package_logger.handlers[:] = handlers
    package_logger.setLevel(level)
    package_logger.propagate = propagate

"""
Configuration constants.

Centralizes the magic numbers and default values used throughout the package.
Organized by functional area. Command-line flags override these per invocation.
"""

import sys
from typing import Literal

# =============================================================================
# GENERAL
# =============================================================================

# RANDOM_SEED = None
RANDOM_SEED = "wavemap"

# Test environment detection
IS_TEST_ENVIRONMENT = "pytest" in sys.modules

# =============================================================================
# GRID
# =============================================================================

DEFAULT_GRID_WIDTH = 10
DEFAULT_GRID_HEIGHT = 10

# Catalog used when a Grid is created without one. Must be a key of
# wavemap.catalog.CATALOGS.
DEFAULT_CATALOG: Literal["coastal", "island"] = "coastal"

# Width has always been required to be a positive integer. Height used to be
# checked only for being an integer, which let a zero-height grid through.
# Set to False to restore that permissive height check.
REQUIRE_POSITIVE_HEIGHT = True

# =============================================================================
# GENERATION
# =============================================================================

# Pause between steps of CollapseEngine.run(), in milliseconds. Render pacing only.
RUN_PAUSE_MS = 0 if IS_TEST_ENVIRONMENT else 3

# Number of full attempts CollapseEngine.solve() makes before giving up on a
# contradicting grid.
MAX_SOLVE_ATTEMPTS = 5

# Upper bound on exploration frames in a single propagation. Paths fan out
# per branch, so this guards against pathological catalogs, not normal use.
PROPAGATION_MAX_FRAMES = 2_000_000

# =============================================================================
# DIAGNOSTICS
# =============================================================================

# Number of recent steps kept for timing percentiles.
STATS_SAMPLE_SIZE = 256

LOG_FORMAT = "%(asctime)s.%(msecs)03d | %(levelname)-8s | %(name)-32s | %(message)s"
LOG_DATE_FORMAT = "%H:%M:%S"

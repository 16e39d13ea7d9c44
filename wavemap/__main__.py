"""Command-line entry point: generate a terrain map and print it.

Usage:
    python -m wavemap --width 40 --height 20 --catalog island --seed 7
    python -m wavemap --watch --pause-ms 20
"""

from __future__ import annotations

import argparse
import logging
import sys
from collections.abc import Sequence

from wavemap import config
from wavemap.catalog import CATALOGS, Terrain, get_catalog
from wavemap.errors import ConfigurationError, ContradictionError
from wavemap.generation import CollapsedCell, CollapseEngine, Grid
from wavemap.util import rng

logger = logging.getLogger("wavemap")

GLYPHS: dict[Terrain, str] = {
    Terrain.DEEP: "=",
    Terrain.WATER: "~",
    Terrain.BEACH: ".",
    Terrain.GRASS: '"',
    Terrain.TREES: "T",
    Terrain.MOUNTAIN: "^",
    Terrain.SNOW: "*",
}

# Open cells show their entropy as a digit
OPEN_GLYPHS = "0123456789"

_CLEAR_SCREEN = "\033[H\033[J"


def setup_logging(verbose: int = 0) -> None:
    """Send wavemap.* log records to stderr.

    Args:
        verbose: 0 for warnings only, 1 for info, 2 or more for debug.
    """
    level = logging.WARNING
    if verbose == 1:
        level = logging.INFO
    elif verbose >= 2:
        level = logging.DEBUG

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(
        logging.Formatter(fmt=config.LOG_FORMAT, datefmt=config.LOG_DATE_FORMAT)
    )

    logger.handlers.clear()
    logger.addHandler(handler)
    logger.setLevel(level)
    logger.propagate = False


def render_text(grid: Grid) -> str:
    """One glyph per cell, one line per row."""
    rows: list[list[str]] = [[" "] * grid.width for _ in range(grid.height)]
    for view in grid.views():
        if view.state is not None:
            glyph = GLYPHS[view.state]
        else:
            glyph = OPEN_GLYPHS[min(view.entropy, len(OPEN_GLYPHS) - 1)]
        rows[view.y][view.x] = glyph
    return "\n".join("".join(row) for row in rows)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="wavemap",
        description="Generate a terrain map with wave function collapse.",
    )
    parser.add_argument("--width", type=int, default=config.DEFAULT_GRID_WIDTH)
    parser.add_argument("--height", type=int, default=config.DEFAULT_GRID_HEIGHT)
    parser.add_argument(
        "--catalog",
        choices=sorted(CATALOGS),
        default=config.DEFAULT_CATALOG,
        help="Terrain state set and adjacency rules",
    )
    parser.add_argument(
        "--seed",
        default=config.RANDOM_SEED,
        help="Master seed; the same seed reproduces the same map",
    )
    parser.add_argument(
        "--attempts",
        type=int,
        default=config.MAX_SOLVE_ATTEMPTS,
        help="Restarts allowed after a contradiction",
    )
    parser.add_argument(
        "--watch",
        action="store_true",
        help="Redraw the map after every step",
    )
    parser.add_argument(
        "--pause-ms",
        type=float,
        default=config.RUN_PAUSE_MS,
        help="Delay between steps when watching",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="count",
        default=0,
        help="Log progress to stderr (-vv for per-step detail)",
    )
    return parser


def _watch(engine: CollapseEngine, pause_ms: float, attempts: int) -> None:
    def redraw(_collapsed: CollapsedCell) -> None:
        print(_CLEAR_SCREEN + render_text(engine.grid), flush=True)

    for attempt in range(1, attempts + 1):
        try:
            engine.generate(pause_ms=pause_ms, on_step=redraw)
            return
        except ContradictionError:
            if attempt == attempts:
                raise
            logger.warning(f"Attempt {attempt}/{attempts} contradicted, restarting")


def main(argv: Sequence[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    if args.attempts < 1:
        parser.error("--attempts must be at least 1")
    setup_logging(args.verbose)
    rng.init(args.seed)

    try:
        grid = Grid(args.width, args.height, get_catalog(args.catalog))
        engine = CollapseEngine(grid)
        if args.watch:
            _watch(engine, args.pause_ms, args.attempts)
        else:
            engine.solve(max_attempts=args.attempts)
            print(render_text(grid))
    except ConfigurationError as e:
        print(f"wavemap: {e}", file=sys.stderr)
        return 1
    except ContradictionError as e:
        print(
            f"wavemap: no valid map after {args.attempts} attempts: {e}",
            file=sys.stderr,
        )
        return 1

    logger.info(engine.stats.summary())
    return 0


if __name__ == "__main__":
    sys.exit(main())

"""Entry point for ``python -m beehealth``.

Loads the YAML config (plus any ``name=value`` overrides), builds a
simulation engine and either runs it headless, writing the results to a
numbered run directory, or opens a Pygame window to watch it year by
year.
"""

from __future__ import annotations

import argparse
import dataclasses
import logging
import pathlib
import sys

from beehealth.simulation.config import SimulationConfig, parse_overrides
from beehealth.simulation.engine import SimulationEngine
from beehealth.simulation.errors import BeeHealthError
from beehealth.stats.reporting import ResultsWriter
from beehealth.stats.statistics import Statistics

_DEFAULT_CONFIG = (
    pathlib.Path(__file__).resolve().parent.parent / "config" / "default.yaml"
)

logger = logging.getLogger("beehealth")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="beehealth",
        description="Honeybee colony health simulation on a toroidal lattice",
    )
    parser.add_argument(
        "-c",
        "--config",
        type=pathlib.Path,
        default=_DEFAULT_CONFIG,
        help="Path to YAML config file (default: config/default.yaml)",
    )
    parser.add_argument(
        "properties",
        nargs="*",
        metavar="name=value",
        help="Configuration properties overriding the config file",
    )
    parser.add_argument(
        "--years",
        type=int,
        default=None,
        help="Number of years to simulate (default: sim_length)",
    )
    parser.add_argument(
        "--threads",
        type=int,
        default=None,
        help="Worker threads for the replacement phase (default: threads)",
    )
    parser.add_argument(
        "--results-dir",
        type=pathlib.Path,
        default=None,
        help="Base directory for run output (default: results_dir)",
    )
    parser.add_argument(
        "--no-results",
        action="store_true",
        help="Do not write any result files",
    )
    parser.add_argument(
        "--view",
        action="store_true",
        help="Open a Pygame window instead of running headless",
    )
    parser.add_argument(
        "--cell-size",
        type=int,
        default=20,
        help="Pixel size per lattice cell (default: 20)",
    )
    parser.add_argument(
        "--fps",
        type=int,
        default=30,
        help="Target frames per second (default: 30)",
    )
    parser.add_argument(
        "--speed",
        type=float,
        default=1.0,
        help="Simulated years per second in the viewer (default: 1)",
    )
    parser.add_argument(
        "--log-level",
        default="INFO",
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        help="Logging verbosity (default: INFO)",
    )
    return parser


def load_config(args: argparse.Namespace) -> SimulationConfig:
    """Build the configuration from the file, overrides and flags."""
    config = SimulationConfig.from_yaml(
        args.config,
        overrides=parse_overrides(args.properties),
    )
    changes: dict[str, object] = {}
    if args.years is not None:
        changes["sim_length"] = args.years
    if args.threads is not None:
        changes["threads"] = args.threads
    if args.results_dir is not None:
        changes["results_dir"] = str(args.results_dir)
    return dataclasses.replace(config, **changes) if changes else config


def run_headless(engine: SimulationEngine, write_results: bool) -> None:
    config = engine.config
    writer = ResultsWriter(config.results_dir) if write_results else None
    if writer is not None:
        writer.write_config(config)
        writer.write_start_sites(engine.records())

    engine.run()

    if writer is not None:
        writer.write_sites(engine.records())
        if isinstance(engine.stats, Statistics):
            writer.write_years(engine.stats)


def main(argv: list[str] | None = None) -> None:
    """Parse CLI args, create engine, run it or launch the renderer."""
    parser = build_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=args.log_level,
        format="%(asctime)s %(levelname)-8s %(name)s: %(message)s",
    )
    if not args.config.is_file():
        parser.error(f"config file not found: {args.config}")

    try:
        config = load_config(args)
        engine = SimulationEngine(config=config)
        if args.view:
            from beehealth.ui.pygame_client import LatticeRenderer

            renderer = LatticeRenderer(
                engine=engine,
                cell_size=args.cell_size,
                years_per_second=args.speed,
            )
            renderer.run(fps=args.fps)
        else:
            run_headless(engine, write_results=not args.no_results)
    except BeeHealthError as exc:
        logger.critical("Simulation aborted: %s", exc)
        sys.exit(1)


if __name__ == "__main__":
    main()

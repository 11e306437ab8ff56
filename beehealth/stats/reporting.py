"""Reporting — write a run's configuration and results to disk.

Each run gets its own numbered directory under ``results_dir``
(``000``, ``001``, ...), holding:

- ``config.yaml``: the configuration, keyed by property name
- ``sim_start_sites.csv``: one row per location after initialisation
- ``sites.csv``: one row per location at the end of the run
- ``years.csv``: one row per year with every statistics metric
"""

from __future__ import annotations

import csv
import logging
from collections.abc import Iterable
from pathlib import Path
from typing import TYPE_CHECKING

import yaml

from beehealth.world.location import LocationRecord

if TYPE_CHECKING:
    from beehealth.simulation.config import SimulationConfig
    from beehealth.stats.statistics import Statistics

logger = logging.getLogger(__name__)

_MAX_RUNS = 1000


def next_run_directory(base: Path) -> Path:
    """Create and return the first unused ``NNN`` directory under ``base``.

    Raises:
        FileExistsError: If every run number is taken.
    """
    base.mkdir(parents=True, exist_ok=True)
    for i in range(_MAX_RUNS):
        candidate = base / f"{i:03d}"
        try:
            candidate.mkdir()
        except FileExistsError:
            continue
        return candidate
    msg = f"no free run directory left in {base}"
    raise FileExistsError(msg)


class ResultsWriter:
    """Writes one run's output files.

    Args:
        base_dir: Directory holding the numbered run directories.
    """

    def __init__(self, base_dir: str | Path) -> None:
        self.run_dir = next_run_directory(Path(base_dir))
        logger.info("Writing results to %s", self.run_dir)

    def write_config(self, config: SimulationConfig) -> Path:
        path = self.run_dir / "config.yaml"
        with path.open("w", encoding="utf-8") as fh:
            yaml.safe_dump(config.to_mapping(), fh, sort_keys=True)
        return path

    def write_sites(
        self,
        records: Iterable[LocationRecord],
        filename: str = "sites.csv",
    ) -> Path:
        """Write one row per location record."""
        path = self.run_dir / filename
        with path.open("w", newline="", encoding="utf-8") as fh:
            writer = csv.writer(fh)
            writer.writerow(LocationRecord._fields)
            for record in records:
                writer.writerow(_format_row(record))
        return path

    def write_start_sites(self, records: Iterable[LocationRecord]) -> Path:
        return self.write_sites(records, filename="sim_start_sites.csv")

    def write_years(self, stats: Statistics) -> Path:
        """Write the per-year metric table."""
        path = self.run_dir / "years.csv"
        rows = stats.table()
        with path.open("w", newline="", encoding="utf-8") as fh:
            if not rows:
                return path
            writer = csv.DictWriter(fh, fieldnames=list(rows[0]))
            writer.writeheader()
            writer.writerows(rows)
        return path


def _format_row(record: LocationRecord) -> list[object]:
    return [f"{value:.4f}" if isinstance(value, float) else value for value in record]

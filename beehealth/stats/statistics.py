"""Statistics — per-year counters for the domestic and feral populations.

The simulation core reports lifecycle events through the
:class:`StatisticsSink` protocol.  :class:`Statistics` is the standard
sink: it keeps one :class:`YearStatistics` per simulated year and
exposes every figure as a named per-year series through ``METRICS``.

Events may arrive from worker threads during the replacement phase, so
all mutation happens under a single lock.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable, Iterable
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Protocol

from beehealth.simulation.errors import SwarmAccountingError

if TYPE_CHECKING:
    from beehealth.colony.colony import Colony
    from beehealth.world.location import Location

logger = logging.getLogger(__name__)


class StatisticsSink(Protocol):
    """Receives lifecycle events from the simulation core."""

    def colony_created(self, domestic: bool) -> None: ...

    def died_of_old_age(self, domestic: bool) -> None: ...

    def failed_to_survive_winter(self, domestic: bool) -> None: ...

    def mating_flight_failed(self, domestic: bool) -> None: ...

    def swarming(self, domestic: bool) -> None: ...

    def swarm_found_site(self, domestic: bool) -> None: ...

    def swarm_could_not_find_site(self, domestic: bool) -> None: ...

    def colony_requeened(self) -> None: ...

    def colonies_at_end_of_winter(
        self,
        location: Location,
        colonies: Iterable[Colony],
    ) -> None: ...

    def colonies_at_end_of_summer(
        self,
        location: Location,
        colonies: Iterable[Colony],
    ) -> None: ...

    def end_of_winter(self) -> None: ...

    def end_of_summer(self) -> None: ...


@dataclass
class _Aggregate:
    """Running total, minimum and maximum of one per-colony quantity."""

    total: float = 0.0
    minimum: float | None = None
    maximum: float | None = None

    def add(self, value: float) -> None:
        self.total += value
        self.minimum = value if self.minimum is None else min(self.minimum, value)
        self.maximum = value if self.maximum is None else max(self.maximum, value)

    def mean(self, count: int) -> float:
        return self.total / count if count else 0.0


@dataclass
class PopulationStatistics:
    """One year's figures for either the domestic or the feral population.

    Event counters accumulate over the year; the live and dead counts
    and the strength aggregates are end-of-season snapshots.
    """

    colonies_created: int = 0
    died_of_old_age: int = 0
    killed_by_winter: int = 0
    mating_flight_failures: int = 0
    swarms: int = 0
    swarms_found_site: int = 0
    swarms_could_not_find_site: int = 0
    requeened: int = 0
    eow_live_colonies: int = 0
    eow_dead_colonies: int = 0
    live_colonies: int = 0
    dead_colonies: int = 0
    queen_strength: _Aggregate = field(default_factory=_Aggregate, repr=False)
    hive_strength: _Aggregate = field(default_factory=_Aggregate, repr=False)
    drones: _Aggregate = field(default_factory=_Aggregate, repr=False)

    def add_end_of_summer(self, colony: Colony) -> None:
        if colony.dead:
            self.dead_colonies += 1
            return
        self.live_colonies += 1
        self.queen_strength.add(colony.queen_gene)
        self.hive_strength.add(colony.strength)
        self.drones.add(len(colony.drone_genes))

    @property
    def avg_queen_strength(self) -> float:
        return self.queen_strength.mean(self.live_colonies)

    @property
    def avg_hive_strength(self) -> float:
        return self.hive_strength.mean(self.live_colonies)

    @property
    def avg_drones(self) -> float:
        return self.drones.mean(self.live_colonies)

    @property
    def swarms_accounted(self) -> bool:
        """Whether every swarm either found a site or was lost."""
        return self.swarms == self.swarms_found_site + self.swarms_could_not_find_site


@dataclass
class YearStatistics:
    """Both populations' figures for a single year."""

    year: int
    domestic: PopulationStatistics = field(default_factory=PopulationStatistics)
    feral: PopulationStatistics = field(default_factory=PopulationStatistics)

    def population(self, domestic: bool) -> PopulationStatistics:
        return self.domestic if domestic else self.feral


MetricAccessor = Callable[[YearStatistics], float]

_COUNTERS = (
    "colonies_created",
    "died_of_old_age",
    "killed_by_winter",
    "mating_flight_failures",
    "swarms",
    "swarms_found_site",
    "swarms_could_not_find_site",
    "requeened",
    "eow_live_colonies",
    "eow_dead_colonies",
    "live_colonies",
    "dead_colonies",
)
_AVERAGES = ("avg_queen_strength", "avg_hive_strength", "avg_drones")
_EXTREMES = ("queen_strength", "hive_strength", "drones")


def _population_metric(domestic: bool, name: str) -> MetricAccessor:
    def accessor(year: YearStatistics) -> float:
        return float(getattr(year.population(domestic), name))

    return accessor


def _extreme_metric(domestic: bool, aggregate: str, bound: str) -> MetricAccessor:
    def accessor(year: YearStatistics) -> float:
        value = getattr(getattr(year.population(domestic), aggregate), bound)
        return 0.0 if value is None else float(value)

    return accessor


def _build_metrics() -> dict[str, MetricAccessor]:
    metrics: dict[str, MetricAccessor] = {}
    for prefix, domestic in (("domestic", True), ("feral", False)):
        for name in (*_COUNTERS, *_AVERAGES):
            metrics[f"{prefix}_{name}"] = _population_metric(domestic, name)
        for aggregate in _EXTREMES:
            metrics[f"{prefix}_min_{aggregate}"] = _extreme_metric(domestic, aggregate, "minimum")
            metrics[f"{prefix}_max_{aggregate}"] = _extreme_metric(domestic, aggregate, "maximum")
    return metrics


# Metric name -> accessor over one YearStatistics.  Requeening is only
# ever domestic, but the feral column is kept for a uniform table.
METRICS: dict[str, MetricAccessor] = _build_metrics()


class Statistics:
    """The standard statistics sink.

    Attributes:
        history: Completed years, in order; ``history[i].year == i``.
        current: The year being accumulated.
    """

    def __init__(self) -> None:
        self.history: list[YearStatistics] = []
        self.current = YearStatistics(year=0)
        self._lock = threading.Lock()

    @property
    def year(self) -> int:
        """Index of the year currently being accumulated."""
        return self.current.year

    # -- Events --------------------------------------------------------------

    def colony_created(self, domestic: bool) -> None:
        with self._lock:
            self.current.population(domestic).colonies_created += 1

    def died_of_old_age(self, domestic: bool) -> None:
        with self._lock:
            self.current.population(domestic).died_of_old_age += 1

    def failed_to_survive_winter(self, domestic: bool) -> None:
        with self._lock:
            self.current.population(domestic).killed_by_winter += 1

    def mating_flight_failed(self, domestic: bool) -> None:
        with self._lock:
            self.current.population(domestic).mating_flight_failures += 1

    def swarming(self, domestic: bool) -> None:
        with self._lock:
            self.current.population(domestic).swarms += 1

    def swarm_found_site(self, domestic: bool) -> None:
        with self._lock:
            self.current.population(domestic).swarms_found_site += 1

    def swarm_could_not_find_site(self, domestic: bool) -> None:
        with self._lock:
            self.current.population(domestic).swarms_could_not_find_site += 1

    def colony_requeened(self) -> None:
        with self._lock:
            self.current.domestic.requeened += 1

    # -- Snapshots -----------------------------------------------------------

    def colonies_at_end_of_winter(
        self,
        location: Location,
        colonies: Iterable[Colony],
    ) -> None:
        with self._lock:
            population = self.current.population(location.domestic)
            for colony in colonies:
                if colony.dead:
                    population.eow_dead_colonies += 1
                else:
                    population.eow_live_colonies += 1

    def colonies_at_end_of_summer(
        self,
        location: Location,
        colonies: Iterable[Colony],
    ) -> None:
        with self._lock:
            population = self.current.population(location.domestic)
            for colony in colonies:
                population.add_end_of_summer(colony)

    def end_of_winter(self) -> None:
        with self._lock:
            year = self.current
        logger.debug(
            "End of winter %d: domestic %d live / %d dead, feral %d live / %d dead",
            year.year,
            year.domestic.eow_live_colonies,
            year.domestic.eow_dead_colonies,
            year.feral.eow_live_colonies,
            year.feral.eow_dead_colonies,
        )

    def end_of_summer(self) -> None:
        """Close the current year and start the next.

        Raises:
            SwarmAccountingError: If, in either population, the number of
                swarms differs from those that found a site plus those
                that did not.
        """
        with self._lock:
            year = self.current
            for label, population in (("domestic", year.domestic), ("feral", year.feral)):
                if not population.swarms_accounted:
                    msg = (
                        f"In year {year.year}, {label} swarms ({population.swarms}) != "
                        f"swarms that found a site ({population.swarms_found_site}) + "
                        "swarms that could not find a site "
                        f"({population.swarms_could_not_find_site})"
                    )
                    logger.critical(msg)
                    raise SwarmAccountingError(msg)
            self.history.append(year)
            self.current = YearStatistics(year=year.year + 1)

        logger.info(
            "Year %d: domestic %d live / %d dead, feral %d live / %d dead",
            year.year,
            year.domestic.live_colonies,
            year.domestic.dead_colonies,
            year.feral.live_colonies,
            year.feral.dead_colonies,
        )

    # -- Series --------------------------------------------------------------

    def series(self, name: str) -> list[float]:
        """Return one metric for every completed year.

        Raises:
            KeyError: If ``name`` is not in ``METRICS``.
        """
        accessor = METRICS[name]
        with self._lock:
            return [accessor(year) for year in self.history]

    def table(self) -> list[dict[str, float]]:
        """Return one row per completed year with every metric."""
        with self._lock:
            return [
                {"year": year.year} | {name: accessor(year) for name, accessor in METRICS.items()}
                for year in self.history
            ]

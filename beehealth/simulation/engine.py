"""SimulationEngine — the yearly cycle.

Owns the lattice and the shared models and advances them one year at a
time in the canonical phase order:

1. Over-winter every location (deaths from age and cold)
2. Replace dead and requeened domestic colonies (parallel)
3. Refill dead feral cavities with swarms, then let colonies swarm
4. Record end-of-summer statistics

Phase 2 is the only parallel phase.  Worker threads plan each domestic
location's purchases against snapshots; once every worker has finished,
the plans are committed.  Every draw in a plan comes from the buying
location's own stream, so the outcome does not depend on how many
threads run or how they interleave.
"""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field

from numpy.random import Generator

from beehealth.colony.colony import Colony
from beehealth.genetics.inheritance import InheritanceModel
from beehealth.genetics.survival import SurvivalProbabilityModel, build_survival_model
from beehealth.simulation.config import SimulationConfig
from beehealth.simulation.rng import master_generator
from beehealth.stats.statistics import Statistics, StatisticsSink
from beehealth.world.lattice import Lattice
from beehealth.world.location import Location, LocationRecord

logger = logging.getLogger(__name__)


@dataclass
class SimulationEngine:
    """Drives the simulation forward year by year.

    Attributes:
        config: Loaded simulation configuration.
        stats: Statistics sink; a fresh :class:`Statistics` by default.
        rng: Master seeded random generator.
        inheritance: Shared inheritance model.
        survival_model: Shared winter-survival model.
        lattice: The populated torus.
        year: Number of completed years.
    """

    config: SimulationConfig
    stats: StatisticsSink | None = None
    rng: Generator = field(init=False, repr=False)
    inheritance: InheritanceModel = field(init=False)
    survival_model: SurvivalProbabilityModel = field(init=False)
    lattice: Lattice = field(init=False, repr=False)
    year: int = field(default=0, init=False)

    def __post_init__(self) -> None:
        """Build the models and the lattice, and record year 0."""
        if self.stats is None:
            self.stats = Statistics()
        self.rng = master_generator(self.config.seed)
        self.inheritance = InheritanceModel.from_config(self.config)
        self.survival_model = build_survival_model(self.config)
        self.lattice = Lattice(
            config=self.config,
            rng=self.rng,
            inheritance=self.inheritance,
            survival_model=self.survival_model,
            stats=self.stats,
        )
        self.lattice.initialize()
        logger.info(
            "Simulation ready: seed=%d, survival model %r, inheritance %s",
            self.config.seed,
            self.survival_model,
            self.inheritance.mode.value,
        )
        self._record_end_of_summer()

    def step(self) -> None:
        """Advance the simulation by one year."""
        locations = list(self.lattice)

        # 1. Winter
        for location in locations:
            location.over_winter()
        for location in locations:
            self.stats.colonies_at_end_of_winter(location, location.colonies)
        self.stats.end_of_winter()

        # 2. Spring purchases
        self._replace_domestic_colonies(locations)

        # 3. Summer swarming
        for location in locations:
            if not location.domestic:
                location.replace_dead_hives()
        for location in locations:
            location.swarm()

        # 4. Statistics
        self._record_end_of_summer()
        self.year += 1

    def run(self, years: int | None = None) -> None:
        """Run the simulation for a fixed number of years.

        Args:
            years: Number of years to advance; ``sim_length`` by default.
        """
        years = self.config.sim_length if years is None else years
        for _ in range(years):
            self.step()
        logger.info("Completed %d years", self.year)

    def records(self) -> list[LocationRecord]:
        """Return the current state of every location."""
        return self.lattice.records()

    def _record_end_of_summer(self) -> None:
        for location in self.lattice:
            self.stats.colonies_at_end_of_summer(location, location.colonies)
        self.stats.end_of_summer()

    def _replace_domestic_colonies(self, locations: list[Location]) -> None:
        """Plan purchases on worker threads, then commit them together."""
        workers = max(1, min(self.config.threads, len(locations)))
        partitions = [locations[i::workers] for i in range(workers)]

        with ThreadPoolExecutor(
            max_workers=workers,
            thread_name_prefix="replace",
        ) as pool:
            futures = [pool.submit(_plan_partition, part) for part in partitions]
            plans: list[tuple[Location, list[Colony]]] = []
            for index, future in enumerate(futures):
                try:
                    plans.extend(future.result())
                except Exception:
                    logger.exception(
                        "Replacement worker %d failed in year %d",
                        index,
                        self.year + 1,
                    )
                    raise

        for location, colonies in plans:
            location.commit(colonies)
        logger.debug("Year %d: %d locations changed in spring", self.year + 1, len(plans))


def _plan_partition(locations: list[Location]) -> list[tuple[Location, list[Colony]]]:
    """Plan the purchases of every domestic location in one partition."""
    plans: list[tuple[Location, list[Colony]]] = []
    for location in locations:
        if not location.domestic:
            continue
        planned = location.plan_replacements()
        if planned is not None:
            plans.append((location, planned))
    return plans

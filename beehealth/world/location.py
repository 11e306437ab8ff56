"""Location — a single cell of the lattice and the colonies kept there.

A location is either domestic (a beekeeper's yard holding any number of
colonies, possibly a queen breeder) or feral (one wild cavity holding a
single colony, alive or dead).  Each location owns its own random stream
and its colony list; the list is only ever replaced wholesale under the
location's lock, so other threads can always take a consistent snapshot.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Iterator
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, NamedTuple

from beehealth.colony.colony import Colony
from beehealth.simulation.errors import InvalidColonyStateError
from beehealth.simulation.rng import spawn_generator
from beehealth.world.direction import Direction

if TYPE_CHECKING:
    from numpy.random import Generator

    from beehealth.simulation.config import SimulationConfig
    from beehealth.world.lattice import Lattice

logger = logging.getLogger(__name__)

# three-way-norm mixture multipliers, chosen with weights m0, m1, m2
_HIVE_COUNT_MULTIPLIERS = (2, 10, 25)


class LocationRecord(NamedTuple):
    """Exported per-location state, in the fixed reporting field order."""

    x: int
    y: int
    domestic: bool
    queen_breeder: bool
    total_colonies: int
    live_colonies: int
    dead_colonies: int
    avg_live_strength: float
    max_live_strength: float
    min_live_strength: float


@dataclass(eq=False)
class Location:
    """A single cell of the lattice.

    Attributes:
        x: Position along the first axis.
        y: Position along the second axis.
        lattice: The lattice this location belongs to.
        rng: This location's own random stream.
        domestic: Whether a beekeeper keeps colonies here.
        queen_breeder: Whether this domestic location sells mated queens.
        initialized: Set once the location has been populated.
    """

    x: int
    y: int
    lattice: Lattice = field(repr=False)
    rng: Generator = field(repr=False)
    domestic: bool = False
    queen_breeder: bool = False
    initialized: bool = False
    _colonies: list[Colony] = field(default_factory=list, init=False, repr=False)
    _lock: threading.Lock = field(
        default_factory=threading.Lock,
        init=False,
        repr=False,
    )

    @property
    def colonies(self) -> list[Colony]:
        """A snapshot copy of the colonies held here."""
        with self._lock:
            return list(self._colonies)

    def __iter__(self) -> Iterator[Colony]:
        return iter(self.colonies)

    def commit(self, colonies: list[Colony]) -> None:
        """Replace the whole colony list in one step."""
        with self._lock:
            self._colonies = list(colonies)

    @property
    def swarm_probability(self) -> float:
        """Per-year probability that a colony here swarms."""
        config = self.lattice.config
        return config.domestic_prob_swarm if self.domestic else config.feral_prob_swarm

    # -- Initialisation ------------------------------------------------------

    def initialize(self, config: SimulationConfig) -> None:
        """Decide domestic vs. feral and populate the location.

        Args:
            config: Simulation configuration.
        """
        if self.initialized:
            logger.warning("Attempted to initialize %r more than once", self)
            return

        self.domestic = bool(self.rng.random() < config.prob_domestic)
        count = self._draw_colony_count(config) if self.domestic else 1
        self.finish_initialize(config, count)

    def finish_initialize(self, config: SimulationConfig, count: int) -> None:
        """Create ``count`` founding colonies.

        All founding colonies at a location start with equally robust
        genes, which is not the same as identical genes: the queen and
        every drone are drawn independently around the same mean.
        """
        if self.initialized:
            logger.warning("Attempted to initialize %r more than once", self)
            return
        if count == 0:
            logger.warning("%r is being initialized with zero colonies", self)

        mean = config.initial_domestic_gene if self.domestic else config.g0_feral
        inheritance = self.lattice.inheritance
        colonies: list[Colony] = []
        for _ in range(count):
            queen = inheritance.initial_gene(mean, self.rng)
            drone_count = int(self.rng.integers(config.min_drones, config.max_drones + 1))
            drones = [inheritance.initial_gene(mean, self.rng) for _ in range(drone_count)]
            colonies.append(
                Colony(
                    queen_gene=queen,
                    drone_genes=drones,
                    location=self,
                    rng=spawn_generator(self.rng),
                ),
            )
            self.lattice.stats.colony_created(self.domestic)
        self.commit(colonies)
        self.initialized = True

    def _draw_colony_count(self, config: SimulationConfig) -> int:
        if config.number_of_hives_distribution == "three-way-norm":
            return self._three_way_norm(
                config.number_of_hives_m0,
                config.number_of_hives_m1,
            )
        return int(
            self.rng.integers(
                config.number_of_hives_min,
                config.number_of_hives_max + 1,
            ),
        )

    def _three_way_norm(self, m0: float, m1: float) -> int:
        """Scale mixture of half-normals: hobbyist, sideline, commercial.

        The commercial weight is ``1 - m0 - m1``; the config checks that
        the three weights sum to one.
        """
        r = self.rng.random()
        if r < m0:
            multiplier = _HIVE_COUNT_MULTIPLIERS[0]
        elif r < m0 + m1:
            multiplier = _HIVE_COUNT_MULTIPLIERS[1]
        else:
            multiplier = _HIVE_COUNT_MULTIPLIERS[2]
        z = abs(float(self.rng.standard_normal()))
        return round(multiplier * z) + 1

    # -- Yearly phases -------------------------------------------------------

    def over_winter(self) -> None:
        """Over-winter each colony here.

        Touches only this location's colonies, so locations need no
        coordination with each other.
        """
        for colony in self.colonies:
            colony.over_winter()

    def plan_replacements(self) -> list[Colony] | None:
        """Work out this yard's colony list after spring purchases.

        Dead colonies are replaced by a purchased mated queen; live
        colonies the beekeeper elects to requeen are replaced too.  The
        plan is computed against a snapshot and is not applied.

        Returns:
            The new colony list, or ``None`` if nothing changes.

        Raises:
            InvalidColonyStateError: If this location is feral.
        """
        if not self.domestic:
            msg = f"{self!r} is feral; only domestic colonies are bought"
            raise InvalidColonyStateError(msg)

        config = self.lattice.config
        stats = self.lattice.stats
        planned: list[Colony] = []
        changed = False
        for colony in self.colonies:
            if colony.dead:
                planned.append(self.lattice.purchase_mated_queen(self, self.rng))
                changed = True
            elif colony.requeen(config.min_requeen_age, config.requeen_probability):
                planned.append(self.lattice.purchase_mated_queen(self, self.rng))
                stats.colony_requeened()
                changed = True
            else:
                planned.append(colony)
        return planned if changed else None

    def replace_dead_hives_or_requeen_live_hives(self) -> None:
        """Plan the spring purchases and apply them at once."""
        planned = self.plan_replacements()
        if planned is not None:
            self.commit(planned)

    def replace_dead_hives(self) -> None:
        """Refill dead colonies.

        Beekeepers buy queens.  A dead feral cavity is taken over by a
        swarm from a nearby colony that is ready to swarm this year; if
        there is none, the cavity stays empty until next year.
        """
        if self.domestic:
            self.replace_dead_hives_or_requeen_live_hives()
            return

        stats = self.lattice.stats
        for colony in self.colonies:
            if not colony.dead:
                continue
            donor = self._find_swarming_neighbor(colony)
            if donor is None:
                continue
            donor_domestic = donor.domestic
            stats.swarming(donor_domestic)
            colony.receive_swarm(donor.swarm(self))
            stats.swarm_found_site(donor_domestic)

    def _find_swarming_neighbor(self, vacancy: Colony) -> Colony | None:
        radius = self.lattice.config.swarm_distance
        for colony in self.lattice.neighborhood_colonies(self, radius):
            if colony is vacancy or not colony.can_swarm:
                continue
            if colony.wants_to_swarm(colony.location.swarm_probability):
                return colony
        return None

    def swarm(self) -> None:
        """Let every colony here that is ready to swarm do so.

        Each swarm looks for a dead feral cavity within
        ``swarm_distance``; a swarm that finds none is lost.
        """
        stats = self.lattice.stats
        for colony in self.colonies:
            if not colony.can_swarm or not colony.wants_to_swarm(self.swarm_probability):
                continue
            stats.swarming(self.domestic)
            found = self.find_nearby_feral_dead_hive()
            if found is None:
                colony.swarm(None)
                stats.swarm_could_not_find_site(self.domestic)
            else:
                destination, vacancy = found
                vacancy.receive_swarm(colony.swarm(destination))
                stats.swarm_found_site(self.domestic)

    # -- Spatial operations --------------------------------------------------

    def mating_flight(
        self,
        colony: Colony,
        rng: Generator | None = None,
    ) -> list[float] | None:
        """Fly a virgin queen from this location and collect her mates.

        The queen tries the four compass directions in a random order.
        In each she flies ``mating_flight_distance`` cells and meets the
        drones of every living colony within
        ``drone_participation_distance`` of where she lands, except
        those of her own colony.  The first direction with any drones
        wins.

        Args:
            colony: The colony the queen flies from.
            rng: Stream to draw from; defaults to the colony's own.

        Returns:
            ``None`` if no drones were found, else the drone genes.
        """
        rng = colony.rng if rng is None else rng
        config = self.lattice.config

        pool: list[Colony] = []
        for direction in Direction.random_order(rng):
            landing = self.lattice.site_in_direction(
                self,
                direction,
                config.mating_flight_distance,
            )
            pool = [
                c
                for c in self.lattice.neighborhood_colonies(
                    landing,
                    config.drone_participation_distance,
                )
                if c is not colony and c.is_alive
            ]
            if pool:
                break
        if not pool:
            return None

        drone_count = int(rng.integers(config.min_drones, config.max_drones + 1))
        # Sampled with replacement: each source colony stands for many
        # drones, and a drone carries its mother's gene.
        return [pool[int(rng.integers(len(pool)))].queen_gene for _ in range(drone_count)]

    def find_nearby_feral_dead_hive(self) -> tuple[Location, Colony] | None:
        """Pick a dead feral colony within ``swarm_distance`` uniformly.

        Returns:
            ``(location, colony)`` or ``None`` if there is none.
        """
        radius = self.lattice.config.swarm_distance
        candidates: list[tuple[Location, Colony]] = []
        for neighbor in self.lattice.neighbors_of(self, radius):
            if neighbor.domestic:
                continue
            candidates.extend((neighbor, c) for c in neighbor.colonies if c.dead)
        if not candidates:
            return None
        return candidates[int(self.rng.integers(len(candidates)))]

    # -- Reporting -----------------------------------------------------------

    def record(self) -> LocationRecord:
        """Summarise this location for the reporting layer."""
        colonies = self.colonies
        live = [c.strength for c in colonies if c.is_alive]
        return LocationRecord(
            x=self.x,
            y=self.y,
            domestic=self.domestic,
            queen_breeder=self.queen_breeder,
            total_colonies=len(colonies),
            live_colonies=len(live),
            dead_colonies=len(colonies) - len(live),
            avg_live_strength=sum(live) / len(live) if live else 0.0,
            max_live_strength=max(live, default=0.0),
            min_live_strength=min(live, default=0.0),
        )

"""Lattice — the toroidal grid of locations.

The lattice owns an N x N matrix of Locations whose edges wrap in both
axes, so every coordinate is taken modulo N.  It answers the spatial
queries used by mating flights and swarms, keeps the registry of
queen-breeding locations, and brokers queen purchases.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Iterator
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from beehealth.colony.colony import Colony
from beehealth.simulation.config import ALL_QUEEN_BREEDERS
from beehealth.simulation.errors import QueenBreedersExtinctError
from beehealth.simulation.rng import spawn_generator
from beehealth.world.direction import Direction
from beehealth.world.location import Location, LocationRecord

if TYPE_CHECKING:
    from numpy.random import Generator

    from beehealth.genetics.inheritance import InheritanceModel
    from beehealth.genetics.survival import SurvivalProbabilityModel
    from beehealth.simulation.config import SimulationConfig
    from beehealth.stats.statistics import StatisticsSink

logger = logging.getLogger(__name__)


@dataclass(eq=False)
class Lattice:
    """A torus of Locations plus the models every colony consults.

    Attributes:
        config: Simulation configuration.
        rng: The lattice's random stream (seeds every Location).
        inheritance: Shared inheritance model.
        survival_model: Shared winter-survival model.
        stats: Receives lifecycle events.
        cells: ``cells[x][y]`` for ``0 <= x, y < edge_length``.
        queen_breeders: The queen-breeding locations, in registration
            order.
        breeder_lock: Guards the breeder registry and the
            last-surviving-breeder-colony check.
    """

    config: SimulationConfig
    rng: Generator = field(repr=False)
    inheritance: InheritanceModel
    survival_model: SurvivalProbabilityModel
    stats: StatisticsSink = field(repr=False)
    cells: list[list[Location]] = field(init=False, repr=False)
    queen_breeders: list[Location] = field(default_factory=list, init=False, repr=False)
    breeder_lock: threading.Lock = field(
        default_factory=threading.Lock,
        init=False,
        repr=False,
    )

    def __post_init__(self) -> None:
        """Build every Location, each with a stream drawn from ours."""
        n = self.config.edge_length
        self.cells = [
            [
                Location(x=x, y=y, lattice=self, rng=spawn_generator(self.rng))
                for y in range(n)
            ]
            for x in range(n)
        ]

    @property
    def edge_length(self) -> int:
        return self.config.edge_length

    def __iter__(self) -> Iterator[Location]:
        """Iterate x-major; this is the flat order used everywhere."""
        for column in self.cells:
            yield from column

    def __len__(self) -> int:
        return self.edge_length * self.edge_length

    def wrap(self, i: int) -> int:
        """Map any integer coordinate onto ``[0, edge_length)``."""
        return i % self.edge_length

    def location_at(self, x: int, y: int) -> Location:
        """Return the location at ``(x, y)``, wrapping both coordinates."""
        return self.cells[self.wrap(x)][self.wrap(y)]

    # -- Spatial queries -----------------------------------------------------

    def neighbors_of(self, location: Location, radius: int) -> list[Location]:
        """Return the locations within Manhattan distance ``radius``.

        The neighbourhood is a diamond around ``location`` on the torus,
        excluding ``location`` itself.  Locations come back in the order
        the offsets are visited (x-offset outer, y-offset inner), each
        once even when several offsets wrap onto the same cell.

        Args:
            location: The centre of the diamond.
            radius: Manhattan radius; 0 yields no neighbours.
        """
        found: dict[Location, None] = {}
        for dx in range(-radius, radius + 1):
            reach = radius - abs(dx)
            for dy in range(-reach, reach + 1):
                if dx == 0 and dy == 0:
                    continue
                neighbor = self.location_at(location.x + dx, location.y + dy)
                if neighbor is not location:
                    found[neighbor] = None
        return list(found)

    def neighborhood_colonies(self, location: Location, radius: int) -> list[Colony]:
        """Snapshot of the colonies at ``location`` and its neighbours."""
        colonies = location.colonies
        for neighbor in self.neighbors_of(location, radius):
            colonies.extend(neighbor.colonies)
        return colonies

    def site_in_direction(
        self,
        origin: Location,
        direction: Direction,
        distance: int,
    ) -> Location:
        """Move ``distance`` cells from ``origin`` along one axis.

        N and S move along the first axis, E and W along the second.
        """
        x, y = origin.x, origin.y
        if direction is Direction.N:
            x += distance
        elif direction is Direction.S:
            x -= distance
        elif direction is Direction.E:
            y += distance
        else:
            y -= distance
        return self.location_at(x, y)

    # -- Initialisation ------------------------------------------------------

    def initialize(self, rng: Generator | None = None) -> None:
        """Assign queen breeders, then populate every location.

        With an integer ``number_queen_breeders``, that many distinct
        locations are drawn uniformly and made domestic breeders holding
        ``queen_breeder_hive_count`` colonies before any other location
        is initialised.  With ``"all"``, every location is initialised
        normally and every domestic one becomes a breeder.

        Args:
            rng: Stream used to pick the breeders; defaults to ours.
        """
        rng = self.rng if rng is None else rng
        config = self.config
        locations = list(self)

        if config.number_queen_breeders == ALL_QUEEN_BREEDERS:
            for location in locations:
                location.initialize(config)
            for location in locations:
                if location.domestic:
                    location.queen_breeder = True
                    self.queen_breeders.append(location)
        else:
            count = int(config.number_queen_breeders)
            if count > 0 and config.prob_domestic == 0:
                logger.warning(
                    "%d queen breeders requested but 'prob_domestic' is zero",
                    count,
                )
            chosen = rng.choice(len(locations), size=count, replace=False)
            for index in chosen:
                breeder = locations[int(index)]
                breeder.domestic = True
                breeder.queen_breeder = True
                breeder.finish_initialize(config, config.queen_breeder_hive_count)
                self.queen_breeders.append(breeder)
            for location in locations:
                if not location.initialized:
                    location.initialize(config)

        logger.info(
            "Initialized %dx%d lattice: %d domestic, %d queen breeders, %d colonies",
            self.edge_length,
            self.edge_length,
            sum(1 for loc in locations if loc.domestic),
            len(self.queen_breeders),
            sum(len(loc.colonies) for loc in locations),
        )

    # -- Queen breeders ------------------------------------------------------

    def is_sole_surviving_breeder_colony(self, colony: Colony) -> bool:
        """Return True if ``colony`` is the only living breeder colony.

        The caller must hold ``breeder_lock`` so the answer stays true
        while it acts on it.
        """
        if colony.dead or colony.location is None or not colony.location.queen_breeder:
            return False
        for breeder in self.queen_breeders:
            for other in breeder.colonies:
                if other is not colony and other.is_alive:
                    return False
        return True

    def purchase_mated_queen(self, target: Location, rng: Generator) -> Colony:
        """Buy a mated queen for ``target`` from a queen breeder.

        A living breeder colony is chosen by scanning round-robin from a
        random breeder and, within each breeder, from a random colony,
        so no list position is favoured.  The chosen colony raises a
        daughter, the daughter flies from the breeder's yard to mate,
        and the result is a new colony owned by ``target``.  If she
        finds no drones on her flight, the failure is counted against the
        buyer's population and the breeder mates her with the
        drones of its own yard.

        Args:
            target: The buying location.
            rng: The buyer's stream; every draw of the purchase uses it.

        Raises:
            QueenBreedersExtinctError: If no breeder colony is alive.
        """
        source = self._select_breeder_colony(rng)
        breeder = source.location

        queen = source.breed_queen(rng)
        drones = breeder.mating_flight(source, rng)
        if drones is None:
            self.stats.mating_flight_failed(target.domestic)
            yard = [c for c in breeder.colonies if c.is_alive]
            drone_count = int(
                rng.integers(self.config.min_drones, self.config.max_drones + 1),
            )
            drones = [yard[int(rng.integers(len(yard)))].queen_gene for _ in range(drone_count)]

        colony = Colony(
            queen_gene=queen,
            drone_genes=drones,
            location=target,
            rng=spawn_generator(rng),
        )
        self.stats.colony_created(target.domestic)
        return colony

    def _select_breeder_colony(self, rng: Generator) -> Colony:
        with self.breeder_lock:
            breeders = list(self.queen_breeders)
            if breeders:
                start = int(rng.integers(len(breeders)))
                for i in range(len(breeders)):
                    colonies = breeders[(start + i) % len(breeders)].colonies
                    if not colonies:
                        continue
                    offset = int(rng.integers(len(colonies)))
                    for j in range(len(colonies)):
                        colony = colonies[(offset + j) % len(colonies)]
                        if colony.is_alive:
                            return colony

        msg = (
            "Simulation failure: no queen breeder has a living colony "
            f"({len(self.queen_breeders)} breeder locations registered)"
        )
        logger.critical(msg)
        raise QueenBreedersExtinctError(msg)

    # -- Reporting -----------------------------------------------------------

    def records(self) -> list[LocationRecord]:
        """One record per location, in iteration order."""
        return [location.record() for location in self]

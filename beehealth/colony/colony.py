"""Colony — one breeding unit: a queen, her mates, and her workers.

A Colony carries the queen's gene, the genes of the drones she mated
with, its age in winters, and whether it is alive and able to breed.
It is owned by exactly one Location at a time.

State machine::

    Alive(can_breed=False) --over_winter----> Alive(can_breed=True)
    Alive                  --over_winter----> Dead (old age / cold)
    Alive(can_breed=True)  --swarm----------> Alive(can_breed=False)
    Alive(can_breed=True)  --swarm----------> Dead (mating flight failed)
    Dead (feral)           --receive_swarm--> Alive(can_breed=False)

The last living colony across all queen-breeder locations is never
allowed to die; otherwise no queen could ever be bought again.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from beehealth.genetics.inheritance import InheritanceModel
from beehealth.simulation.errors import DeadColonyError, InvalidColonyStateError
from beehealth.simulation.rng import spawn_generator

if TYPE_CHECKING:
    from numpy.random import Generator

    from beehealth.world.lattice import Lattice
    from beehealth.world.location import Location

logger = logging.getLogger(__name__)


@dataclass(eq=False)
class Colony:
    """Top-level state for a single honeybee colony.

    Attributes:
        queen_gene: The queen's survival propensity.
        drone_genes: Genes of the drones the queen mated with (non-empty).
        location: The owning Location, or ``None`` for a swarm that has
            not found (or will never find) a home.
        rng: This colony's own random stream.
        age: Winters survived.
        dead: Whether the colony has died.
        can_breed: Whether the colony may swarm this summer.  Set by
            surviving a winter, cleared by swarming.
    """

    queen_gene: float
    drone_genes: list[float] = field(repr=False)
    location: Location | None = field(repr=False)
    rng: Generator = field(repr=False)
    age: int = 0
    dead: bool = False
    can_breed: bool = False
    _swarm_decision: bool | None = field(default=None, init=False, repr=False)

    def __post_init__(self) -> None:
        if not self.drone_genes:
            msg = "a colony needs at least one drone"
            raise ValueError(msg)

    @property
    def is_alive(self) -> bool:
        """Return True if this colony is still alive."""
        return not self.dead

    @property
    def can_swarm(self) -> bool:
        """Return True if the colony is alive and has not bred this cycle."""
        return not self.dead and self.can_breed

    @property
    def strength(self) -> float:
        """Aggregate gene strength used for survival and reporting."""
        return InheritanceModel.hive_strength(self.queen_gene, self.drone_genes)

    @property
    def domestic(self) -> bool:
        """Whether the owning location is domestic."""
        return self._home.domestic

    @property
    def _home(self) -> Location:
        if self.location is None:
            msg = "this swarm has no location"
            raise InvalidColonyStateError(msg)
        return self.location

    @property
    def _lattice(self) -> Lattice:
        return self._home.lattice

    def over_winter(self) -> None:
        """Survive the winter, or die of old age or cold.

        A surviving colony ages one year and may swarm next summer.
        """
        if self.dead:
            return
        self._swarm_decision = None
        lattice = self._lattice
        if self._home.queen_breeder:
            with lattice.breeder_lock:
                if lattice.is_sole_surviving_breeder_colony(self):
                    logger.debug("Sparing %r: last living queen-breeder colony", self)
                    return
                self._survive_winter()
        else:
            self._survive_winter()

    def _survive_winter(self) -> None:
        lattice = self._lattice
        config = lattice.config
        domestic = self.domestic
        if self.age >= config.max_hive_age:
            self.dead = True
            lattice.stats.died_of_old_age(domestic)
            return

        fed = domestic or config.feral_uses_domestic_survival_model
        probability = lattice.survival_model.survival_probability(self.strength, fed)
        if self.rng.random() < probability:
            self.age += 1
            self.can_breed = True
        else:
            self.dead = True
            lattice.stats.failed_to_survive_winter(domestic)

    def breed_queen(self, rng: Generator | None = None) -> float:
        """Raise a daughter queen from this colony's queen and drones.

        Args:
            rng: Stream to draw from; defaults to this colony's own.

        Raises:
            DeadColonyError: If the colony is dead.
        """
        if self.dead:
            msg = f"{self!r} is dead and cannot breed a queen"
            raise DeadColonyError(msg)
        return self._lattice.inheritance.child_queen_from_drones(
            self.queen_gene,
            self.drone_genes,
            self.rng if rng is None else rng,
        )

    def wants_to_swarm(self, probability: float) -> bool:
        """Decide, once per cycle, whether this colony will swarm."""
        if self._swarm_decision is None:
            self._swarm_decision = bool(self.rng.random() < probability)
        return self._swarm_decision

    def swarm(self, destination: Location | None) -> Colony:
        """Split off a swarm carrying the current queen and drones.

        The colony left behind raises a new queen, who flies to mate.
        If she finds no drones the colony dies.  Either way it cannot
        swarm again this cycle.

        Args:
            destination: Where the swarm will live, or ``None`` if it
                found nowhere to go.

        Returns:
            The swarm as a new, young Colony.

        Raises:
            InvalidColonyStateError: If the colony cannot swarm.
        """
        if not self.can_swarm:
            msg = f"{self!r} cannot swarm (dead={self.dead}, can_breed={self.can_breed})"
            raise InvalidColonyStateError(msg)

        swarm = Colony(
            queen_gene=self.queen_gene,
            drone_genes=list(self.drone_genes),
            location=destination,
            rng=spawn_generator(self.rng),
        )
        self.queen_gene = self.breed_queen()
        drones = self._home.mating_flight(self)
        if drones is None:
            self._mating_flight_failed()
        else:
            self.drone_genes = drones
        self.can_breed = False
        return swarm

    def _mating_flight_failed(self) -> None:
        lattice = self._lattice
        lattice.stats.mating_flight_failed(self.domestic)
        if self._home.queen_breeder:
            with lattice.breeder_lock:
                if lattice.is_sole_surviving_breeder_colony(self):
                    logger.warning(
                        "Last living queen-breeder colony %r found no drones; "
                        "keeping its previous mates",
                        self,
                    )
                    return
                self.dead = True
        else:
            self.dead = True

    def requeen(self, min_requeen_age: int, requeen_probability: float) -> bool:
        """Decide whether the beekeeper replaces this colony's queen.

        Only colonies at least ``min_requeen_age`` winters old are
        eligible; an eligible colony is requeened with
        ``requeen_probability``.

        Raises:
            InvalidColonyStateError: If the colony is feral.
        """
        if not self.domestic:
            msg = f"{self!r} is feral; only domestic colonies are requeened"
            raise InvalidColonyStateError(msg)
        if self.dead or self.age < min_requeen_age:
            return False
        return bool(self.rng.random() < requeen_probability)

    def receive_swarm(self, incoming: Colony) -> None:
        """Move a swarm into this dead feral colony's cavity.

        Raises:
            InvalidColonyStateError: If this colony is alive or domestic.
        """
        if not self.dead:
            msg = f"{self!r} is alive and cannot take in a swarm"
            raise InvalidColonyStateError(msg)
        if self.domestic:
            msg = f"{self!r} is domestic; swarms only settle in feral cavities"
            raise InvalidColonyStateError(msg)
        self.queen_gene = incoming.queen_gene
        self.drone_genes = list(incoming.drone_genes)
        self.age = incoming.age
        self.dead = False
        self.can_breed = False
        self._swarm_decision = None
        self._lattice.stats.colony_created(False)

"""Inheritance — how a child queen's gene is derived from her parents.

Genes are not modelled as chromosomes.  A gene is a single survival
propensity in ``[0, max_strength]``, and a daughter's gene is drawn from a
normal distribution centred on either one parent's gene or the average
of both, then clamped to the valid range.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from numpy.random import Generator

    from beehealth.simulation.config import SimulationConfig


class InheritanceMode(Enum):
    """Where the child's distribution is centred."""

    ONE_PARENT = "ONE_PARENT"
    AVERAGE = "AVERAGE"


@dataclass(frozen=True)
class InheritanceModel:
    """Combines parental genes into a child gene with Gaussian drift.

    Stateless apart from its parameters, so a single instance is shared
    by every colony and may be used from several threads at once.

    Attributes:
        mode: ``ONE_PARENT`` centres the child on a randomly chosen
            parent; ``AVERAGE`` centres it on the parents' mean.
        stddev: Standard deviation of the drift around the centre.
        max_strength: Upper bound of every gene value.
    """

    mode: InheritanceMode = InheritanceMode.AVERAGE
    stddev: float = 0.02
    max_strength: float = 1.0

    @classmethod
    def from_config(cls, config: SimulationConfig) -> InheritanceModel:
        """Build the model from ``inheritance_mode``, ``stddev_g`` and ``max_g``."""
        return cls(
            mode=InheritanceMode(config.inheritance_mode),
            stddev=config.stddev_g,
            max_strength=config.max_g,
        )

    def clamp(self, gene: float) -> float:
        """Clamp a gene value to ``[0, max_strength]``."""
        return min(self.max_strength, max(0.0, gene))

    def child_gene(self, parent_a: float, parent_b: float, rng: Generator) -> float:
        """Return a child's gene drawn around the parents' genes.

        Args:
            parent_a: The queen's gene.
            parent_b: The drone's gene.
            rng: Stream of the entity doing the breeding.

        Returns:
            A gene in ``[0, max_strength]``.
        """
        if self.mode is InheritanceMode.ONE_PARENT:
            mean = parent_a if rng.random() < 0.5 else parent_b
        else:
            mean = (parent_a + parent_b) / 2
        return self.clamp(mean + self.stddev * float(rng.standard_normal()))

    def child_queen_from_drones(
        self,
        queen: float,
        drones: Sequence[float],
        rng: Generator,
    ) -> float:
        """Pick one of the queen's mates uniformly and breed a daughter.

        Raises:
            ValueError: If ``drones`` is empty.
        """
        if not drones:
            msg = "cannot breed a queen without drones"
            raise ValueError(msg)
        drone = drones[int(rng.integers(len(drones)))]
        return self.child_gene(queen, drone, rng)

    def initial_gene(self, mean: float, rng: Generator) -> float:
        """Draw a founding gene around ``mean``, clamped to the valid range."""
        return self.clamp(mean + self.stddev * float(rng.standard_normal()))

    @staticmethod
    def hive_strength(queen: float, drones: Sequence[float]) -> float:
        """Aggregate gene strength of a colony.

        Each drone is equally likely to father a worker, so the strength
        is the mean over drones of the queen/drone midpoint.
        """
        total = sum(queen + drone for drone in drones)
        return total / (2 * len(drones))

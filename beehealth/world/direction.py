"""Direction — the four compass directions a virgin queen may fly."""

from __future__ import annotations

from enum import Enum
from itertools import permutations
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from numpy.random import Generator


class Direction(Enum):
    """Compass direction on the lattice.

    N and S move along the first axis, E and W along the second.
    """

    N = "N"
    E = "E"
    S = "S"
    W = "W"

    @classmethod
    def random_order(cls, rng: Generator) -> tuple[Direction, ...]:
        """Return one of the 24 orderings of all four directions, uniformly."""
        return DIRECTION_ORDERS[int(rng.integers(len(DIRECTION_ORDERS)))]


DIRECTION_ORDERS: tuple[tuple[Direction, ...], ...] = tuple(permutations(Direction))

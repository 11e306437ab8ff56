"""Independent random streams for lattice entities.

Every Location and every Colony owns its own generator, seeded once from
its parent's stream when it is built.  No two entities ever draw from the
same stream, so results depend on the master seed only.
"""

from __future__ import annotations

import numpy as np
from numpy.random import Generator

_SEED_BOUND = 2**63
SEED_MIN = -(2**63)
SEED_MAX = 2**63 - 1


def spawn_generator(parent: Generator) -> Generator:
    """Return a new generator seeded with one draw from ``parent``."""
    return np.random.default_rng(int(parent.integers(0, _SEED_BOUND)))


def master_generator(seed: int) -> Generator:
    """Return the run's master generator.

    ``seed`` may be any signed 64-bit integer; negative seeds are taken as
    their two's-complement bit pattern, since numpy only accepts
    non-negative seeds.
    """
    return np.random.default_rng(seed % 2**64)

"""Shared fixtures for the bee-health test suite."""

from __future__ import annotations

from collections.abc import Callable, Sequence
from pathlib import Path
from typing import Any

import numpy as np
import pytest
from numpy.random import Generator

from beehealth.colony.colony import Colony
from beehealth.genetics.inheritance import InheritanceModel
from beehealth.genetics.survival import build_survival_model
from beehealth.simulation.config import SimulationConfig
from beehealth.simulation.rng import spawn_generator
from beehealth.stats.statistics import Statistics
from beehealth.world.lattice import Lattice
from beehealth.world.location import Location

DEFAULT_CONFIG_PATH = Path(__file__).resolve().parent.parent / "config" / "default.yaml"

# Small, deterministic settings: no drift, short flights.
SMALL_CONFIG: dict[str, Any] = {
    "seed": 7,
    "edge_length": 3,
    "sim_length": 3,
    "number_queen_breeders": 1,
    "queen_breeder_hive_count": 2,
    "number_of_hives_distribution": "linear",
    "number_of_hives_min": 1,
    "number_of_hives_max": 3,
    "min_drones": 2,
    "max_drones": 4,
    "mating_flight_distance": 1,
    "drone_participation_distance": 1,
    "swarm_distance": 1,
    "stddev_g": 0.0,
    "threads": 2,
}


@pytest.fixture
def rng() -> Generator:
    """A deterministic random generator for reproducible tests."""
    return np.random.default_rng(seed=12345)


@pytest.fixture
def default_config() -> SimulationConfig:
    """Default simulation config (no YAML file needed)."""
    return SimulationConfig()


@pytest.fixture
def small_config() -> SimulationConfig:
    """A 3x3 config without genetic drift."""
    return SimulationConfig(**SMALL_CONFIG)


@pytest.fixture
def make_config() -> Callable[..., SimulationConfig]:
    """Factory for small configs with selected fields overridden."""

    def factory(**overrides: Any) -> SimulationConfig:
        return SimulationConfig(**{**SMALL_CONFIG, **overrides})

    return factory


@pytest.fixture
def make_lattice(
    rng: Generator,
    make_config: Callable[..., SimulationConfig],
) -> Callable[..., Lattice]:
    """Factory for an *uninitialised* lattice: every location is empty.

    Tests place colonies by hand with ``make_colony``.
    """

    def factory(**overrides: Any) -> Lattice:
        config = make_config(**overrides)
        return Lattice(
            config=config,
            rng=spawn_generator(rng),
            inheritance=InheritanceModel.from_config(config),
            survival_model=build_survival_model(config),
            stats=Statistics(),
        )

    return factory


@pytest.fixture
def lattice(make_lattice: Callable[..., Lattice]) -> Lattice:
    """An empty 3x3 lattice with the small config."""
    return make_lattice()


@pytest.fixture
def make_colony(rng: Generator) -> Callable[..., Colony]:
    """Factory that creates a colony and adds it to a location."""

    def factory(
        location: Location,
        queen: float = 0.5,
        drones: Sequence[float] = (0.5, 0.5),
        **kwargs: Any,
    ) -> Colony:
        colony = Colony(
            queen_gene=queen,
            drone_genes=list(drones),
            location=location,
            rng=spawn_generator(rng),
            **kwargs,
        )
        location.commit([*location.colonies, colony])
        return colony

    return factory


def make_breeder(lattice: Lattice, x: int, y: int) -> Location:
    """Turn the location at ``(x, y)`` into a registered queen breeder."""
    location = lattice.location_at(x, y)
    location.domestic = True
    location.queen_breeder = True
    location.initialized = True
    lattice.queen_breeders.append(location)
    return location


@pytest.fixture
def breeder_factory() -> Callable[[Lattice, int, int], Location]:
    return make_breeder


@pytest.fixture
def default_config_path() -> Path:
    """The shipped default YAML config."""
    return DEFAULT_CONFIG_PATH

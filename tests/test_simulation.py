"""Tests for beehealth.simulation.engine — the yearly cycle."""

from __future__ import annotations

from collections.abc import Callable
from typing import Any

import numpy as np
import pytest

from beehealth.genetics.survival import LinearModel
from beehealth.simulation.config import SimulationConfig
from beehealth.simulation.engine import SimulationEngine
from beehealth.stats.statistics import Statistics
from beehealth.world.location import Location, LocationRecord

# 2x2, every location domestic, one breeder holding one colony, one
# colony per yard, no drift, no swarming, no requeening.
TINY_DOMESTIC: dict[str, Any] = {
    "edge_length": 2,
    "sim_length": 1,
    "prob_domestic": 1.0,
    "number_queen_breeders": 1,
    "queen_breeder_hive_count": 1,
    "number_of_hives_distribution": "linear",
    "number_of_hives_min": 1,
    "number_of_hives_max": 1,
    "min_drones": 2,
    "max_drones": 3,
    "stddev_g": 0.0,
    "requeen_probability": 0.0,
    "domestic_prob_swarm": 0.0,
    "feral_prob_swarm": 0.0,
    "threads": 2,
}


def _live(engine: SimulationEngine) -> int:
    return sum(record.live_colonies for record in engine.records())


class TestSimulationEngine:
    """Tests for the year loop."""

    def test_engine_initialises(self, small_config: SimulationConfig) -> None:
        engine = SimulationEngine(config=small_config)
        assert engine.year == 0
        assert engine.lattice.edge_length == small_config.edge_length
        assert isinstance(engine.stats, Statistics)
        assert len(engine.stats.history) == 1
        assert len(engine.lattice.queen_breeders) == 1

    def test_initial_snapshot_counts_every_colony(self, small_config: SimulationConfig) -> None:
        engine = SimulationEngine(config=small_config)
        year0 = engine.stats.history[0]
        total = sum(record.total_colonies for record in engine.records())
        assert year0.domestic.live_colonies + year0.feral.live_colonies == total
        assert year0.domestic.colonies_created + year0.feral.colonies_created == total

    def test_step_advances_year(self, small_config: SimulationConfig) -> None:
        engine = SimulationEngine(config=small_config)
        engine.step()
        assert engine.year == 1
        assert len(engine.stats.history) == 2

    def test_run_defaults_to_sim_length(self, small_config: SimulationConfig) -> None:
        engine = SimulationEngine(config=small_config)
        engine.run()
        assert engine.year == small_config.sim_length

    def test_run_years(self, small_config: SimulationConfig) -> None:
        engine = SimulationEngine(config=small_config)
        engine.run(years=2)
        assert engine.year == 2

    def test_accepts_custom_sink(self, small_config: SimulationConfig) -> None:
        stats = Statistics()
        engine = SimulationEngine(config=small_config, stats=stats)
        engine.step()
        assert engine.stats is stats
        assert stats.year == 2

    def test_swarms_always_accounted(self, make_config: Callable[..., SimulationConfig]) -> None:
        config = make_config(
            edge_length=6,
            sim_length=8,
            prob_domestic=0.3,
            number_queen_breeders=2,
            feral_prob_swarm=0.9,
            domestic_prob_swarm=0.5,
            survival_f=0.8,
            g0_feral=0.9,
            stddev_g=0.05,
        )
        engine = SimulationEngine(config=config)
        engine.run()
        swarms = 0
        for year in engine.stats.history:
            for population in (year.domestic, year.feral):
                assert population.swarms_accounted
                swarms += population.swarms
        assert swarms > 0


class TestDeterminism:
    """Same seed must produce identical results regardless of threads."""

    CONFIG: dict[str, Any] = {
        "seed": 2024,
        "edge_length": 6,
        "sim_length": 5,
        "prob_domestic": 0.4,
        "number_queen_breeders": 2,
        "queen_breeder_hive_count": 4,
        "number_of_hives_max": 4,
        "min_requeen_age": 1,
        "requeen_probability": 0.5,
        "domestic_prob_swarm": 0.3,
        "feral_prob_swarm": 0.6,
        "stddev_g": 0.05,
        "g0_feral": 0.7,
    }

    def _run(self, make_config: Callable[..., SimulationConfig], threads: int) -> SimulationEngine:
        engine = SimulationEngine(config=make_config(threads=threads, **self.CONFIG))
        engine.run()
        return engine

    def test_same_seed_same_result(self, make_config: Callable[..., SimulationConfig]) -> None:
        a = self._run(make_config, threads=2)
        b = self._run(make_config, threads=2)
        assert a.records() == b.records()
        assert a.stats.table() == b.stats.table()

    def test_thread_count_does_not_matter(
        self,
        make_config: Callable[..., SimulationConfig],
    ) -> None:
        single = self._run(make_config, threads=1)
        many = self._run(make_config, threads=7)
        assert single.records() == many.records()
        assert single.stats.table() == many.stats.table()


class TestScenarios:
    """Small hand-checked populations."""

    def test_fully_fed_yards_all_survive(self) -> None:
        config = SimulationConfig(**TINY_DOMESTIC, g0_feral=0.6, survival_f=1.0)
        engine = SimulationEngine(config=config)
        assert _live(engine) == 4
        engine.step()
        assert _live(engine) == 4
        year1 = engine.stats.history[1]
        assert year1.domestic.eow_live_colonies == 4
        assert year1.domestic.colonies_created == 0

    def test_breeder_spared_and_yards_restocked(self) -> None:
        config = SimulationConfig(**TINY_DOMESTIC, g0_feral=0.0, survival_f=0.0)
        engine = SimulationEngine(config=config)
        engine.step()
        year1 = engine.stats.history[1]
        assert year1.domestic.eow_live_colonies == 1
        assert year1.domestic.eow_dead_colonies == 3
        assert year1.domestic.killed_by_winter == 3
        assert year1.domestic.colonies_created == 3
        assert year1.domestic.live_colonies == 4
        breeder = engine.lattice.queen_breeders[0]
        assert all(c.is_alive for c in breeder.colonies)

    def test_weak_feral_population_dies_out(self) -> None:
        config = SimulationConfig(
            **{**TINY_DOMESTIC, "prob_domestic": 0.0, "number_queen_breeders": 0},
            g0_feral=0.0,
            survival_f=0.0,
        )
        engine = SimulationEngine(config=config)
        assert len(engine.lattice.queen_breeders) == 0
        engine.step()
        year1 = engine.stats.history[1]
        assert year1.feral.eow_dead_colonies == 4
        assert year1.feral.live_colonies == 0
        assert year1.feral.dead_colonies == 4
        assert _live(engine) == 0

    def test_worker_failure_aborts_year(
        self,
        monkeypatch: pytest.MonkeyPatch,
    ) -> None:
        config = SimulationConfig(**TINY_DOMESTIC, g0_feral=0.6, survival_f=1.0)
        engine = SimulationEngine(config=config)

        def boom(self: Location) -> None:
            msg = "purchase failed"
            raise RuntimeError(msg)

        monkeypatch.setattr(Location, "plan_replacements", boom)
        with pytest.raises(RuntimeError, match="purchase failed"):
            engine.step()


class TestSeededScenario:
    """A 2x2 run whose winter deaths depend on the seed.

    Every colony has strength 0.5 and is fed, so each non-breeder colony
    survives with probability 0.7.  The expected outcome is replayed from
    the seed through the same stream tree the engine uses: one stream per
    location in x-major order, then the breeder draw, then the founding
    draws of each location, then one survival draw per colony.
    """

    CONFIG: dict[str, Any] = {
        **TINY_DOMESTIC,
        "min_drones": 2,
        "max_drones": 2,
        "g0_feral": 0.5,
        "survival_f": 0.4,
    }

    @staticmethod
    def _child(parent: np.random.Generator) -> np.random.Generator:
        return np.random.default_rng(int(parent.integers(0, 2**63)))

    def _replay_winter(self, seed: int) -> tuple[int, list[bool]]:
        """Return the breeder's flat index and who survives the first winter."""
        master = np.random.default_rng(seed % 2**64)
        streams = [self._child(master) for _ in range(4)]
        breeder = int(master.choice(4, size=1, replace=False)[0])

        survival = LinearModel(feeding_factor=0.4).survival_probability(0.5, True)
        survived: list[bool] = []
        for index, stream in enumerate(streams):
            if index != breeder:
                stream.random()
                stream.integers(1, 2)
            stream.standard_normal()
            stream.integers(2, 3)
            stream.standard_normal()
            stream.standard_normal()
            colony_rng = self._child(stream)
            survived.append(index == breeder or colony_rng.random() < survival)
        return breeder, survived

    @pytest.mark.parametrize("seed", [7, 31, 2024, -5])
    def test_first_year_matches_replay(self, seed: int) -> None:
        breeder, survived = self._replay_winter(seed)
        deaths = survived.count(False)

        engine = SimulationEngine(config=SimulationConfig(seed=seed, **self.CONFIG))
        locations = list(engine.lattice)
        assert engine.lattice.queen_breeders == [locations[breeder]]
        engine.step()

        # Survivors aged a winter, purchases are new, the breeder was spared.
        ages = [location.colonies[0].age for location in locations]
        assert ages == [
            0 if index == breeder or not alive else 1
            for index, alive in enumerate(survived)
        ]
        assert engine.records() == [
            LocationRecord(i // 2, i % 2, True, i == breeder, 1, 1, 0, 0.5, 0.5, 0.5)
            for i in range(4)
        ]

        year1 = engine.stats.history[1].domestic
        assert year1.eow_dead_colonies == deaths
        assert year1.killed_by_winter == deaths
        assert year1.died_of_old_age == 0
        assert year1.colonies_created == deaths
        assert year1.live_colonies == 4

    def test_negative_seed_is_deterministic(self) -> None:
        a = SimulationEngine(config=SimulationConfig(seed=-5, **self.CONFIG))
        b = SimulationEngine(config=SimulationConfig(seed=-5, **self.CONFIG))
        a.run()
        b.run()
        assert a.stats.table() == b.stats.table()
        assert [loc.colonies[0].age for loc in a.lattice] == [
            loc.colonies[0].age for loc in b.lattice
        ]

"""Tests for beehealth.stats.reporting and the headless CLI."""

from __future__ import annotations

import csv
from pathlib import Path

import pytest
import yaml

from beehealth.__main__ import main
from beehealth.simulation.config import SimulationConfig
from beehealth.simulation.engine import SimulationEngine
from beehealth.stats.reporting import ResultsWriter, next_run_directory
from beehealth.world.location import LocationRecord


class TestRunDirectory:
    """Tests for numbered run directories."""

    def test_numbering(self, tmp_path: Path) -> None:
        assert next_run_directory(tmp_path / "results") == tmp_path / "results" / "000"
        assert next_run_directory(tmp_path / "results") == tmp_path / "results" / "001"

    def test_fills_gaps(self, tmp_path: Path) -> None:
        (tmp_path / "001").mkdir()
        assert next_run_directory(tmp_path).name == "000"
        assert next_run_directory(tmp_path).name == "002"


class TestResultsWriter:
    """Tests for the written files."""

    def test_writes_all_files(self, tmp_path: Path, small_config: SimulationConfig) -> None:
        engine = SimulationEngine(config=small_config)
        writer = ResultsWriter(tmp_path)
        writer.write_config(small_config)
        writer.write_start_sites(engine.records())
        engine.run()
        writer.write_sites(engine.records())
        writer.write_years(engine.stats)

        run_dir = tmp_path / "000"
        assert writer.run_dir == run_dir

        with (run_dir / "config.yaml").open() as fh:
            assert SimulationConfig.from_mapping(yaml.safe_load(fh)) == small_config

        for name in ("sim_start_sites.csv", "sites.csv"):
            with (run_dir / name).open(newline="") as fh:
                rows = list(csv.reader(fh))
            assert rows[0] == list(LocationRecord._fields)
            assert len(rows) == 1 + small_config.edge_length**2

        with (run_dir / "years.csv").open(newline="") as fh:
            years = list(csv.DictReader(fh))
        assert len(years) == small_config.sim_length + 1
        assert [int(row["year"]) for row in years] == list(range(small_config.sim_length + 1))
        assert "feral_live_colonies" in years[0]

    def test_strengths_formatted(self, tmp_path: Path) -> None:
        writer = ResultsWriter(tmp_path)
        record = LocationRecord(0, 1, True, False, 2, 1, 1, 1 / 3, 1 / 3, 1 / 3)
        path = writer.write_sites([record])
        with path.open(newline="") as fh:
            rows = list(csv.reader(fh))
        assert rows[1] == ["0", "1", "True", "False", "2", "1", "1", "0.3333", "0.3333", "0.3333"]


class TestCommandLine:
    """Tests for ``python -m beehealth`` without a display."""

    ARGS = [
        "edge_length=4",
        "sim_length=2",
        "number_queen_breeders=1",
        "queen_breeder_hive_count=3",
    ]

    def test_headless_run(self, tmp_path: Path, default_config_path: Path) -> None:
        main(["-c", str(default_config_path), *self.ARGS, "--results-dir", str(tmp_path), "--threads", "2"])
        run_dir = tmp_path / "000"
        assert (run_dir / "config.yaml").is_file()
        assert (run_dir / "sim_start_sites.csv").is_file()
        assert (run_dir / "sites.csv").is_file()
        assert (run_dir / "years.csv").is_file()

    def test_years_flag(self, tmp_path: Path, default_config_path: Path) -> None:
        main(["-c", str(default_config_path), *self.ARGS, "--results-dir", str(tmp_path), "--years", "1"])
        with (tmp_path / "000" / "years.csv").open(newline="") as fh:
            assert len(list(csv.DictReader(fh))) == 2

    def test_no_results(self, tmp_path: Path, default_config_path: Path) -> None:
        main(["-c", str(default_config_path), *self.ARGS, "--results-dir", str(tmp_path), "--no-results"])
        assert not any(tmp_path.iterdir())

    def test_bad_property_exits(self, default_config_path: Path) -> None:
        with pytest.raises(SystemExit) as excinfo:
            main(["-c", str(default_config_path), "edge_length=abc", "--no-results"])
        assert excinfo.value.code == 1

    def test_missing_config_file(self, tmp_path: Path) -> None:
        with pytest.raises(SystemExit) as excinfo:
            main(["-c", str(tmp_path / "nope.yaml")])
        assert excinfo.value.code == 2

    def test_out_of_range_seed_exits(self, default_config_path: Path) -> None:
        with pytest.raises(SystemExit) as excinfo:
            main(["-c", str(default_config_path), f"seed={2**64}", "--no-results"])
        assert excinfo.value.code == 1

    def test_negative_seed_runs(self, tmp_path: Path, default_config_path: Path) -> None:
        main(["-c", str(default_config_path), *self.ARGS, "seed=-5", "--results-dir", str(tmp_path)])
        with (tmp_path / "000" / "config.yaml").open() as fh:
            assert yaml.safe_load(fh)["seed"] == -5

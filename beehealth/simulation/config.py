"""Config — load simulation parameters from YAML files.

Every tunable constant (lattice size, husbandry probabilities, genetic
drift, survival model) lives in YAML and is parsed into a typed
dataclass here.  Property names are the ``name=value``
command-line names, including dotted keys such as ``survivalprob.model``; nested
YAML mappings are flattened with dots, so both spellings are accepted.

Loading from a file or mapping is strict: a missing, malformed, or
out-of-range property raises :class:`ConfigError` naming the property.
The dataclass defaults exist for programmatic construction only.
"""

from __future__ import annotations

import logging
import math
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import yaml

from beehealth.simulation.errors import ConfigError
from beehealth.simulation.rng import SEED_MAX, SEED_MIN

logger = logging.getLogger(__name__)

ALL_QUEEN_BREEDERS = "all"
HIVE_DISTRIBUTIONS = ("three-way-norm", "linear")
INHERITANCE_MODES = ("ONE_PARENT", "AVERAGE")


def _to_int(key: str, value: Any) -> int:
    if isinstance(value, bool):
        msg = f"'{key}' must be an integer, got {value!r}"
        raise ConfigError(msg)
    if isinstance(value, float) and not value.is_integer():
        msg = f"'{key}' must be an integer, got {value!r}"
        raise ConfigError(msg)
    try:
        return int(value)
    except (TypeError, ValueError):
        msg = f"'{key}' must be an integer, got {value!r}"
        raise ConfigError(msg) from None


def _to_float(key: str, value: Any) -> float:
    if isinstance(value, bool):
        msg = f"'{key}' must be a number, got {value!r}"
        raise ConfigError(msg)
    try:
        result = float(value)
    except (TypeError, ValueError):
        msg = f"'{key}' must be a number, got {value!r}"
        raise ConfigError(msg) from None
    if math.isnan(result):
        msg = f"'{key}' must be a number, got {value!r}"
        raise ConfigError(msg)
    return result


def _to_bool(key: str, value: Any) -> bool:
    if isinstance(value, bool):
        return value
    text = str(value).strip().lower()
    if text in ("true", "yes", "1"):
        return True
    if text in ("false", "no", "0"):
        return False
    msg = f"'{key}' must be true or false, got {value!r}"
    raise ConfigError(msg)


def _to_str(key: str, value: Any) -> str:
    if value is None:
        msg = f"'{key}' must not be empty"
        raise ConfigError(msg)
    return str(value).strip()


def _to_breeders(key: str, value: Any) -> int | str:
    if isinstance(value, str) and value.strip().lower() == ALL_QUEEN_BREEDERS:
        return ALL_QUEEN_BREEDERS
    return _to_int(key, value)


# property name -> (dataclass field, coercion)
_PROPERTIES: dict[str, tuple[str, Callable[[str, Any], Any]]] = {
    "edge_length": ("edge_length", _to_int),
    "sim_length": ("sim_length", _to_int),
    "seed": ("seed", _to_int),
    "prob_domestic": ("prob_domestic", _to_float),
    "number_queen_breeders": ("number_queen_breeders", _to_breeders),
    "queen_breeder_hive_count": ("queen_breeder_hive_count", _to_int),
    "number_of_hives_distribution": ("number_of_hives_distribution", _to_str),
    "number_of_hives_m0": ("number_of_hives_m0", _to_float),
    "number_of_hives_m1": ("number_of_hives_m1", _to_float),
    "number_of_hives_m2": ("number_of_hives_m2", _to_float),
    "number_of_hives_min": ("number_of_hives_min", _to_int),
    "number_of_hives_max": ("number_of_hives_max", _to_int),
    "min_drones": ("min_drones", _to_int),
    "max_drones": ("max_drones", _to_int),
    "mating_flight_distance": ("mating_flight_distance", _to_int),
    "drone_participation_distance": ("drone_participation_distance", _to_int),
    "swarm_distance": ("swarm_distance", _to_int),
    "max_hive_age": ("max_hive_age", _to_int),
    "min_requeen_age": ("min_requeen_age", _to_int),
    "requeen_probability": ("requeen_probability", _to_float),
    "domestic_prob_swarm": ("domestic_prob_swarm", _to_float),
    "feral_prob_swarm": ("feral_prob_swarm", _to_float),
    "inheritance_mode": ("inheritance_mode", _to_str),
    "stddev_g": ("stddev_g", _to_float),
    "max_g": ("max_g", _to_float),
    "g0_feral": ("g0_feral", _to_float),
    "g0_domestic": ("g0_domestic", _to_float),
    "survivalprob.model": ("survival_model", _to_str),
    "survivalprob.F": ("survival_f", _to_float),
    "survivalprob.M": ("survival_m", _to_float),
    "survivalprob.A": ("survival_a", _to_float),
    "feral_uses_domestic_survival_model": (
        "feral_uses_domestic_survival_model",
        _to_bool,
    ),
    "threads": ("threads", _to_int),
    "results_dir": ("results_dir", _to_str),
    "name": ("name", _to_str),
    "description": ("description", _to_str),
}

_OPTIONAL = frozenset(
    {
        "number_of_hives_m0",
        "number_of_hives_m1",
        "number_of_hives_m2",
        "number_of_hives_min",
        "number_of_hives_max",
        "survivalprob.M",
        "survivalprob.A",
        "g0_domestic",
        "threads",
        "results_dir",
        "name",
        "description",
    },
)


def _flatten(data: Mapping[str, Any], prefix: str = "") -> dict[str, Any]:
    """Flatten nested mappings into dotted keys."""
    flat: dict[str, Any] = {}
    for key, value in data.items():
        name = f"{prefix}{key}"
        if isinstance(value, Mapping):
            flat.update(_flatten(value, prefix=f"{name}."))
        else:
            flat[name] = value
    return flat


def _required_keys(flat: Mapping[str, Any]) -> list[str]:
    """Return the properties a mapping must define, given its choices."""
    required = [key for key in _PROPERTIES if key not in _OPTIONAL]
    distribution = str(flat.get("number_of_hives_distribution", "")).strip()
    if distribution == "three-way-norm":
        required += ["number_of_hives_m0", "number_of_hives_m1", "number_of_hives_m2"]
    elif distribution == "linear":
        required += ["number_of_hives_min", "number_of_hives_max"]
    if str(flat.get("survivalprob.model", "")).strip() == "sigmoid":
        required += ["survivalprob.M", "survivalprob.A"]
    return required


@dataclass
class SimulationConfig:
    """Top-level simulation configuration.

    Attributes:
        seed: RNG seed for deterministic replay.
        edge_length: Lattice edge length N (the torus is N x N).
        sim_length: Number of simulated years.
        prob_domestic: Probability that a location is domestic.
        number_queen_breeders: Number of queen-breeding locations, or
            ``"all"`` to make every domestic location a breeder.
        queen_breeder_hive_count: Colonies held by each breeder location.
        number_of_hives_distribution: ``three-way-norm`` or ``linear``.
        number_of_hives_m0: Mixture weight of the x2 component.
        number_of_hives_m1: Mixture weight of the x10 component.
        number_of_hives_m2: Mixture weight of the x25 component.
        number_of_hives_min: Lower bound of the linear distribution.
        number_of_hives_max: Upper bound of the linear distribution.
        min_drones: Fewest drones a queen mates with.
        max_drones: Most drones a queen mates with.
        mating_flight_distance: Cells a virgin queen flies before mating.
        drone_participation_distance: Radius around the landing cell
            from which drones are drawn.
        swarm_distance: Radius a swarm searches for a new home.
        max_hive_age: Age (in winters) at which a colony dies of old age.
        min_requeen_age: Youngest age at which a domestic colony may be
            requeened.
        requeen_probability: Probability an eligible colony is requeened.
        domestic_prob_swarm: Per-year swarm probability, domestic colonies.
        feral_prob_swarm: Per-year swarm probability, feral colonies.
        inheritance_mode: ``ONE_PARENT`` or ``AVERAGE``.
        stddev_g: Standard deviation of the gene drift.
        max_g: Upper bound of every gene value.
        g0_feral: Mean initial gene of feral colonies.
        g0_domestic: Mean initial gene of domestic colonies; ``None``
            means the same as ``g0_feral``.
        survival_model: Survival model name (``survivalprob.model``).
        survival_f: Feeding factor F (``survivalprob.F``).
        survival_m: Sigmoid steepness M (``survivalprob.M``).
        survival_a: Sigmoid shift A (``survivalprob.A``).
        feral_uses_domestic_survival_model: Whether feral colonies get
            the feeding boost too.
        threads: Worker threads for the replacement phase.
        results_dir: Base directory for run output.
        name: Optional run name, copied into the results.
        description: Optional run description, copied into the results.
    """

    seed: int = 42
    edge_length: int = 20
    sim_length: int = 50

    # Site composition
    prob_domestic: float = 0.1
    number_queen_breeders: int | str = 3
    queen_breeder_hive_count: int = 50
    number_of_hives_distribution: str = "three-way-norm"
    number_of_hives_m0: float = 0.7
    number_of_hives_m1: float = 0.2
    number_of_hives_m2: float = 0.1
    number_of_hives_min: int = 1
    number_of_hives_max: int = 10

    # Mating and swarming
    min_drones: int = 10
    max_drones: int = 20
    mating_flight_distance: int = 2
    drone_participation_distance: int = 2
    swarm_distance: int = 2
    domestic_prob_swarm: float = 0.1
    feral_prob_swarm: float = 0.5

    # Ageing and husbandry
    max_hive_age: int = 5
    min_requeen_age: int = 2
    requeen_probability: float = 0.5

    # Genetics
    inheritance_mode: str = "AVERAGE"
    stddev_g: float = 0.02
    max_g: float = 1.0
    g0_feral: float = 0.6
    g0_domestic: float | None = None

    # Winter survival
    survival_model: str = "linear"
    survival_f: float = 0.5
    survival_m: float = 20.0
    survival_a: float = -2.0
    feral_uses_domestic_survival_model: bool = False

    threads: int = 20
    results_dir: str = "results"
    name: str = ""
    description: str = ""

    def __post_init__(self) -> None:
        """Reject out-of-range values as soon as the config is built."""
        self.validate()

    @property
    def initial_domestic_gene(self) -> float:
        """Mean initial gene of domestic colonies."""
        return self.g0_feral if self.g0_domestic is None else self.g0_domestic

    def validate(self) -> None:
        """Check ranges and cross-field constraints.

        Raises:
            ConfigError: Naming the first offending property.
        """
        if not SEED_MIN <= self.seed <= SEED_MAX:
            msg = f"'seed' must be a signed 64-bit integer, got {self.seed}"
            raise ConfigError(msg)
        _at_least("edge_length", self.edge_length, 1)
        _at_least("sim_length", self.sim_length, 0)
        _at_least("threads", self.threads, 1)
        for key, value in (
            ("prob_domestic", self.prob_domestic),
            ("requeen_probability", self.requeen_probability),
            ("domestic_prob_swarm", self.domestic_prob_swarm),
            ("feral_prob_swarm", self.feral_prob_swarm),
            ("survivalprob.F", self.survival_f),
        ):
            _probability(key, value)

        sites = self.edge_length * self.edge_length
        if self.number_queen_breeders != ALL_QUEEN_BREEDERS:
            if not isinstance(self.number_queen_breeders, int):
                msg = (
                    "'number_queen_breeders' must be an integer or "
                    f"'{ALL_QUEEN_BREEDERS}', got {self.number_queen_breeders!r}"
                )
                raise ConfigError(msg)
            _at_least("number_queen_breeders", self.number_queen_breeders, 0)
            if self.number_queen_breeders > sites:
                msg = (
                    f"'number_queen_breeders' ({self.number_queen_breeders}) "
                    f"exceeds the {sites} locations of the lattice"
                )
                raise ConfigError(msg)
            if self.number_queen_breeders > 0:
                _at_least("queen_breeder_hive_count", self.queen_breeder_hive_count, 1)
        _at_least("queen_breeder_hive_count", self.queen_breeder_hive_count, 0)

        if self.number_of_hives_distribution == "three-way-norm":
            weights = (
                self.number_of_hives_m0,
                self.number_of_hives_m1,
                self.number_of_hives_m2,
            )
            for i, weight in enumerate(weights):
                _probability(f"number_of_hives_m{i}", weight)
            if not math.isclose(sum(weights), 1.0, abs_tol=1e-9):
                msg = (
                    "In the 'three-way-norm' number-of-hives distribution, "
                    "number_of_hives_m0 + m1 + m2 must equal 1.0, "
                    f"got {sum(weights)}"
                )
                raise ConfigError(msg)
        elif self.number_of_hives_distribution == "linear":
            _at_least("number_of_hives_min", self.number_of_hives_min, 0)
            _at_least(
                "number_of_hives_max",
                self.number_of_hives_max,
                self.number_of_hives_min,
            )
        else:
            msg = (
                "'number_of_hives_distribution' must be one of "
                f"{', '.join(HIVE_DISTRIBUTIONS)}; got "
                f"{self.number_of_hives_distribution!r}"
            )
            raise ConfigError(msg)

        _at_least("min_drones", self.min_drones, 1)
        _at_least("max_drones", self.max_drones, self.min_drones)
        _at_least("mating_flight_distance", self.mating_flight_distance, 0)
        _at_least(
            "drone_participation_distance",
            self.drone_participation_distance,
            0,
        )
        _at_least("swarm_distance", self.swarm_distance, 0)
        _at_least("max_hive_age", self.max_hive_age, 1)
        _at_least("min_requeen_age", self.min_requeen_age, 0)

        if self.inheritance_mode not in INHERITANCE_MODES:
            msg = (
                f"'inheritance_mode' must be one of {', '.join(INHERITANCE_MODES)}; "
                f"got {self.inheritance_mode!r}"
            )
            raise ConfigError(msg)
        if self.stddev_g < 0:
            msg = f"'stddev_g' must be >= 0, got {self.stddev_g}"
            raise ConfigError(msg)
        if not 0 < self.max_g <= 1:
            msg = f"'max_g' must be in (0, 1], got {self.max_g}"
            raise ConfigError(msg)
        for key, gene in (
            ("g0_feral", self.g0_feral),
            ("g0_domestic", self.initial_domestic_gene),
        ):
            if not 0 <= gene <= self.max_g:
                msg = f"'{key}' must be in [0, max_g={self.max_g}], got {gene}"
                raise ConfigError(msg)
        if not self.survival_model:
            msg = "'survivalprob.model' must be specified"
            raise ConfigError(msg)

    def to_mapping(self) -> dict[str, Any]:
        """Return the configuration keyed by property name."""
        return {
            key: getattr(self, field_name)
            for key, (field_name, _) in _PROPERTIES.items()
            if getattr(self, field_name) is not None
        }

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> SimulationConfig:
        """Build a config from a flat or nested property mapping.

        Args:
            data: Property name -> value.  String values are coerced.

        Returns:
            A validated SimulationConfig.

        Raises:
            ConfigError: If a required property is missing or invalid.
        """
        flat = _flatten(data)
        for key in sorted(set(flat) - set(_PROPERTIES)):
            logger.warning("Ignoring unknown configuration property '%s'", key)

        missing = [key for key in _required_keys(flat) if key not in flat]
        if missing:
            msg = (
                "Required configuration properties not specified: "
                f"{', '.join(missing)}"
            )
            raise ConfigError(msg)

        kwargs: dict[str, Any] = {}
        for key, value in flat.items():
            if key not in _PROPERTIES:
                continue
            field_name, coerce = _PROPERTIES[key]
            kwargs[field_name] = coerce(key, value)
        return cls(**kwargs)

    @classmethod
    def from_yaml(
        cls,
        path: str | Path,
        overrides: Mapping[str, Any] | None = None,
    ) -> SimulationConfig:
        """Load configuration from a YAML file.

        Args:
            path: Path to the YAML config file.
            overrides: Properties that take precedence over the file,
                typically ``name=value`` pairs from the command line.

        Returns:
            A populated SimulationConfig instance.

        Raises:
            FileNotFoundError: If the config file does not exist.
            ConfigError: If the file does not hold a mapping or a
                property is missing or invalid.
        """
        path = Path(path)
        with path.open("r") as f:
            data = yaml.safe_load(f) or {}
        if not isinstance(data, Mapping):
            msg = f"{path} must contain a mapping of properties"
            raise ConfigError(msg)

        flat = _flatten(data)
        if overrides:
            flat.update(_flatten(overrides))
        logger.debug("Loaded %d properties from %s", len(flat), path)
        return cls.from_mapping(flat)


def parse_overrides(pairs: list[str]) -> dict[str, str]:
    """Parse ``name=value`` command-line arguments.

    Raises:
        ConfigError: If an argument has no ``=``.
    """
    overrides: dict[str, str] = {}
    for pair in pairs:
        name, sep, value = pair.partition("=")
        if not sep or not name.strip():
            msg = f"Command line properties must be in the form 'name=value', got {pair!r}"
            raise ConfigError(msg)
        overrides[name.strip()] = value.strip()
    return overrides


def _at_least(key: str, value: int, minimum: int) -> None:
    if value < minimum:
        msg = f"'{key}' must be >= {minimum}, got {value}"
        raise ConfigError(msg)


def _probability(key: str, value: float) -> None:
    if not 0.0 <= value <= 1.0:
        msg = f"'{key}' is a probability and must be in [0, 1], got {value}"
        raise ConfigError(msg)

"""Survival — map a colony's gene strength to a winter-survival probability.

Two models are built in, selected by ``survivalprob.model``:

- ``linear``: the probability *is* the hive strength.
- ``sigmoid``: ``1 / (1 + exp(-(M * h + A)))``, where ``M`` sets the
  steepness and ``A`` shifts the curve.

Fed colonies (domestic ones, and feral ones when
``feral_uses_domestic_survival_model`` is set) have their probability
moved towards 1 by the feeding factor ``F``::

    p = p + F * (1 - p)

``F = 0`` means feeding has no effect; ``F = 1`` guarantees survival.

Further models are added with :func:`register_survival_model`.
"""

from __future__ import annotations

import math
from abc import ABC, abstractmethod
from collections.abc import Callable
from enum import Enum
from typing import TYPE_CHECKING

from beehealth.simulation.errors import ConfigError

if TYPE_CHECKING:
    from beehealth.simulation.config import SimulationConfig


class SurvivalProbabilityModel(ABC):
    """Pure function of ``(health, fed)`` plus fixed parameters.

    Attributes:
        feeding_factor: ``F``, in ``[0, 1]``.
    """

    def __init__(self, feeding_factor: float = 0.5) -> None:
        if not 0.0 <= feeding_factor <= 1.0:
            msg = (
                "survivalprob.F must be in the range [0, 1]; "
                f"you specified {feeding_factor}"
            )
            raise ConfigError(msg)
        self.feeding_factor = feeding_factor

    def adjust(self, probability: float) -> float:
        """Apply the feeding boost."""
        return probability + self.feeding_factor * (1.0 - probability)

    @abstractmethod
    def survival_probability(self, health: float, fed: bool) -> float:
        """Return the probability of surviving the winter.

        Args:
            health: The colony's aggregate gene strength.
            fed: Whether the colony is fed over winter.
        """


class LinearModel(SurvivalProbabilityModel):
    """Survival probability equals hive strength, boosted when fed."""

    @classmethod
    def from_config(cls, config: SimulationConfig) -> LinearModel:
        return cls(feeding_factor=config.survival_f)

    def survival_probability(self, health: float, fed: bool) -> float:
        if fed:
            return self.adjust(health)
        return health

    def __repr__(self) -> str:
        return f"LinearModel(F={self.feeding_factor})"


class SigmoidModel(SurvivalProbabilityModel):
    """Logistic curve over hive strength, boosted when fed.

    Attributes:
        steepness: ``M``.
        shift: ``A``; negative values push the curve right.
    """

    def __init__(
        self,
        feeding_factor: float = 0.5,
        steepness: float = 20.0,
        shift: float = -2.0,
    ) -> None:
        super().__init__(feeding_factor)
        self.steepness = steepness
        self.shift = shift

    @classmethod
    def from_config(cls, config: SimulationConfig) -> SigmoidModel:
        return cls(
            feeding_factor=config.survival_f,
            steepness=config.survival_m,
            shift=config.survival_a,
        )

    def survival_probability(self, health: float, fed: bool) -> float:
        exponent = -(self.steepness * health + self.shift)
        # math.exp overflows past ~709; the limit is 0 there anyway
        probability = 0.0 if exponent > 700 else 1.0 / (1.0 + math.exp(exponent))
        if fed:
            probability = self.adjust(probability)
        return probability

    def __repr__(self) -> str:
        return (
            f"SigmoidModel(F={self.feeding_factor}, "
            f"M={self.steepness}, A={self.shift})"
        )


class BuiltinSurvivalModel(Enum):
    """Survival models that ship with the simulation."""

    LINEAR = "linear"
    SIGMOID = "sigmoid"


SurvivalModelFactory = Callable[["SimulationConfig"], SurvivalProbabilityModel]

_BUILTIN_FACTORIES: dict[BuiltinSurvivalModel, SurvivalModelFactory] = {
    BuiltinSurvivalModel.LINEAR: LinearModel.from_config,
    BuiltinSurvivalModel.SIGMOID: SigmoidModel.from_config,
}

_REGISTRY: dict[str, SurvivalModelFactory] = {
    kind.value: factory for kind, factory in _BUILTIN_FACTORIES.items()
}


def register_survival_model(name: str, factory: SurvivalModelFactory) -> None:
    """Make a custom model selectable as ``survivalprob.model=<name>``.

    Args:
        name: The configuration name.
        factory: Builds the model from a SimulationConfig.

    Raises:
        ValueError: If ``name`` is already registered.
    """
    if name in _REGISTRY:
        msg = f"survival model '{name}' is already registered"
        raise ValueError(msg)
    _REGISTRY[name] = factory


def unregister_survival_model(name: str) -> None:
    """Remove a custom model; built-in models cannot be removed."""
    if name in {kind.value for kind in BuiltinSurvivalModel}:
        msg = f"'{name}' is a built-in survival model"
        raise ValueError(msg)
    _REGISTRY.pop(name, None)


def available_survival_models() -> list[str]:
    """Names accepted by ``survivalprob.model``."""
    return sorted(_REGISTRY)


def build_survival_model(config: SimulationConfig) -> SurvivalProbabilityModel:
    """Instantiate the model named by ``config.survival_model``.

    Raises:
        ConfigError: If the name is not registered.
    """
    factory = _REGISTRY.get(config.survival_model)
    if factory is None:
        msg = (
            f"'survivalprob.model={config.survival_model}' is not supported. "
            f"The supported models: {', '.join(available_survival_models())}"
        )
        raise ConfigError(msg)
    return factory(config)

"""Errors — the exception taxonomy shared by the simulation core.

Configuration problems and broken modelling invariants are fatal: the
CLI logs them and exits.  Expected stochastic outcomes (a mating flight
that finds no drones, a lost swarm) are *not* exceptions; they change
colony state and are reported to the statistics sink instead.
"""

from __future__ import annotations


class BeeHealthError(Exception):
    """Base class for every error raised by the simulation."""


class ConfigError(BeeHealthError, ValueError):
    """A configuration property is missing, malformed, or out of range."""


class SimulationInvariantError(BeeHealthError, RuntimeError):
    """The model reached a state that should be impossible."""


class QueenBreedersExtinctError(SimulationInvariantError):
    """A queen purchase was requested but no breeder colony is alive."""


class SwarmAccountingError(SimulationInvariantError):
    """Swarm counts do not add up at the end of a summer."""


class DeadColonyError(SimulationInvariantError):
    """A dead colony was asked to breed."""


class InvalidColonyStateError(BeeHealthError, RuntimeError):
    """A colony operation was invoked in a state that does not allow it."""

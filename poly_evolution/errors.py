"""
poly_evolution/errors.py - Exception hierarchy
"""


class EvolutionError(Exception):
    """Base class for all poly_evolution errors"""


class ConfigError(EvolutionError, ValueError):
    """Raised when a configuration is malformed and a run must not start"""


class BufferSizeError(EvolutionError, ValueError):
    """Raised when a pixel buffer does not match the configured width x height"""


class InvariantViolation(EvolutionError, AssertionError):
    """Raised when an operator effect is requested while its predicate is false"""


class DriverStateError(EvolutionError, RuntimeError):
    """Raised on an illegal driver state transition"""

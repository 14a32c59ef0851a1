"""
Exceptions that may escape to the command line.

Everything below the suite registry converts failures into result values;
only orchestrator-fatal conditions are raised as exceptions.
"""


class ResilienceError(Exception):
    """Base exception for the resilience engine."""

    pass


class ConfigurationError(ResilienceError):
    """Settings could not be loaded or are inconsistent."""

    pass


class UnknownSuiteError(ResilienceError):
    """A suite name was requested that is not registered."""

    def __init__(self, name: str, available: list[str]):
        self.name = name
        self.available = available
        super().__init__(f"Unknown suite '{name}'. Available: {', '.join(available)}")

"""
Exception types raised by the simulation core.
"""


class FabricSimError(Exception):
    """Base class for all simulation errors."""


class ConfigError(FabricSimError, ValueError):
    """A tunable parameter is outside the range the core can run with."""


class AddressParseError(FabricSimError, ValueError):
    """A dotted-decimal IPv4 string could not be parsed."""

    def __init__(self, text: str, reason: str):
        super().__init__(f"invalid IPv4 address {text!r}: {reason}")
        self.text = text
        self.reason = reason


class WorkerBusyError(FabricSimError, RuntimeError):
    """A request was assigned to a worker that is still serving another one."""

# Copyright (c) Syntropy Systems
"""Exception hierarchy for capping.

Every error is fatal to the suite: power caps are physical state on the host
and nothing here retries or substitutes defaults.
"""


class CappingError(Exception):
    """Base class for all capping errors."""


class ParseError(CappingError):
    """BMC or energy counter output could not be parsed."""


class HardwareCommandError(CappingError):
    """A hardware command failed to run, exited non-zero or wrote to stderr."""


class ProtocolError(CappingError):
    """The remote agent call failed or returned an invalid response."""


class ConfigurationError(CappingError):
    """Invalid configuration, or a test that must never reach the coordinator."""

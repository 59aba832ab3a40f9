# Copyright (c) Syntropy Systems
"""
capping - Power-capping experiment orchestration.

Set BMC power caps, generate load, measure what the server actually draws.
"""

from capping.config import CappingConfig, load_config
from capping.errors import (
    CappingError,
    ConfigurationError,
    HardwareCommandError,
    ParseError,
    ProtocolError,
)

__version__ = "0.1.0"
__all__ = [
    "CappingConfig",
    "CappingError",
    "ConfigurationError",
    "HardwareCommandError",
    "ParseError",
    "ProtocolError",
    "__version__",
    "load_config",
]

"""
Core module for Mockly.
Contains configuration, connection settings, scanner base classes, and utilities.
"""

from mockly.core.config import Config, load_config
from mockly.core.connection import ConnectionConfig
from mockly.core.errors import FixGenerationError, InvalidConnectionError, MocklyError
from mockly.core.scanner import BaseScanner, ScanContext

__all__ = [
    "Config",
    "load_config",
    "ConnectionConfig",
    "MocklyError",
    "InvalidConnectionError",
    "FixGenerationError",
    "BaseScanner",
    "ScanContext",
]

"""
BlockForge Core - Shared building blocks.

Contains configuration, logging, error types and the device data model
used by the platform layer.
"""

from blockforge.core.config import BlockForgeConfig
from blockforge.core.errors import (
    BlockForgeError,
    ExecutionError,
    ParseError,
    ResolutionError,
    TopologyError,
    UnsupportedOperationError,
)
from blockforge.core.logging import get_logger, setup_logging
from blockforge.core.models import BlockDevice, DeviceMapperMapping, FileSystem

__all__ = [
    "BlockForgeConfig",
    "BlockForgeError",
    "ExecutionError",
    "ParseError",
    "ResolutionError",
    "TopologyError",
    "UnsupportedOperationError",
    "get_logger",
    "setup_logging",
    "BlockDevice",
    "DeviceMapperMapping",
    "FileSystem",
]

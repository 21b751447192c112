"""
BlockForge - Block-device and filesystem lifecycle primitives for Linux.

Runs privileged storage utilities and turns their output into a device
topology, including device-mapper composites and their slave devices.
"""

__version__ = "1.0.0"
__author__ = "BlockForge Team"

from blockforge.core.config import BlockForgeConfig
from blockforge.platform.linux.backend import LinuxBackend

__all__ = ["BlockForgeConfig", "LinuxBackend", "__version__"]

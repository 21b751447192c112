"""
BlockForge Platform Abstraction Layer.

Storage primitives are only implemented for Linux; the backend is picked
at runtime so importing the package elsewhere still works.
"""

from __future__ import annotations

import platform
from typing import TYPE_CHECKING

from blockforge.platform.base import CommandResult, PlatformBackend

if TYPE_CHECKING:
    from blockforge.core.config import BlockForgeConfig


def is_linux() -> bool:
    return platform.system().lower() == "linux"


def get_platform_backend(config: BlockForgeConfig | None = None) -> PlatformBackend:
    """Get the storage backend for the current OS."""
    if not is_linux():
        raise RuntimeError(f"Unsupported platform: {platform.system()}")

    from blockforge.platform.linux import LinuxBackend

    return LinuxBackend(config)


__all__ = [
    "CommandResult",
    "PlatformBackend",
    "get_platform_backend",
    "is_linux",
]

"""
BlockForge configuration management.

Provides explicit configuration values with validation using Pydantic.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Literal

from pydantic import BaseModel, Field, field_validator


DEFAULT_CONFIG_PATH = Path.home() / ".blockforge" / "config.json"


class LoggingConfig(BaseModel):
    """Configuration for structured logging."""

    level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = "INFO"
    file_enabled: bool = False
    console_enabled: bool = True
    json_format: bool = False
    log_directory: Path = Field(default_factory=lambda: Path.home() / ".blockforge" / "logs")

    @field_validator("log_directory", mode="before")
    @classmethod
    def expand_path(cls, v: str | Path) -> Path:
        return Path(v).expanduser().resolve()


class ExecutionConfig(BaseModel):
    """Configuration for the command execution engine."""

    sudo: bool = False
    sudo_path: Path = Path("/usr/bin/sudo")
    # None disables the timeout; fsck and friends are unsafe to kill.
    default_timeout_seconds: float | None = Field(default=None, gt=0)
    environment: dict[str, str] = Field(default_factory=dict)
    working_directory: Path | None = None

    @field_validator("working_directory", mode="before")
    @classmethod
    def expand_working_directory(cls, v: str | Path | None) -> Path | None:
        if v is None:
            return None
        return Path(v).expanduser()


class TopologyConfig(BaseModel):
    """Configuration for topology and device-mapper discovery."""

    max_parent_depth: int = Field(default=16, ge=1, le=256)
    sys_block_directory: Path = Path("/sys/block")
    dev_mapper_directory: Path = Path("/dev/mapper")
    mapper_discovery: Literal["sysfs", "shell"] = "sysfs"


class BlockForgeConfig(BaseModel):
    """Main BlockForge configuration."""

    logging: LoggingConfig = Field(default_factory=LoggingConfig)
    execution: ExecutionConfig = Field(default_factory=ExecutionConfig)
    topology: TopologyConfig = Field(default_factory=TopologyConfig)

    @classmethod
    def load(cls, config_path: Path | None = None) -> BlockForgeConfig:
        """Load configuration from file or create default."""
        if config_path is None:
            config_path = DEFAULT_CONFIG_PATH

        if config_path.exists():
            with open(config_path) as f:
                data = json.load(f)
            return cls.model_validate(data)

        return cls()

    def save(self, config_path: Path | None = None) -> None:
        """Save configuration to file."""
        if config_path is None:
            config_path = DEFAULT_CONFIG_PATH

        config_path.parent.mkdir(parents=True, exist_ok=True)
        with open(config_path, "w") as f:
            json.dump(self.model_dump(mode="json"), f, indent=2, default=str)

    def ensure_directories(self) -> None:
        """Create all required directories."""
        if self.logging.file_enabled:
            self.logging.log_directory.mkdir(parents=True, exist_ok=True)


def load_config(config_path: Path | None = None) -> BlockForgeConfig:
    """Load or create configuration."""
    config = BlockForgeConfig.load(config_path)
    config.ensure_directories()
    return config

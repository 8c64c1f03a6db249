"""
blockutils configuration management.

Provides centralized configuration with validation using Pydantic.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Literal

from pydantic import BaseModel, Field, field_validator

DEFAULT_CONFIG_PATH = Path.home() / ".blockutils" / "config.json"


class LoggingConfig(BaseModel):
    """Configuration for structured logging."""

    level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = "WARNING"
    file_enabled: bool = False
    console_enabled: bool = True
    json_format: bool = False
    log_directory: Path = Field(default_factory=lambda: Path.home() / ".blockutils" / "logs")

    @field_validator("log_directory", mode="before")
    @classmethod
    def expand_path(cls, v: str | Path) -> Path:
        return Path(v).expanduser().resolve()


class ClassifierConfig(BaseModel):
    """Configuration for filesystem classification."""

    signature_probe_enabled: bool = True
    cross_check_signatures: bool = False


class FormatConfig(BaseModel):
    """Configuration for format orchestration."""

    verify_unmounted_default: bool = True
    zfs_mount_root: Path = Path("/mnt")
    tool_overrides: dict[str, str] = Field(default_factory=dict)
    runner_timeout_seconds: float | None = Field(default=None, gt=0)

    def resolve_tool(self, executable: str) -> str:
        """Map a canonical tool name to the configured path, if any."""
        return self.tool_overrides.get(executable, executable)


class BlockUtilsConfig(BaseModel):
    """Main blockutils configuration."""

    logging: LoggingConfig = Field(default_factory=LoggingConfig)
    classifier: ClassifierConfig = Field(default_factory=ClassifierConfig)
    format: FormatConfig = Field(default_factory=FormatConfig)

    @classmethod
    def load(cls, config_path: Path | None = None) -> BlockUtilsConfig:
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


def get_default_config() -> BlockUtilsConfig:
    """Get the default configuration."""
    return BlockUtilsConfig()


def load_config(config_path: Path | None = None) -> BlockUtilsConfig:
    """Load or create configuration."""
    config = BlockUtilsConfig.load(config_path)
    config.ensure_directories()
    return config

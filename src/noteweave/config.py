"""Configuration management for noteweave."""

import json
import os
from enum import Enum
from pathlib import Path
from typing import Literal, Optional

from loguru import logger
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from noteweave.utils import setup_logging

DATABASE_NAME = "noteweave.db"
DATA_DIR_NAME = ".noteweave"
CONFIG_FILE_NAME = "config.json"
ENV_PREFIX = "NOTEWEAVE_"

Environment = Literal["test", "dev", "user"]


class DatabaseType(str, Enum):
    """Where the SQLite database lives."""

    MEMORY = "memory"
    FILESYSTEM = "filesystem"


def _default_data_dir() -> Path:
    return Path(os.getenv("NOTEWEAVE_HOME", Path.home() / DATA_DIR_NAME))


class NoteweaveConfig(BaseSettings):
    """Pydantic model for noteweave configuration."""

    env: Environment = Field(default="dev", description="Environment name")

    # overridden by ~/.noteweave/config.json
    log_level: str = "INFO"
    log_to_file: bool = Field(default=True, description="Write logs to the data directory")

    database_type: DatabaseType = Field(
        default=DatabaseType.FILESYSTEM,
        description="Use an on-disk SQLite database or a throwaway in-memory one",
    )
    data_dir: Path = Field(
        default_factory=_default_data_dir,
        description="Directory holding the database, config file and logs",
    )

    # Node store
    max_path_conflict_attempts: int = Field(
        default=100,
        description="How many ' (n)' suffixes create_node tries before raising ConflictError",
        gt=0,
    )
    delete_batch_size: int = Field(
        default=500,
        description="Maximum ids per DELETE ... IN (...) statement during cascades",
        gt=0,
    )

    # Spaced repetition
    srs_mature_interval: int = Field(
        default=21,
        description="Interval in days above which a reviewed card becomes mature",
        gt=0,
    )
    srs_new_card_limit: int = Field(
        default=20,
        description="Default cap on new cards returned by a due-card query",
        ge=0,
    )
    srs_review_card_limit: int = Field(
        default=200,
        description="Default cap on learning/review/mature cards returned by a due-card query",
        ge=0,
    )

    model_config = SettingsConfigDict(
        env_prefix=ENV_PREFIX,
        extra="ignore",
    )

    @property
    def is_test_env(self) -> bool:
        return self.env == "test" or os.getenv("PYTEST_CURRENT_TEST") is not None

    @property
    def database_path(self) -> Path:
        """Path to the SQLite database file."""
        return self.data_dir / DATABASE_NAME


class ConfigManager:
    """Loads and saves noteweave configuration.

    Every instance reads from disk; there is no process-wide cache. Callers that
    need a stable config build one and pass it along (see `noteweave.context`).
    """

    def __init__(self, config_dir: Optional[Path] = None) -> None:
        if config_dir is None:
            if env_dir := os.getenv("NOTEWEAVE_CONFIG_DIR"):
                config_dir = Path(env_dir)
            else:
                config_dir = _default_data_dir()
        self.config_dir = config_dir
        self.config_file = self.config_dir / CONFIG_FILE_NAME

    def load_config(self) -> NoteweaveConfig:
        """Load configuration from file, or return defaults.

        Environment variables take precedence over values in the config file.
        """
        if not self.config_file.exists():
            return NoteweaveConfig()

        try:
            file_data = json.loads(self.config_file.read_text(encoding="utf-8"))
        except json.JSONDecodeError as e:
            logger.error(f"Invalid JSON in config file {self.config_file}: {e}")
            raise SystemExit(
                f"Error: config file is not valid JSON: {self.config_file}\n"
                f"  {e}\n"
                f"Fix or delete the file and re-run."
            )

        env_config = NoteweaveConfig()
        env_dict = env_config.model_dump()
        merged_data = file_data.copy()
        for field_name in NoteweaveConfig.model_fields.keys():
            if f"{ENV_PREFIX}{field_name.upper()}" in os.environ:
                merged_data[field_name] = env_dict[field_name]

        return NoteweaveConfig(**merged_data)

    def save_config(self, config: NoteweaveConfig) -> None:
        self.config_dir.mkdir(parents=True, exist_ok=True)
        save_noteweave_config(self.config_file, config)


def save_noteweave_config(file_path: Path, config: NoteweaveConfig) -> None:
    """Save configuration to file."""
    config_dict = config.model_dump(mode="json")
    file_path.write_text(json.dumps(config_dict, indent=2))


def init_cli_logging(config: NoteweaveConfig) -> None:  # pragma: no cover
    """Initialize logging for CLI commands - file only.

    CLI commands should not log to stdout to avoid interfering with
    command output.
    """
    setup_logging(
        log_level=config.log_level,
        log_to_file=config.log_to_file,
        log_dir=config.data_dir,
    )

"""Configuration module for sticky-situation."""

import logging
import os
import socket
from pathlib import Path

from dotenv import load_dotenv
from pydantic import BaseModel, Field, field_validator

# User-level config file, loaded before the model reads the environment.
CONFIG_DIR = Path(
    os.getenv("STICKY_CONFIG_DIR", str(Path.home() / ".config" / "sticky-situation"))
)
CONFIG_FILE = CONFIG_DIR / ".env"
load_dotenv(CONFIG_FILE)

DATA_DIR = Path.home() / ".local" / "share" / "sticky-situation"

DEFAULT_STICKIES_DIR = (
    Path.home() / "Library" / "Containers" / "com.apple.Stickies" / "Data"
    / "Library" / "Stickies"
)

CONFIG_TEMPLATE = (
    "# sticky-situation configuration\n"
    "# Uncomment and edit any setting to override the default.\n"
    "# STICKY_STICKIES_DIR={stickies_dir}\n"
    "# STICKY_DATABASE_PATH={database_path}\n"
    "# STICKY_LOG_CONFLICTS=true\n"
    "# STICKY_CONFLICT_LOG_PATH={conflict_log_path}\n"
    "# STICKY_FAIL_FAST=true\n"
    "# STICKY_RELOAD_AFTER_SYNC=false\n"
    "# STICKY_ORIGIN_HOST={origin_host}\n"
)

logger = logging.getLogger(__name__)


def _env_flag(name: str, default: str) -> bool:
    return os.getenv(name, default).lower() in ("true", "1", "yes")


def _default_host() -> str:
    try:
        return socket.gethostname() or "unknown"
    except OSError:
        return "unknown"


class StickyConfig(BaseModel):
    """Configuration for sticky-situation."""

    # Directory Stickies.app keeps its .rtfd bundles and state file in
    stickies_dir: Path = Field(
        default_factory=lambda: Path(
            os.getenv("STICKY_STICKIES_DIR", str(DEFAULT_STICKIES_DIR))
        )
    )
    # Name of the window-state plist inside stickies_dir
    state_file_name: str = Field(
        default_factory=lambda: os.getenv("STICKY_STATE_FILE", ".SavedStickiesState")
    )
    # Database configuration
    database_path: Path = Field(
        default_factory=lambda: Path(
            os.getenv("STICKY_DATABASE_PATH", str(DATA_DIR / "stickies.db"))
        )
    )
    # Conflict logging: every last-write-wins overwrite is recorded here
    log_conflicts: bool = Field(
        default_factory=lambda: _env_flag("STICKY_LOG_CONFLICTS", "true")
    )
    conflict_log_path: Path = Field(
        default_factory=lambda: Path(
            os.getenv("STICKY_CONFLICT_LOG_PATH", str(DATA_DIR / "conflicts.log"))
        )
    )
    # Logging
    log_dir: Path = Field(
        default_factory=lambda: Path(os.getenv("STICKY_LOG_DIR", str(DATA_DIR / "logs")))
    )
    log_level: str = Field(default_factory=lambda: os.getenv("STICKY_LOG_LEVEL", "INFO"))
    # Sync behaviour
    fail_fast: bool = Field(default_factory=lambda: _env_flag("STICKY_FAIL_FAST", "true"))
    reload_after_sync: bool = Field(
        default_factory=lambda: _env_flag("STICKY_RELOAD_AFTER_SYNC", "false")
    )
    # Provenance label stored with every record this machine writes
    origin_host: str = Field(
        default_factory=lambda: os.getenv("STICKY_ORIGIN_HOST") or _default_host()
    )

    model_config = {"validate_assignment": True}

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate that the log level is one logging understands."""
        level = v.upper()
        if level not in ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"):
            raise ValueError(f"Unknown log level: {v}")
        return level

    @property
    def state_file(self) -> Path:
        """Path of the Stickies window-state plist."""
        return self.stickies_dir / self.state_file_name

    def ensure_dirs(self) -> None:
        """Create the parent directories of the database and conflict log."""
        self.database_path.parent.mkdir(parents=True, exist_ok=True)
        self.conflict_log_path.parent.mkdir(parents=True, exist_ok=True)

    def ensure_config_exists(self) -> Path:
        """Return the user config file, writing a commented template if absent."""
        if not CONFIG_FILE.exists():
            CONFIG_DIR.mkdir(parents=True, exist_ok=True)
            CONFIG_FILE.write_text(
                CONFIG_TEMPLATE.format(
                    stickies_dir=self.stickies_dir,
                    database_path=self.database_path,
                    conflict_log_path=self.conflict_log_path,
                    origin_host=self.origin_host,
                ),
                encoding="utf-8",
            )
            logger.info(f"Wrote default configuration to {CONFIG_FILE}")
        return CONFIG_FILE


# Create a global config instance
config = StickyConfig()

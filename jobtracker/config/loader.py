"""Configuration file I/O."""

from __future__ import annotations

import json
import sys
from pathlib import Path

from loguru import logger
from pydantic import ValidationError

from .schema import Config, DEFAULT_HOME


CONFIG_FILE = DEFAULT_HOME / "config.json"


def load_config(path: Path | None = None) -> Config:
    """Load configuration from file, falling back to defaults."""
    config_file = path or CONFIG_FILE
    if config_file.exists():
        try:
            raw = json.loads(config_file.read_text())
            logger.debug(f"Loaded config from {config_file}")
            return Config(**raw)
        except json.JSONDecodeError as e:
            logger.warning(f"Config file is corrupted: {e}, using defaults")
            return Config()
        except ValidationError as e:
            logger.warning(f"Invalid config in {config_file}: {e}, using defaults")
            return Config()
    return Config()


def save_config(config: Config, path: Path | None = None) -> None:
    """Save configuration to file."""
    config_file = path or CONFIG_FILE
    config_file.parent.mkdir(parents=True, exist_ok=True)
    data = config.model_dump(mode="json")
    config_file.write_text(json.dumps(data, indent=2) + "\n")
    logger.info(f"Saved config to {config_file}")


def ensure_dirs(config: Config) -> None:
    """Ensure all required directories exist."""
    for d in [config.home_dir, config.store_path.parent, config.logs_dir]:
        d.mkdir(parents=True, exist_ok=True)


def configure_logging(config: Config) -> None:
    """Route loguru output according to the logging section."""
    logger.remove()
    logger.add(sys.stderr, level=config.logging.level.upper())
    if config.logging.file:
        logger.add(
            config.logging.file,
            level=config.logging.level.upper(),
            rotation="10 MB",
            retention=5,
        )

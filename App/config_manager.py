"""Configuration persistence manager for the coloring book maker.

This module handles loading and saving of processing settings to/from JSON files.
"""

import json
import logging
from dataclasses import asdict, fields
from pathlib import Path
from typing import Optional, Tuple

from models import (
    CONFIG_FILE,
    DominantColorConfig,
    LineArtConfig,
    PaletteMatchConfig,
    ProcessingConfig,
)

logger = logging.getLogger(__name__)


class ConfigManager:
    """Handles loading and saving of processing configuration."""

    def __init__(self, config_path: Path = CONFIG_FILE):
        """Initialize config manager.

        Args:
            config_path: Path to configuration file (defaults to ~/.coloring_book_config.json)
        """
        self.config_path = Path(config_path)

    def load(self) -> ProcessingConfig:
        """Load configuration from file, returning defaults if not found.

        Returns:
            ProcessingConfig with loaded or default values
        """
        config = ProcessingConfig()

        if not self.config_path.exists():
            return config

        try:
            with open(self.config_path, "r") as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            logger.warning(f"Could not load config file {self.config_path}: {e}")
            return config

        if not isinstance(data, dict):
            logger.warning(f"Ignoring config file {self.config_path}: expected a JSON object")
            return config

        # Update config with loaded values (fallback to defaults)
        config.line_art = _merge(LineArtConfig(), data.get("line_art"))
        config.colors = _merge(DominantColorConfig(), data.get("colors"))
        config.matching = _merge(PaletteMatchConfig(), data.get("matching"))
        logger.info(f"Loaded configuration from {self.config_path}")
        return config

    def save(self, config: ProcessingConfig) -> Tuple[bool, Optional[str]]:
        """Save configuration to file.

        Args:
            config: ProcessingConfig to save

        Returns:
            Tuple of (success: bool, error_message: Optional[str])
        """
        try:
            with open(self.config_path, "w") as f:
                json.dump(asdict(config), f, indent=2)
            return True, None
        except OSError as e:
            return False, str(e)


def _merge(section, values):
    """Copy known keys from values onto a settings dataclass."""
    if not isinstance(values, dict):
        return section
    for f in fields(section):
        if f.name in values:
            setattr(section, f.name, values[f.name])
    return section

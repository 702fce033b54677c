"""
Configuration service for SiteSketch.

This module handles loading, saving, and managing application settings.
Configuration is stored as JSON in ~/.config/sitesketch/config.json following
the XDG Base Directory Specification.
"""

import copy
import json
import logging
import os
from pathlib import Path
from typing import Any, Dict, Optional, Tuple

from sitesketch.services.logging_service import get_logger

# Default configuration directory following XDG Base Directory Specification
DEFAULT_CONFIG_DIR = Path.home() / ".config" / "sitesketch"
DEFAULT_CONFIG_FILE = DEFAULT_CONFIG_DIR / "config.json"

# Overrides an empty stored key
API_KEY_ENV_VAR = "GEMINI_API_KEY"

PREVIEW_ENGINES = ("webengine", "text")

# Default configuration values
DEFAULT_CONFIG: Dict[str, Any] = {
    # Gemini API key; leave empty to be prompted on startup
    "api_key": "",
    "model": "gemini-2.5-pro",
    # "webengine" renders with Chromium, "text" uses QTextBrowser (no scripts)
    "preview_engine": "webengine",
    "annotation": {
        # Margin around the drawn strokes, in overlay pixels
        "padding": 12,
        "jpeg_quality": 90,
        # RGBA
        "stroke_color": [255, 22, 22, 178],
        "stroke_width": 4,
    },
    "logging": {
        # DEBUG, INFO, WARNING or ERROR
        "level": "INFO",
        "to_file": True,
    },
}


def _is_int(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


class ConfigService:
    """
    Service for managing application configuration.

    Handles loading, saving, and accessing configuration values.
    Provides sensible defaults when config file is missing or corrupted.
    """

    def __init__(self, config_path: Optional[Path] = None) -> None:
        """
        Initialize the ConfigService.

        Args:
            config_path: Optional path to config file. Defaults to
                        ~/.config/sitesketch/config.json
        """
        self._logger = get_logger(__name__)
        self._config_path = config_path or DEFAULT_CONFIG_FILE
        self._config: Dict[str, Any] = {}

        self._load()

    def _load(self) -> None:
        """Load configuration from file, using defaults if needed."""
        self._config = copy.deepcopy(DEFAULT_CONFIG)

        if not self._config_path.exists():
            self._logger.info(
                f"Config file not found at {self._config_path}. Using defaults."
            )
            self._save_to_file()
            return

        try:
            with open(self._config_path, "r", encoding="utf-8") as f:
                loaded_config = json.load(f)

            # Merge loaded config with defaults (loaded values override defaults)
            if isinstance(loaded_config, dict):
                self._deep_merge(self._config, loaded_config)
                self._logger.info(f"Configuration loaded from {self._config_path}")
                # Save back to ensure any new default keys are persisted
                self._save_to_file()
            else:
                raise ValueError("Config file does not contain a valid JSON object")

        except (json.JSONDecodeError, ValueError) as e:
            self._logger.warning(
                f"Config file corrupted or invalid: {e}. Recreating with defaults."
            )
            self._config = copy.deepcopy(DEFAULT_CONFIG)
            self._save_to_file()

        except (OSError, PermissionError) as e:
            self._logger.warning(
                f"Could not read config file: {e}. Using defaults."
            )

    def _deep_merge(self, base: Dict, override: Dict) -> None:
        """Recursively merge override dict into base dict."""
        for key, value in override.items():
            if key in base and isinstance(base[key], dict) and isinstance(value, dict):
                self._deep_merge(base[key], value)
            else:
                base[key] = value

    def _save_to_file(self) -> None:
        """Save current configuration to file."""
        try:
            self._config_path.parent.mkdir(parents=True, exist_ok=True)

            with open(self._config_path, "w", encoding="utf-8") as f:
                json.dump(self._config, f, indent=2)

            self._logger.debug(f"Configuration saved to {self._config_path}")

        except (OSError, PermissionError) as e:
            self._logger.error(f"Could not save config file: {e}")

    def get(self, key: str, default: Any = None) -> Any:
        """
        Get a configuration value.

        Args:
            key: The configuration key to retrieve.
            default: Default value if key doesn't exist.

        Returns:
            The configuration value, or default if not found.
        """
        return self._config.get(key, default)

    def set(self, key: str, value: Any) -> None:
        """
        Set a configuration value (in memory only).

        Args:
            key: The configuration key to set.
            value: The value to set.

        Note:
            Call save() to persist changes to disk.
        """
        self._config[key] = value
        # Never echo the key itself into the log
        shown = "***" if key == "api_key" else value
        self._logger.debug(f"Config key '{key}' set to '{shown}'")

    def save(self) -> None:
        """Persist current configuration to disk."""
        self._save_to_file()

    def _section_value(self, section_name: str, key: str) -> Any:
        section = self.get(section_name, {})
        if not isinstance(section, dict):
            section = {}
        return section.get(key, DEFAULT_CONFIG[section_name][key])

    def _annotation_value(self, key: str) -> Any:
        return self._section_value("annotation", key)

    # ─── Chat Settings ────────────────────────────────────────────────────

    @property
    def api_key(self) -> str:
        """Get the API key, falling back to the environment."""
        stored = self.get("api_key", "") or ""
        return stored or os.environ.get(API_KEY_ENV_VAR, "")

    @property
    def model(self) -> str:
        """Get the model name used for new chat sessions."""
        return self.get("model", DEFAULT_CONFIG["model"])

    # ─── Preview Settings ─────────────────────────────────────────────────

    @property
    def preview_engine(self) -> str:
        """Get the preview engine ("webengine" or "text")."""
        engine = self.get("preview_engine", DEFAULT_CONFIG["preview_engine"])
        if engine not in PREVIEW_ENGINES:
            self._logger.warning(f"Unknown preview engine '{engine}', using default")
            return DEFAULT_CONFIG["preview_engine"]
        return engine

    # ─── Annotation Settings ──────────────────────────────────────────────

    @property
    def annotation_padding(self) -> float:
        """Get the crop padding around drawn strokes."""
        padding = self._annotation_value("padding")
        if not _is_number(padding) or padding < 0:
            return DEFAULT_CONFIG["annotation"]["padding"]
        return padding

    @property
    def jpeg_quality(self) -> int:
        """Get the JPEG quality (0-100) for captured annotations."""
        quality = self._annotation_value("jpeg_quality")
        if not _is_int(quality) or not 0 <= quality <= 100:
            return DEFAULT_CONFIG["annotation"]["jpeg_quality"]
        return quality

    @property
    def stroke_color(self) -> Tuple[int, int, int, int]:
        """Get the annotation stroke color as an RGBA tuple."""
        color = self._annotation_value("stroke_color")
        if (
            not isinstance(color, (list, tuple))
            or len(color) != 4
            or not all(_is_int(c) and 0 <= c <= 255 for c in color)
        ):
            color = DEFAULT_CONFIG["annotation"]["stroke_color"]
        return tuple(color)

    @property
    def stroke_width(self) -> int:
        """Get the annotation stroke width in overlay pixels."""
        width = self._annotation_value("stroke_width")
        if not _is_int(width) or width <= 0:
            return DEFAULT_CONFIG["annotation"]["stroke_width"]
        return width

    # ─── Logging Settings ─────────────────────────────────────────────────

    @property
    def log_level(self) -> int:
        """Get the root log level as a logging constant."""
        name = self._section_value("logging", "level")
        level = logging.getLevelName(name.upper()) if isinstance(name, str) else None
        if not _is_int(level):
            return logging.getLevelName(DEFAULT_CONFIG["logging"]["level"])
        return level

    @property
    def log_to_file(self) -> bool:
        """Get whether a daily log file is written next to the console output."""
        to_file = self._section_value("logging", "to_file")
        if not isinstance(to_file, bool):
            return DEFAULT_CONFIG["logging"]["to_file"]
        return to_file

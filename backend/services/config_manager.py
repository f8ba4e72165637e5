"""
Configuration Manager - Load studio settings from disk and environment
"""

from __future__ import annotations

import copy
import json
import logging
import os
import tempfile
from collections.abc import Mapping
from pathlib import Path
from typing import Any

logger = logging.getLogger(__name__)

# Environment variable -> (config key, type)
ENV_OVERRIDES: dict[str, tuple[str, type]] = {
    "STUDIO_DEFAULT_MODEL": ("defaultModelKey", str),
    "STUDIO_MAX_STREAM_SECONDS": ("maxStreamSeconds", float),
    "STUDIO_MAX_STREAM_CHARS": ("maxStreamChars", int),
    "STUDIO_REQUEST_TIMEOUT": ("requestTimeout", float),
}


def default_config() -> dict[str, Any]:
    """Get default configuration"""
    return {
        "defaultModelKey": "groq/gpt-oss-120b",
        "temperature": 0.7,
        "maxTokens": 16384,
        "requestTimeout": 120,
        "maxStreamSeconds": 600,
        "maxStreamChars": 4_000_000,
        "openRetries": 2,
        "retryBackoff": 1.0,
        "server": {"host": "0.0.0.0", "port": 5173},
        "corsOrigins": ["*"],
    }


class ConfigManager:
    """Studio settings: JSON file merged over defaults, then environment overrides"""

    def __init__(
        self,
        config_file: str | Path | None = None,
        environ: Mapping[str, str] | None = None,
    ):
        self._environ = environ if environ is not None else os.environ
        self._config_file = Path(config_file) if config_file else self._locate_config_file()
        self._config = self._load_config()

    def _locate_config_file(self) -> Path:
        # 1. explicit directory from the environment, 2. home directory
        config_dir = self._environ.get("STUDIO_CONFIG_DIR") or os.path.expanduser("~/.codegen_studio")
        path = Path(config_dir) / "config.json"
        if path.parent.is_dir():
            return path

        # 3. temp directory as a last resort
        fallback = Path(tempfile.gettempdir()) / "codegen_studio" / "config.json"
        logger.debug("Config directory %s not found, using %s", config_dir, fallback)
        return fallback

    @property
    def config_file(self) -> Path:
        return self._config_file

    def _load_config(self) -> dict[str, Any]:
        """Load configuration from file and apply environment overrides"""
        config = default_config()

        if self._config_file.exists():
            try:
                with open(self._config_file) as f:
                    stored = json.load(f)
                if isinstance(stored, dict):
                    config.update(stored)
                else:
                    logger.warning("Ignoring non-object config in %s", self._config_file)
            except (json.JSONDecodeError, OSError) as e:
                logger.warning("Error loading config %s: %s", self._config_file, e)

        self._apply_env_overrides(config)
        return config

    def _apply_env_overrides(self, config: dict[str, Any]) -> None:
        for env_name, (key, cast) in ENV_OVERRIDES.items():
            raw = self._environ.get(env_name)
            if not raw:
                continue
            try:
                config[key] = cast(raw)
            except ValueError:
                logger.warning("Ignoring invalid %s=%r", env_name, raw)

        port = self._environ.get("APP_PORT")
        if port:
            try:
                config["server"] = {**config.get("server", {}), "port": int(port)}
            except ValueError:
                logger.warning("Ignoring invalid APP_PORT=%r", port)

    def get_config(self) -> dict[str, Any]:
        """Get a copy of the current configuration"""
        return copy.deepcopy(self._config)

    def get(self, key: str, default=None):
        """Get specific config value"""
        return self._config.get(key, default)

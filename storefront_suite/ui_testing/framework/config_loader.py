"""
================================================================================
Storefront Suite Settings
================================================================================

Reads ``config/e2e_config.yaml`` once per process and lets any dotted key be
overridden from the environment, so CI can point the suite at another
storefront or tighten interaction timeouts without editing the file.

    storefront.base_url             -> STOREFRONT_BASE_URL
    interaction.default_timeout_ms  -> INTERACTION_DEFAULT_TIMEOUT_MS
    browser.headless                -> BROWSER_HEADLESS

Environment values arrive as strings and are coerced to the type of the
caller's default (bool, int, float).

================================================================================
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any, Dict, Optional

import yaml
from loguru import logger


DEFAULT_CONFIG_PATH = (
    Path(__file__).parent.parent.parent.parent / "config" / "e2e_config.yaml"
)

# Points every ConfigLoader in the process at another YAML file
CONFIG_PATH_ENV = "E2E_CONFIG_PATH"

_TRUTHY = ("true", "1", "yes", "on")


class ConfigurationError(Exception):
    """The settings file exists but could not be parsed."""


def env_key_for(key: str) -> str:
    """``interaction.settle_ms`` -> ``INTERACTION_SETTLE_MS``."""
    return key.upper().replace(".", "_")


def _coerce(raw: str, like: Any) -> Any:
    if like is None:
        return raw
    if isinstance(like, bool):
        return raw.lower() in _TRUTHY
    for numeric in (int, float):
        if isinstance(like, numeric):
            try:
                return numeric(raw)
            except ValueError:
                return raw
    return raw


class ConfigLoader:
    """
    Process-wide settings: environment first, then YAML, then the caller's default.

    Example:
        config = ConfigLoader()
        base_url = config.get("storefront.base_url", "http://localhost:3000")
        budget = config.get("interaction.default_timeout_ms", 5000)
    """

    _instance: Optional["ConfigLoader"] = None
    _config: Dict[str, Any] = {}

    def __new__(cls, config_path: Optional[Path] = None) -> "ConfigLoader":
        if cls._instance is None:
            cls._instance = super().__new__(cls)
            cls._instance._initialized = False
        return cls._instance

    def __init__(self, config_path: Optional[Path] = None) -> None:
        """
        Args:
            config_path: YAML file; ignored once the singleton exists.
                        Falls back to $E2E_CONFIG_PATH, then DEFAULT_CONFIG_PATH.
        """
        if getattr(self, "_initialized", False):
            return

        self._config_path = Path(config_path or os.environ.get(CONFIG_PATH_ENV) or DEFAULT_CONFIG_PATH)
        self._load_config()
        self._initialized = True

    def _load_config(self) -> None:
        if not self._config_path.exists():
            logger.warning(f"No settings file at {self._config_path}; environment and defaults only")
            self._config = {}
            return

        try:
            with open(self._config_path, "r", encoding="utf-8") as f:
                self._config = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise ConfigurationError(f"Cannot parse {self._config_path}: {e}") from e
        logger.debug(f"Settings loaded from {self._config_path}")

    @property
    def config_path(self) -> Path:
        return self._config_path

    def get(self, key: str, default: Any = None) -> Any:
        """
        Look up a dotted key.

        Args:
            key: e.g. "storefront.whatsapp_number"
            default: Returned when the key is unset; its type drives env coercion

        Returns:
            The environment override, the YAML value, or ``default``
        """
        raw = os.environ.get(env_key_for(key))
        if raw is not None:
            return _coerce(raw, default)

        node: Any = self._config
        for part in key.split("."):
            node = node.get(part) if isinstance(node, dict) else None
            if node is None:
                return default
        return node

    def get_section(self, section: str) -> Dict[str, Any]:
        """Shallow copy of a top-level block such as ``performance``; ``{}`` when absent."""
        return dict(self._config.get(section) or {})

    def reload(self) -> None:
        self._load_config()
        logger.info(f"Settings reloaded from {self._config_path}")

    @classmethod
    def reset(cls) -> None:
        """Forget the singleton so the next ConfigLoader() reads its file again."""
        cls._instance = None
        cls._config = {}


__all__ = [
    "CONFIG_PATH_ENV",
    "ConfigLoader",
    "ConfigurationError",
    "DEFAULT_CONFIG_PATH",
    "env_key_for",
]

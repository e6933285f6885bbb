"""Configuration manager for Factory Admin using TOML files."""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any, Dict, Optional

import toml

BASE_DIR = Path(os.environ.get("FACTORY_ADMIN_HOME", str(Path.home() / ".factory-admin"))).expanduser()
CONFIG_FILE = BASE_DIR / "config.toml"


# Defaults for each config section
DEFAULT_CONFIGS = {
    "api": {
        "url": "https://stratera-core-platform-api-test.azurewebsites.net",
        "timeout": 15.0,
        "use_mock": False,
    },
    "layout": {
        "level_height": 150.0,
        "node_padding": 250.0,
    },
}


def load_full_config() -> Dict[str, Any]:
    """Load the entire TOML config (all sections)."""
    if not CONFIG_FILE.exists():
        return {}
    try:
        with open(CONFIG_FILE, "r") as f:
            return toml.load(f)
    except (OSError, toml.TomlDecodeError):
        return {}


def _save_full_config(config: Dict[str, Any]) -> bool:
    """Write entire config dict to TOML file, preserving all sections."""
    CONFIG_FILE.parent.mkdir(parents=True, exist_ok=True)
    try:
        with open(CONFIG_FILE, "w") as f:
            toml.dump(config, f)
        return True
    except OSError:
        return False


def _load_section(name: str) -> Dict[str, Any]:
    merged = DEFAULT_CONFIGS[name].copy()
    merged.update(load_full_config().get(name, {}))
    return merged


# ------------------------------------------------------------------
# Platform API configuration
# ------------------------------------------------------------------

def load_api_config() -> Dict[str, Any]:
    """Load the ``[api]`` section merged over the defaults.

    Returns:
        Dict with ``url``, ``timeout`` and ``use_mock`` keys.
    """
    return _load_section("api")


def save_api_config(url: str = "", timeout: float = 0.0, use_mock: Optional[bool] = None) -> bool:
    """Save platform API settings to the config TOML.

    Only the values that are given are written; other sections
    (e.g. ``[layout]``) are preserved.

    Args:
        url: Base URL of the asset platform API
        timeout: Request timeout in seconds
        use_mock: Force the built-in mock hierarchy instead of the API

    Returns:
        True if saved successfully, False otherwise
    """
    config = load_full_config()
    section = config.get("api", {})
    if url:
        section["url"] = url.rstrip("/")
    if timeout:
        section["timeout"] = float(timeout)
    if use_mock is not None:
        section["use_mock"] = bool(use_mock)
    config["api"] = section
    return _save_full_config(config)


# ------------------------------------------------------------------
# Layout configuration
# ------------------------------------------------------------------

def load_layout_config() -> Dict[str, Any]:
    """Load the ``[layout]`` section merged over the defaults."""
    return _load_section("layout")


def save_layout_config(level_height: float = 0.0, node_padding: float = 0.0) -> bool:
    """Save graph layout spacing to config TOML. Preserves ``[api]``."""
    config = load_full_config()
    section = config.get("layout", {})
    if level_height:
        section["level_height"] = float(level_height)
    if node_padding:
        section["node_padding"] = float(node_padding)
    config["layout"] = section
    return _save_full_config(config)


def clear_config() -> bool:
    """Remove the config file, resetting every section to its defaults."""
    if CONFIG_FILE.exists():
        CONFIG_FILE.unlink()
        return True
    return False

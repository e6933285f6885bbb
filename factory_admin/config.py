"""Configuration paths and platform settings for Factory Admin."""

from __future__ import annotations

import os

from .config_manager import BASE_DIR, load_api_config, load_layout_config

SNAPSHOT_DB = BASE_DIR / "snapshots.db"
STATE_FILE = BASE_DIR / "state.json"

# Load configuration from TOML file (~/.factory-admin/config.toml, set via `fa config set-api`)
_api_config = load_api_config()
_layout_config = load_layout_config()

# Environment variables win over the TOML file
PLATFORM_API_URL = os.environ.get("STRATERA_PLATFORM_API_URL", _api_config["url"]).rstrip("/")
REQUEST_TIMEOUT = float(os.environ.get("FACTORY_ADMIN_TIMEOUT", _api_config["timeout"]))
USE_MOCK_API = os.environ.get("FACTORY_ADMIN_MOCK_API", str(_api_config["use_mock"])).lower() in {"1", "true", "yes"}

# Graph layout spacing, in layout units
LEVEL_HEIGHT = float(_layout_config["level_height"])
NODE_PADDING = float(_layout_config["node_padding"])

# Effective-dated assets that are still current carry this end date
OPEN_EFF_DATE = "9999-12-31"

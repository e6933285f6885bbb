"""Pytest configuration and fixtures for Factory Admin tests."""

import json
import urllib.error
from pathlib import Path
from typing import Any, Dict, List

import pytest

from factory_admin.models import Link, Node


@pytest.fixture(autouse=True)
def _no_network(monkeypatch):
    """Refuse every outgoing HTTP request.

    The platform client uses ``urllib.request.urlopen``; with this in place
    every service call falls back to mock data unless a test installs its
    own fake transport.
    """
    def _refuse(*args, **kwargs):
        raise urllib.error.URLError("network disabled in tests")

    monkeypatch.setattr("urllib.request.urlopen", _refuse)


@pytest.fixture(autouse=True)
def temp_home(tmp_path: Path, monkeypatch) -> Path:
    """Point config, cache and state files at a temporary directory."""
    home = tmp_path / "factory-admin"
    monkeypatch.setattr("factory_admin.config_manager.BASE_DIR", home)
    monkeypatch.setattr("factory_admin.config_manager.CONFIG_FILE", home / "config.toml")
    monkeypatch.setattr("factory_admin.config.SNAPSHOT_DB", home / "snapshots.db")
    monkeypatch.setattr("factory_admin.config.STATE_FILE", home / "state.json")
    monkeypatch.setattr("factory_admin.config.PLATFORM_API_URL", "https://platform.test")
    monkeypatch.setattr("factory_admin.config.REQUEST_TIMEOUT", 1.0)
    monkeypatch.setattr("factory_admin.config.USE_MOCK_API", False)
    monkeypatch.setattr("factory_admin.config.LEVEL_HEIGHT", 150.0)
    monkeypatch.setattr("factory_admin.config.NODE_PADDING", 250.0)
    return home


class FakeResponse:
    def __init__(self, payload: Any) -> None:
        self._body = json.dumps(payload).encode("utf-8")

    def read(self) -> bytes:
        return self._body

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        return False


@pytest.fixture
def fake_platform(monkeypatch):
    """Install a scripted transport.

    Returns a ``(routes, calls)`` pair: ``routes`` maps ``(METHOD, path)``
    to a payload or an HTTP status code to fail with; ``calls`` records
    every ``(METHOD, full_url, body)`` seen.
    """
    routes: Dict[tuple, Any] = {}
    calls: List[tuple] = []

    def _urlopen(req, timeout=None):
        method = req.get_method()
        url = req.full_url
        body = json.loads(req.data.decode("utf-8")) if req.data else None
        calls.append((method, url, body))
        path = url.replace("https://platform.test", "", 1).split("?", 1)[0]
        result = routes.get((method, path))
        if result is None:
            raise urllib.error.HTTPError(url, 404, "Not Found", {}, None)
        if isinstance(result, int):
            raise urllib.error.HTTPError(url, result, "Error", {}, None)
        return FakeResponse(result)

    monkeypatch.setattr("urllib.request.urlopen", _urlopen)
    return routes, calls


# ------------------------------------------------------------------
# Sample data
# ------------------------------------------------------------------


@pytest.fixture
def platform_assets() -> List[Dict[str, Any]]:
    """Flat asset list as the platform returns it."""
    return [
        {"asset_id": "plant", "name": "Pune Plant", "type": "Facility", "status": "active", "code": "PUN",
         "parameters": {"specs": {"demographics": {"city": "Pune", "country": "India"}}}},
        {"asset_id": "assembly", "name": "Assembly", "type": "area", "parent_id": "plant"},
        {"asset_id": "mf-east", "name": "East Mini Factory", "type": "minifactory", "parent_id": "assembly"},
        {"asset_id": "line-7", "name": "Line 7", "category": "line", "parent_id": "mf-east"},
        {"asset_id": "ws-op10", "name": "OP10 Press", "asset_type": "workstation", "parent_id": "line-7"},
        {"asset_id": "ws-op20", "description": "OP20 Screwing", "parent_id": "line-7"},
    ]


@pytest.fixture
def sample_nodes() -> List[Node]:
    return [
        Node(id="F1", label="Facility", type="facility"),
        Node(id="A1", label="Beta Area", type="area"),
        Node(id="A2", label="Alpha Area", type="area"),
        Node(id="L1", label="Line", type="line"),
        Node(id="W1", label="Station", type="workstation"),
    ]


@pytest.fixture
def sample_links() -> List[Link]:
    return [
        Link("F1", "A1"),
        Link("F1", "A2"),
        Link("A1", "L1"),
        # Delivered child→parent; rank decides the direction
        Link("W1", "L1"),
    ]

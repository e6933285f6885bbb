"""HTTP client for the asset platform API."""

from __future__ import annotations

import json
import logging
import urllib.error
import urllib.parse
import urllib.request
from typing import Any, Dict, List, Optional

from . import config

logger = logging.getLogger(__name__)


class PlatformAPIError(RuntimeError):
    """The platform API could not be reached or answered with an error."""

    def __init__(self, message: str, status: Optional[int] = None) -> None:
        self.status = status
        self.message = message
        super().__init__(f"API error: {status} - {message}" if status else message)


class AssetNotFoundError(PlatformAPIError):
    pass


class PlatformClient:
    """Thin JSON wrapper over ``/assets``.

    Every call raises :class:`PlatformAPIError` on failure; falling back to
    mock data is the caller's decision.
    """

    def __init__(self, base_url: Optional[str] = None, timeout: Optional[float] = None) -> None:
        self.base_url = (base_url or config.PLATFORM_API_URL).rstrip("/")
        self.timeout = timeout if timeout is not None else config.REQUEST_TIMEOUT

    # ------------------------------------------------------------------
    # Transport
    # ------------------------------------------------------------------

    def _url(self, path: str, query: Optional[Dict[str, str]] = None) -> str:
        url = f"{self.base_url}{path}"
        if query:
            url = f"{url}?{urllib.parse.urlencode(query)}"
        return url

    def _request(self, method: str, path: str, body: Any = None, query: Optional[Dict[str, str]] = None) -> Any:
        url = self._url(path, query)
        data = json.dumps(body).encode("utf-8") if body is not None else None
        req = urllib.request.Request(
            url,
            data=data,
            headers={"Content-Type": "application/json", "Accept": "application/json"},
            method=method,
        )
        logger.debug("%s %s", method, url)
        try:
            with urllib.request.urlopen(req, timeout=self.timeout) as resp:
                raw = resp.read().decode("utf-8")
        except urllib.error.HTTPError as e:
            detail = e.read().decode("utf-8", errors="replace") if e.fp is not None else ""
            if e.code == 404:
                raise AssetNotFoundError(detail or f"{path} not found", status=404) from e
            raise PlatformAPIError(detail or e.reason, status=e.code) from e
        except (urllib.error.URLError, TimeoutError, OSError) as e:
            raise PlatformAPIError(f"{method} {url} failed: {e}") from e

        if not raw.strip():
            return {}
        try:
            return json.loads(raw)
        except json.JSONDecodeError as e:
            raise PlatformAPIError(f"Invalid JSON from {url}: {e}") from e

    # ------------------------------------------------------------------
    # Assets
    # ------------------------------------------------------------------

    def list_assets(self) -> List[Dict[str, Any]]:
        """All currently effective assets."""
        data = self._request("GET", "/assets", query={"eff_date_to": config.OPEN_EFF_DATE})
        if isinstance(data, dict) and isinstance(data.get("assets"), list):
            data = data["assets"]
        if not isinstance(data, list):
            raise PlatformAPIError(f"Expected a list of assets, got {type(data).__name__}")
        logger.info("Fetched %d assets from %s", len(data), self.base_url)
        return data

    def get_asset(self, asset_id: str) -> Dict[str, Any]:
        path = f"/assets/{urllib.parse.quote(asset_id, safe='')}"
        try:
            return self._request("GET", path, query={"eff_date_to": config.OPEN_EFF_DATE})
        except AssetNotFoundError as e:
            raise AssetNotFoundError(f"Asset with ID {asset_id} not found", status=404) from e

    def create_asset(self, record: Dict[str, Any]) -> Dict[str, Any]:
        return self._request("POST", "/assets", body=record)

    def update_asset(self, asset_id: str, record: Dict[str, Any]) -> Dict[str, Any]:
        """Update an asset, trying each write style the platform has accepted.

        Order: ``PUT /assets/{id}``, ``PATCH /assets/{id}``, then
        ``PATCH /assets/{id}/{eff_date_to}``. The first success wins.
        """
        quoted = urllib.parse.quote(asset_id, safe="")
        attempts = [
            ("PUT", f"/assets/{quoted}", record),
            ("PATCH", f"/assets/{quoted}", record),
            ("PATCH", f"/assets/{quoted}/{config.OPEN_EFF_DATE}", {**record, "eff_date_to": config.OPEN_EFF_DATE}),
        ]
        errors: List[str] = []
        for method, path, body in attempts:
            try:
                return self._request(method, path, body=body)
            except PlatformAPIError as e:
                logger.debug("%s %s failed: %s", method, path, e)
                errors.append(f"{method} {path}: {e}")
        raise PlatformAPIError("All update methods failed; " + "; ".join(errors))

    def delete_asset(self, asset_id: str) -> Dict[str, Any]:
        return self._request("DELETE", f"/assets/{urllib.parse.quote(asset_id, safe='')}")

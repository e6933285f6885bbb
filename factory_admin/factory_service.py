"""Read/transform/write layer between the platform API and the hierarchy views.

Every call degrades to mock data when the platform is unreachable so the
explorer keeps working in demos.
"""

from __future__ import annotations

import copy
import logging
import uuid
from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from typing import Any, Dict, List, Optional

from . import config
from .hierarchy import DEFAULT_RANK_TABLE, RankTable
from .mock_data import mock_hierarchy, mock_node
from .models import PARENT_CHILD
from .normalizer import (
    ID_ACCESSORS,
    PARENT_ACCESSORS,
    TYPE_ACCESSORS,
    first_present,
    normalize_asset,
    normalize_type,
)
from .platform_client import PlatformAPIError, PlatformClient

logger = logging.getLogger(__name__)

INVALID_NODE_IDS = {"", "0", "undefined", "null"}
ROOT_NODE_ID = "0"
NODE_ID_PREFIX = "node-"

DEFAULT_SHIFTS = {
    "Shift 1": {"start_time": "00:00:00", "end_time": "07:59:59", "target": "500"},
    "Shift 2": {"start_time": "08:00:00", "end_time": "15:59:59", "target": "500"},
    "Shift 3": {"start_time": "16:00:00", "end_time": "23:59:59", "target": "500"},
}


class ServiceError(ValueError):
    """A request was rejected before reaching the platform."""


@dataclass
class HierarchyPayload:
    nodes: List[Dict[str, Any]] = field(default_factory=list)
    links: List[Dict[str, Any]] = field(default_factory=list)
    source: str = "api"

    def to_dict(self) -> Dict[str, Any]:
        return {"nodes": self.nodes, "links": self.links, "source": self.source}


# ===================================================================
# Record transforms
# ===================================================================


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


def strip_node_prefix(node_id: str) -> str:
    return node_id[len(NODE_ID_PREFIX):] if node_id.startswith(NODE_ID_PREFIX) else node_id


def with_demographics(parameters: Optional[Dict[str, Any]]) -> Dict[str, Any]:
    """Copy ``parameters`` making sure ``specs.demographics`` exists."""
    result = copy.deepcopy(parameters) if isinstance(parameters, dict) else {}
    specs = result.setdefault("specs", {})
    demographics = specs.setdefault("demographics", {})
    demographics.setdefault("city", "")
    demographics.setdefault("country", "")
    return result


def client_node(asset: Dict[str, Any]) -> Dict[str, Any]:
    """Shape one platform asset for the detail panel."""
    asset_id = first_present(asset, ID_ACCESSORS)
    node_type = normalize_type(
        first_present(asset, TYPE_ACCESSORS),
        first_present(asset, PARENT_ACCESSORS) is not None,
    )
    parameters = asset.get("parameters")
    if node_type == "facility":
        parameters = with_demographics(parameters)
    return {
        "id": str(asset_id) if asset_id is not None else None,
        "label": asset.get("name") or f"Asset {asset_id}",
        "type": node_type,
        "status": asset.get("status") or "active",
        "code": asset.get("code") or asset.get("id") or asset.get("asset_id"),
        "description": asset.get("description") or "",
        "parameters": parameters if parameters is not None else {},
        "assetData": asset,
    }


def graph_record(asset: Dict[str, Any]) -> Optional[Dict[str, Any]]:
    """Graph-shaped node (``id, label, type, code, status, assetData``)."""
    node = normalize_asset(asset)
    if node is None:
        return None
    return {
        "id": node.id,
        "label": node.label,
        "type": node.type,
        "code": node.code,
        "status": node.status,
        "assetData": node.asset_data,
    }


def assets_to_hierarchy(assets: List[Dict[str, Any]]) -> Dict[str, List[Dict[str, Any]]]:
    """Flat asset list → ``{nodes, links}``; links only to parents present."""
    nodes = [record for record in (graph_record(asset) for asset in assets) if record is not None]
    known = {record["id"] for record in nodes}
    links = []
    for record in nodes:
        parent_id = first_present(record["assetData"], PARENT_ACCESSORS)
        if parent_id is not None and str(parent_id) in known:
            links.append({"source": str(parent_id), "target": record["id"], "type": PARENT_CHILD})
    return {"nodes": nodes, "links": links}


def api_view_record(asset: Dict[str, Any]) -> Dict[str, Any]:
    asset_id = first_present(asset, ID_ACCESSORS)
    asset_type = asset.get("type") or "workstation"
    return {
        "id": asset_id,
        "name": asset.get("name") or asset.get("label") or f"Asset {asset_id}",
        "type": asset_type,
        "parent_id": asset.get("parent_id"),
        "status": asset.get("status") or "active",
        "description": asset.get("description") or f"{asset_type} {asset_id}",
        "code": asset.get("code"),
        "assetData": asset,
    }


def build_asset_record(
    parent_id: Optional[str],
    node_type: str,
    name: str,
    description: str = "",
    code: str = "",
    status: str = "active",
    plc: Optional[Dict[str, str]] = None,
    shifts: Optional[Dict[str, Dict[str, str]]] = None,
    user: str = "factory-admin",
) -> Dict[str, Any]:
    """Platform record for a new asset, effective from today until further notice."""
    timestamp = _now()
    record: Dict[str, Any] = {
        "asset_id": str(uuid.uuid4()),
        "name": name,
        "description": description,
        "code": code,
        "status": status,
        "type": node_type,
        "parent_id": parent_id,
        "created_by": user,
        "created_timestamp": timestamp,
        "updated_by": user,
        "updated_timestamp": timestamp,
        "approved_by": user,
        "approved_timestamp": timestamp,
        "eff_date_from": date.today().isoformat(),
        "eff_date_to": config.OPEN_EFF_DATE,
        "parameters": {},
    }
    if node_type == "workstation":
        plc = plc or {}
        record["parameters"] = {
            "specs": {
                "details": {
                    "plc_name": plc.get("plc_name", ""),
                    "plc_ip_address": plc.get("plc_ip_address", ""),
                    "plc_mac_address": plc.get("plc_mac_address", ""),
                    "server_connection_attribute": plc.get("server_connection_attribute", ""),
                    "all_plc_data_streamed_into_server": plc.get("all_plc_data_streamed_into_server", "no"),
                },
            },
            "shift": copy.deepcopy(shifts or DEFAULT_SHIFTS),
        }
    return record


# ===================================================================
# Service
# ===================================================================


class FactoryService:
    """Hierarchy reads and node writes with mock fallbacks."""

    def __init__(
        self,
        client: Optional[PlatformClient] = None,
        use_mock: Optional[bool] = None,
        rank_table: RankTable = DEFAULT_RANK_TABLE,
    ) -> None:
        self.client = client or PlatformClient()
        self.use_mock = config.USE_MOCK_API if use_mock is None else use_mock
        self.rank_table = rank_table

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def fetch_hierarchy(self) -> HierarchyPayload:
        if self.use_mock:
            logger.info("Mock mode enabled; serving the demo hierarchy")
            return HierarchyPayload(source="mock", **mock_hierarchy())
        try:
            assets = self.client.list_assets()
        except PlatformAPIError as e:
            logger.warning("Failed to fetch factory hierarchy, using mock data: %s", e)
            return HierarchyPayload(source="mock", **mock_hierarchy())
        return HierarchyPayload(source="api", **assets_to_hierarchy(assets))

    def fetch_api_view(self) -> List[Dict[str, Any]]:
        """Flat asset listing. Platform errors propagate."""
        if self.use_mock:
            return [api_view_record(node) for node in mock_hierarchy()["nodes"]]
        return [api_view_record(asset) for asset in self.client.list_assets()]

    def fetch_node_details(self, node_id: Optional[str]) -> Dict[str, Any]:
        node_id = "" if node_id is None else str(node_id)
        if node_id == ROOT_NODE_ID:
            return {
                "id": ROOT_NODE_ID,
                "label": "Root Node",
                "type": "facility",
                "status": "active",
                "code": "ROOT",
                "description": "Root node of the hierarchy",
                "parameters": {"specs": {"demographics": {"city": "Global", "country": "Worldwide"}}},
            }
        if node_id in INVALID_NODE_IDS:
            logger.warning("Skipping fetch for invalid node ID: %r", node_id)
            return {"description": f"Node {node_id}", "code": node_id.upper(), "status": "unknown"}

        asset_id = strip_node_prefix(node_id)
        if not self.use_mock:
            try:
                return client_node(self.client.get_asset(asset_id))
            except PlatformAPIError as e:
                logger.warning("Failed to fetch node %s, using mock data: %s", asset_id, e)

        known = mock_node(asset_id)
        if known is not None:
            details = {
                "id": known["id"],
                "label": known["label"],
                "type": known["type"],
                "code": known["id"].upper(),
                "status": "active",
                "description": f"Mock data for {known['label']}",
                "parameters": {},
            }
        else:
            details = {
                "id": asset_id,
                "label": f"Node {asset_id}",
                "code": asset_id.upper(),
                "status": "active",
                "description": f"Mock data for node {asset_id}",
                "parameters": {},
            }
        if details.get("type") == "facility":
            details["parameters"] = with_demographics(details["parameters"])
        return details

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def create_node(
        self,
        parent_id: Optional[str],
        node_type: str,
        name: str,
        parent_type: Optional[str] = None,
        **fields: Any,
    ) -> Dict[str, Any]:
        """Create a child asset.

        When ``parent_type`` is known the new type must be one the rank
        table allows beneath it.
        """
        if not name or not name.strip():
            raise ServiceError("name is required")
        if not node_type:
            raise ServiceError("type is required")
        node_type = node_type.lower()
        if parent_type is not None:
            allowed = self.rank_table.allowed_child_types(parent_type)
            if node_type not in allowed:
                raise ServiceError(
                    f"A {node_type} cannot be added under a {parent_type} "
                    f"(allowed: {', '.join(allowed) or 'none'})"
                )

        record = build_asset_record(parent_id, node_type, name.strip(), **fields)
        if not self.use_mock:
            try:
                created = self.client.create_asset(record)
                logger.info("Created asset %s", record["asset_id"])
                return client_node(created or record)
            except PlatformAPIError as e:
                logger.warning("Create failed, returning mock echo: %s", e)

        echo = client_node(record)
        echo["type"] = node_type
        echo["created"] = True
        echo["createdAt"] = _now()
        return echo

    def update_node(self, node_id: str, changes: Dict[str, Any]) -> Dict[str, Any]:
        if not node_id:
            raise ServiceError("Asset ID is required")
        if node_id == ROOT_NODE_ID:
            raise ServiceError("Cannot update the root node")
        asset_id = strip_node_prefix(node_id)

        api_data: Dict[str, Any] = {
            "asset_id": asset_id,
            "name": changes.get("label") or changes.get("name"),
            "description": changes.get("description"),
            "code": changes.get("code"),
            "status": changes.get("status"),
        }
        asset_data = changes.get("assetData") or {}
        if changes.get("type") == "facility":
            for candidate in (asset_data.get("parameters"), changes.get("parameters")):
                if isinstance(candidate, dict) and (candidate.get("specs") or {}).get("demographics"):
                    api_data["parameters"] = copy.deepcopy(candidate)
                    break
        else:
            api_data["parameters"] = changes.get("parameters") or asset_data.get("parameters")
        api_data = {key: value for key, value in api_data.items() if value is not None}

        if not self.use_mock:
            try:
                return client_node(self.client.update_asset(asset_id, api_data))
            except PlatformAPIError as e:
                logger.warning("All update methods failed for %s, returning mock echo: %s", asset_id, e)

        parameters = changes.get("parameters") or {
            "specs": {"demographics": {"city": "Updated City", "country": "Updated Country"}},
        }
        return {
            "id": asset_id,
            "label": changes.get("label") or changes.get("name") or "Updated Asset",
            "type": changes.get("type") or "facility",
            "status": changes.get("status") or "active",
            "code": changes.get("code") or asset_id,
            "description": changes.get("description") or "",
            "parameters": parameters,
            "updated": True,
            "updatedAt": _now(),
        }

    def delete_node(self, node_id: str) -> Dict[str, Any]:
        if not node_id:
            raise ServiceError("Asset ID is required")
        if node_id == ROOT_NODE_ID:
            raise ServiceError("Cannot delete the root node")
        asset_id = strip_node_prefix(node_id)

        if not self.use_mock:
            try:
                self.client.delete_asset(asset_id)
                logger.info("Deleted asset %s", asset_id)
                return {"success": True, "message": f"Asset {asset_id} deleted successfully"}
            except PlatformAPIError as e:
                logger.warning("Delete failed for %s, returning mock success: %s", asset_id, e)

        return {
            "success": True,
            "message": f"Asset {asset_id} deleted successfully (mock response)",
            "deleted": True,
            "deletedAt": _now(),
        }

"""Built-in demo hierarchy served when the platform API is unavailable."""

from __future__ import annotations

import copy
from typing import Any, Dict, List, Optional

from .models import PARENT_CHILD

_MOCK_NODES: List[Dict[str, Any]] = [
    {"id": "facility-1", "label": "Main Facility", "type": "facility"},
    {"id": "area-1", "label": "Production Area", "type": "area", "parent_id": "facility-1"},
    {"id": "area-2", "label": "Assembly Area", "type": "area", "parent_id": "facility-1"},
    {"id": "mf-1", "label": "Mini Factory 1", "type": "mini_factory", "parent_id": "area-1"},
    {"id": "mf-2", "label": "Mini Factory 2", "type": "mini_factory", "parent_id": "area-2"},
    {"id": "line-1", "label": "Assembly Line A", "type": "line", "parent_id": "mf-1"},
    {"id": "line-2", "label": "Assembly Line B", "type": "line", "parent_id": "mf-2"},
    {"id": "ws-1", "label": "Workstation 1", "type": "workstation", "parent_id": "line-1"},
    {"id": "ws-2", "label": "Workstation 2", "type": "workstation", "parent_id": "line-1"},
    {"id": "ws-3", "label": "Workstation 3", "type": "workstation", "parent_id": "line-2"},
    {"id": "ws-4", "label": "Workstation 4", "type": "workstation", "parent_id": "line-2"},
]


def mock_hierarchy() -> Dict[str, List[Dict[str, Any]]]:
    """Fresh ``{nodes, links}`` copy of the demo hierarchy."""
    nodes = copy.deepcopy(_MOCK_NODES)
    links = [
        {"source": node["parent_id"], "target": node["id"], "type": PARENT_CHILD}
        for node in nodes
        if node.get("parent_id")
    ]
    return {"nodes": nodes, "links": links}


def mock_node(node_id: str) -> Optional[Dict[str, Any]]:
    for node in _MOCK_NODES:
        if node["id"] == node_id:
            return copy.deepcopy(node)
    return None

"""Core data models shared by the hierarchy, layout and service layers."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

# Closed set of asset types, top of the hierarchy first
NODE_TYPES = ("facility", "area", "mini_factory", "line", "workstation")
DEFAULT_NODE_TYPE = "workstation"
DEFAULT_STATUS = "active"
PARENT_CHILD = "parent-child"


@dataclass
class Node:
    """Canonical hierarchy entity.

    ``parent_id`` is only ever an id; consumers that need the parent look it
    up in the hierarchy's id index.
    """
    id: str
    label: str
    type: str = DEFAULT_NODE_TYPE
    status: str = DEFAULT_STATUS
    code: str = ""
    parent_id: Optional[str] = None
    level: Optional[int] = None
    x: float = 0.0
    y: float = 0.0
    asset_data: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "label": self.label,
            "type": self.type,
            "status": self.status,
            "code": self.code,
            "x": self.x,
            "y": self.y,
            "level": self.level,
            "parentId": self.parent_id,
            "assetData": self.asset_data,
        }


@dataclass
class Link:
    source: str
    target: str
    kind: str = PARENT_CHILD

    def to_dict(self) -> Dict[str, str]:
        return {"source": self.source, "target": self.target, "type": self.kind}


@dataclass
class TreeNode:
    """Nested tree entry. Owns its children; holds no reference to its parent."""
    id: str
    label: str
    type: str
    status: str = DEFAULT_STATUS
    code: str = ""
    children: List["TreeNode"] = field(default_factory=list)
    asset_data: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "label": self.label,
            "type": self.type,
            "status": self.status,
            "code": self.code,
            "children": [child.to_dict() for child in self.children],
            "assetData": self.asset_data,
        }


@dataclass
class ParentConflict:
    """A child that received more than one parent link."""
    child_id: str
    previous_parent_id: str
    new_parent_id: str


@dataclass
class LayoutBounds:
    min_x: float
    min_y: float
    max_x: float
    max_y: float

    @property
    def width(self) -> float:
        return self.max_x - self.min_x

    @property
    def height(self) -> float:
        return self.max_y - self.min_y

    def to_dict(self) -> Dict[str, float]:
        return {
            "minX": self.min_x,
            "minY": self.min_y,
            "maxX": self.max_x,
            "maxY": self.max_y,
            "width": self.width,
            "height": self.height,
        }

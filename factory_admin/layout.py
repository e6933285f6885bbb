"""Level-based graph layout: deterministic coordinates and a bounding box."""

from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Any, Dict, List, Optional

from .hierarchy import Hierarchy
from .models import LayoutBounds, Link, Node


@dataclass(frozen=True)
class LayoutConfig:
    level_height: float = 150.0
    node_padding: float = 250.0
    margin_left: float = 150.0
    margin_right: float = 150.0
    margin_top: float = 80.0
    margin_bottom: float = 120.0
    min_width: float = 1000.0
    min_height: float = 600.0

    @classmethod
    def from_config(cls) -> "LayoutConfig":
        """Spacing from ``[layout]`` in config.toml; margins keep their defaults."""
        from . import config

        return cls(level_height=config.LEVEL_HEIGHT, node_padding=config.NODE_PADDING)


@dataclass
class GraphLayout:
    nodes: List[Node]
    links: List[Link]
    bounds: LayoutBounds
    primary_root_id: Optional[str] = None

    def position(self, node_id: str) -> Optional[Node]:
        return next((node for node in self.nodes if node.id == node_id), None)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "nodes": [
                {
                    "id": node.id,
                    "label": node.label,
                    "type": node.type,
                    "status": node.status,
                    "x": node.x,
                    "y": node.y,
                    "level": node.level,
                    "parentId": node.parent_id,
                }
                for node in self.nodes
            ],
            "links": [link.to_dict() for link in self.links],
            "bounds": self.bounds.to_dict(),
            "primaryRootId": self.primary_root_id,
        }


def row_positions(count: int, padding: float) -> List[float]:
    """x coordinates for ``count`` nodes centred on 0, ``padding`` apart."""
    start = -((count - 1) * padding) / 2
    return [start + i * padding for i in range(count)]


def compute_bounds(nodes: List[Node], config: LayoutConfig) -> LayoutBounds:
    if not nodes:
        half_w, half_h = config.min_width / 2, config.min_height / 2
        return LayoutBounds(-half_w, -half_h, half_w, half_h)

    min_x = min(node.x for node in nodes) - config.margin_left
    max_x = max(node.x for node in nodes) + config.margin_right
    min_y = min(node.y for node in nodes) - config.margin_top
    max_y = max(node.y for node in nodes) + config.margin_bottom

    # Grow undersized boxes around their centre up to the minimum viewport
    if max_x - min_x < config.min_width:
        centre = (min_x + max_x) / 2
        min_x, max_x = centre - config.min_width / 2, centre + config.min_width / 2
    if max_y - min_y < config.min_height:
        centre = (min_y + max_y) / 2
        min_y, max_y = centre - config.min_height / 2, centre + config.min_height / 2
    return LayoutBounds(min_x, min_y, max_x, max_y)


def compute_layout(hierarchy: Hierarchy, config: Optional[LayoutConfig] = None) -> GraphLayout:
    """Position every node of ``hierarchy``.

    Returns new node copies; the hierarchy itself is left untouched, so the
    layout can be recomputed with a different config at any time.
    """
    config = config or LayoutConfig()

    rows: Dict[int, List[Node]] = {}
    unleveled: List[Node] = []
    for node in hierarchy.nodes:
        if node.level is None:
            unleveled.append(node)
        else:
            rows.setdefault(node.level, []).append(node)

    placed: Dict[str, Node] = {}
    for level, members in rows.items():
        for node, x in zip(members, row_positions(len(members), config.node_padding)):
            placed[node.id] = replace(node, x=x, y=level * config.level_height)

    if unleveled:
        overflow = (max(rows) + 1) if rows else 0
        for node, x in zip(unleveled, row_positions(len(unleveled), config.node_padding)):
            placed[node.id] = replace(node, x=x, y=overflow * config.level_height)

    positioned = [placed[node.id] for node in hierarchy.nodes]
    return GraphLayout(
        nodes=positioned,
        links=list(hierarchy.links),
        bounds=compute_bounds(positioned, config),
        primary_root_id=hierarchy.primary_root_id,
    )

"""One-shot hierarchy pipeline and the selection-holding view over it."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Union

from .connectivity import build_connectivity_index, highlight_ids
from .factory_service import HierarchyPayload
from .hierarchy import DEFAULT_RANK_TABLE, Hierarchy, ParentPolicy, RankTable, build_hierarchy
from .layout import GraphLayout, LayoutConfig, compute_layout
from .models import TreeNode
from .normalizer import normalize_payload
from .tree import project_tree

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class HierarchySnapshot:
    """Everything derived from one fetch. Treated as read-only."""

    generation: int
    source: str
    hierarchy: Hierarchy
    tree: List[TreeNode]
    layout: GraphLayout
    connections: Dict[str, List[str]] = field(default_factory=dict)

    @property
    def node_ids(self) -> List[str]:
        return [node.id for node in self.hierarchy.nodes]

    def graph_dict(self) -> Dict[str, Any]:
        graph = self.layout.to_dict()
        graph["connections"] = self.connections
        return graph

    def tree_dicts(self) -> List[Dict[str, Any]]:
        return [entry.to_dict() for entry in self.tree]


def build_snapshot(
    payload: Union[HierarchyPayload, Dict[str, Any], List[Any]],
    generation: int = 0,
    rank_table: RankTable = DEFAULT_RANK_TABLE,
    layout_config: Optional[LayoutConfig] = None,
    policy: ParentPolicy = ParentPolicy.LAST_WINS,
) -> HierarchySnapshot:
    """Normalize → hierarchy → {tree, layout, connectivity}."""
    source = "api"
    if isinstance(payload, HierarchyPayload):
        source = payload.source
        payload = payload.to_dict()
    normalized = normalize_payload(payload)
    hierarchy = build_hierarchy(normalized.nodes, normalized.links, rank_table=rank_table, policy=policy)
    return HierarchySnapshot(
        generation=generation,
        source=source,
        hierarchy=hierarchy,
        tree=project_tree(hierarchy.nodes),
        layout=compute_layout(hierarchy, layout_config),
        connections=build_connectivity_index(hierarchy.links, (node.id for node in hierarchy.nodes)),
    )


class HierarchyView:
    """Current snapshot plus the user's selection."""

    def __init__(self) -> None:
        self.snapshot: Optional[HierarchySnapshot] = None
        self.selected_id: Optional[str] = None

    def refresh(self, snapshot: HierarchySnapshot) -> bool:
        """Adopt ``snapshot`` unless it is older than the current one.

        The first snapshot selects its primary root. Later snapshots keep
        the selection when the selected id still exists.
        """
        current = self.snapshot
        if current is not None and snapshot.generation < current.generation:
            logger.info(
                "Ignoring stale snapshot generation %d (current %d)",
                snapshot.generation, current.generation,
            )
            return False

        self.snapshot = snapshot
        if current is None:
            self.selected_id = snapshot.hierarchy.primary_root_id
        elif self.selected_id is not None and self.selected_id not in snapshot.hierarchy:
            logger.info("Selected node %s disappeared after refresh", self.selected_id)
            self.selected_id = None
        return True

    def select(self, node_id: Optional[str]) -> bool:
        if node_id is None:
            self.selected_id = None
            return True
        if self.snapshot is None or node_id not in self.snapshot.hierarchy:
            return False
        self.selected_id = node_id
        return True

    def highlighted(self) -> List[str]:
        if self.snapshot is None or self.selected_id is None:
            return []
        return highlight_ids(self.snapshot.connections, self.selected_id)

    def detail(self, node_id: Optional[str] = None) -> Optional[Dict[str, Any]]:
        """Flat detail payload for one node, without nested children."""
        node_id = node_id or self.selected_id
        if self.snapshot is None or node_id is None:
            return None
        hierarchy = self.snapshot.hierarchy
        node = hierarchy.get(node_id)
        if node is None:
            return None
        positioned = self.snapshot.layout.position(node_id)
        detail = node.to_dict()
        if positioned is not None:
            detail["x"], detail["y"] = positioned.x, positioned.y
        detail["path"] = [ancestor.label for ancestor in hierarchy.ancestors(node_id)]
        detail["childCount"] = len(hierarchy.children.get(node_id, []))
        detail["allowedChildTypes"] = hierarchy.allowed_child_types(node_id)
        return detail


def load_snapshot(store: Any, service: Any, refresh: bool = False,
                  layout_config: Optional[LayoutConfig] = None) -> HierarchySnapshot:
    """Snapshot of the cached payload, fetching (and caching) a new one when
    ``refresh`` is set or nothing has been cached yet."""
    cached = None if refresh else store.latest()
    if cached is None:
        payload = service.fetch_hierarchy()
        generation = store.save_payload(payload)
    else:
        payload, generation = cached["payload"], cached["generation"]
    return build_snapshot(
        payload,
        generation=generation,
        rank_table=service.rank_table,
        layout_config=layout_config or LayoutConfig.from_config(),
    )

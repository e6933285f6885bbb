"""Hierarchy reconstruction: infer parent→child direction, roots and levels.

Links delivered by the platform carry no trustworthy direction. The side
whose type ranks higher in the factory (lower rank number) is taken as the
parent; equal ranks fall back to the link's source.
"""

from __future__ import annotations

import enum
import logging
from dataclasses import dataclass, field, replace
from typing import Dict, Iterable, List, Mapping, Optional, Sequence, Tuple

from .models import NODE_TYPES, Link, Node, ParentConflict

logger = logging.getLogger(__name__)


class HierarchyConflictError(ValueError):
    """Raised under ``ParentPolicy.STRICT`` when a child gets a second parent."""

    def __init__(self, conflict: ParentConflict) -> None:
        self.conflict = conflict
        super().__init__(
            f"Node {conflict.child_id} already has parent {conflict.previous_parent_id}; "
            f"refusing to re-parent it under {conflict.new_parent_id}"
        )


class ParentPolicy(str, enum.Enum):
    LAST_WINS = "last_wins"
    STRICT = "strict"


# ===================================================================
# Rank table
# ===================================================================


@dataclass(frozen=True)
class RankTable:
    """Ordered type → rank mapping. Lower rank sits higher in the tree."""

    ranks: Tuple[Tuple[str, int], ...]

    @classmethod
    def from_mapping(cls, mapping: Mapping[str, int]) -> "RankTable":
        return cls(tuple(sorted(mapping.items(), key=lambda item: item[1])))

    def as_dict(self) -> Dict[str, int]:
        return dict(self.ranks)

    @property
    def unknown_rank(self) -> int:
        return max((rank for _, rank in self.ranks), default=0) + 1

    def rank(self, node_type: str) -> int:
        """Rank of ``node_type``; types missing from the table rank last."""
        return self.as_dict().get(node_type, self.unknown_rank)

    def allowed_child_types(self, node_type: str) -> List[str]:
        """Types that may be created beneath a node of ``node_type``.

        The top rank only admits the next rank down. Every other rank admits
        the next rank down plus its own type; the bottom rank only itself.
        """
        ordered = [name for name, _ in self.ranks]
        if node_type not in ordered:
            return []
        index = ordered.index(node_type)
        below = ordered[index + 1:index + 2]
        if index == 0:
            return below
        return below + [node_type]


DEFAULT_RANK_TABLE = RankTable.from_mapping({name: i + 1 for i, name in enumerate(NODE_TYPES)})


# ===================================================================
# Hierarchy
# ===================================================================


@dataclass
class Hierarchy:
    """Result of :func:`build_hierarchy`.

    ``nodes`` keeps input order. Relations are id based: ``parent_id`` on
    each node and the ``children`` index keyed by parent id.
    """

    nodes: List[Node] = field(default_factory=list)
    links: List[Link] = field(default_factory=list)
    roots: List[str] = field(default_factory=list)
    primary_root_id: Optional[str] = None
    children: Dict[str, List[str]] = field(default_factory=dict)
    conflicts: List[ParentConflict] = field(default_factory=list)
    rank_table: RankTable = DEFAULT_RANK_TABLE

    def __post_init__(self) -> None:
        self.node_index: Dict[str, Node] = {node.id: node for node in self.nodes}

    def __len__(self) -> int:
        return len(self.nodes)

    def __contains__(self, node_id: object) -> bool:
        return node_id in self.node_index

    def get(self, node_id: str) -> Optional[Node]:
        return self.node_index.get(node_id)

    def children_of(self, node_id: str) -> List[Node]:
        return [self.node_index[cid] for cid in self.children.get(node_id, [])]

    def parent_of(self, node_id: str) -> Optional[Node]:
        node = self.node_index.get(node_id)
        if node is None or node.parent_id is None:
            return None
        return self.node_index.get(node.parent_id)

    def ancestors(self, node_id: str) -> List[Node]:
        """Breadcrumb path from the node's root down to the node itself."""
        path: List[Node] = []
        seen = set()
        current = self.node_index.get(node_id)
        while current is not None and current.id not in seen:
            seen.add(current.id)
            path.append(current)
            current = self.parent_of(current.id)
        path.reverse()
        return path

    def descendants(self, node_id: str) -> List[Node]:
        """Every node below ``node_id`` in depth-first pre-order."""
        result: List[Node] = []
        seen = {node_id}
        stack = list(reversed(self.children.get(node_id, [])))
        while stack:
            current = stack.pop()
            if current in seen:
                continue
            seen.add(current)
            result.append(self.node_index[current])
            stack.extend(reversed(self.children.get(current, [])))
        return result

    def allowed_child_types(self, node_id: str) -> List[str]:
        node = self.node_index.get(node_id)
        if node is None:
            return []
        return self.rank_table.allowed_child_types(node.type)

    @property
    def primary_root(self) -> Optional[Node]:
        if self.primary_root_id is None:
            return None
        return self.node_index.get(self.primary_root_id)


def _orient(a: Node, b: Node, rank_table: RankTable) -> Tuple[Node, Node]:
    """Return ``(parent, child)`` for a link whose source is ``a``."""
    if rank_table.rank(b.type) < rank_table.rank(a.type):
        return b, a
    return a, b


def _assign_levels(nodes: Sequence[Node], roots: Sequence[str], children: Mapping[str, List[str]]) -> None:
    index = {node.id: node for node in nodes}
    visited = set()
    for root_id in roots:
        stack = [(root_id, 0)]
        while stack:
            node_id, depth = stack.pop()
            if node_id in visited:
                continue
            visited.add(node_id)
            index[node_id].level = depth
            for child_id in reversed(children.get(node_id, [])):
                if child_id not in visited:
                    stack.append((child_id, depth + 1))


def build_hierarchy(
    nodes: Iterable[Node],
    links: Iterable[Link],
    rank_table: RankTable = DEFAULT_RANK_TABLE,
    policy: ParentPolicy = ParentPolicy.LAST_WINS,
) -> Hierarchy:
    """Annotate copies of ``nodes`` with parents and levels.

    Input nodes are not mutated. Malformed links are skipped and logged;
    only ``ParentPolicy.STRICT`` raises.
    """
    annotated = [replace(node, parent_id=None, level=None) for node in nodes]
    index = {node.id: node for node in annotated}
    kept_links: List[Link] = []
    conflicts: List[ParentConflict] = []

    for link in links:
        source = index.get(link.source)
        target = index.get(link.target)
        if source is None or target is None:
            logger.warning("Skipping link %s -> %s: endpoint not found", link.source, link.target)
            continue
        if source.id == target.id:
            logger.warning("Skipping self-referencing link on %s", source.id)
            continue

        parent, child = _orient(source, target, rank_table)
        if child.parent_id is not None and child.parent_id != parent.id:
            conflict = ParentConflict(child.id, child.parent_id, parent.id)
            if policy is ParentPolicy.STRICT:
                raise HierarchyConflictError(conflict)
            logger.warning(
                "Node %s re-parented from %s to %s", child.id, child.parent_id, parent.id,
            )
            conflicts.append(conflict)
        child.parent_id = parent.id
        kept_links.append(link)

    children: Dict[str, List[str]] = {}
    for node in annotated:
        if node.parent_id is not None:
            children.setdefault(node.parent_id, []).append(node.id)

    roots = [node.id for node in annotated if node.parent_id is None]
    primary = next((rid for rid in roots if index[rid].type == "facility"), None)
    if primary is None and roots:
        primary = roots[0]

    # Primary root first, then the remaining roots in input order
    ordered_roots = [primary] + [rid for rid in roots if rid != primary] if primary else []
    _assign_levels(annotated, ordered_roots, children)

    unreached = [node.id for node in annotated if node.level is None]
    if unreached:
        logger.warning("%d node(s) unreachable from any root: %s", len(unreached), ", ".join(unreached))

    return Hierarchy(
        nodes=annotated,
        links=kept_links,
        roots=roots,
        primary_root_id=primary,
        children=children,
        conflicts=conflicts,
        rank_table=rank_table,
    )

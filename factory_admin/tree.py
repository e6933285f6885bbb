"""Project a :class:`Hierarchy` into a nested, label-sorted forest."""

from __future__ import annotations

import locale
import unicodedata
from typing import Dict, Iterator, List, Optional, Sequence, Tuple

from .hierarchy import Hierarchy
from .models import Node, TreeNode


def _label_key(item: TreeNode) -> Tuple[str, str]:
    """Accent- and case-insensitive primary key; the raw label breaks ties."""
    decomposed = unicodedata.normalize("NFKD", item.label)
    base = "".join(ch for ch in decomposed if not unicodedata.combining(ch)).casefold()
    return locale.strxfrm(base), item.label


def _sort_by_label(items: List[TreeNode]) -> List[TreeNode]:
    # sorted() is stable, so equal labels keep their input order
    return sorted(items, key=_label_key)


def _tree_node(node: Node) -> TreeNode:
    return TreeNode(
        id=node.id,
        label=node.label,
        type=node.type,
        status=node.status,
        code=node.code,
        asset_data=dict(node.asset_data),
    )


def project_tree(nodes: Sequence[Node]) -> List[TreeNode]:
    """Build a forest from nodes annotated with ``parent_id``.

    A node whose ``parent_id`` does not resolve is treated as a root. Nodes
    caught in a parent cycle have no root to hang from and are left out.
    """
    entries: Dict[str, TreeNode] = {node.id: _tree_node(node) for node in nodes}
    roots: List[TreeNode] = []
    for node in nodes:
        entry = entries[node.id]
        if node.parent_id is None or node.parent_id not in entries:
            roots.append(entry)
        else:
            entries[node.parent_id].children.append(entry)

    for entry in entries.values():
        entry.children = _sort_by_label(entry.children)
    return _sort_by_label(roots)


def tree_from_hierarchy(hierarchy: Hierarchy) -> List[TreeNode]:
    return project_tree(hierarchy.nodes)


def walk_tree(forest: Sequence[TreeNode]) -> Iterator[Tuple[TreeNode, int]]:
    """Depth-first pre-order walk yielding ``(entry, depth)``."""
    stack = [(entry, 0) for entry in reversed(forest)]
    while stack:
        entry, depth = stack.pop()
        yield entry, depth
        stack.extend((child, depth + 1) for child in reversed(entry.children))


def find_tree_node(forest: Sequence[TreeNode], node_id: str) -> Optional[TreeNode]:
    for entry, _ in walk_tree(forest):
        if entry.id == node_id:
            return entry
    return None

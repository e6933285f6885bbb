"""Symmetric adjacency used for highlight-on-select."""

from __future__ import annotations

from typing import Dict, Iterable, List, Set

from .models import Link


def build_connectivity_index(links: Iterable[Link], node_ids: Iterable[str] = ()) -> Dict[str, List[str]]:
    """Map each node id to its direct neighbors, in first-seen order.

    Every id in ``node_ids`` gets an entry, isolated nodes an empty list.
    """
    index: Dict[str, List[str]] = {node_id: [] for node_id in node_ids}
    seen: Dict[str, Set[str]] = {node_id: set() for node_id in index}

    def _add(a: str, b: str) -> None:
        neighbors = index.setdefault(a, [])
        known = seen.setdefault(a, set())
        if b not in known:
            known.add(b)
            neighbors.append(b)

    for link in links:
        if link.source == link.target:
            continue
        _add(link.source, link.target)
        _add(link.target, link.source)
    return index


def highlight_ids(index: Dict[str, List[str]], node_id: str) -> List[str]:
    """The selected node followed by its neighbors."""
    if node_id not in index:
        return []
    return [node_id] + list(index[node_id])

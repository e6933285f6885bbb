"""Asset record normalization: heterogeneous backend records → canonical nodes.

The platform API (and older mock payloads) spell the same attribute in
several ways. Each canonical attribute is resolved through an ordered tuple
of accessors; the first non-empty value wins.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Iterable, List, Mapping, Optional, Sequence, Tuple

from .models import DEFAULT_NODE_TYPE, DEFAULT_STATUS, NODE_TYPES, PARENT_CHILD, Link, Node

logger = logging.getLogger(__name__)

Accessor = Callable[[Mapping[str, Any]], Any]

TYPE_ALIASES = {"minifactory": "mini_factory", "mini-factory": "mini_factory"}


def _field(name: str) -> Accessor:
    return lambda record: record.get(name)


ID_ACCESSORS: Tuple[Accessor, ...] = (_field("asset_id"), _field("id"))
LABEL_ACCESSORS: Tuple[Accessor, ...] = (_field("name"), _field("label"), _field("description"))
TYPE_ACCESSORS: Tuple[Accessor, ...] = (_field("type"), _field("category"), _field("asset_type"))
PARENT_ACCESSORS: Tuple[Accessor, ...] = (_field("parent_id"), _field("parentId"))
STATUS_ACCESSORS: Tuple[Accessor, ...] = (_field("status"),)
CODE_ACCESSORS: Tuple[Accessor, ...] = (_field("code"),)


def first_present(record: Mapping[str, Any], accessors: Sequence[Accessor]) -> Optional[Any]:
    """Return the first accessor value that is not ``None`` or an empty string."""
    for accessor in accessors:
        value = accessor(record)
        if value is None:
            continue
        if isinstance(value, str) and not value.strip():
            continue
        return value
    return None


def normalize_type(raw_type: Any, has_parent: bool) -> str:
    """Map a raw type value onto the closed type set.

    Unknown types become ``workstation``; records without a parent
    reference default to ``facility`` instead.
    """
    if isinstance(raw_type, str):
        lowered = raw_type.strip().lower()
        lowered = TYPE_ALIASES.get(lowered, lowered)
        if lowered in NODE_TYPES:
            return lowered
    return DEFAULT_NODE_TYPE if has_parent else "facility"


def normalize_asset(record: Mapping[str, Any]) -> Optional[Node]:
    """Build a canonical :class:`Node` from one raw asset record.

    Returns ``None`` (and logs) when the record carries no usable id.
    """
    if not isinstance(record, Mapping):
        logger.warning("Skipping asset record that is not a mapping: %r", record)
        return None

    raw_id = first_present(record, ID_ACCESSORS)
    if raw_id is None:
        logger.warning("Skipping asset without an id: %r", dict(record))
        return None
    node_id = str(raw_id)

    # Graph-shaped payloads carry the backend record under assetData
    asset_data = record.get("assetData")
    if not isinstance(asset_data, Mapping):
        asset_data = record

    has_parent = (
        first_present(record, PARENT_ACCESSORS) is not None
        or first_present(asset_data, PARENT_ACCESSORS) is not None
    )
    label = first_present(record, LABEL_ACCESSORS)
    status = first_present(record, STATUS_ACCESSORS)
    code = first_present(record, CODE_ACCESSORS)

    return Node(
        id=node_id,
        label=str(label) if label is not None else f"Asset {node_id}",
        type=normalize_type(first_present(record, TYPE_ACCESSORS), has_parent),
        status=str(status) if status is not None else DEFAULT_STATUS,
        code=str(code) if code is not None else "",
        asset_data=dict(asset_data),
    )


def normalize_assets(records: Iterable[Mapping[str, Any]]) -> List[Node]:
    """Normalize a list of records, dropping rejects and duplicate ids."""
    nodes: List[Node] = []
    seen: set[str] = set()
    for record in records:
        node = normalize_asset(record)
        if node is None:
            continue
        if node.id in seen:
            logger.warning("Skipping duplicate asset id %s", node.id)
            continue
        seen.add(node.id)
        nodes.append(node)
    return nodes


def endpoint_id(endpoint: Any) -> Optional[str]:
    """Link endpoints are either plain ids or objects exposing ``id``."""
    if isinstance(endpoint, Mapping):
        endpoint = endpoint.get("id")
    if endpoint is None or endpoint == "":
        return None
    return str(endpoint)


def normalize_link(raw: Mapping[str, Any]) -> Optional[Link]:
    if not isinstance(raw, Mapping):
        logger.warning("Skipping link that is not a mapping: %r", raw)
        return None
    source = endpoint_id(raw.get("source"))
    target = endpoint_id(raw.get("target"))
    if source is None or target is None:
        logger.warning("Skipping link with a missing endpoint: %r", dict(raw))
        return None
    kind = raw.get("kind") or raw.get("type") or PARENT_CHILD
    return Link(source=source, target=target, kind=str(kind))


def normalize_links(raw_links: Iterable[Mapping[str, Any]]) -> List[Link]:
    links = []
    for raw in raw_links:
        link = normalize_link(raw)
        if link is not None:
            links.append(link)
    return links


def links_from_parent_refs(records: Iterable[Mapping[str, Any]]) -> List[Link]:
    """Synthesize parent→child links from each record's parent reference.

    Only parents that are themselves part of ``records`` produce a link.
    """
    records = [r for r in records if isinstance(r, Mapping)]
    known = {str(first_present(r, ID_ACCESSORS)) for r in records if first_present(r, ID_ACCESSORS) is not None}
    links = []
    for record in records:
        asset_id = first_present(record, ID_ACCESSORS)
        parent_id = first_present(record, PARENT_ACCESSORS)
        if asset_id is None or parent_id is None:
            continue
        if str(parent_id) not in known:
            logger.debug("Parent %s of asset %s is not in the payload", parent_id, asset_id)
            continue
        links.append(Link(source=str(parent_id), target=str(asset_id), kind=PARENT_CHILD))
    return links


@dataclass
class NormalizedPayload:
    nodes: List[Node] = field(default_factory=list)
    links: List[Link] = field(default_factory=list)


def normalize_payload(payload: Any) -> NormalizedPayload:
    """Accept every payload shape the hierarchy endpoints have produced.

    Supported: ``{nodes, links}``, ``{treeData, graphData}``, a bare list of
    assets, and ``{assets: [...]}``. Anything else yields an empty result.
    """
    if isinstance(payload, Mapping) and "graphData" in payload:
        payload = payload["graphData"]

    if isinstance(payload, Mapping) and isinstance(payload.get("nodes"), list):
        records = payload["nodes"]
        raw_links = payload.get("links")
        if isinstance(raw_links, list):
            links = normalize_links(raw_links)
        else:
            links = links_from_parent_refs(records)
        return NormalizedPayload(nodes=normalize_assets(records), links=links)

    if isinstance(payload, Mapping) and isinstance(payload.get("assets"), list):
        payload = payload["assets"]

    if isinstance(payload, list):
        return NormalizedPayload(
            nodes=normalize_assets(payload),
            links=links_from_parent_refs(payload),
        )

    logger.warning("Unexpected hierarchy payload format: %s", type(payload).__name__)
    return NormalizedPayload()

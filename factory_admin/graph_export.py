"""Graph export helpers for DOT, SVG and standalone HTML outputs."""

from __future__ import annotations

import html
import json
from pathlib import Path
from typing import List, Optional, Set

from .connectivity import highlight_ids
from .snapshot import HierarchySnapshot

TYPE_COLORS = {
    "facility": "#2563eb",
    "area": "#16a34a",
    "mini_factory": "#9333ea",
    "line": "#ea580c",
    "workstation": "#dc2626",
}
FALLBACK_COLOR = "#6b7280"
NODE_RADIUS = 22


def export_dot(snapshot: HierarchySnapshot, output_file: Path, focus: str = "") -> None:
    output_file.write_text(render_dot(snapshot, focus), encoding="utf-8")


def render_dot(snapshot: HierarchySnapshot, focus: str = "") -> str:
    hierarchy = snapshot.hierarchy
    selected = _focused_ids(snapshot, focus)

    lines = ["digraph FactoryHierarchy {"]
    lines.append("  rankdir=TB;")
    lines.append('  node [shape=box, style="rounded,filled", fontcolor=white];')

    for node in hierarchy.nodes:
        if node.id not in selected:
            continue
        label = f"{_esc(node.type)}\\n{_esc(node.label)}"
        color = TYPE_COLORS.get(node.type, FALLBACK_COLOR)
        lines.append(f'  "{_esc(node.id)}" [label="{label}", fillcolor="{color}"];')

    for node in hierarchy.nodes:
        if node.parent_id is None or node.id not in selected or node.parent_id not in selected:
            continue
        lines.append(f'  "{_esc(node.parent_id)}" -> "{_esc(node.id)}";')

    lines.append("}")
    return "\n".join(lines)


def export_svg(snapshot: HierarchySnapshot, output_file: Path, selected: Optional[str] = None) -> None:
    output_file.write_text(render_svg(snapshot, selected), encoding="utf-8")


def render_svg(snapshot: HierarchySnapshot, selected: Optional[str] = None) -> str:
    """Standalone SVG of the level layout.

    The ``selected`` node and its direct neighbors are drawn at full
    opacity; everything else is dimmed.
    """
    layout = snapshot.layout
    bounds = layout.bounds
    highlighted = set(highlight_ids(snapshot.connections, selected)) if selected else set()
    positions = {node.id: node for node in layout.nodes}

    def _opacity(*ids: str) -> str:
        if not highlighted:
            return "1"
        return "1" if all(i in highlighted for i in ids) else "0.25"

    parts: List[str] = [
        '<svg xmlns="http://www.w3.org/2000/svg" '
        f'viewBox="{bounds.min_x:g} {bounds.min_y:g} {bounds.width:g} {bounds.height:g}" '
        f'width="{bounds.width:g}" height="{bounds.height:g}" font-family="sans-serif">',
        f'  <rect x="{bounds.min_x:g}" y="{bounds.min_y:g}" width="{bounds.width:g}" '
        f'height="{bounds.height:g}" fill="#ffffff"/>',
    ]

    for link in layout.links:
        source, target = positions.get(link.source), positions.get(link.target)
        if source is None or target is None:
            continue
        parts.append(
            f'  <line x1="{source.x:g}" y1="{source.y:g}" x2="{target.x:g}" y2="{target.y:g}" '
            f'stroke="#94a3b8" stroke-width="2" opacity="{_opacity(link.source, link.target)}"/>'
        )

    for node in layout.nodes:
        color = TYPE_COLORS.get(node.type, FALLBACK_COLOR)
        stroke = ' stroke="#111827" stroke-width="4"' if node.id == selected else ""
        parts.append(
            f'  <g class="node node-{html.escape(node.type)}" data-id="{html.escape(node.id)}" '
            f'opacity="{_opacity(node.id)}">'
        )
        parts.append(f'    <circle cx="{node.x:g}" cy="{node.y:g}" r="{NODE_RADIUS}" fill="{color}"{stroke}/>')
        parts.append(
            f'    <text x="{node.x:g}" y="{node.y + NODE_RADIUS + 16:g}" text-anchor="middle" '
            f'font-size="13">{html.escape(node.label)}</text>'
        )
        parts.append("  </g>")

    parts.append("</svg>")
    return "\n".join(parts)


def export_html(snapshot: HierarchySnapshot, output_file: Path, selected: Optional[str] = None) -> None:
    """Export the hierarchy as a self-contained HTML page."""
    output_file.write_text(render_html(snapshot, selected), encoding="utf-8")


def render_html(snapshot: HierarchySnapshot, selected: Optional[str] = None) -> str:
    graph_payload = {
        "graph": snapshot.graph_dict(),
        "tree": snapshot.tree_dicts(),
        "selected": selected,
    }
    # Keep "</script>" inside labels from closing the inline script
    payload_json = json.dumps(graph_payload).replace("</", "<\\/")
    return f"""<!doctype html>
<html>
<head>
  <meta charset="utf-8" />
  <title>Factory Hierarchy Export</title>
  <style>
    body {{ font-family: ui-sans-serif, system-ui, sans-serif; margin: 20px; }}
    #container {{ display: grid; grid-template-columns: 1fr 2fr; gap: 18px; }}
    .panel {{ border: 1px solid #ddd; border-radius: 8px; padding: 10px; overflow: auto; }}
    ul {{ list-style: none; padding-left: 16px; margin: 0; }}
    li {{ margin: 4px 0; }}
  </style>
</head>
<body>
  <h1>Factory Hierarchy</h1>
  <div id="container">
    <div class="panel">
      <h2>Tree</h2>
      <div id="tree"></div>
    </div>
    <div class="panel">
      <h2>Graph</h2>
      {render_svg(snapshot, selected)}
    </div>
  </div>
  <script>
    const data = {payload_json};
    function renderTree(entries) {{
      const ul = document.createElement('ul');
      entries.forEach(e => {{
        const li = document.createElement('li');
        li.textContent = `${{e.label}} (${{e.type}})`;
        if (e.children.length) li.appendChild(renderTree(e.children));
        ul.appendChild(li);
      }});
      return ul;
    }}
    document.getElementById('tree').appendChild(renderTree(data.tree));
  </script>
</body>
</html>
"""


def _focused_ids(snapshot: HierarchySnapshot, focus: str) -> Set[str]:
    """Ids to export: everything, or the focused node with its ancestry and subtree."""
    hierarchy = snapshot.hierarchy
    if not focus or focus not in hierarchy:
        return {node.id for node in hierarchy.nodes}
    ids = {node.id for node in hierarchy.ancestors(focus)}
    ids.update(node.id for node in hierarchy.descendants(focus))
    return ids


def _esc(text: str) -> str:
    return text.replace("\\", "\\\\").replace('"', '\\"')

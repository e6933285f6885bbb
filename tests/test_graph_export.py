"""Tests for DOT, SVG and HTML exports."""

import json

from factory_admin.factory_service import HierarchyPayload
from factory_admin.graph_export import export_dot, export_html, export_svg, render_dot, render_html, render_svg
from factory_admin.mock_data import mock_hierarchy
from factory_admin.snapshot import build_snapshot


def _snapshot():
    return build_snapshot(HierarchyPayload(source="mock", **mock_hierarchy()), generation=1)


class TestDot:
    """Tests for DOT output."""

    def test_full_graph(self):
        dot = render_dot(_snapshot())
        assert dot.startswith("digraph FactoryHierarchy {")
        assert '"facility-1" -> "area-1";' in dot
        assert dot.count(" -> ") == 10

    def test_focus_keeps_ancestry_and_subtree(self):
        dot = render_dot(_snapshot(), focus="mf-1")
        assert '"facility-1"' in dot
        assert '"ws-2"' in dot
        assert '"area-2"' not in dot
        assert '"ws-3"' not in dot

    def test_labels_escaped(self):
        payload = HierarchyPayload(nodes=[{"id": "q", "label": 'Say "hi"', "type": "facility"}], source="api")
        dot = render_dot(build_snapshot(payload))
        assert 'Say \\"hi\\"' in dot

    def test_export_writes_file(self, tmp_path):
        out = tmp_path / "graph.dot"
        export_dot(_snapshot(), out)
        assert out.read_text(encoding="utf-8").endswith("}")


class TestSvg:
    """Tests for SVG output."""

    def test_every_node_drawn(self):
        svg = render_svg(_snapshot())
        assert svg.count("<circle") == 11
        assert 'opacity="0.25"' not in svg

    def test_selection_dims_the_rest(self):
        svg = render_svg(_snapshot(), selected="line-1")
        assert 'stroke="#111827"' in svg
        assert 'data-id="ws-1" opacity="1"' in svg
        assert 'data-id="ws-3" opacity="0.25"' in svg

    def test_viewbox_matches_bounds(self):
        snapshot = _snapshot()
        b = snapshot.layout.bounds
        assert f'viewBox="{b.min_x:g} {b.min_y:g} {b.width:g} {b.height:g}"' in render_svg(snapshot)


class TestHtml:
    """Tests for the standalone HTML page."""

    def test_embeds_svg_and_data(self, tmp_path):
        out = tmp_path / "graph.html"
        export_html(_snapshot(), out, selected="ws-1")
        text = out.read_text(encoding="utf-8")
        assert "<svg" in text
        assert '"selected": "ws-1"' in text
        assert "Main Facility" in text

    def test_script_terminator_escaped(self, tmp_path):
        payload = HierarchyPayload(nodes=[{"id": "x", "label": "</script>", "type": "facility"}], source="api")
        out = tmp_path / "graph.html"
        export_html(build_snapshot(payload), out)
        text = out.read_text(encoding="utf-8")
        assert "<\\/script>" in text

    def test_inline_data_is_valid_json(self):
        payload = HierarchyPayload(nodes=[{"id": "x", "label": "a</b>", "type": "facility"}], source="api")
        page = render_html(build_snapshot(payload), selected="x")
        line = next(row.strip() for row in page.splitlines() if row.strip().startswith("const data = "))
        data = json.loads(line[len("const data = "):].rstrip(";"))
        assert "</" not in line
        assert data["graph"]["nodes"][0]["label"] == "a</b>"
        assert data["selected"] == "x"

    def test_svg_export(self, tmp_path):
        out = tmp_path / "graph.svg"
        export_svg(_snapshot(), out)
        assert out.read_text(encoding="utf-8").startswith("<svg")

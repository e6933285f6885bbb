"""Integration tests for CLI commands."""

import json

from typer.testing import CliRunner

from factory_admin import __version__, config_manager
from factory_admin.cli import app
from factory_admin.factory_service import FactoryService, HierarchyPayload
from factory_admin.storage import SnapshotStore, StateManager

runner = CliRunner()


def _fetch():
    result = runner.invoke(app, ["fetch", "--mock"])
    assert result.exit_code == 0, result.stdout
    return result


class TestRoot:
    """Tests for the top-level callback."""

    def test_version(self):
        result = runner.invoke(app, ["--version"])
        assert result.exit_code == 0
        assert __version__ in result.stdout


class TestFetchCommand:
    """Tests for 'fa fetch'."""

    def test_fetch_mock(self):
        result = _fetch()
        assert "Fetched 11 nodes and 10 links from mock" in result.stdout
        assert "Primary root: Main Facility" in result.stdout
        with SnapshotStore() as store:
            assert store.latest()["source"] == "mock"

    def test_fetch_offline_falls_back(self):
        result = runner.invoke(app, ["fetch"])
        assert result.exit_code == 0
        assert "from mock" in result.stdout

    def test_fetch_strict_conflict(self, monkeypatch):
        def _conflicting(self):
            return HierarchyPayload(
                nodes=[{"id": "L1", "type": "line"}, {"id": "L2", "type": "line"}, {"id": "W", "type": "workstation"}],
                links=[{"source": "L1", "target": "W"}, {"source": "L2", "target": "W"}],
            )

        monkeypatch.setattr(FactoryService, "fetch_hierarchy", _conflicting)
        lenient = runner.invoke(app, ["fetch"])
        assert lenient.exit_code == 0
        assert "replaced by L2" in lenient.stdout

        strict = runner.invoke(app, ["fetch", "--strict"])
        assert strict.exit_code == 1


class TestViewCommands:
    """Tests for tree, graph, select and show."""

    def test_tree(self):
        _fetch()
        result = runner.invoke(app, ["tree"])
        assert result.exit_code == 0
        assert "Main Facility" in result.stdout
        assert result.stdout.index("Assembly Area") < result.stdout.index("Production Area")

    def test_tree_fetches_when_cache_empty(self):
        result = runner.invoke(app, ["tree"])
        assert result.exit_code == 0
        assert "Workstation 4" in result.stdout

    def test_graph_json(self):
        _fetch()
        result = runner.invoke(app, ["graph", "--json"])
        assert result.exit_code == 0
        data = json.loads(result.stdout)
        positions = {node["id"]: (node["x"], node["y"]) for node in data["nodes"]}
        assert positions["facility-1"] == (0, 0)
        assert positions["area-1"] == (-125, 150)
        assert data["primaryRootId"] == "facility-1"

    def test_graph_table(self):
        _fetch()
        result = runner.invoke(app, ["graph"])
        assert result.exit_code == 0
        assert "Bounds:" in result.stdout

    def test_select_and_show(self):
        _fetch()
        result = runner.invoke(app, ["select", "line-1"])
        assert result.exit_code == 0
        assert "Selected Assembly Line A (line)." in result.stdout
        assert StateManager().get_selected() == "line-1"

        result = runner.invoke(app, ["show"])
        assert result.exit_code == 0
        assert "Main Facility › Production Area › Mini Factory 1 › Assembly Line A" in result.stdout

    def test_select_unknown(self):
        _fetch()
        result = runner.invoke(app, ["select", "ghost"])
        assert result.exit_code != 0

    def test_show_remote_root(self):
        _fetch()
        result = runner.invoke(app, ["show", "0", "--remote"])
        assert result.exit_code == 0
        assert "Root Node" in result.stdout


class TestExportCommand:
    """Tests for 'fa export'."""

    def test_export_formats(self, tmp_path):
        _fetch()
        for fmt in ("svg", "html", "dot", "json"):
            out = tmp_path / f"graph.{fmt}"
            result = runner.invoke(app, ["export", "-f", fmt, "-o", str(out)])
            assert result.exit_code == 0
            assert out.exists()
        assert json.loads((tmp_path / "graph.json").read_text())["graph"]["primaryRootId"] == "facility-1"

    def test_export_bad_format(self, tmp_path):
        result = runner.invoke(app, ["export", "-f", "png", "-o", str(tmp_path / "x.png")])
        assert result.exit_code != 0


class TestNodeCommands:
    """Tests for 'fa node ...'."""

    def test_add_child(self):
        _fetch()
        result = runner.invoke(app, ["node", "add", "line-1", "--type", "workstation", "--name", "OP70"])
        assert result.exit_code == 0
        assert "Created workstation 'OP70'" in result.stdout
        assert "under Assembly Line A (mock response)" in result.stdout

    def test_add_disallowed_type(self):
        _fetch()
        result = runner.invoke(app, ["node", "add", "facility-1", "--type", "line", "--name", "X"])
        assert result.exit_code != 0

    def test_update(self):
        _fetch()
        result = runner.invoke(app, ["node", "update", "area-1", "--name", "Paint Shop"])
        assert result.exit_code == 0
        assert "Updated 'Paint Shop' [area-1] (mock response)." in result.stdout

    def test_delete_clears_selection(self):
        _fetch()
        runner.invoke(app, ["select", "ws-1"])
        result = runner.invoke(app, ["node", "delete", "ws-1", "--yes"])
        assert result.exit_code == 0
        assert "deleted successfully" in result.stdout
        assert StateManager().get_selected() is None

    def test_delete_aborts_without_confirmation(self):
        _fetch()
        result = runner.invoke(app, ["node", "delete", "area-1"], input="n\n")
        assert result.exit_code != 0
        assert "orphan 4 node(s)" in result.stdout


class TestAttributeCommands:
    """Tests for 'fa attributes ...'."""

    def test_show_sample(self):
        _fetch()
        result = runner.invoke(app, ["attributes", "show", "ws-1"])
        assert result.exit_code == 0
        assert "sample parameters" in result.stdout

    def test_rejects_non_workstation(self):
        _fetch()
        result = runner.invoke(app, ["attributes", "show", "line-1"])
        assert result.exit_code != 0

    def test_set_insert_remove(self):
        _fetch()
        result = runner.invoke(app, ["attributes", "set", "ws-1", "0", "limits.LCL", "2.5"])
        assert result.exit_code == 0
        assert "Row 0: Axial_play_for_ESA updated." in result.stdout

        result = runner.invoke(app, ["attributes", "insert", "ws-1", "0"])
        assert "now has 10 rows" in result.stdout

        result = runner.invoke(app, ["attributes", "remove", "ws-1", "1"])
        assert "Removed row 1; 9 rows left." in result.stdout

        with SnapshotStore() as store:
            sheet = store.load_sheet("ws-1")
        assert sheet.rows[0].limits["LCL"] == 2.5

    def test_set_unknown_field(self):
        _fetch()
        result = runner.invoke(app, ["attributes", "set", "ws-1", "0", "colour", "red"])
        assert result.exit_code != 0

    def test_cannot_remove_last_row(self):
        _fetch()
        runner.invoke(app, ["attributes", "set", "ws-2", "0", "parameter", "Only"])
        for _ in range(8):
            runner.invoke(app, ["attributes", "remove", "ws-2", "0"])
        result = runner.invoke(app, ["attributes", "remove", "ws-2", "0"])
        assert result.exit_code == 1
        assert "Cannot remove the last parameter row." in result.stdout


class TestConfigCommands:
    """Tests for 'fa config ...'."""

    def test_set_api(self):
        result = runner.invoke(app, ["config", "set-api", "--url", "http://localhost:9000", "--mock"])
        assert result.exit_code == 0
        api = config_manager.load_api_config()
        assert api["url"] == "http://localhost:9000"
        assert api["use_mock"] is True

    def test_set_api_rejects_bad_url(self):
        result = runner.invoke(app, ["config", "set-api", "--url", "ftp://x"])
        assert result.exit_code != 0

    def test_set_layout_and_show(self):
        result = runner.invoke(app, ["config", "set-layout", "--level-height", "200"])
        assert result.exit_code == 0
        assert config_manager.load_layout_config()["level_height"] == 200.0
        result = runner.invoke(app, ["config", "show"])
        assert result.exit_code == 0
        assert "https://platform.test" in result.stdout

"""Tests for the level-based graph layout."""

import pytest

from factory_admin.hierarchy import build_hierarchy
from factory_admin.layout import LayoutConfig, compute_bounds, compute_layout, row_positions
from factory_admin.models import Link, Node


def _positions(layout):
    return {node.id: (node.x, node.y) for node in layout.nodes}


class TestRowPositions:
    """Tests for row_positions()."""

    def test_single_node_centred(self):
        assert row_positions(1, 250) == [0]

    def test_symmetric_and_uniform(self):
        xs = row_positions(4, 250)
        assert xs == [-375, -125, 125, 375]
        assert all(b - a == 250 for a, b in zip(xs, xs[1:]))


class TestComputeLayout:
    """Tests for compute_layout()."""

    def test_single_facility_at_origin(self):
        layout = compute_layout(build_hierarchy([Node(id="F1", label="F1", type="facility")], []))
        assert _positions(layout) == {"F1": (0, 0)}
        assert layout.primary_root_id == "F1"

    def test_two_children_symmetric(self):
        nodes = [
            Node(id="F1", label="F1", type="facility"),
            Node(id="A1", label="A1", type="area"),
            Node(id="A2", label="A2", type="area"),
        ]
        layout = compute_layout(build_hierarchy(nodes, [Link("F1", "A1"), Link("F1", "A2")]))
        positions = _positions(layout)
        assert positions["A1"] == (-125, 150)
        assert positions["A2"] == (125, 150)

    def test_custom_spacing(self, sample_nodes, sample_links):
        config = LayoutConfig(level_height=100, node_padding=40)
        layout = compute_layout(build_hierarchy(sample_nodes, sample_links), config)
        positions = _positions(layout)
        assert positions["W1"] == (0, 300)
        assert positions["A1"] == (-20, 100)

    def test_x_strictly_increasing_per_level(self, sample_nodes, sample_links):
        layout = compute_layout(build_hierarchy(sample_nodes, sample_links))
        by_level = {}
        for node in layout.nodes:
            by_level.setdefault(node.level, []).append(node.x)
        for xs in by_level.values():
            assert xs == sorted(xs)
            assert len(set(xs)) == len(xs)

    def test_unleveled_nodes_on_overflow_row(self):
        nodes = [
            Node(id="F", label="F", type="facility"),
            Node(id="A1", label="A1", type="area"),
            Node(id="A2", label="A2", type="area"),
        ]
        layout = compute_layout(build_hierarchy(nodes, [Link("A1", "A2"), Link("A2", "A1")]))
        positions = _positions(layout)
        assert positions["F"] == (0, 0)
        assert positions["A1"] == (-125, 150)
        assert positions["A2"] == (125, 150)
        assert layout.position("A1").level is None

    def test_hierarchy_not_mutated_and_rerunnable(self, sample_nodes, sample_links):
        hierarchy = build_hierarchy(sample_nodes, sample_links)
        first = compute_layout(hierarchy).to_dict()
        assert all(node.x == 0 and node.y == 0 for node in hierarchy.nodes)
        assert compute_layout(hierarchy).to_dict() == first

    def test_to_dict_shape(self):
        layout = compute_layout(build_hierarchy([Node(id="F1", label="F1", type="facility")], []))
        data = layout.to_dict()
        assert set(data) == {"nodes", "links", "bounds", "primaryRootId"}
        assert set(data["nodes"][0]) == {"id", "label", "type", "status", "x", "y", "level", "parentId"}

    def test_empty(self):
        layout = compute_layout(build_hierarchy([], []))
        assert layout.nodes == []
        assert layout.bounds.width == 1000
        assert layout.bounds.height == 600


class TestBounds:
    """Tests for compute_bounds()."""

    def test_floor_for_single_node(self):
        bounds = compute_bounds([Node(id="a", label="a")], LayoutConfig())
        assert (bounds.min_x, bounds.max_x) == (-500, 500)
        assert (bounds.min_y, bounds.max_y) == (-280, 320)

    def test_margins_when_larger_than_floor(self):
        nodes = [Node(id=str(i), label=str(i), x=x, y=y) for i, (x, y) in enumerate([(-600, 0), (600, 600)])]
        bounds = compute_bounds(nodes, LayoutConfig())
        assert (bounds.min_x, bounds.min_y, bounds.max_x, bounds.max_y) == (-750, -80, 750, 720)

    @pytest.mark.parametrize("count", [1, 3, 8])
    def test_contains_every_node(self, count):
        nodes = [Node(id=str(i), label=str(i), type="area") for i in range(count)]
        layout = compute_layout(build_hierarchy(nodes, []))
        b = layout.bounds
        assert b.width >= 1000 and b.height >= 600
        for node in layout.nodes:
            assert b.min_x <= node.x <= b.max_x
            assert b.min_y <= node.y <= b.max_y

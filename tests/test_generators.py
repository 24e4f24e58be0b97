"""Tests for the mindmap and workflow generators."""

import math

import pytest

from canvas_core.generators import (
    add_mindmap_branches, build_mindmap, build_workflow, resolve_workflow_steps,
)
from canvas_core.graph import CanvasGraph
from canvas_core.models import CanvasKind, ConnectionStyle, NodeKind
from canvas_core.results import ErrorKind
from canvas_core.templates import WORKFLOW_TEMPLATES, custom_steps, template_catalog


class TestMindmap:

    def test_planning_scenario(self):
        canvas = build_mindmap("Q1 Planning", "Strategy", ["Market", "Product", "Team"])

        assert canvas.name == "Q1 Planning"
        assert canvas.type == CanvasKind.MINDMAP
        assert len(canvas.nodes) == 4
        assert all(n.type == NodeKind.IDEA for n in canvas.nodes)

        center = canvas.nodes[0]
        assert center.label == "Strategy"
        assert (center.width, center.height) == (200, 100)
        assert center.center() == (400, 300)

        assert len(canvas.connections) == 3
        for conn, branch in zip(canvas.connections, canvas.nodes[1:]):
            assert conn.style == ConnectionStyle.SOLID
            assert conn.from_node_id == center.id
            assert conn.to_node_id == branch.id

    @pytest.mark.parametrize("k", [1, 3, 4, 7])
    def test_branch_angles(self, k):
        canvas = build_mindmap("M", "C", [f"b{i}" for i in range(k)])
        for i, branch in enumerate(canvas.nodes[1:]):
            angle = 2 * math.pi * i / k - math.pi / 2
            cx, cy = branch.center()
            assert cx == pytest.approx(400 + 250 * math.cos(angle))
            assert cy == pytest.approx(300 + 250 * math.sin(angle))
            assert (branch.width, branch.height) == (150, 70)

    def test_first_branch_due_north(self):
        canvas = build_mindmap("M", "C", ["north", "other"])
        cx, cy = canvas.nodes[1].center()
        assert cx == pytest.approx(400)
        assert cy == pytest.approx(50)

    def test_no_branches(self):
        canvas = build_mindmap("M", "Alone", [])
        assert len(canvas.nodes) == 1
        assert canvas.connections == []


class TestAddBranches:

    def test_angles_continue_from_existing_children(self):
        canvas = build_mindmap("M", "C", ["a", "b"])
        graph = CanvasGraph(canvas)
        center = canvas.nodes[0]

        result = add_mindmap_branches(graph, center.id, ["x", "y"])

        assert result.success
        added = result.data
        assert [n.label for n in added] == ["x", "y"]
        pcx, pcy = center.center()
        for idx, node in enumerate(added):
            angle = math.pi / 4 + (2 + idx) * math.pi / 6
            cx, cy = node.center()
            assert cx == pytest.approx(pcx + 180 * math.cos(angle))
            assert cy == pytest.approx(pcy + 180 * math.sin(angle))
            assert (node.width, node.height) == (120, 60)
        assert len(graph.outgoing(center.id)) == 4
        assert all(c.style == ConnectionStyle.SOLID for c in canvas.connections)

    def test_missing_parent(self):
        graph = CanvasGraph(build_mindmap("M", "C", []))
        result = add_mindmap_branches(graph, "ghost", ["x"])
        assert result.error == ErrorKind.NOT_FOUND
        assert len(graph.nodes) == 1


class TestWorkflow:

    def test_literature_review(self):
        steps = resolve_workflow_steps("literature-review").data
        canvas = build_workflow("Review", steps)

        assert canvas.type == CanvasKind.WORKFLOW
        assert [n.type for n in canvas.nodes] == [
            NodeKind.SOURCE, NodeKind.PROCESS, NodeKind.ANALYZE, NodeKind.ANALYZE, NodeKind.OUTPUT,
        ]
        assert len(canvas.connections) == 4
        for i, conn in enumerate(canvas.connections):
            assert conn.style == ConnectionStyle.ARROW
            assert conn.from_node_id == canvas.nodes[i].id
            assert conn.to_node_id == canvas.nodes[i + 1].id

    def test_geometry_and_labels(self):
        canvas = build_workflow("Review", resolve_workflow_steps("data-analysis").data)
        assert [(n.x, n.y) for n in canvas.nodes] == [(100 + i * 240, 150) for i in range(5)]
        assert all((n.width, n.height) == (180, 100) for n in canvas.nodes)
        assert canvas.nodes[0].label == "Data Collection\nGather datasets from various sources"

    @pytest.mark.parametrize("template", list(WORKFLOW_TEMPLATES))
    def test_every_template_has_five_steps(self, template):
        assert len(resolve_workflow_steps(template).data) == 5

    def test_custom_steps(self):
        canvas = build_workflow("Mine", resolve_workflow_steps("custom", ["One", "Two", "Three"]).data)
        assert [n.type for n in canvas.nodes] == [NodeKind.SOURCE, NodeKind.PROCESS, NodeKind.OUTPUT]
        # No description, no second line
        assert canvas.nodes[1].label == "Two"

    def test_single_custom_step_is_source(self):
        assert [s.kind for s in custom_steps(["Only"])] == [NodeKind.SOURCE]

    def test_custom_without_steps(self):
        assert resolve_workflow_steps("custom").error == ErrorKind.INVALID_INPUT
        assert resolve_workflow_steps("custom", []).error == ErrorKind.INVALID_INPUT

    def test_unknown_template(self):
        result = resolve_workflow_steps("grant-proposal")
        assert result.error == ErrorKind.INVALID_INPUT
        assert "grant-proposal" in result.message


def test_template_catalog():
    catalog = template_catalog()
    assert set(catalog["workflow"]) == set(WORKFLOW_TEMPLATES)
    assert catalog["mindmap"]["swot"]["branches"] == ["Strengths", "Weaknesses", "Opportunities", "Threats"]

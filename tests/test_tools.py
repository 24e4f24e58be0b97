"""Tests for the tool catalogue and dispatcher."""

import json
import re

import pytest

from canvas_backend.tools import TOOL_NAMES, TOOLS, to_mcp_response
from canvas_core.results import ErrorKind, OperationResult


def text_of(response: dict) -> str:
    return response["content"][0]["text"]


def id_after(label: str, text: str) -> str:
    match = re.search(rf"{label}: (\S+)", text)
    assert match, f"{label} not in {text!r}"
    return match.group(1)


async def new_canvas(dispatcher, name="Tools") -> str:
    response = await dispatcher.call("canvas_create", {"name": name, "type": "freeform"})
    return id_after("Canvas ID", text_of(response))


async def new_node(dispatcher, canvas_id, label, node_type="idea") -> str:
    response = await dispatcher.call(
        "canvas_add_node", {"canvasId": canvas_id, "nodeType": node_type, "label": label}
    )
    assert not response["isError"], text_of(response)
    return id_after("Node ID", text_of(response))


def test_catalogue():
    assert len(TOOLS) == 16
    assert TOOL_NAMES == {
        "canvas_create", "canvas_delete", "canvas_add_node", "canvas_update_node",
        "canvas_delete_node", "canvas_add_connection", "canvas_delete_connection",
        "canvas_export_svg", "canvas_export_json", "canvas_import_json", "canvas_layout_auto",
        "mindmap_create", "mindmap_add_branch", "workflow_create", "canvas_list", "canvas_get",
    }
    for tool in TOOLS:
        schema = tool["inputSchema"]
        assert set(schema["required"]) <= set(schema["properties"])


def test_error_response_shape():
    response = to_mcp_response(OperationResult.fail(ErrorKind.NOT_FOUND, "Canvas not found: x"))
    assert response == {
        "content": [{"type": "text", "text": "Error: Canvas not found: x"}],
        "isError": True,
    }


# ── Dispatch errors ──


class TestDispatchErrors:

    async def test_unknown_tool(self, dispatcher):
        result = await dispatcher.dispatch("canvas_explode", {})
        assert result.error == ErrorKind.UNKNOWN_OPERATION

    async def test_missing_argument(self, dispatcher):
        result = await dispatcher.dispatch("canvas_create", {"type": "freeform"})
        assert result.error == ErrorKind.INVALID_INPUT
        assert "name" in result.message

    async def test_wrong_argument_type(self, dispatcher):
        canvas_id = await new_canvas(dispatcher)
        result = await dispatcher.dispatch(
            "canvas_add_node", {"canvasId": canvas_id, "nodeType": "idea", "label": "x", "x": "left"}
        )
        assert result.error == ErrorKind.INVALID_INPUT

    @pytest.mark.parametrize("value", ["inf", "nan", "-Infinity", float("inf")])
    async def test_non_finite_coordinate_rejected(self, dispatcher, value):
        canvas_id = await new_canvas(dispatcher)
        node_id = await new_node(dispatcher, canvas_id, "Steady")
        result = await dispatcher.dispatch(
            "canvas_update_node", {"canvasId": canvas_id, "nodeId": node_id, "x": value}
        )
        assert result.error == ErrorKind.INVALID_INPUT
        response = await dispatcher.call("canvas_get", {"canvasId": canvas_id})
        assert not response["isError"]

    async def test_branches_must_be_strings(self, dispatcher):
        result = await dispatcher.dispatch("mindmap_create", {"name": "M", "centralTopic": "C", "branches": [1]})
        assert result.error == ErrorKind.INVALID_INPUT

    async def test_missing_canvas(self, dispatcher):
        response = await dispatcher.call("canvas_get", {"canvasId": "nope"})
        assert response["isError"]
        assert text_of(response).startswith("Error: Canvas not found")


# ── Tools end to end ──


class TestTools:

    async def test_node_and_connection_lifecycle(self, dispatcher):
        canvas_id = await new_canvas(dispatcher)
        a = await new_node(dispatcher, canvas_id, "Alpha")
        b = await new_node(dispatcher, canvas_id, "Beta", "task")

        response = await dispatcher.call(
            "canvas_add_connection",
            {"canvasId": canvas_id, "fromNodeId": a, "toNodeId": b, "label": "leads to"},
        )
        conn_id = id_after("Connection ID", text_of(response))

        response = await dispatcher.call("canvas_update_node", {"canvasId": canvas_id, "nodeId": a, "label": "Alpha 2"})
        assert not response["isError"]

        details = text_of(await dispatcher.call("canvas_get", {"canvasId": canvas_id}))
        assert '[idea] "Alpha 2"' in details
        assert '"Alpha 2" -> "Beta"' in details

        response = await dispatcher.call("canvas_delete_connection", {"canvasId": canvas_id, "connectionId": conn_id})
        assert not response["isError"]
        response = await dispatcher.call("canvas_delete_node", {"canvasId": canvas_id, "nodeId": b})
        assert not response["isError"]
        assert "Nodes (1)" in text_of(await dispatcher.call("canvas_get", {"canvasId": canvas_id}))

    async def test_dangling_connection(self, dispatcher):
        canvas_id = await new_canvas(dispatcher)
        a = await new_node(dispatcher, canvas_id, "Alpha")
        result = await dispatcher.dispatch(
            "canvas_add_connection", {"canvasId": canvas_id, "fromNodeId": a, "toNodeId": "ghost"}
        )
        assert result.error == ErrorKind.INVALID_REFERENCE

    async def test_export_and_import(self, dispatcher):
        canvas_id = await new_canvas(dispatcher, "Exported")
        await new_node(dispatcher, canvas_id, "Only")

        svg_text = text_of(await dispatcher.call("canvas_export_svg", {"canvasId": canvas_id}))
        assert "```svg\n<svg" in svg_text

        json_text = text_of(await dispatcher.call("canvas_export_json", {"canvasId": canvas_id}))
        raw = json_text.split("```json\n", 1)[1].rsplit("\n```", 1)[0]
        assert json.loads(raw)["name"] == "Exported"

        response = await dispatcher.call("canvas_import_json", {"json": raw})
        text = text_of(response)
        assert not response["isError"]
        assert id_after("New Canvas ID", text) != canvas_id
        assert "Nodes: 1" in text

    async def test_import_malformed(self, dispatcher, store):
        response = await dispatcher.call("canvas_import_json", {"json": "{broken"})
        assert response["isError"]
        assert await store.list_canvases() == []

    async def test_layout(self, dispatcher):
        canvas_id = await new_canvas(dispatcher)
        await new_node(dispatcher, canvas_id, "N")
        ok = await dispatcher.dispatch("canvas_layout_auto", {"canvasId": canvas_id, "algorithm": "tree"})
        assert ok.success
        bad = await dispatcher.dispatch("canvas_layout_auto", {"canvasId": canvas_id, "algorithm": "spiral"})
        assert bad.error == ErrorKind.INVALID_INPUT

    async def test_mindmap_tools(self, dispatcher):
        response = await dispatcher.call(
            "mindmap_create", {"name": "Q1 Planning", "centralTopic": "Strategy", "branches": ["Market", "Team"]}
        )
        text = text_of(response)
        assert "Branches: 2" in text
        assert "  1. Market\n  2. Team" in text
        canvas_id = id_after("Canvas ID", text)

        details = text_of(await dispatcher.call("canvas_get", {"canvasId": canvas_id}))
        center_id = re.search(r'"Strategy" \((\S+)\)', details).group(1)

        response = await dispatcher.call(
            "mindmap_add_branch", {"canvasId": canvas_id, "parentNodeId": center_id, "branchTopics": ["Budget"]}
        )
        assert not response["isError"]
        assert "Nodes (4)" in text_of(await dispatcher.call("canvas_get", {"canvasId": canvas_id}))

    async def test_workflow_create(self, dispatcher):
        response = await dispatcher.call("workflow_create", {"name": "Review", "template": "literature-review"})
        text = text_of(response)
        assert "Steps: 5" in text
        assert "  1. Gather Sources\n" in text
        assert text.endswith("  5. Generate Report")

        custom = await dispatcher.dispatch(
            "workflow_create", {"name": "Mine", "template": "custom", "customSteps": ["Plan", "Do"]}
        )
        assert [n.label for n in custom.data.nodes] == ["Plan", "Do"]

        missing = await dispatcher.dispatch("workflow_create", {"name": "Mine", "template": "custom"})
        assert missing.error == ErrorKind.INVALID_INPUT

    async def test_canvas_list(self, dispatcher):
        empty = text_of(await dispatcher.call("canvas_list", {}))
        assert empty.startswith("No canvases found.")

        await new_canvas(dispatcher, "One")
        listing = text_of(await dispatcher.call("canvas_list"))
        assert listing.startswith("1 Canvas\n")
        assert "- One (freeform)" in listing

    async def test_delete_canvas(self, dispatcher):
        canvas_id = await new_canvas(dispatcher)
        assert not (await dispatcher.call("canvas_delete", {"canvasId": canvas_id}))["isError"]
        assert (await dispatcher.call("canvas_delete", {"canvasId": canvas_id}))["isError"]


# ── Resources ──


class TestResources:

    async def test_list_includes_canvases(self, dispatcher):
        canvas_id = await new_canvas(dispatcher, "Listed")
        uris = [r["uri"] for r in await dispatcher.list_resources()]
        assert uris[:3] == ["canvas://list", "templates://mindmap", "templates://workflow"]
        assert f"canvas://{canvas_id}" in uris

    async def test_read(self, dispatcher):
        canvas_id = await new_canvas(dispatcher, "Read me")

        summary = json.loads((await dispatcher.read_resource("canvas://list")).data)
        assert summary[0]["name"] == "Read me"

        document = json.loads((await dispatcher.read_resource(f"canvas://{canvas_id}")).data)
        assert document["id"] == canvas_id

        templates = json.loads((await dispatcher.read_resource("templates://workflow")).data)
        assert "literature-review" in templates

    @pytest.mark.parametrize("uri", ["canvas://missing", "files:///etc/passwd"])
    async def test_read_unknown(self, dispatcher, uri):
        assert (await dispatcher.read_resource(uri)).error == ErrorKind.NOT_FOUND

"""Tests for the async document service."""

import json

import pytest

from canvas_backend.service import CANVAS_DELETED, CANVAS_UPDATED, CanvasService
from canvas_backend.store import JsonDirectoryStore, MemoryCanvasStore, create_store
from canvas_core.models import CanvasData, CanvasKind, ConnectionStyle, NodeKind
from canvas_core.results import ErrorKind


@pytest.fixture
async def canvas_id(service):
    result = await service.create("Board")
    return result.data.id


async def add(service, canvas_id, label, kind="idea", **kwargs):
    result = await service.add_node(canvas_id, kind, label, **kwargs)
    assert result.success, result.message
    return result.data


# ── Documents ──


class TestDocuments:

    async def test_create_and_get(self, service):
        created = await service.create("Plan", "mindmap")
        assert created.success
        fetched = await service.get(created.data.id)
        assert fetched.data.name == "Plan"
        assert fetched.data.type == CanvasKind.MINDMAP

    async def test_create_unknown_kind(self, service, store):
        result = await service.create("Plan", "kanban")
        assert result.error == ErrorKind.INVALID_INPUT
        assert await store.list_canvases() == []

    async def test_missing_canvas(self, service):
        for result in (
            await service.get("nope"),
            await service.delete("nope"),
            await service.export_svg("nope"),
            await service.add_node("nope", "idea", "x"),
            await service.apply_layout("nope", "grid"),
        ):
            assert result.error == ErrorKind.NOT_FOUND

    async def test_list_and_delete(self, service, canvas_id):
        await service.create("Second")
        listed = await service.list_canvases()
        assert len(listed.data) == 2

        assert (await service.delete(canvas_id)).success
        assert (await service.get(canvas_id)).error == ErrorKind.NOT_FOUND

    async def test_save_overwrites_and_keeps_created_at(self, service, canvas_id):
        original = (await service.get(canvas_id)).data
        edited = original.model_copy(deep=True)
        edited.name = "Renamed"
        edited.created_at = edited.created_at.replace(year=2000)

        assert (await service.save(edited)).success
        stored = (await service.get(canvas_id)).data
        assert stored.name == "Renamed"
        assert stored.created_at == original.created_at
        assert stored.updated_at >= original.updated_at

    async def test_save_unknown_canvas(self, service):
        assert (await service.save(CanvasData())).error == ErrorKind.NOT_FOUND

    async def test_last_write_wins(self, service, canvas_id):
        first = (await service.get(canvas_id)).data
        second = (await service.get(canvas_id)).data
        first.name = "First"
        second.name = "Second"
        await service.save(first)
        await service.save(second)
        assert (await service.get(canvas_id)).data.name == "Second"


# ── Nodes & connections ──


class TestGraphEdits:

    async def test_add_node_persists(self, service, canvas_id):
        node = await add(service, canvas_id, "Hello", "task", x=10, y=20, bgColor="#ffffff")
        stored = (await service.get(canvas_id)).data
        assert stored.nodes[0].id == node.id
        assert (stored.nodes[0].x, stored.nodes[0].y) == (10, 20)
        assert stored.nodes[0].type == NodeKind.TASK
        assert stored.nodes[0].bg_color == "#ffffff"

    async def test_add_node_unknown_kind(self, service, canvas_id):
        result = await service.add_node(canvas_id, "banana", "x")
        assert result.error == ErrorKind.INVALID_INPUT

    async def test_add_node_invalid_size(self, service, canvas_id):
        result = await service.add_node(canvas_id, "idea", "x", width=-5)
        assert result.error == ErrorKind.INVALID_INPUT
        assert (await service.get(canvas_id)).data.nodes == []

    async def test_update_node(self, service, canvas_id):
        node = await add(service, canvas_id, "Old")
        result = await service.update_node(canvas_id, node.id, label="New", x=None)
        assert result.success
        stored = (await service.get(canvas_id)).data.nodes[0]
        assert stored.label == "New"
        assert stored.x == node.x

    async def test_invalid_update_is_not_saved(self, service, canvas_id):
        node = await add(service, canvas_id, "Keep")
        result = await service.update_node(canvas_id, node.id, font_size=-5)
        assert result.error == ErrorKind.INVALID_INPUT
        reloaded = await service.get(canvas_id)
        assert reloaded.success
        assert reloaded.data.nodes[0].model_dump() == node.model_dump()

    async def test_update_missing_node(self, service, canvas_id):
        result = await service.update_node(canvas_id, "ghost", label="x")
        assert result.error == ErrorKind.NOT_FOUND

    async def test_delete_node_cascades_only_its_connections(self, service, canvas_id):
        a = await add(service, canvas_id, "A")
        b = await add(service, canvas_id, "B")
        c = await add(service, canvas_id, "C")
        await service.add_connection(canvas_id, a.id, b.id)
        await service.add_connection(canvas_id, b.id, a.id)
        keep = (await service.add_connection(canvas_id, b.id, c.id)).data

        assert (await service.delete_node(canvas_id, a.id)).success
        stored = (await service.get(canvas_id)).data
        assert [n.id for n in stored.nodes] == [b.id, c.id]
        assert [conn.id for conn in stored.connections] == [keep.id]

    async def test_add_connection_dangling(self, service, canvas_id):
        a = await add(service, canvas_id, "A")
        result = await service.add_connection(canvas_id, a.id, "ghost")
        assert result.error == ErrorKind.INVALID_REFERENCE
        assert (await service.get(canvas_id)).data.connections == []

    async def test_add_connection_style(self, service, canvas_id):
        a = await add(service, canvas_id, "A")
        b = await add(service, canvas_id, "B")
        conn = (await service.add_connection(canvas_id, a.id, b.id, "rel", "dashed", "#ff0000")).data
        assert conn.style == ConnectionStyle.DASHED
        assert (conn.label, conn.color) == ("rel", "#ff0000")

        bad = await service.add_connection(canvas_id, a.id, b.id, style="wavy")
        assert bad.error == ErrorKind.INVALID_INPUT

    async def test_delete_connection(self, service, canvas_id):
        a = await add(service, canvas_id, "A")
        b = await add(service, canvas_id, "B")
        conn = (await service.add_connection(canvas_id, a.id, b.id)).data
        assert (await service.delete_connection(canvas_id, conn.id)).success
        assert (await service.delete_connection(canvas_id, conn.id)).error == ErrorKind.NOT_FOUND

    async def test_mutation_refreshes_updated_at(self, service, canvas_id):
        before = (await service.get(canvas_id)).data.updated_at
        await add(service, canvas_id, "A")
        assert (await service.get(canvas_id)).data.updated_at >= before


# ── Export / import ──


class TestExportImport:

    async def test_round_trip(self, service, canvas_id):
        a = await add(service, canvas_id, "A", "research", x=5, y=6, fontSize=18, textColor="#111111")
        b = await add(service, canvas_id, "B\nsecond line", "decision", imageUrl="https://example.com/i.png")
        await service.add_connection(canvas_id, a.id, b.id, "why", "solid", "#00ff00")
        original = (await service.get(canvas_id)).data

        exported = (await service.export_json(canvas_id)).data
        imported = (await service.import_json(exported)).data

        assert imported.id != original.id
        assert imported.name == original.name
        assert [n.model_dump() for n in imported.nodes] == [n.model_dump() for n in original.nodes]
        assert [c.model_dump() for c in imported.connections] == [c.model_dump() for c in original.connections]
        assert (await service.get(imported.id)).success

    async def test_export_json_is_camel_case(self, service, canvas_id):
        a = await add(service, canvas_id, "A")
        b = await add(service, canvas_id, "B")
        await service.add_connection(canvas_id, a.id, b.id)
        data = json.loads((await service.export_json(canvas_id)).data)
        assert {"createdAt", "updatedAt"} <= set(data)
        assert {"fromNodeId", "toNodeId"} <= set(data["connections"][0])

    @pytest.mark.parametrize("raw", ["{not json", "[1, 2]", '{"nodes": [{"width": -1}]}', '{"nodes": "x"}'])
    async def test_malformed_import_persists_nothing(self, service, store, raw):
        result = await service.import_json(raw)
        assert result.error == ErrorKind.INVALID_INPUT
        assert await store.list_canvases() == []

    async def test_import_rejects_overflowing_coordinates(self, service, store):
        # 1e999 parses to inf
        result = await service.import_json('{"nodes": [{"x": 1e999}]}')
        assert result.error == ErrorKind.INVALID_INPUT
        assert await store.list_canvases() == []

    async def test_import_with_dangling_connection_warns(self, service):
        raw = json.dumps({
            "name": "Broken",
            "nodes": [{"id": "a", "label": "A"}],
            "connections": [{"id": "c1", "fromNodeId": "a", "toNodeId": "missing"}],
        })
        result = await service.import_json(raw)
        assert result.success
        assert "Warnings:" in result.message
        assert "missing" in result.message

    async def test_export_svg(self, service, canvas_id):
        await add(service, canvas_id, "Shown")
        svg = (await service.export_svg(canvas_id)).data
        assert svg.startswith("<svg")
        assert "Shown" in svg

    async def test_export_png(self, service, canvas_id):
        png = (await service.export_png(canvas_id, width=320, height=200)).data
        assert png.startswith(b"\x89PNG")


# ── Layout, validation, generators ──


class TestLayoutAndGenerators:

    async def test_grid_layout(self, service, canvas_id):
        for i in range(5):
            await add(service, canvas_id, f"N{i}", x=999, y=999)
        result = await service.apply_layout(canvas_id, "grid")
        assert result.success
        stored = (await service.get(canvas_id)).data
        assert [(n.x, n.y) for n in stored.nodes] == [
            (100, 100), (320, 100), (540, 100), (100, 220), (320, 220),
        ]

    async def test_unknown_layout(self, service, canvas_id):
        result = await service.apply_layout(canvas_id, "spiral")
        assert result.error == ErrorKind.INVALID_INPUT
        assert "grid" in result.message

    async def test_validate(self, service, canvas_id):
        result = await service.validate(canvas_id)
        assert result.data["summary"]["valid"]
        assert result.data["issues"][0]["type"] == "info"

    async def test_mindmap_scenario(self, service):
        canvas = (await service.create_mindmap("Q1 Planning", "Strategy", ["Market", "Product", "Team"])).data
        stored = (await service.get(canvas.id)).data
        assert len(stored.nodes) == 4
        assert len(stored.connections) == 3
        assert all(c.from_node_id == stored.nodes[0].id for c in stored.connections)

    async def test_add_branches(self, service):
        canvas = (await service.create_mindmap("M", "C", ["a"])).data
        result = await service.add_mindmap_branches(canvas.id, canvas.nodes[0].id, ["b", "c"])
        assert [n.label for n in result.data] == ["b", "c"]
        assert len((await service.get(canvas.id)).data.nodes) == 4

        missing = await service.add_mindmap_branches(canvas.id, "ghost", ["x"])
        assert missing.error == ErrorKind.NOT_FOUND

    async def test_workflow_scenario(self, service):
        canvas = (await service.create_workflow("Review", "literature-review")).data
        stored = (await service.get(canvas.id)).data
        assert [n.type.value for n in stored.nodes] == ["source", "process", "analyze", "analyze", "output"]
        assert all(c.style == ConnectionStyle.ARROW for c in stored.connections)

    async def test_workflow_unknown_template(self, service, store):
        result = await service.create_workflow("X", "unknown")
        assert result.error == ErrorKind.INVALID_INPUT
        assert await store.list_canvases() == []


# ── Change notification ──


async def test_listeners_receive_events(service):
    events = []

    async def listener(event, canvas_id):
        events.append((event, canvas_id))

    service.on_change(listener)
    canvas = (await service.create("Watched")).data
    await service.add_node(canvas.id, "idea", "x")
    await service.add_node(canvas.id, "banana", "rejected")
    await service.delete(canvas.id)

    assert events == [
        (CANVAS_UPDATED, canvas.id),
        (CANVAS_UPDATED, canvas.id),
        (CANVAS_DELETED, canvas.id),
    ]


# ── Stores ──


class TestStores:

    async def test_memory_store_returns_copies(self, service, store, canvas_id):
        loaded = await store.load(canvas_id)
        loaded.name = "mutated"
        assert (await store.load(canvas_id)).name == "Board"

    async def test_json_directory_store(self, tmp_path):
        service = CanvasService(JsonDirectoryStore(tmp_path))
        canvas = (await service.create_mindmap("Disk", "Center", ["One"])).data

        assert (tmp_path / f"{canvas.id}.json").exists()
        reopened = CanvasService(JsonDirectoryStore(tmp_path))
        loaded = (await reopened.get(canvas.id)).data
        assert [n.label for n in loaded.nodes] == ["Center", "One"]

        assert (await reopened.delete(canvas.id)).success
        assert not (tmp_path / f"{canvas.id}.json").exists()

    async def test_json_store_rejects_path_ids(self, tmp_path):
        store = JsonDirectoryStore(tmp_path)
        assert await store.load("../etc/passwd") is None
        assert await store.delete("../x") is False

    async def test_json_store_skips_unreadable_files(self, tmp_path):
        (tmp_path / "broken.json").write_text("{nope", encoding="utf-8")
        store = JsonDirectoryStore(tmp_path)
        assert await store.list_canvases() == []

    def test_create_store(self, tmp_path):
        assert isinstance(create_store("memory"), MemoryCanvasStore)
        assert isinstance(create_store("json", tmp_path), JsonDirectoryStore)
        with pytest.raises(ValueError):
            create_store("json")
        with pytest.raises(ValueError):
            create_store("redis")

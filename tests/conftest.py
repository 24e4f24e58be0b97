"""Shared fixtures: in-memory documents, graphs, services and an HTTP client."""

import pytest
from fastapi.testclient import TestClient

from canvas_backend.config import Settings
from canvas_backend.main import create_app
from canvas_backend.service import CanvasService
from canvas_backend.store import MemoryCanvasStore
from canvas_backend.tools import ToolDispatcher
from canvas_core.graph import CanvasGraph
from canvas_core.models import CanvasData, CanvasNode, NodeKind


@pytest.fixture
def canvas():
    """Empty freeform canvas."""
    return CanvasData(name="Test Canvas")


@pytest.fixture
def graph(canvas):
    return CanvasGraph(canvas)


@pytest.fixture
def two_nodes(graph):
    """Graph with A at (0,0) and B at (300,0), both 100x100."""
    a = graph.insert_node(CanvasNode(id="a", type=NodeKind.IDEA, label="A", x=0, y=0, width=100, height=100)).data
    b = graph.insert_node(CanvasNode(id="b", type=NodeKind.TASK, label="B", x=300, y=0, width=100, height=100)).data
    return graph, a, b


@pytest.fixture
def store():
    return MemoryCanvasStore()


@pytest.fixture
def service(store):
    return CanvasService(store)


@pytest.fixture
def dispatcher(service):
    return ToolDispatcher(service)


@pytest.fixture
def client(service):
    """TestClient around a fresh app backed by the in-memory service."""
    app = create_app(service=service, settings=Settings())
    with TestClient(app) as test_client:
        yield test_client

"""Tests for the SVG exporter."""

from xml.etree import ElementTree

import pytest

from canvas_core.graph import CanvasGraph
from canvas_core.models import CanvasConnection, CanvasData, ConnectionStyle, NodeKind
from canvas_core.svg import EMPTY_SVG, arrowhead_points, escape_xml, export_svg

SVG = "{http://www.w3.org/2000/svg}"


def parse(svg: str) -> ElementTree.Element:
    return ElementTree.fromstring(svg)


def test_empty_canvas_placeholder():
    svg = export_svg(CanvasData())
    assert svg == EMPTY_SVG
    root = parse(svg)
    assert root.get("viewBox") == "0 0 800 600"
    assert root.find(f"{SVG}text").text == "Empty Canvas"


def test_viewbox_wraps_content_with_padding():
    canvas = CanvasData()
    CanvasGraph(canvas).add_node(label="n", x=100, y=100, width=160, height=80)
    assert parse(export_svg(canvas)).get("viewBox") == "50 50 260 180"


def test_nodes_and_multiline_labels():
    canvas = CanvasData()
    CanvasGraph(canvas).add_node(NodeKind.TASK, "first\nsecond", x=0, y=0, width=100, height=100)
    root = parse(export_svg(canvas))

    rect = root.find(f"{SVG}rect")
    assert rect.get("fill") == "#dbeafe"
    assert rect.get("stroke") == "#3b82f6"

    texts = root.findall(f"{SVG}text")
    assert [t.text for t in texts] == ["first", "second"]
    assert [t.get("y") for t in texts] == ["42", "58"]


def test_connection_styles():
    canvas = CanvasData()
    graph = CanvasGraph(canvas)
    a = graph.add_node(label="A", x=0, y=0).data
    b = graph.add_node(label="B", x=300, y=0).data
    graph.add_connection(a.id, b.id, style=ConnectionStyle.ARROW)
    graph.add_connection(b.id, a.id, style=ConnectionStyle.DASHED, label="back", color="#ff0000")
    graph.add_connection(a.id, b.id, style=ConnectionStyle.SOLID)

    root = parse(export_svg(canvas))
    lines = root.findall(f"{SVG}line")
    assert len(lines) == 3
    assert lines[0].get("stroke-dasharray") is None
    assert lines[1].get("stroke-dasharray") == "5,5"
    assert lines[1].get("stroke") == "#ff0000"
    assert len(root.findall(f"{SVG}polygon")) == 1
    labels = [t for t in root.findall(f"{SVG}text") if t.get("class") == "conn-label"]
    assert [t.text for t in labels] == ["back"]


def test_dangling_connection_skipped():
    canvas = CanvasData()
    node = CanvasGraph(canvas).add_node(label="A").data
    canvas.connections.append(CanvasConnection(from_node_id=node.id, to_node_id="ghost"))
    root = parse(export_svg(canvas))
    assert root.findall(f"{SVG}line") == []


def test_text_is_escaped():
    canvas = CanvasData()
    CanvasGraph(canvas).add_node(label='<b> & "quoted" \'single\'')
    svg = export_svg(canvas)
    assert "&lt;b&gt; &amp; &quot;quoted&quot; &apos;single&apos;" in svg
    assert parse(svg).findall(f"{SVG}text")[0].text == '<b> & "quoted" \'single\''


def test_escape_xml():
    assert escape_xml("a<b>&\"'") == "a&lt;b&gt;&amp;&quot;&apos;"


def test_arrowhead_tip_on_target():
    tip, left, right = arrowhead_points(0, 0, 100, 0)
    assert tip == (100, 0)
    assert left[0] < 100 and right[0] < 100
    assert left[1] == pytest.approx(-right[1])

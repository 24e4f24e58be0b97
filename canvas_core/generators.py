"""
Canvas generators - Build pre-populated mindmaps and workflows.

Generators produce complete documents (or batches of nodes for an existing
one) with positions already assigned, so a freshly generated canvas renders
without a separate layout pass.
"""

import math
from typing import Optional

from .graph import CanvasGraph
from .layout import radial_angle, radial_position
from .models import (
    CanvasData, CanvasKind, CanvasNode, ConnectionStyle, NodeKind,
)
from .results import ErrorKind, OperationResult
from .templates import (
    CUSTOM_TEMPLATE, WORKFLOW_TEMPLATES, WorkflowStep, custom_steps,
)


# Mindmap geometry
MINDMAP_CENTER = (400.0, 300.0)
MINDMAP_RADIUS = 250
CENTER_SIZE = (200, 100)
BRANCH_SIZE = (150, 70)

# Branch-append geometry
SUB_BRANCH_RADIUS = 180
SUB_BRANCH_BASE_ANGLE = math.pi / 4
SUB_BRANCH_ANGLE_STEP = math.pi / 6
SUB_BRANCH_SIZE = (120, 60)

# Workflow geometry
WORKFLOW_START_X = 100
WORKFLOW_START_Y = 150
STEP_WIDTH = 180
STEP_HEIGHT = 100
STEP_GAP = 60


def build_mindmap(name: str, central_topic: str, branches: list[str]) -> CanvasData:
    """
    Create a mindmap: one central idea with branches spread evenly around it.

    Branch i sits at angle 2*pi*i/k - pi/2 on a circle of radius 250, so the
    first branch is due north of the center. Every branch gets a solid
    connection from the central node.
    """
    cx, cy = MINDMAP_CENTER
    width, height = CENTER_SIZE
    canvas = CanvasData(name=name, type=CanvasKind.MINDMAP)
    graph = CanvasGraph(canvas)

    central = graph.insert_node(CanvasNode(
        type=NodeKind.IDEA,
        label=central_topic,
        x=cx - width / 2,
        y=cy - height / 2,
        width=width,
        height=height,
    )).data

    bw, bh = BRANCH_SIZE
    for idx, topic in enumerate(branches):
        x, y = radial_position(MINDMAP_CENTER, MINDMAP_RADIUS, radial_angle(idx, len(branches)), bw, bh)
        branch = graph.insert_node(CanvasNode(
            type=NodeKind.IDEA, label=topic, x=x, y=y, width=bw, height=bh,
        )).data
        graph.add_connection(central.id, branch.id, style=ConnectionStyle.SOLID)

    return canvas


def add_mindmap_branches(graph: CanvasGraph, parent_node_id: str, topics: list[str]) -> OperationResult:
    """
    Fan new branches out from an existing node.

    Angles continue from the parent's current child count, so repeated calls
    keep spreading outward instead of stacking on the same spot.
    """
    parent = graph.get_node(parent_node_id)
    if parent is None:
        return OperationResult.not_found("Parent node", parent_node_id)

    existing = len(graph.outgoing(parent_node_id))
    center = parent.center()
    width, height = SUB_BRANCH_SIZE

    added = []
    for idx, topic in enumerate(topics):
        angle = SUB_BRANCH_BASE_ANGLE + (existing + idx) * SUB_BRANCH_ANGLE_STEP
        x, y = radial_position(center, SUB_BRANCH_RADIUS, angle, width, height)
        node = graph.insert_node(CanvasNode(
            type=NodeKind.IDEA, label=topic, x=x, y=y, width=width, height=height,
        )).data
        graph.add_connection(parent.id, node.id, style=ConnectionStyle.SOLID)
        added.append(node)

    return OperationResult.ok(
        f'Added {len(added)} branches to "{parent.label}"', data=added
    )


def resolve_workflow_steps(template: str, steps: Optional[list[str]] = None) -> OperationResult:
    """Look up template steps, or build them from custom titles."""
    if template == CUSTOM_TEMPLATE:
        if not steps:
            return OperationResult.fail(
                ErrorKind.INVALID_INPUT, "Template 'custom' requires customSteps"
            )
        return OperationResult.ok(data=custom_steps(steps))

    found = WORKFLOW_TEMPLATES.get(template)
    if found is None:
        return OperationResult.fail(ErrorKind.INVALID_INPUT, f"Unknown template: {template}")
    return OperationResult.ok(data=list(found.steps))


def build_workflow(name: str, steps: list[WorkflowStep]) -> CanvasData:
    """Lay steps out left to right and chain them with arrow connections."""
    canvas = CanvasData(name=name, type=CanvasKind.WORKFLOW)
    graph = CanvasGraph(canvas)

    previous = None
    for idx, step in enumerate(steps):
        label = f"{step.title}\n{step.description}" if step.description else step.title
        node = graph.insert_node(CanvasNode(
            type=step.kind,
            label=label,
            x=WORKFLOW_START_X + idx * (STEP_WIDTH + STEP_GAP),
            y=WORKFLOW_START_Y,
            width=STEP_WIDTH,
            height=STEP_HEIGHT,
        )).data
        if previous is not None:
            graph.add_connection(previous.id, node.id, style=ConnectionStyle.ARROW)
        previous = node

    return canvas

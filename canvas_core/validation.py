"""
Canvas validation - Check canvases for structural issues.

Imports may carry documents that violate the graph invariants (connections
pointing at nodes that do not exist, repeated ids). The checks here report
those problems without changing anything, so callers decide what to do.
"""

from collections import Counter
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .models import CanvasData


class IssueSeverity(str, Enum):
    """Severity levels for validation issues."""
    ERROR = "error"      # Breaks an invariant, renderers will skip the element
    WARNING = "warning"  # Probably unintended
    INFO = "info"        # Informational, may be intentional


@dataclass
class ValidationIssue:
    """A single validation issue found in a canvas."""
    severity: IssueSeverity
    message: str
    node_id: str | None = None
    connection_id: str | None = None

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON serialization."""
        result = {
            "type": self.severity.value,
            "message": self.message
        }
        if self.node_id:
            result["nodeId"] = self.node_id
        if self.connection_id:
            result["connectionId"] = self.connection_id
        return result


def validate_canvas(canvas: "CanvasData") -> list[ValidationIssue]:
    """
    Validate a canvas and return a list of issues.

    Checks for:
    - Duplicate node ids - ERROR
    - Connections whose endpoint does not exist - ERROR
    - Self-referencing connections - WARNING
    - Duplicate connections (same from->to) - WARNING
    - Nodes with an empty label - WARNING
    - Empty canvas - INFO

    Orphan nodes are not reported: freeform canvases routinely hold
    unconnected notes.
    """
    issues: list[ValidationIssue] = []

    nodes = canvas.nodes
    connections = canvas.connections

    if not nodes:
        issues.append(ValidationIssue(
            severity=IssueSeverity.INFO,
            message="Canvas has no nodes"
        ))

    id_counts = Counter(n.id for n in nodes)
    for node_id, count in id_counts.items():
        if count > 1:
            issues.append(ValidationIssue(
                severity=IssueSeverity.ERROR,
                message=f"Node id used {count} times: {node_id}",
                node_id=node_id
            ))

    node_ids = set(id_counts)

    for node in nodes:
        if not node.label.strip():
            issues.append(ValidationIssue(
                severity=IssueSeverity.WARNING,
                message="Node has an empty label",
                node_id=node.id
            ))

    seen_pairs: set[tuple[str, str]] = set()
    for conn in connections:
        if conn.from_node_id not in node_ids:
            issues.append(ValidationIssue(
                severity=IssueSeverity.ERROR,
                message=f"Connection references non-existent source node: {conn.from_node_id}",
                connection_id=conn.id
            ))
        if conn.to_node_id not in node_ids:
            issues.append(ValidationIssue(
                severity=IssueSeverity.ERROR,
                message=f"Connection references non-existent target node: {conn.to_node_id}",
                connection_id=conn.id
            ))

        if conn.from_node_id == conn.to_node_id:
            issues.append(ValidationIssue(
                severity=IssueSeverity.WARNING,
                message="Self-referencing connection (node points to itself)",
                connection_id=conn.id,
                node_id=conn.from_node_id
            ))

        pair = (conn.from_node_id, conn.to_node_id)
        if pair in seen_pairs:
            issues.append(ValidationIssue(
                severity=IssueSeverity.WARNING,
                message=f"Duplicate connection from {conn.from_node_id} to {conn.to_node_id}",
                connection_id=conn.id
            ))
        else:
            seen_pairs.add(pair)

    return issues


def validation_summary(issues: list[ValidationIssue]) -> dict:
    """Counts by severity; a canvas is valid when it has no errors."""
    errors = sum(1 for i in issues if i.severity == IssueSeverity.ERROR)
    return {
        "total": len(issues),
        "errors": errors,
        "warnings": sum(1 for i in issues if i.severity == IssueSeverity.WARNING),
        "info": sum(1 for i in issues if i.severity == IssueSeverity.INFO),
        "valid": errors == 0,
    }

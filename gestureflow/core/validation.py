"""
Diagram validation - Document parsing and structural checks.

parse_document() is the strict gate in front of DiagramController.load_diagram
(which itself tolerates missing arrays). validate_diagram() reports issues in
an already-loaded diagram for the API and CLI.
"""

import json
from dataclasses import dataclass
from enum import Enum
from typing import Any, TYPE_CHECKING

from pydantic import ValidationError

from .models import DiagramDocument, DEFAULT_NODE_LABEL

if TYPE_CHECKING:
    from .models import DiagramState


class DocumentFormatError(ValueError):
    """A diagram document is missing required arrays or has invalid entries."""


def parse_document(data: Any) -> DiagramDocument:
    """
    Validate a decoded diagram document.

    Both `nodes` and `connections` must be present and be lists; every entry
    must validate against the node/connection schema.

    Raises:
        DocumentFormatError: if the payload is malformed
    """
    if not isinstance(data, dict):
        raise DocumentFormatError("Invalid file format: expected a JSON object")

    missing = [key for key in ("nodes", "connections") if not isinstance(data.get(key), list)]
    if missing:
        raise DocumentFormatError(
            f"Invalid file format: Missing {' or '.join(missing)} array"
        )

    try:
        return DiagramDocument.model_validate(
            {"nodes": data["nodes"], "connections": data["connections"]}
        )
    except ValidationError as e:
        raise DocumentFormatError(f"Invalid diagram entries: {e.error_count()} error(s)") from e


def parse_document_json(text: str | bytes) -> DiagramDocument:
    """Decode JSON text and validate it as a diagram document."""
    try:
        data = json.loads(text)
    except (json.JSONDecodeError, UnicodeDecodeError) as e:
        raise DocumentFormatError(f"Error parsing JSON file: {e}") from e
    return parse_document(data)


class IssueSeverity(str, Enum):
    """Severity levels for validation issues."""
    ERROR = "error"      # Invalid state, must be fixed
    WARNING = "warning"  # Potential problem, should review
    INFO = "info"        # Informational, may be intentional


@dataclass
class ValidationIssue:
    """A single validation issue found in a diagram."""
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
            result["node_id"] = self.node_id
        if self.connection_id:
            result["connection_id"] = self.connection_id
        return result


def validate_diagram(state: "DiagramState | DiagramDocument") -> list[ValidationIssue]:
    """
    Validate a diagram and return a list of issues.

    Checks for:
    - Empty diagram - INFO
    - Orphan nodes (no connections) - WARNING
    - Default or empty labels - WARNING
    - Dangling connection endpoints - ERROR
    - Self-referencing connections - ERROR
    - Duplicate connections (same unordered pair) - ERROR
    """
    issues: list[ValidationIssue] = []

    nodes = state.nodes
    connections = state.connections
    node_ids = {n.id for n in nodes}

    if not nodes:
        issues.append(ValidationIssue(
            severity=IssueSeverity.INFO,
            message="Diagram has no nodes"
        ))
        return issues

    connected_nodes: set[str] = set()
    for conn in connections:
        connected_nodes.add(conn.from_node)
        connected_nodes.add(conn.to_node)

    orphans = node_ids - connected_nodes
    if orphans:
        orphan_labels = [f"{n.label} ({n.id})" for n in nodes if n.id in orphans]
        issues.append(ValidationIssue(
            severity=IssueSeverity.WARNING,
            message=f"Orphan nodes (no connections): {', '.join(orphan_labels)}"
        ))

    for node in nodes:
        if not node.label.strip() or node.label == DEFAULT_NODE_LABEL:
            issues.append(ValidationIssue(
                severity=IssueSeverity.WARNING,
                message="Node has default or empty label",
                node_id=node.id
            ))

    for conn in connections:
        for endpoint in (conn.from_node, conn.to_node):
            if endpoint not in node_ids:
                issues.append(ValidationIssue(
                    severity=IssueSeverity.ERROR,
                    message=f"Connection references non-existent node: {endpoint}",
                    connection_id=conn.id
                ))

    for conn in connections:
        if conn.from_node == conn.to_node:
            issues.append(ValidationIssue(
                severity=IssueSeverity.ERROR,
                message="Self-referencing connection (node connects to itself)",
                connection_id=conn.id,
                node_id=conn.from_node
            ))

    seen_pairs: set[frozenset[str]] = set()
    for conn in connections:
        pair = conn.pair()
        if pair in seen_pairs:
            issues.append(ValidationIssue(
                severity=IssueSeverity.ERROR,
                message=f"Duplicate connection between {conn.from_node} and {conn.to_node}",
                connection_id=conn.id
            ))
        else:
            seen_pairs.add(pair)

    return issues


def validation_summary(issues: list[ValidationIssue]) -> dict:
    """Create a summary of validation issues with counts by severity."""
    errors = len([i for i in issues if i.severity == IssueSeverity.ERROR])
    return {
        "total": len(issues),
        "errors": errors,
        "warnings": len([i for i in issues if i.severity == IssueSeverity.WARNING]),
        "info": len([i for i in issues if i.severity == IssueSeverity.INFO]),
        "valid": errors == 0
    }

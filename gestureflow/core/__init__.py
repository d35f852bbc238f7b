"""
GestureFlow Core - Shared models, viewport math, hit-testing and validation.

This module provides the pure functionality used by the controller, the
gesture dispatcher and the API, ensuring a single source of truth for all
diagram geometry and schema.
"""

from .models import (
    # Constants
    NODE_WIDTH,
    NODE_HEIGHT,
    DEFAULT_NODE_LABEL,
    NO_HAND,
    # Core models
    DiagramNode,
    DiagramConnection,
    DiagramDocument,
    DiagramState,
    FileInfo,
    SavedFile,
    # Gesture stream
    Wrist,
    GesturePrediction,
    FrameMessage,
    generate_id,
)

from .handshake import ConnectionHandshake, Idle, Armed
from .viewport import ViewportTransform, DisplayGeometry, MIN_SCALE, MAX_SCALE
from .geometry import find_node_at, node_contains, centered_origin, DEFAULT_HIT_PADDING
from .validation import (
    DocumentFormatError,
    parse_document,
    parse_document_json,
    validate_diagram,
    validation_summary,
    ValidationIssue,
    IssueSeverity,
)

__all__ = [
    # Constants
    "NODE_WIDTH",
    "NODE_HEIGHT",
    "DEFAULT_NODE_LABEL",
    "NO_HAND",
    # Models
    "DiagramNode",
    "DiagramConnection",
    "DiagramDocument",
    "DiagramState",
    "FileInfo",
    "SavedFile",
    "Wrist",
    "GesturePrediction",
    "FrameMessage",
    "generate_id",
    # Handshake
    "ConnectionHandshake",
    "Idle",
    "Armed",
    # Viewport
    "ViewportTransform",
    "DisplayGeometry",
    "MIN_SCALE",
    "MAX_SCALE",
    # Geometry
    "find_node_at",
    "node_contains",
    "centered_origin",
    "DEFAULT_HIT_PADDING",
    # Validation
    "DocumentFormatError",
    "parse_document",
    "parse_document_json",
    "validate_diagram",
    "validation_summary",
    "ValidationIssue",
    "IssueSeverity",
]

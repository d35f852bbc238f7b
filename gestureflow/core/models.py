"""
Core data models for diagrams and gesture messages.

These models define the canonical schema for a GestureFlow diagram:
- Nodes with a fixed 120x60 footprint, positioned by their top-left corner
- Connections between two nodes (undirected for duplicate detection)
- A state snapshot carrying selection and the pending connection start

Field Naming Convention:
- Connections use `from`/`to` on the wire (`from` is a Python keyword, so the
  attributes are `from_node`/`to_node` with aliases)
- State snapshots serialize with camelCase keys (`selectedNodeId`, ...)
"""

import time
import uuid
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


# Logical node footprint in world units
NODE_WIDTH = 120.0
NODE_HEIGHT = 60.0
DEFAULT_NODE_LABEL = "New Node"

# Pose tag the classifier sends when no hand is in view
NO_HAND = "no_hand"


def generate_id() -> str:
    """Generate a unique node/connection ID."""
    return uuid.uuid4().hex[:12]


class DiagramNode(BaseModel):
    """A node in the diagram."""
    id: str = Field(default_factory=generate_id)
    x: float = 0.0
    y: float = 0.0
    label: str = DEFAULT_NODE_LABEL

    def center(self) -> tuple[float, float]:
        """Get the connection anchor (centre of the footprint)."""
        return (self.x + NODE_WIDTH / 2, self.y + NODE_HEIGHT / 2)

    def bounds(self) -> tuple[float, float, float, float]:
        """Get the bounding box (x, y, right, bottom)."""
        return (self.x, self.y, self.x + NODE_WIDTH, self.y + NODE_HEIGHT)


class DiagramConnection(BaseModel):
    """A connection between two nodes."""
    model_config = ConfigDict(populate_by_name=True)

    id: str = Field(default_factory=generate_id)
    from_node: str = Field(alias="from")  # 'from' is reserved in Python
    to_node: str = Field(alias="to")

    def pair(self) -> frozenset[str]:
        """Unordered endpoint pair used for duplicate detection."""
        return frozenset((self.from_node, self.to_node))

    def touches(self, node_id: str) -> bool:
        return self.from_node == node_id or self.to_node == node_id

    def to_json_dict(self) -> dict:
        return {"id": self.id, "from": self.from_node, "to": self.to_node}


class DiagramDocument(BaseModel):
    """
    The persisted/exported diagram structure.
    Exactly two arrays: nodes and connections.
    """
    nodes: list[DiagramNode] = Field(default_factory=list)
    connections: list[DiagramConnection] = Field(default_factory=list)

    def to_json_dict(self) -> dict:
        """Convert to JSON-serializable dict with wire field names."""
        return {
            "nodes": [n.model_dump() for n in self.nodes],
            "connections": [c.to_json_dict() for c in self.connections],
        }


class DiagramState(BaseModel):
    """Snapshot of the diagram returned by the controller."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    nodes: list[DiagramNode] = Field(default_factory=list)
    connections: list[DiagramConnection] = Field(default_factory=list)
    selected_node_id: Optional[str] = None
    selected_connection_id: Optional[str] = None
    pending_connection_start_id: Optional[str] = None

    def get_node(self, node_id: str) -> Optional[DiagramNode]:
        """Get a node by ID (O(n) - use DiagramController for indexed access)."""
        for node in self.nodes:
            if node.id == node_id:
                return node
        return None

    def to_document(self) -> DiagramDocument:
        return DiagramDocument(nodes=self.nodes, connections=self.connections)

    def to_json_dict(self) -> dict:
        return self.model_dump(by_alias=True)


# --- Persistence Models ---

class FileInfo(BaseModel):
    """Metadata for an open or saved diagram file."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    id: str = Field(default_factory=generate_id)
    name: str = "Untitled Diagram"
    last_modified: int = Field(default_factory=lambda: int(time.time() * 1000))


class SavedFile(BaseModel):
    """A diagram stored in a document store."""
    id: str
    info: FileInfo
    data: DiagramDocument = Field(default_factory=DiagramDocument)

    def to_json_dict(self) -> dict:
        return {
            "id": self.id,
            "info": self.info.model_dump(by_alias=True),
            "data": self.data.to_json_dict(),
        }


# --- Gesture Stream Models ---

class Wrist(BaseModel):
    """Wrist position in capture-frame coordinates (640x480)."""
    model_config = ConfigDict(allow_inf_nan=False)

    x: float
    y: float


class GesturePrediction(BaseModel):
    """One sample from the pose classifier."""
    gesture: str = ""
    wrist: Wrist

    @property
    def hand_visible(self) -> bool:
        return self.gesture != NO_HAND


class FrameMessage(BaseModel):
    """Outbound frame sent to the classifier."""
    frame: str  # data URL of the JPEG-encoded frame


# --- API Request Models ---

class CreateNodeRequest(BaseModel):
    """Request to create a new node."""
    x: float = 0.0
    y: float = 0.0
    label: str = DEFAULT_NODE_LABEL


class MoveNodeRequest(BaseModel):
    x: float
    y: float


class RenameNodeRequest(BaseModel):
    label: str


class SelectRequest(BaseModel):
    """Select a node/connection by ID, or clear with null."""
    id: Optional[str] = None


class ConnectionEndpointRequest(BaseModel):
    node_id: str


class ViewportRequest(BaseModel):
    """Absolute viewport values (partial update)."""
    offset_x: Optional[float] = None
    offset_y: Optional[float] = None
    scale: Optional[float] = None


class PanRequest(BaseModel):
    dx: float
    dy: float


class ZoomRequest(BaseModel):
    """Anchor-preserving zoom; give either delta_scale or wheel_delta_y."""
    screen_x: float
    screen_y: float
    delta_scale: Optional[float] = None
    wheel_delta_y: Optional[float] = None


class DisplayRequest(BaseModel):
    """Window size and rendering surface origin reported by the frontend."""
    window_width: float = Field(gt=0)
    window_height: float = Field(gt=0)
    surface_left: float = 0.0
    surface_top: float = 0.0


def coerce_list(value: Any) -> list:
    """Treat a missing or non-array field as empty."""
    return value if isinstance(value, list) else []

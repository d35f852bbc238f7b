"""
Diagram Controller - The single mutation surface for diagram state.

This module implements:
- Canonical node/connection/selection state (one diagram at a time)
- O(1) node/connection lookups via index dictionaries
- The connection handshake (arm on one node, complete on another)
- Change callbacks for real-time sync

Every command keeps these invariants:
- a node and a connection are never selected at the same time
- connections only reference existing nodes
- no two connections join the same unordered pair of nodes
- the pending connection start, when set, is an existing node

Commands referencing unknown ids are silent no-ops: gesture and pointer
input can race deletions and must stay stable.
"""

import logging
from typing import Any, Callable, Iterable, Optional

from pydantic import ValidationError

from ..core.handshake import ConnectionHandshake
from ..core.models import (
    DiagramConnection,
    DiagramNode,
    DiagramState,
    DEFAULT_NODE_LABEL,
    coerce_list,
)

logger = logging.getLogger(__name__)


class DiagramController:
    """
    Owns a diagram's state and exposes the commands that change it.

    Features:
    - O(1) node/connection lookups via index dictionaries
    - Explicit Idle/Armed connection handshake
    - Change callbacks fired after every effective mutation

    Snapshots from get_state() are deep copies; nothing outside the
    controller ever holds a mutable reference to the model.
    """

    def __init__(self):
        self._nodes: list[DiagramNode] = []
        self._connections: list[DiagramConnection] = []
        self._selected_node_id: Optional[str] = None
        self._selected_connection_id: Optional[str] = None
        self._handshake = ConnectionHandshake()
        self._on_change_callbacks: list[Callable[[], None]] = []

        # O(1) lookup indexes
        self._node_index: dict[str, DiagramNode] = {}               # node_id -> node
        self._connection_index: dict[str, DiagramConnection] = {}   # conn_id -> connection
        self._pairs: set[frozenset[str]] = set()                    # unordered endpoint pairs

    # --- Index Management ---

    def _rebuild_indexes(self):
        """Rebuild all indexes from the current node/connection lists."""
        self._node_index = {n.id: n for n in self._nodes}
        self._connection_index = {c.id: c for c in self._connections}
        self._pairs = {c.pair() for c in self._connections}

    def _index_connection(self, conn: DiagramConnection):
        self._connection_index[conn.id] = conn
        self._pairs.add(conn.pair())

    def _unindex_connection(self, conn: DiagramConnection):
        self._connection_index.pop(conn.id, None)
        self._pairs.discard(conn.pair())

    # --- Change Callbacks ---

    def on_change(self, callback: Callable[[], None]):
        """Register a callback for diagram changes."""
        self._on_change_callbacks.append(callback)

    def _notify_change(self):
        """Notify all registered callbacks of a change."""
        for callback in self._on_change_callbacks:
            callback()

    # --- Read Access ---

    @property
    def selected_node_id(self) -> Optional[str]:
        return self._selected_node_id

    @property
    def pending_connection_start_id(self) -> Optional[str]:
        return self._handshake.pending

    @property
    def handshake(self) -> ConnectionHandshake:
        return self._handshake

    def get_node(self, node_id: str) -> Optional[DiagramNode]:
        """Get a copy of a node by ID (O(1) lookup)."""
        node = self._node_index.get(node_id)
        return node.model_copy() if node else None

    def get_connection(self, connection_id: str) -> Optional[DiagramConnection]:
        """Get a copy of a connection by ID (O(1) lookup)."""
        conn = self._connection_index.get(connection_id)
        return conn.model_copy() if conn else None

    def has_connection_between(self, a: str, b: str) -> bool:
        return frozenset((a, b)) in self._pairs

    def get_state(self) -> DiagramState:
        """Return the current snapshot by value."""
        return DiagramState(
            nodes=[n.model_copy() for n in self._nodes],
            connections=[c.model_copy() for c in self._connections],
            selected_node_id=self._selected_node_id,
            selected_connection_id=self._selected_connection_id,
            pending_connection_start_id=self._handshake.pending,
        )

    # --- Node Operations ---

    def add_node(self, x: float, y: float, label: str = DEFAULT_NODE_LABEL) -> str:
        """Append a node at world coordinates and select it."""
        node = DiagramNode(x=x, y=y, label=label)
        self._nodes.append(node)
        self._node_index[node.id] = node
        self._selected_node_id = node.id
        self._selected_connection_id = None
        logger.debug("Added node %s at (%.1f, %.1f)", node.id, x, y)
        self._notify_change()
        return node.id

    def delete_node(self, node_id: str):
        """Delete a node and all connections touching it."""
        node = self._node_index.pop(node_id, None)
        if node is None:
            return

        self._nodes = [n for n in self._nodes if n.id != node_id]

        incident = [c for c in self._connections if c.touches(node_id)]
        if incident:
            self._connections = [c for c in self._connections if not c.touches(node_id)]
            for conn in incident:
                self._unindex_connection(conn)

        if self._selected_node_id == node_id:
            self._selected_node_id = None
        self._handshake.cancel_if(node_id)
        self._selected_connection_id = None

        logger.debug("Deleted node %s (%d connections removed)", node_id, len(incident))
        self._notify_change()

    def update_node_position(self, node_id: str, x: float, y: float):
        """Move a node. Called once per gesture sample while dragging."""
        node = self._node_index.get(node_id)
        if node is None:
            return
        node.x = x
        node.y = y
        self._notify_change()

    def update_node_label(self, node_id: str, label: str):
        node = self._node_index.get(node_id)
        if node is None:
            return
        node.label = label
        self._notify_change()

    # --- Connection Operations ---

    def delete_connection(self, connection_id: str):
        conn = self._connection_index.get(connection_id)
        if conn is None:
            return

        self._connections = [c for c in self._connections if c.id != connection_id]
        self._unindex_connection(conn)
        if self._selected_connection_id == connection_id:
            self._selected_connection_id = None
        self._notify_change()

    def start_connection(self, node_id: str):
        """Arm the handshake on a node and select it."""
        if node_id not in self._node_index:
            return
        self._handshake.arm(node_id)
        self._selected_node_id = node_id
        self._selected_connection_id = None
        self._notify_change()

    def complete_connection(self, target_id: str) -> Optional[str]:
        """
        Consume the armed handshake, connecting the start node to `target_id`.

        The handshake returns to Idle in every branch, even when no
        connection is created (self-target, unknown target, or the pair is
        already connected).

        Returns:
            The new connection ID, or None if nothing was created
        """
        if not self._handshake.is_armed:
            return None

        pair = self._handshake.complete(target_id)
        created: Optional[DiagramConnection] = None

        if pair is not None:
            start_id, end_id = pair
            if (
                start_id in self._node_index
                and end_id in self._node_index
                and not self.has_connection_between(start_id, end_id)
            ):
                created = DiagramConnection(from_node=start_id, to_node=end_id)
                self._connections.append(created)
                self._index_connection(created)
                logger.debug("Connected %s -> %s", start_id, end_id)

        self._notify_change()
        return created.id if created else None

    # --- Selection ---

    def select_node(self, node_id: Optional[str]):
        """Select a node, or clear selection (and any pending connection) with None."""
        if node_id is not None and node_id not in self._node_index:
            return
        self._selected_node_id = node_id
        self._selected_connection_id = None
        if node_id is None:
            self._handshake.cancel()
        self._notify_change()

    def select_connection(self, connection_id: Optional[str]):
        """Select a connection; always clears node selection and the handshake."""
        if connection_id is not None and connection_id not in self._connection_index:
            return
        self._selected_connection_id = connection_id
        self._selected_node_id = None
        self._handshake.cancel()
        self._notify_change()

    # --- Bulk Operations ---

    def load_diagram(self, nodes: Any, connections: Any):
        """
        Replace the whole diagram and reset selection and handshake.

        A missing or non-list argument counts as empty. Entries that fail
        validation, repeat an ID, dangle, self-connect or duplicate an
        existing pair are dropped with a warning so the invariants hold.
        """
        loaded_nodes = list(self._coerce_nodes(coerce_list(nodes)))
        node_ids = {n.id for n in loaded_nodes}

        loaded_connections: list[DiagramConnection] = []
        seen_ids: set[str] = set()
        seen_pairs: set[frozenset[str]] = set()
        for conn in self._coerce_connections(coerce_list(connections)):
            pair = conn.pair()
            if (
                conn.id in seen_ids
                or conn.from_node not in node_ids
                or conn.to_node not in node_ids
                or len(pair) < 2
                or pair in seen_pairs
            ):
                logger.warning("Dropping invalid connection %s on load", conn.id)
                continue
            seen_ids.add(conn.id)
            seen_pairs.add(pair)
            loaded_connections.append(conn)

        self._nodes = loaded_nodes
        self._connections = loaded_connections
        self._selected_node_id = None
        self._selected_connection_id = None
        self._handshake.cancel()
        self._rebuild_indexes()
        self._notify_change()

    def clear_diagram(self):
        self.load_diagram([], [])

    @staticmethod
    def _coerce_nodes(items: list) -> Iterable[DiagramNode]:
        seen: set[str] = set()
        for item in items:
            try:
                node = DiagramNode.model_validate(item, from_attributes=True)
            except ValidationError:
                logger.warning("Dropping malformed node on load: %r", item)
                continue
            if node.id in seen:
                logger.warning("Dropping duplicate node id %s on load", node.id)
                continue
            seen.add(node.id)
            # Never alias caller-owned models
            yield node.model_copy()

    @staticmethod
    def _coerce_connections(items: list) -> Iterable[DiagramConnection]:
        for item in items:
            try:
                conn = DiagramConnection.model_validate(item, from_attributes=True)
            except ValidationError:
                logger.warning("Dropping malformed connection on load: %r", item)
                continue
            yield conn.model_copy()

"""
Connection handshake - the two-step arm/complete protocol for new connections.

States:
- Idle: nothing armed
- Armed(node_id): the next complete() on a different node creates a connection

Transitions:
    Idle       --arm(n)-------------------> Armed(n)
    Armed(n)   --complete(n)--------------> Idle       (self-target, no edge)
    Armed(n)   --complete(m), m != n------> Idle       (edge n-m if absent)
    Armed(n)   --cancel()-----------------> Idle       (deselect / delete n)

complete() is one-shot: it consumes the armed state whether or not a
connection ends up being created.
"""

from dataclasses import dataclass
from typing import Optional, Union


@dataclass(frozen=True)
class Idle:
    """No connection is pending."""


@dataclass(frozen=True)
class Armed:
    """A connection is pending from `node_id`."""
    node_id: str


HandshakeState = Union[Idle, Armed]

IDLE = Idle()


class ConnectionHandshake:
    """Holds the handshake state and applies its transitions."""

    def __init__(self):
        self._state: HandshakeState = IDLE

    @property
    def state(self) -> HandshakeState:
        return self._state

    @property
    def pending(self) -> Optional[str]:
        """The armed start node, or None when idle."""
        if isinstance(self._state, Armed):
            return self._state.node_id
        return None

    @property
    def is_armed(self) -> bool:
        return isinstance(self._state, Armed)

    def arm(self, node_id: str) -> None:
        self._state = Armed(node_id)

    def complete(self, target_id: str) -> Optional[tuple[str, str]]:
        """
        Consume the armed state.

        Returns the (start, target) pair to connect, or None when idle or
        when the target is the armed node itself.
        """
        state = self._state
        if not isinstance(state, Armed):
            return None

        self._state = IDLE
        if state.node_id == target_id:
            return None
        return (state.node_id, target_id)

    def cancel(self) -> None:
        self._state = IDLE

    def cancel_if(self, node_id: str) -> None:
        """Return to Idle if `node_id` is the armed node."""
        if self.pending == node_id:
            self._state = IDLE

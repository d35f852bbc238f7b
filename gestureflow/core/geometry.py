"""
World-space hit-testing against the fixed node footprint.
"""

from typing import Iterable, Optional, TYPE_CHECKING

from .models import NODE_WIDTH, NODE_HEIGHT

if TYPE_CHECKING:
    from .models import DiagramNode


# Extra margin around each node for imprecise hand poses
DEFAULT_HIT_PADDING = 25.0


def node_contains(node: "DiagramNode", x: float, y: float, padding: float = 0.0) -> bool:
    """True if (x, y) lies inside the node rectangle grown by `padding`."""
    return (
        node.x - padding <= x <= node.x + NODE_WIDTH + padding
        and node.y - padding <= y <= node.y + NODE_HEIGHT + padding
    )


def find_node_at(
    nodes: Iterable["DiagramNode"],
    x: float,
    y: float,
    padding: float = DEFAULT_HIT_PADDING
) -> Optional["DiagramNode"]:
    """Return the first node (in list order) whose padded box contains the point."""
    for node in nodes:
        if node_contains(node, x, y, padding):
            return node
    return None


def centered_origin(x: float, y: float) -> tuple[float, float]:
    """Top-left position that puts a node's centre at (x, y)."""
    return (x - NODE_WIDTH / 2, y - NODE_HEIGHT / 2)

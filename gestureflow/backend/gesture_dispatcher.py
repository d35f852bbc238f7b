"""
Gesture Dispatcher - Turns pose samples into diagram commands.

Each sample from the classifier carries a pose tag and a wrist position in
capture-frame space. Per sample the dispatcher:

1. Stops early (clearing the cursor) when no hand is visible
2. Mirrors/normalises the wrist into window space and smooths the cursor
3. Projects the cursor into world space through the live viewport
4. Hit-tests nodes using a padded footprint and updates the hover target
5. Applies the pose kind's policy and calls the DiagramController

Discrete poses (create, delete, connect, select) are debounced through a
shared CooldownClock. Move is continuous and tracks every sample.
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Mapping, Optional, TYPE_CHECKING

from ..core.geometry import DEFAULT_HIT_PADDING, centered_origin, find_node_at
from ..core.models import NO_HAND, GesturePrediction
from ..core.viewport import DisplayGeometry, ViewportTransform
from .cooldown import CooldownClock, CooldownPolicy, monotonic_ms

if TYPE_CHECKING:
    from .diagram_controller import DiagramController

logger = logging.getLogger(__name__)


# Default smoothing factor for the cursor
SMOOTHING = 0.2

# Capture frame size the classifier reports wrist coordinates in
CAPTURE_WIDTH = 640
CAPTURE_HEIGHT = 480


class PoseKind(str, Enum):
    """What a pose means for the diagram."""
    CREATE = "create"
    DELETE = "delete"
    CONNECT = "connect"
    MOVE = "move"
    SELECT = "select"
    IDLE = "idle"
    NO_HAND = "no_hand"


DEFAULT_POSE_MAP: dict[str, PoseKind] = {
    "add": PoseKind.CREATE,
    "delete": PoseKind.DELETE,
    "connecting": PoseKind.CONNECT,
    "grabbing": PoseKind.MOVE,
    "select": PoseKind.SELECT,
    "hover": PoseKind.IDLE,
    "": PoseKind.IDLE,
    NO_HAND: PoseKind.NO_HAND,
    # Tags from the earlier classifier model
    "thumbs_up": PoseKind.CREATE,
    "thumbs_down": PoseKind.DELETE,
    "rock": PoseKind.CONNECT,
    "fist": PoseKind.MOVE,
    "pointing": PoseKind.SELECT,
    "palm_open": PoseKind.IDLE,
}


def default_policies(
    action_cooldown_ms: float = 600.0,
    select_cooldown_ms: float = 400.0
) -> dict[PoseKind, CooldownPolicy]:
    return {
        PoseKind.CREATE: CooldownPolicy(action_cooldown_ms),
        PoseKind.DELETE: CooldownPolicy(action_cooldown_ms, consume_on_noop=False),
        PoseKind.CONNECT: CooldownPolicy(action_cooldown_ms, consume_on_noop=False),
        PoseKind.SELECT: CooldownPolicy(select_cooldown_ms),
    }


@dataclass
class Cursor:
    """Visible gesture cursor in screen space."""
    x: float
    y: float
    pose: str

    def to_dict(self) -> dict:
        return {"x": self.x, "y": self.y, "pose": self.pose}


class GestureDispatcher:
    """
    Per-session pose sample handler.

    The viewport and display geometry are read on every sample, never
    cached, because pan/zoom can change between samples.
    """

    def __init__(
        self,
        controller: "DiagramController",
        viewport: ViewportTransform,
        display: Callable[[], DisplayGeometry],
        *,
        pose_map: Optional[Mapping[str, PoseKind]] = None,
        policies: Optional[Mapping[PoseKind, CooldownPolicy]] = None,
        smoothing: float = SMOOTHING,
        hit_padding: float = DEFAULT_HIT_PADDING,
        mirror: bool = True,
        capture_size: tuple[int, int] = (CAPTURE_WIDTH, CAPTURE_HEIGHT),
        clock: Callable[[], float] = monotonic_ms,
    ):
        self._controller = controller
        self._viewport = viewport
        self._display = display
        self._pose_map = dict(pose_map) if pose_map is not None else dict(DEFAULT_POSE_MAP)
        self._policies = {**default_policies(), **(policies or {})}
        self._smoothing = smoothing
        self._hit_padding = hit_padding
        self._mirror = mirror
        self._capture_width, self._capture_height = capture_size
        self._cooldown = CooldownClock(clock)

        self._cx, self._cy = display().center
        self._cursor: Optional[Cursor] = None
        self._hovered_node_id: Optional[str] = None
        self._pending_target: Optional[str] = controller.pending_connection_start_id

    # --- Properties ---

    @property
    def cursor(self) -> Optional[Cursor]:
        """The visible cursor, or None while no hand is detected."""
        return self._cursor

    @property
    def smoothed_position(self) -> tuple[float, float]:
        return (self._cx, self._cy)

    @property
    def hovered_node_id(self) -> Optional[str]:
        return self._hovered_node_id

    @property
    def pending_target(self) -> Optional[str]:
        return self._pending_target

    @property
    def cooldown(self) -> CooldownClock:
        return self._cooldown

    def classify(self, pose: str) -> PoseKind:
        """Map a pose tag to its kind; unknown tags are idle."""
        return self._pose_map.get(pose, PoseKind.IDLE)

    def clear_cursor(self):
        self._cursor = None

    def to_dict(self) -> dict:
        return {
            "cursor": self._cursor.to_dict() if self._cursor else None,
            "hovered_node_id": self._hovered_node_id,
            "pending_target": self._pending_target,
        }

    # --- Sample Handling ---

    def handle_sample(self, sample: GesturePrediction):
        """Process one classifier sample, in arrival order."""
        pose = sample.gesture
        kind = self.classify(pose)

        if kind is PoseKind.NO_HAND:
            self._cursor = None
            return

        display = self._display()
        target_x, target_y = self._to_window(sample.wrist.x, sample.wrist.y, display)
        self._cx += (target_x - self._cx) * self._smoothing
        self._cy += (target_y - self._cy) * self._smoothing
        self._cursor = Cursor(self._cx, self._cy, pose)

        world_x, world_y = self._viewport.screen_to_world(
            self._cx, self._cy, display.surface_left, display.surface_top
        )

        state = self._controller.get_state()
        target = find_node_at(state.nodes, world_x, world_y, self._hit_padding)
        self._hovered_node_id = target.id if target else None
        self._pending_target = state.pending_connection_start_id

        target_id = target.id if target else None
        handler = self._handlers.get(kind)
        if handler is not None:
            handler(self, world_x, world_y, target_id, state.selected_node_id)

        self._pending_target = self._controller.pending_connection_start_id

    def _to_window(
        self, wrist_x: float, wrist_y: float, display: DisplayGeometry
    ) -> tuple[float, float]:
        norm_x = wrist_x / self._capture_width
        norm_y = wrist_y / self._capture_height
        if self._mirror:
            norm_x = 1.0 - norm_x
        return (norm_x * display.window_width, norm_y * display.window_height)

    # --- Per-Pose Policies ---

    def _create(self, world_x, world_y, target_id, selected_id):
        policy = self._policies[PoseKind.CREATE]
        now = self._cooldown.now()
        if not self._cooldown.ready(policy, now):
            return
        x, y = centered_origin(world_x, world_y)
        node_id = self._controller.add_node(x, y)
        logger.debug("Gesture create -> %s", node_id)
        self._cooldown.settle(policy, acted=True, now=now)

    def _delete(self, world_x, world_y, target_id, selected_id):
        policy = self._policies[PoseKind.DELETE]
        now = self._cooldown.now()
        if not self._cooldown.ready(policy, now):
            return
        if selected_id is not None:
            self._controller.delete_node(selected_id)
            logger.debug("Gesture delete -> %s", selected_id)
        self._cooldown.settle(policy, acted=selected_id is not None, now=now)

    def _connect(self, world_x, world_y, target_id, selected_id):
        policy = self._policies[PoseKind.CONNECT]
        now = self._cooldown.now()
        if target_id is None or not self._cooldown.ready(policy, now):
            return

        start_id = self._pending_target
        if start_id is None:
            # Arming does not consume the cooldown
            self._controller.start_connection(target_id)
            logger.debug("Gesture connect armed on %s", target_id)
        elif start_id != target_id:
            self._controller.complete_connection(target_id)
            logger.debug("Gesture connect %s -> %s", start_id, target_id)
            self._cooldown.settle(policy, acted=True, now=now)

    def _move(self, world_x, world_y, target_id, selected_id):
        if selected_id is not None:
            x, y = centered_origin(world_x, world_y)
            self._controller.update_node_position(selected_id, x, y)
        elif target_id is not None:
            self._controller.select_node(target_id)

    def _select(self, world_x, world_y, target_id, selected_id):
        policy = self._policies[PoseKind.SELECT]
        now = self._cooldown.now()
        if target_id is None or not self._cooldown.ready(policy, now):
            return
        self._controller.select_node(target_id)
        self._cooldown.settle(policy, acted=True, now=now)

    _handlers = {
        PoseKind.CREATE: _create,
        PoseKind.DELETE: _delete,
        PoseKind.CONNECT: _connect,
        PoseKind.MOVE: _move,
        PoseKind.SELECT: _select,
    }

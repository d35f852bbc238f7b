from __future__ import annotations

import unittest

from gestureflow.backend.cooldown import CooldownClock, CooldownPolicy
from gestureflow.backend.diagram_controller import DiagramController
from gestureflow.backend.gesture_dispatcher import GestureDispatcher, PoseKind
from gestureflow.core.models import GesturePrediction, Wrist
from gestureflow.core.viewport import DisplayGeometry, ViewportTransform


class FakeClock:
    def __init__(self) -> None:
        self.now = 0.0

    def __call__(self) -> float:
        return self.now


def sample(gesture: str, x: float, y: float) -> GesturePrediction:
    return GesturePrediction(gesture=gesture, wrist=Wrist(x=x, y=y))


class DispatcherTestCase(unittest.TestCase):
    """Window equals the 640x480 capture frame, no mirroring, no smoothing lag."""

    def setUp(self) -> None:
        self.controller = DiagramController()
        self.viewport = ViewportTransform()
        self.display = DisplayGeometry(640, 480)
        self.clock = FakeClock()
        self.dispatcher = GestureDispatcher(
            self.controller,
            self.viewport,
            lambda: self.display,
            smoothing=1.0,
            mirror=False,
            clock=self.clock,
        )

    def send(self, gesture: str, x: float, y: float, at: float | None = None) -> None:
        if at is not None:
            self.clock.now = at
        self.dispatcher.handle_sample(sample(gesture, x, y))


class CreateTests(DispatcherTestCase):
    def test_create_debounced_within_cooldown(self) -> None:
        self.send("add", 100, 100, at=0)
        self.send("add", 100, 100, at=200)
        nodes = self.controller.get_state().nodes
        self.assertEqual(len(nodes), 1)
        self.assertEqual((nodes[0].x, nodes[0].y), (40, 70))

    def test_create_after_cooldown(self) -> None:
        self.send("add", 100, 100, at=0)
        self.send("add", 400, 300, at=600)
        self.assertEqual(len(self.controller.get_state().nodes), 1)
        self.send("add", 400, 300, at=601)
        self.assertEqual(len(self.controller.get_state().nodes), 2)

    def test_legacy_tag(self) -> None:
        self.send("thumbs_up", 100, 100, at=0)
        self.assertEqual(len(self.controller.get_state().nodes), 1)

    def test_create_uses_viewport(self) -> None:
        self.viewport.set(offset_x=100, offset_y=0, scale=2)
        self.display.surface_left = 20
        self.send("add", 320, 200, at=0)
        node = self.controller.get_state().nodes[0]
        self.assertEqual((node.x + 60, node.y + 30), (100, 100))


class NoHandTests(DispatcherTestCase):
    def test_no_hand_freezes_grabbed_node(self) -> None:
        node_id = self.controller.add_node(0, 0)
        self.send("grabbing", 200, 150)
        moved = self.controller.get_node(node_id)
        self.assertEqual((moved.x, moved.y), (140, 120))

        updates = []
        self.controller.on_change(lambda: updates.append(1))
        for _ in range(5):
            self.send("no_hand", 500, 400)
        self.assertEqual(updates, [])
        self.assertEqual(self.controller.get_node(node_id), moved)
        self.assertIsNone(self.dispatcher.cursor)

    def test_no_hand_keeps_smoothed_position(self) -> None:
        self.send("hover", 100, 100)
        self.send("no_hand", 600, 400)
        self.assertEqual(self.dispatcher.smoothed_position, (100, 100))


class ConnectTests(DispatcherTestCase):
    def setUp(self) -> None:
        super().setUp()
        self.a = self.controller.add_node(0, 0)
        self.b = self.controller.add_node(300, 0)
        self.controller.select_node(None)

    def test_arm_then_complete(self) -> None:
        self.send("connecting", 60, 30, at=0)
        self.assertEqual(self.controller.pending_connection_start_id, self.a)
        self.assertEqual(self.dispatcher.pending_target, self.a)

        self.send("connecting", 360, 30, at=10)
        state = self.controller.get_state()
        self.assertEqual(len(state.connections), 1)
        self.assertIsNone(state.pending_connection_start_id)
        self.assertIsNone(self.dispatcher.pending_target)

        # Completion consumed the cooldown
        self.send("connecting", 60, 30, at=20)
        self.assertIsNone(self.controller.pending_connection_start_id)

    def test_holding_pose_over_start_node_stays_armed(self) -> None:
        self.send("connecting", 60, 30, at=0)
        self.send("connecting", 60, 30, at=700)
        self.assertEqual(self.controller.pending_connection_start_id, self.a)
        self.assertEqual(self.controller.get_state().connections, [])

    def test_empty_space_does_nothing(self) -> None:
        self.send("connecting", 600, 400, at=0)
        self.assertIsNone(self.controller.pending_connection_start_id)

    def test_hit_padding(self) -> None:
        self.send("connecting", 140, 30, at=0)
        self.assertEqual(self.controller.pending_connection_start_id, self.a)


class DeleteSelectMoveTests(DispatcherTestCase):
    def test_delete_selected(self) -> None:
        node_id = self.controller.add_node(0, 0)
        self.send("delete", 600, 400, at=0)
        self.assertIsNone(self.controller.get_node(node_id))

    def test_delete_without_selection_does_not_consume_cooldown(self) -> None:
        self.send("delete", 600, 400, at=0)
        self.assertIsNone(self.dispatcher.cooldown.last_action)
        self.send("add", 100, 100, at=1)
        self.assertEqual(len(self.controller.get_state().nodes), 1)

    def test_select_on_node(self) -> None:
        a = self.controller.add_node(0, 0)
        self.controller.add_node(300, 0)
        self.send("select", 60, 30, at=0)
        self.assertEqual(self.controller.selected_node_id, a)

    def test_select_in_empty_space_keeps_selection(self) -> None:
        a = self.controller.add_node(0, 0)
        self.send("select", 600, 400, at=0)
        self.assertEqual(self.controller.selected_node_id, a)

    def test_grab_selects_hovered_node_then_moves_it(self) -> None:
        a = self.controller.add_node(0, 0)
        self.controller.select_node(None)
        self.send("grabbing", 60, 30)
        self.assertEqual(self.controller.selected_node_id, a)
        self.send("grabbing", 260, 230)
        node = self.controller.get_node(a)
        self.assertEqual((node.x, node.y), (200, 200))

    def test_move_is_not_debounced(self) -> None:
        a = self.controller.add_node(0, 0)
        for i in range(5):
            self.send("grabbing", 100 + i, 100, at=0)
        self.assertEqual(self.controller.get_node(a).x, 104 - 60)

    def test_unknown_and_empty_tags_only_move_cursor(self) -> None:
        before = self.controller.get_state()
        self.send("wave", 100, 100, at=0)
        self.send("", 120, 100, at=1)
        self.assertEqual(self.controller.get_state(), before)
        self.assertEqual(self.dispatcher.cursor.x, 120)
        self.assertEqual(self.dispatcher.classify("wave"), PoseKind.IDLE)

    def test_hover_tracks_node(self) -> None:
        a = self.controller.add_node(0, 0)
        self.send("hover", 60, 30)
        self.assertEqual(self.dispatcher.hovered_node_id, a)
        self.send("hover", 600, 400)
        self.assertIsNone(self.dispatcher.hovered_node_id)


class CursorMappingTests(unittest.TestCase):
    def test_mirror_and_smoothing(self) -> None:
        display = DisplayGeometry(1280, 960)
        dispatcher = GestureDispatcher(
            DiagramController(), ViewportTransform(), lambda: display, clock=FakeClock()
        )
        self.assertEqual(dispatcher.smoothed_position, (640, 480))
        # Mirrored wrist x=0 maps to the right edge of the window
        dispatcher.handle_sample(sample("hover", 0, 480))
        x, y = dispatcher.smoothed_position
        self.assertAlmostEqual(x, 640 + (1280 - 640) * 0.2)
        self.assertAlmostEqual(y, 480 + (960 - 480) * 0.2)


class CooldownTests(unittest.TestCase):
    def test_window_is_strict(self) -> None:
        clock = FakeClock()
        cooldown = CooldownClock(clock)
        policy = CooldownPolicy(600)
        self.assertTrue(cooldown.ready(policy))
        cooldown.consume()
        clock.now = 600
        self.assertFalse(cooldown.ready(policy))
        clock.now = 600.5
        self.assertTrue(cooldown.ready(policy))

    def test_settle_respects_policy(self) -> None:
        cooldown = CooldownClock(FakeClock())
        cooldown.settle(CooldownPolicy(600), acted=False, now=5)
        self.assertIsNone(cooldown.last_action)
        cooldown.settle(CooldownPolicy(600, consume_on_noop=True), acted=False, now=5)
        self.assertEqual(cooldown.last_action, 5)
        cooldown.reset()
        self.assertIsNone(cooldown.last_action)

    def test_windows_shared_across_kinds(self) -> None:
        clock = FakeClock()
        cooldown = CooldownClock(clock)
        cooldown.consume()
        clock.now = 500
        self.assertTrue(cooldown.ready(CooldownPolicy(400)))
        self.assertFalse(cooldown.ready(CooldownPolicy(600)))


if __name__ == "__main__":
    unittest.main()

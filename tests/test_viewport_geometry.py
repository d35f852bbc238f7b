from __future__ import annotations

import unittest

from gestureflow.core.geometry import centered_origin, find_node_at, node_contains
from gestureflow.core.handshake import Armed, ConnectionHandshake, Idle
from gestureflow.core.models import DiagramNode
from gestureflow.core.viewport import MAX_SCALE, MIN_SCALE, DisplayGeometry, ViewportTransform


class ViewportTests(unittest.TestCase):
    def test_identity_transform(self) -> None:
        viewport = ViewportTransform()
        self.assertEqual(viewport.screen_to_world(100, 50), (100, 50))

    def test_surface_origin_subtracted(self) -> None:
        viewport = ViewportTransform(offset_x=10, offset_y=20, scale=2)
        self.assertEqual(viewport.screen_to_world(130, 140, 100, 100), (10, 10))
        self.assertEqual(viewport.world_to_screen(10, 10, 100, 100), (130, 140))

    def test_zoom_keeps_point_under_cursor(self) -> None:
        viewport = ViewportTransform(offset_x=-40, offset_y=15, scale=1.3)
        anchor = viewport.screen_to_world(420, 260, 8, 64)
        viewport.zoom_at(420, 260, 0.7, 8, 64)
        after = viewport.screen_to_world(420, 260, 8, 64)
        self.assertAlmostEqual(viewport.scale, 2.0)
        self.assertAlmostEqual(after[0], anchor[0])
        self.assertAlmostEqual(after[1], anchor[1])

    def test_zoom_clamped(self) -> None:
        viewport = ViewportTransform()
        viewport.zoom_at(0, 0, 100)
        self.assertEqual(viewport.scale, MAX_SCALE)
        viewport.zoom_at(0, 0, -100)
        self.assertEqual(viewport.scale, MIN_SCALE)

    def test_clamped_zoom_still_preserves_anchor(self) -> None:
        viewport = ViewportTransform(scale=4.9)
        anchor = viewport.screen_to_world(300, 200)
        viewport.zoom_at(300, 200, 1.0)
        after = viewport.screen_to_world(300, 200)
        self.assertAlmostEqual(after[0], anchor[0])
        self.assertAlmostEqual(after[1], anchor[1])

    def test_wheel_up_zooms_in(self) -> None:
        viewport = ViewportTransform()
        viewport.wheel_zoom(0, 0, -100)
        self.assertAlmostEqual(viewport.scale, 1.1)

    def test_pan_and_set(self) -> None:
        viewport = ViewportTransform()
        viewport.pan(5, -5)
        viewport.set(scale=50)
        self.assertEqual(viewport.to_dict(), {"offset_x": 5, "offset_y": -5, "scale": MAX_SCALE})

    def test_display_center(self) -> None:
        self.assertEqual(DisplayGeometry(800, 600).center, (400, 300))


class GeometryTests(unittest.TestCase):
    def test_padding_extends_hit_area(self) -> None:
        node = DiagramNode(x=0, y=0)
        self.assertTrue(node_contains(node, 120, 60))
        self.assertFalse(node_contains(node, 130, 30))
        self.assertTrue(node_contains(node, 145, 30, padding=25))
        self.assertTrue(node_contains(node, -25, -25, padding=25))
        self.assertFalse(node_contains(node, -26, 0, padding=25))

    def test_first_node_in_order_wins(self) -> None:
        first = DiagramNode(id="first", x=0, y=0)
        second = DiagramNode(id="second", x=10, y=10)
        self.assertEqual(find_node_at([first, second], 50, 30).id, "first")
        self.assertIsNone(find_node_at([first, second], 1000, 1000))

    def test_centered_origin(self) -> None:
        self.assertEqual(centered_origin(100, 100), (40, 70))


class HandshakeTests(unittest.TestCase):
    def test_transitions(self) -> None:
        handshake = ConnectionHandshake()
        self.assertIsInstance(handshake.state, Idle)
        handshake.arm("a")
        self.assertEqual(handshake.state, Armed("a"))
        self.assertEqual(handshake.complete("b"), ("a", "b"))
        self.assertFalse(handshake.is_armed)

    def test_self_target_consumes(self) -> None:
        handshake = ConnectionHandshake()
        handshake.arm("a")
        self.assertIsNone(handshake.complete("a"))
        self.assertIsNone(handshake.pending)

    def test_cancel_if(self) -> None:
        handshake = ConnectionHandshake()
        handshake.arm("a")
        handshake.cancel_if("b")
        self.assertEqual(handshake.pending, "a")
        handshake.cancel_if("a")
        self.assertIsNone(handshake.pending)


if __name__ == "__main__":
    unittest.main()

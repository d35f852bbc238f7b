from __future__ import annotations

import asyncio
import base64
import json
import unittest
from contextlib import asynccontextmanager

import cv2
import numpy as np
from pydantic import ValidationError

from gestureflow.backend.gesture_link import WebSocketGestureLink, encode_frame, parse_prediction
from gestureflow.core.models import Wrist


class ParsePredictionTests(unittest.TestCase):
    def test_valid_message(self) -> None:
        sample = parse_prediction('{"gesture": "add", "wrist": {"x": 320, "y": 240.5}}')
        self.assertEqual(sample.gesture, "add")
        self.assertEqual((sample.wrist.x, sample.wrist.y), (320, 240.5))
        self.assertTrue(sample.hand_visible)

    def test_no_hand(self) -> None:
        sample = parse_prediction(b'{"gesture": "no_hand", "wrist": {"x": 0, "y": 0}}')
        self.assertFalse(sample.hand_visible)

    def test_missing_or_bad_gesture_is_empty(self) -> None:
        self.assertEqual(parse_prediction('{"wrist": {"x": 1, "y": 2}}').gesture, "")
        self.assertEqual(parse_prediction('{"gesture": 7, "wrist": {"x": 1, "y": 2}}').gesture, "")

    def test_dropped_messages(self) -> None:
        for raw in (
            "not json",
            "[1, 2]",
            '{"gesture": "add"}',
            '{"gesture": "add", "wrist": null}',
            '{"gesture": "add", "wrist": {"x": "1", "y": 2}}',
            '{"gesture": "add", "wrist": {"x": true, "y": 2}}',
        ):
            with self.subTest(raw=raw):
                self.assertIsNone(parse_prediction(raw))

    def test_non_finite_wrist_dropped(self) -> None:
        for value in ("NaN", "Infinity", "-Infinity"):
            for raw in (
                '{"gesture": "add", "wrist": {"x": %s, "y": 2}}' % value,
                '{"gesture": "add", "wrist": {"x": 1, "y": %s}}' % value,
            ):
                with self.subTest(raw=raw):
                    self.assertIsNone(parse_prediction(raw))

    def test_wrist_rejects_non_finite(self) -> None:
        with self.assertRaises(ValidationError):
            Wrist(x=float("nan"), y=0)
        with self.assertRaises(ValidationError):
            Wrist(x=0, y=float("inf"))


class EncodeFrameTests(unittest.TestCase):
    def test_resizes_to_jpeg_data_url(self) -> None:
        frame = np.zeros((100, 200, 3), dtype=np.uint8)
        frame[:, :100] = (0, 0, 255)
        data_url = encode_frame(frame, 640, 480, 50)
        prefix = "data:image/jpeg;base64,"
        self.assertTrue(data_url.startswith(prefix))
        raw = np.frombuffer(base64.b64decode(data_url[len(prefix):]), dtype=np.uint8)
        decoded = cv2.imdecode(raw, cv2.IMREAD_COLOR)
        self.assertEqual(decoded.shape, (480, 640, 3))


class FakeSocket:
    def __init__(self, messages: list[str]) -> None:
        self.messages = messages
        self.sent: list[str] = []
        self.closed = asyncio.Event()

    async def send(self, data: str) -> None:
        self.sent.append(data)

    def __aiter__(self):
        return self._iterate()

    async def _iterate(self):
        for message in self.messages:
            yield message
        await self.closed.wait()


class WebSocketGestureLinkTests(unittest.IsolatedAsyncioTestCase):
    def setUp(self) -> None:
        self.samples = []
        self.opened = asyncio.Event()
        self.errors = []
        self.connect_kwargs = {}

    def make_connector(self, socket: FakeSocket):
        @asynccontextmanager
        async def connector(url, **kwargs):
            self.connect_kwargs = {"url": url, **kwargs}
            yield socket
        return connector

    def callbacks(self):
        return (self.samples.append, self.opened.set, self.errors.append)

    async def test_receives_samples_in_order(self) -> None:
        socket = FakeSocket([
            '{"gesture": "add", "wrist": {"x": 1, "y": 2}}',
            "garbage",
            '{"gesture": "select"}',
            '{"gesture": "no_hand", "wrist": {"x": 3, "y": 4}}',
        ])
        link = WebSocketGestureLink("ws://test/ws/gesture/", connector=self.make_connector(socket))
        link.connect(*self.callbacks())
        await asyncio.wait_for(self.opened.wait(), 1)
        for _ in range(10):
            await asyncio.sleep(0)

        self.assertTrue(link.is_open)
        self.assertEqual([s.gesture for s in self.samples], ["add", "no_hand"])
        self.assertEqual(self.connect_kwargs, {"url": "ws://test/ws/gesture/", "max_size": 2**20})

        await link.disconnect()
        self.assertFalse(link.is_open)
        self.assertFalse(link.is_active)
        self.assertEqual(self.errors, [])

    async def test_connect_twice_is_noop(self) -> None:
        calls = []
        socket = FakeSocket([])

        @asynccontextmanager
        async def connector(url, **kwargs):
            calls.append(url)
            yield socket

        link = WebSocketGestureLink("ws://test", connector=connector)
        link.connect(*self.callbacks())
        link.connect(*self.callbacks())
        await asyncio.wait_for(self.opened.wait(), 1)
        self.assertEqual(calls, ["ws://test"])
        await link.disconnect()

    async def test_send_frame(self) -> None:
        socket = FakeSocket([])
        link = WebSocketGestureLink("ws://test", connector=self.make_connector(socket))
        frame = np.zeros((480, 640, 3), dtype=np.uint8)

        await link.send_frame(frame)
        self.assertEqual(socket.sent, [])

        link.connect(*self.callbacks())
        await asyncio.wait_for(self.opened.wait(), 1)
        await link.send_frame(frame)
        self.assertEqual(len(socket.sent), 1)
        self.assertTrue(json.loads(socket.sent[0])["frame"].startswith("data:image/jpeg;base64,"))
        await link.disconnect()

    async def test_connection_failure_reported(self) -> None:
        def connector(url, **kwargs):
            raise OSError("refused")

        link = WebSocketGestureLink("ws://test", connector=connector)
        link.connect(*self.callbacks())
        for _ in range(5):
            await asyncio.sleep(0)
        self.assertEqual(len(self.errors), 1)
        self.assertFalse(self.opened.is_set())
        self.assertFalse(link.is_open)
        self.assertFalse(link.is_active)
        await link.disconnect()

    async def test_failing_sample_handler_keeps_receiving(self) -> None:
        socket = FakeSocket([
            '{"gesture": "add", "wrist": {"x": 1, "y": 2}}',
            '{"gesture": "select", "wrist": {"x": 3, "y": 4}}',
        ])
        received = []

        def on_sample(sample) -> None:
            received.append(sample.gesture)
            if sample.gesture == "add":
                raise ValueError("handler bug")

        link = WebSocketGestureLink("ws://test", connector=self.make_connector(socket))
        with self.assertLogs("gestureflow.backend.gesture_link", level="ERROR"):
            link.connect(on_sample, self.opened.set, self.errors.append)
            await asyncio.wait_for(self.opened.wait(), 1)
            for _ in range(10):
                await asyncio.sleep(0)

        self.assertEqual(received, ["add", "select"])
        self.assertTrue(link.is_active)
        self.assertEqual(self.errors, [])
        await link.disconnect()


if __name__ == "__main__":
    unittest.main()

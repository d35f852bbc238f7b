"""
Gesture Link - Streaming connection to the remote pose classifier.

Two independent one-way channels share one WebSocket:
- inbound: one JSON pose sample per message, pushed at the classifier's pace
- outbound: JPEG frames sent on the session's local timer

The link is an injectable collaborator owned by a GestureSession, so tests
can substitute a fake with the same connect/disconnect/send_frame surface.
"""

import asyncio
import base64
import json
import logging
import math
from typing import Any, Callable, Optional, Protocol

import cv2
import numpy as np
import websockets
from websockets.exceptions import ConnectionClosed, WebSocketException

from ..core.models import FrameMessage, GesturePrediction, Wrist

logger = logging.getLogger(__name__)


SampleCallback = Callable[[GesturePrediction], None]
OpenCallback = Callable[[], None]
ErrorCallback = Callable[[Exception], None]

FRAME_WIDTH = 640
FRAME_HEIGHT = 480
JPEG_QUALITY = 50


class FrameEncodingError(RuntimeError):
    """OpenCV could not encode a frame."""


class GestureLink(Protocol):
    """What a GestureSession needs from a pose stream."""

    @property
    def is_open(self) -> bool: ...

    def connect(self, on_sample: SampleCallback, on_open: OpenCallback, on_error: ErrorCallback) -> None: ...

    async def disconnect(self) -> None: ...

    async def send_frame(self, image: np.ndarray) -> None: ...


def _is_number(value: Any) -> bool:
    # json.loads accepts NaN and Infinity
    return isinstance(value, (int, float)) and not isinstance(value, bool) and math.isfinite(value)


def parse_prediction(raw: str | bytes) -> Optional[GesturePrediction]:
    """
    Decode one classifier message.

    Returns None (after logging) for unparseable messages and for messages
    without a numeric wrist position. A missing or non-string gesture tag
    is treated as "" (hand visible, pose unrecognised).
    """
    try:
        data = json.loads(raw)
    except (json.JSONDecodeError, UnicodeDecodeError) as e:
        logger.warning("Failed to parse classifier message: %s", e)
        return None

    if not isinstance(data, dict):
        logger.warning("Ignoring non-object classifier message")
        return None

    wrist = data.get("wrist")
    if not isinstance(wrist, dict) or not (_is_number(wrist.get("x")) and _is_number(wrist.get("y"))):
        logger.debug("Ignoring classifier message without wrist position")
        return None

    gesture = data.get("gesture")
    if not isinstance(gesture, str):
        gesture = ""

    return GesturePrediction(gesture=gesture, wrist=Wrist(x=wrist["x"], y=wrist["y"]))


def encode_frame(
    frame: np.ndarray,
    width: int = FRAME_WIDTH,
    height: int = FRAME_HEIGHT,
    quality: int = JPEG_QUALITY
) -> str:
    """Resize a BGR frame and return it as a JPEG data URL."""
    resized = cv2.resize(frame, (width, height))
    ok, buffer = cv2.imencode(".jpg", resized, [int(cv2.IMWRITE_JPEG_QUALITY), quality])
    if not ok:
        raise FrameEncodingError("JPEG encoding failed")
    return "data:image/jpeg;base64," + base64.b64encode(buffer.tobytes()).decode("ascii")


class WebSocketGestureLink:
    """
    GestureLink over a WebSocket.

    connect() starts a background receive task on the running loop and
    returns immediately; calling it while a connection is active or being
    established does nothing. Failures are reported through on_error and
    never raised to the caller, so the link can simply be connected again.
    """

    def __init__(
        self,
        url: str,
        *,
        frame_size: tuple[int, int] = (FRAME_WIDTH, FRAME_HEIGHT),
        jpeg_quality: int = JPEG_QUALITY,
        connector: Callable[..., Any] = websockets.connect,
    ):
        self._url = url
        self._frame_width, self._frame_height = frame_size
        self._jpeg_quality = jpeg_quality
        self._connector = connector
        self._ws = None
        self._task: Optional[asyncio.Task] = None

    @property
    def url(self) -> str:
        return self._url

    @property
    def is_open(self) -> bool:
        return self._ws is not None

    @property
    def is_active(self) -> bool:
        return self._task is not None and not self._task.done()

    def connect(self, on_sample: SampleCallback, on_open: OpenCallback, on_error: ErrorCallback):
        if self.is_active:
            logger.info("Gesture link already active or connecting")
            return
        self._task = asyncio.get_running_loop().create_task(
            self._run(on_sample, on_open, on_error)
        )

    async def _run(self, on_sample: SampleCallback, on_open: OpenCallback, on_error: ErrorCallback):
        try:
            async with self._connector(self._url, max_size=2**20) as ws:
                self._ws = ws
                logger.info("Gesture link connected: %s", self._url)
                on_open()
                async for raw in ws:
                    sample = parse_prediction(raw)
                    if sample is not None:
                        self._deliver(on_sample, sample)
        except (OSError, asyncio.TimeoutError, WebSocketException) as e:
            logger.error("Gesture link error: %s", e)
            on_error(e)
        finally:
            self._ws = None
            logger.info("Gesture link closed: %s", self._url)

    @staticmethod
    def _deliver(on_sample: SampleCallback, sample: GesturePrediction):
        # A failing handler must not end the receive loop
        try:
            on_sample(sample)
        except Exception:
            logger.exception("Gesture sample handler failed for %r", sample.gesture)

    async def disconnect(self):
        """Close the connection and wait for the receive task to finish."""
        task, self._task = self._task, None
        if task is None:
            return
        if not task.done():
            task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass

    async def send_frame(self, image: np.ndarray):
        """Send one frame; a no-op unless the connection is open."""
        ws = self._ws
        if ws is None:
            return

        try:
            data_url = encode_frame(image, self._frame_width, self._frame_height, self._jpeg_quality)
        except (cv2.error, FrameEncodingError) as e:
            logger.error("Failed to encode frame: %s", e)
            return

        try:
            await ws.send(FrameMessage(frame=data_url).model_dump_json())
        except (ConnectionClosed, OSError) as e:
            logger.error("Failed to send frame: %s", e)

"""
Gesture Session - Lifecycle of gesture input.

Enabling starts two independent loops: the link's receive task (samples go
straight to the dispatcher, in arrival order) and a local timer that sends
camera frames at a fixed rate. Disabling stops both deterministically. An
armed connection handshake is left untouched either way.
"""

import asyncio
import logging
from typing import Callable, Optional

from ..core.models import GesturePrediction
from .capture import CaptureError, FrameSource
from .gesture_dispatcher import GestureDispatcher
from .gesture_link import GestureLink

logger = logging.getLogger(__name__)


# notify(message, kind) where kind is "success", "error" or "info"
Notifier = Callable[[str, str], None]


class GestureSession:
    """Owns the link, frame source and dispatcher for one gesture session."""

    def __init__(
        self,
        link: GestureLink,
        dispatcher: GestureDispatcher,
        frame_source: FrameSource,
        notify: Notifier,
        frame_rate: float = 10.0,
    ):
        self._link = link
        self._dispatcher = dispatcher
        self._frame_source = frame_source
        self._notify = notify
        self._frame_interval = 1.0 / frame_rate
        self._frame_task: Optional[asyncio.Task] = None
        self._pending_read: Optional[asyncio.Future] = None

    @property
    def active(self) -> bool:
        return self._frame_task is not None

    @property
    def dispatcher(self) -> GestureDispatcher:
        return self._dispatcher

    async def enable(self) -> bool:
        """
        Start gesture input. Calling again while active retries the link
        connection (it is a no-op if the link is still up).

        Returns False if the camera could not be opened.
        """
        if not self.active:
            try:
                self._frame_source.open()
            except CaptureError as e:
                logger.error("Gesture input unavailable: %s", e)
                self._notify("Camera blocked", "error")
                return False
            self._frame_task = asyncio.create_task(self._send_frames())

        self._link.connect(self._on_sample, self._on_open, self._on_error)
        return True

    async def disable(self):
        """
        Stop the frame timer, close the link and hide the cursor.

        The camera is released only after any in-flight read has returned.
        """
        task, self._frame_task = self._frame_task, None
        if task is not None:
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass
            except Exception:
                logger.exception("Frame loop ended with an error")

        await self._wait_for_read()
        await self._link.disconnect()
        self._frame_source.release()
        self._dispatcher.clear_cursor()

    async def _wait_for_read(self):
        read, self._pending_read = self._pending_read, None
        if read is None:
            return
        # Cancelling the frame loop does not stop the worker thread
        await asyncio.wait([read])
        if not read.cancelled() and read.exception() is not None:
            logger.debug("Frame read failed during shutdown: %s", read.exception())

    async def _send_frames(self):
        while True:
            self._pending_read = asyncio.ensure_future(asyncio.to_thread(self._frame_source.read))
            try:
                frame = await asyncio.shield(self._pending_read)
                if frame is not None:
                    await self._link.send_frame(frame)
            except Exception as e:
                logger.error("Frame capture failed: %s", e)
            await asyncio.sleep(self._frame_interval)

    # --- Link Callbacks ---

    def _on_sample(self, sample: GesturePrediction):
        self._dispatcher.handle_sample(sample)

    def _on_open(self):
        self._notify("Gesture control active", "success")

    def _on_error(self, error: Exception):
        self._notify("Connection error", "error")

    def to_dict(self) -> dict:
        return {
            "active": self.active,
            "connected": self._link.is_open,
            **self._dispatcher.to_dict(),
        }

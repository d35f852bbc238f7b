"""
Camera capture for the frames sent to the pose classifier.
"""

import logging
import threading
from typing import Optional, Protocol

import cv2
import numpy as np

logger = logging.getLogger(__name__)


class CaptureError(RuntimeError):
    """The capture device could not be opened."""


class FrameSource(Protocol):
    def open(self) -> None: ...

    def read(self) -> Optional[np.ndarray]: ...

    def release(self) -> None: ...


class CameraFrameSource:
    """Reads BGR frames from a local camera through OpenCV."""

    def __init__(self, index: int = 0, width: int = 640, height: int = 480):
        self._index = index
        self._width = width
        self._height = height
        self._cap: Optional[cv2.VideoCapture] = None
        # read() runs on a worker thread; VideoCapture is not thread-safe
        self._lock = threading.Lock()

    @property
    def is_open(self) -> bool:
        return self._cap is not None

    def open(self):
        if self._cap is not None:
            return
        cap = cv2.VideoCapture(self._index)
        cap.set(cv2.CAP_PROP_FRAME_WIDTH, self._width)
        cap.set(cv2.CAP_PROP_FRAME_HEIGHT, self._height)
        if not cap.isOpened():
            cap.release()
            raise CaptureError(f"Cannot open camera {self._index}")
        self._cap = cap
        logger.info("Camera %d opened", self._index)

    def read(self) -> Optional[np.ndarray]:
        """Grab the latest frame, or None if the device has no frame ready."""
        with self._lock:
            if self._cap is None:
                return None
            ok, frame = self._cap.read()
        return frame if ok else None

    def release(self):
        with self._lock:
            cap, self._cap = self._cap, None
            if cap is None:
                return
            cap.release()
        logger.info("Camera %d released", self._index)

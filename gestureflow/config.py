"""
Configuration for GestureFlow.

All tunables live in one pydantic model. Values come from GESTUREFLOW_*
environment variables when present, otherwise from the defaults below:

    GESTUREFLOW_GESTURE_WS_URL=ws://localhost:8000/ws/gesture/
    GESTUREFLOW_ACTION_COOLDOWN_MS=600
    GESTUREFLOW_STORAGE_DIR=~/diagrams
"""

import os
from pathlib import Path
from typing import Mapping, Optional

from pydantic import BaseModel, Field


ENV_PREFIX = "GESTUREFLOW_"


class Settings(BaseModel):
    """Runtime settings."""
    # Pose classifier link
    gesture_ws_url: str = "ws://localhost:8000/ws/gesture/"
    frame_rate: float = Field(default=10.0, gt=0)   # frames/second sent to the classifier
    frame_width: int = Field(default=640, gt=0)     # capture space of wrist coordinates
    frame_height: int = Field(default=480, gt=0)
    jpeg_quality: int = Field(default=50, ge=1, le=100)
    camera_index: int = 0
    mirror: bool = True                             # front-facing capture

    # Gesture dispatch
    smoothing: float = Field(default=0.2, gt=0, le=1)
    hit_padding: float = Field(default=25.0, ge=0)
    action_cooldown_ms: float = Field(default=600.0, ge=0)
    select_cooldown_ms: float = Field(default=400.0, ge=0)

    # Persistence
    storage_dir: Path = Path("~/diagrams").expanduser()
    storage_url: Optional[str] = None               # remote document store; local dir if unset

    # API server
    api_host: str = "127.0.0.1"
    api_port: int = 8765
    log_level: str = "INFO"


def load_settings(environ: Optional[Mapping[str, str]] = None) -> Settings:
    """
    Build Settings from GESTUREFLOW_* environment variables.

    Raises:
        pydantic.ValidationError: if a variable has an invalid value
    """
    if environ is None:
        environ = os.environ

    values = {}
    for name in Settings.model_fields:
        key = ENV_PREFIX + name.upper()
        if key in environ:
            values[name] = environ[key]

    settings = Settings.model_validate(values)
    settings.storage_dir = settings.storage_dir.expanduser()
    return settings

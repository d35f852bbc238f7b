"""GestureFlow - a node/connection diagram editor driven by pointer and hand gestures."""

__version__ = "1.0.0"

"""
Viewport transform - pan/zoom math between screen and world coordinates.

Screen coordinates are pixels in the window; world coordinates are the
diagram's own space. The rendering surface may not sit at the window's
top-left, so its origin is subtracted before pan and scale are applied.
"""

from dataclasses import dataclass


MIN_SCALE = 0.1
MAX_SCALE = 5.0

# Wheel delta (pixels) to scale delta
WHEEL_ZOOM_FACTOR = 0.001


def clamp_scale(scale: float) -> float:
    return min(max(MIN_SCALE, scale), MAX_SCALE)


@dataclass
class ViewportTransform:
    """Pan offset (offset_x, offset_y) and uniform scale."""
    offset_x: float = 0.0
    offset_y: float = 0.0
    scale: float = 1.0

    def __post_init__(self):
        self.scale = clamp_scale(self.scale)

    def screen_to_world(
        self,
        sx: float,
        sy: float,
        origin_x: float = 0.0,
        origin_y: float = 0.0
    ) -> tuple[float, float]:
        """Map a screen point to world space (surface origin subtracted first)."""
        return (
            (sx - origin_x - self.offset_x) / self.scale,
            (sy - origin_y - self.offset_y) / self.scale,
        )

    def world_to_screen(
        self,
        wx: float,
        wy: float,
        origin_x: float = 0.0,
        origin_y: float = 0.0
    ) -> tuple[float, float]:
        """Inverse of screen_to_world."""
        return (
            wx * self.scale + self.offset_x + origin_x,
            wy * self.scale + self.offset_y + origin_y,
        )

    def zoom_at(
        self,
        screen_x: float,
        screen_y: float,
        delta_scale: float,
        origin_x: float = 0.0,
        origin_y: float = 0.0
    ) -> None:
        """
        Change scale by `delta_scale` while keeping the world point under
        (screen_x, screen_y) fixed on screen.

        Scale is clamped to [MIN_SCALE, MAX_SCALE].
        """
        world_x, world_y = self.screen_to_world(screen_x, screen_y, origin_x, origin_y)
        new_scale = clamp_scale(self.scale + delta_scale)

        local_x = screen_x - origin_x
        local_y = screen_y - origin_y
        self.offset_x = local_x - world_x * new_scale
        self.offset_y = local_y - world_y * new_scale
        self.scale = new_scale

    def wheel_zoom(
        self,
        screen_x: float,
        screen_y: float,
        wheel_delta_y: float,
        origin_x: float = 0.0,
        origin_y: float = 0.0
    ) -> None:
        """Pointer wheel zoom: scrolling up (negative delta) zooms in."""
        self.zoom_at(screen_x, screen_y, -wheel_delta_y * WHEEL_ZOOM_FACTOR, origin_x, origin_y)

    def pan(self, dx: float, dy: float) -> None:
        self.offset_x += dx
        self.offset_y += dy

    def set(self, offset_x=None, offset_y=None, scale=None) -> None:
        """Overwrite any of the viewport values."""
        if offset_x is not None:
            self.offset_x = offset_x
        if offset_y is not None:
            self.offset_y = offset_y
        if scale is not None:
            self.scale = clamp_scale(scale)

    def to_dict(self) -> dict:
        return {"offset_x": self.offset_x, "offset_y": self.offset_y, "scale": self.scale}


@dataclass
class DisplayGeometry:
    """Window size and the rendering surface's top-left in screen space."""
    window_width: float = 1280.0
    window_height: float = 720.0
    surface_left: float = 0.0
    surface_top: float = 0.0

    @property
    def center(self) -> tuple[float, float]:
        return (self.window_width / 2, self.window_height / 2)

    def to_dict(self) -> dict:
        return {
            "window_width": self.window_width,
            "window_height": self.window_height,
            "surface_left": self.surface_left,
            "surface_top": self.surface_top,
        }

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Tuple

Point = Tuple[float, float]

# Port-label badges sit this far from the node centre, along the link.
PORT_LABEL_OFFSET = 55.0


@dataclass(frozen=True)
class ScreenTransform:
    """Canvas-to-screen affine transform without rotation or skew.

    screen_x = a * x + e
    screen_y = d * y + f
    """

    a: float = 1.0
    d: float = 1.0
    e: float = 0.0
    f: float = 0.0

    def is_invertible(self) -> bool:
        return self.a != 0 and self.d != 0

    def to_screen(self, x: float, y: float) -> Point:
        return self.a * x + self.e, self.d * y + self.f

    def to_canvas(self, sx: float, sy: float) -> Optional[Point]:
        if not self.is_invertible():
            return None
        return (sx - self.e) / self.a, (sy - self.f) / self.d


def to_canvas(transform: Optional[ScreenTransform], sx: float, sy: float) -> Optional[Point]:
    """Map a pointer position into canvas space.

    Returns None when there is no usable transform (e.g. the canvas is not
    mapped yet); callers treat that as "ignore this pointer event".
    """
    if transform is None:
        return None
    return transform.to_canvas(sx, sy)


def point_along(a: Point, b: Point, distance: float) -> Point:
    """Point on segment a->b that lies ``distance`` away from a."""
    dx = b[0] - a[0]
    dy = b[1] - a[1]
    length = (dx * dx + dy * dy) ** 0.5
    if length == 0:
        return a
    return a[0] + dx / length * distance, a[1] + dy / length * distance


def port_label_positions(source: Point, target: Point, offset: float = PORT_LABEL_OFFSET) -> Tuple[Point, Point]:
    return point_along(source, target, offset), point_along(target, source, offset)


def distance_to_segment(p: Point, a: Point, b: Point) -> float:
    px, py = p
    x1, y1 = a
    x2, y2 = b
    vx, vy = x2 - x1, y2 - y1
    wx, wy = px - x1, py - y1

    c1 = vx * wx + vy * wy
    if c1 <= 0:
        return ((px - x1) ** 2 + (py - y1) ** 2) ** 0.5

    c2 = vx * vx + vy * vy
    if c2 <= c1:
        return ((px - x2) ** 2 + (py - y2) ** 2) ** 0.5

    t = c1 / c2
    bx, by = x1 + t * vx, y1 + t * vy
    return ((px - bx) ** 2 + (py - by) ** 2) ** 0.5

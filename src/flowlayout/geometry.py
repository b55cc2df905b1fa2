"""Plain geometry helpers: points, rectangles and segment tests.

All coordinates are diagram pixels with y growing downwards.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from dataclasses import dataclass


@dataclass
class Point:
    """A 2D point in diagram coordinates."""

    x: float
    y: float

    def rounded(self) -> Point:
        return Point(x=round(self.x), y=round(self.y))

    def to_dict(self) -> dict[str, float]:
        return {"x": self.x, "y": self.y}


@dataclass
class Rect:
    """An axis-aligned rectangle."""

    x: float
    y: float
    width: float
    height: float

    @property
    def right(self) -> float:
        return self.x + self.width

    @property
    def bottom(self) -> float:
        return self.y + self.height

    @property
    def cx(self) -> float:
        return self.x + self.width / 2

    @property
    def cy(self) -> float:
        return self.y + self.height / 2

    def center(self) -> Point:
        return Point(x=self.cx, y=self.cy)

    def contains(self, p: Point) -> bool:
        return self.x <= p.x <= self.right and self.y <= p.y <= self.bottom

    def to_dict(self) -> dict[str, float]:
        return {"x": self.x, "y": self.y, "width": self.width, "height": self.height}


# ─── Rectangles ──────────────────────────────────────────────────────────────


def rects_overlap(a: Rect, b: Rect) -> bool:
    """True when the interiors intersect; touching edges do not count."""
    return a.x < b.right and b.x < a.right and a.y < b.bottom and b.y < a.bottom


def bounding_box(rects: Iterable[Rect]) -> Rect | None:
    min_x = min_y = float("inf")
    max_x = max_y = float("-inf")
    found = False
    for r in rects:
        found = True
        min_x = min(min_x, r.x)
        min_y = min(min_y, r.y)
        max_x = max(max_x, r.right)
        max_y = max(max_y, r.bottom)
    if not found:
        return None
    return Rect(x=min_x, y=min_y, width=max_x - min_x, height=max_y - min_y)


# ─── Segments ────────────────────────────────────────────────────────────────

_INSIDE, _LEFT, _RIGHT, _BOTTOM, _TOP = 0, 1, 2, 4, 8


def _outcode(p: Point, r: Rect) -> int:
    code = _INSIDE
    if p.x < r.x:
        code |= _LEFT
    elif p.x > r.right:
        code |= _RIGHT
    if p.y < r.y:
        code |= _TOP
    elif p.y > r.bottom:
        code |= _BOTTOM
    return code


def segment_intersects_rect(p1: Point, p2: Point, rect: Rect) -> bool:
    """Cohen-Sutherland clipping test: does segment p1-p2 touch the rectangle?"""
    x1, y1, x2, y2 = p1.x, p1.y, p2.x, p2.y
    c1 = _outcode(Point(x1, y1), rect)
    c2 = _outcode(Point(x2, y2), rect)
    while True:
        if not (c1 | c2):
            return True
        if c1 & c2:
            return False
        out = c1 or c2
        if out & _BOTTOM:
            x = x1 + (x2 - x1) * (rect.bottom - y1) / (y2 - y1)
            y = rect.bottom
        elif out & _TOP:
            x = x1 + (x2 - x1) * (rect.y - y1) / (y2 - y1)
            y = rect.y
        elif out & _RIGHT:
            y = y1 + (y2 - y1) * (rect.right - x1) / (x2 - x1)
            x = rect.right
        else:
            y = y1 + (y2 - y1) * (rect.x - x1) / (x2 - x1)
            x = rect.x
        if out == c1:
            x1, y1 = x, y
            c1 = _outcode(Point(x1, y1), rect)
        else:
            x2, y2 = x, y
            c2 = _outcode(Point(x2, y2), rect)


def _cross(o: Point, a: Point, b: Point) -> float:
    return (a.x - o.x) * (b.y - o.y) - (a.y - o.y) * (b.x - o.x)


def segments_intersect(a1: Point, a2: Point, b1: Point, b2: Point) -> bool:
    """Strict crossing test: segments must properly cross each other.

    Touching at an endpoint or running collinear does not count.
    """
    d1 = _cross(b1, b2, a1)
    d2 = _cross(b1, b2, a2)
    d3 = _cross(a1, a2, b1)
    d4 = _cross(a1, a2, b2)
    return d1 * d2 < 0 and d3 * d4 < 0


def segments_of(points: Sequence[Point]) -> list[tuple[Point, Point]]:
    return [(points[i], points[i + 1]) for i in range(len(points) - 1)]


# ─── Waypoint clean-up ───────────────────────────────────────────────────────


def dedupe_points(points: Iterable[Point]) -> list[Point]:
    """Drop consecutive duplicate points."""
    result: list[Point] = []
    for p in points:
        if result and result[-1].x == p.x and result[-1].y == p.y:
            continue
        result.append(Point(x=p.x, y=p.y))
    return result


def snap_orthogonal(points: Sequence[Point], tolerance: float) -> list[Point]:
    """Force near-aligned consecutive points onto a shared axis."""
    snapped = [Point(x=p.x, y=p.y) for p in points]
    for i in range(1, len(snapped)):
        prev, cur = snapped[i - 1], snapped[i]
        if abs(cur.x - prev.x) < tolerance:
            cur.x = prev.x
        if abs(cur.y - prev.y) < tolerance:
            cur.y = prev.y
    return snapped


def simplify_path(path: Sequence[Point]) -> list[Point]:
    """Remove duplicate and collinear intermediate points, keeping only direction changes."""
    deduped = dedupe_points(path)
    if len(deduped) <= 2:
        return deduped

    result = [deduped[0]]
    for i in range(1, len(deduped) - 1):
        prev = result[-1]
        curr = deduped[i]
        nxt = deduped[i + 1]
        if (prev.x == curr.x == nxt.x) or (prev.y == curr.y == nxt.y):
            continue
        result.append(curr)
    result.append(deduped[-1])
    return result


def is_orthogonal(points: Sequence[Point]) -> bool:
    return all(a.x == b.x or a.y == b.y for a, b in segments_of(points))

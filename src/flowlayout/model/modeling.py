"""Mutation API for diagram geometry.

Every geometry change made by the layout pipeline goes through ``Modeling``
so that it is recorded on the ``CommandStack`` and can be undone as a unit.
"""

from __future__ import annotations

import copy
from collections.abc import Callable, Iterable
from dataclasses import dataclass, field

from flowlayout.geometry import Point, Rect, dedupe_points
from flowlayout.model.elements import Element, is_boundary_event, is_connection, is_message_flow
from flowlayout.model.registry import RegistryView


# ─── Command stack ───────────────────────────────────────────────────────────


@dataclass
class Geometry:
    x: float
    y: float
    width: float | None
    height: float | None
    waypoints: list[Point]
    label: Rect | None

    @classmethod
    def of(cls, el: Element) -> Geometry:
        return cls(
            x=el.x,
            y=el.y,
            width=el.width,
            height=el.height,
            waypoints=copy.deepcopy(el.waypoints),
            label=copy.copy(el.label),
        )

    def restore(self, el: Element) -> None:
        el.x, el.y, el.width, el.height = self.x, self.y, self.width, self.height
        el.waypoints = copy.deepcopy(self.waypoints)
        el.label = copy.copy(self.label)


@dataclass
class Command:
    name: str
    before: dict[str, Geometry] = field(default_factory=dict)


class CommandStack:
    """Records geometry snapshots taken before each mutation."""

    def __init__(self) -> None:
        self.commands: list[Command] = []

    def record(self, name: str, elements: Iterable[Element]) -> Command:
        command = Command(name=name, before={el.id: Geometry.of(el) for el in elements})
        self.commands.append(command)
        return command

    def can_undo(self) -> bool:
        return bool(self.commands)

    def undo(self, registry: RegistryView) -> Command | None:
        if not self.commands:
            return None
        command = self.commands.pop()
        for element_id, geometry in command.before.items():
            el = registry.get(element_id)
            if el is not None:
                geometry.restore(el)
        return command

    def undo_to(self, mark: int, registry: RegistryView) -> None:
        """Undo commands until only ``mark`` remain."""
        while len(self.commands) > mark:
            self.undo(registry)

    def clear(self) -> None:
        self.commands.clear()


# ─── Connection routing ──────────────────────────────────────────────────────


def _z_horizontal(start: Point, end: Point) -> list[Point]:
    if start.y == end.y:
        return [start, end]
    mid = round((start.x + end.x) / 2)
    return [start, Point(mid, start.y), Point(mid, end.y), end]


def _z_vertical(start: Point, end: Point) -> list[Point]:
    if start.x == end.x:
        return [start, end]
    mid = round((start.y + end.y) / 2)
    return [start, Point(start.x, mid), Point(end.x, mid), end]


def manhattan_route(src: Rect, tgt: Rect, prefer_vertical: bool = False) -> list[Point]:
    """Border-docked orthogonal route between two rectangles.

    The side pair is picked from the relative position of the boxes; when
    they overlap on both axes an L-shape between the centres is used.
    """
    right = tgt.x >= src.right
    left = tgt.right <= src.x
    below = tgt.y >= src.bottom
    above = tgt.bottom <= src.y

    def horizontal() -> list[Point] | None:
        if right:
            return _z_horizontal(Point(src.right, round(src.cy)), Point(tgt.x, round(tgt.cy)))
        if left:
            return _z_horizontal(Point(src.x, round(src.cy)), Point(tgt.right, round(tgt.cy)))
        return None

    def vertical() -> list[Point] | None:
        if below:
            return _z_vertical(Point(round(src.cx), src.bottom), Point(round(tgt.cx), tgt.y))
        if above:
            return _z_vertical(Point(round(src.cx), src.y), Point(round(tgt.cx), tgt.bottom))
        return None

    order = (vertical, horizontal) if prefer_vertical else (horizontal, vertical)
    for attempt in order:
        route = attempt()
        if route is not None:
            return dedupe_points(route)
    start, end = src.center().rounded(), tgt.center().rounded()
    return dedupe_points([start, Point(end.x, start.y), end])


def boundary_route(event: Rect, tgt: Rect) -> list[Point]:
    """Route out of a boundary event: vertical first, then into the target's side."""
    bx = round(event.cx)
    if tgt.x <= bx <= tgt.right:
        if tgt.y >= event.bottom:
            return [Point(bx, event.bottom), Point(bx, tgt.y)]
        if tgt.bottom <= event.y:
            return [Point(bx, event.y), Point(bx, tgt.bottom)]
    ty = round(tgt.cy)
    start = Point(bx, event.bottom) if ty >= event.cy else Point(bx, event.y)
    end = Point(tgt.x, ty) if tgt.x >= bx else Point(tgt.right, ty)
    return dedupe_points([start, Point(bx, ty), end])


# ─── Modeling ────────────────────────────────────────────────────────────────


class Modeling:
    def __init__(self, registry: RegistryView, command_stack: CommandStack | None = None) -> None:
        self.registry = registry
        self.command_stack = command_stack or CommandStack()

    def _closure(
        self,
        elements: Iterable[Element],
        exclude: Callable[[str], bool] | None = None,
    ) -> dict[str, Element]:
        """The shapes plus their descendants and attached boundary events.

        Descendants for which ``exclude`` holds stay put, together with
        everything they carry.
        """
        children: dict[str, list[Element]] = {}
        attachers: dict[str, list[Element]] = {}
        for el in self.registry.get_all():
            if el.parent is not None:
                children.setdefault(el.parent, []).append(el)
            if is_boundary_event(el) and el.host is not None:
                attachers.setdefault(el.host, []).append(el)

        moved: dict[str, Element] = {}
        stack = [el for el in elements if not is_connection(el)]
        while stack:
            el = stack.pop()
            if el.id in moved:
                continue
            moved[el.id] = el
            carried = [*children.get(el.id, []), *attachers.get(el.id, [])]
            stack.extend(
                c for c in carried if not is_connection(c) and not (exclude is not None and exclude(c.id))
            )
        return moved

    def move_elements(
        self,
        elements: Iterable[Element],
        delta: Point,
        carry: bool = True,
        exclude: Callable[[str], bool] | None = None,
    ) -> list[Element]:
        """Translate shapes with everything they carry; returns the moved elements.

        Connections are translated when both ends move; others keep their
        waypoints until they are re-routed. With ``carry=False`` only the
        given shapes move. ``exclude`` keeps matching descendants (pinned
        ones, say) where they are.
        """
        if carry:
            moved = self._closure(elements, exclude)
            connections = [
                c
                for c in self.registry.get_all()
                if is_connection(c) and c.source in moved and c.target in moved
            ]
        else:
            moved = {el.id: el for el in elements if not is_connection(el)}
            connections = []
        if not moved or (delta.x == 0 and delta.y == 0):
            return []
        self.command_stack.record("elements.move", [*moved.values(), *connections])
        for el in [*moved.values(), *connections]:
            if is_connection(el):
                el.waypoints = [Point(p.x + delta.x, p.y + delta.y) for p in el.waypoints]
            else:
                el.x += delta.x
                el.y += delta.y
            if el.label is not None:
                el.label = Rect(el.label.x + delta.x, el.label.y + delta.y, el.label.width, el.label.height)
        return [*moved.values(), *connections]

    def resize_shape(self, shape: Element, bounds: Rect) -> None:
        self.command_stack.record("shape.resize", [shape])
        shape.x, shape.y = bounds.x, bounds.y
        shape.width, shape.height = bounds.width, bounds.height

    def update_waypoints(self, connection: Element, points: list[Point]) -> None:
        self.command_stack.record("connection.updateWaypoints", [connection])
        connection.waypoints = [Point(p.x, p.y) for p in points]

    def update_label(self, element: Element, bounds: Rect) -> None:
        self.command_stack.record("label.move", [element])
        element.label = Rect(bounds.x, bounds.y, bounds.width, bounds.height)

    def layout_connection(self, connection: Element) -> list[Point]:
        """Re-route a connection between its endpoints' current borders."""
        source = self.registry.get(connection.source or "")
        target = self.registry.get(connection.target or "")
        if source is None or target is None:
            return connection.waypoints
        if is_boundary_event(source):
            points = boundary_route(source.bounds(), target.bounds())
        else:
            points = manhattan_route(source.bounds(), target.bounds(), prefer_vertical=is_message_flow(connection))
        self.update_waypoints(connection, points)
        return points

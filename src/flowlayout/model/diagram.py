"""The diagram facade: registry, modeling, container queries and pinning."""

from __future__ import annotations

from typing import Any

from flowlayout import types as t
from flowlayout.geometry import Point, Rect
from flowlayout.model.elements import Element, is_connection, is_lane, is_participant
from flowlayout.model.modeling import CommandStack, Modeling
from flowlayout.model.registry import ElementRegistry

DEFAULT_ROOT_ID = "Process_1"


class Diagram:
    """One diagram: its elements, the mutation API and the pinned-element set.

    ``pinned_elements`` stays ``None`` until the first manual move or resize.
    """

    def __init__(self, root_id: str = DEFAULT_ROOT_ID, root_type: str = t.PROCESS) -> None:
        self.registry = ElementRegistry()
        self.command_stack = CommandStack()
        self.modeling = Modeling(self.registry, self.command_stack)
        self.pinned_elements: set[str] | None = None
        self.root_id = root_id
        self.registry.add(Element(id=root_id, type=root_type))

    @property
    def root(self) -> Element:
        return self._require(self.root_id)

    # ─── Building ────────────────────────────────────────────────────────────

    def add_shape(
        self,
        element_id: str,
        element_type: str = "bpmn:Task",
        x: float = 0,
        y: float = 0,
        width: float = 100,
        height: float = 80,
        parent: str | None = None,
        **attrs: Any,
    ) -> Element:
        el = Element(
            id=element_id,
            type=element_type,
            x=x,
            y=y,
            width=width,
            height=height,
            parent=parent or self.root_id,
            **attrs,
        )
        return self.registry.add(el)

    def add_connection(
        self,
        element_id: str,
        source: str,
        target: str,
        element_type: str = t.SEQUENCE_FLOW,
        waypoints: list[Point] | None = None,
        parent: str | None = None,
    ) -> Element:
        src = self.registry.get(source)
        el = Element(
            id=element_id,
            type=element_type,
            source=source,
            target=target,
            waypoints=list(waypoints or []),
            parent=parent or (src.parent if src is not None and src.parent else self.root_id),
        )
        return self.registry.add(el)

    # ─── Container queries ───────────────────────────────────────────────────

    def get(self, element_id: str) -> Element | None:
        return self.registry.get(element_id)

    def children_of(self, element_id: str) -> list[Element]:
        return self.registry.children_of(element_id)

    def lanes_of(self, pool_id: str) -> list[Element]:
        """Lanes of a pool, including nested child lane sets."""
        lanes: list[Element] = []
        stack = [pool_id]
        while stack:
            parent = stack.pop()
            for child in self.registry.children_of(parent):
                if is_lane(child):
                    lanes.append(child)
                    stack.append(child.id)
        return lanes

    def bounds_of(self, element_id: str) -> Rect | None:
        el = self.registry.get(element_id)
        if el is None or is_connection(el):
            return None
        return el.bounds()

    # ─── Pinning ─────────────────────────────────────────────────────────────

    def pin_element(self, element_id: str) -> None:
        if self.pinned_elements is None:
            self.pinned_elements = set()
        self.pinned_elements.add(element_id)

    def is_pinned(self, element_id: str) -> bool:
        return self.pinned_elements is not None and element_id in self.pinned_elements

    def clear_pinned(self) -> None:
        if self.pinned_elements is not None:
            self.pinned_elements.clear()

    def move_element(self, element_id: str, x: float, y: float) -> Element:
        """A manual move to an absolute position; the element becomes pinned."""
        el = self._require(element_id)
        self.modeling.move_elements([el], Point(x - el.x, y - el.y))
        self.pin_element(element_id)
        return el

    def resize_element(self, element_id: str, width: float, height: float) -> Element:
        """A manual resize; the element becomes pinned."""
        el = self._require(element_id)
        self.modeling.resize_shape(el, Rect(el.x, el.y, width, height))
        self.pin_element(element_id)
        return el

    def assign_to_lane(self, element_id: str, lane_id: str) -> Element:
        """Structural move into a lane; does not pin the element."""
        el = self._require(element_id)
        lane = self._require(lane_id)
        if not is_lane(lane):
            raise ValueError(f"'{lane_id}' is not a lane")
        pool_id = next((p for p in self.registry.ancestors_of(lane_id) if self._is_pool(p)), None)
        siblings = self.lanes_of(pool_id) if pool_id else [lane]
        for other in siblings:
            if element_id in other.flow_node_refs:
                other.flow_node_refs.remove(element_id)
        lane.flow_node_refs.append(element_id)

        dy = 0.0
        if el.y < lane.y:
            dy = lane.y - el.y + 10
        elif el.y + (el.height or 0) > lane.y + (lane.height or 0):
            dy = lane.y + (lane.height or 0) - (el.y + (el.height or 0)) - 10
        if dy:
            self.modeling.move_elements([el], Point(0, dy))
        return el

    def _is_pool(self, element_id: str) -> bool:
        el = self.registry.get(element_id)
        return el is not None and is_participant(el)

    def _require(self, element_id: str) -> Element:
        el = self.registry.get(element_id)
        if el is None:
            raise KeyError(f"Element '{element_id}' not found")
        return el

    # ─── Serialization ───────────────────────────────────────────────────────

    def to_dict(self) -> dict[str, Any]:
        root = self.root
        return {
            "root": {"id": root.id, "type": root.type},
            "elements": [el.to_dict() for el in self.registry.get_all() if el.id != root.id],
            "pinned": sorted(self.pinned_elements or []),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Diagram:
        root = data.get("root") or {}
        diagram = cls(root_id=root.get("id", DEFAULT_ROOT_ID), root_type=root.get("type", t.PROCESS))
        for raw in data.get("elements", []):
            el = Element.from_dict(raw)
            if el.parent is None:
                el.parent = diagram.root_id
            diagram.registry.add(el)
        for element_id in data.get("pinned", []):
            diagram.pin_element(element_id)
        return diagram

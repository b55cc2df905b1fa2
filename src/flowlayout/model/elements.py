"""Diagram elements and type predicates.

A single ``Element`` dataclass covers shapes (with ``width``/``height``) and
connections (with ``waypoints``). Elements are live objects: the pipeline
mutates their geometry in place and never creates or destroys them.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from flowlayout import types as t
from flowlayout.geometry import Point, Rect


@dataclass
class Element:
    id: str
    type: str
    x: float = 0
    y: float = 0
    width: float | None = None
    height: float | None = None
    parent: str | None = None
    name: str | None = None
    host: str | None = None
    source: str | None = None
    target: str | None = None
    waypoints: list[Point] = field(default_factory=list)
    flow_node_refs: list[str] = field(default_factory=list)
    category: str | None = None
    triggered_by_event: bool = False
    label: Rect | None = None

    @property
    def is_shape(self) -> bool:
        return self.width is not None and self.type not in t.CONNECTION_TYPES

    def bounds(self) -> Rect:
        return Rect(x=self.x, y=self.y, width=self.width or 0, height=self.height or 0)

    def center(self) -> Point:
        return self.bounds().center()

    # ─── Serialization ───────────────────────────────────────────────────────

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"id": self.id, "type": self.type}
        if self.parent is not None:
            data["parent"] = self.parent
        if self.name is not None:
            data["name"] = self.name
        if is_connection(self):
            data["source"] = self.source
            data["target"] = self.target
            data["waypoints"] = [p.to_dict() for p in self.waypoints]
        else:
            data.update(x=self.x, y=self.y, width=self.width, height=self.height)
        if self.host is not None:
            data["host"] = self.host
        if self.flow_node_refs:
            data["flowNodeRefs"] = list(self.flow_node_refs)
        if self.category is not None:
            data["category"] = self.category
        if self.triggered_by_event:
            data["triggeredByEvent"] = True
        if self.label is not None:
            data["label"] = self.label.to_dict()
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Element:
        label = data.get("label")
        return cls(
            id=str(data["id"]),
            type=str(data["type"]),
            x=data.get("x", 0),
            y=data.get("y", 0),
            width=data.get("width"),
            height=data.get("height"),
            parent=data.get("parent"),
            name=data.get("name"),
            host=data.get("host"),
            source=data.get("source"),
            target=data.get("target"),
            waypoints=[Point(x=p["x"], y=p["y"]) for p in data.get("waypoints", [])],
            flow_node_refs=list(data.get("flowNodeRefs", [])),
            category=data.get("category"),
            triggered_by_event=bool(data.get("triggeredByEvent", False)),
            label=Rect(**label) if label else None,
        )


# ─── Type predicates ─────────────────────────────────────────────────────────


def is_connection(el: Element) -> bool:
    return el.type in t.CONNECTION_TYPES


def is_sequence_flow(el: Element) -> bool:
    return el.type == t.SEQUENCE_FLOW


def is_message_flow(el: Element) -> bool:
    return el.type == t.MESSAGE_FLOW


def is_association(el: Element) -> bool:
    return el.type in (t.ASSOCIATION, t.DATA_INPUT_ASSOCIATION, t.DATA_OUTPUT_ASSOCIATION)


def is_boundary_event(el: Element) -> bool:
    return el.type == t.BOUNDARY_EVENT


def is_participant(el: Element) -> bool:
    return el.type == t.PARTICIPANT


def is_lane(el: Element) -> bool:
    return el.type == t.LANE


def is_sub_process(el: Element) -> bool:
    return el.type in t.SUB_PROCESS_TYPES


def is_event_sub_process(el: Element) -> bool:
    return el.type == t.SUB_PROCESS and el.triggered_by_event


def is_artifact(el: Element) -> bool:
    return el.type in t.ARTIFACT_TYPES


def is_gateway(el: Element) -> bool:
    return el.type.endswith("Gateway")


def is_infrastructure(el: Element) -> bool:
    """Root processes, collaborations and standalone label elements."""
    return el.type in t.ROOT_TYPES or el.type == t.LABEL


def is_container(el: Element) -> bool:
    return is_participant(el) or is_sub_process(el)


def is_flow_node(el: Element) -> bool:
    """A shape the layout engine positions: not a connection, lane, artifact or boundary event."""
    return not (
        is_connection(el) or is_boundary_event(el) or is_infrastructure(el) or is_artifact(el) or is_lane(el)
    )


def has_external_label(el: Element) -> bool:
    return el.type in t.EXTERNAL_LABEL_TYPES

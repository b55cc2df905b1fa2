"""Layout graph passed to and returned by a layout engine.

Child coordinates are relative to their parent compound node. Engines
exchange the graph as plain dicts (``to_dict``/``parse_graph``); parsing is
strict so that a malformed engine result fails before anything is mutated.
"""

from __future__ import annotations

from collections.abc import Iterator
from dataclasses import dataclass, field
from typing import Any

from flowlayout.errors import LayoutGraphError
from flowlayout.geometry import Point

BOUNDARY_PROXY_PREFIX = "__boundary_proxy__"


@dataclass
class EdgeSection:
    """One routed polyline of an edge: start, bends, end."""

    start: Point
    end: Point
    bend_points: list[Point] = field(default_factory=list)

    def points(self) -> list[Point]:
        return [self.start, *self.bend_points, self.end]


@dataclass
class GraphEdge:
    id: str
    sources: list[str]
    targets: list[str]
    sections: list[EdgeSection] = field(default_factory=list)

    @property
    def source(self) -> str:
        return self.sources[0]

    @property
    def target(self) -> str:
        return self.targets[0]


@dataclass
class GraphNode:
    id: str
    width: float = 0
    height: float = 0
    x: float | None = None
    y: float | None = None
    children: list[GraphNode] = field(default_factory=list)
    edges: list[GraphEdge] = field(default_factory=list)
    padding: tuple[float, float, float, float] | None = None  # top, left, bottom, right
    options: dict[str, str] = field(default_factory=dict)

    @property
    def is_compound(self) -> bool:
        return bool(self.children)

    def walk(self) -> Iterator[GraphNode]:
        """Pre-order traversal of this node and every descendant."""
        yield self
        for child in self.children:
            yield from child.walk()

    def find(self, node_id: str) -> GraphNode | None:
        return next((n for n in self.walk() if n.id == node_id), None)

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"id": self.id, "width": self.width, "height": self.height}
        if self.x is not None and self.y is not None:
            data["x"], data["y"] = self.x, self.y
        if self.padding is not None:
            data["padding"] = list(self.padding)
        if self.options:
            data["layoutOptions"] = dict(self.options)
        if self.children:
            data["children"] = [c.to_dict() for c in self.children]
        if self.edges:
            data["edges"] = [_edge_to_dict(e) for e in self.edges]
        return data


def _edge_to_dict(edge: GraphEdge) -> dict[str, Any]:
    data: dict[str, Any] = {"id": edge.id, "sources": list(edge.sources), "targets": list(edge.targets)}
    if edge.sections:
        data["sections"] = [
            {
                "startPoint": s.start.to_dict(),
                "endPoint": s.end.to_dict(),
                "bendPoints": [p.to_dict() for p in s.bend_points],
            }
            for s in edge.sections
        ]
    return data


# ─── Parsing ─────────────────────────────────────────────────────────────────


def _number(data: dict[str, Any], key: str, path: str, required: bool = True) -> float | None:
    value = data.get(key)
    if value is None:
        if required:
            raise LayoutGraphError(f"{path}: missing '{key}'")
        return None
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise LayoutGraphError(f"{path}: '{key}' must be a number, got {value!r}")
    return value


def _point(data: Any, path: str) -> Point:
    if not isinstance(data, dict):
        raise LayoutGraphError(f"{path}: expected a point object")
    return Point(x=_number(data, "x", path), y=_number(data, "y", path))  # type: ignore[arg-type]


def _id_list(data: dict[str, Any], key: str, path: str) -> list[str]:
    value = data.get(key)
    if not isinstance(value, list) or not value or not all(isinstance(v, str) for v in value):
        raise LayoutGraphError(f"{path}: '{key}' must be a non-empty list of ids")
    return list(value)


def _parse_edge(data: Any, path: str) -> GraphEdge:
    if not isinstance(data, dict) or not isinstance(data.get("id"), str):
        raise LayoutGraphError(f"{path}: edge needs a string 'id'")
    path = f"{path}/{data['id']}"
    sections: list[EdgeSection] = []
    for i, raw in enumerate(data.get("sections") or []):
        spath = f"{path}/sections[{i}]"
        if not isinstance(raw, dict):
            raise LayoutGraphError(f"{spath}: expected an object")
        bends = raw.get("bendPoints") or []
        if not isinstance(bends, list):
            raise LayoutGraphError(f"{spath}: 'bendPoints' must be a list")
        sections.append(
            EdgeSection(
                start=_point(raw.get("startPoint"), f"{spath}/startPoint"),
                end=_point(raw.get("endPoint"), f"{spath}/endPoint"),
                bend_points=[_point(b, f"{spath}/bendPoints[{j}]") for j, b in enumerate(bends)],
            )
        )
    return GraphEdge(
        id=data["id"],
        sources=_id_list(data, "sources", path),
        targets=_id_list(data, "targets", path),
        sections=sections,
    )


def parse_graph(data: Any, require_positions: bool = False, _path: str = "") -> GraphNode:
    """Build a ``GraphNode`` tree from its dict form, validating every field."""
    if not isinstance(data, dict) or not isinstance(data.get("id"), str):
        raise LayoutGraphError(f"{_path or '/'}: node needs a string 'id'")
    path = f"{_path}/{data['id']}"
    width = _number(data, "width", path)
    height = _number(data, "height", path)
    if width < 0 or height < 0:  # type: ignore[operator]
        raise LayoutGraphError(f"{path}: negative size")
    is_root = not _path
    x = _number(data, "x", path, required=require_positions and not is_root)
    y = _number(data, "y", path, required=require_positions and not is_root)
    padding = data.get("padding")
    if padding is not None and (not isinstance(padding, (list, tuple)) or len(padding) != 4):
        raise LayoutGraphError(f"{path}: 'padding' must have four values")
    children_raw = data.get("children") or []
    edges_raw = data.get("edges") or []
    if not isinstance(children_raw, list) or not isinstance(edges_raw, list):
        raise LayoutGraphError(f"{path}: 'children' and 'edges' must be lists")
    return GraphNode(
        id=data["id"],
        width=width,  # type: ignore[arg-type]
        height=height,  # type: ignore[arg-type]
        x=x,
        y=y,
        children=[parse_graph(c, require_positions, path) for c in children_raw],
        edges=[_parse_edge(e, path) for e in edges_raw],
        padding=tuple(padding) if padding is not None else None,  # type: ignore[arg-type]
        options={str(k): str(v) for k, v in (data.get("layoutOptions") or {}).items()},
    )


def validate_graph(root: GraphNode) -> None:
    """Check id uniqueness and that every edge connects children of its container."""
    seen: set[str] = set()
    for node in root.walk():
        if node.id in seen:
            raise LayoutGraphError(f"Duplicate graph node id '{node.id}'")
        seen.add(node.id)
    for node in root.walk():
        child_ids = {c.id for c in node.children}
        for edge in node.edges:
            for end in (*edge.sources, *edge.targets):
                if end not in child_ids:
                    raise LayoutGraphError(f"Edge '{edge.id}' in '{node.id}' references unknown node '{end}'")

"""Layout graph types and the diagram-to-graph builder."""

from __future__ import annotations

from flowlayout.graph.builder import (
    build_container_graph,
    build_layout_graph,
    event_sub_processes,
    layoutable_children,
)
from flowlayout.graph.types import (
    BOUNDARY_PROXY_PREFIX,
    EdgeSection,
    GraphEdge,
    GraphNode,
    parse_graph,
    validate_graph,
)

__all__ = [
    "BOUNDARY_PROXY_PREFIX",
    "EdgeSection",
    "GraphEdge",
    "GraphNode",
    "build_container_graph",
    "build_layout_graph",
    "event_sub_processes",
    "layoutable_children",
    "parse_graph",
    "validate_graph",
]

"""Graph model builder: diagram containers to a nested layout graph.

Direct flow-node children of a container become graph nodes; a child with
layoutable children of its own becomes a compound node and is built
recursively. Lanes are not graph nodes: their members are lifted into the
owning pool. Sequence flows become edges only when both ends live in the same
container. Event subprocesses are left out and laid out on their own (see
``event_sub_processes``). Boundary events are left out too; each of their
outgoing flows is represented by a proxy edge from the host so the engine
reserves room for the exception path.
"""

from __future__ import annotations

import logging

from flowlayout.config import LayoutConfig
from flowlayout.graph.types import BOUNDARY_PROXY_PREFIX, GraphEdge, GraphNode
from flowlayout.model.elements import (
    Element,
    is_boundary_event,
    is_event_sub_process,
    is_flow_node,
    is_lane,
    is_participant,
    is_sequence_flow,
)
from flowlayout.model.registry import RegistryView

logger = logging.getLogger(__name__)


def layoutable_children(registry: RegistryView, container_id: str) -> list[Element]:
    """Flow-node children of a container, with lane members lifted up."""
    result: list[Element] = []
    for child in registry.children_of(container_id):
        if is_lane(child):
            result.extend(layoutable_children(registry, child.id))
        elif child.is_shape and is_flow_node(child):
            result.append(child)
    return result


def container_padding(el: Element, config: LayoutConfig) -> tuple[float, float, float, float]:
    return config.participant_padding if is_participant(el) else config.container_padding


def _size(el: Element, compound: bool, config: LayoutConfig) -> tuple[float, float]:
    default_w = config.default_compound_width if compound else config.default_width
    default_h = config.default_compound_height if compound else config.default_height
    return (el.width or default_w, el.height or default_h)


def build_container_graph(
    registry: RegistryView,
    container_id: str,
    config: LayoutConfig,
) -> tuple[list[GraphNode], list[GraphEdge]]:
    children = [c for c in layoutable_children(registry, container_id) if not is_event_sub_process(c)]
    node_ids = {c.id for c in children}

    nodes: list[GraphNode] = []
    for child in children:
        inner_children, inner_edges = build_container_graph(registry, child.id, config)
        compound = bool(inner_children)
        width, height = _size(child, compound, config)
        nodes.append(
            GraphNode(
                id=child.id,
                width=width,
                height=height,
                children=inner_children,
                edges=inner_edges,
                padding=container_padding(child, config) if compound else None,
            )
        )

    edges: list[GraphEdge] = []
    for conn in registry.filter(is_sequence_flow):
        if conn.source in node_ids and conn.target in node_ids:
            edges.append(GraphEdge(id=conn.id, sources=[conn.source], targets=[conn.target]))  # type: ignore[list-item]

    for event in registry.filter(is_boundary_event):
        if event.host not in node_ids:
            continue
        for conn in registry.outgoing(event.id):
            if conn.target in node_ids:
                edges.append(
                    GraphEdge(
                        id=f"{BOUNDARY_PROXY_PREFIX}{conn.id}",
                        sources=[event.host],  # type: ignore[list-item]
                        targets=[conn.target],  # type: ignore[list-item]
                    )
                )
    return nodes, edges


def build_layout_graph(
    registry: RegistryView,
    root_id: str,
    config: LayoutConfig,
    options: dict[str, str] | None = None,
) -> GraphNode:
    """Build the full nested graph rooted at a container (or the diagram root)."""
    children, edges = build_container_graph(registry, root_id, config)
    root = GraphNode(id=root_id, children=children, edges=edges, options=dict(options or {}))
    logger.debug(
        "built layout graph for %s: %d nodes, %d edges",
        root_id,
        sum(1 for _ in root.walk()) - 1,
        sum(len(n.edges) for n in root.walk()),
    )
    return root


def event_sub_processes(registry: RegistryView, root_id: str) -> list[Element]:
    """Event subprocesses nested anywhere under ``root_id``, outermost first."""
    nested = [
        el
        for el in registry.filter(is_event_sub_process)
        if el.id != root_id and root_id in registry.ancestors_of(el.id)
    ]
    return sorted(nested, key=lambda el: (len(registry.ancestors_of(el.id)), el.id))

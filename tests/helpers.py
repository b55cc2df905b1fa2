"""Diagram builders shared by the test modules."""

from __future__ import annotations

import asyncio

from flowlayout import types as t
from flowlayout.config import LayoutConfig, LayoutOptions
from flowlayout.graph.types import GraphNode
from flowlayout.layout import layout_diagram
from flowlayout.model.diagram import Diagram
from flowlayout.model.registry import CachedElementRegistry
from flowlayout.model.modeling import Modeling
from flowlayout.pipeline.context import LayoutContext


def chain_diagram(tasks: int = 3) -> Diagram:
    """Start → Task_1 → … → Task_n → End, all piled at the origin."""
    d = Diagram()
    d.add_shape("Start", "bpmn:StartEvent", width=36, height=36)
    prev = "Start"
    for i in range(1, tasks + 1):
        d.add_shape(f"Task_{i}")
        d.add_connection(f"Flow_{i}", prev, f"Task_{i}")
        prev = f"Task_{i}"
    d.add_shape("End", "bpmn:EndEvent", width=36, height=36)
    d.add_connection("Flow_end", prev, "End")
    return d


def split_diagram() -> Diagram:
    """Start → Split → (A | B) → Join → End."""
    d = Diagram()
    d.add_shape("Start", "bpmn:StartEvent", width=36, height=36)
    d.add_shape("Split", "bpmn:ExclusiveGateway", width=50, height=50)
    d.add_shape("A")
    d.add_shape("B")
    d.add_shape("Join", "bpmn:ExclusiveGateway", width=50, height=50)
    d.add_shape("End", "bpmn:EndEvent", width=36, height=36)
    d.add_connection("f1", "Start", "Split")
    d.add_connection("f2", "Split", "A")
    d.add_connection("f3", "Split", "B")
    d.add_connection("f4", "A", "Join")
    d.add_connection("f5", "B", "Join")
    d.add_connection("f6", "Join", "End")
    return d


def pool_diagram(with_lanes: bool = True) -> Diagram:
    """One pool with two lanes; flows zig-zag between the lanes."""
    d = Diagram(root_id="Collaboration_1", root_type=t.COLLABORATION)
    d.add_shape("Pool", t.PARTICIPANT, width=600, height=300, name="Customer")
    d.add_shape("T1", parent="Pool")
    d.add_shape("T2", parent="Pool")
    d.add_shape("T3", parent="Pool")
    if with_lanes:
        d.add_shape("Lane_1", t.LANE, x=30, y=0, width=570, height=150, parent="Pool", flow_node_refs=["T1", "T3"])
        d.add_shape("Lane_2", t.LANE, x=30, y=150, width=570, height=150, parent="Pool", flow_node_refs=["T2"])
    d.add_connection("f1", "T1", "T2")
    d.add_connection("f2", "T2", "T3")
    return d


def make_context(diagram: Diagram, options: LayoutOptions | None = None, scope: str | None = None) -> LayoutContext:
    """A context with an empty engine result, for driving single steps."""
    registry = CachedElementRegistry(diagram.registry)
    root_id = scope or diagram.root_id
    return LayoutContext(
        diagram=diagram,
        registry=registry,
        modeling=Modeling(registry, diagram.command_stack),
        result=GraphNode(id=root_id),
        options=options or LayoutOptions(),
        config=LayoutConfig(),
        root_id=root_id,
        offset_x=0,
        offset_y=0,
        scoped=scope is not None,
    )


def run_layout(diagram: Diagram, **options):
    return asyncio.run(layout_diagram(diagram, LayoutOptions(**options)))


def flow_shapes(diagram: Diagram):
    """Shapes the layout positions, without the root, lanes and labels."""
    return [
        el
        for el in diagram.registry.get_all()
        if el.is_shape and el.type not in t.ROOT_TYPES and el.type != t.LANE
    ]

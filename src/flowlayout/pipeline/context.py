"""Per-invocation layout state shared by the pipeline steps."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from flowlayout.config import LayoutConfig, LayoutOptions
from flowlayout.graph.types import GraphNode
from flowlayout.model.diagram import Diagram
from flowlayout.model.elements import Element, is_boundary_event, is_connection
from flowlayout.model.modeling import Modeling
from flowlayout.model.registry import CachedElementRegistry

if TYPE_CHECKING:
    from flowlayout.pipeline.crossings import CrossingFlowsResult
    from flowlayout.pipeline.lanes import AutosizeReport, LaneSnapshot


@dataclass
class LayoutContext:
    """Created for one layout run and discarded afterwards."""

    diagram: Diagram
    registry: CachedElementRegistry
    modeling: Modeling
    result: GraphNode
    options: LayoutOptions
    config: LayoutConfig
    root_id: str
    offset_x: float
    offset_y: float
    scoped: bool = False
    lane_snapshots: list[LaneSnapshot] = field(default_factory=list)
    crossings: CrossingFlowsResult | None = None
    autosize: AutosizeReport | None = None
    event_sub_results: dict[str, GraphNode] = field(default_factory=dict)
    placed_results: list[tuple[GraphNode, float, float]] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)

    def is_pinned(self, element_id: str) -> bool:
        return self.diagram.is_pinned(element_id)

    def in_scope(self, el: Element) -> bool:
        """True for the scope root and everything nested in it."""
        if not self.scoped:
            return True
        anchor = el
        if is_connection(el):
            anchor = self.registry.get(el.source or "") or el
        elif is_boundary_event(el):
            anchor = self.registry.get(el.host or "") or el
        return anchor.id == self.root_id or self.root_id in self.registry.ancestors_of(anchor.id)

    def scoped_elements(self) -> list[Element]:
        return [el for el in self.registry.get_all() if self.in_scope(el)]

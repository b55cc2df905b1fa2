"""Layout orchestration.

Phases:
  1. Validate the diagram and the options (nothing is mutated on failure)
  2. Build the nested layout graph for the diagram root or the scope element
  3. Await the layout engine, once more for each event subprocess
  4. Run the main pipeline over the engine result
  5. Place external labels
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any

from flowlayout.config import LayoutConfig, LayoutOptions
from flowlayout.engine.base import LayoutEngine
from flowlayout.engine.layered import LayeredEngine
from flowlayout.errors import LayoutEngineError, LayoutGraphError, LayoutInputError
from flowlayout.graph.builder import build_layout_graph, container_padding, event_sub_processes
from flowlayout.graph.types import GraphNode, validate_graph
from flowlayout.model.diagram import Diagram
from flowlayout.model.elements import (
    is_boundary_event,
    is_connection,
    is_event_sub_process,
    is_lane,
    is_participant,
    is_sub_process,
)
from flowlayout.model.modeling import Modeling
from flowlayout.model.registry import CachedElementRegistry
from flowlayout.pipeline.artifacts import reposition_artifacts
from flowlayout.pipeline.boundary import fix_boundary_events
from flowlayout.pipeline.context import LayoutContext
from flowlayout.pipeline.crossings import LaneCrossingMetrics, detect_and_reduce_crossings, lane_crossing_metrics
from flowlayout.pipeline.edges import layout_connections
from flowlayout.pipeline.event_subprocesses import position_event_subprocesses
from flowlayout.pipeline.labels import adjust_labels
from flowlayout.pipeline.lanes import AutosizeReport, finalise_pools_and_lanes, save_lane_assignments
from flowlayout.pipeline.origin import normalise_and_snap
from flowlayout.pipeline.positions import apply_node_positions
from flowlayout.pipeline.runner import PipelineRunner, PipelineStep, StepRecord

logger = logging.getLogger(__name__)


def _no_pool_work(ctx: LayoutContext) -> bool:
    return not ctx.options.pool_autosize and not ctx.registry.filter(is_participant)


def _no_event_sub_processes(ctx: LayoutContext) -> bool:
    return not ctx.registry.filter(is_event_sub_process)


MAIN_PIPELINE_STEPS: list[PipelineStep] = [
    PipelineStep("apply_node_positions", apply_node_positions, track_delta=True),
    PipelineStep("finalise_pools_and_lanes", finalise_pools_and_lanes, skip=_no_pool_work),
    PipelineStep("fix_boundary_events", fix_boundary_events, track_delta=True),
    PipelineStep(
        "position_event_subprocesses",
        position_event_subprocesses,
        track_delta=True,
        skip=_no_event_sub_processes,
    ),
    PipelineStep("reposition_artifacts", reposition_artifacts, track_delta=True),
    PipelineStep("layout_connections", layout_connections),
    PipelineStep("normalise_origin", normalise_and_snap),
    PipelineStep("detect_crossing_flows", detect_and_reduce_crossings),
]


def build_pipeline(config: LayoutConfig | None = None) -> PipelineRunner:
    config = config or LayoutConfig()
    return PipelineRunner(MAIN_PIPELINE_STEPS, delta_threshold=config.delta_threshold)


# ─── Validation ──────────────────────────────────────────────────────────────


def validate_diagram(diagram: Diagram, options: LayoutOptions) -> None:
    """Reject unusable input before anything is mutated.

    Raises:
        LayoutInputError: describing the first problem found.
    """
    registry = diagram.registry
    scope_id = options.scope_element_id
    if scope_id is not None:
        scope = registry.get(scope_id)
        if scope is None:
            raise LayoutInputError(f"Scope element '{scope_id}' not found")
        if not (is_participant(scope) or is_sub_process(scope)):
            raise LayoutInputError(f"Scope element '{scope_id}' is a {scope.type}; expected a pool or subprocess")
    if options.grid_quantum is not None and options.grid_quantum <= 0:
        raise LayoutInputError(f"Grid quantum must be a positive integer, got {options.grid_quantum}")
    if options.target_aspect_ratio is not None and options.target_aspect_ratio <= 0:
        raise LayoutInputError(f"Aspect ratio must be positive, got {options.target_aspect_ratio}")

    for el in registry.get_all():
        if el.parent is not None and registry.get(el.parent) is None:
            raise LayoutInputError(f"Element '{el.id}' has unknown parent '{el.parent}'")
        if is_connection(el):
            for end in (el.source, el.target):
                if end is None or registry.get(end) is None:
                    raise LayoutInputError(f"Connection '{el.id}' references unknown element '{end}'")
        if is_boundary_event(el) and (el.host is None or registry.get(el.host) is None):
            raise LayoutInputError(f"Boundary event '{el.id}' has unknown host '{el.host}'")
        if is_lane(el):
            for ref in el.flow_node_refs:
                if registry.get(ref) is None:
                    raise LayoutInputError(f"Lane '{el.id}' references unknown element '{ref}'")

        seen = {el.id}
        parent = el.parent
        while parent is not None:
            if parent in seen:
                raise LayoutInputError(f"Parent cycle through '{parent}'")
            seen.add(parent)
            node = registry.get(parent)
            parent = node.parent if node is not None else None


# ─── Result ──────────────────────────────────────────────────────────────────


@dataclass
class LayoutResult:
    success: bool = True
    moved_elements: int = 0
    crossing_flows: int = 0
    crossing_flow_pairs: list[tuple[str, str]] = field(default_factory=list)
    autosize: AutosizeReport | None = None
    lane_metrics: LaneCrossingMetrics | None = None
    labels_moved: int = 0
    warnings: list[str] = field(default_factory=list)
    steps: list[StepRecord] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"success": self.success, "movedElements": self.moved_elements}
        if self.crossing_flows:
            data["crossingFlows"] = self.crossing_flows
            data["crossingFlowPairs"] = [list(p) for p in self.crossing_flow_pairs]
        if self.autosize is not None:
            data["autosize"] = self.autosize.to_dict()
        if self.lane_metrics is not None:
            data["laneMetrics"] = self.lane_metrics.to_dict()
        data["labelsMoved"] = self.labels_moved
        if self.warnings:
            data["warnings"] = list(self.warnings)
        data["steps"] = [s.to_dict() for s in self.steps]
        return data


# ─── Entry point ─────────────────────────────────────────────────────────────


async def layout_diagram(
    diagram: Diagram,
    options: LayoutOptions | None = None,
    engine: LayoutEngine | None = None,
    config: LayoutConfig | None = None,
) -> LayoutResult:
    """Lay out ``diagram`` in place.

    A full layout (no scope) forgets every pinned position first; a scoped
    layout re-lays the scope element's content and leaves pinned elements
    where they are.

    Raises:
        LayoutInputError: invalid diagram or options; nothing was mutated.
        LayoutEngineError: the engine failed; nothing was mutated.
        LayoutGraphError: the engine returned a malformed graph.
        PipelineStepError: a pipeline step failed; earlier steps' changes stay.
    """
    options = options or LayoutOptions()
    config = config or LayoutConfig()
    engine = engine or LayeredEngine()
    validate_diagram(diagram, options)

    scope_id = options.scope_element_id
    scoped = scope_id is not None
    root_id = scope_id if scope_id is not None else diagram.root_id
    node_spacing, layer_spacing = options.resolve_spacing(config)
    graph_options = {
        "direction": options.direction.name,
        "nodeSpacing": str(node_spacing),
        "layerSpacing": str(layer_spacing),
    }
    graph = build_layout_graph(diagram.registry, root_id, config, graph_options)
    lane_snapshots = save_lane_assignments(diagram.registry)

    result = await _run_engine(engine, graph)
    event_sub_results: dict[str, GraphNode] = {}
    for sub in event_sub_processes(diagram.registry, root_id):
        sub_graph = build_layout_graph(diagram.registry, sub.id, config, graph_options)
        if sub_graph.children:
            event_sub_results[sub.id] = await _run_engine(engine, sub_graph)
    if not scoped:
        diagram.clear_pinned()

    if scoped:
        scope = diagram.registry.get(root_id)
        if scope is None:
            raise LayoutInputError(f"Scope element '{root_id}' not found")
        top, left, _, _ = container_padding(scope, config)
        offset_x, offset_y = scope.x + left, scope.y + top
    else:
        offset_x, offset_y = config.origin_x, config.origin_y

    registry = CachedElementRegistry(diagram.registry)
    ctx = LayoutContext(
        diagram=diagram,
        registry=registry,
        modeling=Modeling(registry, diagram.command_stack),
        result=result,
        options=options,
        config=config,
        root_id=root_id,
        offset_x=offset_x,
        offset_y=offset_y,
        scoped=scoped,
        lane_snapshots=lane_snapshots,
        event_sub_results=event_sub_results,
    )
    steps = build_pipeline(config).run(ctx)

    labels_moved = 0
    if options.adjust_labels:
        labels_moved = adjust_labels(
            registry,
            ctx.modeling,
            config,
            movable=lambda el: ctx.in_scope(el) and not ctx.is_pinned(el.id),
        )

    moved: set[str] = set()
    for record in steps:
        if record.deltas:
            moved.update(record.deltas)

    crossings = ctx.crossings
    layout_result = LayoutResult(
        moved_elements=len(moved),
        crossing_flows=crossings.count if crossings else 0,
        crossing_flow_pairs=list(crossings.pairs) if crossings else [],
        autosize=ctx.autosize,
        lane_metrics=lane_crossing_metrics(registry),
        labels_moved=labels_moved,
        warnings=ctx.warnings,
        steps=steps,
    )
    logger.info(
        "layout of %s finished: %d moved, %d crossings",
        root_id,
        layout_result.moved_elements,
        layout_result.crossing_flows,
    )
    return layout_result

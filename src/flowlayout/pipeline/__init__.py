"""Post-engine pipeline steps and the runner that sequences them."""

from __future__ import annotations

from flowlayout.pipeline.context import LayoutContext
from flowlayout.pipeline.crossings import CrossingFlowsResult, detect_crossing_flows, reduce_crossings
from flowlayout.pipeline.labels import adjust_labels, label_candidates, score_label_position
from flowlayout.pipeline.lanes import AutosizeReport, autosize_pools
from flowlayout.pipeline.runner import PipelineRunner, PipelineStep, StepRecord

__all__ = [
    "AutosizeReport",
    "CrossingFlowsResult",
    "LayoutContext",
    "PipelineRunner",
    "PipelineStep",
    "StepRecord",
    "adjust_labels",
    "autosize_pools",
    "detect_crossing_flows",
    "label_candidates",
    "reduce_crossings",
    "score_label_position",
]

"""flowlayout: automatic layered layout for BPMN-style flow diagrams."""

from flowlayout.config import LayoutConfig, LayoutOptions
from flowlayout.engine import LayeredEngine, LayoutEngine
from flowlayout.errors import (
    LayoutEngineError,
    LayoutError,
    LayoutGraphError,
    LayoutInputError,
    PipelineStepError,
)
from flowlayout.layout import LayoutResult, build_pipeline, layout_diagram, validate_diagram
from flowlayout.model import Diagram, Element
from flowlayout.types import Compactness, Direction, LaneStrategy

__all__ = [
    "Compactness",
    "Diagram",
    "Direction",
    "Element",
    "LaneStrategy",
    "LayeredEngine",
    "LayoutConfig",
    "LayoutEngine",
    "LayoutEngineError",
    "LayoutError",
    "LayoutGraphError",
    "LayoutInputError",
    "LayoutOptions",
    "LayoutResult",
    "PipelineStepError",
    "build_pipeline",
    "layout_diagram",
    "validate_diagram",
]

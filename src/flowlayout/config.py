"""Centralized configuration for flowlayout."""

from __future__ import annotations

from dataclasses import dataclass, field

from flowlayout.types import Compactness, Direction, LaneStrategy


@dataclass
class LayoutConfig:
    """Tuned offsets and tolerances used by the pipeline steps."""

    # Engine spacing (px)
    node_spacing: int = 50
    layer_spacing: int = 60
    compact_spacing: tuple[int, int] = (40, 50)
    spacious_spacing: tuple[int, int] = (80, 100)

    # Default shape sizes
    default_width: int = 100
    default_height: int = 80
    default_compound_width: int = 300
    default_compound_height: int = 200
    boundary_event_size: int = 36

    # Compound padding (top, left, bottom, right)
    participant_padding: tuple[int, int, int, int] = (80, 50, 80, 40)
    container_padding: tuple[int, int, int, int] = (60, 40, 60, 50)

    # Origin for an unscoped layout
    origin_x: int = 180
    origin_y: int = 80

    # Position applier
    move_threshold: float = 0.5
    resize_threshold: float = 5
    pool_centre_threshold: float = 5
    delta_threshold: float = 1

    # Edge routing
    segment_ortho_snap: float = 8
    fallback_align_tolerance: float = 2
    self_loop_margin: int = 20
    message_flow_cluster_tolerance: float = 40
    message_flow_spacing: float = 18

    # Boundary events
    boundary_offset_factor: float = 0.67
    boundary_spread_margin: float = 0.1

    # Artifacts
    artifact_offset: int = 80
    artifact_padding: int = 20
    group_padding: int = 20
    max_artifact_shifts: int = 10

    # Lanes
    pool_label_band: int = 30
    lane_padding: int = 30
    min_lane_band: int = 250
    min_lane_column: int = 200
    max_optimize_lanes: int = 6

    # Pool autosize
    pool_padding: int = 50
    pool_header_padding: int = 30
    min_pool_width: int = 350
    min_pool_height: int = 250
    min_lane_height: int = 120
    min_aspect_ratio: float = 1.0
    max_aspect_ratio: float = 5.0
    lane_centre_threshold: float = 2

    # Labels
    label_width: int = 90
    label_height: int = 20
    label_gap: int = 10

    # Crossing reduction
    max_crossing_attempts: int = 20


@dataclass
class LayoutOptions:
    """Per-invocation layout options."""

    direction: Direction = field(default_factory=Direction.default)
    node_spacing: int | None = None
    layer_spacing: int | None = None
    compactness: Compactness = field(default_factory=Compactness.default)
    scope_element_id: str | None = None
    grid_quantum: int | None = None
    lane_strategy: LaneStrategy = field(default_factory=LaneStrategy.default)
    pool_autosize: bool = False
    pool_padding: int | None = None
    resize_lanes: bool = True
    target_aspect_ratio: float | None = None
    reduce_crossings: bool = True
    adjust_labels: bool = True

    def resolve_spacing(self, config: LayoutConfig) -> tuple[int, int]:
        """Return (node_spacing, layer_spacing); explicit values beat compactness presets."""
        if self.compactness is Compactness.COMPACT:
            node, layer = config.compact_spacing
        elif self.compactness is Compactness.SPACIOUS:
            node, layer = config.spacious_spacing
        else:
            node, layer = config.node_spacing, config.layer_spacing
        if self.node_spacing is not None:
            node = self.node_spacing
        if self.layer_spacing is not None:
            layer = self.layer_spacing
        return node, layer

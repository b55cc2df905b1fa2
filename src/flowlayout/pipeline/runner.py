"""Declarative pipeline runner.

Steps run strictly in declaration order. Each step is timed; steps marked
``track_delta`` also get a before/after snapshot of every shape position so
the caller can tell which elements the step moved.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable, Sequence
from dataclasses import dataclass

from flowlayout.errors import PipelineStepError
from flowlayout.pipeline.context import LayoutContext

logger = logging.getLogger(__name__)


@dataclass
class PipelineStep:
    name: str
    run: Callable[[LayoutContext], object]
    track_delta: bool = False
    skip: Callable[[LayoutContext], bool] | None = None


@dataclass
class StepRecord:
    name: str
    duration_ms: float
    skipped: bool = False
    deltas: dict[str, tuple[float, float]] | None = None

    def to_dict(self) -> dict[str, object]:
        data: dict[str, object] = {"name": self.name, "durationMs": round(self.duration_ms, 3)}
        if self.skipped:
            data["skipped"] = True
        if self.deltas is not None:
            data["moved"] = len(self.deltas)
        return data


def snapshot_positions(ctx: LayoutContext) -> dict[str, tuple[float, float]]:
    return {el.id: (el.x, el.y) for el in ctx.registry.get_all() if el.is_shape}


def position_deltas(
    before: dict[str, tuple[float, float]],
    after: dict[str, tuple[float, float]],
    threshold: float,
) -> dict[str, tuple[float, float]]:
    """Shapes that moved more than ``threshold`` px on either axis."""
    deltas: dict[str, tuple[float, float]] = {}
    for element_id, (x0, y0) in before.items():
        if element_id not in after:
            continue
        x1, y1 = after[element_id]
        dx, dy = x1 - x0, y1 - y0
        if abs(dx) > threshold or abs(dy) > threshold:
            deltas[element_id] = (dx, dy)
    return deltas


class PipelineRunner:
    def __init__(self, steps: Sequence[PipelineStep], delta_threshold: float = 1.0) -> None:
        self.steps = list(steps)
        self.delta_threshold = delta_threshold

    def get_step_names(self) -> list[str]:
        return [step.name for step in self.steps]

    def run(self, ctx: LayoutContext) -> list[StepRecord]:
        """Execute every step; the first failure aborts the run.

        Raises:
            PipelineStepError: wrapping the step's exception. Mutations made
                by earlier steps are not rolled back.
        """
        records: list[StepRecord] = []
        for step in self.steps:
            if step.skip is not None and step.skip(ctx):
                logger.debug("step %s skipped", step.name)
                records.append(StepRecord(name=step.name, duration_ms=0.0, skipped=True))
                continue

            before = snapshot_positions(ctx) if step.track_delta else None
            started = time.perf_counter()
            logger.debug("step %s started", step.name)
            try:
                step.run(ctx)
            except Exception as err:
                logger.debug("step %s failed: %s", step.name, err)
                raise PipelineStepError(step.name, err) from err
            duration_ms = (time.perf_counter() - started) * 1000

            deltas = None
            if before is not None:
                deltas = position_deltas(before, snapshot_positions(ctx), self.delta_threshold)
                logger.debug("step %s finished in %.1f ms, moved %d", step.name, duration_ms, len(deltas))
            else:
                logger.debug("step %s finished in %.1f ms", step.name, duration_ms)
            records.append(StepRecord(name=step.name, duration_ms=duration_ms, deltas=deltas))
        return records

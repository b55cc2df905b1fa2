"""Exceptions raised by flowlayout."""

from __future__ import annotations


class LayoutError(Exception):
    """Base class for all layout failures."""


class LayoutInputError(LayoutError, ValueError):
    """The diagram or the options are unusable; nothing has been mutated."""


class LayoutGraphError(LayoutError, ValueError):
    """A layout graph (engine input or result) is malformed."""


class LayoutEngineError(LayoutError, RuntimeError):
    """The layout engine failed to produce a result."""


class PipelineStepError(LayoutError, RuntimeError):
    """A pipeline step raised; earlier steps' mutations are kept."""

    def __init__(self, step_name: str, cause: BaseException) -> None:
        super().__init__(f'Pipeline step "{step_name}" failed: {cause}')
        self.step_name = step_name
        self.cause = cause

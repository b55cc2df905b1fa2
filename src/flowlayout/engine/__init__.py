"""Layout engines: the async engine interface and the layered implementation."""

from __future__ import annotations

from flowlayout.engine.base import LayoutEngine
from flowlayout.engine.layered import LayeredEngine

__all__ = ["LayeredEngine", "LayoutEngine"]

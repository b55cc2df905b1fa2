"""Base layout engine protocol.

Defines the interface that all layout engines must implement.
"""

from __future__ import annotations

from abc import ABC, abstractmethod

from flowlayout.graph.types import GraphNode


class LayoutEngine(ABC):
    """Abstract base class for layout engines.

    An engine receives a nested layout graph whose nodes carry sizes and
    returns a graph of the same shape with positions (relative to the parent
    compound node), compound sizes and, where it can, routed edge sections.
    """

    @property
    @abstractmethod
    def name(self) -> str:
        """Engine name (e.g., 'layered')."""
        ...

    @abstractmethod
    async def layout(self, graph: GraphNode) -> GraphNode:
        """Compute layout for a graph.

        Args:
            graph: Root of the layout graph; ``graph.options`` carries
                direction and spacing.

        Returns:
            The positioned graph.
        """
        ...

"""Diagram model: elements, registries, the mutation API and the diagram facade."""

from __future__ import annotations

from flowlayout.model.diagram import Diagram
from flowlayout.model.elements import Element
from flowlayout.model.modeling import CommandStack, Modeling
from flowlayout.model.registry import CachedElementRegistry, ElementRegistry, RegistryView

__all__ = [
    "CachedElementRegistry",
    "CommandStack",
    "Diagram",
    "Element",
    "ElementRegistry",
    "Modeling",
    "RegistryView",
]

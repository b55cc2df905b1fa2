"""Element registries.

``ElementRegistry`` owns the elements of one diagram. ``CachedElementRegistry``
wraps any registry for the duration of one layout run: the full element list
is fetched once and reused until ``invalidate()``.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Callable

from flowlayout.model.elements import Element, is_boundary_event, is_connection


class RegistryView(ABC):
    """Read-side queries shared by the plain and the cached registry."""

    @abstractmethod
    def get_all(self) -> list[Element]:
        ...

    @abstractmethod
    def get(self, element_id: str) -> Element | None:
        ...

    def filter(self, predicate: Callable[[Element], bool]) -> list[Element]:
        return [el for el in self.get_all() if predicate(el)]

    def for_each(self, fn: Callable[[Element], object]) -> None:
        for el in self.get_all():
            fn(el)

    def children_of(self, parent_id: str) -> list[Element]:
        return self.filter(lambda el: el.parent == parent_id)

    def outgoing(self, element_id: str) -> list[Element]:
        return self.filter(lambda el: is_connection(el) and el.source == element_id)

    def incoming(self, element_id: str) -> list[Element]:
        return self.filter(lambda el: is_connection(el) and el.target == element_id)

    def attachers_of(self, host_id: str) -> list[Element]:
        return self.filter(lambda el: is_boundary_event(el) and el.host == host_id)

    def ancestors_of(self, element_id: str) -> list[str]:
        """Parent ids from the direct parent upwards."""
        chain: list[str] = []
        el = self.get(element_id)
        while el is not None and el.parent is not None and el.parent not in chain:
            chain.append(el.parent)
            el = self.get(el.parent)
        return chain


class ElementRegistry(RegistryView):
    def __init__(self) -> None:
        self._elements: dict[str, Element] = {}

    def add(self, element: Element) -> Element:
        if element.id in self._elements:
            raise ValueError(f"Duplicate element id '{element.id}'")
        self._elements[element.id] = element
        return element

    def remove(self, element_id: str) -> None:
        self._elements.pop(element_id, None)

    def get_all(self) -> list[Element]:
        return list(self._elements.values())

    def get(self, element_id: str) -> Element | None:
        return self._elements.get(element_id)

    def __len__(self) -> int:
        return len(self._elements)

    def __contains__(self, element_id: object) -> bool:
        return element_id in self._elements


class CachedElementRegistry(RegistryView):
    """Memoizes ``get_all()`` of an inner registry; ``get()`` is never cached."""

    def __init__(self, inner: RegistryView) -> None:
        self.inner = inner
        self._cache: list[Element] | None = None

    def get_all(self) -> list[Element]:
        if self._cache is None:
            self._cache = self.inner.get_all()
        return self._cache

    def get(self, element_id: str) -> Element | None:
        return self.inner.get(element_id)

    def invalidate(self) -> None:
        self._cache = None

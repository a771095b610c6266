from __future__ import annotations

from functools import lru_cache
from types import MappingProxyType
from typing import Dict, Iterable, List, Mapping, Tuple

from .errors import NotFoundError
from .snippets import SNIPPETS, SnippetAction, SnippetCategory, SnippetDescriptor


class SnippetRegistry:
    """Read-only catalog of snippets grouped by category.

    Built once from an ordered table; all lookups are plain dict reads so the
    registry can be shared freely between threads and tasks.
    """

    def __init__(self, entries: Iterable[Tuple[SnippetDescriptor, SnippetAction]]):
        by_id: Dict[str, Tuple[SnippetDescriptor, SnippetAction]] = {}
        by_category: Dict[SnippetCategory, List[SnippetDescriptor]] = {}
        for descriptor, action in entries:
            if descriptor.id in by_id:
                raise ValueError(f"Duplicate snippet id: {descriptor.id}")
            by_id[descriptor.id] = (descriptor, action)
            by_category.setdefault(descriptor.category, []).append(descriptor)

        self._by_id: Mapping[str, Tuple[SnippetDescriptor, SnippetAction]] = MappingProxyType(by_id)
        self._by_category: Mapping[SnippetCategory, Tuple[SnippetDescriptor, ...]] = MappingProxyType(
            {category: tuple(descriptors) for category, descriptors in by_category.items()}
        )

    def __len__(self) -> int:
        return len(self._by_id)

    def categories(self) -> Tuple[SnippetCategory, ...]:
        return tuple(self._by_category)

    def list_by_category(self, category: SnippetCategory) -> Tuple[SnippetDescriptor, ...]:
        try:
            return self._by_category[SnippetCategory(category)]
        except (KeyError, ValueError):
            raise NotFoundError(f"Unknown snippet category: {category}") from None

    def get(self, snippet_id: str) -> SnippetDescriptor:
        entry = self._by_id.get(snippet_id)
        if entry is None:
            raise NotFoundError(f"Snippet {snippet_id} is not registered")
        return entry[0]

    def resolve(self, descriptor: SnippetDescriptor) -> SnippetAction:
        entry = self._by_id.get(descriptor.id)
        if entry is None or entry[0] != descriptor:
            raise NotFoundError(f"Snippet {descriptor.id} is not registered")
        return entry[1]


@lru_cache(maxsize=None)
def default_registry() -> SnippetRegistry:
    return SnippetRegistry(SNIPPETS)

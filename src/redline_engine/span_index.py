"""
Index from revision ids and node references to live span elements.

Resolution looks spans up here instead of walking the whole tree. The index
holds the span elements themselves, so an lxml proxy keeps its identity for
as long as it is indexed. Entries are checked for attachment on lookup
because the host may mutate the tree behind the engine's back.
"""

import itertools
import logging

from lxml import etree

from .constants import w
from .tree import is_attached, iter_spans

logger = logging.getLogger(__name__)


class SpanIndex:
    """Maps revision ids and node references to w:ins / w:del elements.

    A node reference is an opaque key handed to the ledger; it is allocated
    once per span element and never reused.
    """

    def __init__(self, root: etree._Element) -> None:
        self._root = root
        self._counter = itertools.count(1)
        self._by_reference: dict[str, etree._Element] = {}
        self._reference_of: dict[etree._Element, str] = {}
        self._by_revision: dict[str, list[etree._Element]] = {}

    @property
    def root(self) -> etree._Element:
        return self._root

    def __len__(self) -> int:
        return len(self._by_reference)

    def __contains__(self, element: object) -> bool:
        return element in self._reference_of

    def register(self, element: etree._Element) -> str:
        """Index a span element and return its node reference.

        Registering an element twice returns the existing reference.
        """
        existing = self._reference_of.get(element)
        if existing is not None:
            return existing

        reference = f"span-{next(self._counter)}"
        self._by_reference[reference] = element
        self._reference_of[element] = reference
        revision_id = element.get(w("id"), "")
        self._by_revision.setdefault(revision_id, []).append(element)
        return reference

    def discard(self, element: etree._Element) -> None:
        """Drop a span element from the index; unknown elements are ignored."""
        reference = self._reference_of.pop(element, None)
        if reference is None:
            return
        del self._by_reference[reference]
        revision_id = element.get(w("id"), "")
        siblings = self._by_revision.get(revision_id, [])
        if element in siblings:
            siblings.remove(element)
        if not siblings:
            self._by_revision.pop(revision_id, None)

    def discard_revision(self, revision_id: str) -> None:
        for element in list(self._by_revision.get(revision_id, [])):
            self.discard(element)

    def reference_for(self, element: etree._Element) -> str | None:
        return self._reference_of.get(element)

    def element_for(self, reference: str | None) -> etree._Element | None:
        """Resolve a node reference to a span that is still in the tree."""
        if reference is None:
            return None
        element = self._by_reference.get(reference)
        if element is None or not is_attached(element, self._root):
            return None
        return element

    def spans_for(self, revision_id: str) -> list[etree._Element]:
        """Get the live span elements of a revision in document order.

        Elements that have left the tree are pruned as a side effect.
        """
        live: list[etree._Element] = []
        detached: list[etree._Element] = []
        for element in self._by_revision.get(revision_id, []):
            (live if is_attached(element, self._root) else detached).append(element)
        for element in detached:
            logger.debug("Pruning detached span for revision %s", revision_id)
            self.discard(element)
        if len(live) > 1:
            order = {element: i for i, element in enumerate(iter_spans(self._root))}
            live.sort(key=lambda element: order.get(element, 0))
        return live

    def revision_ids(self) -> list[str]:
        return list(self._by_revision)

    def clear(self) -> None:
        self._by_reference.clear()
        self._reference_of.clear()
        self._by_revision.clear()

    def rebuild(self, root: etree._Element | None = None) -> None:
        """Re-index every span under ``root`` (or the current root).

        Existing references for elements still in the tree are kept.
        """
        if root is not None and root is not self._root:
            self.clear()
            self._root = root
        seen = set()
        for element in iter_spans(self._root):
            self.register(element)
            seen.add(element)
        for element in [element for element in self._reference_of if element not in seen]:
            self.discard(element)

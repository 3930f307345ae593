"""
Revision ledger: the registry of every tracked revision and its status.

The ledger is owned by a Document. UI surfaces read it (counts, filters,
listings) and subscribe to changes through listeners; only the interception
layer and the resolution engine write to it.
"""

import itertools
import logging
from collections.abc import Callable, Iterable
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum

from .author import RevisionAuthor
from .models.revision import Revision, RevisionKind, RevisionStatus
from .results import RevisionCounts

logger = logging.getLogger(__name__)


class LedgerAction(Enum):
    """What changed in the ledger."""

    ADDED = "added"
    STATUS_CHANGED = "status_changed"
    UPDATED = "updated"
    REMOVED = "removed"
    CLEARED = "cleared"


@dataclass(frozen=True)
class LedgerEvent:
    """Notification delivered to ledger listeners.

    Attributes:
        action: What changed
        revision: Snapshot of the affected record (None for CLEARED)
    """

    action: LedgerAction
    revision: Revision | None = None


LedgerListener = Callable[[LedgerEvent], None]


class RevisionLedger:
    """In-memory registry mapping revision ids to revision records.

    Identifiers are allocated from a monotonic counter and are never reused
    within the lifetime of the ledger, including across clear() and remove().
    Every read returns a copy of the stored record.

    Example:
        >>> ledger = RevisionLedger()
        >>> rev_id = ledger.add(RevisionKind.INSERTION, "Hello", alice, "span-1")
        >>> ledger.get(rev_id).status
        <RevisionStatus.PENDING: 'pending'>
    """

    def __init__(self) -> None:
        self._records: dict[str, Revision] = {}
        self._sequence: dict[str, int] = {}
        self._by_reference: dict[str, str] = {}
        self._issued: set[str] = set()
        self._next_id = 1
        self._order = itertools.count()
        self._listeners: list[LedgerListener] = []

    # Listeners

    def add_listener(self, listener: LedgerListener) -> None:
        """Register a callback invoked after every ledger change."""
        if listener not in self._listeners:
            self._listeners.append(listener)

    def remove_listener(self, listener: LedgerListener) -> None:
        """Remove a previously registered listener if present."""
        try:
            self._listeners.remove(listener)
        except ValueError:
            pass

    def _notify(self, action: LedgerAction, record: Revision | None = None) -> None:
        event = LedgerEvent(action, record.copy() if record is not None else None)
        for listener in list(self._listeners):
            try:
                listener(event)
            except Exception:
                logger.exception("Ledger listener failed on %s", action.value)

    # Writes

    def allocate_id(self) -> str:
        """Reserve a fresh revision id without creating a record.

        Used when the span has to carry its id before the record exists.
        """
        while str(self._next_id) in self._issued:
            self._next_id += 1
        revision_id = str(self._next_id)
        self._reserve_id(revision_id)
        return revision_id

    def _reserve_id(self, revision_id: str) -> None:
        self._issued.add(revision_id)
        if revision_id.isdigit() and int(revision_id) >= self._next_id:
            self._next_id = int(revision_id) + 1

    def add(
        self,
        kind: RevisionKind,
        content: str,
        author: RevisionAuthor,
        node_reference: str | None,
        *,
        revision_id: str | None = None,
        created_at: datetime | None = None,
        status: RevisionStatus = RevisionStatus.PENDING,
    ) -> str:
        """Insert a new record and return its id.

        Args:
            kind: Kind of revision
            content: Text snapshot of the change
            author: Who made the change
            node_reference: Span index key of the span carrying the revision
            revision_id: Use this id instead of allocating one (imports only)
            created_at: Creation time, defaults to now (UTC)
            status: Initial status, PENDING unless restoring a record

        Raises:
            ValueError: If ``revision_id`` is already present in the ledger
        """
        if revision_id is None:
            revision_id = self.allocate_id()
        elif revision_id in self._records:
            raise ValueError(f"Revision id '{revision_id}' is already in the ledger")
        self._reserve_id(revision_id)

        record = Revision(
            id=revision_id,
            kind=kind,
            status=status,
            content=content,
            author=author,
            created_at=created_at or datetime.now(timezone.utc),
            node_reference=node_reference,
            original_content=content if kind is RevisionKind.DELETION else None,
        )
        self._records[revision_id] = record
        self._sequence[revision_id] = next(self._order)
        if node_reference is not None:
            self._by_reference[node_reference] = revision_id

        logger.debug("Added %s revision %s by %s", kind.value, revision_id, author.id)
        self._notify(LedgerAction.ADDED, record)
        return revision_id

    def set_status(self, revision_id: str, status: RevisionStatus) -> bool:
        """Move a pending record to a new status.

        Already-terminal and unknown records are left alone, which makes
        repeated resolution of the same id harmless.

        Returns:
            True if the status changed
        """
        record = self._records.get(revision_id)
        if record is None or record.is_terminal or status is RevisionStatus.PENDING:
            return False
        record.status = status
        logger.debug("Revision %s is now %s", revision_id, status.value)
        self._notify(LedgerAction.STATUS_CHANGED, record)
        return True

    def update_content(self, revision_id: str, content: str) -> None:
        """Refresh the content snapshot of a record."""
        record = self._records.get(revision_id)
        if record is None or record.content == content:
            return
        record.content = content
        self._notify(LedgerAction.UPDATED, record)

    def update_node_reference(self, revision_id: str, node_reference: str | None) -> None:
        """Point a record at a different span, keeping the reverse index current."""
        record = self._records.get(revision_id)
        if record is None or record.node_reference == node_reference:
            return
        if record.node_reference is not None:
            self._by_reference.pop(record.node_reference, None)
        record.node_reference = node_reference
        if node_reference is not None:
            self._by_reference[node_reference] = revision_id
        self._notify(LedgerAction.UPDATED, record)

    def remove(self, revision_id: str) -> Revision | None:
        """Drop a record; its id stays reserved. Returns the removed record."""
        record = self._records.pop(revision_id, None)
        if record is None:
            return None
        self._sequence.pop(revision_id, None)
        if record.node_reference is not None:
            self._by_reference.pop(record.node_reference, None)
        logger.debug("Removed revision %s", revision_id)
        self._notify(LedgerAction.REMOVED, record)
        return record.copy()

    def clear(self) -> None:
        """Drop all records. Issued ids remain reserved."""
        self._records.clear()
        self._sequence.clear()
        self._by_reference.clear()
        self._notify(LedgerAction.CLEARED)

    # Reads

    def __len__(self) -> int:
        return len(self._records)

    def __contains__(self, revision_id: object) -> bool:
        return revision_id in self._records

    def get(self, revision_id: str) -> Revision | None:
        record = self._records.get(revision_id)
        return record.copy() if record is not None else None

    def list_pending(self) -> list[Revision]:
        return [r.copy() for r in self._records.values() if r.is_pending]

    def list_by_kind(self, kind: RevisionKind) -> list[Revision]:
        return [r.copy() for r in self._records.values() if r.kind is kind]

    def list_by_author(self, author_id: str) -> list[Revision]:
        return [r.copy() for r in self._records.values() if r.author.id == author_id]

    def find_by_node_reference(self, node_reference: str) -> Revision | None:
        """Look up the record pointing at a span, in O(1)."""
        revision_id = self._by_reference.get(node_reference)
        return self.get(revision_id) if revision_id is not None else None

    def list_revisions(
        self,
        kind: RevisionKind | None = None,
        status: RevisionStatus | None = None,
        author_id: str | None = None,
    ) -> list[Revision]:
        """List records, newest first.

        Records created at the same instant are ordered by when they entered
        the ledger, the later one first.

        Args:
            kind: Only records of this kind
            status: Only records with this status
            author_id: Only records by this author
        """
        selected: Iterable[Revision] = self._records.values()
        if kind is not None:
            selected = (r for r in selected if r.kind is kind)
        if status is not None:
            selected = (r for r in selected if r.status is status)
        if author_id is not None:
            selected = (r for r in selected if r.author.id == author_id)
        ordered = sorted(
            selected,
            key=lambda r: (r.created_at, self._sequence[r.id]),
            reverse=True,
        )
        return [r.copy() for r in ordered]

    def counts(self) -> RevisionCounts:
        counts = RevisionCounts(total=len(self._records))
        for record in self._records.values():
            if record.status is RevisionStatus.PENDING:
                counts.pending += 1
            elif record.status is RevisionStatus.ACCEPTED:
                counts.accepted += 1
            else:
                counts.rejected += 1
        return counts

    def counts_by_kind(self, status: RevisionStatus | None = None) -> dict[RevisionKind, int]:
        """Count records per kind, optionally restricted to one status."""
        counts = {kind: 0 for kind in RevisionKind}
        for record in self._records.values():
            if status is None or record.status is status:
                counts[record.kind] += 1
        return counts

    def authors(self) -> list[RevisionAuthor]:
        """Distinct authors in the order they first appear in the ledger."""
        seen: dict[str, RevisionAuthor] = {}
        for revision_id in sorted(self._records, key=self._sequence.__getitem__):
            author = self._records[revision_id].author
            seen.setdefault(author.id, author)
        return list(seen.values())

    def ids(self) -> list[str]:
        return list(self._records)

"""
Tests for the RevisionLedger.

These tests verify:
- Monotonic, never-reused revision ids
- Snapshot reads
- Status transitions
- Ordering, filtering and counts
- Listener notifications
"""

import logging
from datetime import datetime, timedelta, timezone

import pytest

from redline_engine import (
    LedgerAction,
    RevisionAuthor,
    RevisionKind,
    RevisionLedger,
    RevisionStatus,
)

ALICE = RevisionAuthor(id="alice", name="Alice")
BOB = RevisionAuthor(id="bob", name="Bob")
BASE_TIME = datetime(2024, 1, 1, tzinfo=timezone.utc)


def test_add_allocates_sequential_ids() -> None:
    ledger = RevisionLedger()

    first = ledger.add(RevisionKind.INSERTION, "Hello", ALICE, "span-1")
    second = ledger.add(RevisionKind.DELETION, "world", ALICE, "span-2")

    assert (first, second) == ("1", "2")
    assert len(ledger) == 2
    assert "1" in ledger
    assert ledger.get(first).status is RevisionStatus.PENDING


def test_ids_are_never_reused() -> None:
    """Removed and cleared ids stay reserved."""
    ledger = RevisionLedger()
    first = ledger.add(RevisionKind.INSERTION, "a", ALICE, None)
    ledger.remove(first)
    second = ledger.add(RevisionKind.INSERTION, "b", ALICE, None)
    ledger.clear()
    third = ledger.add(RevisionKind.INSERTION, "c", ALICE, None)

    assert len({first, second, third}) == 3
    assert int(first) < int(second) < int(third)


def test_explicit_ids_advance_the_counter() -> None:
    ledger = RevisionLedger()
    ledger.add(RevisionKind.INSERTION, "a", ALICE, None, revision_id="10")

    assert ledger.allocate_id() == "11"
    assert ledger.add(RevisionKind.INSERTION, "b", ALICE, None) == "12"


def test_duplicate_id_raises() -> None:
    ledger = RevisionLedger()
    ledger.add(RevisionKind.INSERTION, "a", ALICE, None, revision_id="5")

    with pytest.raises(ValueError, match="already in the ledger"):
        ledger.add(RevisionKind.INSERTION, "b", ALICE, None, revision_id="5")


def test_reads_return_snapshots() -> None:
    """Mutating a returned record does not change the ledger."""
    ledger = RevisionLedger()
    rev_id = ledger.add(RevisionKind.INSERTION, "Hello", ALICE, None)

    snapshot = ledger.get(rev_id)
    snapshot.content = "changed"
    snapshot.status = RevisionStatus.ACCEPTED

    assert ledger.get(rev_id).content == "Hello"
    assert ledger.get(rev_id).status is RevisionStatus.PENDING


def test_deletion_keeps_original_content() -> None:
    ledger = RevisionLedger()
    rev_id = ledger.add(RevisionKind.DELETION, "gone", ALICE, None)
    ins_id = ledger.add(RevisionKind.INSERTION, "new", ALICE, None)

    assert ledger.get(rev_id).original_content == "gone"
    assert ledger.get(ins_id).original_content is None


class TestStatus:
    """Tests for status transitions."""

    def test_pending_to_terminal(self) -> None:
        ledger = RevisionLedger()
        rev_id = ledger.add(RevisionKind.INSERTION, "a", ALICE, None)

        assert ledger.set_status(rev_id, RevisionStatus.ACCEPTED) is True
        assert ledger.get(rev_id).status is RevisionStatus.ACCEPTED

    def test_terminal_is_final(self) -> None:
        ledger = RevisionLedger()
        rev_id = ledger.add(RevisionKind.INSERTION, "a", ALICE, None)
        ledger.set_status(rev_id, RevisionStatus.REJECTED)

        assert ledger.set_status(rev_id, RevisionStatus.ACCEPTED) is False
        assert ledger.get(rev_id).status is RevisionStatus.REJECTED

    def test_cannot_return_to_pending(self) -> None:
        ledger = RevisionLedger()
        rev_id = ledger.add(RevisionKind.INSERTION, "a", ALICE, None)

        assert ledger.set_status(rev_id, RevisionStatus.PENDING) is False

    def test_unknown_id(self) -> None:
        assert RevisionLedger().set_status("404", RevisionStatus.ACCEPTED) is False


class TestQueries:
    """Tests for listing, filtering and counting."""

    def _ledger(self) -> RevisionLedger:
        ledger = RevisionLedger()
        ledger.add(RevisionKind.INSERTION, "one", ALICE, None, created_at=BASE_TIME)
        ledger.add(
            RevisionKind.DELETION, "two", BOB, None, created_at=BASE_TIME + timedelta(minutes=1)
        )
        ledger.add(
            RevisionKind.INSERTION, "three", BOB, None, created_at=BASE_TIME + timedelta(minutes=2)
        )
        return ledger

    def test_list_revisions_newest_first(self) -> None:
        contents = [r.content for r in self._ledger().list_revisions()]
        assert contents == ["three", "two", "one"]

    def test_same_timestamp_orders_by_insertion(self) -> None:
        ledger = RevisionLedger()
        ledger.add(RevisionKind.INSERTION, "first", ALICE, None, created_at=BASE_TIME)
        ledger.add(RevisionKind.INSERTION, "second", ALICE, None, created_at=BASE_TIME)

        assert [r.content for r in ledger.list_revisions()] == ["second", "first"]

    def test_filters(self) -> None:
        ledger = self._ledger()
        ledger.set_status("3", RevisionStatus.ACCEPTED)

        assert [r.id for r in ledger.list_revisions(kind=RevisionKind.INSERTION)] == ["3", "1"]
        assert [r.id for r in ledger.list_revisions(author_id="bob")] == ["3", "2"]
        assert [r.id for r in ledger.list_revisions(status=RevisionStatus.PENDING)] == ["2", "1"]
        assert [
            r.id
            for r in ledger.list_revisions(
                kind=RevisionKind.INSERTION, status=RevisionStatus.PENDING, author_id="bob"
            )
        ] == []
        assert {r.id for r in ledger.list_pending()} == {"1", "2"}
        assert [r.id for r in ledger.list_by_kind(RevisionKind.DELETION)] == ["2"]
        assert {r.id for r in ledger.list_by_author("alice")} == {"1"}

    def test_counts(self) -> None:
        ledger = self._ledger()
        ledger.set_status("1", RevisionStatus.ACCEPTED)
        ledger.set_status("2", RevisionStatus.REJECTED)

        counts = ledger.counts()
        assert (counts.total, counts.pending, counts.accepted, counts.rejected) == (3, 1, 1, 1)
        assert str(counts) == "3 revisions (1 pending, 1 accepted, 1 rejected)"

        by_kind = ledger.counts_by_kind(status=RevisionStatus.PENDING)
        assert by_kind[RevisionKind.INSERTION] == 1
        assert by_kind[RevisionKind.DELETION] == 0
        assert by_kind[RevisionKind.FORMAT] == 0

    def test_authors_in_first_seen_order(self) -> None:
        assert [a.id for a in self._ledger().authors()] == ["alice", "bob"]

    def test_node_reference_lookup(self) -> None:
        ledger = RevisionLedger()
        rev_id = ledger.add(RevisionKind.INSERTION, "a", ALICE, "span-1")

        assert ledger.find_by_node_reference("span-1").id == rev_id

        ledger.update_node_reference(rev_id, "span-7")
        assert ledger.find_by_node_reference("span-1") is None
        assert ledger.find_by_node_reference("span-7").id == rev_id

        ledger.remove(rev_id)
        assert ledger.find_by_node_reference("span-7") is None

    def test_empty_counts(self) -> None:
        assert str(RevisionLedger().counts()) == "No revisions"


class TestListeners:
    """Tests for change notifications."""

    def test_listener_receives_events(self) -> None:
        ledger = RevisionLedger()
        events = []
        ledger.add_listener(events.append)

        rev_id = ledger.add(RevisionKind.INSERTION, "a", ALICE, None)
        ledger.update_content(rev_id, "ab")
        ledger.set_status(rev_id, RevisionStatus.ACCEPTED)
        ledger.remove(rev_id)
        ledger.clear()

        assert [e.action for e in events] == [
            LedgerAction.ADDED,
            LedgerAction.UPDATED,
            LedgerAction.STATUS_CHANGED,
            LedgerAction.REMOVED,
            LedgerAction.CLEARED,
        ]
        assert events[1].revision.content == "ab"
        assert events[2].revision.status is RevisionStatus.ACCEPTED
        assert events[4].revision is None

    def test_unchanged_content_does_not_notify(self) -> None:
        ledger = RevisionLedger()
        rev_id = ledger.add(RevisionKind.INSERTION, "a", ALICE, None)
        events = []
        ledger.add_listener(events.append)

        ledger.update_content(rev_id, "a")

        assert events == []

    def test_failing_listener_is_logged(self, caplog) -> None:
        """A listener that raises does not stop the others."""
        ledger = RevisionLedger()
        events = []

        def broken(event):
            raise RuntimeError("boom")

        ledger.add_listener(broken)
        ledger.add_listener(events.append)

        with caplog.at_level(logging.ERROR, logger="redline_engine.ledger"):
            ledger.add(RevisionKind.INSERTION, "a", ALICE, None)

        assert len(events) == 1
        assert "Ledger listener failed" in caplog.text

    def test_remove_listener(self) -> None:
        ledger = RevisionLedger()
        events = []
        ledger.add_listener(events.append)
        ledger.remove_listener(events.append)
        ledger.remove_listener(events.append)

        ledger.add(RevisionKind.INSERTION, "a", ALICE, None)

        assert events == []

"""
Span surgery shared by the tracked and native editing paths.

This module provides the SpanSurgery class, which creates, splits, shrinks
and removes w:ins / w:del spans while keeping the span index and the
revision ledger in step with the tree.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import TYPE_CHECKING

from lxml import etree

from ..author import RevisionAuthor
from ..constants import w
from ..errors import InvariantViolationError
from ..models.revision import Revision, RevisionKind
from ..models.span import build_span, parse_timestamp, span_author, span_kind
from ..results import EditResult, EditStatus
from ..selection import (
    Position,
    document_paragraphs,
    offset_to_position,
    ordered_bounds,
    raw_index,
    visible_length,
    visible_segments,
)
from ..tree import (
    clone_span_shell,
    convert_run_text,
    enclosing_span,
    is_deletion,
    is_insertion,
    make_run,
    paragraph_of,
    remove_element,
    run_properties,
    run_text,
    set_run_text,
    span_runs,
    span_text,
    split_run,
)

if TYPE_CHECKING:
    from ..document import Document
    from ..ledger import RevisionLedger
    from ..selection import Selection
    from ..span_index import SpanIndex

logger = logging.getLogger(__name__)


@dataclass
class RangeEdit:
    """What a range delete did to the tree.

    Attributes:
        deletions: New w:del spans, in document order
        revision_ids: Ids of the deletion revisions created
        changed: Whether any text was cut or wrapped
    """

    deletions: list[etree._Element] = field(default_factory=list)
    revision_ids: list[str] = field(default_factory=list)
    changed: bool = False

    def merge(self, other: RangeEdit) -> None:
        self.deletions.extend(other.deletions)
        self.revision_ids.extend(other.revision_ids)
        self.changed = self.changed or other.changed


def group_adjacent(runs: list[etree._Element]) -> list[list[etree._Element]]:
    """Group runs that are consecutive siblings in the tree."""
    groups: list[list[etree._Element]] = []
    for run in runs:
        if groups and groups[-1][-1].getnext() is run:
            groups[-1].append(run)
        else:
            groups.append([run])
    return groups


class SpanSurgery:
    """Tree mutations that keep spans, the span index and the ledger aligned.

    Attributes:
        _document: Reference to the parent Document instance
    """

    def __init__(self, document: Document) -> None:
        self._document = document

    @property
    def ledger(self) -> RevisionLedger:
        return self._document.ledger

    @property
    def index(self) -> SpanIndex:
        return self._document.span_index

    # Records

    def ensure_record(self, span: etree._Element, silent: bool = False) -> Revision:
        """Get the ledger record for a span, synthesizing one if it is missing.

        A span without a record is an invariant violation. With strict
        invariants enabled this raises; otherwise it is logged and repaired by
        adding a pending record built from the span. Imports pass
        ``silent=True`` because adopting spans is their job.

        Raises:
            InvariantViolationError: If the record is missing and strict
                invariants are enabled
        """
        revision_id = span.get(w("id"))
        if not revision_id:
            revision_id = self.ledger.allocate_id()
            span.set(w("id"), revision_id)
        reference = self.index.register(span)

        record = self.ledger.get(revision_id)
        if record is not None:
            if record.node_reference is None or self.index.element_for(record.node_reference) is None:
                self.ledger.update_node_reference(revision_id, reference)
            return self.ledger.get(revision_id)

        if not silent:
            if self._document.settings.strict_invariants:
                raise InvariantViolationError("tracked span has no ledger record", revision_id)
            logger.warning("Span for revision %s has no ledger record; synthesizing one", revision_id)

        self.ledger.add(
            span_kind(span),
            span_text(span),
            span_author(span),
            reference,
            revision_id=revision_id,
            created_at=parse_timestamp(span.get(w("date"))),
        )
        return self.ledger.get(revision_id)

    def sync_content(self, revision_id: str) -> None:
        """Refresh a record after its spans grew, shrank or were split.

        When no span of the revision remains in the tree the record is
        removed: the text was typed away before anyone reviewed it.
        """
        spans = self.index.spans_for(revision_id)
        if not spans:
            if self.ledger.remove(revision_id) is not None:
                logger.debug("Insertion %s was deleted before review; record dropped", revision_id)
            return
        self.ledger.update_content(revision_id, "".join(span_text(span) for span in spans))
        record = self.ledger.get(revision_id)
        if record is not None and self.index.element_for(record.node_reference) is None:
            self.ledger.update_node_reference(revision_id, self.index.reference_for(spans[0]))

    # Span creation

    def _new_span(
        self,
        kind: RevisionKind,
        author: RevisionAuthor,
    ) -> tuple[etree._Element, str, datetime]:
        now = datetime.now(timezone.utc)
        revision_id = self.ledger.allocate_id()
        return build_span(kind, revision_id, author, now), revision_id, now

    def _register_new(
        self,
        span: etree._Element,
        kind: RevisionKind,
        revision_id: str,
        author: RevisionAuthor,
        created_at: datetime,
    ) -> None:
        reference = self.index.register(span)
        self.ledger.add(
            kind,
            span_text(span),
            author,
            reference,
            revision_id=revision_id,
            created_at=created_at,
        )
        logger.debug("Created %s span %s (%s)", kind.value, revision_id, reference)

    def new_insertion(
        self,
        parent: etree._Element,
        index: int,
        text: str,
        author: RevisionAuthor,
        properties: etree._Element | None = None,
    ) -> tuple[etree._Element, str]:
        """Create an insertion span holding ``text`` at ``parent[index]``.

        Returns:
            The new span and its revision id
        """
        span, revision_id, now = self._new_span(RevisionKind.INSERTION, author)
        span.append(make_run(text, properties))
        parent.insert(index, span)
        self._register_new(span, RevisionKind.INSERTION, revision_id, author, now)
        return span, revision_id

    def wrap_deletion(
        self, runs: list[etree._Element], author: RevisionAuthor
    ) -> tuple[etree._Element, str]:
        """Wrap consecutive sibling runs in a new deletion span.

        Returns:
            The new span and its revision id
        """
        span, revision_id, now = self._new_span(RevisionKind.DELETION, author)
        runs[0].addprevious(span)
        for run in runs:
            span.append(run)
            convert_run_text(run, deleted=True)
        self._register_new(span, RevisionKind.DELETION, revision_id, author, now)
        return span, revision_id

    # Splitting

    def split_span(self, span: etree._Element, run: etree._Element, offset: int) -> etree._Element:
        """Split a span at a character offset inside one of its runs.

        The second half becomes a new span carrying the same revision id and
        attributes, inserted right after ``span`` and returned.
        """
        if 0 < offset < len(run_text(run)):
            split_run(run, offset)
        first = run.getnext() if offset > 0 else run
        clone = clone_span_shell(span)
        moving = []
        while first is not None:
            moving.append(first)
            first = first.getnext()
        for child in moving:
            clone.append(child)
        span.addnext(clone)
        self.index.register(clone)
        logger.debug("Split span for revision %s", span.get(w("id")))
        return clone

    def slot_for(self, position: Position) -> tuple[etree._Element, int, etree._Element | None]:
        """Find where new inline content goes for a caret position.

        Runs are split when the caret is mid-run, and a foreign span is split
        when the caret is inside it. A caret inside a deletion puts the slot
        before the deletion at its very start and after it otherwise.

        Returns:
            (parent, child index, run properties to copy)
        """
        node, offset = position.node, position.offset
        if not position.in_run:
            index = raw_index(node, offset)
            previous = node[index - 1] if index > 0 else None
            properties = None
            if previous is not None and previous.tag == w("r"):
                properties = run_properties(previous)
            return node, index, properties

        properties = run_properties(node)
        text = run_text(node)
        span = enclosing_span(node)
        if span is not None:
            runs = span_runs(span)
            parent = span.getparent()
            at_start = offset <= 0 and node is runs[0]
            at_end = offset >= len(text) and node is runs[-1]
            if at_start:
                return parent, parent.index(span), properties
            if is_deletion(span) or at_end:
                return parent, parent.index(span) + 1, properties
            self.split_span(span, node, offset)
            return parent, parent.index(span) + 1, properties

        parent = node.getparent()
        if offset <= 0:
            return parent, parent.index(node), properties
        if offset < len(text):
            split_run(node, offset)
        return parent, parent.index(node) + 1, properties

    # Cutting

    def cut(self, run: etree._Element, start: int, end: int) -> str | None:
        """Remove text from a run outright.

        Emptied runs are dropped, and an insertion span left without text is
        dropped with them.

        Returns:
            The revision id of the enclosing insertion span, if any
        """
        text = run_text(run)
        span = enclosing_span(run)
        set_run_text(run, text[:start] + text[end:])
        if not run_text(run):
            remove_element(run)

        if not is_insertion(span):
            return None
        revision_id = span.get(w("id"))
        if not span_text(span):
            self.index.discard(span)
            remove_element(span)
        return revision_id

    def isolate(self, run: etree._Element, start: int, end: int) -> etree._Element:
        """Split a run so [start, end) becomes a run of its own and return it."""
        if end < len(run_text(run)):
            split_run(run, end)
        if start > 0:
            return split_run(run, start)
        return run

    def cut_range(self, paragraph: etree._Element, start: int, end: int) -> RangeEdit:
        """Remove visible text in [start, end) directly, skipping deletions."""
        result = RangeEdit()
        touched: list[str] = []
        for run, seg_start, seg_end in visible_segments(paragraph, start, end):
            span = enclosing_span(run)
            if is_insertion(span):
                self.ensure_record(span)
            revision_id = self.cut(run, seg_start, seg_end)
            if revision_id is not None:
                touched.append(revision_id)
            result.changed = True
        for revision_id in dict.fromkeys(touched):
            self.sync_content(revision_id)
        return result

    def track_range(
        self, paragraph: etree._Element, start: int, end: int, author: RevisionAuthor
    ) -> RangeEdit:
        """Delete visible text in [start, end) as tracked deletions.

        Text inside insertion spans is cut outright. Every other covered
        piece is isolated into its own run, and each group of adjacent
        isolated runs is wrapped in one new deletion span.
        """
        result = RangeEdit()
        touched: list[str] = []
        plain: list[etree._Element] = []
        for run, seg_start, seg_end in visible_segments(paragraph, start, end):
            span = enclosing_span(run)
            if is_insertion(span):
                self.ensure_record(span)
                touched.append(self.cut(run, seg_start, seg_end))
                result.changed = True
            else:
                plain.append(self.isolate(run, seg_start, seg_end))
        for revision_id in dict.fromkeys(touched):
            self.sync_content(revision_id)

        for group in group_adjacent(plain):
            span, revision_id = self.wrap_deletion(group, author)
            result.deletions.append(span)
            result.revision_ids.append(revision_id)
            result.changed = True
        return result

    def delete_selection(
        self, selection: Selection, author: RevisionAuthor | None
    ) -> tuple[RangeEdit, Position]:
        """Delete a non-collapsed selection paragraph by paragraph.

        Paragraphs are never merged. Passing ``author=None`` cuts text
        directly instead of tracking it.

        Returns:
            The combined edit and the caret position afterwards
        """
        paragraphs = document_paragraphs(self._document.xml_root)
        (first, start), (last, end) = ordered_bounds(selection, paragraphs)
        first_index, last_index = paragraphs.index(first), paragraphs.index(last)

        result = RangeEdit()
        for i in range(first_index, last_index + 1):
            paragraph = paragraphs[i]
            range_start = start if i == first_index else 0
            range_end = end if i == last_index else visible_length(paragraph)
            if range_start >= range_end:
                continue
            if author is None:
                result.merge(self.cut_range(paragraph, range_start, range_end))
            else:
                result.merge(self.track_range(paragraph, range_start, range_end, author))

        if result.deletions and paragraph_of(result.deletions[0]) is first:
            caret = Position.before(result.deletions[0])
        else:
            caret = offset_to_position(first, start)
        return result, caret

    # Results

    def stale_result(self, edit_type: str, tracked: bool) -> EditResult | None:
        """Report a stale caret or selection, or None when it is still valid."""
        if not self._document.selection.is_stale(self._document.xml_root):
            return None
        logger.warning("Ignoring %s: selection refers to a node no longer in the document", edit_type)
        return EditResult(
            EditStatus.STALE_SELECTION,
            edit_type,
            message="Selection refers to content no longer in the document",
            tracked=tracked,
        )

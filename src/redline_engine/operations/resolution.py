"""Resolution operations for tracked revisions.

This module provides the ResolutionEngine class for accepting and rejecting
revisions one at a time, all at once, or per author.
"""

from __future__ import annotations

import logging
from collections import defaultdict
from typing import TYPE_CHECKING

from lxml import etree

from ..constants import w
from ..models.revision import RevisionKind, RevisionStatus
from ..models.span import span_kind
from ..results import AcceptResult, RejectResult, ResolutionOutcome, ResolutionResult
from ..tree import convert_run_text, iter_spans, remove_element, span_runs, unwrap_element

if TYPE_CHECKING:
    from ..document import Document

logger = logging.getLogger(__name__)


class ResolutionEngine:
    """Accepts and rejects revisions by rewriting their spans.

    Accepting an insertion or rejecting a deletion keeps the text and drops
    the wrapper; rejecting an insertion or accepting a deletion drops the
    span with its text. Neighbouring runs are left as they are.

    Attributes:
        _document: Reference to the parent Document instance
    """

    def __init__(self, document: Document) -> None:
        """Initialize the ResolutionEngine.

        Args:
            document: The parent Document instance
        """
        self._document = document

    # Helper methods

    def _rewrite(self, span: etree._Element, kind: RevisionKind, accept: bool) -> None:
        """Apply a decision to one span element.

        Args:
            span: The w:ins or w:del element
            kind: Kind of the revision the span carries
            accept: True to accept, False to reject
        """
        keep_text = (kind is RevisionKind.INSERTION) == accept
        if not keep_text:
            remove_element(span)
            return
        if kind is RevisionKind.DELETION:
            for run in span_runs(span):
                convert_run_text(run, deleted=False)
        unwrap_element(span)

    def _collect_spans(self) -> dict[str, list[etree._Element]]:
        """Group every span in the tree by revision id in one traversal."""
        spans: dict[str, list[etree._Element]] = defaultdict(list)
        for span in iter_spans(self._document.xml_root):
            spans[span.get(w("id"), "")].append(span)
        return spans

    def _resolve(
        self,
        revision_id: str,
        accept: bool,
        spans: list[etree._Element] | None = None,
    ) -> ResolutionResult:
        ledger = self._document.ledger
        index = self._document.span_index
        record = ledger.get(revision_id)
        if record is None:
            return ResolutionResult(revision_id, ResolutionOutcome.UNKNOWN_REVISION)
        if record.is_terminal:
            return ResolutionResult(revision_id, ResolutionOutcome.ALREADY_RESOLVED, record.kind)

        if spans is None:
            spans = index.spans_for(revision_id)
        spans = [span for span in spans if span_kind(span) is record.kind]
        status = RevisionStatus.ACCEPTED if accept else RevisionStatus.REJECTED

        if not spans:
            logger.warning(
                "Revision %s has no span in the document; marking it %s without changes",
                revision_id,
                status.value,
            )
            ledger.set_status(revision_id, status)
            return ResolutionResult(revision_id, ResolutionOutcome.STALE_REFERENCE, record.kind)

        for span in spans:
            index.discard(span)
            self._rewrite(span, record.kind, accept)
        ledger.set_status(revision_id, status)
        logger.debug("%s %s revision %s", status.value.capitalize(), record.kind.value, revision_id)

        outcome = ResolutionOutcome.ACCEPTED if accept else ResolutionOutcome.REJECTED
        return ResolutionResult(revision_id, outcome, record.kind)

    # Single revisions

    def accept(self, revision_id: str) -> ResolutionResult:
        """Accept one revision.

        Args:
            revision_id: The revision id

        Returns:
            ResolutionResult describing what happened

        Example:
            >>> doc.accept_revision("3").outcome
            <ResolutionOutcome.ACCEPTED: 'accepted'>
        """
        return self._resolve(str(revision_id), accept=True)

    def reject(self, revision_id: str) -> ResolutionResult:
        """Reject one revision.

        Args:
            revision_id: The revision id

        Returns:
            ResolutionResult describing what happened
        """
        return self._resolve(str(revision_id), accept=False)

    # Bulk

    def _resolve_all(self, accept: bool, author_id: str | None, tally: AcceptResult | RejectResult) -> None:
        pending = self._document.ledger.list_pending()
        if author_id is not None:
            pending = [record for record in pending if record.author.id == author_id]
        if not pending:
            return

        spans = self._collect_spans()
        for record in pending:
            result = self._resolve(record.id, accept, spans.get(record.id, []))
            if result.outcome is ResolutionOutcome.STALE_REFERENCE:
                tally.stale += 1
            elif record.kind is RevisionKind.INSERTION:
                tally.insertions += 1
            elif record.kind is RevisionKind.DELETION:
                tally.deletions += 1

    def accept_all(self) -> AcceptResult:
        """Accept every pending revision.

        Returns:
            AcceptResult with counts by kind
        """
        result = AcceptResult()
        self._resolve_all(True, None, result)
        return result

    def reject_all(self) -> RejectResult:
        """Reject every pending revision.

        Returns:
            RejectResult with counts by kind
        """
        result = RejectResult()
        self._resolve_all(False, None, result)
        return result

    def accept_by_author(self, author_id: str) -> AcceptResult:
        """Accept every pending revision made by one author.

        Args:
            author_id: The author's id (not the display name)

        Example:
            >>> result = doc.accept_by_author("alice")
            >>> print(result)
            Accepted 2 insertions, 1 deletions
        """
        result = AcceptResult()
        self._resolve_all(True, author_id, result)
        return result

    def reject_by_author(self, author_id: str) -> RejectResult:
        """Reject every pending revision made by one author."""
        result = RejectResult()
        self._resolve_all(False, author_id, result)
        return result

"""
Document class for editing a document tree with track changes.

This module provides the main Document class. A Document owns the element
tree, the revision ledger, the span index, the command bus, the caret and
the visibility policy, and exposes the editing, review and persistence
surface on top of them.
"""

import functools
import io
import json
import logging
import threading
from collections.abc import Callable
from pathlib import Path
from typing import Any, BinaryIO, TypeVar

from lxml import etree

from .author import RevisionAuthor
from .commands import CommandBus, EditCommand
from .constants import NSMAP, w
from .errors import InvariantViolationError, TextNotFoundError, ValidationError
from .ledger import LedgerListener, RevisionLedger
from .models.revision import Revision, RevisionKind, RevisionStatus
from .models.span import TrackedSpan, span_kind
from .operations.batch import BatchOperations
from .operations.interception import TrackChangesInterceptor
from .operations.native import NativeEditing
from .operations.resolution import ResolutionEngine
from .operations.spans import SpanSurgery
from .results import AcceptResult, EditResult, RejectResult, ResolutionResult, RevisionCounts
from .selection import (
    Position,
    Selection,
    document_paragraphs,
    find_visible_text,
    offset_to_position,
    visible_length,
)
from .serialization import document_from_dict, document_from_json, document_to_dict
from .settings import Settings
from .span_index import SpanIndex
from .tree import iter_spans
from .visibility import VisibilityPolicy, ViewMode, reconstruct_text, render_html

logger = logging.getLogger(__name__)

F = TypeVar("F", bound=Callable[..., Any])


def _synchronized(method: F) -> F:
    """Run a Document method while holding the document's lock."""

    @functools.wraps(method)
    def wrapper(self: "Document", *args: Any, **kwargs: Any) -> Any:
        with self._lock:
            return method(self, *args, **kwargs)

    return wrapper  # type: ignore[return-value]


def _empty_document() -> etree._Element:
    document = etree.Element(w("document"), nsmap=NSMAP)
    body = etree.SubElement(document, w("body"))
    etree.SubElement(body, w("p"))
    return document


class Document:
    """A document tree with a track changes session attached.

    Documents can be created from:
    - Nothing (a new document with one empty paragraph)
    - WordprocessingML XML: a path, an XML string, bytes or a binary stream
    - A serialized JSON document: a path ending in .json
    - An existing lxml element

    Every public method holds the document's lock for its whole duration,
    so tree and ledger change together.

    Example:
        >>> doc = Document("<w:document ...>...</w:document>", author="alice")
        >>> doc.enable_tracking()
        >>> doc.select_text("world")
        >>> doc.insert_text("there")
        >>> doc.get_text()
        'Hello there'
        >>> doc.accept_all_revisions()

    Attributes:
        path: Path the document was loaded from (None for in-memory documents)
        settings: Settings the session was created with
        xml_root: Root element of the document tree
    """

    def __init__(
        self,
        source: str | Path | bytes | BinaryIO | etree._Element | None = None,
        author: str | RevisionAuthor | None = None,
        settings: Settings | None = None,
    ) -> None:
        """Initialize a Document.

        Args:
            source: Document source (see class docstring); None for a new document
            author: Author for tracked edits, overriding the settings' author.
                A plain string is used as both id and display name.
            settings: Session settings (defaults to Settings())

        Raises:
            ValidationError: If the source cannot be loaded
        """
        self.settings = settings or Settings()
        self.path: Path | None = None
        self._lock = threading.RLock()

        self._author = self._coerce_author(author) if author is not None else self.settings.author
        self._tracking = self.settings.tracking_enabled
        self._policy = VisibilityPolicy(self.settings.show_deletions, self.settings.view_mode)

        root, revisions = self._load_source(source)
        self._attach(root, revisions)

    @staticmethod
    def _coerce_author(author: str | RevisionAuthor) -> RevisionAuthor:
        if isinstance(author, RevisionAuthor):
            return author
        return RevisionAuthor(id=author, name=author)

    def _load_source(
        self, source: str | Path | bytes | BinaryIO | etree._Element | None
    ) -> tuple[etree._Element, list[Revision]]:
        """Parse the source into a root element and persisted ledger records."""
        if source is None:
            return _empty_document(), []
        if isinstance(source, etree._Element):
            return source, []

        parser = etree.XMLParser(remove_blank_text=False)
        try:
            if isinstance(source, bytes):
                return etree.fromstring(source, parser), []
            if hasattr(source, "read"):
                data = source.read()
                if isinstance(data, str):
                    data = data.encode("utf-8")
                return etree.fromstring(data, parser), []
            if isinstance(source, str) and source.lstrip().startswith("<"):
                return etree.fromstring(source.encode("utf-8"), parser), []

            self.path = Path(source)
            if not self.path.exists():
                raise ValidationError(f"Document not found: {self.path}")
            if self.path.suffix.lower() == ".json":
                return document_from_json(self.path.read_text(encoding="utf-8"))
            return etree.parse(str(self.path), parser).getroot(), []
        except etree.XMLSyntaxError as e:
            raise ValidationError(f"Invalid XML in document: {e}") from e

    def _attach(self, root: etree._Element, revisions: list[Revision]) -> None:
        """Wire a tree and its persisted records into a fresh session."""
        if root.find(f".//{w('p')}") is None and root.tag != w("p"):
            body = root.find(w("body"))
            etree.SubElement(body if body is not None else root, w("p"))

        self.xml_root = root
        self._ledger = RevisionLedger()
        self._span_index = SpanIndex(root)
        self._commands = CommandBus()
        self._surgery = SpanSurgery(self)
        self._resolution = ResolutionEngine(self)
        NativeEditing(self, self._surgery).register()
        TrackChangesInterceptor(self, self._surgery).register()

        # Records are persisted newest first; replay oldest first so ties on
        # created_at keep their original ledger order.
        try:
            for record in sorted(reversed(revisions), key=lambda r: r.created_at):
                self._ledger.add(
                    record.kind,
                    record.content,
                    record.author,
                    None,
                    revision_id=record.id,
                    created_at=record.created_at,
                    status=record.status,
                )
        except ValueError as e:
            raise ValidationError(f"Invalid revision records: {e}") from e

        adopted = self.reconcile()
        if adopted:
            logger.debug("Adopted %d tracked span(s) from loaded content", len(adopted))
        self._selection = Selection.caret(self._end_position())

    @classmethod
    def from_dict(
        cls,
        data: dict[str, Any],
        author: str | RevisionAuthor | None = None,
        settings: Settings | None = None,
    ) -> "Document":
        """Create a Document from a dictionary produced by to_dict().

        Raises:
            ValidationError: If the data is not a valid serialized document
        """
        root, revisions = document_from_dict(data)
        doc = cls(author=author, settings=settings)
        doc._attach(root, revisions)
        return doc

    @classmethod
    def from_json(
        cls,
        text: str,
        author: str | RevisionAuthor | None = None,
        settings: Settings | None = None,
    ) -> "Document":
        root, revisions = document_from_json(text)
        doc = cls(author=author, settings=settings)
        doc._attach(root, revisions)
        return doc

    # Components

    @property
    def ledger(self) -> RevisionLedger:
        """The revision ledger (read it; edit through the Document)."""
        return self._ledger

    @property
    def span_index(self) -> SpanIndex:
        return self._span_index

    @property
    def commands(self) -> CommandBus:
        """The command bus; hosts can register their own handlers on it."""
        return self._commands

    @property
    def _batch_ops(self) -> BatchOperations:
        """Get the BatchOperations instance (lazy initialization)."""
        if not hasattr(self, "_batch_ops_instance"):
            self._batch_ops_instance = BatchOperations(self)
        return self._batch_ops_instance

    # Tracking state

    @_synchronized
    def enable_tracking(self) -> None:
        self._tracking = True
        logger.debug("Track changes enabled")

    @_synchronized
    def disable_tracking(self) -> None:
        self._tracking = False
        logger.debug("Track changes disabled")

    @_synchronized
    def toggle_tracking(self) -> bool:
        """Flip track changes on or off and return the new state."""
        self._tracking = not self._tracking
        return self._tracking

    def is_tracking_enabled(self) -> bool:
        return self._tracking

    @_synchronized
    def set_current_author(self, author: str | RevisionAuthor) -> None:
        self._author = self._coerce_author(author)

    def get_current_author(self) -> RevisionAuthor:
        return self._author

    # Visibility

    @property
    def visibility(self) -> VisibilityPolicy:
        """A copy of the current visibility policy."""
        return VisibilityPolicy(self._policy.show_deletions, self._policy.view_mode)

    @_synchronized
    def set_show_deletions(self, show: bool) -> None:
        self._policy.show_deletions = bool(show)

    @_synchronized
    def set_view_mode(self, mode: ViewMode | str) -> None:
        self._policy.view_mode = ViewMode(mode)

    @_synchronized
    def get_text(self, include_deletions: bool | None = None) -> str:
        """Reconstruct the document text.

        Args:
            include_deletions: None to follow the visibility policy; True or
                False to show the live document with or without deleted text,
                whatever the policy says (export and print paths)

        Returns:
            The text, one line per paragraph
        """
        policy = self._policy
        if include_deletions is not None:
            policy = VisibilityPolicy(show_deletions=include_deletions)
        return reconstruct_text(self.xml_root, policy)

    @_synchronized
    def render_html(self) -> str:
        """Render the document as HTML using the visibility policy."""
        colors = {
            author.id: author.color
            for author in [self._author, *self._ledger.authors()]
            if author.color
        }
        return render_html(self.xml_root, self._policy, colors)

    # Caret and selection

    @property
    def selection(self) -> Selection:
        return self._selection

    @selection.setter
    def selection(self, selection: Selection) -> None:
        self._selection = selection

    @_synchronized
    def set_selection(self, anchor: Position, focus: Position | None = None) -> None:
        """Set the selection; a missing focus collapses it to a caret."""
        self._selection = Selection(anchor, focus if focus is not None else anchor)

    @_synchronized
    def set_caret(self, position: Position) -> None:
        self._selection = Selection.caret(position)

    def _end_position(self) -> Position:
        paragraphs = document_paragraphs(self.xml_root)
        last = paragraphs[-1]
        return offset_to_position(last, visible_length(last))

    @_synchronized
    def caret_at_end(self) -> None:
        """Put the caret at the end of the last paragraph."""
        self._selection = Selection.caret(self._end_position())

    @_synchronized
    def position_at(self, offset: int) -> Position:
        """Get the position at a visible offset in the document text.

        Offsets count characters of get_text(include_deletions=False), so each
        paragraph break counts as one character. Offsets past the end clamp
        to the end of the document.
        """
        paragraphs = document_paragraphs(self.xml_root)
        remaining = max(0, offset)
        for paragraph in paragraphs:
            length = visible_length(paragraph)
            if remaining <= length:
                return offset_to_position(paragraph, remaining)
            remaining -= length + 1
        return self._end_position()

    @_synchronized
    def select_text(self, text: str, occurrence: int = 1) -> Selection:
        """Select an occurrence of visible text.

        Args:
            text: Text to find (within a single paragraph)
            occurrence: Which match to select, 1-indexed

        Raises:
            TextNotFoundError: If the occurrence does not exist
        """
        matches = find_visible_text(document_paragraphs(self.xml_root), text)
        if occurrence < 1 or occurrence > len(matches):
            raise TextNotFoundError(text, occurrence, len(matches))
        paragraph, start = matches[occurrence - 1]
        self._selection = Selection(
            offset_to_position(paragraph, start),
            offset_to_position(paragraph, start + len(text)),
        )
        return self._selection

    # Editing

    @_synchronized
    def dispatch(self, command: EditCommand, payload: dict[str, Any] | None = None) -> EditResult | None:
        """Dispatch an edit command through the command bus."""
        return self._commands.dispatch(command, payload)

    def insert_text(self, text: str) -> EditResult:
        """Insert text at the caret, replacing any selection.

        With tracking enabled the text becomes a tracked insertion and the
        replaced selection becomes tracked deletions.
        """
        return self.dispatch(EditCommand.INSERT_TEXT, {"text": text})

    def delete_character(self, forward: bool = False) -> EditResult:
        """Delete one character before (or after) the caret, or the selection."""
        return self.dispatch(EditCommand.DELETE_CHARACTER, {"forward": forward})

    def delete_word(self, forward: bool = False) -> EditResult:
        return self.dispatch(EditCommand.DELETE_WORD, {"forward": forward})

    def delete_line(self, forward: bool = False) -> EditResult:
        return self.dispatch(EditCommand.DELETE_LINE, {"forward": forward})

    def delete_selection(self) -> EditResult:
        return self.dispatch(EditCommand.DELETE_SELECTION, {})

    # Ledger queries

    def get_revisions(
        self,
        kind: RevisionKind | None = None,
        status: RevisionStatus | None = None,
        author_id: str | None = None,
    ) -> list[Revision]:
        """List revisions newest first, optionally filtered."""
        with self._lock:
            return self._ledger.list_revisions(kind=kind, status=status, author_id=author_id)

    def get_revision(self, revision_id: str) -> Revision | None:
        with self._lock:
            return self._ledger.get(str(revision_id))

    def revision_counts(self) -> RevisionCounts:
        with self._lock:
            return self._ledger.counts()

    @_synchronized
    def tracked_spans(self) -> list[TrackedSpan]:
        """Get every tracked span in document order."""
        return [TrackedSpan.from_element(span) for span in iter_spans(self.xml_root)]

    def add_revision_listener(self, listener: LedgerListener) -> None:
        self._ledger.add_listener(listener)

    def remove_revision_listener(self, listener: LedgerListener) -> None:
        self._ledger.remove_listener(listener)

    # Resolution

    @_synchronized
    def accept_revision(self, revision_id: str) -> ResolutionResult:
        """Accept one revision. See ResolutionEngine.accept()."""
        return self._resolution.accept(revision_id)

    @_synchronized
    def reject_revision(self, revision_id: str) -> ResolutionResult:
        """Reject one revision. See ResolutionEngine.reject()."""
        return self._resolution.reject(revision_id)

    @_synchronized
    def accept_all_revisions(self) -> AcceptResult:
        return self._resolution.accept_all()

    @_synchronized
    def reject_all_revisions(self) -> RejectResult:
        return self._resolution.reject_all()

    @_synchronized
    def accept_by_author(self, author_id: str) -> AcceptResult:
        return self._resolution.accept_by_author(author_id)

    @_synchronized
    def reject_by_author(self, author_id: str) -> RejectResult:
        return self._resolution.reject_by_author(author_id)

    # Integrity

    @_synchronized
    def reconcile(self) -> list[str]:
        """Re-index spans and adopt any span the ledger does not know yet.

        Used after loading content and after the host edits the tree behind
        the document's back. Adopted spans get pending records.

        Returns:
            Ids of the adopted revisions
        """
        self._span_index.rebuild()
        adopted = []
        for span in list(iter_spans(self.xml_root)):
            revision_id = span.get(w("id"))
            known = bool(revision_id) and revision_id in self._ledger
            record = self._surgery.ensure_record(span, silent=True)
            if not known:
                adopted.append(record.id)
        return adopted

    @_synchronized
    def verify_integrity(self) -> list[str]:
        """Check that the tree and the ledger agree.

        Spans without records are repaired with synthesized pending records.
        With strict invariants enabled the first problem raises instead.

        Returns:
            Descriptions of the problems found

        Raises:
            InvariantViolationError: On the first problem, in strict mode
        """
        strict = self.settings.strict_invariants
        problems: list[str] = []

        def report(reason: str, revision_id: str | None) -> None:
            if strict:
                raise InvariantViolationError(reason, revision_id)
            logger.warning("Revision %s: %s", revision_id, reason)
            problems.append(f"{revision_id}: {reason}")

        self._span_index.rebuild()
        for span in list(iter_spans(self.xml_root)):
            revision_id = span.get(w("id"))
            record = self._ledger.get(revision_id) if revision_id else None
            if record is None:
                problems.append(f"{revision_id}: tracked span has no ledger record")
                self._surgery.ensure_record(span)
            elif record.kind is not span_kind(span):
                report(f"span is a {span_kind(span).value} but the record is a {record.kind.value}", revision_id)
            elif record.is_terminal:
                report(f"{record.status.value} revision still has a span in the document", revision_id)

        for record in self._ledger.list_pending():
            if record.kind is not RevisionKind.FORMAT and not self._span_index.spans_for(record.id):
                report("pending revision has no span in the document", record.id)

        return problems

    @_synchronized
    def reset(self) -> None:
        """Replace the content with an empty document and clear the ledger.

        Revision ids issued before the reset are never handed out again.
        """
        self._ledger.clear()
        self._span_index.clear()
        body = self.xml_root.find(w("body"))
        container = body if body is not None else self.xml_root
        for child in list(container):
            container.remove(child)
        etree.SubElement(container, w("p"))
        self._selection = Selection.caret(self._end_position())

    # Batch edits

    @_synchronized
    def apply_edits(
        self, edits: list[dict[str, Any]], stop_on_error: bool = False
    ) -> list[EditResult]:
        """Apply a list of edit steps. See BatchOperations.apply_edits()."""
        return self._batch_ops.apply_edits(edits, stop_on_error=stop_on_error)

    @_synchronized
    def apply_edit_file(
        self, path: str | Path, format: str = "yaml", stop_on_error: bool = False
    ) -> list[EditResult]:
        """Apply edit steps from a YAML or JSON file."""
        return self._batch_ops.apply_edit_file(path, format=format, stop_on_error=stop_on_error)

    # Persistence

    @_synchronized
    def to_dict(self, include_revisions: bool = True) -> dict[str, Any]:
        """Serialize the tree, and by default the ledger, to a dictionary."""
        revisions = self._ledger.list_revisions() if include_revisions else None
        return document_to_dict(self.xml_root, revisions)

    def to_json(self, include_revisions: bool = True, indent: int | None = 2) -> str:
        return json.dumps(self.to_dict(include_revisions), indent=indent, ensure_ascii=False)

    @_synchronized
    def to_xml(self, pretty_print: bool = False) -> str:
        return etree.tostring(self.xml_root, encoding="unicode", pretty_print=pretty_print)

    @_synchronized
    def save(self, output_path: str | Path | None = None) -> None:
        """Save the document.

        Paths ending in .json get the serialized document with its ledger;
        anything else gets WordprocessingML XML.

        Args:
            output_path: Where to save. If None, saves to the original path.

        Raises:
            ValueError: If no path is given for an in-memory document
            ValidationError: If the file cannot be written
        """
        if output_path is None:
            if self.path is None:
                raise ValueError("output_path is required for in-memory documents")
            output_path = self.path
        output_path = Path(output_path)

        try:
            if output_path.suffix.lower() == ".json":
                output_path.write_text(self.to_json(), encoding="utf-8")
            else:
                buffer = io.BytesIO()
                etree.ElementTree(self.xml_root).write(
                    buffer, encoding="utf-8", xml_declaration=True, pretty_print=False
                )
                output_path.write_bytes(buffer.getvalue())
        except OSError as e:
            raise ValidationError(f"Failed to save document: {e}") from e

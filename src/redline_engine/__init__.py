"""
redline_engine - Track changes for structured document trees.

This package turns ordinary editing (typing, deleting, replacing a selection)
into attributed, reviewable revisions stored in the document tree as w:ins and
w:del spans, keeps a ledger of those revisions, and accepts or rejects them
singly, per author, or in bulk.

Example:
    >>> from redline_engine import Document
    >>> doc = Document(author="alice")
    >>> doc.enable_tracking()
    >>> result = doc.insert_text("Hello")
    >>> doc.get_revisions()[0].content
    'Hello'
    >>> doc.accept_all_revisions().insertions
    1
"""

__version__ = "0.1.0"
__all__ = [
    "Document",
    "RevisionAuthor",
    "DEFAULT_AUTHOR",
    "Settings",
    "load_settings",
    "Revision",
    "RevisionKind",
    "RevisionStatus",
    "TrackedSpan",
    "RevisionLedger",
    "LedgerAction",
    "LedgerEvent",
    "SpanIndex",
    "Position",
    "Selection",
    "DeleteUnit",
    "CommandBus",
    "CommandPriority",
    "EditCommand",
    "ViewMode",
    "VisibilityPolicy",
    "reconstruct_text",
    "render_html",
    "EditResult",
    "EditStatus",
    "ResolutionResult",
    "ResolutionOutcome",
    "AcceptResult",
    "RejectResult",
    "RevisionCounts",
    "RedlineError",
    "ValidationError",
    "InvariantViolationError",
    "TextNotFoundError",
    # Persistence and export
    "document_to_dict",
    "document_from_dict",
    "document_to_json",
    "document_from_json",
    "RevisionContext",
    "ExportedRevision",
    "export_revisions_json",
    "export_revisions_markdown",
    "generate_revision_report",
]

# Import author identity
from .author import DEFAULT_AUTHOR, RevisionAuthor

# Import editing infrastructure
from .commands import CommandBus, CommandPriority, EditCommand

# Import document class
from .document import Document
from .errors import InvariantViolationError, RedlineError, TextNotFoundError, ValidationError

# Import export functionality
from .export import (
    ExportedRevision,
    RevisionContext,
    export_revisions_json,
    export_revisions_markdown,
    generate_revision_report,
)
from .ledger import LedgerAction, LedgerEvent, RevisionLedger

# Import model classes
from .models.revision import Revision, RevisionKind, RevisionStatus
from .models.span import TrackedSpan

# Import result types
from .results import (
    AcceptResult,
    EditResult,
    EditStatus,
    RejectResult,
    ResolutionOutcome,
    ResolutionResult,
    RevisionCounts,
)
from .selection import DeleteUnit, Position, Selection
from .serialization import document_from_dict, document_from_json, document_to_dict, document_to_json
from .settings import Settings, load_settings
from .span_index import SpanIndex
from .visibility import ViewMode, VisibilityPolicy, reconstruct_text, render_html

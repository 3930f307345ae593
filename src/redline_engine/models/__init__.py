"""
Model classes for redline_engine.

Revision records live in the ledger; TrackedSpan wraps the w:ins / w:del
elements that carry them in the document tree.
"""

from redline_engine.models.revision import Revision, RevisionKind, RevisionStatus
from redline_engine.models.span import TrackedSpan

__all__ = [
    "Revision",
    "RevisionKind",
    "RevisionStatus",
    "TrackedSpan",
]

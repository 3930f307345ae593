"""
Revision model class for the records held by the revision ledger.
"""

from dataclasses import dataclass, replace
from datetime import datetime, timezone
from enum import Enum
from typing import Any

from redline_engine.author import RevisionAuthor


class RevisionKind(Enum):
    """Kinds of tracked revisions.

    Attributes:
        INSERTION: Text that was added (w:ins)
        DELETION: Text that was removed (w:del)
        FORMAT: Formatting change; recorded but never produced by typing
    """

    INSERTION = "insertion"
    DELETION = "deletion"
    FORMAT = "format"


class RevisionStatus(Enum):
    """Review status of a revision. ACCEPTED and REJECTED are terminal."""

    PENDING = "pending"
    ACCEPTED = "accepted"
    REJECTED = "rejected"


@dataclass
class Revision:
    """A single tracked edit as recorded in the ledger.

    The record is the source of truth for status; the span in the tree is the
    source of truth for the current text, and ``content`` is a snapshot of it.

    Attributes:
        id: Unique revision identifier (also the w:id of the span)
        kind: Insertion, deletion or format
        status: Pending, accepted or rejected
        content: Text snapshot of the change
        author: Who made the change
        created_at: When the change was made (UTC)
        node_reference: Lookup key of the span in the span index, may dangle
        original_content: Text as first recorded, for deletions
    """

    id: str
    kind: RevisionKind
    status: RevisionStatus
    content: str
    author: RevisionAuthor
    created_at: datetime
    node_reference: str | None = None
    original_content: str | None = None

    @property
    def is_pending(self) -> bool:
        return self.status is RevisionStatus.PENDING

    @property
    def is_terminal(self) -> bool:
        return self.status is not RevisionStatus.PENDING

    @property
    def is_insertion(self) -> bool:
        return self.kind is RevisionKind.INSERTION

    @property
    def is_deletion(self) -> bool:
        return self.kind is RevisionKind.DELETION

    def copy(self) -> "Revision":
        """Return a detached snapshot of this record."""
        return replace(self)

    def to_dict(self) -> dict[str, Any]:
        """Serialize to a JSON-compatible dictionary."""
        return {
            "id": self.id,
            "type": self.kind.value,
            "status": self.status.value,
            "content": self.content,
            "author": self.author.to_dict(),
            "created_at": self.created_at.isoformat(),
            "node_reference": self.node_reference,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Revision":
        """Build a record from a dictionary produced by to_dict().

        Raises:
            ValueError: If the type, status or timestamp is invalid
            KeyError: If a required key is missing
        """
        created_at = datetime.fromisoformat(data["created_at"])
        if created_at.tzinfo is None:
            created_at = created_at.replace(tzinfo=timezone.utc)
        return cls(
            id=str(data["id"]),
            kind=RevisionKind(data["type"]),
            status=RevisionStatus(data.get("status", RevisionStatus.PENDING.value)),
            content=data.get("content", ""),
            author=RevisionAuthor.from_dict(data.get("author") or {}),
            created_at=created_at,
            node_reference=None,
        )

    def __repr__(self) -> str:
        text_preview = self.content[:30] + "..." if len(self.content) > 30 else self.content
        return (
            f"<Revision id={self.id} type={self.kind.value} status={self.status.value} "
            f"author={self.author.name!r}: {text_preview!r}>"
        )

"""
Result classes for editing and resolution operations.

Every public editing or resolution call reports its outcome through one of
these types instead of raising for expected conditions.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .models.revision import RevisionKind


class EditStatus(Enum):
    """Outcome of an edit command.

    Attributes:
        APPLIED: The edit changed the document
        NO_OP: Nothing to do (e.g., deleting already-deleted text)
        STALE_SELECTION: The caret or selection points at a node that left the tree
        FAILED: The edit could not be interpreted (batch edits only)
    """

    APPLIED = "applied"
    NO_OP = "no_op"
    STALE_SELECTION = "stale_selection"
    FAILED = "failed"


class ResolutionOutcome(Enum):
    """Outcome of accepting or rejecting a single revision."""

    ACCEPTED = "accepted"
    REJECTED = "rejected"
    UNKNOWN_REVISION = "unknown_revision"
    ALREADY_RESOLVED = "already_resolved"
    STALE_REFERENCE = "stale_reference"


@dataclass
class EditResult:
    """Result of applying a single edit.

    Attributes:
        status: What happened
        edit_type: Type of edit (e.g., "insert_text", "delete_word")
        message: Human-readable message about the result
        tracked: Whether the edit went through the track changes layer
        revision_ids: Revisions created or extended by the edit
        error: Optional exception that occurred during a batch edit
    """

    status: EditStatus
    edit_type: str
    message: str = ""
    tracked: bool = False
    revision_ids: list[str] = field(default_factory=list)
    error: Exception | None = None

    @property
    def success(self) -> bool:
        """True when the edit changed the document."""
        return self.status is EditStatus.APPLIED

    def __str__(self) -> str:
        """Get string representation of the result."""
        status = "✓" if self.success else "✗"
        return f"{status} {self.edit_type}: {self.message or self.status.value}"


@dataclass
class ResolutionResult:
    """Result of accepting or rejecting one revision.

    Attributes:
        revision_id: The id that was asked for
        outcome: What happened
        kind: Kind of the revision, None when the id is unknown
    """

    revision_id: str
    outcome: ResolutionOutcome
    kind: "RevisionKind | None" = None

    @property
    def applied(self) -> bool:
        """True when the tree was rewritten for this revision."""
        return self.outcome in (ResolutionOutcome.ACCEPTED, ResolutionOutcome.REJECTED)

    @property
    def changed_status(self) -> bool:
        """True when the ledger status moved to a terminal state."""
        return self.applied or self.outcome is ResolutionOutcome.STALE_REFERENCE

    def __str__(self) -> str:
        return f"{self.revision_id}: {self.outcome.value}"


@dataclass
class AcceptResult:
    """Result of accepting tracked changes in bulk.

    Attributes:
        insertions: Number of insertions accepted
        deletions: Number of deletions accepted
        stale: Number of records finalised without a live span in the tree
    """

    insertions: int = 0
    deletions: int = 0
    stale: int = 0

    @property
    def total(self) -> int:
        return self.insertions + self.deletions + self.stale

    def __str__(self) -> str:
        """Get string representation of the result."""
        return f"Accepted {self.insertions} insertions, {self.deletions} deletions"


@dataclass
class RejectResult:
    """Result of rejecting tracked changes in bulk.

    Attributes:
        insertions: Number of insertions rejected
        deletions: Number of deletions rejected
        stale: Number of records finalised without a live span in the tree
    """

    insertions: int = 0
    deletions: int = 0
    stale: int = 0

    @property
    def total(self) -> int:
        return self.insertions + self.deletions + self.stale

    def __str__(self) -> str:
        """Get string representation of the result."""
        return f"Rejected {self.insertions} insertions, {self.deletions} deletions"


@dataclass
class RevisionCounts:
    """Counts of ledger records by status.

    Attributes:
        total: All records
        pending: Records awaiting review
        accepted: Records accepted
        rejected: Records rejected
    """

    total: int = 0
    pending: int = 0
    accepted: int = 0
    rejected: int = 0

    def __str__(self) -> str:
        if not self.total:
            return "No revisions"
        return (
            f"{self.total} revision{'s' if self.total != 1 else ''} "
            f"({self.pending} pending, {self.accepted} accepted, {self.rejected} rejected)"
        )

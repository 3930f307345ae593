"""
Custom exception classes for the redline_engine package.

Expected editing conditions (a stale selection, an unknown revision id) are
never raised; they come back as status values on the result objects in
``redline_engine.results``. The exceptions here cover malformed input and
internal inconsistencies only.
"""


class RedlineError(Exception):
    """Base exception for all redline_engine errors."""

    pass


class ValidationError(RedlineError):
    """Raised when a document, settings file or edit file cannot be loaded.

    Attributes:
        errors: List of specific validation error messages (optional)
    """

    def __init__(self, message: str, errors: list[str] | None = None) -> None:
        self.errors = errors or []
        super().__init__(message)


class InvariantViolationError(RedlineError):
    """Raised when the tree and the revision ledger disagree.

    Only raised when strict invariant checking is enabled in the settings;
    otherwise the engine logs the problem and repairs it.

    Attributes:
        revision_id: The revision id involved, if known
        reason: Explanation of the inconsistency
    """

    def __init__(self, reason: str, revision_id: str | None = None) -> None:
        self.reason = reason
        self.revision_id = revision_id
        super().__init__(self._format_message())

    def _format_message(self) -> str:
        """Format an error message naming the revision involved."""
        msg = "Track changes invariant violated"
        if self.revision_id is not None:
            msg += f" for revision '{self.revision_id}'"
        msg += f": {self.reason}"
        return msg


class TextNotFoundError(RedlineError):
    """Raised when text to select cannot be found in the visible document.

    Attributes:
        text: The text that was being searched for
        occurrence: The 1-indexed occurrence that was requested
        found: How many occurrences exist
    """

    def __init__(self, text: str, occurrence: int = 1, found: int = 0) -> None:
        self.text = text
        self.occurrence = occurrence
        self.found = found
        super().__init__(self._format_message())

    def _format_message(self) -> str:
        """Format an error message with the number of matches found."""
        msg = f"Could not find '{self.text}'"
        if self.found:
            msg += f" (occurrence {self.occurrence} requested, {self.found} found)"
        return msg

"""
TrackedSpan model class for tracked insertions and deletions in the tree.

Insertions (w:ins) and deletions (w:del) are one concept with two kinds.
The element carries the revision id, author and timestamp as attributes and
wraps the runs holding the affected text.
"""

from dataclasses import dataclass
from datetime import datetime, timezone

from lxml import etree

from redline_engine.author import RevisionAuthor
from redline_engine.constants import DATE_FORMAT, NSMAP, w, w15
from redline_engine.models.revision import RevisionKind
from redline_engine.tree import is_deletion, is_insertion, span_runs, span_text

SPAN_TAG_BY_KIND = {
    RevisionKind.INSERTION: w("ins"),
    RevisionKind.DELETION: w("del"),
}


def format_timestamp(moment: datetime) -> str:
    """Format a datetime for a w:date attribute (UTC, second precision)."""
    if moment.tzinfo is not None:
        moment = moment.astimezone(timezone.utc)
    return moment.strftime(DATE_FORMAT)


def parse_timestamp(value: str | None) -> datetime | None:
    """Parse a w:date attribute value, returning None when absent or invalid."""
    if not value:
        return None
    try:
        moment = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return None
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    return moment


def span_kind(element: etree._Element) -> RevisionKind | None:
    """Get the revision kind of a span element, or None for other elements."""
    if is_insertion(element):
        return RevisionKind.INSERTION
    if is_deletion(element):
        return RevisionKind.DELETION
    return None


def span_author(element: etree._Element) -> RevisionAuthor:
    """Read the author recorded on a span element.

    The display name comes from w:author and the id from w15:userId, falling
    back to the display name when no user id was recorded.
    """
    name = element.get(w("author")) or "Unknown"
    author_id = element.get(w15("userId")) or name
    return RevisionAuthor(id=author_id, name=name)


def build_span(
    kind: RevisionKind,
    revision_id: str,
    author: RevisionAuthor,
    timestamp: datetime,
) -> etree._Element:
    """Create an empty w:ins or w:del element for a new revision.

    Args:
        kind: INSERTION or DELETION
        revision_id: Revision id written to w:id
        author: Author written to w:author and w15:userId
        timestamp: Creation time written to w:date

    Returns:
        The span element, ready for runs to be appended
    """
    if kind not in SPAN_TAG_BY_KIND:
        raise ValueError(f"Cannot build a span for {kind.value} revisions")
    span = etree.Element(SPAN_TAG_BY_KIND[kind], nsmap=NSMAP)
    span.set(w("id"), revision_id)
    span.set(w("author"), author.name)
    span.set(w15("userId"), author.id)
    span.set(w("date"), format_timestamp(timestamp))
    return span


@dataclass
class TrackedSpan:
    """A snapshot view of a tracked span in the document tree.

    Attributes:
        revision_id: The revision id (w:id attribute value)
        kind: INSERTION or DELETION
        author: Author recorded on the span
        timestamp: When the span was created, None if not recorded
        text: The text content of the span
        element: Reference to the underlying XML element

    Example:
        >>> for span in doc.tracked_spans():
        ...     print(f"{span.revision_id}: {span.kind.value} by {span.author.name}")
    """

    revision_id: str
    kind: RevisionKind
    author: RevisionAuthor
    timestamp: datetime | None
    text: str
    element: etree._Element

    @classmethod
    def from_element(cls, element: etree._Element) -> "TrackedSpan":
        """Create a TrackedSpan from a w:ins or w:del element.

        Raises:
            ValueError: If the element is not a tracked span
        """
        kind = span_kind(element)
        if kind is None:
            raise ValueError(f"Expected w:ins or w:del element, got {element.tag}")

        return cls(
            revision_id=element.get(w("id"), ""),
            kind=kind,
            author=span_author(element),
            timestamp=parse_timestamp(element.get(w("date"))),
            text=span_text(element),
            element=element,
        )

    @property
    def runs(self) -> list[etree._Element]:
        return span_runs(self.element)

    @property
    def is_insertion(self) -> bool:
        return self.kind is RevisionKind.INSERTION

    @property
    def is_deletion(self) -> bool:
        return self.kind is RevisionKind.DELETION

    def __repr__(self) -> str:
        text_preview = self.text[:30] + "..." if len(self.text) > 30 else self.text
        return (
            f"<TrackedSpan id={self.revision_id} type={self.kind.value} "
            f"author={self.author.name!r}: {text_preview!r}>"
        )

"""
Caret positions, selections and visible-offset arithmetic.

A Position points either into a run (offset is a character offset in the
run text) or between the inline children of a container such as a paragraph
(offset is a child index, ignoring w:pPr). Editing works in per-paragraph
visible offsets, where runs inside a tracked deletion have zero width.
"""

from collections.abc import Iterable
from dataclasses import dataclass
from enum import Enum

from lxml import etree

from .constants import w
from .tree import (
    inline_children,
    is_attached,
    is_deletion,
    is_paragraph,
    is_run,
    iter_paragraphs,
    paragraph_of,
    run_text,
)


class DeleteUnit(Enum):
    """How much text a collapsed-caret delete covers."""

    CHARACTER = "character"
    WORD = "word"
    LINE = "line"


@dataclass(frozen=True)
class Position:
    """A caret location in the document tree.

    Attributes:
        node: A w:r run, or a container element (usually a w:p)
        offset: Character offset into the run, or inline child index of the container
    """

    node: etree._Element
    offset: int

    @property
    def in_run(self) -> bool:
        return is_run(self.node)

    def is_stale(self, root: etree._Element) -> bool:
        """True when the node is no longer part of the tree under ``root``."""
        return not is_attached(self.node, root)

    @classmethod
    def before(cls, element: etree._Element) -> "Position":
        """Position immediately before an inline element."""
        parent = element.getparent()
        return cls(parent, inline_children(parent).index(element))

    @classmethod
    def after(cls, element: etree._Element) -> "Position":
        """Position immediately after an inline element."""
        parent = element.getparent()
        return cls(parent, inline_children(parent).index(element) + 1)


@dataclass(frozen=True)
class Selection:
    """An anchor/focus pair; collapsed when both are the same position."""

    anchor: Position
    focus: Position

    @classmethod
    def caret(cls, position: Position) -> "Selection":
        return cls(position, position)

    @property
    def is_collapsed(self) -> bool:
        return self.anchor == self.focus

    def is_stale(self, root: etree._Element) -> bool:
        return self.anchor.is_stale(root) or self.focus.is_stale(root)


# Visible text


def is_deleted_run(run: etree._Element) -> bool:
    """Check whether a run sits inside a tracked deletion."""
    current = run.getparent()
    while current is not None and not is_paragraph(current):
        if is_deletion(current):
            return True
        current = current.getparent()
    return False


def visible_runs(paragraph: etree._Element) -> list[etree._Element]:
    return [run for run in paragraph.iter(w("r")) if not is_deleted_run(run)]


def visible_length(element: etree._Element) -> int:
    """Visible character count of an element and its descendants."""
    return sum(len(run_text(run)) for run in element.iter(w("r")) if not is_deleted_run(run))


def paragraph_text(paragraph: etree._Element, include_deletions: bool = False) -> str:
    """Concatenate the text of a paragraph's runs in document order."""
    return "".join(
        run_text(run)
        for run in paragraph.iter(w("r"))
        if include_deletions or not is_deleted_run(run)
    )


def _start_offset(paragraph: etree._Element, target: etree._Element) -> int:
    total = 0
    for element in paragraph.iter():
        if element is target:
            return total
        if is_run(element) and not is_deleted_run(element):
            total += len(run_text(element))
    raise ValueError("Element is not inside the paragraph")


def position_to_offset(position: Position) -> tuple[etree._Element, int]:
    """Map a position to its paragraph and visible offset.

    A position inside a deleted run maps to the visible offset where the
    deletion sits.

    Raises:
        ValueError: If the position is not inside a paragraph
    """
    node = position.node
    paragraph = paragraph_of(node)
    if paragraph is None:
        raise ValueError("Position is not inside a paragraph")

    start = _start_offset(paragraph, node)
    if is_run(node):
        if is_deleted_run(node):
            return paragraph, start
        return paragraph, start + max(0, min(position.offset, len(run_text(node))))

    for child in inline_children(node)[: max(0, position.offset)]:
        start += visible_length(child)
    return paragraph, start


def offset_to_position(paragraph: etree._Element, offset: int) -> Position:
    """Map a visible offset in a paragraph back to a position.

    At a boundary between two runs the earlier run wins, so the position
    lands at the end of the text before it. Offsets past the end clamp to
    the end of the last visible run.
    """
    total = 0
    last = None
    for run in visible_runs(paragraph):
        length = len(run_text(run))
        if offset <= total + length:
            return Position(run, max(0, offset - total))
        total += length
        last = run
    if last is not None:
        return Position(last, len(run_text(last)))
    return Position(paragraph, len(inline_children(paragraph)))


def visible_segments(
    paragraph: etree._Element, start: int, end: int
) -> list[tuple[etree._Element, int, int]]:
    """Get the (run, start, end) pieces of visible text covering [start, end).

    Run offsets are character offsets local to each run.
    """
    segments = []
    total = 0
    for run in visible_runs(paragraph):
        length = len(run_text(run))
        seg_start = max(start, total)
        seg_end = min(end, total + length)
        if seg_start < seg_end:
            segments.append((run, seg_start - total, seg_end - total))
        total += length
        if total >= end:
            break
    return segments


def raw_index(container: etree._Element, offset: int) -> int:
    """Convert an inline child index to a real child index of ``container``."""
    children = inline_children(container)
    if offset < len(children):
        return container.index(children[offset])
    return len(container)


# Boundaries


def _char_class(char: str) -> int:
    if char.isspace():
        return 0
    if char.isalnum() or char == "_":
        return 1
    return 2


def word_range(text: str, offset: int, forward: bool) -> tuple[int, int]:
    """Range covered by deleting one word from ``offset``.

    Whitespace next to the caret goes first, then a run of characters of the
    same class (word characters or punctuation).
    """
    i = offset
    if forward:
        while i < len(text) and text[i].isspace():
            i += 1
        if i < len(text):
            kind = _char_class(text[i])
            while i < len(text) and _char_class(text[i]) == kind:
                i += 1
        return offset, i

    while i > 0 and text[i - 1].isspace():
        i -= 1
    if i > 0:
        kind = _char_class(text[i - 1])
        while i > 0 and _char_class(text[i - 1]) == kind:
            i -= 1
    return i, offset


def deletion_range(text: str, offset: int, unit: DeleteUnit, forward: bool) -> tuple[int, int]:
    """Visible range a collapsed-caret delete covers within one paragraph."""
    if unit is DeleteUnit.CHARACTER:
        if forward:
            return offset, min(len(text), offset + 1)
        return max(0, offset - 1), offset
    if unit is DeleteUnit.WORD:
        return word_range(text, offset, forward)
    if forward:
        return offset, len(text)
    return 0, offset


# Ordering and search


def ordered_bounds(
    selection: Selection, paragraphs: list[etree._Element]
) -> tuple[tuple[etree._Element, int], tuple[etree._Element, int]]:
    """Resolve a selection to (paragraph, offset) pairs in document order."""
    first = position_to_offset(selection.anchor)
    second = position_to_offset(selection.focus)
    order = {paragraph: i for i, paragraph in enumerate(paragraphs)}
    if (order[second[0]], second[1]) < (order[first[0]], first[1]):
        first, second = second, first
    return first, second


def find_visible_text(
    paragraphs: Iterable[etree._Element], text: str
) -> list[tuple[etree._Element, int]]:
    """Find every (paragraph, visible offset) where ``text`` occurs.

    Matches never cross paragraph boundaries.
    """
    matches = []
    if not text:
        return matches
    for paragraph in paragraphs:
        content = paragraph_text(paragraph)
        start = content.find(text)
        while start != -1:
            matches.append((paragraph, start))
            start = content.find(text, start + 1)
    return matches


def document_paragraphs(root: etree._Element) -> list[etree._Element]:
    return list(iter_paragraphs(root))

"""
Visibility policy, text reconstruction and HTML rendering.

Nothing here mutates the tree or the ledger. The policy decides which
tracked text a reader sees; reconstruct_text() and render_html() apply it.
"""

import html
import json
from collections.abc import Iterator
from dataclasses import dataclass
from enum import Enum

from lxml import etree

from .constants import REVISION_COLORS, w
from .models.span import TrackedSpan
from .tree import enclosing_span, format_flags, is_deletion, is_insertion, iter_paragraphs, run_text


class ViewMode(Enum):
    """How tracked changes are presented.

    Attributes:
        ALL_MARKUP: Live document with every change marked up
        SIMPLE_MARKUP: Live document with change markers but no colouring
        NO_MARKUP: Document as if every pending change were accepted
        ORIGINAL: Document as if every pending change were rejected
    """

    ALL_MARKUP = "all_markup"
    SIMPLE_MARKUP = "simple_markup"
    NO_MARKUP = "no_markup"
    ORIGINAL = "original"


@dataclass
class VisibilityPolicy:
    """Presentation settings for tracked text.

    Attributes:
        show_deletions: Include deleted text in the markup views
        view_mode: Which view to present
    """

    show_deletions: bool = False
    view_mode: ViewMode = ViewMode.ALL_MARKUP

    @property
    def shows_markup(self) -> bool:
        return self.view_mode in (ViewMode.ALL_MARKUP, ViewMode.SIMPLE_MARKUP)

    def shows_insertions(self) -> bool:
        return self.view_mode is not ViewMode.ORIGINAL

    def shows_deletions(self) -> bool:
        if self.view_mode is ViewMode.ORIGINAL:
            return True
        if self.view_mode is ViewMode.NO_MARKUP:
            return False
        return self.show_deletions


def _tracked_pieces(
    paragraph: etree._Element, policy: VisibilityPolicy
) -> Iterator[tuple[etree._Element, etree._Element | None]]:
    """Yield (run, span) for the runs the policy shows, in document order."""
    for run in paragraph.iter(w("r")):
        span = enclosing_span(run)
        if is_deletion(span) and not policy.shows_deletions():
            continue
        if is_insertion(span) and not policy.shows_insertions():
            continue
        yield run, span


def reconstruct_text(root: etree._Element, policy: VisibilityPolicy | None = None) -> str:
    """Rebuild the document text the policy shows.

    Paragraphs are joined with newlines.

    Args:
        root: Document root element
        policy: Visibility policy (defaults to the live view without deletions)
    """
    policy = policy or VisibilityPolicy()
    return "\n".join(
        "".join(run_text(run) for run, _ in _tracked_pieces(paragraph, policy))
        for paragraph in iter_paragraphs(root)
    )


# HTML rendering

_FORMAT_TAGS = (
    ("bold", "strong"),
    ("italic", "em"),
    ("underline", "u"),
    ("strikethrough", "s"),
)


def _render_run(run: etree._Element) -> str:
    text = html.escape(run_text(run))
    flags = format_flags(run)
    for flag, tag in _FORMAT_TAGS:
        if flags[flag]:
            text = f"<{tag}>{text}</{tag}>"
    return text


def _span_attributes(span: TrackedSpan, coloured: bool, author_color: str | None) -> str:
    attrs = {
        "data-revision-id": span.revision_id,
        "data-revision-type": span.kind.value,
        "data-revision-author": json.dumps(span.author.to_dict()),
    }
    if span.timestamp is not None:
        attrs["data-revision-timestamp"] = span.timestamp.isoformat()
    if coloured:
        colors = REVISION_COLORS[span.kind.value]
        if span.is_insertion:
            style = (
                f"background-color: {colors['bg']}; color: {author_color or colors['text']}; "
                f"text-decoration: underline; text-decoration-color: {colors['underline']}"
            )
        else:
            style = (
                f"color: {author_color or colors['text']}; text-decoration: line-through; "
                f"text-decoration-color: {colors['strikethrough']}"
            )
        attrs["style"] = style
    return " ".join(f'{key}="{html.escape(value, quote=True)}"' for key, value in attrs.items())


def render_paragraph(
    paragraph: etree._Element,
    policy: VisibilityPolicy,
    author_colors: dict[str, str] | None = None,
) -> str:
    """Render one paragraph as an HTML <p> element."""
    author_colors = author_colors or {}
    parts: list[str] = []
    open_span: etree._Element | None = None
    tag = ""

    for run, span in _tracked_pieces(paragraph, policy):
        if span is not open_span:
            if open_span is not None:
                parts.append(f"</{tag}>")
                open_span = None
            if span is not None and policy.shows_markup:
                tracked = TrackedSpan.from_element(span)
                tag = "ins" if tracked.is_insertion else "del"
                attributes = _span_attributes(
                    tracked,
                    coloured=policy.view_mode is ViewMode.ALL_MARKUP,
                    author_color=author_colors.get(tracked.author.id),
                )
                parts.append(f"<{tag} {attributes}>")
                open_span = span
        parts.append(_render_run(run))

    if open_span is not None:
        parts.append(f"</{tag}>")
    return f"<p>{''.join(parts)}</p>"


def render_html(
    root: etree._Element,
    policy: VisibilityPolicy | None = None,
    author_colors: dict[str, str] | None = None,
) -> str:
    """Render the document as HTML fragments, one <p> per paragraph.

    In the markup views insertions are wrapped in <ins> and deletions in
    <del>, both carrying data-revision-* attributes. ALL_MARKUP also colours
    them; an author's own colour wins over the default palette.

    Args:
        root: Document root element
        policy: Visibility policy to apply
        author_colors: Optional map of author id to highlight colour
    """
    policy = policy or VisibilityPolicy()
    return "\n".join(
        render_paragraph(paragraph, policy, author_colors) for paragraph in iter_paragraphs(root)
    )

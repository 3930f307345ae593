"""
Export functionality for tracked revisions.

This module exports the revision ledger to JSON and Markdown so reviews can
be shared with tools and people outside the editor. Each exported revision
can carry the text surrounding its span.
"""

from __future__ import annotations

import json
from collections import defaultdict
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Any, Literal

from .constants import CONTEXT_CHARS_DEFAULT, w
from .models.revision import Revision, RevisionKind, RevisionStatus
from .tree import iter_paragraphs, paragraph_of, run_text, span_runs

if TYPE_CHECKING:
    from .document import Document


@dataclass
class RevisionContext:
    """Text around a revision's span, deleted text included."""

    before: str
    """Text appearing before the revision."""

    after: str
    """Text appearing after the revision."""

    paragraph_index: int
    """Zero-based index of the paragraph in the document."""


@dataclass
class ExportedRevision:
    """A serializable view of one ledger record."""

    id: str
    kind: str
    status: str
    author: str
    author_id: str
    date: str
    text: str
    context: RevisionContext | None = None


def _revision_context(
    doc: Document, record: Revision, context_chars: int
) -> RevisionContext | None:
    """Get the context around a revision, or None if its span is gone."""
    spans = doc.span_index.spans_for(record.id)
    if not spans:
        return None
    paragraph = paragraph_of(spans[0])
    if paragraph is None:
        return None

    first_run = span_runs(spans[0])[0] if span_runs(spans[0]) else None
    last_runs = span_runs(spans[-1])
    last_run = last_runs[-1] if last_runs else None
    before_parts: list[str] = []
    after_parts: list[str] = []
    target = before_parts
    for run in paragraph.iter(w("r")):
        if run is first_run:
            target = None
        if target is not None:
            target.append(run_text(run))
        if run is last_run:
            target = after_parts

    before = "".join(before_parts)
    after = "".join(after_parts)
    paragraphs = list(iter_paragraphs(doc.xml_root))
    return RevisionContext(
        before=before[-context_chars:] if context_chars else "",
        after=after[:context_chars],
        paragraph_index=paragraphs.index(paragraph),
    )


def _export_revision(
    doc: Document, record: Revision, include_context: bool, context_chars: int
) -> ExportedRevision:
    return ExportedRevision(
        id=record.id,
        kind=record.kind.value,
        status=record.status.value,
        author=record.author.name,
        author_id=record.author.id,
        date=record.created_at.isoformat(),
        text=record.content,
        context=_revision_context(doc, record, context_chars) if include_context else None,
    )


def _revision_to_dict(revision: ExportedRevision) -> dict[str, Any]:
    result: dict[str, Any] = {
        "id": revision.id,
        "type": revision.kind,
        "status": revision.status,
        "author": revision.author,
        "author_id": revision.author_id,
        "date": revision.date,
        "text": revision.text,
    }
    if revision.context:
        result["context"] = {
            "before": revision.context.before,
            "after": revision.context.after,
            "paragraph_index": revision.context.paragraph_index,
        }
    return result


def _selected(doc: Document, status: RevisionStatus | None) -> list[Revision]:
    return doc.get_revisions(status=status)


def export_revisions_json(
    doc: Document,
    include_context: bool = True,
    context_chars: int = CONTEXT_CHARS_DEFAULT,
    status: RevisionStatus | None = None,
    indent: int | None = 2,
) -> str:
    """Export ledger records to JSON, newest first.

    Args:
        doc: The document to export revisions from
        include_context: Whether to include surrounding text context
        context_chars: Number of context characters to include on each side
        status: Only export records with this status
        indent: JSON indentation level, or None for compact output

    Example:
        >>> data = json.loads(export_revisions_json(doc))
        >>> print(data["counts"]["pending"])
    """
    exported = [
        _export_revision(doc, record, include_context, context_chars)
        for record in _selected(doc, status)
    ]
    counts = doc.revision_counts()
    result = {
        "counts": {
            "total": counts.total,
            "pending": counts.pending,
            "accepted": counts.accepted,
            "rejected": counts.rejected,
        },
        "revisions": [_revision_to_dict(revision) for revision in exported],
    }
    return json.dumps(result, indent=indent, ensure_ascii=False)


_KIND_HEADERS = {
    RevisionKind.INSERTION.value: "Insertions",
    RevisionKind.DELETION.value: "Deletions",
    RevisionKind.FORMAT.value: "Format Changes",
}

_KIND_ICONS = {
    RevisionKind.INSERTION.value: "+",
    RevisionKind.DELETION.value: "-",
    RevisionKind.FORMAT.value: "~",
}


def _format_revision_markdown(revision: ExportedRevision, include_context: bool) -> list[str]:
    icon = _KIND_ICONS.get(revision.kind, "*")
    lines = [
        f"- **[{icon}]** {revision.kind.title()} #{revision.id} by {revision.author} "
        f"({revision.date[:10]}, {revision.status})"
    ]
    if revision.text:
        preview = revision.text[:100]
        if len(revision.text) > 100:
            preview += "..."
        lines.append(f"  - Text: `{preview}`")
    if include_context and revision.context:
        ctx = revision.context
        if ctx.before or ctx.after:
            lines.append(f"  - Context: ...{ctx.before}**[change]**{ctx.after}...")
    lines.append("")
    return lines


def export_revisions_markdown(
    doc: Document,
    include_context: bool = True,
    context_chars: int = CONTEXT_CHARS_DEFAULT,
    group_by: Literal["none", "author", "kind"] | None = None,
    status: RevisionStatus | None = None,
    title: str = "Tracked Revisions",
) -> str:
    """Export ledger records to a Markdown review document.

    Args:
        doc: The document to export revisions from
        include_context: Whether to include surrounding text context
        context_chars: Number of context characters to include on each side
        group_by: How to group revisions: "author", "kind", or "none"/None
        status: Only export records with this status
        title: Heading of the document
    """
    exported = [
        _export_revision(doc, record, include_context, context_chars)
        for record in _selected(doc, status)
    ]
    counts = doc.revision_counts()
    lines = [
        f"# {title}",
        "",
        "## Summary",
        "",
        f"- **Total revisions**: {counts.total}",
        f"- **Pending**: {counts.pending}",
        f"- **Accepted**: {counts.accepted}",
        f"- **Rejected**: {counts.rejected}",
        "",
    ]

    if not exported:
        lines.append("*No revisions found.*")
        return "\n".join(lines)

    if group_by == "author":
        lines.extend(["## Revisions by Author", ""])
        by_author: dict[str, list[ExportedRevision]] = defaultdict(list)
        for revision in exported:
            by_author[revision.author].append(revision)
        for author in sorted(by_author):
            lines.extend([f"### {author}", ""])
            for revision in by_author[author]:
                lines.extend(_format_revision_markdown(revision, include_context))
    elif group_by == "kind":
        lines.extend(["## Revisions by Type", ""])
        by_kind: dict[str, list[ExportedRevision]] = defaultdict(list)
        for revision in exported:
            by_kind[revision.kind].append(revision)
        for kind in RevisionKind:
            if kind.value in by_kind:
                lines.extend([f"### {_KIND_HEADERS[kind.value]}", ""])
                for revision in by_kind[kind.value]:
                    lines.extend(_format_revision_markdown(revision, include_context))
    else:
        lines.extend(["## All Revisions", ""])
        for revision in exported:
            lines.extend(_format_revision_markdown(revision, include_context))

    return "\n".join(lines).rstrip() + "\n"


def generate_revision_report(
    doc: Document,
    format: Literal["markdown", "json"] = "markdown",
    include_context: bool = True,
    context_chars: int = CONTEXT_CHARS_DEFAULT,
    group_by: Literal["none", "author", "kind"] | None = "author",
    title: str | None = None,
) -> str:
    """Generate a review report of pending revisions.

    Args:
        doc: The document to generate a report for
        format: Output format: "markdown" or "json"
        include_context: Whether to include surrounding text context
        context_chars: Number of context characters to include on each side
        group_by: How to group revisions in Markdown output
        title: Optional custom title for the report

    Raises:
        ValueError: If the format is not supported
    """
    report_title = title or "Pending Revisions Report"
    if format == "json":
        data = json.loads(
            export_revisions_json(
                doc, include_context, context_chars, status=RevisionStatus.PENDING
            )
        )
        data["title"] = report_title
        data["generated_at"] = datetime.now(timezone.utc).isoformat()
        data["by_author"] = {
            author.name: len(doc.get_revisions(status=RevisionStatus.PENDING, author_id=author.id))
            for author in doc.ledger.authors()
        }
        return json.dumps(data, indent=2, ensure_ascii=False)
    if format == "markdown":
        return export_revisions_markdown(
            doc,
            include_context,
            context_chars,
            group_by=group_by,
            status=RevisionStatus.PENDING,
            title=report_title,
        )
    raise ValueError(f"Unsupported report format: {format}")

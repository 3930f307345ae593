"""
Structured records for persisting documents with tracked changes.

A document serializes to a nested dictionary: a root node holding paragraph
nodes, each holding one leaf record per run. Leaves inside tracked spans
carry the span's type, revision id, author and timestamp, so a reloaded
document can rebuild its spans and regain its pending revisions. Adjacent
leaves with the same type and revision id merge back into one span.
"""

import json
from datetime import datetime, timezone
from typing import Any

from lxml import etree

from .author import RevisionAuthor
from .constants import FORMAT_FLAGS, NSMAP, w
from .errors import ValidationError
from .models.revision import Revision, RevisionKind
from .models.span import TrackedSpan, build_span, span_kind
from .tree import (
    apply_format_flags,
    enclosing_span,
    format_flags,
    iter_paragraphs,
    make_run,
    run_text,
    span_runs,
)

LEAF_TYPES = ("text", "insertion", "deletion")


def _span_fields(span: etree._Element) -> dict[str, Any]:
    tracked = TrackedSpan.from_element(span)
    return {
        "revision_id": tracked.revision_id,
        "author": tracked.author.to_dict(),
        "timestamp": tracked.timestamp.isoformat() if tracked.timestamp else None,
    }


def serialize_span(element: etree._Element) -> dict[str, Any]:
    """Serialize a w:ins or w:del element to a structured record.

    The formatting flags are taken from the span's first run.

    Raises:
        ValueError: If the element is not a tracked span
    """
    kind = span_kind(element)
    if kind is None:
        raise ValueError(f"Expected w:ins or w:del element, got {element.tag}")
    runs = span_runs(element)
    record = {
        "type": kind.value,
        "text": "".join(run_text(run) for run in runs),
        "format": format_flags(runs[0]) if runs else {flag: False for flag in FORMAT_FLAGS},
    }
    record.update(_span_fields(element))
    return record


def serialize_run(run: etree._Element) -> dict[str, Any]:
    """Serialize one run, tagged with its enclosing span if it has one."""
    record: dict[str, Any] = {"type": "text", "text": run_text(run), "format": format_flags(run)}
    span = enclosing_span(run)
    if span is not None:
        record["type"] = span_kind(span).value
        record.update(_span_fields(span))
    return record


def serialize_paragraph(paragraph: etree._Element) -> dict[str, Any]:
    return {
        "type": "paragraph",
        "children": [serialize_run(run) for run in paragraph.iter(w("r"))],
    }


def document_to_dict(
    root: etree._Element, revisions: list[Revision] | None = None
) -> dict[str, Any]:
    """Serialize a document tree, and optionally its ledger records.

    Args:
        root: Document root element
        revisions: Ledger records to persist alongside the tree

    Returns:
        Dictionary with a "root" node and, when given, a "revisions" list
    """
    data: dict[str, Any] = {
        "root": {
            "type": "root",
            "children": [serialize_paragraph(p) for p in iter_paragraphs(root)],
        }
    }
    if revisions is not None:
        data["revisions"] = [revision.to_dict() for revision in revisions]
    return data


# Import


def _parse_timestamp(value: Any) -> datetime:
    if not value:
        return datetime.now(timezone.utc)
    moment = datetime.fromisoformat(str(value).replace("Z", "+00:00"))
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    return moment


def _build_paragraph(node: dict[str, Any]) -> etree._Element:
    paragraph = etree.Element(w("p"), nsmap=NSMAP)
    current_span: etree._Element | None = None
    current_key: tuple[str, str] | None = None

    for leaf in node.get("children", []):
        leaf_type = leaf.get("type", "text")
        if leaf_type not in LEAF_TYPES:
            raise ValueError(f"Unknown leaf type: {leaf_type}")
        kind = None if leaf_type == "text" else RevisionKind(leaf_type)
        run = make_run(str(leaf.get("text", "")), deleted=kind is RevisionKind.DELETION)
        apply_format_flags(run, leaf.get("format") or {})

        if kind is None:
            paragraph.append(run)
            current_span, current_key = None, None
            continue

        revision_id = leaf.get("revision_id")
        if revision_id in (None, ""):
            raise ValueError(f"{leaf_type} leaf is missing its revision_id")
        key = (leaf_type, str(revision_id))
        if current_span is None or key != current_key:
            current_span = build_span(
                kind,
                str(revision_id),
                RevisionAuthor.from_dict(leaf.get("author") or {"id": "unknown"}),
                _parse_timestamp(leaf.get("timestamp")),
            )
            current_key = key
            paragraph.append(current_span)
        current_span.append(run)

    return paragraph


def document_from_dict(data: dict[str, Any]) -> tuple[etree._Element, list[Revision]]:
    """Rebuild a document tree and any persisted ledger records.

    Returns:
        (document root element, list of Revision records)

    Raises:
        ValidationError: If the data is not a valid serialized document
    """
    if not isinstance(data, dict) or not isinstance(data.get("root"), dict):
        raise ValidationError("Document data must be an object with a 'root' node")

    document = etree.Element(w("document"), nsmap=NSMAP)
    body = etree.SubElement(document, w("body"))
    try:
        for node in data["root"].get("children", []):
            if node.get("type") != "paragraph":
                raise ValueError(f"Unsupported node type under root: {node.get('type')}")
            body.append(_build_paragraph(node))
        revisions = [Revision.from_dict(item) for item in data.get("revisions", [])]
    except (AttributeError, KeyError, TypeError, ValueError) as e:
        raise ValidationError(f"Invalid document data: {e}") from e

    return document, revisions


def document_to_json(
    root: etree._Element, revisions: list[Revision] | None = None, indent: int | None = 2
) -> str:
    return json.dumps(document_to_dict(root, revisions), indent=indent, ensure_ascii=False)


def document_from_json(text: str) -> tuple[etree._Element, list[Revision]]:
    """Parse JSON text produced by document_to_json().

    Raises:
        ValidationError: If the text is not valid JSON or not a valid document
    """
    try:
        data = json.loads(text)
    except json.JSONDecodeError as e:
        raise ValidationError(f"Failed to parse JSON document: {e}") from e
    return document_from_dict(data)

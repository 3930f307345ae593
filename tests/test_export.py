"""
Tests for exporting tracked revisions to JSON and Markdown.
"""

import json

import pytest

from redline_engine import (
    Document,
    RevisionStatus,
    export_revisions_json,
    export_revisions_markdown,
    generate_revision_report,
)

WORD_NS = "http://schemas.openxmlformats.org/wordprocessingml/2006/main"

TRACKED_XML = f"""<w:document xmlns:w="{WORD_NS}"><w:body><w:p>
<w:r><w:t xml:space="preserve">Hello </w:t></w:r>
<w:ins w:id="7" w:author="Bob" w:date="2024-01-01T00:00:00Z"><w:r><w:t xml:space="preserve">big </w:t></w:r></w:ins>
<w:del w:id="9" w:author="Carol" w:date="2024-01-02T00:00:00Z"><w:r><w:delText xml:space="preserve">old </w:delText></w:r></w:del>
<w:r><w:t>world</w:t></w:r>
</w:p></w:body></w:document>"""


def create_doc() -> Document:
    return Document(TRACKED_XML)


class TestExportJson:
    """Tests for export_revisions_json."""

    def test_counts(self) -> None:
        data = json.loads(export_revisions_json(create_doc()))

        assert data["counts"] == {"total": 2, "pending": 2, "accepted": 0, "rejected": 0}
        assert len(data["revisions"]) == 2

    def test_revision_fields(self) -> None:
        data = json.loads(export_revisions_json(create_doc()))
        by_id = {r["id"]: r for r in data["revisions"]}

        inserted = by_id["7"]
        assert inserted["type"] == "insertion"
        assert inserted["status"] == "pending"
        assert inserted["author"] == "Bob"
        assert inserted["text"] == "big "
        assert inserted["date"].startswith("2024-01-01")

    def test_newest_first(self) -> None:
        data = json.loads(export_revisions_json(create_doc()))
        assert [r["id"] for r in data["revisions"]] == ["9", "7"]

    def test_context(self) -> None:
        data = json.loads(export_revisions_json(create_doc()))
        context = {r["id"]: r for r in data["revisions"]}["7"]["context"]

        assert context == {"before": "Hello ", "after": "old world", "paragraph_index": 0}

    def test_context_chars(self) -> None:
        data = json.loads(export_revisions_json(create_doc(), context_chars=3))
        context = {r["id"]: r for r in data["revisions"]}["9"]["context"]

        assert context["before"] == "ig "
        assert context["after"] == "wor"

    def test_without_context(self) -> None:
        data = json.loads(export_revisions_json(create_doc(), include_context=False))
        assert all("context" not in r for r in data["revisions"])

    def test_status_filter(self) -> None:
        doc = create_doc()
        doc.accept_revision("7")

        data = json.loads(export_revisions_json(doc, status=RevisionStatus.PENDING))

        assert [r["id"] for r in data["revisions"]] == ["9"]
        assert data["counts"]["accepted"] == 1

    def test_resolved_revision_has_no_context(self) -> None:
        doc = create_doc()
        doc.accept_revision("7")

        data = json.loads(export_revisions_json(doc))
        accepted = {r["id"]: r for r in data["revisions"]}["7"]

        assert accepted["status"] == "accepted"
        assert "context" not in accepted


class TestExportMarkdown:
    """Tests for export_revisions_markdown."""

    def test_summary(self) -> None:
        output = export_revisions_markdown(create_doc())

        assert output.startswith("# Tracked Revisions")
        assert "- **Total revisions**: 2" in output
        assert "- **Pending**: 2" in output
        assert "## All Revisions" in output
        assert "Insertion #7 by Bob" in output
        assert "  - Text: `big `" in output

    def test_group_by_author(self) -> None:
        output = export_revisions_markdown(create_doc(), group_by="author")

        assert "## Revisions by Author" in output
        assert output.index("### Bob") < output.index("### Carol")

    def test_group_by_kind(self) -> None:
        output = export_revisions_markdown(create_doc(), group_by="kind")

        assert "### Insertions" in output
        assert "### Deletions" in output
        assert "### Format Changes" not in output

    def test_context_line(self) -> None:
        output = export_revisions_markdown(create_doc())
        assert "  - Context: ...Hello **[change]**old world..." in output

    def test_empty_document(self) -> None:
        output = export_revisions_markdown(Document())
        assert output.endswith("*No revisions found.*")


class TestRevisionReport:
    """Tests for generate_revision_report."""

    def test_markdown_report(self) -> None:
        output = generate_revision_report(create_doc())

        assert output.startswith("# Pending Revisions Report")
        assert "### Bob" in output

    def test_json_report(self) -> None:
        doc = create_doc()
        doc.reject_revision("9")

        data = json.loads(generate_revision_report(doc, format="json", title="Review"))

        assert data["title"] == "Review"
        assert "generated_at" in data
        assert [r["id"] for r in data["revisions"]] == ["7"]
        assert data["by_author"] == {"Bob": 1, "Carol": 0}

    def test_unsupported_format(self) -> None:
        with pytest.raises(ValueError, match="Unsupported report format"):
            generate_revision_report(create_doc(), format="pdf")

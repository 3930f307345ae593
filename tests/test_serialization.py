"""
Tests for persisting documents with their tracked revisions.

These tests verify:
- The structured record layout
- Round trips through dictionaries, JSON and files
- Adoption of spans loaded without ledger records
- Validation of malformed input
"""

import json

import pytest

from redline_engine import (
    Document,
    RevisionAuthor,
    RevisionKind,
    RevisionStatus,
    ValidationError,
    document_from_dict,
)

WORD_NS = "http://schemas.openxmlformats.org/wordprocessingml/2006/main"
W = f"{{{WORD_NS}}}"

TRACKED_XML = f"""<w:document xmlns:w="{WORD_NS}"><w:body><w:p>
<w:r><w:t xml:space="preserve">Hello </w:t></w:r>
<w:ins w:id="7" w:author="Bob" w:date="2024-01-01T00:00:00Z"><w:r><w:rPr><w:b/></w:rPr><w:t xml:space="preserve">big </w:t></w:r></w:ins>
<w:del w:id="9" w:author="Carol" w:date="2024-01-02T00:00:00Z"><w:r><w:delText xml:space="preserve">old </w:delText></w:r></w:del>
<w:r><w:t>world</w:t></w:r>
</w:p></w:body></w:document>"""


def leaf(text: str, leaf_type: str = "text", **extra) -> dict:
    record = {"type": leaf_type, "text": text, "format": {}}
    record.update(extra)
    return record


class TestToDict:
    """Tests for the serialized layout."""

    def test_layout(self) -> None:
        data = Document(TRACKED_XML).to_dict()

        assert data["root"]["type"] == "root"
        paragraph = data["root"]["children"][0]
        assert paragraph["type"] == "paragraph"
        assert [(c["type"], c["text"]) for c in paragraph["children"]] == [
            ("text", "Hello "),
            ("insertion", "big "),
            ("deletion", "old "),
            ("text", "world"),
        ]

    def test_span_leaf_fields(self) -> None:
        children = Document(TRACKED_XML).to_dict()["root"]["children"][0]["children"]
        inserted = children[1]

        assert inserted["revision_id"] == "7"
        assert inserted["author"] == {"id": "Bob", "name": "Bob"}
        assert inserted["timestamp"] == "2024-01-01T00:00:00+00:00"
        assert inserted["format"]["bold"] is True
        assert inserted["format"]["italic"] is False
        assert "revision_id" not in children[0]

    def test_revisions_included(self) -> None:
        data = Document(TRACKED_XML).to_dict()

        by_id = {r["id"]: r for r in data["revisions"]}
        assert by_id["7"]["type"] == "insertion"
        assert by_id["9"]["content"] == "old "
        assert by_id["9"]["status"] == "pending"

    def test_revisions_can_be_left_out(self) -> None:
        assert "revisions" not in Document(TRACKED_XML).to_dict(include_revisions=False)


class TestRoundTrip:
    """Tests for reloading serialized documents."""

    def test_dict_round_trip(self) -> None:
        original = Document(TRACKED_XML)
        restored = Document.from_dict(original.to_dict())

        assert restored.get_text() == "Hello big world"
        assert restored.get_text(include_deletions=True) == "Hello big old world"
        assert {r.id for r in restored.get_revisions()} == {"7", "9"}
        assert restored.to_dict() == original.to_dict()

    def test_statuses_survive(self) -> None:
        doc = Document(TRACKED_XML)
        doc.accept_revision("7")

        restored = Document.from_json(doc.to_json())

        assert restored.get_revision("7").status is RevisionStatus.ACCEPTED
        assert restored.get_revision("9").status is RevisionStatus.PENDING
        assert restored.get_text() == "Hello big world"
        assert restored.revision_counts().pending == 1

    def test_ledger_order_survives_tied_timestamps(self) -> None:
        xml = (
            f'<w:document xmlns:w="{WORD_NS}"><w:body><w:p>'
            '<w:ins w:id="1" w:author="Bob" w:date="2024-01-01T00:00:00Z"><w:r><w:t>a</w:t></w:r></w:ins>'
            '<w:ins w:id="2" w:author="Bob" w:date="2024-01-01T00:00:00Z"><w:r><w:t>b</w:t></w:r></w:ins>'
            "</w:p></w:body></w:document>"
        )
        doc = Document(xml)
        assert [r.id for r in doc.get_revisions()] == ["2", "1"]

        restored = Document.from_dict(doc.to_dict())
        assert [r.id for r in restored.get_revisions()] == ["2", "1"]

        again = Document.from_json(restored.to_json())
        assert [r.id for r in again.get_revisions()] == ["2", "1"]

    def test_restored_revisions_can_be_resolved(self) -> None:
        restored = Document.from_json(Document(TRACKED_XML).to_json())

        restored.reject_all_revisions()

        assert restored.get_text() == "Hello old world"

    def test_adoption_without_records(self) -> None:
        """Spans loaded without ledger records become pending revisions."""
        data = Document(TRACKED_XML).to_dict(include_revisions=False)
        restored = Document.from_dict(data)

        revisions = {r.id: r for r in restored.get_revisions()}
        assert revisions["7"].kind is RevisionKind.INSERTION
        assert revisions["7"].content == "big "
        assert revisions["7"].author.name == "Bob"
        assert revisions["9"].status is RevisionStatus.PENDING

    def test_new_ids_follow_loaded_ids(self) -> None:
        doc = Document(TRACKED_XML, author=RevisionAuthor(id="alice", name="Alice"))
        doc.enable_tracking()
        doc.caret_at_end()

        result = doc.insert_text("!")

        assert result.revision_ids == ["10"]

    def test_adjacent_leaves_merge_into_one_span(self) -> None:
        author = {"id": "bob", "name": "Bob"}
        data = {
            "root": {
                "type": "root",
                "children": [
                    {
                        "type": "paragraph",
                        "children": [
                            leaf("plain "),
                            leaf("bold", "insertion", revision_id="3", author=author,
                                 format={"bold": True}),
                            leaf(" text", "insertion", revision_id="3", author=author),
                        ],
                    }
                ],
            }
        }
        doc = Document.from_dict(data)

        assert len(doc.span_index.spans_for("3")) == 1
        assert doc.get_revision("3").content == "bold text"
        assert doc.get_revision("3").author.id == "bob"

    def test_file_round_trip_json(self, tmp_path) -> None:
        path = tmp_path / "doc.json"
        doc = Document(TRACKED_XML)
        doc.accept_revision("9")
        doc.save(path)

        loaded = Document(path)

        assert loaded.path == path
        assert loaded.get_revision("9").status is RevisionStatus.ACCEPTED
        assert loaded.get_text(include_deletions=True) == "Hello big world"
        assert json.loads(path.read_text(encoding="utf-8"))["root"]["type"] == "root"

    def test_file_round_trip_xml(self, tmp_path) -> None:
        path = tmp_path / "doc.xml"
        Document(TRACKED_XML).save(path)

        loaded = Document(path)

        assert path.read_bytes().startswith(b"<?xml")
        assert loaded.get_text(include_deletions=True) == "Hello big old world"
        assert loaded.revision_counts().pending == 2

    def test_save_in_place(self, tmp_path) -> None:
        path = tmp_path / "doc.xml"
        Document(TRACKED_XML).save(path)

        doc = Document(path)
        doc.accept_all_revisions()
        doc.save()

        assert Document(path).get_text(include_deletions=True) == "Hello big world"


class TestValidation:
    """Tests for malformed serialized documents."""

    def test_missing_root(self) -> None:
        with pytest.raises(ValidationError, match="'root' node"):
            document_from_dict({"children": []})

    def test_unknown_leaf_type(self) -> None:
        data = {"root": {"children": [{"type": "paragraph", "children": [leaf("x", "comment")]}]}}
        with pytest.raises(ValidationError, match="Unknown leaf type"):
            Document.from_dict(data)

    def test_missing_revision_id(self) -> None:
        data = {"root": {"children": [{"type": "paragraph", "children": [leaf("x", "insertion")]}]}}
        with pytest.raises(ValidationError, match="revision_id"):
            Document.from_dict(data)

    def test_unsupported_node(self) -> None:
        data = {"root": {"children": [{"type": "table"}]}}
        with pytest.raises(ValidationError, match="Unsupported node type"):
            Document.from_dict(data)

    def test_invalid_json(self) -> None:
        with pytest.raises(ValidationError, match="Failed to parse JSON"):
            Document.from_json("{not json")

    def test_duplicate_revision_records(self) -> None:
        data = Document(TRACKED_XML).to_dict()
        data["revisions"].append(dict(data["revisions"][0]))

        with pytest.raises(ValidationError, match="already in the ledger"):
            Document.from_dict(data)

    def test_bad_revision_record(self) -> None:
        data = Document(TRACKED_XML).to_dict()
        data["revisions"][0]["type"] = "comment"

        with pytest.raises(ValidationError):
            Document.from_dict(data)

"""Tests for the redline command-line interface."""

import json

from typer.testing import CliRunner

from redline_engine import Document, RevisionStatus, __version__
from redline_engine.cli import app

runner = CliRunner()

WORD_NS = "http://schemas.openxmlformats.org/wordprocessingml/2006/main"

TRACKED_XML = f"""<w:document xmlns:w="{WORD_NS}"><w:body><w:p>
<w:r><w:t xml:space="preserve">Hello </w:t></w:r>
<w:ins w:id="7" w:author="Bob" w:date="2024-01-01T00:00:00Z"><w:r><w:t xml:space="preserve">big </w:t></w:r></w:ins>
<w:del w:id="9" w:author="Carol" w:date="2024-01-02T00:00:00Z"><w:r><w:delText xml:space="preserve">old </w:delText></w:r></w:del>
<w:r><w:t>world</w:t></w:r>
</w:p></w:body></w:document>"""


def write_doc(tmp_path, name: str = "doc.xml"):
    path = tmp_path / name
    path.write_text(TRACKED_XML, encoding="utf-8")
    return path


def test_version() -> None:
    result = runner.invoke(app, ["--version"])

    assert result.exit_code == 0
    assert f"redline version {__version__}" in result.output


def test_help_lists_commands() -> None:
    result = runner.invoke(app, ["--help"])

    assert result.exit_code == 0
    for command in ("text", "info", "list", "accept", "reject-all", "apply", "export"):
        assert command in result.output


class TestTextCommand:
    """Tests for `redline text`."""

    def test_default_view(self, tmp_path) -> None:
        result = runner.invoke(app, ["text", str(write_doc(tmp_path))])

        assert result.exit_code == 0
        assert result.output.strip() == "Hello big world"

    def test_show_deletions(self, tmp_path) -> None:
        result = runner.invoke(app, ["text", str(write_doc(tmp_path)), "--show-deletions"])

        assert result.output.strip() == "Hello big old world"

    def test_original_view(self, tmp_path) -> None:
        result = runner.invoke(app, ["text", str(write_doc(tmp_path)), "--view", "original"])

        assert result.exit_code == 0
        assert result.output.strip() == "Hello old world"

    def test_missing_file(self, tmp_path) -> None:
        result = runner.invoke(app, ["text", str(tmp_path / "missing.xml")])

        assert result.exit_code == 1
        assert "Error: Document not found" in result.output


def test_info(tmp_path) -> None:
    result = runner.invoke(app, ["info", str(write_doc(tmp_path))])

    assert result.exit_code == 0
    assert "Paragraphs: 1" in result.output
    assert "Tracked spans: 2" in result.output
    assert "Revisions: 2 revisions (2 pending, 0 accepted, 0 rejected)" in result.output
    assert "Authors: Bob, Carol" in result.output


class TestListCommand:
    """Tests for `redline list`."""

    def test_list_all(self, tmp_path) -> None:
        result = runner.invoke(app, ["list", str(write_doc(tmp_path))])

        assert result.exit_code == 0
        lines = result.output.strip().splitlines()
        assert lines == [
            "9\tdeletion\tpending\tCarol\t'old '",
            "7\tinsertion\tpending\tBob\t'big '",
        ]

    def test_list_filtered(self, tmp_path) -> None:
        result = runner.invoke(app, ["list", str(write_doc(tmp_path)), "--kind", "insertion"])

        assert result.output.strip().splitlines() == ["7\tinsertion\tpending\tBob\t'big '"]

    def test_list_empty(self, tmp_path) -> None:
        result = runner.invoke(app, ["list", str(write_doc(tmp_path)), "--author", "nobody"])

        assert "No revisions found." in result.output


class TestResolveCommands:
    """Tests for accept, reject, accept-all and reject-all."""

    def test_accept_saves_in_place(self, tmp_path) -> None:
        path = write_doc(tmp_path)

        result = runner.invoke(app, ["accept", str(path), "7"])

        assert result.exit_code == 0
        assert "7: accepted" in result.output
        doc = Document(path)
        assert doc.get_text(include_deletions=True) == "Hello big old world"
        assert [r.id for r in doc.get_revisions()] == ["9"]

    def test_reject_to_output(self, tmp_path) -> None:
        path = write_doc(tmp_path)
        output = tmp_path / "out.xml"

        result = runner.invoke(app, ["reject", str(path), "9", "-o", str(output)])

        assert result.exit_code == 0
        assert Document(output).get_text() == "Hello big old world"
        assert Document(path).revision_counts().pending == 2

    def test_accept_unknown_revision(self, tmp_path) -> None:
        result = runner.invoke(app, ["accept", str(write_doc(tmp_path)), "404"])

        assert result.exit_code == 1
        assert "Error: 404: unknown_revision" in result.output

    def test_accept_all(self, tmp_path) -> None:
        path = write_doc(tmp_path)
        output = tmp_path / "out.xml"

        result = runner.invoke(app, ["accept-all", str(path), "-o", str(output)])

        assert result.exit_code == 0
        assert "Accepted 1 insertions, 1 deletions" in result.output
        assert Document(output).get_text(include_deletions=True) == "Hello big world"

    def test_reject_all_by_author(self, tmp_path) -> None:
        path = write_doc(tmp_path)

        result = runner.invoke(app, ["reject-all", str(path), "--author", "Bob"])

        assert result.exit_code == 0
        assert "Rejected 1 insertions, 0 deletions" in result.output
        doc = Document(path)
        assert doc.get_text(include_deletions=True) == "Hello old world"
        assert doc.get_revision("9").status is RevisionStatus.PENDING

    def test_json_document_keeps_statuses(self, tmp_path) -> None:
        path = tmp_path / "doc.json"
        Document(TRACKED_XML).save(path)

        result = runner.invoke(app, ["accept", str(path), "7"])

        assert result.exit_code == 0
        assert Document(path).get_revision("7").status is RevisionStatus.ACCEPTED


class TestApplyCommand:
    """Tests for `redline apply`."""

    def test_apply_yaml(self, tmp_path) -> None:
        path = write_doc(tmp_path)
        edits = tmp_path / "edits.yaml"
        edits.write_text(
            "edits:\n"
            "  - type: enable_tracking\n"
            "  - type: select\n"
            "    text: world\n"
            "  - type: insert\n"
            "    text: there\n",
            encoding="utf-8",
        )

        result = runner.invoke(app, ["apply", str(path), str(edits), "--author", "Dana"])

        assert result.exit_code == 0
        assert "Applied 3 edits (0 failed)" in result.output
        doc = Document(path)
        assert doc.get_text() == "Hello big there"
        assert len(doc.get_revisions(author_id="Dana")) == 2

    def test_apply_reports_failures(self, tmp_path) -> None:
        path = write_doc(tmp_path)
        edits = tmp_path / "edits.json"
        edits.write_text(json.dumps({"edits": [{"type": "select", "text": "nowhere"}]}))

        result = runner.invoke(app, ["apply", str(path), str(edits)])

        assert result.exit_code == 0
        assert "Applied 0 edits (1 failed)" in result.output
        assert "Failed: Text not found" in result.output

    def test_apply_noop_is_not_a_failure(self, tmp_path) -> None:
        path = write_doc(tmp_path)
        edits = tmp_path / "edits.yaml"
        edits.write_text(
            "edits:\n  - type: accept\n    id: '7'\n  - type: accept\n    id: '7'\n",
            encoding="utf-8",
        )

        result = runner.invoke(app, ["apply", str(path), str(edits)])

        assert result.exit_code == 0
        assert "Applied 2 edits (0 failed)" in result.output
        assert "Failed:" not in result.output
        assert Document(path).get_text(include_deletions=True) == "Hello big old world"

    def test_apply_missing_edits_file(self, tmp_path) -> None:
        result = runner.invoke(
            app, ["apply", str(write_doc(tmp_path)), str(tmp_path / "missing.yaml")]
        )

        assert result.exit_code == 1
        assert "Error:" in result.output


class TestExportCommand:
    """Tests for `redline export`."""

    def test_export_json(self, tmp_path) -> None:
        result = runner.invoke(app, ["export", str(write_doc(tmp_path)), "--format", "json"])

        assert result.exit_code == 0
        data = json.loads(result.output)
        assert data["counts"]["pending"] == 2

    def test_export_markdown_to_file(self, tmp_path) -> None:
        output = tmp_path / "review.md"

        result = runner.invoke(app, ["export", str(write_doc(tmp_path)), "-o", str(output)])

        assert result.exit_code == 0
        content = output.read_text(encoding="utf-8")
        assert content.startswith("# Tracked Revisions")
        assert "### Bob" in content

    def test_export_bad_format(self, tmp_path) -> None:
        result = runner.invoke(app, ["export", str(write_doc(tmp_path)), "-f", "pdf"])

        assert result.exit_code == 1
        assert "Unsupported format: pdf" in result.output

"""Command-line interface for redline-engine.

Provides commands for reviewing and resolving tracked revisions in documents
from the terminal.
"""

import logging
from pathlib import Path
from typing import Annotated

import typer

from . import Document, __version__
from .export import export_revisions_json, export_revisions_markdown
from .models.revision import RevisionKind, RevisionStatus
from .results import EditStatus
from .settings import Settings
from .visibility import ViewMode

app = typer.Typer(
    name="redline",
    help="Review and resolve tracked revisions from the command line.",
    no_args_is_help=True,
)


def version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        typer.echo(f"redline version {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: Annotated[
        bool | None,
        typer.Option(
            "--version",
            "-v",
            help="Show version and exit.",
            callback=version_callback,
            is_eager=True,
        ),
    ] = None,
    verbose: Annotated[bool, typer.Option("--verbose", help="Log debug output.")] = False,
) -> None:
    """Review and resolve tracked revisions from the command line."""
    if verbose:
        logging.basicConfig(level=logging.DEBUG, format="%(levelname)s %(name)s: %(message)s")


def _save(doc: Document, file: Path, output: Path | None) -> Path:
    output_path = output or file
    doc.save(output_path)
    return output_path


@app.command()
def text(
    file: Annotated[Path, typer.Argument(help="Path to the document (.xml or .json)")],
    show_deletions: Annotated[
        bool,
        typer.Option("--show-deletions/--hide-deletions", help="Show deleted text"),
    ] = False,
    view: Annotated[
        ViewMode, typer.Option("--view", help="View mode")
    ] = ViewMode.ALL_MARKUP,
) -> None:
    """Print the document text."""
    try:
        doc = Document(file, settings=Settings(show_deletions=show_deletions, view_mode=view))
        typer.echo(doc.get_text())
    except Exception as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(1)


@app.command()
def info(
    file: Annotated[Path, typer.Argument(help="Path to the document (.xml or .json)")],
) -> None:
    """Show document information."""
    try:
        doc = Document(file)
        counts = doc.revision_counts()
        paragraphs = doc.get_text(include_deletions=True).split("\n")
        typer.echo(f"File: {file}")
        typer.echo(f"Paragraphs: {len(paragraphs)}")
        typer.echo(f"Tracked spans: {len(doc.tracked_spans())}")
        typer.echo(f"Revisions: {counts}")
        typer.echo(f"Authors: {', '.join(a.name for a in doc.ledger.authors()) or '-'}")
    except Exception as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(1)


@app.command("list")
def list_revisions(
    file: Annotated[Path, typer.Argument(help="Path to the document (.xml or .json)")],
    kind: Annotated[
        RevisionKind | None, typer.Option("--kind", "-k", help="Only this revision type")
    ] = None,
    status: Annotated[
        RevisionStatus | None, typer.Option("--status", "-s", help="Only this status")
    ] = None,
    author: Annotated[str | None, typer.Option("--author", help="Only this author id")] = None,
) -> None:
    """List revisions, newest first."""
    try:
        doc = Document(file)
        revisions = doc.get_revisions(kind=kind, status=status, author_id=author)
        if not revisions:
            typer.echo("No revisions found.")
            return
        for revision in revisions:
            typer.echo(
                f"{revision.id}\t{revision.kind.value}\t{revision.status.value}\t"
                f"{revision.author.name}\t{revision.content!r}"
            )
    except Exception as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(1)


def _resolve_one(file: Path, revision_id: str, output: Path | None, accept: bool) -> None:
    try:
        doc = Document(file)
        if accept:
            result = doc.accept_revision(revision_id)
        else:
            result = doc.reject_revision(revision_id)
        if not result.changed_status:
            typer.echo(f"Error: {result}", err=True)
            raise typer.Exit(1)
        output_path = _save(doc, file, output)
        typer.echo(f"{result}, saved to {output_path}")
    except typer.Exit:
        raise
    except Exception as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(1)


@app.command()
def accept(
    file: Annotated[Path, typer.Argument(help="Path to the document (.xml or .json)")],
    revision_id: Annotated[str, typer.Argument(help="Revision id")],
    output: Annotated[Path | None, typer.Option("--output", "-o", help="Output file path")] = None,
) -> None:
    """Accept one revision."""
    _resolve_one(file, revision_id, output, accept=True)


@app.command()
def reject(
    file: Annotated[Path, typer.Argument(help="Path to the document (.xml or .json)")],
    revision_id: Annotated[str, typer.Argument(help="Revision id")],
    output: Annotated[Path | None, typer.Option("--output", "-o", help="Output file path")] = None,
) -> None:
    """Reject one revision."""
    _resolve_one(file, revision_id, output, accept=False)


@app.command("accept-all")
def accept_all(
    file: Annotated[Path, typer.Argument(help="Path to the document (.xml or .json)")],
    author: Annotated[
        str | None, typer.Option("--author", help="Only revisions by this author id")
    ] = None,
    output: Annotated[Path | None, typer.Option("--output", "-o", help="Output file path")] = None,
) -> None:
    """Accept all pending revisions in the document."""
    try:
        doc = Document(file)
        result = doc.accept_by_author(author) if author else doc.accept_all_revisions()
        output_path = _save(doc, file, output)
        typer.echo(f"{result}, saved to {output_path}")
    except Exception as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(1)


@app.command("reject-all")
def reject_all(
    file: Annotated[Path, typer.Argument(help="Path to the document (.xml or .json)")],
    author: Annotated[
        str | None, typer.Option("--author", help="Only revisions by this author id")
    ] = None,
    output: Annotated[Path | None, typer.Option("--output", "-o", help="Output file path")] = None,
) -> None:
    """Reject all pending revisions in the document."""
    try:
        doc = Document(file)
        result = doc.reject_by_author(author) if author else doc.reject_all_revisions()
        output_path = _save(doc, file, output)
        typer.echo(f"{result}, saved to {output_path}")
    except Exception as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(1)


@app.command()
def apply(
    file: Annotated[Path, typer.Argument(help="Path to the document (.xml or .json)")],
    edits: Annotated[Path, typer.Argument(help="Path to YAML/JSON edits file")],
    output: Annotated[Path | None, typer.Option("--output", "-o", help="Output file path")] = None,
    author: Annotated[
        str | None, typer.Option("--author", help="Default author for changes")
    ] = None,
) -> None:
    """Apply edits from a YAML or JSON file."""
    try:
        doc = Document(file, author=author or "CLI User")
        edit_format = "json" if edits.suffix.lower() == ".json" else "yaml"
        results = doc.apply_edit_file(edits, format=edit_format)
        output_path = _save(doc, file, output)

        failed = [r for r in results if r.status is EditStatus.FAILED]
        typer.echo(
            f"Applied {len(results) - len(failed)} edits ({len(failed)} failed), "
            f"saved to {output_path}"
        )
        for r in failed:
            typer.echo(f"  Failed: {r.message}", err=True)
    except Exception as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(1)


@app.command()
def export(
    file: Annotated[Path, typer.Argument(help="Path to the document (.xml or .json)")],
    format: Annotated[
        str, typer.Option("--format", "-f", help="Output format: json or markdown")
    ] = "markdown",
    output: Annotated[
        Path | None, typer.Option("--output", "-o", help="Write to a file instead of stdout")
    ] = None,
) -> None:
    """Export the revision ledger for review."""
    if format not in ("json", "markdown"):
        typer.echo(f"Error: Unsupported format: {format}", err=True)
        raise typer.Exit(1)

    try:
        doc = Document(file)
        if format == "json":
            report = export_revisions_json(doc)
        else:
            report = export_revisions_markdown(doc, group_by="author")
        if output:
            output.write_text(report, encoding="utf-8")
            typer.echo(f"Exported revisions to {output}")
        else:
            typer.echo(report)
    except Exception as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(1)


if __name__ == "__main__":
    app()

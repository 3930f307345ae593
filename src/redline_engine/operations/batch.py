"""
BatchOperations class for scripted editing sessions.

A batch is a list of steps replayed against a Document: tracking toggles,
author changes, caret and selection moves, edits and resolutions. Batches
come from Python lists or from YAML/JSON edit files.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import TYPE_CHECKING, Any

import yaml

from ..author import RevisionAuthor
from ..errors import TextNotFoundError, ValidationError
from ..results import EditResult, EditStatus
from ..selection import DeleteUnit

if TYPE_CHECKING:
    from ..document import Document


class BatchOperations:
    """Handles batch edit operations.

    The class takes a Document reference and operates on its public methods.

    Example:
        >>> edits = [
        ...     {"type": "enable_tracking"},
        ...     {"type": "select", "text": "world"},
        ...     {"type": "insert", "text": "there"},
        ... ]
        >>> results = doc.apply_edits(edits)
    """

    def __init__(self, document: Document) -> None:
        """Initialize BatchOperations with a Document reference.

        Args:
            document: The Document instance to operate on
        """
        self._document = document

    def apply_edits(
        self, edits: list[dict[str, Any]], stop_on_error: bool = False
    ) -> list[EditResult]:
        """Apply multiple edits in sequence.

        Args:
            edits: List of edit dictionaries, each with a "type" key and the
                parameters of that edit type
            stop_on_error: If True, stop processing on the first failed edit

        Returns:
            List of EditResult objects, one per processed edit
        """
        results = []

        for i, edit in enumerate(edits):
            edit_type = edit.get("type") if isinstance(edit, dict) else None
            if not edit_type:
                results.append(
                    EditResult(
                        EditStatus.FAILED,
                        "unknown",
                        message=f"Edit {i}: Missing 'type' field",
                        error=ValidationError("Missing 'type' field"),
                    )
                )
                if stop_on_error:
                    break
                continue

            result = self._apply_single_edit(edit_type, edit)
            results.append(result)
            if result.status is EditStatus.FAILED and stop_on_error:
                break

        return results

    def _apply_single_edit(self, edit_type: str, edit: dict[str, Any]) -> EditResult:
        # Dispatch table mapping edit types to handler methods
        handlers = {
            "enable_tracking": self._handle_enable_tracking,
            "disable_tracking": self._handle_disable_tracking,
            "set_author": self._handle_set_author,
            "select": self._handle_select,
            "caret": self._handle_caret,
            "insert": self._handle_insert,
            "delete": self._handle_delete,
            "accept": self._handle_resolve,
            "reject": self._handle_resolve,
            "accept_all": self._handle_resolve_all,
            "reject_all": self._handle_resolve_all,
        }

        handler = handlers.get(edit_type)
        if handler is None:
            return EditResult(
                EditStatus.FAILED,
                edit_type,
                message=f"Unknown edit type: {edit_type}",
                error=ValidationError(f"Unknown edit type: {edit_type}"),
            )

        try:
            return handler(edit_type, edit)
        except TextNotFoundError as e:
            return EditResult(EditStatus.FAILED, edit_type, message=f"Text not found: {e}", error=e)
        except (ValidationError, ValueError) as e:
            return EditResult(EditStatus.FAILED, edit_type, message=f"Invalid edit: {e}", error=e)

    def _missing(self, edit_type: str, name: str) -> EditResult:
        return EditResult(
            EditStatus.FAILED,
            edit_type,
            message=f"Missing required parameter: '{name}'",
            error=ValidationError(f"Missing required parameter: '{name}'"),
        )

    def _handle_enable_tracking(self, edit_type: str, edit: dict[str, Any]) -> EditResult:
        self._document.enable_tracking()
        return EditResult(EditStatus.APPLIED, edit_type, "Tracking enabled")

    def _handle_disable_tracking(self, edit_type: str, edit: dict[str, Any]) -> EditResult:
        self._document.disable_tracking()
        return EditResult(EditStatus.APPLIED, edit_type, "Tracking disabled")

    def _handle_set_author(self, edit_type: str, edit: dict[str, Any]) -> EditResult:
        """Handle set_author: either "author" (name or mapping) or "id"/"name" keys."""
        data = edit.get("author", {k: edit[k] for k in ("id", "name", "email", "color") if k in edit})
        if not data:
            return self._missing(edit_type, "author")
        if isinstance(data, str):
            author = RevisionAuthor(id=data, name=data)
        else:
            author = RevisionAuthor.from_dict(data)
        self._document.set_current_author(author)
        return EditResult(EditStatus.APPLIED, edit_type, f"Author set to {author}")

    def _handle_select(self, edit_type: str, edit: dict[str, Any]) -> EditResult:
        text = edit.get("text")
        if not text:
            return self._missing(edit_type, "text")
        occurrence = int(edit.get("occurrence", 1))
        self._document.select_text(text, occurrence=occurrence)
        return EditResult(EditStatus.APPLIED, edit_type, f"Selected '{text}'")

    def _handle_caret(self, edit_type: str, edit: dict[str, Any]) -> EditResult:
        if edit.get("end"):
            self._document.caret_at_end()
            return EditResult(EditStatus.APPLIED, edit_type, "Caret moved to the end")
        if "offset" not in edit:
            return self._missing(edit_type, "offset")
        offset = int(edit["offset"])
        self._document.set_caret(self._document.position_at(offset))
        return EditResult(EditStatus.APPLIED, edit_type, f"Caret moved to {offset}")

    def _handle_insert(self, edit_type: str, edit: dict[str, Any]) -> EditResult:
        text = edit.get("text")
        if not text:
            return self._missing(edit_type, "text")
        return self._document.insert_text(str(text))

    def _handle_delete(self, edit_type: str, edit: dict[str, Any]) -> EditResult:
        unit = edit.get("unit", "character")
        direction = edit.get("direction", "backward")
        if direction not in ("backward", "forward"):
            raise ValidationError(f"Invalid direction: {direction}")
        forward = direction == "forward"

        if unit == "selection":
            return self._document.delete_selection()
        delete_unit = DeleteUnit(unit)
        if delete_unit is DeleteUnit.CHARACTER:
            return self._document.delete_character(forward=forward)
        if delete_unit is DeleteUnit.WORD:
            return self._document.delete_word(forward=forward)
        return self._document.delete_line(forward=forward)

    def _handle_resolve(self, edit_type: str, edit: dict[str, Any]) -> EditResult:
        revision_id = edit.get("id")
        if revision_id is None:
            return self._missing(edit_type, "id")
        if edit_type == "accept":
            result = self._document.accept_revision(str(revision_id))
        else:
            result = self._document.reject_revision(str(revision_id))
        status = EditStatus.APPLIED if result.changed_status else EditStatus.NO_OP
        return EditResult(status, edit_type, str(result), revision_ids=[result.revision_id])

    def _handle_resolve_all(self, edit_type: str, edit: dict[str, Any]) -> EditResult:
        author_id = edit.get("author")
        accept = edit_type == "accept_all"
        if author_id is None:
            result = (
                self._document.accept_all_revisions()
                if accept
                else self._document.reject_all_revisions()
            )
        else:
            result = (
                self._document.accept_by_author(str(author_id))
                if accept
                else self._document.reject_by_author(str(author_id))
            )
        status = EditStatus.APPLIED if result.total else EditStatus.NO_OP
        return EditResult(status, edit_type, str(result))

    def apply_edit_file(
        self, path: str | Path, format: str = "yaml", stop_on_error: bool = False
    ) -> list[EditResult]:
        """Apply edits from a YAML or JSON file.

        Args:
            path: Path to the edit file
            format: File format - "yaml" or "json" (default: "yaml")
            stop_on_error: If True, stop processing on the first failed edit

        The file holds an "edits" list, for example:

            ```yaml
            edits:
              - type: enable_tracking
              - type: select
                text: world
              - type: insert
                text: there
            ```

        Raises:
            FileNotFoundError: If the file does not exist
            ValidationError: If the file cannot be parsed or has the wrong shape
        """
        file_path = Path(path)
        if not file_path.exists():
            raise FileNotFoundError(f"Edit file not found: {path}")

        try:
            with open(file_path, encoding="utf-8") as f:
                if format == "yaml":
                    data = yaml.safe_load(f)
                elif format == "json":
                    data = json.load(f)
                else:
                    raise ValidationError(f"Unsupported format: {format}")
        except yaml.YAMLError as e:
            raise ValidationError(f"Failed to parse YAML file: {e}") from e
        except json.JSONDecodeError as e:
            raise ValidationError(f"Failed to parse JSON file: {e}") from e

        if not isinstance(data, dict):
            raise ValidationError("Edit file must contain a dictionary/object")
        if "edits" not in data:
            raise ValidationError("Edit file must contain an 'edits' key")
        edits = data["edits"]
        if not isinstance(edits, list):
            raise ValidationError("'edits' must be a list")

        return self.apply_edits(edits, stop_on_error=stop_on_error)

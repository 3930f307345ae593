"""
Track changes interception for edit commands.

This module provides the TrackChangesInterceptor class. Its handlers are
registered on the document's command bus at CRITICAL priority. While
tracking is enabled they take over insertion and deletion commands and turn
them into tracked spans; while it is disabled they return None so the
native handlers run.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from ..commands import CommandPriority, EditCommand
from ..results import EditResult, EditStatus
from ..selection import (
    DeleteUnit,
    Position,
    Selection,
    deletion_range,
    is_deleted_run,
    offset_to_position,
    paragraph_text,
    position_to_offset,
)
from ..tree import span_runs
from .spans import SpanSurgery

if TYPE_CHECKING:
    from collections.abc import Callable

    from ..author import RevisionAuthor
    from ..document import Document


DELETE_UNITS = {
    EditCommand.DELETE_CHARACTER: DeleteUnit.CHARACTER,
    EditCommand.DELETE_WORD: DeleteUnit.WORD,
    EditCommand.DELETE_LINE: DeleteUnit.LINE,
}


class TrackChangesInterceptor:
    """Turns edit commands into tracked insertions and deletions.

    Attributes:
        _document: Reference to the parent Document instance
        _surgery: Shared span surgery helper
    """

    def __init__(self, document: Document, surgery: SpanSurgery) -> None:
        self._document = document
        self._surgery = surgery

    def register(self) -> list[Callable[[], None]]:
        """Register the handlers on the document's command bus.

        Returns:
            Functions that unregister each handler
        """
        bus = self._document.commands
        unregister = [
            bus.register(EditCommand.INSERT_TEXT, self.insert_text, CommandPriority.CRITICAL),
            bus.register(EditCommand.DELETE_SELECTION, self.delete_selection, CommandPriority.CRITICAL),
        ]
        for command in DELETE_UNITS:
            unregister.append(
                bus.register(command, self._delete_handler(command), CommandPriority.CRITICAL)
            )
        return unregister

    def _delete_handler(self, command: EditCommand) -> Callable[[dict[str, Any]], EditResult | None]:
        def handler(payload: dict[str, Any]) -> EditResult | None:
            return self.delete(command, payload)

        return handler

    @property
    def _author(self) -> RevisionAuthor:
        return self._document.get_current_author()

    # Insertion

    def insert_text(self, payload: dict[str, Any]) -> EditResult | None:
        """Insert text as a tracked insertion at the caret.

        An active selection is converted to deletions first and the text is
        inserted immediately before the first new deletion.
        """
        if not self._document.is_tracking_enabled():
            return None
        edit_type = EditCommand.INSERT_TEXT.value
        stale = self._surgery.stale_result(edit_type, tracked=True)
        if stale is not None:
            return stale

        text = payload.get("text", "")
        if not text:
            return EditResult(EditStatus.NO_OP, edit_type, "Nothing to insert", tracked=True)

        revision_ids: list[str] = []
        selection = self._document.selection
        caret = selection.anchor
        if not selection.is_collapsed:
            removed, caret = self._surgery.delete_selection(selection, self._author)
            revision_ids.extend(removed.revision_ids)

        revision_id, caret = self._insert_at(caret, text)
        self._document.selection = Selection.caret(caret)
        revision_ids.insert(0, revision_id)
        return EditResult(
            EditStatus.APPLIED,
            edit_type,
            f"Inserted '{text}'",
            tracked=True,
            revision_ids=revision_ids,
        )

    def _insert_at(self, position: Position, text: str) -> tuple[str, Position]:
        # A new span and revision per insert; surrounding pending insertions
        # are split, not extended.
        parent, index, properties = self._surgery.slot_for(position)
        span, revision_id = self._surgery.new_insertion(
            parent, index, text, self._author, properties
        )
        return revision_id, Position(span_runs(span)[0], len(text))

    # Deletion

    def delete(self, command: EditCommand, payload: dict[str, Any]) -> EditResult | None:
        """Delete a character, word or line as a tracked deletion.

        With a non-collapsed selection the selection is deleted instead.
        """
        if not self._document.is_tracking_enabled():
            return None
        edit_type = command.value
        stale = self._surgery.stale_result(edit_type, tracked=True)
        if stale is not None:
            return stale

        selection = self._document.selection
        if not selection.is_collapsed:
            return self._delete_selection(edit_type, selection)

        forward = bool(payload.get("forward", False))
        position = selection.anchor
        if position.in_run and is_deleted_run(position.node):
            return EditResult(EditStatus.NO_OP, edit_type, "Text is already deleted", tracked=True)

        paragraph, offset = position_to_offset(position)
        start, end = deletion_range(paragraph_text(paragraph), offset, DELETE_UNITS[command], forward)
        if start == end:
            return EditResult(EditStatus.NO_OP, edit_type, "Nothing to delete", tracked=True)

        result = self._surgery.track_range(paragraph, start, end, self._author)
        if result.deletions:
            caret = (
                Position.after(result.deletions[-1])
                if forward
                else Position.before(result.deletions[0])
            )
        else:
            caret = offset_to_position(paragraph, start)
        self._document.selection = Selection.caret(caret)

        return EditResult(
            EditStatus.APPLIED,
            edit_type,
            f"Deleted {end - start} character(s)",
            tracked=True,
            revision_ids=result.revision_ids,
        )

    def delete_selection(self, payload: dict[str, Any]) -> EditResult | None:
        if not self._document.is_tracking_enabled():
            return None
        edit_type = EditCommand.DELETE_SELECTION.value
        stale = self._surgery.stale_result(edit_type, tracked=True)
        if stale is not None:
            return stale
        selection = self._document.selection
        if selection.is_collapsed:
            return EditResult(EditStatus.NO_OP, edit_type, "Selection is empty", tracked=True)
        return self._delete_selection(edit_type, selection)

    def _delete_selection(self, edit_type: str, selection: Selection) -> EditResult:
        result, caret = self._surgery.delete_selection(selection, self._author)
        self._document.selection = Selection.caret(caret)
        if not result.changed:
            return EditResult(
                EditStatus.NO_OP, edit_type, "Selection is already deleted", tracked=True
            )
        return EditResult(
            EditStatus.APPLIED,
            edit_type,
            f"Deleted selection as {len(result.revision_ids)} deletion(s)",
            tracked=True,
            revision_ids=result.revision_ids,
        )

"""
Native (untracked) edit handlers.

These handlers run at EDITOR priority and edit runs directly. They create no
spans and no revisions. Text cut out of a pending insertion shrinks that
insertion, and text typed inside one extends it, so the ledger snapshot is
kept in step.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from ..commands import CommandPriority, EditCommand
from ..constants import w
from ..results import EditResult, EditStatus
from ..selection import (
    Position,
    Selection,
    deletion_range,
    is_deleted_run,
    offset_to_position,
    paragraph_text,
    position_to_offset,
)
from ..tree import enclosing_span, is_insertion, is_run, make_run, run_text, set_run_text
from .interception import DELETE_UNITS
from .spans import SpanSurgery

if TYPE_CHECKING:
    from collections.abc import Callable

    from ..document import Document


class NativeEditing:
    """Applies edit commands straight to the tree.

    Attributes:
        _document: Reference to the parent Document instance
        _surgery: Shared span surgery helper
    """

    def __init__(self, document: Document, surgery: SpanSurgery) -> None:
        self._document = document
        self._surgery = surgery

    def register(self) -> list[Callable[[], None]]:
        bus = self._document.commands
        unregister = [
            bus.register(EditCommand.INSERT_TEXT, self.insert_text, CommandPriority.EDITOR),
            bus.register(EditCommand.DELETE_SELECTION, self.delete_selection, CommandPriority.EDITOR),
        ]
        for command in DELETE_UNITS:
            unregister.append(
                bus.register(command, self._delete_handler(command), CommandPriority.EDITOR)
            )
        return unregister

    def _delete_handler(self, command: EditCommand) -> Callable[[dict[str, Any]], EditResult]:
        def handler(payload: dict[str, Any]) -> EditResult:
            return self.delete(command, payload)

        return handler

    def insert_text(self, payload: dict[str, Any]) -> EditResult:
        edit_type = EditCommand.INSERT_TEXT.value
        stale = self._surgery.stale_result(edit_type, tracked=False)
        if stale is not None:
            return stale
        text = payload.get("text", "")
        if not text:
            return EditResult(EditStatus.NO_OP, edit_type, "Nothing to insert")

        selection = self._document.selection
        caret = selection.anchor
        if not selection.is_collapsed:
            _, caret = self._surgery.delete_selection(selection, None)

        self._document.selection = Selection.caret(self._insert_at(caret, text))
        return EditResult(EditStatus.APPLIED, edit_type, f"Inserted '{text}'")

    def _insert_at(self, position: Position, text: str) -> Position:
        node = position.node
        if position.in_run and not is_deleted_run(node):
            current = run_text(node)
            offset = max(0, min(position.offset, len(current)))
            set_run_text(node, current[:offset] + text + current[offset:])
            span = enclosing_span(node)
            if is_insertion(span):
                self._surgery.ensure_record(span)
                self._surgery.sync_content(span.get(w("id")))
            return Position(node, offset + len(text))

        parent, index, properties = self._surgery.slot_for(position)
        previous = parent[index - 1] if index > 0 else None
        if previous is not None and is_run(previous):
            current = run_text(previous)
            set_run_text(previous, current + text)
            return Position(previous, len(current) + len(text))

        run = make_run(text, properties)
        parent.insert(index, run)
        return Position(run, len(text))

    def delete(self, command: EditCommand, payload: dict[str, Any]) -> EditResult:
        edit_type = command.value
        stale = self._surgery.stale_result(edit_type, tracked=False)
        if stale is not None:
            return stale

        selection = self._document.selection
        if not selection.is_collapsed:
            return self._delete_selection(edit_type, selection)

        forward = bool(payload.get("forward", False))
        paragraph, offset = position_to_offset(selection.anchor)
        start, end = deletion_range(paragraph_text(paragraph), offset, DELETE_UNITS[command], forward)
        if start == end:
            return EditResult(EditStatus.NO_OP, edit_type, "Nothing to delete")

        self._surgery.cut_range(paragraph, start, end)
        self._document.selection = Selection.caret(offset_to_position(paragraph, start))
        return EditResult(EditStatus.APPLIED, edit_type, f"Deleted {end - start} character(s)")

    def delete_selection(self, payload: dict[str, Any]) -> EditResult:
        edit_type = EditCommand.DELETE_SELECTION.value
        stale = self._surgery.stale_result(edit_type, tracked=False)
        if stale is not None:
            return stale
        selection = self._document.selection
        if selection.is_collapsed:
            return EditResult(EditStatus.NO_OP, edit_type, "Selection is empty")
        return self._delete_selection(edit_type, selection)

    def _delete_selection(self, edit_type: str, selection: Selection) -> EditResult:
        result, caret = self._surgery.delete_selection(selection, None)
        self._document.selection = Selection.caret(caret)
        if not result.changed:
            return EditResult(EditStatus.NO_OP, edit_type, "Nothing to delete")
        return EditResult(EditStatus.APPLIED, edit_type, "Deleted selection")

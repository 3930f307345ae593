"""
Command bus for edit intents.

Edit requests are dispatched as commands. Handlers are tried from the
highest priority down; the first one that returns an EditResult handles the
command, and a handler returning None passes it on. The track changes layer
registers at CRITICAL priority so it sees every edit before the native
handlers registered at EDITOR priority.
"""

import itertools
import logging
from collections.abc import Callable
from enum import Enum, IntEnum
from typing import Any

from .results import EditResult

logger = logging.getLogger(__name__)


class EditCommand(Enum):
    """Edit intents the document understands."""

    INSERT_TEXT = "insert_text"
    DELETE_CHARACTER = "delete_character"
    DELETE_WORD = "delete_word"
    DELETE_LINE = "delete_line"
    DELETE_SELECTION = "delete_selection"


class CommandPriority(IntEnum):
    EDITOR = 0
    LOW = 1
    NORMAL = 2
    HIGH = 3
    CRITICAL = 4


CommandHandler = Callable[[dict[str, Any]], EditResult | None]


class CommandBus:
    """Priority-ordered registry of command handlers.

    Example:
        >>> bus = CommandBus()
        >>> unregister = bus.register(EditCommand.INSERT_TEXT, handler, CommandPriority.HIGH)
        >>> bus.dispatch(EditCommand.INSERT_TEXT, {"text": "Hi"})
        >>> unregister()
    """

    def __init__(self) -> None:
        self._handlers: dict[EditCommand, list[tuple[int, int, CommandHandler]]] = {}
        self._order = itertools.count()

    def register(
        self,
        command: EditCommand,
        handler: CommandHandler,
        priority: CommandPriority = CommandPriority.NORMAL,
    ) -> Callable[[], None]:
        """Register a handler and return a function that unregisters it.

        Handlers with equal priority run in registration order.
        """
        entry = (int(priority), next(self._order), handler)
        entries = self._handlers.setdefault(command, [])
        entries.append(entry)
        entries.sort(key=lambda item: (-item[0], item[1]))

        def unregister() -> None:
            if entry in entries:
                entries.remove(entry)

        return unregister

    def handlers(self, command: EditCommand) -> list[CommandHandler]:
        return [handler for _, _, handler in self._handlers.get(command, [])]

    def dispatch(self, command: EditCommand, payload: dict[str, Any] | None = None) -> EditResult | None:
        """Run handlers for a command until one of them handles it.

        Returns:
            The handling handler's result, or None if nothing handled it
        """
        payload = payload or {}
        for handler in self.handlers(command):
            result = handler(payload)
            if result is not None:
                return result
        logger.debug("No handler took %s", command.value)
        return None

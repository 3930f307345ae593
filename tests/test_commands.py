"""Tests for the command bus and its use by Document."""

from redline_engine import CommandBus, CommandPriority, Document, EditCommand, EditResult, EditStatus

WORD_NS = "http://schemas.openxmlformats.org/wordprocessingml/2006/main"
SIMPLE_XML = f'<w:document xmlns:w="{WORD_NS}"><w:body><w:p><w:r><w:t>Hello</w:t></w:r></w:p></w:body></w:document>'


def _result(name: str) -> EditResult:
    return EditResult(EditStatus.APPLIED, name)


class TestCommandBus:
    """Tests for handler ordering and dispatch."""

    def test_highest_priority_runs_first(self) -> None:
        bus = CommandBus()
        bus.register(EditCommand.INSERT_TEXT, lambda p: _result("editor"), CommandPriority.EDITOR)
        bus.register(EditCommand.INSERT_TEXT, lambda p: _result("critical"), CommandPriority.CRITICAL)

        assert bus.dispatch(EditCommand.INSERT_TEXT).edit_type == "critical"

    def test_none_passes_to_next_handler(self) -> None:
        bus = CommandBus()
        calls = []

        def passing(payload):
            calls.append(payload["text"])
            return None

        bus.register(EditCommand.INSERT_TEXT, passing, CommandPriority.HIGH)
        bus.register(EditCommand.INSERT_TEXT, lambda p: _result("low"), CommandPriority.LOW)

        assert bus.dispatch(EditCommand.INSERT_TEXT, {"text": "x"}).edit_type == "low"
        assert calls == ["x"]

    def test_equal_priority_keeps_registration_order(self) -> None:
        bus = CommandBus()
        bus.register(EditCommand.DELETE_WORD, lambda p: _result("first"))
        bus.register(EditCommand.DELETE_WORD, lambda p: _result("second"))

        assert bus.dispatch(EditCommand.DELETE_WORD).edit_type == "first"

    def test_unregister(self) -> None:
        bus = CommandBus()
        unregister = bus.register(EditCommand.DELETE_LINE, lambda p: _result("gone"))
        unregister()
        unregister()

        assert bus.handlers(EditCommand.DELETE_LINE) == []
        assert bus.dispatch(EditCommand.DELETE_LINE) is None

    def test_commands_are_independent(self) -> None:
        bus = CommandBus()
        bus.register(EditCommand.INSERT_TEXT, lambda p: _result("insert"))

        assert bus.dispatch(EditCommand.DELETE_CHARACTER) is None


class TestDocumentCommands:
    """Tests for host handlers on a Document's bus."""

    def test_document_registers_tracking_and_native_handlers(self) -> None:
        doc = Document(SIMPLE_XML)
        handlers = doc.commands.handlers(EditCommand.INSERT_TEXT)

        assert len(handlers) == 2

    def test_host_handler_runs_when_tracking_is_off(self) -> None:
        """Between the tracking layer and the native handlers."""
        doc = Document(SIMPLE_XML)
        doc.commands.register(
            EditCommand.INSERT_TEXT,
            lambda p: EditResult(EditStatus.NO_OP, "insert_text", "blocked"),
            CommandPriority.HIGH,
        )
        doc.caret_at_end()

        result = doc.insert_text("!")
        assert result.message == "blocked"
        assert doc.get_text() == "Hello"

        doc.enable_tracking()
        result = doc.insert_text("!")
        assert result.tracked is True
        assert doc.get_text() == "Hello!"

    def test_dispatch_by_command(self) -> None:
        doc = Document(SIMPLE_XML)
        doc.caret_at_end()

        result = doc.dispatch(EditCommand.DELETE_CHARACTER, {"forward": False})

        assert result.success
        assert result.tracked is False
        assert doc.get_text() == "Hell"

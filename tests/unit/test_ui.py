"""Unit tests for the terminal transcript and keyboard controls."""

import asyncio
import io
from unittest.mock import patch

import pytest
from rich.console import Console

from conftest import settle

from bilingo.models.connection import ConnectionStatus
from bilingo.models.transcript import EntryRole, EntryStatus
from bilingo.transcript.ledger import TranscriptLedger
from bilingo.transcript.publisher import TranscriptPublisher
from bilingo.ui.keyboard_input import QUIT_KEY, TALK_KEY, KeyboardInputHandler
from bilingo.ui.transcript_console import TranscriptConsole


@pytest.fixture
def output():
    return io.StringIO()


@pytest.fixture
def console(output):
    printer = TranscriptConsole("transcript_console_test", Console(file=output, width=120, color_system=None))
    printer.start()
    yield printer
    printer.stop()


@pytest.fixture
def ledger_for_console():
    return TranscriptLedger(on_change=TranscriptPublisher("transcript_console_test").publish_entry)


@pytest.mark.unit
class TestTranscriptConsole:

    def test_prints_finished_entries_once(self, console, output, ledger_for_console):
        ledger = ledger_for_console
        ledger.create("item_0000000001", EntryRole.USER, "你好")
        ledger.set_status("item_0000000001", EntryStatus.DONE)
        ledger.replace("item_0000000001", "你好!")

        lines = output.getvalue().splitlines()
        assert "You 你好" in lines
        assert "You 你好!" not in lines

    def test_in_progress_entries_are_not_printed(self, console, output, ledger_for_console):
        ledger_for_console.create("item_0000000001", EntryRole.ASSISTANT, "Hel")
        ledger_for_console.append_delta("item_0000000001", "lo")

        assert "Translation" not in output.getvalue()

    def test_hidden_entries_are_not_printed(self, console, output, ledger_for_console):
        ledger_for_console.create("item_0000000001", EntryRole.USER, "")
        ledger_for_console.hide("item_0000000001")
        ledger_for_console.set_status("item_0000000001", EntryStatus.DONE)

        assert "You" not in output.getvalue()

    def test_failed_entry(self, console, output, ledger_for_console):
        ledger_for_console.create("item_0000000001", EntryRole.USER, "")
        ledger_for_console.set_status("item_0000000001", EntryStatus.ERROR)

        assert "You (failed)" in output.getvalue()

    def test_breadcrumb(self, console, output, ledger_for_console):
        ledger_for_console.add_breadcrumb("Agent: interpreter")

        assert "• Agent: interpreter" in output.getvalue()

    def test_printed_ids_are_bounded(self, output, ledger_for_console):
        printer = TranscriptConsole("transcript_console_test", Console(file=output, width=120, color_system=None),
                                    max_remembered=2)
        printer.start()
        try:
            for index in range(3):
                ledger_for_console.add_breadcrumb(f"notice {index}")
            newest = ledger_for_console.entries()[-1].entry_id
            ledger_for_console.replace(newest, "notice 2 corrected")
        finally:
            printer.stop()

        assert len(printer._printed) == 2
        assert "corrected" not in output.getvalue()

    def test_status(self, console, output):
        console.on_status(ConnectionStatus.CONNECTING)

        assert "[connecting]" in output.getvalue()


@pytest.mark.unit
class TestKeyboardInputHandler:

    def test_keys_are_delivered_on_the_loop(self):
        received = []

        async def scenario():
            handler = KeyboardInputHandler(asyncio.get_event_loop(), received.append)
            keys = iter([TALK_KEY, None, "c", "\x03", "r"])
            handler.running = True
            handler._input_loop(lambda: next(keys))
            await settle()

        asyncio.run(scenario())

        assert received == [TALK_KEY, "c", QUIT_KEY]

    def test_end_of_input_quits(self):
        received = []

        def closed():
            raise EOFError

        async def scenario():
            handler = KeyboardInputHandler(asyncio.get_event_loop(), received.append)
            handler.running = True
            handler._input_loop(closed)
            await settle()

        asyncio.run(scenario())

        assert received == [QUIT_KEY]

    def test_line_input_fallback(self):
        handler = KeyboardInputHandler(None, lambda key: None)

        with patch("sys.stdin", io.StringIO("\nCancel\n")):
            assert handler._read_line_key() == TALK_KEY
            assert handler._read_line_key() == "c"
            with pytest.raises(EOFError):
                handler._read_line_key()

"""Unit tests for the command line entry point."""

import logging
from unittest.mock import Mock, patch

import pytest

from bilingo.config import BilingoConfig
from bilingo.main import Server, main, setup_logging
from bilingo.ui.keyboard_input import CANCEL_KEY, QUIT_KEY, RECONNECT_KEY, TALK_KEY


@pytest.fixture
def server():
    with patch("bilingo.main.setup_logging"):
        server = Server(None)
    server.session = Mock(name="session")
    server.console = Mock(name="console")
    server.should_exit = Mock(name="should_exit")
    return server


@pytest.fixture
def restore_root_logger():
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    yield
    for handler in root.handlers:
        handler.close()
    root.handlers[:] = handlers
    root.setLevel(level)


@pytest.mark.unit
class TestMain:

    def test_version(self, capsys):
        with pytest.raises(SystemExit) as exc_info:
            main(["--version"])

        assert exc_info.value.code == 0
        assert "bilingo" in capsys.readouterr().out

    def test_missing_config_file(self, tmp_path, capsys):
        assert main(["--config", str(tmp_path / "missing.yaml")]) == 1
        assert "Configuration error" in capsys.readouterr().err

    def test_missing_api_key(self, monkeypatch, capsys):
        monkeypatch.delenv("OPENAI_API_KEY", raising=False)

        with patch("bilingo.main.setup_logging"):
            assert main([]) == 1

        assert "OPENAI_API_KEY" in capsys.readouterr().err

    def test_setup_logging(self, tmp_path, restore_root_logger):
        log_file = tmp_path / "logs" / "bilingo.log"
        config = BilingoConfig(overrides={"logging": {"file_path": str(log_file)}})

        setup_logging(config, "DEBUG")
        logging.getLogger("bilingo.test").debug("written to file")

        root = logging.getLogger()
        assert root.level == logging.DEBUG
        assert [type(h).__name__ for h in root.handlers] == ["FileHandler", "StreamHandler"]
        assert root.handlers[1].level == logging.WARNING
        root.handlers[0].flush()
        assert "written to file" in log_file.read_text(encoding="utf-8")


@pytest.mark.unit
class TestKeyRouting:

    def test_talk_key_starts_then_stops(self, server):
        server.session.is_speaking = False
        server._on_key(TALK_KEY)
        started = server.session.spawn.call_args[0][0]
        started.close()

        server.session.is_speaking = True
        server._on_key(TALK_KEY)

        server.session.stop_talking.assert_called_once()

    def test_cancel_key(self, server):
        server._on_key(CANCEL_KEY)

        server.session.cancel_response.assert_called_once_with()

    def test_reconnect_key(self, server):
        server._on_key(RECONNECT_KEY)

        server.session.supervisor.connect.assert_called_once()
        server.session.spawn.assert_called_once()

    def test_quit_key(self, server):
        server._on_key(QUIT_KEY)

        server.should_exit.set.assert_called_once()

    def test_unknown_key_is_ignored(self, server):
        server._on_key("x")

        server.session.spawn.assert_not_called()
        server.should_exit.set.assert_not_called()

"""Tests for the top-level CLI application."""

from unittest.mock import patch

import pytest
from typer.testing import CliRunner

from parley import __version__
from parley.cli.app import app, main

runner = CliRunner()


class TestCommands:
    def test_version(self):
        result = runner.invoke(app, ["version"])

        assert result.exit_code == 0
        assert __version__ in result.stdout

    def test_help_lists_commands(self):
        result = runner.invoke(app, ["--help"])

        assert result.exit_code == 0
        for command in ("init", "chat", "serve", "history", "version"):
            assert command in result.stdout

    def test_init_delegates(self):
        with patch("parley.cli.init_cmd.init_command") as mock_init:
            result = runner.invoke(app, ["init", "-b", "openai", "--force", "-y"])

        assert result.exit_code == 0
        mock_init.assert_called_once_with(
            config_path=None, backend="openai", model=None, force=True, non_interactive=True
        )

    def test_chat_delegates(self):
        with patch("parley.cli.chat.chat_command") as mock_chat:
            result = runner.invoke(
                app, ["chat", "-c", "my.yaml", "--resume", "Chat-1", "-d", "a", "-d", "b"]
            )

        assert result.exit_code == 0
        mock_chat.assert_called_once_with(
            config_path="my.yaml", conversation_id="Chat-1", document_ids=["a", "b"]
        )

    def test_chat_without_documents(self):
        with patch("parley.cli.chat.chat_command") as mock_chat:
            runner.invoke(app, ["chat"])

        assert mock_chat.call_args.kwargs["document_ids"] == []

    def test_serve_delegates(self):
        with patch("parley.cli.server_cmd.serve_command") as mock_serve:
            result = runner.invoke(app, ["serve", "--port", "9000"])

        assert result.exit_code == 0
        mock_serve.assert_called_once_with(config_path=None, host=None, port=9000)

    def test_history_show_requires_id(self):
        result = runner.invoke(app, ["history", "show"])

        assert result.exit_code != 0


class TestMain:
    def test_keyboard_interrupt_exits_130(self):
        with patch("parley.cli.app.app", side_effect=KeyboardInterrupt), patch(
            "parley.cli.app.console"
        ):
            with pytest.raises(SystemExit) as exc_info:
                main()

        assert exc_info.value.code == 130

    def test_unexpected_error_exits_1(self):
        with patch("parley.cli.app.app", side_effect=RuntimeError("boom")), patch(
            "parley.cli.app.console"
        ) as mock_console:
            with pytest.raises(SystemExit) as exc_info:
                main()

        assert exc_info.value.code == 1
        assert "boom" in mock_console.print.call_args.args[0]

"""Tests for CLI module."""

import json
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
import yaml
from click.testing import CliRunner

from agent_notifier import __version__
from agent_notifier.cli import main
from agent_notifier.events.codec import encode_frame


@pytest.fixture
def runner():
    """Create a CLI test runner."""
    return CliRunner()


@pytest.fixture
def config_file(tmp_path):
    """Config file pointing every tool home into tmp_path."""
    path = tmp_path / "config.yaml"
    path.write_text(
        yaml.dump(
            {
                "backend": "none",
                "homes": {
                    "claude": str(tmp_path / ".claude"),
                    "codex": str(tmp_path / ".codex"),
                    "opencode": str(tmp_path / ".opencode"),
                },
            }
        )
    )
    return path


def payload(message: str = "Done") -> dict:
    return {
        "version": 1,
        "source": "codex",
        "event": "turn_complete",
        "status": "success",
        "message": message,
        "createdAt": 1,
    }


class TestCLIHelp:
    """Test CLI help output."""

    def test_cli_help(self, runner):
        result = runner.invoke(main, ["--help"])

        assert result.exit_code == 0
        assert "Agent Task Notifier" in result.output
        for command in ["watch", "repair", "status", "emit", "decode", "test-notification"]:
            assert command in result.output


class TestVersionCommand:
    """Test version command."""

    def test_version(self, runner):
        result = runner.invoke(main, ["version"])

        assert result.exit_code == 0
        assert __version__ in result.output


class TestRepairCommand:
    """Test repair subcommand."""

    def test_repair_all(self, runner, config_file, tmp_path):
        result = runner.invoke(main, ["--config", str(config_file), "repair"])

        assert result.exit_code == 0, result.output
        assert "configuration repaired" in result.output
        assert (tmp_path / ".claude" / "settings.json").exists()
        assert (tmp_path / ".codex" / "config.toml").exists()
        assert (tmp_path / ".opencode" / "plugins" / "agent-task-notifier.js").exists()

    def test_repair_twice_reports_up_to_date(self, runner, config_file):
        runner.invoke(main, ["--config", str(config_file), "repair", "codex"])
        result = runner.invoke(main, ["--config", str(config_file), "repair", "codex"])

        assert result.exit_code == 0
        assert "Codex notify configuration is already up to date." in result.output
        assert "unchanged" in result.output

    def test_repair_failure_exit_code(self, runner, config_file, tmp_path):
        settings = tmp_path / ".claude" / "settings.json"
        settings.parent.mkdir()
        settings.write_text("[]")

        result = runner.invoke(main, ["--config", str(config_file), "repair", "claude"])

        assert result.exit_code == 1
        assert "failed" in result.output
        assert settings.read_text() == "[]"

    def test_repair_rejects_unknown_tool(self, runner, config_file):
        result = runner.invoke(main, ["--config", str(config_file), "repair", "gemini"])
        assert result.exit_code != 0


class TestStatusCommand:
    """Test status subcommand."""

    def test_status_lists_paths(self, runner, config_file, tmp_path):
        result = runner.invoke(main, ["--config", str(config_file), "status"])

        assert result.exit_code == 0
        assert "Backend: none" in result.output
        assert str(tmp_path / ".codex" / "config.toml") in result.output
        assert "missing" in result.output

    def test_status_without_config_file(self, runner, tmp_path):
        result = runner.invoke(main, ["--config", str(tmp_path / "none.yaml"), "status"])

        assert result.exit_code == 0
        assert "not found, using defaults" in result.output


class TestEmitCommand:
    """Test emit subcommand."""

    def test_emit_print(self, runner):
        result = runner.invoke(
            main,
            ["emit", "--source", "claude", "--event", "stop", "--message", "Hi", "--print"],
        )

        assert result.exit_code == 0
        assert result.output.startswith("\x1b]777;notify;AGENT_TASK_EVENT_V1;")
        assert result.output.endswith("\x07")

    def test_emit_to_tty_path(self, runner, tmp_path):
        tty = tmp_path / "tty"
        tty.write_text("")

        result = runner.invoke(
            main,
            ["emit", "--source", "codex", "--event", "turn_complete", "-m", "Hi", "--tty", str(tty)],
        )

        assert result.exit_code == 0
        assert tty.read_text().startswith("\x1b]777;notify;")

    def test_emit_rejects_blank_message(self, runner):
        result = runner.invoke(
            main, ["emit", "--source", "codex", "--event", "stop", "-m", "  ", "--print"]
        )
        assert result.exit_code == 1


class TestDecodeCommand:
    """Test decode subcommand."""

    def test_decode_stdin(self, runner):
        stream = f"noise {encode_frame(payload('one'))} more {encode_frame(payload('two'))}"

        result = runner.invoke(main, ["decode"], input=stream.encode())

        assert result.exit_code == 0
        lines = [json.loads(line) for line in result.output.splitlines()]
        assert [line["message"] for line in lines] == ["one", "two"]

    def test_decode_roundtrip_with_emit(self, runner):
        emitted = runner.invoke(
            main, ["emit", "--source", "opencode", "--event", "approval_requested", "-m", "Allow?", "--print"]
        )

        result = runner.invoke(main, ["decode"], input=emitted.output.encode())

        decoded = json.loads(result.output)
        assert decoded["source"] == "opencode"
        assert decoded["event"] == "approval_requested"
        assert decoded["message"] == "Allow?"


class TestTestNotificationCommand:
    """Test test-notification subcommand."""

    def test_console_toast(self, runner, config_file):
        result = runner.invoke(main, ["--config", str(config_file), "test-notification"])

        assert result.exit_code == 0
        assert "Test notification from Agent Task Notifier" in result.output

    def test_disabled(self, runner, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text(yaml.dump({"enabled": False, "backend": "none"}))

        result = runner.invoke(main, ["--config", str(path), "test-notification"])

        assert result.exit_code == 1


class TestWatchCommand:
    """Test watch subcommand wiring."""

    def test_watch_exits_when_tmux_missing(self, runner, config_file):
        from agent_notifier.errors import HostError

        with patch("agent_notifier.tmux.TmuxService.verify", AsyncMock(side_effect=HostError("tmux not found"))):
            result = runner.invoke(main, ["--config", str(config_file), "watch"])

        assert result.exit_code == 1
        assert "tmux not found" in result.output

    def test_watch_runs_watcher(self, runner, config_file):
        watcher = MagicMock()
        watcher.run = AsyncMock()
        watcher.close = AsyncMock()

        with patch("agent_notifier.tmux.TmuxService.verify", AsyncMock()), patch(
            "agent_notifier.tmux.TmuxWatcher", return_value=watcher
        ):
            result = runner.invoke(main, ["--config", str(config_file), "watch"])

        assert result.exit_code == 0, result.output
        watcher.run.assert_awaited_once()

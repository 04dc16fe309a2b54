"""Tests for config module."""

from pathlib import Path
from unittest.mock import Mock

import yaml

from agent_notifier.config import (
    Config,
    HomesConfig,
    NtfyConfig,
    TmuxConfig,
    get_config_path,
    load_config,
)


class TestConfigDefaults:
    """Test default configuration values."""

    def test_default_config_values(self):
        """Config has sensible defaults when no file exists."""
        config = Config()

        assert config.enabled is True
        assert config.os_notification is True
        assert config.toast is True
        assert config.dedupe_window_ms == 3000
        assert config.backend == "desktop"
        assert config.log_level == "INFO"
        assert config.log_file is None

    def test_nested_defaults(self):
        assert NtfyConfig().server == "https://ntfy.sh"
        assert NtfyConfig().topic is None
        assert TmuxConfig().poll_interval == 1.0
        assert HomesConfig().claude is None


class TestGetConfigPath:
    """Test config path resolution."""

    def test_get_config_path_default(self):
        """Default config path is ~/.config/agent-notifier/config.yaml."""
        path = get_config_path()
        assert path == Path.home() / ".config" / "agent-notifier" / "config.yaml"

    def test_get_config_path_custom(self):
        """Can override config path."""
        custom = Path("/custom/config.yaml")
        assert get_config_path(custom) == custom


class TestLoadConfig:
    """Test config loading."""

    def test_load_config_no_file_returns_defaults(self, tmp_path):
        """Config returns defaults when no file exists."""
        config = load_config(tmp_path / "nonexistent.yaml")

        assert config == Config()

    def test_load_config_from_file(self, tmp_path):
        """Config loads values from YAML file."""
        config_file = tmp_path / "config.yaml"
        config_file.write_text(
            yaml.dump(
                {
                    "enabled": False,
                    "toast": False,
                    "dedupe_window_ms": 500,
                    "log_level": "DEBUG",
                    "backend": "ntfy",
                    "ntfy": {"topic": "my-agents", "click_url": "https://x"},
                    "tmux": {"poll_interval": 0.5, "socket_path": "/tmp/sock"},
                    "homes": {"codex": "~/work/.codex"},
                }
            )
        )

        config = load_config(config_file)

        assert config.enabled is False
        assert config.toast is False
        assert config.os_notification is True  # Default
        assert config.dedupe_window_ms == 500
        assert config.log_level == "DEBUG"
        assert config.backend == "ntfy"
        assert config.ntfy.topic == "my-agents"
        assert config.ntfy.server == "https://ntfy.sh"  # Default
        assert config.ntfy.click_url == "https://x"
        assert config.tmux.poll_interval == 0.5
        assert config.tmux.socket_path == "/tmp/sock"
        assert config.homes.codex == "~/work/.codex"
        assert config.homes.claude is None

    def test_unknown_backend_falls_back(self, tmp_path):
        config_file = tmp_path / "config.yaml"
        config_file.write_text(yaml.dump({"backend": "carrier-pigeon"}))

        assert load_config(config_file).backend == "desktop"

    def test_load_config_with_injectable_reader(self, tmp_path):
        """Config loading supports injectable file reader for testing."""
        mock_reader = Mock(return_value={"dedupe_window_ms": 100, "log_level": "WARNING"})

        config = load_config(tmp_path / "config.yaml", file_reader=mock_reader)

        assert config.dedupe_window_ms == 100
        assert config.log_level == "WARNING"
        mock_reader.assert_called_once_with(tmp_path / "config.yaml")

    def test_load_config_handles_invalid_yaml(self, tmp_path):
        """Config handles invalid YAML gracefully."""
        config_file = tmp_path / "config.yaml"
        config_file.write_text("invalid: yaml: content: [")

        assert load_config(config_file) == Config()

    def test_load_config_handles_empty_file(self, tmp_path):
        config_file = tmp_path / "config.yaml"
        config_file.write_text("")

        assert load_config(config_file) == Config()

    def test_load_config_non_mapping(self, tmp_path):
        """A YAML list at the top level yields defaults."""
        config_file = tmp_path / "config.yaml"
        config_file.write_text("- a\n- b\n")

        assert load_config(config_file) == Config()

    def test_null_sections_use_defaults(self, tmp_path):
        config_file = tmp_path / "config.yaml"
        config_file.write_text("ntfy:\ntmux:\nhomes:\n")

        config = load_config(config_file)

        assert config.ntfy == NtfyConfig()
        assert config.tmux == TmuxConfig()
        assert config.homes == HomesConfig()

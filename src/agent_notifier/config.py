"""Configuration management for agent-task-notifier."""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable

import yaml


BACKENDS = ("desktop", "ntfy", "none")


@dataclass
class NtfyConfig:
    """ntfy push backend configuration."""

    server: str = "https://ntfy.sh"
    topic: str | None = None
    click_url: str | None = None  # Opened when the push is tapped


@dataclass
class TmuxConfig:
    """tmux host configuration."""

    poll_interval: float = 1.0  # seconds between pane scans
    socket_path: str | None = None
    tmux_path: str = "tmux"


@dataclass
class HomesConfig:
    """Overrides for the agent tools' home directories."""

    claude: str | None = None  # default ~/.claude
    codex: str | None = None  # default ~/.codex
    opencode: str | None = None  # default ~/.opencode


@dataclass
class Config:
    """Notifier configuration."""

    enabled: bool = True  # Master toggle
    os_notification: bool = True
    toast: bool = True
    dedupe_window_ms: int = 3000
    backend: str = "desktop"
    log_level: str = "INFO"
    log_file: str | None = None
    ntfy: NtfyConfig = field(default_factory=NtfyConfig)
    tmux: TmuxConfig = field(default_factory=TmuxConfig)
    homes: HomesConfig = field(default_factory=HomesConfig)


def get_config_path(custom_path: Path | None = None) -> Path:
    """Get the configuration file path.

    Args:
        custom_path: Override path. If None, returns default.

    Returns:
        Path to config file.
    """
    if custom_path is not None:
        return custom_path
    return Path.home() / ".config" / "agent-notifier" / "config.yaml"


def _default_file_reader(path: Path) -> dict[str, Any] | None:
    """Default file reader that loads YAML from disk."""
    if not path.exists():
        return None
    try:
        content = path.read_text()
        if not content.strip():
            return None
        return yaml.safe_load(content)
    except yaml.YAMLError:
        return None


def load_config(
    path: Path | None = None,
    file_reader: Callable[[Path], dict[str, Any] | None] | None = None,
) -> Config:
    """Load configuration from file.

    Args:
        path: Path to config file. If None, uses default path.
        file_reader: Injectable file reader for testing.

    Returns:
        Config object with values from file or defaults.
    """
    config_path = get_config_path(path)
    reader = file_reader or _default_file_reader

    data = reader(config_path)

    if not isinstance(data, dict):
        return Config()

    ntfy_data = data.get("ntfy") or {}
    ntfy_config = NtfyConfig(
        server=ntfy_data.get("server", NtfyConfig.server),
        topic=ntfy_data.get("topic", NtfyConfig.topic),
        click_url=ntfy_data.get("click_url", NtfyConfig.click_url),
    )

    tmux_data = data.get("tmux") or {}
    tmux_config = TmuxConfig(
        poll_interval=tmux_data.get("poll_interval", TmuxConfig.poll_interval),
        socket_path=tmux_data.get("socket_path", TmuxConfig.socket_path),
        tmux_path=tmux_data.get("tmux_path", TmuxConfig.tmux_path),
    )

    homes_data = data.get("homes") or {}
    homes_config = HomesConfig(
        claude=homes_data.get("claude"),
        codex=homes_data.get("codex"),
        opencode=homes_data.get("opencode"),
    )

    backend = data.get("backend", Config.backend)
    if backend not in BACKENDS:
        backend = Config.backend

    return Config(
        enabled=data.get("enabled", Config.enabled),
        os_notification=data.get("os_notification", Config.os_notification),
        toast=data.get("toast", Config.toast),
        dedupe_window_ms=data.get("dedupe_window_ms", Config.dedupe_window_ms),
        backend=backend,
        log_level=data.get("log_level", Config.log_level),
        log_file=data.get("log_file", Config.log_file),
        ntfy=ntfy_config,
        tmux=tmux_config,
        homes=homes_config,
    )

"""Idempotent wiring of agent tools to the bundled adapter scripts."""

from pathlib import Path
from typing import Optional

from agent_notifier.config import HomesConfig

from .base import ConfigReconciler, SyncResult, SyncStatus
from .claude import ClaudeHooksReconciler, is_claude_command
from .codex import CodexNotifyReconciler, is_codex_command
from .opencode import OpenCodePluginReconciler, is_opencode_command

TOOLS = ("codex", "claude", "opencode")

_DETECTORS = {
    "codex": is_codex_command,
    "claude": is_claude_command,
    "opencode": is_opencode_command,
}


def detect_tools(command_line: str) -> list[str]:
    """Return the agent tools a command line starts, in TOOLS order."""
    return [tool for tool in TOOLS if _DETECTORS[tool](command_line)]


def build_reconcilers(
    homes: Optional[HomesConfig] = None,
    adapters_dir: Optional[Path] = None,
) -> dict[str, ConfigReconciler]:
    """Create one reconciler per tool.

    Args:
        homes: Optional tool home overrides.
        adapters_dir: Bundled adapter scripts (for testing).
    """
    homes = homes or HomesConfig()
    return {
        "codex": CodexNotifyReconciler(homes.codex, adapters_dir),
        "claude": ClaudeHooksReconciler(homes.claude, adapters_dir),
        "opencode": OpenCodePluginReconciler(homes.opencode, adapters_dir),
    }


__all__ = [
    "TOOLS",
    "ClaudeHooksReconciler",
    "CodexNotifyReconciler",
    "ConfigReconciler",
    "OpenCodePluginReconciler",
    "SyncResult",
    "SyncStatus",
    "build_reconcilers",
    "detect_tools",
    "is_claude_command",
    "is_codex_command",
    "is_opencode_command",
]

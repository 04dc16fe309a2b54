"""Claude Code hook wiring (``~/.claude/settings.json``).

Claude reads command hooks from a JSON document::

    {"hooks": {"Stop": [{"hooks": [{"type": "command", "command": "..."}]}]}}

The reconciler owns one command entry for ``Stop`` and one for
``SubagentStop``. Entries written by earlier versions are recognised by the
script path and replaced; everything else is kept in place.
"""

import json
import logging
import re
from pathlib import Path
from typing import Any, Optional

from agent_notifier.errors import MalformedConfigError

from .base import (
    MIRROR_DIR_NAME,
    ConfigReconciler,
    MirrorSpec,
    build_shell_command,
)
from .documents import MISSING, narrow_object, narrow_object_array

logger = logging.getLogger(__name__)

HOOK_EVENT_STOP = "Stop"
HOOK_EVENT_SUBAGENT_STOP = "SubagentStop"

STOP_SCRIPT = "stop-hook.sh"
SUBAGENT_STOP_SCRIPT = "subagent-stop-hook.sh"

_COMMAND_PATTERN = re.compile(r"\bclaude(\s|$)", re.IGNORECASE)


def is_claude_command(command_line: str) -> bool:
    """True if a shell command line starts the Claude CLI."""
    return bool(_COMMAND_PATTERN.search(command_line))


def is_managed_command(command: str, script_name: str) -> bool:
    """True if a hook command was written by this tool for ``script_name``."""
    normalized = command.replace("\\", "/")
    if script_name == STOP_SCRIPT and SUBAGENT_STOP_SCRIPT in normalized:
        return False
    return (
        f"/adapters/claude/{script_name}" in normalized
        or f"/{MIRROR_DIR_NAME}/{script_name}" in normalized
    )


def _parse_settings(text: str) -> dict[str, Any]:
    if not text.strip():
        return {}
    try:
        parsed = json.loads(text)
    except json.JSONDecodeError as e:
        raise MalformedConfigError(f"failed to parse Claude settings JSON: {e}") from e
    root = narrow_object(parsed, "settings root")
    return root


def _ensure_hooks(root: dict[str, Any]) -> dict[str, Any]:
    hooks = narrow_object(root.get("hooks", MISSING), "hooks")
    if hooks is None:
        hooks = {}
        root["hooks"] = hooks
    return hooks


def _remove_managed(
    groups: list[dict[str, Any]], event_name: str, script_name: str, command: str
) -> list[dict[str, Any]]:
    """Drop previously managed entries, keeping an exact match in place."""
    next_groups = []
    for group_index, group in enumerate(groups):
        where = f"hooks.{event_name}[{group_index}].hooks"
        entries = narrow_object_array(group.get("hooks", MISSING), where)
        if entries is None:
            raise MalformedConfigError(f"expected {where} to be an array")

        kept = []
        for entry in entries:
            hook_command = entry.get("command")
            if (
                entry.get("type") == "command"
                and isinstance(hook_command, str)
                and hook_command != command
                and is_managed_command(hook_command, script_name)
            ):
                continue
            kept.append(entry)

        if not kept:
            continue
        next_groups.append({**group, "hooks": kept})
    return next_groups


def _has_exact_command(groups: list[dict[str, Any]], command: str) -> bool:
    return any(
        entry.get("type") == "command" and entry.get("command") == command
        for group in groups
        for entry in group.get("hooks", [])
    )


def upsert_command_hook(
    hooks: dict[str, Any], event_name: str, command: str, script_name: str
) -> None:
    """Ensure ``hooks[event_name]`` contains exactly one managed command."""
    groups = narrow_object_array(hooks.get(event_name, MISSING), f"hooks.{event_name}") or []
    groups = _remove_managed(groups, event_name, script_name, command)
    if not _has_exact_command(groups, command):
        groups.append({"hooks": [{"type": "command", "command": command}]})
    hooks[event_name] = groups


def build_next_settings_text(original: str, stop_command: str, subagent_stop_command: str) -> str:
    """Compute the next settings document.

    Raises:
        MalformedConfigError: If the existing document has an unexpected shape.
    """
    root = _parse_settings(original)
    hooks = _ensure_hooks(root)
    upsert_command_hook(hooks, HOOK_EVENT_STOP, stop_command, STOP_SCRIPT)
    upsert_command_hook(hooks, HOOK_EVENT_SUBAGENT_STOP, subagent_stop_command, SUBAGENT_STOP_SCRIPT)
    return json.dumps(root, indent=2, ensure_ascii=False) + "\n"


class ClaudeHooksReconciler(ConfigReconciler):
    """Wires Claude's Stop and SubagentStop hooks to the adapter scripts."""

    tool = "claude"
    display_name = "Claude hooks"

    def __init__(self, home: Optional[Path] = None, adapters_dir: Optional[Path] = None):
        super().__init__(home, adapters_dir)
        self.mirror_dir = self.home / MIRROR_DIR_NAME
        self.stop_script_path = self.mirror_dir / STOP_SCRIPT
        self.subagent_stop_script_path = self.mirror_dir / SUBAGENT_STOP_SCRIPT

    @property
    def config_path(self) -> Path:
        return self.home / "settings.json"

    def mirror_specs(self) -> list[MirrorSpec]:
        source_dir = self.adapters_dir / "claude"
        return [
            MirrorSpec(source_dir / STOP_SCRIPT, self.stop_script_path),
            MirrorSpec(source_dir / SUBAGENT_STOP_SCRIPT, self.subagent_stop_script_path),
        ]

    def build_next_text(self, original: str) -> str:
        return build_next_settings_text(
            original,
            build_shell_command(self.stop_script_path),
            build_shell_command(self.subagent_stop_script_path),
        )

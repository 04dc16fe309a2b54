"""OpenCode plugin wiring (``~/.opencode/plugins/``).

OpenCode loads every module in its plugins directory, so there is no
document to edit: mirroring the plugin and its emit helper is the whole
job.
"""

import re
from pathlib import Path
from typing import Optional

from .base import EXECUTABLE_MODE, PLUGIN_MODE, ConfigReconciler, MirrorSpec

PLUGIN_SCRIPT = "agent-task-notifier.js"
EMIT_SCRIPT = "agent-task-notifier-emit.sh"

_COMMAND_PATTERN = re.compile(r"\bopencode(\s|$)", re.IGNORECASE)


def is_opencode_command(command_line: str) -> bool:
    """True if a shell command line starts the OpenCode CLI."""
    return bool(_COMMAND_PATTERN.search(command_line))


class OpenCodePluginReconciler(ConfigReconciler):
    """Keeps the OpenCode plugin and emit helper in sync."""

    tool = "opencode"
    display_name = "OpenCode plugin"

    def __init__(self, home: Optional[Path] = None, adapters_dir: Optional[Path] = None):
        super().__init__(home, adapters_dir)
        self.plugins_dir = self.home / "plugins"
        self.plugin_path = self.plugins_dir / PLUGIN_SCRIPT
        self.emit_script_path = self.plugins_dir / EMIT_SCRIPT

    @property
    def artifact_path(self) -> Path:
        return self.plugin_path

    def mirror_specs(self) -> list[MirrorSpec]:
        source_dir = self.adapters_dir / "opencode"
        return [
            MirrorSpec(source_dir / PLUGIN_SCRIPT, self.plugin_path, PLUGIN_MODE),
            MirrorSpec(source_dir / EMIT_SCRIPT, self.emit_script_path, EXECUTABLE_MODE),
        ]

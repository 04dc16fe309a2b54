"""Codex notify wiring (``~/.codex/config.toml``).

Codex runs a single ``notify`` program after each agent turn. The
reconciler owns a marker-delimited block at the top level of the TOML
document::

    # >>> agent-task-notifier managed notify
    notify = ["bash", "/home/me/.codex/agent-task-notifier/notify.sh"]
    # <<< agent-task-notifier managed notify

The document is edited line by line rather than parsed and re-serialized so
comments and formatting elsewhere survive untouched.
"""

import logging
import re
from pathlib import Path
from typing import Optional

from .base import MIRROR_DIR_NAME, ConfigReconciler, MirrorSpec

logger = logging.getLogger(__name__)

MANAGED_START = "# >>> agent-task-notifier managed notify"
MANAGED_END = "# <<< agent-task-notifier managed notify"

NOTIFY_SCRIPT = "notify.sh"

_COMMAND_PATTERN = re.compile(r"\bcodex(\s|$)", re.IGNORECASE)
_LEGACY_NOTIFY = re.compile(r"^notify\s*=")


def is_codex_command(command_line: str) -> bool:
    """True if a shell command line starts the Codex CLI."""
    return bool(_COMMAND_PATTERN.search(command_line))


def split_lines(text: str) -> list[str]:
    """Split on any line ending; empty text has no lines."""
    if not text:
        return []
    return text.replace("\r\n", "\n").replace("\r", "\n").split("\n")


def remove_managed_block(text: str) -> str:
    """Drop every line between (and including) the managed markers."""
    lines = []
    in_block = False
    for line in split_lines(text):
        stripped = line.strip()
        if not in_block and stripped == MANAGED_START:
            in_block = True
            continue
        if in_block:
            if stripped == MANAGED_END:
                in_block = False
            continue
        lines.append(line)
    return "\n".join(lines)


def _is_legacy_notify_start(line: str) -> bool:
    trimmed = line.lstrip()
    if trimmed.startswith("#"):
        return False
    return bool(_LEGACY_NOTIFY.match(trimmed))


def _bracket_delta(line: str) -> int:
    return line.count("[") - line.count("]")


def comment_legacy_notify(text: str) -> str:
    """Comment out unmanaged ``notify = ...`` assignments.

    Multi-line array values are followed by bracket depth so the whole
    assignment is commented, not just its first line.
    """
    lines = split_lines(text)
    index = 0
    while index < len(lines):
        if not _is_legacy_notify_start(lines[index]):
            index += 1
            continue

        end = index
        depth = _bracket_delta(lines[index])
        while depth > 0 and end + 1 < len(lines):
            end += 1
            depth += _bracket_delta(lines[end])

        for pointer in range(index, end + 1):
            lines[pointer] = f"# {lines[pointer]}"
        index = end + 1
    return "\n".join(lines)


def escape_toml_basic_string(value: str) -> str:
    """Escape a value for a TOML basic (double-quoted) string."""
    return value.replace("\\", "\\\\").replace('"', '\\"')


def build_managed_block(script_path: str) -> str:
    """Build the marker-delimited notify directive."""
    return "\n".join([
        MANAGED_START,
        f'notify = ["bash", "{escape_toml_basic_string(script_path)}"]',
        MANAGED_END,
    ])


def _is_table_header(line: str) -> bool:
    trimmed = line.lstrip()
    if trimmed.startswith("#"):
        return False
    return trimmed.startswith("[")


def _trim_leading_blank(lines: list[str]) -> list[str]:
    start = 0
    while start < len(lines) and not lines[start].strip():
        start += 1
    return lines[start:]


def _trim_trailing_blank(lines: list[str]) -> list[str]:
    end = len(lines)
    while end > 0 and not lines[end - 1].strip():
        end -= 1
    return lines[:end]


def insert_managed_block(text: str, block: str) -> str:
    """Insert the block before the first table header, or append it.

    Keys after a table header belong to that table, so the directive must
    sit in the root table above every header.
    """
    lines = split_lines(text)
    first_table = next((i for i, line in enumerate(lines) if _is_table_header(line)), -1)

    if first_table == -1:
        trimmed = text.rstrip()
        if not trimmed:
            return f"{block}\n"
        return f"{trimmed}\n\n{block}\n"

    before = _trim_trailing_blank(lines[:first_table])
    after = _trim_leading_blank(lines[first_table:])
    sections = []
    if before:
        sections.append("\n".join(before))
    sections.append(block)
    if after:
        sections.append("\n".join(after))
    return "\n\n".join(sections).rstrip() + "\n"


def build_next_config_text(original: str, script_path: str) -> str:
    """Compute the next config.toml text."""
    without_managed = remove_managed_block(original)
    commented = comment_legacy_notify(without_managed)
    return insert_managed_block(commented, build_managed_block(script_path))


class CodexNotifyReconciler(ConfigReconciler):
    """Wires Codex's ``notify`` directive to the adapter script."""

    tool = "codex"
    display_name = "Codex notify"

    def __init__(self, home: Optional[Path] = None, adapters_dir: Optional[Path] = None):
        super().__init__(home, adapters_dir)
        self.notify_script_path = self.home / MIRROR_DIR_NAME / NOTIFY_SCRIPT

    @property
    def config_path(self) -> Path:
        return self.home / "config.toml"

    def mirror_specs(self) -> list[MirrorSpec]:
        return [MirrorSpec(self.adapters_dir / "codex" / NOTIFY_SCRIPT, self.notify_script_path)]

    def build_next_text(self, original: str) -> str:
        return build_next_config_text(original, str(self.notify_script_path))

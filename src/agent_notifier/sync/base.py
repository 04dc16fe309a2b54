"""Shared reconciliation template for external agent configuration.

Every reconciler follows the same steps:

1. Mirror the bundled adapter scripts into the tool's home directory so the
   tool never depends on where this package is installed.
2. Read the tool's config file (a missing file is an empty document).
3. Compute the next document as a pure function of the original text.
4. Write it back only if it differs, in a single atomic replace.

Any exception along the way becomes a ``failed`` result; the config file is
left exactly as it was found.
"""

import logging
import os
import tempfile
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Optional

logger = logging.getLogger(__name__)

ADAPTERS_DIR = Path(__file__).resolve().parent.parent / "adapters"

# Directory name used for mirrored scripts inside each tool home
MIRROR_DIR_NAME = "agent-task-notifier"

EXECUTABLE_MODE = 0o755
PLUGIN_MODE = 0o644
NEW_FILE_MODE = 0o644


class SyncStatus(Enum):
    """Outcome of one reconciliation pass."""

    UPDATED = "updated"
    UNCHANGED = "unchanged"
    FAILED = "failed"


@dataclass(frozen=True)
class SyncResult:
    """Result of reconciling one managed artifact."""

    status: SyncStatus
    artifact_path: Path
    detail: str


@dataclass(frozen=True)
class MirrorSpec:
    """One adapter script copied out of the package."""

    source: Path
    destination: Path
    mode: int = EXECUTABLE_MODE


def shell_double_quote(value: str) -> str:
    """Quote a value for a POSIX shell double-quoted string."""
    escaped = (
        value.replace("\\", "\\\\")
        .replace('"', '\\"')
        .replace("$", "\\$")
        .replace("`", "\\`")
    )
    return f'"{escaped}"'


def build_shell_command(script_path: Path) -> str:
    """Build the ``bash "<path>"`` invocation stored in hook configs."""
    return f"bash {shell_double_quote(str(script_path))}"


def read_text_or_empty(path: Path) -> str:
    """Read a UTF-8 text file, treating a missing file as empty.

    Line endings are returned untranslated so the result can be compared
    byte for byte with the next document.
    """
    try:
        with path.open(encoding="utf-8", newline="") as f:
            return f.read()
    except FileNotFoundError:
        return ""


def atomic_write_text(path: Path, text: str) -> None:
    """Replace a file's content in one step.

    The text is written to a temporary sibling and renamed over the target,
    so readers never observe a partially written file. An existing file's
    permission bits are kept; a new file gets NEW_FILE_MODE instead of the
    owner-only mode of the temporary file.
    """
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_name = tempfile.mkstemp(prefix=f".{path.name}.", dir=path.parent)
    tmp_path = Path(tmp_name)
    try:
        with os.fdopen(fd, "w", encoding="utf-8", newline="") as f:
            f.write(text)
        if path.exists():
            os.chmod(tmp_path, path.stat().st_mode & 0o7777)
        else:
            os.chmod(tmp_path, NEW_FILE_MODE)
        os.replace(tmp_path, path)
    except BaseException:
        tmp_path.unlink(missing_ok=True)
        raise


def sync_file(source: Path, destination: Path, mode: int) -> bool:
    """Copy a file only if its content differs.

    Permission bits are re-applied on every call.

    Returns:
        True if the destination content changed.
    """
    content = source.read_bytes()
    try:
        current: Optional[bytes] = destination.read_bytes()
    except FileNotFoundError:
        current = None

    changed = current != content
    if changed:
        destination.parent.mkdir(parents=True, exist_ok=True)
        destination.write_bytes(content)
        logger.debug("Mirrored %s -> %s", source.name, destination)
    os.chmod(destination, mode)
    return changed


class ConfigReconciler:
    """Base class for the per-tool reconcilers.

    Subclasses describe which scripts to mirror and how to rewrite the
    config document; this class runs the steps and turns errors into a
    ``failed`` result.
    """

    #: Tool binary name, also used for command-line detection.
    tool: str = ""
    #: Human readable tool name for operator messages.
    display_name: str = ""

    def __init__(self, home: Optional[Path] = None, adapters_dir: Optional[Path] = None):
        """Initialize the reconciler.

        Args:
            home: Tool home directory. Defaults to ``~/.<tool>``.
            adapters_dir: Bundled adapter scripts (for testing).
        """
        self.home = Path(home).expanduser() if home else Path.home() / f".{self.tool}"
        self.adapters_dir = Path(adapters_dir) if adapters_dir else ADAPTERS_DIR

    @property
    def config_path(self) -> Optional[Path]:
        """Config document managed by this reconciler, if any."""
        return None

    @property
    def artifact_path(self) -> Path:
        """Path reported in results."""
        return self.config_path or self.home

    def mirror_specs(self) -> list[MirrorSpec]:
        """Adapter scripts to mirror into the tool home."""
        raise NotImplementedError

    def build_next_text(self, original: str) -> str:
        """Compute the next config document from the original text."""
        raise NotImplementedError

    def paths(self) -> dict[str, Path]:
        """Paths worth showing in status output."""
        paths = {spec.destination.name: spec.destination for spec in self.mirror_specs()}
        if self.config_path is not None:
            paths["config"] = self.config_path
        return paths

    def reconcile(self) -> SyncResult:
        """Bring the external artifact to its managed state.

        Returns:
            SyncResult with status updated, unchanged or failed.
        """
        try:
            return self._reconcile()
        except Exception as e:
            logger.debug("%s reconciliation failed", self.tool, exc_info=True)
            return SyncResult(
                status=SyncStatus.FAILED,
                artifact_path=self.artifact_path,
                detail=f"{type(e).__name__}: {e}",
            )

    def _reconcile(self) -> SyncResult:
        specs = self.mirror_specs()
        mirror_changed = False
        for spec in specs:
            if sync_file(spec.source, spec.destination, spec.mode):
                mirror_changed = True

        mirror_dir = specs[0].destination.parent if specs else self.home
        config_path = self.config_path

        if config_path is None:
            if mirror_changed:
                return SyncResult(SyncStatus.UPDATED, self.artifact_path, f"synced scripts to {mirror_dir}")
            return SyncResult(SyncStatus.UNCHANGED, self.artifact_path, f"scripts already synced to {mirror_dir}")

        original = read_text_or_empty(config_path)
        next_text = self.build_next_text(original)
        if next_text == original:
            return SyncResult(
                SyncStatus.UNCHANGED,
                config_path,
                f"scripts synced to {mirror_dir}; config already managed",
            )

        atomic_write_text(config_path, next_text)
        return SyncResult(SyncStatus.UPDATED, config_path, f"rewritten {config_path}")

"""Tests for Codex notify reconciliation."""

import os

import pytest

from agent_notifier.sync import CodexNotifyReconciler, SyncStatus, is_codex_command
from agent_notifier.sync.codex import (
    MANAGED_END,
    MANAGED_START,
    build_managed_block,
    build_next_config_text,
    comment_legacy_notify,
    escape_toml_basic_string,
    remove_managed_block,
)

SCRIPT = "/home/u/.codex/agent-task-notifier/notify.sh"
BLOCK = build_managed_block(SCRIPT)


@pytest.fixture
def reconciler(tmp_path, adapters_dir):
    return CodexNotifyReconciler(tmp_path / ".codex", adapters_dir)


class TestCommandDetection:
    """Test Codex command-line recognition."""

    @pytest.mark.parametrize("line", ["codex", "codex exec 'fix it'", "/usr/local/bin/codex"])
    def test_matches(self, line):
        assert is_codex_command(line)

    @pytest.mark.parametrize("line", ["codexify", "cat codex.toml", "claude"])
    def test_does_not_match(self, line):
        assert not is_codex_command(line)


class TestManagedBlock:
    """Test the marker-delimited directive."""

    def test_block_layout(self):
        assert BLOCK.splitlines() == [
            MANAGED_START,
            f'notify = ["bash", "{SCRIPT}"]',
            MANAGED_END,
        ]

    def test_escapes_path(self):
        """Backslashes and quotes in the path are escaped."""
        assert escape_toml_basic_string('C:\\dir\\"x"') == 'C:\\\\dir\\\\\\"x\\"'

    def test_remove_managed_block(self):
        text = f"a = 1\n{BLOCK}\nb = 2\n"
        assert remove_managed_block(text) == "a = 1\nb = 2\n"


class TestCommentLegacyNotify:
    """Test commenting out of unmanaged notify assignments."""

    def test_single_line(self):
        assert comment_legacy_notify('notify = ["say"]') == '# notify = ["say"]'

    def test_multi_line_array(self):
        """A three-line array is commented as a whole."""
        text = 'notify = [\n  "say",\n]\nmodel = "o3"'
        assert comment_legacy_notify(text) == '# notify = [\n#   "say",\n# ]\nmodel = "o3"'

    def test_already_commented_untouched(self):
        assert comment_legacy_notify('# notify = ["say"]') == '# notify = ["say"]'

    def test_other_keys_untouched(self):
        assert comment_legacy_notify('notifications = true') == 'notifications = true'


class TestBuildNextConfig:
    """Test the pure config transformation."""

    def test_empty_document(self):
        assert build_next_config_text("", SCRIPT) == f"{BLOCK}\n"

    def test_appended_after_root_keys(self):
        """Without tables the block is appended after a blank line."""
        assert build_next_config_text('model = "o3"\n', SCRIPT) == f'model = "o3"\n\n{BLOCK}\n'

    def test_inserted_before_first_table(self):
        """The block sits in the root table above every header."""
        original = 'model = "o3"\n\n[tui]\nnotifications = true\n'
        result = build_next_config_text(original, SCRIPT)

        assert result == f'model = "o3"\n\n{BLOCK}\n\n[tui]\nnotifications = true\n'

    def test_legacy_notify_commented(self):
        """An existing multi-line notify is commented and ours inserted."""
        original = 'notify = [\n  "say",\n  "done",\n]\n[profiles.fast]\nmodel = "o4-mini"\n'
        result = build_next_config_text(original, SCRIPT)

        assert '# notify = [\n#   "say",\n#   "done",\n# ]' in result
        assert result.index(MANAGED_START) < result.index("[profiles.fast]")

    def test_crlf_input(self):
        """CRLF line endings are handled; legacy lines are commented."""
        original = 'notify = [\r\n  "say",\r\n]\r\n[tui]\r\nx = 1\r\n'
        result = build_next_config_text(original, SCRIPT)

        assert '# notify = [\n#   "say",\n# ]' in result
        assert result.index(MANAGED_START) < result.index("[tui]")
        assert build_next_config_text(result, SCRIPT) == result

    @pytest.mark.parametrize(
        "original",
        [
            "",
            'model = "o3"\n',
            '[tui]\nx = 1\n',
            'notify = ["say"]\n[tui]\nx = 1\n',
        ],
    )
    def test_idempotent(self, original):
        """Applying the transformation twice changes nothing."""
        once = build_next_config_text(original, SCRIPT)
        assert build_next_config_text(once, SCRIPT) == once

    def test_stale_block_replaced(self):
        """A managed block with an old path is replaced."""
        original = f"{build_managed_block('/old/notify.sh')}\n"
        result = build_next_config_text(original, SCRIPT)

        assert "/old/notify.sh" not in result
        assert result.count(MANAGED_START) == 1


class TestCodexNotifyReconciler:
    """Test the reconciler against a temp home."""

    def test_updated_then_unchanged(self, reconciler):
        first = reconciler.reconcile()
        before = reconciler.config_path.read_bytes()
        second = reconciler.reconcile()

        assert first.status == SyncStatus.UPDATED
        assert second.status == SyncStatus.UNCHANGED
        assert reconciler.config_path.read_bytes() == before

    def test_directive_points_at_mirrored_script(self, reconciler):
        reconciler.reconcile()

        text = reconciler.config_path.read_text()
        assert f'notify = ["bash", "{reconciler.notify_script_path}"]' in text
        assert reconciler.notify_script_path.exists()
        assert os.stat(reconciler.notify_script_path).st_mode & 0o777 == 0o755

    def test_unreadable_config_fails(self, reconciler):
        """A config path that is a directory produces a failed result."""
        reconciler.config_path.mkdir(parents=True)

        result = reconciler.reconcile()

        assert result.status == SyncStatus.FAILED
        assert reconciler.config_path.is_dir()

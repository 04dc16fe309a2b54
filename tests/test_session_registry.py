"""Tests for SessionRegistry."""

import uuid

from agent_notifier.sessions import SessionRegistry


class TestSessionRegistry:
    """Test SessionRegistry operations."""

    def test_empty_registry(self):
        """New registry has no sessions."""
        registry = SessionRegistry()
        assert len(registry) == 0
        assert "%0" not in registry

    def test_assign_id(self):
        """A new handle gets a UUID terminal id."""
        registry = SessionRegistry()

        terminal_id = registry.get_or_assign_id("%0")

        uuid.UUID(terminal_id)
        assert len(registry) == 1
        assert "%0" in registry

    def test_id_is_stable(self):
        """The same handle always maps to the same id."""
        registry = SessionRegistry()
        assert registry.get_or_assign_id("%0") == registry.get_or_assign_id("%0")

    def test_distinct_handles_get_distinct_ids(self):
        registry = SessionRegistry()
        assert registry.get_or_assign_id("%0") != registry.get_or_assign_id("%1")

    def test_reverse_lookup(self):
        registry = SessionRegistry()
        terminal_id = registry.get_or_assign_id("%3")

        assert registry.get_handle(terminal_id) == "%3"
        assert registry.get_handle("unknown") is None

    def test_unregister(self):
        """Unregistering removes both directions and returns the id."""
        registry = SessionRegistry()
        terminal_id = registry.get_or_assign_id("%0")

        assert registry.unregister("%0") == terminal_id
        assert registry.get_handle(terminal_id) is None
        assert len(registry) == 0

    def test_unregister_unknown(self):
        assert SessionRegistry().unregister("%9") is None

    def test_new_id_after_unregister(self):
        """A handle reused after unregistering is a new session."""
        registry = SessionRegistry()
        first = registry.get_or_assign_id("%0")
        registry.unregister("%0")

        assert registry.get_or_assign_id("%0") != first

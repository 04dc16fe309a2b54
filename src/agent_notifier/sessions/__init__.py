"""Terminal session bookkeeping."""

from agent_notifier.sessions.registry import SessionRegistry

__all__ = ["SessionRegistry"]

"""Notification text rendering."""

import re
from dataclasses import dataclass

from agent_notifier.events.types import EventSource, EventType, StructuredEvent

TITLE_MAX_CHARS = 120
MESSAGE_MAX_CHARS = 140
ELLIPSIS = "…"

DEFAULT_TITLE = "Agent Event"

# Fallback titles when the payload carries none
DEFAULT_TITLES = {
    (EventSource.CODEX, EventType.TURN_COMPLETE): "Codex Turn Complete",
    (EventSource.CODEX, EventType.APPROVAL_REQUESTED): "Codex Approval Requested",
    (EventSource.CLAUDE, EventType.SUBAGENT_STOP): "Claude Subagent Complete",
    (EventSource.CLAUDE, EventType.STOP): "Claude Turn Complete",
    (EventSource.OPENCODE, EventType.TURN_COMPLETE): "OpenCode Turn Complete",
    (EventSource.OPENCODE, EventType.APPROVAL_REQUESTED): "OpenCode Approval Requested",
}

_WHITESPACE = re.compile(r"\s+")


@dataclass(frozen=True)
class RenderedNotification:
    """Display-ready title and message."""

    title: str
    message: str

    @property
    def toast_text(self) -> str:
        """Single-line form used for in-terminal toasts."""
        if self.message:
            return f"{self.title}: {self.message}"
        return self.title


def normalize_text(value: str) -> str:
    """Collapse whitespace runs and trim."""
    return _WHITESPACE.sub(" ", value).strip()


def truncate(value: str, max_chars: int) -> str:
    """Truncate to ``max_chars`` including a trailing ellipsis."""
    if not value or max_chars <= 0 or len(value) <= max_chars:
        return value
    if max_chars == 1:
        return ELLIPSIS
    return value[: max_chars - 1] + ELLIPSIS


def title_for_event(event: StructuredEvent) -> str:
    """Explicit title, or a default for the source and event type."""
    if event.title and event.title.strip():
        return event.title.strip()
    return DEFAULT_TITLES.get((event.source, event.event), DEFAULT_TITLE)


def render(event: StructuredEvent) -> RenderedNotification:
    """Render an event for display."""
    return RenderedNotification(
        title=truncate(normalize_text(title_for_event(event)), TITLE_MAX_CHARS),
        message=truncate(normalize_text(event.message), MESSAGE_MAX_CHARS),
    )

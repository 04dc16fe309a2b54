"""Event types shared by the codec, parser, dedupe and dispatcher."""

from dataclasses import dataclass, fields
from enum import Enum
from typing import Any, Optional


PROTOCOL_VERSION = 1


class EventSource(Enum):
    """Agent tool that produced the event."""

    CODEX = "codex"
    CLAUDE = "claude"
    OPENCODE = "opencode"


class EventType(Enum):
    """Lifecycle moment reported by the agent."""

    TURN_COMPLETE = "turn_complete"
    APPROVAL_REQUESTED = "approval_requested"
    STOP = "stop"
    SUBAGENT_STOP = "subagent_stop"


class EventStatus(Enum):
    """Severity of the event."""

    SUCCESS = "success"
    INFO = "info"
    WARNING = "warning"


# Wire name -> attribute name for the optional string fields
OPTIONAL_FIELDS = {
    "title": "title",
    "sessionId": "session_id",
    "taskId": "task_id",
    "turnId": "turn_id",
    "dedupeKey": "dedupe_key",
}


@dataclass(frozen=True)
class StructuredEvent:
    """A validated version 1 event payload.

    Instances only come out of ``codec.validate`` or are built directly by
    emitters, so every field is already typed.
    """

    source: EventSource
    event: EventType
    status: EventStatus
    message: str
    created_at: float
    title: Optional[str] = None
    session_id: Optional[str] = None
    task_id: Optional[str] = None
    turn_id: Optional[str] = None
    dedupe_key: Optional[str] = None
    version: int = PROTOCOL_VERSION

    def to_payload(self) -> dict[str, Any]:
        """Convert to the wire dict, omitting empty optional fields."""
        payload: dict[str, Any] = {
            "version": self.version,
            "source": self.source.value,
            "event": self.event.value,
            "status": self.status.value,
            "message": self.message,
            "createdAt": self.created_at,
        }
        for wire_name, attr in OPTIONAL_FIELDS.items():
            value = getattr(self, attr)
            if value:
                payload[wire_name] = value
        return payload


@dataclass(frozen=True)
class RuntimeEvent(StructuredEvent):
    """A StructuredEvent bound to the terminal session it was observed in."""

    terminal_id: str = ""
    session_handle: Any = None

    @classmethod
    def from_structured(
        cls, event: StructuredEvent, terminal_id: str, session_handle: Any
    ) -> "RuntimeEvent":
        """Attach session fields to a decoded event."""
        values = {f.name: getattr(event, f.name) for f in fields(StructuredEvent)}
        return cls(**values, terminal_id=terminal_id, session_handle=session_handle)

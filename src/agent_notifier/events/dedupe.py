"""Time-window deduplication of runtime events."""

import logging
import re
import time
from typing import Callable, Optional

from .types import RuntimeEvent

logger = logging.getLogger(__name__)

# Records are kept at least this long regardless of the window
MIN_RETENTION_MS = 60_000

_WHITESPACE = re.compile(r"\s+")


def _now_ms() -> float:
    return time.time() * 1000


def build_dedupe_key(event: RuntimeEvent) -> str:
    """Derive the identity used to decide two events are the same.

    An explicit dedupe key is authoritative. Otherwise the key is built from
    the event kind and the normalized message (trimmed, lowercased, runs of
    whitespace collapsed).
    """
    if event.dedupe_key:
        return f"{event.terminal_id}:{event.dedupe_key}"

    normalized = _WHITESPACE.sub(" ", event.message.strip().lower())
    return (
        f"{event.terminal_id}:{event.source.value}:{event.event.value}:"
        f"{event.status.value}:{normalized}"
    )


class EventDedupe:
    """Suppresses events equivalent to one seen within the window.

    The window is read from the provider on every call so configuration
    reloads apply immediately. Old records are evicted on each check.

    Usage:
        dedupe = EventDedupe(lambda: config.dedupe_window_ms)
        if dedupe.should_emit(event):
            await dispatcher.dispatch(event)
    """

    def __init__(
        self,
        window_ms_provider: Callable[[], float],
        clock: Optional[Callable[[], float]] = None,
    ):
        """Initialize EventDedupe.

        Args:
            window_ms_provider: Returns the current window in milliseconds.
            clock: Returns the current time in milliseconds (for testing).
        """
        self._window_ms_provider = window_ms_provider
        self._clock = clock or _now_ms
        self._last_seen: dict[str, float] = {}

    def should_emit(self, event: RuntimeEvent) -> bool:
        """Check an event and record it if it is not a duplicate.

        Args:
            event: Event to check.

        Returns:
            True if the event should be delivered, False if suppressed.
        """
        now = self._clock()
        window_ms = max(0, self._window_ms_provider())
        self._prune(now, window_ms)

        key = build_dedupe_key(event)
        last_seen = self._last_seen.get(key)

        if last_seen is not None and now - last_seen < window_ms:
            logger.debug("Suppressed duplicate event %s", key)
            return False

        self._last_seen[key] = now
        return True

    def clear_session(self, terminal_id: str) -> None:
        """Forget all records for a closed session."""
        prefix = f"{terminal_id}:"
        for key in [k for k in self._last_seen if k.startswith(prefix)]:
            del self._last_seen[key]

    def _prune(self, now: float, window_ms: float) -> None:
        threshold = now - max(window_ms * 4, MIN_RETENTION_MS)
        expired = [key for key, seen in self._last_seen.items() if seen < threshold]
        for key in expired:
            del self._last_seen[key]

    def __len__(self) -> int:
        """Number of live records."""
        return len(self._last_seen)

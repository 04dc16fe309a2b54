"""Monitor: the long-lived coordinator that ties sessions to notifications.

One Monitor is created at startup. It owns the state shared between
sessions (dedupe records, the session registry, the per-tool "already
warned" set) and hands out a SessionTap per observed session.
"""

import asyncio
import codecs
import logging
import time
import uuid
from typing import Any, AsyncIterable, Awaitable, Hashable, Optional, Union

from agent_notifier.config import Config
from agent_notifier.events.dedupe import EventDedupe
from agent_notifier.events.parser import StreamEventParser
from agent_notifier.events.types import (
    EventSource,
    EventStatus,
    EventType,
    RuntimeEvent,
    StructuredEvent,
)
from agent_notifier.notifications.dispatcher import NotificationDispatcher
from agent_notifier.sessions.registry import SessionRegistry
from agent_notifier.sync import ConfigReconciler, SyncResult, SyncStatus, detect_tools

logger = logging.getLogger(__name__)

TEST_MESSAGE = "Test notification from Agent Task Notifier"


def _preview(value: Optional[str], max_chars: int = 80) -> str:
    if not value:
        return ""
    normalized = " ".join(value.split())
    if len(normalized) <= max_chars:
        return normalized
    return normalized[: max_chars - 1] + "…"


class SessionTap:
    """Feeds one session's output into its private parser.

    Bytes are decoded incrementally so a multi-byte character split across
    chunks is not mangled.
    """

    def __init__(self, monitor: "Monitor", handle: Hashable, terminal_id: str):
        self.handle = handle
        self.terminal_id = terminal_id
        self._monitor = monitor
        self._decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
        self._parser = StreamEventParser(
            on_event=self._on_event,
            on_debug=lambda message: logger.debug("[%s] %s", terminal_id, message),
        )
        self._closed = False

    @property
    def closed(self) -> bool:
        """True once the session's stream has ended."""
        return self._closed

    def feed(self, data: Union[bytes, str]) -> list[StructuredEvent]:
        """Feed raw output.

        Returns:
            Events decoded from this chunk.
        """
        if self._closed:
            return []
        text = self._decoder.decode(data) if isinstance(data, bytes) else data
        return self._parser.feed(text)

    def close(self) -> None:
        """End of stream: drop partial frames and forget the session."""
        if self._closed:
            return
        self._closed = True
        self._parser.flush()
        self._decoder.reset()
        self._monitor._session_closed(self)

    def _on_event(self, payload: StructuredEvent) -> None:
        self._monitor._on_structured(self, payload)


class Monitor:
    """Coordinates parsing, dedupe, dispatch and config sync.

    Usage:
        monitor = Monitor(config, dispatcher, build_reconcilers(config.homes))
        tap = monitor.open_session(pane_id, "claude --resume")
        tap.feed(chunk)
        ...
        tap.close()
    """

    def __init__(
        self,
        config: Config,
        dispatcher: NotificationDispatcher,
        reconcilers: Optional[dict[str, ConfigReconciler]] = None,
        registry: Optional[SessionRegistry] = None,
        dedupe: Optional[EventDedupe] = None,
    ):
        """Initialize Monitor.

        Args:
            config: Initial configuration (see reload_config).
            dispatcher: Notification dispatcher.
            reconcilers: Tool name -> reconciler.
            registry: Session registry (created if None).
            dedupe: Dedupe engine (created if None, window read from config).
        """
        self._config = config
        self._dispatcher = dispatcher
        self._reconcilers = reconcilers or {}
        self._registry = registry or SessionRegistry()
        self._dedupe = dedupe or EventDedupe(lambda: self._config.dedupe_window_ms)
        self._taps: dict[Hashable, SessionTap] = {}
        self._warned_tools: set[str] = set()
        self._tasks: set[asyncio.Task] = set()

    @property
    def config(self) -> Config:
        """Current configuration."""
        return self._config

    @property
    def registry(self) -> SessionRegistry:
        """Session registry."""
        return self._registry

    @property
    def reconcilers(self) -> dict[str, ConfigReconciler]:
        """Reconcilers by tool name."""
        return self._reconcilers

    @property
    def session_count(self) -> int:
        """Number of open session taps."""
        return len(self._taps)

    def reload_config(self, config: Config) -> None:
        """Swap configuration; the dedupe window follows immediately."""
        self._config = config
        logger.info(
            "Configuration reloaded (enabled=%s, dedupe_window_ms=%s)",
            config.enabled,
            config.dedupe_window_ms,
        )

    # ------------------------------------------------------------------
    # Sessions
    # ------------------------------------------------------------------

    def open_session(self, handle: Hashable, command_line: str = "") -> SessionTap:
        """Start observing a command running in a session.

        Reconciliation runs once for every agent tool the command line
        starts (see command_started). An existing tap for the same handle
        is closed first.

        Args:
            handle: Host session handle.
            command_line: Command line the session is running.

        Returns:
            SessionTap to feed output into.
        """
        previous = self._taps.get(handle)
        if previous is not None:
            previous.close()

        terminal_id = self._registry.get_or_assign_id(handle)
        tap = SessionTap(self, handle, terminal_id)
        self._taps[handle] = tap
        logger.debug("Started stream for terminal %s command=%r", terminal_id, command_line)
        self.command_started(handle, command_line)
        return tap

    def command_started(self, handle: Hashable, command_line: str) -> list[str]:
        """Schedule reconciliation for every agent tool a command line starts.

        Returns:
            The detected tools.
        """
        if not command_line:
            return []
        if not self._config.enabled:
            logger.debug("Ignored command detection because notifier is disabled")
            return []

        terminal_id = self._registry.get_or_assign_id(handle)
        tools = [tool for tool in detect_tools(command_line) if tool in self._reconcilers]
        for tool in tools:
            logger.info("%s command detected in terminal %s", tool, terminal_id)
            self._spawn(self.sync_tool(tool))
        return tools

    async def consume(
        self,
        handle: Hashable,
        command_line: str,
        chunks: AsyncIterable[Union[bytes, str]],
    ) -> None:
        """Drive a session tap from an async stream of output chunks."""
        tap = self.open_session(handle, command_line)
        try:
            async for chunk in chunks:
                tap.feed(chunk)
            logger.debug("Stream ended for terminal %s", tap.terminal_id)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.warning("Stream error for terminal %s: %s", tap.terminal_id, e)
        finally:
            tap.close()

    def get_tap(self, handle: Hashable) -> Optional[SessionTap]:
        """Open tap for a handle, if any."""
        return self._taps.get(handle)

    def forget_session(self, handle: Hashable) -> None:
        """Session closed by the host: close its tap and release its id."""
        tap = self._taps.get(handle)
        if tap is not None:
            tap.close()
            return
        terminal_id = self._registry.unregister(handle)
        if terminal_id is not None:
            self._dedupe.clear_session(terminal_id)

    def _session_closed(self, tap: SessionTap) -> None:
        if self._taps.get(tap.handle) is not tap:
            return
        del self._taps[tap.handle]
        terminal_id = self._registry.unregister(tap.handle)
        if terminal_id is not None:
            self._dedupe.clear_session(terminal_id)
        logger.debug("Session closed for terminal %s", tap.terminal_id)

    # ------------------------------------------------------------------
    # Events
    # ------------------------------------------------------------------

    def _on_structured(self, tap: SessionTap, payload: StructuredEvent) -> None:
        logger.info(
            "Structured event parsed %s:%s terminal=%s session=%s task=%s turn=%s",
            payload.source.value,
            payload.event.value,
            tap.terminal_id,
            payload.session_id or "-",
            payload.task_id or "-",
            payload.turn_id or "-",
        )
        logger.debug(
            "Structured payload detail terminal=%s title=%r message=%r",
            tap.terminal_id,
            _preview(payload.title),
            _preview(payload.message),
        )
        event = RuntimeEvent.from_structured(payload, tap.terminal_id, tap.handle)
        # Dedupe is decided synchronously, in stream order
        if self._admit(event):
            self._spawn(self._deliver(event))

    def _admit(self, event: RuntimeEvent) -> bool:
        if not self._config.enabled:
            logger.debug("Skip notify because notifier is disabled")
            return False
        return self._dedupe.should_emit(event)

    async def handle_event(self, event: RuntimeEvent) -> bool:
        """Dedupe and dispatch one event.

        Returns:
            True if the event was dispatched.
        """
        if not self._admit(event):
            return False
        await self._deliver(event)
        return True

    async def _deliver(self, event: RuntimeEvent) -> None:
        await self._dispatcher.dispatch(event)
        logger.info(
            "Notification delivered %s:%s terminal=%s",
            event.source.value,
            event.event.value,
            event.terminal_id,
        )

    async def send_test_notification(self, handle: Hashable) -> bool:
        """Synthesize a test event for a session and dispatch it."""
        terminal_id = self._registry.get_or_assign_id(handle)
        now = int(time.time() * 1000)
        event = RuntimeEvent(
            source=EventSource.CODEX,
            event=EventType.TURN_COMPLETE,
            status=EventStatus.SUCCESS,
            message=TEST_MESSAGE,
            created_at=now,
            dedupe_key=f"test:{terminal_id}:{uuid.uuid4().hex}",
            terminal_id=terminal_id,
            session_handle=handle,
        )
        logger.info("Sending test notification for terminal %s", terminal_id)
        return await self.handle_event(event)

    # ------------------------------------------------------------------
    # Config sync
    # ------------------------------------------------------------------

    async def sync_tool(self, tool: str) -> SyncResult:
        """Reconcile one tool after its command was detected."""
        reconciler = self._reconcilers[tool]
        result = await asyncio.to_thread(reconciler.reconcile)
        await self._report_sync(reconciler, result, manual=False)
        return result

    async def repair(self, tool: str) -> SyncResult:
        """Manually reconcile one tool and always report the outcome."""
        logger.info("Manual %s repair triggered", tool)
        reconciler = self._reconcilers[tool]
        result = await asyncio.to_thread(reconciler.reconcile)
        await self._report_sync(reconciler, result, manual=True)
        return result

    async def repair_all(self) -> dict[str, SyncResult]:
        """Manually reconcile every tool."""
        return {tool: await self.repair(tool) for tool in self._reconcilers}

    async def _report_sync(self, reconciler: ConfigReconciler, result: SyncResult, manual: bool) -> None:
        name = reconciler.display_name
        tool = reconciler.tool

        if result.status == SyncStatus.UPDATED:
            logger.info("%s config rewritten: %s", name, result.detail)
            if manual:
                text = f"{name} configuration repaired. Restart the current {tool} process."
            else:
                text = (
                    f"{name} configuration was auto-updated. "
                    f"Restart the current {tool} process to apply changes."
                )
            await self._dispatcher.notify_operator(text)
            return

        if result.status == SyncStatus.UNCHANGED:
            logger.info("%s already up to date: %s", name, result.detail)
            if manual:
                await self._dispatcher.notify_operator(f"{name} configuration is already up to date.")
            return

        logger.warning("%s sync failed: %s", name, result.detail)
        if manual:
            await self._dispatcher.notify_operator(
                f"Failed to repair {name} configuration. See logs for details.", warning=True
            )
            return
        if tool in self._warned_tools:
            return
        self._warned_tools.add(tool)
        await self._dispatcher.notify_operator(
            f"Failed to auto-configure {name}. See agent-notifier logs for details.", warning=True
        )

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def _spawn(self, coro: Awaitable[Any]) -> None:
        task = asyncio.ensure_future(coro)
        self._tasks.add(task)
        task.add_done_callback(self._task_done)

    def _task_done(self, task: asyncio.Task) -> None:
        self._tasks.discard(task)
        if not task.cancelled() and task.exception() is not None:
            logger.error("Background task failed: %s", task.exception())

    async def wait_idle(self) -> None:
        """Wait for scheduled dispatches and syncs to finish."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    async def close(self) -> None:
        """Close every tap and cancel background work."""
        for tap in list(self._taps.values()):
            tap.close()
        for task in list(self._tasks):
            task.cancel()
        if self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)
        await self._dispatcher.close()

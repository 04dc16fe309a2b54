"""Pane watcher: keeps one capture and one monitor session per tmux pane."""

import asyncio
import logging
from dataclasses import dataclass
from typing import Callable, Optional

from agent_notifier.errors import HostError
from agent_notifier.monitor import Monitor

from .capture import PaneCapture
from .service import PaneInfo, TmuxService

logger = logging.getLogger(__name__)

CaptureFactory = Callable[[str, Callable[[bytes], None]], PaneCapture]


@dataclass
class _WatchedPane:
    capture: PaneCapture
    command_line: str


class TmuxWatcher:
    """Polls tmux for panes and wires their output into the monitor.

    - A new pane gets a pipe-pane capture and a monitor session.
    - A changed foreground command is reported to the monitor so agent
      configuration can be reconciled.
    - A vanished pane is stopped and forgotten.

    Usage:
        watcher = TmuxWatcher(service, monitor, poll_interval=1.0)
        await watcher.run()  # until watcher.stop()
    """

    def __init__(
        self,
        service: TmuxService,
        monitor: Monitor,
        poll_interval: float = 1.0,
        capture_factory: Optional[CaptureFactory] = None,
    ):
        """Initialize TmuxWatcher.

        Args:
            service: tmux service.
            monitor: Monitor receiving pane output.
            poll_interval: Seconds between pane scans.
            capture_factory: Creates a capture for (pane_id, on_output)
                (for testing).
        """
        self._service = service
        self._monitor = monitor
        self._poll_interval = poll_interval
        self._capture_factory = capture_factory or self._default_capture
        self._panes: dict[str, _WatchedPane] = {}
        # Panes whose capture failed, with the command line seen at the time
        self._failed: dict[str, str] = {}
        self._stop_event = asyncio.Event()

    @property
    def pane_ids(self) -> list[str]:
        """Panes currently watched."""
        return list(self._panes)

    def _default_capture(self, pane_id: str, on_output: Callable[[bytes], None]) -> PaneCapture:
        return PaneCapture(self._service, pane_id, on_output)

    def _make_output_handler(self, pane_id: str) -> Callable[[bytes], None]:
        def on_output(data: bytes) -> None:
            tap = self._monitor.get_tap(pane_id)
            if tap is not None:
                tap.feed(data)

        return on_output

    async def poll(self) -> None:
        """Scan panes once and reconcile watched state."""
        panes = await self._service.list_panes()
        current: dict[str, PaneInfo] = {pane.pane_id: pane for pane in panes}

        for pane_id in [p for p in self._panes if p not in current]:
            await self._drop(pane_id, pane_alive=False)
        for pane_id in [p for p in self._failed if p not in current]:
            del self._failed[pane_id]

        for pane in panes:
            watched = self._panes.get(pane.pane_id)
            if watched is None:
                await self._add(pane)
            elif watched.command_line != pane.command_line:
                logger.debug(
                    "Pane %s command changed: %r -> %r",
                    pane.pane_id,
                    watched.command_line,
                    pane.command_line,
                )
                watched.command_line = pane.command_line
                self._monitor.command_started(pane.pane_id, pane.command_line)

    async def _add(self, pane: PaneInfo) -> None:
        """Capture a pane, then open its monitor session.

        The session (and with it reconciliation for the command line) is
        only opened once the capture runs. A failed capture is retried on
        later polls and warned about once per command line.
        """
        capture = self._capture_factory(pane.pane_id, self._make_output_handler(pane.pane_id))
        try:
            await capture.start()
        except (HostError, OSError) as e:
            if self._failed.get(pane.pane_id) != pane.command_line:
                logger.warning("Failed to capture pane %s: %s", pane.pane_id, e)
            else:
                logger.debug("Capture retry failed for pane %s: %s", pane.pane_id, e)
            self._failed[pane.pane_id] = pane.command_line
            return
        self._failed.pop(pane.pane_id, None)
        # No await between start and open_session, so no output is missed
        self._monitor.open_session(pane.pane_id, pane.command_line)
        self._panes[pane.pane_id] = _WatchedPane(capture=capture, command_line=pane.command_line)
        logger.info("Watching pane %s (%s)", pane.pane_id, pane.session_name)

    async def _drop(self, pane_id: str, pane_alive: bool = True) -> None:
        watched = self._panes.pop(pane_id)
        await watched.capture.stop(pane_alive=pane_alive)
        self._monitor.forget_session(pane_id)
        logger.info("Stopped watching pane %s", pane_id)

    async def run(self) -> None:
        """Poll until stop() is called."""
        await self._service.verify()
        self._stop_event.clear()
        logger.info("Watching tmux panes every %.1fs", self._poll_interval)
        while not self._stop_event.is_set():
            try:
                await self.poll()
            except HostError as e:
                logger.warning("tmux poll failed: %s", e)
            try:
                await asyncio.wait_for(self._stop_event.wait(), timeout=self._poll_interval)
            except asyncio.TimeoutError:
                pass
        await self.close()

    def stop(self) -> None:
        """Ask run() to return."""
        self._stop_event.set()

    async def close(self) -> None:
        """Stop every capture."""
        for pane_id in list(self._panes):
            await self._drop(pane_id)

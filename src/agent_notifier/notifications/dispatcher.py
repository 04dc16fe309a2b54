"""Notification dispatcher: the only caller of the OS notifier and host toasts."""

import asyncio
import logging
from typing import Any, AsyncIterator, Callable, Optional, Protocol

from agent_notifier.config import Config
from agent_notifier.events.types import RuntimeEvent

from .backends import ClickEvent, NotifierBackend
from .render import render

logger = logging.getLogger(__name__)


class TerminalHost(Protocol):
    """Protocol for the host that owns terminal sessions."""

    async def show_toast(self, text: str, warning: bool = False) -> None:
        """Show a short in-host message."""
        ...

    async def focus(self, handle: Any) -> bool:
        """Bring a session to the front. Returns False if it is gone."""
        ...


class NotificationDispatcher:
    """Delivers deduplicated events to the user.

    Features:
    - OS notification through a pluggable backend
    - Click on a notification focuses the originating session
    - In-host toast as a second channel
    - Both channels can be toggled live through configuration

    Usage:
        dispatcher = NotificationDispatcher(backend, host, lambda: config)
        await dispatcher.dispatch(event)
    """

    def __init__(
        self,
        backend: NotifierBackend,
        host: TerminalHost,
        config_provider: Optional[Callable[[], Config]] = None,
    ):
        """Initialize NotificationDispatcher.

        Args:
            backend: OS notification backend.
            host: Terminal host for toasts and focus.
            config_provider: Returns the current configuration.
        """
        self._backend = backend
        self._host = host
        self._config_provider = config_provider or Config
        self._click_tasks: set[asyncio.Task] = set()

    async def dispatch(self, event: RuntimeEvent) -> None:
        """Show an event through every enabled channel.

        Backend and host failures are logged and swallowed; the caller has
        already counted the event as delivered.
        """
        config = self._config_provider()
        rendered = render(event)

        if config.os_notification:
            self._start_os_notification(event, rendered.title, rendered.message)
        else:
            logger.debug("OS notifications disabled by setting")

        if config.toast:
            try:
                await self._host.show_toast(rendered.toast_text)
                logger.info(
                    "Toast shown for %s:%s terminal=%s",
                    event.source.value,
                    event.event.value,
                    event.terminal_id,
                )
            except Exception as e:
                logger.warning("Failed to show toast: %s", e)
        else:
            logger.debug("Toast disabled by setting")

    async def notify_operator(self, text: str, warning: bool = False) -> None:
        """Show an operational message (e.g. a config sync outcome) as a toast."""
        try:
            await self._host.show_toast(text, warning=warning)
        except Exception as e:
            logger.warning("Failed to show operator message: %s", e)

    async def focus(self, event: RuntimeEvent) -> bool:
        """Focus the session an event came from."""
        try:
            focused = await self._host.focus(event.session_handle)
        except Exception as e:
            logger.warning("Failed to focus terminal %s: %s", event.terminal_id, e)
            return False
        if focused:
            logger.info("Focused terminal %s", event.terminal_id)
        else:
            logger.debug("Terminal %s is gone, focus ignored", event.terminal_id)
        return focused

    async def wait_idle(self) -> None:
        """Wait for outstanding OS notifications to finish (for testing)."""
        if self._click_tasks:
            await asyncio.gather(*self._click_tasks, return_exceptions=True)

    async def close(self) -> None:
        """Cancel outstanding notifications and release the backend."""
        tasks = list(self._click_tasks)
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
        self._click_tasks.clear()

        close_backend = getattr(self._backend, "close", None)
        if close_backend is not None:
            await close_backend()

    @property
    def pending_count(self) -> int:
        """Number of OS notifications still waiting for clicks."""
        return len(self._click_tasks)

    def _start_os_notification(self, event: RuntimeEvent, title: str, message: str) -> None:
        metadata = {
            "terminal_id": event.terminal_id,
            "source": event.source.value,
            "event": event.event.value,
            "status": event.status.value,
        }
        clicks = self._backend.notify(title, message, metadata)
        task = asyncio.create_task(self._consume_clicks(event, clicks))
        self._click_tasks.add(task)
        task.add_done_callback(self._click_tasks.discard)

    async def _consume_clicks(self, event: RuntimeEvent, clicks: AsyncIterator[ClickEvent]) -> None:
        try:
            async for click in clicks:
                logger.info(
                    "Notification click (%s) focusing terminal %s", click.action, event.terminal_id
                )
                await self.focus(event)
            logger.info(
                "OS notification finished for %s:%s terminal=%s",
                event.source.value,
                event.event.value,
                event.terminal_id,
            )
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.warning("OS notification failed: %s", e)

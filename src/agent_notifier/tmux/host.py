"""tmux as the terminal host: toasts in the status line, focus by pane."""

import logging

from agent_notifier.errors import HostError

from .service import TmuxService

logger = logging.getLogger(__name__)

WARNING_PREFIX = "[!] "


class TmuxHost:
    """TerminalHost implementation backed by a tmux server.

    Session handles are pane ids.
    """

    def __init__(self, service: TmuxService):
        self._service = service

    async def show_toast(self, text: str, warning: bool = False) -> None:
        """Show a message on every attached client.

        With no attached client there is nobody to show it to and the
        message is only logged.
        """
        message = f"{WARNING_PREFIX}{text}" if warning else text
        clients = await self._service.list_clients()
        if not clients:
            logger.debug("No tmux client attached, toast dropped: %s", message)
            return
        for client in clients:
            await self._service.display_message(message, client=client)

    async def focus(self, handle: str) -> bool:
        """Select a pane and switch attached clients to it.

        Returns:
            False if the pane no longer exists.
        """
        if not handle or not await self._service.pane_exists(handle):
            return False

        await self._service.focus_pane(handle)
        for client in await self._service.list_clients():
            try:
                await self._service.switch_client(client, handle)
            except HostError as e:
                logger.debug("Could not switch client %s: %s", client, e)
        return True

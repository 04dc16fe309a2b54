"""Registry that assigns stable ids to host terminal sessions."""

import logging
import uuid
from typing import Any, Hashable, Optional

logger = logging.getLogger(__name__)


class SessionRegistry:
    """Maps host session handles to generated terminal ids and back.

    This is a simple state container - business logic belongs elsewhere.
    Handles must be hashable (tmux uses pane ids such as ``%3``).
    """

    def __init__(self):
        """Initialize empty registry."""
        self._handle_to_id: dict[Hashable, str] = {}
        self._id_to_handle: dict[str, Any] = {}

    def get_or_assign_id(self, handle: Hashable) -> str:
        """Return the id for a handle, assigning a new one if needed.

        Args:
            handle: Host session handle.

        Returns:
            Terminal id (a UUID string).
        """
        existing = self._handle_to_id.get(handle)
        if existing:
            return existing

        terminal_id = str(uuid.uuid4())
        self._handle_to_id[handle] = terminal_id
        self._id_to_handle[terminal_id] = handle
        logger.debug("Registered terminal %s for %s", terminal_id, handle)
        return terminal_id

    def get_handle(self, terminal_id: str) -> Optional[Any]:
        """Get the handle for a terminal id, or None if unknown."""
        return self._id_to_handle.get(terminal_id)

    def unregister(self, handle: Hashable) -> Optional[str]:
        """Forget a handle.

        Returns:
            The removed terminal id, or None if the handle was unknown.
        """
        terminal_id = self._handle_to_id.pop(handle, None)
        if terminal_id is None:
            return None
        self._id_to_handle.pop(terminal_id, None)
        logger.debug("Unregistered terminal %s", terminal_id)
        return terminal_id

    def __len__(self) -> int:
        """Return number of registered sessions."""
        return len(self._handle_to_id)

    def __contains__(self, handle: Hashable) -> bool:
        """Check if a handle is registered."""
        return handle in self._handle_to_id

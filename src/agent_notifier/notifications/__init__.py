"""Notification delivery for decoded agent events."""

import logging

from agent_notifier.config import Config

from .backends import (
    ClickEvent,
    DesktopNotifier,
    NotifierBackend,
    NtfyNotifier,
    NullNotifier,
)
from .dispatcher import NotificationDispatcher, TerminalHost
from .render import RenderedNotification, render, title_for_event

logger = logging.getLogger(__name__)


def create_backend(config: Config) -> NotifierBackend:
    """Build the backend selected in configuration.

    Falls back to the null backend when ntfy is selected without a topic.
    """
    if config.backend == "ntfy":
        if config.ntfy.topic:
            return NtfyNotifier(
                topic=config.ntfy.topic,
                server=config.ntfy.server,
                click_url=config.ntfy.click_url,
            )
        logger.warning("ntfy backend selected without a topic, OS notifications disabled")
        return NullNotifier()
    if config.backend == "none":
        return NullNotifier()
    return DesktopNotifier()


__all__ = [
    "ClickEvent",
    "DesktopNotifier",
    "NotificationDispatcher",
    "NotifierBackend",
    "NtfyNotifier",
    "NullNotifier",
    "RenderedNotification",
    "TerminalHost",
    "create_backend",
    "render",
    "title_for_event",
]

"""Base exceptions for agent-task-notifier."""


class NotifierError(Exception):
    """Base exception for all agent-task-notifier errors."""

    pass


class CodecError(NotifierError):
    """Frame or payload could not be decoded."""

    pass


class ConfigSyncError(NotifierError):
    """Reconciling an external agent configuration failed."""

    pass


class MalformedConfigError(ConfigSyncError):
    """External configuration does not have the expected structure."""

    pass


class HostError(NotifierError):
    """Terminal host (tmux) operation error."""

    pass


class HostVersionError(HostError):
    """tmux version too old."""

    pass


class NotifierBackendError(NotifierError):
    """OS notification backend failed."""

    pass

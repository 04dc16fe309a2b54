"""agent-task-notifier: desktop notifications for AI coding agents in terminals."""

__version__ = "0.1.0"

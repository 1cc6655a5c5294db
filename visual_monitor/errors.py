"""Exception hierarchy for the visual monitor."""

from __future__ import annotations


class MonitorError(Exception):
    """Base class for all errors raised by the monitor."""


class ConfigurationError(MonitorError):
    """A required setting or environment variable is missing."""


class CaptureError(MonitorError):
    """A page could not be captured. Recoverable: recorded and skipped."""

    def __init__(self, url: str, message: str):
        super().__init__(message)
        self.url = url
        self.message = message


class BaselineError(MonitorError):
    """Reading or atomically writing a baseline failed."""


class ArchiveError(MonitorError):
    """The diff archive could not be created."""


class NotificationError(MonitorError):
    """The email transport rejected the message."""

    def __init__(self, status_code: int, reason: str, body: str = ""):
        super().__init__(f"Mailgun send failed: {status_code} {reason}\n{body}".rstrip())
        self.status_code = status_code
        self.reason = reason
        self.body = body


class VcsError(MonitorError):
    """A git command failed while persisting baselines."""

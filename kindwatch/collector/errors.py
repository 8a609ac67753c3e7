"""Error taxonomy for the watch engine.

ConfigurationError       -- client could not be built; fatal to the process.
DiscoveryError           -- the type catalog could not be read at all.
WatchConnectionError     -- opening or reading a subscription failed; retryable.
UnsupportedResourceError -- the kind is not served by this cluster; ends one loop.
ServerSideEventError     -- an ERROR notification sent by the API server.
AlreadyRunningError      -- start() called on an active supervisor.
"""

from __future__ import annotations


class KindwatchError(Exception):
    """Base class for every kindwatch error."""


class ConfigurationError(KindwatchError):
    """Raised when the Kubernetes client cannot be configured."""


class DiscoveryError(KindwatchError):
    """Raised when no part of the cluster's type catalog could be read."""


class WatchConnectionError(KindwatchError):
    """Raised when a subscription cannot be opened or breaks mid-stream."""

    def __init__(self, message: str, status: int | None = None) -> None:
        super().__init__(message)
        self.status = status


class UnsupportedResourceError(WatchConnectionError):
    """Raised when the cluster does not serve the requested resource type."""


class ServerSideEventError(KindwatchError):
    """Error detail delivered in-band by the API server."""

    def __init__(self, message: str, code: int | None = None, reason: str = "") -> None:
        super().__init__(message)
        self.message = message
        self.code = code
        self.reason = reason


class AlreadyRunningError(KindwatchError):
    """Raised by WatchSupervisor.start() when it is already watching."""

    def __init__(self) -> None:
        super().__init__("watcher is already running")

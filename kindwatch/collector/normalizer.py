"""Event normalization with per-identity version tracking.

Each WatchLoop owns exactly one EventNormalizer, and with it the only
reference to its VersionCache.  Nothing here is shared between loops, so
no locking is needed.
"""

from __future__ import annotations

from typing import Any

from kindwatch.collector.errors import ServerSideEventError
from kindwatch.models.events import EventType, Identity, ResourceEvent, ResourceKindDescriptor

VersionCache = dict[Identity, str]


class EventNormalizer:
    """Turns raw watch notifications into ResourceEvents for one kind."""

    def __init__(self, resource: ResourceKindDescriptor) -> None:
        self._resource = resource
        self._versions: VersionCache = {}

    @property
    def versions(self) -> VersionCache:
        """Read-only view for inspection; callers must not mutate it."""
        return self._versions

    def normalize(self, raw_event: dict[str, Any]) -> ResourceEvent:
        """Normalize one raw notification and update the version cache.

        Raises ValueError when the event type tag is not one of
        ADDED, MODIFIED, DELETED, ERROR.
        """
        event_type = EventType(str(raw_event.get("type", "")).upper())
        obj = _extract_object(raw_event)
        name, namespace, resource_version = _extract_metadata(obj)
        identity = Identity(namespace=namespace, name=name)

        previous = ""
        error: ServerSideEventError | None = None

        if event_type is EventType.ADDED:
            self._versions[identity] = resource_version
        elif event_type is EventType.MODIFIED:
            previous = self._versions.get(identity, "")
            self._versions[identity] = resource_version
        elif event_type is EventType.DELETED:
            self._versions.pop(identity, None)
        else:
            error = _status_error(obj)

        return ResourceEvent(
            event_type=event_type,
            resource=self._resource,
            identity=identity,
            resource_version=resource_version,
            previous_resource_version=previous,
            raw_object=obj,
            error=error,
        )


def _extract_object(raw_event: dict[str, Any]) -> dict[str, Any]:
    obj = raw_event.get("raw_object")
    if not isinstance(obj, dict):
        obj = raw_event.get("object")
    return obj if isinstance(obj, dict) else {}


def _extract_metadata(obj: dict[str, Any]) -> tuple[str, str, str]:
    """Return (name, namespace, resourceVersion), empty strings when absent."""
    metadata = obj.get("metadata")
    if not isinstance(metadata, dict):
        return "", "", ""
    return (
        _str_field(metadata, "name"),
        _str_field(metadata, "namespace"),
        _str_field(metadata, "resourceVersion"),
    )


def _str_field(mapping: dict[str, Any], key: str) -> str:
    value = mapping.get(key)
    return value if isinstance(value, str) else ""


def _status_error(obj: dict[str, Any]) -> ServerSideEventError:
    """Wrap a metav1.Status payload carried by an ERROR notification."""
    if obj.get("kind") == "Status" or "message" in obj:
        message = obj.get("message")
        code = obj.get("code")
        return ServerSideEventError(
            f"error event: {message}" if message else "error event",
            code=code if isinstance(code, int) else None,
            reason=_str_field(obj, "reason"),
        )
    return ServerSideEventError("unknown error event")

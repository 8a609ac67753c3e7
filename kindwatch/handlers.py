"""ResourceEvent handlers.

LoggingEventHandler -- one structured log line per delivered event.
StoreEventHandler   -- applies events to a ResourceStore (upsert / delete).
FanOutHandler       -- calls several handlers in order for every event.

Handlers are awaited inline by the watch loop.  A handler that needs to do
slow work should hand it off internally rather than block the loop.
"""

from __future__ import annotations

import asyncio
import json
from collections.abc import Sequence
from typing import TYPE_CHECKING

from kindwatch.models.events import EventType, ResourceEvent
from kindwatch.observability.logging import get_logger
from kindwatch.store.resource_store import ResourceStore, StoredResource

if TYPE_CHECKING:
    import structlog

    from kindwatch.collector.watcher import EventHandler

_SPEC_PREVIEW_CHARS = 200


class LoggingEventHandler:
    """Logs every event with its identity and version transition."""

    def __init__(self, log: structlog.stdlib.BoundLogger | None = None) -> None:
        self._log = log or get_logger("events")

    def __call__(self, event: ResourceEvent) -> None:
        fields: dict[str, object] = {
            "resource": event.resource.display,
            "namespace": event.namespace,
            "name": event.name,
            "resource_version": event.resource_version,
        }

        if event.event_type is EventType.ADDED:
            _add_spec_preview(fields, event)
            self._log.info("resource_added", **fields)
        elif event.event_type is EventType.MODIFIED:
            if event.previous_resource_version == event.resource_version:
                self._log.info("resource_modified_no_change", **fields)
                return
            fields["previous_resource_version"] = event.previous_resource_version
            _add_spec_preview(fields, event)
            self._log.info("resource_modified", **fields)
        elif event.event_type is EventType.DELETED:
            self._log.info("resource_deleted", **fields)
        else:
            fields["error"] = str(event.error) if event.error else "unknown error"
            self._log.warning("resource_error_event", **fields)


class StoreEventHandler:
    """Keeps a ResourceStore in sync with the event stream.

    Store writes run in a worker thread so the event loop is not blocked
    by SQLite I/O; the watch loop still waits for each write to finish.
    """

    def __init__(self, store: ResourceStore) -> None:
        self._store = store

    async def __call__(self, event: ResourceEvent) -> None:
        if event.event_type in (EventType.ADDED, EventType.MODIFIED):
            await asyncio.to_thread(self._store.upsert, to_stored(event))
        elif event.event_type is EventType.DELETED:
            await asyncio.to_thread(
                self._store.delete,
                event.resource.kind,
                event.resource.api_version,
                event.namespace,
                event.name,
            )


class FanOutHandler:
    """Delivers each event to every wrapped handler, in order."""

    def __init__(self, handlers: Sequence[EventHandler]) -> None:
        self._handlers = list(handlers)

    async def __call__(self, event: ResourceEvent) -> None:
        for handler in self._handlers:
            result = handler(event)
            if asyncio.iscoroutine(result):
                await result


def to_stored(event: ResourceEvent) -> StoredResource:
    return StoredResource(
        name=event.name,
        namespace=event.namespace,
        kind=event.resource.kind,
        api_version=event.resource.api_version,
        resource_version=event.resource_version,
        data=json.dumps(event.raw_object, default=str),
    )


def _add_spec_preview(fields: dict[str, object], event: ResourceEvent) -> None:
    spec = event.raw_object.get("spec")
    if not spec:
        return
    text = json.dumps(spec, default=str, sort_keys=True)
    if len(text) > _SPEC_PREVIEW_CHARS:
        text = text[:_SPEC_PREVIEW_CHARS] + "... (truncated)"
    fields["spec"] = text

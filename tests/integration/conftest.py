"""Shared fixtures for kindwatch integration tests.

Provides an in-memory fake cluster that serves discovery documents and
scripted watch streams, so the supervisor, loops, handlers and store can be
exercised end to end without touching a real Kubernetes API server.
"""

from __future__ import annotations

import asyncio
from collections.abc import Iterator
from typing import Any

import pytest

from kindwatch.collector.client import collection_path
from kindwatch.collector.errors import UnsupportedResourceError
from kindwatch.models.events import ResourceKindDescriptor
from kindwatch.store.resource_store import ResourceStore

# ---------------------------------------------------------------------------
# Event factory helpers
# ---------------------------------------------------------------------------


def make_raw_event(
    event_type: str,
    name: str,
    namespace: str = "default",
    kind: str = "Pod",
    api_version: str = "v1",
    rv: str = "1",
    spec: dict[str, Any] | None = None,
) -> dict[str, Any]:
    """A watch notification as the API server sends it."""
    metadata: dict[str, Any] = {"name": name, "resourceVersion": rv}
    if namespace:
        metadata["namespace"] = namespace
    return {
        "type": event_type,
        "object": {
            "apiVersion": api_version,
            "kind": kind,
            "metadata": metadata,
            "spec": spec or {},
        },
    }


# ---------------------------------------------------------------------------
# Fake cluster
# ---------------------------------------------------------------------------


class ScriptedStream:
    """Replays a list of events, then idles until closed."""

    def __init__(self, events: list[dict[str, Any]]) -> None:
        self._events = list(events)
        self.closed = False

    def __aiter__(self) -> ScriptedStream:
        return self

    async def __anext__(self) -> dict[str, Any]:
        if self._events:
            await asyncio.sleep(0)
            return self._events.pop(0)
        await asyncio.Event().wait()
        raise StopAsyncIteration

    async def aclose(self) -> None:
        self.closed = True


class FakeCluster:
    """Discovery documents plus one scripted stream per collection path.

    Collections that are not registered answer like a cluster that does
    not serve the resource.
    """

    def __init__(self) -> None:
        self.documents: dict[str, dict[str, Any]] = {
            "/api": {"versions": ["v1"]},
            "/apis": {"groups": []},
        }
        self.scripts: dict[str, list[dict[str, Any]]] = {}
        self.opened: list[str] = []
        self.streams: list[ScriptedStream] = []
        self.closed = False

    def serve(self, group_version: str, resources: list[dict[str, Any]]) -> None:
        """Advertise *resources* under *group_version* in discovery."""
        if "/" in group_version:
            group = group_version.split("/", 1)[0]
            self.documents["/apis"]["groups"].append(
                {"name": group, "versions": [{"groupVersion": group_version}]}
            )
            path = f"/apis/{group_version}"
        else:
            path = f"/api/{group_version}"
        self.documents[path] = {"groupVersion": group_version, "resources": resources}

    def script(self, resource: ResourceKindDescriptor, namespace: str, events: list[dict[str, Any]]) -> None:
        self.scripts[collection_path(resource, namespace)] = events

    async def get_json(self, path: str) -> dict[str, Any]:
        doc = self.documents.get(path)
        if doc is None:
            raise UnsupportedResourceError(f"HTTP 404 from {path}", status=404)
        return doc

    async def open_watch(
        self,
        resource: ResourceKindDescriptor,
        namespace: str = "",
        timeout_seconds: int = 3600,
    ) -> ScriptedStream:
        path = collection_path(resource, namespace)
        self.opened.append(path)
        if path not in self.scripts:
            raise UnsupportedResourceError(
                f"HTTP 404 from {path}: the server could not find the requested resource", status=404
            )
        stream = ScriptedStream(self.scripts[path])
        self.streams.append(stream)
        return stream

    async def close(self) -> None:
        self.closed = True


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def fake_cluster() -> FakeCluster:
    return FakeCluster()


@pytest.fixture
def resource_store() -> Iterator[ResourceStore]:
    store = ResourceStore(":memory:")
    yield store
    store.close()


async def wait_until(predicate: Any, timeout: float = 2.0) -> None:
    """Poll *predicate* on the event loop until true or *timeout* elapses."""
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not predicate():
        if loop.time() > deadline:
            raise AssertionError("condition not reached before timeout")
        await asyncio.sleep(0.01)

"""Per-kind watch loop: reconnect, linear back-off, event dispatch.

One WatchLoop drives one subscription for one ResourceKindDescriptor:

    CREATED -> WATCHING -> (stream closed) -> RETRYING -> WATCHING ...
    CREATED -> (open failed) -> RETRYING -> ... -> TERMINATED

Open failures consume retry budget (sleep 2*r seconds, give up once r
exceeds MAX_RETRIES).  A stream the server closes on its own (timeout,
hang-up) is not a failure: the loop waits RECONNECT_DELAY_SECONDS and
reopens without touching the budget.  A kind the cluster does not serve
terminates the loop at once.

The handler is awaited inline for every event, so a slow handler slows
ingestion for this kind instead of letting events pile up in memory.
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from typing import TYPE_CHECKING, Any, Protocol

from kindwatch.collector.errors import UnsupportedResourceError
from kindwatch.collector.normalizer import EventNormalizer, VersionCache
from kindwatch.models.events import ResourceEvent, ResourceKindDescriptor, SubscriptionState
from kindwatch.observability.logging import get_logger

if TYPE_CHECKING:
    import structlog

MAX_RETRIES = 5
BACKOFF_STEP_SECONDS = 2
RECONNECT_DELAY_SECONDS = 1
WATCH_TIMEOUT_SECONDS = 3600

EventHandler = Callable[[ResourceEvent], Awaitable[None] | None]

_STREAM_END = object()


class EventStream(Protocol):
    def __aiter__(self) -> EventStream: ...

    async def __anext__(self) -> dict[str, Any]: ...

    async def aclose(self) -> None: ...


class WatchSource(Protocol):
    async def open_watch(
        self,
        resource: ResourceKindDescriptor,
        namespace: str = "",
        timeout_seconds: int = WATCH_TIMEOUT_SECONDS,
    ) -> EventStream: ...


class WatchLoop:
    """Drives the subscription for a single kind until stopped or terminal."""

    def __init__(
        self,
        client: WatchSource,
        resource: ResourceKindDescriptor,
        handler: EventHandler,
        namespace: str = "",
        stop_event: asyncio.Event | None = None,
        log: structlog.stdlib.BoundLogger | None = None,
    ) -> None:
        self._client = client
        self._resource = resource
        self._handler = handler
        # Cluster-scoped kinds are always watched cluster-wide.
        self._namespace = namespace if resource.namespaced else ""
        self._stop_event = stop_event or asyncio.Event()
        self._log = (log or get_logger("collector.watcher")).bind(resource=resource.display)
        self._normalizer = EventNormalizer(resource)
        self._retries = 0
        self._state = SubscriptionState.CREATED
        self.failed = False

    @property
    def resource(self) -> ResourceKindDescriptor:
        return self._resource

    @property
    def state(self) -> SubscriptionState:
        return self._state

    @property
    def versions(self) -> VersionCache:
        return self._normalizer.versions

    # ------------------------------------------------------------------
    # Main loop
    # ------------------------------------------------------------------

    async def run(self) -> None:
        """Watch until the stop event is set or the kind is given up on.

        Never raises except CancelledError, which is re-raised after the
        loop is marked TERMINATED.
        """
        self._log.info("watch_loop_started", namespace=self._namespace or "*")
        try:
            while not self._stop_event.is_set():
                stream = await self._open()
                if stream is None:
                    if self._state is SubscriptionState.TERMINATED:
                        return
                    continue

                self._retries = 0
                self._transition(SubscriptionState.WATCHING)
                self._log.info("watch_opened")
                await self._consume(stream)

                if self._stop_event.is_set():
                    break
                self._transition(SubscriptionState.RETRYING)
                self._log.info("watch_stream_closed", reconnect_in_s=RECONNECT_DELAY_SECONDS)
                await self._pause(RECONNECT_DELAY_SECONDS)
        except asyncio.CancelledError:
            self._log.info("watch_loop_cancelled")
            raise
        finally:
            self._transition(SubscriptionState.TERMINATED)
        self._log.info("watch_loop_stopped")

    async def _open(self) -> EventStream | None:
        """One open attempt.  Returns None after a failure has been handled.

        A stop request abandons a connect that is still pending; that is not
        a failure and does not touch the retry budget.
        """
        opener = asyncio.create_task(
            self._client.open_watch(
                self._resource,
                self._namespace,
                timeout_seconds=WATCH_TIMEOUT_SECONDS,
            )
        )
        stop_waiter = asyncio.create_task(self._stop_event.wait())
        try:
            done, _ = await asyncio.wait({opener, stop_waiter}, return_when=asyncio.FIRST_COMPLETED)
        finally:
            stop_waiter.cancel()
            if not opener.done():
                opener.cancel()
        if opener not in done:
            self._log.info("watch_open_abandoned")
            return None

        try:
            return opener.result()
        except UnsupportedResourceError as exc:
            self._log.warning("watch_resource_unsupported", error=str(exc))
            self._transition(SubscriptionState.TERMINATED)
            return None
        except Exception as exc:
            await self._handle_open_failure(exc)
            return None

    async def _handle_open_failure(self, exc: Exception) -> None:
        self._retries += 1
        if self._retries > MAX_RETRIES:
            self.failed = True
            self._log.error(
                "watch_gave_up",
                retries=MAX_RETRIES,
                error=str(exc),
                error_type=type(exc).__name__,
            )
            self._transition(SubscriptionState.TERMINATED)
            return

        delay = BACKOFF_STEP_SECONDS * self._retries
        self._transition(SubscriptionState.RETRYING)
        self._log.warning(
            "watch_retry",
            attempt=self._retries,
            delay_s=delay,
            error=str(exc),
            error_type=type(exc).__name__,
        )
        await self._pause(delay)

    # ------------------------------------------------------------------
    # Stream consumption
    # ------------------------------------------------------------------

    async def _consume(self, stream: EventStream) -> None:
        """Read events until the stream ends, breaks, or stop is requested."""
        stop_waiter = asyncio.create_task(self._stop_event.wait())
        reader: asyncio.Task[Any] | None = None
        try:
            while True:
                reader = asyncio.create_task(_read_next(stream))
                done, _ = await asyncio.wait({reader, stop_waiter}, return_when=asyncio.FIRST_COMPLETED)
                if stop_waiter in done:
                    return
                try:
                    raw = reader.result()
                except Exception as exc:
                    self._log.warning(
                        "watch_stream_error",
                        error=str(exc),
                        error_type=type(exc).__name__,
                    )
                    return
                if raw is _STREAM_END:
                    return
                await self._dispatch(raw)
        finally:
            stop_waiter.cancel()
            if reader is not None and not reader.done():
                reader.cancel()
            await stream.aclose()

    async def _dispatch(self, raw: Any) -> None:
        if not isinstance(raw, dict):
            self._log.warning("watch_event_malformed", payload_type=type(raw).__name__)
            return
        try:
            event = self._normalizer.normalize(raw)
        except ValueError:
            self._log.warning("watch_event_unrecognised", event_type=str(raw.get("type")))
            return

        self._log.debug(
            "watch_event",
            event_type=event.event_type.value,
            namespace=event.namespace,
            name=event.name,
            resource_version=event.resource_version,
        )
        try:
            result = self._handler(event)
            if asyncio.iscoroutine(result):
                await result
        except Exception as exc:
            self._log.error(
                "handler_failed",
                event_type=event.event_type.value,
                namespace=event.namespace,
                name=event.name,
                error=str(exc),
            )

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    async def _pause(self, seconds: float) -> None:
        """Sleep for *seconds*, waking early if stop is requested."""
        try:
            await asyncio.wait_for(self._stop_event.wait(), timeout=seconds)
        except TimeoutError:
            return

    def _transition(self, new_state: SubscriptionState) -> None:
        if self._state is SubscriptionState.TERMINATED or self._state is new_state:
            return
        self._state = new_state


async def _read_next(stream: EventStream) -> Any:
    try:
        return await stream.__anext__()
    except StopAsyncIteration:
        return _STREAM_END

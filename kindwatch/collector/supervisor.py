"""Watch supervisor: lifecycle of the whole multi-kind engine.

The supervisor resolves which kinds to watch, spawns one WatchLoop task per
kind under a shared stop event, and coordinates shutdown.  It guards only
its own running flag and loop counter; loop-internal state is never
touched from here.
"""

from __future__ import annotations

import asyncio
import threading
from dataclasses import dataclass
from typing import TYPE_CHECKING

from kindwatch.collector.discovery import DiscoveryResolver
from kindwatch.collector.errors import AlreadyRunningError
from kindwatch.collector.mapper import DEFAULT_KINDS
from kindwatch.collector.watcher import EventHandler, WatchLoop
from kindwatch.models.events import ResourceKindDescriptor, SubscriptionState
from kindwatch.observability.logging import get_logger

if TYPE_CHECKING:
    import structlog

    from kindwatch.collector.client import ClusterClient

STOP_GRACE_SECONDS = 10.0


@dataclass(frozen=True)
class WatchOptions:
    """What to watch.

    Kind selection priority: ``resources`` if non-empty, else the discovered
    set when ``watch_all``, else DEFAULT_KINDS.  An empty ``namespace``
    watches every namespace.
    """

    namespace: str = ""
    resources: tuple[ResourceKindDescriptor, ...] = ()
    watch_all: bool = False


class WatchSupervisor:
    """Starts, tracks and stops the per-kind watch loops."""

    def __init__(
        self,
        client: ClusterClient,
        discovery: DiscoveryResolver | None = None,
        log: structlog.stdlib.BoundLogger | None = None,
        stop_grace_seconds: float = STOP_GRACE_SECONDS,
    ) -> None:
        self._client = client
        self._log = log or get_logger("collector.supervisor")
        self._discovery = discovery or DiscoveryResolver(client, log=self._log)
        self._stop_grace_seconds = stop_grace_seconds

        self._lock = threading.Lock()
        self._watching = False
        self._active = 0
        self._stop_event = asyncio.Event()
        self._loops: list[WatchLoop] = []
        self._tasks: set[asyncio.Task[None]] = set()

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def start(self, options: WatchOptions, handler: EventHandler) -> list[ResourceKindDescriptor]:
        """Spawn one watch loop per resolved kind and return the kinds.

        Returns as soon as the loops are scheduled.  Raises
        AlreadyRunningError if already watching, and DiscoveryError when
        ``watch_all`` discovery fails completely (the supervisor is left
        stopped in that case).
        """
        with self._lock:
            if self._watching:
                raise AlreadyRunningError()
            self._watching = True
            stop_event = asyncio.Event()
            self._stop_event = stop_event
            self._loops = []

        try:
            resources = await self._resolve(options)
        except BaseException:
            with self._lock:
                self._watching = False
            raise

        self._log.info(
            "watch_supervisor_starting",
            kinds=len(resources),
            namespace=options.namespace or "*",
            watch_all=options.watch_all,
        )
        for resource in resources:
            loop = WatchLoop(
                self._client,
                resource,
                handler,
                namespace=options.namespace,
                stop_event=stop_event,
                log=self._log,
            )
            task = asyncio.create_task(loop.run(), name=f"watch-{resource.display}")
            with self._lock:
                self._loops.append(loop)
                self._tasks.add(task)
                self._active += 1
            task.add_done_callback(self._on_loop_done)
        return resources

    async def stop(self) -> None:
        """Signal every loop to stop and wait up to the grace period.

        Safe to call when never started.  On timeout the remaining tasks are
        cancelled and stop() returns normally; they may still be unwinding.
        """
        with self._lock:
            if not self._watching:
                return
            self._watching = False
            tasks = set(self._tasks)
        self._stop_event.set()
        self._log.info("watch_supervisor_stopping", loops=len(tasks))

        if not tasks:
            return
        _, pending = await asyncio.wait(tasks, timeout=self._stop_grace_seconds)
        if pending:
            self._log.warning(
                "watch_supervisor_stop_timeout",
                pending=len(pending),
                timeout=self._stop_grace_seconds,
            )
            for task in pending:
                task.cancel()
            return
        self._log.info("watch_supervisor_stopped")

    def is_watching(self) -> bool:
        with self._lock:
            return self._watching

    def active_loops(self) -> int:
        with self._lock:
            return self._active

    def states(self) -> dict[str, SubscriptionState]:
        """Current subscription state per watched kind."""
        with self._lock:
            loops = list(self._loops)
        return {loop.resource.display: loop.state for loop in loops}

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    async def _resolve(self, options: WatchOptions) -> list[ResourceKindDescriptor]:
        if options.resources:
            return list(options.resources)
        if options.watch_all:
            return await self._discovery.discover_watchable()
        return list(DEFAULT_KINDS)

    def _on_loop_done(self, task: asyncio.Task[None]) -> None:
        with self._lock:
            self._tasks.discard(task)
            self._active -= 1
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            self._log.error("watch_loop_crashed", task=task.get_name(), error=str(exc))

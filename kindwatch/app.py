"""Application bootstrap for kindwatch.

Wires all components in dependency order and manages the asyncio lifecycle.
Startup order: logging → K8s client → store → handlers → supervisor → REST

Shutdown is graceful: components are stopped in reverse startup order.
Each component's stop error is caught and logged independently so that a
single failure does not prevent the rest from shutting down cleanly.
"""

from __future__ import annotations

import asyncio
import signal
from typing import TYPE_CHECKING

from kindwatch.collector.errors import ConfigurationError, KindwatchError
from kindwatch.models.config import KindwatchConfig
from kindwatch.observability.logging import get_logger, setup_logging

if TYPE_CHECKING:
    import structlog

    from kindwatch.collector.client import ClusterClient
    from kindwatch.collector.supervisor import WatchSupervisor
    from kindwatch.store.resource_store import ResourceStore

_SHUTDOWN_GRACE_SECONDS = 15


class _ComponentError(Exception):
    """Raised when a mandatory component fails to start."""

    def __init__(self, component: str, cause: Exception) -> None:
        super().__init__(f"Component '{component}' failed to start: {cause}")
        self.component = component
        self.cause = cause


class KindwatchApp:
    """Application root.  Owns every component and coordinates their lifecycle.

    Calling ``stop()`` on an app that was never started (or already
    stopped) is safe.
    """

    def __init__(self, config: KindwatchConfig) -> None:
        self.config = config

        self._client: ClusterClient | None = None
        self._store: ResourceStore | None = None
        self._supervisor: WatchSupervisor | None = None
        self._rest_server: object | None = None

        self._background_tasks: list[asyncio.Task[None]] = []

        self._running = False
        self._log: structlog.stdlib.BoundLogger | None = None

    @property
    def running(self) -> bool:
        return self._running

    # ------------------------------------------------------------------
    # Startup
    # ------------------------------------------------------------------

    async def start(self) -> None:
        """Start all components in dependency order.

        Raises _ComponentError if a mandatory component cannot start.
        """
        setup_logging(self.config.log.level, self.config.log.format)
        self._log = get_logger("app")
        self._log.info("kindwatch starting", version=_kindwatch_version())

        await self._start_k8s_client()
        await self._start_store()
        await self._start_supervisor()
        await self._start_rest()

        self._running = True
        self._log.info("kindwatch started")

    async def _start_k8s_client(self) -> None:
        assert self._log is not None
        self._log.debug("starting k8s client")
        from kindwatch.collector.client import ClusterClient

        try:
            self._client = await ClusterClient.create(self.config.watch.kubeconfig)
        except ConfigurationError as exc:
            raise _ComponentError("k8s_client", exc) from exc

    async def _start_store(self) -> None:
        """Open the SQLite store when a database path is configured."""
        assert self._log is not None
        if not self.config.store.db_path:
            self._log.info("resource store disabled (no db path)")
            return
        try:
            from kindwatch.store.resource_store import ResourceStore

            self._store = ResourceStore(self.config.store.db_path)
        except Exception as exc:
            raise _ComponentError("store", exc) from exc

    async def _start_supervisor(self) -> None:
        """Resolve the kind selection and start the watch loops."""
        assert self._log is not None
        assert self._client is not None
        from kindwatch.collector.discovery import DiscoveryResolver
        from kindwatch.collector.supervisor import WatchOptions, WatchSupervisor
        from kindwatch.handlers import FanOutHandler, LoggingEventHandler, StoreEventHandler

        watch_cfg = self.config.watch
        discovery = DiscoveryResolver(self._client)
        resources = ()
        if watch_cfg.kind and watch_cfg.api_version:
            try:
                resources = (await discovery.describe(watch_cfg.kind, watch_cfg.api_version),)
            except KindwatchError as exc:
                raise _ComponentError("supervisor", exc) from exc

        handlers = [LoggingEventHandler()]
        if self._store is not None:
            handlers.append(StoreEventHandler(self._store))

        options = WatchOptions(
            namespace=watch_cfg.namespace,
            resources=resources,
            watch_all=watch_cfg.watch_all,
        )
        supervisor = WatchSupervisor(self._client, discovery=discovery)
        try:
            kinds = await supervisor.start(options, FanOutHandler(handlers))
        except KindwatchError as exc:
            raise _ComponentError("supervisor", exc) from exc
        self._supervisor = supervisor
        self._log.info(
            "watch supervisor started",
            kinds=len(kinds),
            namespace=watch_cfg.namespace or "*",
        )

    async def _start_rest(self) -> None:
        """Start the uvicorn REST server if enabled.  Failure is non-fatal."""
        assert self._log is not None
        if not self.config.api.enabled:
            return
        self._log.debug("starting rest api")
        try:
            import uvicorn

            from kindwatch.api import build_app

            fastapi_app = build_app(supervisor=self._supervisor, store=self._store)
            uv_config = uvicorn.Config(
                app=fastapi_app,
                host="0.0.0.0",
                port=self.config.api.port,
                log_config=None,  # structlog handles all logging
                access_log=False,
            )
            server = uvicorn.Server(uv_config)
            task = asyncio.create_task(server.serve(), name="rest-server")
            self._background_tasks.append(task)
            self._rest_server = server
            self._log.info("rest api started", port=self.config.api.port)
        except Exception as exc:
            self._log.warning("rest api failed to start; search unavailable", error=str(exc))
            self._rest_server = None

    # ------------------------------------------------------------------
    # Shutdown
    # ------------------------------------------------------------------

    async def stop(self) -> None:
        """Stop all components in reverse startup order."""
        if not self._running and self._log is None:
            return

        log = self._log or get_logger("app")
        log.info("kindwatch shutting down")
        self._running = False

        # Drain the watch loops before tearing down what they write to.
        await self._stop_component("supervisor", self._supervisor)
        self._supervisor = None

        for task in reversed(self._background_tasks):
            if not task.done():
                task.cancel()
        if self._background_tasks:
            await asyncio.gather(*self._background_tasks, return_exceptions=True)
        self._background_tasks.clear()
        self._rest_server = None

        await self._stop_component("store", self._store, method="close")
        self._store = None
        await self._stop_component("k8s_client", self._client, method="close")
        self._client = None

        log.info("kindwatch stopped")

    async def _stop_component(self, name: str, component: object | None, method: str = "stop") -> None:
        """Call *method* on a component if present, catching all errors."""
        if component is None:
            return
        log = self._log or get_logger("app")
        stop_fn = getattr(component, method, None)
        if stop_fn is None:
            return
        try:
            result = stop_fn()
            if asyncio.iscoroutine(result):
                await asyncio.wait_for(result, timeout=_SHUTDOWN_GRACE_SECONDS)
        except TimeoutError:
            log.warning("component stop timed out", component=name, timeout=_SHUTDOWN_GRACE_SECONDS)
        except Exception as exc:
            log.error("component stop raised an error", component=name, error=str(exc))


def _kindwatch_version() -> str:
    from kindwatch import __version__

    return __version__


# ---------------------------------------------------------------------------
# Async entrypoint
# ---------------------------------------------------------------------------


async def main(config: KindwatchConfig) -> None:
    """Create the app, register OS signals, run until shutdown is requested.

    Returns only after shutdown has finished, so the store and the cluster
    client are closed before the event loop goes away.
    """
    app = KindwatchApp(config)
    loop = asyncio.get_running_loop()

    shutdown_task: asyncio.Task[None] | None = None

    def _request_shutdown() -> None:
        nonlocal shutdown_task
        if shutdown_task is not None:
            return
        shutdown_task = asyncio.create_task(app.stop(), name="shutdown")

    for sig in (signal.SIGTERM, signal.SIGINT):
        loop.add_signal_handler(sig, _request_shutdown)

    try:
        await app.start()
        while app.running and shutdown_task is None:
            await asyncio.sleep(1)
    except _ComponentError as exc:
        log = get_logger("app")
        log.critical(
            "fatal startup error",
            component=exc.component,
            error=str(exc.cause),
        )
        await app.stop()
        raise SystemExit(1) from exc
    finally:
        if shutdown_task is not None:
            await shutdown_task
        elif app.running:
            await app.stop()

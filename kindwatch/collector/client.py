"""Cluster API boundary built on kubernetes-asyncio.

ClusterClient wraps a ``kubernetes_asyncio.client.ApiClient`` and exposes
the two calls the watch engine needs:

    get_json(path)    -- one discovery document (``/api``, ``/apis/apps/v1``...).
    open_watch(...)   -- a long-lived watch on an arbitrary collection.

Any group/version/plural can be addressed, so built-in kinds and custom
resources go through the same code path.  Watch notifications are decoded
by ``kubernetes_asyncio.watch.Watch``.  Transport failures are mapped onto
the collector error taxonomy here so the loops never see library
exception types.
"""

from __future__ import annotations

from typing import Any

import aiohttp
import structlog
from kubernetes_asyncio import watch
from kubernetes_asyncio.client.exceptions import ApiException

from kindwatch.collector.errors import (
    ConfigurationError,
    UnsupportedResourceError,
    WatchConnectionError,
)
from kindwatch.collector.mapper import plural_for
from kindwatch.models.events import ResourceKindDescriptor

_log = structlog.get_logger(component="collector.client")

_NOT_FOUND_MARKER = "could not find the requested resource"
_AUTH_SETTINGS = ["BearerToken"]
_JSON_HEADERS = {"Accept": "application/json"}
_TRANSPORT_ERRORS = (aiohttp.ClientError, OSError, TimeoutError)


def collection_path(resource: ResourceKindDescriptor, namespace: str = "") -> str:
    """REST path of a kind's collection, namespace-scoped when possible."""
    if resource.group:
        base = f"/apis/{resource.group}/{resource.version}"
    else:
        base = f"/api/{resource.version}"
    plural = plural_for(resource)
    if resource.namespaced and namespace:
        return f"{base}/namespaces/{namespace}/{plural}"
    return f"{base}/{plural}"


def group_version_path(group_version: str) -> str:
    """Discovery path for a ``group/version`` (or bare core version)."""
    if "/" in group_version:
        return f"/apis/{group_version}"
    return f"/api/{group_version}"


class WatchStream:
    """Async iterator of watch notifications for one open collection.

    Yields the ``{"type", "object", "raw_object"}`` dicts produced by
    ``watch.Watch``.  An in-band error (an ERROR notification, or a Status
    line such as 410 Gone) is handed on as a single ERROR notification and
    ends the stream, because the library closes the watch when it sees one.
    """

    def __init__(self, watcher: watch.Watch, path: str) -> None:
        self._watcher = watcher
        self._path = path
        self._closed = False

    def __aiter__(self) -> WatchStream:
        return self

    async def __anext__(self) -> dict[str, Any]:
        while not self._closed:
            try:
                event = await self._watcher.__anext__()
            except ApiException as exc:
                self._closed = True
                return _error_notification(exc)
            except _TRANSPORT_ERRORS as exc:
                raise WatchConnectionError(f"watch stream on {self._path} broke: {exc}") from exc
            if isinstance(event, dict):
                return event
            _log.warning("watch_line_undecodable", path=self._path, payload_type=type(event).__name__)
        raise StopAsyncIteration

    async def aclose(self) -> None:
        self._closed = True
        await self._watcher.close()


class ClusterClient:
    """Thin async facade over the kubernetes-asyncio ApiClient."""

    def __init__(self, api_client: Any) -> None:
        self._api = api_client

    @classmethod
    async def create(cls, kubeconfig: str = "") -> ClusterClient:
        """Load credentials and build a client.

        An explicit *kubeconfig* path wins; otherwise the in-cluster service
        account is tried first, then the default kubeconfig lookup
        (``$KUBECONFIG`` or ``~/.kube/config``).

        Raises ConfigurationError when no usable configuration is found.
        """
        from kubernetes_asyncio import client as k8s_client
        from kubernetes_asyncio import config as k8s_config

        try:
            if kubeconfig:
                await k8s_config.load_kube_config(config_file=kubeconfig)
                _log.info("k8s client configured from kubeconfig", path=kubeconfig)
            else:
                try:
                    # load_incluster_config() is synchronous in kubernetes-asyncio
                    k8s_config.load_incluster_config()
                    _log.info("k8s client configured from in-cluster service account")
                except k8s_config.ConfigException:
                    await k8s_config.load_kube_config()
                    _log.info("k8s client configured from kubeconfig")
            api_client = k8s_client.ApiClient()
        except Exception as exc:
            raise ConfigurationError(f"error building kubeconfig: {exc}") from exc
        return cls(api_client)

    async def close(self) -> None:
        await self._api.close()

    async def get_json(self, path: str) -> dict[str, Any]:
        """GET a JSON document.  Raises WatchConnectionError on failure."""
        try:
            data = await self._api.call_api(
                path,
                "GET",
                header_params=dict(_JSON_HEADERS),
                response_types_map={200: "object"},
                auth_settings=_AUTH_SETTINGS,
                _return_http_data_only=True,
            )
        except ApiException as exc:
            raise _map_api_exception(exc, path) from exc
        except _TRANSPORT_ERRORS as exc:
            raise WatchConnectionError(f"GET {path} failed: {exc}") from exc
        return data if isinstance(data, dict) else {}

    async def list_collection(
        self,
        path: str,
        watch: bool = False,
        timeout_seconds: int | None = None,
        _preload_content: bool = True,
    ) -> Any:
        """GET a collection.  With ``watch=True`` the raw streaming response is returned.

        The keyword names match what ``watch.Watch.stream`` passes to the
        function it drives.
        """
        query_params: list[tuple[str, Any]] = []
        if watch:
            query_params.append(("watch", "true"))
        if timeout_seconds is not None:
            query_params.append(("timeoutSeconds", timeout_seconds))
        return await self._api.call_api(
            path,
            "GET",
            query_params=query_params,
            header_params=dict(_JSON_HEADERS),
            response_types_map={200: "object"},
            auth_settings=_AUTH_SETTINGS,
            _return_http_data_only=True,
            _preload_content=_preload_content,
            _request_timeout=timeout_seconds + 60 if timeout_seconds else None,
        )

    async def open_watch(
        self,
        resource: ResourceKindDescriptor,
        namespace: str = "",
        timeout_seconds: int = 3600,
    ) -> WatchStream:
        """Open a watch on *resource*'s collection.

        ``timeout_seconds`` is passed to the API server, which closes the
        stream once it elapses so that idle connections are rotated.

        The connection is established here rather than on the first read,
        so a cluster that refuses the watch fails the open.

        Raises UnsupportedResourceError when the cluster does not serve the
        resource, WatchConnectionError for every other failure.
        """
        path = collection_path(resource, namespace)
        try:
            response = await self.list_collection(
                path,
                watch=True,
                timeout_seconds=timeout_seconds,
                _preload_content=False,
            )
        except ApiException as exc:
            raise _map_api_exception(exc, path) from exc
        except _TRANSPORT_ERRORS as exc:
            raise WatchConnectionError(f"watch on {path} failed: {exc}") from exc

        status = getattr(response, "status", 200)
        if not 200 <= status <= 299:
            body = await _read_body(response)
            response.release()
            raise _map_status(status, body, path)

        watcher = watch.Watch()
        watcher.stream(self.list_collection, path, timeout_seconds=timeout_seconds)
        # Reads continue on the connection opened above.
        watcher.resp = response
        return WatchStream(watcher, path)


async def _read_body(response: Any) -> str:
    try:
        return await response.text()
    except (*_TRANSPORT_ERRORS, UnicodeDecodeError):
        return ""


def _error_notification(exc: ApiException) -> dict[str, Any]:
    """Rebuild the Status payload of an in-band error raised by watch.Watch."""
    reason, _, message = str(exc.reason or "").partition(": ")
    status = {"kind": "Status", "code": exc.status, "reason": reason, "message": message or reason}
    return {"type": "ERROR", "object": status, "raw_object": status}


def _map_api_exception(exc: ApiException, path: str) -> WatchConnectionError:
    body = exc.body or ""
    if isinstance(body, bytes):
        body = body.decode("utf-8", errors="replace")
    return _map_status(exc.status or 0, f"{exc.reason or ''} {body}", path)


def _map_status(status: int, body: str, path: str) -> WatchConnectionError:
    message = f"HTTP {status} from {path}: {body.strip()}"
    if status == 404 or _NOT_FOUND_MARKER in body:
        return UnsupportedResourceError(message, status=status)
    return WatchConnectionError(message, status=status)

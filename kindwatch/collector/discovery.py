"""Cluster resource-type discovery.

DiscoveryResolver walks the API server's discovery documents (``/api``,
``/apis`` and every advertised group version) and returns a descriptor for
each collection that can be watched.  One unreachable group version is a
warning; only a catalog that cannot be read at all is an error.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Protocol

from kindwatch.collector.client import group_version_path
from kindwatch.collector.errors import DiscoveryError, KindwatchError
from kindwatch.collector.mapper import split_group_version
from kindwatch.models.events import ResourceKindDescriptor
from kindwatch.observability.logging import get_logger

if TYPE_CHECKING:
    import structlog


class DiscoverySource(Protocol):
    async def get_json(self, path: str) -> dict[str, Any]: ...


class DiscoveryResolver:
    """Enumerates the watchable kinds currently served by the cluster."""

    def __init__(
        self,
        client: DiscoverySource,
        log: structlog.stdlib.BoundLogger | None = None,
    ) -> None:
        self._client = client
        self._log = log or get_logger("collector.discovery")

    async def discover_watchable(self) -> list[ResourceKindDescriptor]:
        """Return every watchable, non-subresource collection.

        Raises DiscoveryError when no group version could be listed.
        """
        group_versions = await self._group_versions()

        resources: list[ResourceKindDescriptor] = []
        seen: set[tuple[str, str, str]] = set()
        failed: list[str] = []

        for gv in group_versions:
            try:
                resource_list = await self._client.get_json(group_version_path(gv))
            except KindwatchError as exc:
                failed.append(gv)
                self._log.warning("discovery_group_failed", group_version=gv, error=str(exc))
                continue

            listed_gv = str(resource_list.get("groupVersion") or gv)
            group, version = split_group_version(listed_gv)
            for entry in _resource_entries(resource_list):
                name = str(entry.get("name", ""))
                kind = str(entry.get("kind", ""))
                if not _is_watchable(entry):
                    continue
                key = (listed_gv, kind, name)
                if key in seen:
                    continue
                seen.add(key)
                resources.append(
                    ResourceKindDescriptor(
                        kind=kind,
                        group=group,
                        version=version,
                        namespaced=bool(entry.get("namespaced", False)),
                        plural=name,
                    )
                )

        if group_versions and len(failed) == len(group_versions):
            raise DiscoveryError(f"all {len(failed)} group versions failed discovery")
        if failed:
            self._log.warning("discovery_partial", failed_group_versions=len(failed))
        self._log.info("discovery_complete", kinds=len(resources), group_versions=len(group_versions))
        return resources

    async def describe(self, kind: str, api_version: str) -> ResourceKindDescriptor:
        """Descriptor for an explicitly requested kind.

        Looks up whether the kind is namespaced and what its plural is.  Any
        lookup failure falls back to a namespaced descriptor whose plural is
        derived from the kind name.
        """
        group, version = split_group_version(api_version)
        fallback = ResourceKindDescriptor(kind=kind, group=group, version=version, namespaced=True)
        gv = f"{group}/{version}" if group else version
        try:
            resource_list = await self._client.get_json(group_version_path(gv))
        except KindwatchError as exc:
            self._log.debug("describe_lookup_failed", kind=kind, api_version=api_version, error=str(exc))
            return fallback

        for entry in _resource_entries(resource_list):
            name = str(entry.get("name", ""))
            if entry.get("kind") == kind and "/" not in name:
                return ResourceKindDescriptor(
                    kind=kind,
                    group=group,
                    version=version,
                    namespaced=bool(entry.get("namespaced", False)),
                    plural=name,
                )
        self._log.debug("describe_kind_not_listed", kind=kind, api_version=api_version)
        return fallback

    async def _group_versions(self) -> list[str]:
        core: dict[str, Any] | None = None
        groups: dict[str, Any] | None = None
        try:
            core = await self._client.get_json("/api")
        except KindwatchError as exc:
            self._log.warning("discovery_core_failed", error=str(exc))
        try:
            groups = await self._client.get_json("/apis")
        except KindwatchError as exc:
            self._log.warning("discovery_groups_failed", error=str(exc))

        if core is None and groups is None:
            raise DiscoveryError("could not read the cluster's API catalog")

        result: list[str] = []
        if core is not None:
            result.extend(str(v) for v in core.get("versions") or [])
        if groups is not None:
            for group in groups.get("groups") or []:
                if not isinstance(group, dict):
                    continue
                for gv in group.get("versions") or []:
                    if isinstance(gv, dict) and gv.get("groupVersion"):
                        result.append(str(gv["groupVersion"]))
        return result


def _resource_entries(resource_list: dict[str, Any]) -> list[dict[str, Any]]:
    entries = resource_list.get("resources") or []
    return [e for e in entries if isinstance(e, dict)]


def _is_watchable(entry: dict[str, Any]) -> bool:
    """Watch verb supported and not a subresource such as ``pods/log``."""
    verbs = entry.get("verbs") or []
    name = str(entry.get("name", ""))
    return "watch" in verbs and "/" not in name

"""Unit tests for kindwatch.collector.discovery.DiscoveryResolver."""

from __future__ import annotations

from typing import Any

import pytest

from kindwatch.collector.discovery import DiscoveryResolver
from kindwatch.collector.errors import DiscoveryError, UnsupportedResourceError, WatchConnectionError
from kindwatch.models.events import ResourceKindDescriptor


class _FakeCatalog:
    """Serves canned discovery documents keyed by path."""

    def __init__(self, documents: dict[str, Any]) -> None:
        self._documents = documents
        self.requested: list[str] = []

    async def get_json(self, path: str) -> dict[str, Any]:
        self.requested.append(path)
        doc = self._documents.get(path)
        if isinstance(doc, Exception):
            raise doc
        if doc is None:
            raise UnsupportedResourceError(f"HTTP 404 from {path}", status=404)
        return doc


_CORE = {"kind": "APIVersions", "versions": ["v1"]}
_GROUPS = {
    "kind": "APIGroupList",
    "groups": [
        {"name": "apps", "versions": [{"groupVersion": "apps/v1", "version": "v1"}]},
        {"name": "example.io", "versions": [{"groupVersion": "example.io/v1alpha1", "version": "v1alpha1"}]},
    ],
}
_CORE_V1 = {
    "groupVersion": "v1",
    "resources": [
        {"name": "pods", "kind": "Pod", "namespaced": True, "verbs": ["get", "list", "watch"]},
        {"name": "pods/log", "kind": "Pod", "namespaced": True, "verbs": ["get"]},
        {"name": "pods/status", "kind": "Pod", "namespaced": True, "verbs": ["get", "watch"]},
        {"name": "namespaces", "kind": "Namespace", "namespaced": False, "verbs": ["list", "watch"]},
        {"name": "bindings", "kind": "Binding", "namespaced": True, "verbs": ["create"]},
        {"name": "pods", "kind": "Pod", "namespaced": True, "verbs": ["watch"]},
    ],
}
_APPS_V1 = {
    "groupVersion": "apps/v1",
    "resources": [
        {"name": "deployments", "kind": "Deployment", "namespaced": True, "verbs": ["list", "watch"]},
    ],
}
_EXAMPLE = {
    "groupVersion": "example.io/v1alpha1",
    "resources": [
        {"name": "widgetz", "kind": "Widget", "namespaced": True, "verbs": ["watch"]},
    ],
}


def _catalog(**overrides: Any) -> _FakeCatalog:
    documents: dict[str, Any] = {
        "/api": _CORE,
        "/apis": _GROUPS,
        "/api/v1": _CORE_V1,
        "/apis/apps/v1": _APPS_V1,
        "/apis/example.io/v1alpha1": _EXAMPLE,
    }
    for key, value in overrides.items():
        documents[key] = value
    return _FakeCatalog(documents)


class TestDiscoverWatchable:
    async def test_returns_watchable_non_subresources(self) -> None:
        resolver = DiscoveryResolver(_catalog())

        kinds = await resolver.discover_watchable()

        assert {(k.api_version, k.kind, k.plural) for k in kinds} == {
            ("v1", "Pod", "pods"),
            ("v1", "Namespace", "namespaces"),
            ("apps/v1", "Deployment", "deployments"),
            ("example.io/v1alpha1", "Widget", "widgetz"),
        }

    async def test_duplicates_are_collapsed(self) -> None:
        kinds = await DiscoveryResolver(_catalog()).discover_watchable()
        pods = [k for k in kinds if k.kind == "Pod"]
        assert len(pods) == 1

    async def test_scope_is_carried_from_catalog(self) -> None:
        kinds = await DiscoveryResolver(_catalog()).discover_watchable()
        by_kind = {k.kind: k for k in kinds}

        assert by_kind["Namespace"].namespaced is False
        assert by_kind["Pod"].namespaced is True
        assert by_kind["Deployment"].group == "apps"
        assert by_kind["Pod"].group == ""

    async def test_failed_group_version_is_skipped(self) -> None:
        catalog = _catalog(**{"/apis/example.io/v1alpha1": WatchConnectionError("HTTP 503", status=503)})

        kinds = await DiscoveryResolver(catalog).discover_watchable()

        assert "Widget" not in {k.kind for k in kinds}
        assert "Deployment" in {k.kind for k in kinds}

    async def test_all_group_versions_failing_raises(self) -> None:
        catalog = _catalog(
            **{
                "/api/v1": WatchConnectionError("boom"),
                "/apis/apps/v1": WatchConnectionError("boom"),
                "/apis/example.io/v1alpha1": WatchConnectionError("boom"),
            }
        )

        with pytest.raises(DiscoveryError):
            await DiscoveryResolver(catalog).discover_watchable()

    async def test_unreadable_catalog_raises(self) -> None:
        catalog = _catalog(**{"/api": WatchConnectionError("down"), "/apis": WatchConnectionError("down")})

        with pytest.raises(DiscoveryError):
            await DiscoveryResolver(catalog).discover_watchable()

    async def test_core_only_when_groups_unreadable(self) -> None:
        catalog = _catalog(**{"/apis": WatchConnectionError("down")})

        kinds = await DiscoveryResolver(catalog).discover_watchable()

        assert {k.api_version for k in kinds} == {"v1"}

    async def test_empty_catalog_is_not_an_error(self) -> None:
        catalog = _catalog(**{"/api": {"versions": []}, "/apis": {"groups": []}})
        assert await DiscoveryResolver(catalog).discover_watchable() == []


class TestDescribe:
    async def test_listed_kind_uses_catalog_scope_and_plural(self) -> None:
        descriptor = await DiscoveryResolver(_catalog()).describe("Namespace", "v1")
        assert descriptor == ResourceKindDescriptor(
            kind="Namespace", group="", version="v1", namespaced=False, plural="namespaces"
        )

    async def test_group_kind_is_looked_up_under_apis(self) -> None:
        catalog = _catalog()
        descriptor = await DiscoveryResolver(catalog).describe("Widget", "example.io/v1alpha1")

        assert catalog.requested == ["/apis/example.io/v1alpha1"]
        assert descriptor.plural == "widgetz"

    async def test_unlisted_kind_falls_back_to_namespaced(self) -> None:
        descriptor = await DiscoveryResolver(_catalog()).describe("Gadget", "apps/v1")
        assert descriptor == ResourceKindDescriptor(kind="Gadget", group="apps", version="v1", namespaced=True)

    async def test_lookup_failure_falls_back(self) -> None:
        descriptor = await DiscoveryResolver(_catalog()).describe("Thing", "nowhere.io/v1")
        assert descriptor.namespaced is True
        assert descriptor.plural == ""

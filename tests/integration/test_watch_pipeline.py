"""Integration tests: supervisor -> watch loops -> handlers -> store.

Scenarios:
    1. Default kinds in one namespace, unsupported kinds terminate quietly
    2. --all discovery with a custom resource and its advertised plural
    3. Version linkage across MODIFIED events reaches the handlers
    4. Stop closes every open stream
"""

from __future__ import annotations

from kindwatch.collector.discovery import DiscoveryResolver
from kindwatch.collector.mapper import DEFAULT_KINDS, descriptor_for
from kindwatch.collector.supervisor import WatchOptions, WatchSupervisor
from kindwatch.handlers import FanOutHandler, LoggingEventHandler, StoreEventHandler
from kindwatch.models.events import EventType, ResourceEvent, ResourceKindDescriptor, SubscriptionState
from kindwatch.store.resource_store import ResourceStore

from .conftest import FakeCluster, make_raw_event, wait_until

_POD = descriptor_for("Pod", "v1")
_DEPLOYMENT = descriptor_for("Deployment", "apps/v1")
_NAMESPACE = descriptor_for("Namespace", "v1", namespaced=False)


def _pipeline(store: ResourceStore, received: list[ResourceEvent]) -> FanOutHandler:
    return FanOutHandler([LoggingEventHandler(), StoreEventHandler(store), received.append])


class TestDefaultKinds:
    async def test_events_flow_into_store(self, fake_cluster: FakeCluster, resource_store: ResourceStore) -> None:
        fake_cluster.script(
            _POD,
            "default",
            [
                make_raw_event("ADDED", "web-0", rv="10"),
                make_raw_event("ADDED", "web-1", rv="11"),
                make_raw_event("MODIFIED", "web-0", rv="12"),
                make_raw_event("DELETED", "web-1", rv="13"),
            ],
        )
        fake_cluster.script(
            _DEPLOYMENT,
            "default",
            [make_raw_event("ADDED", "web", kind="Deployment", api_version="apps/v1", spec={"replicas": 2})],
        )
        fake_cluster.script(_NAMESPACE, "", [make_raw_event("ADDED", "default", namespace="", kind="Namespace")])

        received: list[ResourceEvent] = []
        supervisor = WatchSupervisor(fake_cluster, discovery=DiscoveryResolver(fake_cluster))
        kinds = await supervisor.start(WatchOptions(namespace="default"), _pipeline(resource_store, received))
        try:
            assert kinds == list(DEFAULT_KINDS)
            await wait_until(lambda: len(received) == 6)
            # Service and ConfigMap are not served by the fake cluster.
            await wait_until(lambda: supervisor.active_loops() == 3)

            assert resource_store.count() == 3
            pod = resource_store.get("Pod", "v1", "default", "web-0")
            assert pod is not None and pod.resource_version == "12"
            assert resource_store.get("Pod", "v1", "default", "web-1") is None
            deployment = resource_store.get("Deployment", "apps/v1", "default", "web")
            assert deployment is not None and deployment.object()["spec"] == {"replicas": 2}
            assert resource_store.get("Namespace", "v1", "", "default") is not None

            states = supervisor.states()
            assert states["Service/v1"] is SubscriptionState.TERMINATED
            assert states["Pod/v1"] is SubscriptionState.WATCHING
        finally:
            await supervisor.stop()

        assert all(stream.closed for stream in fake_cluster.streams)
        assert supervisor.is_watching() is False

    async def test_modified_events_carry_previous_version(self, fake_cluster: FakeCluster) -> None:
        fake_cluster.script(
            _POD,
            "",
            [
                make_raw_event("ADDED", "api", namespace="prod", rv="1"),
                make_raw_event("MODIFIED", "api", namespace="prod", rv="2"),
                make_raw_event("MODIFIED", "api", namespace="prod", rv="3"),
            ],
        )
        received: list[ResourceEvent] = []
        supervisor = WatchSupervisor(fake_cluster)
        await supervisor.start(WatchOptions(resources=(_POD,)), received.append)
        try:
            await wait_until(lambda: len(received) == 3)
        finally:
            await supervisor.stop()

        assert [(e.event_type, e.previous_resource_version, e.resource_version) for e in received] == [
            (EventType.ADDED, "", "1"),
            (EventType.MODIFIED, "1", "2"),
            (EventType.MODIFIED, "2", "3"),
        ]
        assert fake_cluster.opened == ["/api/v1/pods"]


class TestWatchAll:
    async def test_discovered_custom_resource_uses_advertised_plural(
        self, fake_cluster: FakeCluster, resource_store: ResourceStore
    ) -> None:
        fake_cluster.serve(
            "v1",
            [
                {"name": "pods", "kind": "Pod", "namespaced": True, "verbs": ["list", "watch"]},
                {"name": "pods/log", "kind": "Pod", "namespaced": True, "verbs": ["get"]},
            ],
        )
        fake_cluster.serve(
            "example.io/v1",
            [{"name": "widgetz", "kind": "Widget", "namespaced": True, "verbs": ["watch"]}],
        )
        widget = ResourceKindDescriptor(kind="Widget", group="example.io", version="v1", plural="widgetz")
        fake_cluster.script(widget, "", [make_raw_event("ADDED", "w1", kind="Widget", api_version="example.io/v1")])
        fake_cluster.script(_POD, "", [])

        received: list[ResourceEvent] = []
        supervisor = WatchSupervisor(fake_cluster, discovery=DiscoveryResolver(fake_cluster))
        kinds = await supervisor.start(WatchOptions(watch_all=True), _pipeline(resource_store, received))
        try:
            assert {k.display for k in kinds} == {"Pod/v1", "Widget.example.io/v1"}
            await wait_until(lambda: len(received) == 1)
        finally:
            await supervisor.stop()

        assert "/apis/example.io/v1/widgetz" in fake_cluster.opened
        assert resource_store.search("w1")[0].api_version == "example.io/v1"

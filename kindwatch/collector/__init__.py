"""Collector package for kindwatch.

Provides the multi-kind watch engine that turns Kubernetes watch streams
into a normalized ResourceEvent stream.

Submodules
----------
mapper      -- kind -> (group, version, plural) helpers and the default kind set.
normalizer  -- EventNormalizer: raw notification -> ResourceEvent, version cache.
client      -- ClusterClient: kubernetes-asyncio boundary (discovery GETs, watches).
watcher     -- WatchLoop: per-kind reconnect / linear back-off state machine.
discovery   -- DiscoveryResolver: enumerate watchable kinds served by the cluster.
supervisor  -- WatchSupervisor: start/stop the loops for a resolved kind set.
"""

from kindwatch.collector.discovery import DiscoveryResolver
from kindwatch.collector.supervisor import WatchOptions, WatchSupervisor
from kindwatch.collector.watcher import WatchLoop

__all__ = ["DiscoveryResolver", "WatchLoop", "WatchOptions", "WatchSupervisor"]

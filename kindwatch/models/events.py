"""Core watch data structures and enumerations."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import StrEnum
from typing import Any


class EventType(StrEnum):
    """Change notification type, matching the watch wire tags."""

    ADDED = "ADDED"
    MODIFIED = "MODIFIED"
    DELETED = "DELETED"
    ERROR = "ERROR"


class SubscriptionState(StrEnum):
    """Lifecycle state of one per-kind watch loop.

    CREATED -> WATCHING <-> RETRYING -> TERMINATED.  TERMINATED is final.
    """

    CREATED = "created"
    WATCHING = "watching"
    RETRYING = "retrying"
    TERMINATED = "terminated"


@dataclass(frozen=True)
class ResourceKindDescriptor:
    """Identifies one watchable collection on the cluster.

    ``plural`` is only set when discovery advertised the real resource
    name; otherwise the mapper derives it from ``kind``.
    """

    kind: str
    group: str
    version: str
    namespaced: bool = True
    plural: str = ""

    @property
    def api_version(self) -> str:
        if not self.group:
            return self.version
        return f"{self.group}/{self.version}"

    @property
    def display(self) -> str:
        """Human label used in log lines, e.g. ``Deployment.apps/v1``."""
        if self.group:
            return f"{self.kind}.{self.group}/{self.version}"
        return f"{self.kind}/{self.version}"


@dataclass(frozen=True)
class Identity:
    """Key of an object within one kind's collection.

    Cluster-scoped objects use the empty namespace.
    """

    namespace: str
    name: str

    def __str__(self) -> str:
        return f"{self.namespace}/{self.name}"


@dataclass(frozen=True)
class ResourceEvent:
    """Normalized change event.

    Produced by the EventNormalizer, consumed by every event handler.
    Immutable: handlers receive it as-is and must not mutate it.
    """

    event_type: EventType
    resource: ResourceKindDescriptor
    identity: Identity
    resource_version: str = ""
    previous_resource_version: str = ""
    raw_object: dict[str, Any] = field(default_factory=dict)
    error: Exception | None = None

    @property
    def name(self) -> str:
        return self.identity.name

    @property
    def namespace(self) -> str:
        return self.identity.namespace

"""Core data structures for kindwatch."""

from kindwatch.models.config import KindwatchConfig
from kindwatch.models.events import (
    EventType,
    Identity,
    ResourceEvent,
    ResourceKindDescriptor,
    SubscriptionState,
)

__all__ = [
    "EventType",
    "Identity",
    "KindwatchConfig",
    "ResourceEvent",
    "ResourceKindDescriptor",
    "SubscriptionState",
]

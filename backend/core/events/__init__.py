from .event_bus import Event, EventBus, EventPublisher, EventSubscription
from .payloads import (
    AnalysisCompleted,
    AnalysisRequested,
    AnalysisResponse,
    EventType,
    FatwaRequested,
    FatwaResponse,
)

__all__ = [
    "Event",
    "EventBus",
    "EventPublisher",
    "EventSubscription",
    "EventType",
    "AnalysisCompleted",
    "AnalysisRequested",
    "AnalysisResponse",
    "FatwaRequested",
    "FatwaResponse",
]

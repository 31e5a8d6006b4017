from .factory import EventPublisherFactory, get_event_publisher
from .base import EventPublisher
from .types import CategoryEvent, CategoryEventType

__all__ = [
    "EventPublisherFactory",
    "EventPublisher",
    "CategoryEvent",
    "CategoryEventType",
    "get_event_publisher",
]

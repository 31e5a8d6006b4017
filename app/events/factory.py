from typing import Dict, Any, Optional
import logging

from app.core.config import settings
from .base import EventPublisher
from .providers.kafka import KafkaEventPublisher
from .providers.log import LoggingEventPublisher

logger = logging.getLogger(__name__)


class EventPublisherFactory:
    """Factory for creating event publishers."""

    _publishers = {
        "log": LoggingEventPublisher,
        "kafka": KafkaEventPublisher,
    }

    @classmethod
    def register_publisher(cls, name: str, publisher_class: type):
        """Register a new publisher class.

        Args:
            name: Publisher name
            publisher_class: Class that inherits from EventPublisher
        """
        if not issubclass(publisher_class, EventPublisher):
            raise ValueError(f"{publisher_class} must inherit from EventPublisher")
        cls._publishers[name] = publisher_class
        logger.info(f"Registered event publisher: {name}")

    @classmethod
    def create(cls, publisher_name: str, config: Dict[str, Any]) -> EventPublisher:
        """Create an event publisher instance.

        Raises:
            ValueError: If publisher is not registered
        """
        if publisher_name not in cls._publishers:
            raise ValueError(
                f"Unknown event publisher: {publisher_name}. "
                f"Available publishers: {list(cls._publishers.keys())}"
            )

        publisher_class = cls._publishers[publisher_name]
        logger.info(f"Creating event publisher: {publisher_name}")

        return publisher_class(config)

    @classmethod
    def list_publishers(cls) -> list[str]:
        """List all registered publisher names."""
        return list(cls._publishers.keys())


_event_publisher: Optional[EventPublisher] = None


def get_event_publisher() -> EventPublisher:
    """Get or create the event publisher configured by EVENT_PUBLISHER"""
    global _event_publisher
    if _event_publisher is None:
        _event_publisher = EventPublisherFactory.create(
            settings.EVENT_PUBLISHER,
            {
                "topic": settings.CATEGORY_EVENTS_TOPIC,
                "bootstrap_servers": settings.KAFKA_BOOTSTRAP_SERVERS,
                "client_id": settings.KAFKA_CLIENT_ID,
            },
        )
    return _event_publisher

from abc import ABC, abstractmethod
from typing import Dict, Any
import logging

from .types import CategoryEvent

logger = logging.getLogger(__name__)


class EventPublisher(ABC):
    """Abstract base class for domain event sinks."""

    def __init__(self, config: Dict[str, Any]):
        """Initialize the publisher with configuration."""
        self.config = config
        self._setup()

    @abstractmethod
    def _setup(self):
        """Setup publisher-specific resources."""
        pass

    @abstractmethod
    def publish(self, event: CategoryEvent) -> None:
        """Hand an event to the sink.

        Implementations may raise on failure; callers that need fire-and-forget
        semantics use ``publish_safely``.
        """
        pass

    def publish_safely(self, event: CategoryEvent) -> bool:
        """Publish an event, logging and swallowing any delivery failure.

        Returns:
            True if the event was handed to the sink, False otherwise
        """
        try:
            self.publish(event)
            return True
        except Exception as e:
            logger.error(
                f"Failed to publish {event.event_type.value} for category "
                f"{event.category_id}: {e}"
            )
            return False

    def flush(self, timeout: float = 5.0) -> int:
        """Wait for buffered events to be delivered.

        Returns:
            Number of events still pending
        """
        return 0

    def close(self) -> None:
        """Release publisher resources."""
        self.flush()

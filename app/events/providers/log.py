import json
import logging
from collections import deque
from typing import Deque

from ..base import EventPublisher
from ..types import CategoryEvent

logger = logging.getLogger(__name__)

DEFAULT_HISTORY = 100


class LoggingEventPublisher(EventPublisher):
    """Publisher for local development: writes each event to the log.

    The most recent events are kept in ``published``, capped at ``history``.
    """

    def _setup(self):
        self.topic = self.config.get("topic", "category.events")
        self.published: Deque[CategoryEvent] = deque(
            maxlen=self.config.get("history", DEFAULT_HISTORY)
        )

    def publish(self, event: CategoryEvent) -> None:
        self.published.append(event)
        logger.info(
            f"[{self.topic}] {event.key} {json.dumps(event.to_payload(), default=str)}"
        )

import json
import logging
from typing import Optional

from confluent_kafka import KafkaError, Message, Producer

from ..base import EventPublisher
from ..types import CategoryEvent

logger = logging.getLogger(__name__)


class KafkaEventPublisher(EventPublisher):
    """Kafka implementation of the EventPublisher interface."""

    def _setup(self):
        """Create the Kafka producer."""
        self.topic = self.config.get("topic", "category.events")
        producer_config = {
            "bootstrap.servers": self.config["bootstrap_servers"],
            "client.id": self.config.get("client_id", "procgrid-category-service"),
            "acks": "all",
            "enable.idempotence": True,
            "linger.ms": self.config.get("linger_ms", 5),
        }
        self.producer = self.config.get("producer") or Producer(producer_config)
        logger.info(f"Kafka publisher ready for topic {self.topic}")

    def publish(self, event: CategoryEvent) -> None:
        """Queue an event for delivery; the broker acknowledgement arrives via callback."""
        self.producer.produce(
            self.topic,
            key=event.key,
            value=json.dumps(event.to_payload(), default=str),
            on_delivery=self._on_delivery,
        )
        # Serve delivery callbacks of earlier messages without blocking
        self.producer.poll(0)

    @staticmethod
    def _on_delivery(err: Optional[KafkaError], msg: Message):
        if err is not None:
            logger.error(f"Event delivery failed for key {msg.key()}: {err}")
            return
        logger.debug(
            f"Event delivered to {msg.topic()} [{msg.partition()}] @ {msg.offset()}"
        )

    def flush(self, timeout: float = 5.0) -> int:
        remaining = self.producer.flush(timeout)
        if remaining:
            logger.warning(f"{remaining} category events still undelivered after flush")
        return remaining

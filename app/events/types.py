from typing import Any, Dict, Optional
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum


class CategoryEventType(Enum):
    CREATED = "category.created"
    UPDATED = "category.updated"
    MOVED = "category.moved"
    STATUS_CHANGED = "category.status.changed"
    DELETED = "category.deleted"


@dataclass
class CategoryEvent:
    """A domain event emitted after a category mutation commits."""
    event_type: CategoryEventType
    category_id: int
    category_name: str
    parent_id: Optional[int]
    level: int
    actor: str
    extra: Dict[str, Any] = field(default_factory=dict)
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def key(self) -> str:
        """Partition key; keeps every event of one category in order."""
        return str(self.category_id)

    def to_payload(self) -> Dict[str, Any]:
        payload = {
            "eventType": self.event_type.value,
            "categoryId": self.category_id,
            "categoryName": self.category_name,
            "parentId": self.parent_id,
            "level": self.level,
            "actor": self.actor,
            "timestamp": self.timestamp.isoformat(),
        }
        payload.update(self.extra)
        return payload

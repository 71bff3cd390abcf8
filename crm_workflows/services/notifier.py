"""Notification collaborator - in-app notifications for CRM users."""

from typing import Any, Dict, Optional

from crm_workflows.constants import NOTIFICATIONS_TABLE
from crm_workflows.core.exceptions import NotificationError, StorageError
from crm_workflows.core.logging import get_logger
from crm_workflows.core.store import RecordStore

logger = get_logger(__name__)


class Notifier:
    """Writes notification rows to the record store."""

    def __init__(self, store: RecordStore):
        self.store = store

    async def notify(self, actor_id: Optional[str], title: str, message: str = "",
                     type: str = "info", entity_type: Optional[str] = None,
                     entity_id: Optional[str] = None) -> Dict[str, Any]:
        if not actor_id:
            raise NotificationError("No user to notify")

        row = {
            "user_id": actor_id,
            "title": title,
            "message": message or "",
            "type": type,
            "category": "workflow",
            "is_read": False,
            "entity_type": entity_type,
            "entity_id": entity_id,
        }
        try:
            created = await self.store.insert(NOTIFICATIONS_TABLE, row)
        except StorageError as e:
            raise NotificationError(f"Failed to create notification: {e.message}") from e

        logger.debug("Notification created", user_id=actor_id, notification_id=created.get("id"))
        return created

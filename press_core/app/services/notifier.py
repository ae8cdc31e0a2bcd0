"""
Notification sink used by the ledger.

notify() is fire-and-forget: a failure to store a notification is logged
and swallowed so it never fails the stock or payment change that raised it.
"""

from abc import ABC, abstractmethod
from typing import Optional

from sqlalchemy.orm import Session

from ..logging_config import get_logger
from ..models import Notification

logger = get_logger(__name__)


class NotificationSink(ABC):
    @abstractmethod
    def notify(
        self,
        title: str,
        message: str,
        type: str,
        related_entity_id: Optional[int] = None,
        priority: str = "medium",
    ) -> None:
        ...

    def notify_payload(self, payload: Optional[dict]) -> None:
        """Send an AlertEvaluator-style payload dict; None is ignored"""
        if payload:
            self.notify(**payload)


class NullNotificationSink(NotificationSink):
    def notify(self, title, message, type, related_entity_id=None, priority="medium"):
        return None


class DatabaseNotificationSink(NotificationSink):
    """
    Stores notifications in the `notifications` table inside a SAVEPOINT of
    the caller's transaction, addressed to `role` (admins by default).
    """

    def __init__(self, db: Session, role: Optional[str] = "admin", user_id: Optional[int] = None):
        self.db = db
        self.role = role
        self.user_id = user_id

    def notify(self, title, message, type, related_entity_id=None, priority="medium"):
        try:
            with self.db.begin_nested():
                self.db.add(Notification(
                    user_id=self.user_id,
                    role=self.role,
                    title=title,
                    message=message,
                    type=type,
                    related_entity_id=related_entity_id,
                    priority=priority,
                ))
        except Exception:
            logger.exception("Failed to store notification %r (%s)", title, type)

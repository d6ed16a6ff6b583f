import logging
from dataclasses import dataclass

from sqlalchemy.orm import Session

from clinic_backend.core.clock import current_time_ms
from clinic_backend.models.notification import Notification

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class NotificationMessage:
    user_id: int
    text: str


class DatabaseNotifier:
    """Queues notifications on the caller's session so they commit with the change that caused them."""

    def __init__(self, db: Session):
        self.db = db

    def notify(self, user_id: int, text: str) -> None:
        self.db.add(Notification(user_id=user_id, text=text, timestamp=current_time_ms(), read=False))
        logger.info('Queued notification for user %s', user_id)

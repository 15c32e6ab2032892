import logging

from sqlalchemy.orm import Session

from guestbook.core import config, datetime_utils
from guestbook.core.exceptions import ErrorKind, ServiceError
from guestbook.models.notification import Notification

logger = logging.getLogger(__name__)

MAX_MESSAGE_LENGTH = 255


class NotificationService:
    """Durable per-user notifications."""

    def __init__(self, db: Session):
        self.db = db

    def create_notification(self, user_id: int, message: str) -> Notification:
        notification = Notification(
            user_id=user_id,
            message=message[:MAX_MESSAGE_LENGTH],
            created_at=datetime_utils.now_local(),
            is_read=False,
        )
        self.db.add(notification)
        self.db.commit()
        self.db.refresh(notification)
        logger.debug('Stored notification %s for user %s', notification.id, user_id)
        return notification

    def list_for_user(
        self,
        user_id: int,
        is_read: bool | None = None,
        limit: int = config.NOTIFICATION_LIST_LIMIT,
    ) -> list[Notification]:
        query = self.db.query(Notification).filter(Notification.user_id == user_id)

        if is_read is not None:
            query = query.filter(Notification.is_read == is_read)

        return query.order_by(Notification.created_at.desc(), Notification.id.desc()).limit(limit).all()

    def _get_owned(self, notification_id: int, user_id: int) -> Notification:
        notification = self.db.query(Notification).filter(
            Notification.id == notification_id,
            Notification.user_id == user_id,
        ).first()

        if notification is None:
            raise ServiceError(ErrorKind.NOT_FOUND, 'Notification not found.')

        return notification

    def mark_as_read(self, notification_id: int, user_id: int) -> Notification:
        notification = self._get_owned(notification_id, user_id)
        notification.is_read = True
        self.db.commit()
        self.db.refresh(notification)
        return notification

    def delete_notification(self, notification_id: int, user_id: int) -> None:
        notification = self._get_owned(notification_id, user_id)
        self.db.delete(notification)
        self.db.commit()

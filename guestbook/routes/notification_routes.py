import logging
from datetime import datetime

from fastapi import APIRouter, Depends, HTTPException, Query, status
from pydantic import BaseModel, ConfigDict
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from guestbook.auth.dependencies import get_current_user
from guestbook.core import config
from guestbook.database import get_db
from guestbook.models.user import User
from guestbook.routes.appointment_routes import DATABASE_UNAVAILABLE
from guestbook.services.notification_service import NotificationService

router = APIRouter(tags=['notifications'])

logger = logging.getLogger(__name__)


class NotificationResponse(BaseModel):
    id: int
    message: str
    created_at: datetime
    is_read: bool

    model_config = ConfigDict(from_attributes=True)


class NotificationListResponse(BaseModel):
    data: list[NotificationResponse]


class MessageResponse(BaseModel):
    message: str


def get_notification_service(db: Session = Depends(get_db)) -> NotificationService:
    return NotificationService(db)


@router.get('', response_model=NotificationListResponse)
def list_notifications(
    read: bool | None = Query(default=None),
    limit: int = Query(default=config.NOTIFICATION_LIST_LIMIT, ge=1, le=100),
    current_user: User = Depends(get_current_user),
    service: NotificationService = Depends(get_notification_service),
):
    try:
        notifications = service.list_for_user(current_user.id, is_read=read, limit=limit)
    except SQLAlchemyError as exc:
        logger.exception('Failed to list notifications for user %s.', current_user.id)
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=DATABASE_UNAVAILABLE,
        ) from exc

    return NotificationListResponse(
        data=[NotificationResponse.model_validate(notification) for notification in notifications],
    )


@router.put('/{notification_id}/read', response_model=MessageResponse)
def mark_notification_as_read(
    notification_id: int,
    current_user: User = Depends(get_current_user),
    service: NotificationService = Depends(get_notification_service),
):
    try:
        service.mark_as_read(notification_id, current_user.id)
    except SQLAlchemyError as exc:
        service.db.rollback()
        logger.exception('Failed to mark notification %s as read.', notification_id)
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=DATABASE_UNAVAILABLE,
        ) from exc

    return MessageResponse(message='Notification marked as read.')


@router.delete('/{notification_id}', response_model=MessageResponse)
def delete_notification(
    notification_id: int,
    current_user: User = Depends(get_current_user),
    service: NotificationService = Depends(get_notification_service),
):
    try:
        service.delete_notification(notification_id, current_user.id)
    except SQLAlchemyError as exc:
        service.db.rollback()
        logger.exception('Failed to delete notification %s.', notification_id)
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=DATABASE_UNAVAILABLE,
        ) from exc

    return MessageResponse(message='Notification deleted.')

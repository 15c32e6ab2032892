from datetime import datetime

import pytest
from fastapi import HTTPException
from sqlalchemy.exc import OperationalError

from conftest import OTHER_TEACHER_ID, TEACHER_ID
from guestbook.core.exceptions import ErrorKind, ServiceError
from guestbook.models.notification import Notification
from guestbook.models.user import User
from guestbook.routes.notification_routes import (
    delete_notification,
    list_notifications,
    mark_notification_as_read,
)
from guestbook.services.notification_service import NotificationService


def _seed(db, user_id: int, message: str, created_at: datetime, is_read: bool = False) -> Notification:
    notification = Notification(user_id=user_id, message=message, created_at=created_at, is_read=is_read)
    db.add(notification)
    db.commit()
    db.refresh(notification)
    return notification


def test_list_notifications_only_returns_current_users_rows(seeded_db) -> None:
    teacher = seeded_db.get(User, TEACHER_ID)
    _seed(seeded_db, TEACHER_ID, 'lama', datetime(2025, 6, 1, 9, 0), is_read=True)
    _seed(seeded_db, TEACHER_ID, 'baru', datetime(2025, 6, 2, 9, 0))
    _seed(seeded_db, OTHER_TEACHER_ID, 'bukan milik saya', datetime(2025, 6, 3, 9, 0))

    response = list_notifications(read=None, limit=10, current_user=teacher, service=NotificationService(seeded_db))
    unread = list_notifications(read=False, limit=10, current_user=teacher, service=NotificationService(seeded_db))

    assert [item.message for item in response.data] == ['baru', 'lama']
    assert [item.message for item in unread.data] == ['baru']
    assert unread.data[0].is_read is False


def test_mark_notification_as_read(seeded_db) -> None:
    teacher = seeded_db.get(User, TEACHER_ID)
    notification = _seed(seeded_db, TEACHER_ID, 'halo', datetime(2025, 6, 2, 9, 0))

    response = mark_notification_as_read(
        notification_id=notification.id,
        current_user=teacher,
        service=NotificationService(seeded_db),
    )

    seeded_db.refresh(notification)
    assert response.message == 'Notification marked as read.'
    assert notification.is_read is True


def test_mark_notification_as_read_hides_other_users_rows(seeded_db) -> None:
    other_teacher = seeded_db.get(User, OTHER_TEACHER_ID)
    notification = _seed(seeded_db, TEACHER_ID, 'halo', datetime(2025, 6, 2, 9, 0))

    with pytest.raises(ServiceError) as exception_info:
        mark_notification_as_read(
            notification_id=notification.id,
            current_user=other_teacher,
            service=NotificationService(seeded_db),
        )

    assert exception_info.value.kind is ErrorKind.NOT_FOUND


def test_delete_notification(seeded_db) -> None:
    teacher = seeded_db.get(User, TEACHER_ID)
    notification = _seed(seeded_db, TEACHER_ID, 'halo', datetime(2025, 6, 2, 9, 0))
    notification_id = notification.id

    response = delete_notification(
        notification_id=notification_id,
        current_user=teacher,
        service=NotificationService(seeded_db),
    )

    assert response.message == 'Notification deleted.'
    assert seeded_db.query(Notification).filter(Notification.id == notification_id).count() == 0


def test_list_notifications_maps_database_errors_to_503(seeded_db, monkeypatch: pytest.MonkeyPatch) -> None:
    teacher = seeded_db.get(User, TEACHER_ID)
    service = NotificationService(seeded_db)

    def broken(*args, **kwargs):
        raise OperationalError('SELECT 1', {}, Exception('database is down'))

    monkeypatch.setattr(service, 'list_for_user', broken)

    with pytest.raises(HTTPException) as exception_info:
        list_notifications(read=None, limit=10, current_user=teacher, service=service)

    assert exception_info.value.status_code == 503

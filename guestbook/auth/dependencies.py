import logging

import jwt
from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.orm import Session

from guestbook.auth import jwt_handler
from guestbook.core.enums import Role
from guestbook.core.exceptions import ErrorKind, ServiceError
from guestbook.database import get_db
from guestbook.models.user import User

logger = logging.getLogger(__name__)

security = HTTPBearer(auto_error=False)


def get_current_user(
    credentials: HTTPAuthorizationCredentials | None = Depends(security),
    db: Session = Depends(get_db),
) -> User:
    if credentials is None:
        raise ServiceError(ErrorKind.UNAUTHORIZED, "Not authenticated")

    try:
        user_id = jwt_handler.read_user_id(credentials.credentials)
    except jwt.PyJWTError as exc:
        raise ServiceError(ErrorKind.UNAUTHORIZED, "Invalid token") from exc
    except ValueError as exc:
        raise ServiceError(ErrorKind.UNAUTHORIZED, "Invalid token subject") from exc

    user = db.get(User, user_id)
    if user is None:
        raise ServiceError(ErrorKind.UNAUTHORIZED, "User not found")
    return user


def require_teacher(current_user: User = Depends(get_current_user)) -> User:
    if current_user.role != Role.TEACHER.value:
        logger.warning("User %s with role %s tried a teacher-only action", current_user.id, current_user.role)
        raise ServiceError(ErrorKind.FORBIDDEN, "Only teachers can book appointments.")
    return current_user

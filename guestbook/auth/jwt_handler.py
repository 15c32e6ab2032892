"""Bearer tokens whose ``sub`` claim is a user id.

Tokens are issued by the school's login service; ``create_access_token``
is kept for local tooling and tests.
"""

from datetime import datetime, timedelta, timezone

import jwt

from guestbook.core import config


def create_access_token(user_id: int, expires_minutes: int | None = None) -> str:
    issued_at = datetime.now(timezone.utc)
    lifetime = timedelta(minutes=expires_minutes or config.JWT_EXPIRES_MINUTES)
    payload = {"sub": str(user_id), "iat": issued_at, "exp": issued_at + lifetime}
    return jwt.encode(payload, config.JWT_SECRET_KEY, algorithm=config.JWT_ALGORITHM)


def decode_access_token(token: str) -> dict:
    return jwt.decode(
        token,
        config.JWT_SECRET_KEY,
        algorithms=[config.JWT_ALGORITHM],
        options={"require": ["sub", "exp"]},
    )


def read_user_id(token: str) -> int:
    """Return the user id carried by ``token``.

    Raises ``jwt.PyJWTError`` for a bad token and ``ValueError`` when the
    subject is not an integer.
    """
    return int(decode_access_token(token)["sub"])

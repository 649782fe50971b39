from datetime import datetime, timedelta, timezone

import jwt

from backend.core import config
from backend.core.exceptions import InvalidTokenError, TokenExpiredError


def create_access_token(subject: str, role: str, expires_minutes: int | None = None) -> str:
    expire_minutes = config.JWT_EXPIRES_MINUTES if expires_minutes is None else expires_minutes
    issued_at = datetime.now(timezone.utc)
    expire = issued_at + timedelta(minutes=expire_minutes)
    payload = {"sub": str(subject), "role": role, "exp": expire, "iat": issued_at}
    return jwt.encode(payload, config.JWT_SECRET_KEY, algorithm=config.JWT_ALGORITHM)


def decode_access_token(token: str) -> dict:
    if not token:
        raise InvalidTokenError()
    try:
        payload = jwt.decode(
            token,
            config.JWT_SECRET_KEY,
            algorithms=[config.JWT_ALGORITHM],
            options={"require": ["sub", "exp", "iat"]},
        )
    except jwt.ExpiredSignatureError as exc:
        raise TokenExpiredError() from exc
    except jwt.InvalidTokenError as exc:
        raise InvalidTokenError() from exc

    if not payload.get("sub") or not payload.get("role"):
        raise InvalidTokenError("Invalid token subject")
    return payload

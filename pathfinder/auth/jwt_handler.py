import uuid
from datetime import datetime, timedelta

import jwt

from pathfinder.core import config
from pathfinder.core.clock import utcnow

ACCESS_TOKEN_TYPE = "access"
REFRESH_TOKEN_TYPE = "refresh"


def _encode(subject: str, token_type: str, ttl: timedelta, secret: str, now: datetime | None = None) -> str:
    issued_at = now or utcnow()
    payload = {
        "sub": subject,
        "type": token_type,
        "iat": issued_at,
        "exp": issued_at + ttl,
        "jti": uuid.uuid4().hex,
    }
    return jwt.encode(payload, secret, algorithm=config.JWT_ALGORITHM)


def _decode(token: str, token_type: str, secret: str) -> dict:
    payload = jwt.decode(
        token,
        secret,
        algorithms=[config.JWT_ALGORITHM],
        options={"require": ["sub", "exp", "type"]},
    )
    if payload.get("type") != token_type:
        raise jwt.InvalidTokenError(f"Expected a {token_type} token")
    return payload


def create_access_token(subject: str, expires_minutes: int | None = None, now: datetime | None = None) -> str:
    ttl = timedelta(minutes=expires_minutes or config.ACCESS_TOKEN_EXPIRES_MINUTES)
    return _encode(subject, ACCESS_TOKEN_TYPE, ttl, config.JWT_SECRET_KEY, now)


def create_refresh_token(subject: str, expires_days: int | None = None, now: datetime | None = None) -> str:
    ttl = timedelta(days=expires_days or config.REFRESH_TOKEN_EXPIRES_DAYS)
    return _encode(subject, REFRESH_TOKEN_TYPE, ttl, config.JWT_REFRESH_SECRET_KEY, now)


def decode_access_token(token: str) -> dict:
    return _decode(token, ACCESS_TOKEN_TYPE, config.JWT_SECRET_KEY)


def decode_refresh_token(token: str) -> dict:
    return _decode(token, REFRESH_TOKEN_TYPE, config.JWT_REFRESH_SECRET_KEY)

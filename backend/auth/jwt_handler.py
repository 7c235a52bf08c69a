from datetime import datetime, timedelta, timezone

import jwt

from backend.core import config

OAUTH_STATE_PURPOSE = "oauth_state"


def create_access_token(
    subject: str,
    name: str | None = None,
    google_access_token: str | None = None,
    encrypted_refresh_token: str | None = None,
    expires_minutes: int | None = None,
) -> str:
    expire_minutes = expires_minutes or config.JWT_EXPIRES_MINUTES
    expire = datetime.now(timezone.utc) + timedelta(minutes=expire_minutes)
    payload = {"sub": subject, "exp": expire, "iat": datetime.now(timezone.utc)}
    if name:
        payload["name"] = name
    if google_access_token:
        payload["gat"] = google_access_token
    if encrypted_refresh_token:
        payload["grt"] = encrypted_refresh_token
    return jwt.encode(payload, config.JWT_SECRET_KEY, algorithm=config.JWT_ALGORITHM)


def decode_access_token(token: str) -> dict:
    payload = jwt.decode(token, config.JWT_SECRET_KEY, algorithms=[config.JWT_ALGORITHM])
    if payload.get("purpose") == OAUTH_STATE_PURPOSE:
        raise jwt.InvalidTokenError("OAuth state is not a session token")
    return payload


def create_oauth_state() -> str:
    expire = datetime.now(timezone.utc) + timedelta(minutes=config.OAUTH_STATE_EXPIRES_MINUTES)
    payload = {"purpose": OAUTH_STATE_PURPOSE, "exp": expire, "iat": datetime.now(timezone.utc)}
    return jwt.encode(payload, config.JWT_SECRET_KEY, algorithm=config.JWT_ALGORITHM)


def verify_oauth_state(state: str) -> bool:
    try:
        payload = jwt.decode(state, config.JWT_SECRET_KEY, algorithms=[config.JWT_ALGORITHM])
    except jwt.PyJWTError:
        return False
    return payload.get("purpose") == OAUTH_STATE_PURPOSE

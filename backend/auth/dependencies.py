import logging
from dataclasses import dataclass

import jwt
from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from backend.auth import jwt_handler
from backend.core.errors import CryptoError, Unauthorized
from backend.services.token_vault import TokenVault, get_token_vault

logger = logging.getLogger(__name__)

security = HTTPBearer(auto_error=False)


@dataclass
class Identity:
    """The signed-in user as carried by the session token."""
    email: str
    name: str | None = None
    access_token: str | None = None
    refresh_token: str | None = None


def identity_from_claims(payload: dict, vault: TokenVault) -> Identity:
    email = payload.get("sub")
    if not email:
        raise Unauthorized("Invalid token subject")

    refresh_token = None
    encrypted_refresh_token = payload.get("grt")
    if encrypted_refresh_token:
        try:
            refresh_token = vault.decrypt(encrypted_refresh_token)
        except CryptoError:
            logger.warning("Session refresh token for %s could not be decrypted", email)

    return Identity(
        email=email.strip().lower(),
        name=payload.get("name"),
        access_token=payload.get("gat"),
        refresh_token=refresh_token,
    )


def get_current_identity(
    credentials: HTTPAuthorizationCredentials | None = Depends(security),
    vault: TokenVault = Depends(get_token_vault),
) -> Identity:
    if credentials is None:
        raise Unauthorized()
    try:
        payload = jwt_handler.decode_access_token(credentials.credentials)
    except jwt.PyJWTError as exc:
        raise Unauthorized("Invalid token") from exc
    return identity_from_claims(payload, vault)

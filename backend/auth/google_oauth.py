import logging
from urllib.parse import urlencode

import httpx

from backend.core import config
from backend.core.errors import OAuthError

logger = logging.getLogger(__name__)

HTTP_TIMEOUT_SECONDS = 10.0


def build_authorization_url(state: str) -> str:
    query = {
        "client_id": config.GOOGLE_CLIENT_ID,
        "redirect_uri": config.GOOGLE_REDIRECT_URI,
        "response_type": "code",
        "scope": " ".join(config.GOOGLE_SCOPES),
        "access_type": "offline",
        "prompt": "consent",
        "include_granted_scopes": "true",
        "state": state,
    }
    return f"{config.GOOGLE_AUTH_URI}?{urlencode(query)}"


async def exchange_code(code: str) -> dict:
    async with httpx.AsyncClient(timeout=HTTP_TIMEOUT_SECONDS) as client:
        response = await client.post(
            config.GOOGLE_TOKEN_URI,
            data={
                "code": code,
                "client_id": config.GOOGLE_CLIENT_ID,
                "client_secret": config.GOOGLE_CLIENT_SECRET,
                "redirect_uri": config.GOOGLE_REDIRECT_URI,
                "grant_type": "authorization_code",
            },
        )

    if response.status_code != 200:
        logger.error("Token exchange failed with status %s", response.status_code)
        raise OAuthError("Failed to exchange authorization code")

    tokens = response.json()
    if not tokens.get("access_token"):
        raise OAuthError("Invalid token response")
    return tokens


async def fetch_userinfo(access_token: str) -> dict:
    async with httpx.AsyncClient(timeout=HTTP_TIMEOUT_SECONDS) as client:
        response = await client.get(
            config.GOOGLE_USERINFO_URI,
            headers={"Authorization": f"Bearer {access_token}"},
        )

    if response.status_code != 200:
        logger.error("Failed to get user info, status %s", response.status_code)
        raise OAuthError("Failed to get user info")

    user_info = response.json()
    if not user_info.get("email"):
        raise OAuthError("Email not found in Google profile")
    return user_info

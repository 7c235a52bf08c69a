"""Google Calendar API clients built from stored or session credentials."""

from functools import lru_cache

import httplib2
from google.auth.exceptions import GoogleAuthError, RefreshError, TransportError
from google.oauth2.credentials import Credentials
from googleapiclient.discovery import build
from googleapiclient.errors import HttpError

from backend.core import config
from backend.core.errors import AuthExpired, ClientConstructionError, ProviderError

PRIMARY_CALENDAR_ID = 'primary'
AUTH_EXPIRED_STATUS_CODES = {401}

# Everything a Calendar API call can raise once the client exists.
PROVIDER_EXCEPTIONS = (HttpError, GoogleAuthError, httplib2.HttpLib2Error, OSError)


def _require_token(token, kind: str) -> str:
    if not isinstance(token, str):
        raise ClientConstructionError(details=f'{kind} must be a string.')
    normalized = token.strip()
    if not normalized or any(character.isspace() for character in normalized):
        raise ClientConstructionError(details=f'{kind} is malformed.')
    return normalized


class CalendarClientFactory:
    def __init__(self, client_id: str, client_secret: str, token_uri: str, scopes: list[str] | None = None):
        self.client_id = client_id
        self.client_secret = client_secret
        self.token_uri = token_uri
        self.scopes = scopes

    def from_refresh_token(self, refresh_token: str):
        """Durable client; access tokens are minted from the refresh token on demand."""
        token = _require_token(refresh_token, 'Refresh token')
        credentials = Credentials(
            token=None,
            refresh_token=token,
            token_uri=self.token_uri,
            client_id=self.client_id,
            client_secret=self.client_secret,
            scopes=self.scopes,
        )
        return self._build(credentials)

    def from_access_token(self, access_token: str):
        """Short-lived client with no way to renew once the access token expires."""
        token = _require_token(access_token, 'Access token')
        return self._build(Credentials(token=token))

    def _build(self, credentials: Credentials):
        try:
            return build('calendar', 'v3', credentials=credentials, cache_discovery=False)
        except Exception as exc:
            raise ClientConstructionError(details=str(exc)) from exc


def classify_provider_error(exc: Exception) -> ProviderError | AuthExpired:
    if isinstance(exc, RefreshError):
        return AuthExpired()
    if isinstance(exc, HttpError):
        if exc.resp.status in AUTH_EXPIRED_STATUS_CODES:
            return AuthExpired()
        return ProviderError(details=exc.reason or f'HTTP {exc.resp.status}')
    if isinstance(exc, TransportError):
        return ProviderError(details=f'Transport error: {exc}')
    return ProviderError(details=str(exc) or exc.__class__.__name__)


@lru_cache
def get_calendar_client_factory() -> CalendarClientFactory:
    return CalendarClientFactory(
        client_id=config.GOOGLE_CLIENT_ID,
        client_secret=config.GOOGLE_CLIENT_SECRET,
        token_uri=config.GOOGLE_TOKEN_URI,
        scopes=[scope for scope in config.GOOGLE_SCOPES if scope.startswith('https://')],
    )

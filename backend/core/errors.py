"""Error taxonomy shared by the services and the HTTP layer.

Every ``SchedulerError`` carries the HTTP status and the stable ``code`` that the
exception handlers in ``backend.main`` render as ``{"error", "code"}``.
Clients use the token lifecycle codes (``NO_REFRESH_TOKEN``,
``INVALID_REFRESH_TOKEN``, ``AUTH_EXPIRED``) to prompt a calendar reconnect.
"""


class CryptoError(Exception):
    """Ciphertext is malformed or was produced with a different key."""


class SchedulerError(Exception):
    status_code = 500
    code = 'INTERNAL_ERROR'
    message = 'Internal server error'

    def __init__(self, message: str | None = None, details: str | None = None):
        super().__init__(message or self.message)
        self.message = message or self.message
        self.details = details

    def to_dict(self) -> dict:
        body = {'error': self.message, 'code': self.code}
        if self.details is not None:
            body['details'] = self.details
        return body


class Unauthorized(SchedulerError):
    status_code = 401
    code = 'UNAUTHORIZED'
    message = 'Unauthorized'


class NotFound(SchedulerError):
    status_code = 404
    code = 'NOT_FOUND'
    message = 'Not found'


class InvalidRequest(SchedulerError):
    status_code = 400
    code = 'VALIDATION_ERROR'
    message = 'Missing required fields'


class NotConnected(SchedulerError):
    status_code = 400
    code = 'NO_REFRESH_TOKEN'
    message = 'Seller not connected (no refresh token)'


class SellerNotConnected(NotConnected):
    message = 'Seller not connected'


class InvalidCredential(SchedulerError):
    status_code = 400
    code = 'INVALID_REFRESH_TOKEN'
    message = 'Invalid or unreadable refresh token. Please reconnect your Google Calendar.'


class ClientConstructionError(SchedulerError):
    status_code = 400
    code = 'CALENDAR_CLIENT_ERROR'
    message = 'Failed to create calendar client. Please reconnect your Google Calendar.'


class AuthExpired(SchedulerError):
    status_code = 401
    code = 'AUTH_EXPIRED'
    message = 'Google Calendar authorization expired. Please reconnect your calendar.'


class ProviderError(SchedulerError):
    status_code = 502
    code = 'CALENDAR_API_ERROR'
    message = 'Google Calendar API error'


class CalendarDataUnavailable(ProviderError):
    code = 'CALENDAR_DATA_UNAVAILABLE'
    message = 'Calendar data unavailable'


class OAuthError(SchedulerError):
    status_code = 400
    code = 'OAUTH_ERROR'
    message = 'Google sign-in failed'


class InternalError(SchedulerError):
    pass


RECONNECT_REQUIRED = (NotConnected, InvalidCredential, AuthExpired)

import pytest
from google.auth.exceptions import RefreshError, TransportError

from backend.core.errors import AuthExpired, ClientConstructionError, ProviderError
from backend.services import calendar_client
from backend.services.calendar_client import CalendarClientFactory, classify_provider_error
from conftest import make_http_error


@pytest.fixture
def factory() -> CalendarClientFactory:
    return CalendarClientFactory(
        client_id='client-id',
        client_secret='client-secret',
        token_uri='https://oauth2.googleapis.com/token',
    )


def test_from_refresh_token_builds_renewable_credentials(factory, monkeypatch: pytest.MonkeyPatch) -> None:
    captured = {}

    def fake_build(service_name, version, credentials, cache_discovery):
        captured.update(service_name=service_name, version=version, credentials=credentials)
        return 'calendar-service'

    monkeypatch.setattr(calendar_client, 'build', fake_build)

    service = factory.from_refresh_token(' 1//refresh ')

    assert service == 'calendar-service'
    assert captured['service_name'] == 'calendar'
    assert captured['version'] == 'v3'
    assert captured['credentials'].refresh_token == '1//refresh'
    assert captured['credentials'].client_id == 'client-id'
    assert captured['credentials'].token is None


def test_from_access_token_cannot_refresh(factory, monkeypatch: pytest.MonkeyPatch) -> None:
    captured = {}
    monkeypatch.setattr(
        calendar_client,
        'build',
        lambda *args, credentials, **kwargs: captured.setdefault('credentials', credentials),
    )

    factory.from_access_token('ya29.access')

    assert captured['credentials'].token == 'ya29.access'
    assert captured['credentials'].refresh_token is None


@pytest.mark.parametrize('token', [None, '', '   ', 'two words', 42])
def test_structurally_invalid_tokens_are_rejected(factory, token) -> None:
    with pytest.raises(ClientConstructionError):
        factory.from_refresh_token(token)

    with pytest.raises(ClientConstructionError):
        factory.from_access_token(token)


def test_build_failure_is_a_construction_error(factory, monkeypatch: pytest.MonkeyPatch) -> None:
    def failing_build(*args, **kwargs):
        raise RuntimeError('discovery document missing')

    monkeypatch.setattr(calendar_client, 'build', failing_build)

    with pytest.raises(ClientConstructionError) as exception_info:
        factory.from_refresh_token('1//refresh')

    assert exception_info.value.details == 'discovery document missing'


def test_unauthorized_status_maps_to_auth_expired() -> None:
    assert isinstance(classify_provider_error(make_http_error(401, 'Unauthorized')), AuthExpired)


def test_refresh_error_maps_to_auth_expired() -> None:
    assert isinstance(classify_provider_error(RefreshError('invalid_grant')), AuthExpired)


@pytest.mark.parametrize('status', [400, 403, 404, 429, 500, 503])
def test_other_statuses_map_to_provider_error(status: int) -> None:
    error = classify_provider_error(make_http_error(status, 'Backend Error'))

    assert type(error) is ProviderError
    assert error.status_code == 502
    assert error.details == 'Backend Error'


def test_transport_error_maps_to_provider_error() -> None:
    error = classify_provider_error(TransportError('connection reset'))

    assert type(error) is ProviderError
    assert 'connection reset' in error.details

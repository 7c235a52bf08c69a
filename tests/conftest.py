import os
from types import SimpleNamespace

import pytest
from googleapiclient.errors import HttpError
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

os.environ.setdefault('DATABASE_URL', 'sqlite://')
os.environ.setdefault('TOKEN_ENCRYPTION_KEY', 'test-encryption-secret')
os.environ.setdefault('JWT_SECRET_KEY', 'test-jwt-secret')

from backend.database import Base  # noqa: E402
from backend.models.appointment import Appointment  # noqa: E402
from backend.models.oauth_account import OAuthAccount  # noqa: E402
from backend.models.user import User  # noqa: E402
from backend.services.token_vault import TokenVault  # noqa: E402


def make_http_error(status: int, reason: str = 'error') -> HttpError:
    content = b'{"error": {"code": %d, "message": "%s"}}' % (status, reason.encode())
    return HttpError(SimpleNamespace(status=status, reason=reason), content)


class FakeRequest:
    def __init__(self, result=None, error: Exception | None = None):
        self.result = result
        self.error = error

    def execute(self):
        if self.error is not None:
            raise self.error
        return self.result


class FakeCalendarService:
    """Records Calendar API calls and replays canned responses."""

    def __init__(self, freebusy_response=None, freebusy_error=None, created_event=None, insert_error=None):
        self.freebusy_response = freebusy_response
        self.freebusy_error = freebusy_error
        self.created_event = created_event if created_event is not None else {'id': 'evt-1'}
        self.insert_error = insert_error
        self.freebusy_bodies: list[dict] = []
        self.inserts: list[dict] = []

    def freebusy(self):
        return SimpleNamespace(query=self._query)

    def events(self):
        return SimpleNamespace(insert=self._insert)

    def _query(self, body):
        self.freebusy_bodies.append(body)
        return FakeRequest(self.freebusy_response, self.freebusy_error)

    def _insert(self, **kwargs):
        self.inserts.append(kwargs)
        return FakeRequest(self.created_event, self.insert_error)


class FakeClientFactory:
    def __init__(self, seller_service=None, buyer_service=None, buyer_error: Exception | None = None):
        self.seller_service = seller_service or FakeCalendarService()
        self.buyer_service = buyer_service or FakeCalendarService()
        self.buyer_error = buyer_error
        self.refresh_tokens: list[str] = []
        self.access_tokens: list[str] = []

    def from_refresh_token(self, refresh_token):
        self.refresh_tokens.append(refresh_token)
        return self.seller_service

    def from_access_token(self, access_token):
        self.access_tokens.append(access_token)
        if self.buyer_error is not None:
            raise self.buyer_error
        return self.buyer_service

    @property
    def calls(self) -> int:
        return len(self.refresh_tokens) + len(self.access_tokens)


@pytest.fixture
def vault() -> TokenVault:
    return TokenVault('test-encryption-secret')


@pytest.fixture
def db_engine():
    engine = create_engine(
        'sqlite://',
        connect_args={'check_same_thread': False},
        poolclass=StaticPool,
    )
    tables = [User.__table__, OAuthAccount.__table__, Appointment.__table__]
    Base.metadata.create_all(bind=engine, tables=tables)
    try:
        yield engine
    finally:
        Base.metadata.drop_all(bind=engine, tables=tables)
        engine.dispose()


@pytest.fixture
def db_session(db_engine):
    testing_session_local = sessionmaker(autocommit=False, autoflush=False, bind=db_engine)
    db = testing_session_local()
    try:
        yield db
    finally:
        db.close()


@pytest.fixture
def add_user(db_session, vault):
    def _add_user(email: str, name: str | None = None, role: str | None = None, refresh_token: str | None = None):
        user = User(
            email=email,
            name=name,
            role=role,
            refresh_token=vault.encrypt(refresh_token) if refresh_token else None,
        )
        db_session.add(user)
        db_session.commit()
        db_session.refresh(user)
        return user

    return _add_user

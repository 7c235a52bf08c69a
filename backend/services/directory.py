"""User, role and appointment lookups over the local store."""

import logging
from datetime import datetime

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from backend.core.errors import InvalidRequest
from backend.models.appointment import Appointment
from backend.models.oauth_account import OAuthAccount
from backend.models.user import ROLES, SELLER_ROLE, User
from backend.services.token_vault import TokenVault

logger = logging.getLogger(__name__)

GOOGLE_PROVIDER = 'google'


def normalize_email(value: str | None) -> str:
    return (value or '').strip().lower()


def get_user_by_email(db: Session, email: str) -> User | None:
    return db.query(User).filter(User.email == normalize_email(email)).first()


def get_role(db: Session, email: str) -> str | None:
    user = get_user_by_email(db, email)
    if user is None:
        return None
    return user.role


def list_sellers(db: Session) -> list[User]:
    """Sellers a buyer can book with; disconnected sellers are left out."""
    return db.query(User).filter(
        User.role == SELLER_ROLE,
        User.refresh_token.is_not(None),
        User.refresh_token != '',
    ).order_by(User.name.asc(), User.email.asc()).all()


def list_appointments_for(db: Session, email: str, role: str | None) -> list[Appointment]:
    normalized_email = normalize_email(email)
    query = db.query(Appointment)
    if role == SELLER_ROLE:
        query = query.filter(Appointment.seller_email == normalized_email)
    else:
        query = query.filter(Appointment.buyer_email == normalized_email)
    return query.order_by(Appointment.id.asc()).all()


def enrich(db: Session, appointments: list[Appointment]) -> list[dict]:
    """Attach seller and buyer display names, keeping the input order.

    A counterpart that no longer resolves gets an empty name.
    """
    emails = {appointment.seller_email for appointment in appointments}
    emails.update(appointment.buyer_email for appointment in appointments)

    names: dict[str, str] = {}
    if emails:
        rows = db.query(User.email, User.name).filter(User.email.in_(emails)).all()
        names = {email: name or '' for email, name in rows}

    return [
        {
            'id': appointment.id,
            'sellerEmail': appointment.seller_email,
            'buyerEmail': appointment.buyer_email,
            'slotStart': appointment.slot_start,
            'slotEnd': appointment.slot_end,
            'eventIdSeller': appointment.event_id_seller,
            'createdAt': appointment.created_at,
            'sellerName': names.get(appointment.seller_email, ''),
            'buyerName': names.get(appointment.buyer_email, ''),
        }
        for appointment in appointments
    ]


def find_linked_refresh_token(db: Session, user: User | None) -> str | None:
    if user is None or user.id is None:
        return None
    account = db.query(OAuthAccount).filter(
        OAuthAccount.user_id == user.id,
        OAuthAccount.provider == GOOGLE_PROVIDER,
    ).first()
    if account is None or not account.refresh_token:
        return None
    return account.refresh_token


def save_role(
    db: Session,
    vault: TokenVault,
    email: str,
    name: str | None,
    role: str | None,
    session_refresh_token: str | None = None,
) -> User:
    """Persist the chosen role together with whichever refresh token can be recovered.

    The linked OAuth account wins over the session token. When neither is
    available the stored token is cleared, leaving the user disconnected.
    """
    if not role or role not in ROLES:
        raise InvalidRequest('Invalid role')

    normalized_email = normalize_email(email)
    user = get_user_by_email(db, normalized_email)

    refresh_token = find_linked_refresh_token(db, user) or session_refresh_token or None
    encrypted = vault.encrypt(refresh_token) if refresh_token else None

    if user is None:
        user = User(email=normalized_email)
        db.add(user)

    user.name = name or user.name
    user.role = role
    user.refresh_token = encrypted
    user.updated_at = datetime.utcnow()

    try:
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        raise
    db.refresh(user)
    logger.info('Saved role %s for %s (calendar connected: %s)', role, normalized_email, encrypted is not None)
    return user


def record_sign_in(
    db: Session,
    email: str,
    name: str | None,
    provider_account_id: str | None,
    refresh_token: str | None,
    access_token: str | None,
) -> User:
    """Create or update the user and its Google account link after sign-in.

    Google only returns a refresh token on consent, so an existing linked token
    is kept when the provider omits one.
    """
    normalized_email = normalize_email(email)
    user = get_user_by_email(db, normalized_email)
    try:
        if user is None:
            user = User(email=normalized_email, name=name)
            db.add(user)
            db.flush()
        elif name:
            user.name = name

        account = db.query(OAuthAccount).filter(
            OAuthAccount.user_id == user.id,
            OAuthAccount.provider == GOOGLE_PROVIDER,
        ).first()
        if account is None:
            account = OAuthAccount(user_id=user.id, provider=GOOGLE_PROVIDER)
            db.add(account)
        account.provider_account_id = provider_account_id or account.provider_account_id
        account.refresh_token = refresh_token or account.refresh_token
        account.access_token = access_token

        db.commit()
    except SQLAlchemyError:
        db.rollback()
        raise
    db.refresh(user)
    return user


def clear_refresh_token(db: Session, user: User) -> None:
    """Forget a token the provider rejected; failures here are logged only."""
    try:
        user.refresh_token = None
        db.commit()
        logger.info('Cleared rejected refresh token for %s', user.email)
    except SQLAlchemyError:
        db.rollback()
        logger.warning('Failed to clear invalid refresh token for %s', user.email, exc_info=True)

"""Appointment booking against a seller's Google Calendar."""

import logging
import time
import uuid
from dataclasses import dataclass

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from backend.core.errors import (
    AuthExpired,
    ClientConstructionError,
    CryptoError,
    InternalError,
    InvalidCredential,
    InvalidRequest,
    SellerNotConnected,
)
from backend.models.appointment import Appointment
from backend.services.availability import parse_timestamp
from backend.services.calendar_client import (
    PRIMARY_CALENDAR_ID,
    PROVIDER_EXCEPTIONS,
    CalendarClientFactory,
    classify_provider_error,
)
from backend.services.directory import clear_refresh_token, get_user_by_email, normalize_email
from backend.services.token_vault import TokenVault

logger = logging.getLogger(__name__)

DEFAULT_TITLE = 'Appointment'
EVENT_DESCRIPTION = 'Booked via Calendar Scheduler'
CONFERENCE_REQUEST_PREFIX = 'meet-'


@dataclass
class BookingRequest:
    seller_email: str | None
    slot_start: str | None
    slot_end: str | None
    title: str | None = DEFAULT_TITLE


@dataclass
class BookingResult:
    """Outcome of the seller-side booking; the buyer calendar copy is not part of it."""
    appointment_id: int
    event: dict

    @property
    def event_id(self) -> str | None:
        return self.event.get('id')


def validate_booking_request(request: BookingRequest) -> None:
    if not request.seller_email or not request.slot_start or not request.slot_end:
        raise InvalidRequest('Missing required fields')

    try:
        start = parse_timestamp(request.slot_start)
        end = parse_timestamp(request.slot_end)
    except ValueError as exc:
        raise InvalidRequest('Slot bounds must be ISO-8601 timestamps') from exc

    if (start.tzinfo is None) != (end.tzinfo is None):
        raise InvalidRequest('Slot bounds must both carry a timezone or neither')
    if end <= start:
        raise InvalidRequest('Slot end must be after slot start')


def conference_request_id() -> str:
    return f'{CONFERENCE_REQUEST_PREFIX}{time.time_ns()}-{uuid.uuid4().hex[:8]}'


def build_event(request: BookingRequest, buyer_email: str) -> dict:
    return {
        'summary': request.title or DEFAULT_TITLE,
        'description': EVENT_DESCRIPTION,
        'start': {'dateTime': request.slot_start},
        'end': {'dateTime': request.slot_end},
        'attendees': [{'email': normalize_email(request.seller_email)}, {'email': buyer_email}],
        'conferenceData': {'createRequest': {'requestId': conference_request_id()}},
    }


def insert_event(calendar, event: dict) -> dict:
    return calendar.events().insert(
        calendarId=PRIMARY_CALENDAR_ID,
        body=event,
        conferenceDataVersion=1,
        sendUpdates='all',
    ).execute()


def mirror_on_buyer_calendar(
    factory: CalendarClientFactory,
    buyer_email: str,
    buyer_access_token: str | None,
    event: dict,
) -> bool:
    """Copy the event onto the buyer's calendar when a session access token is available.

    The seller-side invite already reaches the buyer as an attendee, so any
    failure here is logged and reported as ``False``.
    """
    if not buyer_access_token:
        return False

    try:
        buyer_calendar = factory.from_access_token(buyer_access_token)
        insert_event(buyer_calendar, event)
    except ClientConstructionError as exc:
        logger.warning("Couldn't build buyer calendar client for %s: %s", buyer_email, exc.details)
        return False
    except PROVIDER_EXCEPTIONS as exc:
        logger.warning("Couldn't create event on buyer calendar for %s: %s", buyer_email, exc)
        return False
    return True


def book_appointment(
    db: Session,
    request: BookingRequest,
    buyer_email: str,
    vault: TokenVault,
    factory: CalendarClientFactory,
    buyer_access_token: str | None = None,
) -> BookingResult:
    validate_booking_request(request)
    buyer_email = normalize_email(buyer_email)

    seller = get_user_by_email(db, request.seller_email)
    if seller is None or not seller.refresh_token:
        raise SellerNotConnected()

    try:
        refresh_token = vault.decrypt(seller.refresh_token)
    except CryptoError as exc:
        logger.warning('Stored refresh token for %s could not be decrypted', seller.email)
        raise InvalidCredential() from exc
    if not refresh_token:
        raise InvalidCredential()

    seller_calendar = factory.from_refresh_token(refresh_token)
    event = build_event(request, buyer_email)

    try:
        created = insert_event(seller_calendar, event)
    except PROVIDER_EXCEPTIONS as exc:
        error = classify_provider_error(exc)
        if isinstance(error, AuthExpired):
            clear_refresh_token(db, seller)
        else:
            logger.error('Event creation failed on seller calendar %s: %s', seller.email, error.details)
        raise error from exc

    mirrored = mirror_on_buyer_calendar(factory, buyer_email, buyer_access_token, event)

    appointment = Appointment(
        seller_email=seller.email,
        buyer_email=buyer_email,
        slot_start=request.slot_start,
        slot_end=request.slot_end,
        event_id_seller=created.get('id'),
    )
    try:
        db.add(appointment)
        db.commit()
        db.refresh(appointment)
    except SQLAlchemyError as exc:
        db.rollback()
        # The seller event exists without a local record; reconciliation is manual.
        logger.error(
            'Appointment record not saved for seller event %s (%s -> %s)',
            created.get('id'),
            buyer_email,
            seller.email,
            exc_info=True,
        )
        raise InternalError('Appointment could not be saved') from exc

    logger.info(
        'Booked %s with %s at %s (event %s, buyer copy: %s)',
        buyer_email,
        seller.email,
        request.slot_start,
        created.get('id'),
        mirrored,
    )
    return BookingResult(appointment_id=appointment.id, event=created)

"""Bookable slot computation on top of the Google Calendar free/busy API."""

import logging
from dataclasses import dataclass, field
from datetime import date, datetime, time, timedelta, tzinfo

from sqlalchemy.orm import Session

from backend.core import config
from backend.core.errors import (
    AuthExpired,
    CalendarDataUnavailable,
    CryptoError,
    InvalidCredential,
    NotConnected,
    NotFound,
    ProviderError,
)
from backend.services.calendar_client import (
    PRIMARY_CALENDAR_ID,
    PROVIDER_EXCEPTIONS,
    CalendarClientFactory,
    classify_provider_error,
)
from backend.services.directory import clear_refresh_token, get_user_by_email
from backend.services.token_vault import TokenVault

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class BusyInterval:
    start: datetime
    end: datetime

    def overlaps(self, slot_start: datetime, slot_end: datetime) -> bool:
        return slot_start < self.end and slot_end > self.start


@dataclass
class AvailabilityResult:
    time_min: datetime
    time_max: datetime
    busy: list[BusyInterval] = field(default_factory=list)
    slots: list[datetime] = field(default_factory=list)


def parse_timestamp(value: str) -> datetime:
    normalized = value.strip()
    if normalized.endswith(('Z', 'z')):
        normalized = normalized[:-1] + '+00:00'
    return datetime.fromisoformat(normalized)


def parse_busy_intervals(raw_busy) -> list[BusyInterval]:
    """Keep the well-formed ``{start, end}`` entries of a free/busy ``busy`` list."""
    intervals: list[BusyInterval] = []
    for entry in raw_busy or []:
        if not isinstance(entry, dict):
            continue
        start, end = entry.get('start'), entry.get('end')
        if not isinstance(start, str) or not isinstance(end, str):
            continue
        try:
            intervals.append(BusyInterval(start=parse_timestamp(start), end=parse_timestamp(end)))
        except ValueError:
            continue
    return intervals


def _align_timezone(value: datetime, reference: datetime) -> datetime:
    if value.tzinfo is None and reference.tzinfo is not None:
        return value.replace(tzinfo=reference.tzinfo)
    if value.tzinfo is not None and reference.tzinfo is None:
        return value.astimezone(None).replace(tzinfo=None)
    return value


def _is_server_local(value: datetime) -> bool:
    if value.tzinfo is None:
        return False
    local = value.astimezone()
    return value.tzinfo == local.tzinfo and value.tzname() == local.tzname()


def _wall_clock(day: date, hour: int, zone: tzinfo | None, local: bool) -> datetime:
    if local:
        # Resolved per day so DST transitions move the offset, not the hour.
        return datetime.combine(day, time(hour)).astimezone()
    return datetime.combine(day, time(hour), tzinfo=zone)


def generate_slots(
    time_min: datetime,
    time_max: datetime,
    busy: list[BusyInterval],
    slot_minutes: int = config.SLOT_MINUTES,
    day_start_hour: int = config.WORKDAY_START_HOUR,
    day_end_hour: int = config.WORKDAY_END_HOUR,
) -> list[datetime]:
    """Working-hour slot starts between ``time_min`` and ``time_max`` that miss every busy interval.

    Days are stepped from ``time_min`` while before ``time_max``; each day yields
    contiguous slots from ``day_start_hour`` to ``day_end_hour`` in the timezone of
    ``time_min``. When ``time_min`` carries the server's local offset the hours are
    local wall-clock time on every day, across DST changes. Slots that merely touch
    a busy interval are kept.
    """
    step = timedelta(minutes=slot_minutes)
    zone = time_min.tzinfo
    local = _is_server_local(time_min)
    intervals = [
        BusyInterval(_align_timezone(interval.start, time_min), _align_timezone(interval.end, time_min))
        for interval in busy
    ]

    slots: list[datetime] = []
    current_day = time_min
    while current_day < time_max:
        slot_start = _wall_clock(current_day.date(), day_start_hour, zone, local)
        day_end = _wall_clock(current_day.date(), day_end_hour, zone, local)

        while slot_start < day_end:
            slot_end = slot_start + step
            if not any(interval.overlaps(slot_start, slot_end) for interval in intervals):
                slots.append(slot_start)
            slot_start = slot_end

        current_day += timedelta(days=1)

    return slots


def query_busy_intervals(calendar, time_min: datetime, time_max: datetime) -> list[BusyInterval]:
    response = calendar.freebusy().query(
        body={
            'timeMin': time_min.isoformat(),
            'timeMax': time_max.isoformat(),
            'items': [{'id': PRIMARY_CALENDAR_ID}],
        }
    ).execute()

    primary = ((response or {}).get('calendars') or {}).get(PRIMARY_CALENDAR_ID)
    if not primary:
        raise CalendarDataUnavailable()

    errors = primary.get('errors')
    if errors:
        reasons = ', '.join(str(error.get('reason', 'unknown')) for error in errors if isinstance(error, dict))
        raise ProviderError(details=reasons or 'unknown')

    return parse_busy_intervals(primary.get('busy'))


def get_seller_availability(
    db: Session,
    seller_email: str,
    vault: TokenVault,
    factory: CalendarClientFactory,
    days: int = config.DEFAULT_LOOKAHEAD_DAYS,
    now: datetime | None = None,
) -> AvailabilityResult:
    seller = get_user_by_email(db, seller_email)
    if seller is None:
        raise NotFound('Seller not found')

    if not seller.refresh_token:
        raise NotConnected()

    try:
        refresh_token = vault.decrypt(seller.refresh_token)
    except CryptoError as exc:
        logger.warning('Stored refresh token for %s could not be decrypted', seller.email)
        raise InvalidCredential() from exc
    if not refresh_token:
        raise InvalidCredential()

    calendar = factory.from_refresh_token(refresh_token)

    time_min = now or datetime.now().astimezone()
    time_max = time_min + timedelta(days=days)

    try:
        busy = query_busy_intervals(calendar, time_min, time_max)
    except PROVIDER_EXCEPTIONS as exc:
        error = classify_provider_error(exc)
        if isinstance(error, AuthExpired):
            clear_refresh_token(db, seller)
        else:
            logger.error('Free/busy query failed for %s: %s', seller.email, error.details)
        raise error from exc

    return AvailabilityResult(
        time_min=time_min,
        time_max=time_max,
        busy=busy,
        slots=generate_slots(time_min, time_max, busy),
    )

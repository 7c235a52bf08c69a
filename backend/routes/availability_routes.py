from datetime import datetime

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, ConfigDict
from sqlalchemy.orm import Session

from backend.auth.dependencies import get_current_identity
from backend.core import config
from backend.core.errors import InvalidRequest
from backend.database import get_db
from backend.services.availability import get_seller_availability
from backend.services.calendar_client import CalendarClientFactory, get_calendar_client_factory
from backend.services.token_vault import TokenVault, get_token_vault

router = APIRouter(tags=['availability'])


class BusyIntervalResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    start: datetime
    end: datetime


class AvailabilityResponse(BaseModel):
    timeMin: datetime
    timeMax: datetime
    busy: list[BusyIntervalResponse]
    slots: list[datetime]


@router.get(
    '/availability',
    response_model=AvailabilityResponse,
    dependencies=[Depends(get_current_identity)],
)
def seller_availability(
    seller_email: str | None = Query(default=None, alias='sellerEmail'),
    days: int = Query(default=config.DEFAULT_LOOKAHEAD_DAYS, ge=1, le=config.MAX_LOOKAHEAD_DAYS),
    db: Session = Depends(get_db),
    vault: TokenVault = Depends(get_token_vault),
    factory: CalendarClientFactory = Depends(get_calendar_client_factory),
):
    if not seller_email or not seller_email.strip():
        raise InvalidRequest('sellerEmail required')

    result = get_seller_availability(db, seller_email, vault, factory, days=days)

    return AvailabilityResponse(
        timeMin=result.time_min,
        timeMax=result.time_max,
        busy=[BusyIntervalResponse.model_validate(interval) for interval in result.busy],
        slots=result.slots,
    )

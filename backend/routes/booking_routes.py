from fastapi import APIRouter, Depends, status
from pydantic import BaseModel, ConfigDict, Field
from sqlalchemy.orm import Session

from backend.auth.dependencies import Identity, get_current_identity
from backend.database import get_db
from backend.services.booking import DEFAULT_TITLE, BookingRequest, book_appointment
from backend.services.calendar_client import CalendarClientFactory, get_calendar_client_factory
from backend.services.token_vault import TokenVault, get_token_vault

router = APIRouter(tags=['booking'])

MAX_TITLE_LENGTH = 200


class CreateBookingRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    seller_email: str | None = Field(default=None, alias='sellerEmail')
    slot_start: str | None = Field(default=None, alias='slotStartISO')
    slot_end: str | None = Field(default=None, alias='slotEndISO')
    title: str = Field(default=DEFAULT_TITLE, max_length=MAX_TITLE_LENGTH)


class BookingResponse(BaseModel):
    ok: bool
    appointmentId: int
    event: dict


@router.post('/book', response_model=BookingResponse, status_code=status.HTTP_201_CREATED)
def create_booking(
    data: CreateBookingRequest,
    identity: Identity = Depends(get_current_identity),
    db: Session = Depends(get_db),
    vault: TokenVault = Depends(get_token_vault),
    factory: CalendarClientFactory = Depends(get_calendar_client_factory),
):
    result = book_appointment(
        db,
        BookingRequest(
            seller_email=data.seller_email,
            slot_start=data.slot_start,
            slot_end=data.slot_end,
            title=data.title.strip() or DEFAULT_TITLE,
        ),
        buyer_email=identity.email,
        vault=vault,
        factory=factory,
        buyer_access_token=identity.access_token,
    )
    return BookingResponse(ok=True, appointmentId=result.appointment_id, event=result.event)

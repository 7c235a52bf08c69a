from datetime import datetime

from fastapi import APIRouter, Depends
from pydantic import BaseModel, ConfigDict
from sqlalchemy.orm import Session

from backend.auth.dependencies import Identity, get_current_identity
from backend.core.errors import NotFound
from backend.database import get_db
from backend.services import directory
from backend.services.token_vault import TokenVault, get_token_vault

router = APIRouter(tags=['users'])


class SellerResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    email: str
    name: str | None = None


class SellersResponse(BaseModel):
    sellers: list[SellerResponse]


class RoleResponse(BaseModel):
    role: str | None = None


class SetupRequest(BaseModel):
    role: str | None = None


class AppointmentResponse(BaseModel):
    id: int
    sellerEmail: str
    buyerEmail: str
    slotStart: str
    slotEnd: str
    eventIdSeller: str | None = None
    createdAt: datetime | None = None
    sellerName: str = ''
    buyerName: str = ''


class AppointmentsResponse(BaseModel):
    appointments: list[AppointmentResponse]


@router.get('/sellers', response_model=SellersResponse, dependencies=[Depends(get_current_identity)])
def list_sellers(db: Session = Depends(get_db)):
    sellers = directory.list_sellers(db)
    return SellersResponse(sellers=[SellerResponse.model_validate(seller) for seller in sellers])


@router.get('/user/role', response_model=RoleResponse)
def get_role(identity: Identity = Depends(get_current_identity), db: Session = Depends(get_db)):
    return RoleResponse(role=directory.get_role(db, identity.email))


@router.post('/setup')
def setup_role(
    data: SetupRequest,
    identity: Identity = Depends(get_current_identity),
    db: Session = Depends(get_db),
    vault: TokenVault = Depends(get_token_vault),
):
    directory.save_role(
        db,
        vault,
        email=identity.email,
        name=identity.name,
        role=data.role,
        session_refresh_token=identity.refresh_token,
    )
    return {'ok': True}


@router.get('/appointments', response_model=AppointmentsResponse)
def list_my_appointments(identity: Identity = Depends(get_current_identity), db: Session = Depends(get_db)):
    user = directory.get_user_by_email(db, identity.email)
    if user is None:
        raise NotFound('User not found')

    appointments = directory.list_appointments_for(db, user.email, user.role)
    return AppointmentsResponse(
        appointments=[AppointmentResponse(**entry) for entry in directory.enrich(db, appointments)]
    )

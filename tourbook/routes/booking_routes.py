from fastapi import APIRouter, Depends, Request, Response, status
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from tourbook.auth.dependencies import AuthContext, authenticated_user, restrict_to
from tourbook.auth.roles import Role
from tourbook.controllers.factory import resource_controller
from tourbook.core import config
from tourbook.core.errors import NotFound
from tourbook.database import get_db
from tourbook.models.booking import Booking
from tourbook.models.tour import Tour
from tourbook.models.user import User
from tourbook.services.payments import PaymentGateway, get_payment_gateway
from tourbook.store import Store

router = APIRouter(tags=['bookings'])

BOOKING_POPULATE = {'user': ('id', 'name', 'email'), 'tour': ('id', 'name')}

bookings = resource_controller(Booking, populate=BOOKING_POPULATE, list_populate=BOOKING_POPULATE)

booking_managers = restrict_to(Role.ADMIN, Role.LEAD_GUIDE)


class BookingCreate(BaseModel):
    tour_id: int
    user_id: int
    price: float = Field(ge=0)
    paid: bool = True


class BookingUpdate(BaseModel):
    price: float | None = Field(default=None, ge=0)
    paid: bool | None = None


@router.get('/checkout-session/{tour_id}')
def get_checkout_session(
    tour_id: int,
    user: User = Depends(authenticated_user),
    db: Session = Depends(get_db),
    gateway: PaymentGateway = Depends(get_payment_gateway),
):
    tour = Store(db, Tour).find_by_id(tour_id)
    if tour is None:
        raise NotFound('No tour found with that ID')

    session = gateway.create_checkout_session(
        tour=tour,
        customer_email=user.email,
        success_url=f'{config.PUBLIC_BASE_URL}/my-tours?alert=booking',
        cancel_url=f'{config.PUBLIC_BASE_URL}/tour/{tour.slug}',
    )
    return {'status': 'success', 'session': session}


@router.get('')
def list_bookings(request: Request, _: AuthContext = Depends(booking_managers), db: Session = Depends(get_db)):
    return bookings.get_all(db, request.query_params.multi_items())


@router.post('', status_code=status.HTTP_201_CREATED)
def create_booking(data: BookingCreate, _: AuthContext = Depends(booking_managers), db: Session = Depends(get_db)):
    return bookings.create_one(db, data.model_dump())


@router.get('/{booking_id}')
def get_booking(booking_id: int, _: AuthContext = Depends(booking_managers), db: Session = Depends(get_db)):
    return bookings.get_one(db, booking_id)


@router.patch('/{booking_id}')
def update_booking(
    booking_id: int,
    data: BookingUpdate,
    _: AuthContext = Depends(booking_managers),
    db: Session = Depends(get_db),
):
    return bookings.update_one(db, booking_id, data.model_dump(exclude_unset=True))


@router.delete('/{booking_id}', status_code=status.HTTP_204_NO_CONTENT)
def delete_booking(booking_id: int, _: AuthContext = Depends(booking_managers), db: Session = Depends(get_db)):
    bookings.delete_one(db, booking_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)

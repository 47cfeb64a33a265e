"""JSON view-models for the public site.

Each payload carries a ``title`` plus the records a page needs, and ``user``
when the visitor is logged in.
"""

from fastapi import APIRouter, Depends, Request
from sqlalchemy import select
from sqlalchemy.orm import Session, selectinload

from tourbook.auth.dependencies import authenticated_user, is_logged_in
from tourbook.core.errors import NotFound
from tourbook.database import get_db
from tourbook.models.booking import Booking
from tourbook.models.review import Review
from tourbook.models.tour import Tour
from tourbook.models.user import User
from tourbook.query.features import build_query_spec
from tourbook.serializers import to_dict
from tourbook.store import Store

router = APIRouter(tags=['views'])

REVIEW_AUTHOR = {'user': ('id', 'name', 'photo')}
GUIDE_FIELDS = ('id', 'name', 'photo', 'role')


def view(title: str, user: User | None, **records) -> dict:
    return {'title': title, 'user': to_dict(user) if user is not None else None, **records}


@router.get('/')
def overview(request: Request, user: User | None = Depends(is_logged_in), db: Session = Depends(get_db)):
    # Same filter, sort and page parameters as the API listing; total ignores paging.
    spec = build_query_spec(request.query_params.multi_items())
    store = Store(db, Tour)
    tours = store.find(spec)
    return view('All Tours', user, total=store.count(spec), tours=[to_dict(tour) for tour in tours])


@router.get('/tour/{slug}')
def tour_page(slug: str, user: User | None = Depends(is_logged_in), db: Session = Depends(get_db)):
    tour = db.scalars(
        select(Tour)
        .where(Tour.slug == slug, Tour.secret_tour.is_(False))
        .options(selectinload(Tour.reviews).selectinload(Review.user), selectinload(Tour.guides))
    ).first()
    if tour is None:
        raise NotFound('There is no tour with that name.')

    data = to_dict(tour, populate={'guides': GUIDE_FIELDS})
    data['reviews'] = [to_dict(review, populate=REVIEW_AUTHOR) for review in tour.reviews]
    return view(f'{tour.name} Tour', user, tour=data)


@router.get('/my-tours')
def my_tours(user: User = Depends(authenticated_user), db: Session = Depends(get_db)):
    tour_ids = select(Booking.tour_id).where(Booking.user_id == user.id)
    tours = db.scalars(select(Tour).where(Tour.id.in_(tour_ids)).order_by(Tour.id)).all()
    return view('My Tours', user, tours=[to_dict(tour) for tour in tours])

from collections import defaultdict
from datetime import datetime, timezone

from fastapi import APIRouter, Depends, Request, Response, status
from pydantic import BaseModel, Field
from sqlalchemy import func, select
from sqlalchemy.orm import Session

from tourbook.auth.dependencies import AuthContext, restrict_to
from tourbook.auth.roles import Role
from tourbook.controllers.factory import resource_controller
from tourbook.core.errors import ValidationError
from tourbook.database import get_db
from tourbook.models.tour import Tour, TourStartDate
from tourbook.models.user import User
from tourbook.util.time import as_utc

router = APIRouter(tags=['tours'])

GUIDE_FIELDS = ('id', 'name', 'email', 'photo', 'role')
GUIDE_ROLES = (Role.GUIDE.value, Role.LEAD_GUIDE.value)

tours = resource_controller(
    Tour,
    populate={'reviews': None, 'guides': GUIDE_FIELDS},
    list_populate={'guides': GUIDE_FIELDS},
)

tour_managers = restrict_to(Role.ADMIN, Role.LEAD_GUIDE)
plan_viewers = restrict_to(Role.ADMIN, Role.LEAD_GUIDE, Role.GUIDE)

TOP_CHEAP_ALIAS = {
    'limit': '5',
    'sort': '-ratings_average,price',
    'fields': 'name,price,ratings_average,summary,difficulty',
}
STATS_MIN_RATING = 4.5


class TourCreate(BaseModel):
    name: str = Field(min_length=10, max_length=40)
    duration: int = Field(gt=0)
    max_group_size: int = Field(gt=0)
    difficulty: str
    price: float = Field(ge=0)
    price_discount: float | None = None
    ratings_average: float | None = Field(default=None, ge=1, le=5)
    summary: str = Field(min_length=1)
    description: str | None = None
    image_cover: str
    secret_tour: bool = False
    guides: list[int] = Field(default_factory=list)
    start_dates: list[datetime] = Field(default_factory=list)


class TourUpdate(BaseModel):
    name: str | None = Field(default=None, min_length=10, max_length=40)
    duration: int | None = Field(default=None, gt=0)
    max_group_size: int | None = Field(default=None, gt=0)
    difficulty: str | None = None
    price: float | None = Field(default=None, ge=0)
    price_discount: float | None = None
    summary: str | None = None
    description: str | None = None
    image_cover: str | None = None
    secret_tour: bool | None = None
    guides: list[int] | None = None
    start_dates: list[datetime] | None = None


def resolve_guides(db: Session, guide_ids: list[int]) -> list[User]:
    ids = list(dict.fromkeys(guide_ids))
    if not ids:
        return []
    found = {
        user.id: user
        for user in db.scalars(
            select(User).where(User.id.in_(ids), User.role.in_(GUIDE_ROLES), User.active.is_(True))
        )
    }
    missing = [str(guide_id) for guide_id in ids if guide_id not in found]
    if missing:
        raise ValidationError(f"Invalid guides: {', '.join(missing)}. A guide must be an active guide or lead-guide.")
    return [found[guide_id] for guide_id in ids]


def relation_payload(db: Session, payload: dict) -> dict:
    if 'guides' in payload:
        payload['guides'] = resolve_guides(db, payload['guides'] or [])
    if 'start_dates' in payload:
        payload['start_dates'] = payload['start_dates'] or []
    return payload


def monthly_plan(db: Session, year: int) -> list[dict]:
    if not 1 <= year < 9999:
        raise ValidationError(f"Invalid year: {year}")
    starts = datetime(year, 1, 1, tzinfo=timezone.utc)
    ends = datetime(year + 1, 1, 1, tzinfo=timezone.utc)
    rows = db.execute(
        select(TourStartDate.starts_at, Tour.name)
        .join(Tour, TourStartDate.tour_id == Tour.id)
        .where(TourStartDate.starts_at >= starts, TourStartDate.starts_at < ends, Tour.secret_tour.is_(False))
        .order_by(TourStartDate.starts_at, Tour.name)
    ).all()

    by_month = defaultdict(list)
    for starts_at, name in rows:
        by_month[as_utc(starts_at).month].append(name)
    plan = [
        {'month': month, 'num_tour_starts': len(names), 'tours': names}
        for month, names in by_month.items()
    ]
    plan.sort(key=lambda entry: (-entry['num_tour_starts'], entry['month']))
    return plan[:12]


def tour_stats(db: Session) -> list[dict]:
    difficulty = func.upper(Tour.difficulty)
    avg_price = func.avg(Tour.price)
    rows = db.execute(
        select(
            difficulty.label('difficulty'),
            func.count(Tour.id).label('num_tours'),
            func.sum(Tour.ratings_quantity).label('num_ratings'),
            func.avg(Tour.ratings_average).label('avg_rating'),
            avg_price.label('avg_price'),
            func.min(Tour.price).label('min_price'),
            func.max(Tour.price).label('max_price'),
        )
        .where(Tour.ratings_average >= STATS_MIN_RATING, Tour.secret_tour.is_(False))
        .group_by(difficulty)
        .order_by(avg_price)
    ).all()
    return [dict(row._mapping) for row in rows]


@router.get('/top-5-cheap')
def top_cheap_tours(request: Request, db: Session = Depends(get_db)):
    params = {**dict(request.query_params), **TOP_CHEAP_ALIAS}
    return tours.get_all(db, params)


@router.get('/tour-stats')
def get_tour_stats(db: Session = Depends(get_db)):
    return {'status': 'success', 'data': {'stats': tour_stats(db)}}


@router.get('/monthly-plan/{year}')
def get_monthly_plan(year: int, _: AuthContext = Depends(plan_viewers), db: Session = Depends(get_db)):
    return {'status': 'success', 'data': {'plan': monthly_plan(db, year)}}


@router.get('')
def list_tours(request: Request, db: Session = Depends(get_db)):
    return tours.get_all(db, request.query_params.multi_items())


@router.get('/{tour_id}')
def get_tour(tour_id: int, db: Session = Depends(get_db)):
    return tours.get_one(db, tour_id)


@router.post('', status_code=status.HTTP_201_CREATED)
def create_tour(data: TourCreate, _: AuthContext = Depends(tour_managers), db: Session = Depends(get_db)):
    return tours.create_one(db, relation_payload(db, data.model_dump(exclude_none=True)))


@router.patch('/{tour_id}')
def update_tour(
    tour_id: int,
    data: TourUpdate,
    _: AuthContext = Depends(tour_managers),
    db: Session = Depends(get_db),
):
    return tours.update_one(db, tour_id, relation_payload(db, data.model_dump(exclude_unset=True)))


@router.delete('/{tour_id}', status_code=status.HTTP_204_NO_CONTENT)
def delete_tour(tour_id: int, _: AuthContext = Depends(tour_managers), db: Session = Depends(get_db)):
    tours.delete_one(db, tour_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)

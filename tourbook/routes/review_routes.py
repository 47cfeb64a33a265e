"""Review endpoints.

The router is mounted twice: at ``/api/v1/reviews`` and nested under
``/api/v1/tours/{tour_id}/reviews``. Handlers take ``tour_id`` as an optional
parameter, so on the nested mount it comes from the path and narrows every
read and defaults the tour of a new review.
"""

from fastapi import APIRouter, Depends, Request, Response, status
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from tourbook.auth.dependencies import AuthContext, protect, restrict_to
from tourbook.auth.roles import Role
from tourbook.controllers.factory import resource_controller
from tourbook.core.errors import NotFound, ValidationError
from tourbook.database import get_db
from tourbook.models.review import Review, calc_average_ratings
from tourbook.models.tour import Tour
from tourbook.store import Store

router = APIRouter(tags=['reviews'])

AUTHOR_FIELDS = ('id', 'name', 'photo')


def refresh_tour_ratings(db: Session, review: Review) -> None:
    calc_average_ratings(db, review.tour_id)


reviews = resource_controller(
    Review,
    populate={'user': AUTHOR_FIELDS},
    list_populate={'user': AUTHOR_FIELDS},
    after_write=refresh_tour_ratings,
)

reviewers = restrict_to(Role.USER)
review_editors = restrict_to(Role.USER, Role.ADMIN)


class ReviewCreate(BaseModel):
    review: str = Field(min_length=1)
    rating: int = Field(ge=1, le=5)
    tour_id: int | None = None


class ReviewUpdate(BaseModel):
    review: str | None = Field(default=None, min_length=1)
    rating: int | None = Field(default=None, ge=1, le=5)


@router.get('')
def list_reviews(
    request: Request,
    tour_id: int | None = None,
    _: AuthContext = Depends(protect),
    db: Session = Depends(get_db),
):
    scope = {'tour_id': tour_id} if tour_id is not None else None
    params = [(key, value) for key, value in request.query_params.multi_items() if key != 'tour_id']
    return reviews.get_all(db, params, scope)


@router.post('', status_code=status.HTTP_201_CREATED)
def create_review(
    data: ReviewCreate,
    tour_id: int | None = None,
    context: AuthContext = Depends(reviewers),
    db: Session = Depends(get_db),
):
    target_tour_id = data.tour_id or tour_id
    if target_tour_id is None:
        raise ValidationError('Review must belong to a tour.')
    if Store(db, Tour).find_by_id(target_tour_id) is None:
        raise NotFound('No tour found with that ID')

    return reviews.create_one(
        db,
        {
            'review': data.review,
            'rating': data.rating,
            'tour_id': target_tour_id,
            'user_id': context.id,
        },
    )


@router.get('/{review_id}')
def get_review(review_id: int, _: AuthContext = Depends(protect), db: Session = Depends(get_db)):
    return reviews.get_one(db, review_id)


@router.patch('/{review_id}')
def update_review(
    review_id: int,
    data: ReviewUpdate,
    _: AuthContext = Depends(review_editors),
    db: Session = Depends(get_db),
):
    return reviews.update_one(db, review_id, data.model_dump(exclude_unset=True))


@router.delete('/{review_id}', status_code=status.HTTP_204_NO_CONTENT)
def delete_review(review_id: int, _: AuthContext = Depends(review_editors), db: Session = Depends(get_db)):
    reviews.delete_one(db, review_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)

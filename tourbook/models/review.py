"""Review model definitions."""

from sqlalchemy import Column, DateTime, ForeignKey, Integer, Text, UniqueConstraint, func, select
from sqlalchemy.orm import Session, relationship, validates

from tourbook.database import Base
from tourbook.models.tour import DEFAULT_RATINGS_AVERAGE, Tour
from tourbook.util.time import utcnow


class Review(Base):
    """A user's review of one tour; at most one per user and tour."""
    __tablename__ = "reviews"
    __table_args__ = (UniqueConstraint("tour_id", "user_id", name="uq_reviews_tour_user"),)

    id = Column(Integer, primary_key=True, index=True)
    review = Column(Text, nullable=False)
    rating = Column(Integer)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    tour_id = Column(Integer, ForeignKey("tours.id", ondelete="CASCADE"), nullable=False, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    version = Column(Integer, nullable=False)

    tour = relationship("Tour", back_populates="reviews")
    user = relationship("User", back_populates="reviews")

    __mapper_args__ = {"version_id_col": version}

    @validates("review")
    def validate_review(self, key: str, value: str) -> str:
        value = (value or "").strip()
        if not value:
            raise ValueError("Review can not be empty!")
        return value

    @validates("rating")
    def validate_rating(self, key: str, value: int | None) -> int | None:
        if value is not None and not 1 <= value <= 5:
            raise ValueError("Rating must be between 1 and 5")
        return value


def calc_average_ratings(db: Session, tour_id: int) -> None:
    """Refresh the rating aggregates stored on a tour from its reviews."""
    quantity, average = db.execute(
        select(func.count(Review.id), func.avg(Review.rating)).where(Review.tour_id == tour_id)
    ).one()

    tour = db.get(Tour, tour_id)
    if tour is None:
        return
    if quantity:
        tour.ratings_quantity = quantity
        tour.ratings_average = float(average) if average is not None else DEFAULT_RATINGS_AVERAGE
    else:
        tour.ratings_quantity = 0
        tour.ratings_average = DEFAULT_RATINGS_AVERAGE

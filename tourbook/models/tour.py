"""Tour model definitions."""

import re

from sqlalchemy import Boolean, Column, DateTime, Float, ForeignKey, Integer, String, Table, Text
from sqlalchemy.orm import relationship, validates

from tourbook.database import Base
from tourbook.util.time import as_utc, utcnow

DIFFICULTIES = ("easy", "medium", "difficult")
DEFAULT_RATINGS_AVERAGE = 4.5


def slugify(value: str) -> str:
    slug = re.sub(r"[^a-z0-9]+", "-", value.strip().lower())
    return slug.strip("-")


tour_guides = Table(
    "tour_guides",
    Base.metadata,
    Column("tour_id", Integer, ForeignKey("tours.id", ondelete="CASCADE"), primary_key=True),
    Column("user_id", Integer, ForeignKey("users.id", ondelete="CASCADE"), primary_key=True),
)


class TourStartDate(Base):
    """One scheduled departure of a tour."""
    __tablename__ = "tour_start_dates"

    id = Column(Integer, primary_key=True, index=True)
    tour_id = Column(Integer, ForeignKey("tours.id", ondelete="CASCADE"), nullable=False, index=True)
    starts_at = Column(DateTime(timezone=True), nullable=False, index=True)

    tour = relationship("Tour", back_populates="departures")


class Tour(Base):
    """Represents a bookable tour."""
    __tablename__ = "tours"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(40), unique=True, nullable=False)
    slug = Column(String, index=True)
    duration = Column(Integer, nullable=False)
    max_group_size = Column(Integer, nullable=False)
    difficulty = Column(String, nullable=False)
    ratings_average = Column(Float, nullable=False, default=DEFAULT_RATINGS_AVERAGE)
    ratings_quantity = Column(Integer, nullable=False, default=0)
    price = Column(Float, nullable=False, index=True)
    price_discount = Column(Float)
    summary = Column(String, nullable=False)
    description = Column(Text)
    image_cover = Column(String, nullable=False)
    secret_tour = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    version = Column(Integer, nullable=False)

    reviews = relationship("Review", back_populates="tour", cascade="all, delete-orphan")
    bookings = relationship("Booking", back_populates="tour", cascade="all, delete-orphan")
    guides = relationship("User", secondary=tour_guides, back_populates="guided_tours", order_by="User.id")
    departures = relationship(
        "TourStartDate",
        back_populates="tour",
        cascade="all, delete-orphan",
        order_by="TourStartDate.starts_at",
        lazy="selectin",
    )

    __mapper_args__ = {"version_id_col": version}

    default_scope = {"secret_tour": False}
    computed_fields = ("duration_weeks", "start_dates")

    @validates("name")
    def validate_name(self, key: str, value: str) -> str:
        value = (value or "").strip()
        if not 10 <= len(value) <= 40:
            raise ValueError("A tour name must have between 10 and 40 characters")
        self.slug = slugify(value)
        return value

    @validates("difficulty")
    def validate_difficulty(self, key: str, value: str) -> str:
        if value not in DIFFICULTIES:
            raise ValueError("Difficulty is either: easy, medium, difficult")
        return value

    @validates("ratings_average")
    def validate_ratings_average(self, key: str, value: float) -> float:
        if not 1 <= value <= 5:
            raise ValueError("Rating must be between 1.0 and 5.0")
        return round(value, 1)

    @validates("price", "price_discount")
    def validate_price_discount(self, key: str, value: float | None) -> float | None:
        price = value if key == "price" else self.price
        discount = value if key == "price_discount" else self.price_discount
        if price is not None and discount is not None and discount >= price:
            raise ValueError(f"Discount price ({discount}) should be below regular price")
        return value

    @property
    def duration_weeks(self) -> float:
        return self.duration / 7

    @property
    def start_dates(self) -> list:
        return [as_utc(departure.starts_at) for departure in self.departures]

    @start_dates.setter
    def start_dates(self, values) -> None:
        self.departures = [TourStartDate(starts_at=value) for value in sorted(as_utc(value) for value in values or ())]

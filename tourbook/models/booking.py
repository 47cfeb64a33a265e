"""Booking model definitions."""

from sqlalchemy import Boolean, Column, DateTime, Float, ForeignKey, Integer
from sqlalchemy.orm import relationship, validates

from tourbook.database import Base
from tourbook.util.time import utcnow


class Booking(Base):
    """Represents a paid seat on a tour."""
    __tablename__ = "bookings"

    id = Column(Integer, primary_key=True, index=True)
    tour_id = Column(Integer, ForeignKey("tours.id", ondelete="CASCADE"), nullable=False, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    price = Column(Float, nullable=False)
    paid = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    version = Column(Integer, nullable=False)

    tour = relationship("Tour", back_populates="bookings")
    user = relationship("User", back_populates="bookings")

    __mapper_args__ = {"version_id_col": version}

    @validates("price")
    def validate_price(self, key: str, value: float) -> float:
        if value is None or value < 0:
            raise ValueError("Booking must have a price.")
        return value

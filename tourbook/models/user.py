"""User model definitions."""

from datetime import timedelta

from sqlalchemy import Boolean, Column, DateTime, Integer, String, inspect
from sqlalchemy.orm import relationship, validates

from tourbook.auth.passwords import hash_password
from tourbook.auth.roles import Role
from tourbook.core import config
from tourbook.database import Base
from tourbook.util.time import utcnow


class User(Base):
    """Represents an application user."""
    __tablename__ = "users"

    # Never leave the process through a serializer.
    hidden_fields = (
        "password",
        "password_reset_token",
        "password_reset_expires",
        "active",
        "token_version",
    )

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String, nullable=False)
    email = Column(String, unique=True, index=True, nullable=False)
    photo = Column(String, default="default.jpg")
    role = Column(String, nullable=False, default=Role.USER.value)
    password = Column(String, nullable=False)
    password_changed_at = Column(DateTime(timezone=True))
    password_reset_token = Column(String, index=True)
    password_reset_expires = Column(DateTime(timezone=True))
    active = Column(Boolean, nullable=False, default=True)
    # Bumped on every password change; tokens carry the value they were issued with.
    token_version = Column(Integer, nullable=False, default=0)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    version = Column(Integer, nullable=False)

    reviews = relationship("Review", back_populates="user", cascade="all, delete-orphan")
    bookings = relationship("Booking", back_populates="user", cascade="all, delete-orphan")
    guided_tours = relationship("Tour", secondary="tour_guides", back_populates="guides", order_by="Tour.id")

    __mapper_args__ = {"version_id_col": version}

    # Soft-deleted accounts are invisible to every read.
    default_scope = {"active": True}

    @validates("name")
    def validate_name(self, key: str, value: str) -> str:
        value = (value or "").strip()
        if not value:
            raise ValueError("Please tell us your name!")
        return value

    @validates("email")
    def validate_email(self, key: str, value: str) -> str:
        normalized = (value or "").strip().lower()
        if not normalized or "@" not in normalized:
            raise ValueError("Please provide a valid email")
        return normalized

    @validates("role")
    def validate_role(self, key: str, value: Role | str) -> str:
        try:
            return Role(value).value
        except ValueError as exc:
            raise ValueError(f"Role must be one of: {', '.join(role.value for role in Role)}") from exc

    @validates("password")
    def validate_password(self, key: str, value: str) -> str:
        # Existing accounts get their change stamped one second early so a token
        # issued right after the change still passes the staleness check.
        if len(value or "") < config.PASSWORD_MIN_LENGTH:
            raise ValueError(f"Password must be at least {config.PASSWORD_MIN_LENGTH} characters")
        state = inspect(self)
        if state.persistent or state.detached:
            self.password_changed_at = utcnow() - timedelta(seconds=1)
            self.token_version = (self.token_version or 0) + 1
        return hash_password(value)

import os

os.environ.setdefault('DATABASE_URL', 'sqlite://')
os.environ.setdefault('APP_ENV', 'development')
os.environ.setdefault('JWT_SECRET_KEY', 'test-secret-key-that-is-long-enough-for-hs256')
os.environ.setdefault('PASSWORD_HASH_ROUNDS', '1000')

import smtplib  # noqa: E402

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402
from sqlalchemy import create_engine  # noqa: E402
from sqlalchemy.orm import sessionmaker  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

from tourbook.auth import jwt_handler  # noqa: E402
from tourbook.database import Base, get_db  # noqa: E402
from tourbook.main import app  # noqa: E402
from tourbook.models.booking import Booking  # noqa: E402
from tourbook.models.review import Review  # noqa: E402
from tourbook.models.tour import Tour  # noqa: E402
from tourbook.models.user import User  # noqa: E402
from tourbook.services.email import Mailer, get_mailer  # noqa: E402
from tourbook.services.payments import get_payment_gateway  # noqa: E402


class RecordingTransport:
    def __init__(self) -> None:
        self.messages = []
        self.fail = False

    def send(self, message) -> None:
        if self.fail:
            raise smtplib.SMTPException('SMTP server unavailable')
        self.messages.append(message)


class FakePaymentGateway:
    def __init__(self) -> None:
        self.calls = []

    def create_checkout_session(self, *, tour, customer_email, success_url, cancel_url):
        self.calls.append(
            {
                'tour_id': tour.id,
                'customer_email': customer_email,
                'success_url': success_url,
                'cancel_url': cancel_url,
            }
        )
        return {'id': 'cs_test_123', 'url': 'https://checkout.example.com/cs_test_123'}


@pytest.fixture
def session_factory():
    engine = create_engine(
        'sqlite://',
        connect_args={'check_same_thread': False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    factory = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    try:
        yield factory
    finally:
        Base.metadata.drop_all(bind=engine)
        engine.dispose()


@pytest.fixture
def db(session_factory):
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def outbox() -> RecordingTransport:
    return RecordingTransport()


@pytest.fixture
def payment_gateway() -> FakePaymentGateway:
    return FakePaymentGateway()


@pytest.fixture
def client(session_factory, outbox, payment_gateway):
    def override_get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_mailer] = lambda: Mailer(outbox)
    app.dependency_overrides[get_payment_gateway] = lambda: payment_gateway
    try:
        yield TestClient(app, raise_server_exceptions=False)
    finally:
        app.dependency_overrides.clear()


@pytest.fixture
def make_user(db):
    def factory(
        name: str = 'John Test',
        email: str = 'john.test@example.com',
        password: str = 'test1234',
        role: str = 'user',
        **fields,
    ) -> User:
        user = User(name=name, email=email, password=password, role=role, **fields)
        db.add(user)
        db.commit()
        db.refresh(user)
        return user

    return factory


@pytest.fixture
def make_tour(db):
    def factory(name: str = 'The Forest Hiker', **fields) -> Tour:
        values = {
            'duration': 5,
            'max_group_size': 25,
            'difficulty': 'easy',
            'price': 397.0,
            'summary': 'Breathtaking hike through the Canadian Banff National Park',
            'image_cover': 'tour-1-cover.jpg',
        }
        values.update(fields)
        tour = Tour(name=name, **values)
        db.add(tour)
        db.commit()
        db.refresh(tour)
        return tour

    return factory


@pytest.fixture
def make_review(db):
    def factory(tour: Tour, user: User, rating: int = 5, review: str = 'Loved every minute of it.') -> Review:
        record = Review(review=review, rating=rating, tour_id=tour.id, user_id=user.id)
        db.add(record)
        db.commit()
        db.refresh(record)
        return record

    return factory


@pytest.fixture
def make_booking(db):
    def factory(tour: Tour, user: User, price: float | None = None) -> Booking:
        record = Booking(tour_id=tour.id, user_id=user.id, price=tour.price if price is None else price)
        db.add(record)
        db.commit()
        db.refresh(record)
        return record

    return factory


def auth_headers(user: User) -> dict[str, str]:
    return {'Authorization': f'Bearer {jwt_handler.issue_token(user.id, user.token_version or 0)}'}


@pytest.fixture
def headers_for():
    return auth_headers

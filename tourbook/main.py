import logging
import time

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy.exc import SQLAlchemyError

from tourbook.core import config
from tourbook.core.errors import register_exception_handlers
from tourbook.database import create_schema
from tourbook.routes import auth_routes, booking_routes, review_routes, tour_routes, user_routes, view_routes

logging.basicConfig(level=config.LOG_LEVEL)

app = FastAPI(title='Tourbook API')

app.add_middleware(
    CORSMiddleware,
    allow_origins=config.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=['*'],
    allow_headers=['*'],
)

register_exception_handlers(app)

logger = logging.getLogger(__name__)


@app.middleware('http')
async def log_requests(request: Request, call_next):
    started = time.perf_counter()
    response = await call_next(request)
    if config.is_development():
        elapsed_ms = (time.perf_counter() - started) * 1000
        logger.info('%s %s %s %.1fms', request.method, request.url.path, response.status_code, elapsed_ms)
    return response


@app.on_event('startup')
def initialize_database() -> None:
    config.validate_runtime_config()
    try:
        create_schema()
    except SQLAlchemyError:
        logger.exception('Database initialization failed. Check DATABASE_URL and database credentials.')


# Auth routes first so /updateMyPassword wins over /{user_id}.
app.include_router(auth_routes.router, prefix='/api/v1/users')
app.include_router(user_routes.router, prefix='/api/v1/users')
app.include_router(tour_routes.router, prefix='/api/v1/tours')
app.include_router(review_routes.router, prefix='/api/v1/tours/{tour_id}/reviews')
app.include_router(review_routes.router, prefix='/api/v1/reviews')
app.include_router(booking_routes.router, prefix='/api/v1/bookings')
app.include_router(view_routes.router)

import logging

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError

from guestbook.core import config
from guestbook.core.exceptions import ErrorKind, ServiceError
from guestbook.database import Base, engine, ensure_appointment_schema
from guestbook.models import appointment, guest, notification, user  # noqa: F401
from guestbook.routes import appointment_routes, auth_routes, live_routes, notification_routes
from guestbook.services.notification_hub import NotificationHub

logging.basicConfig(
    level=config.LOG_LEVEL,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)

ERROR_STATUS_CODES = {
    ErrorKind.INVALID_INPUT: 400,
    ErrorKind.UNAUTHORIZED: 401,
    ErrorKind.FORBIDDEN: 403,
    ErrorKind.NOT_FOUND: 404,
    ErrorKind.CONFLICT: 409,
}

app = FastAPI(title='Guestbook API')
app.state.notification_hub = NotificationHub()

app.add_middleware(
    CORSMiddleware,
    allow_origins=config.CORS_ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=['*'],
    allow_headers=['*'],
)


@app.on_event('startup')
def initialize_database() -> None:
    config.validate_runtime_config()
    try:
        Base.metadata.create_all(bind=engine)
        ensure_appointment_schema()
    except SQLAlchemyError:
        logger.exception('Database initialization failed. Check DATABASE_URL and database credentials.')


@app.exception_handler(ServiceError)
async def service_error_handler(request: Request, exc: ServiceError):
    status_code = ERROR_STATUS_CODES[exc.kind]
    logger.info('%s %s rejected (%s): %s', request.method, request.url.path, exc.kind.value, exc.detail)
    return JSONResponse(status_code=status_code, content={'detail': exc.detail})


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception):
    logger.exception('Unhandled error on %s %s', request.method, request.url.path)
    return JSONResponse(status_code=500, content={'detail': 'Internal server error.'})


@app.get('/')
def root():
    return {'status': 'Guestbook API Running'}


app.include_router(auth_routes.router, prefix='/auth')
app.include_router(appointment_routes.router, prefix='/appointments')
app.include_router(notification_routes.router, prefix='/notifications')
app.include_router(live_routes.router)

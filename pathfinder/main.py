import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError

from pathfinder.auth.dependencies import get_verification_ledger
from pathfinder.core import config
from pathfinder.core.errors import InternalError, PathfinderError, RateLimited
from pathfinder.database import engine, ensure_auth_schema
from pathfinder.models import unlock_event, user, verification
from pathfinder.routes import auth_routes, progress_routes
from pathfinder.schemas import first_error_message

logger = logging.getLogger(__name__)


def configure_logging() -> None:
    logging.basicConfig(
        level=config.LOG_LEVEL,
        format='%(asctime)s %(levelname)s %(name)s: %(message)s',
    )


configure_logging()

app = FastAPI(title='EIC Pathway API')

app.add_middleware(
    CORSMiddleware,
    allow_origins=config.CORS_ALLOW_ORIGINS,
    allow_credentials=True,
    allow_methods=['*'],
    allow_headers=['*'],
)


def error_body(code: str, message: str) -> dict:
    return {'status': code, 'message': message}


def internal_error_response() -> JSONResponse:
    error = InternalError()
    return JSONResponse(status_code=error.status_code, content=error_body(error.code, error.message))


@app.exception_handler(PathfinderError)
def handle_pathfinder_error(request: Request, exc: PathfinderError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error('Unhandled service error on %s: %s', request.url.path, exc.message)
        return internal_error_response()

    headers = None
    if isinstance(exc, RateLimited) and exc.retry_after:
        headers = {'Retry-After': str(exc.retry_after)}
    return JSONResponse(status_code=exc.status_code, content=error_body(exc.code, exc.message), headers=headers)


@app.exception_handler(RequestValidationError)
def handle_request_validation_error(request: Request, exc: RequestValidationError) -> JSONResponse:
    return JSONResponse(status_code=400, content=error_body('validation_error', first_error_message(exc.errors())))


@app.exception_handler(SQLAlchemyError)
def handle_database_error(request: Request, exc: SQLAlchemyError) -> JSONResponse:
    logger.exception('Database error on %s', request.url.path)
    return internal_error_response()


@app.exception_handler(Exception)
def handle_unexpected_error(request: Request, exc: Exception) -> JSONResponse:
    logger.exception('Unexpected error on %s', request.url.path)
    return internal_error_response()


@app.on_event('startup')
def initialize_database() -> None:
    config.validate_runtime_config()
    try:
        user.Base.metadata.create_all(bind=engine)
        verification.Base.metadata.create_all(bind=engine)
        unlock_event.Base.metadata.create_all(bind=engine)
        ensure_auth_schema()
        purged = get_verification_ledger().purge_expired()
        if purged:
            logger.info('Purged %s expired verification records', purged)
    except SQLAlchemyError:
        logger.exception('Database initialization failed. Check DATABASE_URL and database credentials.')


@app.get('/')
def root():
    return {'status': 'EIC Pathway API Running'}


app.include_router(auth_routes.router, prefix='/auth')
app.include_router(progress_routes.router, prefix='/progress')

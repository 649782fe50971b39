import logging
import traceback
from datetime import datetime, timezone
from http import HTTPStatus

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlalchemy.exc import DBAPIError, IntegrityError, OperationalError
from sqlalchemy.exc import TimeoutError as PoolTimeoutError
from starlette.exceptions import HTTPException as StarletteHTTPException

from backend.core import config
from backend.core.exceptions import AppError, ConflictError, ServiceUnavailableError

logger = logging.getLogger(__name__)


def error_response(
    request: Request,
    status_code: int,
    error: dict,
    exc: Exception | None = None,
    headers: dict | None = None,
) -> JSONResponse:
    if exc is not None and config.is_development():
        error = {**error, 'stack': ''.join(traceback.format_exception(type(exc), exc, exc.__traceback__))}

    headers = dict(headers or {})
    if status_code == 401:
        headers.setdefault('WWW-Authenticate', 'Bearer')
    return JSONResponse(
        status_code=status_code,
        content={
            'success': False,
            'error': error,
            'timestamp': datetime.now(timezone.utc).isoformat(),
            'path': request.url.path,
            'method': request.method,
        },
        headers=headers,
    )


def _field_name(location: tuple) -> str:
    parts = [str(part) for part in location if part not in ('body', 'query', 'path', 'header')]
    return '.'.join(parts) or 'body'


async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error('%s %s failed: %s', request.method, request.url.path, exc.message)
    return error_response(request, exc.status_code, exc.to_dict())


async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    errors = [
        {'field': _field_name(tuple(item.get('loc', ()))), 'message': item.get('msg', 'Invalid value')}
        for item in exc.errors()
    ]
    return error_response(
        request,
        400,
        {'code': 'VALIDATION_ERROR', 'message': 'Validation failed', 'errors': errors},
    )


async def http_error_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    try:
        status = HTTPStatus(exc.status_code)
        code, phrase = status.name, status.phrase
    except ValueError:
        code, phrase = 'HTTP_ERROR', 'Request failed'
    message = exc.detail if isinstance(exc.detail, str) and exc.detail else phrase
    return error_response(request, exc.status_code, {'code': code, 'message': message}, headers=exc.headers)


async def database_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception('Database unavailable during %s %s', request.method, request.url.path)
    return error_response(request, 503, ServiceUnavailableError().to_dict(), exc)


async def integrity_error_handler(request: Request, exc: IntegrityError) -> JSONResponse:
    logger.warning('Integrity error on %s %s', request.method, request.url.path)
    return error_response(request, 409, ConflictError('Resource already exists').to_dict())


async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.error('Unhandled error on %s %s', request.method, request.url.path, exc_info=exc)
    return error_response(
        request,
        500,
        {'code': 'INTERNAL_SERVER_ERROR', 'message': 'An unexpected error occurred'},
        exc,
    )


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(AppError, app_error_handler)
    app.add_exception_handler(RequestValidationError, validation_error_handler)
    app.add_exception_handler(StarletteHTTPException, http_error_handler)
    app.add_exception_handler(OperationalError, database_error_handler)
    app.add_exception_handler(IntegrityError, integrity_error_handler)
    app.add_exception_handler(DBAPIError, database_error_handler)
    app.add_exception_handler(PoolTimeoutError, database_error_handler)
    app.add_exception_handler(Exception, unhandled_error_handler)

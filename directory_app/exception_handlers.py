import structlog
from fastapi import Request
from fastapi.responses import JSONResponse

from directory_app.exceptions import AppError, NotFoundError, StorageError, UnauthorizedError

logger = structlog.get_logger()

STATUS_BY_ERROR: dict[type[AppError], int] = {
    NotFoundError: 404,
    UnauthorizedError: 401,
    StorageError: 502,
}


def status_for(exc: AppError) -> int:
    for error_type in type(exc).__mro__:
        if error_type in STATUS_BY_ERROR:
            return STATUS_BY_ERROR[error_type]
    return 500


async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
    status_code = status_for(exc)
    if status_code >= 500:
        logger.error("request_failed", path=request.url.path, code=exc.code, error=exc.message)
    return JSONResponse(
        status_code=status_code,
        content={"error": exc.code, "message": exc.message},
    )


def register_exception_handlers(app):
    app.add_exception_handler(AppError, app_error_handler)

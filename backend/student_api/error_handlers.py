"""
Global exception handlers for the student records API.

- StudentApiError -> its own status code and body (`to_response`)
- SQLAlchemyError escaping a route or dependency -> 500 with the detail
"""

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError

from student_api.errors import StudentApiError
from student_api.logging_config import get_logger, log_with_context

logger = get_logger("http")


def register_error_handlers(app: FastAPI) -> None:
    """Register all exception handlers on the FastAPI app."""
    _register_domain_error_handler(app)
    _register_store_error_handler(app)


def _register_domain_error_handler(app: FastAPI) -> None:

    @app.exception_handler(StudentApiError)
    async def domain_error_handler(request: Request, exc: StudentApiError):
        level = "ERROR" if exc.status_code >= 500 else "INFO"
        log_with_context(logger, level,
            "{} on {} {}: {}".format(type(exc).__name__, request.method, request.url.path, exc.message),
            extra_data={"status_code": exc.status_code, "error": getattr(exc, "error", "")})
        return JSONResponse(status_code=exc.status_code, content=exc.to_response())


def _register_store_error_handler(app: FastAPI) -> None:

    @app.exception_handler(SQLAlchemyError)
    async def store_error_handler(request: Request, exc: SQLAlchemyError):
        log_with_context(logger, "ERROR",
            "Database error on {} {}".format(request.method, request.url.path),
            extra_data={"error": str(exc)})
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={"message": "Database is unavailable.", "error": str(exc)},
        )

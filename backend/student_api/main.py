"""
Student Records API - FastAPI application entry point.

This module:
1. Builds the FastAPI app (`create_app`) with CORS and request ID middleware
2. Sets up structured JSON logging
3. Registers the students routes, root/health endpoints and error handlers
4. Exposes a module-level `app` for ASGI / serverless hosts
5. Runs a local uvicorn listener through `main()` after connecting the store

The application follows a modular layout:
- routes/: API endpoint handlers
- models/: SQLAlchemy ORM models
- services/: store operations, validation rules, student number generation
- errors.py / error_handlers.py: domain exceptions and their HTTP mapping
- logging_config.py: structured logging configuration
- database.py: store handle and session dependency
"""

import sys
import time
from typing import Optional

import uvicorn
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError

from student_api import __version__
from student_api.config import Settings, get_settings
from student_api.database import Database
from student_api.error_handlers import register_error_handlers
from student_api.errors import DatabaseNotConfiguredError
from student_api.logging_config import (
    setup_logging, get_logger, log_with_context,
    request_id_var, generate_request_id
)
from student_api.routes import students

logger = get_logger("http")


def create_app(settings: Optional[Settings] = None,
               database: Optional[Database] = None) -> FastAPI:
    """
    Build the application around an explicit store handle.

    When no database is passed, one is built from `settings.database_url`;
    it may be unconfigured (serverless without DATABASE_URL), in which case
    every store-backed request fails with 500.
    """
    settings = settings or get_settings()
    database = database or Database(settings.database_url)

    app = FastAPI(
        title="Student Records API",
        description="CRUD over student records with validated input and generated student numbers.",
        version=__version__,
        docs_url="/docs",
        redoc_url="/redoc"
    )
    app.state.settings = settings
    app.state.database = database

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=["X-Request-ID"]
    )

    # ──────────────────────────────────────────────────────────────
    # Request ID Middleware
    #
    # Generates a UUID per request, stores it in a context variable
    # (attached to every log entry), returns it in X-Request-ID and
    # logs request start/end with latency.
    # ──────────────────────────────────────────────────────────────
    @app.middleware("http")
    async def request_id_middleware(request: Request, call_next):
        req_id = generate_request_id()
        request_id_var.set(req_id)
        start_time = time.time()

        log_with_context(logger, "INFO",
            f"Request started: {request.method} {request.url.path}",
            context={"request_id": req_id},
            extra_data={
                "ip": request.client.host if request.client else "unknown",
                "user_agent": request.headers.get("user-agent", ""),
                "query_params": dict(request.query_params)
            })

        response = await call_next(request)

        duration_ms = (time.time() - start_time) * 1000
        response.headers["X-Request-ID"] = req_id

        log_with_context(logger, "INFO",
            f"Request completed: {request.method} {request.url.path} → {response.status_code}",
            context={"request_id": req_id},
            extra_data={
                "duration_ms": round(duration_ms, 2),
                "status_code": response.status_code
            })

        return response

    app.include_router(students.router, tags=["Students"])
    register_error_handlers(app)

    @app.get("/", tags=["Root"])
    def root():
        return {"message": "Student API is running. Access /api/students for data."}

    @app.get("/health", tags=["Health"])
    def health_check():
        """Liveness probe; 200 whenever the process is up."""
        return {"status": "healthy", "service": "student-api", "version": __version__}

    @app.get("/health/ready", tags=["Health"])
    def readiness_check(request: Request):
        """Readiness probe; 503 when the store is unreachable."""
        if not request.app.state.database.ping():
            return JSONResponse(
                status_code=503,
                content={"status": "not_ready", "reason": "database_unavailable"},
            )
        return {"status": "ready", "checks": {"database": "healthy"}}

    return app


def main(settings: Optional[Settings] = None) -> int:
    """
    Local entry point: connect the store, then listen on PORT.

    Under serverless production hosting the platform owns the listener and
    this returns immediately. Without a deployment flag, a missing
    DATABASE_URL or an unreachable store exits with status 1.
    """
    settings = settings or get_settings()
    setup_logging(settings.log_level)

    if settings.is_serverless:
        log_with_context(logger, "INFO", "Serverless production environment; local listener disabled")
        return 0

    if not settings.database_url:
        log_with_context(logger, "CRITICAL",
                         "FATAL ERROR: DATABASE_URL is not defined in environment variables.")
        if settings.exit_on_startup_failure:
            return 1

    try:
        # The module-level app already holds a store built from the environment
        listener_app = app if settings == app.state.settings else create_app(settings)
        listener_app.state.database.connect()
    except (SQLAlchemyError, DatabaseNotConfiguredError) as e:
        log_with_context(logger, "CRITICAL", "Could not connect to database",
                         extra_data={"error": str(e)})
        return 1 if settings.exit_on_startup_failure else 0

    log_with_context(logger, "INFO",
                     f"API running on http://localhost:{settings.port}/api/students")
    uvicorn.run(listener_app, host=settings.host, port=settings.port, log_config=None)
    return 0


def run():
    """Console script wrapper around `main()`."""
    sys.exit(main())


# ASGI entry point for `uvicorn student_api.main:app` and serverless hosts
setup_logging()
app = create_app()


if __name__ == "__main__":
    run()

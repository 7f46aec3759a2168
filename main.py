import logging
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException

from config import Settings, configure_logging, get_settings
from db import create_db_and_tables
from responses import send_error
from routers import auth, donations, help_requests, items, pages
from services import build_services

logger = logging.getLogger(__name__)


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    settings = settings or get_settings()
    configure_logging(settings.log_level)

    app = FastAPI(title="ReliefLink")
    app.state.settings = settings
    app.state.services = build_services(settings)

    @app.on_event("startup")
    def on_startup() -> None:
        create_db_and_tables()
        logger.info("ReliefLink API started")

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException):
        return send_error(str(exc.detail), exc.status_code)

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        details = [
            {"field": ".".join(str(p) for p in err.get("loc", ())[1:]), "message": err.get("msg")}
            for err in exc.errors()
        ]
        return send_error("Validation failed", 400, details)

    @app.exception_handler(Exception)
    async def unhandled_exception_handler(request: Request, exc: Exception):
        logger.exception("Unhandled error on %s %s", request.method, request.url.path)
        return send_error("Internal server error", 500)

    @app.get("/health", include_in_schema=False)
    def health():
        return {"success": True, "message": "ok"}

    app.include_router(auth.router, prefix="/api/users")
    app.include_router(help_requests.router)
    app.include_router(donations.router)
    app.include_router(items.router)

    app.include_router(pages.router)
    return app


app = create_app()

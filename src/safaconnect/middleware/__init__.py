"""Middleware registration."""

from fastapi import FastAPI

from safaconnect.config import Settings
from safaconnect.middleware.cors import setup_cors
from safaconnect.middleware.error_handler import setup_error_handlers
from safaconnect.middleware.logging import setup_logging
from safaconnect.middleware.request_id import RequestIdMiddleware


def setup_middleware(app: FastAPI, settings: Settings) -> None:
    """Register logging, error handlers and middleware.

    Starlette runs middleware in reverse-add order, so CORS (added last) is
    outermost and decorates error responses too.
    """
    setup_logging(settings)
    setup_error_handlers(app)
    app.add_middleware(RequestIdMiddleware)
    setup_cors(app, settings)

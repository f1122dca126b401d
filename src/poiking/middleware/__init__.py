"""Middleware registration."""

from fastapi import FastAPI

from poiking.config import Settings
from poiking.middleware.error_handler import setup_error_handlers
from poiking.middleware.logging import setup_logging
from poiking.middleware.request_id import RequestIdMiddleware


def setup_middleware(app: FastAPI, settings: Settings) -> None:
    """Configure logging, error handlers and request ids."""
    setup_logging(settings)
    setup_error_handlers(app)
    app.add_middleware(RequestIdMiddleware)

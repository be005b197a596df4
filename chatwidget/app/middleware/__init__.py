"""Middleware package for the chat widget backend."""

from chatwidget.app.middleware.rate_limit import RateLimiter, client_key
from chatwidget.app.middleware.request_id import RequestIdMiddleware, get_request_id

__all__ = [
    "RateLimiter",
    "client_key",
    "RequestIdMiddleware",
    "get_request_id",
]

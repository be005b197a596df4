"""API endpoints package for the chat widget backend."""

from chatwidget.app.api.abuse import router as abuse_router
from chatwidget.app.api.chat import router as chat_router
from chatwidget.app.api.health import router as health_router

__all__ = [
    "abuse_router",
    "chat_router",
    "health_router",
]

"""Core utilities for the chat widget backend."""

from chatwidget.app.core.config import settings
from chatwidget.app.core.logging import get_logger, setup_logging

__all__ = [
    "settings",
    "get_logger",
    "setup_logging",
]

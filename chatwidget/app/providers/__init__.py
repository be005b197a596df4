"""Reply generators for the chat widget backend.

This package provides:
- Base responder interface (BaseResponder)
- Templated persona responder (MockResponder)
"""

from chatwidget.app.providers.base import BaseResponder
from chatwidget.app.providers.mock import MockResponder, split_sentences

__all__ = [
    "BaseResponder",
    "MockResponder",
    "split_sentences",
]

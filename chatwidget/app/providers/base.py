from abc import ABC, abstractmethod
from typing import AsyncGenerator

from chatwidget.app.services.tenants import TenantConfig


class BaseResponder(ABC):
    """Base class for reply generators.

    A responder turns one user message into a stream of text tokens in the
    tenant's persona. The chat endpoint wraps each token in a ``content``
    event; exceptions raised while streaming become an in-band ``error``
    event.
    """

    @abstractmethod
    def stream_reply(self, tenant: TenantConfig, message: str) -> AsyncGenerator[str, None]:
        """Yield the reply as incremental text tokens.

        Args:
            tenant: Tenant whose persona answers
            message: Sanitized user message

        Yields:
            Text tokens in order; concatenated they form the full reply
        """
        pass

    async def health_check(self) -> bool:
        """Check if the responder can serve replies."""
        return True

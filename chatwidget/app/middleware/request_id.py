"""Request ID middleware.

Every request gets an ID that shows up in logs, error bodies and the
X-Request-ID response header, so a widget report can be matched to the
server-side trace of the same chat turn.
"""

import re
import uuid
from typing import Optional

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint

# Client supplied IDs end up in log lines; anything else is replaced
_VALID_REQUEST_ID = re.compile(r"^[A-Za-z0-9._:-]{1,128}$")


class RequestIdMiddleware(BaseHTTPMiddleware):
    """Attach a request ID to request.state and to the response.

    A well-formed X-Request-ID from the widget is reused, otherwise a UUID4
    is generated. Malformed IDs (control characters, spaces, overly long
    values) are dropped rather than echoed.
    """

    def __init__(self, app, header_name: str = "X-Request-ID"):
        super().__init__(app)
        self.header_name = header_name

    async def dispatch(
        self,
        request: Request,
        call_next: RequestResponseEndpoint
    ) -> Response:
        request_id = normalize_request_id(request.headers.get(self.header_name))
        request.state.request_id = request_id

        response = await call_next(request)
        response.headers[self.header_name] = request_id
        return response


def normalize_request_id(value: Optional[str]) -> str:
    """Return value if it is a usable request ID, a fresh UUID otherwise."""
    if value and _VALID_REQUEST_ID.match(value):
        return value
    return str(uuid.uuid4())


def get_request_id(request: Request) -> str:
    """Get request ID from request state.

    Args:
        request: FastAPI request object

    Returns:
        Request ID string, "unknown" outside the middleware
    """
    return getattr(request.state, "request_id", "unknown")

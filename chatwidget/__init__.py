"""Multi-tenant chat widget backend and widget SSE client."""

__version__ = "0.1.0"

from contextlib import asynccontextmanager
from typing import AsyncGenerator, Callable, Optional

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from chatwidget.app.api.abuse import router as abuse_router
from chatwidget.app.api.chat import router as chat_router
from chatwidget.app.api.dependencies import build_services
from chatwidget.app.api.health import router as health_router
from chatwidget.app.core.config import Settings, settings as default_settings
from chatwidget.app.core.logging import get_log_context, get_logger, setup_logging
from chatwidget.app.exceptions import ChatWidgetError, WAFBlockedError
from chatwidget.app.middleware.request_id import RequestIdMiddleware, get_request_id
from chatwidget.app.providers.base import BaseResponder
from chatwidget.app.services.tenants import TenantRegistry


def create_app(
    app_settings: Optional[Settings] = None,
    responder: Optional[BaseResponder] = None,
    tenants: Optional[TenantRegistry] = None,
    clock: Optional[Callable[[], float]] = None,
) -> FastAPI:
    """Create and configure the FastAPI application.

    Args:
        app_settings: Settings to use instead of the environment-loaded ones
        responder: Reply generator, defaults to the mock responder
        tenants: Tenant registry, defaults to the seeded demo tenants
        clock: Wall-clock source for the limiter and captcha service

    Returns:
        Configured FastAPI application instance
    """
    config = app_settings or default_settings

    setup_logging()
    logger = get_logger(__name__)

    services = build_services(config, responder=responder, tenants=tenants, clock=clock)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
        """Start the cleanup sweeper on startup and stop it on shutdown."""
        await services.cleanup.start()
        logger.info(
            "Application startup complete",
            extra={
                "tenants": services.tenants.tenant_ids(),
                "waf_rules": len(services.waf.get_rules()),
                "debug_mode": config.debug,
            },
        )

        yield

        await services.cleanup.stop()
        logger.info("Application shutdown complete")

    app = FastAPI(
        title="Chat Widget Gateway",
        description="Multi-tenant chat widget backend with rate limiting, WAF, captcha and SSE streaming",
        version="1.0.0",
        lifespan=lifespan,
    )
    app.state.services = services

    # Add middleware (order matters: last added = first executed)
    app.add_middleware(RequestIdMiddleware)

    # CORS middleware (outermost - handles preflight requests first)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.cors_origins,
        allow_credentials="*" not in config.cors_origins,
        allow_methods=["GET", "POST", "DELETE", "OPTIONS"],
        allow_headers=["*"],
        expose_headers=["X-Request-ID", "Retry-After", "X-Captcha-Required"],
        max_age=600,
    )

    app.include_router(health_router)
    app.include_router(chat_router)
    app.include_router(abuse_router)

    @app.exception_handler(WAFBlockedError)
    async def waf_blocked_handler(request: Request, exc: WAFBlockedError) -> JSONResponse:
        """Handle WAFBlockedError: log the security event and return HTTP 403."""
        logger.warning(
            f"Request blocked by WAF: {exc.reason}",
            extra={
                **get_log_context(request_id=get_request_id(request)),
                "rule_id": exc.rule_id,
                "path": request.url.path,
            },
        )
        return JSONResponse(status_code=exc.status_code, content=exc.to_response())

    @app.exception_handler(ChatWidgetError)
    async def chatwidget_error_handler(request: Request, exc: ChatWidgetError) -> JSONResponse:
        """Handle every ChatWidgetError with its own status, body and headers."""
        if exc.status_code >= 500:
            logger.error(f"{exc.code}: {exc.message}", extra={"request_id": get_request_id(request)})
        return JSONResponse(
            status_code=exc.status_code,
            content=exc.to_response(),
            headers=exc.headers(),
        )

    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        """Global exception handler for unhandled exceptions.

        Security notes:
        - Never returns raw traceback to client (even in debug mode)
        - Logs full details server-side for debugging
        - Debug mode returns exception message but not stack trace
        """
        request_id = get_request_id(request)

        logger.exception(
            f"Unhandled exception [request_id={request_id}]",
            extra={
                "request_id": request_id,
                "exception_type": type(exc).__name__,
            },
        )

        content = {"error": "Internal server error", "code": "INTERNAL_ERROR", "requestId": request_id}
        if config.debug:
            content["error"] = str(exc)
            content["exceptionType"] = type(exc).__name__
        return JSONResponse(status_code=500, content=content)

    return app


# Create the application instance
app = create_app()

"""Custom exceptions for the chat widget backend."""

from typing import Any, Dict, Optional


class ChatWidgetError(Exception):
    """Base class for chat widget exceptions with HTTP status code.

    All custom exceptions should inherit from this class and define
    their specific status_code and code for consistent HTTP response handling.
    """
    status_code: int = 500
    code: str = "INTERNAL_ERROR"

    def __init__(self, message: str = "Internal server error", code: Optional[str] = None):
        self.message = message
        if code is not None:
            self.code = code
        super().__init__(message)

    def to_response(self) -> Dict[str, Any]:
        """Convert to the JSON body returned at the HTTP boundary."""
        return {"error": self.message, "code": self.code}

    def headers(self) -> Optional[Dict[str, str]]:
        """Extra response headers, if any."""
        return None


class MissingTenantError(ChatWidgetError):
    """Raised when a request carries no tenant identifier.

    Maps to HTTP 400 Bad Request.
    """
    status_code = 400
    code = "MISSING_TENANT_ID"

    def __init__(self, message: str = "Tenant ID required"):
        super().__init__(message)


class TenantNotFoundError(ChatWidgetError):
    """Raised when the tenant identifier is unknown.

    Maps to HTTP 404 Not Found.
    """
    status_code = 404
    code = "TENANT_NOT_FOUND"

    def __init__(self, tenant_id: str):
        self.tenant_id = tenant_id
        super().__init__(f"Tenant not found: {tenant_id}")


class InvalidRequestError(ChatWidgetError):
    """Raised when the request body is malformed or empty.

    Maps to HTTP 400 Bad Request.
    """
    status_code = 400
    code = "INVALID_REQUEST"


class RateLimitExceededError(ChatWidgetError):
    """Raised when a client exceeded its burst or per-minute budget.

    Maps to HTTP 429 Too Many Requests with a Retry-After header.
    """
    status_code = 429
    code = "RATE_LIMIT_EXCEEDED"

    def __init__(self, retry_after: int, reason: str = "Rate limit exceeded"):
        self.retry_after = retry_after
        self.reason = reason
        super().__init__(reason)

    def to_response(self) -> Dict[str, Any]:
        body = super().to_response()
        body["retryAfter"] = self.retry_after
        body["reason"] = self.reason
        return body

    def headers(self) -> Optional[Dict[str, str]]:
        return {"Retry-After": str(self.retry_after)}


class BotDetectedError(ChatWidgetError):
    """Raised when a client is identified as an automated agent.

    Recoverable by solving a captcha. Maps to HTTP 429.
    """
    status_code = 429
    code = "BOT_DETECTED"

    def __init__(self, reason: str = "Automated traffic detected"):
        self.reason = reason
        super().__init__("Bot detected")

    def to_response(self) -> Dict[str, Any]:
        body = super().to_response()
        body["reason"] = self.reason
        body["captchaRequired"] = True
        return body


class CaptchaRequiredError(ChatWidgetError):
    """Raised when a WAF rule demands a solved captcha before proceeding.

    Maps to HTTP 429.
    """
    status_code = 429
    code = "CAPTCHA_REQUIRED"

    def __init__(self, reason: str):
        self.reason = reason
        super().__init__("Captcha required")

    def to_response(self) -> Dict[str, Any]:
        body = super().to_response()
        body["reason"] = self.reason
        body["captchaRequired"] = True
        return body


class WAFBlockedError(ChatWidgetError):
    """Raised when a WAF rule blocks the request.

    Maps to HTTP 403 Forbidden.
    """
    status_code = 403
    code = "WAF_BLOCKED"

    def __init__(self, rule_id: str, reason: str):
        self.rule_id = rule_id
        self.reason = reason
        super().__init__("Request blocked")

    def to_response(self) -> Dict[str, Any]:
        body = super().to_response()
        body["ruleId"] = self.rule_id
        body["reason"] = self.reason
        return body


class AdminAuthError(ChatWidgetError):
    """Raised when the admin bearer token is missing or wrong.

    Maps to HTTP 401 Unauthorized.
    """
    status_code = 401
    code = "UNAUTHORIZED"

    def __init__(self, message: str = "Invalid or missing admin token"):
        super().__init__(message)


class RuleNotFoundError(ChatWidgetError):
    """Raised when an admin call names an unknown WAF rule.

    Maps to HTTP 404 Not Found.
    """
    status_code = 404
    code = "RULE_NOT_FOUND"

    def __init__(self, rule_id: str):
        self.rule_id = rule_id
        super().__init__(f"WAF rule not found: {rule_id}")

"""
API error taxonomy and exception handlers
"""
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
import logging

logger = logging.getLogger(__name__)


# ========== Service-level exceptions ==========

class CustomerNotFoundError(Exception):
    """A write targeted a customer id that does not exist (zero rows affected)"""

    def __init__(self, customer_id: str):
        super().__init__(f"Customer not found: {customer_id}")
        self.customer_id = customer_id


class ResolutionError(Exception):
    """No identity context could be resolved for a linking callback"""
    pass


class SessionError(Exception):
    """The session could not be persisted"""
    pass


# ========== API errors ==========

class ApiError(Exception):
    """
    Error rendered as {"error": <code>, "message": <text>, ...extra}
    """

    def __init__(self, status_code: int, error: str, message: str = None, **extra):
        super().__init__(message or error)
        self.status_code = status_code
        self.error = error
        self.message = message
        self.extra = extra

    def to_dict(self) -> dict:
        body = {"error": self.error}
        if self.message is not None:
            body["message"] = self.message
        body.update(self.extra)
        return body


class CustomerNotFound(ApiError):
    def __init__(self, message: str = "Customer not found", **extra):
        super().__init__(404, "customer_not_found", message, **extra)


class NotLinked(ApiError):
    """Provider field group absent on an existing customer"""

    def __init__(self, error: str, message: str, **extra):
        super().__init__(403, error, message, **extra)


class InvalidToken(ApiError):
    """Provider field group present but the validator reports it invalid"""

    def __init__(self, error: str, message: str, **extra):
        super().__init__(403, error, message, **extra)


class RefreshFailed(ApiError):
    def __init__(self, message: str, **extra):
        super().__init__(400, "refresh_failed", message, **extra)


# ========== Handlers ==========

async def api_error_handler(request: Request, exc: ApiError):
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


async def unhandled_error_handler(request: Request, exc: Exception):
    logger.exception(f"Unhandled error on {request.method} {request.url.path}: {exc}")
    return JSONResponse(
        status_code=500,
        content={"error": "internal_error", "message": "Internal server error"},
    )


def register_exception_handlers(app: FastAPI):
    app.add_exception_handler(ApiError, api_error_handler)
    app.add_exception_handler(Exception, unhandled_error_handler)

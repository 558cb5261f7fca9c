"""
Gateway Errors
网关错误

Error taxonomy for the proxy and the uniform JSON envelope every failure is
rendered as:

    {"error": <category>, "message": <text>, "status": <int>, "details": {...}}

The machine-readable error code (e.g. InvalidHashFormat) is carried in
details.code.
"""

import logging
from typing import Any, Dict, Optional

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

logger = logging.getLogger(__name__)

# ============================================
# Categories
# ============================================

BAD_REQUEST = "Bad Request"
UNAUTHORIZED = "Unauthorized"
GATEWAY_ERROR = "Gateway Error"
GATEWAY_TIMEOUT = "Gateway Timeout"
SERVICE_UNAVAILABLE = "Service Unavailable"
INTERNAL_SERVER_ERROR = "Internal Server Error"


class ErrorResponse(BaseModel):
    """Error envelope returned by every failing request"""
    error: str = Field(..., description="Error category")
    message: str = Field(..., description="Human-readable message")
    status: Optional[int] = Field(None, description="HTTP or upstream status")
    details: Optional[Dict[str, Any]] = Field(None, description="Diagnostics")


def error_envelope(
    category: str,
    message: str,
    status: Optional[int] = None,
    details: Optional[Dict[str, Any]] = None,
) -> Dict[str, Any]:
    """Build the envelope dict, leaving out empty optional fields."""
    envelope = ErrorResponse(
        error=category, message=message, status=status, details=details
    )
    return envelope.model_dump(exclude_none=True)


# ============================================
# Exceptions
# ============================================

class GatewayError(Exception):
    """Base class for every error surfaced to the client."""

    category = INTERNAL_SERVER_ERROR
    status_code = 500
    code = "GatewayError"

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.details = dict(details or {})

    def to_dict(self) -> Dict[str, Any]:
        details = {"code": self.code, **self.details}
        return error_envelope(self.category, self.message, self.status_code, details)


class MissingIdentifier(GatewayError):
    category = BAD_REQUEST
    status_code = 400
    code = "MissingIdentifier"

    def __init__(self, message: str = "IPFS hash is required. Use ?hash=<ipfs_hash> parameter."):
        super().__init__(message)


class InvalidHashFormat(GatewayError):
    category = BAD_REQUEST
    status_code = 400
    code = "InvalidHashFormat"

    def __init__(self, value: str):
        super().__init__("Invalid IPFS hash format", {"hash": value})


class InvalidParameter(GatewayError):
    category = BAD_REQUEST
    status_code = 400
    code = "InvalidParameter"


class OptimizationRequiresDedicatedGateway(GatewayError):
    """Image optimization was asked for but no dedicated gateway exists."""

    category = BAD_REQUEST
    status_code = 400
    code = "OptimizationRequiresDedicatedGateway"

    def __init__(self, provided_params):
        super().__init__(
            "Image optimization parameters require a configured Pinata gateway. "
            "Please set PINATA_GATEWAY_DOMAIN environment variable.",
            {"providedParams": sorted(provided_params)},
        )


class AccessDenied(GatewayError):
    category = UNAUTHORIZED
    status_code = 401
    code = "AccessDenied"


class HtmlContentRestricted(GatewayError):
    """Public gateway refused to serve HTML and there is nowhere else to go."""

    category = GATEWAY_ERROR
    status_code = 403
    code = "HtmlContentRestricted"

    def __init__(self, cid: str, gateway_url: str):
        super().__init__(
            "The public gateway refused to serve this content because it is HTML. "
            "Configure a dedicated gateway (PINATA_GATEWAY_DOMAIN) to retrieve "
            "HTML content.",
            {"hash": cid, "gateway": gateway_url},
        )


class UpstreamTimeout(GatewayError):
    category = GATEWAY_TIMEOUT
    status_code = 504
    code = "UpstreamTimeout"


class UpstreamUnreachable(GatewayError):
    category = GATEWAY_ERROR
    status_code = 502
    code = "UpstreamUnreachable"


class ContentUnavailable(GatewayError):
    category = SERVICE_UNAVAILABLE
    status_code = 503
    code = "ContentUnavailable"

    def __init__(self, cid: str, attempts=None):
        details: Dict[str, Any] = {"hash": cid}
        if attempts:
            details["attempts"] = attempts
        super().__init__("Content not available from any gateway", details)


class ClientDisconnected(GatewayError):
    """Inbound connection closed while candidates were still being tried."""

    category = BAD_REQUEST
    status_code = 499
    code = "ClientDisconnected"


# ============================================
# FastAPI integration
# ============================================

async def gateway_error_handler(request: Request, exc: GatewayError) -> JSONResponse:
    logger.info(f"[Errors] {exc.code} on {request.url.path}: {exc.message}")
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception(f"[Errors] Unexpected error on {request.url.path}: {exc}")
    return JSONResponse(
        status_code=500,
        content=error_envelope(
            INTERNAL_SERVER_ERROR, "An unexpected error occurred", 500
        ),
    )


def register_error_handlers(app: FastAPI) -> None:
    """Install the handlers that turn exceptions into the error envelope."""
    app.add_exception_handler(GatewayError, gateway_error_handler)
    app.add_exception_handler(Exception, unhandled_error_handler)

"""
Access Gate

Runs before the resolution engine. With no API_KEY configured every caller is
let through; otherwise the caller needs a matching X-API-Key header or an
Origin from ALLOWED_ORIGINS.
"""

import hmac
import logging

from fastapi import Request

from .config import GatewayConfig
from .errors import AccessDenied

logger = logging.getLogger(__name__)

API_KEY_HEADER = "x-api-key"


def check_access(request: Request, config: GatewayConfig) -> None:
    """Raise AccessDenied unless the request may use the proxy."""
    if not config.api_key or request.method == "OPTIONS":
        return

    supplied = request.headers.get(API_KEY_HEADER)
    if supplied and hmac.compare_digest(supplied, config.api_key):
        return

    origin = request.headers.get("origin")
    if origin and origin.rstrip("/") in config.allowed_origins:
        return

    logger.info(f"[Access] Rejected request to {request.url.path} (origin={origin or '-'})")
    raise AccessDenied("A valid API key or an allowed origin is required")

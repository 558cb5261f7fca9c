"""
Response Relay

Turns the resolver's RelayResult into the client response:
- Successful bodies are streamed through without buffering
- Only an allow-list of upstream headers is forwarded
- Cache-Control is chosen from the content type
- Upstream errors (status >= 400) are buffered and re-emitted as the JSON
  error envelope
"""

import json
import logging
from typing import Dict, Mapping, Optional

from fastapi.responses import JSONResponse, Response, StreamingResponse

from .errors import GATEWAY_ERROR, error_envelope
from .resolver import RelayResult

logger = logging.getLogger(__name__)

# ============================================
# Header policy
# ============================================

FORWARDED_RESPONSE_HEADERS = (
    "content-type",
    "content-length",
    "content-range",
    "accept-ranges",
    "etag",
    "last-modified",
    "cache-control",
    "expires",
)

LONG_CACHE = "public, max-age=31536000, immutable"
SHORT_CACHE = "public, max-age=300"

LONG_CACHE_PREFIXES = ("image/", "video/", "audio/")
LONG_CACHE_TYPES = {"application/pdf"}
SHORT_CACHE_MARKERS = ("html", "javascript", "css", "json")


def cache_control_for(content_type: Optional[str]) -> Optional[str]:
    """Cache policy for a content type, or None to keep the upstream's."""
    if not content_type:
        return None
    media_type = content_type.split(";")[0].strip().lower()
    if media_type.startswith(LONG_CACHE_PREFIXES) or media_type in LONG_CACHE_TYPES:
        return LONG_CACHE
    if any(marker in media_type for marker in SHORT_CACHE_MARKERS):
        return SHORT_CACHE
    return None


def filter_headers(upstream_headers: Mapping[str, str]) -> Dict[str, str]:
    """Keep allow-listed headers and apply the cache policy."""
    lowered = {k.lower(): v for k, v in upstream_headers.items()}
    headers = {
        name: lowered[name]
        for name in FORWARDED_RESPONSE_HEADERS
        if name in lowered
    }

    # httpx decodes content-encoding, so the upstream length no longer applies
    if lowered.get("content-encoding") and "content-length" in headers:
        del headers["content-length"]

    policy = cache_control_for(headers.get("content-type"))
    if policy:
        headers["cache-control"] = policy
    return headers


# ============================================
# Error bodies
# ============================================

def upstream_error_message(body: bytes, status_code: int) -> str:
    """Best effort message from an upstream error body."""
    text = body.decode("utf-8", errors="replace").strip()
    try:
        data = json.loads(text)
    except ValueError:
        return text or f"Upstream returned status {status_code}"

    if isinstance(data, dict):
        for key in ("message", "error", "detail"):
            value = data.get(key)
            if isinstance(value, str) and value:
                return value
            if isinstance(value, dict) and isinstance(value.get("message"), str):
                return value["message"]
    return text


def relay(result: RelayResult) -> Response:
    """Build the client response for a resolver result."""
    if result.is_error:
        body = result.body if isinstance(result.body, bytes) else b""
        message = upstream_error_message(body, result.status_code)
        logger.info(f"[Relay] Upstream error {result.status_code} from {result.upstream_url}")
        return JSONResponse(
            status_code=result.status_code,
            content=error_envelope(
                GATEWAY_ERROR,
                message,
                result.status_code,
                {"gateway": result.upstream_url},
            ),
        )

    headers = filter_headers(result.headers)
    content = result.body
    if isinstance(content, bytes):
        return Response(content=content, status_code=result.status_code, headers=headers)

    return StreamingResponse(
        content,
        status_code=result.status_code,
        headers=headers,
    )

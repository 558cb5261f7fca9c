"""
IPFS Proxy API Routes

Provides endpoints for:
- Proxying IPFS content through a fallback chain of gateways
- Serving optimized images through the dedicated gateway
- Health and debug introspection
"""

import logging
from datetime import datetime, timezone
from typing import Any, Dict, Mapping, Optional

from fastapi import APIRouter, Depends, Query, Request, Response
from fastapi.responses import JSONResponse

from .access import check_access
from .candidates import DEDICATED, IMAGE_ROUTE, PLAIN_ROUTE, PUBLIC, build_candidates
from .config import SERVICE_NAME, SERVICE_VERSION, GatewayConfig
from .errors import GatewayError, InvalidParameter, OptimizationRequiresDedicatedGateway
from .identifier import parse_identifier
from .params import is_optimization_key, translate
from .relay import relay
from .resolver import FallbackResolver

logger = logging.getLogger(__name__)

# Query keys consumed by the routes themselves, never sent upstream
PROXY_RESERVED_KEYS = {"hash", "path", "gateway"}
IMAGE_RESERVED_KEYS = {"hash", "gateway"}

CORS_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Methods": "GET, OPTIONS",
    "Access-Control-Allow-Headers": "X-Requested-With, Content-Type, Authorization, X-API-Key",
    "Access-Control-Max-Age": "86400",
}

# ============================================
# Dependencies
# ============================================


def get_config(request: Request) -> GatewayConfig:
    return request.app.state.gateway_config


def get_resolver(request: Request) -> FallbackResolver:
    return request.app.state.resolver


def require_access(request: Request, config: GatewayConfig = Depends(get_config)) -> None:
    check_access(request, config)


# ============================================
# Router
# ============================================

router = APIRouter(prefix="/api", tags=["IPFS Proxy"])


def _preflight() -> Response:
    return Response(status_code=200, headers=CORS_HEADERS)


def _image_params(query: Mapping[str, str], config: GatewayConfig) -> Dict[str, str]:
    """Translate the image route's options, enforcing the dedicated gateway rule."""
    options = {
        key: value
        for key, value in query.items()
        if key not in IMAGE_RESERVED_KEYS
    }
    requested = [key for key in options if is_optimization_key(key)]
    params, rejected = translate(options)
    if rejected:
        logger.info(f"[IPFSProxy] Dropped image options: {sorted(rejected)}")

    if requested and not config.has_dedicated_gateway:
        raise OptimizationRequiresDedicatedGateway(requested)
    return params


def _gateway_preference(gateway: Optional[str]) -> Optional[str]:
    if gateway in (None, "", DEDICATED, PUBLIC):
        return gateway or None
    raise InvalidParameter(
        f"Invalid gateway: {gateway}. Use: {DEDICATED}, {PUBLIC}",
        {"parameter": "gateway"},
    )


# ============================================
# Endpoints
# ============================================

@router.get("/proxy", dependencies=[Depends(require_access)])
async def proxy_content(
    request: Request,
    ipfs_hash: Optional[str] = Query(None, alias="hash", description="IPFS hash, optionally with a path"),
    path: Optional[str] = Query(None, description="Explicit path inside the hash"),
    gateway: Optional[str] = Query(None, description="'dedicated' or 'public' first"),
    config: GatewayConfig = Depends(get_config),
    resolver: FallbackResolver = Depends(get_resolver),
):
    """
    Proxy IPFS content, trying each configured gateway in turn.

    Query parameters other than hash, path and gateway are forwarded to the
    upstream gateways verbatim.

    Example:
        GET /api/proxy?hash=QmT78zSuBmuS4z925WZfrqQ1qHaJ56DQaTfyMUF7F8ff5o
    """
    identifier = parse_identifier(ipfs_hash, path)
    prefer = _gateway_preference(gateway)
    passthrough = {
        key: value
        for key, value in request.query_params.items()
        if key not in PROXY_RESERVED_KEYS
    }

    candidates = build_candidates(identifier, passthrough, config, PLAIN_ROUTE, prefer=prefer)
    logger.info(f"[IPFSProxy] {identifier.clean_id}{identifier.sub_path}: {len(candidates)} candidate(s)")

    result = await resolver.resolve(
        identifier,
        candidates,
        method=request.method,
        request_headers=request.headers,
        is_disconnected=request.is_disconnected,
    )
    return relay(result)


@router.options("/proxy")
async def proxy_preflight():
    return _preflight()


@router.get("/image", dependencies=[Depends(require_access)])
async def optimized_image(
    request: Request,
    ipfs_hash: Optional[str] = Query(None, alias="hash", description="IPFS hash of the image"),
    config: GatewayConfig = Depends(get_config),
    resolver: FallbackResolver = Depends(get_resolver),
):
    """
    Serve an image, optionally resized/re-encoded by the dedicated gateway.

    Recognized options: width, height, dpr, fit, gravity, quality, format,
    animation, sharpen, onError, metadata, and img-* dialect keys.

    Example:
        GET /api/image?hash=QmNrhZHUaEqxhyLfqoq1mtHSipkWHeT31LNHb1QEbDHgnc&width=300&format=webp
    """
    identifier = parse_identifier(ipfs_hash)
    params = _image_params(request.query_params, config)

    candidates = build_candidates(identifier, params, config, IMAGE_ROUTE)
    logger.info(
        f"[IPFSProxy] Image {identifier.clean_id} params={params} candidates={len(candidates)}"
    )

    result = await resolver.resolve(
        identifier,
        candidates,
        method=request.method,
        request_headers=request.headers,
        is_disconnected=request.is_disconnected,
    )
    return relay(result)


@router.options("/image")
async def image_preflight():
    return _preflight()


@router.get("/health")
async def health_check(config: GatewayConfig = Depends(get_config)):
    """Health check endpoint."""
    return JSONResponse(content={
        "status": "healthy",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "service": SERVICE_NAME,
        "version": SERVICE_VERSION,
        "environment": {
            "has_api_key": bool(config.api_key),
            "has_pinata_jwt": bool(config.pinata_jwt),
            "has_gateway_key": bool(config.gateway_key),
            "allowed_origins": len(config.allowed_origins),
            "has_dedicated_gateway": config.has_dedicated_gateway,
        },
    })


@router.get("/debug", dependencies=[Depends(require_access)])
async def debug_request(
    request: Request,
    route: str = Query("image", description="Route to simulate: image or proxy"),
    config: GatewayConfig = Depends(get_config),
):
    """
    Show how a request would be resolved, without contacting any gateway.

    Credentials are reported as set/unset only.
    """
    query = {k: v for k, v in request.query_params.items() if k != "route"}
    info: Dict[str, Any] = {
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "environment": {
            "PINATA_GATEWAY_DOMAIN": config.dedicated_domain or "NOT_SET",
            "PINATA_JWT": "SET (hidden)" if config.pinata_jwt else "NOT_SET",
            "PINATA_GATEWAY_KEY": "SET (hidden)" if config.gateway_key else "NOT_SET",
        },
        "route": route,
        "query": query,
        "urls": [],
    }

    try:
        identifier = parse_identifier(query.get("hash"), query.get("path") if route == "proxy" else None)
        info["parsed"] = {
            "clean_hash": identifier.clean_id,
            "file_path": identifier.sub_path,
        }
        if route == "proxy":
            params = {k: v for k, v in query.items() if k not in PROXY_RESERVED_KEYS}
            candidates = build_candidates(
                identifier, params, config, PLAIN_ROUTE,
                prefer=_gateway_preference(query.get("gateway")),
            )
        else:
            params = _image_params(query, config)
            candidates = build_candidates(identifier, params, config, IMAGE_ROUTE)
        info["mapped_params"] = params
        info["urls"] = [
            {
                "type": c.label,
                "url": c.url,
                "use_auth": c.requires_auth,
                "timeout": c.timeout,
            }
            for c in candidates
        ]
    except GatewayError as e:
        info["error"] = e.to_dict()

    return JSONResponse(content=info)

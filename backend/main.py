"""
IPFS Gateway Proxy - Application Entry

Run with:
    cd backend
    python main.py            # PORT defaults to 3000
    uvicorn main:app --port 3000
"""

import logging
import os
from contextlib import asynccontextmanager
from typing import Optional

import httpx
import uvicorn
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from ipfs_proxy import FallbackResolver, GatewayConfig, router as ipfs_router
from ipfs_proxy.errors import register_error_handlers

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


def create_app(
    config: Optional[GatewayConfig] = None,
    http_client: Optional[httpx.AsyncClient] = None,
) -> FastAPI:
    """
    Build the FastAPI application.

    Args:
        config: Gateway configuration (defaults to GatewayConfig.from_env())
        http_client: Shared upstream client; when not given the app opens its
            own at start-up and closes it at shutdown
    """
    config = config or GatewayConfig.from_env()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info(
            f"[App] Dedicated gateway: {config.dedicated_domain or 'NOT_SET'}, "
            f"{len(config.fallback_gateways)} public fallback(s)"
        )
        if http_client is not None:
            yield
            return

        # Owned client lives exactly as long as the served app
        async with httpx.AsyncClient(follow_redirects=True) as client:
            app.state.resolver = FallbackResolver(client, config)
            yield

    app = FastAPI(
        title="IPFS Gateway Proxy",
        description="Resolves IPFS hashes through dedicated and public gateways",
        lifespan=lifespan,
    )
    app.state.gateway_config = config
    if http_client is not None:
        app.state.resolver = FallbackResolver(http_client, config)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["GET", "OPTIONS"],
        allow_headers=["X-Requested-With", "Content-Type", "Authorization", "X-API-Key"],
        max_age=86400,
    )
    register_error_handlers(app)
    app.include_router(ipfs_router)
    return app


app = create_app()


if __name__ == "__main__":
    uvicorn.run(app, host="0.0.0.0", port=int(os.getenv("PORT", "3000")))

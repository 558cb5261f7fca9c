"""
IPFS Proxy Module

Resolves IPFS hashes into content fetched from a chain of HTTP gateways.

Features:
- CIDv0/CIDv1 validation before any network call
- Image optimization through a dedicated (Pinata) gateway
- Sequential fallback across public gateways
- Streamed relay with content-type based cache policy
"""

from .config import GatewayConfig
from .resolver import FallbackResolver
from .routes_fastapi import router

__all__ = ["router", "GatewayConfig", "FallbackResolver"]

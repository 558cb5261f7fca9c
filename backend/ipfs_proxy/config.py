"""
Gateway Configuration

Read-only process configuration for the IPFS proxy:
- Dedicated (Pinata) gateway domain and credentials
- Public fallback gateway list
- Per-call upstream timeouts
- Access gate settings (API key, allowed origins)

Built once at start-up with GatewayConfig.from_env() and passed into the
engine explicitly. Nothing in the resolution path reads os.environ.
"""

import os
from dataclasses import dataclass, field
from typing import Optional, Tuple


DEFAULT_FALLBACK_GATEWAYS: Tuple[str, ...] = (
    "https://ipfs.io",
    "https://dweb.link",
    "https://nftstorage.link",
    "https://web3.storage",
    "https://fleek.ipfs.io",
)

SERVICE_NAME = "ipfs-gateway-proxy"
SERVICE_VERSION = "1.0.0"
USER_AGENT = "Mozilla/5.0 (compatible; IPFS-Proxy/1.0)"


def _split_list(value: Optional[str]) -> Tuple[str, ...]:
    if not value:
        return ()
    return tuple(item.strip() for item in value.split(",") if item.strip())


def _env_bool(value: Optional[str], default: bool) -> bool:
    if value is None or value == "":
        return default
    return value.strip().lower() in ("true", "1", "yes")


@dataclass(frozen=True)
class GatewayConfig:
    """Immutable configuration for the resolution engine."""
    # Dedicated gateway
    dedicated_domain: Optional[str] = None
    pinata_jwt: Optional[str] = None
    gateway_key: Optional[str] = None

    # Public gateways, tried in order
    fallback_gateways: Tuple[str, ...] = DEFAULT_FALLBACK_GATEWAYS

    # Timeouts in seconds
    primary_timeout: float = 30.0
    fallback_timeout: float = 10.0

    # Order on the plain route when the client does not choose
    prefer_dedicated: bool = True

    # Access gate
    api_key: Optional[str] = None
    allowed_origins: Tuple[str, ...] = field(default_factory=tuple)

    @property
    def has_dedicated_gateway(self) -> bool:
        return bool(self.dedicated_domain)

    @property
    def has_credentials(self) -> bool:
        return bool(self.gateway_key or self.pinata_jwt)

    @property
    def dedicated_base_url(self) -> Optional[str]:
        """Dedicated gateway base URL; a bare domain gets https://."""
        if not self.dedicated_domain:
            return None
        domain = self.dedicated_domain.rstrip("/")
        if "://" in domain:
            return domain
        return f"https://{domain}"

    @classmethod
    def from_env(cls) -> "GatewayConfig":
        """Build the configuration from environment variables."""
        fallbacks = _split_list(os.getenv("FALLBACK_GATEWAYS"))
        return cls(
            dedicated_domain=os.getenv("PINATA_GATEWAY_DOMAIN") or None,
            pinata_jwt=os.getenv("PINATA_JWT") or None,
            gateway_key=os.getenv("PINATA_GATEWAY_KEY") or None,
            fallback_gateways=fallbacks or DEFAULT_FALLBACK_GATEWAYS,
            primary_timeout=float(os.getenv("PRIMARY_TIMEOUT_SECONDS", "30")),
            fallback_timeout=float(os.getenv("FALLBACK_TIMEOUT_SECONDS", "10")),
            prefer_dedicated=_env_bool(os.getenv("PREFER_DEDICATED_GATEWAY"), True),
            api_key=os.getenv("API_KEY") or None,
            allowed_origins=_split_list(os.getenv("ALLOWED_ORIGINS")),
        )

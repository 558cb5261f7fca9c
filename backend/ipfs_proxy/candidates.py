"""
Upstream Candidate Builder

Produces the ordered list of gateway URLs the resolver walks through. Pure
construction: no I/O and no credentials in the URLs (the resolver attaches
those as headers).
"""

from dataclasses import dataclass
from typing import List, Mapping, Optional
from urllib.parse import quote, urlencode

from .config import GatewayConfig
from .errors import OptimizationRequiresDedicatedGateway
from .identifier import ContentIdentifier

DEDICATED = "dedicated"
PUBLIC = "public"

# Characters left as-is when the sub-path is percent-encoded
PATH_SAFE_CHARS = "/@:!$&'()*+,;=~"


@dataclass(frozen=True)
class UpstreamCandidate:
    """One upstream URL to try."""
    url: str
    requires_auth: bool
    supports_optimization: bool
    timeout: float
    label: str = PUBLIC

    @property
    def is_dedicated(self) -> bool:
        return self.requires_auth


@dataclass(frozen=True)
class RouteCapabilities:
    """What a route is allowed to do with its candidates."""
    supports_optimization: bool
    allow_fallback_on_plain_content: bool = True


PLAIN_ROUTE = RouteCapabilities(supports_optimization=False)
IMAGE_ROUTE = RouteCapabilities(supports_optimization=True)


def gateway_url(base_url: str, identifier: ContentIdentifier, params: Mapping[str, str]) -> str:
    """https://gw/ipfs/<cid><path>[?query]"""
    base = base_url.rstrip("/")
    if base.endswith("/ipfs"):
        base = base[: -len("/ipfs")]
    url = base + quote(identifier.ipfs_path, safe=PATH_SAFE_CHARS)
    if params:
        url += f"?{urlencode(params)}"
    return url


def _dedicated_candidate(
    identifier: ContentIdentifier, params: Mapping[str, str], config: GatewayConfig
) -> UpstreamCandidate:
    return UpstreamCandidate(
        url=gateway_url(config.dedicated_base_url, identifier, params),
        requires_auth=True,
        supports_optimization=True,
        timeout=config.primary_timeout,
        label=DEDICATED,
    )


def _public_candidates(
    identifier: ContentIdentifier, params: Mapping[str, str], config: GatewayConfig
) -> List[UpstreamCandidate]:
    return [
        UpstreamCandidate(
            url=gateway_url(gateway, identifier, params),
            requires_auth=False,
            supports_optimization=False,
            timeout=config.fallback_timeout,
            label=PUBLIC,
        )
        for gateway in config.fallback_gateways
    ]


def build_candidates(
    identifier: ContentIdentifier,
    params: Mapping[str, str],
    config: GatewayConfig,
    capabilities: RouteCapabilities = PLAIN_ROUTE,
    prefer: Optional[str] = None,
) -> List[UpstreamCandidate]:
    """
    Build the ordered candidate list for one request.

    Args:
        identifier: Parsed identifier
        params: Dialect params (image route) or verbatim passthrough params
            (plain route)
        config: Process configuration
        capabilities: Route flags; on an optimizing route non-empty params
            mean optimization was requested
        prefer: "dedicated" or "public" to override the configured order on
            the plain route

    Raises:
        OptimizationRequiresDedicatedGateway: optimization requested and no
            dedicated gateway configured
    """
    optimizing = capabilities.supports_optimization and bool(params)

    if optimizing:
        if not config.has_dedicated_gateway:
            raise OptimizationRequiresDedicatedGateway(params.keys())
        # Public gateways do not understand the dialect
        return [_dedicated_candidate(identifier, params, config)]

    candidates: List[UpstreamCandidate] = []
    if capabilities.allow_fallback_on_plain_content:
        candidates = _public_candidates(identifier, params, config)

    if config.has_dedicated_gateway:
        dedicated = _dedicated_candidate(identifier, params, config)
        dedicated_first = config.prefer_dedicated
        if prefer == DEDICATED:
            dedicated_first = True
        elif prefer == PUBLIC:
            dedicated_first = False

        if dedicated_first:
            candidates.insert(0, dedicated)
        else:
            candidates.append(dedicated)

    return candidates

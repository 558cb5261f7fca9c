"""
Image URL Builder

Client-side helper for building /api/image URLs against a deployed proxy,
including responsive srcset strings and 1x/2x/3x retina variants.
"""

from typing import Any, Dict, Iterable, Optional
from urllib.parse import urlencode

from .params import OPTION_TO_DIALECT


class ImageUrlBuilder:
    """
    Builds optimized image URLs for a proxy deployment.

    Example:
        builder = ImageUrlBuilder("https://ipfs.example.com")
        builder.build_url("Qm...", width=300, format="webp")
    """

    def __init__(self, base_url: str, gateway: Optional[str] = None):
        self.base_url = base_url.rstrip("/")
        self.gateway = gateway

    def build_url(self, ipfs_hash: str, **options: Any) -> str:
        """URL for one image; None/unknown options are left out."""
        query: Dict[str, str] = {"hash": ipfs_hash}
        for key in OPTION_TO_DIALECT:
            value = options.get(key)
            if value is None:
                continue
            if isinstance(value, bool):
                value = "true" if value else "false"
            query[key] = str(value)
        if self.gateway:
            query["gateway"] = self.gateway
        return f"{self.base_url}/api/image?{urlencode(query)}"

    def srcset(self, ipfs_hash: str, widths: Iterable[int], **options: Any) -> str:
        """srcset attribute value: one entry per width."""
        options.pop("width", None)
        return ", ".join(
            f"{self.build_url(ipfs_hash, width=width, **options)} {width}w"
            for width in widths
        )

    def retina_urls(self, ipfs_hash: str, width: int, **options: Any) -> Dict[str, str]:
        """1x/2x/3x variants of the same image."""
        options.pop("dpr", None)
        return {
            f"{dpr}x": self.build_url(ipfs_hash, width=width, dpr=dpr, **options)
            for dpr in (1, 2, 3)
        }

    def placeholder_url(self, ipfs_hash: str, width: int = 40) -> str:
        """Tiny low-quality image for blur-up loading."""
        return self.build_url(ipfs_hash, width=width, quality=20, format="webp")

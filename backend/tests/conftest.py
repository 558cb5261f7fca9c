"""
IPFS Proxy 测试配置文件

pytest fixtures shared by the proxy tests.

Upstream gateways are simulated with httpx.MockTransport: every outgoing
request is recorded, so tests can assert exactly which gateways were
contacted and in which order.
"""

import sys
from pathlib import Path
from typing import Callable, Dict, List, Union

import httpx
import pytest

# 添加 backend 目录到 Python 路径
backend_dir = Path(__file__).parent.parent
sys.path.insert(0, str(backend_dir))

from ipfs_proxy.config import GatewayConfig
from ipfs_proxy.identifier import parse_identifier


TEXT_HASH = "QmT78zSuBmuS4z925WZfrqQ1qHaJ56DQaTfyMUF7F8ff5o"
IMAGE_HASH = "QmNrhZHUaEqxhyLfqoq1mtHSipkWHeT31LNHb1QEbDHgnc"
JSON_HASH = "QmSrCRJmzE4zE1nAfWPbzVfanKQNBhp7ZWmMnEdkAAkTVw"
CIDV1_HASH = "bafybeigdyrzt5sfp7udm7hu76uh7y26nf3efuylqabf3oclgtqy55fbzdi"

DEDICATED_DOMAIN = "example.mypinata.cloud"

# host -> response, exception, or handler
UpstreamReply = Union[httpx.Response, Exception, Callable[[httpx.Request], httpx.Response]]


# ============================================
# Upstream simulation
# ============================================

class FakeUpstreams:
    """
    Records outgoing requests and answers them per host.

    Hosts without a configured reply answer 404.
    """

    def __init__(self, replies: Dict[str, UpstreamReply] = None):
        self.replies: Dict[str, UpstreamReply] = dict(replies or {})
        self.requests: List[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        reply = self.replies.get(request.url.host)
        if reply is None:
            return httpx.Response(404, text="not found")
        if isinstance(reply, Exception):
            raise reply
        if callable(reply):
            return reply(request)
        return reply

    @property
    def hosts(self) -> List[str]:
        return [r.url.host for r in self.requests]

    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self)

    def client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(transport=self.transport())


def ok(content: bytes = b"hello", content_type: str = "text/plain", **headers) -> httpx.Response:
    return httpx.Response(
        200, content=content, headers={"content-type": content_type, **headers}
    )


# ============================================
# Config fixtures
# ============================================

@pytest.fixture
def public_config():
    """No dedicated gateway: public fallbacks only."""
    return GatewayConfig()


@pytest.fixture
def dedicated_config():
    """Dedicated gateway with a gateway key."""
    return GatewayConfig(
        dedicated_domain=DEDICATED_DOMAIN,
        gateway_key="gw-key-123",
        pinata_jwt="jwt-456",
    )


@pytest.fixture
def upstreams():
    return FakeUpstreams()


@pytest.fixture
def text_identifier():
    return parse_identifier(TEXT_HASH)


@pytest.fixture
def image_identifier():
    return parse_identifier(IMAGE_HASH)


@pytest.fixture
def make_client():
    """
    Build a TestClient for a given config and fake upstreams.

    使用方式：
    ```python
    def test_x(make_client, upstreams, public_config):
        client = make_client(public_config, upstreams)
        client.get("/api/proxy?hash=...")
    ```
    """
    from fastapi.testclient import TestClient
    from main import create_app

    def factory(config: GatewayConfig, fakes: FakeUpstreams) -> TestClient:
        app = create_app(config=config, http_client=fakes.client())
        return TestClient(app)

    return factory

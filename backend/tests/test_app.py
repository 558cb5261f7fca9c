"""
Application factory tests

运行测试：
    cd backend
    pytest tests/test_app.py -v
"""

from fastapi.testclient import TestClient

from conftest import FakeUpstreams
from ipfs_proxy.config import GatewayConfig
from main import create_app


class TestUpstreamClientLifecycle:

    def test_no_client_before_startup(self):
        app = create_app(config=GatewayConfig())
        assert not hasattr(app.state, "resolver")

    def test_owned_client_closed_on_shutdown(self):
        app = create_app(config=GatewayConfig())

        with TestClient(app) as client:
            assert client.get("/api/health").status_code == 200
            upstream = app.state.resolver.client
            assert not upstream.is_closed

        assert upstream.is_closed

    def test_injected_client_left_open(self):
        injected = FakeUpstreams().client()
        app = create_app(config=GatewayConfig(), http_client=injected)

        assert app.state.resolver.client is injected
        with TestClient(app):
            pass

        assert not injected.is_closed

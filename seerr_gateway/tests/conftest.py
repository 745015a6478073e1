import inspect
import json
from typing import Any, Callable, Dict, List, Optional, Tuple

import httpx
import pytest

from seerr_gateway.config import Settings
from seerr_gateway.gateway import SeerrGateway
from seerr_gateway.models import GatewayRequest, UpstreamCredentials
from seerr_gateway.session import SessionRegistry
from seerr_gateway.upstream import UpstreamClient

BASE_URL = "https://seerr.local"
SESSION_COOKIE = "connect.sid=fresh"
SET_COOKIE = "connect.sid=fresh; Path=/; HttpOnly"


class FakeSeerr:
    """
    In-memory stand-in for the upstream service, plugged into httpx through
    MockTransport. Handlers are keyed by (method, path) without the query.
    """

    def __init__(self):
        self.calls: List[httpx.Request] = []
        self.routes: Dict[Tuple[str, str], Callable] = {}

    def on(self, method: str, path: str, handler: Any):
        if isinstance(handler, httpx.Response):
            response = handler
            handler = lambda request: httpx.Response(
                response.status_code, headers=response.headers, content=response.content
            )
        self.routes[(method, path)] = handler

    def count(self, method: str, path: str) -> int:
        return len([c for c in self.calls if c.method == method and c.url.path == path])

    def requests_to(self, method: str, path: str) -> List[httpx.Request]:
        return [c for c in self.calls if c.method == method and c.url.path == path]

    async def __call__(self, request: httpx.Request) -> httpx.Response:
        self.calls.append(request)
        handler = self.routes.get((request.method, request.url.path))
        if handler is None:
            return httpx.Response(404, json={"message": f"No route for {request.url.path}"})
        response = handler(request)
        if inspect.isawaitable(response):
            response = await response
        return response


def require_cookie(payload: Any, cookie: str = SESSION_COOKIE) -> Callable:
    """Handler answering 401 unless the request carries the given cookie."""
    def handler(request: httpx.Request) -> httpx.Response:
        if request.headers.get("cookie") != cookie:
            return httpx.Response(401, json={"message": "Unauthorized"})
        return httpx.Response(200, json=payload)
    return handler


def login_ok(request: httpx.Request) -> httpx.Response:
    return httpx.Response(200, json={"id": 1}, headers=[("set-cookie", SET_COOKIE)])


def make_request(
        method: str,
        path: str,
        headers: Optional[Dict[str, str]] = None,
        query: Optional[Dict[str, str]] = None,
        body: Any = None,
        with_url: bool = True,
) -> GatewayRequest:
    all_headers = {"x-seerr-url": "seerr.local/"} if with_url else {}
    all_headers.update(headers or {})
    raw_body = None
    if body is not None:
        raw_body = body if isinstance(body, bytes) else json.dumps(body).encode()
    return GatewayRequest(method=method, path=path, headers=all_headers, query=query or {}, body=raw_body)


AUTO_LOGIN_HEADERS = {
    "cookie": "connect.sid=stale",
    "x-seerr-username": "alice@example.com",
    "x-seerr-password": "hunter2",
    "x-seerr-auth-type": "local-user",
}


@pytest.fixture
def fake_seerr() -> FakeSeerr:
    return FakeSeerr()


@pytest.fixture
def registry() -> SessionRegistry:
    return SessionRegistry()


@pytest.fixture
def test_settings() -> Settings:
    return Settings(UPSTREAM_TIMEOUT=5.0)


@pytest.fixture
async def http(fake_seerr):
    async with httpx.AsyncClient(transport=httpx.MockTransport(fake_seerr)) as client:
        yield client


@pytest.fixture
def upstream_client(http, registry) -> Callable[..., UpstreamClient]:
    def factory(**credentials) -> UpstreamClient:
        credentials.setdefault("server_url", BASE_URL)
        return UpstreamClient(http, registry, UpstreamCredentials(**credentials))
    return factory


@pytest.fixture
async def gateway(fake_seerr, registry, test_settings):
    gateway = SeerrGateway(registry=registry, config=test_settings, transport=httpx.MockTransport(fake_seerr))
    await gateway.startup()
    yield gateway
    await gateway.shutdown()

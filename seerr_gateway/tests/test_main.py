import httpx
import pytest
from fastapi.testclient import TestClient

from conftest import AUTO_LOGIN_HEADERS, SET_COOKIE, login_ok, require_cookie
from seerr_gateway import asgi
from seerr_gateway.config import Settings
from seerr_gateway.gateway import SeerrGateway
from seerr_gateway.main import create_app

SEERR_HEADERS = {"x-seerr-url": "seerr.local"}


@pytest.fixture
def gateway_factory(fake_seerr):
    def factory(**overrides) -> SeerrGateway:
        return SeerrGateway(config=Settings(**overrides), transport=httpx.MockTransport(fake_seerr))
    return factory


@pytest.fixture
def client(gateway_factory):
    with TestClient(create_app(gateway_factory())) as test_client:
        yield test_client


def test_health(client):
    response = client.get("/health")

    assert response.status_code == 200
    assert response.json() == {"status": "ok"}


def test_popular_tv_through_fastapi(fake_seerr, client):
    fake_seerr.on("GET", "/api/v1/discover/tv", httpx.Response(200, json={"page": 1, "results": [{"id": 1399}]}))

    response = client.get("/api/seerr/popular-tv", headers=SEERR_HEADERS)

    assert response.status_code == 200
    assert response.json() == {"page": 1, "results": [{"id": 1399, "tmdbId": 1399}]}


def test_search_query_parameter(fake_seerr, client):
    fake_seerr.on("GET", "/api/v1/search", httpx.Response(200, json={"results": [{"id": 11}]}))

    response = client.get("/api/seerr/search", params={"query": "star"}, headers=SEERR_HEADERS)

    assert response.json() == [{"id": 11, "tmdbId": 11}]
    assert client.get("/api/seerr/search", headers=SEERR_HEADERS).json() == []


def test_auto_login_cookie_reaches_browser(fake_seerr, client):
    fake_seerr.on("GET", "/api/v1/auth/me", require_cookie({"id": 1, "displayName": "Alice"}))
    fake_seerr.on("POST", "/api/v1/auth/local", login_ok)

    response = client.get("/api/seerr/auth/me", headers={**SEERR_HEADERS, **AUTO_LOGIN_HEADERS})

    assert response.status_code == 200
    assert response.json() == {"id": 1, "displayName": "Alice"}
    assert response.headers.get_list("set-cookie") == [SET_COOKIE]


def test_login_forwards_every_set_cookie(fake_seerr, client):
    fake_seerr.on("POST", "/api/v1/auth/jellyfin", httpx.Response(200, json={"id": 1}, headers=[
        ("set-cookie", SET_COOKIE),
        ("set-cookie", "lang=en; Path=/"),
    ]))

    response = client.post(
        "/api/seerr/login",
        headers=SEERR_HEADERS,
        json={"authType": "jellyfin-user", "username": "alice", "password": "pw"},
    )

    assert response.status_code == 200
    assert response.json() == {"success": True, "message": "Connection Successful"}
    assert response.headers.get_list("set-cookie") == [SET_COOKIE, "lang=en; Path=/"]


def test_delete_request(fake_seerr, client):
    fake_seerr.on("DELETE", "/api/v1/request/4", httpx.Response(204))

    response = client.delete("/api/seerr/request/4", headers=SEERR_HEADERS)

    assert response.status_code == 200
    assert response.json() == {"success": True}


def test_unknown_route_and_method(client):
    assert client.get("/api/seerr/nope", headers=SEERR_HEADERS).json() == {"message": "Not Found"}
    assert client.delete("/api/seerr/trending", headers=SEERR_HEADERS).status_code == 404


def test_custom_mount_prefix(fake_seerr, gateway_factory):
    fake_seerr.on("GET", "/api/v1/settings/radarr", httpx.Response(200, json=[]))

    with TestClient(create_app(gateway_factory(MOUNT_PREFIX="seerr-proxy/"))) as client:
        assert client.get("/seerr-proxy/settings/radarr", headers=SEERR_HEADERS).json() == []
        assert client.get("/api/seerr/settings/radarr", headers=SEERR_HEADERS).status_code == 404


def test_starlette_adapter(fake_seerr, gateway_factory):
    fake_seerr.on("POST", "/api/v1/request", httpx.Response(201, json={"id": 5}))

    with TestClient(asgi.create_app(gateway_factory(), mount_prefix="/seerr")) as client:
        response = client.post("/seerr/request", headers=SEERR_HEADERS, json={"mediaType": "tv", "mediaId": 1})
        missing_url = client.get("/seerr/auth/me")

    assert response.status_code == 200
    assert response.json() == {"id": 5}
    assert missing_url.status_code == 401
    assert missing_url.json() == {"success": False, "message": "No Server URL provided in headers"}

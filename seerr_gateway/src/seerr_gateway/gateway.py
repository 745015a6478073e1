# src/seerr_gateway/gateway.py

import json
import logging
import re
from typing import Any, Dict, List, NamedTuple, Optional, Tuple
from urllib.parse import quote

import httpx

from . import session
from .aggregator import DashboardAggregator
from .config import Settings, settings as default_settings
from .exceptions import GatewayException, InvalidRequestBody, RouteNotFound, UpstreamError
from .media import normalize_items
from .models import GatewayRequest, GatewayResponse, UpstreamCredentials, UpstreamResult
from .session import SessionRegistry
from .upstream import UpstreamClient

logger = logging.getLogger(__name__)

AUTH_TYPE_API_KEY = "api-key"
AUTH_TYPE_LOCAL = "local-user"
# Left unescaped in search queries, matching browser encodeURIComponent
SEARCH_SAFE_CHARS = "!'()*"


class Route(NamedTuple):
    method: str
    pattern: re.Pattern
    handler: str
    params: Dict[str, str]


def _route(method: str, path: str, handler: str, **params: str) -> Route:
    return Route(method, re.compile(path), handler, params)


# Paths are relative to the gateway mount prefix.
ROUTES: Tuple[Route, ...] = (
    _route("GET", r"/recently-added", "_list", branch="recently_added"),
    _route("GET", r"/trending", "_list", branch="trending"),
    _route("GET", r"/popular-movies", "_list", branch="popular_movies"),
    _route("GET", r"/popular-tv", "_list", branch="popular_tv"),
    _route("GET", r"/recent-requests", "_list", branch="recent_requests"),
    _route("GET", r"/discover", "_discover"),
    _route("GET", r"/search", "_search"),
    _route("GET", r"/auth/me", "_auth_me"),
    _route("GET", r"/details/(?P<media_type>[^/]+)/(?P<media_id>[^/]+)", "_details"),
    _route("GET", r"/settings/(?P<service>radarr|sonarr)", "_service_settings"),
    _route("GET", r"/settings/(?P<service>radarr|sonarr)/(?P<server_id>[^/]+)/profiles", "_profiles"),
    _route("POST", r"/request", "_create_request"),
    _route("POST", r"/request/(?P<request_id>[^/]+)/(?P<action>approve|decline)", "_moderate_request"),
    _route("DELETE", r"/request/(?P<request_id>[^/]+)", "_delete_request"),
    _route("POST", r"/test-connection", "_test_connection"),
    _route("POST", r"/login", "_test_connection"),
)


def match_route(method: str, path: str) -> Tuple[Route, Dict[str, str]]:
    """Find the route for a method and path, or raise RouteNotFound."""
    path = "/" + path.strip("/")
    for route in ROUTES:
        if route.method != method:
            continue
        match = route.pattern.fullmatch(path)
        if match:
            return route, {**route.params, **match.groupdict()}
    raise RouteNotFound()


def _segment(value: str) -> str:
    return quote(value, safe="")


def _failure_status(result: UpstreamResult, default: int) -> int:
    if result.status_code and result.status_code >= 400:
        return result.status_code
    return default


def _failure(result: UpstreamResult, status_code: int) -> GatewayResponse:
    return GatewayResponse(status_code=status_code, content=result.to_payload())


def _json_body(request: GatewayRequest) -> Any:
    if not request.body:
        raise InvalidRequestBody()
    try:
        return json.loads(request.body)
    except ValueError:
        raise InvalidRequestBody()


class SeerrGateway:
    """
    Request-handling core of the Seerr integration.

    Adapters turn their host's request into a GatewayRequest, call `handle`
    and render the GatewayResponse. The gateway owns the outbound HTTP client
    and the session registry shared by all requests.
    """

    def __init__(
            self,
            registry: Optional[SessionRegistry] = None,
            config: Optional[Settings] = None,
            transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.registry = registry if registry is not None else SessionRegistry()
        self.settings = config or default_settings
        self._transport = transport
        self._http: Optional[httpx.AsyncClient] = None

    async def startup(self):
        if self._http is None:
            self._http = httpx.AsyncClient(
                timeout=self.settings.UPSTREAM_TIMEOUT,
                verify=self.settings.VERIFY_TLS,
                transport=self._transport,
            )
            logger.info("Seerr gateway started (timeout=%ss)", self.settings.UPSTREAM_TIMEOUT)

    async def shutdown(self):
        if self._http is not None:
            await self._http.aclose()
            self._http = None
            logger.info("Seerr gateway stopped")

    async def handle(self, request: GatewayRequest) -> GatewayResponse:
        if self._http is None:
            await self.startup()

        client = UpstreamClient(
            self._http,
            self.registry,
            UpstreamCredentials.from_headers(request.headers),
            default_scheme=self.settings.DEFAULT_SCHEME,
        )
        try:
            route, params = match_route(request.method, request.path)
            response = await getattr(self, route.handler)(request, client, **params)
        except GatewayException as e:
            response = GatewayResponse(status_code=e.status_code, content={"message": e.message})
        except Exception:
            logger.exception("Unhandled error serving %s %s", request.method, request.path)
            response = GatewayResponse(status_code=500, content={"message": "Internal Server Error"})

        if client.issued_cookies:
            response.set_cookie = client.issued_cookies + response.set_cookie
        return response

    def _aggregator(self, client: UpstreamClient) -> DashboardAggregator:
        return DashboardAggregator(
            client,
            recently_added_take=self.settings.RECENTLY_ADDED_TAKE,
            recent_requests_take=self.settings.RECENT_REQUESTS_TAKE,
        )

    # --- Discovery ---

    async def _list(self, request: GatewayRequest, client: UpstreamClient, branch: str) -> GatewayResponse:
        try:
            content = await getattr(self._aggregator(client), branch)()
        except UpstreamError as e:
            return _failure(e.result, 500)
        return GatewayResponse(content=content)

    async def _discover(self, request: GatewayRequest, client: UpstreamClient) -> GatewayResponse:
        try:
            content = await self._aggregator(client).dashboard()
        except Exception:
            logger.exception("Discovery error")
            return GatewayResponse(status_code=500, content={"message": "Internal Server Error during discovery"})
        return GatewayResponse(content=content)

    async def _search(self, request: GatewayRequest, client: UpstreamClient) -> GatewayResponse:
        query = request.query.get("query")
        if not query:
            return GatewayResponse(content=[])

        result = await client.request(f"/api/v1/search?query={quote(query, safe=SEARCH_SAFE_CHARS)}&page=1")
        if result.success and isinstance(result.data, dict):
            return GatewayResponse(content=normalize_items(result.data.get("results")))
        return GatewayResponse(status_code=500, content=[])

    # --- Single resources ---

    async def _auth_me(self, request: GatewayRequest, client: UpstreamClient) -> GatewayResponse:
        result = await client.request("/api/v1/auth/me")
        if result.success:
            return GatewayResponse(content=result.data)
        return _failure(result, 401)

    async def _details(
            self, request: GatewayRequest, client: UpstreamClient, media_type: str, media_id: str
    ) -> GatewayResponse:
        result = await client.request(f"/api/v1/{_segment(media_type)}/{_segment(media_id)}")
        if result.success:
            return GatewayResponse(content=result.data)
        return _failure(result, _failure_status(result, 404))

    async def _service_settings(self, request: GatewayRequest, client: UpstreamClient, service: str) -> GatewayResponse:
        result = await client.request(f"/api/v1/settings/{service}")
        if result.success:
            return GatewayResponse(content=result.data)
        return _failure(result, 500)

    async def _profiles(
            self, request: GatewayRequest, client: UpstreamClient, service: str, server_id: str
    ) -> GatewayResponse:
        result = await client.request(f"/api/v1/settings/{service}/{_segment(server_id)}/profiles")
        if result.success:
            return GatewayResponse(content=result.data)
        return _failure(result, 500)

    # --- Requests ---

    async def _create_request(self, request: GatewayRequest, client: UpstreamClient) -> GatewayResponse:
        result = await client.request("/api/v1/request", "POST", _json_body(request))
        if result.success:
            return GatewayResponse(content=result.data)
        return _failure(result, 500)

    async def _moderate_request(
            self, request: GatewayRequest, client: UpstreamClient, request_id: str, action: str
    ) -> GatewayResponse:
        result = await client.request(f"/api/v1/request/{_segment(request_id)}/{action}", "POST")
        if result.success:
            return GatewayResponse(content={"success": True})
        return _failure(result, _failure_status(result, 500))

    async def _delete_request(
            self, request: GatewayRequest, client: UpstreamClient, request_id: str
    ) -> GatewayResponse:
        result = await client.request(f"/api/v1/request/{_segment(request_id)}", "DELETE")
        if result.success:
            return GatewayResponse(content={"success": True})
        return _failure(result, _failure_status(result, 500))

    # --- Connection test / login ---

    async def _test_connection(self, request: GatewayRequest, client: UpstreamClient) -> GatewayResponse:
        body = _json_body(request)
        if not isinstance(body, dict):
            raise InvalidRequestBody()
        auth_type = body.get("authType")
        username = body.get("username")
        password = body.get("password")

        if auth_type == AUTH_TYPE_API_KEY:
            if not client.credentials.api_key:
                return GatewayResponse(status_code=400, content={"success": False, "message": "API Key is missing"})
            endpoint, method, payload = "/api/v1/auth/me", "GET", None
        elif auth_type in (AUTH_TYPE_LOCAL, session.AUTH_TYPE_JELLYFIN):
            if not username or not password:
                return GatewayResponse(
                    status_code=400, content={"success": False, "message": "Username or Password missing"}
                )
            endpoint, payload = session.login_request(auth_type, username, password)
            method = "POST"
        else:
            return GatewayResponse(status_code=400, content={"success": False, "message": "Unknown auth type"})

        result = await client.request(endpoint, method, payload, auto_login=False)
        if not result.success:
            return _failure(result, 401)

        set_cookie: List[str] = result.headers.get_list("set-cookie") if result.headers is not None else []
        return GatewayResponse(
            content={"success": True, "message": "Connection Successful"},
            set_cookie=set_cookie,
        )

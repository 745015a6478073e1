# src/seerr_gateway/upstream.py

import logging
import re
from typing import Any, List, Optional

import httpx

from . import session
from .models import SessionKey, UpstreamCredentials, UpstreamResult
from .session import SessionRegistry

logger = logging.getLogger(__name__)

NO_SERVER_URL_MESSAGE = "No Server URL provided in headers"
_SCHEME_RE = re.compile(r"^https?://", re.IGNORECASE)


def build_base_url(server_url: Optional[str], default_scheme: str = "https") -> Optional[str]:
    """Strip trailing slashes and add a scheme when the address has none."""
    if not server_url:
        return None
    base_url = server_url.strip().rstrip("/")
    if not base_url:
        return None
    if not _SCHEME_RE.match(base_url):
        base_url = f"{default_scheme}://{base_url}"
    return base_url


def failure_message(response: httpx.Response) -> str:
    return f"Request failed: {response.status_code} {response.reason_phrase}"


def classify_response(response: httpx.Response) -> UpstreamResult:
    """Turn a raw upstream response into an UpstreamResult."""
    if response.status_code == 204 or (response.is_success and not response.content):
        return UpstreamResult(success=True, status_code=response.status_code, headers=response.headers)

    if response.is_success:
        try:
            data = response.json()
        except ValueError:
            return UpstreamResult(
                success=False,
                message=failure_message(response),
                status_code=response.status_code,
                headers=response.headers,
            )
        return UpstreamResult(success=True, data=data, status_code=response.status_code, headers=response.headers)

    message = failure_message(response)
    try:
        error_json = response.json()
        if isinstance(error_json, dict) and error_json.get("message"):
            message = str(error_json["message"])
    except ValueError:
        pass
    return UpstreamResult(success=False, message=message, status_code=response.status_code, headers=response.headers)


class UpstreamClient:
    """
    Forwards calls to the upstream request-management service on behalf of
    one inbound request.

    Carries the caller's credentials and, after an auto-login, the refreshed
    session cookie, so later calls made while serving the same inbound
    request reuse it. Set-Cookie values obtained that way are kept in
    `issued_cookies` for the caller.
    """

    def __init__(
            self,
            http: httpx.AsyncClient,
            registry: SessionRegistry,
            credentials: UpstreamCredentials,
            default_scheme: str = "https",
    ):
        self._http = http
        self._registry = registry
        self.credentials = credentials
        self.base_url = build_base_url(credentials.server_url, default_scheme)
        self.cookie: Optional[str] = credentials.cookie
        self.issued_cookies: List[str] = []

    def _headers(self, cookie: Optional[str]) -> dict:
        headers = {
            "Content-Type": "application/json",
            "Accept": "application/json, text/plain, */*",
        }
        if self.credentials.api_key:
            headers["X-Api-Key"] = self.credentials.api_key
        if cookie:
            headers["Cookie"] = cookie
        return headers

    async def _send(self, endpoint: str, method: str, body: Any, cookie: Optional[str]) -> httpx.Response:
        return await self._http.request(
            method,
            f"{self.base_url}{endpoint}",
            headers=self._headers(cookie),
            json=body,
        )

    async def _login(self):
        return await session.login(
            self._http,
            self.base_url,
            self.credentials.username,
            self.credentials.password,
            self.credentials.auth_type,
        )

    async def request(
            self,
            endpoint: str,
            method: str = "GET",
            body: Any = None,
            auto_login: bool = True,
    ) -> UpstreamResult:
        """
        Issues one upstream call and never raises for expected failures.
        A 401 with username/password available triggers a shared login and
        exactly one retry with the new cookie.
        """
        if not self.base_url:
            return UpstreamResult(success=False, message=NO_SERVER_URL_MESSAGE)

        try:
            response = await self._send(endpoint, method, body, self.cookie)

            if response.status_code == 401 and auto_login and self.credentials.can_auto_login:
                key = SessionKey(username=self.credentials.username, base_url=self.base_url)
                grant = await self._registry.acquire(key, self._login)
                if grant:
                    self.cookie = grant.cookie
                    self.issued_cookies = list(grant.set_cookie)
                    response = await self._send(endpoint, method, body, self.cookie)

            return classify_response(response)
        except (httpx.HTTPError, httpx.InvalidURL) as e:
            logger.error("Upstream %s %s failed: %s", method, endpoint, e)
            return UpstreamResult(success=False, message=str(e) or e.__class__.__name__)

# src/seerr_gateway/session.py

import asyncio
import logging
from typing import Awaitable, Callable, Dict, List, Optional, Tuple

import httpx

from .models import SessionGrant, SessionKey

logger = logging.getLogger(__name__)

AUTH_TYPE_JELLYFIN = "jellyfin-user"
LOCAL_LOGIN_ENDPOINT = "/api/v1/auth/local"
JELLYFIN_LOGIN_ENDPOINT = "/api/v1/auth/jellyfin"

LoginFactory = Callable[[], Awaitable[Optional[SessionGrant]]]


class SessionState:
    """Registry entry for one key while its login is in flight."""

    def __init__(self, key: SessionKey, task: "asyncio.Task[Optional[SessionGrant]]"):
        self.key = key
        self.task = task


class SessionRegistry:
    """
    Deduplicates upstream logins per SessionKey (singleflight).

    The first caller to see an expired session for a key starts the login;
    every caller arriving while it is in flight waits on the same task. The
    entry is dropped as soon as the login settles, whatever the outcome, so
    the next 401 always gets a fresh attempt.
    """

    def __init__(self):
        self._states: Dict[SessionKey, SessionState] = {}

    def __len__(self) -> int:
        return len(self._states)

    def __contains__(self, key: SessionKey) -> bool:
        return key in self._states

    def pending(self, key: SessionKey) -> Optional[SessionState]:
        return self._states.get(key)

    async def acquire(self, key: SessionKey, login: LoginFactory) -> Optional[SessionGrant]:
        # Check and insert must stay free of awaits: a second caller for the
        # same key has to find the entry already registered.
        state = self._states.get(key)
        if state is None:
            task = asyncio.ensure_future(self._run(key, login))
            state = SessionState(key, task)
            self._states[key] = state
            logger.info("Starting upstream login for %s", key)
        else:
            logger.debug("Joining in-flight upstream login for %s", key)
        return await asyncio.shield(state.task)

    async def _run(self, key: SessionKey, login: LoginFactory) -> Optional[SessionGrant]:
        try:
            return await login()
        except Exception:
            logger.exception("Upstream login for %s raised", key)
            return None
        finally:
            self._states.pop(key, None)


def extract_session_cookie(headers: httpx.Headers) -> Optional[str]:
    """Reduce every Set-Cookie value to its name=value pair and join them."""
    pairs: List[str] = []
    for raw in headers.get_list("set-cookie"):
        pair = raw.split(";", 1)[0].strip()
        if pair:
            pairs.append(pair)
    return "; ".join(pairs) or None


def login_request(auth_type: Optional[str], username: str, password: str) -> Tuple[str, Dict[str, str]]:
    """Pick the login endpoint and body shape for an auth type."""
    if auth_type == AUTH_TYPE_JELLYFIN:
        return JELLYFIN_LOGIN_ENDPOINT, {"username": username, "password": password}
    return LOCAL_LOGIN_ENDPOINT, {"email": username, "password": password}


async def login(
        client: httpx.AsyncClient,
        base_url: str,
        username: str,
        password: str,
        auth_type: Optional[str] = None,
) -> Optional[SessionGrant]:
    """
    Performs the upstream login handshake.
    Returns a SessionGrant on success, None when the login is refused, the
    upstream hands out no cookie, or the call fails at the transport level.
    """
    endpoint, body = login_request(auth_type, username, password)
    try:
        response = await client.post(
            f"{base_url}{endpoint}",
            json=body,
            headers={"Content-Type": "application/json"},
        )
    except (httpx.HTTPError, httpx.InvalidURL) as e:
        logger.error("Auto-login error for %s@%s: %s", username, base_url, e)
        return None

    if not response.is_success:
        logger.warning("Auto-login for %s@%s refused: %s %s",
                       username, base_url, response.status_code, response.reason_phrase)
        return None

    cookie = extract_session_cookie(response.headers)
    if not cookie:
        logger.warning("Auto-login for %s@%s returned no session cookie", username, base_url)
        return None

    logger.info("Auto-login for %s@%s succeeded", username, base_url)
    return SessionGrant(cookie=cookie, set_cookie=response.headers.get_list("set-cookie"))

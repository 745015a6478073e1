# src/seerr_gateway/models.py

from typing import Any, Dict, List, Mapping, Optional

import httpx
from pydantic import BaseModel, ConfigDict, Field, field_validator

# Inbound headers carrying the caller's upstream configuration
HEADER_SERVER_URL = "x-seerr-url"
HEADER_API_KEY = "x-api-key"
HEADER_USERNAME = "x-seerr-username"
HEADER_PASSWORD = "x-seerr-password"
HEADER_AUTH_TYPE = "x-seerr-auth-type"
HEADER_COOKIE = "cookie"


class SessionKey(BaseModel):
    """Identifies one logical upstream session: who is logged in, and where."""
    model_config = ConfigDict(frozen=True)

    username: str
    base_url: str

    def __str__(self) -> str:
        return f"{self.username}@{self.base_url}"


class SessionGrant(BaseModel):
    """
    Outcome of a successful upstream login.
    `cookie` is ready to be sent in a Cookie header, `set_cookie` holds the
    raw Set-Cookie values so they can be handed back to the browser.
    """
    cookie: str
    set_cookie: List[str] = Field(default_factory=list)


class UpstreamCredentials(BaseModel):
    """The caller's credential bundle, read from the inbound request headers."""
    server_url: Optional[str] = None
    api_key: Optional[str] = None
    username: Optional[str] = None
    password: Optional[str] = None
    auth_type: Optional[str] = None
    cookie: Optional[str] = None

    @classmethod
    def from_headers(cls, headers: Mapping[str, str]) -> "UpstreamCredentials":
        lowered = {key.lower(): value for key, value in headers.items()}
        return cls(
            server_url=lowered.get(HEADER_SERVER_URL) or None,
            api_key=lowered.get(HEADER_API_KEY) or None,
            username=lowered.get(HEADER_USERNAME) or None,
            password=lowered.get(HEADER_PASSWORD) or None,
            auth_type=lowered.get(HEADER_AUTH_TYPE) or None,
            cookie=lowered.get(HEADER_COOKIE) or None,
        )

    @property
    def can_auto_login(self) -> bool:
        return bool(self.username and self.password)


class UpstreamResult(BaseModel):
    """
    Uniform outcome of one upstream call.
    success is False whenever data is None, except for a no-content response.
    """
    model_config = ConfigDict(arbitrary_types_allowed=True)

    success: bool
    data: Optional[Any] = None
    message: Optional[str] = None
    status_code: Optional[int] = None
    headers: Optional[httpx.Headers] = None

    def to_payload(self) -> Dict[str, Any]:
        return self.model_dump(include={"success", "message", "data"}, exclude_none=True)


class GatewayRequest(BaseModel):
    """Transport-neutral inbound request handed to the gateway core by an adapter."""
    method: str
    path: str
    query: Dict[str, str] = Field(default_factory=dict)
    headers: Dict[str, str] = Field(default_factory=dict)
    body: Optional[bytes] = None

    @field_validator("method", mode='before')
    @classmethod
    def upper_method(cls, v: Any) -> str:
        return str(v).upper()

    @field_validator("headers", mode='before')
    @classmethod
    def lower_header_names(cls, v: Any) -> Dict[str, str]:
        return {str(key).lower(): value for key, value in dict(v or {}).items()}


class GatewayResponse(BaseModel):
    status_code: int = 200
    content: Any = None
    set_cookie: List[str] = Field(default_factory=list)

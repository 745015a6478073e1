# src/seerr_gateway/asgi.py

import contextlib
from typing import Optional

from starlette.applications import Starlette
from starlette.requests import Request
from starlette.responses import JSONResponse
from starlette.routing import Route

from .gateway import SeerrGateway
from .logger import create_logger
from .models import GatewayRequest, GatewayResponse

GATEWAY_METHODS = ["GET", "POST", "DELETE"]


async def to_gateway_request(request: Request, path: str) -> GatewayRequest:
    body = await request.body() if request.method in ("POST", "PUT", "PATCH") else None
    return GatewayRequest(
        method=request.method,
        path=path,
        query=dict(request.query_params),
        headers=dict(request.headers),
        body=body or None,
    )


def to_json_response(result: GatewayResponse) -> JSONResponse:
    response = JSONResponse(content=result.content, status_code=result.status_code)
    for cookie in result.set_cookie:
        response.headers.append("set-cookie", cookie)
    return response


def create_app(gateway: Optional[SeerrGateway] = None, mount_prefix: Optional[str] = None) -> Starlette:
    """
    Bare Starlette host for the gateway, for deployments that do not run
    the FastAPI application.
    """
    gateway = gateway or SeerrGateway()
    prefix = gateway.settings.MOUNT_PREFIX if mount_prefix is None else mount_prefix

    async def seerr_proxy(request: Request) -> JSONResponse:
        gateway_request = await to_gateway_request(request, request.path_params["path"])
        return to_json_response(await gateway.handle(gateway_request))

    @contextlib.asynccontextmanager
    async def lifespan(app: Starlette):
        create_logger(level=gateway.settings.LOG_LEVEL)
        await gateway.startup()
        yield
        await gateway.shutdown()

    app = Starlette(
        routes=[Route(f"{prefix}/{{path:path}}", seerr_proxy, methods=GATEWAY_METHODS)],
        lifespan=lifespan,
    )
    app.state.gateway = gateway
    return app

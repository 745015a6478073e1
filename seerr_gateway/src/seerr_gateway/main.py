# src/seerr_gateway/main.py

import logging
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from .asgi import GATEWAY_METHODS, to_gateway_request, to_json_response
from .config import settings
from .gateway import SeerrGateway
from .logger import create_logger
from .session import SessionRegistry

logger = logging.getLogger(__name__)


def create_app(gateway: Optional[SeerrGateway] = None) -> FastAPI:
    gateway = gateway or SeerrGateway(registry=SessionRegistry())

    # --- FastAPI App Setup ---
    config = gateway.settings

    app = FastAPI(
        title=config.APP_TITLE,
        description="Server-side gateway to a Jellyseerr/Overseerr instance: session handling, "
                    "result hydration and the combined discovery payload.",
        version="0.1.0"
    )
    app.state.gateway = gateway

    @app.get("/health")
    async def health():
        return {"status": "ok"}

    # --- Gateway catch-all ---
    @app.api_route(f"{config.MOUNT_PREFIX}/{{path:path}}", methods=GATEWAY_METHODS)
    async def seerr_proxy(path: str, request: Request) -> JSONResponse:
        gateway_request = await to_gateway_request(request, path)
        return to_json_response(await gateway.handle(gateway_request))

    # --- Startup / Shutdown ---
    @app.on_event("startup")
    async def startup_event():
        create_logger(level=config.LOG_LEVEL)
        logger.info("--- Seerr Gateway (FastAPI) Starting Up ---")
        logger.info("Mount prefix: %s", config.MOUNT_PREFIX)
        logger.info("Upstream timeout: %ss, TLS verification: %s", config.UPSTREAM_TIMEOUT, config.VERIFY_TLS)
        await gateway.startup()

    @app.on_event("shutdown")
    async def shutdown_event():
        await gateway.shutdown()

    return app


app = create_app()


def run():
    import uvicorn

    uvicorn.run("seerr_gateway.main:app", host=settings.HOST, port=settings.PORT, log_level=settings.LOG_LEVEL.lower())

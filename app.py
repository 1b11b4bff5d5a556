"""FastAPI application factory."""

from contextlib import asynccontextmanager

import httpx
from fastapi import FastAPI, Request

from api.handlers import (
    handle_home,
    handle_preflight,
    handle_proxy,
    handle_proxy_error,
    handle_unexpected_error,
)
from auth import AuthGate
from core.config import Config
from core.exceptions import ProxyError
from core.headers import HeaderSanitizer
from core.protocols import RequestLogger
from core.rewrite import PathRewriter
from core.router import Router
from core.routes import RouteTable, build_route_table
from services.proxy_service import ProxyService
from services.response import ResponseAssembler
from services.upstream import UpstreamClient, build_http_client

PROXIED_METHODS = ["GET", "HEAD", "POST", "PUT", "DELETE", "PATCH"]


def create_app(
    config: Config,
    logger: RequestLogger,
    route_table: RouteTable | None = None,
    transport: httpx.AsyncBaseTransport | None = None,
) -> FastAPI:
    """Create and configure the FastAPI application.

    The route table is built once here (or injected) and shared read-only by
    every request. `transport` replaces the network layer, e.g. with
    httpx.MockTransport in tests.
    """
    table = route_table if route_table is not None else build_route_table(config)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        upstream_client = UpstreamClient(build_http_client(config.limits, transport))
        app.state.proxy_service = ProxyService(
            logger=logger,
            gate=AuthGate(config.proxy.shared_secret),
            router=Router(table),
            rewriter=PathRewriter(),
            sanitizer=HeaderSanitizer(),
            upstream=upstream_client,
            assembler=ResponseAssembler(logger),
            debug=config.proxy.debug,
        )
        try:
            yield
        finally:
            await upstream_client.aclose()

    app = FastAPI(
        title="Inference Relay",
        version="0.1.0",
        lifespan=lifespan,
        docs_url=None,
        redoc_url=None,
        openapi_url=None,
    )
    app.state.route_table = table
    app.state.logger = logger

    app.add_exception_handler(ProxyError, handle_proxy_error)
    app.add_exception_handler(Exception, handle_unexpected_error)

    @app.options("/{path:path}")
    async def preflight(path: str):
        return await handle_preflight()

    @app.get("/")
    @app.get("/index.html")
    async def home(request: Request):
        return await handle_home(request)

    @app.api_route("/{path:path}", methods=PROXIED_METHODS)
    async def proxy(request: Request, path: str):
        return await handle_proxy(request)

    return app

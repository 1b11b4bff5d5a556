"""FastAPI route handlers."""

import json
from urllib.parse import quote, quote_from_bytes

from fastapi import Request, Response
from fastapi.responses import HTMLResponse, StreamingResponse

from core.cors import CORS_HEADERS, PREFLIGHT_HEADERS
from core.exceptions import ProxyError, UpstreamError
from core.request_types import BODYLESS_METHODS, ProxyRequestContext
from ui.home import render_home_page
from ui.log_utils import redact_url

# Reserved characters that may appear literally in a path; '%' keeps existing escapes
PATH_SAFE = "/%:@!$&'()*+,;="


def encoded_path(request: Request) -> str:
    """Return the request path as received on the wire, still percent-encoded.

    `request.url.path` is decoded, so '%3F' or '%2F' inside a segment would turn
    into real delimiters upstream. Stray non-ASCII or space bytes are escaped.
    """
    raw_path = request.scope.get("raw_path")
    if raw_path:
        raw_path = raw_path.split(b"?", 1)[0]
        return quote_from_bytes(raw_path, safe=PATH_SAFE)
    return quote(request.url.path, safe="/:@!$&'()*+,;=")


def request_context(request: Request) -> str:
    """Path and query of the request, with credential-looking parameters masked."""
    target = encoded_path(request)
    if request.url.query:
        target += "?" + request.url.query
    return redact_url(target)


async def handle_preflight() -> Response:
    """Answer any OPTIONS request without touching auth, routing or upstreams."""
    return Response(status_code=204, headers=PREFLIGHT_HEADERS)


async def handle_home(request: Request) -> HTMLResponse:
    """Serve the landing page."""
    return HTMLResponse(
        render_home_page(request.app.state.route_table),
        headers=CORS_HEADERS,
    )


async def handle_proxy(request: Request) -> StreamingResponse:
    """Stream the request to the upstream selected by its path prefix."""
    method = request.method.upper()
    ctx = ProxyRequestContext(
        method=method,
        path=encoded_path(request),
        query=request.url.query,
        headers=list(request.headers.items()),
        body=None if method in BODYLESS_METHODS else request.stream(),
    )
    return await request.app.state.proxy_service.handle(ctx)


async def handle_proxy_error(request: Request, exc: ProxyError) -> Response:
    """Translate a ProxyError into a CORS-enabled error response."""
    route = getattr(exc, "provider", None) or request_context(request)
    request.app.state.logger.log_error(route, exc.status_code, str(exc))

    if isinstance(exc, UpstreamError):
        return Response(
            content=json.dumps({"error": "Proxy request failed", "detail": str(exc)}),
            status_code=exc.status_code,
            media_type="application/json",
            headers=CORS_HEADERS,
        )
    return Response(
        content=str(exc),
        status_code=exc.status_code,
        media_type="text/plain",
        headers=CORS_HEADERS,
    )


async def handle_unexpected_error(request: Request, exc: Exception) -> Response:
    """Last-resort handler so a single failing request never takes the service down."""
    request.app.state.logger.log_error(request_context(request), 500, f"{type(exc).__name__}: {exc}")
    return Response(
        content="Internal proxy error",
        status_code=500,
        media_type="text/plain",
        headers=CORS_HEADERS,
    )

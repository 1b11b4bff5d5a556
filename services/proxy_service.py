"""Request pipeline for proxied traffic."""

from fastapi.responses import StreamingResponse

from auth import AuthGate
from core.headers import HeaderSanitizer
from core.protocols import RequestLogger
from core.request_types import ProxyRequestContext
from core.rewrite import PathRewriter
from core.router import Router
from services.response import ResponseAssembler
from services.upstream import UpstreamClient
from ui.log_utils import redact_url, write_request_log


class ProxyService:
    """Run one request through auth -> route -> rewrite -> sanitize -> forward -> assemble.

    Stages run strictly in that order; the shared-secret check happens before
    any routing so an unauthorized caller never causes an outbound connection.
    All collaborators are read-only, so one instance serves every request.
    """

    def __init__(
        self,
        logger: RequestLogger,
        gate: AuthGate,
        router: Router,
        rewriter: PathRewriter,
        sanitizer: HeaderSanitizer,
        upstream: UpstreamClient,
        assembler: ResponseAssembler,
        *,
        debug: bool = False,
    ) -> None:
        self._logger = logger
        self._gate = gate
        self._router = router
        self._rewriter = rewriter
        self._sanitizer = sanitizer
        self._upstream = upstream
        self._assembler = assembler
        self._debug = debug

    async def handle(self, ctx: ProxyRequestContext) -> StreamingResponse:
        """Proxy ctx upstream. Raises ProxyError subclasses on failure."""
        self._gate.check(dict(ctx.headers))

        ctx.entry = self._router.require(ctx.path)
        url = self._rewriter.rewrite(ctx.path, ctx.entry, ctx.query)
        headers = self._sanitizer.sanitize(ctx.headers, ctx.entry)

        self._logger.log_request(ctx.route_name, ctx.method, redact_url(url))
        if self._debug:
            write_request_log(ctx.method, ctx.route_name, redact_url(url), headers)

        upstream = await self._upstream.forward(
            ctx.method,
            url,
            headers,
            ctx.body if ctx.has_body else None,
            provider=ctx.route_name,
        )
        self._logger.log_response(ctx.route_name, ctx.method, upstream.status_code)
        return self._assembler.assemble(upstream, ctx.route_name)

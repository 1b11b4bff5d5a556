"""HTTP forwarding to upstream providers with streaming support."""

from collections.abc import AsyncIterator

import httpx

from core.config import LimitSettings
from core.exceptions import UpstreamConnectionError, UpstreamError, UpstreamTimeoutError


def build_http_client(
    limits: LimitSettings,
    transport: httpx.AsyncBaseTransport | None = None,
) -> httpx.AsyncClient:
    """Create the shared outbound client.

    Redirects are never followed: a 3xx from the upstream goes back to the
    caller untouched, so credentials are never replayed to another host.
    """
    return httpx.AsyncClient(
        timeout=httpx.Timeout(
            connect=limits.connect_timeout,
            read=limits.read_timeout,
            write=limits.read_timeout,
            pool=limits.connect_timeout,
        ),
        limits=httpx.Limits(
            max_connections=limits.max_connections,
            max_keepalive_connections=limits.max_keepalive_connections,
        ),
        follow_redirects=False,
        transport=transport,
    )


class UpstreamClient:
    """Send requests upstream and hand back the still-open streamed response."""

    def __init__(self, client: httpx.AsyncClient) -> None:
        self._client = client

    async def forward(
        self,
        method: str,
        url: str,
        headers: list[tuple[str, str]],
        body: AsyncIterator[bytes] | None = None,
        *,
        provider: str | None = None,
    ) -> httpx.Response:
        """Issue the request and return once the upstream response headers arrive.

        The request body, when given, is streamed straight into the outbound
        request as it is received. The caller owns the returned response and
        must close it. Transport failures raise UpstreamError; nothing is retried.
        """
        req = self._client.build_request(
            method,
            url,
            headers=headers,
            content=body,
        )
        try:
            return await self._client.send(req, stream=True)
        except httpx.TimeoutException as e:
            raise UpstreamTimeoutError(f"Upstream timeout: {_describe(e)}", provider=provider) from e
        except (httpx.ConnectError, httpx.RemoteProtocolError) as e:
            raise UpstreamConnectionError(
                f"Upstream connection error: {_describe(e)}", provider=provider
            ) from e
        except httpx.RequestError as e:
            raise UpstreamError(f"Upstream request failed: {_describe(e)}", provider=provider) from e

    async def aclose(self) -> None:
        await self._client.aclose()


def _describe(error: Exception) -> str:
    return str(error) or type(error).__name__

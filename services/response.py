"""Turn a streamed upstream response into the response sent to the caller."""

from collections.abc import AsyncIterator

import httpx
from fastapi.responses import StreamingResponse

from core.cors import CORS_HEADER_NAMES, CORS_HEADERS
from core.protocols import RequestLogger

# Framing is recomputed by our own server for the re-streamed body
FRAMING_HEADERS = frozenset({"content-length", "transfer-encoding"})


class ResponseAssembler:
    """Copy upstream status and headers, patch CORS/framing, stream the body through."""

    def __init__(self, logger: RequestLogger) -> None:
        self._logger = logger

    def assemble(self, upstream: httpx.Response, route: str = "-") -> StreamingResponse:
        response = StreamingResponse(
            self._stream_body(upstream, route),
            status_code=upstream.status_code,
        )
        for key, value in upstream.headers.multi_items():
            lowered = key.lower()
            if lowered in FRAMING_HEADERS or lowered in CORS_HEADER_NAMES:
                continue
            response.headers.append(key, value)
        for key, value in CORS_HEADERS.items():
            response.headers[key] = value
        return response

    async def _stream_body(self, upstream: httpx.Response, route: str) -> AsyncIterator[bytes]:
        """Yield raw upstream chunks as they arrive.

        Bytes are passed through undecoded so Content-Encoding stays valid.
        The upstream response is closed however iteration ends, including
        cancellation when the caller disconnects.
        """
        try:
            async for chunk in upstream.aiter_raw():
                yield chunk
        except httpx.HTTPError as e:
            # Headers are already sent; all we can do is end the stream
            self._logger.log_error(route, upstream.status_code, f"Upstream stream interrupted: {e}")
        finally:
            await upstream.aclose()

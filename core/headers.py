"""Header construction for upstream requests."""

from collections.abc import Iterable, Mapping

from core.routes import BearerHeader, CustomHeader, RouteEntry

HOP_BY_HOP_HEADERS = frozenset({
    "host",
    "connection",
    "keep-alive",
    "proxy-connection",
    "proxy-authorization",
    "te",
    "trailer",
    "trailers",
    "transfer-encoding",
    "upgrade",
})

# Headers added by the edge network / CDN in front of the proxy
EDGE_HEADER_PREFIXES = ("cf-", "x-vercel-", "x-amz-cf-", "fly-", "x-deno-")
PROXY_IDENTIFYING_HEADERS = frozenset({
    "cdn-loop",
    "forwarded",
    "true-client-ip",
    "via",
    "x-real-ip",
})

FORWARDED_PREFIX = "x-forwarded-"
FORWARDED_FOR = "x-forwarded-for"

HeaderInput = Mapping[str, str] | Iterable[tuple[str, str]]


def _pairs(headers: HeaderInput) -> list[tuple[str, str]]:
    if isinstance(headers, Mapping):
        items = headers.items()
    else:
        items = headers
    return [(str(key), str(value)) for key, value in items]


def is_stripped(name: str) -> bool:
    """Return True if a client header must never reach an upstream."""
    key = name.lower()
    if key in HOP_BY_HOP_HEADERS or key in PROXY_IDENTIFYING_HEADERS:
        return True
    if key.startswith(EDGE_HEADER_PREFIXES):
        return True
    return key.startswith(FORWARDED_PREFIX) and key != FORWARDED_FOR


class HeaderSanitizer:
    """Build upstream headers: strip transport/proxy headers, inject the route credential."""

    def sanitize(self, headers: HeaderInput, entry: RouteEntry) -> list[tuple[str, str]]:
        """Return outbound header pairs for entry.

        Repeated headers are preserved; the credential header appears exactly once.
        Raises ConfigurationError if the route has no API key.
        """
        api_key = entry.require_api_key()
        strategy = entry.credential_strategy

        if isinstance(strategy, CustomHeader):
            credential_name = strategy.name
            credential_value = api_key
            replaced = {"authorization", credential_name.lower()}
        elif isinstance(strategy, BearerHeader):
            credential_name = "authorization"
            credential_value = f"Bearer {api_key}"
            replaced = {"authorization"}
        else:
            raise TypeError(f"unknown credential strategy: {strategy!r}")

        outbound = [
            (key, value)
            for key, value in _pairs(headers)
            if not is_stripped(key) and key.lower() not in replaced
        ]
        outbound.append((credential_name, credential_value))
        return outbound

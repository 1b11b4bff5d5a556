"""Shared request data types."""

from collections.abc import AsyncIterator
from dataclasses import dataclass

from core.routes import RouteEntry

BODYLESS_METHODS = frozenset({"GET", "HEAD"})


@dataclass
class ProxyRequestContext:
    """Per-request state, owned by the handler for the lifetime of one request.

    `body` is single-consume: it is handed to the upstream request once and
    never read anywhere else.
    """

    method: str
    path: str
    query: str
    headers: list[tuple[str, str]]
    body: AsyncIterator[bytes] | None = None
    entry: RouteEntry | None = None

    @property
    def route_name(self) -> str:
        return self.entry.name if self.entry else "-"

    @property
    def has_body(self) -> bool:
        return self.body is not None and self.method.upper() not in BODYLESS_METHODS

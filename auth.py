"""Shared-secret gate in front of all proxied traffic."""

import hmac
from collections.abc import Mapping

from core.exceptions import UnauthorizedError


class AuthGate:
    """Require `Authorization: Bearer <secret>` when a proxy secret is configured.

    The secret guards the proxy itself and is unrelated to the per-upstream
    API keys. With no secret configured every request is allowed.
    """

    def __init__(self, shared_secret: str | None = None):
        self._expected = f"Bearer {shared_secret}" if shared_secret else None

    @property
    def active(self) -> bool:
        return self._expected is not None

    def is_allowed(self, headers: Mapping[str, str]) -> bool:
        """Return True if the request may proceed."""
        if self._expected is None:
            return True
        supplied = _get_header(headers, "authorization")
        if supplied is None:
            return False
        return hmac.compare_digest(supplied.encode(), self._expected.encode())

    def check(self, headers: Mapping[str, str]) -> None:
        """Raise UnauthorizedError unless the request is allowed."""
        if not self.is_allowed(headers):
            raise UnauthorizedError("Unauthorized")


def _get_header(headers: Mapping[str, str], name: str) -> str | None:
    value = headers.get(name)
    if value is not None:
        return value
    for key, candidate in headers.items():
        if key.lower() == name:
            return candidate
    return None

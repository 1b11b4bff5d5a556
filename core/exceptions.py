"""Custom exception hierarchy for the inference relay."""


class ProxyError(Exception):
    """Base exception for all proxy errors."""

    status_code = 500


class ConfigurationError(ProxyError):
    """Raised when a route is hit whose upstream API key is not configured.

    Attributes:
        provider: Route name (e.g., 'claude', 'gemini')
    """

    status_code = 500

    def __init__(self, message: str, provider: str | None = None) -> None:
        super().__init__(message)
        self.provider = provider


class UnauthorizedError(ProxyError):
    """Raised when the shared secret is configured and the caller's credential does not match."""

    status_code = 401


class RouteNotFoundError(ProxyError):
    """Raised when no route prefix matches the request path."""

    status_code = 404


class UpstreamError(ProxyError):
    """Raised when the upstream provider cannot be reached.

    Attributes:
        message: Error message
        provider: Upstream route name (e.g., 'chatgpt', 'groq')
    """

    status_code = 502

    def __init__(
        self,
        message: str,
        provider: str | None = None,
    ) -> None:
        super().__init__(message)
        self.provider = provider


class UpstreamTimeoutError(UpstreamError):
    """Raised when an upstream provider request times out."""


class UpstreamConnectionError(UpstreamError):
    """Raised when unable to connect to an upstream provider."""

"""CORS header sets attached to every response the proxy produces."""

ALLOWED_METHODS = ("GET", "POST", "PUT", "DELETE", "PATCH", "OPTIONS")
PREFLIGHT_MAX_AGE = 24 * 60 * 60

# "*" does not cover Authorization, so it is listed explicitly
ALLOWED_HEADERS = (
    "Authorization",
    "Content-Type",
    "X-Requested-With",
    "x-api-key",
    "x-goog-api-key",
    "anthropic-version",
    "anthropic-beta",
    "*",
)

CORS_HEADERS: dict[str, str] = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Methods": ", ".join(ALLOWED_METHODS),
    "Access-Control-Allow-Headers": ", ".join(ALLOWED_HEADERS),
    "Access-Control-Expose-Headers": "*",
}

PREFLIGHT_HEADERS: dict[str, str] = {
    **CORS_HEADERS,
    "Access-Control-Max-Age": str(PREFLIGHT_MAX_AGE),
}

CORS_HEADER_NAMES = frozenset(name.lower() for name in PREFLIGHT_HEADERS)

"""Outbound URL construction for routed requests."""

from core.routes import RouteEntry


class PathRewriter:
    """Turn an inbound path into the upstream URL for a route.

    Paths are used exactly as received (percent-encoded) and never decoded.
    Callers that bypass Router may pass a path like `/claudev1`; the remainder
    then gets a leading '/' added.
    """

    def rewrite(self, path: str, entry: RouteEntry, query: str = "") -> str:
        """Strip the route prefix, inject the version segment and join onto the upstream base.

        Args:
            path: Inbound request path, starting with entry.prefix.
            entry: Matched route.
            query: Raw query string without the leading '?'.

        Returns:
            Absolute upstream URL.
        """
        remainder = self.outbound_path(path, entry)
        url = entry.upstream_base.rstrip("/") + remainder
        if query:
            url += "?" + query
        return url

    def outbound_path(self, path: str, entry: RouteEntry) -> str:
        """Return the path component sent upstream (relative to the upstream base)."""
        remainder = path[len(entry.prefix):] if path.startswith(entry.prefix) else path
        if not remainder:
            remainder = "/"
        if not remainder.startswith("/"):
            remainder = "/" + remainder

        segment = entry.version_segment
        if segment and not self._has_segment(remainder, segment):
            remainder = segment if remainder == "/" else segment + remainder
        return remainder

    @staticmethod
    def _has_segment(remainder: str, segment: str) -> bool:
        # '/v1beta/models' must not count as already carrying '/v1'
        return remainder == segment or remainder.startswith(segment + "/")

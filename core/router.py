"""Request routing logic - maps a path prefix to an upstream route."""

from core.exceptions import RouteNotFoundError
from core.routes import RouteEntry, RouteTable


class Router:
    """Resolve request paths against a RouteTable.

    Matching is first-match in declaration order, not longest-prefix. A path
    matches an entry when it equals the prefix or continues it with '/', so
    `/claude` and `/claude/v1/messages` match `/claude` but `/claudex` does not.
    This is narrower than a plain `startswith(prefix)`: a routed path therefore
    always leaves PathRewriter a remainder that is empty or starts with '/'.

    Paths are matched percent-encoded, so `/claude%2Fv1` is not a claude route.
    """

    def __init__(self, table: RouteTable):
        self._table = table

    def resolve(self, path: str) -> RouteEntry | None:
        """Return the first matching route, or None."""
        for entry in self._table:
            if self._matches(path, entry.prefix):
                return entry
        return None

    def require(self, path: str) -> RouteEntry:
        """Return the matching route or raise RouteNotFoundError."""
        entry = self.resolve(path)
        if entry is None:
            raise RouteNotFoundError(f"No route for {path}")
        return entry

    @staticmethod
    def _matches(path: str, prefix: str) -> bool:
        return path == prefix or path.startswith(prefix + "/")

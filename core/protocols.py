"""Shared protocol definitions."""

from typing import Protocol


class RequestLogger(Protocol):
    """Protocol for request logging (Dashboard, HeadlessLogger)."""

    def log_request(self, route: str, method: str, url: str) -> None: ...
    def log_response(self, route: str, method: str, status: int) -> None: ...
    def log_error(self, route: str, status: int, message: str) -> None: ...

"""Route table: prefix -> upstream base, version segment and credential policy."""

import os
from collections.abc import Iterator, Mapping
from dataclasses import dataclass

from core.config import Config, ProviderSettings
from core.exceptions import ConfigurationError


@dataclass(frozen=True)
class BearerHeader:
    """Send the API key as `Authorization: Bearer <key>`."""


@dataclass(frozen=True)
class CustomHeader:
    """Send the API key in the named header and drop any Authorization header."""

    name: str


CredentialStrategy = BearerHeader | CustomHeader


@dataclass(frozen=True)
class RouteEntry:
    """A single mounted upstream."""

    name: str
    prefix: str
    upstream_base: str
    version_segment: str
    credential_strategy: CredentialStrategy
    api_key: str | None = None

    def require_api_key(self) -> str:
        """Return the API key or raise ConfigurationError if it was never configured."""
        if not self.api_key:
            raise ConfigurationError(
                f"API key for {self.name} is not configured",
                provider=self.name,
            )
        return self.api_key


class RouteTable:
    """Ordered, read-only collection of routes.

    Order is the match order: the first entry whose prefix matches wins, so an
    entry declared after an overlapping prefix is never reached.
    """

    def __init__(self, entries: list[RouteEntry] | tuple[RouteEntry, ...]) -> None:
        prefixes = [entry.prefix for entry in entries]
        duplicates = {p for p in prefixes if prefixes.count(p) > 1}
        if duplicates:
            raise ValueError(f"duplicate route prefixes: {sorted(duplicates)}")
        self._entries = tuple(entries)

    def __iter__(self) -> Iterator[RouteEntry]:
        return iter(self._entries)

    def __len__(self) -> int:
        return len(self._entries)

    @property
    def entries(self) -> tuple[RouteEntry, ...]:
        return self._entries


def _strategy_for(provider: ProviderSettings) -> CredentialStrategy:
    if provider.credential == "header" and provider.credential_header:
        return CustomHeader(provider.credential_header.lower())
    return BearerHeader()


def build_route_table(config: Config, environ: Mapping[str, str] | None = None) -> RouteTable:
    """Build the route table once at startup.

    Keys come from the provider's environment variable, falling back to the
    inline config value. Missing keys are left as None and only fail when the
    route is hit.
    """
    environ = os.environ if environ is None else environ
    entries = [
        RouteEntry(
            name=provider.name,
            prefix=provider.prefix,
            upstream_base=provider.base_url,
            version_segment=provider.version_segment,
            credential_strategy=_strategy_for(provider),
            api_key=environ.get(provider.api_key_env) or provider.api_key or None,
        )
        for provider in config.providers
    ]
    return RouteTable(entries)

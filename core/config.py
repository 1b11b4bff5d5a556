"""Configuration models and loading."""

import json
import os
from collections.abc import Mapping
from pathlib import Path
from typing import Literal

from pydantic import BaseModel, Field, ValidationError, field_validator, model_validator

CONFIG_DIR = Path.home() / ".config" / "inference-relay"
CONFIG_FILE = CONFIG_DIR / "config.json"


def _normalize_segment(value: str) -> str:
    """Return value with exactly one leading slash and no trailing slash ('' stays '')."""
    value = value.strip().strip("/")
    return f"/{value}" if value else ""


class ProxySettings(BaseModel):
    host: str = "127.0.0.1"
    port: int = 8080
    debug: bool = False
    shared_secret: str | None = None


class LimitSettings(BaseModel):
    max_connections: int = 100
    max_keepalive_connections: int = 20
    connect_timeout: float = 10.0
    # None means no limit; streamed completions can run for minutes
    read_timeout: float | None = None
    keep_alive_timeout: int = 5


class ProviderSettings(BaseModel):
    """One upstream provider and the prefix it is mounted under."""

    name: str
    prefix: str
    base_url: str
    version_segment: str = ""
    credential: Literal["bearer", "header"] = "bearer"
    credential_header: str | None = None
    api_key_env: str
    api_key: str = ""

    @field_validator("prefix")
    @classmethod
    def _check_prefix(cls, value: str) -> str:
        prefix = _normalize_segment(value)
        if not prefix:
            raise ValueError("prefix must be a non-empty path segment")
        return prefix

    @field_validator("version_segment")
    @classmethod
    def _check_version_segment(cls, value: str) -> str:
        return _normalize_segment(value)

    @field_validator("base_url")
    @classmethod
    def _check_base_url(cls, value: str) -> str:
        value = value.strip().rstrip("/")
        if not value.startswith(("http://", "https://")):
            raise ValueError("base_url must be an absolute http(s) URL")
        return value

    @model_validator(mode="after")
    def _check_credential(self) -> "ProviderSettings":
        if self.credential == "header" and not self.credential_header:
            raise ValueError("credential_header is required when credential is 'header'")
        return self


def default_providers() -> list[ProviderSettings]:
    """Canonical route table, in declaration (match) order."""
    return [
        ProviderSettings(
            name="chatgpt",
            prefix="/chatgpt",
            base_url="https://api.openai.com",
            version_segment="/v1",
            api_key_env="OPENAI_API_KEY",
        ),
        ProviderSettings(
            name="claude",
            prefix="/claude",
            base_url="https://api.anthropic.com",
            version_segment="/v1",
            api_key_env="ANTHROPIC_API_KEY",
        ),
        ProviderSettings(
            name="gemini",
            prefix="/gemini",
            base_url="https://generativelanguage.googleapis.com",
            version_segment="/v1beta",
            credential="header",
            credential_header="x-goog-api-key",
            api_key_env="GEMINI_API_KEY",
        ),
        ProviderSettings(
            name="groq",
            prefix="/groq",
            base_url="https://api.groq.com/openai/v1",
            api_key_env="GROQ_API_KEY",
        ),
        ProviderSettings(
            name="grok",
            prefix="/grok",
            base_url="https://api.x.ai/v1",
            api_key_env="XAI_API_KEY",
        ),
    ]


class Config(BaseModel):
    proxy: ProxySettings = Field(default_factory=ProxySettings)
    limits: LimitSettings = Field(default_factory=LimitSettings)
    providers: list[ProviderSettings] = Field(default_factory=default_providers)

    @field_validator("providers")
    @classmethod
    def _check_unique_prefixes(cls, providers: list[ProviderSettings]) -> list[ProviderSettings]:
        seen: set[str] = set()
        for provider in providers:
            if provider.prefix in seen:
                raise ValueError(f"duplicate route prefix: {provider.prefix}")
            seen.add(provider.prefix)
        return providers


def config_path(environ: Mapping[str, str] | None = None) -> Path:
    """Return the config file location, honouring PROXY_CONFIG."""
    environ = os.environ if environ is None else environ
    override = environ.get("PROXY_CONFIG")
    return Path(override).expanduser() if override else CONFIG_FILE


def load_config(
    path: Path | None = None,
    environ: Mapping[str, str] | None = None,
) -> Config:
    """Load configuration from JSON file, creating default if needed.

    Environment overrides (PROXY_TOKEN, PROXY_HOST, PROXY_PORT/PORT) are
    applied on top of whatever the file contains.
    """
    environ = os.environ if environ is None else environ
    path = path or config_path(environ)

    if not path.exists():
        config = _write_default(path)
    else:
        try:
            data = json.loads(path.read_text())
            config = Config.model_validate(data)
        except (json.JSONDecodeError, ValidationError):
            # Backup corrupted config and recreate default
            backup = path.with_suffix(".json.bak")
            path.rename(backup)
            config = _write_default(path)

    return apply_env_overrides(config, environ)


def apply_env_overrides(config: Config, environ: Mapping[str, str]) -> Config:
    """Return a copy of config with process environment overrides applied."""
    proxy = config.proxy.model_copy()
    if environ.get("PROXY_TOKEN"):
        proxy.shared_secret = environ["PROXY_TOKEN"]
    if environ.get("PROXY_HOST"):
        proxy.host = environ["PROXY_HOST"]
    port = environ.get("PROXY_PORT") or environ.get("PORT")
    if port:
        proxy.port = int(port)
    return config.model_copy(update={"proxy": proxy})


def _write_default(path: Path) -> Config:
    path.parent.mkdir(parents=True, exist_ok=True)
    default = Config()
    path.write_text(default.model_dump_json(indent=2))
    return default

"""Shared logging utilities."""

import json
from datetime import UTC, datetime
from pathlib import Path
from typing import Any
from urllib.parse import parse_qsl, urlencode, urlsplit, urlunsplit
from uuid import uuid4

LOG_ROOT = Path.cwd() / "logs"
CLI_LOG_FILE = LOG_ROOT / "proxy.log"

SENSITIVE_QUERY_PARAMS = frozenset({"key", "api_key", "apikey", "access_token"})


def write_request_log(
    method: str,
    route: str,
    url: str,
    headers: list[tuple[str, str]],
    *,
    log_root: Path = LOG_ROOT,
) -> Path:
    """Write a single outbound request log entry (debug mode)."""
    payload = {
        "timestamp": _utc_now(),
        "method": method,
        "route": route,
        "url": url,
        "headers": _redact_headers(headers),
    }
    return _write_json(log_root / "requests" / route, payload)


def write_cli_log(
    level: str,
    message: str,
    **extra: Any,
) -> None:
    """Append a line to the rolling CLI log file."""
    CLI_LOG_FILE.parent.mkdir(parents=True, exist_ok=True)
    timestamp = datetime.now(UTC).strftime("%Y-%m-%d %H:%M:%S")
    extra_str = " ".join(f"{k}={v}" for k, v in extra.items()) if extra else ""
    line = f"[{timestamp}] {level}: {message}"
    if extra_str:
        line += f" {extra_str}"
    line += "\n"
    with CLI_LOG_FILE.open("a") as f:
        f.write(line)


def redact_url(url: str) -> str:
    """Mask credential-looking query parameters (e.g. Gemini's ?key=)."""
    parts = urlsplit(url)
    if not parts.query:
        return url
    query = [
        (name, "***" if name.lower() in SENSITIVE_QUERY_PARAMS else value)
        for name, value in parse_qsl(parts.query, keep_blank_values=True)
    ]
    return urlunsplit(parts._replace(query=urlencode(query, safe="*")))


def _write_json(folder: Path, payload: dict[str, Any]) -> Path:
    """Write payload to a unique JSON file in the given folder."""
    folder.mkdir(parents=True, exist_ok=True)
    timestamp = datetime.now(UTC).strftime("%Y%m%dT%H%M%S.%fZ")
    file_path = folder / f"{timestamp}_{uuid4().hex}.json"
    file_path.write_text(json.dumps(payload, indent=2, default=str))
    return file_path


def _redact_headers(headers: list[tuple[str, str]]) -> dict[str, str]:
    """Redact sensitive headers."""
    redacted = {}
    for key, value in headers:
        lowered = key.lower()
        if "key" in lowered or "authorization" in lowered or "token" in lowered:
            redacted[key] = _mask(value)
        else:
            redacted[key] = value
    return redacted


def _mask(value: str) -> str:
    scheme, _, credential = value.partition(" ")
    if credential and scheme.lower() == "bearer":
        return f"{scheme} ***"
    return "***"


def _utc_now() -> str:
    return datetime.now(UTC).isoformat()

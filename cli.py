"""CLI entry point for inference-relay."""

import sys
from datetime import datetime

from rich.console import Console
from rich.table import Table

from app import create_app
from core.config import config_path, load_config
from core.routes import BearerHeader, build_route_table
from ui.dashboard import Dashboard, HeadlessLogger
from ui.log_utils import CLI_LOG_FILE, write_cli_log

console = Console()


def main():
    """Main CLI entry point."""
    args = sys.argv[1:]

    if "--help" in args or "-h" in args:
        _print_help()
        return

    if "--config" in args:
        console.print(f"[bold]Config:[/bold] {config_path()}")
        console.print(f"[bold]Log:[/bold] {CLI_LOG_FILE}")
        return

    config = load_config()
    table = build_route_table(config)

    if "--check" in args:
        print_route_status(config, table)
        return

    missing = [entry.name for entry in table if not entry.api_key]
    if missing:
        # Not fatal: those routes answer 500 until a key is provided
        console.print(f"[yellow]Warning:[/yellow] no API key for: {', '.join(missing)}")

    import uvicorn

    headless = "--headless" in args
    if headless:
        logger = HeadlessLogger()
        dashboard = None
    else:
        dashboard = Dashboard(config)
        logger = dashboard

    app = create_app(config, logger, route_table=table)

    uvicorn_config = uvicorn.Config(
        app,
        host=config.proxy.host,
        port=config.proxy.port,
        log_level="warning",
        timeout_keep_alive=config.limits.keep_alive_timeout,
    )
    server = uvicorn.Server(uvicorn_config)

    if dashboard:
        dashboard.start()
    start_time = datetime.now()
    write_cli_log("STARTUP", "Proxy started", host=config.proxy.host, port=config.proxy.port)
    try:
        server.run()
    finally:
        duration = datetime.now() - start_time
        write_cli_log("SHUTDOWN", "Proxy stopped", duration=str(duration))
        if dashboard:
            dashboard.stop()


def print_route_status(config, table) -> None:
    """Print the route table and which upstream keys are present (never the keys)."""
    grid = Table(title="Routes (matched in this order)")
    grid.add_column("Prefix", style="cyan")
    grid.add_column("Upstream")
    grid.add_column("Credential")
    grid.add_column("Key")

    for entry in table:
        strategy = entry.credential_strategy
        credential = (
            "Authorization: Bearer" if isinstance(strategy, BearerHeader) else strategy.name
        )
        key_status = "[green]set[/green]" if entry.api_key else "[red]missing[/red]"
        grid.add_row(entry.prefix, entry.upstream_base + entry.version_segment, credential, key_status)

    console.print(grid)
    gate = "[green]enabled[/green]" if config.proxy.shared_secret else "[dim]disabled[/dim]"
    console.print(f"[bold]Shared secret:[/bold] {gate}")


def _print_help():
    """Print help message."""
    help_text = """
[bold cyan]Inference Relay[/bold cyan]

Streams /chatgpt, /claude, /gemini, /groq and /grok to their upstream APIs.

[bold]Usage:[/bold]
    inference-relay              Start with live dashboard
    inference-relay --headless   Start with plain log output
    inference-relay --check      Show routes and key status
    inference-relay --config     Show config locations
    inference-relay --help       Show this help

[bold]Environment:[/bold]
    OPENAI_API_KEY, ANTHROPIC_API_KEY, GEMINI_API_KEY, GROQ_API_KEY, XAI_API_KEY
    PROXY_TOKEN                  Require Authorization: Bearer <token>
    PROXY_HOST, PROXY_PORT       Bind address
    PROXY_CONFIG                 Config file path
"""
    console.print(help_text)


if __name__ == "__main__":
    main()

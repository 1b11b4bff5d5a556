"""Real-time CLI dashboard for proxy monitoring."""

from datetime import datetime
from threading import Lock

from rich.console import Console
from rich.layout import Layout
from rich.live import Live
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from core.config import Config
from ui.log_utils import write_cli_log

console = Console()


class RequestInfo:
    """Info about a single proxied request."""

    def __init__(self, route: str, method: str, url: str, timestamp: datetime):
        self.route = route
        self.method = method
        self.url = url[:80] + "..." if len(url) > 80 else url
        self.status: int | None = None
        self.timestamp = timestamp


class Dashboard:
    """Real-time dashboard showing per-route traffic and recent errors."""

    def __init__(self, config: Config):
        self.config = config
        self._lock = Lock()
        self._recent: list[RequestInfo] = []
        self._max_recent = 10
        self._request_count = {provider.name: 0 for provider in config.providers}
        self._errors: list[str] = []
        self._live: Live | None = None

    def start(self) -> "Dashboard":
        """Start the live dashboard."""
        self._live = Live(
            self._build_layout(),
            console=console,
            refresh_per_second=4,
            screen=False,
        )
        self._live.start()
        return self

    def stop(self) -> None:
        """Stop the live dashboard."""
        if self._live:
            self._live.stop()

    def log_request(self, route: str, method: str, url: str) -> None:
        """Log a request about to be forwarded upstream."""
        with self._lock:
            self._request_count[route] = self._request_count.get(route, 0) + 1
            self._recent.insert(0, RequestInfo(route, method, url, datetime.now()))
            self._recent = self._recent[: self._max_recent]
            self._refresh()
            write_cli_log("REQUEST", f"{method} {url}", route=route)

    def log_response(self, route: str, method: str, status: int) -> None:
        """Record the upstream status on the most recent matching request."""
        with self._lock:
            for info in self._recent:
                if info.route == route and info.method == method and info.status is None:
                    info.status = status
                    break
            self._refresh()
            write_cli_log("RESPONSE", f"{method} {status}", route=route)

    def log_error(self, route: str, status: int, message: str) -> None:
        """Log an error."""
        with self._lock:
            truncated = message[:50] + "..." if len(message) > 50 else message
            self._errors.insert(0, f"{route} {status}: {truncated}")
            self._errors = self._errors[:3]
            self._refresh()
            write_cli_log("ERROR", message[:200], route=route, status=status)

    def _refresh(self) -> None:
        """Refresh the display."""
        if self._live:
            self._live.update(self._build_layout())

    def _build_layout(self) -> Layout:
        """Build the dashboard layout."""
        layout = Layout()

        layout.split_column(
            Layout(name="header", size=3),
            Layout(name="body"),
            Layout(name="footer", size=5),
        )

        layout["header"].update(self._build_header())
        layout["body"].update(self._build_requests_panel())
        layout["footer"].update(self._build_footer())

        return layout

    def _build_header(self) -> Panel:
        """Build header with per-route stats."""
        stats = Text()
        stats.append("Inference Relay", style="bold cyan")
        for route, count in self._request_count.items():
            stats.append("  |  ")
            stats.append(f"{route}: {count}", style="blue")
        stats.append("  |  ")
        stats.append(f"Port: {self.config.proxy.port}", style="dim")

        return Panel(stats, style="cyan")

    def _build_requests_panel(self) -> Panel:
        """Build recent requests panel."""
        if self._recent:
            table = Table(show_header=True, header_style="bold", expand=True, box=None)
            table.add_column("Time", style="dim", width=8)
            table.add_column("Route", width=10)
            table.add_column("Method", width=7)
            table.add_column("Status", width=6)
            table.add_column("Upstream", ratio=1)

            for info in self._recent:
                status = "…" if info.status is None else str(info.status)
                style = "red" if info.status is not None and info.status >= 400 else ""
                table.add_row(
                    info.timestamp.strftime("%H:%M:%S"),
                    info.route,
                    info.method,
                    Text(status, style=style),
                    info.url,
                )

            content = table
        else:
            content = Text("Waiting for requests...", style="dim")

        return Panel(content, title="[blue]Recent Requests[/blue]", border_style="blue")

    def _build_footer(self) -> Panel:
        """Build footer with errors and help."""
        if self._errors:
            error_text = Text()
            for err in self._errors:
                error_text.append("! ", style="red bold")
                error_text.append(err + "\n", style="red")
            content = error_text
        else:
            prefixes = ", ".join(provider.prefix for provider in self.config.providers)
            content = Text(
                f"Send requests to http://localhost:{self.config.proxy.port}{{{prefixes}}}/...",
                style="dim",
            )

        return Panel(content, title="[dim]Status[/dim]", border_style="dim")


class HeadlessLogger:
    """Line-oriented logger for deployments without a terminal dashboard."""

    def __init__(self, out: Console | None = None):
        self._console = out or console

    def log_request(self, route: str, method: str, url: str) -> None:
        self._console.print(f"[blue]{route}[/blue] {method} {escape(url)}", highlight=False)
        write_cli_log("REQUEST", f"{method} {url}", route=route)

    def log_response(self, route: str, method: str, status: int) -> None:
        style = "red" if status >= 400 else "green"
        self._console.print(f"[blue]{route}[/blue] {method} [{style}]{status}[/{style}]", highlight=False)
        write_cli_log("RESPONSE", f"{method} {status}", route=route)

    def log_error(self, route: str, status: int, message: str) -> None:
        self._console.print(f"[red][ERROR][/red] {route} {status}: {escape(message)}", highlight=False)
        write_cli_log("ERROR", message[:200], route=route, status=status)

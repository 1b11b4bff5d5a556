"""Static landing page served at / and /index.html."""

from html import escape

from core.routes import RouteTable

HOME_TEMPLATE = """<!DOCTYPE html>
<html lang="en">
<head>
<meta charset="utf-8">
<title>Inference Relay</title>
<style>
body {{ font-family: system-ui, sans-serif; max-width: 46rem; margin: 3rem auto; color: #222; }}
code {{ background: #f3f3f3; padding: 0 .25rem; }}
table {{ border-collapse: collapse; width: 100%; }}
td, th {{ text-align: left; padding: .35rem .6rem; border-bottom: 1px solid #ddd; }}
</style>
</head>
<body>
<h1>Inference Relay</h1>
<p>Requests to <code>/&lt;prefix&gt;/...</code> are streamed to the matching upstream API
with the provider credential attached.</p>
<table>
<tr><th>Prefix</th><th>Upstream</th><th>Status</th></tr>
{rows}
</table>
</body>
</html>
"""


def render_home_page(table: RouteTable) -> str:
    """Render the landing page for the configured routes."""
    rows = []
    for entry in table:
        upstream = entry.upstream_base + entry.version_segment
        status = "ready" if entry.api_key else "not configured"
        rows.append(
            f"<tr><td><code>{escape(entry.prefix)}</code></td>"
            f"<td>{escape(upstream)}</td><td>{status}</td></tr>"
        )
    return HOME_TEMPLATE.format(rows="\n".join(rows))

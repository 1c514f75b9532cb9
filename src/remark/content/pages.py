"""HTML fragments served to the browser."""
import html
from urllib.parse import quote

HTMX_SRC = "https://unpkg.com/htmx.org@1.9.12/dist/htmx.min.js"


def _viewer_url(filename: str) -> str:
    return f"/?filename={quote(filename)}"


def index_page(filename: str) -> str:
    """Page shell with the file index and, if selected, the viewer frame.

    Args:
        filename: Currently selected file, or "" for none.

    Returns:
        Complete HTML document.
    """
    title = f"remark - {html.escape(filename)}" if filename else "remark"
    viewer = ""
    if filename:
        viewer = f'<div hx-get="/markdown?filename={quote(filename)}" hx-trigger="load"></div>'

    return f"""<!DOCTYPE html>
<html lang="en" style="height: 100%">
<head>
<meta charset="UTF-8">
<meta name="viewport" content="width=device-width, initial-scale=1.0">
<script src="{HTMX_SRC}" defer></script>
<title>{title}</title>
</head>
<body style="height: 100%; margin: 0; padding: 0; font-family: sans-serif">
<div style="height: 100%; display: flex; flex-flow: row">
<div hx-get="/sidebar" hx-trigger="load, every 1s" style="padding: 3em"></div>
<div id="viewer" style="height: 100%; padding: 3em; flex: 1; overflow-y: scroll; box-sizing: border-box">{viewer}</div>
</div>
</body>
</html>
"""


def sidebar(paths: list[str], current: str) -> str:
    """Links to every watched file, with the current one in bold.

    Args:
        paths: Watch list in display order.
        current: File open in the viewer, or "".

    Returns:
        HTML fragment.
    """
    links = []
    for path in paths:
        weight = "; font-weight: bold" if path == current else ""
        links.append(
            f'<a href="{_viewer_url(path)}" style="padding: 0.2em{weight}">{html.escape(path)}</a>'
        )
    return '<div style="display: flex; flex-flow: column">' + "".join(links) + "</div>"


def live_fragment(filename: str, rendered: str) -> str:
    """Wrap a rendered document in a websocket-connected container.

    Args:
        filename: File the viewer session will follow.
        rendered: Output of the render gateway.

    Returns:
        HTML fragment that htmx connects to /watch.
    """
    return f'<div hx-ws="connect:/watch?filename={quote(filename)}">{rendered}</div>'

"""Content module: rendering and browser-facing fragments."""

from remark.content.pages import index_page, live_fragment, sidebar
from remark.content.paths import SecurityError, is_excluded, resolve_asset
from remark.content.render import RenderError, render_markdown

__all__ = [
    "RenderError",
    "SecurityError",
    "index_page",
    "is_excluded",
    "live_fragment",
    "render_markdown",
    "resolve_asset",
    "sidebar",
]

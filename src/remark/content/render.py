"""Markdown rendering gateway."""
import html
from pathlib import Path

from markdown_it import MarkdownIt


class RenderError(Exception):
    """Raised when a file cannot be rendered."""

    def __init__(self, message: str, path: str) -> None:
        """Initialize render error.

        Args:
            message: Error description.
            path: Path that failed to render.
        """
        super().__init__(message)
        self.path = path


_markdown = MarkdownIt(
    "commonmark",
    {"html": True, "linkify": False, "typographer": True},
).enable("table").enable("strikethrough")


def render_markdown(path: str, root: str = ".") -> str:
    """Render a Markdown file to an HTML fragment.

    The fragment carries id="markdown" so a websocket push can swap it in
    place of the current one.

    Args:
        path: File path relative to root.
        root: Directory the path is relative to.

    Returns:
        HTML fragment containing the rendered document.

    Raises:
        RenderError: If the file cannot be read or converted.
    """
    try:
        source = (Path(root) / path).read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as e:
        raise RenderError(f"failed to read file: {e}", path) from e

    try:
        body = _markdown.render(source)
    except Exception as e:
        raise RenderError(f"failed to convert markdown: {e}", path) from e

    return (
        f'<div id="markdown" class="markdown-body" data-filename="{html.escape(path)}">'
        f"{body}</div>"
    )

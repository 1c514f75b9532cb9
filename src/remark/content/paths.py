"""Path resolution for assets referenced by rendered documents."""
from pathlib import Path

EXCLUDED_PATTERNS: frozenset[str] = frozenset({
    ".git",
    "node_modules",
    "__pycache__",
    ".env",
})

SECRET_EXTENSIONS: frozenset[str] = frozenset({
    ".key",
    ".pem",
    ".env",
})


class SecurityError(Exception):
    """Raised when a path operation violates security constraints."""

    def __init__(self, message: str, path: str) -> None:
        """Initialize security error.

        Args:
            message: Error description.
            path: The offending path value.
        """
        super().__init__(message)
        self.path = path


def is_excluded(relative: str) -> bool:
    """Check if any component of a path must never be served.

    Args:
        relative: Path relative to the watch root.

    Returns:
        True if the path is hidden, excluded or looks like a secret.
    """
    parts = Path(relative).parts
    if any(part in EXCLUDED_PATTERNS or part.startswith(".") for part in parts):
        return True
    return Path(relative).suffix.lower() in SECRET_EXTENSIONS


def resolve_asset(root: str, requested: str) -> Path:
    """Resolve a request path to a file inside the watch root.

    Args:
        root: Watch root directory.
        requested: URL path of the asset, with or without a leading slash.

    Returns:
        Absolute path of the asset.

    Raises:
        SecurityError: If the path contains null bytes, traversal sequences,
            excluded components, or resolves outside the root.
    """
    relative = requested.lstrip("/")

    if "\0" in relative:
        raise SecurityError("Path contains null byte", requested)

    if ".." in Path(relative).parts:
        raise SecurityError("Path contains directory traversal sequence", requested)

    if is_excluded(relative):
        raise SecurityError("Path is excluded from serving", requested)

    root_path = Path(root).resolve()
    resolved = (root_path / relative).resolve()

    if not resolved.is_relative_to(root_path):
        raise SecurityError(f"Path resolves outside allowed root: {root_path}", requested)

    return resolved

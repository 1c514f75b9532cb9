"""Configuration loaded from environment variables and command-line flags."""
from typing import Literal

from pydantic import computed_field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Preview server configuration.

    Attributes:
        host: Bind address for the HTTP server.
        port: Port number for the HTTP server.
        debug: Enable debug-level logging.
        log_format: Renderer used for log output.
        root: Directory that patterns are resolved against.
        patterns_raw: Whitespace-separated glob patterns of files to watch.
        glob_interval_ms: Milliseconds between glob resolution passes.
        event_queue_size: Maximum pending events per bus subscriber.
        max_sessions: Maximum number of concurrent viewer sessions.
        shutdown_timeout: Seconds to wait for graceful shutdown.
    """

    model_config = SettingsConfigDict(
        env_prefix="REMARK_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    host: str = "127.0.0.1"
    port: int = 8888
    debug: bool = False
    log_format: Literal["console", "json"] = "console"
    root: str = "."

    patterns_raw: str = "**/**.md"
    glob_interval_ms: int = 50
    event_queue_size: int = 1
    max_sessions: int = 32
    shutdown_timeout: float = 5.0

    @computed_field
    @property
    def patterns(self) -> list[str]:
        """Split the raw pattern string on whitespace.

        Returns:
            Glob patterns in the order they were given.
        """
        return self.patterns_raw.split()

    @computed_field
    @property
    def base_url(self) -> str:
        """URL viewers use to reach the server."""
        host = "localhost" if self.host in ("127.0.0.1", "0.0.0.0", "") else self.host
        return f"http://{host}:{self.port}"

"""Application configuration management."""

from typing import Optional
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables.

    These settings are automatically loaded from the .env file or environment variables.
    The Freepik API key should live in the environment, never in code. When it is
    set it is used for every request and overrides any key a browser sends.

    Attributes:
        freepik_api_key: Process-wide Freepik API key (optional)
        freepik_api_base: Base URL of the Freepik API
        catbox_api_url: Anonymous file-host upload endpoint
        max_upload_size_mb: Largest accepted upload, in MiB (inclusive)
        request_timeout: Upstream request timeout in seconds (None = transport default)
        poll_interval: Seconds between status polls in the browser session
        max_poll_errors: Consecutive poll failures before a task is marked FAILED
        max_history: Completed generations kept per session
        proxy_base_url: Remote proxy the UI should call instead of the in-process one
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR)
    """

    model_config = SettingsConfigDict(
        env_file='.env',
        env_file_encoding='utf-8',
        case_sensitive=False,
        extra='ignore'
    )

    # API Keys
    freepik_api_key: Optional[str] = None

    # Upstream Services
    freepik_api_base: str = "https://api.freepik.com"
    catbox_api_url: str = "https://catbox.moe/user/api.php"
    max_upload_size_mb: int = 200
    request_timeout: Optional[float] = None

    # Client Session
    poll_interval: float = 5.0
    max_poll_errors: int = 10
    max_history: int = 50
    proxy_base_url: Optional[str] = None
    browser_state_secret: Optional[str] = None

    # Application Settings
    log_level: str = "INFO"
    server_host: str = "0.0.0.0"
    server_port: int = 7860

    # Production Settings
    enable_rate_limiting: bool = True
    rate_limit_requests: int = 60  # Max requests per window
    rate_limit_window: int = 60  # Window size in seconds
    enable_health_checks: bool = True

    # Testing
    run_integration_tests: bool = False

    @property
    def max_upload_bytes(self) -> int:
        """Upload limit in bytes."""
        return self.max_upload_size_mb * 1024 * 1024

    def has_server_key(self) -> bool:
        """Whether a process-wide API key is configured."""
        return bool(self.freepik_api_key and self.freepik_api_key.strip())

    def validate_settings(self) -> None:
        """Validate values that would otherwise fail at request time.

        Raises:
            ValueError: If a setting is out of range
        """
        if self.max_upload_size_mb <= 0:
            raise ValueError("MAX_UPLOAD_SIZE_MB must be positive.")

        if self.poll_interval <= 0:
            raise ValueError("POLL_INTERVAL must be positive.")

        if self.max_poll_errors < 1:
            raise ValueError("MAX_POLL_ERRORS must be at least 1.")

        if self.request_timeout is not None and self.request_timeout <= 0:
            raise ValueError("REQUEST_TIMEOUT must be positive when set.")


# Global settings instance
settings = Settings()

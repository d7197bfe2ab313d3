"""
=============================================================================
APPLICATION CONFIGURATION
=============================================================================

Centralized configuration for the demo application.

    ┌─────────────────────────────────────────────────────────────────────┐
    │                    CONFIGURATION HIERARCHY                          │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                      │
    │   Priority (highest to lowest):                                     │
    │                                                                      │
    │   1. Command-line arguments                                         │
    │      └── python -m httpbind --port 8888                            │
    │                                                                      │
    │   2. Environment variables                                          │
    │      └── HTTPBIND_PORT=8888 python -m httpbind                     │
    │                                                                      │
    │   3. Default values (in this dataclass)                            │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

Validation happens once at startup (validate()), so a bad value stops
the process before the first request instead of failing on it.

=============================================================================
"""

import os
from dataclasses import dataclass, replace
from typing import Optional


LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")
LOG_FORMATS = ("text", "json")


def _env_int(name: str, default: int) -> int:
    value = os.getenv(name)
    if value is None or value == "":
        return default
    try:
        return int(value)
    except ValueError:
        raise ValueError(f"{name} must be an integer, got {value!r}") from None


@dataclass
class AppConfig:
    """
    Configuration for the httpbind demo application.

    =========================================================================
    CONFIGURATION GROUPS
    =========================================================================

    NETWORK
    - host, port

    REQUEST LIMITS AND UPLOADS
    - max_request_size, max_memory_file_size, upload_dir

    BINDING
    - time_format

    LOGGING
    - log_level, log_format, log_file, error_log_file

    =========================================================================
    """

    # ─────────────────────────────────────────────────────────────────────
    # NETWORK
    # ─────────────────────────────────────────────────────────────────────

    host: str = "127.0.0.1"
    """Interface to listen on. "0.0.0.0" for all interfaces."""

    port: int = 8888
    """Port to listen on."""

    # ─────────────────────────────────────────────────────────────────────
    # REQUEST LIMITS AND UPLOADS
    # ─────────────────────────────────────────────────────────────────────

    max_request_size: int = 32 * 1024 * 1024  # 32 MB
    """
    Largest accepted request body in bytes. Bigger bodies get 413
    before any binding happens.
    """

    max_memory_file_size: int = 1024 * 1024  # 1 MB
    """
    Multipart file parts up to this size stay in memory; larger ones
    spill to a temporary file.
    """

    upload_dir: str = "uploads"
    """
    Where the upload endpoints save files.
    """

    # ─────────────────────────────────────────────────────────────────────
    # BINDING
    # ─────────────────────────────────────────────────────────────────────

    time_format: str = "%Y-%m-%d"
    """strptime format for date fields that do not declare their own."""

    # ─────────────────────────────────────────────────────────────────────
    # LOGGING
    # ─────────────────────────────────────────────────────────────────────

    log_level: str = "INFO"
    """Root logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)."""

    log_format: str = "text"
    """Access log format: 'text' (one line) or 'json'."""

    log_file: Optional[str] = None
    """If set, every log record is also written here (e.g. "httpbind.log")."""

    error_log_file: Optional[str] = None
    """If set, ERROR and above are also written here (e.g. "httpbind.err.log")."""

    # ─────────────────────────────────────────────────────────────────────
    # SERVER IDENTITY
    # ─────────────────────────────────────────────────────────────────────

    server_name: str = "httpbind/1.0"
    """Value of the Server response header."""

    @classmethod
    def from_env(cls) -> "AppConfig":
        """
        Create configuration from environment variables.

        =====================================================================
        ENVIRONMENT VARIABLES
        =====================================================================

        HTTPBIND_HOST                  (default: 127.0.0.1)
        HTTPBIND_PORT                  (default: 8888)
        HTTPBIND_MAX_REQUEST_SIZE      bytes (default: 32 MB)
        HTTPBIND_MAX_MEMORY_FILE_SIZE  bytes (default: 1 MB)
        HTTPBIND_UPLOAD_DIR            (default: uploads)
        HTTPBIND_TIME_FORMAT           (default: %Y-%m-%d)
        HTTPBIND_LOG_LEVEL             (default: INFO)
        HTTPBIND_LOG_FORMAT            text | json (default: text)
        HTTPBIND_LOG_FILE              (default: none)
        HTTPBIND_ERROR_LOG_FILE        (default: none)

        =====================================================================
        """
        defaults = cls()
        return cls(
            host=os.getenv("HTTPBIND_HOST", defaults.host),
            port=_env_int("HTTPBIND_PORT", defaults.port),
            max_request_size=_env_int("HTTPBIND_MAX_REQUEST_SIZE", defaults.max_request_size),
            max_memory_file_size=_env_int(
                "HTTPBIND_MAX_MEMORY_FILE_SIZE", defaults.max_memory_file_size
            ),
            upload_dir=os.getenv("HTTPBIND_UPLOAD_DIR", defaults.upload_dir),
            time_format=os.getenv("HTTPBIND_TIME_FORMAT", defaults.time_format),
            log_level=os.getenv("HTTPBIND_LOG_LEVEL", defaults.log_level).upper(),
            log_format=os.getenv("HTTPBIND_LOG_FORMAT", defaults.log_format).lower(),
            log_file=os.getenv("HTTPBIND_LOG_FILE") or None,
            error_log_file=os.getenv("HTTPBIND_ERROR_LOG_FILE") or None,
        )

    def with_overrides(self, **overrides) -> "AppConfig":
        """Copy with the given fields replaced; None values are ignored."""
        return replace(self, **{k: v for k, v in overrides.items() if v is not None})

    def validate(self) -> None:
        """
        Fail fast on invalid values.

        Raises:
            ValueError: Describing the first invalid setting.
        """
        if not 0 < self.port < 65536:
            raise ValueError(f"Invalid port: {self.port}. Must be 1-65535.")

        if self.max_request_size < 1:
            raise ValueError("max_request_size must be >= 1")

        if self.max_memory_file_size < 0:
            raise ValueError("max_memory_file_size must be >= 0")

        if not self.upload_dir:
            raise ValueError("upload_dir must not be empty")

        if not self.time_format:
            raise ValueError("time_format must not be empty")

        if self.log_level.upper() not in LOG_LEVELS:
            raise ValueError(f"Invalid log_level: {self.log_level}. Must be one of {LOG_LEVELS}")

        if self.log_format not in LOG_FORMATS:
            raise ValueError(f"Invalid log_format: {self.log_format}. Must be one of {LOG_FORMATS}")

    def form_config(self) -> dict:
        """Settings handed to python-multipart for every request."""
        return {
            "MAX_MEMORY_FILE_SIZE": self.max_memory_file_size,
            "MAX_BODY_SIZE": self.max_request_size,
        }

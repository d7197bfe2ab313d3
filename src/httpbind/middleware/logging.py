"""
=============================================================================
ACCESS LOG MIDDLEWARE
=============================================================================

One line per request on the "httpbind.access" logger.

=============================================================================
LOG FORMATS
=============================================================================

    TEXT (default):
    ┌─────────────────────────────────────────────────────────────────────┐
    │ 127.0.0.1 - [Mon, 16 Apr 2018 10:55:36 CST] "POST /postquery       │
    │ HTTP/1.1 200 512.3µs "curl/8.0.1" "                                 │
    │ ─────────   ─────────────────────────────   ──── ────────── ──────  │
    │ client ip   RFC 1123 timestamp              method path proto ...   │
    │                                                                      │
    │ ... status, latency, "user agent", error message (empty if none)    │
    └─────────────────────────────────────────────────────────────────────┘

    JSON:
    ┌─────────────────────────────────────────────────────────────────────┐
    │ {"client_ip": "127.0.0.1", "timestamp": "...", "method": "POST",    │
    │  "path": "/postquery", "proto": "HTTP/1.1", "status_code": 200,     │
    │  "latency_ms": 0.51, "user_agent": "curl/8.0.1", "error": ""}      │
    └─────────────────────────────────────────────────────────────────────┘

Responses with status >= 500 are logged at ERROR so that an error-only
file handler (see configure_logging) collects them.

=============================================================================
"""

import json
import logging
import time
from dataclasses import dataclass
from datetime import datetime
from typing import Dict, Any, List, Optional

from .base import Middleware, NextHandler
from ..http.request import HTTPRequest
from ..http.response import HTTPResponse


logger = logging.getLogger("httpbind.access")

# time.RFC1123 in the format the access line has always used
RFC1123 = "%a, %d %b %Y %H:%M:%S %Z"


def format_latency(seconds: float) -> str:
    """
    Human duration with a unit that keeps the number readable:

        0.0000042 → "4.2µs"    0.0123 → "12.3ms"    2.5 → "2.5s"
    """
    if seconds < 1e-6:
        return f"{seconds * 1e9:.0f}ns"
    if seconds < 1e-3:
        return f"{seconds * 1e6:.1f}µs"
    if seconds < 1:
        return f"{seconds * 1e3:.1f}ms"
    return f"{seconds:.3f}s"


@dataclass
class RequestLog:
    """One access log entry."""

    client_ip: str
    timestamp: datetime
    method: str
    path: str
    proto: str
    status_code: int
    latency: float          # seconds
    user_agent: str
    error: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "client_ip": self.client_ip,
            "timestamp": self.timestamp.isoformat(),
            "method": self.method,
            "path": self.path,
            "proto": self.proto,
            "status_code": self.status_code,
            "latency_ms": round(self.latency * 1000, 2),
            "user_agent": self.user_agent,
            "error": self.error,
        }

    def to_text(self) -> str:
        return (
            f'{self.client_ip} - [{self.timestamp.strftime(RFC1123)}] '
            f'"{self.method} {self.path} {self.proto} {self.status_code} '
            f'{format_latency(self.latency)} "{self.user_agent}" {self.error}"'
        )


class LoggingMiddleware(Middleware):
    """
    Access log middleware. Put it first so it sees every request,
    including the ones Recovery turned into 500s.

        pipeline.add(LoggingMiddleware(log_format="json", skip_paths=["/health"]))
    """

    def __init__(
        self,
        log_format: str = "text",
        log_level: int = logging.INFO,
        skip_paths: Optional[List[str]] = None,
    ):
        """
        Args:
            log_format: "text" (the line above) or "json".
            log_level: Level for successful and 4xx requests.
            skip_paths: Paths never logged.
        """
        if log_format not in ("text", "json"):
            raise ValueError(f"log_format must be 'text' or 'json', got {log_format!r}")
        self.log_format = log_format
        self.log_level = log_level
        self.skip_paths = set(skip_paths or [])

    def __call__(self, request: HTTPRequest, next: NextHandler) -> HTTPResponse:
        start = time.perf_counter()
        timestamp = datetime.now().astimezone()

        try:
            response = next(request)
        except Exception as e:
            latency = time.perf_counter() - start
            logger.error(
                f"Request failed: {request.method} {request.path} "
                f"- {type(e).__name__}: {e} ({format_latency(latency)})"
            )
            raise

        if request.path in self.skip_paths:
            return response

        entry = RequestLog(
            client_ip=request.client_address[0] or "-",
            timestamp=timestamp,
            method=request.method,
            path=request.path,
            proto=request.version,
            status_code=int(response.status),
            latency=time.perf_counter() - start,
            user_agent=request.user_agent,
            error=response.error_message,
        )

        level = logging.ERROR if entry.status_code >= 500 else self.log_level
        if self.log_format == "json":
            logger.log(level, json.dumps(entry.to_dict(), ensure_ascii=False))
        else:
            logger.log(level, entry.to_text())

        return response

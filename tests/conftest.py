"""
pytest configuration and fixtures.
"""

from typing import Callable, Dict, Iterable, Optional, Tuple
import pytest

# Add src to path for imports
import sys
from pathlib import Path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from httpbind import AppConfig, create_app
from httpbind.binding import Binder, ValidatorRegistry
from httpbind.http import HTTPRequest


BOUNDARY = "----httpbindTestBoundary7MA4YWxkTrZu0gW"


@pytest.fixture
def sample_get_request() -> bytes:
    """Sample HTTP GET request."""
    return (
        b"GET /api/users?page=1&limit=10 HTTP/1.1\r\n"
        b"Host: localhost:8888\r\n"
        b"User-Agent: pytest\r\n"
        b"Accept: application/json\r\n"
        b"Connection: keep-alive\r\n"
        b"\r\n"
    )


@pytest.fixture
def sample_post_request() -> bytes:
    """Sample HTTP POST request with JSON body."""
    body = b'{"content": "this is a json."}'
    head = (
        b"POST /upload_json HTTP/1.1\r\n"
        b"Host: localhost:8888\r\n"
        b"Content-Type: application/json\r\n"
        b"Content-Length: %d\r\n"
        b"Connection: close\r\n"
        b"\r\n"
    ) % len(body)
    return head + body


def build_multipart(
    fields: Iterable[Tuple[str, str]] = (),
    files: Iterable[Tuple[str, str, bytes]] = (),
    boundary: str = BOUNDARY,
) -> Tuple[bytes, str]:
    """
    Encode a multipart/form-data body.

    Returns:
        (body, content type header value)
    """
    parts = []
    for name, value in fields:
        parts.append(
            f"--{boundary}\r\n"
            f'Content-Disposition: form-data; name="{name}"\r\n'
            f"\r\n".encode() + value.encode() + b"\r\n"
        )
    for name, filename, content in files:
        parts.append(
            f"--{boundary}\r\n"
            f'Content-Disposition: form-data; name="{name}"; filename="{filename}"\r\n'
            f"Content-Type: application/octet-stream\r\n"
            f"\r\n".encode() + content + b"\r\n"
        )
    parts.append(f"--{boundary}--\r\n".encode())
    return b"".join(parts), f"multipart/form-data; boundary={boundary}"


@pytest.fixture
def multipart() -> Callable[..., Tuple[bytes, str]]:
    """Factory: multipart(fields=[(name, value)], files=[(name, filename, bytes)])."""
    return build_multipart


@pytest.fixture
def make_request() -> Callable[..., HTTPRequest]:
    """
    Factory for HTTPRequest objects without going through the parser.

        make_request("POST", "/postquery", query="id=1&page=2",
                     body=b"...", content_type="application/json")
    """
    from urllib.parse import parse_qs

    def factory(
        method: str = "GET",
        path: str = "/",
        query: str = "",
        body: bytes = b"",
        content_type: Optional[str] = None,
        headers: Optional[Dict[str, str]] = None,
        path_params: Optional[Dict[str, str]] = None,
    ) -> HTTPRequest:
        all_headers = {k.lower(): v for k, v in (headers or {}).items()}
        if content_type:
            all_headers["content-type"] = content_type
        if body:
            all_headers["content-length"] = str(len(body))
        return HTTPRequest(
            method=method,
            path=path,
            headers=all_headers,
            query_params=parse_qs(query, keep_blank_values=True),
            body=body,
            path_params=dict(path_params or {}),
            client_address=("127.0.0.1", 54321),
        )

    return factory


@pytest.fixture
def registry() -> ValidatorRegistry:
    """A fresh registry with the built-in validators."""
    return ValidatorRegistry()


@pytest.fixture
def binder(registry: ValidatorRegistry) -> Binder:
    return Binder(registry)


@pytest.fixture
def config(tmp_path: Path) -> AppConfig:
    """Test configuration saving uploads under a temporary directory."""
    return AppConfig(
        port=8888,
        upload_dir=str(tmp_path / "uploads"),
        log_level="WARNING",
    )


@pytest.fixture
def app(config: AppConfig):
    """The example application, built fresh for each test."""
    return create_app(config)

"""
=============================================================================
HTTP RESPONSE BUILDER
=============================================================================

What handlers return. A response is a status, headers and one of three
body kinds:

    ┌─────────────────────────────────────────────────────────────────────┐
    │                        RESPONSE BODY KINDS                          │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                      │
    │   text      ResponseBuilder().text("hello, alice, /send")           │
    │             → text/plain; charset=utf-8                              │
    │                                                                      │
    │   data      ResponseBuilder().json({"ids": {"a": "1234"}})          │
    │             → application/json; charset=utf-8                        │
    │                                                                      │
    │   file      ResponseBuilder().file_path("uploads/report.pdf")       │
    │             → type guessed from the extension, streamed by the      │
    │               transport, never loaded by the handler                 │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

Simple cases use the one-liners at the bottom of the module:

    return ok({"message": "Success"})
    return bad_request("filename query parameter is required")
    return validation_failed(result)       # 400 with every bind error

=============================================================================
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from email.utils import format_datetime
from http import HTTPStatus
from pathlib import Path
from typing import Any, Dict, Iterator, List, Optional, Union
import json
import mimetypes


DEFAULT_SERVER_NAME = "httpbind/1.0"

# Read size when streaming a file body.
FILE_CHUNK_SIZE = 64 * 1024


@dataclass
class HTTPResponse:
    """
    Represents an HTTP response to be sent to the client.

    Use ResponseBuilder for a more convenient way to construct responses.

    =========================================================================
    RESPONSE LIFECYCLE
    =========================================================================

        Handler returns          transport                 client
        HTTPResponse    ─────►   iter_body() / to_bytes()  ─────►  bytes
            │
        HTTPResponse(
          status=200,
          headers={...},
          body=b"..."          or  file=Path("uploads/a.txt")
        )

    =========================================================================
    """

    status: HTTPStatus = HTTPStatus.OK
    headers: Dict[str, str] = field(default_factory=dict)
    body: bytes = b""
    file: Optional[Path] = None
    version: str = "HTTP/1.1"
    # Shown in the access log, never sent to the client
    error_message: str = field(default="", repr=False)

    @property
    def status_line(self) -> str:
        """Format: HTTP-VERSION SP STATUS-CODE SP REASON-PHRASE."""
        return f"{self.version} {self.status.value} {self.status.phrase}"

    @property
    def status_text(self) -> str:
        """WSGI style status: "200 OK"."""
        return f"{self.status.value} {self.status.phrase}"

    @property
    def content_length(self) -> int:
        if self.file is not None:
            return self.file.stat().st_size
        return len(self.body)

    def set_header(self, name: str, value: str) -> "HTTPResponse":
        """Set a response header. Returns self for chaining."""
        self.headers[name] = value
        return self

    def set_content_type(self, content_type: str) -> "HTTPResponse":
        return self.set_header("Content-Type", content_type)

    def set_body(self, body: Union[str, bytes]) -> "HTTPResponse":
        """Set the body. Strings are encoded as UTF-8."""
        if isinstance(body, str):
            self.body = body.encode("utf-8")
        else:
            self.body = body
        self.file = None
        return self

    def json(self) -> Any:
        """Decode a JSON body. Mostly useful in tests."""
        return json.loads(self.body.decode("utf-8"))

    @property
    def text(self) -> str:
        return self.body.decode("utf-8")

    def iter_body(self) -> Iterator[bytes]:
        """Yield the body in chunks, streaming file bodies from disk."""
        if self.file is None:
            if self.body:
                yield self.body
            return
        with open(self.file, "rb") as f:
            while True:
                chunk = f.read(FILE_CHUNK_SIZE)
                if not chunk:
                    break
                yield chunk

    def header_items(self, server_name: str = DEFAULT_SERVER_NAME) -> List[tuple]:
        """
        Headers to send, with Content-Length, Date and Server filled in
        when the handler did not set them.
        """
        response_headers = dict(self.headers)
        if "Content-Length" not in response_headers:
            response_headers["Content-Length"] = str(self.content_length)
        if "Date" not in response_headers:
            response_headers["Date"] = format_http_date(datetime.now(timezone.utc))
        if "Server" not in response_headers:
            response_headers["Server"] = server_name
        return list(response_headers.items())

    def to_bytes(self, server_name: str = DEFAULT_SERVER_NAME) -> bytes:
        """
        Serialize the full response.

            HTTP/1.1 200 OK\\r\\n
            Content-Type: application/json\\r\\n
            Content-Length: 27\\r\\n
            \\r\\n
            {"message": "Hello"}
        """
        lines = [self.status_line]
        for name, value in self.header_items(server_name):
            lines.append(f"{name}: {value}")
        lines.append("")
        header_bytes = "\r\n".join(lines).encode("utf-8") + b"\r\n"
        return header_bytes + b"".join(self.iter_body())


class ResponseBuilder:
    """
    Fluent builder for constructing HTTP responses.

        response = (ResponseBuilder()
            .status(HTTPStatus.CREATED)
            .header("Location", "/users/123")
            .json({"id": 123})
            .build())
    """

    def __init__(self, server_name: str = DEFAULT_SERVER_NAME):
        self._status = HTTPStatus.OK
        self._headers: Dict[str, str] = {}
        self._body = b""
        self._file: Optional[Path] = None
        self._server_name = server_name

    def status(self, status: Union[HTTPStatus, int]) -> "ResponseBuilder":
        self._status = HTTPStatus(status)
        return self

    def header(self, name: str, value: str) -> "ResponseBuilder":
        self._headers[name] = value
        return self

    def headers(self, headers: Dict[str, str]) -> "ResponseBuilder":
        self._headers.update(headers)
        return self

    def content_type(self, content_type: str) -> "ResponseBuilder":
        self._headers["Content-Type"] = content_type
        return self

    def body(self, body: Union[str, bytes]) -> "ResponseBuilder":
        if isinstance(body, str):
            body = body.encode("utf-8")
        self._body = body
        self._file = None
        return self

    def text(self, text: str, content_type: str = "text/plain; charset=utf-8") -> "ResponseBuilder":
        self.body(text)
        self._headers["Content-Type"] = content_type
        return self

    def json(self, data: Any, pretty: bool = False) -> "ResponseBuilder":
        """
        Serialize data as a JSON body.

        Non-JSON values (dates, paths) are written with str().
        """
        indent = 2 if pretty else None
        self._body = json.dumps(
            data, indent=indent, ensure_ascii=False, default=str
        ).encode("utf-8")
        self._file = None
        self._headers["Content-Type"] = "application/json; charset=utf-8"
        return self

    def file_path(
        self,
        path: Union[str, Path],
        download_name: Optional[str] = None,
    ) -> "ResponseBuilder":
        """
        Reference a file on disk as the body.

        The file is opened when the response is sent, not here.

        Args:
            path: File to send.
            download_name: If given, ask the client to save the file
                           under this name (Content-Disposition).
        """
        self._file = Path(path)
        self._body = b""
        content_type, _ = mimetypes.guess_type(self._file.name)
        self._headers["Content-Type"] = content_type or "application/octet-stream"
        if download_name:
            self._headers["Content-Disposition"] = f'attachment; filename="{download_name}"'
        return self

    def build(self) -> HTTPResponse:
        return HTTPResponse(
            status=self._status,
            headers=self._headers,
            body=self._body,
            file=self._file,
        )

    def to_bytes(self) -> bytes:
        return self.build().to_bytes(self._server_name)


# =============================================================================
# UTILITY FUNCTIONS
# =============================================================================

def format_http_date(dt: datetime) -> str:
    """
    Format a datetime as an HTTP-date (RFC 7231), always in GMT.

        Wed, 01 Jan 2026 12:00:00 GMT
    """
    return format_datetime(dt.astimezone(timezone.utc), usegmt=True)


# =============================================================================
# CONVENIENCE FUNCTIONS
# =============================================================================

def ok(body: Union[str, bytes, dict, list] = "", content_type: Optional[str] = None) -> HTTPResponse:
    """
    200 OK. dict/list become JSON, str becomes text, bytes stay raw.
    """
    builder = ResponseBuilder().status(HTTPStatus.OK)

    if isinstance(body, (dict, list)):
        builder.json(body)
    elif isinstance(body, str):
        builder.text(body, content_type or "text/plain; charset=utf-8")
    else:
        builder.body(body)
        if content_type:
            builder.content_type(content_type)

    return builder.build()


def created(body: Union[str, dict, list] = "", location: Optional[str] = None) -> HTTPResponse:
    builder = ResponseBuilder().status(HTTPStatus.CREATED)
    if isinstance(body, (dict, list)):
        builder.json(body)
    elif body:
        builder.text(body)
    if location:
        builder.header("Location", location)
    return builder.build()


def error(status: HTTPStatus, message: str, **extra: Any) -> HTTPResponse:
    """JSON error body: {"error": message, **extra}."""
    payload = {"error": message}
    payload.update(extra)
    return ResponseBuilder().status(status).json(payload).build()


def bad_request(message: str = "Bad Request") -> HTTPResponse:
    return error(HTTPStatus.BAD_REQUEST, message)


def validation_failed(result) -> HTTPResponse:
    """
    400 listing every error of a failed bind:

        {"error": "validation failed",
         "errors": [{"field": "check_out", "rule": "gtfield", ...}]}
    """
    response = error(
        HTTPStatus.BAD_REQUEST,
        "validation failed",
        errors=[e.to_dict() for e in result.errors],
    )
    response.error_message = "; ".join(f"{e.field}: {e.rule}" for e in result.errors)
    return response


def not_found(message: str = "Not Found") -> HTTPResponse:
    return error(HTTPStatus.NOT_FOUND, message)


def conflict(message: str = "Conflict") -> HTTPResponse:
    """409. Used when an upload target already exists."""
    return error(HTTPStatus.CONFLICT, message)


def payload_too_large(message: str = "Payload Too Large") -> HTTPResponse:
    return error(HTTPStatus.REQUEST_ENTITY_TOO_LARGE, message)


def unsupported_media_type(message: str = "Unsupported Media Type") -> HTTPResponse:
    return error(HTTPStatus.UNSUPPORTED_MEDIA_TYPE, message)


def method_not_allowed(allowed_methods: List[str]) -> HTTPResponse:
    """405 with the Allow header listing valid methods (RFC 7231)."""
    return (ResponseBuilder()
        .status(HTTPStatus.METHOD_NOT_ALLOWED)
        .header("Allow", ", ".join(allowed_methods))
        .json({"error": "Method Not Allowed", "allowed": allowed_methods})
        .build())


def internal_error(message: str = "Internal Server Error") -> HTTPResponse:
    """500. Keep the message generic; details belong in the log."""
    return error(HTTPStatus.INTERNAL_SERVER_ERROR, message)

"""
=============================================================================
HTTP REQUEST MODEL
=============================================================================

HTTPRequest is the inbound side of every handler. It exposes each place
request data can live, one accessor family per location:

    ┌─────────────────────────────────────────────────────────────────────┐
    │                    WHERE REQUEST DATA LIVES                         │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                      │
    │   POST /user/alice/send?ids[a]=1&ids[b]=2&page=3 HTTP/1.1           │
    │         ─────┬──────── ──────────┬─────────────                      │
    │              │                   │                                   │
    │        path params          query string                             │
    │        get_param()          get_query() / get_query_list()          │
    │                             get_query_map("ids") → {a: 1, b: 2}     │
    │                                                                      │
    │   Content-Type: multipart/form-data; boundary=xyz   ◄── headers     │
    │                                                     get_header()    │
    │                                                                      │
    │   --xyz                                                              │
    │   Content-Disposition: form-data; name="names"      ◄── form        │
    │   ...                                               get_form()      │
    │   --xyz                                             get_form_list() │
    │   Content-Disposition: form-data; name="file";      ◄── files       │
    │                        filename="a.txt"             get_file()      │
    │   ...                                               get_files()     │
    │                                                                      │
    │   (or any other body)                               ◄── read_body() │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

=============================================================================
THE BODY IS READ ONCE
=============================================================================

The body is a stream owned by this request. Exactly one consumer may
read it:

    request.read_body()        → bytes
    request.read_body()        → BodyAlreadyConsumed  (never b"" silently)

Posted form fields and files are parsed lazily from the body on first
access and cached, so `form` and `files` can be touched repeatedly; but
once they have been parsed the raw body is gone, and the other way round.
Headers, query and path params never depend on the body.

=============================================================================
BACKGROUND WORK
=============================================================================

A background task must not hold on to the live request. Take a
snapshot of what it needs before the handler returns:

    snap = request.snapshot()      # no body, plain copies
    executor.submit(audit, snap)

=============================================================================
"""

from dataclasses import dataclass, field
from io import BytesIO
from types import MappingProxyType
from typing import Any, BinaryIO, Dict, List, Mapping, Optional, Tuple, Union
from urllib.parse import parse_qs, urlparse, unquote
import json
import logging
import re

from python_multipart.exceptions import FormParserError
from python_multipart.multipart import create_form_parser

from ..binding.errors import BodyAlreadyConsumed, MalformedBodyError
from ..binding.schema import bracket_map
from ..binding.uploads import UploadedFile


logger = logging.getLogger(__name__)

FORM_URLENCODED = "application/x-www-form-urlencoded"
MULTIPART_FORM = "multipart/form-data"

# Chunk size used when feeding the multipart parser.
_CHUNK = 64 * 1024


class HTTPParseError(Exception):
    """
    Raised when raw HTTP request bytes cannot be parsed.

    Carries the HTTP status code to answer with:

        400 Bad Request                  - malformed syntax
        405 Method Not Allowed           - unknown method
        413 Payload Too Large            - over the size limit
        505 HTTP Version Not Supported   - unknown version
    """

    def __init__(self, message: str, status_code: int = 400):
        super().__init__(message)
        self.status_code = status_code


@dataclass(frozen=True)
class RequestSnapshot:
    """
    Immutable copy of the body-independent parts of a request.

    Safe to hand to a background task after the handler has returned.
    """
    method: str
    path: str
    headers: Mapping[str, str]
    query_params: Mapping[str, Tuple[str, ...]]
    path_params: Mapping[str, str]
    client_address: Tuple[str, int]

    def get_header(self, name: str, default: str = "") -> str:
        return self.headers.get(name.lower(), default)

    def get_query(self, name: str, default: Optional[str] = None) -> Optional[str]:
        values = self.query_params.get(name, ())
        return values[0] if values else default


@dataclass
class HTTPRequest:
    """
    A request as seen by handlers and by the binder.

    =========================================================================
    ATTRIBUTES
    =========================================================================

        method:         GET, POST, ...
        path:           Path WITHOUT query string, URL-decoded
        version:        "HTTP/1.1" or "HTTP/1.0"
        headers:        Header dict with LOWERCASE keys
        query_params:   "?a=1&a=2&b=3" → {"a": ["1", "2"], "b": ["3"]}
        path_params:    Filled by the router, in pattern order:
                        "/user/:name/*action" on "/user/alice/send"
                        → {"name": "alice", "action": "/send"}
        body:           Single-read binary stream (bytes are wrapped)
        client_address: (ip, port)
        form_params:    Pre-parsed form fields; None = parse from body
        file_params:    Pre-parsed file parts; None = parse from body
        form_config:    python-multipart settings (spill size, tmp dir)

    =========================================================================
    """

    method: str
    path: str
    version: str = "HTTP/1.1"

    headers: Dict[str, str] = field(default_factory=dict)
    query_params: Dict[str, List[str]] = field(default_factory=dict)
    body: Union[BinaryIO, bytes] = b""

    path_params: Dict[str, str] = field(default_factory=dict)

    client_address: Tuple[str, int] = ("", 0)

    form_params: Optional[Dict[str, List[str]]] = None
    file_params: Optional[Dict[str, List[UploadedFile]]] = None
    form_config: Dict[str, Any] = field(default_factory=dict, repr=False)

    _body_consumed: bool = field(default=False, repr=False)
    _form_error: Optional[MalformedBodyError] = field(default=None, repr=False)

    def __post_init__(self):
        if isinstance(self.body, (bytes, bytearray)):
            self.body = BytesIO(bytes(self.body))

    # =========================================================================
    # HEADER-DERIVED PROPERTIES
    # =========================================================================

    @property
    def content_type(self) -> Optional[str]:
        """Media type without parameters: "application/json; charset=utf-8" → "application/json"."""
        ct = self.headers.get("content-type", "")
        return ct.split(";")[0].strip().lower() or None

    @property
    def content_length(self) -> int:
        try:
            return int(self.headers.get("content-length", 0))
        except ValueError:
            return 0

    @property
    def host(self) -> str:
        return self.headers.get("host", "")

    @property
    def user_agent(self) -> str:
        return self.headers.get("user-agent", "")

    @property
    def is_json(self) -> bool:
        ct = self.content_type or ""
        return ct == "application/json" or ct.endswith("+json")

    @property
    def is_form(self) -> bool:
        return self.content_type in (FORM_URLENCODED, MULTIPART_FORM)

    # =========================================================================
    # HEADERS, QUERY, PATH
    # =========================================================================

    def get_header(self, name: str, default: str = "") -> str:
        """Case-insensitive header lookup."""
        return self.headers.get(name.lower(), default)

    def has_header(self, name: str) -> bool:
        return name.lower() in self.headers

    def get_query(self, name: str, default: Optional[str] = None) -> Optional[str]:
        """First value of a query parameter: /users?page=1&page=2 → "1"."""
        values = self.query_params.get(name, [])
        return values[0] if values else default

    def get_query_list(self, name: str) -> List[str]:
        """All values: /users?id=1&id=2 → ["1", "2"]."""
        return list(self.query_params.get(name, []))

    def get_query_map(self, name: str) -> Dict[str, str]:
        """Bracket map: ?ids[a]=1234&ids[b]=hello → {"a": "1234", "b": "hello"}."""
        return bracket_map(self.query_params, name)

    def get_param(self, name: str, default: Optional[str] = None) -> Optional[str]:
        """Router-captured path parameter."""
        return self.path_params.get(name, default)

    # =========================================================================
    # BODY
    # =========================================================================

    @property
    def body_consumed(self) -> bool:
        return self._body_consumed

    def read_body(self) -> bytes:
        """
        Read the whole body. Works exactly once per request.

        Raises:
            BodyAlreadyConsumed: On any read after the first (including
                                 the implicit read done by form parsing).
        """
        if self._body_consumed:
            raise BodyAlreadyConsumed()
        self._body_consumed = True
        return self.body.read()

    def read_json(self) -> Any:
        """
        Read the body and decode it as JSON.

        Raises:
            BodyAlreadyConsumed: If the body was already read.
            ValueError: If the body is not valid UTF-8 JSON.
        """
        data = self.read_body()
        return json.loads(data.decode("utf-8"))

    # =========================================================================
    # POSTED FORM AND FILES
    # =========================================================================

    @property
    def form(self) -> Dict[str, List[str]]:
        """
        Posted form fields (urlencoded or multipart), parsed on first use.

        Bodies of any other Content-Type yield an empty form and are left
        unread.

        Raises:
            BodyAlreadyConsumed: If the body was read before parsing.
            MalformedBodyError: If the body cannot be decoded.
        """
        if self.form_params is None:
            self._parse_form()
        return self.form_params

    @property
    def files(self) -> Dict[str, List[UploadedFile]]:
        """Multipart file parts by field name, parsed on first use."""
        if self.file_params is None:
            self._parse_form()
        return self.file_params

    def get_form(self, name: str, default: Optional[str] = None) -> Optional[str]:
        values = self.form.get(name, [])
        return values[0] if values else default

    def get_form_list(self, name: str) -> List[str]:
        return list(self.form.get(name, []))

    def get_form_map(self, name: str) -> Dict[str, str]:
        """Bracket map over posted fields: names[first]=a&names[second]=b."""
        return bracket_map(self.form, name)

    def get_file(self, name: str) -> Optional[UploadedFile]:
        """First file uploaded under name, or None."""
        parts = self.files.get(name, [])
        return parts[0] if parts else None

    def get_files(self, name: str) -> List[UploadedFile]:
        return list(self.files.get(name, []))

    def _parse_form(self) -> None:
        # The body is gone after a failed parse; keep failing the same way
        if self._form_error is not None:
            raise self._form_error

        fields: Dict[str, List[str]] = {}
        files: Dict[str, List[UploadedFile]] = {}

        try:
            if self.content_type == FORM_URLENCODED:
                data = self.read_body()
                try:
                    fields = parse_qs(data.decode("utf-8"), keep_blank_values=True)
                except UnicodeDecodeError as e:
                    raise MalformedBodyError(f"Form body is not valid UTF-8: {e}") from None
            elif self.content_type == MULTIPART_FORM:
                self._parse_multipart(fields, files)
        except MalformedBodyError as e:
            self._form_error = e
            raise

        if self.form_params is None:
            self.form_params = fields
        if self.file_params is None:
            self.file_params = files

    def _parse_multipart(
        self,
        fields: Dict[str, List[str]],
        files: Dict[str, List[UploadedFile]],
    ) -> None:
        """
        Feed the body through python-multipart.

        Small parts stay in memory; parts above MAX_MEMORY_FILE_SIZE
        spill to a temporary file (or UPLOAD_DIR when configured).
        """
        def on_field(part) -> None:
            name = (part.field_name or b"").decode("utf-8", "replace")
            value = part.value
            fields.setdefault(name, []).append(
                value.decode("utf-8", "replace") if value is not None else ""
            )

        def on_file(part) -> None:
            name = (part.field_name or b"").decode("utf-8", "replace")
            stream = part.file_object
            stream.seek(0)
            files.setdefault(name, []).append(UploadedFile(
                field_name=name,
                filename=(part.file_name or b"").decode("utf-8", "replace"),
                stream=stream,
                size=part.size,
            ))

        parser_headers = {"Content-Type": self.headers.get("content-type", "")}
        data = self.read_body()
        try:
            parser = create_form_parser(
                parser_headers, on_field, on_file, config=dict(self.form_config)
            )
            for start in range(0, len(data), _CHUNK):
                parser.write(data[start:start + _CHUNK])
            parser.finalize()
        except FormParserError as e:
            logger.warning(f"Malformed multipart body on {self.method} {self.path}: {e}")
            raise MalformedBodyError(f"Malformed multipart body: {e}") from None

    def close(self) -> None:
        """Close uploaded file streams. Called once the response is built."""
        for parts in (self.file_params or {}).values():
            for upload in parts:
                upload.close()

    # =========================================================================
    # SNAPSHOT
    # =========================================================================

    def snapshot(self) -> RequestSnapshot:
        """Copy everything but the body into an immutable RequestSnapshot."""
        return RequestSnapshot(
            method=self.method,
            path=self.path,
            headers=MappingProxyType(dict(self.headers)),
            query_params=MappingProxyType(
                {k: tuple(v) for k, v in self.query_params.items()}
            ),
            path_params=MappingProxyType(dict(self.path_params)),
            client_address=tuple(self.client_address),
        )


class RequestParser:
    """
    Parses raw HTTP/1.1 request bytes into HTTPRequest objects.

    ==========================================================================
    PARSER STEPS
    ==========================================================================

        1. Size check              too large → HTTPParseError(413)
        2. Split at \\r\\n\\r\\n       missing → HTTPParseError(400)
        3. Request line            METHOD SP URI SP VERSION (400/405/505)
        4. Headers                 lowercase names, repeats joined with ", "
        5. Body                    exactly Content-Length bytes
        6. HTTPRequest             body wrapped in a single-read stream

    ==========================================================================
    """

    VALID_METHODS = {
        "GET", "POST", "PUT", "DELETE", "PATCH",
        "HEAD", "OPTIONS", "TRACE", "CONNECT",
    }

    REQUEST_LINE_PATTERN = re.compile(r"^([A-Z]+) ([^ ]+) (HTTP/\d\.\d)$")
    HEADER_PATTERN = re.compile(r"^([^:]+):\s*(.*)$")

    def __init__(
        self,
        max_request_size: int = 10 * 1024 * 1024,
        form_config: Optional[Dict[str, Any]] = None,
    ):
        """
        Args:
            max_request_size: Requests above this many bytes get 413.
            form_config: python-multipart settings handed to every request.
        """
        self.max_request_size = max_request_size
        self.form_config = dict(form_config or {})

    def parse(
        self,
        data: bytes,
        client_address: Tuple[str, int] = ("", 0),
    ) -> HTTPRequest:
        """
        Parse raw request bytes.

        Raises:
            HTTPParseError: If the request is malformed.
        """
        if len(data) > self.max_request_size:
            raise HTTPParseError(f"Request too large: {len(data)} bytes", status_code=413)

        header_end = data.find(b"\r\n\r\n")
        if header_end == -1:
            raise HTTPParseError("Incomplete request: no header terminator")

        header_section = data[:header_end].decode("utf-8", errors="replace")
        body = data[header_end + 4:]

        lines = header_section.split("\r\n")
        method, path, query_params, version = self._parse_request_line(lines[0])
        headers = self._parse_headers(lines[1:])

        try:
            content_length = int(headers.get("content-length", 0))
        except ValueError:
            raise HTTPParseError(f"Invalid Content-Length: {headers['content-length']!r}")
        if len(body) < content_length:
            raise HTTPParseError(
                f"Incomplete body: expected {content_length} bytes, got {len(body)}"
            )

        return HTTPRequest(
            method=method,
            path=path,
            version=version,
            headers=headers,
            query_params=query_params,
            # Anything past Content-Length belongs to the next request.
            body=body[:content_length],
            client_address=client_address,
            form_config=self.form_config,
        )

    def _parse_request_line(
        self,
        line: str,
    ) -> Tuple[str, str, Dict[str, List[str]], str]:
        match = self.REQUEST_LINE_PATTERN.match(line)
        if not match:
            raise HTTPParseError(f"Invalid request line: {line}")

        method, uri, version = match.groups()

        if method not in self.VALID_METHODS:
            raise HTTPParseError(f"Invalid method: {method}", status_code=405)

        if version not in ("HTTP/1.0", "HTTP/1.1"):
            raise HTTPParseError(f"Unsupported HTTP version: {version}", status_code=505)

        parsed = urlparse(uri)
        path = unquote(parsed.path) or "/"
        query_params = parse_qs(parsed.query, keep_blank_values=True)

        # "GET /../../etc/passwd" must never reach a handler
        if ".." in path.split("/"):
            raise HTTPParseError("Invalid path: contains ..", status_code=400)

        return method, path, query_params, version

    def _parse_headers(self, lines: List[str]) -> Dict[str, str]:
        """
        Parse header lines into a lowercase-keyed dict.

        Obsolete line folding (continuation lines starting with
        whitespace) is appended to the previous header; repeated headers
        are joined with ", " per RFC 7230.
        """
        headers: Dict[str, str] = {}
        current_name = None

        for line in lines:
            if not line:
                continue

            if line[0] in (" ", "\t"):
                if current_name is not None:
                    headers[current_name] += " " + line.strip()
                continue

            match = self.HEADER_PATTERN.match(line)
            if not match:
                continue  # lenient: skip malformed header lines

            name, value = match.groups()
            name = name.strip().lower()
            value = value.strip()
            current_name = name

            if name in headers:
                headers[name] += ", " + value
            else:
                headers[name] = value

        return headers


def parse_request(
    data: bytes,
    client_address: Tuple[str, int] = ("", 0),
    max_size: int = 10 * 1024 * 1024,
) -> HTTPRequest:
    """One-shot helper around RequestParser."""
    return RequestParser(max_request_size=max_size).parse(data, client_address)

"""
Unit tests for HTTP request parsing and the request model.
"""

import pytest

from httpbind.binding import BodyAlreadyConsumed, MalformedBodyError
from httpbind.http.request import HTTPRequest, HTTPParseError, RequestParser, parse_request


class TestRequestParser:
    """Tests for RequestParser class."""

    def test_parse_simple_get(self, sample_get_request):
        """Test parsing a simple GET request."""
        request = parse_request(sample_get_request)

        assert request.method == "GET"
        assert request.path == "/api/users"
        assert request.version == "HTTP/1.1"
        assert request.get_header("Host") == "localhost:8888"
        assert request.user_agent == "pytest"

    def test_parse_query_parameters(self, sample_get_request):
        """Test query string parsing."""
        request = parse_request(sample_get_request)

        assert request.get_query("page") == "1"
        assert request.get_query("limit") == "10"
        assert request.get_query("missing") is None
        assert request.get_query("missing", "default") == "default"

    def test_parse_post_with_body(self, sample_post_request):
        """Test parsing POST request with a JSON body."""
        request = parse_request(sample_post_request)

        assert request.method == "POST"
        assert request.path == "/upload_json"
        assert request.content_type == "application/json"
        assert request.is_json is True
        assert request.read_json() == {"content": "this is a json."}

    def test_parse_invalid_request_line(self):
        """Test parsing request with invalid request line."""
        raw = b"GET\r\nHost: test\r\n\r\n"

        with pytest.raises(HTTPParseError):
            parse_request(raw)

    def test_parse_unknown_method(self):
        """Unknown methods answer 405."""
        raw = b"BREW /pot HTTP/1.1\r\n\r\n"

        with pytest.raises(HTTPParseError) as exc_info:
            parse_request(raw)

        assert exc_info.value.status_code == 405

    def test_parse_unsupported_version(self):
        """Only HTTP/1.0 and HTTP/1.1 are accepted."""
        raw = b"GET / HTTP/2.0\r\n\r\n"

        with pytest.raises(HTTPParseError) as exc_info:
            parse_request(raw)

        assert exc_info.value.status_code == 505

    def test_parse_missing_header_terminator(self):
        """A request without the blank line is incomplete."""
        with pytest.raises(HTTPParseError) as exc_info:
            parse_request(b"GET / HTTP/1.1\r\nHost: test\r\n")

        assert exc_info.value.status_code == 400

    def test_parse_truncated_body(self):
        """Fewer body bytes than Content-Length is a 400."""
        raw = b"POST / HTTP/1.1\r\nContent-Length: 20\r\n\r\nshort"

        with pytest.raises(HTTPParseError) as exc_info:
            parse_request(raw)

        assert "Incomplete body" in str(exc_info.value)

    def test_parse_missing_headers(self):
        """Test parsing request with no headers."""
        raw = b"GET / HTTP/1.1\r\n\r\n"
        request = parse_request(raw)

        assert request.method == "GET"
        assert request.path == "/"
        assert len(request.headers) == 0

    def test_parse_path_traversal_blocked(self):
        """Test that path traversal attempts are blocked."""
        raw = b"GET /../../../etc/passwd HTTP/1.1\r\nHost: test\r\n\r\n"

        with pytest.raises(HTTPParseError) as exc_info:
            parse_request(raw)

        assert "path" in str(exc_info.value).lower()

    def test_parse_request_too_large(self):
        """Test that oversized requests are rejected."""
        parser = RequestParser(max_request_size=100)
        raw = b"GET / HTTP/1.1\r\n" + b"X-Large: " + b"A" * 200 + b"\r\n\r\n"

        with pytest.raises(HTTPParseError) as exc_info:
            parser.parse(raw)

        assert exc_info.value.status_code == 413

    def test_path_is_url_decoded(self):
        """Percent-encoded path segments reach handlers decoded."""
        request = parse_request(b"POST /user_param/j%C3%BCrgen/send HTTP/1.1\r\n\r\n")

        assert request.path == "/user_param/jürgen/send"

    def test_repeated_headers_are_joined(self):
        """Repeated headers are combined with ', '."""
        raw = b"GET / HTTP/1.1\r\nAccept: text/html\r\nAccept: application/json\r\n\r\n"
        request = parse_request(raw)

        assert request.get_header("Accept") == "text/html, application/json"

    def test_folded_header_continuation(self):
        """Obsolete line folding is appended to the previous header."""
        raw = b"GET / HTTP/1.1\r\nX-Long: first\r\n  second\r\n\r\n"
        request = parse_request(raw)

        assert request.get_header("X-Long") == "first second"

    def test_http_version_parsing(self):
        """Test HTTP/1.0 and HTTP/1.1 version handling."""
        raw_10 = b"GET / HTTP/1.0\r\nHost: test\r\n\r\n"
        request_10 = parse_request(raw_10)
        assert request_10.version == "HTTP/1.0"

        raw_11 = b"GET / HTTP/1.1\r\nHost: test\r\n\r\n"
        request_11 = parse_request(raw_11)
        assert request_11.version == "HTTP/1.1"

    def test_content_length_handling(self):
        """Test Content-Length validation."""
        body = b"test body"
        raw = (
            b"POST / HTTP/1.1\r\n"
            b"Content-Length: 9\r\n"
            b"\r\n"
        ) + body + b"GET /next HTTP/1.1\r\n\r\n"

        request = parse_request(raw)
        assert request.content_length == 9
        assert request.read_body() == body

    def test_case_insensitive_headers(self):
        """Test that header names are case-insensitive."""
        raw = b"GET / HTTP/1.1\r\nCONTENT-TYPE: text/html\r\n\r\n"
        request = parse_request(raw)

        assert request.content_type == "text/html"
        assert request.get_header("Content-Type") == "text/html"
        assert request.get_header("content-type") == "text/html"


class TestHTTPRequest:
    """Tests for HTTPRequest dataclass."""

    def test_get_header_default(self):
        """Test get_header with default value."""
        request = HTTPRequest(method="GET", path="/")

        assert request.get_header("X-Missing") == ""
        assert request.get_header("X-Missing", "default") == "default"
        assert request.has_header("X-Missing") is False

    def test_query_list(self):
        """Test getting multiple values for same query param."""
        request = HTTPRequest(
            method="GET",
            path="/",
            query_params={"ids": ["1", "2", "3"]},
        )

        assert request.get_query_list("ids") == ["1", "2", "3"]
        assert request.get_query("ids") == "1"  # First value

    def test_query_map(self):
        """Bracket keys are collected into a map."""
        request = HTTPRequest(
            method="POST",
            path="/postmap",
            query_params={"ids[a]": ["1234"], "ids[b]": ["hello"], "other": ["x"]},
        )

        assert request.get_query_map("ids") == {"a": "1234", "b": "hello"}
        assert request.get_query_map("missing") == {}

    def test_content_type_drops_parameters(self):
        request = HTTPRequest(
            method="POST",
            path="/",
            headers={"content-type": "Application/JSON; charset=utf-8"},
        )

        assert request.content_type == "application/json"
        assert request.is_json is True
        assert request.is_form is False

    def test_vendor_json_content_type(self):
        request = HTTPRequest(
            method="POST",
            path="/",
            headers={"content-type": "application/vnd.api+json"},
        )

        assert request.is_json is True

    def test_path_params(self):
        request = HTTPRequest(
            method="POST",
            path="/user_param/alice/send",
            path_params={"name": "alice", "action": "/send"},
        )

        assert request.get_param("name") == "alice"
        assert request.get_param("action") == "/send"
        assert request.get_param("missing", "x") == "x"


class TestRequestBody:
    """The body is a single-read stream."""

    def test_second_read_raises(self, make_request):
        """A second read fails instead of returning empty data."""
        request = make_request("POST", "/upload_text", body=b"hello")

        assert request.body_consumed is False
        assert request.read_body() == b"hello"
        assert request.body_consumed is True

        with pytest.raises(BodyAlreadyConsumed):
            request.read_body()

    def test_read_json_after_read_body_raises(self, make_request):
        request = make_request("POST", "/", body=b"{}", content_type="application/json")
        request.read_body()

        with pytest.raises(BodyAlreadyConsumed):
            request.read_json()

    def test_empty_body_reads_once(self, make_request):
        """Even an empty body can only be read once."""
        request = make_request("POST", "/")

        assert request.read_body() == b""
        with pytest.raises(BodyAlreadyConsumed):
            request.read_body()

    def test_read_json_invalid(self, make_request):
        request = make_request("POST", "/", body=b"{not json", content_type="application/json")

        with pytest.raises(ValueError):
            request.read_json()


class TestRequestForm:
    """Lazy parsing of posted forms and files."""

    def test_urlencoded_form(self, make_request):
        request = make_request(
            "POST", "/postarray",
            body=b"names=mike&names=jack&empty=",
            content_type="application/x-www-form-urlencoded",
        )

        assert request.is_form is True
        assert request.get_form_list("names") == ["mike", "jack"]
        assert request.get_form("names") == "mike"
        assert request.get_form("empty") == ""
        assert request.get_form("missing") is None
        assert request.files == {}

    def test_form_map(self, make_request):
        request = make_request(
            "POST", "/postmap",
            body=b"names%5Bfirst%5D=thinkerou&names%5Bsecond%5D=tianou",
            content_type="application/x-www-form-urlencoded",
        )

        assert request.get_form_map("names") == {"first": "thinkerou", "second": "tianou"}

    def test_form_is_parsed_once(self, make_request):
        """Form accessors can be used repeatedly; the raw body cannot."""
        request = make_request(
            "POST", "/", body=b"a=1", content_type="application/x-www-form-urlencoded"
        )

        assert request.get_form("a") == "1"
        assert request.get_form("a") == "1"
        with pytest.raises(BodyAlreadyConsumed):
            request.read_body()

    def test_non_form_body_is_left_unread(self, make_request):
        request = make_request("POST", "/", body=b'{"a": 1}', content_type="application/json")

        assert request.form == {}
        assert request.files == {}
        assert request.read_json() == {"a": 1}

    def test_invalid_utf8_form(self, make_request):
        request = make_request(
            "POST", "/", body=b"a=\xff\xfe", content_type="application/x-www-form-urlencoded"
        )

        with pytest.raises(MalformedBodyError):
            request.form

    def test_invalid_form_keeps_failing_the_same_way(self, make_request):
        request = make_request(
            "POST", "/", body=b"a=\xff\xfe&b=2", content_type="application/x-www-form-urlencoded"
        )

        with pytest.raises(MalformedBodyError):
            request.form
        with pytest.raises(MalformedBodyError):
            request.form
        with pytest.raises(MalformedBodyError):
            request.files

    def test_broken_multipart_keeps_failing_the_same_way(self, make_request):
        request = make_request("POST", "/", body=b"--x\r\n", content_type="multipart/form-data")

        with pytest.raises(MalformedBodyError):
            request.form
        with pytest.raises(MalformedBodyError):
            request.files

    def test_close_releases_upload_streams(self, make_request, multipart):
        body, content_type = multipart(files=[("file", "a.txt", b"hello")])
        request = make_request("POST", "/", body=body, content_type=content_type)
        upload = request.get_file("file")

        request.close()

        assert upload.stream.closed

    def test_close_without_files(self, make_request):
        make_request("GET", "/").close()

    def test_multipart_fields_and_files(self, make_request, multipart):
        body, content_type = multipart(
            fields=[("names", "mike"), ("names", "jack")],
            files=[
                ("upload", "a.txt", b"first file"),
                ("upload", "b.txt", b"second"),
            ],
        )
        request = make_request("POST", "/upload_multi_files", body=body, content_type=content_type)

        assert request.get_form_list("names") == ["mike", "jack"]

        uploads = request.get_files("upload")
        assert [u.filename for u in uploads] == ["a.txt", "b.txt"]
        assert uploads[0].read() == b"first file"
        assert uploads[0].size == len(b"first file")
        assert uploads[1].field_name == "upload"
        assert request.get_file("upload") is uploads[0]
        assert request.get_file("missing") is None

    def test_multipart_without_boundary(self, make_request):
        request = make_request(
            "POST", "/", body=b"--x\r\n", content_type="multipart/form-data"
        )

        with pytest.raises((MalformedBodyError, ValueError)):
            request.files

    def test_multipart_through_parser(self, multipart):
        """A multipart request parsed from raw bytes keeps its files."""
        body, content_type = multipart(files=[("file", "hello.txt", b"hello world")])
        raw = (
            b"POST /upload_one_file HTTP/1.1\r\n"
            + f"Content-Type: {content_type}\r\n".encode()
            + f"Content-Length: {len(body)}\r\n".encode()
            + b"\r\n"
        ) + body

        request = parse_request(raw)
        upload = request.get_file("file")

        assert upload is not None
        assert upload.filename == "hello.txt"
        assert upload.read() == b"hello world"


class TestRequestSnapshot:
    """Snapshots outlive the request."""

    def test_snapshot_copies_request_data(self, make_request):
        request = make_request(
            "POST", "/postquery",
            query="id=1234&page=1",
            headers={"User-Agent": "pytest"},
            path_params={"name": "alice"},
        )
        snap = request.snapshot()

        request.query_params["id"] = ["changed"]
        request.headers["user-agent"] = "changed"

        assert snap.get_query("id") == "1234"
        assert snap.get_header("User-Agent") == "pytest"
        assert snap.path_params["name"] == "alice"
        assert snap.client_address == ("127.0.0.1", 54321)

    def test_snapshot_is_read_only(self, make_request):
        snap = make_request("GET", "/", query="a=1").snapshot()

        with pytest.raises(TypeError):
            snap.query_params["a"] = ("2",)
        with pytest.raises(AttributeError):
            snap.path = "/other"

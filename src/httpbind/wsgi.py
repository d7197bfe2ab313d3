"""
WSGI adapter: serve an Application with any WSGI server, or with the
standard library's wsgiref for development.

    from httpbind.app import create_app
    from httpbind.wsgi import WSGIAdapter

    application = WSGIAdapter(create_app())     # gunicorn module:application
"""

import logging
import socketserver
from typing import Any, Callable, Dict, Iterable, List, Tuple
from urllib.parse import parse_qs
from wsgiref.simple_server import WSGIServer, make_server

from .app import Application
from .http.request import HTTPRequest
from .http.response import HTTPResponse, payload_too_large


logger = logging.getLogger(__name__)


def _decode_path(raw: str) -> str:
    # PEP 3333 hands PATH_INFO over as latin-1 decoded bytes
    try:
        return raw.encode("latin-1").decode("utf-8")
    except UnicodeError:
        return raw


def headers_from_environ(environ: Dict[str, Any]) -> Dict[str, str]:
    """Lowercase header dict: HTTP_USER_AGENT → "user-agent"."""
    headers = {
        key[5:].replace("_", "-").lower(): value
        for key, value in environ.items()
        if key.startswith("HTTP_")
    }
    if environ.get("CONTENT_TYPE"):
        headers["content-type"] = environ["CONTENT_TYPE"]
    if environ.get("CONTENT_LENGTH"):
        headers["content-length"] = environ["CONTENT_LENGTH"]
    return headers


def request_from_environ(environ: Dict[str, Any], max_body: int) -> HTTPRequest:
    """
    Build an HTTPRequest from a WSGI environ.

    Raises:
        ValueError: If Content-Length exceeds max_body.
    """
    headers = headers_from_environ(environ)
    try:
        length = int(headers.get("content-length") or 0)
    except ValueError:
        length = 0
    if length > max_body:
        raise ValueError(f"Request body too large: {length} bytes")

    stream = environ.get("wsgi.input")
    body = stream.read(length) if (stream is not None and length > 0) else b""

    return HTTPRequest(
        method=environ.get("REQUEST_METHOD", "GET").upper(),
        path=_decode_path(environ.get("PATH_INFO", "")) or "/",
        version=environ.get("SERVER_PROTOCOL", "HTTP/1.1"),
        headers=headers,
        query_params=parse_qs(environ.get("QUERY_STRING", ""), keep_blank_values=True),
        body=body,
        client_address=(
            environ.get("REMOTE_ADDR", ""),
            int(environ.get("REMOTE_PORT") or 0),
        ),
    )


class WSGIAdapter:
    """WSGI callable around an Application."""

    def __init__(self, app: Application):
        self.app = app

    def __call__(
        self,
        environ: Dict[str, Any],
        start_response: Callable[[str, List[Tuple[str, str]]], Any],
    ) -> Iterable[bytes]:
        try:
            request = request_from_environ(environ, self.app.config.max_request_size)
        except ValueError as e:
            logger.warning(f"Rejected request: {e}")
            response = payload_too_large(str(e))
        else:
            response = self.app(request)

        start_response(
            response.status_text,
            response.header_items(self.app.config.server_name),
        )
        if environ.get("REQUEST_METHOD") == "HEAD":
            return []
        return response.iter_body()


class ThreadingWSGIServer(socketserver.ThreadingMixIn, WSGIServer):
    daemon_threads = True


def serve(app: Application) -> None:
    """Run the app on wsgiref until interrupted."""
    config = app.config
    server = make_server(
        config.host, config.port, WSGIAdapter(app), server_class=ThreadingWSGIServer
    )
    logger.info(f"{config.server_name} listening on http://{config.host}:{config.port}")
    try:
        server.serve_forever()
    except KeyboardInterrupt:
        logger.info("Shutting down")
    finally:
        server.server_close()

# podverify/server.py
"""
HTTP server for the hosting service.

Endpoints:
    GET  /feed/:slug          - Podcast feed with <podcast:verify>
    GET  /feed/:slug/verify   - Verification login form or error page
    POST /feed/:slug/verify   - Credential submission, redirects with proof
    GET  /health              - Liveness check
"""

import logging
import re
import threading
from http import HTTPStatus
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer
from typing import Dict, Optional
from urllib.parse import parse_qs, unquote, urlparse

from .app import AppContext, Response, handle_feed, handle_health, handle_verify

logger = logging.getLogger(__name__)

FEED_RE = re.compile(r"^/feed/(?P<slug>[^/]+)/?$")
VERIFY_RE = re.compile(r"^/feed/(?P<slug>[^/]+)/verify/?$")

MAX_FORM_BYTES = 64 * 1024


def _first_values(raw: str) -> Dict[str, str]:
    """Parse a query/form string keeping the first value of each key."""
    return {
        key: values[0]
        for key, values in parse_qs(raw, keep_blank_values=True).items()
    }


class VerificationServer:
    """
    HTTP server for feeds and ownership verification.

    Usage:
        server = VerificationServer(ctx, port=8081)
        server.start()  # Blocking
    """

    def __init__(self, ctx: AppContext, host: str = "127.0.0.1", port: int = 8081):
        self.ctx = ctx
        self.host = host
        self.port = port
        self._httpd: Optional[ThreadingHTTPServer] = None

    def _create_handler(server_instance):
        """Create request handler with access to server instance."""

        class RequestHandler(BaseHTTPRequestHandler):
            server_ref = server_instance

            def log_message(self, format, *args):
                logger.debug(format % args)

            def _send(self, response: Response):
                self.send_response(response.status)
                self.send_header("Content-Type", response.content_type)
                self.send_header("Content-Length", str(len(response.body)))
                for name, value in response.headers.items():
                    self.send_header(name, value)
                self.end_headers()
                if self.command != "HEAD":
                    self.wfile.write(response.body)

            def _read_form(self) -> Optional[Dict[str, str]]:
                """Form fields, or None if the body length is unusable."""
                try:
                    length = int(self.headers.get("Content-Length") or 0)
                except ValueError:
                    return None
                if length < 0 or length > MAX_FORM_BYTES:
                    return None
                body = self.rfile.read(length).decode("utf-8", errors="replace")
                return _first_values(body)

            def _route(self, post: bool) -> Response:
                ctx = self.server_ref.ctx
                parsed = urlparse(self.path)
                path = parsed.path
                query = _first_values(parsed.query)

                match = VERIFY_RE.match(path)
                if match:
                    form = None
                    if post:
                        form = self._read_form()
                        if form is None:
                            return Response.html(HTTPStatus.BAD_REQUEST, "<h1>Bad Request</h1>")
                    return handle_verify(ctx, unquote(match["slug"]), query, form)

                if post:
                    return Response.not_found()

                match = FEED_RE.match(path)
                if match:
                    return handle_feed(ctx, unquote(match["slug"]))
                if path == "/health":
                    return handle_health(ctx)
                return Response.not_found()

            def _dispatch(self, post: bool):
                # The response is complete before anything is written: one status line per request.
                try:
                    response = self._route(post)
                except Exception:
                    logger.exception(f"Request {self.command} {self.path} failed")
                    response = Response.html(HTTPStatus.INTERNAL_SERVER_ERROR, "<h1>Internal Server Error</h1>")

                try:
                    self._send(response)
                except (BrokenPipeError, ConnectionResetError):
                    logger.debug(f"Client went away during {self.command} {self.path}")

            def do_GET(self):
                self._dispatch(post=False)

            def do_HEAD(self):
                self._dispatch(post=False)

            def do_POST(self):
                self._dispatch(post=True)

        return RequestHandler

    def make_server(self) -> ThreadingHTTPServer:
        """Bind the listening socket. Port 0 picks a free port."""
        handler = self._create_handler()
        self._httpd = ThreadingHTTPServer((self.host, self.port), handler)
        self.port = self._httpd.server_address[1]
        return self._httpd

    @property
    def url(self) -> str:
        return f"http://{self.host}:{self.port}"

    def start(self):
        """Start the HTTP server (blocking)."""
        httpd = self._httpd or self.make_server()
        logger.info(f"Hosting service listening on {self.url}")
        try:
            httpd.serve_forever()
        except KeyboardInterrupt:
            logger.info("Shutting down...")
        finally:
            httpd.server_close()

    def start_background(self) -> threading.Thread:
        """Start the server in a background thread."""
        if self._httpd is None:
            self.make_server()
        thread = threading.Thread(target=self.start)
        thread.daemon = True
        thread.start()
        return thread

    def stop(self):
        if self._httpd is not None:
            self._httpd.shutdown()

"""Serve one inbound HTTP connection end to end."""

import enum
import re
import socket
import time
from collections import namedtuple

from mcexporter.core.response_helpers import bad_request_response, frame_response, internal_error_response
from mcexporter.routes import exporter_routes

MAX_REQUEST_LINE_BYTES = 8192
MAX_HEADER_BYTES = 64 * 1024
RECV_CHUNK_BYTES = 4096
LINGER_SECONDS = 0.5
REJECTED_LINE_LOG_CHARS = 200

TOKEN_PATTERN = re.compile(r"^[!#$%&'*+\-.^_`|~0-9A-Za-z]+$")
VERSION_PATTERN = re.compile(r"^HTTP/\d\.\d$")

RequestLine = namedtuple("RequestLine", ["method", "target", "version"])


class ConnectionState(enum.Enum):
    AWAITING_REQUEST_LINE = "awaiting_request_line"
    ROUTING = "routing"
    WRITING_RESPONSE = "writing_response"
    CLOSED = "closed"


class RequestReadError(Exception):
    """The request line could not be read before the deadline or size limit."""


def parse_request_line(raw):
    """Parse ``METHOD SP TARGET SP HTTP/x.y``; return None when malformed."""
    if isinstance(raw, bytes):
        raw = raw.decode("latin-1")
    line = raw.rstrip("\r\n")
    parts = line.split(" ")
    if len(parts) != 3:
        return None
    method, target, version = parts
    if not TOKEN_PATTERN.match(method) or not VERSION_PATTERN.match(version):
        return None
    if not (target.startswith("/") or target.lower().startswith(("http://", "https://"))):
        return None
    return RequestLine(method.upper(), target, version)


def _headers_complete(window):
    """Return whether ``window`` contains the blank line ending the header block."""
    return b"\n\r\n" in window or b"\n\n" in window


class ConnectionHandler:
    """Drive one connection through AWAITING_REQUEST_LINE -> ROUTING -> WRITING_RESPONSE -> CLOSED.

    The whole read phase shares a single REQUEST_TIMEOUT_SECONDS budget.
    Responses are framed completely before the first byte is written, and
    no exception escapes ``handle``.
    """

    def __init__(self, ctx, cache, clock=time.monotonic):
        self.ctx = ctx
        self.cache = cache
        self.routes = exporter_routes.create_route_app(cache)
        self.clock = clock

    def handle(self, conn, peer=None):
        """Serve ``conn`` and close it; return the HTTP status written (or None)."""
        peer_text = _format_peer(peer)
        state = ConnectionState.AWAITING_REQUEST_LINE
        status = None
        try:
            deadline = self.clock() + self.ctx.REQUEST_TIMEOUT_SECONDS
            request = None
            try:
                first_line, tail = self._read_request_line(conn, deadline)
                request = parse_request_line(first_line)
                if request is None:
                    shown = first_line.decode("latin-1").strip()[:REJECTED_LINE_LOG_CHARS]
                    self.ctx.log_action(
                        "bad-request", command=shown, rejection_message="malformed request line", peer=peer_text
                    )
            except RequestReadError as exc:
                self.ctx.log_action("bad-request", rejection_message=str(exc), peer=peer_text)

            if request is None:
                response = bad_request_response()
                include_body = True
                target = "-"
            else:
                self._drain_headers(conn, tail, deadline)
                state = ConnectionState.ROUTING
                response = self._route(request, peer_text)
                include_body = request.method != "HEAD"
                target = request.target

            state = ConnectionState.WRITING_RESPONSE
            status = response.status
            self._write(conn, frame_response(response, include_body=include_body), peer_text)
            method = request.method if request is not None else "-"
            self.ctx.log_action("request", command=f"{method} {target} {status}", peer=peer_text)
        except Exception as exc:
            self.ctx.log_exception(f"connection state={state.value} peer={peer_text}", exc)
        finally:
            _close(conn)
            state = ConnectionState.CLOSED
        return status

    def _read_request_line(self, conn, deadline):
        """Read until the first newline; return (line bytes, bytes after it)."""
        buffer = b""
        while b"\n" not in buffer:
            if len(buffer) > MAX_REQUEST_LINE_BYTES:
                raise RequestReadError("request line too long")
            remaining = deadline - self.clock()
            if remaining <= 0:
                raise RequestReadError("timed out waiting for request line")
            conn.settimeout(remaining)
            try:
                chunk = conn.recv(RECV_CHUNK_BYTES)
            except socket.timeout as exc:
                raise RequestReadError("timed out waiting for request line") from exc
            except OSError as exc:
                raise RequestReadError(f"read failed: {exc}") from exc
            if not chunk:
                # Peer half-closed; whatever arrived is the whole request line.
                return buffer, b""
            buffer += chunk
        line, _, tail = buffer.partition(b"\n")
        if len(line) > MAX_REQUEST_LINE_BYTES:
            raise RequestReadError("request line too long")
        return line, tail

    def _drain_headers(self, conn, tail, deadline):
        """Consume header lines best-effort; their content is ignored."""
        if tail.startswith(b"\r\n") or tail.startswith(b"\n"):
            return
        # Keep the request line's newline so a blank first header line is seen.
        window = b"\n" + tail
        received = len(tail)
        while not _headers_complete(window) and received < MAX_HEADER_BYTES:
            remaining = deadline - self.clock()
            if remaining <= 0:
                return
            conn.settimeout(remaining)
            try:
                chunk = conn.recv(RECV_CHUNK_BYTES)
            except OSError:
                return
            if not chunk:
                return
            received += len(chunk)
            # Only the last few bytes matter for spotting the blank line.
            window = window[-3:] + chunk

    def _route(self, request, peer_text):
        """Resolve and run the route; unexpected errors become a 500."""
        try:
            endpoint, response = exporter_routes.resolve_route(self.routes, request.target)
            if endpoint is None:
                return response
            return exporter_routes.dispatch(self.routes, endpoint)
        except Exception as exc:
            path = exporter_routes.request_path(request.target)
            self.ctx.log_exception(f"route path={path} peer={peer_text}", exc)
            return internal_error_response()

    def _write(self, conn, payload, peer_text):
        conn.settimeout(self.ctx.REQUEST_TIMEOUT_SECONDS)
        try:
            conn.sendall(payload)
        except OSError as exc:
            self.ctx.log_action("write-failed", rejection_message=str(exc), peer=peer_text)
            return
        _linger(conn)


def _linger(conn):
    """Half-close and briefly drain so unread request bytes do not reset the response."""
    try:
        conn.shutdown(socket.SHUT_WR)
    except OSError:
        return
    deadline = time.monotonic() + LINGER_SECONDS
    while True:
        remaining = deadline - time.monotonic()
        if remaining <= 0:
            return
        try:
            conn.settimeout(remaining)
            if not conn.recv(RECV_CHUNK_BYTES):
                return
        except OSError:
            return


def _close(conn):
    try:
        conn.close()
    except OSError:
        pass


def _format_peer(peer):
    if isinstance(peer, tuple) and len(peer) >= 2:
        return f"{peer[0]}:{peer[1]}"
    return str(peer or "unknown")

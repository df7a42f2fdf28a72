"""HTTP response records and byte-exact framing."""

from collections import namedtuple

from werkzeug.http import HTTP_STATUS_CODES

TEXT_PLAIN = "text/plain; charset=utf-8"
TEXT_HTML = "text/html; charset=utf-8"

HttpResponse = namedtuple("HttpResponse", ["status", "content_type", "body", "headers"], defaults=((),))


def text_response(status, text, headers=()):
    """Return a plain-text response with a UTF-8 body."""
    return HttpResponse(status, TEXT_PLAIN, text.encode("utf-8"), tuple(headers))


def bad_request_response():
    return text_response(400, "Bad Request")


def not_found_response():
    return text_response(404, "Not Found")


def internal_error_response():
    return text_response(500, "Internal Server Error")


def reason_phrase(status):
    return HTTP_STATUS_CODES.get(status, "Unknown")


def frame_response(response, include_body=True):
    """Serialize ``response`` into one bytes payload.

    Content-Length is the byte length of the body, also for HEAD requests
    where the body itself is omitted.
    """
    body = response.body if isinstance(response.body, bytes) else str(response.body).encode("utf-8")
    lines = [
        f"HTTP/1.1 {response.status} {reason_phrase(response.status)}",
        f"Content-Type: {response.content_type}",
        f"Content-Length: {len(body)}",
        "Connection: close",
    ]
    for name, value in response.headers:
        lines.append(f"{name}: {value}")
    head = ("\r\n".join(lines) + "\r\n\r\n").encode("latin-1")
    if not include_body:
        return head
    return head + body

"""Exporter route registration.

A Flask app is used as the route table and template renderer only; the
socket loop in ``connection_handler`` owns parsing and response framing.
"""
from pathlib import Path
from urllib.parse import unquote, urlsplit

from flask import Flask, render_template
from werkzeug.exceptions import NotFound
from werkzeug.routing import RequestRedirect

from mcexporter.core.response_helpers import (
    TEXT_HTML,
    HttpResponse,
    not_found_response,
    text_response,
)
from mcexporter.services import metrics_encoder

TEMPLATE_DIR = Path(__file__).resolve().parent.parent / "templates"
INDEX_TITLE = "Minecraft Exporter"


def create_route_app(cache):
    """Build the route table app serving snapshots from ``cache``."""
    app = Flask(__name__, static_folder=None, template_folder=str(TEMPLATE_DIR))
    # Paths match exactly; "//metrics" is not "/metrics".
    app.url_map.merge_slashes = False
    register_exporter_routes(app, cache)
    return app


def register_exporter_routes(app, cache):
    """Register the fixed exporter routes."""

    # Route: /metrics
    @app.route("/metrics", methods=["GET"], provide_automatic_options=False)
    def metrics():
        snapshot = cache.get()
        return HttpResponse(200, metrics_encoder.CONTENT_TYPE, metrics_encoder.encode(snapshot))

    # Route: /health and /healthz
    @app.route("/health", methods=["GET"], provide_automatic_options=False)
    @app.route("/healthz", methods=["GET"], provide_automatic_options=False)
    def health():
        """200 OK while the server is live, 503 UNHEALTHY otherwise."""
        snapshot = cache.get()
        if snapshot.healthy:
            return text_response(200, "OK")
        return text_response(503, "UNHEALTHY")

    # Route: /
    @app.route("/", methods=["GET"], provide_automatic_options=False)
    def index():
        return HttpResponse(200, TEXT_HTML, render_index_page(app))


def render_index_page(app):
    """Render the static landing page as UTF-8 bytes."""
    with app.app_context():
        html = render_template(
            "index.html",
            title=INDEX_TITLE,
            metrics_path="/metrics",
            health_path="/health",
        )
    return html.encode("utf-8")


def request_path(target):
    """Return the decoded path of a request target, dropping query and fragment."""
    if target.startswith("/"):
        # Origin form; "//x" is a path here, not a network location.
        path = target.split("?", 1)[0].split("#", 1)[0]
    else:
        path = urlsplit(target).path
    return unquote(path or "/")


def resolve_route(app, target):
    """Match a request target against the route table by path alone.

    Returns ``(endpoint, None)`` on a match, or ``(None, response)`` with a
    ready 404 response. The request method never affects the match, and
    query strings are ignored.
    """
    adapter = app.url_map.bind("localhost")
    try:
        # Every route is registered for GET; other methods are served the same.
        endpoint, _args = adapter.match(request_path(target), method="GET")
    except (NotFound, RequestRedirect):
        return None, not_found_response()
    return endpoint, None


def dispatch(app, endpoint):
    """Invoke the view for ``endpoint``; exceptions propagate to the caller."""
    return app.view_functions[endpoint]()

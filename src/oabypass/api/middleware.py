"""Flask middleware registration for request ids, CORS, logging and errors."""
import time
import uuid

from flask import g, request
from werkzeug.exceptions import HTTPException

from ..core.errors import ProxyError
from ..utils.http import error_response, get_client_ip, proxy_error_response
from ..utils.logging import log_event, redact_headers

QUIET_PATHS = ("/", "/health", "/favicon.ico")

CORS_ALLOW_HEADERS = "Authorization, Content-Type, OpenAI-Beta, OpenAI-Organization, OpenAI-Project, X-Request-ID"
CORS_ALLOW_METHODS = "GET, POST, DELETE, OPTIONS"


def register_middlewares(app, settings):
    """Register Flask middlewares on the app."""

    @app.before_request
    def attach_request_context():
        g.request_id = request.headers.get("X-Request-ID") or uuid.uuid4().hex
        g.request_start = time.time()

    @app.after_request
    def add_headers(response):
        response.headers["X-Request-ID"] = getattr(g, "request_id", "")

        origins = settings.cors_origins
        request_origin = request.headers.get("Origin")
        allow_origin = None
        if "*" in origins:
            allow_origin = "*"
        elif request_origin and request_origin in origins:
            allow_origin = request_origin
            response.headers["Vary"] = "Origin"
        if allow_origin:
            response.headers["Access-Control-Allow-Origin"] = allow_origin
            response.headers["Access-Control-Allow-Headers"] = CORS_ALLOW_HEADERS
            response.headers["Access-Control-Allow-Methods"] = CORS_ALLOW_METHODS
            response.headers["Access-Control-Expose-Headers"] = "X-Request-ID, X-Upstream-Request-ID"

        if request.method == "GET" and request.path in QUIET_PATHS:
            return response
        latency_ms = None
        if hasattr(g, "request_start"):
            latency_ms = int((time.time() - g.request_start) * 1000)
        fields = {
            "request_id": getattr(g, "request_id", ""),
            "method": request.method,
            "path": request.path,
            "status": response.status_code,
            "latency_ms": latency_ms,
            "client_ip": get_client_ip(),
        }
        if settings.log_headers:
            fields["headers"] = redact_headers(dict(request.headers))
        log_event(20, "request", **fields)
        return response

    @app.errorhandler(ProxyError)
    def handle_proxy_error(error):
        if error.status >= 500:
            log_event(40, "request_failed", request_id=getattr(g, "request_id", ""), error=error.message)
        else:
            log_event(30, "request_rejected", request_id=getattr(g, "request_id", ""), error=error.message)
        return proxy_error_response(error)

    @app.errorhandler(404)
    def handle_not_found(error):
        return error_response("Not found", 404, "invalid_request_error")

    @app.errorhandler(405)
    def handle_method_not_allowed(error):
        return error_response("Method not allowed", 405, "invalid_request_error")

    @app.errorhandler(413)
    def handle_payload_too_large(error):
        return error_response("Request body too large", 413, "invalid_request_error")

    @app.errorhandler(HTTPException)
    def handle_http_exception(error):
        return error_response(error.description or error.name, error.code or 500, "invalid_request_error")

    @app.errorhandler(Exception)
    def handle_unexpected(error):
        log_event(40, "internal_error", request_id=getattr(g, "request_id", ""), error=str(error))
        return error_response("Internal server error", 500, "internal_error")

"""HTTP helpers: error envelopes and upstream passthrough responses."""
from flask import Response, jsonify, request

PASSTHROUGH_HEADERS = ("content-type", "content-disposition", "openai-processing-ms", "x-request-id")


def get_client_ip() -> str:
    """Resolve client IP with basic X-Forwarded-For support."""
    forwarded_for = request.headers.get("X-Forwarded-For", "")
    if forwarded_for:
        return forwarded_for.split(",")[0].strip()
    return request.remote_addr or "unknown"


def error_response(message: str, status: int = 400, error_type: str = "invalid_request_error", param=None, code=None):
    """Return OpenAI-style error payload."""
    payload = {
        "error": {
            "message": message,
            "type": error_type,
            "param": param,
            "code": code,
        }
    }
    return jsonify(payload), status


def proxy_error_response(err):
    """Render a ProxyError as an OpenAI-style error payload."""
    return error_response(err.message, err.status, err.error_type, param=err.param, code=err.code)


def relay_response(raw) -> Response:
    """Relay a raw upstream response body unchanged.

    ``raw`` is the SDK's raw response wrapper; status, body bytes and the
    content headers are copied, everything else (cookies, hop-by-hop headers,
    upstream rate-limit counters) stays behind.
    """
    response = Response(raw.content, status=raw.status_code)
    response.headers.remove("Content-Type")
    for name in PASSTHROUGH_HEADERS:
        value = raw.headers.get(name)
        if not value:
            continue
        if name == "x-request-id":
            response.headers["X-Upstream-Request-ID"] = value
        else:
            response.headers[name.title()] = value
    if "Content-Type" not in response.headers:
        response.headers["Content-Type"] = "application/octet-stream"
    return response

"""SSE streaming helpers for chat, completions and responses endpoints."""
import json

import openai

from ..utils.logging import log_event


def _dump_event(event) -> dict:
    """Serialize SDK stream objects to the dict the upstream sent."""
    if hasattr(event, "model_dump"):
        return event.model_dump(mode="json", exclude_unset=True)
    if isinstance(event, dict):
        return event
    return {"data": str(event)}


def _error_type(err) -> str:
    if isinstance(err, openai.APITimeoutError):
        return "api_timeout_error"
    if isinstance(err, openai.APIConnectionError):
        return "api_connection_error"
    if isinstance(err, openai.APIStatusError):
        return "api_error"
    return "internal_error"


def _log_stream_error(err, operation: str, request_id: str | None):
    log_event(
        40,
        "upstream_stream_error",
        operation=operation,
        request_id=request_id or "",
        status=getattr(err, "status_code", None),
        error=str(err),
    )


def close_quietly(*resources):
    for resource in resources:
        if resource is None:
            continue
        try:
            resource.close()
        except Exception as exc:
            log_event(30, "stream_close_failed", error=str(exc))


def stream_chat_sse(stream, operation: str, client=None, request_id: str | None = None):
    """Relay chat/legacy completion chunks as ``data:`` lines ending in ``[DONE]``."""
    try:
        for chunk in stream:
            yield f"data: {json.dumps(_dump_event(chunk), ensure_ascii=False)}\n\n"
        yield "data: [DONE]\n\n"
    except Exception as e:
        _log_stream_error(e, operation, request_id)
        error_payload = {"error": {"message": f"{operation} error: {e}", "type": _error_type(e)}}
        yield f"data: {json.dumps(error_payload)}\n\n"
        yield "data: [DONE]\n\n"
    finally:
        close_quietly(stream, client)


def stream_responses_sse(stream, operation: str, client=None, request_id: str | None = None):
    """Relay /v1/responses events with their ``event:`` names."""
    try:
        for event in stream:
            payload = _dump_event(event)
            event_type = payload.get("type", "message")
            yield f"event: {event_type}\n"
            yield f"data: {json.dumps(payload, ensure_ascii=False)}\n\n"
    except Exception as e:
        _log_stream_error(e, operation, request_id)
        error_payload = {"type": "error", "message": f"{operation} error: {e}", "code": _error_type(e)}
        yield "event: error\n"
        yield f"data: {json.dumps(error_payload)}\n\n"
    finally:
        close_quietly(stream, client)

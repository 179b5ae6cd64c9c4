"""Route handlers for the OpenAI passthrough endpoints.

Every route resolves the caller's credential, invokes one upstream operation
with a client built for this request only, and relays the upstream body.
"""
import json

import openai
from flask import Response, g, request, stream_with_context
from pydantic import ValidationError

from ..core.credentials import resolve_client_config
from ..core.errors import RequestShapeError, UpstreamError
from ..services.openai_service import create_client_for_settings
from ..utils.http import relay_response
from ..utils.logging import log_event
from .schemas import (
    AssistantCreateRequest,
    ChatCompletionsRequest,
    CompletionsRequest,
    EmbeddingsRequest,
    ImageGenerationRequest,
    MessageCreateRequest,
    ResponsesRequest,
    RunCreateRequest,
    SubmitToolOutputsRequest,
)
from .streaming import close_quietly, stream_chat_sse, stream_responses_sse

HEALTH_TEXT = "OpenAI API Server is running"

FILE_PURPOSES = ("assistants", "batch", "fine-tune", "vision", "user_data", "evals")
DEFAULT_FILE_PURPOSE = "assistants"

PAGINATION_PARAMS = ("after", "before", "limit", "order")

OBJECT_ID_MAX_BYTES = 64 * 1024


def _read_json(schema=None) -> dict:
    """Return the request body as a dict, validated against ``schema``."""
    data, _ = _parse_json(schema)
    return data


def _parse_json(schema=None):
    """Return the raw body dict and the validated model (``None`` without a schema)."""
    if request.get_data(cache=True):
        data = request.get_json(force=True, silent=True)
        if data is None:
            raise RequestShapeError("Invalid JSON body")
    else:
        data = {}
    if not isinstance(data, dict):
        raise RequestShapeError("Request body must be a JSON object")
    payload = None
    if schema is not None:
        try:
            payload = schema.model_validate(data)
        except ValidationError as e:
            raise RequestShapeError(str(e)) from None
    return data, payload


def _split(data: dict, *names):
    """Split a body into named SDK arguments and the remaining extra_body."""
    named = {name: data[name] for name in names if name in data}
    extra = {key: value for key, value in data.items() if key not in named}
    return named, extra


def _query_params(*allowed) -> dict:
    params = {}
    for name in allowed:
        value = request.args.get(name)
        if value is None:
            continue
        if name == "limit":
            try:
                value = int(value)
            except ValueError:
                raise RequestShapeError("limit must be an integer", param="limit") from None
        params[name] = value
    return params


def _normalize_purpose(purpose: str) -> str:
    if purpose in FILE_PURPOSES:
        return purpose
    return DEFAULT_FILE_PURPOSE


def _upstream_error(operation: str, err: openai.APIError) -> UpstreamError:
    message = f"{operation} error: {err}"
    if isinstance(err, openai.APIStatusError):
        body = None
        try:
            body = err.response.text
        except Exception:
            body = None
        if isinstance(body, str) and len(body) > 2000:
            body = body[:2000] + "...(truncated)"
        log_event(
            40,
            "upstream_error",
            operation=operation,
            request_id=getattr(g, "request_id", ""),
            status=err.status_code,
            body=body,
        )
        return UpstreamError(
            message,
            status=err.status_code,
            error_type=getattr(err, "type", None) or "api_error",
            param=getattr(err, "param", None),
            code=getattr(err, "code", None),
        )
    log_event(40, "upstream_error", operation=operation, request_id=getattr(g, "request_id", ""), error=str(err))
    if isinstance(err, openai.APITimeoutError):
        return UpstreamError(message, status=504, error_type="api_timeout_error")
    if isinstance(err, openai.APIConnectionError):
        return UpstreamError(message, status=502, error_type="api_connection_error")
    return UpstreamError(message, status=502, error_type="api_error")


def _object_id(raw):
    content_type = raw.headers.get("content-type", "")
    if "application/json" not in content_type:
        return None
    # Large listings are not parsed just for the log line.
    if len(raw.content) > OBJECT_ID_MAX_BYTES:
        return None
    try:
        payload = json.loads(raw.content)
    except ValueError:
        return None
    if isinstance(payload, dict):
        return payload.get("id")
    return None


def register_routes(app, settings):
    """Register Flask routes on the app."""

    def _client_for(use_beta: bool):
        config = resolve_client_config(request.headers, use_beta)
        return create_client_for_settings(config, settings)

    def _dispatch(operation: str, use_beta: bool, call):
        """Resolve the credential, run one upstream call and relay its body."""
        client = _client_for(use_beta)
        log_event(20, "upstream_request", operation=operation, request_id=g.request_id, beta=use_beta)
        with client:
            try:
                raw = call(client)
            except openai.APIError as e:
                raise _upstream_error(operation, e) from e
            response = relay_response(raw)
        log_event(
            20,
            "upstream_response",
            operation=operation,
            request_id=g.request_id,
            status=raw.status_code,
            object_id=_object_id(raw),
        )
        return response

    def _dispatch_stream(operation: str, call, formatter):
        """Open an upstream stream and relay it as server-sent events."""
        client = _client_for(False)
        log_event(20, "upstream_request", operation=operation, request_id=g.request_id, stream=True)
        try:
            stream = call(client)
        except openai.APIError as e:
            client.close()
            raise _upstream_error(operation, e) from e
        except Exception:
            client.close()
            raise
        events = formatter(stream, operation, client=client, request_id=g.request_id)
        response = Response(stream_with_context(events), mimetype="text/event-stream")
        # A generator closed before its first chunk never reaches its own cleanup.
        response.call_on_close(lambda: close_quietly(stream, client))
        response.headers["Cache-Control"] = "no-cache"
        response.headers["X-Accel-Buffering"] = "no"
        return response

    # ===== Health =====

    @app.route('/', methods=['GET'])
    @app.route('/health', methods=['GET'])
    def health():
        return Response(HEALTH_TEXT, mimetype="text/plain")

    # ===== Completions =====

    @app.route('/v1/chat/completions', methods=['POST'])
    def chat_completions():
        data, payload = _parse_json(ChatCompletionsRequest)
        named, extra = _split(data, "model", "messages")
        extra.pop("stream", None)
        if payload.stream:
            return _dispatch_stream(
                "Chat completion",
                lambda client: client.chat.completions.create(**named, stream=True, extra_body=extra),
                stream_chat_sse,
            )
        return _dispatch(
            "Chat completion",
            False,
            lambda client: client.chat.completions.with_raw_response.create(**named, extra_body=extra),
        )

    @app.route('/v1/completions', methods=['POST'])
    def completions():
        data, payload = _parse_json(CompletionsRequest)
        named, extra = _split(data, "model", "prompt")
        extra.pop("stream", None)
        if payload.stream:
            return _dispatch_stream(
                "Text completion",
                lambda client: client.completions.create(**named, stream=True, extra_body=extra),
                stream_chat_sse,
            )
        return _dispatch(
            "Text completion",
            False,
            lambda client: client.completions.with_raw_response.create(**named, extra_body=extra),
        )

    # ===== Embeddings =====

    @app.route('/v1/embeddings', methods=['POST'])
    def embeddings():
        data = _read_json(EmbeddingsRequest)
        named, extra = _split(data, "model", "input")
        return _dispatch(
            "Embedding",
            False,
            lambda client: client.embeddings.with_raw_response.create(**named, extra_body=extra),
        )

    # ===== Models =====

    @app.route('/v1/models', methods=['GET'])
    def list_models():
        return _dispatch("List models", False, lambda client: client.models.with_raw_response.list())

    @app.route('/v1/models/<path:model_id>', methods=['GET'])
    def get_model(model_id):
        return _dispatch("Get model", False, lambda client: client.models.with_raw_response.retrieve(model_id))

    # ===== Images =====

    @app.route('/v1/images/generations', methods=['POST'])
    def create_image():
        data = _read_json(ImageGenerationRequest)
        named, extra = _split(data, "prompt")
        return _dispatch(
            "Image generation",
            False,
            lambda client: client.images.with_raw_response.generate(**named, extra_body=extra),
        )

    # ===== Assistants =====

    @app.route('/v1/assistants', methods=['POST'])
    def create_assistant():
        data = _read_json(AssistantCreateRequest)
        named, extra = _split(data, "model")
        return _dispatch(
            "Create assistant",
            True,
            lambda client: client.beta.assistants.with_raw_response.create(**named, extra_body=extra),
        )

    @app.route('/v1/assistants', methods=['GET'])
    def list_assistants():
        params = _query_params(*PAGINATION_PARAMS)
        return _dispatch(
            "List assistants",
            True,
            lambda client: client.beta.assistants.with_raw_response.list(**params),
        )

    @app.route('/v1/assistants/<assistant_id>', methods=['GET'])
    def get_assistant(assistant_id):
        return _dispatch(
            "Get assistant",
            True,
            lambda client: client.beta.assistants.with_raw_response.retrieve(assistant_id),
        )

    @app.route('/v1/assistants/<assistant_id>', methods=['POST'])
    def modify_assistant(assistant_id):
        data = _read_json()
        return _dispatch(
            "Modify assistant",
            True,
            lambda client: client.beta.assistants.with_raw_response.update(assistant_id, extra_body=data),
        )

    @app.route('/v1/assistants/<assistant_id>', methods=['DELETE'])
    def delete_assistant(assistant_id):
        return _dispatch(
            "Delete assistant",
            True,
            lambda client: client.beta.assistants.with_raw_response.delete(assistant_id),
        )

    # ===== Threads =====

    @app.route('/v1/threads', methods=['POST'])
    def create_thread():
        data = _read_json()
        return _dispatch(
            "Create thread",
            True,
            lambda client: client.beta.threads.with_raw_response.create(extra_body=data),
        )

    @app.route('/v1/threads/<thread_id>', methods=['GET'])
    def get_thread(thread_id):
        return _dispatch(
            "Get thread",
            True,
            lambda client: client.beta.threads.with_raw_response.retrieve(thread_id),
        )

    @app.route('/v1/threads/<thread_id>', methods=['POST'])
    def modify_thread(thread_id):
        data = _read_json()
        return _dispatch(
            "Modify thread",
            True,
            lambda client: client.beta.threads.with_raw_response.update(thread_id, extra_body=data),
        )

    @app.route('/v1/threads/<thread_id>', methods=['DELETE'])
    def delete_thread(thread_id):
        return _dispatch(
            "Delete thread",
            True,
            lambda client: client.beta.threads.with_raw_response.delete(thread_id),
        )

    # ===== Messages =====

    @app.route('/v1/threads/<thread_id>/messages', methods=['POST'])
    def create_message(thread_id):
        data = _read_json(MessageCreateRequest)
        named, extra = _split(data, "role", "content")
        return _dispatch(
            "Create message",
            True,
            lambda client: client.beta.threads.messages.with_raw_response.create(
                thread_id, **named, extra_body=extra
            ),
        )

    @app.route('/v1/threads/<thread_id>/messages', methods=['GET'])
    def list_messages(thread_id):
        params = _query_params(*PAGINATION_PARAMS, "run_id")
        return _dispatch(
            "List messages",
            True,
            lambda client: client.beta.threads.messages.with_raw_response.list(thread_id, **params),
        )

    @app.route('/v1/threads/<thread_id>/messages/<message_id>', methods=['GET'])
    def get_message(thread_id, message_id):
        return _dispatch(
            "Get message",
            True,
            lambda client: client.beta.threads.messages.with_raw_response.retrieve(message_id, thread_id=thread_id),
        )

    @app.route('/v1/threads/<thread_id>/messages/<message_id>', methods=['POST'])
    def modify_message(thread_id, message_id):
        data = _read_json()
        return _dispatch(
            "Modify message",
            True,
            lambda client: client.beta.threads.messages.with_raw_response.update(
                message_id, thread_id=thread_id, extra_body=data
            ),
        )

    # ===== Runs =====

    @app.route('/v1/threads/<thread_id>/runs', methods=['POST'])
    def create_run(thread_id):
        data = _read_json(RunCreateRequest)
        named, extra = _split(data, "assistant_id")
        return _dispatch(
            "Create run",
            True,
            lambda client: client.beta.threads.runs.with_raw_response.create(thread_id, **named, extra_body=extra),
        )

    @app.route('/v1/threads/<thread_id>/runs', methods=['GET'])
    def list_runs(thread_id):
        params = _query_params(*PAGINATION_PARAMS)
        return _dispatch(
            "List runs",
            True,
            lambda client: client.beta.threads.runs.with_raw_response.list(thread_id, **params),
        )

    @app.route('/v1/threads/<thread_id>/runs/<run_id>', methods=['GET'])
    def get_run(thread_id, run_id):
        return _dispatch(
            "Get run",
            True,
            lambda client: client.beta.threads.runs.with_raw_response.retrieve(run_id, thread_id=thread_id),
        )

    @app.route('/v1/threads/<thread_id>/runs/<run_id>', methods=['POST'])
    def modify_run(thread_id, run_id):
        data = _read_json()
        return _dispatch(
            "Modify run",
            True,
            lambda client: client.beta.threads.runs.with_raw_response.update(
                run_id, thread_id=thread_id, extra_body=data
            ),
        )

    @app.route('/v1/threads/<thread_id>/runs/<run_id>/cancel', methods=['POST'])
    def cancel_run(thread_id, run_id):
        return _dispatch(
            "Cancel run",
            True,
            lambda client: client.beta.threads.runs.with_raw_response.cancel(run_id, thread_id=thread_id),
        )

    @app.route('/v1/threads/<thread_id>/runs/<run_id>/submit_tool_outputs', methods=['POST'])
    def submit_tool_outputs(thread_id, run_id):
        data = _read_json(SubmitToolOutputsRequest)
        named, extra = _split(data, "tool_outputs")
        return _dispatch(
            "Submit tool outputs",
            True,
            lambda client: client.beta.threads.runs.with_raw_response.submit_tool_outputs(
                run_id, thread_id=thread_id, **named, extra_body=extra
            ),
        )

    @app.route('/v1/threads/runs', methods=['POST'])
    def create_thread_and_run():
        data = _read_json(RunCreateRequest)
        named, extra = _split(data, "assistant_id")
        return _dispatch(
            "Create thread and run",
            True,
            lambda client: client.beta.threads.with_raw_response.create_and_run(**named, extra_body=extra),
        )

    # ===== Files =====

    @app.route('/v1/files', methods=['POST'])
    def upload_file():
        storage = request.files.get("file")
        if storage is None:
            raise RequestShapeError("File not provided", param="file")
        if not storage.filename:
            raise RequestShapeError("Filename not provided", param="file")
        purpose = request.form.get("purpose")
        if purpose is None:
            raise RequestShapeError("Purpose not provided", param="purpose")
        upload = (storage.filename, storage.read(), storage.mimetype or "application/octet-stream")
        file_purpose = _normalize_purpose(purpose)
        return _dispatch(
            "Upload file",
            False,
            lambda client: client.files.with_raw_response.create(file=upload, purpose=file_purpose),
        )

    @app.route('/v1/files', methods=['GET'])
    def list_files():
        params = _query_params("after", "limit", "order", "purpose")
        return _dispatch("List files", False, lambda client: client.files.with_raw_response.list(**params))

    @app.route('/v1/files/<file_id>', methods=['GET'])
    def get_file(file_id):
        return _dispatch("Get file", False, lambda client: client.files.with_raw_response.retrieve(file_id))

    @app.route('/v1/files/<file_id>', methods=['DELETE'])
    def delete_file(file_id):
        return _dispatch("Delete file", False, lambda client: client.files.with_raw_response.delete(file_id))

    @app.route('/v1/files/<file_id>/content', methods=['GET'])
    def get_file_content(file_id):
        return _dispatch(
            "Get file content",
            False,
            lambda client: client.files.with_raw_response.content(file_id),
        )

    # ===== Responses =====

    @app.route('/v1/responses', methods=['POST'])
    def create_response():
        data, payload = _parse_json(ResponsesRequest)
        extra = dict(data)
        extra.pop("stream", None)
        if payload.stream:
            return _dispatch_stream(
                "Create response",
                lambda client: client.responses.create(stream=True, extra_body=extra),
                stream_responses_sse,
            )
        return _dispatch(
            "Create response",
            False,
            lambda client: client.responses.with_raw_response.create(extra_body=extra),
        )

    @app.route('/v1/responses/<response_id>', methods=['GET'])
    def get_response(response_id):
        return _dispatch(
            "Get response",
            False,
            lambda client: client.responses.with_raw_response.retrieve(response_id),
        )

    @app.route('/v1/responses/<response_id>', methods=['DELETE'])
    def delete_response(response_id):
        return _dispatch(
            "Delete response",
            False,
            lambda client: client.responses.with_raw_response.delete(response_id),
        )

    @app.route('/v1/responses/<response_id>/cancel', methods=['POST'])
    def cancel_response(response_id):
        return _dispatch(
            "Cancel response",
            False,
            lambda client: client.responses.with_raw_response.cancel(response_id),
        )

"""Pydantic request schemas for API endpoints.

These only gate the fields an operation cannot run without; the body that
goes upstream is the caller's JSON object, unchanged.
"""
from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel


class PassthroughRequest(BaseModel):
    class Config:
        # Forward-compat: unknown fields are relayed to the upstream API.
        extra = "allow"


class ChatCompletionsRequest(PassthroughRequest):
    model: str
    messages: List[Dict[str, Any]]
    stream: Optional[bool] = None


class CompletionsRequest(PassthroughRequest):
    model: str
    prompt: Union[str, List[Any]]
    stream: Optional[bool] = None


class EmbeddingsRequest(PassthroughRequest):
    model: str
    input: Union[str, List[Any]]


class ImageGenerationRequest(PassthroughRequest):
    prompt: str


class ResponsesRequest(PassthroughRequest):
    model: Optional[str] = None
    input: Optional[Union[str, List[Any]]] = None
    stream: Optional[bool] = None


class AssistantCreateRequest(PassthroughRequest):
    model: str


class MessageCreateRequest(PassthroughRequest):
    role: str
    content: Union[str, List[Any]]


class RunCreateRequest(PassthroughRequest):
    assistant_id: str


class SubmitToolOutputsRequest(PassthroughRequest):
    tool_outputs: List[Dict[str, Any]]

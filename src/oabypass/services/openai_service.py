"""OpenAI client construction for per-request credentials."""
from typing import Optional

import openai

from ..core.credentials import UpstreamClientConfig


def create_client(
    config: UpstreamClientConfig,
    base_url: Optional[str] = None,
    timeout: Optional[float] = None,
) -> openai.OpenAI:
    """Create an OpenAI client bound to a single caller's credential.

    Retries are disabled: a failed upstream call is reported to the caller
    as-is. ``timeout`` of ``None`` keeps the SDK default.
    """
    kwargs = {
        "api_key": config.api_key,
        "max_retries": 0,
        "default_headers": config.headers,
    }
    if base_url:
        kwargs["base_url"] = base_url
    if timeout is not None:
        kwargs["timeout"] = timeout
    return openai.OpenAI(**kwargs)


def create_client_for_settings(config: UpstreamClientConfig, settings) -> openai.OpenAI:
    return create_client(config, base_url=settings.upstream_base_url, timeout=settings.upstream_timeout)

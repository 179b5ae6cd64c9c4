"""Caller credential resolution for upstream OpenAI clients.

The proxy never holds an API key of its own. Each request carries the
caller's key in its ``Authorization`` header; this module turns those headers
into an :class:`UpstreamClientConfig` that lives exactly as long as the
request that supplied it.
"""
from dataclasses import dataclass, field
from typing import Any, Iterable, Mapping, Tuple, Union

from .errors import EmptyCredentialError, MalformedCredentialError, MissingCredentialError

AUTHORIZATION_HEADER = "authorization"
BEARER_PREFIXES = ("Bearer ", "bearer ")
BETA_HEADER = "OpenAI-Beta"
BETA_HEADER_VALUE = "assistants=v2"

HeaderSource = Union[Mapping[str, Any], Iterable[Tuple[str, Any]]]


@dataclass(frozen=True)
class UpstreamClientConfig:
    """Credential plus extra headers for one upstream client."""

    api_key: str = field(repr=False)
    default_headers: Tuple[Tuple[str, str], ...] = ()

    @property
    def headers(self) -> dict:
        return dict(self.default_headers)

    def __repr__(self) -> str:
        return f"UpstreamClientConfig(api_key='***', default_headers={self.default_headers!r})"


def _header_items(headers: HeaderSource):
    if hasattr(headers, "items"):
        return headers.items()
    return headers


def _find_authorization(headers: HeaderSource):
    for name, value in _header_items(headers):
        if isinstance(name, bytes):
            name = name.decode("latin-1")
        if name.lower() == AUTHORIZATION_HEADER:
            return value
    return None


def _as_text(value) -> str:
    """Return the header value as text, mirroring HTTP's visible-ASCII rule."""
    if isinstance(value, (bytes, bytearray)):
        try:
            value = bytes(value).decode("ascii")
        except UnicodeDecodeError:
            raise MalformedCredentialError() from None
    if not isinstance(value, str):
        raise MalformedCredentialError()
    for char in value:
        if char != "\t" and not (" " <= char <= "~"):
            raise MalformedCredentialError()
    return value


def _strip_scheme(value: str) -> str:
    # Only the two exact casings are recognized; "BEARER x" stays verbatim.
    for prefix in BEARER_PREFIXES:
        if value.startswith(prefix):
            return value[len(prefix):]
    return value


def resolve_client_config(headers: HeaderSource, use_beta: bool = False) -> UpstreamClientConfig:
    """Build an upstream client configuration from inbound request headers.

    ``use_beta`` must be set for the assistants, threads, messages and runs
    families; it pins ``OpenAI-Beta: assistants=v2`` on the configuration.

    Raises a :class:`~oabypass.core.errors.CredentialError` subclass when the
    header is missing, is not valid header text, or yields an empty key.
    """
    raw = _find_authorization(headers)
    if raw is None:
        raise MissingCredentialError()

    api_key = _strip_scheme(_as_text(raw))
    if not api_key:
        raise EmptyCredentialError()

    extra_headers = ((BETA_HEADER, BETA_HEADER_VALUE),) if use_beta else ()
    return UpstreamClientConfig(api_key=api_key, default_headers=extra_headers)

"""Exception types surfaced to API callers."""


class ProxyError(Exception):
    """Base error rendered as an OpenAI-style error envelope."""

    status = 500
    error_type = "internal_error"

    def __init__(self, message, status=None, error_type=None, param=None, code=None):
        super().__init__(message)
        self.message = message
        if status is not None:
            self.status = status
        if error_type is not None:
            self.error_type = error_type
        self.param = param
        self.code = code


class CredentialError(ProxyError):
    status = 401
    error_type = "authentication_error"


class MissingCredentialError(CredentialError):
    def __init__(self):
        super().__init__("Authorization header not found")


class MalformedCredentialError(CredentialError):
    def __init__(self):
        super().__init__("Invalid Authorization header format")


class EmptyCredentialError(CredentialError):
    def __init__(self):
        super().__init__("API key is empty")


class RequestShapeError(ProxyError):
    status = 400
    error_type = "invalid_request_error"


class UpstreamError(ProxyError):
    status = 502
    error_type = "api_error"

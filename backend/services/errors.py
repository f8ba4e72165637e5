"""
Error taxonomy shared by the generation pipeline and the HTTP layer
"""

from __future__ import annotations


class StudioError(Exception):
    """Base error rendered as {ok: false, message} by the API"""

    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class InvalidRequestError(StudioError):
    """Missing or invalid request fields, rejected before any upstream call"""

    status_code = 400


class ConfigurationError(StudioError):
    """Server-side configuration prevents the request from being served"""

    status_code = 500


class UnknownModelError(ConfigurationError):
    def __init__(self, model_key: str):
        super().__init__(f"Unknown model: {model_key}")
        self.model_key = model_key


class AuthError(ConfigurationError):
    """No credential configured for the resolved provider"""

    def __init__(self, provider_name: str):
        super().__init__(f"{provider_name} API key not configured")
        self.provider_name = provider_name


class UpstreamError(StudioError):
    """Non-success response or SDK failure from a provider"""

    status_code = 502

    def __init__(self, status: int | None, body: str, provider: str = "API"):
        if status is None:
            super().__init__(f"{provider} API error: {body}")
        else:
            super().__init__(f"{provider} API error: {status} - {body}")
        self.status = status
        self.body = body
        self.provider = provider


class StreamLimitExceeded(StudioError):
    """Generation stream ran past its configured duration or size bound"""

    status_code = 502


class StreamClosedError(RuntimeError):
    """Write attempted on a sink that already delivered its terminal event"""

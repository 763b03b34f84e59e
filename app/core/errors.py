# core/errors.py
"""
Error taxonomy for the generation gateway.

Every failure the orchestration layer can produce is a ServiceError.
The exception handler registered in main.py turns them into
{"error": message, **details} JSON bodies with the class status code,
so none of them ever escape as an unhandled 500.
"""

from typing import Any, Dict, Optional

from fastapi import status


class ServiceError(Exception):
    """Base class for structured, caller-visible failures."""

    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_payload(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {"error": self.message}
        payload.update(self.details)
        return payload


class InvalidInput(ServiceError):
    """Malformed or missing request fields. Raised before any side effect."""
    status_code = status.HTTP_400_BAD_REQUEST


class MissingSource(ServiceError):
    """Refine requested without a preview task that reached SUCCEEDED."""
    status_code = status.HTTP_400_BAD_REQUEST

    def __init__(self, preview_task_id: Optional[str]):
        super().__init__(
            "previewTaskId must reference a preview task that has succeeded",
            {"previewTaskId": preview_task_id},
        )


class RateLimited(ServiceError):
    status_code = status.HTTP_429_TOO_MANY_REQUESTS

    def __init__(self, current: int, limit: int):
        super().__init__(
            f"Max concurrent generations reached ({limit}). "
            "Please wait for current models to complete.",
            {"current": current, "limit": limit},
        )


class ConfigurationMissing(ServiceError):
    """Required credential absent; the provider is never called."""
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR


class ServiceDisabled(ServiceError):
    status_code = status.HTTP_503_SERVICE_UNAVAILABLE

    def __init__(self):
        super().__init__(
            "AI generation is temporarily disabled",
            {"disabled": True},
        )


class ProviderRejected(ServiceError):
    """Provider answered with a non-2xx status."""
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(self, message: str, provider_status: Optional[int] = None, body: Any = None):
        details: Dict[str, Any] = {"providerStatus": provider_status}
        if body is not None:
            details["details"] = body
        super().__init__(message, details)
        self.provider_status = provider_status
        self.body = body


class ProviderUnreachable(ServiceError):
    """Network-level failure talking to the provider."""
    status_code = status.HTTP_502_BAD_GATEWAY


class ProviderTimeout(ProviderUnreachable):
    """The HTTP client gave up waiting for the provider's answer."""


class SubmissionTimeout(ProviderUnreachable):
    """Provider did not acknowledge a submission within its ceiling."""
    status_code = status.HTTP_504_GATEWAY_TIMEOUT

    def __init__(self, timeout_seconds: float):
        super().__init__(
            f"Provider did not acknowledge the submission within {timeout_seconds:g}s",
            {"timeoutSeconds": timeout_seconds},
        )


class PollTimeout(ServiceError):
    """Synchronous poll exhausted its attempt budget without a terminal state."""
    status_code = status.HTTP_504_GATEWAY_TIMEOUT

    def __init__(self, attempts: int, elapsed_seconds: float):
        super().__init__(
            f"Generation timeout (no terminal state after {attempts} attempts, "
            f"{elapsed_seconds:g}s)",
            {"attempts": attempts},
        )


class GenerationFailed(ServiceError):
    """Provider reported an error, abort or expired terminal state."""
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR


class NoAssetUrl(ServiceError):
    """Job succeeded but its payload carries no recognizable asset URL."""
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(self, task_id: Optional[str] = None):
        super().__init__(
            "No asset URL found in provider response",
            {"taskId": task_id, "jobStatus": "SUCCEEDED"},
        )


class DomainNotAllowed(ServiceError):
    status_code = status.HTTP_403_FORBIDDEN

    def __init__(self, url: str):
        super().__init__("Domain not allowed for proxying", {"url": url[:100]})


class UpstreamError(ServiceError):
    """Proxied asset host answered non-2xx; its status code is passed through."""

    def __init__(self, upstream_status: int, url: str):
        super().__init__(f"Upstream error: {upstream_status}", {"url": url[:100]})
        self.status_code = upstream_status

"""Exception types raised by the core modules and mapped to HTTP errors by routers."""

from typing import Optional


class GenerationError(Exception):
    """Image generation failed for a reason not covered by a narrower type."""

    status_code = 500
    error_code = "generation_failed"


class SafetyFilterError(GenerationError):
    status_code = 400
    error_code = "safety_filter"


class GenerationTimeoutError(GenerationError):
    status_code = 408
    error_code = "timeout"


class ProviderAuthError(GenerationError):
    status_code = 401
    error_code = "provider_auth"


class ProviderPermissionError(GenerationError):
    status_code = 403
    error_code = "provider_permission"


class ProviderQuotaError(GenerationError):
    status_code = 429
    error_code = "provider_quota"


class ProviderConfigError(GenerationError):
    """The selected provider is missing its API key or is unknown."""

    error_code = "provider_config"


class QuotaBackendError(Exception):
    """The usage database could not be reached or returned an unusable payload."""

    def __init__(self, message: str, details: Optional[str] = None) -> None:
        super().__init__(message)
        self.details = details


_SAFETY_MARKERS = ("flagged as sensitive", "e005", "image_safety", "blocked by safety")
_AUTH_MARKERS = (
    "api_key_invalid",
    "api token",
    "unauthorized",
    "unauthenticated",
    "invalid api key",
)
_PERMISSION_MARKERS = ("permission_denied", "403")
_QUOTA_MARKERS = ("quota", "resource_exhausted")


def classify_provider_error(exc: BaseException) -> GenerationError:
    """Map an arbitrary provider exception onto a typed GenerationError.

    Providers report most failures only through the error message, so the
    match is done on lower-cased substrings. Already-typed errors pass through.
    """
    if isinstance(exc, GenerationError):
        return exc

    message = str(exc) or exc.__class__.__name__
    lowered = message.lower()

    if any(marker in lowered for marker in _SAFETY_MARKERS):
        return SafetyFilterError(message)
    if "timeout" in lowered or "timed out" in lowered:
        return GenerationTimeoutError(message)
    if any(marker in lowered for marker in _AUTH_MARKERS):
        return ProviderAuthError(message)
    if any(marker in lowered for marker in _PERMISSION_MARKERS):
        return ProviderPermissionError(message)
    if any(marker in lowered for marker in _QUOTA_MARKERS):
        return ProviderQuotaError(message)
    return GenerationError(message)

from __future__ import annotations
from typing import List, Optional


class ProviderError(Exception):
    """Base class for provider-level failures."""


class ProviderClientError(ProviderError):
    """
    Non-retryable: caller/config issue (4xx invalid request, auth, unknown model).
    The fix is change input/config, not retry.
    """


class MissingCredentialError(ProviderClientError):
    """Raised before any network call when a provider has no API key."""


class ModelUnavailableError(ProviderClientError):
    """The requested model does not exist for this account/tier (404)."""


class ProviderTransientError(ProviderError):
    """
    Retryable: rate limits, timeouts, network hiccups, 5xx, etc.
    """


class QuotaExceededError(ProviderTransientError):
    """
    Quota or rate-limit exhaustion.
    - retry_after: seconds to wait, None when waiting won't help today
    - is_daily: daily quota spent (do not retry soon)
    """

    def __init__(self, message: str, *, retry_after: Optional[int] = None, is_daily: bool = False):
        super().__init__(message)
        self.retry_after = retry_after
        self.is_daily = is_daily


class AllProvidersFailedError(ProviderError):
    def __init__(self, attempted: List[str], last_error: Optional[BaseException] = None):
        self.attempted = list(attempted)
        self.last_error = last_error
        last = str(last_error) if last_error is not None and str(last_error) else "Unknown error"
        super().__init__(
            f"All AI providers failed. Attempted: {', '.join(self.attempted) or 'none'}. "
            f"Last error: {last}. "
            "Please configure at least one AI provider API key in your .env file."
        )


# Message-level classification. Upstream errors arrive wrapped in plain
# exceptions often enough that the text is the only reliable signal.

_QUOTA_MARKERS = ("quota", "429", "rate limit", "too many requests", "resource_exhausted")
_NOT_FOUND_MARKERS = ("404", "not found")
_CREDENTIAL_MARKERS = ("not configured", "api key")


def is_quota_message(message: str) -> bool:
    lower = (message or "").lower()
    return any(k in lower for k in _QUOTA_MARKERS)


def is_not_found_message(message: str) -> bool:
    lower = (message or "").lower()
    return any(k in lower for k in _NOT_FOUND_MARKERS)


def is_credential_message(message: str) -> bool:
    lower = (message or "").lower()
    return any(k in lower for k in _CREDENTIAL_MARKERS)


def is_quota_error(exc: BaseException) -> bool:
    return isinstance(exc, QuotaExceededError) or is_quota_message(str(exc))


def is_not_found_error(exc: BaseException) -> bool:
    return isinstance(exc, ModelUnavailableError) or is_not_found_message(str(exc))


def is_credential_error(exc: BaseException) -> bool:
    return isinstance(exc, MissingCredentialError) or is_credential_message(str(exc))

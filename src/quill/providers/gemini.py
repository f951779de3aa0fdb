"""
Google Gemini over the generativelanguage REST API.

Three pieces live here:
- GeminiClient: one generateContent call against one model
- GeminiAdapter: the engine-facing provider; walks a short model list and
  hands quota failures back to the engine so the next provider gets a turn
- GeminiModelFallback: the standalone multi-model escape hatch used when
  Gemini is the only configured provider; it keeps trying models through
  quota failures and folds them into one QuotaExceededError
"""
from __future__ import annotations
import math
import re
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

import httpx
import structlog

from quill.providers.registry import ProviderRegistry
from quill.providers.http import post_json, upstream_message
from quill.core.errors import (
    MissingCredentialError,
    ProviderTransientError,
    QuotaExceededError,
    is_not_found_error,
    is_quota_error,
)
from quill.resilience.fallback_chain import ChainExhausted, Decision, FallbackChain
from quill.settings import GenerationSettings

log = structlog.get_logger(__name__)

API_ROOT = "https://generativelanguage.googleapis.com/v1beta"
TEMPERATURE = 0.7
MAX_OUTPUT_TOKENS = 2048
USAGE_URL = "https://ai.dev/usage"
DEFAULT_RETRY_DELAY = 5

# Newest first, most widely available last
PROVIDER_MODELS = [
    "gemini-2.0-flash-exp",
    "gemini-1.5-pro",
    "gemini-1.5-flash",
    "gemini-pro",
]
FALLBACK_MODELS = PROVIDER_MODELS + ["models/gemini-pro"]

_RETRY_RE = re.compile(r"Please retry in ([\d.]+)s")


def extract_retry_delay(message: str) -> int:
    """Seconds from 'Please retry in 12.3s' (rounded up), else 5."""
    m = _RETRY_RE.search(message or "")
    if m:
        try:
            return int(math.ceil(float(m.group(1))))
        except ValueError:
            pass
    return DEFAULT_RETRY_DELAY


@dataclass(frozen=True)
class QuotaAnalysis:
    is_daily: bool
    is_rate_limit: bool

    @property
    def is_quota_exceeded(self) -> bool:
        return self.is_daily or self.is_rate_limit


def analyze_quota_error(message: str) -> QuotaAnalysis:
    msg = message or ""
    is_daily = (
        "PerDay" in msg
        or "daily" in msg
        or ("free_tier" in msg and "limit: 0" in msg)
    )
    is_rate_limit = (
        "PerMinute" in msg
        or "rate limit" in msg
        or ("429" in msg and not is_daily)
    )
    return QuotaAnalysis(is_daily=is_daily, is_rate_limit=is_rate_limit)


def quota_error_from(message: str, retry_delay: int) -> QuotaExceededError:
    """Turn the last upstream quota message into one actionable error."""
    info = analyze_quota_error(message)
    if info.is_daily:
        return QuotaExceededError(
            "Daily quota exceeded. You've reached your free tier daily limit. "
            f"Quota resets daily. Check your usage at {USAGE_URL} or consider upgrading your plan.",
            retry_after=None,
            is_daily=True,
        )
    if info.is_rate_limit:
        return QuotaExceededError(
            f"Rate limit exceeded. Please wait {retry_delay} seconds before trying again. "
            f"Check your usage at {USAGE_URL}",
            retry_after=retry_delay,
        )
    return QuotaExceededError(
        f"Quota exceeded. Please wait {retry_delay} seconds before trying again. "
        f"You may have exceeded your free tier quota. Check your usage at {USAGE_URL}",
        retry_after=retry_delay,
    )


def _describe_error(resp: httpx.Response) -> str:
    """
    Upstream message plus the quota ids / retry hint buried in error.details,
    so the daily vs per-minute distinction survives into the message text.
    """
    detail = upstream_message(resp)
    try:
        body = resp.json()
    except ValueError:
        return detail
    err = body.get("error") if isinstance(body, dict) else None
    details = err.get("details") if isinstance(err, dict) else None
    extras: List[str] = []
    for item in details or []:
        if not isinstance(item, dict):
            continue
        for violation in item.get("violations") or []:
            quota_id = violation.get("quotaId") if isinstance(violation, dict) else None
            if quota_id:
                extras.append(f"quotaId: {quota_id}")
        delay = item.get("retryDelay")
        if delay and not _RETRY_RE.search(detail):
            extras.append(f"Please retry in {delay}")
    return " ".join([detail] + extras)


def _model_path(model: str) -> str:
    return model if model.startswith("models/") else f"models/{model}"


def _candidate_text(data: Any) -> str:
    if not isinstance(data, dict):
        return ""
    candidates = data.get("candidates")
    if not isinstance(candidates, list) or not candidates or not isinstance(candidates[0], dict):
        return ""
    content = candidates[0].get("content")
    parts = content.get("parts") if isinstance(content, dict) else None
    if not isinstance(parts, list):
        return ""
    return "".join(p.get("text", "") for p in parts if isinstance(p, dict))


class GeminiClient:
    def __init__(self, api_key: str, *, http_client: httpx.Client, timeout: Optional[float] = None):
        self._api_key = api_key
        self._http = http_client
        self.timeout = timeout

    def generate(self, model: str, prompt: str) -> str:
        payload: Dict[str, Any] = {
            "contents": [{"role": "user", "parts": [{"text": prompt}]}],
            "generationConfig": {"temperature": TEMPERATURE, "maxOutputTokens": MAX_OUTPUT_TOKENS},
        }
        data = post_json(
            self._http,
            f"{API_ROOT}/{_model_path(model)}:generateContent",
            provider_name="Gemini",
            headers={"x-goog-api-key": self._api_key},
            payload=payload,
            timeout=self.timeout,
            status_in_message=True,
            describe=_describe_error,
        )
        return _candidate_text(data)


def _model_list(settings: GenerationSettings, defaults: List[str]) -> List[str]:
    preferred = settings.models.get("gemini")
    if not preferred:
        return list(defaults)
    return [preferred] + [m for m in defaults if m != preferred]


def _provider_decision(exc: BaseException) -> Decision:
    # Quota goes back to the engine: another provider beats another Gemini model.
    if is_quota_error(exc):
        return Decision.ABORT
    return Decision.CONTINUE


@ProviderRegistry.register("gemini", display_name="Google Gemini", credential_env="GEMINI_API_KEY")
class GeminiAdapter:
    default_model = PROVIDER_MODELS[0]

    def __init__(self, client: GeminiClient, models: Optional[List[str]] = None):
        self.client = client
        self.models = list(models or PROVIDER_MODELS)
        self.model = self.models[0]

    @classmethod
    def create(cls, settings: GenerationSettings, http_client: httpx.Client) -> "GeminiAdapter":
        api_key = settings.api_key(cls.key)
        if not api_key:
            raise MissingCredentialError(f"{cls.display_name} API key not configured")
        client = GeminiClient(api_key, http_client=http_client, timeout=settings.timeout)
        return cls(client, _model_list(settings, PROVIDER_MODELS))

    def _on_failure(self, model: str, exc: BaseException) -> None:
        log.info("gemini.model_failed", model=model, error=str(exc))

    def generate(self, prompt: str) -> str:
        chain = FallbackChain(_provider_decision, name="gemini-provider", on_failure=self._on_failure)
        attempts = [(m, lambda m=m: self.client.generate(m, prompt)) for m in self.models]
        try:
            return chain.run(attempts)
        except ChainExhausted as e:
            raise e.last_error or ProviderTransientError("All Gemini models failed") from e


def _fallback_decision(exc: BaseException) -> Decision:
    if is_quota_error(exc) or is_not_found_error(exc):
        return Decision.CONTINUE
    # Unknown failures (bad key, bad request) won't improve on another model
    return Decision.ABORT


class GeminiModelFallback:
    """
    generate_with_model_fallback(prompt): try every model in order.
    - not found: next model
    - quota / rate limit: remember it (max retry delay wins), next model;
      model variants can have independent quotas
    - anything else: raise immediately, unchanged
    """

    def __init__(self, client: GeminiClient, models: Optional[List[str]] = None):
        self.client = client
        self.models = list(models or FALLBACK_MODELS)

    @classmethod
    def create(cls, settings: GenerationSettings, http_client: httpx.Client) -> "GeminiModelFallback":
        api_key = settings.api_key("gemini")
        if not api_key:
            raise MissingCredentialError("Gemini API key not configured")
        client = GeminiClient(api_key, http_client=http_client, timeout=settings.timeout)
        return cls(client, _model_list(settings, FALLBACK_MODELS))

    def generate_with_model_fallback(self, prompt: str) -> str:
        quota_error: Optional[BaseException] = None
        retry_delay = 0

        def on_failure(model: str, exc: BaseException) -> None:
            nonlocal quota_error, retry_delay
            log.info("gemini.model_failed", model=model, error=str(exc))
            if is_quota_error(exc):
                quota_error = exc
                retry_delay = max(retry_delay, extract_retry_delay(str(exc)))

        chain = FallbackChain(_fallback_decision, name="gemini-fallback", on_failure=on_failure)
        attempts = [(m, lambda m=m: self.client.generate(m, prompt)) for m in self.models]
        try:
            return chain.run(attempts)
        except ChainExhausted as e:
            if quota_error is not None:
                raise quota_error_from(str(quota_error), retry_delay) from quota_error
            raise e.last_error or ProviderTransientError("All model attempts failed") from e

# src/quill/providers/openai_adapter.py
from __future__ import annotations
from typing import Any, Dict, Optional

import httpx
from openai import OpenAI

from quill.providers.registry import ProviderRegistry
from quill.providers.http import error_for_status
from quill.core.errors import MissingCredentialError, ProviderClientError, ProviderTransientError
from quill.settings import GenerationSettings

TEMPERATURE = 0.7
MAX_TOKENS = 2000


def _body_message(body: Any) -> Optional[str]:
    # SDK status errors carry the decoded "error" object; some servers nest it once more
    if not isinstance(body, dict):
        return None
    inner = body.get("error")
    if isinstance(inner, dict):
        body = inner
    message = body.get("message")
    return message if isinstance(message, str) and message.strip() else None


def _classify_openai_exception(exc: Exception, provider_name: str) -> Exception:
    """
    Convert OpenAI SDK exceptions into neutral provider errors.
    Avoid hard dependency on specific SDK exception classes by inspecting attributes/message.
    """
    status = getattr(exc, "status_code", None) or getattr(exc, "http_status", None)
    detail = _body_message(getattr(exc, "body", None)) or getattr(exc, "message", None) or str(exc)
    msg = f"{provider_name} API error: {detail}"

    if status is not None:
        return error_for_status(int(status), msg)

    lower = detail.lower()
    if any(k in lower for k in ("rate limit", "temporarily unavailable", "timeout", "timed out", "connection")):
        return ProviderTransientError(msg)
    if any(k in lower for k in ("invalid_request_error", "unsupported", "parameter", "authentication")):
        return ProviderClientError(msg)
    return ProviderTransientError(msg)


@ProviderRegistry.register("openai", display_name="OpenAI", credential_env="OPENAI_API_KEY")
class OpenAIAdapter:
    """
    Chat-completions adapter on the OpenAI SDK:
    - one request per call (SDK retries disabled)
    - maps SDK errors to neutral ProviderClientError / ProviderTransientError
    """

    default_model = "gpt-3.5-turbo"
    base_url: Optional[str] = None

    def __init__(
        self,
        model: str,
        api_key: str,
        *,
        timeout: Optional[float] = None,
        http_client: Optional[httpx.Client] = None,
    ):
        self.model = model
        client_kwargs: Dict[str, Any] = {"api_key": api_key, "max_retries": 0}
        if self.base_url:
            client_kwargs["base_url"] = self.base_url
        if http_client is not None:
            client_kwargs["http_client"] = http_client
        self.client = OpenAI(**client_kwargs)
        self.timeout = timeout

    @classmethod
    def create(cls, settings: GenerationSettings, http_client: Optional[httpx.Client] = None):
        api_key = settings.api_key(cls.key)
        if not api_key:
            raise MissingCredentialError(f"{cls.display_name} API key not configured")
        return cls(
            model=settings.model(cls.key, cls.default_model),
            api_key=api_key,
            timeout=settings.timeout,
            http_client=http_client,
        )

    def _build_args(self, prompt: str) -> Dict[str, Any]:
        args: Dict[str, Any] = {
            "model": self.model,
            "messages": [{"role": "user", "content": prompt}],
            "temperature": TEMPERATURE,
            "max_tokens": MAX_TOKENS,
        }
        if self.timeout is not None:
            args["timeout"] = self.timeout
        return args

    def generate(self, prompt: str) -> str:
        try:
            resp = self.client.chat.completions.create(**self._build_args(prompt))
        except Exception as e:
            raise _classify_openai_exception(e, self.display_name) from e
        if not resp.choices:
            return ""
        return resp.choices[0].message.content or ""


@ProviderRegistry.register("groq", display_name="Groq", credential_env="GROQ_API_KEY")
class GroqAdapter(OpenAIAdapter):
    """Groq serves an OpenAI-compatible chat-completions endpoint."""

    default_model = "llama-3.1-8b-instant"
    base_url = "https://api.groq.com/openai/v1"

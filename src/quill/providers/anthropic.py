from __future__ import annotations
from typing import Any, Dict, Optional

import httpx

from quill.providers.registry import ProviderRegistry
from quill.providers.http import post_json
from quill.core.errors import MissingCredentialError
from quill.settings import GenerationSettings

MESSAGES_URL = "https://api.anthropic.com/v1/messages"
ANTHROPIC_VERSION = "2023-06-01"
MAX_TOKENS = 2000


@ProviderRegistry.register("anthropic", display_name="Anthropic Claude", credential_env="ANTHROPIC_API_KEY")
class AnthropicAdapter:
    """Messages API over httpx: x-api-key + anthropic-version headers."""

    default_model = "claude-3-haiku-20240307"

    def __init__(self, model: str, api_key: str, *, http_client: httpx.Client, timeout: Optional[float] = None):
        self.model = model
        self._api_key = api_key
        self._http = http_client
        self.timeout = timeout

    @classmethod
    def create(cls, settings: GenerationSettings, http_client: httpx.Client) -> "AnthropicAdapter":
        api_key = settings.api_key(cls.key)
        if not api_key:
            raise MissingCredentialError(f"{cls.display_name} API key not configured")
        return cls(
            model=settings.model(cls.key, cls.default_model),
            api_key=api_key,
            http_client=http_client,
            timeout=settings.timeout,
        )

    def generate(self, prompt: str) -> str:
        payload: Dict[str, Any] = {
            "model": self.model,
            "max_tokens": MAX_TOKENS,
            "messages": [{"role": "user", "content": prompt}],
        }
        data = post_json(
            self._http,
            MESSAGES_URL,
            provider_name="Anthropic",
            headers={"x-api-key": self._api_key, "anthropic-version": ANTHROPIC_VERSION},
            payload=payload,
            timeout=self.timeout,
        )
        blocks = data.get("content") if isinstance(data, dict) else None
        if not isinstance(blocks, list) or not blocks or not isinstance(blocks[0], dict):
            return ""
        return blocks[0].get("text") or ""

from __future__ import annotations
import json
from typing import Any, Optional

import httpx

from quill.providers.registry import ProviderRegistry
from quill.providers.http import post_json
from quill.core.errors import MissingCredentialError
from quill.settings import GenerationSettings

INFERENCE_URL = "https://api-inference.huggingface.co/models/{model}"
MAX_NEW_TOKENS = 1000
TEMPERATURE = 0.7


def _first_generation(data: Any) -> Optional[str]:
    if isinstance(data, list) and data and isinstance(data[0], dict):
        text = data[0].get("generated_text")
        return text if isinstance(text, str) and text else None
    if isinstance(data, dict):
        text = data.get("generated_text")
        if isinstance(text, str) and text:
            return text
        # Some deployments key the generations by index: {"0": {...}}
        first = data.get("0", data.get(0))
        if isinstance(first, dict):
            text = first.get("generated_text")
            return text if isinstance(text, str) and text else None
    return None


def normalize_generation(data: Any) -> str:
    """
    The Inference API answers in different shapes depending on the model:
    [{"generated_text": ...}] or {"generated_text": ...}. Anything else is
    serialised as-is. Never raises.
    """
    text = _first_generation(data)
    if text is not None:
        return text
    try:
        return json.dumps(data)
    except (TypeError, ValueError):
        return str(data)


@ProviderRegistry.register("huggingface", display_name="Hugging Face", credential_env="HUGGINGFACE_API_KEY")
class HuggingFaceAdapter:
    default_model = "mistralai/Mistral-7B-Instruct-v0.2"

    def __init__(self, model: str, api_key: str, *, http_client: httpx.Client, timeout: Optional[float] = None):
        self.model = model
        self._api_key = api_key
        self._http = http_client
        self.timeout = timeout

    @classmethod
    def create(cls, settings: GenerationSettings, http_client: httpx.Client) -> "HuggingFaceAdapter":
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
        data = post_json(
            self._http,
            INFERENCE_URL.format(model=self.model),
            provider_name=self.display_name,
            headers={"Authorization": f"Bearer {self._api_key}"},
            payload={
                "inputs": prompt,
                "parameters": {"max_new_tokens": MAX_NEW_TOKENS, "temperature": TEMPERATURE},
            },
            timeout=self.timeout,
        )
        return normalize_generation(data)

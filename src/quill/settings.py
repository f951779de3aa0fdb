from __future__ import annotations
import os
from dataclasses import dataclass, field
from typing import Dict, List, Mapping, Optional

DEFAULT_PROVIDER_ORDER = ["openai", "anthropic", "groq", "huggingface", "gemini"]
DEFAULT_TIMEOUT = 60.0

# provider key -> environment variable holding its API key
CREDENTIAL_ENV: Dict[str, str] = {
    "openai": "OPENAI_API_KEY",
    "anthropic": "ANTHROPIC_API_KEY",
    "groq": "GROQ_API_KEY",
    "huggingface": "HUGGINGFACE_API_KEY",
    "gemini": "GEMINI_API_KEY",
}

# provider key -> environment variable overriding its model name
MODEL_ENV: Dict[str, str] = {
    "openai": "OPENAI_MODEL",
    "anthropic": "ANTHROPIC_MODEL",
    "groq": "GROQ_MODEL",
    "huggingface": "HUGGINGFACE_MODEL",
    "gemini": "GEMINI_MODEL",
}

ORDER_ENV = "AI_PROVIDER_ORDER"
TIMEOUT_ENV = "QUILL_TIMEOUT"


def parse_provider_list(raw: Optional[str]) -> Optional[List[str]]:
    """'openai, groq,,gemini' -> ['openai', 'groq', 'gemini']; blank -> None."""
    if raw is None:
        return None
    keys = [p.strip().lower() for p in raw.split(",")]
    keys = [k for k in keys if k]
    return keys or None


@dataclass
class GenerationSettings:
    """
    Explicit configuration handed to the engine at construction.
    Nothing downstream reads os.environ.
    """

    api_keys: Dict[str, str] = field(default_factory=dict)
    models: Dict[str, str] = field(default_factory=dict)
    provider_order: Optional[List[str]] = None
    timeout: float = DEFAULT_TIMEOUT

    def __post_init__(self) -> None:
        # Blank keys count as absent
        self.api_keys = {k.lower(): v.strip() for k, v in self.api_keys.items() if v and v.strip()}
        self.models = {k.lower(): v.strip() for k, v in self.models.items() if v and v.strip()}

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "GenerationSettings":
        env = os.environ if environ is None else environ
        api_keys = {key: env.get(var, "") for key, var in CREDENTIAL_ENV.items()}
        models = {key: env.get(var, "") for key, var in MODEL_ENV.items()}
        timeout_raw = env.get(TIMEOUT_ENV)
        try:
            timeout = float(timeout_raw) if timeout_raw else DEFAULT_TIMEOUT
        except ValueError:
            raise ValueError(f"{TIMEOUT_ENV} must be a number, got '{timeout_raw}'")
        if timeout <= 0:
            raise ValueError(f"{TIMEOUT_ENV} must be positive, got '{timeout_raw}'")
        return cls(
            api_keys=api_keys,
            models=models,
            provider_order=parse_provider_list(env.get(ORDER_ENV)),
            timeout=timeout,
        )

    def api_key(self, provider: str) -> Optional[str]:
        return self.api_keys.get(provider.lower())

    def model(self, provider: str, default: str) -> str:
        return self.models.get(provider.lower(), default)

    def has_credential(self, provider: str) -> bool:
        return bool(self.api_key(provider))

    def configured_providers(self) -> List[str]:
        return [k for k in DEFAULT_PROVIDER_ORDER if self.has_credential(k)]

    def only_configured(self, provider: str) -> bool:
        """True when `provider` is the one and only provider with a credential."""
        return self.configured_providers() == [provider.lower()]

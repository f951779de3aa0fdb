from __future__ import annotations
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional, Type
from importlib import import_module


@dataclass(frozen=True)
class ProviderDescriptor:
    key: str
    display_name: str
    adapter: Type          # class exposing create(settings, http_client) -> Provider
    credential_env: str


class ProviderRegistry:
    _descriptors: Dict[str, ProviderDescriptor] = {}

    @classmethod
    def register(cls, key: str, *, display_name: str, credential_env: str) -> Callable[[Type], Type]:
        key = key.lower()
        def deco(klass: Type) -> Type:
            klass.key = key
            klass.display_name = display_name
            cls._descriptors[key] = ProviderDescriptor(
                key=key, display_name=display_name, adapter=klass, credential_env=credential_env,
            )
            return klass
        return deco

    @classmethod
    def get(cls, key: str) -> ProviderDescriptor:
        k = key.lower()
        if k not in cls._descriptors:
            raise KeyError(f"Provider '{key}' not registered")
        return cls._descriptors[k]

    @classmethod
    def find(cls, key: str) -> Optional[ProviderDescriptor]:
        return cls._descriptors.get(key.lower())

    @classmethod
    def descriptors(cls) -> List[ProviderDescriptor]:
        return list(cls._descriptors.values())

    @classmethod
    def ensure_imports(cls) -> None:
        """
        Import built-in adapters so their @register decorators run.
        Call once at bootstrap before get().
        """
        import_module("quill.providers.openai_adapter")
        import_module("quill.providers.anthropic")
        import_module("quill.providers.huggingface")
        import_module("quill.providers.gemini")

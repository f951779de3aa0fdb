# tests/unit/test_registry.py

from __future__ import annotations
import sys
from pathlib import Path
import pytest

# Make "src" importable
sys.path.insert(0, str(Path(__file__).resolve().parents[2] / "src"))

from quill.providers.registry import ProviderRegistry  # type: ignore


def test_builtins_registered():
    ProviderRegistry.ensure_imports()
    names = {d.key: d.display_name for d in ProviderRegistry.descriptors()}
    assert names == {
        "openai": "OpenAI",
        "anthropic": "Anthropic Claude",
        "groq": "Groq",
        "huggingface": "Hugging Face",
        "gemini": "Google Gemini",
    }
    assert ProviderRegistry.get("gemini").credential_env == "GEMINI_API_KEY"


def test_registry_register_and_get(monkeypatch):
    monkeypatch.setattr(ProviderRegistry, "_descriptors", dict(ProviderRegistry._descriptors))

    @ProviderRegistry.register("Dummy", display_name="Dummy LLM", credential_env="DUMMY_API_KEY")
    class DummyProvider:
        default_model = "dummy-1"
        @classmethod
        def create(cls, settings, http_client):
            return cls()
        def generate(self, prompt): return "ok"

    # Case-insensitive lookup; decorator stamps key/name on the class
    assert ProviderRegistry.get("dummy").adapter is DummyProvider
    assert ProviderRegistry.get("DUMMY").display_name == "Dummy LLM"
    assert DummyProvider.key == "dummy"
    assert DummyProvider.display_name == "Dummy LLM"


def test_registry_unknown():
    with pytest.raises(KeyError):
        ProviderRegistry.get("does-not-exist")
    assert ProviderRegistry.find("does-not-exist") is None

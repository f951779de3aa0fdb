# tests/unit/test_openai_adapter.py

from __future__ import annotations
import sys
from pathlib import Path
from typing import Any, Dict, List
import pytest

# Make "src" importable
sys.path.insert(0, str(Path(__file__).resolve().parents[2] / "src"))

# Import the module, then monkeypatch its OpenAI class
import quill.providers.openai_adapter as oa  # type: ignore
from quill.core.errors import (
    MissingCredentialError,
    ModelUnavailableError,
    ProviderClientError,
    ProviderTransientError,
    QuotaExceededError,
)
from quill.settings import GenerationSettings


# -------- Fakes to replace the OpenAI SDK --------

class _FakeMessage:
    def __init__(self, content) -> None:
        self.content = content

class _FakeChoice:
    def __init__(self, content) -> None:
        self.message = _FakeMessage(content)

class _FakeResponse:
    def __init__(self, content) -> None:
        self.choices = [_FakeChoice(content)]

class _StatusError(Exception):
    def __init__(self, status_code: int, message: str, body: Any = None) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.message = message
        self.body = body

class _FakeCompletions:
    def __init__(self, parent) -> None:
        self.parent = parent
    def create(self, **kwargs):
        self.parent.requests.append(kwargs)
        if self.parent.raise_exc is not None:
            raise self.parent.raise_exc
        return _FakeResponse(self.parent.reply)

class _FakeChat:
    def __init__(self, parent) -> None:
        self.completions = _FakeCompletions(parent)

class _FakeOpenAI:
    instances: List["_FakeOpenAI"] = []
    reply: Any = "hello world"
    raise_exc: Any = None

    def __init__(self, **kwargs) -> None:
        self.kwargs: Dict[str, Any] = kwargs
        self.requests: List[Dict[str, Any]] = []
        self.chat = _FakeChat(self)
        _FakeOpenAI.instances.append(self)


@pytest.fixture
def fake_sdk(monkeypatch):
    _FakeOpenAI.instances = []
    _FakeOpenAI.reply = "hello world"
    _FakeOpenAI.raise_exc = None
    monkeypatch.setattr(oa, "OpenAI", _FakeOpenAI, raising=True)
    return _FakeOpenAI


def test_openai_request_shape(fake_sdk):
    settings = GenerationSettings(api_keys={"openai": "sk-test"}, timeout=12.0)
    adapter = oa.OpenAIAdapter.create(settings)

    assert adapter.generate("hi") == "hello world"
    client = fake_sdk.instances[-1]
    assert client.kwargs == {"api_key": "sk-test", "max_retries": 0}
    assert client.requests == [{
        "model": "gpt-3.5-turbo",
        "messages": [{"role": "user", "content": "hi"}],
        "temperature": 0.7,
        "max_tokens": 2000,
        "timeout": 12.0,
    }]
    assert adapter.model == "gpt-3.5-turbo"


def test_groq_uses_compatible_endpoint_and_model_override(fake_sdk):
    settings = GenerationSettings(api_keys={"groq": "gsk"}, models={"groq": "mixtral-8x7b-32768"})
    adapter = oa.GroqAdapter.create(settings)
    adapter.generate("hi")
    client = fake_sdk.instances[-1]
    assert client.kwargs["base_url"] == "https://api.groq.com/openai/v1"
    assert client.requests[-1]["model"] == "mixtral-8x7b-32768"
    assert adapter.display_name == "Groq"


def test_missing_key_raises_before_client_is_built(fake_sdk):
    with pytest.raises(MissingCredentialError) as ei:
        oa.OpenAIAdapter.create(GenerationSettings())
    assert str(ei.value) == "OpenAI API key not configured"
    assert fake_sdk.instances == []


def test_null_content_is_empty_string(fake_sdk):
    fake_sdk.reply = None
    adapter = oa.OpenAIAdapter(model="m", api_key="k")
    assert adapter.generate("hi") == ""


@pytest.mark.parametrize(
    "status, expected",
    [
        (429, QuotaExceededError),
        (404, ModelUnavailableError),
        (401, ProviderClientError),
        (503, ProviderTransientError),
    ],
)
def test_status_errors_are_classified(fake_sdk, status, expected):
    fake_sdk.raise_exc = _StatusError(status, "You exceeded your current quota")
    adapter = oa.OpenAIAdapter(model="m", api_key="k")
    with pytest.raises(expected) as ei:
        adapter.generate("hi")
    assert str(ei.value) == "OpenAI API error: You exceeded your current quota"


def test_errors_without_status_fall_back_to_message(fake_sdk):
    fake_sdk.raise_exc = RuntimeError("Request timed out.")
    adapter = oa.OpenAIAdapter(model="m", api_key="k")
    with pytest.raises(ProviderTransientError):
        adapter.generate("hi")


def test_status_error_prefers_upstream_body_message(fake_sdk):
    body = {"message": "Rate limit reached for gpt-3.5-turbo", "type": "requests", "code": "rate_limit_exceeded"}
    fake_sdk.raise_exc = _StatusError(429, f"Error code: 429 - {{'error': {body}}}", body=body)
    adapter = oa.OpenAIAdapter(model="m", api_key="k")
    with pytest.raises(QuotaExceededError) as ei:
        adapter.generate("hi")
    assert str(ei.value) == "OpenAI API error: Rate limit reached for gpt-3.5-turbo"


def test_status_error_without_usable_body_keeps_sdk_text(fake_sdk):
    fake_sdk.raise_exc = _StatusError(503, "Error code: 503 - upstream overloaded", body="<html>busy</html>")
    adapter = oa.OpenAIAdapter(model="m", api_key="k")
    with pytest.raises(ProviderTransientError) as ei:
        adapter.generate("hi")
    assert str(ei.value) == "OpenAI API error: Error code: 503 - upstream overloaded"

# tests/unit/test_content.py

from __future__ import annotations
import sys
from pathlib import Path
from typing import List, Optional
import pytest

# Make "src" importable
sys.path.insert(0, str(Path(__file__).resolve().parents[2] / "src"))

from quill.content import (
    CONFIG_ERROR_MESSAGE,
    ContentService,
    build_blog_prompt,
    build_improvement_prompt,
)
from quill.core.errors import (
    AllProvidersFailedError,
    MissingCredentialError,
    ProviderClientError,
    QuotaExceededError,
)
from quill.core.results import GenerationResult
from quill.settings import GenerationSettings

LONG_HTML = "<p>" + ("Useful words about the topic. " * 10) + "</p>"


# -------- fakes --------

class FakeEngine:
    def __init__(self, outcome):
        self.outcome = outcome
        self.prompts: List[str] = []
        self.preferred: List[Optional[str]] = []
        self.http_client = None

    def generate(self, prompt: str, preferred: Optional[str] = None) -> str:
        self.prompts.append(prompt)
        self.preferred.append(preferred)
        if isinstance(self.outcome, BaseException):
            raise self.outcome
        return self.outcome


class FakeGeminiFallback:
    def __init__(self, outcome):
        self.outcome = outcome
        self.calls = 0

    def generate_with_model_fallback(self, prompt: str) -> str:
        self.calls += 1
        if isinstance(self.outcome, BaseException):
            raise self.outcome
        return self.outcome


def service(engine_outcome, *, keys=("openai",), gemini_outcome="unused"):
    settings = GenerationSettings(api_keys={k: "key" for k in keys})
    engine = FakeEngine(engine_outcome)
    gemini = FakeGeminiFallback(gemini_outcome)
    return ContentService(settings, engine=engine, gemini_fallback=gemini), engine, gemini


def all_failed(last_error=None, attempted=("OpenAI",)):
    return AllProvidersFailedError(list(attempted), last_error)


# -------- prompts --------

def test_blog_prompt_includes_title_category_tags():
    prompt = build_blog_prompt("Growing Tomatoes", "Garden", ["soil", " ", "sun"])
    assert 'title: "Growing Tomatoes"' in prompt
    assert "Category: Garden" in prompt
    assert "Tags: soil, sun" in prompt
    assert "$" not in prompt


def test_blog_prompt_without_category_or_tags():
    prompt = build_blog_prompt("Bare")
    assert "Category:" not in prompt
    assert "Tags:" not in prompt


@pytest.mark.parametrize(
    "mode, marker",
    [
        ("expand", "expand it with more details"),
        ("simplify", "more concise and easier to read"),
        ("enhance", "more engaging and well-structured"),
        ("nonsense", "more engaging and well-structured"),
        ("", "more engaging and well-structured"),
    ],
)
def test_improvement_modes(mode, marker):
    prompt = build_improvement_prompt("<p>cost: $5 {x}</p>", mode)
    assert marker in prompt
    # user content is inserted verbatim
    assert "<p>cost: $5 {x}</p>" in prompt


# -------- generate_blog_content --------

def test_generate_success_trims():
    svc, engine, gemini = service("  " + LONG_HTML + "\n")
    result = svc.generate_blog_content("Title", preferred="groq")
    assert result == GenerationResult.ok(LONG_HTML)
    assert engine.preferred == ["groq"]
    assert gemini.calls == 0


def test_generate_requires_title():
    svc, engine, _ = service(LONG_HTML)
    result = svc.generate_blog_content("   ")
    assert result.success is False
    assert result.error == "Title is required to generate content"
    assert engine.prompts == []


def test_generate_rejects_short_content():
    svc, _, _ = service("<p>tiny</p>")
    result = svc.generate_blog_content("Title")
    assert result.error == "Generated content is too short or empty"


def test_gemini_only_deployment_uses_model_fallback():
    svc, _, gemini = service(all_failed(QuotaExceededError("429")), keys=("gemini",), gemini_outcome=LONG_HTML)
    result = svc.generate_blog_content("Title")
    assert result.success is True
    assert result.content == LONG_HTML
    assert gemini.calls == 1


def test_model_fallback_not_used_when_other_keys_exist():
    svc, _, gemini = service(all_failed(RuntimeError("boom")), keys=("gemini", "groq"), gemini_outcome=LONG_HTML)
    result = svc.generate_blog_content("Title")
    assert result.success is False
    assert gemini.calls == 0
    assert "All AI providers failed" in result.error


def test_daily_quota_message_passes_through():
    daily = QuotaExceededError("Daily quota exceeded. You've reached your free tier daily limit.", is_daily=True)
    svc, _, _ = service(all_failed(), keys=("gemini",), gemini_outcome=daily)
    result = svc.generate_blog_content("Title")
    assert result.error == str(daily)


def test_rate_limit_message_from_model_fallback_passes_through():
    rate = QuotaExceededError("Rate limit exceeded. Please wait 13 seconds before trying again.", retry_after=13)
    svc, _, _ = service(all_failed(), keys=("gemini",), gemini_outcome=rate)
    assert svc.generate_blog_content("Title").error == str(rate)


def test_engine_quota_failure_gets_wait_guidance():
    svc, _, _ = service(all_failed(QuotaExceededError("Groq API error: rate limit", retry_after=8), attempted=("Groq",)))
    result = svc.generate_blog_content("Title")
    assert result.error.startswith("AI service quota exceeded. Please wait 8 seconds before trying again.")
    assert "Groq" in result.error


def test_upstream_auth_failure_reads_as_configuration_error():
    svc, _, _ = service(all_failed(ProviderClientError("OpenAI API error: Incorrect API key provided")))
    assert svc.generate_blog_content("Title").error == CONFIG_ERROR_MESSAGE


def test_no_provider_configured_message():
    svc, _, _ = service(AllProvidersFailedError([], None), keys=())
    result = svc.generate_blog_content("Title")
    assert result.error == "AI service configuration error. No AI provider API key is configured."


def test_missing_credential_from_model_fallback():
    svc, _, _ = service(all_failed(), keys=("gemini",), gemini_outcome=MissingCredentialError("Gemini API key not configured"))
    assert svc.generate_blog_content("Title").error == CONFIG_ERROR_MESSAGE


def test_generic_failure_keeps_aggregate_message():
    err = all_failed(RuntimeError("Hugging Face API error: Model is currently loading"), attempted=("OpenAI", "Hugging Face"))
    svc, _, _ = service(err)
    result = svc.generate_blog_content("Title")
    assert result.error == str(err)
    assert "Attempted: OpenAI, Hugging Face" in result.error


def test_unexpected_exception_never_escapes():
    svc, _, _ = service(ZeroDivisionError())
    result = svc.generate_blog_content("Title")
    assert result.success is False
    assert result.error == "Failed to generate content. Please try again."


# -------- improve_content --------

def test_improve_success_and_mode_prompt():
    svc, engine, _ = service("  <p>better</p> ")
    result = svc.improve_content("<p>draft</p>", "simplify")
    assert result == GenerationResult.ok("<p>better</p>")
    assert "more concise" in engine.prompts[0]
    assert "<p>draft</p>" in engine.prompts[0]


def test_improve_requires_content():
    svc, engine, _ = service("x")
    result = svc.improve_content("")
    assert result.error == "Content is required for improvement"
    assert engine.prompts == []


def test_improve_gemini_only_fallback():
    svc, _, gemini = service(all_failed(), keys=("gemini",), gemini_outcome="<p>gemini</p>")
    assert svc.improve_content("<p>draft</p>", "expand").content == "<p>gemini</p>"
    assert gemini.calls == 1


# -------- result record --------

def test_result_is_never_half_filled():
    with pytest.raises(ValueError):
        GenerationResult(success=True)
    with pytest.raises(ValueError):
        GenerationResult(success=False, content="x", error="y")
    assert GenerationResult.fail("nope").model_dump() == {"success": False, "content": None, "error": "nope"}

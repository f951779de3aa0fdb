from __future__ import annotations
from pathlib import Path
from string import Template
from typing import Iterable, Optional

import httpx
import structlog

from quill.core.errors import (
    AllProvidersFailedError,
    QuotaExceededError,
    is_credential_error,
    is_quota_error,
)
from quill.core.results import GenerationResult
from quill.engine import FallbackEngine
from quill.providers.gemini import GeminiModelFallback
from quill.settings import GenerationSettings

log = structlog.get_logger(__name__)

PROMPTS_DIR = Path(__file__).resolve().parent / "prompts"
IMPROVEMENT_MODES = ("expand", "simplify", "enhance")
DEFAULT_MODE = "enhance"
MIN_CONTENT_CHARS = 100

CONFIG_ERROR_MESSAGE = "AI service configuration error. Please try again later."


def load_prompt(name: str) -> Template:
    return Template((PROMPTS_DIR / f"{name}.txt").read_text(encoding="utf-8"))


def build_blog_prompt(title: str, category: str = "", tags: Iterable[str] = ()) -> str:
    tags = [t.strip() for t in tags if t and t.strip()]
    return load_prompt("blog_post").safe_substitute(
        title=title.strip(),
        category_line=f"Category: {category}" if category else "",
        tags_line=f"Tags: {', '.join(tags)}" if tags else "",
    )


def build_improvement_prompt(content: str, mode: str = DEFAULT_MODE) -> str:
    key = (mode or "").strip().lower()
    if key not in IMPROVEMENT_MODES:
        key = DEFAULT_MODE
    return load_prompt(f"improve_{key}").safe_substitute(content=content)


def user_message(exc: BaseException, default: str) -> str:
    """
    Turn any failure into text fit for direct display. Keeps three cases
    apart: misconfigured, rate-limited (wait and retry), daily quota spent.
    """
    cause = exc
    if isinstance(exc, AllProvidersFailedError):
        if not exc.attempted:
            return "AI service configuration error. No AI provider API key is configured."
        if exc.last_error is not None:
            cause = exc.last_error

    if isinstance(cause, QuotaExceededError) and cause.is_daily:
        return str(cause) or "Daily quota exceeded. Please try again tomorrow or upgrade your plan."

    if is_quota_error(cause):
        if cause is exc and isinstance(exc, QuotaExceededError) and exc.retry_after:
            # Already worded with wait guidance by the Gemini fallback
            return str(exc)
        retry_after = getattr(cause, "retry_after", None)
        wait = f" Please wait {retry_after} seconds before trying again." if retry_after else ""
        return (
            f"AI service quota exceeded.{wait} Please check your usage or try again later. "
            f"Details: {exc}"
        )

    if not isinstance(cause, AllProvidersFailedError) and is_credential_error(cause):
        return CONFIG_ERROR_MESSAGE

    return str(exc) or default


class ContentService:
    """
    Blog-post generation and improvement on top of the fallback engine.
    Public methods never raise; they return a GenerationResult.
    """

    def __init__(
        self,
        settings: GenerationSettings,
        *,
        engine: Optional[FallbackEngine] = None,
        gemini_fallback: Optional[GeminiModelFallback] = None,
        http_client: Optional[httpx.Client] = None,
    ):
        self.settings = settings
        self.engine = engine or FallbackEngine(settings, http_client=http_client)
        self._gemini_fallback = gemini_fallback

    def _gemini(self) -> GeminiModelFallback:
        if self._gemini_fallback is None:
            self._gemini_fallback = GeminiModelFallback.create(self.settings, self.engine.http_client)
        return self._gemini_fallback

    def _generate(self, prompt: str, preferred: Optional[str] = None) -> str:
        try:
            return self.engine.generate(prompt, preferred)
        except AllProvidersFailedError:
            # Gemini-only deployments get a second pass across Gemini models
            if not self.settings.only_configured("gemini"):
                raise
            log.info("content.gemini_only_fallback")
            return self._gemini().generate_with_model_fallback(prompt)

    def generate_blog_content(
        self,
        title: str,
        category: str = "",
        tags: Iterable[str] = (),
        preferred: Optional[str] = None,
    ) -> GenerationResult:
        try:
            if not title or not title.strip():
                raise ValueError("Title is required to generate content")
            content = self._generate(build_blog_prompt(title, category, tags), preferred)
            if not content or len(content.strip()) < MIN_CONTENT_CHARS:
                raise ValueError("Generated content is too short or empty")
            return GenerationResult.ok(content.strip())
        except Exception as e:
            log.error("content.failed", action="generate", error=str(e))
            return GenerationResult.fail(user_message(e, "Failed to generate content. Please try again."))

    def improve_content(self, current_content: str, improvement_type: str = DEFAULT_MODE) -> GenerationResult:
        try:
            if not current_content or not current_content.strip():
                raise ValueError("Content is required for improvement")
            improved = self._generate(build_improvement_prompt(current_content, improvement_type))
            if not improved or not improved.strip():
                raise ValueError("Improved content came back empty")
            return GenerationResult.ok(improved.strip())
        except Exception as e:
            log.error("content.failed", action="improve", error=str(e))
            return GenerationResult.fail(user_message(e, "Failed to improve content. Please try again."))

from __future__ import annotations
from typing import Callable, Iterator, List, Optional, Tuple

import httpx
import structlog

from quill.core.errors import AllProvidersFailedError, ProviderError, is_quota_error
from quill.core.ports import Provider
from quill.providers.registry import ProviderRegistry
from quill.resilience.fallback_chain import ChainExhausted, Decision, FallbackChain
from quill.settings import DEFAULT_PROVIDER_ORDER, GenerationSettings

log = structlog.get_logger(__name__)


def resolve_provider_order(settings: GenerationSettings, preferred: Optional[str] = None) -> List[str]:
    """
    1) explicit override from config wins outright
    2) preferred provider first, then the default sequence
    3) default sequence
    Duplicates are dropped, first occurrence kept.
    """
    if settings.provider_order:
        order = list(settings.provider_order)
    elif preferred:
        order = [preferred.strip().lower()] + DEFAULT_PROVIDER_ORDER
    else:
        order = list(DEFAULT_PROVIDER_ORDER)

    seen: List[str] = []
    for key in order:
        k = key.strip().lower()
        if k and k not in seen:
            seen.append(k)
    return seen


def _always_continue(_exc: BaseException) -> Decision:
    # The engine never retries a provider and never gives up early;
    # every failure (credential, quota, generic) moves on to the next one.
    return Decision.CONTINUE


class FallbackEngine:
    """
    Tries providers strictly in order; first non-empty answer wins.
    Providers without a credential are skipped before any I/O and are not
    reported as attempted.
    """

    def __init__(self, settings: GenerationSettings, http_client: Optional[httpx.Client] = None):
        ProviderRegistry.ensure_imports()  # make sure built-ins register
        self.settings = settings
        self._owns_client = http_client is None
        self.http_client = http_client or httpx.Client(timeout=settings.timeout)

    def close(self) -> None:
        if self._owns_client:
            self.http_client.close()

    def __enter__(self) -> "FallbackEngine":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    def _attempts(self, order: List[str], prompt: str) -> Iterator[Tuple[str, Callable[[], str]]]:
        for key in order:
            descriptor = ProviderRegistry.find(key)
            if descriptor is None:
                log.warning("provider.unknown", provider=key)
                continue
            if not self.settings.has_credential(key):
                log.info("provider.skipped", provider=descriptor.display_name, reason="API key not configured")
                continue
            try:
                provider: Provider = descriptor.adapter.create(self.settings, self.http_client)
            except ProviderError as e:
                log.info("provider.skipped", provider=descriptor.display_name, reason=str(e))
                continue

            log.info("provider.trying", provider=descriptor.display_name, model=getattr(provider, "model", None))
            yield descriptor.display_name, (lambda p=provider: p.generate(prompt))

    def _on_failure(self, name: str, exc: BaseException) -> None:
        if is_quota_error(exc):
            log.warning("provider.rate_limited", provider=name, error=str(exc))
        else:
            log.warning("provider.failed", provider=name, error=str(exc))

    def generate(self, prompt: str, preferred: Optional[str] = None) -> str:
        order = resolve_provider_order(self.settings, preferred)
        chain = FallbackChain(_always_continue, name="providers", on_failure=self._on_failure)
        try:
            result = chain.run(self._attempts(order, prompt))
        except ChainExhausted as e:
            raise AllProvidersFailedError(e.attempted, e.last_error) from e.last_error
        log.info("provider.succeeded", provider=chain.winner, chars=len(result))
        return result

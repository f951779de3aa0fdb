"""
Shared plumbing for the adapters that talk raw HTTP (httpx).
Each call is one POST; nothing here retries.
"""
from __future__ import annotations
from typing import Any, Callable, Dict, Optional

import httpx

from quill.core.errors import (
    ModelUnavailableError,
    ProviderClientError,
    ProviderError,
    ProviderTransientError,
    QuotaExceededError,
)


def error_for_status(status: int, message: str) -> ProviderError:
    """Map an upstream HTTP status to a neutral provider error."""
    if status == 429:
        return QuotaExceededError(message)
    if status == 404:
        return ModelUnavailableError(message)
    if 500 <= status <= 599:
        return ProviderTransientError(message)
    if 400 <= status < 500:
        return ProviderClientError(message)
    # Unknown status -> be conservative
    return ProviderTransientError(message)


def upstream_message(response: httpx.Response) -> str:
    """
    Pull the human-readable message out of a provider error envelope:
    {"error": {"message": ...}} | {"error": "..."} | reason phrase.
    """
    try:
        body = response.json()
    except ValueError:
        body = None
    if isinstance(body, dict):
        err = body.get("error")
        if isinstance(err, dict) and err.get("message"):
            return str(err["message"])
        if isinstance(err, str) and err:
            return err
        if body.get("message"):
            return str(body["message"])
    return response.reason_phrase or f"HTTP {response.status_code}"


def post_json(
    client: httpx.Client,
    url: str,
    *,
    provider_name: str,
    headers: Dict[str, str],
    payload: Dict[str, Any],
    timeout: Optional[float] = None,
    status_in_message: bool = False,
    describe: Optional[Callable[[httpx.Response], str]] = None,
) -> Any:
    """
    POST `payload` and return the decoded JSON body.
    Non-2xx -> "<provider_name> API error: <upstream message>" as a neutral error.
    status_in_message adds "[<status> <reason>]" so text-based classifiers see it.
    describe overrides how the upstream message is read from an error response.
    """
    try:
        resp = client.post(
            url,
            headers={"Content-Type": "application/json", **headers},
            json=payload,
            timeout=timeout if timeout is not None else httpx.USE_CLIENT_DEFAULT,
        )
    except httpx.TimeoutException as e:
        raise ProviderTransientError(f"{provider_name} API error: request timed out ({e})") from e
    except httpx.HTTPError as e:
        raise ProviderTransientError(f"{provider_name} API error: {e}") from e

    if not resp.is_success:
        detail = (describe or upstream_message)(resp)
        if status_in_message:
            detail = f"[{resp.status_code} {resp.reason_phrase}] {detail}"
        raise error_for_status(resp.status_code, f"{provider_name} API error: {detail}")

    try:
        return resp.json()
    except ValueError as e:
        raise ProviderTransientError(f"{provider_name} API error: response was not JSON") from e

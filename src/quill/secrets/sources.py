# src/quill/secrets/sources.py

from __future__ import annotations
from typing import Protocol, Optional, Dict, Iterable, List, Mapping, Union
import os

from quill.settings import CREDENTIAL_ENV

try:
    import keyring as _keyring
except Exception:
    _keyring = None  # optional

KEYRING_SERVICE = "quill"


class SecretSource(Protocol):
    def get(self, name: str) -> Optional[str]: ...


class EnvSource:
    def __init__(self, environ: Optional[Mapping[str, str]] = None):
        self._env = environ

    def get(self, name: str) -> Optional[str]:
        env = os.environ if self._env is None else self._env
        # 1) exact env var name, 2) derived <NAME>_API_KEY
        for key in (name, f"{name.upper()}_API_KEY"):
            val = env.get(key)
            if val and val.strip():
                return val.strip()
        return None


class SystemKeyringSource:
    """
    Looks up the OS keyring under service 'quill', account = env var name
    (e.g. OPENAI_API_KEY). Any backend failure counts as a miss.
    """

    def __init__(self, service: str = KEYRING_SERVICE):
        self.service = service

    def get(self, name: str) -> Optional[str]:
        if _keyring is None:
            return None
        try:
            val = _keyring.get_password(self.service, name)
        except Exception:
            return None
        return val.strip() if val and val.strip() else None


_ALLOWED_METHODS = {"env", "keyring"}


def _normalise_methods(method: Union[str, Iterable[str]]) -> List[str]:
    methods = [method] if isinstance(method, str) else list(method)
    norm: List[str] = []
    for m in methods:
        key = str(m).strip().lower()
        if key not in _ALLOWED_METHODS:
            raise ValueError(f"Unknown secrets method '{m}'. Allowed: {sorted(_ALLOWED_METHODS)}")
        if key not in norm:
            norm.append(key)
    return norm


def build_secret_sources(
    method: Union[str, Iterable[str]], environ: Optional[Mapping[str, str]] = None
) -> List[SecretSource]:
    sources: List[SecretSource] = []
    for name in _normalise_methods(method):
        if name == "env":
            sources.append(EnvSource(environ))
        elif name == "keyring":
            sources.append(SystemKeyringSource())
    return sources


class SecretsResolver:
    """
    Resolve provider API keys using one or more methods in order.
    mapping: provider key -> env var / keyring account name,
      e.g. {"openai": "MY_OPENAI_KEY"}; defaults to OPENAI_API_KEY etc.
    """

    def __init__(
        self,
        method: Union[str, Iterable[str]] = "env",
        mapping: Optional[Dict[str, str]] = None,
        environ: Optional[Mapping[str, str]] = None,
    ):
        self._sources = build_secret_sources(method, environ)
        self._map = {**CREDENTIAL_ENV, **{k.lower(): v for k, v in (mapping or {}).items()}}

    def secret(self, provider: str) -> Optional[str]:
        name = self._map.get(provider.lower(), provider)
        for src in self._sources:
            val = src.get(name)
            if val:
                return val
        return None

    def api_keys(self, providers: Iterable[str] = CREDENTIAL_ENV) -> Dict[str, str]:
        keys: Dict[str, str] = {}
        for p in providers:
            val = self.secret(p)
            if val:
                keys[p] = val
        return keys

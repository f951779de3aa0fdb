from __future__ import annotations
import os
from pathlib import Path
from typing import Any, Dict, Mapping, Optional
from dotenv import load_dotenv

from .config_loader import load_config, ConfigError
from .content import ContentService
from .logging_config import setup_logging
from .secrets.sources import SecretsResolver
from .settings import (
    DEFAULT_TIMEOUT,
    TIMEOUT_ENV,
    GenerationSettings,
)

DEFAULT_CONFIG = Path("config/quill.yaml")


def build_settings(cfg: Dict[str, Any], environ: Optional[Mapping[str, str]] = None) -> GenerationSettings:
    """
    Merge YAML config and environment into one GenerationSettings.
    Environment values win over YAML values.
    """
    env = os.environ if environ is None else environ

    secrets_cfg = cfg.get("secrets") or {}
    resolver = SecretsResolver(
        method=secrets_cfg.get("method", "env"),
        mapping=secrets_cfg.get("mapping") or {},
        environ=env,
    )

    try:
        from_env = GenerationSettings.from_env(env)
    except ValueError as e:
        raise ConfigError(str(e))

    models: Dict[str, str] = {}
    for key, provider_cfg in (cfg.get("providers") or {}).items():
        model = (provider_cfg or {}).get("model")
        if model:
            models[key.lower()] = model
    models.update(from_env.models)

    timeout = from_env.timeout if env.get(TIMEOUT_ENV) else float(cfg.get("timeout") or DEFAULT_TIMEOUT)

    return GenerationSettings(
        api_keys=resolver.api_keys(),
        models=models,
        provider_order=from_env.provider_order or cfg.get("order") or None,
        timeout=timeout,
    )


def build_app(config_path: Optional[Path] = None, environ: Optional[Mapping[str, str]] = None) -> Dict[str, Any]:
    """
    Composition root: load .env + optional YAML, configure logging, resolve
    credentials and build the content service.
    Returns: dict with cfg, settings, service.
    """
    load_dotenv()
    config_path = config_path or DEFAULT_CONFIG
    cfg = load_config(config_path)
    env = os.environ if environ is None else environ

    log_cfg = cfg.get("logging") or {}
    setup_logging(
        level=env.get("QUILL_LOG_LEVEL") or log_cfg.get("level") or "WARNING",
        fmt=log_cfg.get("format") or "console",
    )

    settings = build_settings(cfg, env)
    return {
        "cfg": cfg,
        "settings": settings,
        "service": ContentService(settings),
    }

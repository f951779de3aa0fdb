# src/quill/config_loader.py

from __future__ import annotations
from pathlib import Path
from typing import Any, Dict, Optional
import yaml

from quill.settings import DEFAULT_PROVIDER_ORDER


class ConfigError(ValueError):
    pass


def _optional(d: Dict[str, Any], dotted: str, typ: Any) -> Any:
    """Value at dotted path, or None when absent. Wrong type -> ConfigError."""
    cur: Any = d
    for k in dotted.split("."):
        if not isinstance(cur, dict) or k not in cur:
            return None
        cur = cur[k]
    if cur is None:
        return None
    if typ is float:
        if isinstance(cur, bool) or not isinstance(cur, (int, float)):
            raise ConfigError(f"'{dotted}' must be a number")
    elif not isinstance(cur, typ):
        name = getattr(typ, "__name__", str(typ))
        raise ConfigError(f"'{dotted}' must be a {name}")
    return cur


def load_config(path: Optional[Path]) -> Dict[str, Any]:
    """
    Optional YAML config. Missing file -> {} (environment alone is enough).
    Shape:
      order: [openai, groq]
      timeout: 30
      providers: { openai: { model: gpt-4o-mini } }
      secrets: { method: [env, keyring], mapping: { openai: MY_KEY } }
      logging: { level: INFO, format: console }
    """
    if not path or not path.exists():
        return {}
    raw = yaml.safe_load(path.read_text())
    if raw is None:
        return {}
    if not isinstance(raw, dict):
        raise ConfigError(f"Config is not a mapping: {path}")

    # Unknown names stay in: the engine warns and skips them, same as AI_PROVIDER_ORDER
    order = _optional(raw, "order", list)
    if order is not None:
        raw["order"] = [str(k).strip().lower() for k in order if str(k).strip()]

    timeout = _optional(raw, "timeout", float)
    if timeout is not None and timeout <= 0:
        raise ConfigError("'timeout' must be positive")

    providers = _optional(raw, "providers", dict) or {}
    for key in providers:
        if str(key).lower() not in DEFAULT_PROVIDER_ORDER:
            raise ConfigError(f"Unknown provider '{key}' under providers")
        _optional(raw, f"providers.{key}.model", str)

    method = _optional(raw, "secrets.method", (str, list))
    if method is not None and not method:
        raise ConfigError("'secrets.method' must not be empty")
    _optional(raw, "secrets.mapping", dict)

    _optional(raw, "logging.level", str)
    fmt = _optional(raw, "logging.format", str)
    if fmt is not None:
        fmt = fmt.lower()
        if fmt not in ("console", "json"):
            raise ConfigError(f"Unknown logging.format '{fmt}' (expected 'console' or 'json').")
        raw["logging"]["format"] = fmt

    return raw

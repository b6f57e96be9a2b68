"""Immutable process settings built from YAML config and environment overrides."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Mapping, Optional

from .config_loader import (
    DEFAULT_CONFIG_PATH,
    default_config_path,
    has_unresolved_placeholder,
    load_config,
)
from .core.models import DEFAULT_FALLBACK_TIERS, DEFAULT_MODEL_MAPPING, FallbackTiers

logger = logging.getLogger("nim-proxy")

DEFAULT_HOST = "0.0.0.0"
DEFAULT_PORT = 10000
DEFAULT_API_BASE = "https://integrate.api.nvidia.com/v1"
DEFAULT_TIMEOUT_SECONDS = 600.0


@dataclass(frozen=True)
class ProxySettings:
    """Read-only configuration shared by every request.

    Built once at startup and passed explicitly to the router and routes.
    """

    api_base: str = DEFAULT_API_BASE
    api_key: Optional[str] = None
    timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS
    force_no_stream: bool = False
    show_reasoning: bool = False
    enable_thinking_mode: bool = False
    model_mapping: Mapping[str, str] = field(
        default_factory=lambda: MappingProxyType(dict(DEFAULT_MODEL_MAPPING))
    )
    fallback_tiers: FallbackTiers = DEFAULT_FALLBACK_TIERS
    host: str = DEFAULT_HOST
    port: int = DEFAULT_PORT
    log_level: str = "INFO"

    @property
    def api_key_present(self) -> bool:
        return bool(self.api_key)

    def health_snapshot(self) -> dict[str, Any]:
        """Return the non-secret view of the settings exposed by /health."""
        return {
            "force_no_stream": self.force_no_stream,
            "reasoning_display": self.show_reasoning,
            "thinking_mode": self.enable_thinking_mode,
            "nim_api_base": self.api_base,
            "nim_api_key_present": self.api_key_present,
            "timeout_seconds": self.timeout_seconds,
        }


def _get(cfg: Mapping[str, Any], *keys: str):
    cur: Any = cfg
    for key in keys:
        if not isinstance(cur, Mapping):
            return None
        cur = cur.get(key)
    return cur


def _to_int(value) -> Optional[int]:
    if value is None:
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


def _to_float(value) -> Optional[float]:
    if value is None:
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def _to_bool(value) -> Optional[bool]:
    if value is None:
        return None
    if isinstance(value, bool):
        return value
    value_str = str(value).strip().lower()
    if value_str in {"1", "true", "yes", "on"}:
        return True
    if value_str in {"0", "false", "no", "off"}:
        return False
    return None


def _env_bool(env: Mapping[str, str], name: str, current: bool) -> bool:
    override = _to_bool(env.get(name))
    return current if override is None else override


def _to_secret(value) -> Optional[str]:
    if value is None:
        return None
    value_str = str(value).strip()
    if not value_str or has_unresolved_placeholder(value_str):
        return None
    return value_str


def _parse_model_mapping(raw) -> Mapping[str, str]:
    if not isinstance(raw, Mapping) or not raw:
        return MappingProxyType(dict(DEFAULT_MODEL_MAPPING))
    mapping = {
        str(name): str(target)
        for name, target in raw.items()
        if name and target
    }
    return MappingProxyType(mapping)


def _parse_fallback_tiers(raw) -> FallbackTiers:
    if not isinstance(raw, Mapping):
        return DEFAULT_FALLBACK_TIERS
    return FallbackTiers(
        large=str(raw.get("large") or DEFAULT_FALLBACK_TIERS.large),
        medium=str(raw.get("medium") or DEFAULT_FALLBACK_TIERS.medium),
        small=str(raw.get("small") or DEFAULT_FALLBACK_TIERS.small),
    )


def settings_from_config(
    cfg: Mapping[str, Any], environ: Optional[Mapping[str, str]] = None
) -> ProxySettings:
    """Build ProxySettings from a parsed config dict, applying env overrides."""
    env = os.environ if environ is None else environ

    host = str(_get(cfg, "proxy_settings", "server", "host") or DEFAULT_HOST)
    port = _to_int(_get(cfg, "proxy_settings", "server", "port")) or DEFAULT_PORT

    api_base = str(_get(cfg, "upstream", "api_base") or DEFAULT_API_BASE)
    api_key = _to_secret(_get(cfg, "upstream", "api_key"))
    timeout_seconds = (
        _to_float(_get(cfg, "upstream", "request_timeout")) or DEFAULT_TIMEOUT_SECONDS
    )

    force_no_stream = bool(_to_bool(_get(cfg, "proxy_settings", "force_no_stream")))
    show_reasoning = bool(_to_bool(_get(cfg, "proxy_settings", "show_reasoning")))
    enable_thinking_mode = bool(
        _to_bool(_get(cfg, "proxy_settings", "enable_thinking_mode"))
    )
    log_level = str(_get(cfg, "proxy_settings", "logging", "level") or "INFO")

    # Env overrides
    host = env.get("NIM_PROXY_HOST", host)
    port = _to_int(env.get("PORT")) or port
    api_base = env.get("NIM_API_BASE") or api_base
    api_key = _to_secret(env.get("NIM_API_KEY")) or api_key

    timeout_env = _to_float(env.get("NIM_TIMEOUT_SECONDS"))
    legacy_timeout_ms = _to_float(env.get("AXIOS_TIMEOUT_MS"))
    if timeout_env is not None:
        timeout_seconds = timeout_env
    elif legacy_timeout_ms is not None:
        timeout_seconds = legacy_timeout_ms / 1000.0
    if timeout_seconds <= 0:
        logger.warning("Ignoring non-positive upstream timeout %s", timeout_seconds)
        timeout_seconds = DEFAULT_TIMEOUT_SECONDS

    force_no_stream = _env_bool(env, "FORCE_NO_STREAM", force_no_stream)
    show_reasoning = _env_bool(env, "SHOW_REASONING", show_reasoning)
    enable_thinking_mode = _env_bool(env, "ENABLE_THINKING_MODE", enable_thinking_mode)

    return ProxySettings(
        api_base=api_base.rstrip("/"),
        api_key=api_key,
        timeout_seconds=timeout_seconds,
        force_no_stream=force_no_stream,
        show_reasoning=show_reasoning,
        enable_thinking_mode=enable_thinking_mode,
        model_mapping=_parse_model_mapping(cfg.get("model_mapping")),
        fallback_tiers=_parse_fallback_tiers(cfg.get("fallback_models")),
        host=host,
        port=port,
        log_level=env.get("NIM_PROXY_LOG_LEVEL", log_level),
    )


def load_settings(path: str | None = None) -> ProxySettings:
    """Load settings from the YAML config and the environment.

    A missing default config file is not fatal: built-in defaults plus
    environment overrides are used instead. An explicitly selected config
    file must exist.
    """
    config_path = path or default_config_path()
    cfg: dict = {}
    try:
        cfg = load_config(config_path)
    except RuntimeError as exc:
        if path is not None or config_path != DEFAULT_CONFIG_PATH:
            raise
        logger.warning("Failed to load config; using defaults. (%s)", exc)
    return settings_from_config(cfg)

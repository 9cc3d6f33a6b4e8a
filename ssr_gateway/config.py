"""Configuration loading, validation, and defaults."""

from __future__ import annotations

import json
import os
from pathlib import Path
from typing import Any
from urllib.parse import urlsplit

import yaml

from .types import (
    ApiProxyConfig,
    DeploymentMode,
    GatewayConfig,
    I18nConfig,
    RenderConfig,
    RenderStrategy,
    ServerConfig,
)

CONFIG_FILENAMES = [
    "ssr-gateway.yaml",
    "ssr-gateway.yml",
    "ssr-gateway.json",
]

# Checked in order; the first one set wins.
MODE_ENV_VARS = ("SSR_GATEWAY_MODE", "NODE_ENV")
UPSTREAM_ENV_VAR = "APP_API_PROXY"

_DEFAULT_I18N = I18nConfig()
_DEFAULT_PROXY = ApiProxyConfig()
_DEFAULT_RENDER = RenderConfig()
_DEFAULT_SERVER = ServerConfig()


def _discover_config() -> Path | None:
    """Search CWD then parent dirs up to home for a config file."""
    cwd = Path.cwd()
    home = Path.home()
    search = cwd
    while True:
        for name in CONFIG_FILENAMES:
            candidate = search / name
            if candidate.is_file():
                return candidate
        if search == home or search == search.parent:
            break
        search = search.parent
    return None


def _parse_mode(value: Any) -> DeploymentMode | str:
    """Map a mode string onto DeploymentMode; unknown values are kept for validation."""
    text = str(value).strip().lower()
    try:
        return DeploymentMode(text)
    except ValueError:
        return text


def _parse_strategy(value: Any) -> RenderStrategy | str:
    text = str(value).strip().lower()
    try:
        return RenderStrategy(text)
    except ValueError:
        return text


def _build_config(raw: dict[str, Any], env: dict[str, str] | None = None) -> GatewayConfig:
    """Build a GatewayConfig from a raw dict, then apply environment overrides."""
    env = os.environ if env is None else env

    i18n_raw = raw.get("i18n") or {}
    i18n = I18nConfig(
        supported_locales=list(i18n_raw.get("supported_locales", _DEFAULT_I18N.supported_locales)),
        default_locale=i18n_raw.get("default_locale", _DEFAULT_I18N.default_locale),
        fallback_locale=i18n_raw.get(
            "fallback_locale",
            i18n_raw.get("default_locale", _DEFAULT_I18N.fallback_locale),
        ),
        default_namespace=i18n_raw.get("default_namespace", _DEFAULT_I18N.default_namespace),
        load_path=i18n_raw.get("load_path", _DEFAULT_I18N.load_path),
        query_param=i18n_raw.get("query_param", _DEFAULT_I18N.query_param),
        cookie_name=i18n_raw.get("cookie_name", _DEFAULT_I18N.cookie_name),
        detect_accept_language=i18n_raw.get(
            "detect_accept_language", _DEFAULT_I18N.detect_accept_language,
        ),
    )

    proxy_raw = raw.get("api_proxy") or {}
    api_proxy = ApiProxyConfig(
        upstream=proxy_raw.get("upstream", _DEFAULT_PROXY.upstream),
        api_prefix=proxy_raw.get("api_prefix", _DEFAULT_PROXY.api_prefix),
        timeout=float(proxy_raw.get("timeout", _DEFAULT_PROXY.timeout)),
        connect_timeout=float(proxy_raw.get("connect_timeout", _DEFAULT_PROXY.connect_timeout)),
    )

    render_raw = raw.get("render") or {}
    render = RenderConfig(
        abort_delay=float(render_raw.get("abort_delay", _DEFAULT_RENDER.abort_delay)),
        strategy=_parse_strategy(render_raw.get("strategy", _DEFAULT_RENDER.strategy.value)),
        stream_queue_size=int(render_raw.get("stream_queue_size", _DEFAULT_RENDER.stream_queue_size)),
        app=render_raw.get("app", _DEFAULT_RENDER.app),
    )

    server_raw = raw.get("server") or {}
    server = ServerConfig(
        host=server_raw.get("host", _DEFAULT_SERVER.host),
        port=int(server_raw.get("port", _DEFAULT_SERVER.port)),
        log_level=server_raw.get("log_level", _DEFAULT_SERVER.log_level),
    )

    config = GatewayConfig(
        version=str(raw.get("version", "1.0")),
        mode=_parse_mode(raw.get("mode", DeploymentMode.PRODUCTION.value)),
        redirect_prefixes=tuple(
            p.lower() for p in raw.get("redirect_prefixes", GatewayConfig().redirect_prefixes)
        ),
        i18n=i18n,
        api_proxy=api_proxy,
        render=render,
        server=server,
    )
    _apply_env_overrides(config, env)
    return config


def _apply_env_overrides(config: GatewayConfig, env: Any) -> None:
    for name in MODE_ENV_VARS:
        value = env.get(name)
        if value:
            config.mode = _parse_mode(value)
            break
    upstream = env.get(UPSTREAM_ENV_VAR)
    if upstream:
        config.api_proxy.upstream = upstream


def validate_config(config: GatewayConfig) -> list[str]:
    """Validate a config. Returns list of error strings (empty = valid)."""
    errors: list[str] = []

    if not isinstance(config.mode, DeploymentMode):
        known = ", ".join(m.value for m in DeploymentMode)
        errors.append(f"Unknown mode '{config.mode}' (expected one of: {known})")

    i18n = config.i18n
    if not i18n.supported_locales:
        errors.append("At least one supported locale must be configured")
    supported = {loc.lower() for loc in i18n.supported_locales}
    if i18n.default_locale.lower() not in supported:
        errors.append(f"default_locale '{i18n.default_locale}' is not a supported locale")
    if i18n.fallback_locale.lower() not in supported:
        errors.append(f"fallback_locale '{i18n.fallback_locale}' is not a supported locale")
    for placeholder in ("{{lng}}", "{{ns}}"):
        if placeholder not in i18n.load_path:
            errors.append(f"load_path must contain {placeholder}")

    if config.render.abort_delay <= 0:
        errors.append(f"abort_delay ({config.render.abort_delay}) must be > 0")
    if not isinstance(config.render.strategy, RenderStrategy):
        known = ", ".join(s.value for s in RenderStrategy)
        errors.append(f"Unknown render strategy '{config.render.strategy}' (expected one of: {known})")
    if config.render.stream_queue_size < 1:
        errors.append("stream_queue_size must be >= 1")

    parts = urlsplit(config.api_proxy.upstream)
    if parts.scheme not in ("http", "https") or not parts.netloc:
        errors.append(f"api_proxy.upstream '{config.api_proxy.upstream}' must be an absolute http(s) URL")
    if not config.api_proxy.api_prefix.startswith("/"):
        errors.append("api_proxy.api_prefix must start with '/'")

    return errors


def load_config(
    config_path: str | Path | None = None,
    config_dict: dict | None = None,
    env: dict[str, str] | None = None,
) -> GatewayConfig:
    """Load config from dict, explicit path, or auto-discover.

    Environment overrides (``SSR_GATEWAY_MODE``/``NODE_ENV``,
    ``APP_API_PROXY``) are applied last.  Pass ``env={}`` to ignore the
    process environment.
    """
    if config_dict is not None:
        return _build_config(config_dict, env)

    if config_path is not None:
        path = Path(config_path)
    else:
        path = _discover_config()

    if path is None:
        # Return defaults
        return _build_config({}, env)

    if not path.is_file():
        raise FileNotFoundError(f"Config file not found: {path}")

    text = path.read_text()
    if path.suffix == ".json":
        raw = json.loads(text)
    else:
        raw = yaml.safe_load(text) or {}

    return _build_config(raw, env)

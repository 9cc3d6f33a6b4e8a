"""Shared fixtures for ssr-gateway tests."""

from __future__ import annotations

import asyncio
import json
from pathlib import Path

import pytest

from ssr_gateway.config import load_config
from ssr_gateway.i18n.resources import ResourceCache
from ssr_gateway.types import DeploymentMode, GatewayConfig, RenderContext, ViewRoute
from ssr_gateway.views import ViewApp

TRANSLATIONS = {
    "en": {
        "common": {
            "greeting": "Hello",
            "welcome": "Welcome, {{name}}",
            "nav": {"home": "Home", "search": "Search"},
        },
        "user": {"user_not_found": "User not found"},
        "script": {"install": "Install script"},
        "comment": {"rating": "Rating"},
    },
    "zh-CN": {
        "common": {
            "greeting": "你好",
            "welcome": "欢迎, {{name}}",
            "nav": {"home": "首页"},
        },
        "user": {"user_not_found": "用户不存在"},
        # no "script" / "comment" namespaces: loading them must fail
    },
}


def write_locales(root: Path, translations: dict = TRANSLATIONS) -> str:
    """Write translation JSON files under *root*; return the load-path template."""
    for locale, namespaces in translations.items():
        for ns, table in namespaces.items():
            path = root / locale / f"{ns}.json"
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_text(json.dumps(table, ensure_ascii=False), encoding="utf-8")
    return str(root / "{{lng}}" / "{{ns}}.json")


SAMPLE_ROUTES = [
    ViewRoute(id="root", path="", namespaces=("common",), children=[
        ViewRoute(id="lng", path=":lng", children=[
            ViewRoute(
                id="users", path="users/:id", namespaces=("user",),
                headers={"Cache-Control": "no-store"},
            ),
            ViewRoute(id="script", path="script-show-page/:id", namespaces=("script",), children=[
                ViewRoute(id="comment", path="comment", namespaces=("comment",)),
            ]),
        ]),
    ]),
]


async def greeting_renderer(ctx: RenderContext):
    """Minimal view renderer: a shell, a yield point, then localized content."""
    yield f'<html lang="{ctx.locale}"><body>'
    await asyncio.sleep(0)
    yield f"<h1>{ctx.localizer.t('greeting')}</h1>"
    await asyncio.sleep(0)
    yield f"<nav>{ctx.localizer.t('nav.home')}</nav>"
    yield "</body></html>"


SAMPLE_VIEW_APP = ViewApp(routes=SAMPLE_ROUTES, renderer=greeting_renderer)


async def read_body(response) -> bytes:
    """Drain a StreamingResponse body iterator."""
    return b"".join([chunk async for chunk in response.body_iterator])


@pytest.fixture
def locales_path(tmp_path) -> str:
    return write_locales(tmp_path / "locales")


@pytest.fixture
def sample_config(locales_path) -> GatewayConfig:
    return load_config(config_dict={
        "mode": "production",
        "i18n": {
            "supported_locales": ["en", "zh-CN", "ja"],
            "default_locale": "en",
            "load_path": locales_path,
            "detect_accept_language": True,
        },
        "api_proxy": {"upstream": "http://localhost:3000/api/v2"},
        "render": {"abort_delay": 2.0},
    }, env={})


@pytest.fixture
def dev_config(sample_config) -> GatewayConfig:
    sample_config.mode = DeploymentMode.DEVELOPMENT
    return sample_config


@pytest.fixture
def resource_cache(sample_config) -> ResourceCache:
    return ResourceCache(sample_config.i18n.load_path)


@pytest.fixture
def view_app() -> ViewApp:
    return SAMPLE_VIEW_APP

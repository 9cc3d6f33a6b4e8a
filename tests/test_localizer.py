"""Tests for ssr_gateway.i18n.resources and ssr_gateway.i18n.localizer."""

from __future__ import annotations

import asyncio
from pathlib import Path

import pytest

from ssr_gateway.i18n.localizer import Localizer, create_localizer, interpolate
from ssr_gateway.i18n.resources import ResourceCache, expand_load_path
from ssr_gateway.types import I18nConfig, TranslationLoadError


class TestExpandLoadPath:
    def test_placeholders(self):
        path = expand_load_path("./public/locales/{{lng}}/{{ns}}.json", "zh-CN", "common")
        assert path == Path("./public/locales/zh-CN/common.json")


class TestResourceCache:
    @pytest.mark.asyncio
    async def test_load_and_memoize(self, locales_path):
        cache = ResourceCache(locales_path)
        first = await cache.load("en", "common")
        second = await cache.load("en", "common")
        assert first["greeting"] == "Hello"
        assert first is second
        assert cache.load_count == 1
        assert ("en", "common") in cache

    @pytest.mark.asyncio
    async def test_missing_file(self, locales_path):
        cache = ResourceCache(locales_path)
        with pytest.raises(TranslationLoadError) as exc_info:
            await cache.load("zh-CN", "script")
        assert exc_info.value.locale == "zh-CN"
        assert exc_info.value.namespace == "script"
        assert cache.get("zh-CN", "script") is None

    @pytest.mark.asyncio
    async def test_malformed_json(self, tmp_path):
        (tmp_path / "en").mkdir()
        (tmp_path / "en" / "common.json").write_text("{not json")
        cache = ResourceCache(str(tmp_path / "{{lng}}" / "{{ns}}.json"))
        with pytest.raises(TranslationLoadError):
            await cache.load("en", "common")

    @pytest.mark.asyncio
    async def test_non_object_json(self, tmp_path):
        (tmp_path / "en").mkdir()
        (tmp_path / "en" / "common.json").write_text("[1, 2]")
        cache = ResourceCache(str(tmp_path / "{{lng}}" / "{{ns}}.json"))
        with pytest.raises(TranslationLoadError):
            await cache.load("en", "common")

    @pytest.mark.asyncio
    async def test_concurrent_first_access(self, locales_path):
        """Concurrent misses may load more than once but all see one complete table."""
        cache = ResourceCache(locales_path)
        tables = await asyncio.gather(*(cache.load("en", "common") for _ in range(10)))
        assert all(t == tables[0] for t in tables)
        assert all(t is cache.get("en", "common") for t in tables)
        assert 1 <= cache.load_count <= 10

    @pytest.mark.asyncio
    async def test_clear(self, locales_path):
        cache = ResourceCache(locales_path)
        await cache.load("en", "common")
        cache.clear()
        assert cache.get("en", "common") is None


class TestInterpolate:
    def test_replaces_known(self):
        assert interpolate("Hi {{name}}!", {"name": "Ann"}) == "Hi Ann!"

    def test_keeps_unknown(self):
        assert interpolate("Hi {{ name }} {{other}}", {"name": "Ann"}) == "Hi Ann {{other}}"


class TestLocalizer:
    @pytest.mark.asyncio
    async def test_translate(self, locales_path):
        loc = await Localizer("zh-CN", ["user"], ResourceCache(locales_path)).init()
        assert loc.t("greeting") == "你好"
        assert loc.t("user_not_found", ns="user") == "用户不存在"
        assert loc.t("user:user_not_found") == "用户不存在"

    @pytest.mark.asyncio
    async def test_nested_key(self, locales_path):
        loc = await Localizer("en", [], ResourceCache(locales_path)).init()
        assert loc.t("nav.home") == "Home"

    @pytest.mark.asyncio
    async def test_interpolation(self, locales_path):
        loc = await Localizer("en", [], ResourceCache(locales_path)).init()
        assert loc.t("welcome", name="Ann") == "Welcome, Ann"

    @pytest.mark.asyncio
    async def test_fallback_locale(self, locales_path):
        loc = await Localizer(
            "zh-CN", [], ResourceCache(locales_path), fallback_locale="en",
        ).init()
        assert loc.t("nav.search") == "Search"

    @pytest.mark.asyncio
    async def test_default_then_key(self, locales_path):
        loc = await Localizer("en", [], ResourceCache(locales_path)).init()
        assert loc.t("missing.key", default="Fallback") == "Fallback"
        assert loc.t("missing.key") == "missing.key"

    @pytest.mark.asyncio
    async def test_missing_primary_namespace_is_fatal(self, locales_path):
        cache = ResourceCache(locales_path)
        loc = Localizer("zh-CN", ["script", "user"], cache, fallback_locale="en")
        with pytest.raises(TranslationLoadError) as exc_info:
            await loc.init()
        assert exc_info.value.namespace == "script"
        # sibling loads still ran to completion and were published
        assert ("zh-CN", "common") in cache
        assert ("zh-CN", "user") in cache
        assert cache.load_count == 2

    @pytest.mark.asyncio
    async def test_missing_fallback_namespace_tolerated(self, tmp_path):
        (tmp_path / "ja").mkdir()
        (tmp_path / "ja" / "common.json").write_text('{"greeting": "こんにちは"}', encoding="utf-8")
        cache = ResourceCache(str(tmp_path / "{{lng}}" / "{{ns}}.json"))
        loc = await Localizer("ja", [], cache, fallback_locale="en").init()
        assert loc.t("greeting") == "こんにちは"

    @pytest.mark.asyncio
    async def test_namespaces_always_include_default(self, locales_path):
        loc = Localizer("en", ["user"], ResourceCache(locales_path), default_namespace="common")
        assert loc.namespaces == {"common", "user"}

    @pytest.mark.asyncio
    async def test_factory_returns_fresh_instances(self, locales_path):
        config = I18nConfig(load_path=locales_path)
        cache = ResourceCache(locales_path)
        a = create_localizer("en", ["user"], cache, config)
        b = create_localizer("zh-CN", ["user"], cache, config)
        assert a is not b
        await asyncio.gather(a.init(), b.init())
        assert a.t("greeting") == "Hello"
        assert b.t("greeting") == "你好"

    @pytest.mark.asyncio
    async def test_context(self, locales_path):
        loc = await Localizer("en", ["user"], ResourceCache(locales_path)).init()
        ctx = loc.context()
        assert ctx.locale == "en"
        assert ctx.namespaces == {"common", "user"}
        assert ctx.localizer is loc

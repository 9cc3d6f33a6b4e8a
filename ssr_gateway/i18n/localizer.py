"""Request-scoped localization instance.

Every page render gets its own Localizer from :func:`create_localizer`.
Instances hold no global state: the locale lives on the instance and the
translation tables are read-only references into the shared ResourceCache.
"""

from __future__ import annotations

import asyncio
import logging
import re
from collections.abc import Iterable
from typing import Any

from ..types import I18nConfig, LocaleContext, TranslationLoadError
from .resources import ResourceCache

logger = logging.getLogger(__name__)

_INTERPOLATION_RE = re.compile(r"\{\{\s*([\w.]+)\s*\}\}")
NS_SEPARATOR = ":"
KEY_SEPARATOR = "."


def _lookup(table: dict[str, Any], key: str) -> str | None:
    """Find *key* in a translation table, flat first, then as a dotted path."""
    value = table.get(key)
    if isinstance(value, str):
        return value
    node: Any = table
    for part in key.split(KEY_SEPARATOR):
        if not isinstance(node, dict) or part not in node:
            return None
        node = node[part]
    return node if isinstance(node, str) else None


def interpolate(text: str, values: dict[str, Any]) -> str:
    """Replace ``{{name}}`` placeholders; unknown names are left as-is."""
    def _sub(match: re.Match) -> str:
        name = match.group(1)
        return str(values[name]) if name in values else match.group(0)
    return _INTERPOLATION_RE.sub(_sub, text)


class Localizer:
    """Translation lookups for one locale and a fixed set of namespaces."""

    def __init__(
        self,
        locale: str,
        namespaces: Iterable[str],
        cache: ResourceCache,
        *,
        default_namespace: str = "common",
        fallback_locale: str | None = None,
    ) -> None:
        self.locale = locale
        self.namespaces = frozenset(namespaces) | {default_namespace}
        self.default_namespace = default_namespace
        self.fallback_locale = fallback_locale if fallback_locale != locale else None
        self._cache = cache
        self._tables: dict[tuple[str, str], dict[str, Any]] = {}

    async def init(self) -> Localizer:
        """Load every required namespace.  Must complete before rendering.

        A missing table for the active locale is fatal; a missing fallback
        table is only logged.
        """
        namespaces = sorted(self.namespaces)
        # Every load settles before the first failure is raised.
        primary = await asyncio.gather(
            *(self._cache.load(self.locale, ns) for ns in namespaces),
            return_exceptions=True,
        )
        for ns, result in zip(namespaces, primary):
            if isinstance(result, BaseException):
                raise result
            self._tables[(self.locale, ns)] = result

        if self.fallback_locale:
            for ns in namespaces:
                try:
                    table = await self._cache.load(self.fallback_locale, ns)
                except TranslationLoadError as e:
                    logger.warning("Fallback translations unavailable: %s", e)
                    continue
                self._tables[(self.fallback_locale, ns)] = table

        return self

    def _split_key(self, key: str, ns: str | None) -> tuple[str, str]:
        if ns is None and NS_SEPARATOR in key:
            prefix, rest = key.split(NS_SEPARATOR, 1)
            if prefix in self.namespaces:
                return prefix, rest
        return ns or self.default_namespace, key

    def t(self, key: str, ns: str | None = None, default: str | None = None, **values: Any) -> str:
        """Translate *key*, falling back to the fallback locale, *default*, then the key."""
        namespace, bare_key = self._split_key(key, ns)
        text = None
        for locale in (self.locale, self.fallback_locale):
            if locale is None:
                continue
            table = self._tables.get((locale, namespace))
            if table is not None:
                text = _lookup(table, bare_key)
                if text is not None:
                    break
        if text is None:
            text = default if default is not None else bare_key
        return interpolate(text, values) if values else text

    def context(self) -> LocaleContext:
        return LocaleContext(locale=self.locale, namespaces=self.namespaces, localizer=self)

    def __repr__(self) -> str:
        return f"Localizer(locale={self.locale!r}, namespaces={sorted(self.namespaces)!r})"


def create_localizer(
    locale: str,
    namespaces: Iterable[str],
    cache: ResourceCache,
    config: I18nConfig,
) -> Localizer:
    """Factory for a fresh, isolated Localizer.  Call ``await .init()`` before use."""
    return Localizer(
        locale,
        namespaces,
        cache,
        default_namespace=config.default_namespace,
        fallback_locale=config.fallback_locale,
    )

"""Shared translation resource cache, keyed by (locale, namespace).

The cache is the only process-wide state in the gateway.  Population is
lock-free: two requests that miss the same key at the same time may both
read the file, and the last complete dict wins.  A resource is inserted
only after it has been fully parsed, so readers never observe a partial
table.
"""

from __future__ import annotations

import asyncio
import json
import logging
from pathlib import Path
from typing import Any

from ..types import TranslationLoadError

logger = logging.getLogger(__name__)


def expand_load_path(template: str, locale: str, namespace: str) -> Path:
    """Fill the ``{{lng}}``/``{{ns}}`` placeholders of a load-path template."""
    return Path(template.replace("{{lng}}", locale).replace("{{ns}}", namespace))


def _read_resource(path: Path) -> dict[str, Any]:
    data = json.loads(path.read_text(encoding="utf-8"))
    if not isinstance(data, dict):
        raise ValueError(f"expected a JSON object, got {type(data).__name__}")
    return data


class ResourceCache:
    """Loads and memoizes translation tables from a path template."""

    def __init__(self, load_path: str) -> None:
        self.load_path = load_path
        self._resources: dict[tuple[str, str], dict[str, Any]] = {}
        self.load_count = 0

    def get(self, locale: str, namespace: str) -> dict[str, Any] | None:
        return self._resources.get((locale, namespace))

    def __contains__(self, key: tuple[str, str]) -> bool:
        return key in self._resources

    async def load(self, locale: str, namespace: str) -> dict[str, Any]:
        """Return the table for (*locale*, *namespace*), reading it on first use.

        Raises TranslationLoadError if the file is missing or malformed.
        """
        cached = self._resources.get((locale, namespace))
        if cached is not None:
            return cached

        path = expand_load_path(self.load_path, locale, namespace)
        try:
            table = await asyncio.to_thread(_read_resource, path)
        except (OSError, ValueError) as e:
            raise TranslationLoadError(
                f"Failed to load translations {locale}/{namespace} from {path}: {e}",
                locale=locale,
                namespace=namespace,
            ) from e

        self.load_count += 1
        # setdefault keeps the first published table if a concurrent load won
        table = self._resources.setdefault((locale, namespace), table)
        logger.debug("Loaded translations %s/%s (%d keys)", locale, namespace, len(table))
        return table

    def clear(self) -> None:
        self._resources.clear()

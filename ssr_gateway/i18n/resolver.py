"""Locale resolution and namespace collection for a request.

Both functions are pure: they read the request and config and touch no
process-wide state, so concurrent requests resolve independently.
"""

from __future__ import annotations

from collections.abc import Iterable

from ..dispatch.classifier import first_segment
from ..types import I18nConfig, IncomingRequest, RouteMatch


def match_locale(candidate: str | None, supported: Iterable[str]) -> str | None:
    """Canonical supported spelling of *candidate* (case-insensitive), or None."""
    if not candidate:
        return None
    wanted = candidate.strip().replace("_", "-").lower()
    for locale in supported:
        if locale.lower() == wanted:
            return locale
    return None


def parse_accept_language(header: str, supported: Iterable[str]) -> str | None:
    """Best supported locale for an ``Accept-Language`` header.

    Tags are ordered by quality (stable for ties).  Each tag tries an exact
    match, then its base language (``de-AT`` -> ``de``), then any supported
    locale sharing that base (``zh`` -> ``zh-CN``).
    """
    supported = list(supported)
    if not header:
        return None

    weighted: list[tuple[float, int, str]] = []
    for index, part in enumerate(header.split(",")):
        piece = part.strip()
        if not piece:
            continue
        tag, _, params = piece.partition(";")
        quality = 1.0
        params = params.strip()
        if params.startswith("q="):
            try:
                quality = float(params[2:])
            except ValueError:
                quality = 0.0
        if quality <= 0:
            continue
        weighted.append((-quality, index, tag.strip()))
    weighted.sort()

    for _, _, tag in weighted:
        if tag == "*":
            continue
        exact = match_locale(tag, supported)
        if exact:
            return exact
        base = tag.split("-")[0].lower()
        by_base = match_locale(base, supported)
        if by_base:
            return by_base
        for locale in supported:
            if locale.lower().split("-")[0] == base:
                return locale
    return None


def resolve_locale(request: IncomingRequest, config: I18nConfig) -> str:
    """Active locale for *request*; the first detector that matches wins.

    1. first path segment (``/zh-CN/users/3``)
    2. query parameter (``?lng=ja``)
    3. cookie
    4. ``Accept-Language`` (when enabled)
    5. the configured default locale
    """
    supported = config.supported_locales

    from_path = match_locale(first_segment(request.path), supported)
    if from_path:
        return from_path

    from_query = match_locale(request.query_params.get(config.query_param), supported)
    if from_query:
        return from_query

    from_cookie = match_locale(request.cookies.get(config.cookie_name), supported)
    if from_cookie:
        return from_cookie

    if config.detect_accept_language:
        from_header = parse_accept_language(
            request.headers.get("accept-language", ""), supported,
        )
        if from_header:
            return from_header

    return config.default_locale


def required_namespaces(matches: Iterable[RouteMatch], config: I18nConfig) -> frozenset[str]:
    """Union of the namespaces declared by every matched view, plus the default one."""
    namespaces = {config.default_namespace}
    for match in matches:
        namespaces.update(match.route.namespaces)
    return frozenset(namespaces)

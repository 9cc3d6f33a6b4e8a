"""Nested view routes, route matching, and the ViewApp bundle.

The view layer itself (components, loaders) lives outside the gateway.
It exposes a ViewApp: the route tree used to pick translation
namespaces and status codes, plus the renderer that streams HTML.
"""

from __future__ import annotations

import importlib
from collections.abc import Iterator
from dataclasses import dataclass, field

from .types import RouteMatch, ViewRenderer, ViewRoute


def _split(path: str) -> list[str]:
    return [s for s in path.split("/") if s]


def _match_pattern(
    pattern: list[str], segments: list[str], index: int,
) -> Iterator[tuple[dict[str, str], int]]:
    """Yield (params, end_index) for every way *pattern* matches from *index*."""
    if not pattern:
        yield {}, index
        return
    head, rest = pattern[0], pattern[1:]

    if head == "*":
        yield {"*": "/".join(segments[index:])}, len(segments)
        return

    if head.startswith(":"):
        optional = head.endswith("?")
        name = head[1:].rstrip("?")
        if index < len(segments):
            for params, end in _match_pattern(rest, segments, index + 1):
                yield {name: segments[index], **params}, end
        if optional:
            yield from _match_pattern(rest, segments, index)
        return

    if index < len(segments) and segments[index].lower() == head.lower():
        yield from _match_pattern(rest, segments, index + 1)


def _match_route(
    route: ViewRoute, segments: list[str], index: int, inherited: dict[str, str],
) -> list[RouteMatch] | None:
    for params, end in _match_pattern(_split(route.path), segments, index):
        merged = {**inherited, **params}
        match = RouteMatch(route=route, params=merged, pathname="/" + "/".join(segments[:end]))
        for child in route.children:
            nested = _match_route(child, segments, end, merged)
            if nested:
                return [match, *nested]
        if end == len(segments):
            return [match]
    return None


class RouteTable:
    """Declaration-ordered nested routes; the first full match wins."""

    def __init__(self, routes: list[ViewRoute]) -> None:
        self.routes = list(routes)

    def match(self, path: str) -> list[RouteMatch]:
        """Root-to-leaf matches for *path*, or ``[]`` when nothing matches."""
        segments = _split(path)
        for route in self.routes:
            matches = _match_route(route, segments, 0, {})
            if matches:
                return matches
        return []


def merged_headers(matches: list[RouteMatch]) -> dict[str, str]:
    """Response headers declared along the match chain; the leaf wins."""
    headers: dict[str, str] = {}
    for match in matches:
        headers.update(match.route.headers)
    return headers


@dataclass
class ViewApp:
    routes: list[ViewRoute]
    renderer: ViewRenderer
    table: RouteTable = field(init=False)

    def __post_init__(self) -> None:
        self.table = RouteTable(self.routes)


def load_view_app(target: str) -> ViewApp:
    """Import a ViewApp from ``"package.module:attr"``."""
    module_name, sep, attr = target.partition(":")
    if not sep or not module_name or not attr:
        raise ValueError(f"Expected 'module:attr', got {target!r}")
    module = importlib.import_module(module_name)
    app = getattr(module, attr)
    if callable(app) and not isinstance(app, ViewApp):
        app = app()
    if not isinstance(app, ViewApp):
        raise TypeError(f"{target} is not a ViewApp (got {type(app).__name__})")
    return app

"""Path-based request classification: proxy, locale redirect, or render.

Pure function of the path and the deployment mode; no I/O.
"""

from __future__ import annotations

from collections.abc import Iterable

from ..types import (
    PROXY,
    RENDER,
    DeploymentMode,
    DispositionKind,
    RouteDisposition,
)

API_SEGMENT = "api"

# Legacy un-prefixed paths that must be redirected under /{locale}.
DEFAULT_REDIRECT_PREFIXES = frozenset({
    "script-show-page", "users", "search", "post-script",
})


def first_segment(path: str) -> str:
    """First non-empty ``/``-separated segment, lowercased ('' for the root)."""
    for segment in path.split("/"):
        if segment:
            return segment.lower()
    return ""


def classify(
    path: str,
    *,
    mode: DeploymentMode | str = DeploymentMode.PRODUCTION,
    redirect_prefixes: Iterable[str] = DEFAULT_REDIRECT_PREFIXES,
) -> RouteDisposition:
    """Decide how the gateway handles *path*.

    ``/api/...`` is proxied only in development mode; everywhere else it
    renders like any other page.  Paths whose first segment is a redirect
    prefix get a LOCALE_REDIRECT carrying the original path, and the caller
    builds the ``Location`` with :meth:`RouteDisposition.target_path`.
    Everything else renders.
    """
    segment = first_segment(path)
    if not segment:
        return RENDER

    if segment == API_SEGMENT:
        if mode == DeploymentMode.DEVELOPMENT:
            return PROXY
        return RENDER

    if segment in {p.lower() for p in redirect_prefixes}:
        return RouteDisposition(DispositionKind.LOCALE_REDIRECT, path=path)

    return RENDER

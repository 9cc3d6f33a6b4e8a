"""HTTP entry point: classify every request, then proxy, redirect, or render.

Usage:
    ssr-gateway -c ssr-gateway.yaml serve --app myviews.app:view_app
"""

from __future__ import annotations

import logging
from collections.abc import AsyncGenerator, Awaitable, Callable
from contextlib import asynccontextmanager
from dataclasses import replace

import httpx
from fastapi import FastAPI, Request
from starlette.responses import RedirectResponse, Response

from .dispatch.classifier import classify
from .i18n.resolver import resolve_locale
from .i18n.resources import ResourceCache
from .proxy.forwarder import ApiForwarder
from .render.orchestrator import render_page
from .types import (
    DispositionKind,
    GatewayConfig,
    IncomingRequest,
    ProxyError,
    RenderError,
)
from .views import ViewApp

logger = logging.getLogger(__name__)


class _AnyMethodEndpoint:
    """ASGI endpoint for the catch-all route.

    Starlette only skips its method filter for non-function endpoints, so
    wrapping the handler lets every method (PROPFIND, TRACE, ...) reach
    the classifier.
    """

    def __init__(self, handler: Callable[[Request], Awaitable[Response]]) -> None:
        self.handler = handler

    async def __call__(self, scope, receive, send) -> None:
        response = await self.handler(Request(scope, receive))
        await response(scope, receive, send)


def create_app(
    config: GatewayConfig,
    view_app: ViewApp,
    *,
    client: httpx.AsyncClient | None = None,
    resource_cache: ResourceCache | None = None,
) -> FastAPI:
    """Create the gateway application.

    Args:
        config: Loaded gateway configuration.
        view_app: Route tree + renderer of the server-rendered views.
        client: Upstream HTTP client for the dev API proxy (created if None).
        resource_cache: Shared translation cache (created from config if None).
    """
    owns_client = client is None
    if client is None:
        client = httpx.AsyncClient(
            timeout=httpx.Timeout(
                config.api_proxy.timeout, connect=config.api_proxy.connect_timeout,
            ),
        )
    cache = resource_cache or ResourceCache(config.i18n.load_path)
    forwarder = ApiForwarder(client, config.api_proxy)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncGenerator[None]:
        logger.info(
            "Gateway ready: mode=%s, default_locale=%s, upstream=%s",
            getattr(config.mode, "value", config.mode),
            config.i18n.default_locale,
            config.api_proxy.upstream,
        )
        yield
        if owns_client:
            await client.aclose()

    app = FastAPI(title="ssr-gateway", lifespan=lifespan, docs_url=None, redoc_url=None, openapi_url=None)
    app.state.config = config
    app.state.resource_cache = cache
    app.state.view_app = view_app

    @app.exception_handler(ProxyError)
    async def _proxy_error(request: Request, exc: ProxyError) -> Response:
        return Response(status_code=502)

    @app.exception_handler(RenderError)
    async def _render_error(request: Request, exc: RenderError) -> Response:
        logger.error("Render failed for %s: %s", request.url.path, exc)
        return Response(status_code=500)

    async def catch_all(request: Request) -> Response:
        incoming = IncomingRequest.from_starlette(request)
        disposition = classify(
            incoming.path,
            mode=config.mode,
            redirect_prefixes=config.redirect_prefixes,
        )
        logger.debug("%s %s -> %s", incoming.method, incoming.path, disposition.kind.value)

        if disposition.kind is DispositionKind.PROXY:
            return await forwarder.forward(incoming)

        if disposition.kind is DispositionKind.LOCALE_REDIRECT:
            locale = resolve_locale(incoming, config.i18n)
            location = replace(disposition, path=incoming.raw_path).target_path(locale)
            if incoming.query:
                location = f"{location}?{incoming.query}"
            logger.info("REDIRECT %s -> %s", incoming.path, location)
            return RedirectResponse(location, status_code=301)

        return await render_page(incoming, view_app, config, cache)

    app.add_route("/{path:path}", _AnyMethodEndpoint(catch_all), include_in_schema=False)

    return app

"""Page rendering entry point: locale + namespaces -> isolated Localizer -> RenderSession."""

from __future__ import annotations

import logging
from collections.abc import Mapping

from starlette.responses import StreamingResponse

from ..i18n.localizer import create_localizer
from ..i18n.resolver import required_namespaces, resolve_locale
from ..i18n.resources import ResourceCache
from ..types import GatewayConfig, IncomingRequest, RenderContext
from ..views import ViewApp, merged_headers
from .session import RenderSession

logger = logging.getLogger(__name__)


async def render_page(
    request: IncomingRequest,
    view_app: ViewApp,
    config: GatewayConfig,
    cache: ResourceCache,
    *,
    status_code: int | None = None,
    headers: Mapping[str, str] | None = None,
    locale: str | None = None,
) -> StreamingResponse:
    """Render the view matched by *request* as a streaming HTML response.

    The status code defaults to 200 when a view matches and 404 otherwise
    (the renderer still runs so the app can draw its not-found page).
    Raises RenderError subclasses when no output could be produced.
    """
    matches = view_app.table.match(request.path)
    if status_code is None:
        status_code = 200 if matches else 404

    response_headers = merged_headers(matches)
    response_headers.update(headers or {})

    if locale is None:
        locale = resolve_locale(request, config.i18n)
    namespaces = required_namespaces(matches, config.i18n)
    logger.debug(
        "Render %s locale=%s ns=%s views=%s",
        request.path, locale, sorted(namespaces), [m.route.id for m in matches],
    )

    session = RenderSession(
        status_code=status_code,
        headers=response_headers,
        abort_delay=config.render.abort_delay,
        strategy=config.render.strategy,
        queue_size=config.render.stream_queue_size,
    )
    localizer = await session.initialize(
        create_localizer(locale, namespaces, cache, config.i18n),
    )
    context = RenderContext(
        i18n=localizer.context(),
        url=request.url,
        matches=matches,
        status_code=status_code,
    )
    return await session.run(view_app.renderer, context)

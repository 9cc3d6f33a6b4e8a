"""Development-mode reverse proxy for ``/api/...`` requests.

Rewrites the API prefix onto the configured upstream base URL, swaps the
``host`` header for the upstream host, and relays the upstream response
(status, headers, raw body bytes) back unchanged.  No retries: the
client retries if it wants to.
"""

from __future__ import annotations

import logging
from urllib.parse import urlsplit

import httpx
from starlette.background import BackgroundTask
from starlette.responses import StreamingResponse

from ..types import ApiProxyConfig, IncomingRequest, ProxyError, ProxyRequest

logger = logging.getLogger(__name__)

# Connection-level framing; the ASGI server supplies its own.
_HOP_BY_HOP_RESPONSE = frozenset({
    b"connection", b"keep-alive", b"transfer-encoding",
})


def upstream_host(upstream: str) -> str:
    """``host[:port]`` of the upstream base URL, without userinfo."""
    netloc = urlsplit(upstream).netloc
    return netloc.rpartition("@")[2]


def rewrite_url(path: str, query: str, upstream: str, api_prefix: str) -> str:
    """Replace *api_prefix* at the start of *path* with the *upstream* base URL.

    ``/api/v2/scripts/1?page=2`` -> ``http://localhost:3000/api/v2/scripts/1?page=2``.
    Paths outside the prefix keep their full path on the upstream origin.
    """
    base = upstream.rstrip("/")
    prefix = api_prefix.rstrip("/")
    lowered = path.lower()
    if lowered == prefix.lower() or lowered.startswith(prefix.lower() + "/"):
        url = base + path[len(prefix):]
    else:
        parts = urlsplit(upstream)
        url = f"{parts.scheme}://{parts.netloc}{path}"
    if query:
        url = f"{url}?{query}"
    return url


def build_proxy_request(request: IncomingRequest, config: ApiProxyConfig) -> ProxyRequest:
    """Derive the upstream request: same method, headers and body, new URL and host."""
    host = upstream_host(config.upstream)
    headers: list[tuple[str, str]] = []
    host_set = False
    for key, value in request.headers.items():
        if key.lower() == "host":
            if not host_set:
                headers.append(("host", host))
                host_set = True
            continue
        headers.append((key, value))
    if not host_set:
        headers.append(("host", host))

    return ProxyRequest(
        method=request.method,
        url=rewrite_url(request.raw_path, request.query, config.upstream, config.api_prefix),
        headers=headers,
        body=request.body,
    )


class ApiForwarder:
    """Forwards classified API requests through a shared httpx.AsyncClient."""

    def __init__(self, client: httpx.AsyncClient, config: ApiProxyConfig) -> None:
        self.client = client
        self.config = config

    async def forward(self, request: IncomingRequest) -> StreamingResponse:
        proxy_request = build_proxy_request(request, self.config)
        logger.info("PROXY %s %s -> %s", request.method, request.path, proxy_request.url)

        upstream_req = self.client.build_request(
            proxy_request.method,
            proxy_request.url,
            headers=proxy_request.headers,
            content=proxy_request.body,
        )
        try:
            upstream = await self.client.send(upstream_req, stream=True)
        except httpx.TransportError as e:
            logger.error("PROXY failed %s %s: %s", proxy_request.method, proxy_request.url, e)
            raise ProxyError(f"Upstream request failed: {e}", url=proxy_request.url) from e

        response = StreamingResponse(
            upstream.aiter_raw(),
            status_code=upstream.status_code,
            background=BackgroundTask(upstream.aclose),
        )
        response.raw_headers = [
            (key.lower(), value)
            for key, value in upstream.headers.raw
            if key.lower() not in _HOP_BY_HOP_RESPONSE
        ]
        return response

from .forwarder import ApiForwarder, build_proxy_request, rewrite_url, upstream_host

__all__ = [
    "ApiForwarder",
    "build_proxy_request",
    "rewrite_url",
    "upstream_host",
]

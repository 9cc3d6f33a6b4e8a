"""All dataclasses, Protocols, and error types for ssr-gateway."""

from __future__ import annotations

from collections.abc import AsyncIterator, Mapping
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Protocol, Union, runtime_checkable
from urllib.parse import parse_qsl

from starlette.datastructures import Headers

if TYPE_CHECKING:
    from starlette.requests import Request

    from .i18n.localizer import Localizer


# ---------------------------------------------------------------------------
# Requests
# ---------------------------------------------------------------------------

def declares_body(headers: Headers) -> bool:
    """True when the framing headers announce a request body."""
    if "transfer-encoding" in headers:
        return True
    length = headers.get("content-length", "").strip()
    return bool(length) and length != "0"


@dataclass(frozen=True)
class IncomingRequest:
    """Read-only view of one inbound HTTP request.

    ``path`` is percent-decoded and drives classification and locale
    detection; ``raw_path`` keeps the escapes as received and is what
    redirects and the proxy pass on.  ``headers`` is case-insensitive.
    ``body`` is the raw ASGI body stream, None when the request declares
    no body, and may only be consumed once (by the proxy forwarder).
    """
    method: str
    url: str
    path: str
    query: str = ""
    headers: Headers = field(default_factory=Headers)
    cookies: Mapping[str, str] = field(default_factory=dict)
    body: AsyncIterator[bytes] | None = None
    raw_path: str = ""

    def __post_init__(self) -> None:
        if not self.raw_path:
            object.__setattr__(self, "raw_path", self.path)

    @classmethod
    def from_starlette(cls, request: Request) -> IncomingRequest:
        raw = request.scope.get("raw_path")
        # Some servers include the query string in raw_path.
        raw_path = raw.decode("latin-1").split("?", 1)[0] if raw else request.url.path
        return cls(
            method=request.method,
            url=str(request.url),
            path=request.url.path,
            raw_path=raw_path,
            query=request.url.query,
            headers=request.headers,
            cookies=dict(request.cookies),
            body=request.stream() if declares_body(request.headers) else None,
        )

    @property
    def query_params(self) -> dict[str, str]:
        return dict(parse_qsl(self.query, keep_blank_values=True))


@dataclass(frozen=True)
class ProxyRequest:
    """An IncomingRequest rewritten for the upstream API."""
    method: str
    url: str
    headers: list[tuple[str, str]]
    body: AsyncIterator[bytes] | None = None


# ---------------------------------------------------------------------------
# Dispatch
# ---------------------------------------------------------------------------

class DispositionKind(Enum):
    PROXY = "proxy"
    LOCALE_REDIRECT = "locale_redirect"
    RENDER = "render"


@dataclass(frozen=True)
class RouteDisposition:
    """Classifier decision for one request path."""
    kind: DispositionKind
    path: str = "/"

    def target_path(self, locale: str) -> str:
        """Locale-prefixed redirect target, e.g. ``/en/users/3``."""
        return f"/{locale}{self.path}"


PROXY = RouteDisposition(DispositionKind.PROXY)
RENDER = RouteDisposition(DispositionKind.RENDER)


class DeploymentMode(str, Enum):
    DEVELOPMENT = "development"
    PRODUCTION = "production"
    TEST = "test"


# ---------------------------------------------------------------------------
# Locale
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class LocaleContext:
    """Per-request localization state.  Never shared across requests."""
    locale: str
    namespaces: frozenset[str]
    localizer: Localizer


# ---------------------------------------------------------------------------
# Views & rendering
# ---------------------------------------------------------------------------

@dataclass
class ViewRoute:
    """One node of the nested view route tree.

    ``namespaces`` are the translation namespaces this view needs;
    ``headers`` are merged into the rendered page's response headers.
    """
    id: str
    path: str = ""
    namespaces: tuple[str, ...] = ()
    headers: dict[str, str] = field(default_factory=dict)
    children: list[ViewRoute] = field(default_factory=list)


@dataclass(frozen=True)
class RouteMatch:
    route: ViewRoute
    params: dict[str, str] = field(default_factory=dict)
    pathname: str = "/"


@dataclass(frozen=True)
class ChunkError:
    """Yielded by a renderer in place of a chunk when a deferred sub-tree fails.

    The stream keeps going; the session is flagged as errored.
    """
    error: BaseException


RenderChunk = Union[str, bytes, ChunkError]


@dataclass(frozen=True)
class RenderContext:
    """Everything a view renderer receives for one page render."""
    i18n: LocaleContext
    url: str
    matches: list[RouteMatch]
    status_code: int = 200

    @property
    def localizer(self) -> Localizer:
        return self.i18n.localizer

    @property
    def locale(self) -> str:
        return self.i18n.locale


@runtime_checkable
class ViewRenderer(Protocol):
    def __call__(self, context: RenderContext) -> AsyncIterator[RenderChunk]: ...


class RenderStrategy(str, Enum):
    ALL_READY = "all_ready"      # resolve once the whole page is buffered
    SHELL_READY = "shell_ready"  # resolve on the first flushed chunk


class SessionState(Enum):
    INITIALIZING = "initializing"
    STREAMING = "streaming"
    RESOLVED = "resolved"
    ABORTED = "aborted"
    ERRORED = "errored"


# ---------------------------------------------------------------------------
# Errors
# ---------------------------------------------------------------------------

class GatewayError(Exception):
    """Base class for request-level failures."""


class ProxyError(GatewayError):
    def __init__(self, message: str, url: str):
        super().__init__(message)
        self.url = url


class TranslationLoadError(GatewayError):
    def __init__(self, message: str, locale: str, namespace: str):
        super().__init__(message)
        self.locale = locale
        self.namespace = namespace


class RenderError(GatewayError):
    """The render produced no output; nothing may be sent."""


class RenderShellError(RenderError):
    pass


class RenderAborted(RenderError):
    pass


# ---------------------------------------------------------------------------
# Configuration
# ---------------------------------------------------------------------------

@dataclass
class I18nConfig:
    supported_locales: list[str] = field(default_factory=lambda: [
        "en", "zh-CN", "zh-TW", "ja", "de", "vi", "ru",
    ])
    default_locale: str = "en"
    fallback_locale: str = "en"
    default_namespace: str = "common"
    load_path: str = "./public/locales/{{lng}}/{{ns}}.json"
    query_param: str = "lng"
    cookie_name: str = "lng"
    detect_accept_language: bool = True


@dataclass
class ApiProxyConfig:
    upstream: str = "http://localhost:3000/api/v2"
    api_prefix: str = "/api/v2"
    timeout: float = 30.0
    connect_timeout: float = 10.0


@dataclass
class RenderConfig:
    abort_delay: float = 5.0  # seconds
    strategy: RenderStrategy = RenderStrategy.ALL_READY
    stream_queue_size: int = 16  # shell_ready backpressure bound
    app: str = ""  # "package.module:attr" of the ViewApp


@dataclass
class ServerConfig:
    host: str = "127.0.0.1"
    port: int = 3001
    log_level: str = "info"


@dataclass
class GatewayConfig:
    version: str = "1.0"
    mode: DeploymentMode = DeploymentMode.PRODUCTION
    redirect_prefixes: tuple[str, ...] = (
        "script-show-page", "users", "search", "post-script",
    )
    i18n: I18nConfig = field(default_factory=I18nConfig)
    api_proxy: ApiProxyConfig = field(default_factory=ApiProxyConfig)
    render: RenderConfig = field(default_factory=RenderConfig)
    server: ServerConfig = field(default_factory=ServerConfig)

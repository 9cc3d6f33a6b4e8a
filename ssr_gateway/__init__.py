"""ssr-gateway: request dispatch, locale resolution and streaming render orchestration."""

from .config import load_config, validate_config
from .server import create_app
from .types import (
    ChunkError,
    DeploymentMode,
    GatewayConfig,
    IncomingRequest,
    RenderContext,
    RouteDisposition,
    ViewRoute,
)
from .views import ViewApp

__version__ = "0.1.0"

__all__ = [
    "create_app",
    "load_config",
    "validate_config",
    "ChunkError",
    "DeploymentMode",
    "GatewayConfig",
    "IncomingRequest",
    "RenderContext",
    "RouteDisposition",
    "ViewApp",
    "ViewRoute",
]

"""CLI: ssr-gateway serve, config validate."""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys

from ..config import load_config, validate_config
from ..types import DeploymentMode


class _SuppressCancelled(logging.Filter):
    """Drop CancelledError tracebacks that uvicorn logs when it force-closes streams."""

    def filter(self, record: logging.LogRecord) -> bool:
        if record.exc_info:
            exc_type = record.exc_info[0]
            if exc_type is asyncio.CancelledError:
                return False
        return True


def cmd_serve(args):
    """Start the gateway HTTP server."""
    import uvicorn

    from ..server import create_app
    from ..views import load_view_app

    config = load_config(config_path=args.config)
    if args.mode:
        config.mode = DeploymentMode(args.mode)
    if args.host:
        config.server.host = args.host
    if args.port:
        config.server.port = args.port

    errors = validate_config(config)
    if errors:
        for err in errors:
            print(f"Config error: {err}", file=sys.stderr)
        sys.exit(1)

    target = args.app or config.render.app
    if not target:
        print(
            "Error: --app is required (or set render.app in config), e.g. myviews.app:view_app",
            file=sys.stderr,
        )
        sys.exit(1)

    log_level = config.server.log_level.upper()
    logging.basicConfig(
        level=getattr(logging, log_level, logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    logging.getLogger("uvicorn.error").addFilter(_SuppressCancelled())

    view_app = load_view_app(target)
    app = create_app(config, view_app)
    print(
        f"ssr-gateway ({config.mode.value}) on {config.server.host}:{config.server.port}"
        f" -> views={target}"
    )
    uvicorn.run(
        app,
        host=config.server.host,
        port=config.server.port,
        log_level=config.server.log_level,
        timeout_graceful_shutdown=2,
    )


def cmd_config_validate(args):
    """Validate the config file and print any errors."""
    config = load_config(config_path=args.config)
    errors = validate_config(config)
    if errors:
        print("Config errors:")
        for err in errors:
            print(f"  - {err}")
        sys.exit(1)
    print("Config is valid.")
    print(f"  mode:           {getattr(config.mode, 'value', config.mode)}")
    print(f"  locales:        {', '.join(config.i18n.supported_locales)}")
    print(f"  default locale: {config.i18n.default_locale}")
    print(f"  load path:      {config.i18n.load_path}")
    print(f"  api upstream:   {config.api_proxy.upstream}")
    print(f"  abort delay:    {config.render.abort_delay}s")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="ssr-gateway",
        description="Request dispatch, locale resolution and streaming render gateway",
    )
    parser.add_argument("--config", "-c", help="Path to config file")
    subparsers = parser.add_subparsers(dest="command")

    # serve
    serve_parser = subparsers.add_parser("serve", help="Start the gateway HTTP server")
    serve_parser.add_argument(
        "--app", "-a", default=None,
        help="ViewApp import path (module:attr). Defaults to render.app in config.",
    )
    serve_parser.add_argument("--host", default=None)
    serve_parser.add_argument("--port", "-p", type=int, default=None)
    serve_parser.add_argument(
        "--mode", choices=[m.value for m in DeploymentMode], default=None,
        help="Deployment mode override (development enables the /api proxy)",
    )

    # config validate
    config_parser = subparsers.add_parser("config", help="Config operations")
    config_sub = config_parser.add_subparsers(dest="config_command")
    config_sub.add_parser("validate", help="Validate config file")

    return parser


def main(argv: list[str] | None = None):
    parser = build_parser()
    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        sys.exit(1)

    if args.command == "serve":
        cmd_serve(args)
    elif args.command == "config":
        if args.config_command == "validate":
            cmd_config_validate(args)
        else:
            print("Usage: ssr-gateway config validate")
            sys.exit(1)


if __name__ == "__main__":
    main()

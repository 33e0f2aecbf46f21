from __future__ import annotations

import argparse
import sys

import structlog

from httpsvr.config import ServerConfig
from httpsvr.errors import ListenError
from httpsvr.observability.logging import configure_logging
from httpsvr.server import Server


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Serve an httpsvr instance (only /__metric is routed)")
    parser.add_argument("--addr", default=None, help="Listen address, ex: :8000 or 127.0.0.1:8000")
    parser.add_argument("--certfile", default=None, help="TLS certificate file (requires --keyfile)")
    parser.add_argument("--keyfile", default=None, help="TLS private key file")
    parser.add_argument("--log", action=argparse.BooleanOptionalAction, default=None, help="Request/response logging")
    parser.add_argument("--metric", action=argparse.BooleanOptionalAction, default=None, help="Per-route metrics")
    args = parser.parse_args(argv)

    if bool(args.certfile) != bool(args.keyfile):
        parser.error("--certfile and --keyfile go together")

    overrides = {}
    if args.log is not None:
        overrides["enable_log"] = args.log
    if args.metric is not None:
        overrides["enable_metric"] = args.metric
    config = ServerConfig(**overrides)
    configure_logging(config.log_level, config.log_format)

    server = Server(config=config)
    try:
        if args.certfile:
            server.listen_and_serve_tls(args.addr, args.certfile, args.keyfile)
        else:
            server.listen_and_serve(args.addr)
    except ListenError as exc:
        structlog.get_logger("httpsvr").error("listen_failed", addr=exc.addr, error=exc.reason)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())

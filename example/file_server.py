"""Serve a directory of static files, with request logging turned off."""

from __future__ import annotations

from pathlib import Path

import structlog
from starlette.staticfiles import StaticFiles

from httpsvr import ListenError, Server, ServerConfig, configure_logging

GUI_DIR = Path(__file__).parent / "static"

logger = structlog.get_logger("example")


def build_file_server(directory: Path = GUI_DIR, config: ServerConfig | None = None) -> Server:
    server = Server(config=config or ServerConfig(enable_log=False, listen_addr=":8001"))
    # Mounted after /__metric, so the metric endpoint still wins.
    server.router.mount("/", StaticFiles(directory=str(directory), html=True), name="static")
    return server


def main() -> int:
    configure_logging()
    server = build_file_server()
    logger.info("file_server_serving", directory=str(GUI_DIR), url="http://127.0.0.1:8001")
    try:
        server.listen_and_serve()
    except ListenError as exc:
        logger.error("listen_failed", addr=exc.addr, error=exc.reason)
        return 1
    return 0


if __name__ == "__main__":
    raise SystemExit(main())

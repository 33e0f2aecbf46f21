"""Server facade: a router whose handlers get request-id logging and metrics.

Example::

    server = Server()
    server.add_handler("GET", "/match/:id", handle_match)
    server.listen_and_serve(":8000")

Every server also answers `GET /__metric` with the sorted per-route stats.
"""

from __future__ import annotations

import json
import re
import threading
from typing import Any, Callable

import structlog
import uvicorn
from fastapi import FastAPI
from starlette.requests import Request
from starlette.responses import Response
from starlette.routing import Router

from httpsvr.config import ServerConfig, get_settings
from httpsvr.errors import ListenError
from httpsvr.observability.metrics import InMemoryMetrics
from httpsvr.observability.middleware import AsyncHandler, Handler, compose_handler, key_from_request
from httpsvr.observability.scheduler import MetricResetScheduler
from httpsvr.responses import Responder
from httpsvr.transport import TimeoutMiddleware, bind_socket

METRIC_PATH = "/__metric"

_PARAM = re.compile(r"(?<=/):(\w+)")
_CATCH_ALL = re.compile(r"(?<=/)\*(\w+)$")
_CAPTURE = re.compile(r"\{\w+(:\w+)?\}")

logger = structlog.get_logger("httpsvr")


def to_route_path(path: str) -> str:
    """Translate `/match/:id` and `/files/*filepath` into router syntax."""

    path = _PARAM.sub(r"{\1}", path)
    return _CATCH_ALL.sub(r"{\1:path}", path)


def route_shape(route_path: str) -> str:
    """Drop capture names, ex: `/match/{id}` and `/match/{name}` both give `/match/{}`."""

    return _CAPTURE.sub(lambda m: "{" + (m.group(1) or "") + "}", route_path)


def route_key(method: str, path: str) -> str:
    return f"{path}_{method.upper()}"


class Server:
    """Owns the config, the route table and the metrics store.

    `Server()` reads its config from the environment (log on, metric on,
    daily metric reset on). Pass `config` to override any of it, and
    `metrics` to share a store between servers.
    """

    def __init__(self, config: ServerConfig | None = None, metrics: InMemoryMetrics | None = None) -> None:
        self.config = config if config is not None else get_settings()
        self.enable_log = self.config.enable_log
        self.enable_metric = self.config.enable_metric
        if self.enable_metric and metrics is None:
            metrics = InMemoryMetrics()
        self.metrics = metrics
        self.responder = Responder(enable_log=self.enable_log)

        self.app = FastAPI(title="httpsvr", docs_url=None, redoc_url=None, openapi_url=None)
        self._registry_lock = threading.Lock()
        self._registered: dict[tuple[str, str], str] = {}
        self._has_not_found = False

        self.metric_reset: MetricResetScheduler | None = None
        if self.metrics is not None and self.config.metric_reset_enabled:
            self.metric_reset = MetricResetScheduler(
                self.metrics.reset,
                interval=self.config.metric_reset_interval,
                offset=self.config.metric_reset_offset,
            )
            self.metric_reset.start()

        self.add_handler("GET", METRIC_PATH, self._handle_metric)

    @property
    def router(self) -> Router:
        return self.app.router

    async def __call__(self, scope: dict[str, Any], receive: Callable[..., Any], send: Callable[..., Any]) -> None:
        await self.app(scope, receive, send)

    def _compose(self, handler: Handler, key: str | Callable[[Request], str]) -> AsyncHandler:
        return compose_handler(
            handler,
            key,
            metrics=self.metrics,
            enable_log=self.enable_log,
            enable_metric=self.enable_metric,
        )

    def add_handler(self, method: str, path: str, handler: Handler) -> None:
        """Route `method path` to `handler`, ex: add_handler("GET", "/match/:id", h).

        Registering the same method and path twice, or a path that differs
        only in capture names, logs a conflict and keeps the first handler.
        """

        method = method.upper()
        route_path = to_route_path(path)
        with self._registry_lock:
            shape = (method, route_shape(route_path))
            if shape in self._registered:
                logger.warning(
                    "add_handler_conflict", method=method, path=path, registered=self._registered[shape]
                )
                return
            key = route_key(method, path)
            augmented = self._compose(handler, key)
            try:
                self.app.add_route(route_path, augmented, methods=[method], name=key, include_in_schema=False)
            except Exception:
                logger.exception("add_handler_failed", method=method, path=path)
                return
            self._registered[shape] = path

    def add_handler_not_found(self, handler: Handler) -> None:
        """Use `handler` for requests that match no route (default: plain 404).

        Its metrics are keyed by the requested path and method.
        """

        with self._registry_lock:
            if self._has_not_found:
                logger.warning("add_handler_conflict", method="*", path="<not found>")
                return
            augmented = self._compose(handler, key_from_request)
            fallback = self.router.default

            async def not_found(scope: dict[str, Any], receive: Callable[..., Any], send: Callable[..., Any]) -> None:
                if scope.get("type") != "http":
                    await fallback(scope, receive, send)
                    return
                response = await augmented(Request(scope, receive, send))
                await response(scope, receive, send)

            self.router.default = not_found
            self._has_not_found = True

    async def _handle_metric(self, request: Request) -> Response:
        records = self.metrics.get_current_metric() if self.metrics is not None else ()
        body = json.dumps([record.model_dump() for record in records], indent=4)
        return Response(body, media_type="application/json")

    def write(self, request: Request, body: str, status_code: int = 200) -> Response:
        return self.responder.write(request, body, status_code=status_code)

    def write_json(self, request: Request, obj: Any, status_code: int = 200) -> Response:
        return self.responder.write_json(request, obj, status_code=status_code)

    async def read_json(self, request: Request) -> Any:
        return await self.responder.read_json(request)

    def listen_and_serve(self, addr: str | None = None) -> None:
        """Bind `addr` (default: config.listen_addr) and serve until shutdown.

        Raises ListenError when the address cannot be bound.
        """

        self._serve(addr or self.config.listen_addr)

    def listen_and_serve_tls(self, addr: str | None, certfile: str, keyfile: str) -> None:
        self._serve(addr or self.config.listen_addr, ssl_certfile=certfile, ssl_keyfile=keyfile)

    def _serve(self, addr: str, **ssl_files: str) -> None:
        sock = bind_socket(addr)
        config = uvicorn.Config(
            TimeoutMiddleware(self.app, read_timeout=self.config.read_timeout, write_timeout=self.config.write_timeout),
            timeout_keep_alive=self.config.read_header_timeout,
            log_config=None,
            **ssl_files,
        )
        try:
            try:
                config.load()
            except OSError as exc:
                raise ListenError(addr, str(exc)) from exc

            logger.info("server_listening", addr=addr, tls=bool(ssl_files))
            uvicorn.Server(config).run(sockets=[sock])
        finally:
            sock.close()

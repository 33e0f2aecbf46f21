"""Per-route instrumentation: request ids, access logs, error guard, metrics.

`compose_handler` builds the handler that actually goes into the router::

    logging -> error guard -> metrics -> raw handler

Metrics only time the raw handler; logging brackets everything else. A
disabled layer is simply not built.
"""

from __future__ import annotations

import inspect
import uuid
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from time import perf_counter
from typing import Union

import structlog
from starlette.concurrency import run_in_threadpool
from starlette.exceptions import HTTPException
from starlette.requests import Request
from starlette.responses import PlainTextResponse, Response

from httpsvr.observability.metrics import InMemoryMetrics

Handler = Callable[[Request], Union[Awaitable[Response], Response]]
AsyncHandler = Callable[[Request], Awaitable[Response]]
# A fixed key, or one derived from the request (the not-found handler has no pattern).
RouteKey = Union[str, Callable[[Request], str]]

REQUEST_ID_HEADER = "X-Request-ID"
_CONTEXT_SCOPE_KEY = "httpsvr.request_context"

logger = structlog.get_logger("access")


@dataclass(frozen=True)
class RequestContext:
    """Request-scoped state set by the logging layer. Read-only for handlers."""

    request_id: str
    client: str


def new_request_id() -> str:
    return uuid.uuid4().hex


def get_request_context(request: Request) -> RequestContext | None:
    return request.scope.get(_CONTEXT_SCOPE_KEY)


def get_request_id(request: Request) -> str:
    """Return the id generated for this request, or "" when logging is off."""

    ctx = get_request_context(request)
    return ctx.request_id if ctx is not None else ""


def key_from_request(request: Request) -> str:
    return f"{request.url.path}_{request.method}"


def _client_addr(request: Request) -> str:
    if request.client is None:
        return ""
    return f"{request.client.host}:{request.client.port}"


def as_async(handler: Handler) -> AsyncHandler:
    if inspect.iscoroutinefunction(handler) or inspect.iscoroutinefunction(getattr(handler, "__call__", None)):
        return handler  # type: ignore[return-value]

    async def threaded(request: Request) -> Response:
        return await run_in_threadpool(handler, request)  # type: ignore[arg-type]

    return threaded


def with_metrics(handler: AsyncHandler, route_key: RouteKey, metrics: InMemoryMetrics) -> AsyncHandler:
    async def measured(request: Request) -> Response:
        key = route_key if isinstance(route_key, str) else route_key(request)
        metrics.count(key)
        start = perf_counter()
        try:
            return await handler(request)
        finally:
            metrics.duration(key, (perf_counter() - start) * 1000.0)

    return measured


def with_error_guard(handler: AsyncHandler) -> AsyncHandler:
    """Turn any unexpected failure of `handler` into a logged 500."""

    async def guarded(request: Request) -> Response:
        try:
            response = await handler(request)
            if not isinstance(response, Response):
                raise TypeError(f"handler returned {type(response).__name__}, expected a Response")
            return response
        except HTTPException:
            # Rendered by the router's exception middleware.
            raise
        except Exception:
            logger.exception(
                "http_handler_failed",
                request_id=get_request_id(request),
                method=request.method,
                path=request.url.path,
            )
            return PlainTextResponse("Internal Server Error", status_code=500)

    return guarded


def with_logging(handler: AsyncHandler) -> AsyncHandler:
    async def logged(request: Request) -> Response:
        ctx = RequestContext(request_id=new_request_id(), client=_client_addr(request))
        request.scope[_CONTEXT_SCOPE_KEY] = ctx
        fields = {
            "request_id": ctx.request_id,
            "client": ctx.client,
            "method": request.method,
            "path": request.url.path,
            "query": request.url.query,
        }
        logger.info("http_request", **fields)

        start = perf_counter()
        status_code = 500
        with structlog.contextvars.bound_contextvars(request_id=ctx.request_id):
            try:
                response = await handler(request)
                status_code = response.status_code
                response.headers[REQUEST_ID_HEADER] = ctx.request_id
                return response
            except HTTPException as exc:
                status_code = exc.status_code
                raise
            finally:
                logger.info(
                    "http_responded",
                    status_code=status_code,
                    elapsed_ms=round((perf_counter() - start) * 1000.0, 2),
                    **fields,
                )

    return logged


def compose_handler(
    handler: Handler,
    route_key: RouteKey,
    *,
    metrics: InMemoryMetrics | None,
    enable_log: bool = True,
    enable_metric: bool = True,
) -> AsyncHandler:
    augmented = as_async(handler)
    if enable_metric and metrics is not None:
        augmented = with_metrics(augmented, route_key, metrics)
    augmented = with_error_guard(augmented)
    if enable_log:
        augmented = with_logging(augmented)
    return augmented

"""Response/request body helpers that log with the request id."""

from __future__ import annotations

import json
from typing import Any

import structlog
from pydantic_core import to_jsonable_python
from starlette.requests import Request
from starlette.responses import PlainTextResponse, Response

from httpsvr.errors import RequestBodyError
from httpsvr.observability.middleware import get_request_id

logger = structlog.get_logger("http")


def get_url_params(request: Request) -> dict[str, str]:
    """Path captures as strings, ex: pattern `/match/:id` gives {"id": ...}."""

    return {key: str(value) for key, value in request.path_params.items()}


class Responder:
    """Writes/reads bodies; logs them when `enable_log` is set."""

    def __init__(self, enable_log: bool = True) -> None:
        self.enable_log = enable_log

    def write(self, request: Request, body: str, status_code: int = 200) -> Response:
        if self.enable_log:
            logger.info("http_write_body", request_id=get_request_id(request), body=body)
        return PlainTextResponse(body, status_code=status_code)

    def write_json(self, request: Request, obj: Any, status_code: int = 200) -> Response:
        try:
            body = json.dumps(obj, default=to_jsonable_python, allow_nan=False)
        except (TypeError, ValueError) as exc:
            if self.enable_log:
                logger.warning("write_json_failed", request_id=get_request_id(request), error=str(exc))
            return PlainTextResponse(str(exc), status_code=500)

        if self.enable_log:
            logger.info("http_write_body", request_id=get_request_id(request), body=body)
        return Response(body, status_code=status_code, media_type="application/json")

    async def read_json(self, request: Request) -> Any:
        body = await request.body()
        if self.enable_log:
            logger.info(
                "http_request_body",
                request_id=get_request_id(request),
                body=body.decode("utf-8", errors="replace"),
            )
        try:
            return json.loads(body)
        except ValueError as exc:
            raise RequestBodyError(f"invalid JSON body: {exc}") from exc


# Explicit default used by the module-level helpers below.
default_responder = Responder(enable_log=True)


def write(request: Request, body: str, status_code: int = 200) -> Response:
    return default_responder.write(request, body, status_code=status_code)


def write_json(request: Request, obj: Any, status_code: int = 200) -> Response:
    return default_responder.write_json(request, obj, status_code=status_code)


async def read_json(request: Request) -> Any:
    return await default_responder.read_json(request)

"""Example application built on httpsvr.

Run it with ``python -m example.app`` then try:

    curl http://127.0.0.1:8000/
    curl http://127.0.0.1:8000/__metric
    curl -X POST --data '{"password": "xyz"}' http://127.0.0.1:8000/login
    curl -H 'Authorization: Bearer alice' http://127.0.0.1:8000/admin
    curl http://127.0.0.1:8000/exception
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable

import structlog
from pydantic import BaseModel
from starlette.requests import Request
from starlette.responses import PlainTextResponse, Response

from httpsvr import ListenError, RequestBodyError, Server, ServerConfig, configure_logging, get_request_id

logger = structlog.get_logger("example")

AuthedHandler = Callable[[Request, str], Awaitable[Response]]
Handler = Callable[[Request], Awaitable[Response]]


class LoginRequest(BaseModel):
    password: str = ""


class LoginResponse(BaseModel):
    user_id: int


class ExampleServer:
    """Your server with an inited database connection, wrapping httpsvr.Server."""

    def __init__(
        self,
        server: Server | None = None,
        database: str = "some database connection",
        allow_cors_origins: set[str] | None = None,
    ) -> None:
        self.server = server or Server()
        self.database = database
        # scheme://host:port
        self.allow_cors_origins = allow_cors_origins or {
            "http://localhost:3000",  # ReactJS app
            "http://127.0.0.1:8000",  # this server, for testing OPTIONS requests
        }

    def route(self) -> None:
        s = self.server
        s.add_handler("GET", "/", self.index)
        s.add_handler("OPTIONS", "/login", self.allow_cors(empty_handler))
        s.add_handler("POST", "/login", self.allow_cors(self.login))
        s.add_handler("GET", "/admin", self.auth(self.hello))
        s.add_handler("GET", "/exception", self.exception)
        s.add_handler_not_found(silent_not_found)

    async def index(self, request: Request) -> Response:
        return self.server.write(request, "Index page")

    async def login(self, request: Request) -> Response:
        try:
            req = LoginRequest.model_validate(await self.server.read_json(request))
        except (RequestBodyError, ValueError) as exc:
            return PlainTextResponse(str(exc), status_code=400)
        _ = self.database, req.password  # some query to check the password
        return self.server.write_json(request, LoginResponse(user_id=1))

    def auth(self, handler: AuthedHandler) -> Handler:
        """Require `Authorization: Bearer {token}`; the token is the user name here."""

        async def authed(request: Request) -> Response:
            words = request.headers.get("Authorization", "").split(" ")
            if len(words) != 2 or words[0] != "Bearer" or not words[1]:
                detail = "need header Authorization: Bearer {token}"
                logger.info("http_auth_failed", request_id=get_request_id(request), error=detail)
                return PlainTextResponse(detail, status_code=401)
            return await handler(request, words[1])

        return authed

    async def hello(self, request: Request, user: str) -> Response:
        return self.server.write_json(request, {"data": f"Hello {user}"})

    async def exception(self, request: Request) -> Response:
        b: float | None = None
        a = 1 / b  # type: ignore[operator]
        return self.server.write_json(request, {"a": a})

    def allow_cors(self, handler: Handler) -> Handler:
        async def cors(request: Request) -> Response:
            origin = request.headers.get("Origin", "")
            if origin not in self.allow_cors_origins:
                if origin:  # a normal user with a normal browser
                    return PlainTextResponse("unexpected origin", status_code=400)
                # probably a developer debugging with curl
                return await handler(request)

            response = await handler(request)
            response.headers["Access-Control-Allow-Origin"] = origin
            response.headers["Access-Control-Allow-Credentials"] = "true"
            response.headers["Access-Control-Allow-Methods"] = "*"
            # Authorization must be listed explicitly, "*" does not cover it
            response.headers["Access-Control-Allow-Headers"] = "Authorization, Content-Type"
            response.headers["Vary"] = "Origin"
            return response

        return cors


async def empty_handler(request: Request) -> Response:
    return Response(status_code=204)


async def silent_not_found(request: Request) -> Response:
    return Response(status_code=404)


def main() -> int:
    config = ServerConfig(listen_addr=":8000")
    configure_logging(config.log_level, config.log_format)
    app = ExampleServer(Server(config=config))
    app.route()
    for path in ("/", "/__metric", "/login", "/admin", "/exception"):
        logger.info("example_route", url=f"http://127.0.0.1:8000{path}")
    try:
        app.server.listen_and_serve()
    except ListenError as exc:
        logger.error("listen_failed", addr=exc.addr, error=exc.reason)
        return 1
    return 0


if __name__ == "__main__":
    raise SystemExit(main())

from __future__ import annotations

import asyncio
import socket
from time import monotonic
from typing import Any, Callable

from httpsvr.errors import ListenError


def parse_address(addr: str) -> tuple[str, int]:
    """Split "host:port", ":port" or "[v6]:port" into (host, port)."""

    host, sep, port_str = addr.rpartition(":")
    if not sep:
        raise ValueError(f"address {addr!r} has no port")
    if host.startswith("[") and host.endswith("]"):
        host = host[1:-1]
    try:
        port = int(port_str)
    except ValueError as exc:
        raise ValueError(f"address {addr!r} has an invalid port") from exc
    if not 0 <= port <= 65535:
        raise ValueError(f"address {addr!r} has an out of range port")
    return host or "0.0.0.0", port


def bind_socket(addr: str) -> socket.socket:
    """Bind (but do not listen on) a TCP socket; failures raise ListenError."""

    try:
        host, port = parse_address(addr)
    except ValueError as exc:
        raise ListenError(addr, str(exc)) from exc

    family = socket.AF_INET6 if ":" in host else socket.AF_INET
    sock = socket.socket(family, socket.SOCK_STREAM)
    try:
        sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
        sock.bind((host, port))
    except OSError as exc:
        sock.close()
        raise ListenError(addr, str(exc)) from exc
    return sock


class TimeoutMiddleware:
    """Per-request read and write deadlines on the ASGI channels.

    The read deadline covers receiving the request body; the write deadline
    covers sending the whole response. Both start when the request arrives.
    """

    def __init__(self, app: Callable[..., Any], read_timeout: float, write_timeout: float) -> None:
        self.app = app
        self.read_timeout = read_timeout
        self.write_timeout = write_timeout

    async def __call__(self, scope: dict[str, Any], receive: Callable[..., Any], send: Callable[..., Any]) -> None:
        if scope.get("type") != "http":
            await self.app(scope, receive, send)
            return

        started = monotonic()
        body_done = False

        async def receive_wrapper() -> dict[str, Any]:
            nonlocal body_done
            if body_done:
                # Only disconnect notifications are left; they may legitimately wait forever.
                return await receive()
            remaining = self.read_timeout - (monotonic() - started)
            message = await asyncio.wait_for(receive(), timeout=max(remaining, 0.0))
            if message.get("type") != "http.request" or not message.get("more_body", False):
                body_done = True
            return message

        async def send_wrapper(message: dict[str, Any]) -> None:
            remaining = self.write_timeout - (monotonic() - started)
            await asyncio.wait_for(send(message), timeout=max(remaining, 0.0))

        await self.app(scope, receive_wrapper, send_wrapper)

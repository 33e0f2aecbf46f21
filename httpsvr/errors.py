from __future__ import annotations


class HttpSvrError(Exception):
    """Base class for errors raised by httpsvr."""


class ListenError(HttpSvrError):
    """The listener could not bind or serve on the requested address."""

    def __init__(self, addr: str, reason: str) -> None:
        super().__init__(f"cannot listen on {addr!r}: {reason}")
        self.addr = addr
        self.reason = reason


class RequestBodyError(HttpSvrError, ValueError):
    """The request body is not valid JSON."""

"""HTTP server shim: method/path routing with per-route metrics and request-id logging."""

from httpsvr.config import ServerConfig, get_settings
from httpsvr.errors import HttpSvrError, ListenError, RequestBodyError
from httpsvr.observability.logging import configure_logging
from httpsvr.observability.metrics import InMemoryMetrics
from httpsvr.observability.middleware import RequestContext, get_request_context, get_request_id
from httpsvr.responses import get_url_params, read_json, write, write_json
from httpsvr.server import Server

__all__ = [
    "HttpSvrError",
    "InMemoryMetrics",
    "ListenError",
    "RequestBodyError",
    "RequestContext",
    "Server",
    "ServerConfig",
    "configure_logging",
    "get_request_context",
    "get_request_id",
    "get_settings",
    "get_url_params",
    "read_json",
    "write",
    "write_json",
]

import dataclasses
from datetime import datetime, timezone

import pytest
from pydantic import BaseModel
from structlog.testing import capture_logs

from httpsvr import responses
from httpsvr.errors import RequestBodyError
from httpsvr.responses import Responder, get_url_params


class _Model(BaseModel):
    user_id: int
    name: str


@dataclasses.dataclass
class _Point:
    x: int
    y: int


def test_write_is_plain_text(make_request) -> None:
    resp = Responder().write(make_request(), "PONG")
    assert resp.status_code == 200
    assert resp.body == b"PONG"
    assert resp.headers["content-type"].startswith("text/plain")


def test_write_json_encodes_models_dataclasses_and_datetimes(make_request) -> None:
    resp = Responder().write_json(
        make_request(),
        {
            "model": _Model(user_id=1, name="a"),
            "point": _Point(1, 2),
            "at": datetime(2024, 1, 2, 3, 4, 5, tzinfo=timezone.utc),
        },
    )
    assert resp.status_code == 200
    assert resp.headers["content-type"] == "application/json"
    assert resp.body == (
        b'{"model": {"user_id": 1, "name": "a"}, "point": {"x": 1, "y": 2}, "at": "2024-01-02T03:04:05Z"}'
    )


def test_write_json_failure_returns_500_with_error_text(make_request) -> None:
    with capture_logs() as logs:
        resp = Responder().write_json(make_request(), {"data": object()})

    assert resp.status_code == 500
    assert b"object" in resp.body
    assert [entry["event"] for entry in logs] == ["write_json_failed"]


@pytest.mark.parametrize("value", [float("nan"), float("inf"), float("-inf")])
def test_write_json_rejects_non_finite_floats(make_request, value: float) -> None:
    resp = Responder(enable_log=False).write_json(make_request(), {"x": value})

    assert resp.status_code == 500
    assert b"JSON compliant" in resp.body


def test_logging_can_be_turned_off(make_request) -> None:
    with capture_logs() as logs:
        Responder(enable_log=False).write(make_request(), "quiet")
        Responder(enable_log=False).write_json(make_request(), {"a": 1})
    assert logs == []


def test_body_logs_carry_the_request_id_field(make_request) -> None:
    with capture_logs() as logs:
        responses.write(make_request(), "hello")
    assert logs[0]["event"] == "http_write_body"
    assert logs[0]["request_id"] == ""
    assert logs[0]["body"] == "hello"


async def test_read_json_parses_and_logs_body(make_request) -> None:
    with capture_logs() as logs:
        data = await Responder().read_json(make_request(body=b'{"password": "xyz"}'))
    assert data == {"password": "xyz"}
    assert logs[0]["event"] == "http_request_body"


async def test_read_json_rejects_invalid_body(make_request) -> None:
    with pytest.raises(RequestBodyError):
        await responses.read_json(make_request(body=b"{not json"))
    with pytest.raises(ValueError):
        await responses.read_json(make_request(body=b""))


def test_module_helpers_use_the_explicit_default(make_request) -> None:
    assert responses.default_responder.enable_log is True
    resp = responses.write_json(make_request(), [1, 2], status_code=201)
    assert resp.status_code == 201
    assert resp.body == b"[1, 2]"


def test_url_params_are_strings(make_request) -> None:
    request = make_request()
    assert get_url_params(request) == {}
    request.scope["path_params"] = {"id": 119, "name": "x"}
    assert get_url_params(request) == {"id": "119", "name": "x"}

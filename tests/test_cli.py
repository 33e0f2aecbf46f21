import pytest

from httpsvr import __main__ as cli


@pytest.fixture(autouse=True)
def no_logging_setup(monkeypatch: pytest.MonkeyPatch) -> None:
    # configure_logging is process-global; keep structlog's test defaults.
    monkeypatch.setattr(cli, "configure_logging", lambda *args, **kwargs: None)
    monkeypatch.setenv("HTTPSVR_METRIC_RESET_ENABLED", "false")


def test_cert_without_key_is_a_usage_error() -> None:
    with pytest.raises(SystemExit) as info:
        cli.main(["--certfile", "server.crt"])
    assert info.value.code == 2


def test_bad_address_exits_with_error_status() -> None:
    assert cli.main(["--addr", "no-port-here", "--no-log"]) == 1


def test_flags_reach_the_server(monkeypatch: pytest.MonkeyPatch) -> None:
    seen = {}

    def fake_listen(self, addr=None) -> None:
        seen["addr"] = addr
        seen["enable_log"] = self.enable_log
        seen["enable_metric"] = self.enable_metric

    monkeypatch.setattr(cli.Server, "listen_and_serve", fake_listen)
    assert cli.main(["--addr", "127.0.0.1:9000", "--no-log", "--metric"]) == 0
    assert seen == {"addr": "127.0.0.1:9000", "enable_log": False, "enable_metric": True}

from __future__ import annotations

import threading

import httpx
import pytest

from statsig_boundary.core import (
    EXCEPTION_ENDPOINT,
    StatsigInvalidArgumentError,
    StatsigUninitializedError,
)
from statsig_boundary.core.error_boundary import NO_NAME, UNSTRINGIFIABLE_ERROR


def _raise(exc):
    def _task():
        raise exc

    return _task


def test_capture_returns_task_value_without_recover(boundary, recorder):
    recover_calls = []

    result = boundary.capture("foo", lambda: 42, lambda: recover_calls.append(1) or -1)
    boundary.flush(2)

    assert result == 42
    assert recover_calls == []
    assert recorder.requests == []


def test_capture_recovers_and_reports_once(boundary, recorder, log_messages):
    result = boundary.capture("foo", _raise(ValueError("x")), lambda: -1)
    boundary.flush(2)

    assert result == -1
    assert len(recorder.requests) == 1
    request = recorder.requests[0]
    assert str(request.url) == EXCEPTION_ENDPOINT
    assert request.method == "POST"
    body = recorder.bodies[0]
    assert body["tag"] == "foo"
    assert body["exception"] == "ValueError"
    assert "ValueError: x" in body["info"]
    assert body["statsigMetadata"] == {}
    assert body["extra"] == {}

    assert len(log_messages) == 1
    assert "[Statsig] An unexpected exception occurred." in log_messages[0]
    assert log_messages[0].record["exception"].type is ValueError


def test_same_error_name_is_reported_once(boundary, recorder):
    assert boundary.capture("foo", _raise(ValueError("a")), lambda: -1) == -1
    boundary.flush(2)
    assert boundary.capture("bar", _raise(ValueError("b")), lambda: -2) == -2
    boundary.flush(2)

    assert len(recorder.requests) == 1


def test_different_error_names_are_reported_separately(boundary, recorder):
    boundary.capture("foo", _raise(ValueError("a")), lambda: None)
    boundary.flush(2)
    boundary.capture("foo", _raise(KeyError("b")), lambda: None)
    boundary.flush(2)

    assert [body["exception"] for body in recorder.bodies] == ["ValueError", "KeyError"]


@pytest.mark.parametrize(
    "error", [StatsigInvalidArgumentError("bad"), StatsigUninitializedError()]
)
def test_usage_errors_are_reraised(boundary, recorder, error):
    recover_calls = []

    with pytest.raises(type(error)) as excinfo:
        boundary.capture("foo", _raise(error), lambda: recover_calls.append(1))
    boundary.flush(2)

    assert excinfo.value is error
    assert recover_calls == []
    assert recorder.requests == []


def test_keyboard_interrupt_is_not_captured(boundary, recorder):
    with pytest.raises(KeyboardInterrupt):
        boundary.capture("foo", _raise(KeyboardInterrupt()), lambda: -1)
    assert recorder.requests == []


def test_recover_runs_when_report_dispatch_fails(boundary, monkeypatch):
    def _boom(*args, **kwargs):
        raise RuntimeError("no threads")

    monkeypatch.setattr(threading, "Thread", _boom)

    assert boundary.capture("foo", _raise(ValueError("x")), lambda: "fallback") == "fallback"


def test_swallow_returns_none(boundary, recorder):
    assert boundary.swallow("foo", _raise(IndexError("x"))) is None
    assert boundary.swallow("foo", lambda: 5) is None
    boundary.flush(2)

    assert [body["exception"] for body in recorder.bodies] == ["IndexError"]


def test_report_headers_carry_key_and_metadata(boundary, recorder):
    boundary.set_statsig_metadata({"sdkType": "python-client", "sdkVersion": "1.2.3"})

    boundary.capture("foo", _raise(ValueError("x")), lambda: None)
    boundary.flush(2)

    request = recorder.requests[0]
    assert request.headers["STATSIG-API-KEY"] == "client-key"
    assert request.headers["STATSIG-SDK-TYPE"] == "python-client"
    assert request.headers["STATSIG-SDK-VERSION"] == "1.2.3"
    assert request.headers["Content-Type"] == "application/json"
    assert request.headers["Content-Length"] == str(len(request.content))
    assert recorder.bodies[0]["statsigMetadata"] == {
        "sdkType": "python-client",
        "sdkVersion": "1.2.3",
    }


def test_missing_metadata_omits_sdk_headers(boundary, recorder):
    boundary.capture("foo", _raise(ValueError("x")), lambda: None)
    boundary.flush(2)

    headers = recorder.requests[0].headers
    assert "STATSIG-SDK-TYPE" not in headers
    assert "STATSIG-SDK-VERSION" not in headers


def test_extra_data_is_attached(boundary, recorder):
    boundary.capture(
        "foo",
        _raise(ValueError("x")),
        lambda: None,
        get_extra_data=lambda: {"configName": "a_gate"},
    )
    boundary.flush(2)

    assert recorder.bodies[0]["extra"] == {"configName": "a_gate"}


def test_failing_extra_data_supplier_drops_report(boundary, recorder):
    def _extra():
        raise RuntimeError("extra failed")

    assert boundary.capture("foo", _raise(ValueError("x")), lambda: 7, _extra) == 7
    boundary.flush(2)

    assert recorder.requests == []


def test_log_error_with_none_uses_no_name(boundary, recorder):
    boundary.log_error("foo", None)
    boundary.flush(2)

    body = recorder.bodies[0]
    assert body["exception"] == NO_NAME
    assert body["info"] == '"[Statsig] Error was empty"'


def test_log_error_with_plain_value(boundary, recorder):
    boundary.log_error("foo", {"reason": "odd"})
    boundary.flush(2)

    body = recorder.bodies[0]
    assert body["exception"] == NO_NAME
    assert body["info"] == '{"reason": "odd"}'


def test_log_error_with_unserializable_value(boundary, recorder):
    boundary.log_error("foo", object())
    boundary.flush(2)

    assert recorder.bodies[0]["info"] == UNSTRINGIFIABLE_ERROR


def test_transport_failure_is_silent(make_boundary):
    def _handler(request):
        raise httpx.ConnectError("offline", request=request)

    boundary = make_boundary(transport=httpx.MockTransport(_handler))

    assert boundary.capture("foo", _raise(ValueError("x")), lambda: -1) == -1
    boundary.flush(2)


def test_error_status_is_not_retried(make_boundary, recorder):
    recorder.status_code = 500
    boundary = make_boundary()

    boundary.capture("foo", _raise(ValueError("x")), lambda: None)
    boundary.flush(2)

    assert len(recorder.requests) == 1


def test_seen_set_is_per_instance(make_boundary, recorder):
    first = make_boundary()
    second = make_boundary()

    first.capture("foo", _raise(ValueError("x")), lambda: None)
    first.flush(2)
    second.capture("foo", _raise(ValueError("x")), lambda: None)
    second.flush(2)

    assert len(recorder.requests) == 2


def test_repeated_failures_start_one_report_thread(boundary, recorder, monkeypatch):
    started = []
    real_thread = threading.Thread

    def _counting_thread(*args, **kwargs):
        thread = real_thread(*args, **kwargs)
        started.append(thread)
        return thread

    monkeypatch.setattr(threading, "Thread", _counting_thread)

    for _ in range(200):
        assert boundary.capture("foo", _raise(ValueError("x")), lambda: -1) == -1
    boundary.flush(2)

    assert len(started) == 1
    assert len(recorder.requests) == 1


def test_log_error_skips_seen_name_before_dispatch(boundary, recorder, monkeypatch):
    boundary.log_error("foo", None)
    boundary.flush(2)

    dispatched = []
    monkeypatch.setattr(boundary, "_dispatch", lambda *args: dispatched.append(args))
    boundary.log_error("bar", "another plain value")

    assert dispatched == []
    assert len(recorder.requests) == 1

"""Tests for the JSON-RPC dispatcher."""

import threading
import time
from unittest.mock import Mock

import pytest
import requests

from randrpc import (
    HttpClient,
    JsonFormatError,
    JsonParseError,
    PacingExceededError,
    PacingState,
    RpcDispatcher,
    TransportError,
)

BASE_URL = "https://api.random.org/json-rpc/1/invoke"


# ======================
# Helper functions
# ======================

def make_response(body: str, status_code: int = 200):
    """Creates a mock that behaves like requests.Response"""
    resp = Mock(spec=requests.Response)
    resp.status_code = status_code
    resp.content = body.encode("utf-8")
    resp.raise_for_status.side_effect = None
    if status_code >= 400:
        err = requests.HTTPError(f"{status_code} Error")
        err.response = resp
        resp.raise_for_status.side_effect = err
    return resp


def result_body(advisory_delay: int = 0, id: int = 1) -> str:
    return (
        '{"jsonrpc":"2.0","result":{"random":{"data":[1,2],"completionTime":"2024-01-01 10:00:00Z"},'
        f'"bitsUsed":4,"bitsLeft":1000,"requestsLeft":99,"advisoryDelay":{advisory_delay}}},"id":{id}}}'
    )


class FakeClock:
    """Manually advanced monotonic clock. Sleeping advances it."""

    def __init__(self, start: float = 1000.0):
        self.now = start
        self.sleeps: list[float] = []

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds

    def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds


class MockHttpClient(HttpClient):
    """Mock HTTP client returning queued responses (or raising queued exceptions)."""

    def __init__(self, *responses):
        self.responses = list(responses)
        self.post_calls = []

    def post(self, url, data, headers=None, timeout=30):
        self.post_calls.append({"url": url, "data": data, "headers": headers, "timeout": timeout})
        outcome = self.responses.pop(0)
        if isinstance(outcome, Exception):
            raise outcome
        return outcome


def make_dispatcher(http_client: HttpClient, max_blocking_time: float = 3.0):
    clock = FakeClock()
    pacing = PacingState(max_blocking_time=max_blocking_time, clock=clock, sleep=clock.sleep)
    dispatcher = RpcDispatcher(http_client=http_client, base_url=BASE_URL, pacing=pacing, request_timeout=15)
    return dispatcher, pacing, clock


# =============================================================================
# Envelope and transport
# =============================================================================


class TestDispatchRequest:
    """Tests for what the dispatcher sends."""

    def test_posts_json_rpc_envelope(self):
        http_client = MockHttpClient(make_response(result_body()))
        dispatcher, _, _ = make_dispatcher(http_client)

        dispatcher.dispatch("generateIntegers", '{"apiKey":"k","n":2}', id=42)

        call = http_client.post_calls[0]
        assert call["url"] == BASE_URL
        assert call["data"] == b'{"jsonrpc":"2.0","method":"generateIntegers","params":{"apiKey":"k","n":2},"id":42}'
        assert call["headers"] == {"Content-Type": "application/json"}
        assert call["timeout"] == 15

    def test_returns_decoded_reply(self):
        http_client = MockHttpClient(make_response(result_body(id=7)))
        dispatcher, _, _ = make_dispatcher(http_client)

        reply = dispatcher.dispatch("generateIntegers", '{"n":2}', id=7)

        assert reply["id"].as_int() == 7
        assert reply["result"]["bitsLeft"].as_long() == 1000

    def test_rejects_empty_method(self):
        dispatcher, _, _ = make_dispatcher(MockHttpClient())

        with pytest.raises(AssertionError):
            dispatcher.dispatch("", '{"n":2}', id=1)


# =============================================================================
# Pacing
# =============================================================================


class TestDispatchPacing:
    """Tests for the pacing decisions around each exchange."""

    def test_records_advisory_delay_in_seconds(self):
        http_client = MockHttpClient(make_response(result_body(advisory_delay=200)))
        dispatcher, pacing, _ = make_dispatcher(http_client)

        dispatcher.dispatch("generateIntegers", '{"n":2}', id=1)

        assert pacing.advisory_delay == pytest.approx(0.2)

    def test_waits_remaining_delay_before_sending(self):
        """advisoryDelay=200ms, previous exchange 50ms ago: sleeps ~150ms first."""
        http_client = MockHttpClient(
            make_response(result_body(advisory_delay=200)),
            make_response(result_body()),
        )
        dispatcher, _, clock = make_dispatcher(http_client)
        dispatcher.dispatch("generateIntegers", '{"n":2}', id=1)
        clock.advance(0.05)

        dispatcher.dispatch("generateIntegers", '{"n":2}', id=2)

        assert clock.sleeps == [pytest.approx(0.15)]
        assert len(http_client.post_calls) == 2

    def test_refuses_without_transport_call_when_wait_exceeds_tolerance(self):
        """advisoryDelay=5000ms with max_blocking_time=3s."""
        http_client = MockHttpClient(
            make_response(result_body(advisory_delay=5000)),
            make_response(result_body()),
        )
        dispatcher, _, clock = make_dispatcher(http_client, max_blocking_time=3.0)
        dispatcher.dispatch("generateIntegers", '{"n":2}', id=1)

        with pytest.raises(PacingExceededError):
            dispatcher.dispatch("generateIntegers", '{"n":2}', id=2)

        assert len(http_client.post_calls) == 1
        assert clock.sleeps == []

    def test_error_reply_resets_advisory_delay(self):
        http_client = MockHttpClient(
            make_response(result_body(advisory_delay=1000)),
            make_response('{"jsonrpc":"2.0","error":{"code":503,"message":"throttled"},"id":2}'),
        )
        dispatcher, pacing, clock = make_dispatcher(http_client)
        dispatcher.dispatch("generateIntegers", '{"n":2}', id=1)
        clock.advance(2.0)

        reply = dispatcher.dispatch("generateIntegers", '{"n":2}', id=2)

        assert reply["error"]["code"].as_int() == 503
        assert pacing.advisory_delay == 0.0

    def test_missing_advisory_delay_counts_as_zero(self):
        http_client = MockHttpClient(make_response('{"jsonrpc":"2.0","result":{"authenticity":true},"id":3}'))
        dispatcher, pacing, _ = make_dispatcher(http_client)
        pacing.record_exchange(advisory_delay=0.0)

        dispatcher.dispatch("verifySignature", '{"signature":"x"}', id=3)

        assert pacing.advisory_delay == 0.0

    def test_unreadable_advisory_delay_keeps_previous_advice(self):
        http_client = MockHttpClient(
            make_response('{"jsonrpc":"2.0","result":{"advisoryDelay":"soon"},"id":3}'),
        )
        dispatcher, pacing, clock = make_dispatcher(http_client)
        pacing.record_exchange(advisory_delay=0.5)
        clock.advance(1.0)

        dispatcher.dispatch("generateIntegers", '{"n":2}', id=3)

        assert pacing.advisory_delay == 0.5
        assert pacing.last_exchange_at == clock.now

    def test_concurrent_callers_never_both_skip_an_owed_wait(self):
        """Two threads sharing one dispatcher: the second send waits for the advice of the first."""
        post_times: list[float] = []
        lock = threading.Lock()

        class RecordingHttpClient(HttpClient):
            def post(self, url, data, headers=None, timeout=30):
                with lock:
                    post_times.append(time.monotonic())
                return make_response(result_body(advisory_delay=200))

        pacing = PacingState(max_blocking_time=3.0)
        pacing.record_exchange(advisory_delay=0.2)
        dispatcher = RpcDispatcher(http_client=RecordingHttpClient(), base_url=BASE_URL, pacing=pacing)
        start = time.monotonic()

        threads = [
            threading.Thread(target=dispatcher.dispatch, args=("generateIntegers", '{"n":2}', i))
            for i in range(2)
        ]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert len(post_times) == 2
        first, second = sorted(post_times)
        assert first - start >= 0.15
        assert second - first >= 0.15


# =============================================================================
# Failures
# =============================================================================


class TestDispatchFailures:
    """Tests for transport and decoding failures."""

    def test_http_error_status_raises_transport_error(self):
        http_client = MockHttpClient(make_response("Service Unavailable", status_code=503))
        dispatcher, _, _ = make_dispatcher(http_client)

        with pytest.raises(TransportError) as exc_info:
            dispatcher.dispatch("generateIntegers", '{"n":2}', id=1)

        assert exc_info.value.status_code == 503
        assert isinstance(exc_info.value.__cause__, requests.HTTPError)

    def test_connection_error_raises_transport_error_without_status(self):
        http_client = MockHttpClient(requests.ConnectionError("connection refused"))
        dispatcher, _, _ = make_dispatcher(http_client)

        with pytest.raises(TransportError) as exc_info:
            dispatcher.dispatch("generateIntegers", '{"n":2}', id=1)

        assert exc_info.value.status_code is None
        assert not exc_info.value.is_timeout()

    def test_timeout_is_reported_by_transport_error(self):
        http_client = MockHttpClient(requests.Timeout("read timed out"))
        dispatcher, _, _ = make_dispatcher(http_client)

        with pytest.raises(TransportError) as exc_info:
            dispatcher.dispatch("generateIntegers", '{"n":2}', id=1)

        assert exc_info.value.is_timeout()

    def test_transport_failure_refreshes_timestamp_and_keeps_delay(self):
        http_client = MockHttpClient(requests.ConnectionError("boom"))
        dispatcher, pacing, clock = make_dispatcher(http_client)
        pacing.record_exchange(advisory_delay=0.5)
        clock.advance(1.0)

        with pytest.raises(TransportError):
            dispatcher.dispatch("generateIntegers", '{"n":2}', id=1)

        assert pacing.advisory_delay == 0.5
        assert pacing.last_exchange_at == clock.now

    def test_malformed_body_raises_json_parse_error(self):
        http_client = MockHttpClient(make_response('{"result":'))
        dispatcher, _, _ = make_dispatcher(http_client)

        with pytest.raises(JsonParseError):
            dispatcher.dispatch("generateIntegers", '{"n":2}', id=1)

    def test_non_object_reply_raises_format_error(self):
        http_client = MockHttpClient(make_response('[1,2]'))
        dispatcher, _, _ = make_dispatcher(http_client)

        with pytest.raises(JsonFormatError):
            dispatcher.dispatch("generateIntegers", '{"n":2}', id=1)

    def test_os_error_from_custom_transport_raises_transport_error(self):
        http_client = MockHttpClient(ConnectionRefusedError("connection refused"))
        dispatcher, pacing, clock = make_dispatcher(http_client)
        pacing.record_exchange(advisory_delay=0.5)
        clock.advance(1.0)

        with pytest.raises(TransportError) as exc_info:
            dispatcher.dispatch("generateIntegers", '{"n":2}', id=1)

        assert exc_info.value.status_code is None
        assert isinstance(exc_info.value.__cause__, ConnectionRefusedError)
        assert pacing.advisory_delay == 0.5
        assert pacing.last_exchange_at == clock.now

    def test_socket_timeout_from_custom_transport_is_reported_as_timeout(self):
        http_client = MockHttpClient(TimeoutError("timed out"))
        dispatcher, _, _ = make_dispatcher(http_client)

        with pytest.raises(TransportError) as exc_info:
            dispatcher.dispatch("generateIntegers", '{"n":2}', id=1)

        assert exc_info.value.is_timeout()

    def test_invalid_utf8_body_raises_json_parse_error(self):
        response = make_response("")
        response.content = b'{"result":{"data":"\xff\xfe"},"id":1}'
        http_client = MockHttpClient(response)
        dispatcher, pacing, clock = make_dispatcher(http_client)
        pacing.record_exchange(advisory_delay=0.5)
        clock.advance(1.0)

        with pytest.raises(JsonParseError) as exc_info:
            dispatcher.dispatch("generateIntegers", '{"n":2}', id=1)

        assert exc_info.value.position == 19
        assert isinstance(exc_info.value.__cause__, UnicodeDecodeError)
        assert pacing.advisory_delay == 0.5
        assert pacing.last_exchange_at == clock.now

    def test_deeply_nested_body_raises_json_parse_error(self):
        http_client = MockHttpClient(make_response("[" * 5000 + "]" * 5000))
        dispatcher, pacing, clock = make_dispatcher(http_client)
        clock.advance(1.0)

        with pytest.raises(JsonParseError):
            dispatcher.dispatch("generateIntegers", '{"n":2}', id=1)

        assert pacing.last_exchange_at == clock.now

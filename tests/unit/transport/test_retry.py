"""Tests for the retry policy."""

import asyncio
from datetime import UTC, datetime, timedelta

import httpx
import pytest

from service_client_core.config import RetryOptions
from service_client_core.errors import AuthError, TransportError
from service_client_core.testing import ScriptedHandler
from service_client_core.transport import HttpxTransport, Pipeline, Policy, Request, RetryPolicy

URL = "https://api.example.com/items"


def make_pipeline(handler, options: RetryOptions | None = None, inner: tuple[Policy, ...] = ()) -> Pipeline:
    return Pipeline(
        [RetryPolicy(options or RetryOptions(jitter=0.0)), *inner],
        HttpxTransport(transport=httpx.MockTransport(handler)),
    )


class TestTransientTransportFailures:
    """Connection-level failures are retried for idempotent requests only."""

    @pytest.mark.unit
    async def test_idempotent_request_succeeds_after_k_failures(self, recorded_sleeps):
        """K failures followed by success return the success after K+1 sends."""
        handler = ScriptedHandler(
            [
                httpx.ConnectError("connection refused"),
                httpx.ReadTimeout("read timed out"),
                httpx.Response(200, json={"ok": True}),
            ]
        )

        async with make_pipeline(handler, RetryOptions(max_retries=3, jitter=0.0)) as pipeline:
            response = await pipeline.send(Request("GET", URL))

        assert response.status_code == 200
        assert response.json() == {"ok": True}
        assert handler.call_count == 3
        assert len(recorded_sleeps) == 2

    @pytest.mark.unit
    @pytest.mark.parametrize("max_retries", [0, 3, 10])
    async def test_non_idempotent_request_gets_one_attempt(self, recorded_sleeps, max_retries):
        """POST is never retried, whatever the retry budget."""
        handler = ScriptedHandler([httpx.ConnectError("reset"), httpx.Response(201)])

        async with make_pipeline(handler, RetryOptions(max_retries=max_retries)) as pipeline:
            with pytest.raises(TransportError) as exc_info:
                await pipeline.send(Request("POST", URL, content=b"{}"))

        assert handler.call_count == 1
        assert exc_info.value.attempts == 1
        assert recorded_sleeps == []

    @pytest.mark.unit
    async def test_explicitly_non_idempotent_get_is_not_retried(self, recorded_sleeps):
        """An explicit idempotency declaration wins over the method default."""
        handler = ScriptedHandler([httpx.ConnectError("reset"), httpx.Response(200)])

        async with make_pipeline(handler) as pipeline:
            with pytest.raises(TransportError):
                await pipeline.send(Request("GET", URL, idempotent=False))

        assert handler.call_count == 1

    @pytest.mark.unit
    async def test_post_declared_idempotent_is_retried(self, recorded_sleeps):
        """A POST with an idempotency contract may be retried."""
        handler = ScriptedHandler([httpx.ConnectError("reset"), httpx.Response(201)])

        async with make_pipeline(handler) as pipeline:
            response = await pipeline.send(Request("POST", URL, content=b"{}", idempotent=True))

        assert response.status_code == 201
        assert handler.call_count == 2

    @pytest.mark.unit
    async def test_exhausted_budget_raises_last_transport_error(self, recorded_sleeps):
        """After max_retries retries the last TransportError surfaces with the attempt count."""
        handler = ScriptedHandler([httpx.ConnectError("down")])

        async with make_pipeline(handler, RetryOptions(max_retries=3, jitter=0.0)) as pipeline:
            with pytest.raises(TransportError) as exc_info:
                await pipeline.send(Request("GET", URL))

        assert handler.call_count == 4
        assert exc_info.value.attempts == 4
        assert exc_info.value.url == URL
        assert isinstance(exc_info.value.__cause__, httpx.ConnectError)


class TestRetryableStatuses:
    """Allow-listed statuses are retried; everything else is returned as is."""

    @pytest.mark.unit
    @pytest.mark.parametrize("status_code", [429, 500, 502, 503, 504])
    async def test_retries_allow_listed_status(self, recorded_sleeps, status_code):
        handler = ScriptedHandler([httpx.Response(status_code), httpx.Response(200)])

        async with make_pipeline(handler) as pipeline:
            response = await pipeline.send(Request("GET", URL))

        assert response.status_code == 200
        assert handler.call_count == 2

    @pytest.mark.unit
    @pytest.mark.parametrize("status_code", [400, 401, 403, 404, 409, 501])
    async def test_does_not_retry_other_statuses(self, recorded_sleeps, status_code):
        handler = ScriptedHandler([httpx.Response(status_code), httpx.Response(200)])

        async with make_pipeline(handler) as pipeline:
            response = await pipeline.send(Request("GET", URL))

        assert response.status_code == status_code
        assert handler.call_count == 1
        assert recorded_sleeps == []

    @pytest.mark.unit
    async def test_does_not_retry_post_on_503(self, recorded_sleeps):
        handler = ScriptedHandler([httpx.Response(503), httpx.Response(200)])

        async with make_pipeline(handler) as pipeline:
            response = await pipeline.send(Request("POST", URL))

        assert response.status_code == 503
        assert handler.call_count == 1

    @pytest.mark.unit
    async def test_returns_last_response_when_budget_exhausted(self, recorded_sleeps):
        handler = ScriptedHandler([httpx.Response(503, text="busy")])

        async with make_pipeline(handler, RetryOptions(max_retries=2, jitter=0.0)) as pipeline:
            response = await pipeline.send(Request("GET", URL))

        assert response.status_code == 503
        assert handler.call_count == 3


class TestBackoff:
    """Delay computation: exponential growth, cap, jitter and Retry-After."""

    @pytest.mark.unit
    async def test_exponential_backoff_delays(self, recorded_sleeps):
        """Default shape without jitter: 0.8, 1.6, 3.2 seconds."""
        handler = ScriptedHandler([httpx.Response(503)])

        async with make_pipeline(handler, RetryOptions(max_retries=3, jitter=0.0)) as pipeline:
            await pipeline.send(Request("GET", URL))

        assert recorded_sleeps == pytest.approx([0.8, 1.6, 3.2])

    @pytest.mark.unit
    async def test_backoff_is_capped_at_max_backoff(self, recorded_sleeps):
        handler = ScriptedHandler([httpx.Response(503)])
        options = RetryOptions(max_retries=4, initial_backoff=1.0, backoff_factor=10.0, max_backoff=5.0, jitter=0.0)

        async with make_pipeline(handler, options) as pipeline:
            await pipeline.send(Request("GET", URL))

        assert recorded_sleeps == pytest.approx([1.0, 5.0, 5.0, 5.0])

    @pytest.mark.unit
    async def test_jitter_stays_within_bounds(self, recorded_sleeps):
        handler = ScriptedHandler([httpx.Response(503)])
        options = RetryOptions(max_retries=3, initial_backoff=1.0, backoff_factor=2.0, jitter=0.5)

        async with make_pipeline(handler, options) as pipeline:
            await pipeline.send(Request("GET", URL))

        for delay, base in zip(recorded_sleeps, [1.0, 2.0, 4.0], strict=True):
            assert base <= delay <= base * 1.5

    @pytest.mark.unit
    async def test_respects_retry_after_seconds(self, recorded_sleeps):
        handler = ScriptedHandler([httpx.Response(429, headers={"Retry-After": "7"}), httpx.Response(200)])

        async with make_pipeline(handler) as pipeline:
            response = await pipeline.send(Request("GET", URL))

        assert response.status_code == 200
        assert recorded_sleeps == [7.0]

    @pytest.mark.unit
    async def test_retry_after_is_capped_at_max_backoff(self, recorded_sleeps):
        handler = ScriptedHandler([httpx.Response(503, headers={"Retry-After": "3600"}), httpx.Response(200)])

        async with make_pipeline(handler, RetryOptions(max_backoff=10.0, jitter=0.0)) as pipeline:
            await pipeline.send(Request("GET", URL))

        assert recorded_sleeps == [10.0]

    @pytest.mark.unit
    async def test_respects_retry_after_http_date(self, recorded_sleeps):
        retry_time = datetime.now(UTC) + timedelta(seconds=30)
        retry_after = retry_time.strftime("%a, %d %b %Y %H:%M:%S GMT")
        handler = ScriptedHandler([httpx.Response(503, headers={"Retry-After": retry_after}), httpx.Response(200)])

        async with make_pipeline(handler) as pipeline:
            await pipeline.send(Request("GET", URL))

        assert len(recorded_sleeps) == 1
        assert 28.0 < recorded_sleeps[0] <= 30.0

    @pytest.mark.unit
    @pytest.mark.parametrize("retry_after", ["-5", "soon", "Wed, 21 Oct 2015 07:28:00 GMT"])
    async def test_invalid_or_past_retry_after_falls_back_to_backoff(self, recorded_sleeps, retry_after):
        handler = ScriptedHandler([httpx.Response(503, headers={"Retry-After": retry_after}), httpx.Response(200)])

        async with make_pipeline(handler) as pipeline:
            await pipeline.send(Request("GET", URL))

        assert recorded_sleeps == pytest.approx([0.8])


class TestAttemptIsolation:
    """Each attempt starts from the original request."""

    @pytest.mark.unit
    async def test_body_bytes_identical_across_attempts(self, recorded_sleeps):
        body = b'{"name": "feature", "payload": "\x00\xff binary-safe"}'
        handler = ScriptedHandler([httpx.Response(503), httpx.ConnectError("reset"), httpx.Response(200)])

        async with make_pipeline(handler) as pipeline:
            await pipeline.send(Request("PUT", URL, content=body))

        assert handler.call_count == 3
        assert [request.content for request in handler.requests] == [body, body, body]

    @pytest.mark.unit
    async def test_headers_from_inner_policies_do_not_leak(self, recorded_sleeps):
        class AppendHeader(Policy):
            async def send(self, request, call_next):
                request.add_header("x-attempt-marker", "1")
                return await call_next(request)

        handler = ScriptedHandler([httpx.Response(503), httpx.Response(503), httpx.Response(200)])

        async with make_pipeline(handler, inner=(AppendHeader(),)) as pipeline:
            await pipeline.send(Request("GET", URL))

        assert [r.headers.get_list("x-attempt-marker") for r in handler.requests] == [["1"], ["1"], ["1"]]


class TestNonRetryableErrors:
    @pytest.mark.unit
    async def test_auth_error_is_not_retried(self, recorded_sleeps):
        calls = 0

        class FailingAuth(Policy):
            async def send(self, request, call_next):
                nonlocal calls
                calls += 1
                raise AuthError("credential rejected")

        handler = ScriptedHandler([httpx.Response(200)])

        async with make_pipeline(handler, inner=(FailingAuth(),)) as pipeline:
            with pytest.raises(AuthError):
                await pipeline.send(Request("GET", URL))

        assert calls == 1
        assert handler.call_count == 0

    @pytest.mark.unit
    async def test_cancellation_interrupts_backoff(self):
        """Cancelling during a backoff sleep ends the call without further attempts."""
        sent = asyncio.Event()
        attempts = 0

        async def handler(request: httpx.Request) -> httpx.Response:
            nonlocal attempts
            attempts += 1
            sent.set()
            return httpx.Response(503)

        pipeline = make_pipeline(handler, RetryOptions(initial_backoff=60.0, jitter=0.0))
        task = asyncio.create_task(pipeline.send(Request("GET", URL)))
        await sent.wait()
        task.cancel()

        with pytest.raises(asyncio.CancelledError):
            await task

        assert attempts == 1
        await pipeline.aclose()

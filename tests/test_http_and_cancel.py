"""
Tests for cancellation tokens and the retrying HTTP helper.
"""

import asyncio

import httpx
import pytest

from paper_research.cancel import CancelToken, guarded
from paper_research.exceptions import OperationCancelledError
from paper_research.net.http import http_get, policy_headers


class TestCancelToken:

    def test_first_reason_wins(self):
        token = CancelToken()
        token.cancel("max turns reached")
        token.cancel("aborted")
        assert token.cancelled
        assert token.reason == "max turns reached"

    @pytest.mark.asyncio
    async def test_guard_returns_result(self):
        token = CancelToken()
        assert await token.guard(asyncio.sleep(0, result=42)) == 42

    @pytest.mark.asyncio
    async def test_guard_drops_pending_work(self):
        token = CancelToken()
        work_cancelled = asyncio.Event()

        async def slow():
            try:
                await asyncio.sleep(10)
            except asyncio.CancelledError:
                work_cancelled.set()
                raise

        asyncio.get_running_loop().call_later(0.01, token.cancel, "aborted")
        with pytest.raises(OperationCancelledError, match="aborted"):
            await asyncio.wait_for(token.guard(slow()), timeout=2)
        assert work_cancelled.is_set()

    @pytest.mark.asyncio
    async def test_guarded_without_token(self):
        assert await guarded(asyncio.sleep(0, result="ok"), None) == "ok"


class TestHttpGet:

    @pytest.mark.asyncio
    async def test_retries_soft_status(self, settings):
        settings = settings.model_copy(update={"RETRY_MAX_TRIES": 3})
        statuses = iter([503, 200])

        async with httpx.AsyncClient(transport=httpx.MockTransport(
            lambda request: httpx.Response(next(statuses), text="ok")
        )) as client:
            r = await http_get(client, "https://example.org/x", settings=settings)

        assert r.status_code == 200

    @pytest.mark.asyncio
    async def test_final_soft_status_is_returned(self, settings):
        async with httpx.AsyncClient(transport=httpx.MockTransport(
            lambda request: httpx.Response(429)
        )) as client:
            r = await http_get(client, "https://example.org/x", settings=settings)
        assert r.status_code == 429

    @pytest.mark.asyncio
    async def test_transport_error_raised_after_retries(self, settings):
        def handler(request):
            raise httpx.ConnectError("refused")

        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
            with pytest.raises(httpx.ConnectError):
                await http_get(client, "https://example.org/x", settings=settings)

    def test_policy_headers_override_caller(self, settings):
        headers = policy_headers("semantic-scholar", settings, {"Accept": "text/html", "X-Trace": "1"})
        assert headers["Accept"] == "application/json"
        assert headers["X-Trace"] == "1"
        assert headers["User-Agent"] == "paper-research/1.0 (+mailto:tests@example.com)"

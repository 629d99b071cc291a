"""Tests for LoggingNotifier and WebhookNotifier."""

from __future__ import annotations

import json
import logging

import httpx
import pytest

from Aktien_Alerts.notify.notifier import LoggingNotifier, WebhookNotifier

WEBHOOK_URL = "https://hooks.example.test/alerts"


def _client(handler: httpx.MockTransport) -> httpx.AsyncClient:
    return httpx.AsyncClient(transport=handler)


class TestLoggingNotifier:
    @pytest.mark.asyncio()
    async def test_logs_message(self, caplog: pytest.LogCaptureFixture) -> None:
        with caplog.at_level(logging.INFO, logger="Aktien_Alerts.notify"):
            await LoggingNotifier().deliver("AAPL Alert", "AAPL reached $200.00", "alert-1")
        assert "[alert-1] AAPL Alert: AAPL reached $200.00" in caplog.text


class TestWebhookNotifier:
    @pytest.mark.asyncio()
    async def test_posts_json_payload(self) -> None:
        requests: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            requests.append(request)
            return httpx.Response(204)

        async with _client(httpx.MockTransport(handler)) as client:
            notifier = WebhookNotifier(WEBHOOK_URL, client=client)
            await notifier.deliver("AAPL Alert", "AAPL reached $200.00", "alert-1")

        assert len(requests) == 1
        assert requests[0].method == "POST"
        assert str(requests[0].url) == WEBHOOK_URL
        assert json.loads(requests[0].content) == {
            "title": "AAPL Alert",
            "body": "AAPL reached $200.00",
            "tag": "alert-1",
        }

    @pytest.mark.asyncio()
    async def test_same_tag_sent_once(self) -> None:
        calls = 0

        def handler(request: httpx.Request) -> httpx.Response:
            nonlocal calls
            calls += 1
            return httpx.Response(200)

        async with _client(httpx.MockTransport(handler)) as client:
            notifier = WebhookNotifier(WEBHOOK_URL, client=client)
            await notifier.deliver("t", "b", "alert-1")
            await notifier.deliver("t", "b", "alert-1")
            await notifier.deliver("t", "b", "alert-2")

        assert calls == 2

    @pytest.mark.asyncio()
    async def test_dedupe_memory_is_bounded(self) -> None:
        tags: list[str] = []

        def handler(request: httpx.Request) -> httpx.Response:
            tags.append(json.loads(request.content)["tag"])
            return httpx.Response(200)

        async with _client(httpx.MockTransport(handler)) as client:
            notifier = WebhookNotifier(WEBHOOK_URL, client=client, max_remembered_tags=2)
            for tag in ("a", "b", "c", "c", "a"):
                await notifier.deliver("t", "b", tag)

        assert tags == ["a", "b", "c", "a"]
        assert len(notifier._sent_tags) == 2

    @pytest.mark.asyncio()
    async def test_http_error_logged_not_raised(self, caplog: pytest.LogCaptureFixture) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(503)

        async with _client(httpx.MockTransport(handler)) as client:
            notifier = WebhookNotifier(WEBHOOK_URL, client=client)
            with caplog.at_level(logging.WARNING, logger="Aktien_Alerts.notify"):
                await notifier.deliver("t", "b", "alert-1")

        assert "Webhook returned HTTP 503 delivering alert-1" in caplog.text

    @pytest.mark.asyncio()
    async def test_connection_error_logged_not_raised(
        self, caplog: pytest.LogCaptureFixture
    ) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            msg = "connection refused"
            raise httpx.ConnectError(msg, request=request)

        async with _client(httpx.MockTransport(handler)) as client:
            notifier = WebhookNotifier(WEBHOOK_URL, client=client)
            with caplog.at_level(logging.WARNING, logger="Aktien_Alerts.notify"):
                await notifier.deliver("t", "b", "alert-1")

        assert "Webhook error delivering alert-1" in caplog.text

    @pytest.mark.asyncio()
    async def test_borrowed_client_not_closed(self) -> None:
        client = _client(httpx.MockTransport(lambda request: httpx.Response(200)))
        notifier = WebhookNotifier(WEBHOOK_URL, client=client)

        await notifier.aclose()

        assert client.is_closed is False
        await client.aclose()

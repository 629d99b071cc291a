"""Notification delivery for fired alerts.

The engine only decides *that* and *what* to notify; a ``Notifier`` carries
the message to the user. Delivery is fire-and-forget from the engine's point
of view, so implementations should log their own failures rather than
expect the caller to handle them.
"""

from __future__ import annotations

import asyncio
import logging
from collections import deque
from typing import Final, Protocol

import httpx

logger = logging.getLogger(__name__)

WEBHOOK_TIMEOUT_SECONDS: Final[float] = 10.0
DEDUPE_MEMORY: Final[int] = 1024  # most recent tags remembered


class Notifier(Protocol):
    """Anything that can deliver a titled message to the alert's owner."""

    async def deliver(self, title: str, body: str, dedupe_tag: str) -> None: ...


class LoggingNotifier:
    """Writes notifications to the application log. Used when nothing else is configured."""

    async def deliver(self, title: str, body: str, dedupe_tag: str) -> None:
        logger.info("[%s] %s: %s", dedupe_tag, title, body)


class WebhookNotifier:
    """POSTs notifications as JSON to a webhook URL.

    Each dedupe tag is posted at most once while it is among the last
    ``max_remembered_tags`` tags seen, so a notification that was already
    handed to the webhook is not sent again even if a second evaluator
    reports the same alert. Older tags are forgotten oldest first.

    Payload::

        {"title": "AAPL Alert", "body": "AAPL reached $200.00 ...", "tag": "alert-1f2e"}
    """

    def __init__(
        self,
        url: str,
        *,
        client: httpx.AsyncClient | None = None,
        timeout: float = WEBHOOK_TIMEOUT_SECONDS,
        max_remembered_tags: int = DEDUPE_MEMORY,
    ) -> None:
        self._url = url
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(timeout=timeout)
        self._timeout = timeout
        self._sent_tags: set[str] = set()
        self._tag_order: deque[str] = deque()
        self._max_remembered_tags = max(1, max_remembered_tags)

    async def aclose(self) -> None:
        """Close the shared httpx client."""
        if self._owns_client:
            await self._client.aclose()

    def _remember(self, tag: str) -> None:
        if len(self._tag_order) >= self._max_remembered_tags:
            self._sent_tags.discard(self._tag_order.popleft())
        self._tag_order.append(tag)
        self._sent_tags.add(tag)

    async def deliver(self, title: str, body: str, dedupe_tag: str) -> None:
        if dedupe_tag in self._sent_tags:
            logger.debug("Skipping duplicate notification %s", dedupe_tag)
            return
        self._remember(dedupe_tag)

        payload = {"title": title, "body": body, "tag": dedupe_tag}
        try:
            response = await asyncio.wait_for(
                self._client.post(self._url, json=payload),
                timeout=self._timeout,
            )
            response.raise_for_status()
        except TimeoutError:
            logger.warning("Webhook timed out delivering %s", dedupe_tag)
        except httpx.HTTPStatusError as exc:
            logger.warning(
                "Webhook returned HTTP %s delivering %s",
                exc.response.status_code,
                dedupe_tag,
            )
        except httpx.HTTPError as exc:
            logger.warning("Webhook error delivering %s: %s", dedupe_tag, exc)
        else:
            logger.info("Delivered notification %s via webhook", dedupe_tag)

"""Operator notifications.

Everything is logged; when a webhook URL is configured the message is also
POSTed there as ``{"subject", "body", "source"}``.
"""

from __future__ import annotations

import bittensor as bt
import httpx


class OperatorNotifier:
    """Sends alerts to whoever runs the oracle."""

    def __init__(self, webhook_url: str = "", source: str = "BTC Oracle", timeout: float = 10.0):
        self.webhook_url = webhook_url
        self.source = source
        self._client = httpx.AsyncClient(timeout=timeout) if webhook_url else None

    async def close(self) -> None:
        if self._client is not None:
            await self._client.aclose()

    async def notify_admin(self, subject: str, body: str) -> None:
        bt.logging.error({"operator_notification": {"subject": subject, "body": body}})
        if self._client is None:
            return
        try:
            resp = await self._client.post(
                self.webhook_url,
                json={"subject": subject, "body": body, "source": self.source},
            )
            resp.raise_for_status()
        except httpx.HTTPError as e:
            bt.logging.warning({"operator_notification_failed": str(e)})

    async def notify_failed_posting(self, height: int, block_hash: str, error: str) -> None:
        await self.notify_admin(
            f"{self.source}: failed to post data feed",
            f"Posting block {height} ({block_hash}) failed: {error}",
        )


__all__ = ["OperatorNotifier"]

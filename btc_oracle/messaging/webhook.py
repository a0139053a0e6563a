"""Outbound chat messages over an HTTP webhook."""

from __future__ import annotations

import asyncio

import bittensor as bt
import httpx


class WebhookMessenger:
    """POSTs ``{"to", "text"}`` to the chat bridge for every reply."""

    def __init__(self, outbound_url: str, timeout: float = 10.0, max_retries: int = 3):
        self.outbound_url = outbound_url
        self._client = httpx.AsyncClient(timeout=timeout)
        self._max_retries = max_retries

    async def close(self) -> None:
        await self._client.aclose()

    async def send(self, sender_id: str, text: str) -> None:
        for attempt in range(self._max_retries):
            try:
                resp = await self._client.post(self.outbound_url, json={"to": sender_id, "text": text})
                resp.raise_for_status()
                return
            except httpx.TransportError as e:
                if attempt == self._max_retries - 1:
                    raise
                wait = 2 ** attempt
                bt.logging.warning({"webhook_messenger": {"retry": attempt, "wait": wait, "error": str(e)}})
                await asyncio.sleep(wait)


__all__ = ["WebhookMessenger"]

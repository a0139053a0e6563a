"""HTTP LedgerClient talking to a ledger gateway.

The gateway owns the ledger wallet plumbing (composing, paying fees,
broadcasting). The oracle signs every document with its hotkey so the
gateway only posts facts from the configured author. Routes:
  POST /datafeeds                              - publish a signed document
  GET  /datafeeds/{name}?author=A&limit=N      - latest values, newest first
  GET  /datafeeds/{name}/exists?author=A&value=V
  GET  /datafeeds/{name}/{value}?author=A      - latest document with that value
"""

from __future__ import annotations

import asyncio
from typing import Any

import bittensor as bt
import httpx

from btc_oracle.errors import PublishError
from btc_oracle.models import DataFeed, PublishResult
from btc_oracle.signer import sign_document


class HTTPLedgerClient:
    """Oracle-side client for the ledger gateway."""

    def __init__(
        self,
        gateway_url: str,
        wallet: Any,
        timeout: float = 30.0,
        max_retries: int = 3,
    ):
        self.gateway_url = gateway_url.rstrip("/")
        self.wallet = wallet
        self.author = wallet.hotkey.ss58_address
        self._client = httpx.AsyncClient(timeout=timeout)
        self._max_retries = max_retries

    async def close(self) -> None:
        await self._client.aclose()

    async def _get(self, path: str, params: dict[str, Any]) -> httpx.Response:
        """GET with retry on transport errors."""
        for attempt in range(self._max_retries):
            try:
                return await self._client.get(
                    f"{self.gateway_url}{path}",
                    params={"author": self.author, **params},
                )
            except httpx.TransportError as e:
                if attempt == self._max_retries - 1:
                    raise
                wait = 2 ** attempt
                bt.logging.warning({"ledger_http_client": {"retry": attempt, "wait": wait, "error": str(e)}})
                await asyncio.sleep(wait)
        raise ConnectionError("Max retries exceeded")

    # -- LedgerClient interface --

    async def publish(self, feed: DataFeed) -> PublishResult:
        document = feed.to_document()
        body = {
            "author": self.author,
            "document": document,
            "signature": sign_document(document, self.wallet),
        }
        try:
            resp = await self._client.post(f"{self.gateway_url}/datafeeds", json=body)
            if resp.status_code != 200:
                return PublishResult(ok=False, error=f"{resp.status_code} {resp.text}")
            unit = resp.json().get("unit")
            if not unit:
                raise PublishError(f"gateway accepted document without a unit: {resp.text}")
            return PublishResult(ok=True, unit=unit)
        except (httpx.HTTPError, PublishError, ValueError) as e:
            return PublishResult(ok=False, error=str(e))

    async def exists_fact(self, feed_name: str, value: Any) -> bool:
        resp = await self._get(f"/datafeeds/{feed_name}/exists", {"value": value})
        resp.raise_for_status()
        return bool(resp.json().get("exists"))

    async def read_feed_values(self, feed_name: str, limit: int = 100) -> list[Any]:
        resp = await self._get(f"/datafeeds/{feed_name}", {"limit": limit})
        resp.raise_for_status()
        return resp.json().get("values", [])

    async def get_fact(self, feed_name: str, value: Any) -> dict[str, Any] | None:
        resp = await self._get(f"/datafeeds/{feed_name}/{value}", {})
        if resp.status_code == 404:
            return None
        resp.raise_for_status()
        return resp.json().get("document")


__all__ = ["HTTPLedgerClient"]

"""Esplora REST client implementing HistoryLookup.

Works against blockstream.info / mempool.space style APIs:
  GET /blocks/tip/height
  GET /address/{address}/txs   - newest first, mempool txs on top
"""

from __future__ import annotations

import asyncio
from decimal import Decimal
from typing import Any

import bittensor as bt
import httpx

from btc_oracle.models import IncomingTransaction, TxOutput

SATOSHIS_PER_BTC = Decimal(100_000_000)


class EsploraHistoryClient:
    """Address history lookup over an Esplora HTTP API."""

    def __init__(
        self,
        base_url: str,
        min_confirmations: int = 2,
        timeout: float = 30.0,
        max_retries: int = 3,
    ):
        self.base_url = base_url.rstrip("/")
        self.min_confirmations = min_confirmations
        self._client = httpx.AsyncClient(timeout=timeout)
        self._max_retries = max_retries

    async def close(self) -> None:
        await self._client.aclose()

    async def _get(self, path: str) -> httpx.Response:
        """GET with retry on transport errors."""
        for attempt in range(self._max_retries):
            try:
                resp = await self._client.get(f"{self.base_url}{path}")
                resp.raise_for_status()
                return resp
            except httpx.TransportError as e:
                if attempt == self._max_retries - 1:
                    raise
                wait = 2 ** attempt
                bt.logging.warning({"esplora_client": {"retry": attempt, "wait": wait, "error": str(e)}})
                await asyncio.sleep(wait)
        raise ConnectionError("Max retries exceeded")

    async def get_tip_height(self) -> int:
        resp = await self._get("/blocks/tip/height")
        return int(resp.text.strip())

    async def get_incoming_transaction(self, address: str) -> IncomingTransaction | None:
        resp = await self._get(f"/address/{address}/txs")
        txs: list[dict[str, Any]] = resp.json()
        if not txs:
            return None

        tip = await self.get_tip_height()
        for tx in txs:
            status = tx.get("status") or {}
            if not status.get("confirmed"):
                continue
            height = int(status["block_height"])
            if tip - height + 1 < self.min_confirmations:
                continue
            outputs = [_parse_vout(v) for v in tx.get("vout", [])]
            if not any(o.address == address and o.amount > 0 for o in outputs):
                continue  # spend from this address, not a payment to it
            return IncomingTransaction(
                txid=tx["txid"],
                height=height,
                block_hash=status["block_hash"],
                outputs=outputs,
            )
        return None


def _parse_vout(vout: dict[str, Any]) -> TxOutput:
    script_type = vout.get("scriptpubkey_type")
    return TxOutput(
        address=vout.get("scriptpubkey_address"),
        amount=Decimal(int(vout.get("value", 0))) / SATOSHIS_PER_BTC,
        is_data_carrier=script_type == "op_return",
        script_type=script_type,
    )


__all__ = ["EsploraHistoryClient", "SATOSHIS_PER_BTC"]

"""Bitcoin Core JSON-RPC client implementing ChainReader.

One HTTP request per call; retrying block reads is the caller's job
(see BlockCanonicalizer.read_block).
"""

from __future__ import annotations

import json
from decimal import Decimal
from typing import Any

import bittensor as bt
import httpx
from pydantic import ValidationError

from btc_oracle.errors import BlockFormatError
from btc_oracle.models import RawBlock, TxOutput

_DATA_CARRIER_TYPES = {"nulldata"}


class RPCError(ConnectionError):
    """bitcoind answered with an error object."""

    def __init__(self, method: str, error: Any):
        self.method = method
        self.error = error
        super().__init__(f"RPC {method} failed: {error}")


def _output_address(script_pub_key: dict[str, Any]) -> str | None:
    address = script_pub_key.get("address")
    if address:
        return address
    # Pre-22.0 nodes report a list; only single-address scripts are provable
    addresses = script_pub_key.get("addresses") or []
    if len(addresses) == 1:
        return addresses[0]
    return None


def parse_block(block: dict[str, Any], height: int) -> RawBlock:
    """Convert a ``getblock <hash> 2`` result into a RawBlock."""
    outputs: list[TxOutput] = []
    for tx in block.get("tx", []):
        vout = tx.get("vout")
        if vout is None:
            raise BlockFormatError(f"no vout in tx {tx.get('txid')}")
        for output in vout:
            value = output.get("value")
            if isinstance(value, bool) or not isinstance(value, (int, float, Decimal)):
                raise BlockFormatError(f"bad amount {value!r} in tx {tx.get('txid')}")
            spk = output.get("scriptPubKey") or {}
            script_type = spk.get("type")
            try:
                outputs.append(TxOutput(
                    address=_output_address(spk),
                    amount=value,
                    is_data_carrier=script_type in _DATA_CARRIER_TYPES,
                    script_type=script_type,
                ))
            except ValidationError as e:
                raise BlockFormatError(f"bad output in tx {tx.get('txid')}: {e}") from e

    block_hash = block.get("hash")
    if not block_hash:
        raise BlockFormatError(f"no block hash at height {height}")
    return RawBlock(hash=block_hash, height=height, outputs=outputs)


class BitcoinRPCClient:
    """Async JSON-RPC client for a bitcoind node."""

    def __init__(
        self,
        url: str,
        username: str = "",
        password: str = "",
        timeout: float = 30.0,
    ):
        self.url = url
        auth = httpx.BasicAuth(username, password) if username else None
        self._client = httpx.AsyncClient(timeout=timeout, auth=auth)
        self._request_id = 0

    async def close(self) -> None:
        await self._client.aclose()

    async def call(self, method: str, *params: Any) -> Any:
        self._request_id += 1
        resp = await self._client.post(
            self.url,
            json={"jsonrpc": "1.0", "id": self._request_id, "method": method, "params": list(params)},
        )
        # bitcoind reports RPC errors with HTTP 500 and a JSON body
        try:
            body = json.loads(resp.text, parse_float=Decimal)
        except json.JSONDecodeError:
            resp.raise_for_status()
            raise RPCError(method, f"non-JSON response: {resp.text[:200]}")

        if body.get("error"):
            raise RPCError(method, body["error"])
        return body.get("result")

    # -- ChainReader interface --

    async def get_block_count(self) -> int:
        return int(await self.call("getblockcount"))

    async def get_block(self, height: int) -> RawBlock:
        block_hash = await self.call("getblockhash", height)
        block = await self.call("getblock", block_hash, 2)
        raw = parse_block(block, height)
        bt.logging.debug({"rpc_getblock": {"height": height, "hash": raw.hash, "outputs": len(raw.outputs)}})
        return raw


__all__ = ["BitcoinRPCClient", "RPCError", "parse_block"]

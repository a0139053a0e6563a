"""Tests for the bitcoind JSON-RPC client and block parsing."""

import json
from decimal import Decimal

import httpx
import pytest

from btc_oracle.chain.rpc_client import BitcoinRPCClient, RPCError, parse_block
from btc_oracle.errors import BlockFormatError

BLOCK_HASH = "00000000000000000001a2b3c4d5e6f708192a3b4c5d6e7f8091a2b3c4d5e6f7"


def _getblock_result():
    return {
        "hash": BLOCK_HASH,
        "height": 100,
        "tx": [
            {
                "txid": "aa" * 32,
                "vout": [
                    {"value": 6.25, "scriptPubKey": {"type": "pubkeyhash", "address": "1A1zP1eP5QGefi2DMPTfTL5SLmv7DivfNa"}},
                    {"value": 0, "scriptPubKey": {"type": "nulldata"}},
                ],
            },
            {
                "txid": "bb" * 32,
                "vout": [
                    {"value": 0.1, "scriptPubKey": {"type": "scripthash", "addresses": ["3J98t1WpEZ73CNmQviecrnyiWrnqRhWNLy"]}},
                    {"value": 1, "scriptPubKey": {"type": "multisig", "addresses": ["a", "b"]}},
                ],
            },
        ],
    }


def _client_with(handler) -> BitcoinRPCClient:
    client = BitcoinRPCClient("http://bitcoind:8332", "user", "pass")
    client._client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return client


class TestParseBlock:

    def test_outputs_flattened_in_order(self):
        raw = parse_block(_getblock_result(), 100)
        assert raw.hash == BLOCK_HASH
        assert raw.height == 100
        assert [o.address for o in raw.outputs] == [
            "1A1zP1eP5QGefi2DMPTfTL5SLmv7DivfNa",
            None,
            "3J98t1WpEZ73CNmQviecrnyiWrnqRhWNLy",
            None,
        ]
        assert raw.outputs[0].amount == Decimal("6.25")
        assert raw.outputs[2].amount == Decimal("0.1")

    def test_nulldata_is_data_carrier(self):
        raw = parse_block(_getblock_result(), 100)
        assert raw.outputs[1].is_data_carrier
        assert not raw.outputs[0].is_data_carrier

    def test_missing_vout(self):
        block = {"hash": BLOCK_HASH, "tx": [{"txid": "aa"}]}
        with pytest.raises(BlockFormatError):
            parse_block(block, 100)

    @pytest.mark.parametrize("value", ["1.0", None, True])
    def test_bad_amount(self, value):
        block = {"hash": BLOCK_HASH, "tx": [{"txid": "aa", "vout": [{"value": value, "scriptPubKey": {}}]}]}
        with pytest.raises(BlockFormatError):
            parse_block(block, 100)

    def test_missing_hash(self):
        with pytest.raises(BlockFormatError):
            parse_block({"tx": []}, 100)

    def test_empty_block(self):
        raw = parse_block({"hash": BLOCK_HASH, "tx": []}, 5)
        assert raw.outputs == []


class TestBitcoinRPCClient:

    @pytest.mark.asyncio
    async def test_get_block(self):
        calls = []

        def handler(request: httpx.Request) -> httpx.Response:
            body = json.loads(request.content)
            calls.append((body["method"], body["params"]))
            if body["method"] == "getblockhash":
                return httpx.Response(200, json={"result": BLOCK_HASH, "error": None, "id": body["id"]})
            return httpx.Response(200, json={"result": _getblock_result(), "error": None, "id": body["id"]})

        client = _client_with(handler)
        raw = await client.get_block(100)
        await client.close()

        assert calls == [("getblockhash", [100]), ("getblock", [BLOCK_HASH, 2])]
        assert raw.hash == BLOCK_HASH
        assert len(raw.outputs) == 4

    @pytest.mark.asyncio
    async def test_amounts_parsed_exactly(self):
        def handler(request: httpx.Request) -> httpx.Response:
            body = json.loads(request.content)
            if body["method"] == "getblockhash":
                return httpx.Response(200, json={"result": BLOCK_HASH, "error": None})
            text = (
                '{"result": {"hash": "%s", "tx": [{"txid": "aa", "vout": '
                '[{"value": 0.30000000, "scriptPubKey": {"address": "x"}}]}]}, "error": null}' % BLOCK_HASH
            )
            return httpx.Response(200, text=text)

        client = _client_with(handler)
        raw = await client.get_block(1)
        await client.close()
        assert raw.outputs[0].amount == Decimal("0.3")

    @pytest.mark.asyncio
    async def test_get_block_count(self):
        client = _client_with(lambda r: httpx.Response(200, json={"result": 840000, "error": None}))
        assert await client.get_block_count() == 840000
        await client.close()

    @pytest.mark.asyncio
    async def test_rpc_error(self):
        error = {"code": -8, "message": "Block height out of range"}
        client = _client_with(lambda r: httpx.Response(500, json={"result": None, "error": error}))
        with pytest.raises(RPCError) as exc_info:
            await client.get_block(10**9)
        await client.close()
        assert isinstance(exc_info.value, ConnectionError)
        assert exc_info.value.method == "getblockhash"

    @pytest.mark.asyncio
    async def test_non_json_response(self):
        client = _client_with(lambda r: httpx.Response(200, text="<html>proxy</html>"))
        with pytest.raises(RPCError):
            await client.get_block_count()
        await client.close()

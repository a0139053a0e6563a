"""Tests for the oracle's inbound HTTP endpoint."""

import asyncio

import pytest
from aiohttp.test_utils import TestClient, TestServer

from btc_oracle.canonical import BlockCanonicalizer
from btc_oracle.ledger.memory import InMemoryLedger
from btc_oracle.messaging.log import LoggingMessenger
from btc_oracle.models import RawBlock
from btc_oracle.oracle.publisher import Publisher
from btc_oracle.oracle.reconciler import GapReconciler
from btc_oracle.oracle.responder import HELP_TEXT, ProofResponder
from btc_oracle.oracle.runtime import OracleRuntime
from btc_oracle.oracle.tracker import PublicationTracker
from btc_oracle.server import OracleHTTPServer


class _Chain:

    async def get_block_count(self) -> int:
        return 10

    async def get_block(self, height: int) -> RawBlock:
        return RawBlock(hash=f"{height:064x}", height=height)


class _History:

    async def get_incoming_transaction(self, address):
        return None


def _server(token=""):
    chain = _Chain()
    ledger = InMemoryLedger()
    canonicalizer = BlockCanonicalizer(chain, retry_delay=0)
    publisher = Publisher(canonicalizer, PublicationTracker(ledger), ledger, retry_jitter=0)
    reconciler = GapReconciler(chain, ledger, publisher)
    responder = ProofResponder(_History(), canonicalizer, ledger)
    transport = LoggingMessenger()
    runtime = OracleRuntime(reconciler, publisher, responder, transport)
    return OracleHTTPServer(runtime, auth_token=token), runtime, transport


async def _client(server: OracleHTTPServer) -> TestClient:
    client = TestClient(TestServer(server.build_app()))
    await client.start_server()
    return client


class TestOracleHTTPServer:

    @pytest.mark.asyncio
    async def test_message_answered_through_transport(self):
        server, _, transport = _server()
        client = await _client(server)
        try:
            resp = await client.post("/messages", json={"sender": "device1", "text": "help"})
            assert resp.status == 202
            for _ in range(100):
                if transport.sent:
                    break
                await asyncio.sleep(0.01)
            assert transport.sent == [("device1", HELP_TEXT)]
        finally:
            await client.close()

    @pytest.mark.asyncio
    async def test_invalid_body(self):
        server, _, _ = _server()
        client = await _client(server)
        try:
            resp = await client.post("/messages", json={"text": "help"})
            assert resp.status == 400
            resp = await client.post("/messages", data=b"not json")
            assert resp.status == 400
        finally:
            await client.close()

    @pytest.mark.asyncio
    async def test_token_required(self):
        server, _, transport = _server(token="s3cret")
        client = await _client(server)
        try:
            resp = await client.post("/messages", json={"sender": "d", "text": "help"})
            assert resp.status == 401
            resp = await client.post("/blocknotify")
            assert resp.status == 401

            headers = {"Authorization": "Bearer s3cret"}
            resp = await client.post("/messages", json={"sender": "d", "text": "help"}, headers=headers)
            assert resp.status == 202
        finally:
            await client.close()

    @pytest.mark.asyncio
    async def test_blocknotify_wakes_runtime(self):
        server, runtime, _ = _server()
        client = await _client(server)
        try:
            resp = await client.post("/blocknotify")
            assert resp.status == 200
            assert runtime._wake.is_set()
        finally:
            await client.close()

    @pytest.mark.asyncio
    async def test_health(self):
        server, _, _ = _server()
        client = await _client(server)
        try:
            resp = await client.get("/health")
            assert resp.status == 200
            body = await resp.json()
            assert body == {
                "running": False,
                "fatal_error": None,
                "in_flight": 0,
                "pending_retries": 0,
                "last_confirmed_height": None,
            }
        finally:
            await client.close()

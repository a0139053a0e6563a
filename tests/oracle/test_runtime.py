"""Tests for the oracle runtime loop and message handling."""

import asyncio
from unittest.mock import AsyncMock

import pytest

from btc_oracle.canonical import BlockCanonicalizer
from btc_oracle.ledger.memory import InMemoryLedger
from btc_oracle.messaging.log import LoggingMessenger
from btc_oracle.models import IncomingTransaction, RawBlock, TxOutput
from btc_oracle.oracle.notifications import OperatorNotifier
from btc_oracle.oracle.publisher import Publisher
from btc_oracle.oracle.reconciler import GapReconciler
from btc_oracle.oracle.responder import HELP_TEXT, ProofResponder
from btc_oracle.oracle.runtime import LOOKUP_FAILED_TEXT, OracleRuntime
from btc_oracle.oracle.tracker import PublicationTracker

ADDR_A = "1A1zP1eP5QGefi2DMPTfTL5SLmv7DivfNa"


class FakeChain:

    def __init__(self, tip: int):
        self.tip = tip

    async def get_block_count(self) -> int:
        return self.tip

    async def get_block(self, height: int) -> RawBlock:
        return RawBlock(
            hash=f"{height:064x}",
            height=height,
            outputs=[TxOutput(address=ADDR_A, amount=height)],
        )


class FakeHistory:

    def __init__(self, tx: IncomingTransaction | None = None, error: Exception | None = None):
        self.tx = tx
        self.error = error

    async def get_incoming_transaction(self, address: str) -> IncomingTransaction | None:
        if self.error:
            raise self.error
        return self.tx


def _runtime(tip=10, history=None, poll=0.01):
    chain = FakeChain(tip)
    ledger = InMemoryLedger()
    notifier = OperatorNotifier()
    notifier.notify_admin = AsyncMock()
    canonicalizer = BlockCanonicalizer(chain, retry_delay=0)
    publisher = Publisher(
        canonicalizer, PublicationTracker(ledger), ledger,
        notifier=notifier, retry_delay=0.01, retry_jitter=0,
    )
    reconciler = GapReconciler(chain, ledger, publisher, min_confirmations=2)
    responder = ProofResponder(history or FakeHistory(), canonicalizer, ledger)
    transport = LoggingMessenger()
    runtime = OracleRuntime(
        reconciler, publisher, responder, transport,
        notifier=notifier, config={"poll_interval_seconds": poll},
    )
    return runtime, chain, ledger, transport, notifier


async def _wait_for(predicate, timeout=2.0):
    deadline = asyncio.get_running_loop().time() + timeout
    while not predicate():
        if asyncio.get_running_loop().time() > deadline:
            raise AssertionError("condition not reached")
        await asyncio.sleep(0.005)


class TestRunLoop:

    @pytest.mark.asyncio
    async def test_startup_reconcile_then_new_blocks(self):
        runtime, chain, ledger, _, _ = _runtime(tip=10)
        task = asyncio.create_task(runtime.run())

        await _wait_for(lambda: len(ledger.units) == 1)
        assert ledger.documents[0]["bitcoin_height"] == 9

        chain.tip = 12
        runtime.notify_new_block()
        await _wait_for(lambda: len(ledger.units) == 3)
        assert [d["bitcoin_height"] for d in ledger.documents] == [9, 10, 11]

        runtime.stop()
        await asyncio.wait_for(task, timeout=2)
        assert runtime.running is False
        assert runtime.fatal_error is None

    @pytest.mark.asyncio
    async def test_stop_wakes_long_sleep(self):
        runtime, _, ledger, _, _ = _runtime(poll=60)
        task = asyncio.create_task(runtime.run())
        await _wait_for(lambda: len(ledger.units) == 1)
        runtime.stop()
        await asyncio.wait_for(task, timeout=2)

    @pytest.mark.asyncio
    async def test_keeps_polling_through_long_outage(self):
        runtime, chain, ledger, _, _ = _runtime(tip=10)
        outage = [ConnectionError("bitcoind down")] * 25

        async def get_block_count():
            if outage:
                raise outage.pop()
            return 10

        chain.get_block_count = get_block_count
        runtime._sleep = lambda seconds: asyncio.sleep(0)
        task = asyncio.create_task(runtime.run())

        await _wait_for(lambda: len(ledger.units) == 1)
        assert runtime.running is True
        assert runtime.fatal_error is None
        assert ledger.documents[0]["bitcoin_height"] == 9

        runtime.stop()
        await asyncio.wait_for(task, timeout=2)


class TestHandleMessage:

    @pytest.mark.asyncio
    async def test_replies_sent_through_transport(self):
        runtime, _, _, transport, _ = _runtime()
        await runtime.handle_message("device1", "help")
        assert transport.sent == [("device1", HELP_TEXT)]

    @pytest.mark.asyncio
    async def test_lookup_failure_replies_and_notifies(self):
        history = FakeHistory(error=ConnectionError("esplora down"))
        runtime, _, _, transport, notifier = _runtime(history=history)

        await runtime.handle_message("device1", ADDR_A)

        assert transport.sent == [("device1", LOOKUP_FAILED_TEXT)]
        notifier.notify_admin.assert_awaited_once()
        assert runtime.fatal_error is None

    @pytest.mark.asyncio
    async def test_integrity_error_halts(self):
        # Published root for block 100 does not match the block's outputs
        tx = IncomingTransaction(
            txid="ab" * 32, height=100, block_hash=f"{100:064x}",
            outputs=[TxOutput(address=ADDR_A, amount=100)],
        )
        runtime, _, ledger, transport, notifier = _runtime(history=FakeHistory(tx))
        ledger.add_document({
            "bitcoin_hash": f"{100:064x}",
            "bitcoin_height": 100,
            "bitcoin_merkle": "forged",
            "random100": 1,
        })

        await runtime.handle_message("device1", ADDR_A)

        assert transport.sent == []
        assert runtime.fatal_error is not None
        assert "integrity" in runtime.fatal_error
        assert notifier.notify_admin.await_args.args[0] == "BTC Oracle halted"
        assert runtime.running is False

    @pytest.mark.asyncio
    async def test_transport_failure_logged_and_notified(self):
        runtime, _, _, transport, notifier = _runtime()
        transport.send = AsyncMock(side_effect=ConnectionError("bridge down"))

        await runtime.handle_message("device1", "help")

        transport.send.assert_awaited_once_with("device1", HELP_TEXT)
        notifier.notify_admin.assert_awaited_once()
        subject, body = notifier.notify_admin.await_args.args
        assert subject == "reply delivery failed"
        assert "bridge down" in body
        assert runtime.fatal_error is None

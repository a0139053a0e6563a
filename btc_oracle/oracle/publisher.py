"""Publisher: posts one block summary per height, exactly once.

Per height: build -> check -> publish -> done | retrying. All of it runs
under a single "post" lock so at most one publication proceeds at a time.
Checks, in order:
  1. hash already in flight      -> abandon (another attempt owns it)
  2. fact already on the ledger  -> abandon (done earlier, maybe by a
                                    previous process)
  3. hash in flight again        -> abandon (inserted while we awaited 2)

A failed publish keeps the hash in flight and schedules a retry after a
fixed delay plus jitter. The retry checks the ledger again first, so a post
that went through despite the reported failure is never repeated. Retries
never give up; they stop only on shutdown.
"""

from __future__ import annotations

import asyncio
import hashlib
import random
from enum import Enum

import bittensor as bt

from btc_oracle.canonical import BlockCanonicalizer
from btc_oracle.errors import BlockReadError
from btc_oracle.ledger.interface import LedgerClient
from btc_oracle.merkle import build_root
from btc_oracle.models import RANDOM_VALUE_MAX, BlockSummary, DataFeed

from .notifications import OperatorNotifier
from .tracker import PublicationTracker


class PublishOutcome(str, Enum):
    DONE = "done"
    RETRYING = "retrying"
    ALREADY_QUEUED = "already_queued"
    ALREADY_PUBLISHED = "already_published"


def derive_random_value(block_hash: str) -> int:
    """Map a block hash to an integer in [1, 100000].

    First 4 bytes of sha256(hash) as a big-endian uint32, scaled down.
    """
    n = int.from_bytes(hashlib.sha256(block_hash.encode("utf-8")).digest()[:4], "big")
    return RANDOM_VALUE_MAX * n // 2**32 + 1


def summarize_block(height: int, elements: list[str], block_hash: str) -> BlockSummary:
    return BlockSummary(
        height=height,
        hash=block_hash,
        elements=tuple(elements),
        merkle_root=build_root(elements),
        random_value=derive_random_value(block_hash),
    )


class Publisher:
    """Idempotent, retrying publisher of block summaries."""

    def __init__(
        self,
        canonicalizer: BlockCanonicalizer,
        tracker: PublicationTracker,
        ledger: LedgerClient,
        notifier: OperatorNotifier | None = None,
        retry_delay: float = 300.0,
        retry_jitter: float = 3.0,
        rng: random.Random | None = None,
    ):
        self.canonicalizer = canonicalizer
        self.tracker = tracker
        self.ledger = ledger
        self.notifier = notifier or OperatorNotifier()
        self.retry_delay = retry_delay
        self.retry_jitter = retry_jitter
        self._rng = rng or random.Random()

        self._post_lock = asyncio.Lock()
        self._stopping = asyncio.Event()
        self._retry_tasks: set[asyncio.Task] = set()

    @property
    def pending_retries(self) -> int:
        return len(self._retry_tasks)

    async def publish_height(self, height: int) -> PublishOutcome:
        """Publish the summary of the block at ``height`` unless already handled.

        Raises:
            BlockReadError: the block could not be read; the height stays owed.
        """
        async with self._post_lock:
            bt.logging.info({"oracle_publisher": {"height": height, "state": "building"}})
            elements, block_hash = await self.canonicalizer.read_elements(height)
            if not block_hash:
                raise BlockReadError(f"no block hash at height {height}")

            if self.tracker.is_in_flight(block_hash):
                return self._abandon(height, block_hash, PublishOutcome.ALREADY_QUEUED)
            if await self.tracker.already_published(block_hash):
                return self._abandon(height, block_hash, PublishOutcome.ALREADY_PUBLISHED)
            if self.tracker.is_in_flight(block_hash):
                return self._abandon(height, block_hash, PublishOutcome.ALREADY_QUEUED)

            summary = summarize_block(height, elements, block_hash)
            self.tracker.mark_in_flight(block_hash)
            return await self._attempt(summary.to_datafeed())

    def _abandon(self, height: int, block_hash: str, outcome: PublishOutcome) -> PublishOutcome:
        bt.logging.info({
            "oracle_publisher": {"height": height, "hash": block_hash, "state": outcome.value}
        })
        return outcome

    async def _attempt(self, feed: DataFeed) -> PublishOutcome:
        """Publish ``feed``. Caller holds the post lock and marked it in flight."""
        result = await self.ledger.publish(feed)
        if result:
            self.tracker.clear(feed.bitcoin_hash)
            bt.logging.info({
                "oracle_publisher": {
                    "height": feed.bitcoin_height,
                    "hash": feed.bitcoin_hash,
                    "merkle": feed.bitcoin_merkle,
                    "unit": result.unit,
                    "state": PublishOutcome.DONE.value,
                }
            })
            return PublishOutcome.DONE

        bt.logging.warning({
            "oracle_publisher": {
                "height": feed.bitcoin_height,
                "error": result.error,
                "state": PublishOutcome.RETRYING.value,
            }
        })
        await self.notifier.notify_failed_posting(feed.bitcoin_height, feed.bitcoin_hash, result.error)
        self._schedule_retry(feed)
        return PublishOutcome.RETRYING

    def _schedule_retry(self, feed: DataFeed) -> None:
        if self._stopping.is_set():
            return
        delay = self.retry_delay + self._rng.uniform(0, self.retry_jitter)
        task = asyncio.create_task(self._retry_after(feed, delay))
        self._retry_tasks.add(task)
        task.add_done_callback(self._retry_tasks.discard)

    async def _retry_after(self, feed: DataFeed, delay: float) -> None:
        try:
            await asyncio.wait_for(self._stopping.wait(), timeout=delay)
            return
        except asyncio.TimeoutError:
            pass

        try:
            await self.retry(feed)
        except Exception as e:
            # The hash stays in flight, so nobody else will post it
            bt.logging.error({"oracle_publisher_retry_error": {"height": feed.bitcoin_height, "error": str(e)}})
            self._schedule_retry(feed)

    async def retry(self, feed: DataFeed) -> PublishOutcome:
        """Re-attempt a failed publication after confirming it is still needed."""
        async with self._post_lock:
            if await self.tracker.already_published(feed.bitcoin_hash):
                self.tracker.clear(feed.bitcoin_hash)
                return self._abandon(feed.bitcoin_height, feed.bitcoin_hash, PublishOutcome.ALREADY_PUBLISHED)
            bt.logging.info({"oracle_publisher": {"height": feed.bitcoin_height, "state": "retry"}})
            return await self._attempt(feed)

    async def shutdown(self) -> None:
        """Stop scheduling retries and cancel the pending ones."""
        self._stopping.set()
        tasks = list(self._retry_tasks)
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)


__all__ = ["PublishOutcome", "Publisher", "derive_random_value", "summarize_block"]

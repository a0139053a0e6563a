"""Gap reconciliation between the chain and the published feed.

Reads back the heights this oracle already published, works out which
confirmed heights are still owed and hands them to the Publisher in
ascending order. Running two reconciliations at once is harmless: the
Publisher's idempotency checks drop the duplicates.
"""

from __future__ import annotations

from typing import Iterable

import bittensor as bt

from btc_oracle.chain.interface import ChainReader
from btc_oracle.errors import BlockReadError
from btc_oracle.ledger.interface import LedgerClient
from btc_oracle.models import BLOCK_HEIGHT_FEED_NAME

from .publisher import PublishOutcome, Publisher


def compute_missing_heights(published: Iterable[int], confirmed: int) -> list[int]:
    """Heights up to ``confirmed`` that are not yet published.

    Gaps between published heights are owed, and so is everything after the
    last published height. With nothing published yet only ``confirmed``
    itself is owed; history is not replayed.

    >>> compute_missing_heights([6, 5, 3, 2, 1], 8)
    [4, 7, 8]
    """
    heights = sorted(set(int(h) for h in published))
    if not heights:
        return [confirmed]

    missing: list[int] = []
    for prev, cur in zip(heights, heights[1:]):
        missing.extend(range(prev + 1, cur))
    missing.extend(range(heights[-1] + 1, confirmed + 1))
    return missing


class GapReconciler:
    """Keeps the published feed in step with the confirmed chain."""

    def __init__(
        self,
        chain: ChainReader,
        ledger: LedgerClient,
        publisher: Publisher,
        min_confirmations: int = 2,
        history_limit: int = 100,
    ):
        self.chain = chain
        self.ledger = ledger
        self.publisher = publisher
        self.min_confirmations = min_confirmations
        self.history_limit = history_limit

        # Last confirmed height handed to the publisher
        self.last_confirmed_height: int | None = None

    async def confirmed_height(self) -> int:
        tip = await self.chain.get_block_count()
        return tip - self.min_confirmations + 1

    async def reconcile(self) -> list[int]:
        """Publish every owed height. Returns the heights that were owed."""
        published = await self.ledger.read_feed_values(BLOCK_HEIGHT_FEED_NAME, self.history_limit)
        bt.logging.info({"oracle_reconciler": {"last_published": sorted(published)[-10:]}})

        confirmed = await self.confirmed_height()
        missing = compute_missing_heights(published, confirmed)
        self.last_confirmed_height = confirmed

        bt.logging.info({"oracle_reconciler": {"confirmed": confirmed, "missing": missing}})
        await self._publish_all(missing)
        return missing

    async def check_for_new_blocks(self) -> list[int]:
        """Publish heights confirmed since the last check.

        Every height between the previous and current confirmed height is
        published, so a block that never triggered a notification is not
        skipped.
        """
        confirmed = await self.confirmed_height()
        prev = self.last_confirmed_height
        if prev is not None and confirmed <= prev:
            bt.logging.debug({"oracle_reconciler": {"confirmed_unchanged": confirmed}})
            return []

        heights = list(range(prev + 1, confirmed + 1)) if prev is not None else [confirmed]
        self.last_confirmed_height = confirmed
        await self._publish_all(heights)
        return heights

    async def _publish_all(self, heights: list[int]) -> dict[int, PublishOutcome]:
        outcomes: dict[int, PublishOutcome] = {}
        for height in heights:
            try:
                outcomes[height] = await self.publisher.publish_height(height)
            except BlockReadError as e:
                # Keep ascending order: this and later heights wait for the next pass
                bt.logging.error({"oracle_reconciler": {"height": height, "error": str(e), "pass": "aborted"}})
                self._rewind_to(height - 1)
                break
            except Exception:
                self._rewind_to(height - 1)
                raise
        return outcomes

    def _rewind_to(self, height: int) -> None:
        """Move the cursor back so the next check offers ``height + 1`` again."""
        if self.last_confirmed_height is not None:
            self.last_confirmed_height = min(self.last_confirmed_height, height)


__all__ = ["GapReconciler", "compute_missing_heights"]

"""In-memory LedgerClient.

Keeps posted documents as units that are either pending (accepted, not yet
final) or stable. Used by ``--mock`` runs and by the tests, which can inject
publish failures and control when units become stable.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import Any

import bittensor as bt

from btc_oracle.models import DataFeed, PublishResult


@dataclass
class LedgerUnit:
    unit: str
    document: dict[str, Any]
    stable: bool = False


class InMemoryLedger:
    """LedgerClient backed by a list of units."""

    def __init__(self, stabilize_immediately: bool = True):
        self.stabilize_immediately = stabilize_immediately
        self.units: list[LedgerUnit] = []
        self.publish_calls = 0
        self._failures: list[str] = []

    def fail_next(self, count: int = 1, error: str = "not enough funds") -> None:
        """Make the next ``count`` publish calls fail."""
        self._failures.extend([error] * count)

    def stabilize(self) -> None:
        for u in self.units:
            u.stable = True

    def add_document(self, document: dict[str, Any], stable: bool = True) -> LedgerUnit:
        """Record a document as if another oracle process had posted it."""
        unit = LedgerUnit(unit=f"unit_{len(self.units) + 1}", document=dict(document), stable=stable)
        self.units.append(unit)
        return unit

    @property
    def documents(self) -> list[dict[str, Any]]:
        return [u.document for u in self.units]

    # -- LedgerClient interface --

    async def publish(self, feed: DataFeed) -> PublishResult:
        self.publish_calls += 1
        # Yield like a real network round trip would
        await asyncio.sleep(0)
        if self._failures:
            error = self._failures.pop(0)
            bt.logging.debug({"memory_ledger": {"publish": "failed", "error": error}})
            return PublishResult(ok=False, error=error)

        unit = self.add_document(feed.to_document(), stable=self.stabilize_immediately)
        return PublishResult(ok=True, unit=unit.unit)

    async def exists_fact(self, feed_name: str, value: Any) -> bool:
        await asyncio.sleep(0)
        return any(u.document.get(feed_name) == value for u in self.units)

    async def read_feed_values(self, feed_name: str, limit: int = 100) -> list[Any]:
        values = [
            u.document[feed_name]
            for u in reversed(self.units)
            if u.stable and feed_name in u.document
        ]
        return values[:limit] if limit else values

    async def get_fact(self, feed_name: str, value: Any) -> dict[str, Any] | None:
        for u in reversed(self.units):
            if u.document.get(feed_name) == value:
                return dict(u.document)
        return None


__all__ = ["InMemoryLedger", "LedgerUnit"]

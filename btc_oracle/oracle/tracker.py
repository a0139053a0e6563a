"""Publication tracking: in-flight set + durable-fact lookup.

A block hash is in flight from the moment its publication is attempted
until it is either published or found durable during a retry. Together
with the ledger lookup this keeps each block to a single durable fact
across retries and process restarts.
"""

from __future__ import annotations

from btc_oracle.ledger.interface import LedgerClient
from btc_oracle.models import BLOCK_HASH_FEED_NAME


class InFlightSet:
    """Block hashes with a publication attempt underway.

    Only touched from the event loop thread between awaits, so no
    lock is needed.
    """

    def __init__(self) -> None:
        self._hashes: set[str] = set()

    def __contains__(self, block_hash: object) -> bool:
        return block_hash in self._hashes

    def __len__(self) -> int:
        return len(self._hashes)

    def add(self, block_hash: str) -> None:
        self._hashes.add(block_hash)

    def discard(self, block_hash: str) -> None:
        self._hashes.discard(block_hash)

    def snapshot(self) -> frozenset[str]:
        return frozenset(self._hashes)


class PublicationTracker:
    """Answers "is this block already taken care of?"."""

    def __init__(self, ledger: LedgerClient, in_flight: InFlightSet | None = None):
        self.ledger = ledger
        self.in_flight = in_flight if in_flight is not None else InFlightSet()

    def is_in_flight(self, block_hash: str) -> bool:
        return block_hash in self.in_flight

    def mark_in_flight(self, block_hash: str) -> None:
        self.in_flight.add(block_hash)

    def clear(self, block_hash: str) -> None:
        self.in_flight.discard(block_hash)

    async def already_published(self, block_hash: str) -> bool:
        """True if the ledger holds a final or pending fact for this block."""
        return await self.ledger.exists_fact(BLOCK_HASH_FEED_NAME, block_hash)


__all__ = ["InFlightSet", "PublicationTracker"]

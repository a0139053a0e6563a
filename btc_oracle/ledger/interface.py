"""LedgerClient protocol - the target ledger as seen by the oracle.

Implementations: HTTPLedgerClient (ledger gateway), InMemoryLedger
(mock mode and tests).
"""

from __future__ import annotations

from typing import Any, Protocol, runtime_checkable

from btc_oracle.models import DataFeed, PublishResult


@runtime_checkable
class LedgerClient(Protocol):
    """Publishes data feeds and answers questions about published ones."""

    async def publish(self, feed: DataFeed) -> PublishResult:
        """Sign, compose and broadcast one data feed.

        Failures are returned as a falsy PublishResult, never raised.
        """
        ...

    async def exists_fact(self, feed_name: str, value: Any) -> bool:
        """True if this oracle posted ``feed_name == value``.

        Must count facts that are accepted but not yet final, so that a
        fact is not posted again while it waits for finality.
        """
        ...

    async def read_feed_values(self, feed_name: str, limit: int = 100) -> list[Any]:
        """Latest values of a feed posted by this oracle, most recent first."""
        ...

    async def get_fact(self, feed_name: str, value: Any) -> dict[str, Any] | None:
        """The latest document this oracle posted with ``feed_name == value``."""
        ...


__all__ = ["LedgerClient"]

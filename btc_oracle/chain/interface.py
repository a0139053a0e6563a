"""Chain collaborator protocols.

Implementations: BitcoinRPCClient (block reader), EsploraHistoryClient
(address history).
"""

from __future__ import annotations

from typing import Protocol, runtime_checkable

from btc_oracle.models import IncomingTransaction, RawBlock


@runtime_checkable
class ChainReader(Protocol):
    """Reads the source chain tip and blocks."""

    async def get_block_count(self) -> int:
        """Height of the current chain tip."""
        ...

    async def get_block(self, height: int) -> RawBlock:
        """Fetch the block at ``height`` with all transaction outputs."""
        ...


@runtime_checkable
class HistoryLookup(Protocol):
    """Looks up payments received by an address."""

    async def get_incoming_transaction(self, address: str) -> IncomingTransaction | None:
        """Most recent confirmed transaction paying ``address``, if any."""
        ...


__all__ = ["ChainReader", "HistoryLookup"]

"""Pydantic models for blocks read from the chain and facts posted to the ledger.

Chain side:
- TxOutput / RawBlock: what the chain reader hands to the canonicalizer
- IncomingTransaction: the newest confirmed payment to an address

Ledger side:
- BlockSummary: canonical leaf set + derived values for one height
- DataFeed: the key/value document actually posted for a BlockSummary
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator


# ---------------------------------------------------------------------------
# Data feed names - these are the keys other ledger users query
# ---------------------------------------------------------------------------

BLOCK_HASH_FEED_NAME = "bitcoin_hash"
BLOCK_HEIGHT_FEED_NAME = "bitcoin_height"
MERKLE_ROOT_FEED_NAME = "bitcoin_merkle"
RANDOM_FEED_PREFIX = "random"

RANDOM_VALUE_MAX = 100_000


# ---------------------------------------------------------------------------
# Chain side
# ---------------------------------------------------------------------------


class TxOutput(BaseModel):
    """One transaction output as seen by the oracle."""

    address: str | None = None
    amount: Decimal
    is_data_carrier: bool = False
    script_type: str | None = None

    @field_validator("amount", mode="before")
    @classmethod
    def _amount_from_text(cls, v: Any) -> Decimal:
        # Floats go through their shortest repr so 0.1 stays 0.1
        if isinstance(v, bool):
            raise ValueError("amount must be numeric")
        if isinstance(v, float):
            return Decimal(repr(v))
        try:
            return Decimal(v) if not isinstance(v, Decimal) else v
        except (InvalidOperation, TypeError, ValueError) as e:
            raise ValueError(f"amount must be numeric, got {v!r}") from e


class RawBlock(BaseModel):
    """A block reduced to the outputs of all of its transactions."""

    hash: str
    height: int
    outputs: list[TxOutput] = Field(default_factory=list)


class IncomingTransaction(BaseModel):
    """Most recent confirmed transaction paying an address."""

    txid: str
    height: int
    block_hash: str
    outputs: list[TxOutput] = Field(default_factory=list)


# ---------------------------------------------------------------------------
# Ledger side
# ---------------------------------------------------------------------------


class BlockSummary(BaseModel):
    """Condensed, immutable summary of one confirmed block."""

    model_config = ConfigDict(frozen=True)

    height: int
    hash: str
    elements: tuple[str, ...] = ()
    merkle_root: str | None = None
    random_value: int = Field(ge=1, le=RANDOM_VALUE_MAX)

    def to_datafeed(self) -> DataFeed:
        return DataFeed(
            bitcoin_hash=self.hash,
            bitcoin_height=self.height,
            bitcoin_merkle=self.merkle_root,
            random_value=self.random_value,
        )


class DataFeed(BaseModel):
    """The fact posted to the ledger for one block.

    The ledger stores it as a flat mapping; ``bitcoin_merkle`` is left out
    for blocks without any provable outputs and the random value is keyed
    by height (``random<height>``).
    """

    model_config = ConfigDict(frozen=True)

    bitcoin_hash: str = Field(min_length=1)
    bitcoin_height: int = Field(ge=0)
    bitcoin_merkle: str | None = None
    random_value: int = Field(ge=1, le=RANDOM_VALUE_MAX)

    @property
    def random_feed_name(self) -> str:
        return f"{RANDOM_FEED_PREFIX}{self.bitcoin_height}"

    def to_document(self) -> dict[str, Any]:
        doc: dict[str, Any] = {
            BLOCK_HASH_FEED_NAME: self.bitcoin_hash,
            BLOCK_HEIGHT_FEED_NAME: self.bitcoin_height,
        }
        if self.bitcoin_merkle:
            doc[MERKLE_ROOT_FEED_NAME] = self.bitcoin_merkle
        doc[self.random_feed_name] = self.random_value
        return doc

    @classmethod
    def from_document(cls, doc: dict[str, Any]) -> DataFeed:
        """Parse a document read back from the ledger."""
        height = int(doc[BLOCK_HEIGHT_FEED_NAME])
        return cls(
            bitcoin_hash=doc[BLOCK_HASH_FEED_NAME],
            bitcoin_height=height,
            bitcoin_merkle=doc.get(MERKLE_ROOT_FEED_NAME),
            random_value=int(doc[f"{RANDOM_FEED_PREFIX}{height}"]),
        )


@dataclass
class PublishResult:
    """Outcome of one publish attempt. Failures are reported, not raised."""

    ok: bool
    error: str = ""
    unit: str = ""

    def __bool__(self) -> bool:
        return self.ok


__all__ = [
    "BLOCK_HASH_FEED_NAME",
    "BLOCK_HEIGHT_FEED_NAME",
    "MERKLE_ROOT_FEED_NAME",
    "RANDOM_FEED_PREFIX",
    "RANDOM_VALUE_MAX",
    "BlockSummary",
    "DataFeed",
    "IncomingTransaction",
    "PublishResult",
    "RawBlock",
    "TxOutput",
]

"""Block canonicalization: raw block outputs -> sorted, unique leaf strings.

Every recomputation of the same block must produce byte-identical elements
in the same order, because proofs are addressed by leaf index.
"""

from __future__ import annotations

import asyncio
from decimal import Decimal, InvalidOperation
from typing import TYPE_CHECKING, Any

import bittensor as bt

from btc_oracle.errors import BlockFormatError, BlockReadError
from btc_oracle.models import RawBlock, TxOutput

if TYPE_CHECKING:
    from btc_oracle.chain.interface import ChainReader

_EIGHT_PLACES = Decimal("0.00000001")


def _to_decimal(amount: Any) -> Decimal:
    if isinstance(amount, bool):
        raise BlockFormatError(f"bad amount {amount!r}")
    if isinstance(amount, Decimal):
        return amount
    if isinstance(amount, float):
        return Decimal(repr(amount))
    if isinstance(amount, int):
        return Decimal(amount)
    try:
        return Decimal(str(amount))
    except InvalidOperation as e:
        raise BlockFormatError(f"bad amount {amount!r}") from e


def _strip_fraction(text: str) -> str:
    if "." in text:
        text = text.rstrip("0").rstrip(".")
    return text


def format_amount(amount: Any) -> str:
    """Render a BTC amount without exponential notation.

    Amounts of 1 and above are written as they are; smaller amounts are
    fixed to 8 decimals. Trailing fractional zeros are dropped in both cases.

    >>> format_amount(0.00000001), format_amount(1.5), format_amount(2)
    ('0.00000001', '1.5', '2')
    """
    value = _to_decimal(amount)
    if not value.is_finite():
        raise BlockFormatError(f"bad amount {amount!r}")
    if value >= 1:
        return _strip_fraction(format(value, "f"))
    return _strip_fraction(format(value.quantize(_EIGHT_PLACES), "f"))


def to_element(address: str, amount: Any) -> str:
    return f"{address}:{format_amount(amount)}"


def _is_provable(output: TxOutput) -> bool:
    if output.is_data_carrier or output.amount == 0:
        return False
    if not output.address:
        bt.logging.debug({
            "canonicalize_skip": {"reason": "no_address", "script_type": output.script_type}
        })
        return False
    return True


def canonicalize(block: RawBlock) -> tuple[list[str], str]:
    """Turn a block into its canonical leaf set.

    Returns:
        (elements, block_hash) - elements are unique and sorted ascending.
    """
    elements = {to_element(o.address, o.amount) for o in block.outputs if _is_provable(o)}
    return sorted(elements), block.hash


class BlockCanonicalizer:
    """Reads blocks from the chain and canonicalizes them."""

    def __init__(
        self,
        reader: ChainReader,
        read_attempts: int = 3,
        retry_delay: float = 3.0,
    ):
        self.reader = reader
        self.read_attempts = read_attempts
        self.retry_delay = retry_delay

    async def read_block(self, height: int) -> RawBlock:
        """Read a block, retrying with a fixed delay.

        Raises:
            BlockReadError: after ``read_attempts`` failed attempts.
        """
        err: Exception | None = None
        for attempt in range(self.read_attempts):
            try:
                return await self.reader.get_block(height)
            except BlockFormatError:
                raise
            except Exception as e:
                err = e
                bt.logging.warning({
                    "block_read_retry": {"height": height, "attempt": attempt, "error": str(e)}
                })
                if attempt < self.read_attempts - 1:
                    await asyncio.sleep(self.retry_delay)
        raise BlockReadError(
            f"getblock {height} failed after {self.read_attempts} attempts: {err}"
        )

    async def read_elements(self, height: int) -> tuple[list[str], str]:
        block = await self.read_block(height)
        elements, block_hash = canonicalize(block)
        bt.logging.debug({
            "canonicalize": {"height": height, "hash": block_hash, "elements": len(elements)}
        })
        return elements, block_hash


__all__ = ["BlockCanonicalizer", "canonicalize", "format_amount", "to_element"]

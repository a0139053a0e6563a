"""Proof responder: answers address queries with merkle proofs.

Pure read path; it never takes the publisher's post lock. Only the most
recent confirmed transaction paying the address is served.
"""

from __future__ import annotations

import bittensor as bt

from btc_oracle.address import MAINNET, Network, is_valid_address
from btc_oracle.canonical import BlockCanonicalizer, to_element
from btc_oracle.chain.interface import HistoryLookup
from btc_oracle.errors import IntegrityError
from btc_oracle.ledger.interface import LedgerClient
from btc_oracle.merkle import build_proof, serialize_proof
from btc_oracle.models import BLOCK_HASH_FEED_NAME, MERKLE_ROOT_FEED_NAME, IncomingTransaction

HELP_TEXT = (
    "Type a receiving Bitcoin address, I'll respond with the merkle proof "
    "that this address did receive bitcoins."
)
INVALID_ADDRESS_TEXT = "That doesn't look like a valid Bitcoin address.  " + HELP_TEXT
NOTHING_RECEIVED_TEXT = "This address didn't receive anything"


def proof_reply(element: str, serialized_proof: str) -> str:
    return (
        f"This is your merkle proof of {element}.  Please copy and paste it on the "
        f"Send page to unlock the funds from your smart wallet:\n{serialized_proof}"
    )


def _my_elements(tx: IncomingTransaction, address: str) -> list[str]:
    elements: list[str] = []
    for output in tx.outputs:
        if output.address != address or output.amount == 0:
            continue
        element = to_element(address, output.amount)
        if element not in elements:
            elements.append(element)
    return elements


class ProofResponder:
    """Turns an inbound text into reply texts."""

    def __init__(
        self,
        history: HistoryLookup,
        canonicalizer: BlockCanonicalizer,
        ledger: LedgerClient,
        network: Network = MAINNET,
        pairing_secret: str = "0000",
    ):
        self.history = history
        self.canonicalizer = canonicalizer
        self.ledger = ledger
        self.network = network
        self.pairing_secret = pairing_secret

    async def handle_text(self, sender: str, text: str) -> list[str]:
        """Replies for ``text`` from ``sender``.

        Raises:
            IntegrityError: a proof cannot be made consistent with the
                published merkle root.
        """
        if text == self.pairing_secret or text == "0000":
            return [HELP_TEXT]

        text = text.strip()
        if text.lower() == "help":
            return [HELP_TEXT]

        if not is_valid_address(text, self.network):
            return [INVALID_ADDRESS_TEXT]

        bt.logging.info({"oracle_responder": {"sender": sender[:16], "address": text}})
        return await self.prove_address(text)

    async def prove_address(self, address: str) -> list[str]:
        tx = await self.history.get_incoming_transaction(address)
        if tx is None:
            return [NOTHING_RECEIVED_TEXT]

        my_elements = _my_elements(tx, address)
        if not my_elements:
            raise IntegrityError(f"outputs to {address} not found in tx {tx.txid}")

        fact = await self.ledger.get_fact(BLOCK_HASH_FEED_NAME, tx.block_hash)
        if fact is None:
            return [f"No proof found for tx {tx.txid}, block #{tx.height} {tx.block_hash}"]
        merkle_root = fact.get(MERKLE_ROOT_FEED_NAME)
        if not merkle_root:
            raise IntegrityError(f"no merkle root in data feed of block {tx.block_hash}")

        elements, block_hash = await self.canonicalizer.read_elements(tx.height)
        if block_hash != tx.block_hash:
            raise IntegrityError(
                f"block at height {tx.height} is {block_hash}, tx {tx.txid} is in {tx.block_hash}"
            )

        replies = []
        for element in my_elements:
            try:
                index = elements.index(element)
            except ValueError:
                raise IntegrityError(f"{element} not found among block outputs, block {block_hash}") from None
            proof = build_proof(elements, index)
            serialized = serialize_proof(proof)
            if proof.root != merkle_root:
                raise IntegrityError(f"merkle root mismatch: in ledger {merkle_root}, proof {serialized}")
            replies.append(proof_reply(element, serialized))
        return replies


__all__ = [
    "HELP_TEXT",
    "INVALID_ADDRESS_TEXT",
    "NOTHING_RECEIVED_TEXT",
    "ProofResponder",
    "proof_reply",
]

"""Exception taxonomy for the oracle.

Idempotency abandonment is not an error and has no exception here; it is
reported as a PublishOutcome by the publisher.
"""

from __future__ import annotations


class OracleError(Exception):
    """Base class for oracle errors."""


class BlockReadError(OracleError):
    """A block could not be read from the chain after all attempts.

    Transient: the height stays owed and is retried on the next
    reconciliation pass.
    """


class BlockFormatError(OracleError):
    """The chain returned block data we cannot interpret."""


class PublishError(OracleError):
    """The ledger gateway returned something we cannot interpret."""


class ProofFormatError(OracleError, ValueError):
    """A serialized merkle proof is malformed."""


class IntegrityError(OracleError):
    """A recomputed proof does not match what was published.

    Either canonicalization diverged or the data was tampered with. Serving
    further proofs is unsafe, so the runtime halts on this error.
    """


__all__ = [
    "BlockFormatError",
    "BlockReadError",
    "IntegrityError",
    "OracleError",
    "ProofFormatError",
    "PublishError",
]

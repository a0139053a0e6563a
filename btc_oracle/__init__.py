"""Bitcoin oracle: publishes confirmed block summaries to a ledger as data
feeds and serves merkle proofs that an address was paid in a block."""

__version__ = "0.1.0"

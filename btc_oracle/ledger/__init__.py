"""Target ledger access for publishing block summaries as data feeds."""

from .http_client import HTTPLedgerClient
from .interface import LedgerClient
from .memory import InMemoryLedger

__all__ = ["HTTPLedgerClient", "InMemoryLedger", "LedgerClient"]

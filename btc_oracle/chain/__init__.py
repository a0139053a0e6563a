"""Source chain access: block reader and address history."""

from .esplora_client import EsploraHistoryClient
from .interface import ChainReader, HistoryLookup
from .rpc_client import BitcoinRPCClient

__all__ = [
    "BitcoinRPCClient",
    "ChainReader",
    "EsploraHistoryClient",
    "HistoryLookup",
]

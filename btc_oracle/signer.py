"""Data feed signing and verification using bittensor keypairs.

The oracle signs each document it posts with its hotkey so that the ledger
gateway (and anyone reading the gateway) can check the author before
accepting the fact.
"""

from __future__ import annotations

import hashlib
import json
from typing import Any


def compute_hash(data: Any) -> str:
    """SHA256 hex digest of the canonical JSON form of ``data``."""
    canonical = json.dumps(data, sort_keys=True, separators=(",", ":"), default=str)
    return hashlib.sha256(canonical.encode("utf-8")).hexdigest()


def sign_document(document: dict[str, Any], wallet: Any) -> str:
    """Sign a data feed document with the wallet's hotkey.

    Returns:
        Hex-encoded signature string.
    """
    payload_hash = compute_hash(document)
    signature = wallet.hotkey.sign(payload_hash.encode())
    return signature.hex() if isinstance(signature, bytes) else str(signature)


def verify_document(document: dict[str, Any], signature: str, hotkey_ss58: str) -> bool:
    """Verify a document signature against a hotkey."""
    import bittensor as bt

    if not signature:
        return False

    try:
        sig_bytes = bytes.fromhex(signature)
    except ValueError:
        return False

    try:
        keypair = bt.Keypair(ss58_address=hotkey_ss58)
        return keypair.verify(compute_hash(document).encode(), sig_bytes)
    except Exception:
        return False


__all__ = ["compute_hash", "sign_document", "verify_document"]

"""Tests for data feed signing."""

import pytest

from btc_oracle.signer import compute_hash, sign_document, verify_document


@pytest.fixture
def oracle_wallet():
    import bittensor as bt
    wallet = bt.Wallet(name="test_btc_oracle", hotkey="test_btc_oracle_hk")
    wallet.create_if_non_existent(coldkey_use_password=False, hotkey_use_password=False)
    return wallet


DOCUMENT = {
    "bitcoin_hash": "ab" * 32,
    "bitcoin_height": 100,
    "bitcoin_merkle": "root",
    "random100": 42,
}


class TestComputeHash:

    def test_key_order_irrelevant(self):
        reordered = dict(reversed(list(DOCUMENT.items())))
        assert compute_hash(DOCUMENT) == compute_hash(reordered)

    def test_value_change_changes_hash(self):
        assert compute_hash(DOCUMENT) != compute_hash({**DOCUMENT, "random100": 43})


class TestSignDocument:

    def test_sign_verify_roundtrip(self, oracle_wallet):
        sig = sign_document(DOCUMENT, oracle_wallet)
        assert verify_document(DOCUMENT, sig, oracle_wallet.hotkey.ss58_address)

    def test_rejects_tampered(self, oracle_wallet):
        sig = sign_document(DOCUMENT, oracle_wallet)
        tampered = {**DOCUMENT, "bitcoin_merkle": "forged"}
        assert not verify_document(tampered, sig, oracle_wallet.hotkey.ss58_address)

    @pytest.mark.parametrize("sig", ["", "not-hex"])
    def test_rejects_malformed_signature(self, oracle_wallet, sig):
        assert not verify_document(DOCUMENT, sig, oracle_wallet.hotkey.ss58_address)

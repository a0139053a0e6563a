"""Bitcoin address validation for the proof responder.

Accepts legacy base58check addresses (P2PKH, P2SH) and segwit addresses
(bech32 for witness v0, bech32m for v1+) of one network.
"""

from __future__ import annotations

from dataclasses import dataclass

import base58

_BECH32_CHARSET = "qpzry9x8gf2tvdw0s3jn54khce6mua7l"
_BECH32_CONST = 1
_BECH32M_CONST = 0x2BC830A3


@dataclass(frozen=True)
class Network:
    name: str
    p2pkh_version: int
    p2sh_version: int
    hrp: str


MAINNET = Network("mainnet", 0x00, 0x05, "bc")
TESTNET = Network("testnet", 0x6F, 0xC4, "tb")
REGTEST = Network("regtest", 0x6F, 0xC4, "bcrt")

NETWORKS = {n.name: n for n in (MAINNET, TESTNET, REGTEST)}


def get_network(name: str) -> Network:
    try:
        return NETWORKS[name]
    except KeyError:
        raise ValueError(f"unknown network {name!r}, expected one of {sorted(NETWORKS)}") from None


# ---------------------------------------------------------------------------
# base58check
# ---------------------------------------------------------------------------


def _is_valid_base58(address: str, network: Network) -> bool:
    try:
        payload = base58.b58decode_check(address)
    except ValueError:
        return False
    if len(payload) != 21:
        return False
    return payload[0] in (network.p2pkh_version, network.p2sh_version)


# ---------------------------------------------------------------------------
# bech32 / bech32m
# ---------------------------------------------------------------------------


def _polymod(values: list[int]) -> int:
    gen = [0x3B6A57B2, 0x26508E6D, 0x1EA119FA, 0x3D4233DD, 0x2A1462B3]
    chk = 1
    for v in values:
        top = chk >> 25
        chk = (chk & 0x1FFFFFF) << 5 ^ v
        for i in range(5):
            chk ^= gen[i] if ((top >> i) & 1) else 0
    return chk


def _hrp_expand(hrp: str) -> list[int]:
    return [ord(x) >> 5 for x in hrp] + [0] + [ord(x) & 31 for x in hrp]


def _convertbits(data: list[int], frombits: int, tobits: int) -> list[int] | None:
    acc = 0
    bits = 0
    out = []
    maxv = (1 << tobits) - 1
    for value in data:
        acc = (acc << frombits) | value
        bits += frombits
        while bits >= tobits:
            bits -= tobits
            out.append((acc >> bits) & maxv)
    if bits >= frombits or ((acc << (tobits - bits)) & maxv):
        return None
    return out


def _is_valid_segwit(address: str, network: Network) -> bool:
    if address.lower() != address and address.upper() != address:
        return False
    address = address.lower()
    pos = address.rfind("1")
    if pos < 1 or pos + 7 > len(address) or len(address) > 90:
        return False
    hrp, data_part = address[:pos], address[pos + 1:]
    if hrp != network.hrp or any(c not in _BECH32_CHARSET for c in data_part):
        return False

    data = [_BECH32_CHARSET.find(c) for c in data_part]
    const = _polymod(_hrp_expand(hrp) + data)
    version = data[0]
    if version > 16:
        return False
    if const != (_BECH32_CONST if version == 0 else _BECH32M_CONST):
        return False

    program = _convertbits(data[1:-6], 5, 8)
    if program is None or not 2 <= len(program) <= 40:
        return False
    if version == 0 and len(program) not in (20, 32):
        return False
    return True


def is_valid_address(address: str, network: Network = MAINNET) -> bool:
    """True if ``address`` is a well-formed address on ``network``."""
    if not address or not address.isascii():
        return False
    if address.lower().startswith(network.hrp + "1"):
        return _is_valid_segwit(address, network)
    return _is_valid_base58(address, network)


__all__ = [
    "MAINNET",
    "NETWORKS",
    "REGTEST",
    "TESTNET",
    "Network",
    "get_network",
    "is_valid_address",
]

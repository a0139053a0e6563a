"""Merkle tree over block leaf elements - pure functions, no I/O.

Hashes are SHA-256 over UTF-8 text rendered as base64, the ledger's native
hash format. A parent is the hash of its two children's base64 strings
concatenated. An odd node at the end of a level is promoted unchanged to the
next level; nothing is duplicated.

Serialized proof format::

    <index>-<step>-<step>-...-<root>

where each step is ``L<hash>`` (sibling on the left), ``R<hash>`` (sibling on
the right) or ``_`` (node promoted without a sibling). Base64 never contains
``-`` or ``_`` so the format splits unambiguously.
"""

from __future__ import annotations

import base64
import hashlib
from dataclasses import dataclass
from typing import Sequence

from btc_oracle.errors import ProofFormatError

LEFT = "left"
RIGHT = "right"

_SIDE_TAGS = {LEFT: "L", RIGHT: "R"}
_TAG_SIDES = {"L": LEFT, "R": RIGHT}
_PROMOTED_TAG = "_"


def hash_text(text: str) -> str:
    """SHA-256 of UTF-8 text, base64 encoded."""
    return base64.b64encode(hashlib.sha256(text.encode("utf-8")).digest()).decode("ascii")


@dataclass(frozen=True)
class ProofStep:
    """One level of a proof. ``sibling`` is None when the node was promoted."""

    sibling: str | None
    side: str = RIGHT


@dataclass(frozen=True)
class MerkleProof:
    """Inclusion proof for the leaf at ``index``."""

    index: int
    steps: tuple[ProofStep, ...]
    root: str


def _next_level(level: list[str]) -> list[str]:
    parents = []
    for i in range(0, len(level), 2):
        if i + 1 < len(level):
            parents.append(hash_text(level[i] + level[i + 1]))
        else:
            parents.append(level[i])
    return parents


def build_root(elements: Sequence[str]) -> str | None:
    """Merkle root of ``elements`` in the given order, None if empty."""
    if not elements:
        return None
    level = [hash_text(e) for e in elements]
    while len(level) > 1:
        level = _next_level(level)
    return level[0]


def build_proof(elements: Sequence[str], index: int) -> MerkleProof:
    """Build the inclusion proof for ``elements[index]``.

    Raises:
        IndexError: if ``index`` does not address an element.
    """
    if index < 0 or index >= len(elements):
        raise IndexError(f"leaf index {index} out of range for {len(elements)} elements")

    level = [hash_text(e) for e in elements]
    steps: list[ProofStep] = []
    pos = index
    while len(level) > 1:
        if pos % 2 == 1:
            steps.append(ProofStep(sibling=level[pos - 1], side=LEFT))
        elif pos + 1 < len(level):
            steps.append(ProofStep(sibling=level[pos + 1], side=RIGHT))
        else:
            steps.append(ProofStep(sibling=None))
        level = _next_level(level)
        pos //= 2

    return MerkleProof(index=index, steps=tuple(steps), root=level[0])


def root_from_proof(element: str, proof: MerkleProof) -> str:
    """Recompute the root implied by ``proof`` for ``element``."""
    node = hash_text(element)
    for step in proof.steps:
        if step.sibling is None:
            continue
        if step.side == LEFT:
            node = hash_text(step.sibling + node)
        else:
            node = hash_text(node + step.sibling)
    return node


def verify_proof(element: str, proof: MerkleProof) -> bool:
    return root_from_proof(element, proof) == proof.root


def serialize_proof(proof: MerkleProof) -> str:
    parts = [str(proof.index)]
    for step in proof.steps:
        if step.sibling is None:
            parts.append(_PROMOTED_TAG)
        else:
            parts.append(_SIDE_TAGS[step.side] + step.sibling)
    parts.append(proof.root)
    return "-".join(parts)


def deserialize_proof(text: str) -> MerkleProof:
    """Parse the output of :func:`serialize_proof`.

    Raises:
        ProofFormatError: if ``text`` is not a serialized proof.
    """
    parts = text.strip().split("-")
    if len(parts) < 2:
        raise ProofFormatError(f"proof needs an index and a root: {text!r}")

    index_str, *step_strs, root = parts
    if not index_str.isdigit():
        raise ProofFormatError(f"bad leaf index: {index_str!r}")
    if not root:
        raise ProofFormatError("empty root")

    steps = []
    for s in step_strs:
        if s == _PROMOTED_TAG:
            steps.append(ProofStep(sibling=None))
        elif len(s) > 1 and s[0] in _TAG_SIDES:
            steps.append(ProofStep(sibling=s[1:], side=_TAG_SIDES[s[0]]))
        else:
            raise ProofFormatError(f"bad proof step: {s!r}")

    return MerkleProof(index=int(index_str), steps=tuple(steps), root=root)


__all__ = [
    "LEFT",
    "RIGHT",
    "MerkleProof",
    "ProofStep",
    "build_proof",
    "build_root",
    "deserialize_proof",
    "hash_text",
    "root_from_proof",
    "serialize_proof",
    "verify_proof",
]

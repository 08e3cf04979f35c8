"""Hashing, encoding and winner derivation used by draws and verification.

Everything here is a pure function of its inputs so that an outside party
holding the revealed seed can reproduce a draw bit for bit.
"""

from __future__ import annotations

import base64
import binascii
import hashlib
import json
from typing import Any, Optional, Union

from .types import DrawSeed

ALGORITHM = "sha256-lp-rejection-v1"
"""Identifier embedded in every proof; bump when any step below changes."""

SLICE_BYTES = 8
HASH_RANGE = 1 << (SLICE_BYTES * 8)
MAX_TOTAL_TICKETS = (1 << 63) - 1
"""Upper bound on tickets per draw; also the largest value a BIGINT column holds."""


def sha256_hex(data: Union[bytes, str]) -> str:
    """Return the SHA-256 hex digest of ``data`` (strings are UTF-8 encoded)."""
    if isinstance(data, str):
        data = data.encode("utf-8")
    return hashlib.sha256(data).hexdigest()


def _field_bytes(value: Optional[Union[str, int]]) -> bytes:
    if value is None:
        return b""
    if isinstance(value, bool):
        raise TypeError("boolean fields are not supported")
    return str(value).encode("utf-8")


def length_prefixed(*fields: Optional[Union[str, int]]) -> bytes:
    """Concatenate ``fields`` with a 4-byte big-endian length before each one.

    ``None`` encodes as an empty field. Unlike a delimiter-joined string the
    result can be split back unambiguously whatever the fields contain.
    """
    out = bytearray()
    for value in fields:
        raw = _field_bytes(value)
        out += len(raw).to_bytes(4, "big")
        out += raw
    return bytes(out)


def canonical_json(payload: Any) -> bytes:
    return json.dumps(
        payload, sort_keys=True, separators=(",", ":"), ensure_ascii=False
    ).encode("utf-8")


def serialize_seed(seed: DrawSeed) -> bytes:
    return canonical_json(seed.to_dict())


def seed_hash(seed: DrawSeed) -> str:
    """Hash of the serialized seed. Equal to the published commitment hash."""
    return sha256_hex(serialize_seed(seed))


def result_hash(result: int, total_tickets: int, participant_count: int) -> str:
    return sha256_hex(length_prefixed(result, total_tickets, participant_count))


def combined_input(seed: DrawSeed, total_tickets: int, participant_count: int) -> bytes:
    return length_prefixed(
        seed.public_seed,
        seed.private_seed,
        seed.external_entropy or "",
        total_tickets,
        participant_count,
    )


def compute_final_hash(seed: DrawSeed, total_tickets: int, participant_count: int) -> str:
    return sha256_hex(combined_input(seed, total_tickets, participant_count))


def derive_winning_ticket(final_hash: str, total_tickets: int) -> int:
    """Map ``final_hash`` to a ticket number in ``[1, total_tickets]``.

    Parameters
    ----------
    final_hash : str
        Hex digest produced by :func:`compute_final_hash`.
    total_tickets : int
        Number of tickets sold; must be in ``[1, MAX_TOTAL_TICKETS]``.

    Returns
    -------
    int
        The 1-based winning ticket number.

    Notes
    -----
    The digest is read as consecutive 64-bit big-endian slices. A slice is
    only accepted when it falls below the largest multiple of
    ``total_tickets`` that fits in 64 bits, which removes the modulo bias of
    a plain ``hash % total_tickets``. When every slice of a digest is
    rejected the digest is extended with ``SHA256(digest || counter)``.
    """
    if isinstance(total_tickets, bool) or not isinstance(total_tickets, int):
        raise TypeError("total_tickets must be an integer")
    if total_tickets < 1 or total_tickets > MAX_TOTAL_TICKETS:
        raise ValueError(f"total_tickets must be between 1 and {MAX_TOTAL_TICKETS}")

    limit = HASH_RANGE - (HASH_RANGE % total_tickets)
    digest = bytes.fromhex(final_hash)
    if len(digest) < SLICE_BYTES:
        raise ValueError("final_hash is too short")

    counter = 0
    while True:
        for offset in range(0, len(digest) - SLICE_BYTES + 1, SLICE_BYTES):
            hash_num = int.from_bytes(digest[offset : offset + SLICE_BYTES], "big")
            if hash_num < limit:
                return (hash_num % total_tickets) + 1
        counter += 1
        digest = hashlib.sha256(digest + counter.to_bytes(4, "big")).digest()


def encode_proof(
    seed: DrawSeed,
    final_hash: str,
    winning_ticket_number: int,
    total_tickets: int,
    participant_count: int,
) -> str:
    """Pack every input of the computation into a base64 JSON document."""
    payload = {
        "algorithm": ALGORITHM,
        **seed.to_dict(),
        "totalTickets": total_tickets,
        "participantCount": participant_count,
        "finalHash": final_hash,
        "result": winning_ticket_number,
    }
    return base64.b64encode(canonical_json(payload)).decode("ascii")


def decode_proof(proof: str) -> dict[str, Any]:
    """Inverse of :func:`encode_proof`.

    Raises
    ------
    ValueError
        If ``proof`` is not base64-encoded JSON carrying the expected fields.
    """
    try:
        raw = base64.b64decode(proof.encode("ascii"), validate=True)
        payload = json.loads(raw.decode("utf-8"))
    except (binascii.Error, UnicodeError, ValueError) as exc:
        raise ValueError("proof is not valid base64 JSON") from exc
    if not isinstance(payload, dict):
        raise ValueError("proof must decode to an object")
    for key in ("algorithm", "finalHash", "result", "totalTickets", "participantCount"):
        if key not in payload:
            raise ValueError(f"proof is missing field {key!r}")
    # Raises ValueError on malformed seed fields.
    DrawSeed.from_dict(payload)
    return payload


__all__ = [
    "ALGORITHM",
    "MAX_TOTAL_TICKETS",
    "canonical_json",
    "combined_input",
    "compute_final_hash",
    "decode_proof",
    "derive_winning_ticket",
    "encode_proof",
    "length_prefixed",
    "result_hash",
    "seed_hash",
    "serialize_seed",
    "sha256_hex",
]

"""
Provably fair mine placement.

Published algorithm (any third party can reproduce it):

    message = f"{server_seed}:{client_seed}:{nonce}"
    digest  = SHA-256(message)
    seed    = first 4 bytes of digest, big-endian uint32
    prng    = Mulberry32(seed), one float in [0, 1) per call
    shuffle list(range(board_size)) with a top-down Fisher-Yates,
            j = floor(prng() * (i + 1)) for i = N-1 .. 1
    mines   = sorted(first mine_count cells)
"""
from __future__ import annotations

import hashlib
import hmac
import math
import secrets
from dataclasses import dataclass, field
from typing import Iterable, List

SERVER_SEED_BYTES = 32
CLIENT_SEED_BYTES = 16

UINT32_MASK = 0xFFFFFFFF
UINT32_RANGE = 2 ** 32
MULBERRY32_INCREMENT = 0x6D2B79F5


class InvalidParameter(ValueError):
    pass


# =====================================================
# COMMITMENT
# =====================================================

def sha256_hex(value: str) -> str:
    return hashlib.sha256(value.encode("utf-8")).hexdigest()


def generate_server_seed() -> str:
    return secrets.token_hex(SERVER_SEED_BYTES)


def generate_client_seed() -> str:
    return secrets.token_hex(CLIENT_SEED_BYTES)


def check_commitment(server_seed: str, commitment_hash: str) -> bool:
    computed = sha256_hex(server_seed)
    return hmac.compare_digest(
        computed.encode("utf-8"), str(commitment_hash).encode("utf-8")
    )


# =====================================================
# INPUT VALIDATION
# =====================================================

def _is_int(value) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def validate_board(board_size: int, mine_count: int) -> None:
    if not _is_int(board_size) or board_size <= 1:
        raise InvalidParameter("board_size must be an integer greater than 1")
    if not _is_int(mine_count) or not 1 <= mine_count < board_size:
        raise InvalidParameter(
            f"mine_count must be an integer between 1 and {board_size - 1}"
        )


def validate_nonce(nonce: int) -> None:
    if not _is_int(nonce) or nonce < 0:
        raise InvalidParameter("nonce must be a non-negative integer")


def validate_client_seed(client_seed: str) -> None:
    if not isinstance(client_seed, str) or not client_seed:
        raise InvalidParameter("client_seed must be a non-empty string")


# =====================================================
# PRNG
# =====================================================

class Mulberry32:
    """
    32-bit Mulberry32 generator. Every operation is reduced mod 2^32 so the
    stream matches the common JavaScript reference bit for bit.
    """

    def __init__(self, seed: int):
        self.state = seed & UINT32_MASK

    def next_uint32(self) -> int:
        self.state = (self.state + MULBERRY32_INCREMENT) & UINT32_MASK
        a = self.state
        t = ((a ^ (a >> 15)) * (1 | a)) & UINT32_MASK
        t = ((t + (((t ^ (t >> 7)) * (61 | t)) & UINT32_MASK)) & UINT32_MASK) ^ t
        return (t ^ (t >> 14)) & UINT32_MASK

    def random(self) -> float:
        return self.next_uint32() / UINT32_RANGE


def seed_message(server_seed: str, client_seed: str, nonce: int) -> str:
    return f"{server_seed}:{client_seed}:{nonce}"


def derive_seed(server_seed: str, client_seed: str, nonce: int) -> int:
    digest = hashlib.sha256(
        seed_message(server_seed, client_seed, nonce).encode("utf-8")
    ).digest()
    return int.from_bytes(digest[:4], "big")


# =====================================================
# POSITION GENERATOR
# =====================================================

def shuffled_cells(
    server_seed: str, client_seed: str, nonce: int, board_size: int
) -> List[int]:
    rng = Mulberry32(derive_seed(server_seed, client_seed, nonce))
    cells = list(range(board_size))
    for i in range(board_size - 1, 0, -1):
        j = math.floor(rng.random() * (i + 1))
        cells[i], cells[j] = cells[j], cells[i]
    return cells


def generate_mine_positions(
    server_seed: str,
    client_seed: str,
    nonce: int,
    board_size: int,
    mine_count: int,
) -> List[int]:
    validate_board(board_size, mine_count)
    validate_nonce(nonce)
    cells = shuffled_cells(server_seed, client_seed, nonce, board_size)
    return sorted(cells[:mine_count])


# =====================================================
# VERIFIER
# =====================================================

@dataclass(frozen=True)
class VerificationResult:
    hash_matches: bool
    positions_match: bool
    computed_hash: str
    regenerated_positions: List[int] = field(default_factory=list)

    @property
    def verified(self) -> bool:
        return self.hash_matches and self.positions_match

    def as_dict(self) -> dict:
        return {
            "hash_matches": self.hash_matches,
            "positions_match": self.positions_match,
            "verified": self.verified,
            "computed_hash": self.computed_hash,
            "regenerated_positions": list(self.regenerated_positions),
        }


def verify_round(
    server_seed: str,
    client_seed: str,
    nonce: int,
    board_size: int,
    mine_count: int,
    claimed_positions: Iterable[int],
    commitment_hash: str,
) -> VerificationResult:
    """
    Recompute a round from revealed inputs.

    A mismatch is reported in the result, never raised. Only malformed
    board parameters raise InvalidParameter.
    """
    regenerated = generate_mine_positions(
        server_seed, client_seed, nonce, board_size, mine_count
    )
    try:
        claimed = sorted(claimed_positions)
    except TypeError:
        claimed = None

    return VerificationResult(
        hash_matches=check_commitment(server_seed, commitment_hash),
        positions_match=claimed == regenerated,
        computed_hash=sha256_hex(server_seed),
        regenerated_positions=regenerated,
    )

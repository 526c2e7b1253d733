from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional, Tuple

from django.conf import settings
from django.core.exceptions import ValidationError
from django.db import transaction
from django.db.models import F
from django.utils import timezone

from .engine import multiplier_for_reveals, safe_cell_count, validate_playable_board
from .models import MinesRound, RevealedSeedPair, SeedPair
from .provably_fair import (
    InvalidParameter,
    generate_client_seed,
    generate_mine_positions,
    generate_server_seed,
    sha256_hex,
    validate_client_seed,
    verify_round,
)

logger = logging.getLogger(__name__)


class FairnessError(Exception):
    pass


class SeedPairNotFound(FairnessError):
    pass


class RoundNotFound(FairnessError):
    pass


class NotYetRevealed(FairnessError):
    pass


class RoundInProgress(FairnessError):
    pass


class RoundStateError(FairnessError):
    pass


class NonceAllocationConflict(FairnessError):
    pass


@dataclass(frozen=True)
class CommitmentTuple:
    server_seed: str
    server_seed_hash: str
    client_seed: str
    nonce: int


# ======================================================
# INTERNAL
# ======================================================
def _fresh_seed_values(client_seed: Optional[str] = None) -> dict:
    server_seed = generate_server_seed()
    return {
        "server_seed": server_seed,
        "server_seed_hash": sha256_hex(server_seed),
        "client_seed": client_seed if client_seed is not None else generate_client_seed(),
    }


def _get_seed_pair_for_update(player_id: str) -> SeedPair:
    try:
        return SeedPair.objects.select_for_update().get(player_id=player_id)
    except SeedPair.DoesNotExist:
        raise SeedPairNotFound(f"No seed pair for player {player_id}")


def _get_round_for_update(player_id: str, round_id) -> MinesRound:
    try:
        return MinesRound.objects.select_for_update().get(id=round_id, player_id=player_id)
    except (MinesRound.DoesNotExist, ValidationError):
        raise RoundNotFound("Round not found")


def _round_public_state(game: MinesRound) -> dict:
    data = {
        "round_id": str(game.id),
        "player_id": game.player_id,
        "server_seed_hash": game.server_seed_hash,
        "client_seed": game.client_seed,
        "nonce": game.nonce,
        "board_size": game.board_size,
        "mine_count": game.mine_count,
        "revealed_tiles": list(game.revealed_tiles),
        "status": game.status,
        "current_multiplier": game.current_multiplier,
        "created_at": game.created_at,
        "finished_at": game.finished_at,
    }
    # Mines stay hidden while the round can still be played
    if not game.is_active:
        data["mine_positions"] = list(game.mine_positions)
    return data


# ======================================================
# SEED COMMITMENTS
# ======================================================
def ensure_commitment(player_id: str) -> dict:
    pair, created = SeedPair.objects.get_or_create(
        player_id=player_id,
        defaults=dict(nonce=0, **_fresh_seed_values()),
    )
    if created:
        logger.info(f"Created seed pair for player {player_id} ({pair.server_seed_hash})")
    return pair.public_state()


def current_commitment(player_id: str) -> dict:
    try:
        pair = SeedPair.objects.get(player_id=player_id)
    except SeedPair.DoesNotExist:
        raise SeedPairNotFound(f"No seed pair for player {player_id}")
    return pair.public_state()


def previous_commitment(player_id: str) -> Optional[dict]:
    revealed = RevealedSeedPair.objects.filter(player_id=player_id).first()
    return revealed.public_state() if revealed else None


@transaction.atomic
def set_client_seed(player_id: str, client_seed: str) -> dict:
    validate_client_seed(client_seed)
    pair = _get_seed_pair_for_update(player_id)
    pair.client_seed = client_seed
    pair.save(update_fields=["client_seed", "updated_at"])
    logger.info(f"Client seed updated for player {player_id}")
    return pair.public_state()


def allocate_nonce(player_id: str) -> Tuple[CommitmentTuple, int]:
    """
    Freeze the player's current tuple for a new round and bump the nonce.

    The row is locked for the read, and the increment only applies if the
    hash and nonce are still the ones that were read. A lost race is retried
    against the fresh tuple.
    """
    attempts = getattr(settings, "MINES_NONCE_ALLOCATION_RETRIES", 5)

    for attempt in range(1, attempts + 1):
        with transaction.atomic():
            pair = _get_seed_pair_for_update(player_id)
            frozen = CommitmentTuple(
                server_seed=pair.server_seed,
                server_seed_hash=pair.server_seed_hash,
                client_seed=pair.client_seed,
                nonce=pair.nonce,
            )
            updated = SeedPair.objects.filter(
                pk=pair.pk,
                server_seed_hash=frozen.server_seed_hash,
                client_seed=frozen.client_seed,
                nonce=frozen.nonce,
            ).update(nonce=F("nonce") + 1, updated_at=timezone.now())
            if updated == 1:
                return frozen, frozen.nonce + 1

        logger.warning(
            f"Nonce allocation for player {player_id} lost a race "
            f"(attempt {attempt}/{attempts})"
        )

    raise NonceAllocationConflict(f"Could not allocate a nonce for player {player_id}")


# ======================================================
# ROTATION
# ======================================================
@transaction.atomic
def rotate_seed_pair(player_id: str, new_client_seed: Optional[str] = None) -> dict:
    if new_client_seed is not None:
        validate_client_seed(new_client_seed)

    pair = _get_seed_pair_for_update(player_id)

    if MinesRound.objects.filter(
        player_id=player_id,
        server_seed_hash=pair.server_seed_hash,
        status=MinesRound.STATUS_ACTIVE,
    ).exists():
        raise RoundInProgress("Finish the active round before rotating the seed pair")

    revealed = RevealedSeedPair.objects.create(
        player_id=player_id,
        server_seed=pair.server_seed,
        server_seed_hash=pair.server_seed_hash,
        client_seed=pair.client_seed,
        final_nonce=pair.nonce,
    )

    # Replace the whole commitment in one write
    values = _fresh_seed_values(new_client_seed)
    SeedPair.objects.filter(pk=pair.pk).update(
        nonce=0, updated_at=timezone.now(), **values
    )

    logger.info(
        f"Rotated seed pair for player {player_id}: revealed {revealed.server_seed_hash} "
        f"at nonce {revealed.final_nonce}, committed {values['server_seed_hash']}"
    )

    return {
        "revealed_server_seed": revealed.server_seed,
        "revealed_server_seed_hash": revealed.server_seed_hash,
        "revealed_client_seed": revealed.client_seed,
        "revealed_final_nonce": revealed.final_nonce,
        "new_server_seed_hash": values["server_seed_hash"],
        "new_client_seed": values["client_seed"],
        "new_nonce": 0,
    }


# ======================================================
# ROUNDS
# ======================================================
def allocate_round(player_id: str, board_size: int, mine_count: int) -> dict:
    validate_playable_board(board_size, mine_count)
    ensure_commitment(player_id)

    with transaction.atomic():
        frozen, next_nonce = allocate_nonce(player_id)
        positions = generate_mine_positions(
            frozen.server_seed,
            frozen.client_seed,
            frozen.nonce,
            board_size,
            mine_count,
        )
        game = MinesRound.objects.create(
            player_id=player_id,
            server_seed_hash=frozen.server_seed_hash,
            client_seed=frozen.client_seed,
            nonce=frozen.nonce,
            board_size=board_size,
            mine_count=mine_count,
            mine_positions=positions,
        )

    logger.info(
        f"Round {game.id} for player {player_id}: {mine_count} mines on {board_size} cells, "
        f"seed {frozen.server_seed_hash} nonce {frozen.nonce}"
    )

    return {
        "round_id": str(game.id),
        "mine_positions": positions,
        "server_seed_hash": frozen.server_seed_hash,
        "client_seed": frozen.client_seed,
        "nonce": frozen.nonce,
        "next_nonce": next_nonce,
        "board_size": board_size,
        "mine_count": mine_count,
    }


@transaction.atomic
def reveal_tile(player_id: str, round_id, tile: int) -> dict:
    game = _get_round_for_update(player_id, round_id)

    if not game.is_active:
        raise RoundStateError("Round is not active")

    if isinstance(tile, bool) or not isinstance(tile, int) or not 0 <= tile < game.board_size:
        raise InvalidParameter(f"tile must be between 0 and {game.board_size - 1}")

    if tile in game.revealed_tiles:
        raise InvalidParameter("Tile already revealed")

    revealed = list(game.revealed_tiles) + [tile]
    game.revealed_tiles = revealed
    is_mine = tile in game.mine_positions

    if is_mine:
        game.status = MinesRound.STATUS_LOST
        game.finished_at = timezone.now()
    else:
        game.current_multiplier = multiplier_for_reveals(
            len(revealed), game.board_size, game.mine_count
        )
        if len(revealed) == safe_cell_count(game.board_size, game.mine_count):
            game.status = MinesRound.STATUS_CASHED
            game.finished_at = timezone.now()

    game.save(update_fields=["revealed_tiles", "status", "current_multiplier", "finished_at"])

    data = _round_public_state(game)
    data["is_mine"] = is_mine
    return data


@transaction.atomic
def cash_out(player_id: str, round_id) -> dict:
    game = _get_round_for_update(player_id, round_id)

    if not game.is_active or not game.revealed_tiles:
        raise RoundStateError("Round cannot be cashed out")

    game.status = MinesRound.STATUS_CASHED
    game.finished_at = timezone.now()
    game.save(update_fields=["status", "finished_at"])

    logger.info(f"Round {game.id} cashed out at {game.current_multiplier:.4f}x")
    return _round_public_state(game)


def round_details(player_id: str, round_id) -> dict:
    try:
        game = MinesRound.objects.get(id=round_id, player_id=player_id)
    except (MinesRound.DoesNotExist, ValidationError):
        raise RoundNotFound("Round not found")
    return _round_public_state(game)


def round_history(player_id: str, limit: Optional[int] = None, offset: int = 0) -> dict:
    if limit is None:
        limit = getattr(settings, "MINES_HISTORY_PAGE_SIZE", 20)
    qs = MinesRound.objects.filter(player_id=player_id).order_by("-created_at", "-nonce")
    return {
        "rounds": [_round_public_state(g) for g in qs[offset:offset + limit]],
        "total": qs.count(),
        "limit": limit,
        "offset": offset,
    }


# ======================================================
# VERIFICATION
# ======================================================
def verify_mines_round(round_id) -> dict:
    try:
        game = MinesRound.objects.get(id=round_id)
    except (MinesRound.DoesNotExist, ValidationError):
        raise RoundNotFound("Round not found")

    if game.is_active:
        raise RoundInProgress("Cannot verify an active round")

    revealed = RevealedSeedPair.objects.filter(
        player_id=game.player_id,
        server_seed_hash=game.server_seed_hash,
    ).first()
    if revealed is None:
        raise NotYetRevealed("Server seed not yet revealed. Rotate the seed pair to verify this round.")

    result = verify_round(
        revealed.server_seed,
        game.client_seed,
        game.nonce,
        game.board_size,
        game.mine_count,
        game.mine_positions,
        commitment_hash=game.server_seed_hash,
    )
    if not result.verified:
        logger.warning(f"Round {game.id} failed verification: {result.as_dict()}")

    return {
        "round_id": str(game.id),
        "server_seed": revealed.server_seed,
        "server_seed_hash": game.server_seed_hash,
        "client_seed": game.client_seed,
        "nonce": game.nonce,
        "board_size": game.board_size,
        "mine_count": game.mine_count,
        "mine_positions": list(game.mine_positions),
        "revealed_tiles": list(game.revealed_tiles),
        "safe_tiles": [c for c in range(game.board_size) if c not in result.regenerated_positions],
        **result.as_dict(),
    }

"""Tests for seed commitments, rotation, rounds and stored-round verification."""

import re
import uuid

import pytest

from mines import services
from mines.engine import MAX_BOARD_SIZE
from mines.models import MinesRound, RevealedSeedPair, SeedPair
from mines.provably_fair import (
    InvalidParameter,
    generate_mine_positions,
    generate_server_seed,
    sha256_hex,
)

pytestmark = pytest.mark.django_db

HEX64 = re.compile(r"^[0-9a-f]{64}$")


def _lose(player_id: str, started: dict) -> dict:
    return services.reveal_tile(player_id, started["round_id"], started["mine_positions"][0])


def _first_safe_tile(started: dict) -> int:
    return next(t for t in range(started["board_size"]) if t not in started["mine_positions"])


class TestSeedCommitments:
    def test_ensure_creates_fresh_commitment(self) -> None:
        state = services.ensure_commitment("alice")
        assert state["nonce"] == 0
        assert HEX64.match(state["server_seed_hash"])
        assert state["client_seed"]
        assert "server_seed" not in state

        pair = SeedPair.objects.get(player_id="alice")
        assert sha256_hex(pair.server_seed) == pair.server_seed_hash

    def test_ensure_is_idempotent(self) -> None:
        first = services.ensure_commitment("alice")
        second = services.ensure_commitment("alice")
        assert first == second
        assert SeedPair.objects.count() == 1

    def test_current_never_includes_secret(self) -> None:
        services.ensure_commitment("alice")
        assert set(services.current_commitment("alice")) == {"server_seed_hash", "client_seed", "nonce"}

    def test_current_unknown_player(self) -> None:
        with pytest.raises(services.SeedPairNotFound):
            services.current_commitment("nobody")

    def test_set_client_seed_keeps_nonce(self) -> None:
        services.ensure_commitment("alice")
        services.allocate_nonce("alice")
        state = services.set_client_seed("alice", "lucky-seven")
        assert state["client_seed"] == "lucky-seven"
        assert state["nonce"] == 1

    def test_set_client_seed_rejects_empty(self) -> None:
        services.ensure_commitment("alice")
        with pytest.raises(InvalidParameter):
            services.set_client_seed("alice", "")

    def test_no_previous_before_rotation(self) -> None:
        services.ensure_commitment("alice")
        assert services.previous_commitment("alice") is None


class TestAllocateNonce:
    def test_reads_then_increments(self) -> None:
        before = services.ensure_commitment("alice")
        frozen, next_nonce = services.allocate_nonce("alice")
        assert frozen.nonce == 0
        assert next_nonce == 1
        assert frozen.server_seed_hash == before["server_seed_hash"]
        assert sha256_hex(frozen.server_seed) == frozen.server_seed_hash
        assert services.current_commitment("alice")["nonce"] == 1

    def test_sequential_allocations_are_unique(self) -> None:
        services.ensure_commitment("alice")
        nonces = [services.allocate_nonce("alice")[0].nonce for _ in range(10)]
        assert nonces == list(range(10))

    def test_unknown_player(self) -> None:
        with pytest.raises(services.SeedPairNotFound):
            services.allocate_nonce("nobody")

    def test_retries_against_rotated_tuple(self, monkeypatch) -> None:
        services.ensure_commitment("alice")
        replacement = generate_server_seed()
        original = services._get_seed_pair_for_update
        calls = []

        def racing(player_id):
            pair = original(player_id)
            calls.append(pair.server_seed_hash)
            if len(calls) == 1:
                # Another writer replaces the commitment after our read
                SeedPair.objects.filter(pk=pair.pk).update(
                    server_seed=replacement,
                    server_seed_hash=sha256_hex(replacement),
                    nonce=0,
                )
            return pair

        monkeypatch.setattr(services, "_get_seed_pair_for_update", racing)

        frozen, next_nonce = services.allocate_nonce("alice")
        assert len(calls) == 2
        assert frozen.server_seed == replacement
        assert frozen.server_seed_hash == sha256_hex(replacement)
        assert frozen.nonce == 0
        assert next_nonce == 1

    def test_gives_up_after_configured_attempts(self, settings) -> None:
        settings.MINES_NONCE_ALLOCATION_RETRIES = 0
        services.ensure_commitment("alice")
        with pytest.raises(services.NonceAllocationConflict):
            services.allocate_nonce("alice")


class TestRotation:
    def test_reveals_old_and_commits_new(self) -> None:
        services.ensure_commitment("alice")
        services.set_client_seed("alice", "mine")
        services.allocate_nonce("alice")
        services.allocate_nonce("alice")
        old = SeedPair.objects.get(player_id="alice")

        rotation = services.rotate_seed_pair("alice", "fresh")

        assert rotation["revealed_server_seed"] == old.server_seed
        assert rotation["revealed_server_seed_hash"] == old.server_seed_hash
        assert rotation["revealed_client_seed"] == "mine"
        assert rotation["revealed_final_nonce"] == 2
        assert rotation["new_client_seed"] == "fresh"
        assert rotation["new_nonce"] == 0
        assert rotation["new_server_seed_hash"] != old.server_seed_hash

        current = services.current_commitment("alice")
        assert current == {
            "server_seed_hash": rotation["new_server_seed_hash"],
            "client_seed": "fresh",
            "nonce": 0,
        }
        pair = SeedPair.objects.get(player_id="alice")
        assert sha256_hex(pair.server_seed) == pair.server_seed_hash

    def test_default_client_seed_is_generated(self) -> None:
        services.ensure_commitment("alice")
        services.allocate_nonce("alice")
        rotation = services.rotate_seed_pair("alice")
        assert rotation["new_client_seed"]
        assert rotation["new_nonce"] == 0
        assert services.current_commitment("alice")["nonce"] == 0

    def test_previous_is_latest_reveal(self) -> None:
        services.ensure_commitment("alice")
        services.rotate_seed_pair("alice")
        second = services.rotate_seed_pair("alice")

        previous = services.previous_commitment("alice")
        assert previous["server_seed"] == second["revealed_server_seed"]
        assert previous["final_nonce"] == second["revealed_final_nonce"]
        assert RevealedSeedPair.objects.filter(player_id="alice").count() == 2

    def test_rejects_empty_client_seed(self) -> None:
        services.ensure_commitment("alice")
        with pytest.raises(InvalidParameter):
            services.rotate_seed_pair("alice", "")
        assert RevealedSeedPair.objects.count() == 0

    def test_unknown_player(self) -> None:
        with pytest.raises(services.SeedPairNotFound):
            services.rotate_seed_pair("nobody")

    def test_refused_while_round_active(self) -> None:
        services.allocate_round("alice", 25, 3)
        with pytest.raises(services.RoundInProgress):
            services.rotate_seed_pair("alice")
        assert RevealedSeedPair.objects.count() == 0


class TestRounds:
    def test_allocate_round_freezes_tuple(self) -> None:
        started = services.allocate_round("alice", 25, 3)
        pair = SeedPair.objects.get(player_id="alice")

        assert started["nonce"] == 0
        assert started["next_nonce"] == 1
        assert started["server_seed_hash"] == pair.server_seed_hash
        assert started["mine_positions"] == generate_mine_positions(
            pair.server_seed, pair.client_seed, 0, 25, 3
        )
        assert "server_seed" not in started

        game = MinesRound.objects.get(id=started["round_id"])
        assert game.mine_positions == started["mine_positions"]
        assert game.status == MinesRound.STATUS_ACTIVE

    def test_round_keeps_tuple_after_client_seed_change(self) -> None:
        started = services.allocate_round("alice", 25, 3)
        services.set_client_seed("alice", "changed")
        game = MinesRound.objects.get(id=started["round_id"])
        assert game.client_seed == started["client_seed"] != "changed"

    def test_invalid_board_does_not_consume_nonce(self) -> None:
        services.ensure_commitment("alice")
        with pytest.raises(InvalidParameter):
            services.allocate_round("alice", 25, 25)
        with pytest.raises(InvalidParameter):
            services.allocate_round("alice", MAX_BOARD_SIZE + 1, 3)
        assert services.current_commitment("alice")["nonce"] == 0

    def test_reveal_safe_tile_updates_multiplier(self) -> None:
        started = services.allocate_round("alice", 25, 3)
        tile = _first_safe_tile(started)

        data = services.reveal_tile("alice", started["round_id"], tile)

        assert data["is_mine"] is False
        assert data["status"] == MinesRound.STATUS_ACTIVE
        assert data["revealed_tiles"] == [tile]
        assert data["current_multiplier"] == pytest.approx(25 / 22 * 2)
        assert "mine_positions" not in data

    def test_reveal_mine_loses(self) -> None:
        started = services.allocate_round("alice", 25, 3)
        data = _lose("alice", started)
        assert data["is_mine"] is True
        assert data["status"] == MinesRound.STATUS_LOST
        assert data["mine_positions"] == started["mine_positions"]

    def test_reveal_rejects_repeats_and_out_of_range(self) -> None:
        started = services.allocate_round("alice", 25, 3)
        tile = _first_safe_tile(started)
        services.reveal_tile("alice", started["round_id"], tile)
        with pytest.raises(InvalidParameter):
            services.reveal_tile("alice", started["round_id"], tile)
        with pytest.raises(InvalidParameter):
            services.reveal_tile("alice", started["round_id"], 25)

    def test_reveal_on_finished_round(self) -> None:
        started = services.allocate_round("alice", 25, 3)
        _lose("alice", started)
        with pytest.raises(services.RoundStateError):
            services.reveal_tile("alice", started["round_id"], _first_safe_tile(started))

    def test_clearing_every_safe_tile_ends_round(self) -> None:
        started = services.allocate_round("alice", 25, 24)
        data = services.reveal_tile("alice", started["round_id"], _first_safe_tile(started))
        assert data["status"] == MinesRound.STATUS_CASHED
        assert data["current_multiplier"] == 312.5

    def test_cash_out(self) -> None:
        started = services.allocate_round("alice", 25, 3)
        with pytest.raises(services.RoundStateError):
            services.cash_out("alice", started["round_id"])

        services.reveal_tile("alice", started["round_id"], _first_safe_tile(started))
        data = services.cash_out("alice", started["round_id"])
        assert data["status"] == MinesRound.STATUS_CASHED
        assert data["mine_positions"] == started["mine_positions"]

        with pytest.raises(services.RoundStateError):
            services.cash_out("alice", started["round_id"])

    def test_other_players_round_is_not_found(self) -> None:
        started = services.allocate_round("alice", 25, 3)
        with pytest.raises(services.RoundNotFound):
            services.reveal_tile("bob", started["round_id"], 0)
        with pytest.raises(services.RoundNotFound):
            services.round_details("bob", started["round_id"])

    def test_malformed_round_id_is_not_found(self) -> None:
        services.allocate_round("alice", 25, 3)
        with pytest.raises(services.RoundNotFound):
            services.round_details("alice", "not-a-uuid")
        with pytest.raises(services.RoundNotFound):
            services.reveal_tile("alice", "not-a-uuid", 1)
        with pytest.raises(services.RoundNotFound):
            services.cash_out("alice", "not-a-uuid")

    def test_round_details_hides_mines_while_active(self) -> None:
        started = services.allocate_round("alice", 25, 3)
        assert "mine_positions" not in services.round_details("alice", started["round_id"])
        _lose("alice", started)
        assert services.round_details("alice", started["round_id"])["mine_positions"] == started["mine_positions"]

    def test_history(self) -> None:
        for _ in range(3):
            _lose("alice", services.allocate_round("alice", 25, 3))
        history = services.round_history("alice", limit=2)
        assert history["total"] == 3
        assert len(history["rounds"]) == 2
        assert [r["nonce"] for r in history["rounds"]] == [2, 1]
        assert all("server_seed" not in r for r in history["rounds"])


class TestVerifyStoredRound:
    def test_not_yet_revealed(self) -> None:
        started = services.allocate_round("alice", 25, 3)
        _lose("alice", started)
        with pytest.raises(services.NotYetRevealed):
            services.verify_mines_round(started["round_id"])

    def test_active_round_cannot_be_verified(self) -> None:
        started = services.allocate_round("alice", 25, 3)
        with pytest.raises(services.RoundInProgress):
            services.verify_mines_round(started["round_id"])

    def test_unknown_round(self) -> None:
        with pytest.raises(services.RoundNotFound):
            services.verify_mines_round(uuid.uuid4())
        with pytest.raises(services.RoundNotFound):
            services.verify_mines_round("not-a-uuid")

    def test_verified_after_rotation(self) -> None:
        rounds = []
        for _ in range(3):
            started = services.allocate_round("alice", 25, 5)
            _lose("alice", started)
            rounds.append(started)

        rotation = services.rotate_seed_pair("alice")
        assert rotation["revealed_final_nonce"] == 3

        for started in rounds:
            result = services.verify_mines_round(started["round_id"])
            assert result["verified"] is True
            assert result["hash_matches"] is True
            assert result["positions_match"] is True
            assert result["server_seed"] == rotation["revealed_server_seed"]
            assert result["nonce"] <= rotation["revealed_final_nonce"]

    def test_older_commitments_stay_verifiable(self) -> None:
        started = services.allocate_round("alice", 25, 3)
        _lose("alice", started)
        services.rotate_seed_pair("alice")
        services.rotate_seed_pair("alice")
        assert services.verify_mines_round(started["round_id"])["verified"] is True

    def test_rounds_on_new_commitment_wait_for_next_rotation(self) -> None:
        services.ensure_commitment("alice")
        services.rotate_seed_pair("alice")
        started = services.allocate_round("alice", 25, 3)
        _lose("alice", started)
        with pytest.raises(services.NotYetRevealed):
            services.verify_mines_round(started["round_id"])

    def test_tampered_round_fails(self) -> None:
        started = services.allocate_round("alice", 25, 3)
        _lose("alice", started)
        services.rotate_seed_pair("alice")

        safe = [t for t in range(25) if t not in started["mine_positions"]][:3]
        MinesRound.objects.filter(id=started["round_id"]).update(mine_positions=safe)

        result = services.verify_mines_round(started["round_id"])
        assert result["hash_matches"] is True
        assert result["positions_match"] is False
        assert result["verified"] is False

    def test_reports_revealed_and_safe_tiles(self) -> None:
        started = services.allocate_round("alice", 25, 3)
        safe = _first_safe_tile(started)
        services.reveal_tile("alice", started["round_id"], safe)
        services.cash_out("alice", started["round_id"])
        services.rotate_seed_pair("alice")

        result = services.verify_mines_round(started["round_id"])
        assert result["revealed_tiles"] == [safe]
        assert len(result["safe_tiles"]) == 22
        assert set(result["safe_tiles"]).isdisjoint(started["mine_positions"])
        assert sorted(result["safe_tiles"] + started["mine_positions"]) == list(range(25))

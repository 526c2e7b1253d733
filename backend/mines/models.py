# mines/models.py
from __future__ import annotations

import uuid
from django.db import models


class SeedPair(models.Model):
    """
    The player's live commitment. server_seed stays hidden until rotation.
    """
    player_id = models.CharField(max_length=64, unique=True)

    server_seed = models.CharField(max_length=64)
    server_seed_hash = models.CharField(max_length=64, db_index=True)  # sha256(server_seed)
    client_seed = models.CharField(max_length=128)
    nonce = models.PositiveBigIntegerField(default=0)  # next nonce to allocate

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def public_state(self) -> dict:
        return {
            "server_seed_hash": self.server_seed_hash,
            "client_seed": self.client_seed,
            "nonce": self.nonce,
        }

    def __str__(self) -> str:
        return f"SeedPair {self.player_id} @ nonce {self.nonce}"


class RevealedSeedPair(models.Model):
    """
    A rotated-out commitment. Public, never modified after creation.
    """
    player_id = models.CharField(max_length=64, db_index=True)

    server_seed = models.CharField(max_length=64)
    server_seed_hash = models.CharField(max_length=64, unique=True)
    client_seed = models.CharField(max_length=128)
    final_nonce = models.PositiveBigIntegerField()

    revealed_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["-revealed_at", "-id"]
        indexes = [
            models.Index(fields=["player_id", "revealed_at"], name="mines_reveal_player_at_idx"),
        ]

    def public_state(self) -> dict:
        return {
            "server_seed": self.server_seed,
            "server_seed_hash": self.server_seed_hash,
            "client_seed": self.client_seed,
            "final_nonce": self.final_nonce,
        }

    def __str__(self) -> str:
        return f"Revealed {self.server_seed_hash[:12]} ({self.player_id})"


class MinesRound(models.Model):
    STATUS_ACTIVE = "active"
    STATUS_LOST = "lost"
    STATUS_CASHED = "cashed_out"

    STATUS_CHOICES = [
        (STATUS_ACTIVE, "Active"),
        (STATUS_LOST, "Lost"),
        (STATUS_CASHED, "Cashed Out"),
    ]

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    player_id = models.CharField(max_length=64, db_index=True)

    # Tuple frozen at creation
    server_seed_hash = models.CharField(max_length=64)
    client_seed = models.CharField(max_length=128)
    nonce = models.PositiveBigIntegerField()
    board_size = models.PositiveIntegerField(default=25)
    mine_count = models.PositiveIntegerField()
    mine_positions = models.JSONField(default=list)

    revealed_tiles = models.JSONField(default=list)
    status = models.CharField(max_length=16, choices=STATUS_CHOICES, default=STATUS_ACTIVE, db_index=True)
    current_multiplier = models.FloatField(default=1.0)

    created_at = models.DateTimeField(auto_now_add=True)
    finished_at = models.DateTimeField(null=True, blank=True)

    class Meta:
        ordering = ["-created_at"]
        constraints = [
            models.UniqueConstraint(
                fields=["server_seed_hash", "nonce"],
                name="mines_round_unique_seed_nonce",
            ),
        ]
        indexes = [
            models.Index(fields=["player_id", "created_at"], name="mines_round_player_at_idx"),
            models.Index(fields=["player_id", "status"], name="mines_round_player_status_idx"),
        ]

    @property
    def is_active(self) -> bool:
        return self.status == self.STATUS_ACTIVE

    def __str__(self) -> str:
        return f"MinesRound {self.id} ({self.status})"

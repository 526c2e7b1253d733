# mines/admin.py
from django.contrib import admin
from .models import SeedPair, RevealedSeedPair, MinesRound

@admin.register(SeedPair)
class SeedPairAdmin(admin.ModelAdmin):
    list_display = ("player_id", "server_seed_hash", "client_seed", "nonce", "updated_at")
    search_fields = ("player_id", "server_seed_hash")
    exclude = ("server_seed",)
    readonly_fields = ("server_seed_hash", "nonce", "created_at", "updated_at")

@admin.register(RevealedSeedPair)
class RevealedSeedPairAdmin(admin.ModelAdmin):
    list_display = ("player_id", "server_seed_hash", "client_seed", "final_nonce", "revealed_at")
    search_fields = ("player_id", "server_seed_hash")
    readonly_fields = ("player_id", "server_seed", "server_seed_hash", "client_seed", "final_nonce", "revealed_at")

@admin.register(MinesRound)
class MinesRoundAdmin(admin.ModelAdmin):
    list_display = ("id", "player_id", "board_size", "mine_count", "status", "current_multiplier", "nonce", "created_at")
    list_filter = ("status", "mine_count")
    search_fields = ("id", "player_id", "server_seed_hash")
    readonly_fields = ("server_seed_hash", "client_seed", "nonce", "mine_positions", "created_at", "finished_at")

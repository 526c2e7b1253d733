# mines/serializers.py
from __future__ import annotations

from django.conf import settings
from rest_framework import serializers

from .engine import MAX_BOARD_SIZE


def _max_board_size() -> int:
    return min(getattr(settings, "MINES_MAX_BOARD_SIZE", 100), MAX_BOARD_SIZE)


def _default_board_size() -> int:
    return getattr(settings, "MINES_DEFAULT_BOARD_SIZE", 25)


class BoardIn(serializers.Serializer):
    board_size = serializers.IntegerField(min_value=2, required=False)
    mine_count = serializers.IntegerField(min_value=1)

    def validate_board_size(self, value):
        if value > _max_board_size():
            raise serializers.ValidationError(f"Board size cannot exceed {_max_board_size()}")
        return value

    def validate(self, attrs):
        attrs.setdefault("board_size", _default_board_size())
        if attrs["mine_count"] >= attrs["board_size"]:
            raise serializers.ValidationError(
                {"mine_count": f"Mine count must be between 1 and {attrs['board_size'] - 1}"}
            )
        return attrs


class ClientSeedIn(serializers.Serializer):
    client_seed = serializers.CharField(max_length=128, trim_whitespace=False)


class RotateIn(serializers.Serializer):
    client_seed = serializers.CharField(max_length=128, required=False, trim_whitespace=False)


class RevealTileIn(serializers.Serializer):
    tile = serializers.IntegerField(min_value=0)


class HistoryIn(serializers.Serializer):
    limit = serializers.IntegerField(min_value=1, max_value=100, required=False)
    offset = serializers.IntegerField(min_value=0, default=0)


class VerifyIn(BoardIn):
    server_seed = serializers.CharField(max_length=128, trim_whitespace=False)
    server_seed_hash = serializers.RegexField(r"^[0-9a-f]{64}$")
    client_seed = serializers.CharField(max_length=128, trim_whitespace=False)
    nonce = serializers.IntegerField(min_value=0)
    mine_positions = serializers.ListField(
        child=serializers.IntegerField(min_value=0),
        allow_empty=True,
    )


class CommitmentOut(serializers.Serializer):
    server_seed_hash = serializers.CharField()
    client_seed = serializers.CharField()
    nonce = serializers.IntegerField()


class RevealedCommitmentOut(serializers.Serializer):
    server_seed = serializers.CharField()
    server_seed_hash = serializers.CharField()
    client_seed = serializers.CharField()
    final_nonce = serializers.IntegerField()


class RoundStartOut(serializers.Serializer):
    round_id = serializers.UUIDField()
    server_seed_hash = serializers.CharField()
    client_seed = serializers.CharField()
    nonce = serializers.IntegerField()
    next_nonce = serializers.IntegerField()
    board_size = serializers.IntegerField()
    mine_count = serializers.IntegerField()

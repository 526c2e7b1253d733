# mines/views.py
from __future__ import annotations

from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import AllowAny
from rest_framework.response import Response

from . import services
from .engine import multiplier_table
from .permissions import PlayerAccess
from .provably_fair import InvalidParameter, verify_round
from .serializers import (
    BoardIn,
    ClientSeedIn,
    CommitmentOut,
    HistoryIn,
    RevealedCommitmentOut,
    RevealTileIn,
    RotateIn,
    RoundStartOut,
    VerifyIn,
)


def _error(exc: Exception, http_status: int, **extra) -> Response:
    return Response({"detail": str(exc), **extra}, status=http_status)


def _translate(exc: Exception) -> Response:
    if isinstance(exc, InvalidParameter):
        return _error(exc, status.HTTP_400_BAD_REQUEST)
    if isinstance(exc, (services.SeedPairNotFound, services.RoundNotFound)):
        return _error(exc, status.HTTP_404_NOT_FOUND)
    if isinstance(exc, services.NotYetRevealed):
        return _error(exc, status.HTTP_409_CONFLICT, can_verify=False)
    return _error(exc, status.HTTP_409_CONFLICT)


_HANDLED = (InvalidParameter, services.FairnessError)


# =====================================================
# SEEDS
# =====================================================

@api_view(["GET", "POST"])
@permission_classes([PlayerAccess])
def seeds(request, player_id):
    if request.method == "POST":
        state = services.ensure_commitment(player_id)
        return Response({"current": CommitmentOut(state).data})

    try:
        current = services.current_commitment(player_id)
    except services.SeedPairNotFound as e:
        return _translate(e)

    previous = services.previous_commitment(player_id)
    return Response({
        "current": CommitmentOut(current).data,
        "previous": RevealedCommitmentOut(previous).data if previous else None,
    })


@api_view(["PUT"])
@permission_classes([PlayerAccess])
def update_client_seed(request, player_id):
    serializer = ClientSeedIn(data=request.data)
    serializer.is_valid(raise_exception=True)

    try:
        state = services.set_client_seed(player_id, serializer.validated_data["client_seed"])
    except _HANDLED as e:
        return _translate(e)

    return Response({"current": CommitmentOut(state).data})


@api_view(["POST"])
@permission_classes([PlayerAccess])
def rotate(request, player_id):
    serializer = RotateIn(data=request.data)
    serializer.is_valid(raise_exception=True)

    try:
        rotation = services.rotate_seed_pair(
            player_id, serializer.validated_data.get("client_seed")
        )
    except _HANDLED as e:
        return _translate(e)

    return Response({
        "revealed": {
            "server_seed": rotation["revealed_server_seed"],
            "server_seed_hash": rotation["revealed_server_seed_hash"],
            "client_seed": rotation["revealed_client_seed"],
            "final_nonce": rotation["revealed_final_nonce"],
        },
        "next": {
            "server_seed_hash": rotation["new_server_seed_hash"],
            "client_seed": rotation["new_client_seed"],
            "nonce": rotation["new_nonce"],
        },
    })


# =====================================================
# ROUNDS
# =====================================================

@api_view(["GET", "POST"])
@permission_classes([PlayerAccess])
def rounds(request, player_id):
    if request.method == "GET":
        serializer = HistoryIn(data=request.query_params)
        serializer.is_valid(raise_exception=True)
        return Response(services.round_history(player_id, **serializer.validated_data))

    serializer = BoardIn(data=request.data)
    serializer.is_valid(raise_exception=True)

    try:
        started = services.allocate_round(
            player_id,
            serializer.validated_data["board_size"],
            serializer.validated_data["mine_count"],
        )
    except _HANDLED as e:
        return _translate(e)

    # mine_positions stays server-side until the round ends
    return Response(RoundStartOut(started).data, status=status.HTTP_201_CREATED)


@api_view(["GET"])
@permission_classes([PlayerAccess])
def round_detail(request, player_id, round_id):
    try:
        return Response(services.round_details(player_id, round_id))
    except services.RoundNotFound as e:
        return _translate(e)


@api_view(["POST"])
@permission_classes([PlayerAccess])
def reveal(request, player_id, round_id):
    serializer = RevealTileIn(data=request.data)
    serializer.is_valid(raise_exception=True)

    try:
        data = services.reveal_tile(player_id, round_id, serializer.validated_data["tile"])
    except _HANDLED as e:
        return _translate(e)

    return Response(data)


@api_view(["POST"])
@permission_classes([PlayerAccess])
def cashout(request, player_id, round_id):
    try:
        return Response(services.cash_out(player_id, round_id))
    except _HANDLED as e:
        return _translate(e)


# =====================================================
# FAIRNESS
# =====================================================

@api_view(["GET"])
@permission_classes([AllowAny])
def verify_stored_round(request, round_id):
    try:
        return Response(services.verify_mines_round(round_id))
    except _HANDLED as e:
        return _translate(e)


@api_view(["POST"])
@permission_classes([AllowAny])
def verify(request):
    serializer = VerifyIn(data=request.data)
    serializer.is_valid(raise_exception=True)
    data = serializer.validated_data

    result = verify_round(
        data["server_seed"],
        data["client_seed"],
        data["nonce"],
        data["board_size"],
        data["mine_count"],
        data["mine_positions"],
        commitment_hash=data["server_seed_hash"],
    )
    return Response(result.as_dict())


@api_view(["GET"])
@permission_classes([AllowAny])
def multipliers(request):
    serializer = BoardIn(data=request.query_params)
    serializer.is_valid(raise_exception=True)
    board_size = serializer.validated_data["board_size"]
    mine_count = serializer.validated_data["mine_count"]

    return Response({
        "board_size": board_size,
        "mine_count": mine_count,
        "multipliers": multiplier_table(board_size, mine_count),
    })

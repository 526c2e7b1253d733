# mines/engine.py
from __future__ import annotations

import math
from typing import List

from .provably_fair import InvalidParameter, validate_board

RISK_BONUS_PER_EXTRA_MINE = 0.5

# Largest board whose full multiplier table stays within float range
MAX_BOARD_SIZE = 200


def risk_bonus(mine_count: int) -> float:
    return max(0.0, 1.0 + RISK_BONUS_PER_EXTRA_MINE * (mine_count - 1))


def safe_cell_count(board_size: int, mine_count: int) -> int:
    return board_size - mine_count


def validate_playable_board(board_size: int, mine_count: int) -> None:
    validate_board(board_size, mine_count)
    if board_size > MAX_BOARD_SIZE:
        raise InvalidParameter(f"board_size cannot exceed {MAX_BOARD_SIZE}")


def multiplier_for_reveals(safe_reveals: int, board_size: int, mine_count: int) -> float:
    """
    Payout multiplier after `safe_reveals` safe cells, whichever cells they were.

    Each step multiplies by (cells left / safe cells left) * risk_bonus.
    Stops early once no safe cell is left.
    """
    validate_playable_board(board_size, mine_count)
    if isinstance(safe_reveals, bool) or not isinstance(safe_reveals, int) or safe_reveals < 0:
        raise InvalidParameter("safe_reveals must be a non-negative integer")

    bonus = risk_bonus(mine_count)
    multiplier = 1.0
    for i in range(safe_reveals):
        remaining_cells = board_size - i
        remaining_safe = safe_cell_count(board_size, mine_count) - i
        if remaining_safe <= 0:
            break
        multiplier *= (remaining_cells / remaining_safe) * bonus

    if not math.isfinite(multiplier):
        raise InvalidParameter(f"multiplier overflows for {mine_count} mines on {board_size} cells")
    return multiplier


def multiplier_table(board_size: int, mine_count: int) -> List[float]:
    validate_playable_board(board_size, mine_count)
    return [
        multiplier_for_reveals(n, board_size, mine_count)
        for n in range(safe_cell_count(board_size, mine_count) + 1)
    ]

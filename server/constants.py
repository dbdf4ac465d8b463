"""
Rule constants for Cribbage.

This module is the single source of truth for card values and point awards.
Match defaults here are the standard rules; a server overrides them per
table from config.py.

Card Values:
    - Pip value (counting/pegging): A=1, 2-10 face value, J/Q/K=10
    - Run order: A=1 ... K=13 (Ace is always low in runs)
    - Draw value (dealer selection only): A=14 high, K=13, Q=12, J=11
"""

# =============================================================================
# Card Values - Single Source of Truth
# =============================================================================

PIP_VALUES: dict[str, int] = {
    'A': 1,
    '2': 2,
    '3': 3,
    '4': 4,
    '5': 5,
    '6': 6,
    '7': 7,
    '8': 8,
    '9': 9,
    '10': 10,
    'J': 10,
    'Q': 10,
    'K': 10,
}

RANK_ORDER: dict[str, int] = {
    'A': 1, '2': 2, '3': 3, '4': 4, '5': 5, '6': 6, '7': 7,
    '8': 8, '9': 9, '10': 10, 'J': 11, 'Q': 12, 'K': 13,
}

DRAW_VALUES: dict[str, int] = {**RANK_ORDER, 'A': 14}


# =============================================================================
# Dealing
# =============================================================================

MIN_PLAYERS = 2
MAX_PLAYERS = 4

CARDS_PER_PLAYER: dict[int, int] = {
    2: 6,  # Each gets 6, discards 2
    3: 5,  # Each gets 5, discards 1, one card from the stock completes the crib
    4: 5,  # Each gets 5, discards 1
}

DISCARD_COUNT: dict[int, int] = {
    2: 2,
    3: 1,
    4: 1,
}

CRIB_SIZE = 4
HAND_SIZE = 4


# =============================================================================
# Point Awards
# =============================================================================

PEGGING_LIMIT = 31
FIFTEEN = 15

FIFTEEN_POINTS = 2
THIRTY_ONE_POINTS = 2
PAIR_POINTS = 2
GO_POINTS = 1
LAST_CARD_POINTS = 1
HIS_HEELS_POINTS = 2
NOBS_POINTS = 1
MIN_RUN_LENGTH = 3


# =============================================================================
# Match Defaults (standard rules)
# =============================================================================

POINTS_TO_WIN = 121
SKUNK_THRESHOLD = 91
DOUBLE_SKUNK_THRESHOLD = 61
DEFAULT_ANTE = 1

SKUNK_MULTIPLIER = 2
DOUBLE_SKUNK_MULTIPLIER = 3

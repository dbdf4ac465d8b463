"""Stores package for Cribbage table persistence."""

from .hand_store import HandStore, ConcurrencyError, get_hand_store, close_hand_store
from .state_cache import StateCache, get_state_cache, close_state_cache

__all__ = [
    # Hand store
    "HandStore",
    "ConcurrencyError",
    "get_hand_store",
    "close_hand_store",
    # State cache
    "StateCache",
    "get_state_cache",
    "close_state_cache",
]

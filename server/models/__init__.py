"""Models package for the Cribbage table server."""

from .events import EventType, HandEvent
from .hand_state import (
    CribbageHandState,
    CribbagePhase,
    CountStep,
    HandCount,
    HandRules,
    PeggingState,
    PlayedCard,
    PlayerHandState,
    compute_payout_multiplier,
)

__all__ = [
    "EventType",
    "HandEvent",
    "CribbageHandState",
    "CribbagePhase",
    "CountStep",
    "HandCount",
    "HandRules",
    "PeggingState",
    "PlayedCard",
    "PlayerHandState",
    "compute_payout_multiplier",
]

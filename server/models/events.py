"""
Event definitions for Cribbage hand history.

Every engine command emits one or more HandEvents describing what happened
(cards discarded, points pegged, hands counted). They serve two consumers:
- The presentation layer, which narrates the most recent scoring event
- The hand-history log, which stores every event for replay and audit

Sequence numbers come from a per-hand counter inside the snapshot, so every
client that applies the same command produces the same numbers. The store
uses (hand_id, sequence_num) as a dedupe key.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Optional


class EventType(str, Enum):
    """All possible event types in a Cribbage hand."""

    # Lifecycle events
    HAND_DEALT = "hand_dealt"
    CRIB_DISCARD = "crib_discard"
    CUT_CARD = "cut_card"
    HAND_COUNTED = "hand_counted"
    GAME_WON = "game_won"

    # Scoring events
    HIS_HEELS = "his_heels"
    PEGGING_PLAY = "pegging_play"
    GO_CALLED = "go_called"
    GO_POINT = "go_point"
    HAND_SCORING = "hand_scoring"
    CRIB_SCORING = "crib_scoring"


# Events that replace the narration line even when they score nothing
NARRATED_EVENTS = {
    EventType.GO_CALLED,
    EventType.GO_POINT,
    EventType.HAND_COUNTED,
    EventType.GAME_WON,
}


@dataclass
class HandEvent:
    """
    A record of something that happened during a hand.

    Attributes:
        event_type: The type of event (from EventType enum).
        hand_id: UUID of the hand this event belongs to.
        sequence_num: Monotonically increasing sequence number within the hand.
        player_id: ID of the player the event concerns (if applicable).
        points: Points awarded by this event (0 if none).
        label: Short narration label (e.g. "15 + Pair", "Go", "His Heels").
        data: Event-specific payload data.
    """

    event_type: EventType
    hand_id: str
    sequence_num: int
    player_id: Optional[str] = None
    points: int = 0
    label: str = ""
    data: dict = field(default_factory=dict)

    @property
    def is_narrated(self) -> bool:
        """Whether this event should become the table's last_event."""
        return self.points > 0 or self.event_type in NARRATED_EVENTS

    def to_dict(self) -> dict:
        """Serialize event to dictionary for JSON storage."""
        return {
            "event_type": self.event_type.value,
            "hand_id": self.hand_id,
            "sequence_num": self.sequence_num,
            "player_id": self.player_id,
            "points": self.points,
            "label": self.label,
            "data": self.data,
        }

    @classmethod
    def from_dict(cls, d: dict) -> "HandEvent":
        """Deserialize event from dictionary."""
        return cls(
            event_type=EventType(d["event_type"]),
            hand_id=d["hand_id"],
            sequence_num=d["sequence_num"],
            player_id=d.get("player_id"),
            points=d.get("points", 0),
            label=d.get("label", ""),
            data=d.get("data", {}),
        )

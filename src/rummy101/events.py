"""Discrete signals emitted by transitions, for sound/notification layers."""
from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict


class EventKind(Enum):
    ROUND_DEALT = "round_dealt"
    CARD_DRAWN = "card_drawn"
    DECK_RECYCLED = "deck_recycled"
    MELD_FORMED = "meld_formed"
    JOKER_RETRIEVED = "joker_retrieved"
    CARD_DISCARDED = "card_discarded"
    JOKER_PENALTY = "joker_penalty"
    ROUND_WON = "round_won"
    DRAW_GAME = "draw_game"
    GAME_OVER = "game_over"


@dataclass(frozen=True)
class GameEvent:
    kind: EventKind
    seat: int | None = None
    data: Dict[str, Any] = field(default_factory=dict)

"""
Match state: players, piles, table melds, pots and phase.

Only ``rummy101.game`` mutates these objects, and only on a private copy;
callers always receive a fresh state from a transition.
"""
from __future__ import annotations

import copy
from collections import Counter
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Iterator, List, Tuple

from .config import MatchConfig
from .deck import CARD_UNIVERSE, Card
from .errors import CardConservationError
from .melds import Meld, MeldKind


class Phase(Enum):
    DRAW = "draw"
    ACTION = "action"  # melding / processing, ends with a discard
    ROUND_OVER = "round_over"
    GAME_OVER = "game_over"


class OpeningKind(Enum):
    SERIES = "series"  # >= 2 runs/sets
    PAIRS = "pairs"  # >= 4 pairs, doubles the round multiplier


class DrawSource(Enum):
    DECK = "deck"
    DISCARD = "discard"


MIN_SERIES_TO_OPEN = 2
MIN_PAIRS_TO_OPEN = 4


def opening_kind_for(kind: MeldKind) -> OpeningKind:
    return OpeningKind.PAIRS if kind is MeldKind.PAIR else OpeningKind.SERIES


@dataclass
class Player:
    seat: int
    name: str
    is_bot: bool
    chips: int
    hand: List[Card] = field(default_factory=list)
    staged: List[Meld] = field(default_factory=list)  # private melds awaiting the opening confirmation
    round_score: int = 0
    cumulative_score: int = 0
    has_opened: bool = False
    just_opened: bool = False  # opened during the current turn: discard must respect the ceiling
    opening_kind: OpeningKind | None = None
    is_eliminated: bool = False  # over the ceiling, resolved at the next round setup
    is_bankrupt: bool = False  # permanent

    def find_card(self, card_id: int) -> Card | None:
        for c in self.hand:
            if c.id == card_id:
                return c
        return None

    @property
    def staged_kind(self) -> OpeningKind | None:
        if not self.staged:
            return None
        return opening_kind_for(self.staged[0].kind)

    def reset_for_round(self) -> None:
        self.hand = []
        self.staged = []
        self.round_score = 0
        self.has_opened = False
        self.just_opened = False
        self.opening_kind = None


@dataclass
class MatchState:
    config: MatchConfig
    players: List[Player]
    deck: List[Card] = field(default_factory=list)  # top of the draw pile = last element
    discard_pile: List[Card] = field(default_factory=list)  # top = last element
    committed_melds: List[Meld] = field(default_factory=list)
    active_seat: int = 0
    phase: Phase = Phase.DRAW
    round_number: int = 1
    round_pot: int = 0
    grand_pot: int = 0
    round_starter_seat: int = 0
    winner_seat: int | None = None
    message_key: str = ""
    message_args: Dict[str, Any] = field(default_factory=dict)
    pot_split: List[Tuple[int, int]] = field(default_factory=list)  # (seat, amount) of the final payout
    next_meld_id: int = 1

    @property
    def max_rounds(self) -> int:
        return self.config.max_rounds

    @property
    def score_ceiling(self) -> int:
        return self.config.score_ceiling

    @property
    def active_player(self) -> Player:
        return self.players[self.active_seat]

    @property
    def discard_top(self) -> Card | None:
        return self.discard_pile[-1] if self.discard_pile else None

    @property
    def is_terminal(self) -> bool:
        return self.phase in (Phase.ROUND_OVER, Phase.GAME_OVER)

    def find_meld(self, meld_id: int) -> int | None:
        """Index of a committed meld by id."""
        for i, m in enumerate(self.committed_melds):
            if m.id == meld_id:
                return i
        return None

    def allocate_meld_id(self) -> int:
        meld_id = self.next_meld_id
        self.next_meld_id += 1
        return meld_id

    def eliminated_flags(self) -> List[bool]:
        return [p.is_eliminated or p.is_bankrupt for p in self.players]

    def iter_cards(self) -> Iterator[Card]:
        """Every card currently in play, wherever it sits."""
        yield from self.deck
        yield from self.discard_pile
        for p in self.players:
            yield from p.hand
            for m in p.staged:
                yield from m.cards
        for m in self.committed_melds:
            yield from m.cards

    def copy(self) -> "MatchState":
        return copy.deepcopy(self)


def check_conservation(state: MatchState) -> None:
    """Raise CardConservationError unless every card id of the shoe is present exactly once."""
    counts = Counter(c.id for c in state.iter_cards())
    duplicated = sorted(cid for cid, n in counts.items() if n > 1)
    missing = sorted(CARD_UNIVERSE - counts.keys())
    unknown = sorted(counts.keys() - CARD_UNIVERSE)
    if duplicated or missing or unknown:
        raise CardConservationError(
            f"Card conservation violated: duplicated={duplicated} missing={missing} unknown={unknown}"
        )

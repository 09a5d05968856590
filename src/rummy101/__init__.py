"""Rummy 101 game engine (two-deck shoe, four seats, chips and pots)."""

__version__ = "0.1.0"

from .deck import Card, Suit, make_shoe_106, card_by_id
from .deal import build_shoe, deal_hands, recycle_discard_pile
from .melds import Meld, MeldKind, classify, organize_run, attach_card, attach_pair, retrieve_joker
from .scoring import can_open, within_ceiling, round_multiplier, hand_value
from .solver import find_best_melds, find_pairs, choose_discard, card_utility
from .config import MatchConfig
from .errors import CardConservationError, Rejection, RuleViolation
from .events import EventKind, GameEvent
from .state import MatchState, Player, Phase, OpeningKind, DrawSource, check_conservation
from .game import (
    DrawCard,
    StageMeld,
    ConfirmOpening,
    CancelStaged,
    Discard,
    ProcessOntoMeld,
    TimeoutAdvance,
    Transition,
    apply,
    advance_on_timeout,
    start_match,
    next_round,
)
from .bot import play_bot_turn, run_bot_match
from .table import Table, TurnScheduler

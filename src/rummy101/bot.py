"""
Bot turn driver: plays a full turn for the active seat through the same
validated commands a human uses, with the solver choosing the moves.

A bot turn is: draw (discard top when it is useful, else the deck), up to
MAX_ACTION_PASSES meld/process passes, then a discard. Any rejected bot
command falls back to the timeout default so the turn always completes.
"""
from __future__ import annotations

import logging
import random
from typing import List, NamedTuple, Sequence

from .config import MatchConfig, all_bots_config
from .deck import Card
from .errors import Rejection, RuleViolation
from .events import GameEvent
from .game import (
    CancelStaged,
    Command,
    ConfirmOpening,
    Discard,
    DrawCard,
    ProcessOntoMeld,
    StageMeld,
    Transition,
    advance_on_timeout,
    apply,
    next_round,
    start_match,
)
from .melds import attach_card, retrieve_joker
from .scoring import can_open
from .solver import choose_discard, find_best_melds, find_pairs, should_take_discard
from .state import MIN_PAIRS_TO_OPEN, MIN_SERIES_TO_OPEN, DrawSource, MatchState, OpeningKind, Phase

logger = logging.getLogger(__name__)

MAX_ACTION_PASSES = 15


class _Turn:
    """Running state of one bot turn: the latest MatchState plus the events emitted so far."""

    def __init__(self, state: MatchState, rng: random.Random | None) -> None:
        self.state = state
        self.seat = state.active_seat
        self.rng = rng
        self.events: List[GameEvent] = []

    @property
    def still_acting(self) -> bool:
        return self.state.phase is Phase.ACTION and self.state.active_seat == self.seat

    def try_command(self, command: Command) -> bool:
        result = apply(self.state, command, self.rng)
        if not result.ok:
            logger.debug("Bot seat %d: %r rejected (%s)", self.seat, command, result.rejection)
            return False
        self.state = result.state
        self.events.extend(result.events)
        return True

    def fallback(self, reason: str) -> None:
        logger.warning("Bot seat %d: %s, using the timeout default", self.seat, reason)
        result = advance_on_timeout(self.state, self.rng)
        self.state = result.state
        self.events.extend(result.events)

    def transition(self) -> Transition:
        return Transition(state=self.state, events=tuple(self.events))


def _ids(cards: Sequence[Card]) -> tuple[int, ...]:
    return tuple(c.id for c in cards)


def _draw(turn: _Turn) -> None:
    state = turn.state
    player = state.active_player
    top = state.discard_top
    source = DrawSource.DECK
    if top is not None and should_take_discard(top, player.hand, player.has_opened, state.committed_melds):
        source = DrawSource.DISCARD
    if not turn.try_command(DrawCard(seat=turn.seat, source=source)):
        turn.fallback(f"draw from {source.value} rejected")


def _stage_and_confirm(turn: _Turn, groups: Sequence[Sequence[Card]]) -> bool:
    for group in groups:
        if not turn.try_command(StageMeld(seat=turn.seat, card_ids=_ids(group))):
            if turn.state.active_player.staged:
                turn.try_command(CancelStaged(seat=turn.seat))
            return False
    if turn.try_command(ConfirmOpening(seat=turn.seat)):
        return True
    turn.try_command(CancelStaged(seat=turn.seat))
    return False


def _try_open(turn: _Turn) -> bool:
    """Open with series when possible, otherwise with pairs."""
    player = turn.state.active_player
    hand = player.hand
    committed = turn.state.committed_melds

    for groups, minimum in (
        (find_best_melds(hand), MIN_SERIES_TO_OPEN),
        (find_pairs(hand), MIN_PAIRS_TO_OPEN),
    ):
        if len(groups) < minimum:
            continue
        used = {c.id for g in groups for c in g}
        remaining = [c for c in hand if c.id not in used]
        if not can_open(player, remaining, committed, turn.state.score_ceiling).allowed:
            continue
        if _stage_and_confirm(turn, groups):
            return True
    return False


def _try_retrieve_joker(turn: _Turn) -> bool:
    player = turn.state.active_player
    for meld in turn.state.committed_melds:
        if not meld.jokers:
            continue
        for card in player.hand:
            if card.is_joker or len(player.hand) <= 1:
                continue
            if retrieve_joker([card], meld).ok:
                return turn.try_command(ProcessOntoMeld(seat=turn.seat, meld_id=meld.id, card_ids=(card.id,)))
    return False


def _try_attach(turn: _Turn) -> bool:
    player = turn.state.active_player
    if len(player.hand) <= 1:
        return False
    for card in player.hand:
        for meld in turn.state.committed_melds:
            if attach_card(card, meld).ok:
                return turn.try_command(ProcessOntoMeld(seat=turn.seat, meld_id=meld.id, card_ids=(card.id,)))
    return False


def _try_lay_series(turn: _Turn) -> bool:
    player = turn.state.active_player
    if player.opening_kind is not OpeningKind.SERIES:
        return False
    for group in find_best_melds(player.hand):
        if turn.try_command(StageMeld(seat=turn.seat, card_ids=_ids(group))):
            return True
    return False


def _action_passes(turn: _Turn) -> None:
    for _ in range(MAX_ACTION_PASSES):
        if not turn.still_acting:
            return
        if not turn.state.active_player.has_opened:
            if not _try_open(turn):
                return
            continue
        if not (_try_retrieve_joker(turn) or _try_attach(turn) or _try_lay_series(turn)):
            return


def _discard(turn: _Turn) -> None:
    state = turn.state
    player = state.active_player
    if player.staged:
        turn.try_command(CancelStaged(seat=turn.seat))
        player = turn.state.active_player
    card = choose_discard(player.hand, turn.state.committed_melds, player)
    if not turn.try_command(Discard(seat=turn.seat, card_id=card.id)):
        turn.fallback(f"discard of {card} rejected")


def play_melds(state: MatchState, rng: random.Random | None = None) -> Transition:
    """Only the meld/process passes of a bot turn (action phase, no draw or discard)."""
    if state.phase is not Phase.ACTION:
        return Transition(state=state, rejection=Rejection(RuleViolation.WRONG_PHASE, "toast.wrong_phase"))
    turn = _Turn(state, rng)
    _action_passes(turn)
    return turn.transition()


def play_bot_turn(state: MatchState, rng: random.Random | None = None) -> Transition:
    """
    Play the rest of the active seat's turn. Starting in the draw phase plays the
    whole turn; starting in the action phase skips the draw.
    """
    if state.phase not in (Phase.DRAW, Phase.ACTION):
        return Transition(state=state, rejection=Rejection(RuleViolation.WRONG_PHASE, "toast.wrong_phase"))
    turn = _Turn(state, rng)
    if state.phase is Phase.DRAW:
        _draw(turn)
    _action_passes(turn)
    if turn.still_acting:
        _discard(turn)
    return turn.transition()


class BotMatchResult(NamedTuple):
    state: MatchState
    turns: int
    rounds: int
    stalled: bool = False  # stopped at max_turns before GAME_OVER


def run_bot_match(
    config: MatchConfig | None = None,
    rng: random.Random | None = None,
    max_turns: int = 20_000,
) -> BotMatchResult:
    """
    Play a whole match with every seat driven by ``play_bot_turn``.

    Solver bots can keep a round going indefinitely: when nobody can go out,
    the discard pile is recycled into the deck again and again. The match is
    therefore cut off after ``max_turns`` turns, with a warning and
    ``stalled=True`` in the result.
    """
    cfg = config or all_bots_config()
    rng = rng or random.Random()
    state = start_match(cfg, rng).state
    turns = 0
    stalled = False
    while state.phase is not Phase.GAME_OVER:
        if turns >= max_turns:
            logger.warning("Bot match stopped after %d turns in round %d", turns, state.round_number)
            stalled = True
            break
        if state.phase is Phase.ROUND_OVER:
            state = next_round(state, rng).state
            continue
        state = play_bot_turn(state, rng).state
        turns += 1
    return BotMatchResult(state=state, turns=turns, rounds=state.round_number, stalled=stalled)

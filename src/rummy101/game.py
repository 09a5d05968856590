"""
Round and match state machine: draw -> action (meld / process) -> discard -> next seat,
round end scoring, game-over payouts, and new-round setup with re-entry and antes.

Every transition is ``apply(state, command) -> Transition``. The input state is
never modified: the command runs on a copy, and a rejected command returns the
original state together with a Rejection.
"""
from __future__ import annotations

import logging
import random
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, NamedTuple, Sequence, Union

from .config import MatchConfig
from .deal import build_shoe, deal_hands, next_active_seat, next_seat, recycle_discard_pile
from .deck import Card
from .errors import Rejection, RuleViolation
from .events import EventKind, GameEvent
from .melds import Meld, MeldKind, attach_card, attach_pair, classify, retrieve_joker
from .scoring import (
    can_open,
    discard_candidates,
    hand_value,
    round_multiplier,
    split_even,
    split_first_second,
    within_ceiling,
)
from .solver import choose_discard
from .state import (
    MIN_PAIRS_TO_OPEN,
    MIN_SERIES_TO_OPEN,
    DrawSource,
    MatchState,
    OpeningKind,
    Phase,
    Player,
    check_conservation,
    opening_kind_for,
)

logger = logging.getLogger(__name__)


# ---- Commands ----


@dataclass(frozen=True)
class DrawCard:
    seat: int
    source: DrawSource = DrawSource.DECK


@dataclass(frozen=True)
class StageMeld:
    """Stage a meld (not yet opened) or lay it on the table (already opened)."""
    seat: int
    card_ids: tuple[int, ...]


@dataclass(frozen=True)
class ConfirmOpening:
    seat: int


@dataclass(frozen=True)
class CancelStaged:
    seat: int


@dataclass(frozen=True)
class Discard:
    seat: int
    card_id: int


@dataclass(frozen=True)
class ProcessOntoMeld:
    """Attach cards to, or retrieve a joker from, a committed meld."""
    seat: int
    meld_id: int
    card_ids: tuple[int, ...]


@dataclass(frozen=True)
class TimeoutAdvance:
    """Default action for whoever is to act: draw from the deck, or discard via the solver."""


Command = Union[DrawCard, StageMeld, ConfirmOpening, CancelStaged, Discard, ProcessOntoMeld, TimeoutAdvance]


class Transition(NamedTuple):
    state: MatchState
    rejection: Rejection | None = None
    events: tuple[GameEvent, ...] = ()

    @property
    def ok(self) -> bool:
        return self.rejection is None


def _reject(code: RuleViolation, message_key: str, detail: str = "", **args: Any) -> Rejection:
    return Rejection(code=code, message_key=message_key, detail=detail, args=args)


def _set_message(state: MatchState, key: str, **args) -> None:
    state.message_key = key
    state.message_args = args


# ---- Match / round setup ----


def new_match_state(config: MatchConfig) -> MatchState:
    """Fresh players with the starting chip stack; no cards dealt yet."""
    players = [
        Player(seat=seat, name=name, is_bot=config.is_bot(seat), chips=config.initial_chips)
        for seat, name in enumerate(config.seat_names)
    ]
    return MatchState(config=config, players=players)


def start_match(
    config: MatchConfig,
    rng: random.Random | None = None,
    resume_from: MatchState | None = None,
) -> Transition:
    """
    Start a match, or (``resume_from`` given) continue the previous one with
    its scores, chips and pots into the next round. A resumed match keeps its
    own config, so ``config`` must equal it.
    """
    if resume_from is not None:
        if config != resume_from.config:
            raise ValueError("config does not match the config of the match being resumed")
        return next_round(resume_from, rng)
    state = new_match_state(config)
    events: List[GameEvent] = []
    _setup_round(state, rng, events, first_round=True)
    check_conservation(state)
    logger.info("Match started: %d rounds max, %d chips each", config.max_rounds, config.initial_chips)
    return Transition(state=state, events=tuple(events))


def next_round(state: MatchState, rng: random.Random | None = None) -> Transition:
    """Continue after a finished round: re-entry / bankruptcy, antes, fresh deal."""
    if state.phase is not Phase.ROUND_OVER:
        return Transition(state=state, rejection=_reject(RuleViolation.WRONG_PHASE, "toast.wrong_phase"))
    work = state.copy()
    events: List[GameEvent] = []
    _setup_round(work, rng, events, first_round=False)
    check_conservation(work)
    return Transition(state=work, events=tuple(events))


def _resolve_eliminations(state: MatchState) -> None:
    cfg = state.config
    standing = {
        p.seat: p.cumulative_score
        for p in state.players
        if not p.is_bankrupt and not p.is_eliminated
    }
    for p in state.players:
        if p.is_bankrupt or not p.is_eliminated:
            continue
        if p.chips >= cfg.reentry_cost + cfg.round_cost:
            p.chips -= cfg.reentry_cost
            state.grand_pot += cfg.reentry_cost
            others = [score for seat, score in standing.items() if seat != p.seat]
            p.cumulative_score = max(others) if others else 0
            p.is_eliminated = False
            logger.info("%s re-enters at %d points (paid %d)", p.name, p.cumulative_score, cfg.reentry_cost)
        else:
            p.is_bankrupt = True
            logger.info("%s cannot afford re-entry and is bankrupt", p.name)


def _collect_antes(state: MatchState) -> None:
    cost = state.config.round_cost
    state.round_pot = 0
    for p in state.players:
        if p.is_bankrupt:
            continue
        if p.chips >= cost:
            p.chips -= cost
            state.round_pot += cost
        else:
            p.is_bankrupt = True
            p.is_eliminated = True
            logger.info("%s cannot pay the %d ante and is bankrupt", p.name, cost)


def _setup_round(state: MatchState, rng: random.Random | None, events: List[GameEvent], first_round: bool) -> None:
    if not first_round:
        state.round_number += 1
        state.round_starter_seat = next_seat(state.round_starter_seat)
        _resolve_eliminations(state)
    for p in state.players:
        p.reset_for_round()
        if p.is_bankrupt:
            p.is_eliminated = True

    _collect_antes(state)

    state.discard_pile = []
    state.committed_melds = []
    state.winner_seat = None
    state.pot_split = []
    shoe = build_shoe(rng)

    if sum(1 for p in state.players if p.is_bankrupt) >= 2:
        # Antes just collected cannot be played for; they join the grand pot.
        state.grand_pot += state.round_pot
        state.round_pot = 0
        state.deck = shoe
        _pay_even_split(state, [p for p in state.players if not p.is_bankrupt])
        _finish_match(state, events)
        return

    seats = [p.seat for p in state.players if not p.is_eliminated]
    dealt = deal_hands(shoe, seats, state.config.hand_size)
    for p in state.players:
        p.hand = list(dealt.hands[p.seat])
    state.deck = dealt.shoe

    state.active_seat = next_active_seat(state.round_starter_seat, state.eliminated_flags(), include_self=True)
    state.phase = Phase.DRAW
    _set_message(
        state,
        "game.round_start",
        round=state.round_number,
        max_rounds=state.max_rounds,
        name=state.active_player.name,
    )
    events.append(GameEvent(EventKind.ROUND_DEALT, seat=state.active_seat, data={"round": state.round_number}))
    logger.info(
        "Round %d/%d dealt to seats %s, pot %d, grand pot %d",
        state.round_number, state.max_rounds, seats, state.round_pot, state.grand_pot,
    )


# ---- Round end / game over ----


def _end_round(state: MatchState, winner_seat: int, finishing_card: Card | None, events: List[GameEvent]) -> None:
    state.phase = Phase.ROUND_OVER
    state.winner_seat = winner_seat
    winner = state.players[winner_seat]

    opened_with_pairs = winner.opening_kind is OpeningKind.PAIRS
    multiplier = round_multiplier(opened_with_pairs, finishing_card)

    pot = state.round_pot
    winner.chips += pot
    state.round_pot = 0

    scores: Dict[int, int] = {}
    for p in state.players:
        if p.seat == winner_seat or p.is_eliminated or p.is_bankrupt:
            p.round_score = 0
            continue
        p.round_score = hand_value(p.hand) * multiplier
        p.cumulative_score += p.round_score
        scores[p.seat] = p.round_score
        if p.cumulative_score > state.score_ceiling:
            p.is_eliminated = True
            logger.info("%s crossed %d points (%d)", p.name, state.score_ceiling, p.cumulative_score)

    if multiplier > 1:
        reasons = []
        if opened_with_pairs:
            reasons.append("PAIRS")
        if finishing_card is not None and finishing_card.is_joker:
            reasons.append("JOKER FINISH" if not reasons else "JOKER")
        _set_message(
            state, "game.wins_multiplied",
            name=winner.name, reason=" + ".join(reasons), multiplier=multiplier, pot=pot,
        )
    else:
        _set_message(state, "game.wins", name=winner.name, pot=pot)

    events.append(
        GameEvent(EventKind.ROUND_WON, seat=winner_seat, data={"multiplier": multiplier, "pot": pot, "scores": scores})
    )
    logger.info("Round %d won by %s (x%d, pot %d)", state.round_number, winner.name, multiplier, pot)
    _evaluate_game_over(state, events)


def _end_round_no_contest(state: MatchState, events: List[GameEvent]) -> None:
    """Nothing left to draw: nobody wins, nobody scores; the round pot rolls into the grand pot."""
    state.phase = Phase.ROUND_OVER
    state.winner_seat = None
    state.grand_pot += state.round_pot
    state.round_pot = 0
    for p in state.players:
        p.round_score = 0
    _set_message(state, "game.draw_game")
    events.append(GameEvent(EventKind.DRAW_GAME))
    logger.info("Round %d ended in a draw: deck and discard pile are empty", state.round_number)
    _evaluate_game_over(state, events)


def _pay(state: MatchState, player: Player, amount: int) -> None:
    player.chips += amount
    state.grand_pot -= amount
    state.pot_split.append((player.seat, amount))


def _pay_even_split(state: MatchState, recipients: Sequence[Player]) -> None:
    share, _ = split_even(state.grand_pot, len(recipients))
    for p in recipients:
        _pay(state, p, share)


def _finish_match(state: MatchState, events: List[GameEvent]) -> None:
    state.phase = Phase.GAME_OVER
    _set_message(state, "game.game_over")
    events.append(GameEvent(EventKind.GAME_OVER, data={"pot_split": list(state.pot_split)}))
    logger.info("Match over after round %d, payouts %s", state.round_number, state.pot_split)


def _evaluate_game_over(state: MatchState, events: List[GameEvent]) -> bool:
    """Last player standing, then two bankruptcies, then the round limit. Returns True if the match ended."""
    standing = [p for p in state.players if not p.is_eliminated and not p.is_bankrupt]
    bankrupt = [p for p in state.players if p.is_bankrupt]

    if len(standing) <= 1:
        if standing:
            _pay(state, standing[0], state.grand_pot)
    elif len(bankrupt) >= 2:
        _pay_even_split(state, [p for p in state.players if not p.is_bankrupt])
    elif state.round_number >= state.max_rounds:
        ranked = sorted(standing, key=lambda p: p.cumulative_score)
        first, second = split_first_second(state.grand_pot)
        _pay(state, ranked[0], first)
        _pay(state, ranked[1], second)
    else:
        return False
    _finish_match(state, events)
    return True


# ---- Turn flow ----


def _advance_turn(state: MatchState) -> None:
    state.active_seat = next_active_seat(state.active_seat, state.eliminated_flags())
    state.phase = Phase.DRAW
    _set_message(state, "game.turn", name=state.active_player.name)


def _cards_from_hand(player: Player, card_ids: Sequence[int]) -> List[Card] | None:
    if len(set(card_ids)) != len(card_ids):
        return None
    cards = [player.find_card(cid) for cid in card_ids]
    if any(c is None for c in cards):
        return None
    return cards  # type: ignore[return-value]


def _remove_from_hand(player: Player, cards: Sequence[Card]) -> None:
    ids = {c.id for c in cards}
    player.hand = [c for c in player.hand if c.id not in ids]


def _draw(state: MatchState, cmd: DrawCard, rng: random.Random | None, events: List[GameEvent]) -> Rejection | None:
    if state.phase is not Phase.DRAW:
        return _reject(RuleViolation.WRONG_PHASE, "toast.wrong_phase")
    player = state.active_player

    if cmd.source is DrawSource.DISCARD:
        if not state.discard_pile:
            return _reject(RuleViolation.EMPTY_PILE, "toast.discard_empty")
        card = state.discard_pile.pop()
    else:
        if not state.deck:
            recycled = recycle_discard_pile(state.discard_pile, rng)
            if not recycled:
                _end_round_no_contest(state, events)
                return None
            state.deck = recycled
            events.append(GameEvent(EventKind.DECK_RECYCLED, data={"size": len(recycled)}))
        card = state.deck.pop()

    player.hand.append(card)
    state.phase = Phase.ACTION
    _set_message(state, "game.create_melds")
    events.append(GameEvent(EventKind.CARD_DRAWN, seat=player.seat, data={"source": cmd.source.value}))
    logger.debug("%s drew %s from %s", player.name, card, cmd.source.value)
    return None


def _stage_meld(state: MatchState, cmd: StageMeld, rng: random.Random | None, events: List[GameEvent]) -> Rejection | None:
    if state.phase is not Phase.ACTION:
        return _reject(RuleViolation.WRONG_PHASE, "toast.wrong_phase")
    player = state.active_player
    cards = _cards_from_hand(player, cmd.card_ids)
    if not cards:
        return _reject(RuleViolation.UNKNOWN_CARD, "toast.unknown_card")
    kind = classify(cards)
    if kind is None:
        return _reject(RuleViolation.INVALID_MELD_PATTERN, "toast.invalid_meld")

    wanted = opening_kind_for(kind)
    if player.has_opened:
        if wanted is not player.opening_kind:
            key = "toast.pairs_only" if player.opening_kind is OpeningKind.PAIRS else "toast.series_only"
            return _reject(RuleViolation.INVALID_MELD_PATTERN, key)
        meld = Meld.from_cards(state.allocate_meld_id(), cards, player.seat)
        _remove_from_hand(player, cards)
        state.committed_melds.append(meld)
        events.append(GameEvent(EventKind.MELD_FORMED, seat=player.seat, data={"meld_id": meld.id, "kind": kind.value}))
        logger.debug("%s laid %s", player.name, meld)
        if not player.hand:
            _end_round(state, player.seat, None, events)
        return None

    staged_kind = player.staged_kind
    if staged_kind is not None and staged_kind is not wanted:
        key = "toast.pairs_select_two" if staged_kind is OpeningKind.PAIRS else "toast.switch_to_pairs"
        return _reject(RuleViolation.INVALID_MELD_PATTERN, key)
    meld = Meld.from_cards(state.allocate_meld_id(), cards, player.seat)
    _remove_from_hand(player, cards)
    player.staged.append(meld)
    logger.debug("%s staged %s", player.name, meld)
    return None


def _confirm_opening(state: MatchState, cmd: ConfirmOpening, rng: random.Random | None, events: List[GameEvent]) -> Rejection | None:
    if state.phase is not Phase.ACTION:
        return _reject(RuleViolation.WRONG_PHASE, "toast.wrong_phase")
    player = state.active_player
    if player.has_opened:
        return _reject(RuleViolation.OPENING_NOT_MET, "toast.already_opened")
    kind = player.staged_kind
    if kind is None:
        return _reject(RuleViolation.OPENING_NOT_MET, "toast.nothing_staged")

    staged = len(player.staged)
    if kind is OpeningKind.PAIRS and staged < MIN_PAIRS_TO_OPEN:
        return _reject(RuleViolation.OPENING_NOT_MET, "toast.need_more_pairs", f"{staged} staged", count=staged)
    if kind is OpeningKind.SERIES and staged < MIN_SERIES_TO_OPEN:
        return _reject(RuleViolation.OPENING_NOT_MET, "toast.need_more_series", f"{staged} staged", count=staged)

    check = can_open(player, player.hand, state.committed_melds, state.score_ceiling)
    if not check.allowed:
        return _reject(RuleViolation.OPENING_NOT_MET, "toast.score_limit_exceeded", check.reason)

    player.has_opened = True
    player.just_opened = True
    player.opening_kind = kind
    for meld in player.staged:
        state.committed_melds.append(meld)
        events.append(GameEvent(EventKind.MELD_FORMED, seat=player.seat, data={"meld_id": meld.id, "kind": meld.kind.value}))
    logger.info("%s opened with %d %s", player.name, len(player.staged), kind.value)
    player.staged = []
    if not player.hand:
        _end_round(state, player.seat, None, events)
    return None


def _cancel_staged(state: MatchState, cmd: CancelStaged, rng: random.Random | None, events: List[GameEvent]) -> Rejection | None:
    if state.phase is not Phase.ACTION:
        return _reject(RuleViolation.WRONG_PHASE, "toast.wrong_phase")
    player = state.active_player
    if not player.staged:
        return _reject(RuleViolation.OPENING_NOT_MET, "toast.nothing_staged")
    _return_staged(player)
    return None


def _return_staged(player: Player) -> None:
    for meld in player.staged:
        player.hand.extend(meld.cards)
    player.staged = []


def _commit_discard(state: MatchState, player: Player, card: Card, events: List[GameEvent]) -> None:
    _remove_from_hand(player, [card])
    state.discard_pile.append(card)
    events.append(GameEvent(EventKind.CARD_DISCARDED, seat=player.seat, data={"card_id": card.id}))
    logger.debug("%s discarded %s", player.name, card)

    if card.is_joker:
        penalty = state.config.joker_discard_penalty
        player.chips -= penalty
        state.grand_pot += penalty
        events.append(GameEvent(EventKind.JOKER_PENALTY, seat=player.seat, data={"penalty": penalty}))
        logger.info("%s discarded a joker: -%d chips", player.name, penalty)

    player.just_opened = False
    if not player.hand:
        _end_round(state, player.seat, card, events)
    else:
        _advance_turn(state)


def _discard(state: MatchState, cmd: Discard, rng: random.Random | None, events: List[GameEvent]) -> Rejection | None:
    if state.phase is not Phase.ACTION:
        return _reject(RuleViolation.WRONG_PHASE, "toast.wrong_phase")
    player = state.active_player
    if player.staged:
        return _reject(RuleViolation.ILLEGAL_DISCARD, "toast.clear_staged")
    card = player.find_card(cmd.card_id)
    if card is None:
        return _reject(RuleViolation.UNKNOWN_CARD, "toast.unknown_card")

    if card not in discard_candidates(player.hand, state.committed_melds):
        return _reject(RuleViolation.ILLEGAL_DISCARD, "toast.card_fits")
    if player.just_opened:
        kept = [c for c in player.hand if c.id != card.id]
        if not within_ceiling(player.cumulative_score, kept, state.score_ceiling):
            return _reject(RuleViolation.ILLEGAL_DISCARD, "toast.opening_limit")

    _commit_discard(state, player, card, events)
    return None


def _process_onto_meld(state: MatchState, cmd: ProcessOntoMeld, rng: random.Random | None, events: List[GameEvent]) -> Rejection | None:
    if state.phase is not Phase.ACTION:
        return _reject(RuleViolation.WRONG_PHASE, "toast.wrong_phase")
    player = state.active_player
    cards = _cards_from_hand(player, cmd.card_ids)
    if not cards:
        return _reject(RuleViolation.UNKNOWN_CARD, "toast.unknown_card")
    if len(player.hand) <= 1:
        return _reject(RuleViolation.ILLEGAL_MELD_ATTACH, "toast.last_card_discard")
    if not player.has_opened:
        return _reject(RuleViolation.ILLEGAL_MELD_ATTACH, "toast.open_hand_first")
    index = state.find_meld(cmd.meld_id)
    if index is None:
        return _reject(RuleViolation.UNKNOWN_CARD, "toast.unknown_meld")
    meld = state.committed_melds[index]

    swap = retrieve_joker(cards, meld)
    if swap.ok:
        state.committed_melds[index] = swap.meld
        _remove_from_hand(player, cards)
        player.hand.extend(swap.freed_jokers)
        events.append(GameEvent(EventKind.JOKER_RETRIEVED, seat=player.seat, data={"meld_id": meld.id}))
        logger.debug("%s retrieved %d joker(s) from %s", player.name, len(swap.freed_jokers), meld)
        return None

    if len(cards) == 2 and meld.kind is MeldKind.PAIR:
        change = attach_pair(cards, meld)
        if not change.ok:
            return _reject(RuleViolation.ILLEGAL_MELD_ATTACH, "toast.pairs_no_match", change.reason)
    elif len(cards) > 1:
        return _reject(RuleViolation.ILLEGAL_MELD_ATTACH, "toast.select_one_swap", swap.reason)
    else:
        change = attach_card(cards[0], meld)
        if not change.ok:
            return _reject(RuleViolation.ILLEGAL_MELD_ATTACH, "toast.cannot_add", change.reason or swap.reason)

    state.committed_melds[index] = change.meld
    _remove_from_hand(player, cards)
    events.append(GameEvent(EventKind.MELD_FORMED, seat=player.seat, data={"meld_id": meld.id, "attached": len(cards)}))
    logger.debug("%s processed %s onto %s", player.name, cards, change.meld)
    if not player.hand:
        _end_round(state, player.seat, None, events)
    return None


def _timeout(state: MatchState, cmd: TimeoutAdvance, rng: random.Random | None, events: List[GameEvent]) -> Rejection | None:
    player = state.active_player
    if state.phase is Phase.DRAW:
        logger.debug("Timeout: automatic draw for %s", player.name)
        rejection = _draw(state, DrawCard(seat=player.seat), rng, events)
        if rejection is None and state.phase is Phase.ACTION:
            _set_message(state, "game.auto_drawn", name=player.name)
        return rejection

    if player.staged:
        _return_staged(player)
    card = choose_discard(player.hand, state.committed_melds, player)
    logger.debug("Timeout: automatic discard of %s for %s", card, player.name)
    _set_message(state, "game.auto_discarded", name=player.name)
    _commit_discard(state, player, card, events)
    return None


_Handler = Callable[[MatchState, Command, "random.Random | None", List[GameEvent]], "Rejection | None"]

_HANDLERS: Dict[type, _Handler] = {
    DrawCard: _draw,
    StageMeld: _stage_meld,
    ConfirmOpening: _confirm_opening,
    CancelStaged: _cancel_staged,
    Discard: _discard,
    ProcessOntoMeld: _process_onto_meld,
    TimeoutAdvance: _timeout,
}


def apply(state: MatchState, command: Command, rng: random.Random | None = None) -> Transition:
    """
    Apply one command. Returns the new state on success; on a rule violation
    returns the untouched input state and the rejection.
    """
    handler = _HANDLERS.get(type(command))
    if handler is None:
        raise TypeError(f"Unknown command: {command!r}")
    if state.phase not in (Phase.DRAW, Phase.ACTION):
        return Transition(state=state, rejection=_reject(RuleViolation.WRONG_PHASE, "toast.wrong_phase"))
    if not isinstance(command, TimeoutAdvance) and command.seat != state.active_seat:
        return Transition(state=state, rejection=_reject(RuleViolation.NOT_ACTIVE_SEAT, "toast.not_your_turn"))

    work = state.copy()
    events: List[GameEvent] = []
    rejection = handler(work, command, rng, events)
    if rejection is not None:
        logger.debug("Rejected %r: %s", command, rejection)
        return Transition(state=state, rejection=rejection)
    check_conservation(work)
    return Transition(state=work, events=tuple(events))


def advance_on_timeout(state: MatchState, rng: random.Random | None = None) -> Transition:
    """The forced default move for the seat whose turn budget ran out."""
    return apply(state, TimeoutAdvance(), rng)

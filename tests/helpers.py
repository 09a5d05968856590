"""Card and state builders shared by the tests."""
from __future__ import annotations

from typing import Dict, Iterable, Sequence

from rummy101.config import MatchConfig, all_bots_config
from rummy101.deck import Card, Suit, make_card, make_joker, make_shoe_106
from rummy101.game import new_match_state
from rummy101.melds import Meld
from rummy101.state import MatchState, Phase, check_conservation

H, D, C, S = Suit.HEARTS, Suit.DIAMONDS, Suit.CLUBS, Suit.SPADES
JOKER_A = make_joker(104)
JOKER_B = make_joker(105)


def card(suit: Suit, rank: int, deck: int = 0) -> Card:
    """The card of ``suit``/``rank`` from deck copy 0 or 1, with its shoe id."""
    return make_card(deck * 52 + int(suit) * 13 + rank - 2, suit, rank)


def meld(meld_id: int, cards: Sequence[Card], owner: int = 1) -> Meld:
    built = Meld.from_cards(meld_id, cards, owner)
    assert built is not None, f"{cards} is not a meld"
    return built


def table_state(
    hands: Dict[int, Iterable[Card]],
    *,
    committed: Sequence[Meld] = (),
    discard: Sequence[Card] = (),
    active: int = 0,
    phase: Phase = Phase.ACTION,
    config: MatchConfig | None = None,
    deck: Sequence[Card] | None = None,
) -> MatchState:
    """
    A mid-round state with the given hands, table and discard pile; every
    other card of the shoe goes to the draw pile (unless ``deck`` is given).
    """
    state = new_match_state(config or all_bots_config())
    placed: list[Card] = []
    for seat, cards in hands.items():
        state.players[seat].hand = list(cards)
        placed.extend(state.players[seat].hand)
    state.committed_melds = list(committed)
    for m in committed:
        placed.extend(m.cards)
    state.discard_pile = list(discard)
    placed.extend(discard)
    placed_ids = {c.id for c in placed}
    state.deck = list(deck) if deck is not None else [c for c in make_shoe_106() if c.id not in placed_ids]
    state.active_seat = active
    state.phase = phase
    state.round_pot = 80
    for p in state.players:
        p.chips = 80
    state.next_meld_id = max((m.id for m in committed), default=0) + 1
    check_conservation(state)
    return state

"""
Shoe handling: shuffle, round-robin deal, discard-pile recycling, seat rotation.
Shuffling always goes through an injected ``random.Random`` so deals are reproducible.
"""
from __future__ import annotations

import logging
import random
from typing import NamedTuple, Sequence

from .deck import Card, make_shoe_106

logger = logging.getLogger(__name__)

SEAT_COUNT = 4
INITIAL_HAND_SIZE = 10


class Deal(NamedTuple):
    """Result of a deal. Hands are lists (mutated during play); eliminated seats get an empty list."""
    hands: tuple[list[Card], list[Card], list[Card], list[Card]]
    shoe: list[Card]  # remaining draw pile, top of pile = last element


def build_shoe(rng: random.Random | None = None) -> list[Card]:
    """The 106-card universe, uniformly shuffled (Fisher-Yates via Random.shuffle)."""
    if rng is None:
        rng = random.Random()
    shoe = make_shoe_106()
    rng.shuffle(shoe)
    return shoe


def deal_hands(
    shoe: list[Card],
    active_seats: Sequence[int] = (0, 1, 2, 3),
    hand_size: int = INITIAL_HAND_SIZE,
) -> Deal:
    """
    Deal ``hand_size`` cards to each active seat, one at a time round-robin,
    taking from the top (end) of the shoe. The input list is not modified.
    """
    pile = list(shoe)
    hands: list[list[Card]] = [[] for _ in range(SEAT_COUNT)]
    if len(pile) < hand_size * len(active_seats):
        raise ValueError(f"Shoe of {len(pile)} cards cannot deal {hand_size} to {len(active_seats)} seats")
    for _ in range(hand_size):
        for seat in active_seats:
            hands[seat].append(pile.pop())
    return Deal(hands=(hands[0], hands[1], hands[2], hands[3]), shoe=pile)


def recycle_discard_pile(discard_pile: list[Card], rng: random.Random | None = None) -> list[Card]:
    """
    Turn the whole discard pile (top included) into a new shuffled draw pile.
    The discard pile is emptied in place. Returns [] when there was nothing to recycle.
    """
    if not discard_pile:
        return []
    if rng is None:
        rng = random.Random()
    new_pile = list(discard_pile)
    discard_pile.clear()
    rng.shuffle(new_pile)
    logger.info("Recycled %d discarded cards into the draw pile", len(new_pile))
    return new_pile


def next_seat(seat: int) -> int:
    """
    Seat that plays after ``seat``. Increments the index (0 -> 1 -> 2 -> 3 -> 0).
    Table layout is documented counter-clockwise (seat - 1); the increment is kept
    until the intended direction is confirmed.
    """
    return (seat + 1) % SEAT_COUNT


def next_active_seat(seat: int, eliminated: Sequence[bool], include_self: bool = False) -> int:
    """
    First non-eliminated seat after ``seat`` (or ``seat`` itself when include_self).
    Falls back to the plain next seat if every seat is eliminated.
    """
    candidate = seat if include_self else next_seat(seat)
    for _ in range(SEAT_COUNT):
        if not eliminated[candidate]:
            return candidate
        candidate = next_seat(candidate)
    return seat if include_self else next_seat(seat)

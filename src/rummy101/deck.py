"""
Rummy 101 shoe: two standard 52-card decks plus 2 jokers = 106 cards.
Every card carries a unique id (0..105); duplicate (suit, rank) faces are
expected and form the "identical pair" groupings.
"""
from __future__ import annotations

from dataclasses import dataclass
from enum import IntEnum
from typing import Iterable, Optional


class Suit(IntEnum):
    """Hearts, Diamonds, Clubs, Spades (fixed solver order), then the joker pseudo-suit."""
    HEARTS = 0
    DIAMONDS = 1
    CLUBS = 2
    SPADES = 3
    JOKER = 4


STANDARD_SUITS = (Suit.HEARTS, Suit.DIAMONDS, Suit.CLUBS, Suit.SPADES)

# Ranks 2..10, then J=11, Q=12, K=13, A=14 (Ace is high only, no wraparound)
RANK_MIN = 2
RANK_JACK = 11
RANK_QUEEN = 12
RANK_KING = 13
RANK_ACE = 14
RANKS = tuple(range(RANK_MIN, RANK_ACE + 1))

JOKER_POINTS = 25
ACE_POINTS = 11
FACE_POINTS = 10

DECKS_IN_SHOE = 2
JOKERS_IN_SHOE = 2
SHOE_SIZE = DECKS_IN_SHOE * len(STANDARD_SUITS) * len(RANKS) + JOKERS_IN_SHOE  # 106


@dataclass(frozen=True)
class Card:
    """
    A single card of the shoe. Either:
    - standard: suit in STANDARD_SUITS + rank 2..14
    - joker: suit JOKER, rank None
    """

    id: int
    suit: Suit
    rank: Optional[int] = None

    def __post_init__(self) -> None:
        if self.suit == Suit.JOKER:
            if self.rank is not None:
                raise ValueError(f"Joker cannot carry a rank: {self.rank}")
        else:
            if self.rank is None or not RANK_MIN <= self.rank <= RANK_ACE:
                raise ValueError(f"Invalid rank for {self.suit.name}: {self.rank}")

    @property
    def is_joker(self) -> bool:
        return self.suit == Suit.JOKER

    def same_face(self, other: "Card") -> bool:
        """True if both are standard cards with identical suit and rank (the two-deck duplicate)."""
        if self.is_joker or other.is_joker:
            return False
        return self.suit == other.suit and self.rank == other.rank

    def point_value(self) -> int:
        """Joker 25, Ace 11, 10/J/Q/K 10, otherwise the rank."""
        if self.is_joker:
            return JOKER_POINTS
        if self.rank == RANK_ACE:
            return ACE_POINTS
        if self.rank >= 10:
            return FACE_POINTS
        return self.rank

    def __str__(self) -> str:
        if self.is_joker:
            return "Joker"
        rank_str = {RANK_JACK: "J", RANK_QUEEN: "Q", RANK_KING: "K", RANK_ACE: "A"}.get(self.rank) or str(self.rank)
        return f"{rank_str}{'♥♦♣♠'[self.suit]}"

    def __repr__(self) -> str:
        return f"{self}#{self.id}"


def make_card(card_id: int, suit: Suit, rank: int) -> Card:
    return Card(id=card_id, suit=suit, rank=rank)


def make_joker(card_id: int) -> Card:
    return Card(id=card_id, suit=Suit.JOKER)


def make_shoe_106() -> list[Card]:
    """Build the unshuffled shoe: deck 0 then deck 1 (suit-major, rank ascending), then the jokers."""
    shoe: list[Card] = []
    next_id = 0
    for _ in range(DECKS_IN_SHOE):
        for suit in STANDARD_SUITS:
            for rank in RANKS:
                shoe.append(make_card(next_id, suit, rank))
                next_id += 1
    for _ in range(JOKERS_IN_SHOE):
        shoe.append(make_joker(next_id))
        next_id += 1
    return shoe


CARD_UNIVERSE: frozenset[int] = frozenset(range(SHOE_SIZE))


def card_by_id(card_id: int) -> Card:
    """Rebuild a card from its id (ids follow make_shoe_106 order)."""
    if not 0 <= card_id < SHOE_SIZE:
        raise ValueError(f"Unknown card id: {card_id}")
    per_deck = len(STANDARD_SUITS) * len(RANKS)
    standard_total = DECKS_IN_SHOE * per_deck
    if card_id >= standard_total:
        return make_joker(card_id)
    offset = card_id % per_deck
    suit = STANDARD_SUITS[offset // len(RANKS)]
    return make_card(card_id, suit, RANKS[offset % len(RANKS)])


def split_jokers(cards: Iterable[Card]) -> tuple[list[Card], list[Card]]:
    """Return (jokers, standard cards), preserving order."""
    jokers: list[Card] = []
    reals: list[Card] = []
    for c in cards:
        (jokers if c.is_joker else reals).append(c)
    return jokers, reals


def face_key(card: Card) -> tuple[int, int] | None:
    """(suit, rank) identity shared by the two duplicates of a face; None for jokers."""
    if card.is_joker:
        return None
    return int(card.suit), card.rank

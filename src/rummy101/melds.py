"""
Meld recognition and joker handling: runs, sets, pairs.

A meld's kind is always derived from its cards (``classify``); callers never
supply it. Operations that change a meld return a new ``Meld`` or a reason
why the change is refused.
"""
from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import NamedTuple, Sequence

from .deck import RANK_ACE, RANK_MIN, Card, Suit, split_jokers

MAX_GROUP_SIZE = 4  # sets and pairs: 4 suits / 2 decks of duplicates


class MeldKind(Enum):
    RUN = "run"
    SET = "set"
    PAIR = "pair"


def is_valid_pair(a: Card, b: Card) -> bool:
    """Any joker pairs with anything; otherwise the two cards must be identical faces (same suit AND rank)."""
    if a.is_joker or b.is_joker:
        return True
    return a.same_face(b)


def classify(cards: Sequence[Card]) -> MeldKind | None:
    """
    Kind of a candidate grouping, or None if it is not a valid meld.

    - 2 cards: a pair or nothing.
    - All real cards of one rank: a set (distinct suits, or identical duplicates), max 4 cards.
    - All real cards of one suit, no repeated rank, rank gaps fillable by the jokers: a run.
    """
    if len(cards) == 2:
        return MeldKind.PAIR if is_valid_pair(cards[0], cards[1]) else None
    if len(cards) < 3:
        return None

    jokers, reals = split_jokers(cards)
    if not reals:
        return MeldKind.SET

    if all(c.rank == reals[0].rank for c in reals):
        if len(cards) > MAX_GROUP_SIZE:
            return None
        suits = {c.suit for c in reals}
        if len(suits) == len(reals):
            return MeldKind.SET
        # Merged duplicates (e.g. 7♥ 7♥ 7♥) are accepted as a set.
        if len(suits) == 1:
            return MeldKind.SET
        return None

    if any(c.suit != reals[0].suit for c in reals):
        return None
    ranks = sorted(c.rank for c in reals)
    if any(r1 == r2 for r1, r2 in zip(ranks, ranks[1:])):
        return None
    needed = sum(r2 - r1 - 1 for r1, r2 in zip(ranks, ranks[1:]))
    return MeldKind.RUN if needed <= len(jokers) else None


def organize_run(cards: Sequence[Card]) -> list[Card]:
    """
    Order a run: real cards ascending, jokers filling interior gaps first,
    then extending upward towards the Ace, then downward towards 2, and any
    remaining jokers appended at the end.
    """
    jokers, reals = split_jokers(cards)
    reals.sort(key=lambda c: c.rank)
    if not reals:
        return jokers

    result: list[Card] = []
    for current, following in zip(reals, reals[1:]):
        result.append(current)
        for _ in range(following.rank - current.rank - 1):
            if jokers:
                result.append(jokers.pop())
    result.append(reals[-1])

    last_rank = reals[-1].rank
    while jokers and last_rank < RANK_ACE:
        result.append(jokers.pop())
        last_rank += 1

    first_rank = reals[0].rank
    while jokers and first_rank > RANK_MIN:
        result.insert(0, jokers.pop())
        first_rank -= 1

    while jokers:
        result.append(jokers.pop())
    return result


def arrange(cards: Sequence[Card], kind: MeldKind) -> list[Card]:
    """Canonical table order: runs organized, sets by suit with jokers last, pairs as given."""
    if kind is MeldKind.RUN:
        return organize_run(cards)
    if kind is MeldKind.SET:
        jokers, reals = split_jokers(cards)
        return sorted(reals, key=lambda c: c.suit) + jokers
    return list(cards)


@dataclass(frozen=True)
class Meld:
    """A grouping of cards held privately (staged) or on the table (committed)."""

    id: int
    cards: tuple[Card, ...]
    kind: MeldKind
    owner: int

    def __post_init__(self) -> None:
        derived = classify(self.cards)
        if derived is not self.kind:
            raise ValueError(f"Cards {list(self.cards)} form {derived}, not {self.kind}")

    @classmethod
    def from_cards(cls, meld_id: int, cards: Sequence[Card], owner: int) -> "Meld | None":
        """Build a meld in canonical order, deriving its kind; None if the cards form no meld."""
        kind = classify(cards)
        if kind is None:
            return None
        return cls(id=meld_id, cards=tuple(arrange(cards, kind)), kind=kind, owner=owner)

    def replace_cards(self, cards: Sequence[Card]) -> "Meld":
        """Same meld id/owner with new cards (kind re-derived). Raises ValueError on an invalid grouping."""
        kind = classify(cards)
        if kind is None:
            raise ValueError(f"Cards {list(cards)} do not form a meld")
        return Meld(id=self.id, cards=tuple(cards), kind=kind, owner=self.owner)

    @property
    def jokers(self) -> list[Card]:
        return [c for c in self.cards if c.is_joker]

    @property
    def real_cards(self) -> list[Card]:
        return [c for c in self.cards if not c.is_joker]

    def __len__(self) -> int:
        return len(self.cards)

    def __str__(self) -> str:
        return f"{self.kind.value}[{' '.join(str(c) for c in self.cards)}]"


class MeldChange(NamedTuple):
    """Outcome of an attach or joker retrieval. ``meld`` is None when refused."""
    meld: Meld | None
    reason: str = ""
    freed_jokers: tuple[Card, ...] = ()

    @property
    def ok(self) -> bool:
        return self.meld is not None


def _refuse(reason: str) -> MeldChange:
    return MeldChange(meld=None, reason=reason)


def attach_card(card: Card, meld: Meld) -> MeldChange:
    """Add one card to a committed meld if the result is still a valid meld."""
    reals = meld.real_cards

    if meld.kind is MeldKind.PAIR:
        if reals and card.same_face(reals[0]) and len(meld) + 1 <= MAX_GROUP_SIZE:
            return MeldChange(meld=meld.replace_cards(meld.cards + (card,)))
        return _refuse("Cannot add to a pair unless it forms identical cards")

    if meld.kind is MeldKind.SET:
        if len(meld) >= MAX_GROUP_SIZE:
            return _refuse("Set is full (max 4)")
        distinct_suits = bool(reals) and len({c.suit for c in reals}) == len(reals)
        if distinct_suits and not card.is_joker and any(c.suit == card.suit for c in reals):
            return _refuse("Suit already in set")

    candidate = meld.cards + (card,)
    kind = classify(candidate)
    if kind is None:
        return _refuse("Doesn't fit pattern")
    if kind is MeldKind.RUN:
        candidate = tuple(organize_run(candidate))
    return MeldChange(meld=meld.replace_cards(candidate))


def attach_pair(cards: Sequence[Card], meld: Meld) -> MeldChange:
    """Merge a pair from hand into a committed pair, giving a 4-card identical set."""
    if len(cards) != 2:
        return _refuse("Must select 2 cards")
    if meld.kind is not MeldKind.PAIR:
        return _refuse("Can only merge pairs into other pairs")
    if len(meld) + len(cards) > MAX_GROUP_SIZE:
        return _refuse("Max 4 cards allowed (double pair)")
    candidate = meld.cards + tuple(cards)
    if classify(candidate) is not MeldKind.SET:
        return _refuse("Pairs do not match")
    return MeldChange(meld=meld.replace_cards(candidate))


def joker_identity(run_cards: Sequence[Card], index: int) -> tuple[Suit, int] | None:
    """
    The (suit, rank) a joker at ``index`` stands for in an ordered run:
    previous real card + 1, else next real card - 1, else offset from the first real card.
    """
    if index > 0 and not run_cards[index - 1].is_joker:
        prev = run_cards[index - 1]
        return prev.suit, prev.rank + 1
    if index + 1 < len(run_cards) and not run_cards[index + 1].is_joker:
        nxt = run_cards[index + 1]
        return nxt.suit, nxt.rank - 1
    for anchor_index, anchor in enumerate(run_cards):
        if not anchor.is_joker:
            return anchor.suit, anchor.rank - (anchor_index - index)
    return None


def retrieve_joker(offered: Sequence[Card], meld: Meld) -> MeldChange:
    """
    Swap jokers out of a committed meld for the real cards they stand for.
    On success ``freed_jokers`` go back to the offering player's hand.
    """
    jokers = meld.jokers
    if not jokers:
        return _refuse("No joker in meld")
    if not offered:
        return _refuse("Select cards to swap")
    if any(c.is_joker for c in offered):
        return _refuse("Cannot swap a joker for a joker")

    if meld.kind is MeldKind.PAIR:
        if len(offered) != 1:
            return _refuse("Select 1 card to swap")
        reals = meld.real_cards
        if len(reals) == 1 and len(jokers) == 1:
            if offered[0].same_face(reals[0]):
                return MeldChange(
                    meld=meld.replace_cards((reals[0], offered[0])),
                    freed_jokers=(jokers[0],),
                )
            return _refuse("Card must match the pair exactly")
        return _refuse("Cannot swap in this pair")

    if meld.kind is MeldKind.RUN:
        if len(offered) != 1:
            return _refuse("Select exactly 1 card to swap in a run")
        card = offered[0]
        for i, c in enumerate(meld.cards):
            if not c.is_joker:
                continue
            identity = joker_identity(meld.cards, i)
            if identity == (card.suit, card.rank):
                cards = list(meld.cards)
                cards[i] = card
                return MeldChange(meld=meld.replace_cards(cards), freed_jokers=(c,))
        return _refuse("Card does not match the joker's position")

    # Set: only a swap completing all four distinct suits frees jokers.
    reals = meld.real_cards
    if not reals:
        return _refuse("Cannot swap into a joker-only set")
    set_rank = reals[0].rank
    if any(c.rank != set_rank for c in offered):
        return _refuse("Cards must match set rank")
    present = {c.suit for c in reals}
    offered_suits = {c.suit for c in offered}
    if present & offered_suits or len(offered_suits) != len(offered):
        return _refuse("Suit already in set")
    if len(jokers) < len(offered):
        return _refuse("Not enough jokers to swap")
    if len(reals) + len(offered) < MAX_GROUP_SIZE or len(present) != len(reals):
        return _refuse("Must complete the set (4 real cards) to retrieve a joker")
    freed = tuple(jokers[: len(offered)])
    kept = jokers[len(offered):]
    new_cards = arrange(reals + list(offered), MeldKind.SET) + kept
    return MeldChange(meld=meld.replace_cards(new_cards), freed_jokers=freed)


def is_playable(card: Card, melds: Sequence[Meld]) -> bool:
    """True if the card could be attached to, or swapped for a joker in, any committed meld."""
    for meld in melds:
        if retrieve_joker([card], meld).ok:
            return True
        if attach_card(card, meld).ok:
            return True
    return False

"""
Greedy hand solver used by bots: partitions a hand into sets/runs or pairs,
rates how useful a card would be, and picks a discard.

The partition is order-dependent (sets-first vs runs-first) and not globally
optimal; it is deterministic for a given hand order, which is all bots need.
"""
from __future__ import annotations

from enum import Enum
from typing import NamedTuple, Protocol, Sequence

from .deck import STANDARD_SUITS, Card, face_key, split_jokers
from .melds import Meld, is_playable
from .scoring import discard_candidates, within_ceiling

UTILITY_PLAYABLE = 100
UTILITY_NEW_MELD = 80
UTILITY_NEW_PAIR = 30
TAKE_DISCARD_THRESHOLD = 10


class SolveOrder(Enum):
    SETS_FIRST = "sets"
    RUNS_FIRST = "runs"


class _DiscardingPlayer(Protocol):
    cumulative_score: int
    just_opened: bool


class Extraction(NamedTuple):
    melds: list[list[Card]]
    unused: list[Card]
    jokers_left: list[Card]


def find_pairs(hand: Sequence[Card]) -> list[list[Card]]:
    """One pair per identical face seen at least twice. Jokers are never used for pairs here."""
    groups: dict[tuple[int, int], list[Card]] = {}
    for c in hand:
        key = face_key(c)
        if key is not None:
            groups.setdefault(key, []).append(c)
    return [[group[0], group[1]] for group in groups.values() if len(group) >= 2]


def extract_sets(cards: Sequence[Card], joker_pool: Sequence[Card]) -> Extraction:
    """Sets of 3+ distinct suits per rank; a 2-suit rank is completed with one joker if available."""
    jokers = list(joker_pool)
    used: set[int] = set()
    melds: list[list[Card]] = []

    by_rank: dict[int, list[Card]] = {}
    for c in cards:
        by_rank.setdefault(c.rank, []).append(c)

    for group in by_rank.values():
        one_per_suit: dict[int, Card] = {}
        for c in group:
            one_per_suit.setdefault(c.suit, c)
        distinct = list(one_per_suit.values())
        if len(distinct) >= 3:
            melds.append(distinct)
        elif len(distinct) == 2 and jokers:
            melds.append(distinct + [jokers.pop()])
        else:
            continue
        used.update(c.id for c in distinct)

    unused = [c for c in cards if c.id not in used]
    return Extraction(melds=melds, unused=unused, jokers_left=jokers)


def extract_runs(cards: Sequence[Card], joker_pool: Sequence[Card]) -> Extraction:
    """
    Per suit (Hearts, Diamonds, Clubs, Spades), scan ranks upward building runs.
    A single missing rank may be bridged with a joker; a run closes at 3+ cards,
    or at 2 cards plus a joker, otherwise it is dropped.
    """
    jokers = list(joker_pool)
    used: set[int] = set()
    melds: list[list[Card]] = []

    def close(run: list[Card]) -> None:
        if len(run) >= 3:
            melds.append(run)
        elif len(run) == 2 and jokers:
            run.append(jokers.pop())
            melds.append(run)
        else:
            return
        used.update(c.id for c in run if not c.is_joker)

    for suit in STANDARD_SUITS:
        suit_cards = sorted((c for c in cards if c.suit == suit), key=lambda c: c.rank)
        if not suit_cards:
            continue
        run = [suit_cards[0]]
        for card in suit_cards[1:]:
            last_rank = run[-1].rank
            if card.rank == last_rank + 1:
                run.append(card)
            elif card.rank == last_rank + 2 and jokers:
                run.append(jokers.pop())
                run.append(card)
            else:
                close(run)
                run = [card]
        close(run)

    unused = [c for c in cards if c.id not in used]
    return Extraction(melds=melds, unused=unused, jokers_left=jokers)


def solve_hand(hand: Sequence[Card], order: SolveOrder) -> list[list[Card]]:
    """Run both extractors in ``order``, feeding leftovers and remaining jokers forward."""
    jokers, reals = split_jokers(hand)
    if order is SolveOrder.SETS_FIRST:
        first = extract_sets(reals, jokers)
        second = extract_runs(first.unused, first.jokers_left)
    else:
        first = extract_runs(reals, jokers)
        second = extract_sets(first.unused, first.jokers_left)
    return first.melds + second.melds


def _cards_used(melds: list[list[Card]]) -> int:
    return sum(len(m) for m in melds)


def find_best_melds(hand: Sequence[Card]) -> list[list[Card]]:
    """More melds wins, then more cards covered; a full tie keeps the sets-first result."""
    sets_first = solve_hand(hand, SolveOrder.SETS_FIRST)
    runs_first = solve_hand(hand, SolveOrder.RUNS_FIRST)
    if len(sets_first) != len(runs_first):
        return sets_first if len(sets_first) > len(runs_first) else runs_first
    return sets_first if _cards_used(sets_first) >= _cards_used(runs_first) else runs_first


def card_utility(card: Card, hand: Sequence[Card], has_opened: bool, committed: Sequence[Meld]) -> int:
    """How much a bot wants ``card``: 100 playable (once opened), 80 extends melds, 30 adds a pair, else 0."""
    if has_opened and is_playable(card, committed):
        return UTILITY_PLAYABLE

    future = list(hand) + [card]
    if _cards_used(find_best_melds(future)) > _cards_used(find_best_melds(hand)):
        return UTILITY_NEW_MELD
    if len(find_pairs(future)) > len(find_pairs(hand)):
        return UTILITY_NEW_PAIR
    return 0


def should_take_discard(card: Card, hand: Sequence[Card], has_opened: bool, committed: Sequence[Meld]) -> bool:
    return card_utility(card, hand, has_opened, committed) >= TAKE_DISCARD_THRESHOLD


def choose_discard(
    hand: Sequence[Card],
    committed: Sequence[Meld],
    player: _DiscardingPlayer | None = None,
) -> Card:
    """
    Pick the card to throw: among legal candidates (non-playable, or any card if
    all are playable), keep only ceiling-safe ones right after opening, then throw
    the highest-value non-joker. Jokers go only when nothing else is left.
    """
    if not hand:
        raise ValueError("Cannot choose a discard from an empty hand")
    candidates = discard_candidates(hand, committed)

    if player is not None and player.just_opened:
        safe = [
            c for c in candidates
            if within_ceiling(player.cumulative_score, [h for h in hand if h.id != c.id])
        ]
        if safe:
            candidates = safe

    non_jokers = [c for c in candidates if not c.is_joker]
    if non_jokers:
        return max(non_jokers, key=lambda c: c.point_value())
    if candidates:
        return candidates[0]

    playable_non_jokers = [c for c in hand if not c.is_joker and is_playable(c, committed)]
    if playable_non_jokers:
        return max(playable_non_jokers, key=lambda c: c.point_value())
    return hand[0]

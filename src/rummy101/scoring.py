"""
Card points, the 100-point score ceiling, opening legality and pot payouts.
Penalty points: Joker 25, Ace 11, 10/J/Q/K 10, others face value.
"""
from __future__ import annotations

from typing import NamedTuple, Protocol, Sequence

from .deck import RANK_ACE, Card
from .melds import Meld, is_playable

SCORE_CEILING = 100
# At exactly 99 points a lone Ace left in hand counts 1 instead of 11.
ACE_EXCEPTION_SCORE = 99
ACE_EXCEPTION_PENALTY = 1

PAIRS_MULTIPLIER = 2
JOKER_FINISH_MULTIPLIER = 2

# Max-rounds payout: lowest score takes 66%, runner-up the rest.
FIRST_SHARE_PERCENT = 66


class _Scored(Protocol):
    cumulative_score: int


class OpeningCheck(NamedTuple):
    allowed: bool
    reason: str = ""


def point_value(card: Card) -> int:
    return card.point_value()


def hand_value(hand: Sequence[Card]) -> int:
    """Total penalty points of a hand."""
    return sum(c.point_value() for c in hand)


def ceiling_penalty(cumulative_score: int, remaining_hand: Sequence[Card]) -> int:
    """Points the remaining hand would add, applying the lone-Ace-at-99 exception."""
    if (
        cumulative_score == ACE_EXCEPTION_SCORE
        and len(remaining_hand) == 1
        and not remaining_hand[0].is_joker
        and remaining_hand[0].rank == RANK_ACE
    ):
        return ACE_EXCEPTION_PENALTY
    return hand_value(remaining_hand)


def within_ceiling(
    cumulative_score: int,
    remaining_hand: Sequence[Card],
    ceiling: int = SCORE_CEILING,
) -> bool:
    """True if cumulative score plus the remaining hand's penalty stays at or below the ceiling."""
    return cumulative_score + ceiling_penalty(cumulative_score, remaining_hand) <= ceiling


def discard_candidates(hand: Sequence[Card], committed: Sequence[Meld]) -> list[Card]:
    """
    Cards that may be discarded: those not playable onto the table.
    If every card is playable, any card may go (forced discard).
    """
    candidates = [c for c in hand if not is_playable(c, committed)]
    return candidates if candidates else list(hand)


def can_open(
    player: _Scored,
    remaining_hand: Sequence[Card],
    committed: Sequence[Meld],
    ceiling: int = SCORE_CEILING,
) -> OpeningCheck:
    """
    Whether opening is legal: some legal post-opening discard must leave
    the player's score within the ceiling. A hand of 0 or 1 card always opens.
    """
    if len(remaining_hand) <= 1:
        return OpeningCheck(allowed=True)
    for candidate in discard_candidates(remaining_hand, committed):
        kept = [c for c in remaining_hand if c.id != candidate.id]
        if within_ceiling(player.cumulative_score, kept, ceiling):
            return OpeningCheck(allowed=True)
    return OpeningCheck(
        allowed=False,
        reason=f"Cannot open: no valid discard leaves you <= {ceiling} pts.",
    )


def round_multiplier(opened_with_pairs: bool, finishing_card: Card | None) -> int:
    """1x, doubled for a Pairs opening, doubled again for finishing on a joker."""
    multiplier = 1
    if opened_with_pairs:
        multiplier *= PAIRS_MULTIPLIER
    if finishing_card is not None and finishing_card.is_joker:
        multiplier *= JOKER_FINISH_MULTIPLIER
    return multiplier


def split_even(pot: int, recipients: int) -> tuple[int, int]:
    """(share per recipient, remainder). Floor division; the remainder stays in the pot."""
    if recipients <= 0:
        return 0, pot
    share = pot // recipients
    return share, pot - share * recipients


def split_first_second(pot: int) -> tuple[int, int]:
    """66% (floored) to the lowest score, the rest to the runner-up."""
    first = pot * FIRST_SHARE_PERCENT // 100
    return first, pot - first

"""Tests for shuffling, dealing, recycling and seat rotation."""
import random

import pytest

from rummy101.deal import build_shoe, deal_hands, next_active_seat, next_seat, recycle_discard_pile


def test_build_shoe_is_reproducible_with_seed():
    a = build_shoe(random.Random(7))
    b = build_shoe(random.Random(7))
    assert [c.id for c in a] == [c.id for c in b]
    assert sorted(c.id for c in a) == list(range(106))


def test_deal_four_hands_of_ten():
    shoe = build_shoe(random.Random(1))
    before = list(shoe)
    deal = deal_hands(shoe)
    assert shoe == before  # input untouched
    assert [len(h) for h in deal.hands] == [10, 10, 10, 10]
    assert len(deal.shoe) == 66
    ids = [c.id for h in deal.hands for c in h] + [c.id for c in deal.shoe]
    assert sorted(ids) == list(range(106))
    # Round-robin from the top (end) of the shoe.
    assert deal.hands[0][0] == shoe[-1]
    assert deal.hands[1][0] == shoe[-2]


def test_deal_skips_inactive_seats():
    deal = deal_hands(build_shoe(random.Random(2)), active_seats=(0, 2, 3))
    assert deal.hands[1] == []
    assert len(deal.shoe) == 76


def test_deal_raises_on_short_shoe():
    with pytest.raises(ValueError):
        deal_hands(build_shoe(random.Random(3))[:30])


def test_recycle_moves_whole_discard_pile():
    shoe = build_shoe(random.Random(4))
    pile = shoe[:5]
    recycled = recycle_discard_pile(pile, random.Random(5))
    assert pile == []
    assert sorted(c.id for c in recycled) == sorted(c.id for c in shoe[:5])
    assert recycle_discard_pile([], random.Random(5)) == []


def test_seat_rotation_increments_and_skips_eliminated():
    assert next_seat(3) == 0
    eliminated = [False, True, True, False]
    assert next_active_seat(0, eliminated) == 3
    assert next_active_seat(1, eliminated, include_self=True) == 3
    assert next_active_seat(0, eliminated, include_self=True) == 0

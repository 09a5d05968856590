"""Tests for the 106-card shoe."""
from collections import Counter

import pytest

from rummy101.deck import SHOE_SIZE, Card, Suit, card_by_id, face_key, make_shoe_106, split_jokers

from helpers import JOKER_A, card


def test_shoe_has_106_unique_ids():
    shoe = make_shoe_106()
    assert len(shoe) == SHOE_SIZE == 106
    assert sorted(c.id for c in shoe) == list(range(106))


def test_every_face_appears_twice_plus_two_jokers():
    shoe = make_shoe_106()
    jokers, reals = split_jokers(shoe)
    assert [j.id for j in jokers] == [104, 105]
    faces = Counter(face_key(c) for c in reals)
    assert len(faces) == 52
    assert set(faces.values()) == {2}


def test_card_by_id_matches_shoe_order():
    for c in make_shoe_106():
        assert card_by_id(c.id) == c
    with pytest.raises(ValueError):
        card_by_id(106)


def test_point_values():
    assert JOKER_A.point_value() == 25
    assert card(Suit.SPADES, 14).point_value() == 11
    for rank in (10, 11, 12, 13):
        assert card(Suit.CLUBS, rank).point_value() == 10
    assert card(Suit.HEARTS, 7).point_value() == 7
    assert card(Suit.DIAMONDS, 2).point_value() == 2


def test_invalid_cards_raise():
    with pytest.raises(ValueError):
        Card(id=0, suit=Suit.HEARTS, rank=1)
    with pytest.raises(ValueError):
        Card(id=104, suit=Suit.JOKER, rank=5)


def test_same_face_distinguishes_duplicates_from_other_suits():
    h7 = card(Suit.HEARTS, 7)
    h7_second = card(Suit.HEARTS, 7, deck=1)
    assert h7.id != h7_second.id
    assert h7.same_face(h7_second)
    assert not h7.same_face(card(Suit.DIAMONDS, 7))
    assert not JOKER_A.same_face(h7)
    assert str(h7) == "7♥"
    assert str(card(Suit.SPADES, 12)) == "Q♠"

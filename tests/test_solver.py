"""Tests for the bot hand solver and discard choice."""
from types import SimpleNamespace

import pytest

from rummy101.solver import (
    SolveOrder,
    card_utility,
    choose_discard,
    extract_runs,
    extract_sets,
    find_best_melds,
    find_pairs,
    should_take_discard,
    solve_hand,
)

from helpers import C, D, H, JOKER_A, JOKER_B, S, card, meld


def test_find_pairs_one_per_face_without_jokers():
    hand = [card(H, 7), card(H, 7, deck=1), card(D, 7), JOKER_A, card(S, 2), card(S, 2, deck=1)]
    pairs = find_pairs(hand)
    assert len(pairs) == 2
    assert [card(H, 7), card(H, 7, deck=1)] in pairs


def test_extract_sets_uses_joker_for_two_suits():
    cards = [card(H, 9), card(D, 9), card(C, 9), card(H, 4), card(S, 4)]
    result = extract_sets(cards, [JOKER_A])
    assert len(result.melds) == 2
    assert result.melds[1] == [card(H, 4), card(S, 4), JOKER_A]
    assert result.unused == []
    assert result.jokers_left == []


def test_extract_runs_bridges_single_gap():
    cards = [card(S, 5), card(S, 6), card(S, 8), card(D, 2)]
    result = extract_runs(cards, [JOKER_A])
    assert result.melds == [[card(S, 5), card(S, 6), JOKER_A, card(S, 8)]]
    assert result.unused == [card(D, 2)]


def test_solve_order_changes_result():
    hand = [card(H, 5), card(H, 6), card(H, 7), card(D, 7), card(C, 7)]
    sets_first = solve_hand(hand, SolveOrder.SETS_FIRST)
    runs_first = solve_hand(hand, SolveOrder.RUNS_FIRST)
    assert sets_first == [[card(H, 7), card(D, 7), card(C, 7)]]
    assert runs_first == [[card(H, 5), card(H, 6), card(H, 7)]]


def test_find_best_melds_prefers_more_melds():
    hand = [
        card(H, 5), card(H, 6), card(H, 7),
        card(D, 9), card(C, 9), card(S, 9),
        card(C, 2),
    ]
    best = find_best_melds(hand)
    assert len(best) == 2
    assert find_best_melds([card(C, 2), card(D, 13)]) == []


def test_card_utility_levels():
    table = [meld(1, [card(H, 5), card(H, 6), card(H, 7)])]
    hand = [card(S, 9), card(D, 9), card(C, 3), card(D, 12)]
    assert card_utility(card(H, 8), hand, True, table) == 100
    assert card_utility(card(H, 9), hand, False, table) == 80  # completes a 9 set
    assert card_utility(card(D, 12, deck=1), hand, False, table) == 30
    assert card_utility(card(C, 14), hand, False, table) == 0
    assert should_take_discard(card(H, 9), hand, False, table)
    assert not should_take_discard(card(C, 14), hand, False, table)


def test_choose_discard_prefers_highest_non_joker():
    hand = [JOKER_A, card(S, 13), card(D, 4)]
    assert choose_discard(hand, []) == card(S, 13)
    assert choose_discard([JOKER_A, JOKER_B], []) == JOKER_A


def test_choose_discard_skips_playable_cards():
    table = [meld(1, [card(H, 5), card(H, 6), card(H, 7)])]
    hand = [card(H, 8), card(S, 3)]
    assert choose_discard(hand, table) == card(S, 3)


def test_choose_discard_after_opening_keeps_within_ceiling():
    hand = [JOKER_A, card(S, 13), card(S, 2)]
    player = SimpleNamespace(just_opened=True, cumulative_score=70)
    assert choose_discard(hand, [], player) == card(S, 13)
    # At 80 only dropping the joker keeps the rest within 100.
    player = SimpleNamespace(just_opened=True, cumulative_score=80)
    assert choose_discard(hand, [], player) == JOKER_A


def test_choose_discard_empty_hand_raises():
    with pytest.raises(ValueError):
        choose_discard([], [])

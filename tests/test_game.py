"""Tests for the round / match state machine."""
import random

import pytest

from rummy101.config import all_bots_config
from rummy101.deck import make_shoe_106
from rummy101.errors import RuleViolation
from rummy101.events import EventKind
from rummy101.game import (
    CancelStaged,
    ConfirmOpening,
    Discard,
    DrawCard,
    ProcessOntoMeld,
    StageMeld,
    TimeoutAdvance,
    advance_on_timeout,
    apply,
    next_round,
    start_match,
)
from rummy101.melds import MeldKind
from rummy101.state import DrawSource, OpeningKind, Phase, check_conservation

from helpers import C, D, H, JOKER_A, JOKER_B, S, card, meld, table_state


def _ids(*cards):
    return tuple(c.id for c in cards)


def _everything_but(cards):
    used = {c.id for c in cards}
    return [c for c in make_shoe_106() if c.id not in used]


# ---- Start / draw ----


def test_start_match_deals_and_collects_antes():
    result = start_match(all_bots_config(), random.Random(3))
    state = result.state
    assert result.ok
    assert state.phase is Phase.DRAW
    assert state.active_seat == 0
    assert state.round_number == 1
    assert [len(p.hand) for p in state.players] == [10, 10, 10, 10]
    assert len(state.deck) == 66
    assert state.discard_pile == []
    assert state.round_pot == 80
    assert [p.chips for p in state.players] == [80, 80, 80, 80]
    assert result.events[0].kind is EventKind.ROUND_DEALT
    assert state.message_key == "game.round_start"
    check_conservation(state)


def test_rejection_returns_the_same_state_object():
    state = start_match(all_bots_config(), random.Random(3)).state
    result = apply(state, DrawCard(seat=2))
    assert result.state is state
    assert result.rejection.code is RuleViolation.NOT_ACTIVE_SEAT
    assert result.events == ()

    wrong = apply(state, Discard(seat=0, card_id=state.players[0].hand[0].id))
    assert wrong.state is state
    assert wrong.rejection.code is RuleViolation.WRONG_PHASE


def test_draw_from_deck_leaves_input_untouched():
    state = start_match(all_bots_config(), random.Random(4)).state
    top = state.deck[-1]
    result = apply(state, DrawCard(seat=0))
    assert result.ok
    assert len(state.players[0].hand) == 10
    assert state.phase is Phase.DRAW
    assert result.state.players[0].hand[-1] == top
    assert result.state.phase is Phase.ACTION
    assert [e.kind for e in result.events] == [EventKind.CARD_DRAWN]


def test_draw_from_empty_discard_pile_rejected():
    state = start_match(all_bots_config(), random.Random(5)).state
    result = apply(state, DrawCard(seat=0, source=DrawSource.DISCARD))
    assert result.rejection.code is RuleViolation.EMPTY_PILE
    assert result.rejection.message_key == "toast.discard_empty"


def test_draw_from_discard_pile_takes_top():
    discard = [card(S, 2), card(S, 3)]
    state = table_state({0: [card(H, 2)]}, discard=discard, phase=Phase.DRAW)
    result = apply(state, DrawCard(seat=0, source=DrawSource.DISCARD))
    assert result.ok
    assert result.state.players[0].hand[-1] == card(S, 3)
    assert result.state.discard_pile == [card(S, 2)]


def test_empty_deck_recycles_discard_pile():
    hand = [card(H, 2)]
    discard = [card(S, 2), card(S, 3), card(S, 4)]
    rest = _everything_but(hand + discard)
    state = table_state({0: hand, 3: rest}, discard=discard, phase=Phase.DRAW, deck=[])
    result = apply(state, DrawCard(seat=0), random.Random(1))
    assert result.ok
    new = result.state
    assert new.discard_pile == []
    assert len(new.deck) == 2
    assert len(new.players[0].hand) == 2
    assert [e.kind for e in result.events] == [EventKind.DECK_RECYCLED, EventKind.CARD_DRAWN]


def _no_contest_state(max_rounds=9):
    """Four 10-card hands, every other card on the table, nothing left to draw."""
    suits = (H, D, C, S)
    hands = {seat: [card(suit, rank) for rank in range(2, 12)] for seat, suit in enumerate(suits)}
    committed = []
    jokers = [JOKER_A, JOKER_B, None, None]
    for i, suit in enumerate(suits):
        top = [card(suit, 12), card(suit, 13), card(suit, 14)]
        if jokers[i] is not None:
            top.append(jokers[i])
        committed.append(meld(i + 1, top, owner=i))
        committed.append(meld(i + 5, [card(suit, rank, deck=1) for rank in range(2, 15)], owner=i))
    state = table_state(
        hands,
        committed=committed,
        phase=Phase.DRAW,
        deck=[],
        config=all_bots_config(max_rounds=max_rounds),
    )
    for seat, score in enumerate((0, 10, 20, 30)):
        state.players[seat].cumulative_score = score
    return state


def test_no_contest_round_when_nothing_to_draw():
    state = _no_contest_state()
    assert all(len(p.hand) == 10 for p in state.players)
    result = apply(state, DrawCard(seat=0))
    assert result.ok
    new = result.state
    assert new.phase is Phase.ROUND_OVER
    assert new.winner_seat is None
    assert [p.chips for p in new.players] == [80, 80, 80, 80]
    assert [p.cumulative_score for p in new.players] == [0, 10, 20, 30]
    assert new.round_pot == 0
    assert new.grand_pot == 80
    assert new.message_key == "game.draw_game"
    assert [e.kind for e in result.events] == [EventKind.DRAW_GAME]


def test_no_contest_in_final_round_ends_match():
    state = _no_contest_state(max_rounds=1)
    result = advance_on_timeout(state)
    new = result.state
    assert new.phase is Phase.GAME_OVER
    assert new.pot_split == [(0, 52), (1, 28)]
    assert new.players[0].chips == 132
    assert new.players[1].chips == 108
    assert result.events[-1].kind is EventKind.GAME_OVER


# ---- Staging and opening ----


def _opening_hand():
    return [
        card(H, 2), card(H, 3), card(H, 4),
        card(D, 5), card(D, 6), card(D, 7),
        card(S, 9), card(S, 9, deck=1), card(C, 13), card(C, 3),
    ]


def test_stage_invalid_meld_rejected():
    state = table_state({0: _opening_hand()})
    result = apply(state, StageMeld(seat=0, card_ids=_ids(card(H, 2), card(D, 5), card(S, 9))))
    assert result.rejection.code is RuleViolation.INVALID_MELD_PATTERN
    assert result.rejection.message_key == "toast.invalid_meld"


def test_stage_unknown_card_rejected():
    state = table_state({0: _opening_hand()})
    result = apply(state, StageMeld(seat=0, card_ids=_ids(card(H, 2), card(H, 3), card(H, 5))))
    assert result.rejection.code is RuleViolation.UNKNOWN_CARD


def test_series_opening_flow():
    state = table_state({0: _opening_hand()})

    staged = apply(state, StageMeld(seat=0, card_ids=_ids(card(H, 2), card(H, 3), card(H, 4))))
    assert staged.ok
    state = staged.state
    assert len(state.players[0].staged) == 1
    assert len(state.players[0].hand) == 7
    assert state.committed_melds == []

    mixed = apply(state, StageMeld(seat=0, card_ids=_ids(card(S, 9), card(S, 9, deck=1))))
    assert mixed.rejection.message_key == "toast.switch_to_pairs"

    too_few = apply(state, ConfirmOpening(seat=0))
    assert too_few.rejection.code is RuleViolation.OPENING_NOT_MET
    assert too_few.rejection.message_key == "toast.need_more_series"
    assert too_few.rejection.args == {"count": 1}
    assert too_few.rejection.text == "You need at least 2 series to open, you have 1."

    blocked = apply(state, Discard(seat=0, card_id=card(C, 3).id))
    assert blocked.rejection.code is RuleViolation.ILLEGAL_DISCARD
    assert blocked.rejection.message_key == "toast.clear_staged"

    state = apply(state, StageMeld(seat=0, card_ids=_ids(card(D, 5), card(D, 6), card(D, 7)))).state
    opened = apply(state, ConfirmOpening(seat=0))
    assert opened.ok
    state = opened.state
    player = state.players[0]
    assert player.has_opened and player.just_opened
    assert player.opening_kind is OpeningKind.SERIES
    assert player.staged == []
    assert len(state.committed_melds) == 2
    assert [e.kind for e in opened.events] == [EventKind.MELD_FORMED, EventKind.MELD_FORMED]

    again = apply(state, ConfirmOpening(seat=0))
    assert again.rejection.message_key == "toast.already_opened"
    pair = apply(state, StageMeld(seat=0, card_ids=_ids(card(S, 9), card(S, 9, deck=1))))
    assert pair.rejection.message_key == "toast.series_only"


def test_cancel_staged_returns_cards():
    state = table_state({0: _opening_hand()})
    state = apply(state, StageMeld(seat=0, card_ids=_ids(card(H, 2), card(H, 3), card(H, 4)))).state
    result = apply(state, CancelStaged(seat=0))
    assert result.ok
    player = result.state.players[0]
    assert player.staged == []
    assert sorted(c.id for c in player.hand) == sorted(c.id for c in _opening_hand())
    assert apply(result.state, CancelStaged(seat=0)).rejection.message_key == "toast.nothing_staged"


def test_opening_rejected_when_no_discard_keeps_score_within_ceiling():
    hand = [card(H, 2), card(H, 3), card(H, 4), card(D, 2), card(D, 3), card(D, 4), card(S, 13), card(S, 12)]
    state = table_state({0: hand})
    state.players[0].cumulative_score = 95
    state = apply(state, StageMeld(seat=0, card_ids=_ids(*hand[:3]))).state
    state = apply(state, StageMeld(seat=0, card_ids=_ids(*hand[3:6]))).state
    result = apply(state, ConfirmOpening(seat=0))
    assert result.state is state
    assert result.rejection.code is RuleViolation.OPENING_NOT_MET
    assert result.rejection.message_key == "toast.score_limit_exceeded"


def test_pairs_opening():
    pairs = [
        (card(S, 9), card(S, 9, deck=1)),
        (card(D, 4), card(D, 4, deck=1)),
        (card(H, 13), card(H, 13, deck=1)),
        (card(C, 7), card(C, 7, deck=1)),
    ]
    hand = [c for p in pairs for c in p] + [card(S, 2), JOKER_A]
    state = table_state({0: hand})
    for p in pairs[:3]:
        state = apply(state, StageMeld(seat=0, card_ids=_ids(*p))).state
    short = apply(state, ConfirmOpening(seat=0)).rejection
    assert short.message_key == "toast.need_more_pairs"
    assert short.text == "You need at least 4 pairs to open, you have 3."
    grouped = apply(state, StageMeld(seat=0, card_ids=_ids(card(C, 7), card(C, 7, deck=1), JOKER_A)))
    assert grouped.rejection.code is RuleViolation.INVALID_MELD_PATTERN
    assert grouped.rejection.message_key == "toast.pairs_select_two"

    state = apply(state, StageMeld(seat=0, card_ids=_ids(*pairs[3]))).state
    opened = apply(state, ConfirmOpening(seat=0))
    assert opened.ok
    assert opened.state.players[0].opening_kind is OpeningKind.PAIRS
    assert all(m.kind is MeldKind.PAIR for m in opened.state.committed_melds)


def test_opened_player_lays_melds_directly_and_emptying_hand_wins():
    hand = [card(H, 2), card(H, 3), card(H, 4)]
    state = table_state({0: hand, 1: [card(S, 5)]})
    state.players[0].has_opened = True
    state.players[0].opening_kind = OpeningKind.SERIES
    result = apply(state, StageMeld(seat=0, card_ids=_ids(*hand)))
    assert result.ok
    new = result.state
    assert new.phase is Phase.ROUND_OVER
    assert new.winner_seat == 0
    assert new.players[1].cumulative_score == 5


# ---- Discard ----


def test_cannot_discard_a_card_that_fits_the_table():
    table = [meld(1, [card(H, 5), card(H, 6), card(H, 7)])]
    state = table_state({0: [card(H, 8), card(S, 2)], 1: [card(S, 5)]}, committed=table)
    fits = apply(state, Discard(seat=0, card_id=card(H, 8).id))
    assert fits.rejection.code is RuleViolation.ILLEGAL_DISCARD
    assert fits.rejection.message_key == "toast.card_fits"

    ok = apply(state, Discard(seat=0, card_id=card(S, 2).id))
    assert ok.ok
    assert ok.state.active_seat == 1
    assert ok.state.phase is Phase.DRAW
    assert ok.state.discard_top == card(S, 2)

    missing = apply(state, Discard(seat=0, card_id=card(D, 9).id))
    assert missing.rejection.code is RuleViolation.UNKNOWN_CARD


def test_forced_discard_when_every_card_fits():
    table = [meld(1, [card(H, 5), card(H, 6), card(H, 7)])]
    state = table_state({0: [card(H, 8), card(H, 4)]}, committed=table)
    assert apply(state, Discard(seat=0, card_id=card(H, 8).id)).ok


def test_discard_right_after_opening_must_respect_ceiling():
    hand = [
        card(H, 2), card(H, 3), card(H, 4),
        card(D, 2), card(D, 3), card(D, 4),
        card(S, 13), card(S, 5), card(C, 9),
    ]
    state = table_state({0: hand, 1: [card(C, 2)]})
    state.players[0].cumulative_score = 85
    state = apply(state, StageMeld(seat=0, card_ids=_ids(*hand[:3]))).state
    state = apply(state, StageMeld(seat=0, card_ids=_ids(*hand[3:6]))).state
    state = apply(state, ConfirmOpening(seat=0)).state

    over = apply(state, Discard(seat=0, card_id=card(S, 5).id))
    assert over.rejection.message_key == "toast.opening_limit"
    ok = apply(state, Discard(seat=0, card_id=card(S, 13).id))
    assert ok.ok
    assert not ok.state.players[0].just_opened


def test_joker_discard_costs_chips():
    state = table_state({0: [JOKER_A, card(S, 2)], 1: [card(C, 2)]})
    result = apply(state, Discard(seat=0, card_id=JOKER_A.id))
    assert result.ok
    assert result.state.players[0].chips == 60
    assert result.state.grand_pot == 20
    kinds = [e.kind for e in result.events]
    assert kinds == [EventKind.CARD_DISCARDED, EventKind.JOKER_PENALTY]


def test_pairs_opener_finishing_on_joker_scores_times_four():
    state = table_state({
        0: [JOKER_A],
        1: [card(S, 5), card(S, 9)],
        2: [card(H, 14), card(D, 14), card(C, 14)],
        3: [card(C, 2)],
    })
    winner = state.players[0]
    winner.has_opened = True
    winner.opening_kind = OpeningKind.PAIRS
    state.players[1].cumulative_score = 10

    result = apply(state, Discard(seat=0, card_id=JOKER_A.id))
    new = result.state
    assert new.phase is Phase.ROUND_OVER
    assert new.winner_seat == 0
    assert new.players[0].chips == 80 - 20 + 80
    assert new.round_pot == 0
    assert [p.round_score for p in new.players] == [0, 14 * 4, 33 * 4, 2 * 4]
    assert new.players[1].cumulative_score == 10 + 56
    assert new.players[2].is_eliminated
    assert not new.players[3].is_eliminated
    assert new.message_key == "game.wins_multiplied"
    assert new.message_args["multiplier"] == 4
    round_won = [e for e in result.events if e.kind is EventKind.ROUND_WON][0]
    assert round_won.data["multiplier"] == 4


# ---- Game over ----


def test_final_round_splits_grand_pot_between_two_lowest():
    state = table_state(
        {0: [card(S, 2)], 1: [card(S, 3)], 2: [card(S, 4)], 3: [card(S, 5)]},
        config=all_bots_config(max_rounds=1),
    )
    for seat, score in enumerate((0, 10, 30, 50)):
        state.players[seat].cumulative_score = score
    state.grand_pot = 100
    result = apply(state, Discard(seat=0, card_id=card(S, 2).id))
    new = result.state
    assert new.phase is Phase.GAME_OVER
    assert new.pot_split == [(0, 66), (1, 34)]
    assert new.players[0].chips == 80 + 80 + 66
    assert new.players[1].chips == 80 + 34
    assert new.grand_pot == 0
    assert new.message_key == "game.game_over"


def test_last_player_standing_takes_grand_pot():
    state = table_state({0: [card(S, 2)], 1: [card(H, 14), card(D, 14), card(C, 14), card(S, 14)]})
    state.players[1].cumulative_score = 60
    state.players[2].is_eliminated = True
    state.players[3].is_eliminated = True
    state.grand_pot = 50
    new = apply(state, Discard(seat=0, card_id=card(S, 2).id)).state
    assert new.phase is Phase.GAME_OVER
    assert new.players[1].is_eliminated
    assert new.pot_split == [(0, 50)]
    assert new.players[0].chips == 80 + 80 + 50


# ---- Processing onto table melds ----


def _processing_state(hand, opened=True):
    state = table_state({0: hand, 1: [card(C, 2)]}, committed=[meld(1, [card(H, 5), JOKER_A, card(H, 7)])])
    state.players[0].has_opened = opened
    state.players[0].opening_kind = OpeningKind.SERIES if opened else None
    return state


def test_processing_guards():
    assert apply(_processing_state([card(H, 6), card(S, 2)], opened=False),
                 ProcessOntoMeld(seat=0, meld_id=1, card_ids=_ids(card(H, 6)))).rejection.message_key == "toast.open_hand_first"
    assert apply(_processing_state([card(H, 6)]),
                 ProcessOntoMeld(seat=0, meld_id=1, card_ids=_ids(card(H, 6)))).rejection.message_key == "toast.last_card_discard"
    unknown = apply(_processing_state([card(H, 6), card(S, 2)]),
                    ProcessOntoMeld(seat=0, meld_id=99, card_ids=_ids(card(H, 6))))
    assert unknown.rejection.message_key == "toast.unknown_meld"
    two = apply(_processing_state([card(H, 8), card(H, 9), card(S, 2)]),
                ProcessOntoMeld(seat=0, meld_id=1, card_ids=_ids(card(H, 8), card(H, 9))))
    assert two.rejection.code is RuleViolation.ILLEGAL_MELD_ATTACH
    assert two.rejection.message_key == "toast.select_one_swap"


def test_retrieve_joker_then_attach():
    state = _processing_state([card(H, 6), card(S, 2), card(H, 8)])
    swapped = apply(state, ProcessOntoMeld(seat=0, meld_id=1, card_ids=_ids(card(H, 6))))
    assert swapped.ok
    new = swapped.state
    assert new.committed_melds[0].cards == (card(H, 5), card(H, 6), card(H, 7))
    assert JOKER_A in new.players[0].hand
    assert [e.kind for e in swapped.events] == [EventKind.JOKER_RETRIEVED]

    attached = apply(new, ProcessOntoMeld(seat=0, meld_id=1, card_ids=_ids(card(H, 8))))
    assert attached.ok
    assert len(attached.state.committed_melds[0]) == 4
    assert sorted(c.id for c in attached.state.players[0].hand) == sorted([card(S, 2).id, JOKER_A.id])

    nope = apply(attached.state, ProcessOntoMeld(seat=0, meld_id=1, card_ids=_ids(card(S, 2))))
    assert nope.rejection.message_key == "toast.cannot_add"


def test_pair_merge_can_finish_the_round():
    state = table_state({0: [card(S, 9, deck=1), JOKER_B], 1: [card(C, 2)]}, committed=[meld(1, [card(S, 9), JOKER_A])])
    state.players[0].has_opened = True
    state.players[0].opening_kind = OpeningKind.PAIRS
    result = apply(state, ProcessOntoMeld(seat=0, meld_id=1, card_ids=_ids(card(S, 9, deck=1), JOKER_B)))
    assert result.ok
    new = result.state
    assert new.committed_melds[0].kind is MeldKind.SET
    assert new.phase is Phase.ROUND_OVER
    assert new.winner_seat == 0
    assert new.players[1].round_score == 2 * 2  # pairs opening doubles


# ---- Timeout fallback ----


def test_timeout_draws_in_draw_phase():
    state = start_match(all_bots_config(), random.Random(8)).state
    result = advance_on_timeout(state, random.Random(1))
    assert result.ok
    assert len(result.state.players[0].hand) == 11
    assert result.state.phase is Phase.ACTION
    assert result.state.message_key == "game.auto_drawn"


def test_timeout_cancels_staged_and_discards():
    hand = [card(H, 2), card(H, 3), card(H, 4), card(S, 13), card(S, 5)]
    state = table_state({0: hand, 1: [card(C, 2)]})
    state = apply(state, StageMeld(seat=0, card_ids=_ids(*hand[:3]))).state
    result = apply(state, TimeoutAdvance())
    assert result.ok
    new = result.state
    assert new.players[0].staged == []
    assert len(new.players[0].hand) == 4
    assert new.discard_top == card(S, 13)
    assert new.active_seat == 1
    assert new.message_key == "game.turn"


# ---- New round ----


def _round_over_state():
    state = table_state({0: [], 1: [], 2: [], 3: []}, phase=Phase.ROUND_OVER)
    state.round_pot = 0
    for seat, score in enumerate((20, 40, 132, 0)):
        state.players[seat].cumulative_score = score
    state.players[2].is_eliminated = True
    return state


def test_next_round_reentry():
    result = next_round(_round_over_state(), random.Random(2))
    assert result.ok
    new = result.state
    assert new.round_number == 2
    assert new.round_starter_seat == 1
    assert new.active_seat == 1
    assert new.phase is Phase.DRAW
    reentered = new.players[2]
    assert not reentered.is_eliminated
    assert reentered.chips == 80 - 10 - 20
    assert reentered.cumulative_score == 40
    assert new.grand_pot == 10
    assert new.round_pot == 80
    assert [len(p.hand) for p in new.players] == [10, 10, 10, 10]
    check_conservation(new)


def test_next_round_bankrupts_player_who_cannot_reenter():
    state = _round_over_state()
    state.players[2].chips = 25
    new = next_round(state, random.Random(2)).state
    assert new.players[2].is_bankrupt
    assert new.players[2].hand == []
    assert new.round_pot == 60
    assert len(new.deck) == 76
    assert new.phase is Phase.DRAW


def test_two_bankruptcies_end_the_match_at_setup():
    state = _round_over_state()
    state.players[3].is_eliminated = True
    state.players[2].chips = 5
    state.players[3].chips = 5
    state.grand_pot = 40
    new = next_round(state, random.Random(2)).state
    assert new.phase is Phase.GAME_OVER
    assert new.pot_split == [(0, 40), (1, 40)]
    assert new.players[0].chips == 80 - 20 + 40
    assert new.grand_pot == 0
    assert len(new.deck) == 106


def test_next_round_requires_round_over():
    state = start_match(all_bots_config(), random.Random(1)).state
    assert next_round(state).rejection.code is RuleViolation.WRONG_PHASE


def test_resume_keeps_chips_and_scores():
    state = _round_over_state()
    resumed = start_match(state.config, random.Random(3), resume_from=state).state
    assert resumed.round_number == 2
    assert resumed.players[1].cumulative_score == 40


def test_resume_with_a_different_config_raises():
    state = _round_over_state()
    with pytest.raises(ValueError):
        start_match(all_bots_config(max_rounds=2), random.Random(3), resume_from=state)


def test_conservation_holds_through_forced_turns():
    state = start_match(all_bots_config(), random.Random(11)).state
    rng = random.Random(12)
    for _ in range(400):
        if state.phase is Phase.ROUND_OVER:
            state = next_round(state, rng).state
        elif state.phase is Phase.GAME_OVER:
            break
        else:
            state = advance_on_timeout(state, rng).state
        check_conservation(state)

"""Tests for state snapshots and message rendering."""
import json
import random

import pytest

from rummy101.config import MatchConfig
from rummy101.game import DrawCard, apply, start_match
from rummy101.messages import render
from rummy101.snapshot import (
    SCHEMA_VERSION,
    snapshot_from_json,
    snapshot_to_json,
    state_from_dict,
    state_to_dict,
)
from rummy101.state import check_conservation


def _state():
    state = start_match(MatchConfig(), random.Random(11)).state
    return apply(state, DrawCard(seat=0)).state


def test_full_snapshot_round_trip():
    state = _state()
    restored = snapshot_from_json(snapshot_to_json(state, metadata={"note": "mid-turn"}))
    check_conservation(restored)
    assert [c.id for c in restored.players[0].hand] == [c.id for c in state.players[0].hand]
    assert [c.id for c in restored.deck] == [c.id for c in state.deck]
    assert restored.phase is state.phase
    assert restored.active_seat == state.active_seat
    assert restored.round_pot == state.round_pot
    assert restored.config == state.config


def test_viewer_snapshot_hides_other_hands():
    state = _state()
    d = state_to_dict(state, viewer=0)
    assert d["viewer"] == 0
    assert "hand" in d["players"][0]
    assert "hand" not in d["players"][1]
    assert d["players"][1]["hand_size"] == 10
    assert "deck" not in d
    json.dumps(d)
    with pytest.raises(ValueError):
        state_from_dict(d)


def test_unknown_schema_version_rejected():
    d = state_to_dict(_state())
    assert d["schema_version"] == SCHEMA_VERSION
    d["schema_version"] = SCHEMA_VERSION + 1
    with pytest.raises(ValueError):
        state_from_dict(d)


def test_snapshot_carries_rendered_message():
    state = start_match(MatchConfig(), random.Random(11)).state
    d = state_to_dict(state)
    assert d["message_key"] == state.message_key
    assert d["message"] == render(state.message_key, state.message_args)


def test_render_formats_and_falls_back():
    assert render("toast.need_more_pairs", {"count": 3}) == "You need at least 4 pairs to open, you have 3."
    assert render("no.such.key") == "no.such.key"
    assert render("game.turn") == "{name}'s turn"
    assert render("game.turn", {"name": "Can"}, table={"game.turn": "Sıra {name}"}) == "Sıra Can"

"""
MatchState serialization for render layers, saves and resumes.

Cards are stored by id (0..105). A snapshot taken for a ``viewer`` seat hides
the other seats' hands (only their sizes are kept) and cannot be restored.
"""
from __future__ import annotations

import json
from datetime import datetime, timezone
from typing import Any, Dict, List

from .config import MatchConfig
from .deck import Card, card_by_id
from .melds import Meld, MeldKind
from .messages import render
from .state import MatchState, OpeningKind, Phase, Player

SCHEMA_VERSION = 1


def _ids(cards: List[Card] | tuple) -> List[int]:
    return [c.id for c in cards]


def _cards(ids: List[int]) -> List[Card]:
    return [card_by_id(int(i)) for i in ids]


def _meld_to_dict(meld: Meld) -> Dict[str, Any]:
    return {"id": meld.id, "kind": meld.kind.value, "owner": meld.owner, "cards": _ids(meld.cards)}


def _meld_from_dict(d: Dict[str, Any]) -> Meld:
    return Meld(id=int(d["id"]), cards=tuple(_cards(d["cards"])), kind=MeldKind(d["kind"]), owner=int(d["owner"]))


def _player_to_dict(p: Player, show_hand: bool) -> Dict[str, Any]:
    d: Dict[str, Any] = {
        "seat": p.seat,
        "name": p.name,
        "is_bot": p.is_bot,
        "chips": p.chips,
        "hand_size": len(p.hand),
        "round_score": p.round_score,
        "cumulative_score": p.cumulative_score,
        "has_opened": p.has_opened,
        "just_opened": p.just_opened,
        "opening_kind": p.opening_kind.value if p.opening_kind else None,
        "is_eliminated": p.is_eliminated,
        "is_bankrupt": p.is_bankrupt,
    }
    if show_hand:
        d["hand"] = _ids(p.hand)
        d["staged"] = [_meld_to_dict(m) for m in p.staged]
    return d


def _player_from_dict(d: Dict[str, Any]) -> Player:
    if "hand" not in d:
        raise ValueError(f"Snapshot hides the hand of seat {d.get('seat')}; it cannot be restored")
    kind = d.get("opening_kind")
    return Player(
        seat=int(d["seat"]),
        name=d["name"],
        is_bot=bool(d.get("is_bot", False)),
        chips=int(d.get("chips", 0)),
        hand=_cards(d["hand"]),
        staged=[_meld_from_dict(m) for m in d.get("staged", [])],
        round_score=int(d.get("round_score", 0)),
        cumulative_score=int(d.get("cumulative_score", 0)),
        has_opened=bool(d.get("has_opened", False)),
        just_opened=bool(d.get("just_opened", False)),
        opening_kind=OpeningKind(kind) if kind else None,
        is_eliminated=bool(d.get("is_eliminated", False)),
        is_bankrupt=bool(d.get("is_bankrupt", False)),
    )


def state_to_dict(
    state: MatchState,
    *,
    viewer: int | None = None,
    metadata: Dict[str, Any] | None = None,
) -> Dict[str, Any]:
    """
    Serialize a MatchState to a JSON-compatible dict.

    Args:
        state: The state to serialize.
        viewer: Seat the snapshot is rendered for; other hands are hidden. None keeps everything.
        metadata: Optional extra metadata.

    Returns:
        Dict with schema_version, exported_at, the config, players, piles and match fields.
    """
    top = state.discard_top
    result: Dict[str, Any] = {
        "schema_version": SCHEMA_VERSION,
        "exported_at": datetime.now(timezone.utc).isoformat(),
        "config": state.config.to_dict(),
        "players": [_player_to_dict(p, viewer is None or p.seat == viewer) for p in state.players],
        "deck_size": len(state.deck),
        "discard_top": top.id if top is not None else None,
        "discard_size": len(state.discard_pile),
        "committed_melds": [_meld_to_dict(m) for m in state.committed_melds],
        "active_seat": state.active_seat,
        "phase": state.phase.value,
        "round_number": state.round_number,
        "max_rounds": state.max_rounds,
        "round_pot": state.round_pot,
        "grand_pot": state.grand_pot,
        "round_starter_seat": state.round_starter_seat,
        "winner_seat": state.winner_seat,
        "message_key": state.message_key,
        "message_args": dict(state.message_args),
        "message": render(state.message_key, state.message_args),
        "pot_split": [list(pair) for pair in state.pot_split],
        "next_meld_id": state.next_meld_id,
    }
    if viewer is None:
        result["deck"] = _ids(state.deck)
        result["discard_pile"] = _ids(state.discard_pile)
    else:
        result["viewer"] = viewer
    if metadata:
        result["metadata"] = metadata
    return result


def state_from_dict(d: Dict[str, Any]) -> MatchState:
    """
    Restore a MatchState from a full (viewer-less) snapshot.

    Raises:
        ValueError: on an unknown schema version or a viewer snapshot.
    """
    version = int(d.get("schema_version", SCHEMA_VERSION))
    if version != SCHEMA_VERSION:
        raise ValueError(f"Unsupported snapshot schema version {version}")
    if "deck" not in d:
        raise ValueError("Snapshot was taken for a viewer and cannot be restored")
    return MatchState(
        config=MatchConfig.from_dict(d.get("config", {})),
        players=[_player_from_dict(p) for p in d["players"]],
        deck=_cards(d["deck"]),
        discard_pile=_cards(d.get("discard_pile", [])),
        committed_melds=[_meld_from_dict(m) for m in d.get("committed_melds", [])],
        active_seat=int(d.get("active_seat", 0)),
        phase=Phase(d.get("phase", Phase.DRAW.value)),
        round_number=int(d.get("round_number", 1)),
        round_pot=int(d.get("round_pot", 0)),
        grand_pot=int(d.get("grand_pot", 0)),
        round_starter_seat=int(d.get("round_starter_seat", 0)),
        winner_seat=d.get("winner_seat"),
        message_key=d.get("message_key", ""),
        message_args=dict(d.get("message_args", {})),
        pot_split=[(int(seat), int(amount)) for seat, amount in d.get("pot_split", [])],
        next_meld_id=int(d.get("next_meld_id", 1)),
    )


def snapshot_to_json(
    state: MatchState,
    *,
    viewer: int | None = None,
    metadata: Dict[str, Any] | None = None,
) -> str:
    """Serialize a MatchState to a JSON string."""
    return json.dumps(state_to_dict(state, viewer=viewer, metadata=metadata), indent=2, ensure_ascii=False)


def snapshot_from_json(s: str) -> MatchState:
    """Deserialize a MatchState from a JSON string."""
    return state_from_dict(json.loads(s))


__all__ = [
    "state_to_dict",
    "state_from_dict",
    "snapshot_to_json",
    "snapshot_from_json",
    "SCHEMA_VERSION",
]

"""
Message keys used by the engine, with the default English texts.

The engine only stores keys and format arguments; a presentation layer may
swap ``MESSAGES_EN`` for another language table.
"""
from __future__ import annotations

from typing import Any, Dict, Mapping

MESSAGES_EN: Dict[str, str] = {
    # status line
    "game.round_start": "Round {round}/{max_rounds}: {name}'s turn",
    "game.turn": "{name}'s turn",
    "game.create_melds": "Create melds or discard a card",
    "game.auto_drawn": "{name}: card drawn automatically",
    "game.auto_discarded": "{name}: card discarded automatically",
    "game.wins": "{name} wins the round (+{pot} chips)",
    "game.wins_multiplied": "{name} wins the round ({reason} x{multiplier}) (+{pot} chips)",
    "game.draw_game": "Draw game: no cards left to draw",
    "game.game_over": "Game over",
    # rejections
    "toast.wrong_phase": "You cannot do that now",
    "toast.not_your_turn": "It is not your turn",
    "toast.unknown_card": "That card is not available",
    "toast.discard_empty": "The discard pile is empty",
    "toast.invalid_meld": "Invalid meld",
    "toast.pairs_select_two": "Pairs mode: select exactly two matching cards",
    "toast.switch_to_pairs": "Pairs can only be staged in pairs mode",
    "toast.series_only": "You opened with series: lay runs or sets only",
    "toast.pairs_only": "You opened with pairs: lay pairs only",
    "toast.need_more_series": "You need at least 2 series to open, you have {count}.",
    "toast.need_more_pairs": "You need at least 4 pairs to open, you have {count}.",
    "toast.score_limit_exceeded": "Cannot open: no valid discard leaves you within the score limit",
    "toast.nothing_staged": "No staged melds",
    "toast.already_opened": "You have already opened",
    "toast.clear_staged": "Confirm or cancel your staged melds before discarding",
    "toast.card_fits": "That card fits on the table, you cannot discard it",
    "toast.opening_limit": "After opening, your discard must keep you within the score limit",
    "toast.last_card_discard": "Your last card must be discarded",
    "toast.open_hand_first": "Open your hand first",
    "toast.select_one_swap": "Select exactly one card to swap",
    "toast.pairs_no_match": "Pairs do not match",
    "toast.cannot_add": "That card cannot be added",
    "toast.unknown_meld": "That meld is not on the table",
    # events
    "toast.joker_penalty": "Joker discarded: -{penalty} chips",
}


def render(key: str, args: Mapping[str, Any] | None = None, table: Mapping[str, str] | None = None) -> str:
    """Format a message key; unknown keys render as the key itself."""
    template = (table or MESSAGES_EN).get(key)
    if template is None:
        return key
    try:
        return template.format(**(args or {}))
    except KeyError:
        return template

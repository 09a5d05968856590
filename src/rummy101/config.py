"""
Match configuration (defaults from the table rules) and JSON load/save helpers.
"""
from __future__ import annotations

import json
from dataclasses import asdict, dataclass
from pathlib import Path
from typing import Any, Dict, Tuple

from .deal import INITIAL_HAND_SIZE, SEAT_COUNT
from .scoring import SCORE_CEILING

DEFAULT_TURN_DURATION = 30.0
DEFAULT_MAX_ROUNDS = 9
DEFAULT_INITIAL_CHIPS = 100
DEFAULT_ROUND_COST = 20
DEFAULT_REENTRY_COST = 10
JOKER_DISCARD_PENALTY = 20
DEFAULT_BOT_THINK_DELAY = 0.8

DEFAULT_SEAT_NAMES: Tuple[str, ...] = ("You", "Can", "Yağmur", "Mike")
DEFAULT_BOT_SEATS: Tuple[int, ...] = (1, 2, 3)


@dataclass
class MatchConfig:
    turn_duration: float = DEFAULT_TURN_DURATION  # seconds per phase before the automatic action
    max_rounds: int = DEFAULT_MAX_ROUNDS
    initial_chips: int = DEFAULT_INITIAL_CHIPS
    round_cost: int = DEFAULT_ROUND_COST  # ante paid into the round pot
    reentry_cost: int = DEFAULT_REENTRY_COST  # paid into the grand pot to re-enter
    joker_discard_penalty: int = JOKER_DISCARD_PENALTY
    score_ceiling: int = SCORE_CEILING
    hand_size: int = INITIAL_HAND_SIZE
    seat_names: Tuple[str, ...] = DEFAULT_SEAT_NAMES
    bot_seats: Tuple[int, ...] = DEFAULT_BOT_SEATS
    bot_think_delay: float = DEFAULT_BOT_THINK_DELAY

    def __post_init__(self) -> None:
        self.seat_names = tuple(self.seat_names)
        self.bot_seats = tuple(self.bot_seats)
        if self.score_ceiling != SCORE_CEILING:
            raise ValueError(f"score_ceiling is fixed at {SCORE_CEILING}, got {self.score_ceiling}")
        if len(self.seat_names) != SEAT_COUNT:
            raise ValueError(f"Expected {SEAT_COUNT} seat names, got {len(self.seat_names)}")
        if any(not 0 <= s < SEAT_COUNT for s in self.bot_seats):
            raise ValueError(f"Bot seats out of range: {self.bot_seats}")
        if self.max_rounds < 1:
            raise ValueError("max_rounds must be at least 1")
        if self.turn_duration <= 0 or self.bot_think_delay < 0:
            raise ValueError("turn_duration must be positive and bot_think_delay non-negative")
        if min(self.initial_chips, self.round_cost, self.reentry_cost, self.joker_discard_penalty) < 0:
            raise ValueError("Chip amounts cannot be negative")
        if not 1 <= self.hand_size <= 20:
            raise ValueError(f"hand_size out of range: {self.hand_size}")

    def is_bot(self, seat: int) -> bool:
        return seat in self.bot_seats

    def to_dict(self) -> Dict[str, Any]:
        d = asdict(self)
        d["seat_names"] = list(self.seat_names)
        d["bot_seats"] = list(self.bot_seats)
        return d

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "MatchConfig":
        return cls(
            turn_duration=float(d.get("turn_duration", DEFAULT_TURN_DURATION)),
            max_rounds=int(d.get("max_rounds", DEFAULT_MAX_ROUNDS)),
            initial_chips=int(d.get("initial_chips", DEFAULT_INITIAL_CHIPS)),
            round_cost=int(d.get("round_cost", DEFAULT_ROUND_COST)),
            reentry_cost=int(d.get("reentry_cost", DEFAULT_REENTRY_COST)),
            joker_discard_penalty=int(d.get("joker_discard_penalty", JOKER_DISCARD_PENALTY)),
            score_ceiling=int(d.get("score_ceiling", SCORE_CEILING)),
            hand_size=int(d.get("hand_size", INITIAL_HAND_SIZE)),
            seat_names=tuple(d.get("seat_names", DEFAULT_SEAT_NAMES)),
            bot_seats=tuple(int(s) for s in d.get("bot_seats", DEFAULT_BOT_SEATS)),
            bot_think_delay=float(d.get("bot_think_delay", DEFAULT_BOT_THINK_DELAY)),
        )


def all_bots_config(**overrides: Any) -> MatchConfig:
    """Config with every seat played by a bot (simulations, environments)."""
    overrides.setdefault("bot_seats", tuple(range(SEAT_COUNT)))
    return MatchConfig(**overrides)


def load_config(path: Path | str) -> MatchConfig:
    """Read a MatchConfig from a JSON file; missing keys keep their defaults."""
    with Path(path).open("r", encoding="utf-8") as f:
        return MatchConfig.from_dict(json.load(f))


def save_config(cfg: MatchConfig, path: Path | str) -> None:
    with Path(path).open("w", encoding="utf-8") as f:
        json.dump(cfg.to_dict(), f, indent=2, ensure_ascii=False)

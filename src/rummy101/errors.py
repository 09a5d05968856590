"""
Rule violations are returned, not raised: a rejected command leaves the match
state untouched and reports one of these codes. Only a broken card-conservation
invariant is raised, because it means the engine itself is wrong.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Mapping

from .messages import render


class RuleViolation(Enum):
    INVALID_MELD_PATTERN = "invalid_meld_pattern"
    ILLEGAL_DISCARD = "illegal_discard"
    ILLEGAL_MELD_ATTACH = "illegal_meld_attach"
    OPENING_NOT_MET = "opening_not_met"
    WRONG_PHASE = "wrong_phase"
    NOT_ACTIVE_SEAT = "not_active_seat"
    UNKNOWN_CARD = "unknown_card"
    EMPTY_PILE = "empty_pile"


@dataclass(frozen=True)
class Rejection:
    """Why a command was refused. ``message_key`` indexes rummy101.messages, ``args`` fills its placeholders."""

    code: RuleViolation
    message_key: str
    detail: str = ""
    args: Mapping[str, Any] = field(default_factory=dict, compare=False)

    @property
    def text(self) -> str:
        return render(self.message_key, self.args)

    def __str__(self) -> str:
        suffix = f": {self.detail}" if self.detail else ""
        return f"{self.code.value} ({self.message_key}){suffix}"


class CardConservationError(RuntimeError):
    """The 106 card ids are no longer each present exactly once across deck, discard, hands and melds."""

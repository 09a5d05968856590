"""
Observation / action encoding and a single-seat environment for Rummy 101.

- Observations are flat float32 numpy vectors of one seat's view: its hand,
  the discard top, every discarded and tabled card, and match metadata.
- Actions live in one flat space: draw from the deck, draw the discard top,
  "auto-meld" (open / attach / lay melds the way the bot would), or discard a
  card by its id.
- ``RummyEnv`` runs whole matches: the learning seat acts through step(),
  solver bots play every other seat. Reward is given only at the end of the
  match and equals the learning seat's chip gain.
"""
from __future__ import annotations

import random
from dataclasses import dataclass
from typing import Iterable, List

import numpy as np

from .bot import play_bot_turn, play_melds
from .config import MatchConfig
from .deal import SEAT_COUNT
from .deck import SHOE_SIZE, Card
from .game import Discard, DrawCard, Transition, advance_on_timeout, apply, next_round, start_match
from .scoring import discard_candidates, within_ceiling
from .state import DrawSource, MatchState, OpeningKind, Phase

NUM_CARDS: int = SHOE_SIZE  # 106

ACTION_DRAW_DECK: int = 0
ACTION_DRAW_DISCARD: int = 1
ACTION_AUTO_MELD: int = 2
DISCARD_ACTION_OFFSET: int = 3
NUM_ACTIONS: int = DISCARD_ACTION_OFFSET + NUM_CARDS  # 109

# 4 card sets (hand, discard top, discard pile, table) + phase (2) + opened (1)
# + opening kind (2) + seat (4) + scores / chips / hand sizes (3 x 4) + round (1) + deck (1)
OBS_SIZE: int = 4 * NUM_CARDS + 2 + 1 + 2 + SEAT_COUNT + 3 * SEAT_COUNT + 1 + 1


def encode_card_set(cards: Iterable[Card]) -> np.ndarray:
    """Binary 106-dim vector, indexed by card id."""
    vec = np.zeros(NUM_CARDS, dtype=np.float32)
    for c in cards:
        vec[c.id] = 1.0
    return vec


def _one_hot(index: int | None, size: int) -> np.ndarray:
    vec = np.zeros(size, dtype=np.float32)
    if index is not None and 0 <= index < size:
        vec[index] = 1.0
    return vec


def encode_observation(state: MatchState, seat: int) -> np.ndarray:
    """Flat observation of ``state`` as seen from ``seat`` (other hands stay hidden)."""
    player = state.players[seat]
    top = state.discard_top
    table_cards = [c for m in state.committed_melds for c in m.cards]

    phase_index = {Phase.DRAW: 0, Phase.ACTION: 1}.get(state.phase)
    kind_index = {OpeningKind.SERIES: 0, OpeningKind.PAIRS: 1}.get(player.opening_kind)  # type: ignore[arg-type]

    ceiling = float(state.score_ceiling)
    initial_chips = float(max(state.config.initial_chips, 1))
    scores = np.array([p.cumulative_score / ceiling for p in state.players], dtype=np.float32)
    chips = np.array([p.chips / initial_chips for p in state.players], dtype=np.float32)
    hand_sizes = np.array([len(p.hand) / 20.0 for p in state.players], dtype=np.float32)

    obs = np.concatenate(
        [
            encode_card_set(player.hand),
            encode_card_set([top] if top is not None else []),
            encode_card_set(state.discard_pile),
            encode_card_set(table_cards),
            _one_hot(phase_index, 2),
            np.array([1.0 if player.has_opened else 0.0], dtype=np.float32),
            _one_hot(kind_index, 2),
            _one_hot(seat, SEAT_COUNT),
            scores,
            chips,
            hand_sizes,
            np.array([state.round_number / state.max_rounds], dtype=np.float32),
            np.array([len(state.deck) / NUM_CARDS], dtype=np.float32),
        ]
    )
    assert obs.shape == (OBS_SIZE,)
    return obs


def legal_discards(state: MatchState, seat: int) -> List[Card]:
    """Cards the engine would accept as a discard right now (ceiling-safe ones after opening)."""
    player = state.players[seat]
    if player.staged or not player.hand:
        return []
    candidates = discard_candidates(player.hand, state.committed_melds)
    if player.just_opened:
        candidates = [
            c for c in candidates
            if within_ceiling(player.cumulative_score, [h for h in player.hand if h.id != c.id], state.score_ceiling)
        ]
    return candidates


def legal_action_mask(state: MatchState, seat: int, rng: random.Random | None = None) -> np.ndarray:
    """
    Boolean mask over NUM_ACTIONS for ``seat``. In the action phase at least one
    discard is always legal: if no discard passes the ceiling check, the solver's
    pick is offered and resolved by the timeout default.
    """
    mask = np.zeros(NUM_ACTIONS, dtype=bool)
    if state.active_seat != seat:
        return mask
    if state.phase is Phase.DRAW:
        mask[ACTION_DRAW_DECK] = True
        mask[ACTION_DRAW_DISCARD] = bool(state.discard_pile)
        return mask
    if state.phase is not Phase.ACTION:
        return mask

    if play_melds(state, rng).events:
        mask[ACTION_AUTO_MELD] = True
    discards = legal_discards(state, seat)
    if not discards:
        player = state.players[seat]
        discards = discard_candidates(player.hand, state.committed_melds)
    for card in discards:
        mask[DISCARD_ACTION_OFFSET + card.id] = True
    return mask


@dataclass
class StepResult:
    """Container returned by RummyEnv.step/reset for clarity."""

    obs: np.ndarray
    reward: float
    done: bool
    info: dict
    legal_actions_mask: np.ndarray


class RummyEnv:
    """
    4-seat Rummy 101 environment (single learning seat, full match episodes).

    Public API (minimal, Gym-like but without external dependency):
      - reset() -> StepResult          # start new match, first decision for learning seat
      - step(action: int) -> StepResult
    """

    def __init__(
        self,
        config: MatchConfig | None = None,
        learning_seat: int = 0,
        rng: random.Random | None = None,
        max_bot_turns: int = 20_000,
    ) -> None:
        assert 0 <= learning_seat < SEAT_COUNT
        self.learning_seat = learning_seat
        self.config = config or MatchConfig(
            bot_seats=tuple(s for s in range(SEAT_COUNT) if s != learning_seat)
        )
        self.rng = rng or random.Random()
        self.max_bot_turns = max_bot_turns
        self._state: MatchState | None = None
        self._done = True

    @property
    def state(self) -> MatchState:
        if self._state is None:
            raise RuntimeError("Call reset() before using the environment")
        return self._state

    # ---- Public API ----

    def reset(self) -> StepResult:
        """Start a new match and return the first decision for the learning seat."""
        self._state = start_match(self.config, self.rng).state
        self._done = False
        return self._advance_to_learner()

    def step(self, action: int) -> StepResult:
        """Apply ``action`` for the learning seat, then let the bots play until it must act again."""
        if self._done:
            raise RuntimeError("Episode is over; call reset()")
        mask = legal_action_mask(self.state, self.learning_seat, self.rng)
        if not (0 <= action < NUM_ACTIONS) or not mask[action]:
            raise ValueError(f"Illegal action {action}")

        seat = self.learning_seat
        if action == ACTION_DRAW_DECK:
            result = apply(self.state, DrawCard(seat=seat, source=DrawSource.DECK), self.rng)
        elif action == ACTION_DRAW_DISCARD:
            result = apply(self.state, DrawCard(seat=seat, source=DrawSource.DISCARD), self.rng)
        elif action == ACTION_AUTO_MELD:
            result = play_melds(self.state, self.rng)
        else:
            result = apply(self.state, Discard(seat=seat, card_id=action - DISCARD_ACTION_OFFSET), self.rng)
            if not result.ok:
                result = advance_on_timeout(self.state, self.rng)
        self._state = self._checked(result)
        return self._advance_to_learner()

    # ---- Internal helpers ----

    @staticmethod
    def _checked(result: Transition) -> MatchState:
        if not result.ok:
            raise RuntimeError(f"Engine rejected a masked-legal action: {result.rejection}")
        return result.state

    def _advance_to_learner(self) -> StepResult:
        """Play bot seats and start new rounds until the learning seat must act or the match ends."""
        turns = 0
        while True:
            state = self.state
            if state.phase is Phase.GAME_OVER or turns >= self.max_bot_turns:
                return self._finish()
            if state.phase is Phase.ROUND_OVER:
                self._state = self._checked(next_round(state, self.rng))
                continue
            if state.active_seat == self.learning_seat:
                return StepResult(
                    obs=encode_observation(state, self.learning_seat),
                    reward=0.0,
                    done=False,
                    info={"phase": state.phase.value, "round": state.round_number},
                    legal_actions_mask=legal_action_mask(state, self.learning_seat, self.rng),
                )
            self._state = self._checked(play_bot_turn(state, self.rng))
            turns += 1

    def _finish(self) -> StepResult:
        self._done = True
        state = self.state
        chips = tuple(p.chips for p in state.players)
        reward = float(chips[self.learning_seat] - self.config.initial_chips)
        return StepResult(
            obs=np.zeros(OBS_SIZE, dtype=np.float32),
            reward=reward,
            done=True,
            info={
                "phase": state.phase.value,
                "chips": chips,
                "rounds_played": state.round_number,
                "pot_split": list(state.pot_split),
            },
            legal_actions_mask=np.zeros(NUM_ACTIONS, dtype=bool),
        )


__all__ = [
    "NUM_ACTIONS",
    "NUM_CARDS",
    "OBS_SIZE",
    "RummyEnv",
    "StepResult",
    "encode_observation",
    "legal_action_mask",
]

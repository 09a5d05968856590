"""
Baseline agents, the generic policy interface and an episode runner.

The ``Policy`` protocol is the contract used with ``RummyEnv``:
``act(obs, legal_actions_mask) -> action_index``.

- RandomAgent: uniform over legal actions.
- GreedyAgent: draws blind, lets the solver meld whenever that is legal, then
  throws the legal discard worth the most points (jokers last).
"""
from __future__ import annotations

import random
from dataclasses import dataclass
from typing import Iterable, List, Protocol, Sequence

from .deck import card_by_id
from .env import (
    ACTION_AUTO_MELD,
    ACTION_DRAW_DECK,
    DISCARD_ACTION_OFFSET,
    RummyEnv,
    StepResult,
)


class Policy(Protocol):
    """Stateless or stateful decision policy working on flat observations."""

    def act(self, obs: Sequence[float], legal_actions_mask: Iterable[bool]) -> int:
        """
        Choose an action index given an observation and a boolean legal-action mask.

        Implementations must only return indices where ``legal_actions_mask[i]`` is true.
        """


def _legal_indices(legal_actions_mask: Iterable[bool]) -> List[int]:
    legal = [i for i, ok in enumerate(legal_actions_mask) if ok]
    if not legal:
        raise ValueError("No legal actions available")
    return legal


@dataclass
class RandomAgent:
    """
    Baseline policy that samples uniformly among legal actions.

    Usage:
        agent = RandomAgent(seed=42)
        action = agent.act(obs, legal_actions_mask)
    """

    seed: int | None = None

    def __post_init__(self) -> None:
        self._rng = random.Random(self.seed)

    def act(self, obs: Sequence[float], legal_actions_mask: Iterable[bool]) -> int:
        return self._rng.choice(_legal_indices(legal_actions_mask))


class GreedyAgent:
    """Deterministic heuristic: meld when possible, shed the heaviest non-joker card."""

    def act(self, obs: Sequence[float], legal_actions_mask: Iterable[bool]) -> int:
        legal = _legal_indices(legal_actions_mask)
        if ACTION_DRAW_DECK in legal:
            return ACTION_DRAW_DECK
        if ACTION_AUTO_MELD in legal:
            return ACTION_AUTO_MELD
        discards = [i for i in legal if i >= DISCARD_ACTION_OFFSET]
        if not discards:
            return legal[0]

        def weight(action: int) -> tuple[int, int]:
            c = card_by_id(action - DISCARD_ACTION_OFFSET)
            return (0 if c.is_joker else 1, c.point_value())

        return max(discards, key=weight)


@dataclass
class EpisodeStats:
    steps: int
    reward: float
    chips: tuple
    rounds_played: int


def play_episode(env: RummyEnv, policy: Policy, max_steps: int = 100_000) -> EpisodeStats:
    """Run one full match in ``env`` with ``policy`` on the learning seat."""
    step: StepResult = env.reset()
    total_reward = 0.0
    steps = 0
    while not step.done and steps < max_steps:
        step = env.step(policy.act(step.obs, step.legal_actions_mask))
        total_reward += step.reward
        steps += 1
    return EpisodeStats(
        steps=steps,
        reward=total_reward,
        chips=tuple(step.info.get("chips", ())),
        rounds_played=int(step.info.get("rounds_played", step.info.get("round", 0))),
    )


__all__ = ["EpisodeStats", "GreedyAgent", "Policy", "RandomAgent", "play_episode"]

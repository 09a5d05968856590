"""Tests for baseline agents."""

import random

import numpy as np
import pytest

from rummy101.agents import GreedyAgent, RandomAgent, play_episode
from rummy101.config import MatchConfig
from rummy101.env import (
    ACTION_AUTO_MELD,
    ACTION_DRAW_DECK,
    ACTION_DRAW_DISCARD,
    DISCARD_ACTION_OFFSET,
    NUM_ACTIONS,
    RummyEnv,
)

from helpers import H, JOKER_A, S, card


def test_random_agent_respects_legal_mask():
    agent = RandomAgent(seed=123)
    obs = [0.0, 1.0, 2.0]  # dummy; RandomAgent ignores obs content
    legal = [False, True, False, True, False]

    # Sample multiple times to ensure we never pick illegal indices
    for _ in range(50):
        a = agent.act(obs, legal)
        assert a in (1, 3)


def test_random_agent_accepts_numpy_mask_and_is_seeded():
    mask = np.zeros(109, dtype=bool)
    mask[[0, 5, 40, 100]] = True
    a = RandomAgent(seed=7)
    b = RandomAgent(seed=7)
    picks_a = [a.act(np.zeros(4), mask) for _ in range(20)]
    picks_b = [b.act(np.zeros(4), mask) for _ in range(20)]
    assert picks_a == picks_b
    assert set(picks_a) <= {0, 5, 40, 100}


def test_random_agent_without_legal_actions_raises():
    with pytest.raises(ValueError):
        RandomAgent(seed=0).act([], [False, False])


def test_greedy_agent_draws_then_melds_then_sheds_heaviest():
    agent = GreedyAgent()
    mask = np.zeros(NUM_ACTIONS, dtype=bool)
    mask[[ACTION_DRAW_DECK, ACTION_DRAW_DISCARD]] = True
    assert agent.act(None, mask) == ACTION_DRAW_DECK

    mask[:] = False
    heavy = card(S, 14)
    light = card(H, 3)
    for c in (heavy, light, JOKER_A):
        mask[DISCARD_ACTION_OFFSET + c.id] = True
    assert agent.act(None, mask) == DISCARD_ACTION_OFFSET + heavy.id

    mask[ACTION_AUTO_MELD] = True
    assert agent.act(None, mask) == ACTION_AUTO_MELD


def test_play_episode_runs_a_short_match():
    env = RummyEnv(config=MatchConfig(max_rounds=1), rng=random.Random(8), max_bot_turns=2000)
    stats = play_episode(env, GreedyAgent(), max_steps=3000)
    assert stats.steps > 0
    if stats.chips:
        assert stats.reward == float(stats.chips[0] - 100)

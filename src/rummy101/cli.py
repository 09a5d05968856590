"""
Command-line interface for simulating Rummy 101 matches.

Usage examples (after installing in editable mode):

    rummy101 simulate --matches 10 --seed 7 --out results.json
    rummy101 env-random --episodes 3 --seed 42 --agent greedy
    rummy101 --log-level DEBUG simulate --matches 1 --config table.json
"""
from __future__ import annotations

import argparse
import json
import logging
import random
from pathlib import Path
from typing import Any, Dict, List, Optional

from .agents import GreedyAgent, Policy, RandomAgent, play_episode
from .bot import run_bot_match
from .config import MatchConfig, all_bots_config, load_config
from .env import RummyEnv
from .state import Phase


def _add_simulate_parser(subparsers: argparse._SubParsersAction) -> None:
    parser = subparsers.add_parser(
        "simulate",
        help="Play bot-only matches and print a JSON summary.",
    )
    parser.add_argument(
        "--matches",
        type=int,
        default=10,
        help="Number of matches to play.",
    )
    parser.add_argument(
        "--seed",
        type=int,
        default=0,
        help="Random seed for shuffles and bots.",
    )
    parser.add_argument(
        "--config",
        type=str,
        default=None,
        help="Optional JSON file with MatchConfig fields (bot seats are forced to all four).",
    )
    parser.add_argument(
        "--max-turns",
        type=int,
        default=20_000,
        help="Turn limit per match; matches that reach it are reported as stalled.",
    )
    parser.add_argument(
        "--out",
        type=str,
        default=None,
        help="Optional path to write the JSON summary to.",
    )
    parser.set_defaults(func=_cmd_simulate)


def _simulation_config(path: Optional[str]) -> MatchConfig:
    if path is None:
        return all_bots_config()
    cfg = load_config(path).to_dict()
    cfg["bot_seats"] = [0, 1, 2, 3]
    return MatchConfig.from_dict(cfg)


def _cmd_simulate(args: argparse.Namespace) -> None:
    cfg = _simulation_config(args.config)
    rng = random.Random(args.seed)
    matches: List[Dict[str, Any]] = []
    wins = [0, 0, 0, 0]

    for i in range(1, args.matches + 1):
        result = run_bot_match(cfg, rng=rng, max_turns=args.max_turns)
        state = result.state
        chips = [p.chips for p in state.players]
        finished = state.phase is Phase.GAME_OVER
        if finished:
            wins[max(range(len(chips)), key=lambda s: chips[s])] += 1
        matches.append(
            {
                "match": i,
                "finished": finished,
                "stalled": result.stalled,
                "rounds": result.rounds,
                "turns": result.turns,
                "chips": chips,
                "scores": [p.cumulative_score for p in state.players],
                "grand_pot_left": state.grand_pot,
                "pot_split": [list(pair) for pair in state.pot_split],
            }
        )
        status = " (stalled)" if result.stalled else ""
        print(f"[match {i}/{args.matches}] rounds={result.rounds} turns={result.turns} chips={chips}{status}", flush=True)

    summary = {
        "config": cfg.to_dict(),
        "seed": args.seed,
        "most_chips_by_seat": wins,
        "matches": matches,
    }
    text = json.dumps(summary, indent=2, ensure_ascii=False)
    if args.out:
        out = Path(args.out)
        out.parent.mkdir(parents=True, exist_ok=True)
        out.write_text(text, encoding="utf-8")
        print(f"Saved summary to {out.resolve()}")
    else:
        print(text)


def _add_env_random_parser(subparsers: argparse._SubParsersAction) -> None:
    parser = subparsers.add_parser(
        "env-random",
        help="Run baseline-agent episodes in RummyEnv (learning seat 0, bots elsewhere).",
    )
    parser.add_argument(
        "--episodes",
        type=int,
        default=3,
        help="Number of full-match episodes.",
    )
    parser.add_argument(
        "--max-rounds",
        type=int,
        default=3,
        help="Rounds per match.",
    )
    parser.add_argument(
        "--seed",
        type=int,
        default=42,
        help="Random seed for reproducibility.",
    )
    parser.add_argument(
        "--agent",
        type=str,
        default="random",
        choices=["random", "greedy"],
        help="Baseline policy for the learning seat.",
    )
    parser.set_defaults(func=_cmd_env_random)


def _make_agent(name: str, seed: int) -> Policy:
    if name == "greedy":
        return GreedyAgent()
    return RandomAgent(seed=seed)


def _cmd_env_random(args: argparse.Namespace) -> None:
    cfg = MatchConfig(max_rounds=args.max_rounds)
    for episode in range(1, args.episodes + 1):
        env = RummyEnv(config=cfg, learning_seat=0, rng=random.Random(args.seed + episode))
        agent = _make_agent(args.agent, args.seed + episode)
        stats = play_episode(env, agent)
        print(
            f"[episode {episode}/{args.episodes}] agent={args.agent} steps={stats.steps} "
            f"reward_for_seat0={stats.reward} chips={list(stats.chips)}"
        )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="rummy101", description="Rummy 101 simulation CLI.")
    parser.add_argument(
        "--log-level",
        type=str,
        default="WARNING",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging level for the engine loggers.",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)
    _add_simulate_parser(subparsers)
    _add_env_random_parser(subparsers)
    return parser


def main(argv: Optional[list[str]] = None) -> None:
    parser = build_parser()
    args = parser.parse_args(argv)
    logging.basicConfig(
        level=getattr(logging, args.log_level),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    if hasattr(args, "func"):
        args.func(args)
    else:
        parser.print_help()


if __name__ == "__main__":
    main()

from __future__ import annotations

import argparse
import asyncio
import logging
import random
from typing import Any, Dict, List, Optional, Tuple

from .agents import agent_for
from .client import start_game
from .coordinator import TurnCoordinator
from .engine import GameEngine
from .game_log import build_round_score_rows, write_round_scores_csv
from .paths import DEFAULT_SCORES_CSV, RESULTS_DIR_ENV, RunPaths
from .rules import MAX_PLAYERS, MIN_PLAYERS
from .state import Difficulty, GameState, Phase
from .store import InMemoryStore
from .verbose_logger import VerboseTurnLogger

DEFAULT_GAME_TIMEOUT_SECONDS = 600.0


def parse_args(argv: List[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description=(
            "Simulate Kingsir games between AI difficulty tiers and log "
            "per-round scores to a CSV file."
        )
    )

    parser.add_argument(
        "--difficulties",
        nargs="+",
        choices=[d.value for d in Difficulty],
        default=["easy", "medium", "hard", "hard"],
        help=(
            "One difficulty per seat (3 to 6 seats), e.g. "
            "'easy medium hard hard' (default)."
        ),
    )
    parser.add_argument(
        "--games",
        type=int,
        default=1,
        help="Number of full games to play (default: 1).",
    )
    parser.add_argument(
        "--drivers",
        type=int,
        default=2,
        help=(
            "Independent coordinator clients racing to drive each game through "
            "the shared store. 0 plays games directly without a store "
            "(default: 2)."
        ),
    )
    parser.add_argument(
        "--think-delay",
        type=float,
        default=0.0,
        help="Upper bound of the random AI thinking pause in seconds (default: 0).",
    )
    parser.add_argument(
        "--advance-delay",
        type=float,
        default=0.0,
        help="Pause after each trick and each round in seconds (default: 0).",
    )
    parser.add_argument(
        "--parallel-games",
        type=int,
        default=4,
        help="Max number of games to run concurrently (default: 4).",
    )
    parser.add_argument(
        "--csv",
        type=str,
        default=DEFAULT_SCORES_CSV,
        help=(
            f"Path to the output CSV file (default: {DEFAULT_SCORES_CSV}). "
            f"Relative paths go under ${RESULTS_DIR_ENV} or ./kingsir-results."
        ),
    )
    parser.add_argument(
        "--seed",
        type=int,
        default=0,
        help="Base random seed for dealing and AI decisions.",
    )
    parser.add_argument(
        "--log-level",
        type=str,
        default="INFO",
        help="Logging level (DEBUG, INFO, WARNING, ...). Default: INFO.",
    )
    parser.add_argument(
        "--verbose-log",
        type=str,
        default=None,
        help="Optional path for a turn-by-turn log of published and dropped writes.",
    )

    return parser.parse_args(argv)


def _lobby(game_index: int, difficulties: List[str], seed: int) -> List[Dict[str, Any]]:
    seating = list(difficulties)
    random.Random(seed + game_index).shuffle(seating)
    return [
        {
            "id": f"ai-{i}",
            "name": f"{difficulty.title()} {i}",
            "isAI": True,
            "aiDifficulty": difficulty,
        }
        for i, difficulty in enumerate(seating)
    ]


def _play_local_game(
    game_index: int, *, args: argparse.Namespace
) -> Tuple[List[Dict[str, Any]], bool, str]:
    """Run one game in-process with no store (`--drivers 0`)."""
    game_id = f"game-{game_index}"
    lobby = _lobby(game_index, args.difficulties, args.seed)
    difficulties = [Difficulty(p["aiDifficulty"]) for p in lobby]
    agents = [
        agent_for(d, random.Random(args.seed * 1000 + game_index * 10 + i))
        for i, d in enumerate(difficulties)
    ]
    engine = GameEngine(
        agents=agents,
        player_names=[p["name"] for p in lobby],
        difficulties=difficulties,
        rng_seed=args.seed + game_index,
        game_label=game_id,
    )
    engine.play_game()
    return build_round_score_rows(engine.round_results, game_id=game_id), False, game_id


async def _play_shared_game(
    game_index: int,
    *,
    args: argparse.Namespace,
    turn_logger: Optional[VerboseTurnLogger],
) -> Tuple[List[Dict[str, Any]], bool, str]:
    """Run one game through an in-memory store with racing coordinators."""
    game_id = f"game-{game_index}"
    store = InMemoryStore(collapse_empty=True)
    lobby = _lobby(game_index, args.difficulties, args.seed)

    await start_game(
        store,
        game_id,
        host_id="host",
        players=lobby,
        rng=random.Random(args.seed + game_index),
    )

    round_results: List[GameState] = []
    finished = asyncio.Event()

    def record(state: Optional[GameState]) -> None:
        if state is None or state.phase == Phase.GAME_OVER:
            finished.set()
        elif state.phase == Phase.ROUND_END:
            round_results.append(state)

    unsubscribe = store.subscribe(game_id, record)
    coordinators = [
        TurnCoordinator(
            store,
            game_id,
            f"driver-{k}",
            rng=random.Random(args.seed * 7919 + game_index * 31 + k),
            think_delay=(0.0, args.think_delay),
            advance_delay=args.advance_delay,
            next_round_delay=args.advance_delay,
            spectator=True,
            turn_logger=turn_logger,
        )
        for k in range(args.drivers)
    ]
    for coordinator in coordinators:
        coordinator.start()

    early_stop = False
    try:
        await asyncio.wait_for(finished.wait(), DEFAULT_GAME_TIMEOUT_SECONDS)
        logging.info(
            "Finished %s: %d writes, %d stale writes dropped",
            game_id,
            store.room(game_id).revision,
            sum(c.races_lost for c in coordinators),
        )
    except asyncio.TimeoutError:
        logging.error("Timed out waiting for %s to finish", game_id)
        early_stop = True
    finally:
        for coordinator in coordinators:
            coordinator.stop()
        unsubscribe()

    rows = build_round_score_rows(round_results, game_id=game_id)
    return rows, early_stop, game_id


async def _play_single_game_async(
    game_index: int,
    *,
    args: argparse.Namespace,
    turn_logger: Optional[VerboseTurnLogger],
) -> Tuple[List[Dict[str, Any]], bool, str]:
    if args.drivers <= 0:
        return await asyncio.to_thread(_play_local_game, game_index, args=args)
    return await _play_shared_game(game_index, args=args, turn_logger=turn_logger)


async def async_main(argv: List[str] | None = None) -> None:
    args = parse_args(argv)
    paths = RunPaths.resolve(args.csv, args.verbose_log).prepare()
    csv_path = paths.scores_csv
    verbose_path = paths.turn_log

    logging.basicConfig(
        level=getattr(logging, args.log_level.upper(), logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )

    num_players = len(args.difficulties)
    if num_players < MIN_PLAYERS or num_players > MAX_PLAYERS:
        raise SystemExit(
            f"Kingsir requires between {MIN_PLAYERS} and {MAX_PLAYERS} players; "
            f"got {num_players} difficulties."
        )

    logging.info("Seats: %s", ", ".join(args.difficulties))
    logging.info("Games to play: %d", args.games)
    logging.info("Output CSV: %s", csv_path)
    if verbose_path:
        logging.info("Verbose log: %s", verbose_path)

    parallel_games = max(1, min(args.parallel_games, args.games))
    logging.info("Running up to %d game(s) concurrently", parallel_games)

    turn_logger = VerboseTurnLogger(verbose_path) if verbose_path else None

    all_rows: List[Dict[str, Any]] = []
    games_played = 0
    early_stop = False

    for batch_start in range(0, args.games, parallel_games):
        batch_end = min(batch_start + parallel_games, args.games)
        batch_indices = list(range(batch_start, batch_end))
        logging.info(
            "Starting games %s",
            ", ".join(str(i + 1) for i in batch_indices),
        )
        tasks = [
            asyncio.create_task(
                _play_single_game_async(
                    game_index=game_index,
                    args=args,
                    turn_logger=turn_logger,
                )
            )
            for game_index in batch_indices
        ]

        results = await asyncio.gather(*tasks, return_exceptions=True)
        for result in results:
            if isinstance(result, Exception):
                logging.error("Game task failed: %s", result)
                early_stop = True
                continue

            rows, stopped, game_id = result
            all_rows.extend(rows)
            games_played += 1
            if stopped:
                early_stop = True
                logging.error("Halting after errors in %s", game_id)

        if early_stop:
            break

    write_round_scores_csv(all_rows, csv_path)

    if early_stop:
        logging.info(
            "Stopped after %d/%d games; wrote %d rows to %s",
            games_played,
            args.games,
            len(all_rows),
            csv_path,
        )
    else:
        logging.info(
            "Finished %d games; wrote %d rows to %s",
            games_played,
            len(all_rows),
            csv_path,
        )

    if turn_logger:
        turn_logger.flush()


def main(argv: List[str] | None = None) -> None:
    asyncio.run(async_main(argv))


if __name__ == "__main__":
    main()

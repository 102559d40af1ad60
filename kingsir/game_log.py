# kingsir/game_log.py
from __future__ import annotations

import csv
from typing import Any, Dict, Iterable, List, Optional

from .rules import round_score
from .state import GameState, Phase

FIELDNAMES = [
    "game_id",
    "round_index",
    "cards_per_player",
    "starter_id",
    "player_id",
    "player_name",
    "difficulty",
    "bid",
    "tricks_won",
    "round_delta",
    "total_score",
    "trump_suit",
]


def _is_round_complete(state: GameState) -> bool:
    """True for a scored snapshot: every seat bid and every trick was played."""
    if state.phase != Phase.ROUND_END:
        return False
    if state.trick_number != state.cards_per_player:
        return False
    return all(p.has_bid for p in state.players)


def build_round_score_rows(
    round_results: Iterable[GameState],
    game_id: Optional[str] = None,
) -> List[Dict[str, Any]]:
    """
    Build a list of rows summarizing per-round scores for CSV export.

    `round_results` are the `roundEnd` snapshots of one game, in order. Each
    row corresponds to (round, player) and has keys in FIELDNAMES. Snapshots
    that are not a completed round are skipped, and a round seen twice is
    logged once.
    """
    rows: List[Dict[str, Any]] = []
    seen_rounds = set()

    for state in round_results:
        if not _is_round_complete(state) or state.current_round in seen_rounds:
            continue
        seen_rounds.add(state.current_round)
        starter = state.players[state.round_starter_index]

        for p in state.players:
            row: Dict[str, Any] = {
                "game_id": game_id,
                "round_index": state.current_round,
                "cards_per_player": state.cards_per_player,
                "starter_id": starter.id,
                "player_id": p.id,
                "player_name": p.name,
                "difficulty": (
                    p.ai_difficulty.value if p.ai_difficulty is not None else "human"
                ),
                "bid": p.bid,
                "tricks_won": p.tricks_won,
                "round_delta": round_score(p.bid, p.tricks_won),
                "total_score": p.score,
                "trump_suit": (
                    state.trump_suit.value if state.trump_suit is not None else None
                ),
            }
            rows.append(row)

    return rows


def write_round_scores_csv(
    rows: Iterable[Dict[str, Any]],
    path,
) -> None:
    """
    Write score rows to a CSV file.

    `path` can be a string or any path-like object accepted by `open`.
    """
    with open(path, "w", newline="", encoding="utf-8") as f:
        writer = csv.DictWriter(f, fieldnames=FIELDNAMES)
        writer.writeheader()
        for row in rows:
            writer.writerow({field: row.get(field) for field in FIELDNAMES})

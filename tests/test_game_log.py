import csv
from dataclasses import replace

from kingsir.agents import EasyAgent, HardAgent, MediumAgent
from kingsir.engine import GameEngine
from kingsir.game_log import FIELDNAMES, build_round_score_rows, write_round_scores_csv
from kingsir.state import Difficulty, Phase


def _engine():
    agents = [EasyAgent(seed=0), MediumAgent(seed=1), HardAgent(seed=2)]
    engine = GameEngine(
        agents,
        player_names=["E", "M", "H"],
        difficulties=[a.difficulty for a in agents],
        rng_seed=11,
    )
    engine.play_game()
    return engine


def test_rows_cover_every_round_and_player():
    engine = _engine()
    rows = build_round_score_rows(engine.round_results, game_id="g1")

    assert len(rows) == 17 * 3
    assert all(set(r) == set(FIELDNAMES) for r in rows)
    assert {r["game_id"] for r in rows} == {"g1"}
    assert {r["difficulty"] for r in rows} == {"easy", "medium", "hard"}

    first = rows[:3]
    assert {r["round_index"] for r in first} == {1}
    assert {r["cards_per_player"] for r in first} == {17}
    for r in first:
        assert r["total_score"] == r["round_delta"]

    last = rows[-3:]
    final = engine.state
    assert [r["total_score"] for r in last] == [p.score for p in final.players]


def test_incomplete_and_repeated_rounds_are_skipped():
    engine = _engine()
    results = list(engine.round_results)
    first = results[0]
    mid_round = replace(first, phase=Phase.PLAYING)
    short = replace(first, trick_number=first.trick_number - 1)

    rows = build_round_score_rows([first, first, mid_round, short], game_id="g")
    assert len(rows) == 3


def test_seats_without_difficulty_are_human():
    engine = _engine()
    snapshot = engine.round_results[0]
    human = replace(snapshot.players[0], ai_difficulty=None, is_ai=False)
    snapshot = replace(snapshot, players=(human,) + snapshot.players[1:])

    rows = build_round_score_rows([snapshot])
    assert rows[0]["difficulty"] == "human"
    assert rows[1]["difficulty"] == Difficulty.MEDIUM.value


def test_write_csv(tmp_path):
    engine = _engine()
    rows = build_round_score_rows(engine.round_results[:2], game_id="g1")
    path = tmp_path / "scores.csv"
    write_round_scores_csv(rows, path)

    with open(path, newline="", encoding="utf-8") as f:
        reader = csv.DictReader(f)
        assert reader.fieldnames == FIELDNAMES
        written = list(reader)

    assert len(written) == 6
    assert written[0]["game_id"] == "g1"
    assert written[0]["round_index"] == "1"
    assert written[0]["trump_suit"] in {"Hearts", "Diamonds", "Clubs", "Spades"}

import csv

import pytest

from kingsir.cli import main, parse_args


def _rows(path):
    with open(path, newline="", encoding="utf-8") as f:
        return list(csv.DictReader(f))


def test_parse_args_defaults():
    args = parse_args([])
    assert args.difficulties == ["easy", "medium", "hard", "hard"]
    assert args.drivers == 2
    assert args.games == 1


@pytest.mark.parametrize("drivers", [0, 2])
def test_simulation_writes_scores(tmp_path, drivers):
    out = tmp_path / "scores.csv"
    turns = tmp_path / "turns.log"
    main(
        [
            "--difficulties", "easy", "medium", "hard",
            "--games", "2",
            "--drivers", str(drivers),
            "--csv", str(out),
            "--verbose-log", str(turns),
            "--seed", "3",
        ]
    )

    rows = _rows(out)
    assert len(rows) == 2 * 17 * 3
    assert {r["game_id"] for r in rows} == {"game-0", "game-1"}
    if drivers:
        assert turns.exists()
        assert "-> published" in turns.read_text(encoding="utf-8")


def test_rejects_too_few_seats(tmp_path):
    with pytest.raises(SystemExit):
        main(["--difficulties", "easy", "hard", "--csv", str(tmp_path / "x.csv")])


def test_relative_csv_goes_to_results_dir(tmp_path, monkeypatch):
    monkeypatch.setenv("KINGSIR_RESULTS_DIR", str(tmp_path))
    main(["--difficulties", "easy", "easy", "easy", "--drivers", "0", "--csv", "runs/out.csv"])

    rows = _rows(tmp_path / "runs" / "out.csv")
    assert len(rows) == 17 * 3

from pathlib import Path

from kingsir.paths import DEFAULT_RESULTS_DIR, RESULTS_DIR_ENV, RunPaths, results_dir


def test_results_dir_follows_environment(monkeypatch, tmp_path):
    monkeypatch.delenv(RESULTS_DIR_ENV, raising=False)
    assert results_dir() == Path(DEFAULT_RESULTS_DIR)

    monkeypatch.setenv(RESULTS_DIR_ENV, str(tmp_path))
    assert results_dir() == tmp_path


def test_relative_outputs_land_under_base(tmp_path):
    paths = RunPaths.resolve("runs/scores.csv", "turns.log", base=tmp_path)

    assert paths.scores_csv == tmp_path / "runs" / "scores.csv"
    assert paths.turn_log == tmp_path / "turns.log"
    assert not (tmp_path / "runs").exists()

    paths.prepare()
    assert (tmp_path / "runs").is_dir()


def test_absolute_outputs_are_kept(tmp_path):
    target = tmp_path / "elsewhere" / "scores.csv"
    paths = RunPaths.resolve(target, base=tmp_path / "results").prepare()

    assert paths.scores_csv == target
    assert paths.turn_log is None
    assert target.parent.is_dir()
    assert not (tmp_path / "results").exists()

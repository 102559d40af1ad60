# kingsir/paths.py
"""
Output locations for simulation runs.

Relative paths given on the command line land in the results directory:
`$KINGSIR_RESULTS_DIR` when it is set, otherwise `kingsir-results/` under the
current working directory. Absolute paths are used as given.
"""
from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Union

RESULTS_DIR_ENV = "KINGSIR_RESULTS_DIR"
DEFAULT_RESULTS_DIR = "kingsir-results"
DEFAULT_SCORES_CSV = "kingsir_scores.csv"

PathLike = Union[str, Path]


def results_dir() -> Path:
    return Path(os.environ.get(RESULTS_DIR_ENV) or DEFAULT_RESULTS_DIR)


@dataclass(frozen=True)
class RunPaths:
    """Files written by one `kingsir-sim` invocation."""
    scores_csv: Path
    turn_log: Optional[Path] = None

    @classmethod
    def resolve(
        cls,
        scores_csv: PathLike,
        turn_log: Optional[PathLike] = None,
        base: Optional[PathLike] = None,
    ) -> "RunPaths":
        root = Path(base) if base is not None else results_dir()

        def place(path_like: PathLike) -> Path:
            path = Path(path_like)
            return path if path.is_absolute() else root / path

        return cls(
            scores_csv=place(scores_csv),
            turn_log=place(turn_log) if turn_log else None,
        )

    def prepare(self) -> "RunPaths":
        """Create the parent directory of every output file."""
        for path in (self.scores_csv, self.turn_log):
            if path is not None:
                path.parent.mkdir(parents=True, exist_ok=True)
        return self

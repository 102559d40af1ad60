# kingsir/analysis.py
"""Summaries and plots for the per-round score CSVs written by the CLI."""
from __future__ import annotations

from pathlib import Path
from typing import Optional, Union

import matplotlib.pyplot as plt
import numpy as np
import pandas as pd

from .rules import total_rounds

Z_95 = 1.96


def load_scores(csv_path: Union[str, Path]) -> pd.DataFrame:
    return pd.read_csv(csv_path)


def complete_games(df: pd.DataFrame) -> pd.DataFrame:
    """Keep only games that logged every round for every player."""
    per_game = df.groupby("game_id").agg(
        rows=("player_id", "size"),
        players=("player_id", "nunique"),
    )
    expected = per_game["players"] * per_game["players"].map(total_rounds)
    valid_games = per_game.index[per_game["rows"] == expected]
    return df[df["game_id"].isin(valid_games)].copy()


def _with_ci(stats: pd.DataFrame) -> pd.DataFrame:
    # 95% confidence interval: mean ± 1.96 * (std / sqrt(n))
    stats["se"] = stats["std"] / np.sqrt(stats["count"])
    stats["ci95"] = Z_95 * stats["se"]
    return stats


def round_mean_scores(df: pd.DataFrame, by: str = "difficulty") -> pd.DataFrame:
    """Mean cumulative score per (group, round) with a 95% CI."""
    stats = (
        df.groupby([by, "round_index"])["total_score"]
        .agg(["mean", "std", "count"])
        .reset_index()
    )
    return _with_ci(stats)


def final_scores(df: pd.DataFrame, by: str = "difficulty") -> pd.DataFrame:
    """
    Final score and win rate per group.

    A player wins a game by holding the top final score; shared tops count
    as a win for each holder.
    """
    last_round = df.groupby("game_id")["round_index"].transform("max")
    finals = df[df["round_index"] == last_round].copy()
    top = finals.groupby("game_id")["total_score"].transform("max")
    finals["won"] = (finals["total_score"] == top).astype(int)

    stats = (
        finals.groupby(by)
        .agg(
            mean=("total_score", "mean"),
            std=("total_score", "std"),
            count=("total_score", "count"),
            win_rate=("won", "mean"),
        )
        .reset_index()
    )
    return _with_ci(stats)


def bid_accuracy(df: pd.DataFrame, by: str = "difficulty") -> pd.DataFrame:
    """Share of exact bids and mean miss (tricks won - bid) per group."""
    df = df.assign(miss=df["tricks_won"] - df["bid"])
    df["exact"] = (df["miss"] == 0).astype(int)
    return (
        df.groupby(by)
        .agg(
            exact_rate=("exact", "mean"),
            mean_miss=("miss", "mean"),
            mean_abs_miss=("miss", lambda m: np.abs(m).mean()),
        )
        .reset_index()
    )


def plot_round_means(
    stats: pd.DataFrame,
    by: str = "difficulty",
    output_path: Optional[Union[str, Path]] = None,
):
    """Per-round mean total score with 95% CI error bars, one line per group."""
    fig, ax = plt.subplots(figsize=(10, 6))
    for group in sorted(stats[by].unique()):
        sub = stats[stats[by] == group].sort_values("round_index")
        ax.errorbar(
            sub["round_index"],
            sub["mean"],
            yerr=sub["ci95"].fillna(0.0),
            marker="o",
            capsize=3,
            label=str(group),
        )
    ax.set_xlabel("Round")
    ax.set_ylabel("Mean total score across games")
    ax.set_title("Per-round mean total score with 95% CI")
    ax.grid(True)
    ax.legend()
    fig.tight_layout()
    if output_path is not None:
        fig.savefig(output_path)
        plt.close(fig)
    return fig


def plot_bid_miss(
    df: pd.DataFrame,
    by: str = "difficulty",
    output_path: Optional[Union[str, Path]] = None,
):
    """Histogram of tricks won minus bid, one panel per group."""
    miss = df["tricks_won"] - df["bid"]
    groups = sorted(df[by].unique())
    # common bin edges so panels are comparable
    bins = np.arange(np.floor(miss.min()) - 0.5, np.ceil(miss.max()) + 1.5, 1.0)

    fig, axes = plt.subplots(1, len(groups), figsize=(5 * len(groups), 4), sharey=True)
    axes = np.atleast_1d(axes)
    for ax, group in zip(axes, groups):
        ax.hist(miss[df[by] == group], bins=bins, rwidth=0.8)
        ax.axvline(0, linestyle="--")  # exact-bid line
        ax.set_title(str(group))
        ax.set_xlabel("Tricks won - bid")
    axes[0].set_ylabel("Rounds")
    fig.tight_layout()
    if output_path is not None:
        fig.savefig(output_path)
        plt.close(fig)
    return fig

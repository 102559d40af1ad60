import sys

import matplotlib.pyplot as plt

from kingsir.analysis import (
    bid_accuracy,
    complete_games,
    final_scores,
    load_scores,
    plot_bid_miss,
    plot_round_means,
    round_mean_scores,
)

# ---- 1. Load data ----
# Pass the CSV written by `python -m kingsir.cli`, or change the default.
csv_path = sys.argv[1] if len(sys.argv) > 1 else "kingsir/results/kingsir_scores.csv"
group_by = sys.argv[2] if len(sys.argv) > 2 else "difficulty"
df = complete_games(load_scores(csv_path))

# Expecting at least these columns:
# 'game_id', 'round_index', 'player_id', 'difficulty', 'bid', 'tricks_won', 'total_score'

# ---- 2. Tables ----
print(final_scores(df, by=group_by).to_string(index=False))
print()
print(bid_accuracy(df, by=group_by).to_string(index=False))

# ---- 3. Plots: per-round mean total score with 95% CI, bid misses ----
plot_round_means(round_mean_scores(df, by=group_by), by=group_by)
plot_bid_miss(df, by=group_by)
plt.show()

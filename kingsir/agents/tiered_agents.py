from __future__ import annotations

import random
from typing import Any, Dict, Optional

from ..cards import Suit
from ..state import Difficulty
from . import heuristics
from .base import KingsirAgent


class HeuristicAgent(KingsirAgent):
    """
    Heuristic Kingsir player whose accuracy is set by `difficulty`.

    - choose_bid: hand-strength estimate, scaled and jittered per tier, then
      nudged off the forbidden total when bidding last.
    - choose_trump: longest suit (easy) or longest-and-strongest suit.
    - choose_card: random (easy), high-to-win / low-to-lose (medium), or
      trick-aware cheapest-winner / biggest-loser play (hard).
    """

    difficulty = Difficulty.MEDIUM

    def __init__(self, seed: Optional[int] = None, rng: Optional[random.Random] = None) -> None:
        self._rng = rng if rng is not None else random.Random(seed)

    @property
    def label(self) -> str:
        return f"{self.difficulty.value}-ai"

    def choose_bid(self, observation: Dict[str, Any]) -> int:
        game = observation["game"]
        bidding = observation["bidding"]
        return heuristics.estimate_bid(
            observation["hand_cards"],
            cards_per_player=game["cards_per_player"],
            total_bid_so_far=bidding["total_bid_so_far"],
            is_last_bidder=bidding["is_last_bidder"],
            difficulty=self.difficulty,
            rng=self._rng,
        )

    def choose_trump(self, observation: Dict[str, Any]) -> Suit:
        return heuristics.choose_trump_suit(observation["hand_cards"], self.difficulty)

    def choose_card(self, observation: Dict[str, Any]) -> int:
        hand = observation["hand_cards"]
        player = observation["player"]
        card = heuristics.choose_card(
            hand,
            current_plays=observation["current_plays"],
            leading_suit=observation["leading_suit"],
            trump_suit=observation["trump_suit"],
            bid=player["bid"],
            tricks_won=player["tricks_won"],
            difficulty=self.difficulty,
            rng=self._rng,
        )
        return hand.index(card)


class EasyAgent(HeuristicAgent):
    difficulty = Difficulty.EASY


class MediumAgent(HeuristicAgent):
    difficulty = Difficulty.MEDIUM


class HardAgent(HeuristicAgent):
    difficulty = Difficulty.HARD


_AGENTS_BY_DIFFICULTY = {
    Difficulty.EASY: EasyAgent,
    Difficulty.MEDIUM: MediumAgent,
    Difficulty.HARD: HardAgent,
}


def agent_for(
    difficulty: Optional[Difficulty],
    rng: Optional[random.Random] = None,
) -> HeuristicAgent:
    """Agent for a seat's difficulty; seats without one play at medium."""
    cls = _AGENTS_BY_DIFFICULTY[difficulty or Difficulty.MEDIUM]
    return cls(rng=rng)

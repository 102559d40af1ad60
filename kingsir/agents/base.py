from __future__ import annotations

from typing import Any, Dict, Protocol, runtime_checkable

from ..cards import Suit


@runtime_checkable
class KingsirAgent(Protocol):
    """
    Interface that every seat controller (AI tier or autopilot) implements.

    `observation` is a JSON-like dict built by `kingsir.engine.build_observation`:
      - game-level info (round, cards_per_player, num_players)
      - the acting player's own info (id, bid, tricks_won, score)
      - public context (bids so far, trump, leading suit, current trick)
      - "hand_cards": the player's actual Card objects
    """

    def choose_bid(self, observation: Dict[str, Any]) -> int:
        """Return the bid (0..cards_per_player)."""

        raise NotImplementedError

    def choose_trump(self, observation: Dict[str, Any]) -> Suit:
        """The highest bidder names the trump suit for the round."""
        raise NotImplementedError

    def choose_card(self, observation: Dict[str, Any]) -> int:
        """
        Return the index into the player's current hand of the card to play.

        The observation will include:
          - "hand_cards": list[Card]
          - "legal_move_indices": list[int]
        """
        raise NotImplementedError

# kingsir/state.py
from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Tuple
import enum

from .cards import Card, Suit

NO_BID = -1


class Phase(enum.Enum):
    BIDDING = "bidding"
    TRUMP_SELECTION = "trumpSelection"
    PLAYING = "playing"
    TRICK_RESULT = "trickResult"
    ROUND_END = "roundEnd"
    GAME_OVER = "gameOver"


class Difficulty(enum.Enum):
    EASY = "easy"
    MEDIUM = "medium"
    HARD = "hard"


@dataclass(frozen=True)
class PlayerState:
    id: str
    name: str
    hand: Tuple[Card, ...] = ()
    bid: int = NO_BID  # -1 until declared this round
    tricks_won: int = 0
    score: int = 0
    is_ai: bool = False
    ai_difficulty: Optional[Difficulty] = None
    connected: bool = True

    @property
    def has_bid(self) -> bool:
        return self.bid >= 0


@dataclass(frozen=True)
class PlayedCard:
    card: Card
    player_id: str
    # 0-based order within the current trick
    position: int


@dataclass(frozen=True)
class GameState:
    """
    One immutable snapshot of a room's game.

    `players` keeps seat order for the whole game; `current_player_index`
    indexes into it. Transitions in `rules` return new snapshots.
    """
    room_code: str
    host_id: str
    phase: Phase
    players: Tuple[PlayerState, ...]
    current_round: int
    cards_per_player: int
    current_player_index: int
    trump_suit: Optional[Suit] = None
    leading_suit: Optional[Suit] = None
    played_cards: Tuple[PlayedCard, ...] = ()
    highest_bidder_id: Optional[str] = None
    round_starter_index: int = 0
    trick_winner_id: Optional[str] = None
    trick_number: int = 0

    @property
    def num_players(self) -> int:
        return len(self.players)

    def seat_of(self, player_id: str) -> int:
        """Seat index of `player_id`, or -1 if it is not seated."""
        for i, p in enumerate(self.players):
            if p.id == player_id:
                return i
        return -1

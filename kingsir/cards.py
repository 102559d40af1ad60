# kingsir/cards.py
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Optional, Tuple
import enum
import random


class Suit(enum.Enum):
    HEARTS = "Hearts"
    DIAMONDS = "Diamonds"
    CLUBS = "Clubs"
    SPADES = "Spades"


class Rank(enum.Enum):
    TWO = "2"
    THREE = "3"
    FOUR = "4"
    FIVE = "5"
    SIX = "6"
    SEVEN = "7"
    EIGHT = "8"
    NINE = "9"
    TEN = "10"
    JACK = "J"
    QUEEN = "Q"
    KING = "K"
    ACE = "A"

    @property
    def order(self) -> int:
        """Position in the rank order: TWO -> 0 ... ACE -> 12."""
        return RANK_ORDER.index(self)


RANK_ORDER: List[Rank] = list(Rank)

# Display order used when sorting a hand.
SUIT_DISPLAY_ORDER: List[Suit] = [Suit.SPADES, Suit.HEARTS, Suit.DIAMONDS, Suit.CLUBS]

DECK_SIZE = 52


@dataclass(frozen=True)
class Card:
    """
    A standard playing card.

    `id` is a stable key ("<rank>-<suit>") for UIs; gameplay compares
    suit and rank only.
    """
    suit: Suit
    rank: Rank
    id: str = ""

    def __post_init__(self) -> None:
        if not isinstance(self.suit, Suit) or not isinstance(self.rank, Rank):
            raise ValueError("Card needs a Suit and a Rank")
        if not self.id:
            object.__setattr__(self, "id", f"{self.rank.value}-{self.suit.value}")

    def __str__(self) -> str:
        return f"{self.rank.value} of {self.suit.value}"


def card_to_dict(card: Card) -> Dict[str, Any]:
    """Convert a Card to a JSON-serializable dict."""
    return {
        "suit": card.suit.value,
        "rank": card.rank.value,
        "id": card.id,
    }


def dict_to_card(data: Dict[str, Any]) -> Card:
    """Convert a dict back into a Card."""
    return Card(
        suit=Suit(data["suit"]),
        rank=Rank(data["rank"]),
        id=data.get("id") or "",
    )


def sort_hand(cards: Iterable[Card]) -> Tuple[Card, ...]:
    """Sort by suit (display order) then ascending rank."""
    return tuple(
        sorted(
            cards,
            key=lambda c: (SUIT_DISPLAY_ORDER.index(c.suit), c.rank.order),
        )
    )


class Deck:
    """A 52-card deck: 4 suits x 13 ranks, no jokers."""

    def __init__(self) -> None:
        self.cards: List[Card] = [
            Card(suit, rank) for suit in Suit for rank in Rank
        ]
        if len(self.cards) != DECK_SIZE:
            raise RuntimeError("Deck must contain exactly 52 cards")

    def shuffle(self, rng: Optional[random.Random] = None) -> None:
        """Shuffle the deck in place (Fisher-Yates). Uses provided RNG if given."""
        if rng is None:
            random.shuffle(self.cards)
        else:
            rng.shuffle(self.cards)

    def deal(
        self,
        num_players: int,
        cards_per_player: int,
    ) -> Tuple[List[List[Card]], List[Card]]:
        """
        Deal cards round-robin to players.

        Returns (hands, undealt), where:
        - hands: list of length num_players, each a list[Card] of length cards_per_player
        - undealt: cards left over; they take no part in the round
        """
        if num_players < 1 or cards_per_player < 0:
            raise ValueError("Invalid deal dimensions")
        total_needed = num_players * cards_per_player
        if total_needed > len(self.cards):
            raise ValueError("Not enough cards in deck to deal")

        hands: List[List[Card]] = [[] for _ in range(num_players)]
        idx = 0
        for _ in range(cards_per_player):
            for p in range(num_players):
                hands[p].append(self.cards[idx])
                idx += 1

        undealt = self.cards[idx:]
        return hands, undealt

"""
Hand evaluation and card-choice heuristics shared by the AI tiers.

Everything here is a pure function of its arguments plus the `random.Random`
passed in, so a seeded RNG reproduces a decision exactly.
"""
from __future__ import annotations

import math
import random
from typing import Dict, List, Optional, Sequence

from ..cards import Card, Rank, Suit
from ..rules import legal_cards, winning_play
from ..state import Difficulty, PlayedCard

_ACE_WEIGHT = 1.0
_KING_WEIGHT_SHORT = 0.5
_KING_WEIGHT_LONG = 0.75
_QUEEN_WEIGHT_SHORT = 0.25
_QUEEN_WEIGHT_LONG = 0.4
_JACK_WEIGHT = 0.15
_SHORT_SUIT_MAX = 2

_VOID_RUFF = 1.0
_SINGLETON_RUFF = 0.5
_DOUBLETON_RUFF = 0.2

_LONG_SUIT_MIN = 5
_LONG_SUIT_STEP = 0.3

_SELF_ID = "__self__"


def count_suits(hand: Sequence[Card]) -> Dict[Suit, int]:
    counts = {suit: 0 for suit in Suit}
    for card in hand:
        counts[card.suit] += 1
    return counts


def estimate_tricks(hand: Sequence[Card]) -> float:
    """
    Expected tricks before trump is known.

    High cards score by rank (kings and queens are worth less in short suits),
    short and void suits add ruffing chances, and suits of five or more cards
    add length winners.
    """
    counts = count_suits(hand)

    expected = 0.0
    for card in hand:
        short = counts[card.suit] <= _SHORT_SUIT_MAX
        if card.rank == Rank.ACE:
            expected += _ACE_WEIGHT
        elif card.rank == Rank.KING:
            expected += _KING_WEIGHT_SHORT if short else _KING_WEIGHT_LONG
        elif card.rank == Rank.QUEEN:
            expected += _QUEEN_WEIGHT_SHORT if short else _QUEEN_WEIGHT_LONG
        elif card.rank == Rank.JACK:
            expected += _JACK_WEIGHT

    for length in counts.values():
        if length == 0:
            expected += _VOID_RUFF
        elif length == 1:
            expected += _SINGLETON_RUFF
        elif length == 2:
            expected += _DOUBLETON_RUFF

    for length in counts.values():
        if length >= _LONG_SUIT_MIN:
            expected += (length - (_LONG_SUIT_MIN - 1)) * _LONG_SUIT_STEP

    return expected


def apply_difficulty(
    expected: float,
    cards_per_player: int,
    difficulty: Difficulty,
    rng: random.Random,
) -> float:
    """Scale the estimate and add noise that shrinks as difficulty rises."""
    jitter = rng.random() - 0.5
    if difficulty == Difficulty.EASY:
        # mostly random, slight hand awareness
        return expected * 0.4 + jitter * cards_per_player * 0.8
    if difficulty == Difficulty.MEDIUM:
        return expected * 0.75 + jitter * 2.0
    return expected + jitter * 0.8


def round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def avoid_forbidden_total(
    bid: int,
    total_bid_so_far: int,
    cards_per_player: int,
    is_last_bidder: bool,
) -> int:
    """Nudge a last bidder's bid by one so the total misses the trick count."""
    if not is_last_bidder or total_bid_so_far + bid != cards_per_player:
        return bid
    adjusted = bid - 1 if bid > 0 else bid + 1
    return max(0, min(cards_per_player, adjusted))


def estimate_bid(
    hand: Sequence[Card],
    cards_per_player: int,
    total_bid_so_far: int,
    is_last_bidder: bool,
    difficulty: Difficulty,
    rng: random.Random,
) -> int:
    raw = apply_difficulty(estimate_tricks(hand), cards_per_player, difficulty, rng)
    bid = max(0, min(cards_per_player, round_half_up(raw)))
    return avoid_forbidden_total(
        bid, total_bid_so_far, cards_per_player, is_last_bidder
    )


def trump_strength(hand: Sequence[Card], suit: Suit, difficulty: Difficulty) -> int:
    cards = [c for c in hand if c.suit == suit]
    if difficulty == Difficulty.EASY:
        return len(cards)
    return len(cards) * 2 + sum(c.rank.order for c in cards)


def choose_trump_suit(hand: Sequence[Card], difficulty: Difficulty) -> Suit:
    """Best-scoring suit; ties keep the earliest suit in enumeration order."""
    # max() keeps the first of equal keys
    return max(Suit, key=lambda suit: trump_strength(hand, suit, difficulty))


# -----------------------------------------------------------------------------
# Card play
# -----------------------------------------------------------------------------


def card_power(
    card: Card, trump_suit: Optional[Suit], leading_suit: Optional[Suit]
) -> int:
    """Rough strength for ordering choices: trump > led suit > off-suit."""
    rank = card.rank.order
    if trump_suit is not None and card.suit == trump_suit:
        return 200 + rank
    if leading_suit is not None and card.suit == leading_suit:
        return 100 + rank
    return rank


def would_win(
    card: Card,
    current_plays: Sequence[PlayedCard],
    trump_suit: Optional[Suit],
    leading_suit: Optional[Suit],
) -> bool:
    """Would `card` take the trick as it stands now (later plays ignored)?"""
    if not current_plays:
        return True
    led = leading_suit if leading_suit is not None else current_plays[0].card.suit
    mine = PlayedCard(card=card, player_id=_SELF_ID, position=len(current_plays))
    best = winning_play(list(current_plays) + [mine], trump_suit, led)
    return best.player_id == _SELF_ID


def _pick_by_power(
    rng: random.Random,
    cards: Sequence[Card],
    trump_suit: Optional[Suit],
    leading_suit: Optional[Suit],
    *,
    pick_max: bool,
) -> Card:
    powers = [card_power(c, trump_suit, leading_suit) for c in cards]
    best_value = max(powers) if pick_max else min(powers)
    candidates = [c for c, p in zip(cards, powers) if p == best_value]
    return rng.choice(candidates)


def _highest(rng: random.Random, cards: Sequence[Card]) -> Card:
    top = max(c.rank.order for c in cards)
    return rng.choice([c for c in cards if c.rank.order == top])


def _lowest(rng: random.Random, cards: Sequence[Card]) -> Card:
    bottom = min(c.rank.order for c in cards)
    return rng.choice([c for c in cards if c.rank.order == bottom])


def _medium_play(
    legal: List[Card],
    *,
    leading_suit: Optional[Suit],
    trump_suit: Optional[Suit],
    bid: int,
    tricks_won: int,
    rng: random.Random,
) -> Card:
    """Play high while short of the bid, low once it is met."""
    if tricks_won < bid:
        if leading_suit is None:
            return _highest(rng, legal)
        follow = [c for c in legal if c.suit == leading_suit]
        if follow:
            return _highest(rng, follow)
        trumps = [c for c in legal if c.suit == trump_suit]
        if trumps:
            return _lowest(rng, trumps)
        return _highest(rng, legal)

    if tricks_won == bid and leading_suit is not None:
        follow = [c for c in legal if c.suit == leading_suit]
        if follow:
            return _lowest(rng, follow)
        non_trump = [c for c in legal if c.suit != trump_suit]
        if non_trump:
            return _lowest(rng, non_trump)
    return _lowest(rng, legal)


def _hard_play(
    legal: List[Card],
    *,
    current_plays: Sequence[PlayedCard],
    leading_suit: Optional[Suit],
    trump_suit: Optional[Suit],
    bid: int,
    tricks_won: int,
    rng: random.Random,
) -> Card:
    wants_tricks = tricks_won < bid

    if not current_plays:
        if wants_tricks:
            return _pick_by_power(rng, legal, trump_suit, None, pick_max=True)
        non_trump = [c for c in legal if c.suit != trump_suit]
        return _pick_by_power(
            rng, non_trump or legal, trump_suit, None, pick_max=False
        )

    led = leading_suit if leading_suit is not None else current_plays[0].card.suit
    winners = [c for c in legal if would_win(c, current_plays, trump_suit, led)]

    if wants_tricks:
        if winners:
            return _pick_by_power(rng, winners, trump_suit, led, pick_max=False)
        return _highest(rng, legal)

    # Bid already met (or missed by overshooting): shed the biggest loser.
    losers = [c for c in legal if c not in winners]
    if losers:
        return _pick_by_power(rng, losers, trump_suit, led, pick_max=True)
    return _pick_by_power(rng, winners, trump_suit, led, pick_max=False)


def choose_card(
    hand: Sequence[Card],
    *,
    current_plays: Sequence[PlayedCard],
    leading_suit: Optional[Suit],
    trump_suit: Optional[Suit],
    bid: int,
    tricks_won: int,
    difficulty: Difficulty,
    rng: random.Random,
) -> Card:
    """Pick a legal card for the seat holding `hand`."""
    legal = legal_cards(hand, leading_suit)
    if not legal:
        raise ValueError("No cards left to play")
    if len(legal) == 1:
        return legal[0]

    if difficulty == Difficulty.EASY:
        return rng.choice(legal)
    if difficulty == Difficulty.MEDIUM:
        return _medium_play(
            legal,
            leading_suit=leading_suit,
            trump_suit=trump_suit,
            bid=bid,
            tricks_won=tricks_won,
            rng=rng,
        )
    return _hard_play(
        legal,
        current_plays=current_plays,
        leading_suit=leading_suit,
        trump_suit=trump_suit,
        bid=bid,
        tricks_won=tricks_won,
        rng=rng,
    )

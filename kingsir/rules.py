# kingsir/rules.py
from __future__ import annotations

from dataclasses import replace
from typing import List, Optional, Sequence, Tuple
import random

from .cards import DECK_SIZE, Card, Deck, Rank, Suit, sort_hand
from .errors import IllegalAction
from .state import NO_BID, GameState, Phase, PlayedCard, PlayerState

MIN_PLAYERS = 3
MAX_PLAYERS = 6

EXACT_ZERO_BONUS = 10
EXACT_BID_BONUS = 10


# -----------------------------------------------------------------------------
# Round arithmetic and dealing
# -----------------------------------------------------------------------------


def total_rounds(num_players: int) -> int:
    """Rounds in a game: the first round deals floor(52 / n) cards each."""
    return DECK_SIZE // num_players


def cards_per_player(round_number: int, num_players: int) -> int:
    """Hand size for a 1-based round; one card fewer each round."""
    return total_rounds(num_players) - (round_number - 1)


def deal_round(
    num_players: int,
    round_number: int,
    rng: Optional[random.Random] = None,
) -> Tuple[List[List[Card]], List[Card]]:
    """
    Shuffle a fresh deck and deal the round's hands.

    Returns (hands, undealt). The 52 mod n cards that cannot be dealt evenly
    (plus those freed by shrinking hands) stay out of the round.
    """
    size = cards_per_player(round_number, num_players)
    if size < 1:
        raise ValueError(f"Round {round_number} is past the last round")
    deck = Deck()
    deck.shuffle(rng)
    return deck.deal(num_players, size)


def find_ace_of_spades_holder(players: Sequence[PlayerState]) -> int:
    """Seat holding the Ace of Spades; seat 0 if it was not dealt."""
    for i, p in enumerate(players):
        if any(c.suit == Suit.SPADES and c.rank == Rank.ACE for c in p.hand):
            return i
    return 0


def initialize_game(
    room_code: str,
    host_id: str,
    players: Sequence[PlayerState],
    rng: Optional[random.Random] = None,
    start_round: int = 1,
) -> GameState:
    """
    Deal the first round and return a fresh game in the bidding phase.

    Round 1 is started (and bid first) by whoever holds the Ace of Spades.
    """
    num_players = len(players)
    if not MIN_PLAYERS <= num_players <= MAX_PLAYERS:
        raise ValueError(
            f"Kingsir needs {MIN_PLAYERS} to {MAX_PLAYERS} players; got {num_players}"
        )
    ids = [p.id for p in players]
    if len(set(ids)) != len(ids):
        raise ValueError("Player ids must be unique")
    if not 1 <= start_round <= total_rounds(num_players):
        raise ValueError(f"start_round must be within 1..{total_rounds(num_players)}")

    hands, _undealt = deal_round(num_players, start_round, rng)
    seated = tuple(
        replace(p, hand=sort_hand(hands[i]), bid=NO_BID, tricks_won=0)
        for i, p in enumerate(players)
    )
    starter = find_ace_of_spades_holder(seated)

    return GameState(
        room_code=room_code,
        host_id=host_id,
        phase=Phase.BIDDING,
        players=seated,
        current_round=start_round,
        cards_per_player=cards_per_player(start_round, num_players),
        current_player_index=starter,
        round_starter_index=starter,
    )


# -----------------------------------------------------------------------------
# Queries
# -----------------------------------------------------------------------------


def acting_seat(state: GameState) -> Optional[int]:
    """
    Seat that must act next, or None when nobody owes a decision.

    During trump selection that is the highest bidder, not the seat at
    `current_player_index`.
    """
    if state.phase in (Phase.BIDDING, Phase.PLAYING):
        return state.current_player_index
    if state.phase == Phase.TRUMP_SELECTION:
        seat = state.seat_of(state.highest_bidder_id or "")
        return seat if seat >= 0 else None
    return None


def is_players_turn(state: GameState, player_id: str) -> bool:
    seat = acting_seat(state)
    return seat is not None and state.players[seat].id == player_id


def is_last_bidder(state: GameState) -> bool:
    """True when exactly one seat has not yet declared."""
    declared = sum(1 for p in state.players if p.has_bid)
    return declared == state.num_players - 1


def total_bid(state: GameState) -> int:
    return sum(p.bid for p in state.players if p.has_bid)


def validate_bid(state: GameState, seat_index: int, bid: int) -> Optional[str]:
    """Return a reason the bid is illegal, or None if it may be made."""
    if state.phase != Phase.BIDDING:
        return "Bids can only be made during bidding."
    if seat_index != state.current_player_index:
        return "It's not your turn."
    if state.players[seat_index].has_bid:
        return "You have already declared this round."
    if isinstance(bid, bool) or not isinstance(bid, int):
        return "Bid must be a whole number."
    if bid < 0 or bid > state.cards_per_player:
        return f"Bid must be between 0 and {state.cards_per_player}"

    # Last bidder may not make the declared total equal the tricks available.
    if is_last_bidder(state) and total_bid(state) + bid == state.cards_per_player:
        return (
            f"Total bids cannot equal {state.cards_per_player}. "
            "Choose a different number."
        )
    return None


def valid_bids(state: GameState, seat_index: int) -> List[int]:
    return [
        b
        for b in range(state.cards_per_player + 1)
        if validate_bid(state, seat_index, b) is None
    ]


def legal_cards(hand: Sequence[Card], leading_suit: Optional[Suit]) -> List[Card]:
    """
    Cards in `hand` that may be played to a trick with `leading_suit`.

    Following suit is mandatory when possible; otherwise anything goes.
    """
    if leading_suit is None:
        return list(hand)
    follow = [c for c in hand if c.suit == leading_suit]
    return follow if follow else list(hand)


def validate_play(state: GameState, seat_index: int, card: Card) -> Optional[str]:
    """Return a reason the play is illegal, or None if it may be made."""
    if state.phase != Phase.PLAYING:
        return "Cards can only be played while a trick is in progress."
    if seat_index != state.current_player_index:
        return "It's not your turn."

    hand = state.players[seat_index].hand
    if not any(c.id == card.id for c in hand):
        return "That card isn't in your hand."

    leading = state.leading_suit
    if leading is not None and card.suit != leading:
        if any(c.suit == leading for c in hand):
            return f"You must follow the leading suit ({leading.value})."
    return None


def validate_trump(
    state: GameState, suit: Suit, seat_index: Optional[int] = None
) -> Optional[str]:
    if state.phase != Phase.TRUMP_SELECTION:
        return "Trump can only be chosen after everyone has bid."
    if not isinstance(suit, Suit):
        return "Trump must be one of the four suits."
    if seat_index is not None and seat_index != acting_seat(state):
        return "Only the highest bidder chooses trump."
    return None


# -----------------------------------------------------------------------------
# Trick resolution and scoring
# -----------------------------------------------------------------------------


def card_beats(
    challenger: Card,
    holder: Card,
    trump_suit: Optional[Suit],
    leading_suit: Optional[Suit],
) -> bool:
    """
    Does `challenger` take the trick from the currently winning `holder`?

    Trump over everything else, higher trump over lower trump, led suit over
    off-suit, higher led card over lower. Two off-suit, non-trump cards never
    displace each other, so the earlier one stands.
    """
    c_trump = trump_suit is not None and challenger.suit == trump_suit
    h_trump = trump_suit is not None and holder.suit == trump_suit
    if c_trump != h_trump:
        return c_trump
    if c_trump:
        return challenger.rank.order > holder.rank.order

    c_led = leading_suit is not None and challenger.suit == leading_suit
    h_led = leading_suit is not None and holder.suit == leading_suit
    if c_led != h_led:
        return c_led
    if c_led:
        return challenger.rank.order > holder.rank.order
    return False


def winning_play(
    played: Sequence[PlayedCard],
    trump_suit: Optional[Suit],
    leading_suit: Optional[Suit],
) -> PlayedCard:
    """The play currently taking a (possibly incomplete) trick."""
    if not played:
        raise ValueError("Cannot determine winner of an empty trick")
    ordered = sorted(played, key=lambda pc: pc.position)
    best = ordered[0]
    for challenger in ordered[1:]:
        if card_beats(challenger.card, best.card, trump_suit, leading_suit):
            best = challenger
    return best


def resolve_trick(
    played: Sequence[PlayedCard],
    trump_suit: Optional[Suit],
    leading_suit: Optional[Suit],
) -> str:
    """Player id of the trick's winner."""
    return winning_play(played, trump_suit, leading_suit).player_id


def round_score(bid: int, tricks_won: int) -> int:
    """Points for one round: exact zero scores 10, exact bid scores bid + 10."""
    if bid != tricks_won:
        return 0
    if bid == 0:
        return EXACT_ZERO_BONUS
    return bid + EXACT_BID_BONUS


def score_round(state: GameState) -> GameState:
    players = tuple(
        replace(p, score=p.score + round_score(p.bid, p.tricks_won))
        for p in state.players
    )
    return replace(state, players=players)


# -----------------------------------------------------------------------------
# Transitions
# -----------------------------------------------------------------------------


def submit_bid(state: GameState, seat_index: int, bid: int) -> GameState:
    reason = validate_bid(state, seat_index, bid)
    if reason:
        raise IllegalAction(reason)

    players = list(state.players)
    players[seat_index] = replace(players[seat_index], bid=bid)

    # Strictly greater replaces the leader, so ties stay with the earlier bidder.
    highest_bidder_id = state.highest_bidder_id
    leader_seat = state.seat_of(highest_bidder_id or "")
    if leader_seat < 0 or bid > state.players[leader_seat].bid:
        highest_bidder_id = players[seat_index].id

    all_bid = all(p.has_bid for p in players)
    return replace(
        state,
        players=tuple(players),
        highest_bidder_id=highest_bidder_id,
        current_player_index=(seat_index + 1) % state.num_players,
        phase=Phase.TRUMP_SELECTION if all_bid else Phase.BIDDING,
    )


def select_trump(
    state: GameState, suit: Suit, seat_index: Optional[int] = None
) -> GameState:
    """
    Fix the round's trump. The highest bidder then leads the first trick.

    Pass `seat_index` to also check that the chooser is the highest bidder.
    """
    reason = validate_trump(state, suit, seat_index)
    if reason:
        raise IllegalAction(reason)
    return replace(
        state,
        trump_suit=suit,
        phase=Phase.PLAYING,
        current_player_index=acting_seat(state),
    )


def play_card(state: GameState, seat_index: int, card: Card) -> GameState:
    reason = validate_play(state, seat_index, card)
    if reason:
        raise IllegalAction(reason)

    player = state.players[seat_index]
    players = list(state.players)
    players[seat_index] = replace(
        player, hand=tuple(c for c in player.hand if c.id != card.id)
    )

    played = state.played_cards + (
        PlayedCard(card=card, player_id=player.id, position=len(state.played_cards)),
    )
    leading_suit = state.leading_suit if state.played_cards else card.suit

    if len(played) < state.num_players:
        return replace(
            state,
            players=tuple(players),
            played_cards=played,
            leading_suit=leading_suit,
            current_player_index=(seat_index + 1) % state.num_players,
        )

    winner_id = resolve_trick(played, state.trump_suit, leading_suit)
    winner_seat = state.seat_of(winner_id)
    players[winner_seat] = replace(
        players[winner_seat], tricks_won=players[winner_seat].tricks_won + 1
    )
    return replace(
        state,
        players=tuple(players),
        played_cards=played,
        leading_suit=leading_suit,
        trick_winner_id=winner_id,
        phase=Phase.TRICK_RESULT,
        current_player_index=winner_seat,
    )


def advance_after_trick(state: GameState) -> GameState:
    """
    Leave the trick-result pause.

    The trick winner leads the next trick; after the last trick the round is
    scored and the game waits in `roundEnd`.
    """
    if state.phase != Phase.TRICK_RESULT:
        raise IllegalAction("There is no finished trick to clear.")

    trick_number = state.trick_number + 1
    cleared = replace(
        state,
        played_cards=(),
        leading_suit=None,
        trick_winner_id=None,
        trick_number=trick_number,
    )
    if trick_number >= state.cards_per_player:
        return replace(score_round(cleared), phase=Phase.ROUND_END)
    return replace(cleared, phase=Phase.PLAYING)


def start_next_round(
    state: GameState, rng: Optional[random.Random] = None
) -> GameState:
    """
    Deal the next round, or end the game after the last one.

    The starter rotates one seat from the previous round's starter, whoever
    won the final trick.
    """
    if state.phase == Phase.GAME_OVER:
        return state
    if state.phase != Phase.ROUND_END:
        raise IllegalAction("The round is not over yet.")

    if state.current_round >= total_rounds(state.num_players):
        return replace(state, phase=Phase.GAME_OVER)

    next_round = state.current_round + 1
    hands, _undealt = deal_round(state.num_players, next_round, rng)
    starter = (state.round_starter_index + 1) % state.num_players
    players = tuple(
        replace(p, hand=sort_hand(hands[i]), bid=NO_BID, tricks_won=0)
        for i, p in enumerate(state.players)
    )
    return replace(
        state,
        players=players,
        phase=Phase.BIDDING,
        current_round=next_round,
        cards_per_player=cards_per_player(next_round, state.num_players),
        current_player_index=starter,
        round_starter_index=starter,
        trump_suit=None,
        leading_suit=None,
        played_cards=(),
        highest_bidder_id=None,
        trick_winner_id=None,
        trick_number=0,
    )


def set_connected(state: GameState, player_id: str, connected: bool) -> GameState:
    """Mark a seat's client as (dis)connected; gameplay fields are untouched."""
    seat = state.seat_of(player_id)
    if seat < 0:
        raise KeyError(player_id)
    if state.players[seat].connected == connected:
        return state
    players = list(state.players)
    players[seat] = replace(players[seat], connected=connected)
    return replace(state, players=tuple(players))

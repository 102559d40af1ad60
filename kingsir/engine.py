# kingsir/engine.py
from __future__ import annotations

import logging
import random
from typing import Any, Dict, List, Optional, Sequence

from .agents.base import KingsirAgent
from .cards import card_to_dict
from .errors import IllegalAction
from .rules import (
    MAX_PLAYERS,
    MIN_PLAYERS,
    acting_seat,
    advance_after_trick,
    initialize_game,
    is_last_bidder,
    legal_cards,
    play_card,
    select_trump,
    start_next_round,
    submit_bid,
    total_bid,
    total_rounds,
    valid_bids,
    validate_bid,
)
from .state import Difficulty, GameState, Phase, PlayerState

logger = logging.getLogger(__name__)


# -----------------------------------------------------------------------------
# Observation builders
# -----------------------------------------------------------------------------


def build_observation(state: GameState, seat: int) -> Dict[str, Any]:
    """Everything seat `seat` may see when it has to decide."""
    player = state.players[seat]
    hand = list(player.hand)
    legal = legal_cards(hand, state.leading_suit)

    return {
        "phase": state.phase.value,
        "game": {
            "room_code": state.room_code,
            "round": state.current_round,
            "rounds_total": total_rounds(state.num_players),
            "cards_per_player": state.cards_per_player,
            "num_players": state.num_players,
            "trick_number": state.trick_number,
        },
        "player": {
            "id": player.id,
            "seat": seat,
            "bid": player.bid,
            "tricks_won": player.tricks_won,
            "score": player.score,
        },
        "bidding": {
            "bids": {p.id: p.bid for p in state.players if p.has_bid},
            "total_bid_so_far": total_bid(state),
            "is_last_bidder": is_last_bidder(state),
            "valid_bids": (
                valid_bids(state, seat) if state.phase == Phase.BIDDING else []
            ),
            "highest_bidder_id": state.highest_bidder_id,
        },
        "hand": [card_to_dict(c) for c in hand],
        "hand_cards": hand,
        "legal_move_indices": [i for i, c in enumerate(hand) if c in legal],
        "trump_suit": state.trump_suit,
        "leading_suit": state.leading_suit,
        "current_plays": list(state.played_cards),
        "current_trick": [
            {"player_id": pc.player_id, "card": card_to_dict(pc.card)}
            for pc in state.played_cards
        ],
        "tricks_taken_so_far": {p.id: p.tricks_won for p in state.players},
        "scores": {p.id: p.score for p in state.players},
    }


# -----------------------------------------------------------------------------
# Single decisions
# -----------------------------------------------------------------------------


def apply_agent_turn(state: GameState, agent: KingsirAgent) -> GameState:
    """
    Ask `agent` for the pending decision and return the resulting snapshot.

    Illegal agent answers are replaced by a legal fallback rather than
    stalling the game.
    """
    seat = acting_seat(state)
    if seat is None:
        raise IllegalAction("No player decision is pending.")
    obs = build_observation(state, seat)

    if state.phase == Phase.BIDDING:
        bid = agent.choose_bid(obs)
        reason = validate_bid(state, seat, bid)
        if reason:
            fallback = valid_bids(state, seat)[0]
            logger.warning(
                "Seat %d proposed illegal bid %r (%s); using %d",
                seat,
                bid,
                reason,
                fallback,
            )
            bid = fallback
        return submit_bid(state, seat, bid)

    if state.phase == Phase.TRUMP_SELECTION:
        suit = agent.choose_trump(obs)
        return select_trump(state, suit, seat)

    move_index = agent.choose_card(obs)
    legal_indices = obs["legal_move_indices"]
    if move_index not in legal_indices:
        logger.warning(
            "Seat %d chose illegal card index %r; auto-correcting", seat, move_index
        )
        move_index = legal_indices[0]
    return play_card(state, seat, obs["hand_cards"][move_index])


# -----------------------------------------------------------------------------
# Headless games
# -----------------------------------------------------------------------------


class GameEngine:
    """
    Plays a whole Kingsir game locally with one agent per seat.

    No store and no timers: the snapshot is threaded through the rules
    directly. Useful for simulations and for checking the rules end to end.
    """

    def __init__(
        self,
        agents: Sequence[KingsirAgent],
        player_names: Optional[List[str]] = None,
        difficulties: Optional[List[Optional[Difficulty]]] = None,
        rng_seed: Optional[int] = None,
        game_label: Optional[str] = None,
    ) -> None:
        if not MIN_PLAYERS <= len(agents) <= MAX_PLAYERS:
            raise ValueError(
                f"Kingsir supports {MIN_PLAYERS} to {MAX_PLAYERS} players; got {len(agents)}"
            )

        self.agents: List[KingsirAgent] = list(agents)

        if player_names is None:
            player_names = [f"Player {i}" for i in range(len(agents))]
        if len(player_names) != len(agents):
            raise ValueError("player_names must match number of agents")
        if difficulties is None:
            difficulties = [None] * len(agents)

        self.rng = random.Random(rng_seed)
        self.game_label = game_label
        self.players = [
            PlayerState(
                id=f"p{i}",
                name=name,
                is_ai=True,
                ai_difficulty=difficulties[i],
            )
            for i, name in enumerate(player_names)
        ]
        self.max_rounds = total_rounds(len(agents))
        # Snapshots taken in `roundEnd`, one per completed round.
        self.round_results: List[GameState] = []
        self.state: Optional[GameState] = None

    def play_game(self) -> GameState:
        """Play a full game from scratch and return the final snapshot."""
        state = initialize_game(
            self.game_label or "local", self.players[0].id, self.players, self.rng
        )
        self.state = state
        while state.phase != Phase.GAME_OVER:
            state = self.step(state)
            self.state = state

        logger.info(
            "Finished game%s",
            f" {self.game_label}" if self.game_label else "",
        )
        return state

    def step(self, state: GameState) -> GameState:
        """Advance one transition."""
        if state.phase == Phase.TRICK_RESULT:
            return advance_after_trick(state)
        if state.phase == Phase.ROUND_END:
            self.round_results.append(state)
            logger.info(
                "Finished round %d/%d%s",
                state.current_round,
                self.max_rounds,
                f" for {self.game_label}" if self.game_label else "",
            )
            return start_next_round(state, self.rng)
        seat = acting_seat(state)
        return apply_agent_turn(state, self.agents[seat])

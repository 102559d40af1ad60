# kingsir/client.py
from __future__ import annotations

import asyncio
import logging
import random
from typing import Any, Callable, List, Mapping, Optional, Sequence

from . import rules
from .cards import Card, Suit
from .coordinator import TurnCoordinator
from .errors import IllegalAction, RoomNotFound
from .state import Difficulty, GameState, Phase, PlayerState
from .store import SharedStore, Unsubscribe

logger = logging.getLogger(__name__)


def seat_from_lobby(entry: Mapping[str, Any]) -> PlayerState:
    """Build a seat from a lobby entry {id, name, isAI, aiDifficulty?}."""
    difficulty = entry.get("aiDifficulty")
    return PlayerState(
        id=str(entry["id"]),
        name=entry.get("name") or str(entry["id"]),
        is_ai=bool(entry.get("isAI", False)),
        ai_difficulty=Difficulty(difficulty) if difficulty else None,
    )


async def start_game(
    store: SharedStore,
    room_code: str,
    host_id: str,
    players: Sequence[Mapping[str, Any]],
    rng: Optional[random.Random] = None,
    start_round: int = 1,
) -> GameState:
    """Deal a new game for the lobby's players and publish it to the room."""
    state = rules.initialize_game(
        room_code,
        host_id,
        [seat_from_lobby(p) for p in players],
        rng=rng,
        start_round=start_round,
    )
    await store.publish(room_code, state)
    logger.info(
        "Started game in room %s with %d players (%d AI)",
        room_code,
        state.num_players,
        sum(1 for p in state.players if p.is_ai),
    )
    return state


class GameClient:
    """
    One human player's view of a room.

    Keeps a mirror of the shared document, validates the player's actions
    against it and publishes the resulting snapshot. With `drive_ai` the
    client also runs a TurnCoordinator for the room; extra keyword arguments
    are passed on to it.
    """

    def __init__(
        self,
        store: SharedStore,
        room_code: str,
        player_id: str,
        *,
        rng: Optional[random.Random] = None,
        drive_ai: bool = True,
        **coordinator_options: Any,
    ) -> None:
        self.store = store
        self.room_code = room_code
        self.player_id = player_id
        self.rng = rng if rng is not None else random.Random()
        self.state: Optional[GameState] = None
        self.room_closed = False
        self.coordinator: Optional[TurnCoordinator] = (
            TurnCoordinator(
                store,
                room_code,
                player_id,
                rng=random.Random(self.rng.getrandbits(32)),
                **coordinator_options,
            )
            if drive_ai
            else None
        )
        self._unsubscribe: Optional[Unsubscribe] = None
        self._waiters: List[asyncio.Event] = []

    # -------------------------------------------------------------------------
    # Connection
    # -------------------------------------------------------------------------

    async def connect(self) -> None:
        """Subscribe to the room and mark our seat connected."""
        self._unsubscribe = self.store.subscribe(self.room_code, self._observe)
        if self.coordinator is not None:
            self.coordinator.start()
        state = self.state
        if state is not None and state.seat_of(self.player_id) >= 0:
            if not state.players[state.seat_of(self.player_id)].connected:
                await self.store.publish(
                    self.room_code, rules.set_connected(state, self.player_id, True)
                )

    async def leave(self) -> None:
        """
        Mark our seat disconnected and stop watching the room.

        Other clients' coordinators play the seat until we reconnect.
        """
        state = self.state
        if state is not None and not self.room_closed and state.seat_of(self.player_id) >= 0:
            await self.store.publish(
                self.room_code, rules.set_connected(state, self.player_id, False)
            )
        self.close()

    def close(self) -> None:
        if self.coordinator is not None:
            self.coordinator.stop()
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None

    def _observe(self, state: Optional[GameState]) -> None:
        previous, self.state = self.state, state
        if state is None and previous is not None:
            self.room_closed = True
        for event in list(self._waiters):
            event.set()

    async def wait_for(
        self,
        predicate: Callable[[Optional[GameState]], bool],
        timeout: Optional[float] = None,
    ) -> Optional[GameState]:
        """Wait until the mirrored state satisfies `predicate`."""

        async def _wait() -> Optional[GameState]:
            while not predicate(self.state):
                event = asyncio.Event()
                self._waiters.append(event)
                try:
                    await event.wait()
                finally:
                    self._waiters.remove(event)
            return self.state

        return await asyncio.wait_for(_wait(), timeout)

    # -------------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------------

    def _require_state(self) -> GameState:
        if self.state is None:
            raise RoomNotFound(self.room_code)
        return self.state

    @property
    def seat(self) -> int:
        return self.state.seat_of(self.player_id) if self.state is not None else -1

    def _require_seat(self, state: GameState) -> int:
        seat = state.seat_of(self.player_id)
        if seat < 0:
            raise IllegalAction("You are not seated in this game.")
        return seat

    def is_my_turn(self) -> bool:
        return self.state is not None and rules.is_players_turn(self.state, self.player_id)

    def valid_bids(self) -> List[int]:
        state = self._require_state()
        return rules.valid_bids(state, self._require_seat(state))

    def total_rounds(self) -> int:
        return rules.total_rounds(self._require_state().num_players)

    # -------------------------------------------------------------------------
    # Actions
    # -------------------------------------------------------------------------

    async def _commit(self, new_state: GameState) -> GameState:
        await self.store.publish(self.room_code, new_state)
        return new_state

    async def submit_bid(self, bid: int) -> GameState:
        state = self._require_state()
        return await self._commit(rules.submit_bid(state, self._require_seat(state), bid))

    async def select_trump(self, suit: Suit) -> GameState:
        state = self._require_state()
        return await self._commit(
            rules.select_trump(state, suit, self._require_seat(state))
        )

    async def play_card(self, card: Card) -> GameState:
        state = self._require_state()
        return await self._commit(rules.play_card(state, self._require_seat(state), card))

    async def acknowledge_result(self) -> GameState:
        """Leave the trick-result pause without waiting for the timer."""
        state = self._require_state()
        self._require_seat(state)
        return await self._commit(rules.advance_after_trick(state))

    async def start_next_round(self) -> GameState:
        state = self._require_state()
        self._require_seat(state)
        if state.phase == Phase.GAME_OVER:
            return state
        return await self._commit(rules.start_next_round(state, self.rng))

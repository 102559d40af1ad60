# kingsir/coordinator.py
"""
Turn coordination without an authoritative server.

Every human client runs a TurnCoordinator next to its mirror of the room's
document. Whenever the seat due to act is an AI (or a human seat whose
client has dropped), each coordinator computes that move after a short
"thinking" pause and tries to publish it. Before writing it compares the
fencing token it captured against the newest document it has seen; if the
game has moved on, its write is dropped silently. The move itself is
computed from that newest document, so writes to other fields made during
the pause (a seat leaving, say) are kept. Stores that offer an atomic
`compare_and_publish` repeat the check against the whole stored document.

The same guard covers the timed exit from `trickResult` and, for
unattended rooms, the optional automatic start of the next round.
"""
from __future__ import annotations

import asyncio
import logging
import random
from typing import Awaitable, Dict, Optional, Set, Tuple

from .agents import HeuristicAgent, agent_for
from .engine import apply_agent_turn
from .errors import RoomNotFound
from .rules import acting_seat, advance_after_trick, start_next_round
from .state import Difficulty, GameState, Phase, PlayerState
from .store import FencingToken, SharedStore, Unsubscribe
from .verbose_logger import VerboseTurnLogger

logger = logging.getLogger(__name__)

DEFAULT_THINK_DELAY: Tuple[float, float] = (0.5, 1.5)
DEFAULT_ADVANCE_DELAY = 4.0


def needs_autoplay(player: PlayerState) -> bool:
    """AI seats, and human seats whose client is gone, are played by coordinators."""
    return player.is_ai or not player.connected


class TurnCoordinator:
    """
    Drives AI seats and timed transitions for one room from one client.

    - client_id: the seat id of the local human player. A coordinator only
      acts while that seat is a connected human, unless `spectator` is set
      (used by headless simulations with no human seats).
    - think_delay: (low, high) seconds of simulated thinking per AI move.
    - advance_delay: seconds a finished trick stays on show.
    - next_round_delay: if set, start the next round automatically after
      this many seconds in `roundEnd`.
    - autopilot: difficulty used for disconnected human seats.
    """

    def __init__(
        self,
        store: SharedStore,
        room_code: str,
        client_id: str,
        *,
        rng: Optional[random.Random] = None,
        think_delay: Tuple[float, float] = DEFAULT_THINK_DELAY,
        advance_delay: float = DEFAULT_ADVANCE_DELAY,
        next_round_delay: Optional[float] = None,
        autopilot: Difficulty = Difficulty.MEDIUM,
        spectator: bool = False,
        turn_logger: Optional[VerboseTurnLogger] = None,
    ) -> None:
        self.store = store
        self.room_code = room_code
        self.client_id = client_id
        self.think_delay = think_delay
        self.advance_delay = advance_delay
        self.next_round_delay = next_round_delay
        self.autopilot = autopilot
        self.spectator = spectator
        self.turn_logger = turn_logger
        self._rng = rng if rng is not None else random.Random()

        self.state: Optional[GameState] = None
        self.room_closed = False
        self.running = False
        self.published = 0
        self.races_lost = 0

        self._agents: Dict[Tuple[str, Difficulty], HeuristicAgent] = {}
        self._unsubscribe: Optional[Unsubscribe] = None
        self._turn_task: Optional[asyncio.Task] = None
        # Pending trick advance or next-round start, and the state it is for.
        self._timer_task: Optional[asyncio.Task] = None
        self._timer_token: Optional[FencingToken] = None
        self._tasks: Set[asyncio.Task] = set()

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    def start(self) -> None:
        """Subscribe to the room. Must be called with an event loop running."""
        self.running = True
        if self._unsubscribe is None:
            self._unsubscribe = self.store.subscribe(self.room_code, self.observe)

    def stop(self) -> None:
        self.running = False
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None
        for task in list(self._tasks):
            task.cancel()

    @property
    def busy(self) -> bool:
        return bool(self._tasks)

    def observe(self, state: Optional[GameState]) -> None:
        """Store change callback: refresh the mirror and react to it."""
        previous, self.state = self.state, state
        if state is None:
            # No document before the game starts is normal; losing one is not.
            if previous is not None:
                logger.info("Room %s no longer exists", self.room_code)
                self.room_closed = True
            return
        self._schedule()

    # -------------------------------------------------------------------------
    # Scheduling
    # -------------------------------------------------------------------------

    def drives(self, state: GameState) -> bool:
        if self.spectator:
            return True
        seat = state.seat_of(self.client_id)
        return seat >= 0 and not needs_autoplay(state.players[seat])

    def _schedule(self) -> None:
        state = self.state
        if (
            state is None
            or not self.running
            or self.room_closed
            or not self.drives(state)
        ):
            return

        # A timer for a trick or round the game has already left is dead.
        if self._timer_task is not None and not self._timer_token.matches(state):
            self._timer_task.cancel()
            self._timer_task = None

        if state.phase == Phase.TRICK_RESULT:
            if self._timer_task is None:
                self._start_timer(state, self._auto_advance(state))
            return

        if state.phase == Phase.ROUND_END:
            if self.next_round_delay is not None and self._timer_task is None:
                self._start_timer(state, self._auto_next_round(state))
            return

        seat = acting_seat(state)
        if seat is None or not needs_autoplay(state.players[seat]):
            return
        if self._turn_task is None:
            logger.debug(
                "Client %s scheduling move for seat %d (%s)",
                self.client_id,
                seat,
                state.phase.value,
            )
            self._turn_task = self._spawn(self._play_turn(state, seat))

    def _spawn(self, coro: Awaitable[None]) -> asyncio.Task:
        task = asyncio.get_running_loop().create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    def _start_timer(self, state: GameState, coro: Awaitable[None]) -> None:
        self._timer_token = FencingToken.capture(state)
        self._timer_task = self._spawn(coro)

    def _agent(self, player: PlayerState) -> HeuristicAgent:
        difficulty = player.ai_difficulty if player.is_ai else self.autopilot
        key = (player.id, difficulty or Difficulty.MEDIUM)
        if key not in self._agents:
            self._agents[key] = agent_for(
                difficulty, random.Random(self._rng.getrandbits(32))
            )
        return self._agents[key]

    # -------------------------------------------------------------------------
    # Guarded work
    # -------------------------------------------------------------------------

    async def _play_turn(self, observed: GameState, seat: int) -> None:
        token = FencingToken.capture(observed)
        action = f"{observed.phase.value} for {observed.players[seat].name}"
        try:
            low, high = self.think_delay
            await asyncio.sleep(self._rng.uniform(low, high))
            # Free the slot before writing so our own change can schedule
            # the next AI seat.
            self._turn_task = None
            current = self._current_for(token, action)
            if current is None:
                return
            player = current.players[seat]
            # The seat's owner may have come back while we were thinking.
            if not self.drives(current) or not needs_autoplay(player):
                return
            new_state = apply_agent_turn(current, self._agent(player))
            await self._publish_guarded(token, current, new_state, action)
        except RoomNotFound:
            self.room_closed = True
        except Exception:
            logger.exception(
                "Client %s failed to play seat %d in room %s",
                self.client_id,
                seat,
                self.room_code,
            )
        finally:
            if self._turn_task is asyncio.current_task():
                self._turn_task = None
            self._schedule()

    async def _auto_advance(self, observed: GameState) -> None:
        token = FencingToken.capture(observed)
        action = "trick advance"
        try:
            await asyncio.sleep(self.advance_delay)
            self._release_timer()
            current = self._current_for(token, action)
            if current is not None:
                await self._publish_guarded(
                    token, current, advance_after_trick(current), action
                )
        except RoomNotFound:
            self.room_closed = True
        except Exception:
            logger.exception("Client %s failed to advance trick", self.client_id)
        finally:
            self._release_timer()
            self._schedule()

    async def _auto_next_round(self, observed: GameState) -> None:
        token = FencingToken.capture(observed)
        action = "next round"
        try:
            await asyncio.sleep(self.next_round_delay or 0.0)
            self._release_timer()
            current = self._current_for(token, action)
            if current is not None:
                await self._publish_guarded(
                    token, current, start_next_round(current, self._rng), action
                )
        except RoomNotFound:
            self.room_closed = True
        except Exception:
            logger.exception("Client %s failed to start next round", self.client_id)
        finally:
            self._release_timer()
            self._schedule()

    def _release_timer(self) -> None:
        # Only the task that owns the slot may clear it.
        if self._timer_task is asyncio.current_task():
            self._timer_task = None

    def _current_for(self, token: FencingToken, action: str) -> Optional[GameState]:
        """
        The newest mirrored state if it is still at `token`, else None.

        Moves are always computed from this state, never from the one the
        work was scheduled on, so concurrent writes to other fields survive.
        """
        current = self.state
        if not token.matches(current):
            self._lost_race(token, action)
            return None
        return current

    async def _publish_guarded(
        self,
        token: FencingToken,
        base: GameState,
        new_state: GameState,
        action: str,
    ) -> bool:
        """
        Publish `new_state`, computed from `base`, unless the room moved on.

        Returns False when another writer got there first; that is the
        normal outcome for all but one racing client.
        """
        if not token.matches(self.state) or self.state != base:
            self._lost_race(token, action)
            return False

        compare_and_publish = getattr(self.store, "compare_and_publish", None)
        if compare_and_publish is not None:
            if not await compare_and_publish(self.room_code, base, new_state):
                self._lost_race(token, action)
                return False
        else:
            await self.store.publish(self.room_code, new_state)

        self.published += 1
        logger.info(
            "Client %s published %s in room %s (round %d, trick %d)",
            self.client_id,
            action,
            self.room_code,
            token.current_round,
            token.trick_number,
        )
        if self.turn_logger is not None:
            self.turn_logger.log_turn(
                client_id=self.client_id,
                room_code=self.room_code,
                token=token,
                action=action,
                outcome="published",
            )
        return True

    def _lost_race(self, token: FencingToken, action: str) -> None:
        self.races_lost += 1
        logger.debug(
            "Client %s dropped stale %s in room %s", self.client_id, action, self.room_code
        )
        if self.turn_logger is not None:
            self.turn_logger.log_turn(
                client_id=self.client_id,
                room_code=self.room_code,
                token=token,
                action=action,
                outcome="stale",
            )

# kingsir/store.py
"""
Shared Store adapter: one game document per room code.

`SharedStore` is the boundary the core consumes. `InMemoryStore` is an
in-process implementation used by simulations and tests; it keeps each room
as its own aggregate and round-trips every write through the storage codec.
"""
from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Protocol, runtime_checkable

from .codec import collapse_empty, decode_state, encode_state
from .errors import RoomNotFound
from .state import GameState, Phase

logger = logging.getLogger(__name__)

OnChange = Callable[[Optional[GameState]], None]
Unsubscribe = Callable[[], None]


@dataclass(frozen=True)
class FencingToken:
    """
    The fields a decision was computed against.

    If any of them moved on before the write, someone else already advanced
    the game and the write must be dropped.
    """
    phase: Phase
    current_player_index: int
    trick_number: int
    current_round: int

    @classmethod
    def capture(cls, state: GameState) -> "FencingToken":
        return cls(
            phase=state.phase,
            current_player_index=state.current_player_index,
            trick_number=state.trick_number,
            current_round=state.current_round,
        )

    def matches(self, state: Optional[GameState]) -> bool:
        return state is not None and FencingToken.capture(state) == self


@runtime_checkable
class SharedStore(Protocol):
    """Key-value document store keyed by room code."""

    def subscribe(self, room_code: str, on_change: OnChange) -> Unsubscribe:
        """
        Call `on_change` with the current document now and after every write.

        `None` means the room has no game document (never started or deleted).
        """
        raise NotImplementedError

    async def publish(self, room_code: str, state: GameState) -> None:
        """Replace the room's whole document with `state`."""
        raise NotImplementedError


@dataclass
class Room:
    code: str
    document: Optional[Dict[str, Any]] = None
    subscribers: List[OnChange] = field(default_factory=list)
    # Number of accepted writes.
    revision: int = 0
    deleted: bool = False


class InMemoryStore(SharedStore):
    """
    Process-local store with change fan-out.

    - collapse_empty: store documents the way backends that drop empty lists
      and nulls do, so readers depend on the codec's normalization.
    - latency: seconds each write spends "on the wire" before it lands.
    """

    def __init__(self, collapse_empty: bool = False, latency: float = 0.0) -> None:
        self.collapse_empty = collapse_empty
        self.latency = latency
        self._rooms: Dict[str, Room] = {}

    def room(self, room_code: str) -> Room:
        if room_code not in self._rooms:
            self._rooms[room_code] = Room(code=room_code)
        return self._rooms[room_code]

    def read(self, room_code: str) -> Optional[GameState]:
        room = self._rooms.get(room_code)
        if room is None or room.document is None:
            return None
        return decode_state(room.document)

    def subscribe(self, room_code: str, on_change: OnChange) -> Unsubscribe:
        room = self.room(room_code)
        room.subscribers.append(on_change)
        on_change(self.read(room_code))

        def unsubscribe() -> None:
            if on_change in room.subscribers:
                room.subscribers.remove(on_change)

        return unsubscribe

    async def publish(self, room_code: str, state: GameState) -> None:
        if self.latency:
            await asyncio.sleep(self.latency)
        self._write(room_code, state)

    async def compare_and_publish(
        self, room_code: str, expected: GameState, state: GameState
    ) -> bool:
        """
        Write `state` only if the stored document still equals `expected`.

        Any field counts, not just the fencing fields, so a concurrent
        write such as a seat's connection flag is never overwritten.
        The check and the write happen without yielding to other tasks.
        """
        if self.latency:
            await asyncio.sleep(self.latency)
        room = self._rooms.get(room_code)
        if room is not None and room.deleted:
            raise RoomNotFound(room_code)
        if self.read(room_code) != expected:
            return False
        self._write(room_code, state)
        return True

    def delete_room(self, room_code: str) -> None:
        room = self.room(room_code)
        room.document = None
        room.deleted = True
        self._notify(room, None)

    def _write(self, room_code: str, state: GameState) -> None:
        room = self.room(room_code)
        if room.deleted:
            raise RoomNotFound(room_code)
        if state.room_code != room_code:
            logger.warning(
                "Document for room %s published under %s", state.room_code, room_code
            )
        doc = encode_state(state)
        room.document = collapse_empty(doc) if self.collapse_empty else doc
        room.revision += 1
        self._notify(room, decode_state(room.document))

    def _notify(self, room: Room, state: Optional[GameState]) -> None:
        for callback in list(room.subscribers):
            try:
                callback(state)
            except Exception:
                logger.exception("Subscriber for room %s failed", room.code)

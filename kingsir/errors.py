# kingsir/errors.py
from __future__ import annotations


class IllegalAction(ValueError):
    """An action broke a rule precondition; the game state is unchanged."""

    def __init__(self, reason: str) -> None:
        super().__init__(reason)
        self.reason = reason


class RoomNotFound(LookupError):
    """The shared store has no game document for the room."""

    def __init__(self, room_code: str) -> None:
        super().__init__(f"Room {room_code} no longer exists")
        self.room_code = room_code

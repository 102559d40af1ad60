from __future__ import annotations

from pathlib import Path
from threading import Lock
from typing import TYPE_CHECKING, List, Optional

if TYPE_CHECKING:
    from .store import FencingToken


class VerboseTurnLogger:
    """Accumulates a turn-by-turn record of what each coordinator wrote or dropped."""

    def __init__(self, path: Path) -> None:
        self.path = Path(path)
        self._entries: List[str] = []
        self._lock = Lock()
        self.stale_count = 0

    def log_turn(
        self,
        *,
        client_id: str,
        room_code: str,
        token: "FencingToken",
        action: str,
        outcome: str,
        note: Optional[str] = None,
    ) -> None:
        header_parts = [
            f"Client: {client_id}",
            f"Room: {room_code}",
            f"Round: {token.current_round}",
            f"Trick: {token.trick_number}",
            f"Phase: {token.phase.value}",
            f"Seat: {token.current_player_index}",
        ]
        line = f"{' | '.join(header_parts)} :: {action} -> {outcome}"
        if note:
            line += f" ({note})"

        with self._lock:
            if outcome == "stale":
                self.stale_count += 1
            self._entries.append(line)

    @property
    def entries(self) -> List[str]:
        with self._lock:
            return list(self._entries)

    def flush(self) -> None:
        with self._lock:
            if not self._entries:
                return
            to_write = "\n".join(self._entries) + "\n"
            self._entries.clear()
        self.path.parent.mkdir(parents=True, exist_ok=True)
        with open(self.path, "a", encoding="utf-8") as f:
            f.write(to_write)

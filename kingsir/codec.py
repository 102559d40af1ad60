# kingsir/codec.py
"""
Storage representation of a GameState.

Documents are JSON-like dicts with the camelCase field names clients share.
Some backends drop empty lists and null fields, and hand lists back as
index-keyed objects; `decode_state` accepts all of those shapes and always
rebuilds empty hands and empty tricks as empty tuples.
"""
from __future__ import annotations

from typing import Any, Dict, List, Optional

from .cards import Suit, card_to_dict, dict_to_card
from .state import NO_BID, Difficulty, GameState, Phase, PlayedCard, PlayerState


def _suit_or_none(value: Any) -> Optional[Suit]:
    return Suit(value) if value is not None else None


def _sequence(raw: Any) -> List[Any]:
    """Normalize an absent, list-shaped or index-keyed collection to a list."""
    if raw is None:
        return []
    if isinstance(raw, dict):
        return [raw[k] for k in sorted(raw, key=int)]
    return list(raw)


def player_to_dict(player: PlayerState) -> Dict[str, Any]:
    data: Dict[str, Any] = {
        "id": player.id,
        "name": player.name,
        "hand": [card_to_dict(c) for c in player.hand],
        "bid": player.bid,
        "tricksWon": player.tricks_won,
        "score": player.score,
        "isAI": player.is_ai,
        "connected": player.connected,
    }
    if player.ai_difficulty is not None:
        data["aiDifficulty"] = player.ai_difficulty.value
    return data


def dict_to_player(data: Dict[str, Any]) -> PlayerState:
    difficulty = data.get("aiDifficulty")
    return PlayerState(
        id=str(data["id"]),
        name=data.get("name", ""),
        hand=tuple(dict_to_card(c) for c in _sequence(data.get("hand"))),
        bid=int(data.get("bid", NO_BID)),
        tricks_won=int(data.get("tricksWon", 0)),
        score=int(data.get("score", 0)),
        is_ai=bool(data.get("isAI", False)),
        ai_difficulty=Difficulty(difficulty) if difficulty else None,
        connected=bool(data.get("connected", True)),
    )


def played_card_to_dict(played: PlayedCard) -> Dict[str, Any]:
    return {
        "card": card_to_dict(played.card),
        "playerId": played.player_id,
        "position": played.position,
    }


def dict_to_played_card(data: Dict[str, Any]) -> PlayedCard:
    return PlayedCard(
        card=dict_to_card(data["card"]),
        player_id=str(data["playerId"]),
        position=int(data["position"]),
    )


def encode_state(state: GameState) -> Dict[str, Any]:
    """Canonical document for `state`. Empty collections stay empty lists."""
    return {
        "roomCode": state.room_code,
        "hostId": state.host_id,
        "phase": state.phase.value,
        "players": [player_to_dict(p) for p in state.players],
        "currentRound": state.current_round,
        "cardsPerPlayer": state.cards_per_player,
        "currentPlayerIndex": state.current_player_index,
        "trumpSuit": state.trump_suit.value if state.trump_suit else None,
        "leadingSuit": state.leading_suit.value if state.leading_suit else None,
        "playedCards": [played_card_to_dict(pc) for pc in state.played_cards],
        "highestBidderId": state.highest_bidder_id,
        "roundStarterIndex": state.round_starter_index,
        "trickWinnerId": state.trick_winner_id,
        "trickNumber": state.trick_number,
    }


def decode_state(doc: Dict[str, Any]) -> GameState:
    played = sorted(
        (dict_to_played_card(pc) for pc in _sequence(doc.get("playedCards"))),
        key=lambda pc: pc.position,
    )
    return GameState(
        room_code=doc["roomCode"],
        host_id=doc["hostId"],
        phase=Phase(doc["phase"]),
        players=tuple(dict_to_player(p) for p in _sequence(doc.get("players"))),
        current_round=int(doc["currentRound"]),
        cards_per_player=int(doc["cardsPerPlayer"]),
        current_player_index=int(doc["currentPlayerIndex"]),
        trump_suit=_suit_or_none(doc.get("trumpSuit")),
        leading_suit=_suit_or_none(doc.get("leadingSuit")),
        played_cards=tuple(played),
        highest_bidder_id=doc.get("highestBidderId"),
        round_starter_index=int(doc.get("roundStarterIndex", 0)),
        trick_winner_id=doc.get("trickWinnerId"),
        trick_number=int(doc.get("trickNumber", 0)),
    )


def collapse_empty(doc: Any) -> Any:
    """
    Mimic a backend that drops empty lists and null fields on write.

    Used by the in-memory store to exercise `decode_state`'s normalization.
    """
    if isinstance(doc, dict):
        out = {}
        for key, value in doc.items():
            if value is None or (isinstance(value, list) and not value):
                continue
            out[key] = collapse_empty(value)
        return out
    if isinstance(doc, list):
        return [collapse_empty(v) for v in doc]
    return doc

"""
Documents envoyés aux clients (format camelCase, horodatages en ms epoch).
"""
from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional

from models import ChatMessage, Player, Room, as_utc


def to_millis(dt: Optional[datetime]) -> Optional[int]:
    if dt is None:
        return None
    return int(as_utc(dt).timestamp() * 1000)


def typing_lock_document(r: Room) -> Optional[Dict[str, Any]]:
    if not r.typing_holder_id:
        return None
    return {
        "holderId": r.typing_holder_id,
        "holderLabel": r.typing_holder_label,
        "fieldIndex": r.typing_field_index,
        "claimedAt": to_millis(r.typing_claimed_at),
    }


def player_document(p: Player) -> Dict[str, Any]:
    return {
        "identifier": p.identifier,
        "nickname": p.nickname,
        "isHost": p.is_host,
        "isReady": p.is_ready,
        "role": p.role,
        "joinedAt": to_millis(p.joined_at),
        "lastSeenAt": to_millis(p.last_seen_at),
    }


def room_document(r: Room, players: Iterable[Player]) -> Dict[str, Any]:
    """Document complet de la room : remplace entièrement l'état côté client."""
    ordered = sorted(players, key=lambda p: (as_utc(p.joined_at), p.id or 0))
    return {
        "roomId": r.id,
        "code": r.code,
        "hostId": r.host_id,
        "phase": r.phase,
        "currentPuzzleIndex": r.current_puzzle,
        "solvedPuzzles": sorted(r.solved_puzzles or []),
        "sharedInputs": dict(r.shared_inputs or {}),
        "typingLock": typing_lock_document(r),
        "isLocked": r.is_locked,
        "startTime": to_millis(r.start_time),
        "finalPasscode": r.final_passcode,
        "completionTime": r.completion_time_ms,
        "createdAt": to_millis(r.created_at),
        "players": [player_document(p) for p in ordered],
    }


def chat_document(m: ChatMessage) -> Dict[str, Any]:
    return {
        "id": m.id,
        "playerId": m.player_id,
        "playerName": m.player_name,
        "message": m.message,
        "timestamp": to_millis(m.timestamp),
    }


def chat_feed(room_id: int, messages: Iterable[ChatMessage]) -> Dict[str, Any]:
    items: List[Dict[str, Any]] = [chat_document(m) for m in messages]
    return {"roomId": room_id, "messages": items}

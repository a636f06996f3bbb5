# services/room_store.py
"""
Source de vérité unique : rooms, joueurs et messages de chat.

Chaque mutation est une lecture-modification-écriture dans une seule
transaction SQLModel, sous le verrou de la room concernée : deux mutations
sur la même room ne s'entrelacent jamais. Une erreur est toujours levée
avant la première écriture, le document reste donc intact.
"""
from __future__ import annotations

import logging
import random
import secrets
import threading
from contextlib import contextmanager
from typing import Any, Callable, Dict, Iterator, List, Optional, Tuple

from sqlmodel import Session, SQLModel, select

import config
from errors import (
    GameAlreadyFinished, GameAlreadyStarted, InvalidMessage, InvalidPuzzle,
    InvalidRequest, NotAuthorized, NotEnoughPlayers, PlayerNotFound, RoomFull,
    RoomLocked, RoomNotFound,
)
from models import (
    PHASE_PLAYING, PHASE_VICTORY, PHASE_WAITING,
    ChatMessage, Player, Room, as_utc, utcnow,
)
from services import game_state
from services.serialization import chat_document, chat_feed, room_document

logger = logging.getLogger(__name__)

NICKNAME_MAX_LENGTH = 24


def generate_room_code() -> str:
    return "".join(secrets.choice(config.ROOM_CODE_ALPHABET) for _ in range(config.ROOM_CODE_LENGTH))


def _clean_text(value: Any, what: str, max_len: int) -> str:
    if not isinstance(value, str) or not value.strip():
        raise InvalidRequest(f"{what} is required")
    return value.strip()[:max_len]


def _seniority(p: Player):
    return (as_utc(p.joined_at), p.id or 0)


class RoomStore:
    def __init__(self, engine, clock: Callable = utcnow, code_factory: Callable[[], str] = generate_room_code,
                 shuffle: Callable[[list], None] = random.shuffle):
        self.engine = engine
        self.clock = clock
        self.code_factory = code_factory
        self.shuffle = shuffle
        self._registry_lock = threading.Lock()
        self._create_lock = threading.Lock()
        self._room_locks: Dict[int, threading.RLock] = {}

    def init_db(self):
        SQLModel.metadata.create_all(self.engine)

    # ------------------ TRANSACTIONS ------------------
    def _lock_for(self, room_id: int) -> threading.RLock:
        with self._registry_lock:
            lock = self._room_locks.get(room_id)
            if lock is None:
                lock = self._room_locks[room_id] = threading.RLock()
            return lock

    def _forget_lock(self, room_id: int):
        with self._registry_lock:
            self._room_locks.pop(room_id, None)

    @contextmanager
    def mutate(self, room_id: int) -> Iterator[Tuple[Session, Room]]:
        """Transaction atomique sur une room ; commit si le bloc se termine sans erreur."""
        if not isinstance(room_id, int) or isinstance(room_id, bool):
            raise RoomNotFound("Room not found")
        with self._lock_for(room_id):
            with Session(self.engine) as s:
                r = s.get(Room, room_id)
                if r is None:
                    # ids jamais réutilisés : le verrou d'une room absente ne servira plus
                    self._forget_lock(room_id)
                    raise RoomNotFound("Room not found")
                yield s, r
                s.commit()

    # ------------------ LECTURES ------------------
    @staticmethod
    def players_of(s: Session, room_id: int) -> List[Player]:
        return sorted(s.exec(select(Player).where(Player.room_id == room_id)).all(), key=_seniority)

    @staticmethod
    def find_player(s: Session, room_id: int, identifier: str) -> Optional[Player]:
        return s.exec(select(Player).where(
            Player.room_id == room_id,
            Player.identifier == identifier,
        )).first()

    @staticmethod
    def _room_by_code(s: Session, code: str) -> Optional[Room]:
        return s.exec(select(Room).where(Room.code == code)).first()

    def get_room_document(self, room_id: int) -> Optional[Dict[str, Any]]:
        with Session(self.engine) as s:
            r = s.get(Room, room_id)
            if r is None:
                return None
            return room_document(r, self.players_of(s, room_id))

    def get_room_id_by_code(self, code: str) -> Optional[int]:
        with Session(self.engine) as s:
            r = self._room_by_code(s, (code or "").strip().upper())
            return r.id if r else None

    def chat_messages(self, room_id: int) -> Dict[str, Any]:
        with Session(self.engine) as s:
            msgs = s.exec(select(ChatMessage)
                          .where(ChatMessage.room_id == room_id)
                          .order_by(ChatMessage.timestamp, ChatMessage.id)).all()
            return chat_feed(room_id, msgs)

    def get_role_puzzle_data(self, room_id: int, identifier: str, puzzle_index: int) -> Optional[Dict[str, Any]]:
        """Vue de l'énigme propre au rôle du joueur ; None tant qu'aucun rôle n'est attribué."""
        if not game_state.is_valid_index(puzzle_index):
            raise InvalidPuzzle("Invalid puzzle index")
        with Session(self.engine) as s:
            if s.get(Room, room_id) is None:
                raise RoomNotFound("Room not found")
            players = self.players_of(s, room_id)
            me = next((p for p in players if p.identifier == identifier), None)
            if me is None:
                raise PlayerNotFound("Player not in room")
            if not me.role:
                return None
            return game_state.get_role_puzzle_data(puzzle_index, me.role, len(players))

    # ------------------ SUPPRESSIONS ------------------
    def _purge_room(self, s: Session, r: Room):
        """Supprime la room, ses joueurs et son chat (même transaction)."""
        for p in s.exec(select(Player).where(Player.room_id == r.id)).all():
            s.delete(p)
        for m in s.exec(select(ChatMessage).where(ChatMessage.room_id == r.id)).all():
            s.delete(m)
        s.delete(r)
        logger.info("room %s (%s) deleted", r.id, r.code)

    def _promote_oldest(self, r: Room, remaining: List[Player]) -> Player:
        new_host = min(remaining, key=_seniority)
        for p in remaining:
            p.is_host = p is new_host
        r.host_id = new_host.identifier
        logger.info("room %s: host transferred to %s", r.code, new_host.identifier)
        return new_host

    def drop_player(self, s: Session, r: Room, p: Player) -> bool:
        """
        Retire un joueur (départ, exclusion, inactivité).
        Renvoie True si la room, désormais vide, a été supprimée.
        """
        was_host = p.is_host or p.identifier == r.host_id
        s.delete(p)
        if r.typing_holder_id == p.identifier:
            r.clear_typing_lock()
        s.flush()
        remaining = self.players_of(s, r.id)
        if not remaining:
            self._purge_room(s, r)
            return True
        if was_host or not any(x.is_host for x in remaining):
            self._promote_oldest(r, remaining)
            for x in remaining:
                s.add(x)
        s.add(r)
        return False

    # ------------------ MUTATIONS ------------------
    def create_room(self, nickname: str, identifier: str) -> Dict[str, Any]:
        nickname = _clean_text(nickname, "nickname", NICKNAME_MAX_LENGTH)
        identifier = _clean_text(identifier, "identifier", 64)
        now = self.clock()
        with self._create_lock, Session(self.engine) as s:
            code = self.code_factory()
            while self._room_by_code(s, code):
                code = self.code_factory()
            r = Room(code=code, host_id=identifier, created_at=now)
            s.add(r)
            s.flush()
            s.add(Player(room_id=r.id, identifier=identifier, nickname=nickname,
                         is_host=True, is_ready=True, joined_at=now, last_seen_at=now))
            s.commit()
            logger.info("room %s (%s) created by %s", r.id, code, identifier)
            return {"roomId": r.id, "code": code}

    def join_room(self, code: str, nickname: str, identifier: str) -> Dict[str, Any]:
        nickname = _clean_text(nickname, "nickname", NICKNAME_MAX_LENGTH)
        identifier = _clean_text(identifier, "identifier", 64)
        room_id = self.get_room_id_by_code(code if isinstance(code, str) else "")
        if room_id is None:
            raise RoomNotFound("Room not found")
        with self.mutate(room_id) as (s, r):
            now = self.clock()
            existing = self.find_player(s, r.id, identifier)
            if existing:
                # Rejoin : toujours accepté, quelle que soit la phase
                existing.nickname = nickname
                existing.last_seen_at = now
                s.add(existing)
                logger.info("room %s: %s rejoined (%s)", r.code, identifier, r.phase)
                return {"roomId": r.id, "code": r.code}

            if r.phase != PHASE_WAITING:
                raise GameAlreadyStarted("Game already started")
            if r.is_locked:
                raise RoomLocked("Room is locked")
            if len(self.players_of(s, r.id)) >= config.MAX_PLAYERS:
                raise RoomFull("Room is full")

            s.add(Player(room_id=r.id, identifier=identifier, nickname=nickname,
                         is_host=False, is_ready=True, joined_at=now, last_seen_at=now))
            logger.info("room %s: %s joined", r.code, identifier)
            return {"roomId": r.id, "code": r.code}

    def leave_room(self, room_id: int, identifier: str):
        try:
            with self.mutate(room_id) as (s, r):
                p = self.find_player(s, r.id, identifier)
                if p is None:
                    return
                logger.info("room %s: %s left", r.code, identifier)
                deleted = self.drop_player(s, r, p)
        except RoomNotFound:
            return
        if deleted:
            self._forget_lock(room_id)

    def start_game(self, room_id: int, identifier: str):
        with self.mutate(room_id) as (s, r):
            if r.host_id != identifier:
                raise NotAuthorized("Only the host can start the game")
            if r.phase != PHASE_WAITING:
                raise GameAlreadyStarted("Game already started")
            players = self.players_of(s, r.id)
            if len(players) < config.MIN_PLAYERS:
                raise NotEnoughPlayers(f"Need at least {config.MIN_PLAYERS} players to start")
            self.shuffle(players)
            for p, role in zip(players, game_state.assign_roles(len(players))):
                p.role = role
                s.add(p)
            r.phase = PHASE_PLAYING
            r.start_time = self.clock()
            r.current_puzzle = 0
            r.solved_puzzles = []
            r.is_locked = True     # l'hôte peut rouvrir la room
            s.add(r)
            logger.info("room %s: game started with %d players", r.code, len(players))

    def submit_puzzle_answer(self, room_id: int, puzzle_index: int, answer: str) -> Dict[str, Any]:
        if not game_state.is_valid_index(puzzle_index):
            raise InvalidPuzzle("Invalid puzzle index")
        with self.mutate(room_id) as (s, r):
            # Réponse arrivée après un changement de phase : perdue, pas une erreur
            if r.phase != PHASE_PLAYING:
                return {"correct": False}
            if not game_state.validate_answer(puzzle_index, answer if isinstance(answer, str) else ""):
                return {"correct": False}

            solved = list(r.solved_puzzles or [])
            if puzzle_index not in solved:
                solved.append(puzzle_index)
            r.solved_puzzles = solved
            r.current_puzzle = max(r.current_puzzle, puzzle_index + 1)

            if len(set(solved)) >= game_state.total_puzzles():
                now = self.clock()
                started = as_utc(r.start_time) or now
                r.phase = PHASE_VICTORY
                r.completion_time_ms = int((now - started).total_seconds() * 1000)
                r.final_passcode = config.FINAL_PASSCODE
                r.clear_typing_lock()
                s.add(r)
                logger.info("room %s: victory in %d ms", r.code, r.completion_time_ms)
                return {
                    "correct": True,
                    "finalPasscode": r.final_passcode,
                    "completionTime": r.completion_time_ms,
                }
            s.add(r)
            logger.info("room %s: puzzle %d solved", r.code, puzzle_index)
            return {"correct": True}

    def update_shared_input(self, room_id: int, key: str, value: str):
        if not isinstance(key, str) or not key:
            raise InvalidRequest("key is required")
        with self.mutate(room_id) as (s, r):
            inputs = dict(r.shared_inputs or {})
            inputs[key] = value if isinstance(value, str) else ""
            r.shared_inputs = inputs
            s.add(r)

    def delete_room(self, room_id: int):
        try:
            with self.mutate(room_id) as (s, r):
                self._purge_room(s, r)
        except RoomNotFound:
            pass
        self._forget_lock(room_id)

    def close_room(self, room_id: int, host_identifier: str):
        with self.mutate(room_id) as (s, r):
            if r.host_id != host_identifier:
                raise NotAuthorized("Only the host can close the room")
            self._purge_room(s, r)
        self._forget_lock(room_id)

    def kick_player(self, room_id: int, host_identifier: str, target_identifier: str) -> Dict[str, Any]:
        with self.mutate(room_id) as (s, r):
            if r.host_id != host_identifier:
                raise NotAuthorized("Only the host can kick players")
            if target_identifier == r.host_id:
                raise NotAuthorized("Cannot kick the host")
            p = self.find_player(s, r.id, target_identifier)
            if p is None:
                return {"success": False}
            nickname = p.nickname
            self.drop_player(s, r, p)
            logger.info("room %s: %s kicked by host", r.code, target_identifier)
            return {"success": True, "kickedPlayer": nickname}

    def set_room_lock(self, room_id: int, host_identifier: str, is_locked: bool) -> Dict[str, Any]:
        with self.mutate(room_id) as (s, r):
            if r.host_id != host_identifier:
                raise NotAuthorized("Only the host can lock/unlock the room")
            r.is_locked = bool(is_locked)
            s.add(r)
            return {"success": True, "isLocked": r.is_locked}

    def end_game(self, room_id: int, host_identifier: str):
        """Retour en salle d'attente (hôte seulement). La victoire est définitive."""
        with self.mutate(room_id) as (s, r):
            if r.host_id != host_identifier:
                raise NotAuthorized("Only the host can end the game")
            if r.phase == PHASE_VICTORY:
                raise GameAlreadyFinished("Game already finished")
            if r.phase != PHASE_PLAYING:
                return
            r.phase = PHASE_WAITING
            r.start_time = None
            r.current_puzzle = 0
            r.solved_puzzles = []
            r.shared_inputs = {}
            r.clear_typing_lock()
            s.add(r)
            for p in self.players_of(s, r.id):
                p.role = None
                s.add(p)
            logger.info("room %s: game ended by host", r.code)

    def send_chat_message(self, room_id: int, identifier: str, message: str) -> Dict[str, Any]:
        if not isinstance(message, str) or not message.strip():
            raise InvalidMessage("Message is empty")
        with self.mutate(room_id) as (s, r):
            p = self.find_player(s, r.id, identifier)
            if p is None:
                raise PlayerNotFound("Player not in room")
            m = ChatMessage(room_id=r.id, player_id=identifier, player_name=p.nickname,
                            message=message.strip()[:config.CHAT_MAX_LENGTH], timestamp=self.clock())
            s.add(m)
            s.flush()
            return chat_document(m)

"""
Projection locale de l'état d'une room.

Machine à états explicite : le cache « autoritaire » n'est modifié que par les
documents reçus du serveur et remplacé en bloc à chaque réception. Les
écritures optimistes locales (énigme résolue, saisie) vivent à part et sont
abandonnées dès qu'un document plus récent arrive : on réconcilie, on ne
fusionne pas.
"""
from typing import Any, Dict, List, Optional

import config

PHASE_ENTRY = "entry"
PHASE_LOBBY = "lobby"
PHASE_WAITING = "waiting"
PHASE_PLAYING = "playing"
PHASE_VICTORY = "victory"

# Résultats de apply_room
UPDATED = "updated"
REMOVED = "removed"      # exclu ou retiré pour inactivité
DELETED = "deleted"      # room supprimée
IGNORED = "ignored"      # document d'une autre room


class RoomProjection:
    def __init__(self, identifier: str):
        self.identifier = identifier
        self.revision = 0      # incrémentée à chaque document appliqué ou remise à zéro
        self.reset()

    def reset(self):
        self.revision += 1
        self.phase = PHASE_ENTRY
        self.room_id: Optional[int] = None
        self.code: Optional[str] = None
        self.authoritative: Optional[Dict[str, Any]] = None
        self.chat: List[Dict[str, Any]] = []
        self._pending_doc: Optional[Dict[str, Any]] = None
        self._pending_chat: Optional[Dict[str, Any]] = None
        self._clear_optimistic()

    def _clear_optimistic(self):
        self._local_solved: set = set()
        self._local_index: Optional[int] = None
        self._local_inputs: Dict[str, str] = {}

    # ------------------ TRANSITIONS ------------------
    def enter_lobby(self):
        self.phase = PHASE_LOBBY

    def attach(self, room_id: int, code: str):
        """Création / jonction acceptée : on attend le premier document."""
        if room_id != self.room_id:
            self.authoritative = None
            self.chat = []
            self._clear_optimistic()
        self.room_id = room_id
        self.code = code
        if self.authoritative is None:
            self.phase = PHASE_WAITING
        # le serveur pousse le premier document avant l'accusé de réception
        pending_doc, pending_chat = self._pending_doc, self._pending_chat
        self._pending_doc = self._pending_chat = None
        if pending_doc is not None:
            self.apply_room(pending_doc)
        if pending_chat is not None:
            self.apply_chat(pending_chat)

    def apply_room(self, doc: Optional[Dict[str, Any]]) -> str:
        if not isinstance(doc, dict):
            return IGNORED
        if self.room_id is None:
            if self.phase == PHASE_LOBBY:
                self._pending_doc = doc
            return IGNORED
        if doc.get("roomId") != self.room_id:
            return IGNORED
        if doc.get("deleted"):
            self.reset()
            return DELETED
        ids = {p.get("identifier") for p in doc.get("players") or []}
        if self.identifier not in ids and doc.get("phase") != PHASE_VICTORY:
            self.reset()
            return REMOVED
        self.authoritative = doc
        self.code = doc.get("code", self.code)
        self.phase = doc.get("phase", self.phase)
        self.revision += 1
        self._clear_optimistic()
        return UPDATED

    def apply_chat(self, feed: Optional[Dict[str, Any]]):
        if not isinstance(feed, dict):
            return
        if self.room_id is None:
            if self.phase == PHASE_LOBBY:
                self._pending_chat = feed
        elif feed.get("roomId") == self.room_id:
            self.chat = list(feed.get("messages") or [])

    def apply_local_solve(self, index: int) -> int:
        """
        Avance immédiate de l'interface, avant l'accusé du serveur. Renvoie la
        révision sur laquelle repose l'avance, pour pouvoir l'annuler.
        """
        self._local_solved.add(index)
        self._local_index = max(self.current_puzzle, index + 1)
        return self.revision

    def discard_local_solve(self, revision: int, index: int):
        """Annule une avance refusée, sauf si un document plus récent l'a déjà remplacée."""
        if revision != self.revision:
            return
        self._local_solved.discard(index)
        self._local_index = None
        if self._local_solved:
            self._local_index = max(self.current_puzzle, max(self._local_solved) + 1)

    def apply_local_input(self, key: str, value: str):
        self._local_inputs[key] = value

    # ------------------ VUES ------------------
    def _auth(self, key: str, default=None):
        if self.authoritative is None:
            return default
        return self.authoritative.get(key, default)

    @property
    def players(self) -> List[Dict[str, Any]]:
        return list(self._auth("players", []))

    @property
    def host_id(self) -> Optional[str]:
        return self._auth("hostId")

    @property
    def is_host(self) -> bool:
        return self.host_id == self.identifier

    @property
    def role(self) -> Optional[str]:
        me = next((p for p in self.players if p.get("identifier") == self.identifier), None)
        return me.get("role") if me else None

    @property
    def solved_puzzles(self) -> set:
        return set(self._auth("solvedPuzzles", [])) | self._local_solved

    @property
    def current_puzzle(self) -> int:
        if self._local_index is not None:
            return self._local_index
        return self._auth("currentPuzzleIndex", 0)

    @property
    def shared_inputs(self) -> Dict[str, str]:
        merged = dict(self._auth("sharedInputs", {}))
        merged.update(self._local_inputs)
        return merged

    @property
    def final_passcode(self) -> Optional[str]:
        return self._auth("finalPasscode")

    @property
    def completion_time(self) -> Optional[int]:
        return self._auth("completionTime")

    @property
    def is_locked(self) -> bool:
        return bool(self._auth("isLocked", False))

    def typing_holder(self, field_index: int, now_ms: int) -> Optional[str]:
        """Pseudo de l'autre joueur qui tape dans ce champ, si son verrou est encore valide."""
        lock = self._auth("typingLock")
        if not lock or lock.get("holderId") == self.identifier or lock.get("fieldIndex") != field_index:
            return None
        if now_ms - (lock.get("claimedAt") or 0) >= config.TYPING_LOCK_TTL_SEC * 1000:
            return None
        return lock.get("holderLabel")

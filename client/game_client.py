"""
Client de jeu : intentions envoyées au serveur, projection locale, session.

Les erreurs de room (introuvable, complète, déjà commencée...) remontent à
l'appelant pour être affichées à l'écran d'entrée. Les opérations « au mieux »
(battement, renouvellement du verrou, chat, saisie partagée) journalisent les
pannes réseau et les abandonnent : l'intervalle suivant répare.
"""
import logging
from typing import Any, Dict, Optional

import config
from client.identity import load_or_create_session
from client.session import SessionStorage
from client.sync import DELETED, REMOVED, RoomProjection
from errors import RoomError, TransientError
from services.game_state import shared_input_key

logger = logging.getLogger(__name__)


class GameClient:
    def __init__(self, transport, storage: SessionStorage):
        self.transport = transport
        self.storage = storage
        self.session = load_or_create_session(storage)
        self.projection = RoomProjection(self.session.identifier)
        self.typing_field: Optional[int] = None
        self._loops_started = False
        transport.on("room", self._on_room)
        transport.on("chat", self._on_chat)

    @property
    def identifier(self) -> str:
        return self.session.identifier

    @property
    def room_id(self) -> Optional[int]:
        return self.projection.room_id

    # ------------------ FLUX SERVEUR ------------------
    def _on_room(self, doc):
        outcome = self.projection.apply_room(doc)
        if outcome in (REMOVED, DELETED):
            logger.info("left room (%s), back to entry", outcome)
            self.typing_field = None
            self._forget_session()

    def _on_chat(self, feed):
        self.projection.apply_chat(feed)

    def on_reconnect(self):
        """À brancher sur l'évènement « connect » : les abonnements serveur sont perdus."""
        if self.session.has_room:
            self.transport.start_background_task(self.restore_session)

    # ------------------ SESSION ------------------
    def _forget_session(self):
        self.session.forget()
        self.storage.save(self.session)

    def _enter(self, result: Dict[str, Any], nickname: str):
        self.projection.attach(result["roomId"], result["code"])
        self.session.remember(result["code"], nickname)
        self.storage.save(self.session)

    def restore_session(self) -> bool:
        """
        Rejoint silencieusement la room mémorisée. Si elle a disparu, on oublie
        la session et on reste à l'écran d'entrée ; jamais d'erreur affichée.
        """
        if not self.session.has_room:
            return False
        code, nickname = self.session.room_code, self.session.nickname
        if self.room_id is None:
            self.projection.enter_lobby()
        try:
            result = self.transport.call("join_room", {
                "code": code, "nickname": nickname, "identifier": self.identifier,
            })
        except TransientError as e:
            logger.warning("session restore deferred: %s", e)
            if self.room_id is None:
                self.projection.reset()
            return False
        except RoomError as e:
            logger.info("session restore failed for %s: %s", code, e.code)
            self.projection.reset()
            self._forget_session()
            return False
        self._enter(result, nickname)
        return True

    # ------------------ ROOMS ------------------
    def create_room(self, nickname: str) -> Dict[str, Any]:
        self.projection.enter_lobby()
        try:
            result = self.transport.call("create_room", {"nickname": nickname, "identifier": self.identifier})
        except RoomError:
            self.projection.reset()
            raise
        self._enter(result, nickname)
        return result

    def join_room(self, code: str, nickname: str) -> Dict[str, Any]:
        self.projection.enter_lobby()
        try:
            result = self.transport.call("join_room", {
                "code": code.strip().upper(), "nickname": nickname, "identifier": self.identifier,
            })
        except RoomError:
            self.projection.reset()
            raise
        self._enter(result, nickname)
        return result

    def leave_room(self):
        if self.room_id is None:
            return
        self.release_typing()
        try:
            self.transport.call("leave_room", {"roomId": self.room_id, "identifier": self.identifier})
        except TransientError as e:
            logger.warning("leave_room not delivered: %s", e)
        self.projection.reset()
        self._forget_session()

    def start_game(self):
        self.transport.call("start_game", {"roomId": self.room_id, "identifier": self.identifier})

    def submit_answer(self, puzzle_index: int, answer: str) -> Dict[str, Any]:
        revision = self.projection.apply_local_solve(puzzle_index)
        try:
            result = self.transport.call("submit_answer", {
                "roomId": self.room_id, "puzzleIndex": puzzle_index, "answer": answer,
            })
        except RoomError:
            self.projection.discard_local_solve(revision, puzzle_index)
            raise
        if not result.get("correct"):
            self.projection.discard_local_solve(revision, puzzle_index)
        return result

    def role_puzzle(self, puzzle_index: int) -> Optional[Dict[str, Any]]:
        """Fiche de l'énigme vue par le rôle de ce joueur (None hors partie)."""
        return self.transport.call("get_role_puzzle", {
            "roomId": self.room_id, "identifier": self.identifier, "puzzleIndex": puzzle_index,
        })["puzzle"]

    # ------------------ HÔTE ------------------
    def kick_player(self, target_identifier: str) -> Dict[str, Any]:
        return self.transport.call("kick_player", {
            "roomId": self.room_id, "hostIdentifier": self.identifier, "targetIdentifier": target_identifier,
        })

    def close_room(self):
        self.transport.call("close_room", {"roomId": self.room_id, "hostIdentifier": self.identifier})

    def set_room_lock(self, is_locked: bool) -> Dict[str, Any]:
        return self.transport.call("set_room_lock", {
            "roomId": self.room_id, "hostIdentifier": self.identifier, "isLocked": is_locked,
        })

    def end_game(self):
        self.transport.call("end_game", {"roomId": self.room_id, "hostIdentifier": self.identifier})

    # ------------------ AU MIEUX ------------------
    def _best_effort(self, event: str, payload: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        try:
            return self.transport.call(event, payload)
        except TransientError as e:
            logger.warning("%s dropped: %s", event, e)
            return None

    def heartbeat(self):
        if self.room_id is not None:
            self._best_effort("heartbeat", {"roomId": self.room_id, "identifier": self.identifier})

    def sync_input(self, puzzle_index: int, value: str):
        key = shared_input_key(puzzle_index)
        self.projection.apply_local_input(key, value)
        self._best_effort("update_input", {"roomId": self.room_id, "key": key, "value": value})

    def send_chat(self, message: str) -> bool:
        return self._best_effort("chat_message", {
            "roomId": self.room_id, "identifier": self.identifier, "message": message,
        }) is not None

    def claim_typing(self, field_index: int) -> bool:
        """True si ce client détient désormais le verrou du champ."""
        result = self._best_effort("claim_typing", {
            "roomId": self.room_id, "identifier": self.identifier,
            "label": self.session.nickname or "", "fieldIndex": field_index,
        })
        if result is None or result.get("locked"):
            if self.typing_field == field_index:
                self.typing_field = None
            return False
        self.typing_field = field_index
        return True

    def renew_typing(self):
        if self.typing_field is not None:
            self.claim_typing(self.typing_field)

    def release_typing(self):
        if self.typing_field is None or self.room_id is None:
            return
        self.typing_field = None
        self._best_effort("clear_typing", {"roomId": self.room_id, "identifier": self.identifier})

    # ------------------ BOUCLES ------------------
    def _heartbeat_loop(self):
        while True:
            self.transport.sleep(config.HEARTBEAT_INTERVAL_SEC)
            self.heartbeat()

    def _typing_loop(self):
        while True:
            self.transport.sleep(config.TYPING_RENEW_INTERVAL_SEC)
            self.renew_typing()

    def start(self) -> bool:
        """Connexion, restauration de session puis boucles de fond."""
        self.transport.connect()
        restored = self.restore_session()
        self.transport.on("connect", self.on_reconnect)
        if not self._loops_started:
            self._loops_started = True
            self.transport.start_background_task(self._heartbeat_loop)
            self.transport.start_background_task(self._typing_loop)
        return restored

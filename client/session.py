"""
Session locale persistée entre deux rechargements.

Frontière de sérialisation : seuls `identifier`, `roomCode` et `nickname`
sont écrits sur disque. Tout le reste (phase, joueurs, progression) est
reconstruit à partir du prochain document envoyé par le serveur.
"""
import json
import logging
import os
from dataclasses import dataclass
from typing import Any, Dict, Optional

import config

logger = logging.getLogger(__name__)


@dataclass
class ClientSession:
    identifier: str
    room_code: Optional[str] = None
    nickname: Optional[str] = None

    @property
    def has_room(self) -> bool:
        return bool(self.room_code and self.nickname)

    def remember(self, room_code: str, nickname: str):
        self.room_code = room_code
        self.nickname = nickname

    def forget(self):
        self.room_code = None
        self.nickname = None

    def to_dict(self) -> Dict[str, Any]:
        return {"identifier": self.identifier, "roomCode": self.room_code, "nickname": self.nickname}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> Optional["ClientSession"]:
        identifier = data.get("identifier")
        if not isinstance(identifier, str) or not identifier:
            return None
        code, nick = data.get("roomCode"), data.get("nickname")
        if not (isinstance(code, str) and isinstance(nick, str)):
            code = nick = None
        return cls(identifier=identifier, room_code=code, nickname=nick)


class SessionStorage:
    """Fichier JSON : l'équivalent du localStorage du navigateur."""

    def __init__(self, path: str = config.STATE_PATH):
        self.path = os.path.expanduser(path)

    def load(self) -> Optional[ClientSession]:
        try:
            with open(self.path, encoding="utf-8") as f:
                data = json.load(f)
        except FileNotFoundError:
            return None
        except (OSError, ValueError) as e:
            logger.warning("ignoring unreadable session file %s: %s", self.path, e)
            return None
        return ClientSession.from_dict(data) if isinstance(data, dict) else None

    def save(self, session: ClientSession):
        folder = os.path.dirname(self.path)
        if folder:
            os.makedirs(folder, exist_ok=True)
        tmp = self.path + ".tmp"
        with open(tmp, "w", encoding="utf-8") as f:
            json.dump(session.to_dict(), f)
        os.replace(tmp, self.path)

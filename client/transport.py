import logging
from typing import Any, Callable, Dict

import socketio

import config
from errors import TransientError, error_from_code

logger = logging.getLogger(__name__)


def unwrap_ack(ack: Any) -> Dict[str, Any]:
    """Accusé {ok: True, ...} -> résultat ; {ok: False, error} -> RoomError correspondante."""
    if not isinstance(ack, dict):
        raise TransientError("malformed acknowledgement")
    if not ack.get("ok"):
        raise error_from_code(ack.get("error") or "", ack.get("msg") or "")
    return {k: v for k, v in ack.items() if k != "ok"}


class SocketIOTransport:
    """Connexion Socket.IO persistante vers le serveur de rooms."""

    def __init__(self, url: str = config.SERVER_URL, timeout: float = config.CALL_TIMEOUT_SEC):
        self.url = url
        self.timeout = timeout
        self.sio = socketio.Client(reconnection=True)

    def connect(self):
        try:
            self.sio.connect(self.url, wait_timeout=self.timeout)
        except socketio.exceptions.ConnectionError as e:
            raise TransientError(f"cannot reach {self.url}: {e}") from e

    def disconnect(self):
        self.sio.disconnect()

    def on(self, event: str, handler: Callable):
        self.sio.on(event, handler)

    def call(self, event: str, payload: Dict[str, Any]) -> Dict[str, Any]:
        try:
            ack = self.sio.call(event, payload, timeout=self.timeout)
        except (socketio.exceptions.TimeoutError, socketio.exceptions.BadNamespaceError) as e:
            raise TransientError(f"{event}: {e or 'no response'}") from e
        return unwrap_ack(ack)

    def start_background_task(self, target: Callable, *args):
        return self.sio.start_background_task(target, *args)

    def sleep(self, seconds: float):
        self.sio.sleep(seconds)

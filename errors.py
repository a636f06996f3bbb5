# errors.py

class RoomError(Exception):
    """Base exception for room coordination errors."""
    code = "ROOM_ERROR"

    def __init__(self, message: str = "", code: str | None = None):
        if code:
            self.code = code
        self.message = message or self.code
        super().__init__(f"[{self.code}] {self.message}")


# Specific error codes
ROOM_NOT_FOUND = "ROOM_NOT_FOUND"
PLAYER_NOT_FOUND = "PLAYER_NOT_FOUND"
INVALID_PUZZLE = "INVALID_PUZZLE"
NOT_AUTHORIZED = "NOT_AUTHORIZED"
NOT_ENOUGH_PLAYERS = "NOT_ENOUGH_PLAYERS"
GAME_ALREADY_STARTED = "GAME_ALREADY_STARTED"
GAME_ALREADY_FINISHED = "GAME_ALREADY_FINISHED"
ROOM_FULL = "ROOM_FULL"
ROOM_LOCKED = "ROOM_LOCKED"
INVALID_MESSAGE = "INVALID_MESSAGE"
INVALID_REQUEST = "INVALID_REQUEST"
TRANSIENT = "TRANSIENT"
INTERNAL_ERROR = "INTERNAL_ERROR"


class RoomNotFound(RoomError):
    code = ROOM_NOT_FOUND

class PlayerNotFound(RoomError):
    code = PLAYER_NOT_FOUND

class InvalidPuzzle(RoomError):
    code = INVALID_PUZZLE

class NotAuthorized(RoomError):
    code = NOT_AUTHORIZED

class NotEnoughPlayers(RoomError):
    code = NOT_ENOUGH_PLAYERS

class GameAlreadyStarted(RoomError):
    code = GAME_ALREADY_STARTED

class GameAlreadyFinished(RoomError):
    code = GAME_ALREADY_FINISHED

class RoomFull(RoomError):
    code = ROOM_FULL

class RoomLocked(RoomError):
    code = ROOM_LOCKED

class InvalidMessage(RoomError):
    code = INVALID_MESSAGE

class InvalidRequest(RoomError):
    code = INVALID_REQUEST

class TransientError(RoomError):
    """Network or RPC failure; the authoritative document did not change."""
    code = TRANSIENT


_BY_CODE = {cls.code: cls for cls in (
    RoomNotFound, PlayerNotFound, InvalidPuzzle, NotAuthorized, NotEnoughPlayers,
    GameAlreadyStarted, GameAlreadyFinished, RoomFull, RoomLocked, InvalidMessage,
    InvalidRequest, TransientError,
)}


def error_from_code(code: str, message: str = "") -> RoomError:
    """Rebuild the matching exception from an error code received over the wire."""
    cls = _BY_CODE.get(code)
    if cls is None:
        return RoomError(message, code=code or INTERNAL_ERROR)
    return cls(message)

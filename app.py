import logging
from functools import wraps
from flask import Flask, jsonify, request
from flask_socketio import SocketIO, emit, join_room as join_channel, leave_room as leave_channel
from sqlmodel import create_engine

import config
from errors import INTERNAL_ERROR, InvalidRequest, RoomError
from services import game_state, presence, typing_lock
from services.room_store import RoomStore

logging.basicConfig(level=config.LOG_LEVEL, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
logger = logging.getLogger(__name__)

# ------------------ DB / APP / SOCKET ------------------
engine = create_engine(config.DB_URI, echo=False)
store = RoomStore(engine)
store.init_db()

app = Flask(__name__)
app.config["SECRET_KEY"] = config.SECRET_KEY
socketio = SocketIO(app, async_mode=config.ASYNC_MODE, cors_allowed_origins=config.CORS_ORIGINS)

_sweeper_started = False

# ------------------ HELPERS ------------------
def channel(room_id: int) -> str:
    return f"room:{room_id}"

def broadcast_room(room_id: int):
    """Envoie le document complet (ou l'avis de suppression) à tous les abonnés."""
    doc = store.get_room_document(room_id)
    if doc is None:
        socketio.emit("room", {"roomId": room_id, "deleted": True}, to=channel(room_id))
    else:
        socketio.emit("room", doc, to=channel(room_id))

def broadcast_chat(room_id: int):
    socketio.emit("chat", store.chat_messages(room_id), to=channel(room_id))

def subscribe_sender(room_id: int):
    join_channel(channel(room_id))
    doc = store.get_room_document(room_id)
    if doc is None:
        emit("room", {"roomId": room_id, "deleted": True})
        return
    emit("room", doc)
    emit("chat", store.chat_messages(room_id))

def field(data: dict, key: str, kind=str):
    value = data.get(key)
    if not isinstance(value, kind) or (isinstance(value, bool) and kind is not bool):
        raise InvalidRequest(f"{key} is required")
    if kind is str and not value.strip():
        raise InvalidRequest(f"{key} is required")
    return value

def rpc(handler):
    """Transforme le retour d'un handler en accusé {ok, ...} / {ok: False, error, msg}."""
    @wraps(handler)
    def wrapper(data=None):
        data = data if isinstance(data, dict) else {}
        try:
            result = handler(data) or {}
        except RoomError as e:
            logger.info("%s refused: %s", handler.__name__, e)
            return {"ok": False, "error": e.code, "msg": e.message}
        except Exception:
            logger.exception("%s failed", handler.__name__)
            return {"ok": False, "error": INTERNAL_ERROR, "msg": "Internal error"}
        return {"ok": True, **result}
    return wrapper

def start_sweeper():
    global _sweeper_started
    if _sweeper_started or not config.PRESENCE_SWEEP: return
    _sweeper_started = True
    def _run():
        while True:
            socketio.sleep(config.SWEEP_INTERVAL_SEC)
            try:
                report = presence.sweep(store)
            except Exception:
                logger.exception("presence sweep failed")
                continue
            for room_id in report.changed_rooms | report.deleted_rooms:
                broadcast_room(room_id)
    socketio.start_background_task(_run)

# ------------------ ROUTES ------------------
@app.route("/health")
def health():
    return jsonify({"ok": True})

@app.route("/api/validate", methods=["POST"])
def validate():
    body = request.get_json(silent=True) or {}
    kind = body.get("type")
    if kind == "entry":
        return jsonify({"correct": game_state.check_entry_passcode(body.get("answer") or "")})

    index = body.get("puzzleIndex")
    if kind not in ("puzzle", "hint"):
        return jsonify({"error": "Invalid request type"}), 400
    if not game_state.is_valid_index(index):
        return jsonify({"error": "Invalid puzzle index"}), 400

    if kind == "puzzle":
        ok = game_state.validate_answer(index, body.get("answer") or "")
        if ok and index == game_state.total_puzzles() - 1:
            return jsonify({"correct": True, "finalPasscode": config.FINAL_PASSCODE})
        return jsonify({"correct": ok})

    hint = game_state.get_hint(index, body.get("hintIndex") if isinstance(body.get("hintIndex"), int) else -1)
    if hint is None:
        return jsonify({"error": "Invalid hint index"}), 400
    return jsonify({"hint": hint})

# ------------------ SOCKETS ------------------
@socketio.on("connect")
def on_connect():
    start_sweeper()

@socketio.on("subscribe")
@rpc
def on_subscribe(data):
    subscribe_sender(field(data, "roomId", int))

@socketio.on("create_room")
@rpc
def on_create_room(data):
    result = store.create_room(data.get("nickname"), data.get("identifier"))
    subscribe_sender(result["roomId"])
    return result

@socketio.on("join_room")
@rpc
def on_join_room(data):
    result = store.join_room(data.get("code"), data.get("nickname"), data.get("identifier"))
    broadcast_room(result["roomId"])
    subscribe_sender(result["roomId"])
    return result

@socketio.on("leave_room")
@rpc
def on_leave_room(data):
    room_id = field(data, "roomId", int)
    store.leave_room(room_id, field(data, "identifier"))
    leave_channel(channel(room_id))
    broadcast_room(room_id)

@socketio.on("start_game")
@rpc
def on_start_game(data):
    room_id = field(data, "roomId", int)
    store.start_game(room_id, field(data, "identifier"))
    broadcast_room(room_id)

@socketio.on("submit_answer")
@rpc
def on_submit_answer(data):
    room_id = field(data, "roomId", int)
    result = store.submit_puzzle_answer(room_id, data.get("puzzleIndex"), data.get("answer") or "")
    if result["correct"]:
        broadcast_room(room_id)
    return result

@socketio.on("get_role_puzzle")
@rpc
def on_get_role_puzzle(data):
    puzzle = store.get_role_puzzle_data(field(data, "roomId", int), field(data, "identifier"),
                                        data.get("puzzleIndex"))
    return {"puzzle": puzzle}

@socketio.on("update_input")
@rpc
def on_update_input(data):
    room_id = field(data, "roomId", int)
    store.update_shared_input(room_id, field(data, "key"), data.get("value") or "")
    broadcast_room(room_id)

@socketio.on("claim_typing")
@rpc
def on_claim_typing(data):
    room_id = field(data, "roomId", int)
    result = typing_lock.claim(store, room_id, field(data, "identifier"),
                               data.get("label") or "", field(data, "fieldIndex", int))
    if not result["locked"]:
        broadcast_room(room_id)
    return result

@socketio.on("clear_typing")
@rpc
def on_clear_typing(data):
    room_id = field(data, "roomId", int)
    typing_lock.release(store, room_id, field(data, "identifier"))
    broadcast_room(room_id)

@socketio.on("heartbeat")
@rpc
def on_heartbeat(data):
    presence.heartbeat(store, field(data, "roomId", int), field(data, "identifier"))

@socketio.on("kick_player")
@rpc
def on_kick_player(data):
    room_id = field(data, "roomId", int)
    result = store.kick_player(room_id, field(data, "hostIdentifier"), field(data, "targetIdentifier"))
    if result["success"]:
        broadcast_room(room_id)
    return result

@socketio.on("close_room")
@rpc
def on_close_room(data):
    room_id = field(data, "roomId", int)
    store.close_room(room_id, field(data, "hostIdentifier"))
    broadcast_room(room_id)

@socketio.on("delete_room")
@rpc
def on_delete_room(data):
    room_id = field(data, "roomId", int)
    store.delete_room(room_id)
    broadcast_room(room_id)

@socketio.on("set_room_lock")
@rpc
def on_set_room_lock(data):
    room_id = field(data, "roomId", int)
    result = store.set_room_lock(room_id, field(data, "hostIdentifier"), field(data, "isLocked", bool))
    broadcast_room(room_id)
    return result

@socketio.on("end_game")
@rpc
def on_end_game(data):
    room_id = field(data, "roomId", int)
    store.end_game(room_id, field(data, "hostIdentifier"))
    broadcast_room(room_id)

@socketio.on("chat_message")
@rpc
def on_chat_message(data):
    room_id = field(data, "roomId", int)
    msg = store.send_chat_message(room_id, field(data, "identifier"), data.get("message"))
    broadcast_chat(room_id)
    return {"message": msg}

# ------------------ MAIN ------------------
if __name__ == "__main__":
    start_sweeper()
    socketio.run(app, host="0.0.0.0", port=config.PORT)

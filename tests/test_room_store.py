"""
Tests du store de rooms : création, jonction, départ, progression.
"""
import pytest

import config
from conftest import SequenceCodes, make_store
from errors import (
    GameAlreadyFinished, GameAlreadyStarted, InvalidMessage, InvalidPuzzle,
    InvalidRequest, NotAuthorized, NotEnoughPlayers, PlayerNotFound, RoomFull,
    RoomLocked, RoomNotFound,
)
from services import presence, typing_lock


def _room(store, room_id):
    return store.get_room_document(room_id)


def _hosts(doc):
    return [p["identifier"] for p in doc["players"] if p["isHost"]]


def _playing_room(store, clock):
    res = store.create_room("Alice", "id-a")
    clock.advance(1)
    store.join_room(res["code"], "Bob", "id-b")
    store.start_game(res["roomId"], "id-a")
    return res["roomId"], res["code"]


def test_create_room(store):
    res = store.create_room("Alice", "id-a")
    doc = _room(store, res["roomId"])

    assert len(res["code"]) == config.ROOM_CODE_LENGTH
    assert set(res["code"]) <= set(config.ROOM_CODE_ALPHABET)
    assert doc["phase"] == "waiting"
    assert doc["hostId"] == "id-a"
    assert doc["currentPuzzleIndex"] == 0
    assert doc["solvedPuzzles"] == []
    assert doc["typingLock"] is None
    assert [(p["nickname"], p["isHost"], p["isReady"]) for p in doc["players"]] == [("Alice", True, True)]


def test_room_codes_are_unique(clock):
    store = make_store(clock, SequenceCodes("AB3D7KQ9", "AB3D7KQ9", "AB3D7KQ9", "ZZ22XX44"))
    first = store.create_room("Alice", "id-a")
    second = store.create_room("Bob", "id-b")

    assert first["code"] == "AB3D7KQ9"
    assert second["code"] == "ZZ22XX44"


def test_many_created_rooms_have_distinct_codes(store):
    codes = [store.create_room(f"P{i}", f"id-{i}")["code"] for i in range(40)]
    assert len(set(codes)) == len(codes)


def test_create_room_requires_nickname(store):
    with pytest.raises(InvalidRequest):
        store.create_room("   ", "id-a")


def test_join_room(store):
    res = store.create_room("Alice", "id-a")
    joined = store.join_room(res["code"].lower(), "Bob", "id-b")
    doc = _room(store, res["roomId"])

    assert joined == res
    assert len(doc["players"]) == 2
    bob = doc["players"][1]
    assert bob["nickname"] == "Bob"
    assert not bob["isHost"]
    assert bob["isReady"]


def test_join_unknown_room(store):
    with pytest.raises(RoomNotFound):
        store.join_room("NOPE2345", "Bob", "id-b")


def test_join_started_game_is_refused(store, clock):
    room_id, code = _playing_room(store, clock)
    with pytest.raises(GameAlreadyStarted):
        store.join_room(code, "Carol", "id-c")
    assert len(_room(store, room_id)["players"]) == 2


def test_join_full_room(store):
    res = store.create_room("Host", "id-0")
    for i in range(1, config.MAX_PLAYERS):
        store.join_room(res["code"], f"P{i}", f"id-{i}")
    with pytest.raises(RoomFull):
        store.join_room(res["code"], "Late", "id-late")


def test_join_locked_room(store):
    res = store.create_room("Alice", "id-a")
    store.set_room_lock(res["roomId"], "id-a", True)
    with pytest.raises(RoomLocked):
        store.join_room(res["code"], "Bob", "id-b")


def test_rejoin_updates_nickname_whatever_the_phase(store, clock):
    room_id, code = _playing_room(store, clock)
    store.set_room_lock(room_id, "id-a", True)

    again = store.join_room(code, "Bobby", "id-b")
    doc = _room(store, room_id)

    assert again["roomId"] == room_id
    assert doc["phase"] == "playing"
    assert [p["nickname"] for p in doc["players"]] == ["Alice", "Bobby"]


def test_rejoin_after_victory(store, clock):
    room_id, code = _playing_room(store, clock)
    for i, ans in enumerate(["CAYMAN", "DONATION-50000-AIRCRAFT", "PLANE"]):
        store.submit_puzzle_answer(room_id, i, ans)
    assert store.join_room(code, "Alice", "id-a")["roomId"] == room_id


def test_leave_room_promotes_oldest_player(store, clock):
    res = store.create_room("Alice", "id-a")
    clock.advance(5)
    store.join_room(res["code"], "Bob", "id-b")
    clock.advance(5)
    store.join_room(res["code"], "Carol", "id-c")

    store.leave_room(res["roomId"], "id-a")
    doc = _room(store, res["roomId"])

    assert _hosts(doc) == ["id-b"]
    assert doc["hostId"] == "id-b"
    assert len(doc["players"]) == 2


def test_leave_room_by_non_host_keeps_host(store, clock):
    res = store.create_room("Alice", "id-a")
    clock.advance(1)
    store.join_room(res["code"], "Bob", "id-b")
    store.leave_room(res["roomId"], "id-b")
    assert _hosts(_room(store, res["roomId"])) == ["id-a"]


def test_last_player_leaving_deletes_room_and_chat(store):
    res = store.create_room("Alice", "id-a")
    store.send_chat_message(res["roomId"], "id-a", "hello")

    store.leave_room(res["roomId"], "id-a")

    assert _room(store, res["roomId"]) is None
    assert store.chat_messages(res["roomId"])["messages"] == []
    assert store.get_room_id_by_code(res["code"]) is None


def test_leave_unknown_room_is_noop(store):
    store.leave_room(999, "id-a")


def test_leaving_releases_typing_lock(store, clock):
    room_id, _ = _playing_room(store, clock)
    typing_lock.claim(store, room_id, "id-b", "Bob", 0)
    store.leave_room(room_id, "id-b")
    assert _room(store, room_id)["typingLock"] is None


def test_start_game_requires_host(store, clock):
    res = store.create_room("Alice", "id-a")
    store.join_room(res["code"], "Bob", "id-b")
    with pytest.raises(NotAuthorized):
        store.start_game(res["roomId"], "id-b")
    assert _room(store, res["roomId"])["phase"] == "waiting"


def test_start_game_requires_two_players(store):
    res = store.create_room("Alice", "id-a")
    with pytest.raises(NotEnoughPlayers):
        store.start_game(res["roomId"], "id-a")


def test_start_game(store, clock):
    room_id, _ = _playing_room(store, clock)
    doc = _room(store, room_id)
    assert doc["phase"] == "playing"
    assert doc["currentPuzzleIndex"] == 0
    assert doc["solvedPuzzles"] == []
    assert doc["startTime"] == int(clock.now.timestamp() * 1000)
    assert doc["isLocked"] is True
    assert [(p["identifier"], p["role"]) for p in doc["players"]] == [("id-a", "analyst"), ("id-b", "fieldAgent")]


def test_start_game_twice(store, clock):
    room_id, _ = _playing_room(store, clock)
    with pytest.raises(GameAlreadyStarted):
        store.start_game(room_id, "id-a")


def test_scenario_create_join_start_solve(clock):
    store = make_store(clock, SequenceCodes("AB3D7KQ9"))
    res = store.create_room("Alice", "id-a")
    assert res["code"] == "AB3D7KQ9"

    store.join_room("AB3D7KQ9", "Bob", "id-b")
    doc = _room(store, res["roomId"])
    assert len(doc["players"]) == 2
    assert doc["phase"] == "waiting"

    store.start_game(res["roomId"], "id-a")
    doc = _room(store, res["roomId"])
    assert doc["phase"] == "playing"
    assert doc["currentPuzzleIndex"] == 0

    assert store.submit_puzzle_answer(res["roomId"], 0, "CAYMAN") == {"correct": True}
    doc = _room(store, res["roomId"])
    assert doc["solvedPuzzles"] == [0]
    assert doc["currentPuzzleIndex"] == 1


def test_wrong_answer_changes_nothing(store, clock):
    room_id, _ = _playing_room(store, clock)
    before = _room(store, room_id)
    assert store.submit_puzzle_answer(room_id, 0, "JAMAICA") == {"correct": False}
    assert _room(store, room_id) == before


def test_answer_is_normalised(store, clock):
    room_id, _ = _playing_room(store, clock)
    assert store.submit_puzzle_answer(room_id, 0, "  cayman \n")["correct"]


def test_resubmitting_solved_puzzle_is_idempotent(store, clock):
    room_id, _ = _playing_room(store, clock)
    store.submit_puzzle_answer(room_id, 0, "CAYMAN")
    store.submit_puzzle_answer(room_id, 1, "DONATION-50000-AIRCRAFT")

    assert store.submit_puzzle_answer(room_id, 0, "CAYMAN")["correct"]
    doc = _room(store, room_id)
    assert doc["solvedPuzzles"] == [0, 1]
    assert doc["currentPuzzleIndex"] == 2


def test_current_puzzle_never_decreases(store, clock):
    room_id, _ = _playing_room(store, clock)
    seen = [_room(store, room_id)["currentPuzzleIndex"]]
    for index, answer in [(1, "DONATION-50000-AIRCRAFT"), (0, "WRONG"), (0, "CAYMAN"),
                          (1, "DONATION-50000-AIRCRAFT"), (0, "CAYMAN")]:
        store.submit_puzzle_answer(room_id, index, answer)
        store.update_shared_input(room_id, "puzzle0_answer", answer)
        seen.append(_room(store, room_id)["currentPuzzleIndex"])
    assert seen == sorted(seen)
    assert seen[-1] == 2


def test_victory(store, clock):
    room_id, code = _playing_room(store, clock)
    store.submit_puzzle_answer(room_id, 0, "CAYMAN")
    store.submit_puzzle_answer(room_id, 1, "DONATION-50000-AIRCRAFT")
    clock.advance(90)

    result = store.submit_puzzle_answer(room_id, 2, "plane")
    doc = _room(store, room_id)

    assert result == {"correct": True, "finalPasscode": config.FINAL_PASSCODE, "completionTime": 90_000}
    assert doc["phase"] == "victory"
    assert doc["finalPasscode"] == config.FINAL_PASSCODE
    assert doc["completionTime"] == 90_000
    assert doc["currentPuzzleIndex"] == 3


def test_victory_is_final(store, clock):
    room_id, _ = _playing_room(store, clock)
    for i, ans in enumerate(["CAYMAN", "DONATION-50000-AIRCRAFT", "PLANE"]):
        store.submit_puzzle_answer(room_id, i, ans)

    assert store.submit_puzzle_answer(room_id, 2, "PLANE") == {"correct": False}
    with pytest.raises(GameAlreadyFinished):
        store.end_game(room_id, "id-a")
    with pytest.raises(GameAlreadyStarted):
        store.start_game(room_id, "id-a")
    assert _room(store, room_id)["phase"] == "victory"


def test_submit_before_start_is_not_correct(store):
    res = store.create_room("Alice", "id-a")
    assert store.submit_puzzle_answer(res["roomId"], 0, "CAYMAN") == {"correct": False}


def test_submit_invalid_puzzle_index(store, clock):
    room_id, _ = _playing_room(store, clock)
    with pytest.raises(InvalidPuzzle):
        store.submit_puzzle_answer(room_id, 7, "CAYMAN")


def test_shared_inputs_last_writer_wins(store):
    res = store.create_room("Alice", "id-a")
    store.update_shared_input(res["roomId"], "puzzle0_answer", "CAY")
    store.update_shared_input(res["roomId"], "puzzle1_answer", "DON")
    store.update_shared_input(res["roomId"], "puzzle0_answer", "CAYMAN")
    assert _room(store, res["roomId"])["sharedInputs"] == {
        "puzzle0_answer": "CAYMAN",
        "puzzle1_answer": "DON",
    }


def test_kick_player(store, clock):
    res = store.create_room("Alice", "id-a")
    store.join_room(res["code"], "Bob", "id-b")

    assert store.kick_player(res["roomId"], "id-a", "id-b") == {"success": True, "kickedPlayer": "Bob"}
    assert [p["identifier"] for p in _room(store, res["roomId"])["players"]] == ["id-a"]
    assert store.kick_player(res["roomId"], "id-a", "id-b") == {"success": False}


def test_kick_requires_host_and_spares_host(store):
    res = store.create_room("Alice", "id-a")
    store.join_room(res["code"], "Bob", "id-b")
    with pytest.raises(NotAuthorized):
        store.kick_player(res["roomId"], "id-b", "id-a")
    with pytest.raises(NotAuthorized):
        store.kick_player(res["roomId"], "id-a", "id-a")
    assert len(_room(store, res["roomId"])["players"]) == 2


def test_close_room(store):
    res = store.create_room("Alice", "id-a")
    store.join_room(res["code"], "Bob", "id-b")
    with pytest.raises(NotAuthorized):
        store.close_room(res["roomId"], "id-b")

    store.close_room(res["roomId"], "id-a")
    assert _room(store, res["roomId"]) is None


def test_delete_room(store):
    res = store.create_room("Alice", "id-a")
    store.delete_room(res["roomId"])
    store.delete_room(res["roomId"])
    assert _room(store, res["roomId"]) is None


def test_room_ids_are_not_reused(store):
    first = store.create_room("Alice", "id-a")
    store.delete_room(first["roomId"])
    second = store.create_room("Bob", "id-b")
    assert second["roomId"] != first["roomId"]


def test_end_game_returns_to_waiting(store, clock):
    room_id, code = _playing_room(store, clock)
    store.submit_puzzle_answer(room_id, 0, "CAYMAN")
    store.update_shared_input(room_id, "puzzle1_answer", "DON")

    with pytest.raises(NotAuthorized):
        store.end_game(room_id, "id-b")
    store.end_game(room_id, "id-a")
    doc = _room(store, room_id)

    assert doc["phase"] == "waiting"
    assert doc["solvedPuzzles"] == []
    assert doc["currentPuzzleIndex"] == 0
    assert doc["sharedInputs"] == {}
    assert doc["startTime"] is None
    assert [p["role"] for p in doc["players"]] == [None, None]
    assert doc["isLocked"] is True
    with pytest.raises(RoomLocked):
        store.join_room(code, "Carol", "id-c")
    store.set_room_lock(room_id, "id-a", False)
    assert store.join_room(code, "Carol", "id-c")["roomId"] == room_id


def test_chat_messages(store, clock):
    res = store.create_room("Alice", "id-a")
    store.join_room(res["code"], "Bob", "id-b")
    store.send_chat_message(res["roomId"], "id-a", "  first ")
    clock.advance(1)
    sent = store.send_chat_message(res["roomId"], "id-b", "x" * 800)

    feed = store.chat_messages(res["roomId"])
    assert [m["playerName"] for m in feed["messages"]] == ["Alice", "Bob"]
    assert feed["messages"][0]["message"] == "first"
    assert len(sent["message"]) == config.CHAT_MAX_LENGTH


def test_chat_requires_member_and_text(store):
    res = store.create_room("Alice", "id-a")
    with pytest.raises(PlayerNotFound):
        store.send_chat_message(res["roomId"], "stranger", "hi")
    with pytest.raises(InvalidMessage):
        store.send_chat_message(res["roomId"], "id-a", "   ")


def test_unknown_room_operations(store):
    with pytest.raises(RoomNotFound):
        store.start_game(42, "id-a")
    with pytest.raises(RoomNotFound):
        store.update_shared_input(42, "puzzle0_answer", "x")
    with pytest.raises(RoomNotFound):
        store.kick_player(42, "id-a", "id-b")


def test_role_puzzle_data(store, clock):
    res = store.create_room("Alice", "id-a")
    clock.advance(1)
    store.join_room(res["code"], "Bob", "id-b")
    room_id = res["roomId"]
    assert store.get_role_puzzle_data(room_id, "id-a", 0) is None

    store.start_game(room_id, "id-a")

    assert store.get_role_puzzle_data(room_id, "id-a", 1)["role"] == "analyst"
    agent = store.get_role_puzzle_data(room_id, "id-b", 1)
    assert agent["canSubmit"] is True
    assert agent["decoderData"]["title"]
    with pytest.raises(InvalidPuzzle):
        store.get_role_puzzle_data(room_id, "id-a", 3)
    with pytest.raises(PlayerNotFound):
        store.get_role_puzzle_data(room_id, "stranger", 0)
    with pytest.raises(RoomNotFound):
        store.get_role_puzzle_data(999, "id-a", 0)


def test_roles_follow_the_shuffle(clock):
    store = make_store(clock)
    store.shuffle = lambda players: players.reverse()
    res = store.create_room("Alice", "id-a")
    clock.advance(1)
    store.join_room(res["code"], "Bob", "id-b")
    clock.advance(1)
    store.join_room(res["code"], "Carol", "id-c")
    store.start_game(res["roomId"], "id-a")

    roles = {p["identifier"]: p["role"] for p in _room(store, res["roomId"])["players"]}
    assert roles == {"id-c": "analyst", "id-b": "decoder", "id-a": "fieldAgent"}


def test_unknown_rooms_leave_no_lock_behind(store):
    for room_id in range(1000, 1500):
        presence.heartbeat(store, room_id, "ghost")
        with pytest.raises(RoomNotFound):
            typing_lock.claim(store, room_id, "ghost", "Ghost", 0)
    with pytest.raises(RoomNotFound):
        store.set_room_lock(2000, "id-a", True)
    assert store._room_locks == {}

    res = store.create_room("Alice", "id-a")
    store.leave_room(res["roomId"], "id-a")
    assert store._room_locks == {}

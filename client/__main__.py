"""
Client console minimal : python -m client
Commandes : create NICK | join CODE NICK | start | answer N TEXT | chat TEXT |
            puzzle N | decode hex|base64|binary TEXT | type N TEXT | kick ID | lock on|off | end | close | leave | state | quit
"""
import logging
import shlex

import config
from client.game_client import GameClient
from client.session import SessionStorage
from client.transport import SocketIOTransport
from errors import RoomError
from puzzles import ciphers
from services import game_state


def show(c: GameClient):
    p = c.projection
    phase = f"{p.phase}|{p.role}" if p.role else p.phase
    print(f"[{phase}] room={p.code} puzzle={p.current_puzzle} solved={sorted(p.solved_puzzles)}")
    for pl in p.players:
        print(f"  {'*' if pl['isHost'] else ' '} {pl['nickname']} ({pl['identifier']})")
    for m in p.chat[-5:]:
        print(f"  > {m['playerName']}: {m['message']}")
    if p.final_passcode:
        print(f"  FINAL PASSCODE: {p.final_passcode}")


def show_puzzle(c: GameClient, index: int):
    """Fiche du rôle en partie ; énoncé complet sinon."""
    sheet = c.role_puzzle(index) if c.room_id is not None else None
    if sheet is None:
        prompt = game_state.get_prompt(index)
        print(prompt.title, "-", prompt.instruction)
        for line in prompt.lines():
            print("   ", line)
        return
    print(f"[{sheet['role']}] {sheet['title']}: {sheet['description']}")
    for line in sheet.get("data", []):
        print("   ", line)
    decoder = sheet.get("decoderData")
    if decoder:
        print(f"  {decoder['title']}")
        for line in decoder["data"]:
            print("   ", line)
    if sheet["canSubmit"]:
        print("  You submit the answer for your team.")


def main():
    logging.basicConfig(level=config.LOG_LEVEL)
    c = GameClient(SocketIOTransport(), SessionStorage())
    try:
        restored = c.start()
    except RoomError as e:
        print(f"Cannot connect: {e.message}")
        return 1
    if restored:
        print(f"Rejoined room {c.projection.code}")
    while True:
        try:
            line = input("> ").strip()
        except EOFError:
            break
        if not line:
            continue
        cmd, *args = shlex.split(line)
        try:
            if cmd == "quit":
                break
            elif cmd == "create":
                print(c.create_room(args[0]))
            elif cmd == "join":
                print(c.join_room(args[0], args[1]))
            elif cmd == "start":
                c.start_game()
            elif cmd == "answer":
                print(c.submit_answer(int(args[0]), " ".join(args[1:])))
            elif cmd == "puzzle":
                show_puzzle(c, int(args[0]))
                continue
            elif cmd == "decode":
                print(ciphers.decode(args[0], " ".join(args[1:])))
                continue
            elif cmd == "type":
                if c.claim_typing(int(args[0])):
                    c.sync_input(int(args[0]), " ".join(args[1:]))
                    c.release_typing()
                else:
                    print("Someone else is typing in this field.")
            elif cmd == "chat":
                c.send_chat(" ".join(args))
            elif cmd == "kick":
                print(c.kick_player(args[0]))
            elif cmd == "lock":
                print(c.set_room_lock(args[0] == "on"))
            elif cmd == "end":
                c.end_game()
            elif cmd == "close":
                c.close_room()
            elif cmd == "leave":
                c.leave_room()
            elif cmd != "state":
                print(__doc__)
                continue
        except RoomError as e:
            print(f"Error: {e.message}")
        except (IndexError, KeyError, ValueError):
            print(__doc__)
            continue
        show(c)
    c.transport.disconnect()


if __name__ == "__main__":
    main()
